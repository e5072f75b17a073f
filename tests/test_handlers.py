import pytest

from uniform_pipelines.cleanup.handlers import batch_delete_stacks_handler, detect_old_pipeline_stacks_handler
from uniform_pipelines.cleanup.models import PipelineStackPair, ProgressStatus
from uniform_pipelines.pipeline.handlers import start_pipeline_handler
from uniform_pipelines.utils.errors import ConfigurationError


class FakeDetector:
    def detect_old_pipeline_stacks(self):
        return ProgressStatus[PipelineStackPair].of([
            PipelineStackPair(pipeline_name="orders-1-0-0-uniform-pipeline", stack_name="orders-stack"),
        ])


class RecordingDeleter:
    def __init__(self):
        self.received = None

    def process_batch(self, status):
        self.received = status
        return ProgressStatus[PipelineStackPair].of(status.units_of_work[1:])


class FakeGateway:
    def __init__(self):
        self.started = []

    def start_pipeline_execution(self, name):
        self.started.append(name)
        return "exec-1"


def test_detect_handler_returns_camel_case_envelope() -> None:
    payload = detect_old_pipeline_stacks_handler({}, None, detector=FakeDetector())

    assert payload == {
        "isComplete": False,
        "unitsOfWork": [{"pipelineName": "orders-1-0-0-uniform-pipeline", "stackName": "orders-stack"}],
    }


def test_batch_handler_parses_and_returns_envelope() -> None:
    deleter = RecordingDeleter()
    event = {
        "isComplete": False,
        "unitsOfWork": [
            {"pipelineName": "p1", "stackName": "s1"},
            {"pipelineName": "p2", "stackName": "s2"},
        ],
    }

    payload = batch_delete_stacks_handler(event, None, deleter=deleter)

    assert [pair.stack_name for pair in deleter.received.units_of_work] == ["s1", "s2"]
    assert payload == {"isComplete": False, "unitsOfWork": [{"pipelineName": "p2", "stackName": "s2"}]}


def test_start_pipeline_handler(monkeypatch) -> None:
    monkeypatch.setenv("PIPELINE_NAME", "outer-pipeline")
    gateway = FakeGateway()

    response = start_pipeline_handler({}, None, gateway=gateway)

    assert response == {"pipelineName": "outer-pipeline", "pipelineExecutionId": "exec-1"}
    assert gateway.started == ["outer-pipeline"]


def test_start_pipeline_handler_requires_pipeline_name(monkeypatch) -> None:
    monkeypatch.delenv("PIPELINE_NAME", raising=False)

    with pytest.raises(ConfigurationError, match="PIPELINE_NAME"):
        start_pipeline_handler({}, None, gateway=FakeGateway())
