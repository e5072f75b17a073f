from datetime import datetime, timezone

import boto3
import pytest
from botocore.exceptions import EndpointConnectionError, NoCredentialsError
from botocore.stub import Stubber

from uniform_pipelines.clients.cloudformation import CloudFormationGateway
from uniform_pipelines.clients.codepipeline import CodePipelineGateway, filter_tags
from uniform_pipelines.utils.errors import ExecutionStatusError, StackDeletionError


UPDATED = datetime(2024, 1, 1, tzinfo=timezone.utc)
PIPELINE_ARN = "arn:aws:codepipeline:eu-west-1:111111111111:orders-1-0-0-uniform-pipeline"


def _client(service):
    return boto3.client(
        service,
        region_name="eu-west-1",
        aws_access_key_id="testing",
        aws_secret_access_key="testing",
    )


@pytest.fixture
def codepipeline():
    client = _client("codepipeline")
    with Stubber(client) as stubber:
        yield CodePipelineGateway(client), stubber
        stubber.assert_no_pending_responses()


@pytest.fixture
def cloudformation():
    client = _client("cloudformation")
    with Stubber(client) as stubber:
        yield CloudFormationGateway(client), stubber
        stubber.assert_no_pending_responses()


def _summary(name):
    return {"name": name, "version": 1, "created": UPDATED, "updated": UPDATED}


def test_list_pipelines_follows_next_token(codepipeline) -> None:
    gateway, stubber = codepipeline
    stubber.add_response("list_pipelines", {"pipelines": [_summary("a"), _summary("b")], "nextToken": "t1"}, {})
    stubber.add_response("list_pipelines", {"pipelines": [_summary("c")]}, {"nextToken": "t1"})

    assert [p["name"] for p in gateway.list_pipelines()] == ["a", "b", "c"]


def test_get_pipeline_arn(codepipeline) -> None:
    gateway, stubber = codepipeline
    stubber.add_response("get_pipeline", {"metadata": {"pipelineArn": PIPELINE_ARN}}, {"name": "orders"})

    assert gateway.get_pipeline_arn("orders") == PIPELINE_ARN


def test_list_tags_is_paginated(codepipeline) -> None:
    gateway, stubber = codepipeline
    stubber.add_response(
        "list_tags_for_resource",
        {"tags": [{"key": "a", "value": "1"}], "nextToken": "t1"},
        {"resourceArn": PIPELINE_ARN},
    )
    stubber.add_response(
        "list_tags_for_resource",
        {"tags": [{"key": "b", "value": "2"}]},
        {"resourceArn": PIPELINE_ARN, "nextToken": "t1"},
    )

    assert gateway.list_tags(PIPELINE_ARN) == [{"key": "a", "value": "1"}, {"key": "b", "value": "2"}]


def test_last_execution_status(codepipeline) -> None:
    gateway, stubber = codepipeline
    stubber.add_response(
        "list_pipeline_executions",
        {"pipelineExecutionSummaries": [{"pipelineExecutionId": "exec-1", "status": "InProgress"}]},
        {"pipelineName": "orders", "maxResults": 1},
    )
    stubber.add_response(
        "get_pipeline_execution",
        {"pipelineExecution": {"pipelineExecutionId": "exec-1", "status": "InProgress"}},
        {"pipelineName": "orders", "pipelineExecutionId": "exec-1"},
    )

    assert gateway.get_last_execution_status("orders") == "InProgress"


def test_last_execution_status_without_executions(codepipeline) -> None:
    gateway, stubber = codepipeline
    stubber.add_response(
        "list_pipeline_executions",
        {"pipelineExecutionSummaries": []},
        {"pipelineName": "orders", "maxResults": 1},
    )

    assert gateway.get_last_execution_status("orders") is None


def test_last_execution_without_status(codepipeline) -> None:
    gateway, stubber = codepipeline
    stubber.add_response(
        "list_pipeline_executions",
        {"pipelineExecutionSummaries": [{"pipelineExecutionId": "exec-1"}]},
        {"pipelineName": "orders", "maxResults": 1},
    )
    stubber.add_response(
        "get_pipeline_execution",
        {"pipelineExecution": {"pipelineExecutionId": "exec-1"}},
        {"pipelineName": "orders", "pipelineExecutionId": "exec-1"},
    )

    with pytest.raises(ExecutionStatusError, match="exec-1"):
        gateway.get_last_execution_status("orders")


def test_start_pipeline_execution(codepipeline) -> None:
    gateway, stubber = codepipeline
    stubber.add_response("start_pipeline_execution", {"pipelineExecutionId": "exec-9"}, {"name": "outer"})

    assert gateway.start_pipeline_execution("outer") == "exec-9"


def test_filter_tags() -> None:
    tags = [
        {"key": "wanted", "value": "1"},
        {"key": "other", "value": "2"},
        {"key": "empty", "value": ""},
    ]

    assert filter_tags(tags, ["wanted", "empty", "missing"]) == {"wanted": "1"}


def test_delete_stack(cloudformation) -> None:
    gateway, stubber = cloudformation
    stubber.add_response("delete_stack", {}, {"StackName": "orders-stack"})

    gateway.delete_stack("orders-stack")


def test_delete_stack_failure_is_wrapped(cloudformation) -> None:
    gateway, stubber = cloudformation
    stubber.add_client_error(
        "delete_stack",
        service_error_code="ValidationError",
        service_message="Stack is protected",
        expected_params={"StackName": "orders-stack"},
    )

    with pytest.raises(StackDeletionError, match="orders-stack"):
        gateway.delete_stack("orders-stack")


@pytest.mark.parametrize("error", [
    EndpointConnectionError(endpoint_url="https://cloudformation.eu-west-1.amazonaws.com/"),
    NoCredentialsError(),
])
def test_delete_stack_transport_failure_is_wrapped(error) -> None:
    class Client:
        def delete_stack(self, StackName):
            raise error

    with pytest.raises(StackDeletionError, match="orders-stack"):
        CloudFormationGateway(Client()).delete_stack("orders-stack")
