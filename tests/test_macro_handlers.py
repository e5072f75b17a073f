from uniform_pipelines.macros.handlers import (
    reassign_roles_handler,
    rename_changesets_handler,
    shared_roles_from_environment,
)


def _event(fragment):
    return {"requestId": "req-1", "fragment": fragment, "region": "eu-west-1"}


def _pipeline_fragment(changeset_name="PipelineChange"):
    return {
        "Resources": {
            "Pipeline": {
                "Type": "AWS::CodePipeline::Pipeline",
                "Properties": {
                    "Name": "my-pipe",
                    "Stages": [{
                        "Name": "deployment-test-222222222222-eu-west-1",
                        "Actions": [{"Name": "Prepare", "Configuration": {"ChangeSetName": changeset_name}}],
                    }],
                },
            }
        }
    }


def test_rename_success_response() -> None:
    response = rename_changesets_handler(_event(_pipeline_fragment()), None)

    assert response["requestId"] == "req-1"
    assert response["status"] == "success"
    action = response["fragment"]["Resources"]["Pipeline"]["Properties"]["Stages"][0]["Actions"][0]
    assert action["Configuration"]["ChangeSetName"] == "UniformPipelineChange-my-pipe"


def test_rename_failure_response_keeps_fragment() -> None:
    fragment = _pipeline_fragment(changeset_name="Other")

    response = rename_changesets_handler(_event(fragment), None)

    assert response["status"] == "failure"
    assert "Unexpected action configuration" in response["errorMessage"]
    assert response["fragment"] == fragment


def test_reassign_roles_failure_on_unknown_stage(shared_roles) -> None:
    fragment = {
        "Resources": {
            "Pipeline": {
                "Type": "AWS::CodePipeline::Pipeline",
                "Properties": {"Name": "p", "Stages": [{"Name": "Lint", "Actions": []}]},
            }
        }
    }

    response = reassign_roles_handler(_event(fragment), None, roles=shared_roles)

    assert response["status"] == "failure"
    assert response["errorMessage"] == "Unknown stage Lint"


def test_shared_roles_from_environment(monkeypatch) -> None:
    monkeypatch.setenv("UNIFORM_PIPELINES_ENV_ACCOUNT_DEVOPS", "111111111111")
    monkeypatch.setenv("UNIFORM_PIPELINES_ENV_REGION_DEVOPS", "eu-west-1")

    assert shared_roles_from_environment().devops_account_id == "111111111111"


def test_reassign_roles_handler_reads_environment(monkeypatch) -> None:
    monkeypatch.setenv("UNIFORM_PIPELINES_ENV_ACCOUNT_DEVOPS", "111111111111")
    monkeypatch.setenv("UNIFORM_PIPELINES_ENV_REGION_DEVOPS", "eu-west-1")
    fragment = {"Resources": {"Role": {"Type": "AWS::IAM::Role", "Properties": {}}}}

    response = reassign_roles_handler(_event(fragment), None)

    assert response["status"] == "success"
    assert response["fragment"] == {"Resources": {}}
