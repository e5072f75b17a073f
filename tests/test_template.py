import json
from datetime import datetime

import pytest
import yaml

from uniform_pipelines.config.environments import account_variable_name
from uniform_pipelines.config.models import DEFAULT_DEPLOYMENT_PLAN
from uniform_pipelines.macros.changeset_renamer import ChangesetRenamer
from uniform_pipelines.macros.role_reassigner import RoleReassigner
from uniform_pipelines.model.constants import (
    CHANGESET_RENAME_MACRO,
    DEPLOYER_STACK_NAME_TAG,
    ROLE_REASSIGN_MACRO,
    STACK_DEPLOYED_AT_TAG,
    STACK_NAME_TAG,
    STACK_VERSION_TAG,
)
from uniform_pipelines.pipeline.buildspec import POSTMAN_REPORT_GROUP
from uniform_pipelines.pipeline.planner import ContainedStack, DeploymentPlanner
from uniform_pipelines.pipeline.template import PipelineTemplateBuilder, support_bucket_name


@pytest.fixture
def template(environments, tmp_path):
    planner = DeploymentPlanner(environments, lambda: True, clock=lambda: datetime(2024, 6, 15))
    definition = planner.build_pipeline(DEFAULT_DEPLOYMENT_PLAN, ContainedStack("orders", "1.4.0"))
    builder = PipelineTemplateBuilder(
        "source-bucket", "artifact-bucket", "eu-west-1",
        base_dir=str(tmp_path),
        environment_variables=environments.environment_variables(),
    )
    return builder.render(definition)


def _pipeline(template):
    return template["Resources"]["Pipeline"]["Properties"]


def test_template_declares_both_macros(template) -> None:
    assert template["Transform"] == [CHANGESET_RENAME_MACRO, ROLE_REASSIGN_MACRO]


def test_pipeline_stages(template) -> None:
    assert [stage["Name"] for stage in _pipeline(template)["Stages"]] == [
        "Source",
        "Build",
        "UpdatePipeline",
        "Assets",
        "deployment-test-222222222222-eu-west-1",
        "deployment-acceptance-333333333333-eu-west-1",
        "deployment-production-444444444444-us-east-1",
    ]


def test_deployment_stage_actions(template) -> None:
    stages = {stage["Name"]: stage for stage in _pipeline(template)["Stages"]}

    test = stages["deployment-test-222222222222-eu-west-1"]
    acceptance = stages["deployment-acceptance-333333333333-eu-west-1"]
    production = stages["deployment-production-444444444444-us-east-1"]

    assert [a["Name"] for a in test["Actions"]] == ["Prepare", "Deploy", "test-run-postman-test"]
    assert [a["Name"] for a in acceptance["Actions"]] == [
        "Prepare", "orders-approval-promote-to-acceptance", "Deploy", "test-run-postman-acceptance",
    ]
    assert [a["Name"] for a in production["Actions"]] == [
        "Prepare", "orders-approval-promote-to-production", "Deploy",
    ]
    assert [a["RunOrder"] for a in acceptance["Actions"]] == [1, 2, 3, 4]


def test_pipeline_tags_and_transitions(template) -> None:
    pipeline = _pipeline(template)

    assert pipeline["Name"] == "orders-1-4-0-uniform-pipeline"
    assert {tag["Key"]: tag["Value"] for tag in pipeline["Tags"]} == {
        STACK_NAME_TAG: "orders",
        STACK_VERSION_TAG: "1.4.0",
        DEPLOYER_STACK_NAME_TAG: "orders-1-4-0-uniform-pipeline-stack",
    }
    assert [t["StageName"] for t in pipeline["DisableInboundStageTransitions"]] == [
        "deployment-acceptance-333333333333-eu-west-1",
        "deployment-production-444444444444-us-east-1",
    ]


def test_cross_region_artifact_stores(template) -> None:
    stores = {store["Region"]: store["ArtifactStore"]["Location"] for store in _pipeline(template)["ArtifactStores"]}

    assert stores == {
        "eu-west-1": "artifact-bucket",
        "us-east-1": support_bucket_name("us-east-1"),
    }


def test_rendered_template_passes_through_both_macros(template, shared_roles) -> None:
    renamed = ChangesetRenamer().rename(template)
    result = RoleReassigner(shared_roles).reassign_roles(renamed)

    types = {resource["Type"] for resource in result["Resources"].values()}
    assert "AWS::IAM::Role" not in types
    assert "AWS::IAM::Policy" not in types
    assert "Fn::GetAtt" not in json.dumps(result)

    changeset_names = {
        action["Configuration"]["ChangeSetName"]
        for stage in _pipeline(result)["Stages"]
        for action in stage["Actions"]
        if action["Name"] in ("Prepare", "Deploy")
    }
    assert changeset_names == {"UniformPipelineChange-orders-1-4-0-uniform-pipeline"}


def _projects(template):
    return {
        resource["Properties"]["Description"].rsplit("/", 1)[-1]: resource["Properties"]
        for resource in template["Resources"].values()
        if resource["Type"] == "AWS::CodeBuild::Project"
    }


def _stage(template, name):
    return next(stage for stage in _pipeline(template)["Stages"] if stage["Name"] == name)


def test_synth_project_renders_default_buildspec(template, environments) -> None:
    project = _projects(template)["synth-step"]
    build_spec = yaml.safe_load(project["Source"]["BuildSpec"])

    assert build_spec["phases"]["install"]["commands"] == ["npm install -g aws-cdk"]
    assert build_spec["phases"]["build"]["commands"] == [
        "npm ci", "npm run build", "npx aws-cdk synth -c pipeline=true",
    ]
    assert build_spec["artifacts"]["base-directory"] == "cdk.out"
    assert project["Environment"]["Image"] == "aws/codebuild/standard:7.0"

    variables = {v["Name"]: v["Value"] for v in project["Environment"]["EnvironmentVariables"]}
    assert variables == environments.environment_variables()
    assert variables[account_variable_name("PRODUCTION")] == "444444444444"


def test_self_mutate_project_keeps_source_buildspec(template) -> None:
    assert "BuildSpec" not in _projects(template)["SelfMutate"]["Source"]


def test_smoke_test_project_renders_newman_buildspec(template) -> None:
    project = _projects(template)["test-run-postman-acceptance"]
    build_spec = yaml.safe_load(project["Source"]["BuildSpec"])

    assert build_spec["phases"]["install"]["commands"] == ["npm install -g newman"]
    assert build_spec["phases"]["build"]["commands"] == [
        'echo "Running API tests at acceptance"',
        "newman run -r junit pipelines/postman.json",
    ]
    assert build_spec["reports"] == {
        POSTMAN_REPORT_GROUP: {
            "files": ["**/*"],
            "base-directory": "newman",
            "discard-paths": True,
            "type": "TEST",
        },
    }
    assert {v["Name"]: v["Value"] for v in project["Environment"]["EnvironmentVariables"]} == {
        "TARGET_ACCOUNT_ID": "333333333333",
        "TARGET_REGION": "eu-west-1",
        "TARGET_UNIQUE_NAME": "acceptance",
    }


def test_prepare_action_applies_stage_stack_tags(template) -> None:
    stage_name = "deployment-test-222222222222-eu-west-1"
    prepare = _stage(template, stage_name)["Actions"][0]

    assert prepare["InputArtifacts"] == [{"Name": "synth-output"}]
    assert prepare["Configuration"]["TemplateConfiguration"] == (
        f"synth-output::{stage_name}.template-configuration.json"
    )
    assert _stage(template, "Build")["Actions"][0]["OutputArtifacts"] == [{"Name": "synth-output"}]

    build_spec = yaml.safe_load(_projects(template)["synth-step"]["Source"]["BuildSpec"])
    command = next(
        c for c in build_spec["phases"]["post_build"]["commands"]
        if c.endswith(f"cdk.out/{stage_name}.template-configuration.json")
    )
    assert STACK_DEPLOYED_AT_TAG in command
    assert "2024-06-15T00:00:00Z" in command
    assert '"uniform-pipeline:contained-stack-version": "1.4.0"' in command


def test_buildspec_override_files_adjust_defaults(environments, tmp_path) -> None:
    (tmp_path / "pipelines").mkdir()
    (tmp_path / "pipelines" / "buildspec.yaml").write_text(
        "build-image: AMAZON_LINUX_2_5\n"
        "phases:\n"
        "  install:\n"
        "    commands: [yarn global add aws-cdk]\n"
        "  build:\n"
        "    commands: [yarn install, yarn cdk synth]\n"
        "artifacts:\n"
        "  base-directory: dist/cdk.out\n"
        "env:\n"
        "  variables:\n"
        "    NODE_ENV: production\n"
    )
    (tmp_path / "pipelines" / "buildspec-postman.yaml").write_text(
        "phases:\n"
        "  pre_build:\n"
        "    commands: [echo warming up]\n"
    )

    planner = DeploymentPlanner(environments, lambda: True, clock=lambda: datetime(2024, 6, 15))
    definition = planner.build_pipeline(DEFAULT_DEPLOYMENT_PLAN, ContainedStack("orders", "1.4.0"))
    template = PipelineTemplateBuilder(
        "source-bucket", "artifact-bucket", "eu-west-1", base_dir=str(tmp_path),
    ).render(definition)
    projects = _projects(template)

    synth = yaml.safe_load(projects["synth-step"]["Source"]["BuildSpec"])
    assert projects["synth-step"]["Environment"]["Image"] == "aws/codebuild/amazonlinux2-x86_64-standard:5.0"
    assert synth["phases"]["install"]["commands"] == ["yarn global add aws-cdk"]
    assert synth["phases"]["build"]["commands"] == ["yarn install", "yarn cdk synth"]
    assert synth["artifacts"] == {"base-directory": "dist/cdk.out", "files": ["**/*"]}
    assert synth["env"] == {"variables": {"NODE_ENV": "production"}}
    assert all(c.startswith("echo ") and "dist/cdk.out/" in c for c in synth["phases"]["post_build"]["commands"])

    postman = yaml.safe_load(projects["test-run-postman-test"]["Source"]["BuildSpec"])
    assert postman["phases"]["pre_build"]["commands"] == ["echo warming up"]
    assert postman["phases"]["install"]["commands"] == ["npm install -g newman"]
    assert "reports" in postman
