import pytest

from uniform_pipelines.config.models import TargetEnvironment
from uniform_pipelines.model.naming import (
    group_cross_region_environments,
    make_cdk_default_deploy_role,
    make_deployment_stage_name,
    make_versioned_pipeline_name,
)
from uniform_pipelines.model.versions import parse_semantic_version


def test_deployment_stage_name() -> None:
    env = TargetEnvironment(account_id="123456789012", region="eu-west-1", unique_name="test")

    assert make_deployment_stage_name(env) == "deployment-test-123456789012-eu-west-1"


def test_versioned_pipeline_name_is_matched_by_cleanup_suffix() -> None:
    name = make_versioned_pipeline_name("orders", "1.2.3+build.7")

    assert name == "orders-1-2-3-build-7-uniform-pipeline"
    assert name.endswith("-uniform-pipeline")


def test_cdk_deploy_role() -> None:
    env = TargetEnvironment(account_id="123456789012", region="eu-west-1", unique_name="test")

    assert make_cdk_default_deploy_role(env) == (
        "arn:aws:iam::123456789012:role/cdk-hnb659fds-deploy-role-123456789012-eu-west-1"
    )


def test_cross_region_grouping_excludes_home_region(environments) -> None:
    grouped = group_cross_region_environments("eu-west-1", environments.values())

    assert list(grouped) == ["us-east-1"]
    assert [env.unique_name for env in grouped["us-east-1"]] == ["production"]


@pytest.mark.parametrize("lower, higher", [
    ("1.0.0", "2.0.0"),
    ("9.0.0", "10.0.0"),
    ("1.9.9", "1.10.0"),
    ("1.0.0-rc.1", "1.0.0"),
    ("1.0.0-alpha", "1.0.0-beta"),
    ("1.0.0-2", "1.0.0-10"),
    ("1.0.0-rc.1", "1.0.0-rc.1.1"),
])
def test_semantic_version_order(lower, higher) -> None:
    assert parse_semantic_version(lower) < parse_semantic_version(higher)


def test_build_metadata_is_ignored() -> None:
    assert parse_semantic_version("1.0.0+abc") == parse_semantic_version("v1.0.0")


@pytest.mark.parametrize("text", ["", "1.0", "1.0.0.0", "latest", "01.0.0"])
def test_invalid_semantic_version(text) -> None:
    with pytest.raises(ValueError, match="Invalid semantic version"):
        parse_semantic_version(text)
