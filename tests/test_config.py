import pytest
import yaml

from uniform_pipelines.config.environments import EnvironmentTable
from uniform_pipelines.config.models import (
    DEFAULT_DEPLOYMENT_PLAN,
    CleanupSettings,
    DeploymentPolicyEntry,
    SharedRoleSettings,
)
from uniform_pipelines.config.parser import Config, ConfigValidationError
from uniform_pipelines.model.constants import PipelineRoles
from uniform_pipelines.utils.errors import ConfigurationError, UnknownEnvironmentError


CONFIG = {
    "environments": {
        "DEVOPS": {"account_id": "111111111111", "region": "eu-west-1"},
        "TEST": {"account_id": "222222222222", "region": "eu-west-1"},
        "production": {"account_id": "444444444444", "region": "us-east-1"},
    },
    "deployment_plan": [
        {"target_environment_key": "test", "should_smoke_test": True},
        {"target_environment_key": "PRODUCTION", "requires_approval": True},
    ],
    "cleanup": {"max_history_length": 2, "delete_batch_size": 10},
}


def _write(tmp_path, data) -> str:
    path = tmp_path / "uniform-pipelines.yaml"
    path.write_text(yaml.safe_dump(data))
    return str(path)


def test_load_configuration(tmp_path) -> None:
    config = Config(_write(tmp_path, CONFIG)).load()

    assert sorted(config.environments) == ["DEVOPS", "PRODUCTION", "TEST"]
    assert config.get_environment("production").unique_name == "production"
    assert [entry.target_environment_key for entry in config.deployment_plan] == ["TEST", "PRODUCTION"]
    assert config.deployment_plan[1].requires_approval is True
    assert config.cleanup.max_history_length == 2
    assert config.cleanup.history_months_length == 3
    assert config.roles.devops_account_id == "111111111111"


def test_missing_file(tmp_path) -> None:
    with pytest.raises(FileNotFoundError):
        Config(str(tmp_path / "missing.yaml")).load()


def test_plan_with_unknown_environment_is_rejected() -> None:
    data = dict(CONFIG, deployment_plan=[{"target_environment_key": "STAGING"}])

    with pytest.raises(ConfigValidationError) as excinfo:
        Config("unused.yaml").load_dict(data)

    assert "Unknown environment 'STAGING'" in str(excinfo.value)


def test_invalid_account_is_reported_with_location() -> None:
    data = {"environments": {"TEST": {"account_id": "1234", "region": "eu-west-1"}}}

    with pytest.raises(ConfigValidationError) as excinfo:
        Config("unused.yaml").load_dict(data)

    assert "environments -> TEST -> account_id" in str(excinfo.value)


def test_default_plan_when_omitted() -> None:
    data = {"environments": CONFIG["environments"]}

    config = Config("unused.yaml").load_dict(data)

    assert config.deployment_plan == DEFAULT_DEPLOYMENT_PLAN
    assert config.cleanup == CleanupSettings()


def test_cleanup_defaults() -> None:
    settings = CleanupSettings()

    assert settings.max_history_length == 3
    assert settings.history_months_length == 3
    assert settings.delete_batch_size == 5
    assert settings.minutes_between_deletes == 2


def test_policy_entry_key_is_upper_cased() -> None:
    assert DeploymentPolicyEntry(target_environment_key="acceptance").target_environment_key == "ACCEPTANCE"


def test_shared_role_overrides() -> None:
    roles = SharedRoleSettings(
        devops_account_id="111111111111",
        overrides={"SOURCE_ACTION": "custom-source-role"},
    )

    assert roles.arn_for(PipelineRoles.SOURCE_ACTION) == "arn:aws:iam::111111111111:role/custom-source-role"
    assert roles.arn_for(PipelineRoles.BUILD_ACTION) == (
        "arn:aws:iam::111111111111:role/uniform-pipeline-inner-build-action-role"
    )


def test_unknown_shared_role_override_is_rejected() -> None:
    with pytest.raises(ValueError, match="Unknown shared roles: NOPE"):
        SharedRoleSettings(devops_account_id="111111111111", overrides={"NOPE": "x"})


def test_environment_table_from_variables() -> None:
    environ = {
        "UNIFORM_PIPELINES_ENV_ACCOUNT_TEST": "222222222222",
        "UNIFORM_PIPELINES_ENV_REGION_TEST": "eu-west-1",
    }

    table = EnvironmentTable.from_environment(["test"], environ)

    assert table.resolve("TEST").account_id == "222222222222"
    assert table.resolve("test").unique_name == "test"
    assert table.environment_variables() == environ


def test_environment_table_missing_variable() -> None:
    environ = {"UNIFORM_PIPELINES_ENV_ACCOUNT_TEST": "222222222222"}

    with pytest.raises(ConfigurationError, match="UNIFORM_PIPELINES_ENV_REGION_TEST"):
        EnvironmentTable.from_environment(["TEST"], environ)


def test_unknown_environment(environments) -> None:
    with pytest.raises(UnknownEnvironmentError, match="STAGING"):
        environments.resolve("STAGING")
