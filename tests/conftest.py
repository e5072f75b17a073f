from datetime import datetime, timezone

import pytest

from uniform_pipelines.config.environments import EnvironmentTable
from uniform_pipelines.config.models import SharedRoleSettings, TargetEnvironment


DEVOPS_ACCOUNT = "111111111111"


@pytest.fixture
def environments() -> EnvironmentTable:
    return EnvironmentTable({
        "DEVOPS": TargetEnvironment(account_id=DEVOPS_ACCOUNT, region="eu-west-1", unique_name="devops"),
        "TEST": TargetEnvironment(account_id="222222222222", region="eu-west-1", unique_name="test"),
        "ACCEPTANCE": TargetEnvironment(account_id="333333333333", region="eu-west-1", unique_name="acceptance"),
        "PRODUCTION": TargetEnvironment(account_id="444444444444", region="us-east-1", unique_name="production"),
    })


@pytest.fixture
def shared_roles() -> SharedRoleSettings:
    return SharedRoleSettings(devops_account_id=DEVOPS_ACCOUNT)


@pytest.fixture
def now() -> datetime:
    return datetime(2024, 6, 15, 12, 0, tzinfo=timezone.utc)
