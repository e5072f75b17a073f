"""Pydantic models for configuration schema."""

from typing import Dict, List

from pydantic import BaseModel, ConfigDict, Field, field_validator, model_validator

from uniform_pipelines.model.constants import PipelineRoles

ACCOUNT_ID_PATTERN = "^[0-9]{12}$"
REGION_PATTERN = "^[a-z]{2}(-gov)?-[a-z]+-[0-9]$"


class TargetEnvironment(BaseModel):
    """One deployment destination (account, region, unique name)."""

    model_config = ConfigDict(frozen=True)

    account_id: str = Field(..., pattern=ACCOUNT_ID_PATTERN)
    region: str = Field(..., pattern=REGION_PATTERN)
    unique_name: str = Field(..., min_length=1, max_length=32, pattern="^[a-z0-9-]+$")


class DeploymentPolicyEntry(BaseModel):
    """Release policy for one stage of the deployment plan."""

    model_config = ConfigDict(frozen=True)

    target_environment_key: str = Field(..., min_length=1)
    requires_approval: bool = False
    should_smoke_test: bool = False

    @field_validator("target_environment_key")
    @classmethod
    def normalize_key(cls, v: str) -> str:
        """Environment keys are upper case (TEST, PRODUCTION...)."""
        return v.upper()


DEFAULT_DEPLOYMENT_PLAN: List[DeploymentPolicyEntry] = [
    DeploymentPolicyEntry(target_environment_key="TEST", requires_approval=False, should_smoke_test=True),
    DeploymentPolicyEntry(target_environment_key="ACCEPTANCE", requires_approval=True, should_smoke_test=True),
    DeploymentPolicyEntry(target_environment_key="PRODUCTION", requires_approval=True, should_smoke_test=False),
]


class CleanupSettings(BaseModel):
    """Old pipeline garbage collection settings."""

    model_config = ConfigDict(frozen=True)

    max_history_length: int = Field(3, ge=1, description="Newest versions always kept per stack")
    history_months_length: int = Field(3, ge=0, description="Minimum idle age, in months, before deletion")
    delete_batch_size: int = Field(5, ge=1, le=50)
    minutes_between_deletes: int = Field(2, ge=0)
    process_timeout_minutes: int = Field(120, ge=1)
    schedule: str = Field("cron(0 1 * * ? *)", min_length=1)


class SharedRoleSettings(BaseModel):
    """Pre-provisioned shared roles living in the devops account."""

    model_config = ConfigDict(frozen=True)

    devops_account_id: str = Field(..., pattern=ACCOUNT_ID_PATTERN)
    overrides: Dict[str, str] = Field(
        default_factory=dict,
        description="Role name overrides keyed by PipelineRoles member name",
    )

    @model_validator(mode="after")
    def validate_overrides(self):
        """Only known shared roles can be overridden."""
        unknown = sorted(set(self.overrides) - set(PipelineRoles.__members__))
        if unknown:
            raise ValueError(f"Unknown shared roles: {', '.join(unknown)}")
        return self

    def role_name(self, role: PipelineRoles) -> str:
        return self.overrides.get(role.name, role.value)

    def arn_for(self, role: PipelineRoles) -> str:
        """ARN of a shared role in the devops account."""
        return f"arn:aws:iam::{self.devops_account_id}:role/{self.role_name(role)}"
