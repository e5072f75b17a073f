"""Configuration management for uniform pipelines."""

from .models import (
    DEFAULT_DEPLOYMENT_PLAN,
    CleanupSettings,
    DeploymentPolicyEntry,
    SharedRoleSettings,
    TargetEnvironment,
)
from .environments import EnvironmentTable
from .parser import Config, ConfigValidationError

__all__ = [
    "DEFAULT_DEPLOYMENT_PLAN",
    "CleanupSettings",
    "DeploymentPolicyEntry",
    "SharedRoleSettings",
    "TargetEnvironment",
    "EnvironmentTable",
    "Config",
    "ConfigValidationError",
]
