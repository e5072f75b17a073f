"""YAML configuration parser for uniform pipelines."""

from pathlib import Path
from typing import Any, Dict, List, Optional

import yaml
from pydantic import ValidationError

from .environments import EnvironmentTable
from .models import (
    DEFAULT_DEPLOYMENT_PLAN,
    CleanupSettings,
    DeploymentPolicyEntry,
    SharedRoleSettings,
    TargetEnvironment,
)

DEVOPS_ENVIRONMENT_KEY = "DEVOPS"


class ConfigValidationError(Exception):
    """Exception raised when configuration validation fails."""

    def __init__(self, message: str, errors: Optional[List[Dict]] = None):
        self.message = message
        self.errors = errors or []
        super().__init__(self.message)

    def __str__(self) -> str:
        if not self.errors:
            return self.message

        error_lines = [self.message, ""]
        for error in self.errors:
            location = " -> ".join(str(loc) for loc in error.get("loc", []))
            msg = error.get("msg", "Unknown error")
            error_lines.append(f"  - {location}: {msg}")

        return "\n".join(error_lines)


class Config:
    """Configuration for pipeline synthesis and cleanup.

    Example file::

        environments:
          DEVOPS: {account_id: "111111111111", region: eu-west-1}
          TEST: {account_id: "222222222222", region: eu-west-1}
        deployment_plan:
          - {target_environment_key: TEST, should_smoke_test: true}
        cleanup:
          max_history_length: 3
        roles:
          devops_account_id: "111111111111"
    """

    def __init__(self, config_path: str):
        """Initialize configuration manager.

        Args:
            config_path: Path to the YAML configuration file
        """
        self.config_path = Path(config_path)
        self.data: Dict = {}
        self.environments: EnvironmentTable = EnvironmentTable({})
        self.deployment_plan: List[DeploymentPolicyEntry] = list(DEFAULT_DEPLOYMENT_PLAN)
        self.cleanup: CleanupSettings = CleanupSettings()
        self.roles: Optional[SharedRoleSettings] = None

    def load(self) -> "Config":
        """Load and validate configuration from YAML file.

        Returns:
            Self for method chaining

        Raises:
            ConfigValidationError: If configuration is invalid
            FileNotFoundError: If configuration file doesn't exist
        """
        if not self.config_path.exists():
            raise FileNotFoundError(f"Configuration file not found: {self.config_path}")

        try:
            with open(self.config_path, "r") as f:
                self.data = yaml.safe_load(f) or {}
        except yaml.YAMLError as e:
            raise ConfigValidationError(f"Failed to parse YAML: {e}")

        return self.load_dict(self.data)

    def load_dict(self, data: Dict[str, Any]) -> "Config":
        """Validate and parse an already-decoded configuration document."""
        self.data = data
        validation_errors = self.validate()
        if validation_errors:
            raise ConfigValidationError(
                f"Configuration validation failed with {len(validation_errors)} error(s)",
                validation_errors,
            )

        self._parse_environments()
        self._parse_deployment_plan()
        self._parse_cleanup()
        self._parse_roles()
        return self

    def validate(self) -> List[Dict]:
        """Validate configuration against schema.

        Returns:
            List of validation errors (empty if valid)
        """
        errors = []

        environments = self.data.get("environments")
        if not isinstance(environments, dict) or not environments:
            errors.append({"loc": ["environments"], "msg": "At least one environment must be defined"})
            environments = {}

        for env_key, env_data in environments.items():
            try:
                TargetEnvironment(**self._environment_data(env_key, env_data))
            except (ValidationError, TypeError) as e:
                errors.extend(self._errors_at(["environments", env_key], e))

        plan = self.data.get("deployment_plan")
        if plan is not None:
            if not isinstance(plan, list):
                errors.append({"loc": ["deployment_plan"], "msg": "Deployment plan must be a list"})
            else:
                for idx, entry in enumerate(plan):
                    try:
                        parsed = DeploymentPolicyEntry(**entry)
                    except (ValidationError, TypeError) as e:
                        errors.extend(self._errors_at(["deployment_plan", idx], e))
                        continue
                    if parsed.target_environment_key not in {k.upper() for k in environments}:
                        errors.append({
                            "loc": ["deployment_plan", idx, "target_environment_key"],
                            "msg": f"Unknown environment '{parsed.target_environment_key}'",
                        })

        for section, model in (("cleanup", CleanupSettings), ("roles", SharedRoleSettings)):
            if section in self.data:
                try:
                    model(**self.data[section])
                except (ValidationError, TypeError) as e:
                    errors.extend(self._errors_at([section], e))

        return errors

    def get_environment(self, env_key: str) -> TargetEnvironment:
        """Get a target environment by key.

        Raises:
            UnknownEnvironmentError: If environment doesn't exist
        """
        return self.environments.resolve(env_key)

    @staticmethod
    def _environment_data(env_key: str, env_data: Any) -> Dict[str, Any]:
        if not isinstance(env_data, dict):
            raise TypeError(f"Environment '{env_key}' must be a mapping")
        return {"unique_name": str(env_key).lower(), **env_data}

    @staticmethod
    def _errors_at(location: List, error: Exception) -> List[Dict]:
        if isinstance(error, ValidationError):
            return [
                {"loc": location + list(item["loc"]), "msg": item["msg"]}
                for item in error.errors()
            ]
        return [{"loc": location, "msg": str(error)}]

    def _parse_environments(self):
        self.environments = EnvironmentTable({
            key: TargetEnvironment(**self._environment_data(key, data))
            for key, data in self.data["environments"].items()
        })

    def _parse_deployment_plan(self):
        if "deployment_plan" in self.data:
            self.deployment_plan = [
                DeploymentPolicyEntry(**entry) for entry in self.data["deployment_plan"]
            ]

    def _parse_cleanup(self):
        if "cleanup" in self.data:
            self.cleanup = CleanupSettings(**self.data["cleanup"])

    def _parse_roles(self):
        """Shared roles default to the DEVOPS environment's account."""
        if "roles" in self.data:
            self.roles = SharedRoleSettings(**self.data["roles"])
        elif DEVOPS_ENVIRONMENT_KEY in self.environments:
            devops = self.environments[DEVOPS_ENVIRONMENT_KEY]
            self.roles = SharedRoleSettings(devops_account_id=devops.account_id)

    def to_dict(self) -> Dict:
        """Convert configuration to dictionary."""
        return {
            "environments": {key: env.model_dump() for key, env in self.environments.items()},
            "deployment_plan": [entry.model_dump() for entry in self.deployment_plan],
            "cleanup": self.cleanup.model_dump(),
            "roles": self.roles.model_dump() if self.roles else None,
        }
