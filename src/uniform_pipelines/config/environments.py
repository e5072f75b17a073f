"""Target environment table used to resolve deployment plan entries."""

import os
from typing import Dict, Iterable, Iterator, Mapping, Optional

from pydantic import ValidationError

from uniform_pipelines.config.models import TargetEnvironment
from uniform_pipelines.model.constants import ENVIRONMENT_VARIABLE_PREFIX
from uniform_pipelines.utils.errors import ConfigurationError, UnknownEnvironmentError


def account_variable_name(environment_key: str) -> str:
    return f"{ENVIRONMENT_VARIABLE_PREFIX}ACCOUNT_{environment_key}"


def region_variable_name(environment_key: str) -> str:
    return f"{ENVIRONMENT_VARIABLE_PREFIX}REGION_{environment_key}"


class EnvironmentTable(Mapping[str, TargetEnvironment]):
    """Immutable mapping of environment key (TEST, PRODUCTION...) to target."""

    def __init__(self, environments: Mapping[str, TargetEnvironment]):
        self._environments: Dict[str, TargetEnvironment] = {
            key.upper(): env for key, env in environments.items()
        }

    def __getitem__(self, key: str) -> TargetEnvironment:
        return self._environments[key.upper()]

    def __iter__(self) -> Iterator[str]:
        return iter(self._environments)

    def __len__(self) -> int:
        return len(self._environments)

    def __repr__(self) -> str:
        return f"EnvironmentTable({sorted(self._environments)})"

    def resolve(self, environment_key: str) -> TargetEnvironment:
        """Resolve a key to its target environment.

        Raises:
            UnknownEnvironmentError: If the key is not configured
        """
        try:
            return self[environment_key]
        except KeyError:
            raise UnknownEnvironmentError(environment_key, list(self._environments)) from None

    __call__ = resolve

    @classmethod
    def from_environment(
        cls,
        environment_keys: Iterable[str],
        environ: Optional[Mapping[str, str]] = None,
    ) -> "EnvironmentTable":
        """Build the table from UNIFORM_PIPELINES_ENV_ACCOUNT_/REGION_<KEY> variables.

        Args:
            environment_keys: Keys to read (e.g. DEVOPS, TEST, PRODUCTION)
            environ: Variable source, defaults to os.environ

        Raises:
            ConfigurationError: If a variable is missing or malformed
        """
        environ = os.environ if environ is None else environ
        environments = {}
        for key in environment_keys:
            key = key.upper()
            values = {}
            for field, name in (
                ("account_id", account_variable_name(key)),
                ("region", region_variable_name(key)),
            ):
                if name not in environ:
                    raise ConfigurationError(f"Missing environment variable {name}")
                values[field] = environ[name]
            try:
                environments[key] = TargetEnvironment(unique_name=key.lower(), **values)
            except ValidationError as e:
                raise ConfigurationError(f"Invalid target environment {key}: {e}") from e
        return cls(environments)

    def environment_variables(self) -> Dict[str, str]:
        """The table as the variable map read by ``from_environment``."""
        variables = {}
        for key, env in self._environments.items():
            variables[account_variable_name(key)] = env.account_id
            variables[region_variable_name(key)] = env.region
        return variables
