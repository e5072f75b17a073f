"""CodeBuild buildspecs for the synth and smoke-test steps.

Both steps ship a default inline buildspec. A contained stack adjusts them
with ``pipelines/buildspec.yaml`` (synth) or ``pipelines/buildspec-postman.yaml``
(smoke test):

- ``phases.install.commands`` replaces the install commands
- ``phases.build.commands`` replaces the build commands
- ``artifacts.base-directory`` replaces the artifact base directory
- ``build-image`` selects another CodeBuild image
- everything else is merged into the default buildspec
"""

import copy
import json
import shlex
from dataclasses import dataclass, field
from pathlib import Path
from typing import Any, Dict, List, Mapping, Optional

import yaml

from uniform_pipelines.config.models import TargetEnvironment
from uniform_pipelines.model.constants import (
    LIBRARY_NAMESPACE,
    PIPELINES_BUILD_SPEC_DEF_FILE,
    PIPELINES_BUILD_SPEC_POSTMAN_DEF_FILE,
    PIPELINES_POSTMAN_SPEC_DEF_FILE,
)
from uniform_pipelines.utils.errors import ConfigurationError
from uniform_pipelines.utils.logging import get_logger

logger = get_logger(__name__)

DEFAULT_BUILD_IMAGE = 'aws/codebuild/standard:7.0'
SYNTH_OUTPUT_DIRECTORY = 'cdk.out'
POSTMAN_REPORTS_DIRECTORY = 'newman'
POSTMAN_REPORT_GROUP = f"{LIBRARY_NAMESPACE}-postman-reports"

# Names accepted by ``build-image``
BUILD_IMAGES = {
    'STANDARD_5_0': 'aws/codebuild/standard:5.0',
    'STANDARD_6_0': 'aws/codebuild/standard:6.0',
    'STANDARD_7_0': 'aws/codebuild/standard:7.0',
    'AMAZON_LINUX_2_4': 'aws/codebuild/amazonlinux2-x86_64-standard:4.0',
    'AMAZON_LINUX_2_5': 'aws/codebuild/amazonlinux2-x86_64-standard:5.0',
    'AMAZON_LINUX_2_ARM_3': 'aws/codebuild/amazonlinux2-aarch64-standard:3.0',
}


def has_build_spec(base_dir: str = '.') -> bool:
    """Whether the contained stack overrides the synth buildspec."""
    return (Path(base_dir) / PIPELINES_BUILD_SPEC_DEF_FILE).is_file()


def has_postman_build_spec(base_dir: str = '.') -> bool:
    """Whether the contained stack overrides the smoke-test buildspec."""
    return (Path(base_dir) / PIPELINES_BUILD_SPEC_POSTMAN_DEF_FILE).is_file()


@dataclass
class BuildSpec:
    """A buildspec document plus the project settings that travel with it."""

    spec: Dict[str, Any]
    image: str = DEFAULT_BUILD_IMAGE
    environment_variables: Dict[str, str] = field(default_factory=dict)

    def commands(self, phase: str) -> List[str]:
        return list(self.spec.get('phases', {}).get(phase, {}).get('commands', []))

    def set_commands(self, phase: str, commands: List[str]) -> None:
        phases = self.spec.setdefault('phases', {})
        phases.setdefault(phase, {})['commands'] = list(commands)

    def add_commands(self, phase: str, commands: List[str]) -> None:
        self.set_commands(phase, self.commands(phase) + list(commands))

    def render(self) -> str:
        """The buildspec as the YAML string CodeBuild expects inline."""
        return yaml.safe_dump(self.spec, sort_keys=False, default_flow_style=False)


def synth_build_spec(environment_variables: Optional[Mapping[str, str]] = None) -> BuildSpec:
    """Default buildspec of the synth step."""
    return BuildSpec(
        spec={
            'version': '0.2',
            'phases': {
                'install': {'commands': ['npm install -g aws-cdk']},
                'build': {'commands': ['npm ci', 'npm run build', 'npx aws-cdk synth -c pipeline=true']},
            },
            'artifacts': {'base-directory': SYNTH_OUTPUT_DIRECTORY, 'files': ['**/*']},
        },
        environment_variables=dict(environment_variables or {}),
    )


def postman_build_spec(target: TargetEnvironment, report_group: str = POSTMAN_REPORT_GROUP) -> BuildSpec:
    """Default buildspec of the smoke-test step run against ``target``."""
    return BuildSpec(
        spec={
            'version': '0.2',
            'phases': {
                'install': {'commands': ['npm install -g newman']},
                'build': {'commands': [
                    f'echo "Running API tests at {target.unique_name}"',
                    f"newman run -r junit {PIPELINES_POSTMAN_SPEC_DEF_FILE}",
                ]},
            },
            'reports': {
                report_group: {
                    'files': ['**/*'],
                    'base-directory': POSTMAN_REPORTS_DIRECTORY,
                    'discard-paths': True,
                    'type': 'TEST',
                },
            },
        },
        environment_variables={
            'TARGET_ACCOUNT_ID': target.account_id,
            'TARGET_REGION': target.region,
            'TARGET_UNIQUE_NAME': target.unique_name,
        },
    )


def resolve_build_image(name: str) -> str:
    """Map a ``build-image`` value to a CodeBuild image.

    Raises:
        ConfigurationError: If the name is neither known nor an image reference
    """
    if name in BUILD_IMAGES:
        return BUILD_IMAGES[name]
    if '/' in name or ':' in name:
        return name
    raise ConfigurationError(
        f"Unknown build image: {name}",
        suggestions=[f"Use one of {', '.join(sorted(BUILD_IMAGES))} or a full image reference"],
    )


def load_build_spec_override(path: Path) -> Dict[str, Any]:
    """Read a buildspec override file.

    Raises:
        ConfigurationError: If the file is not a YAML mapping
    """
    try:
        with open(path, 'r') as f:
            document = yaml.safe_load(f) or {}
    except yaml.YAMLError as e:
        raise ConfigurationError(f"Failed to parse {path}: {e}") from e

    if not isinstance(document, dict):
        raise ConfigurationError(f"{path} must contain a mapping, got {type(document).__name__}")
    return document


def _merge(target: Dict[str, Any], source: Mapping[str, Any]) -> None:
    for key, value in source.items():
        if isinstance(value, Mapping) and isinstance(target.get(key), dict):
            _merge(target[key], value)
        else:
            target[key] = copy.deepcopy(value)


def apply_override(build_spec: BuildSpec, override: Mapping[str, Any]) -> BuildSpec:
    """Return a copy of ``build_spec`` adjusted by an override document."""
    remaining = copy.deepcopy(dict(override))
    result = BuildSpec(
        spec=copy.deepcopy(build_spec.spec),
        image=build_spec.image,
        environment_variables=dict(build_spec.environment_variables),
    )

    image = remaining.pop('build-image', None)
    if image:
        result.image = resolve_build_image(image)

    phases = remaining.get('phases')
    if isinstance(phases, dict):
        for phase in ('install', 'build'):
            section = phases.get(phase)
            if isinstance(section, dict) and 'commands' in section:
                result.set_commands(phase, section.pop('commands') or [])

    artifacts = remaining.get('artifacts')
    if isinstance(artifacts, dict) and 'base-directory' in artifacts:
        result.spec.setdefault('artifacts', {})['base-directory'] = artifacts.pop('base-directory')

    _merge(result.spec, remaining)
    return result


def template_configuration_file(stage_name: str) -> str:
    """File name of the CloudFormation template configuration for a stage."""
    return f"{stage_name}.template-configuration.json"


def write_template_configuration_command(
    stage_name: str,
    stack_tags: Mapping[str, str],
    output_directory: str = SYNTH_OUTPUT_DIRECTORY,
) -> str:
    """Shell command writing a stage's stack tags into the synth output."""
    document = json.dumps({'Tags': dict(stack_tags)}, sort_keys=True)
    return f"echo {shlex.quote(document)} > {output_directory}/{template_configuration_file(stage_name)}"
