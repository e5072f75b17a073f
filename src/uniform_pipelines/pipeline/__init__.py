"""Inner pipeline assembly from a deployment plan."""

from .buildspec import BuildSpec, has_build_spec, has_postman_build_spec
from .planner import (
    ContainedStack,
    DeploymentPlanner,
    DisabledTransition,
    PipelineDefinition,
    PipelineStageSpec,
    has_postman_spec,
    utc_timestamp,
)
from .template import PipelineTemplateBuilder

__all__ = [
    "BuildSpec",
    "ContainedStack",
    "DeploymentPlanner",
    "DisabledTransition",
    "PipelineDefinition",
    "PipelineStageSpec",
    "PipelineTemplateBuilder",
    "has_build_spec",
    "has_postman_build_spec",
    "has_postman_spec",
    "utc_timestamp",
]
