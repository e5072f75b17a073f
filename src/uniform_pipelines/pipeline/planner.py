"""Deployment planner: turns a deployment plan into inner pipeline stages."""

from dataclasses import dataclass, field
from datetime import datetime, timezone
from functools import partial
from pathlib import Path
from typing import Callable, Dict, List, Optional, Sequence

from uniform_pipelines.config.models import DeploymentPolicyEntry, TargetEnvironment
from uniform_pipelines.model.constants import (
    APPROVAL_ACTION_MARKER,
    DISABLE_TRANSITION_REASON,
    PIPELINES_POSTMAN_SPEC_DEF_FILE,
    STACK_DEPLOYED_AT_TAG,
    STACK_VERSION_TAG,
)
from uniform_pipelines.model.naming import make_deployment_stage_name, make_versioned_pipeline_name
from uniform_pipelines.utils.logging import get_logger

logger = get_logger(__name__)

EnvironmentResolver = Callable[[str], TargetEnvironment]
SmokeTestCheck = Callable[[], bool]


def utc_timestamp(value: datetime) -> str:
    """ISO-8601 UTC timestamp with a Z suffix. Naive datetimes are taken as UTC."""
    if value.tzinfo is None:
        value = value.replace(tzinfo=timezone.utc)
    return value.astimezone(timezone.utc).isoformat().replace('+00:00', 'Z')


def has_postman_spec(base_dir: str = '.') -> bool:
    """Whether the contained stack ships a smoke-test (postman) specification."""
    return (Path(base_dir) / PIPELINES_POSTMAN_SPEC_DEF_FILE).is_file()


@dataclass(frozen=True)
class ContainedStack:
    """The application stack an inner pipeline deploys."""

    name: str
    version: str

    @property
    def pipeline_name(self) -> str:
        return make_versioned_pipeline_name(self.name, self.version)


@dataclass(frozen=True)
class DisabledTransition:
    """An inbound stage transition that must start disabled."""

    stage_name: str
    reason: str = DISABLE_TRANSITION_REASON


@dataclass
class PipelineStageSpec:
    """One deployment stage of an inner pipeline."""

    stage_name: str
    target_environment: TargetEnvironment
    has_approval_gate: bool
    has_smoke_test: bool
    approval_step_name: Optional[str] = None
    smoke_test_step_name: Optional[str] = None
    stack_tags: Dict[str, str] = field(default_factory=dict)


@dataclass
class PipelineDefinition:
    """Complete shape of an inner pipeline."""

    contained_stack: ContainedStack
    stages: List[PipelineStageSpec] = field(default_factory=list)
    disabled_transitions: List[DisabledTransition] = field(default_factory=list)
    created_at: datetime = field(default_factory=lambda: datetime.now(timezone.utc))

    @property
    def pipeline_name(self) -> str:
        return self.contained_stack.pipeline_name

    @property
    def stage_names(self) -> List[str]:
        return [stage.stage_name for stage in self.stages]

    def get_stage(self, stage_name: str) -> Optional[PipelineStageSpec]:
        for stage in self.stages:
            if stage.stage_name == stage_name:
                return stage
        return None


class DeploymentPlanner:
    """Builds inner pipeline definitions from a deployment plan.

    The plan order is the deployment order. Every entry is resolved before
    any stage is emitted, so an unknown environment key aborts the whole
    pipeline instead of dropping a stage.
    """

    def __init__(
        self,
        environment_resolver: EnvironmentResolver,
        smoke_test_check: Optional[SmokeTestCheck] = None,
        clock: Callable[[], datetime] = lambda: datetime.now(timezone.utc),
    ):
        """Initialize deployment planner.

        Args:
            environment_resolver: Maps an environment key to its target,
                raising UnknownEnvironmentError for unknown keys
            smoke_test_check: Tells whether a smoke-test specification exists;
                defaults to looking for it in the working directory
            clock: Source of the deployed-at timestamp; naive values are read as UTC
        """
        self.environment_resolver = environment_resolver
        self.smoke_test_check = smoke_test_check or partial(has_postman_spec, '.')
        self.clock = clock

    def build_pipeline(
        self,
        plan: Sequence[DeploymentPolicyEntry],
        contained_stack: ContainedStack,
    ) -> PipelineDefinition:
        """Create the stages and disabled transitions for a deployment plan.

        Args:
            plan: Ordered deployment policy entries
            contained_stack: Stack deployed by the pipeline

        Returns:
            PipelineDefinition with one stage per plan entry

        Raises:
            UnknownEnvironmentError: If an entry references an unconfigured environment
        """
        targets = [self.environment_resolver(entry.target_environment_key) for entry in plan]

        # The timestamp is taken at synthesis time, not when the stage deploys.
        deployed_at = utc_timestamp(self.clock())
        has_smoke_test_spec: Optional[bool] = None

        definition = PipelineDefinition(contained_stack=contained_stack)
        for entry, target in zip(plan, targets):
            stage_name = make_deployment_stage_name(target)

            smoke_test = False
            if entry.should_smoke_test:
                if has_smoke_test_spec is None:
                    has_smoke_test_spec = self.smoke_test_check()
                    if not has_smoke_test_spec:
                        logger.info("No smoke-test specification found, skipping smoke tests")
                smoke_test = has_smoke_test_spec

            stage = PipelineStageSpec(
                stage_name=stage_name,
                target_environment=target,
                has_approval_gate=entry.requires_approval,
                has_smoke_test=smoke_test,
                approval_step_name=(
                    f"{contained_stack.name}{APPROVAL_ACTION_MARKER}{target.unique_name}"
                    if entry.requires_approval else None
                ),
                smoke_test_step_name=(
                    f"test-run-postman-{target.unique_name}" if smoke_test else None
                ),
                stack_tags={
                    STACK_VERSION_TAG: contained_stack.version,
                    STACK_DEPLOYED_AT_TAG: deployed_at,
                },
            )
            definition.stages.append(stage)

            if entry.requires_approval:
                definition.disabled_transitions.append(DisabledTransition(stage_name))

            logger.debug(
                f"Stage {stage_name}: approval={stage.has_approval_gate}, "
                f"smoke_test={stage.has_smoke_test}"
            )

        logger.info(
            f"Pipeline {definition.pipeline_name} planned: {len(definition.stages)} deployment "
            f"stages, {len(definition.disabled_transitions)} disabled transitions"
        )
        return definition
