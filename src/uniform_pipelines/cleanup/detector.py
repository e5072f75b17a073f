"""Detection of old inner pipelines whose stacks can be deleted."""

import re
from collections import defaultdict
from datetime import datetime, timezone
from typing import Callable, Dict, List, Optional

from dateutil.relativedelta import relativedelta

from uniform_pipelines.cleanup.models import PipelineStackPair, ProgressStatus, UniformPipelineInfo
from uniform_pipelines.clients.codepipeline import CodePipelineGateway, filter_tags
from uniform_pipelines.config.models import CleanupSettings
from uniform_pipelines.model.constants import (
    DEPLOYER_STACK_NAME_TAG,
    LIBRARY_NAMESPACE,
    STACK_NAME_TAG,
    STACK_VERSION_TAG,
)
from uniform_pipelines.model.versions import parse_semantic_version
from uniform_pipelines.utils.errors import ExecutionStatusError
from uniform_pipelines.utils.logging import get_logger

logger = get_logger(__name__)

UNIFORM_PIPELINE_PATTERN = re.compile(rf"-{re.escape(LIBRARY_NAMESPACE)}$")

REQUIRED_TAGS = (STACK_NAME_TAG, STACK_VERSION_TAG, DEPLOYER_STACK_NAME_TAG)


def _utc_now() -> datetime:
    return datetime.now(timezone.utc)


def _as_utc(value: datetime) -> datetime:
    if value.tzinfo is None:
        return value.replace(tzinfo=timezone.utc)
    return value


class OldPipelineDetector:
    """Decides which deployed inner pipelines are old enough to delete.

    Per contained stack the ``max_history_length`` newest versions are always
    kept, whatever their age. Older versions are deleted once they have been
    idle for ``history_months_length`` months and are not running.
    """

    def __init__(
        self,
        codepipeline: CodePipelineGateway,
        settings: CleanupSettings,
        clock: Callable[[], datetime] = _utc_now,
    ):
        """
        Args:
            codepipeline: CodePipeline gateway
            settings: Retention settings
            clock: Source of the current time
        """
        self.codepipeline = codepipeline
        self.settings = settings
        self.clock = clock

    def collect_uniform_pipelines(self) -> List[UniformPipelineInfo]:
        """Inner pipelines with complete identifying information.

        Records missing a name, ARN, update time, required tag or a valid
        version are skipped with a warning.
        """
        result: List[UniformPipelineInfo] = []
        pipelines = [
            pipeline for pipeline in self.codepipeline.list_pipelines()
            if UNIFORM_PIPELINE_PATTERN.search(pipeline.get('name') or '')
        ]
        logger.debug(f"Uniform pipelines are {[p.get('name') for p in pipelines]}")

        for pipeline in pipelines:
            info = self._describe(pipeline)
            if info is not None:
                result.append(info)

        logger.info(f"Found {len(result)} uniform pipelines")
        return result

    def _describe(self, pipeline: Dict) -> Optional[UniformPipelineInfo]:
        pipeline_name = pipeline['name']

        pipeline_arn = self.codepipeline.get_pipeline_arn(pipeline_name)
        if not pipeline_arn:
            logger.warning(f"Skipping pipeline {pipeline_name} without ARN")
            return None

        last_update = pipeline.get('updated')
        if not isinstance(last_update, datetime):
            logger.warning(f"Skipping pipeline {pipeline_name} with corrupt last update")
            return None

        tags = filter_tags(self.codepipeline.list_tags(pipeline_arn), REQUIRED_TAGS)
        missing = [tag for tag in REQUIRED_TAGS if tag not in tags]
        if missing:
            logger.warning(f"Skipping corrupt pipeline {pipeline_name}, missing tags: {', '.join(missing)}")
            return None

        version = tags[STACK_VERSION_TAG]
        try:
            parse_semantic_version(version)
        except ValueError:
            logger.warning(f"Skipping pipeline {pipeline_name} with invalid version {version!r}")
            return None

        return UniformPipelineInfo(
            pipeline_name=pipeline_name,
            pipeline_arn=pipeline_arn,
            contained_stack_name=tags[STACK_NAME_TAG],
            contained_stack_version=version,
            pipeline_last_update=_as_utc(last_update),
            cloudformation_stack_name=tags[DEPLOYER_STACK_NAME_TAG],
        )

    def select_candidates(self, pipelines: List[UniformPipelineInfo]) -> List[UniformPipelineInfo]:
        """Everything but the newest ``max_history_length`` versions of each stack."""
        groups: Dict[str, List[UniformPipelineInfo]] = defaultdict(list)
        for info in pipelines:
            groups[info.contained_stack_name].append(info)

        candidates = []
        for stack_name, group in groups.items():
            group.sort(key=lambda info: parse_semantic_version(info.contained_stack_version), reverse=True)
            retained = group[:self.settings.max_history_length]
            logger.debug(
                f"Stack {stack_name}: retaining versions "
                f"{[info.contained_stack_version for info in retained]}"
            )
            candidates.extend(group[self.settings.max_history_length:])
        return candidates

    def is_eligible(self, candidate: UniformPipelineInfo, now: datetime) -> bool:
        """Whether a candidate has been idle long enough and is not running."""
        cutoff = now - relativedelta(months=self.settings.history_months_length)
        if candidate.pipeline_last_update > cutoff:
            logger.debug(
                f"Keeping {candidate.pipeline_name}: updated {candidate.pipeline_last_update.isoformat()}"
            )
            return False

        candidate.pipeline_status = self.codepipeline.get_last_execution_status(candidate.pipeline_name)
        if candidate.is_in_progress:
            logger.info(f"Keeping {candidate.pipeline_name}: execution in progress")
            return False
        return True

    def detect_old_pipeline_stacks(self) -> ProgressStatus[PipelineStackPair]:
        """Build the deletion work list.

        Returns:
            ProgressStatus whose units of work are the pipeline/stack pairs
            eligible for deletion
        """
        now = _as_utc(self.clock())
        candidates = self.select_candidates(self.collect_uniform_pipelines())

        eligible: List[PipelineStackPair] = []
        for candidate in candidates:
            try:
                if not self.is_eligible(candidate, now):
                    continue
            except ExecutionStatusError as e:
                logger.warning(f"Skipping pipeline {candidate.pipeline_name}: {e}")
                continue
            eligible.append(candidate.to_stack_pair())

        logger.info(
            f"{len(candidates)} deletion candidates, {len(eligible)} eligible: "
            f"{[pair.stack_name for pair in eligible]}"
        )
        # Complete means nothing is eligible, even when candidates were found.
        return ProgressStatus[PipelineStackPair].of(eligible)
