"""Macro giving every inner pipeline its own changeset name.

Generated pipelines all use the changeset name ``PipelineChange``; when
several inner pipelines deploy the same stack into one account they would
overwrite each other's changesets, so each is renamed after its pipeline.
"""

import copy
from typing import Any, Dict

from uniform_pipelines.macros.resources import ResourceKind, iter_resources, pipeline_stages
from uniform_pipelines.model.constants import (
    DEPLOY_ACTION,
    GENERATED_CHANGESET_NAME,
    PREPARE_ACTION,
    UNIFORM_CHANGESET_PREFIX,
)
from uniform_pipelines.utils.errors import NamelessPipelineError, UnexpectedActionConfigurationError
from uniform_pipelines.utils.logging import get_logger

logger = get_logger(__name__)

CHANGESET_ACTIONS = frozenset({PREPARE_ACTION, DEPLOY_ACTION})


def make_changeset_name(pipeline_name: str) -> str:
    return f"{UNIFORM_CHANGESET_PREFIX}-{pipeline_name}"


class ChangesetRenamer:
    """Rewrites ``ChangeSetName`` on the Prepare/Deploy actions of pipelines."""

    def rename(self, fragment: Dict[str, Any]) -> Dict[str, Any]:
        """Return a copy of ``fragment`` with pipeline changesets renamed.

        Raises:
            NamelessPipelineError: If a pipeline resource has no Name
            UnexpectedActionConfigurationError: If a Prepare/Deploy action does
                not carry the generated changeset name
        """
        fragment = copy.deepcopy(fragment)
        if not fragment or not fragment.get('Resources'):
            return fragment

        for logical_id, resource, kind in iter_resources(fragment):
            logger.debug(f"Visiting resource {logical_id} with type {resource.get('Type')}")
            if kind is ResourceKind.PIPELINE:
                self._process_pipeline(logical_id, resource)

        return fragment

    def _process_pipeline(self, logical_id: str, pipeline: Dict[str, Any]) -> None:
        pipeline_name = pipeline.get('Properties', {}).get('Name')
        if not pipeline_name:
            raise NamelessPipelineError(logical_id)

        logger.debug(f"Entering pipeline: {pipeline_name}")
        changeset_name = make_changeset_name(pipeline_name)

        for stage in pipeline_stages(logical_id, pipeline):
            for action in stage['Actions']:
                if action.get('Name') not in CHANGESET_ACTIONS:
                    continue
                configuration = action.get('Configuration') or {}
                current = configuration.get('ChangeSetName')
                if current != GENERATED_CHANGESET_NAME:
                    raise UnexpectedActionConfigurationError(
                        f"{pipeline_name}/{stage.get('Name')}/{action.get('Name')}", current
                    )
                configuration['ChangeSetName'] = changeset_name
                logger.debug(f"Renamed changeset of {stage.get('Name')}/{action['Name']} to {changeset_name}")
