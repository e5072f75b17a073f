"""Macro replacing generated pipeline roles with pre-provisioned shared roles.

Each synthesized inner pipeline would otherwise bring its own roles and
policies for the pipeline, every action and every CodeBuild project. The
macro points all of them at a fixed set of shared roles in the devops
account and strips the generated IAM resources, so the number of roles
stays constant however many inner pipelines exist.

Every stage, action and project pattern is matched against the tables
below. Anything unrecognised fails the transform: passing it through would
leave a reference to a role the macro has just removed.
"""

import copy
from typing import Any, Dict, List, Optional, Sequence, Tuple

from uniform_pipelines.config.models import SharedRoleSettings
from uniform_pipelines.macros.resources import ResourceKind, StageKind, iter_resources, pipeline_stages
from uniform_pipelines.model.constants import (
    APPROVAL_ACTION_MARKER,
    FILE_ASSET_PROJECT_MARKER,
    POSTMAN_ACTION_MARKER,
    SELF_MUTATE_PROJECT_MARKER,
    SYNTH_STEP_NAME,
    PipelineRoles,
)
from uniform_pipelines.utils.errors import UnexpectedActionCountError, UnknownCodeBuildProjectError
from uniform_pipelines.utils.logging import get_logger

logger = get_logger(__name__)

# Stage -> (role for every action, expected action count; 0 means any)
STAGE_ROLE_RULES: Dict[StageKind, Tuple[PipelineRoles, int]] = {
    StageKind.SOURCE: (PipelineRoles.SOURCE_ACTION, 1),
    StageKind.BUILD: (PipelineRoles.BUILD_ACTION, 1),
    StageKind.UPDATE_PIPELINE: (PipelineRoles.SELF_MUTATE_ACTION, 1),
    StageKind.ASSETS: (PipelineRoles.ASSETS_ACTION, 0),
}

# Deployment stage action name substring -> role. Other actions (changeset
# prepare/deploy) run under the target account's deploy role and are kept.
DEPLOYMENT_ACTION_ROLE_RULES: Sequence[Tuple[str, PipelineRoles]] = (
    (POSTMAN_ACTION_MARKER, PipelineRoles.POSTMAN_ACTION),
    (APPROVAL_ACTION_MARKER, PipelineRoles.APPROVAL_ACTION),
)

# CodeBuild project description substring -> service role, first match wins
CODEBUILD_PROJECT_ROLE_RULES: Sequence[Tuple[str, PipelineRoles]] = (
    (SYNTH_STEP_NAME, PipelineRoles.CDK_BUILD_PROJECT),
    (POSTMAN_ACTION_MARKER, PipelineRoles.POSTMAN_BUILD_PROJECT),
    (SELF_MUTATE_PROJECT_MARKER, PipelineRoles.SELF_MUTATE_PROJECT),
    (FILE_ASSET_PROJECT_MARKER, PipelineRoles.ASSETS_PROJECT),
)


def _match(text: Optional[str], rules: Sequence[Tuple[str, PipelineRoles]]) -> Optional[PipelineRoles]:
    if not text:
        return None
    for marker, role in rules:
        if marker in text:
            return role
    return None


class RoleReassigner:
    """Points pipelines and CodeBuild projects at shared roles."""

    def __init__(self, roles: SharedRoleSettings):
        self.roles = roles

    def reassign_roles(self, fragment: Dict[str, Any]) -> Dict[str, Any]:
        """Return a copy of ``fragment`` using shared roles and without generated IAM.

        Raises:
            UnknownStageError: If a pipeline stage is not recognised
            UnexpectedActionCountError: If a fixed stage has an unexpected number of actions
            UnknownCodeBuildProjectError: If a project description matches no rule
        """
        fragment = copy.deepcopy(fragment)
        if not fragment or not fragment.get('Resources'):
            return fragment

        kept: Dict[str, Any] = {}
        for logical_id, resource, kind in iter_resources(fragment):
            logger.debug(f"Visiting resource {logical_id} with type {resource.get('Type')}")

            if kind is ResourceKind.PIPELINE:
                self._process_pipeline(logical_id, resource)
            elif kind is ResourceKind.CODEBUILD_PROJECT:
                self._process_codebuild_project(logical_id, resource)

            if kind.is_generated_iam:
                logger.debug(f"Filtering out role/policy {logical_id}")
                continue
            kept[logical_id] = resource

        removed = len(fragment['Resources']) - len(kept)
        fragment['Resources'] = kept
        logger.info(f"Reassigned roles, removed {removed} generated IAM resources")
        return fragment

    def _set_role(self, node: Dict[str, Any], key: str, role: PipelineRoles) -> None:
        arn = self.roles.arn_for(role)
        logger.debug(f"Replacing {key} of {node.get('Name', 'resource')} with {arn}")
        node[key] = arn

    def _process_pipeline(self, logical_id: str, pipeline: Dict[str, Any]) -> None:
        logger.debug(f"Entering pipeline: {pipeline.get('Properties', {}).get('Name', logical_id)}")
        self._set_role(pipeline.setdefault('Properties', {}), 'RoleArn', PipelineRoles.INNER_PIPELINE_MAIN_ROLE)
        # It referenced the generated pipeline role and its policy
        pipeline.pop('DependsOn', None)

        for stage in pipeline_stages(logical_id, pipeline):
            stage_name = stage.get('Name')
            kind = StageKind.classify(stage_name)
            logger.debug(f"Entering stage: {stage_name} ({kind.name})")

            if kind is StageKind.DEPLOYMENT:
                self._process_deployment_stage(stage['Actions'])
            else:
                role, expected_actions = STAGE_ROLE_RULES[kind]
                self._process_fixed_stage(stage_name, stage['Actions'], role, expected_actions)

    def _process_fixed_stage(
        self,
        stage_name: str,
        actions: List[Dict[str, Any]],
        role: PipelineRoles,
        expected_actions: int,
    ) -> None:
        if expected_actions and len(actions) != expected_actions:
            raise UnexpectedActionCountError(stage_name, expected_actions, len(actions))
        for action in actions:
            self._set_role(action, 'RoleArn', role)

    def _process_deployment_stage(self, actions: List[Dict[str, Any]]) -> None:
        for action in actions:
            role = _match(action.get('Name'), DEPLOYMENT_ACTION_ROLE_RULES)
            if role is not None:
                self._set_role(action, 'RoleArn', role)

    def _process_codebuild_project(self, logical_id: str, project: Dict[str, Any]) -> None:
        description = project.get('Properties', {}).get('Description')
        logger.debug(f"Entering codebuild project {logical_id}: {description}")
        role = _match(description, CODEBUILD_PROJECT_ROLE_RULES)
        if role is None:
            raise UnknownCodeBuildProjectError(logical_id, description)
        self._set_role(project['Properties'], 'ServiceRole', role)
