"""Typed views over the loosely-typed resources of a template fragment."""

from enum import Enum
from typing import Any, Dict, Iterator, List, Tuple

from uniform_pipelines.model.constants import (
    ASSETS_STAGE,
    BUILD_STAGE,
    CODEBUILD_PROJECT_RESOURCE_TYPE,
    DEPLOYMENT_STAGE_PREFIX,
    IAM_POLICY_RESOURCE_TYPE,
    IAM_ROLE_RESOURCE_TYPE,
    PIPELINE_RESOURCE_TYPE,
    SELF_MUTATE_STAGE,
    SOURCE_STAGE,
)
from uniform_pipelines.utils.errors import TemplateShapeError, UnknownStageError


class ResourceKind(Enum):
    """Resource kinds the macros distinguish."""

    PIPELINE = PIPELINE_RESOURCE_TYPE
    CODEBUILD_PROJECT = CODEBUILD_PROJECT_RESOURCE_TYPE
    IAM_ROLE = IAM_ROLE_RESOURCE_TYPE
    IAM_POLICY = IAM_POLICY_RESOURCE_TYPE
    OTHER = None

    @classmethod
    def of(cls, resource: Dict[str, Any]) -> "ResourceKind":
        resource_type = resource.get('Type') if isinstance(resource, dict) else None
        for kind in cls:
            if kind.value is not None and kind.value == resource_type:
                return kind
        return cls.OTHER

    @property
    def is_generated_iam(self) -> bool:
        return self in (ResourceKind.IAM_ROLE, ResourceKind.IAM_POLICY)


class StageKind(Enum):
    """Stages a generated inner pipeline may contain."""

    SOURCE = SOURCE_STAGE
    BUILD = BUILD_STAGE
    UPDATE_PIPELINE = SELF_MUTATE_STAGE
    ASSETS = ASSETS_STAGE
    DEPLOYMENT = DEPLOYMENT_STAGE_PREFIX

    @classmethod
    def classify(cls, stage_name: str) -> "StageKind":
        """Classify a stage by name.

        Raises:
            UnknownStageError: If the name matches no known stage
        """
        for kind in (cls.SOURCE, cls.BUILD, cls.UPDATE_PIPELINE, cls.ASSETS):
            if stage_name == kind.value:
                return kind
        if isinstance(stage_name, str) and stage_name.startswith(DEPLOYMENT_STAGE_PREFIX):
            return cls.DEPLOYMENT
        raise UnknownStageError(stage_name)


def iter_resources(fragment: Dict[str, Any]) -> Iterator[Tuple[str, Dict[str, Any], ResourceKind]]:
    """Yield ``(logical_id, resource, kind)`` for every resource of a fragment."""
    for logical_id, resource in (fragment.get('Resources') or {}).items():
        yield logical_id, resource, ResourceKind.of(resource)


def pipeline_stages(logical_id: str, pipeline: Dict[str, Any]) -> List[Dict[str, Any]]:
    """The stages of a pipeline resource, each checked to carry an action list."""
    stages = pipeline.get('Properties', {}).get('Stages')
    if not isinstance(stages, list):
        raise TemplateShapeError(f"Pipeline {logical_id} has no Stages list")
    for stage in stages:
        if not isinstance(stage.get('Actions'), list):
            raise TemplateShapeError(f"Stage {stage.get('Name')} of pipeline {logical_id} has no Actions list")
    return stages
