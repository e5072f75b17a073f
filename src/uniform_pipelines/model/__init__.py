"""Shared names, naming rules and version ordering."""

from uniform_pipelines.model.constants import (
    DEPLOYER_STACK_NAME_TAG,
    LIBRARY_NAMESPACE,
    PipelineRoles,
    STACK_DEPLOYED_AT_TAG,
    STACK_NAME_TAG,
    STACK_VERSION_TAG,
)
from uniform_pipelines.model.naming import (
    group_cross_region_environments,
    make_cdk_default_deploy_role,
    make_deployment_stage_name,
    make_versioned_pipeline_name,
)
from uniform_pipelines.model.versions import parse_semantic_version

__all__ = [
    'DEPLOYER_STACK_NAME_TAG',
    'LIBRARY_NAMESPACE',
    'PipelineRoles',
    'STACK_DEPLOYED_AT_TAG',
    'STACK_NAME_TAG',
    'STACK_VERSION_TAG',
    'group_cross_region_environments',
    'make_cdk_default_deploy_role',
    'make_deployment_stage_name',
    'make_versioned_pipeline_name',
    'parse_semantic_version',
]
