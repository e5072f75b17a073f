"""Derived names for pipelines, stages and roles."""

from collections import defaultdict
from typing import TYPE_CHECKING, Dict, Iterable, List

from uniform_pipelines.model.constants import CDK_DEFAULT_QUALIFIER, LIBRARY_NAMESPACE

if TYPE_CHECKING:
    from uniform_pipelines.config.models import TargetEnvironment


def make_deployment_stage_name(target_environment: "TargetEnvironment") -> str:
    """``deployment-<uniqueName>-<accountId>-<region>``."""
    return (
        f"deployment-{target_environment.unique_name}-"
        f"{target_environment.account_id}-{target_environment.region}"
    )


def make_versioned_pipeline_name(contained_stack_name: str, contained_stack_version: str) -> str:
    """Name of the inner pipeline deploying one version of a contained stack.

    CodePipeline names only allow ``[A-Za-z0-9.@_-]``; the namespace suffix is
    what the old pipeline detector matches on.
    """
    version = contained_stack_version.replace('.', '-').replace('+', '-')
    return f"{contained_stack_name}-{version}-{LIBRARY_NAMESPACE}"


def make_cdk_default_deploy_role(target_environment: "TargetEnvironment") -> str:
    """ARN of the CDK bootstrap deploy role in a target account."""
    account = target_environment.account_id
    region = target_environment.region
    return f"arn:aws:iam::{account}:role/cdk-{CDK_DEFAULT_QUALIFIER}-deploy-role-{account}-{region}"


def group_cross_region_environments(
    home_region: str,
    environments: Iterable["TargetEnvironment"],
) -> Dict[str, List["TargetEnvironment"]]:
    """Group the environments outside ``home_region`` by region.

    Each returned region needs an artifact replication bucket.
    """
    grouped: Dict[str, List["TargetEnvironment"]] = defaultdict(list)
    for env in environments:
        if env.region != home_region:
            grouped[env.region].append(env)
    return dict(grouped)
