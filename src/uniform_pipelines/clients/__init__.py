"""Gateways to the AWS APIs used by cleanup and pipeline triggering."""

from .cloudformation import CloudFormationGateway
from .codepipeline import CodePipelineGateway, filter_tags

__all__ = [
    "CloudFormationGateway",
    "CodePipelineGateway",
    "filter_tags",
]
