"""Lambda entry points for the cleanup state machine."""

from typing import Any, Dict, Optional

import boto3

from uniform_pipelines.cleanup.deleter import BatchStackDeleter
from uniform_pipelines.cleanup.detector import OldPipelineDetector
from uniform_pipelines.cleanup.models import PipelineStackPair, ProgressStatus
from uniform_pipelines.clients.cloudformation import CloudFormationGateway
from uniform_pipelines.clients.codepipeline import CodePipelineGateway
from uniform_pipelines.config.models import CleanupSettings
from uniform_pipelines.utils.logging import LogContext, get_logger

logger = get_logger(__name__)


def detect_old_pipeline_stacks_handler(
    event: Dict[str, Any],
    context: Any,
    detector: Optional[OldPipelineDetector] = None,
) -> Dict[str, Any]:
    """Detection step; takes no input and returns the work envelope."""
    if detector is None:
        detector = OldPipelineDetector(
            CodePipelineGateway(boto3.client('codepipeline')),
            CleanupSettings(),
        )

    with LogContext(logger, operation='detect_old_pipeline_stacks'):
        status = detector.detect_old_pipeline_stacks()
    return status.to_payload()


def batch_delete_stacks_handler(
    event: Dict[str, Any],
    context: Any,
    deleter: Optional[BatchStackDeleter] = None,
) -> Dict[str, Any]:
    """Batch step; takes the envelope and returns what is left of it."""
    if deleter is None:
        deleter = BatchStackDeleter(
            CloudFormationGateway(boto3.client('cloudformation')),
            CleanupSettings().delete_batch_size,
        )

    status = ProgressStatus[PipelineStackPair].model_validate(event)
    with LogContext(logger, operation='batch_delete_stacks'):
        remaining = deleter.process_batch(status)
    return remaining.to_payload()
