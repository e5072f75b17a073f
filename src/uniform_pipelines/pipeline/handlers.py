"""Lambda entry point that starts the outer pipeline."""

import os
from typing import Any, Dict, Optional

import boto3

from uniform_pipelines.clients.codepipeline import CodePipelineGateway
from uniform_pipelines.utils.errors import ConfigurationError
from uniform_pipelines.utils.logging import get_logger

logger = get_logger(__name__)


def start_pipeline_handler(
    event: Dict[str, Any],
    context: Any,
    gateway: Optional[CodePipelineGateway] = None,
) -> Dict[str, str]:
    """Start the pipeline named by the PIPELINE_NAME variable."""
    pipeline_name = os.environ.get('PIPELINE_NAME')
    if not pipeline_name:
        raise ConfigurationError("Missing environment variable PIPELINE_NAME")

    gateway = gateway or CodePipelineGateway(boto3.client('codepipeline'))
    try:
        execution_id = gateway.start_pipeline_execution(pipeline_name)
    except Exception:
        logger.exception(f"Error starting pipeline {pipeline_name}")
        raise

    logger.info('Pipeline started successfully')
    return {'pipelineName': pipeline_name, 'pipelineExecutionId': execution_id}
