"""CodePipeline calls used by cleanup and pipeline triggering."""

from typing import Any, Dict, Iterable, List, Optional

from botocore.exceptions import ClientError

from uniform_pipelines.utils.errors import ExecutionStatusError
from uniform_pipelines.utils.logging import get_logger
from uniform_pipelines.utils.retry import with_throttling_retry

logger = get_logger(__name__)


def filter_tags(tags: Iterable[Dict[str, str]], tag_names: Iterable[str]) -> Dict[str, str]:
    """Pick the named tags that carry a non-empty value.

    Args:
        tags: CodePipeline tags (``{'key': ..., 'value': ...}``)
        tag_names: Tag keys to keep

    Returns:
        Dictionary of tag key to value
    """
    wanted = set(tag_names)
    result = {}
    for tag in tags:
        key = tag.get('key')
        value = tag.get('value')
        if key in wanted and value and key not in result:
            result[key] = value
    return result


class CodePipelineGateway:
    """Sequential, throttling-safe access to the CodePipeline API."""

    def __init__(self, client):
        """
        Args:
            client: Boto3 CodePipeline client
        """
        self.client = client

    def list_pipelines(self) -> List[Dict[str, Any]]:
        """List every pipeline summary, following nextToken until exhausted."""
        pipelines: List[Dict[str, Any]] = []
        kwargs: Dict[str, Any] = {}
        try:
            while True:
                response = with_throttling_retry(self.client.list_pipelines, **kwargs)
                pipelines.extend(response.get('pipelines', []))
                next_token = response.get('nextToken')
                if not next_token:
                    break
                kwargs['nextToken'] = next_token
        except ClientError as e:
            logger.error(f"Error listing pipelines: {e}")
            raise

        logger.debug(f"Listed {len(pipelines)} pipelines")
        return pipelines

    def get_pipeline_arn(self, pipeline_name: str) -> Optional[str]:
        try:
            response = with_throttling_retry(self.client.get_pipeline, name=pipeline_name)
        except ClientError as e:
            logger.error(f"Failed to get pipeline ARN for {pipeline_name}: {e}")
            raise
        return response.get('metadata', {}).get('pipelineArn')

    def list_tags(self, pipeline_arn: str) -> List[Dict[str, str]]:
        tags: List[Dict[str, str]] = []
        kwargs: Dict[str, Any] = {'resourceArn': pipeline_arn}
        try:
            while True:
                response = with_throttling_retry(self.client.list_tags_for_resource, **kwargs)
                tags.extend(response.get('tags', []))
                next_token = response.get('nextToken')
                if not next_token:
                    return tags
                kwargs['nextToken'] = next_token
        except ClientError as e:
            logger.error(f"Error fetching tags for pipeline {pipeline_arn}: {e}")
            raise

    def get_last_execution_status(self, pipeline_name: str) -> Optional[str]:
        """Status of the most recent execution, or None if the pipeline never ran.

        Raises:
            ExecutionStatusError: If the latest execution reports no status
        """
        try:
            listing = with_throttling_retry(
                self.client.list_pipeline_executions, pipelineName=pipeline_name, maxResults=1
            )
            summaries = listing.get('pipelineExecutionSummaries') or []
            if not summaries:
                logger.info(f"No executions found for pipeline: {pipeline_name}")
                return None

            execution_id = summaries[0]['pipelineExecutionId']
            response = with_throttling_retry(
                self.client.get_pipeline_execution,
                pipelineName=pipeline_name,
                pipelineExecutionId=execution_id,
            )
        except ClientError as e:
            logger.error(f"Error getting last execution status for {pipeline_name}: {e}")
            raise

        status = response.get('pipelineExecution', {}).get('status')
        if not status:
            raise ExecutionStatusError(
                f"Could not retrieve the status for pipeline execution: {execution_id}"
            )
        return status

    def start_pipeline_execution(self, pipeline_name: str) -> str:
        """Start a pipeline and return the execution ID."""
        response = with_throttling_retry(self.client.start_pipeline_execution, name=pipeline_name)
        execution_id = response['pipelineExecutionId']
        logger.info(f"Pipeline {pipeline_name} started (execution {execution_id})")
        return execution_id
