"""Checkpointed deletion of old pipeline stacks."""

from uniform_pipelines.cleanup.models import PipelineStackPair, ProgressStatus
from uniform_pipelines.clients.cloudformation import CloudFormationGateway
from uniform_pipelines.utils.errors import PipelineError
from uniform_pipelines.utils.logging import LogContext, get_logger

logger = get_logger(__name__)

DEFAULT_BATCH_SIZE = 5


class BatchStackDeleter:
    """Deletes a bounded batch of stacks per call and hands back the rest."""

    def __init__(self, cloudformation: CloudFormationGateway, batch_size: int = DEFAULT_BATCH_SIZE):
        if batch_size < 1:
            raise ValueError(f"batch_size must be positive, got {batch_size}")
        self.cloudformation = cloudformation
        self.batch_size = batch_size

    def process_batch(self, status: ProgressStatus[PipelineStackPair]) -> ProgressStatus[PipelineStackPair]:
        """Delete the first ``batch_size`` stacks of the envelope.

        A failed deletion is logged and skipped; the stack is left for a later
        detection pass.

        Args:
            status: Envelope produced by detection or a previous batch

        Returns:
            Envelope holding the units of work not attempted in this call
        """
        to_process = status.units_of_work[:self.batch_size]
        remaining = status.units_of_work[self.batch_size:]
        logger.info(f"Deleting {len(to_process)} stacks, {len(remaining)} remaining")

        for pair in to_process:
            with LogContext(logger, resource_id=pair.stack_name, resource_type='stack', operation='delete'):
                try:
                    self.cloudformation.delete_stack(pair.stack_name)
                    logger.info(f"Requested deletion of {pair.stack_name} (pipeline {pair.pipeline_name})")
                except PipelineError as e:
                    logger.warning(f"Failed to delete {pair.stack_name}, leaving it for a later pass: {e}")

        return ProgressStatus[PipelineStackPair].of(remaining)
