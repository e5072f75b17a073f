"""Detect, delete-batch, wait loop driving the cleanup process."""

import time
from typing import Any, Callable, Dict, Optional

from uniform_pipelines.cleanup.deleter import BatchStackDeleter
from uniform_pipelines.cleanup.detector import OldPipelineDetector
from uniform_pipelines.cleanup.models import PipelineStackPair, ProgressStatus
from uniform_pipelines.config.models import CleanupSettings
from uniform_pipelines.utils.errors import WorkflowTimeoutError
from uniform_pipelines.utils.logging import get_logger

logger = get_logger(__name__)

DETECT_STATE = 'RunDetector'
CONSUME_STATE = 'RunBatchConsumer'
CHECK_STATE = 'CheckComplete'
WAIT_STATE = 'WaitBetweenDeletes'
SUCCESS_STATE = 'Done'


class CleanupWorkflow:
    """Local driver of the cleanup loop.

    Runs detection once, then deletes one batch at a time with a fixed wait
    between batches until no work remains. The overall duration is bounded
    by ``process_timeout_minutes``.
    """

    def __init__(
        self,
        detector: OldPipelineDetector,
        deleter: BatchStackDeleter,
        settings: CleanupSettings,
        sleep: Callable[[float], None] = time.sleep,
        clock: Callable[[], float] = time.monotonic,
    ):
        self.detector = detector
        self.deleter = deleter
        self.settings = settings
        self.sleep = sleep
        self.clock = clock

    def run(self, dry_run: bool = False) -> ProgressStatus[PipelineStackPair]:
        """Run the loop to completion.

        Args:
            dry_run: Only detect; nothing is deleted

        Returns:
            The detection result for a dry run, else the final (complete) envelope

        Raises:
            WorkflowTimeoutError: If work remains when the timeout elapses
        """
        started = self.clock()
        timeout_seconds = self.settings.process_timeout_minutes * 60
        wait_seconds = self.settings.minutes_between_deletes * 60

        status = self.detector.detect_old_pipeline_stacks()
        if dry_run:
            logger.info(f"Dry run: {len(status.units_of_work)} stacks would be deleted")
            return status

        batches = 0
        while True:
            status = self.deleter.process_batch(status)
            batches += 1
            if status.is_complete:
                logger.info(f"Cleanup complete after {batches} batches")
                return status

            if self.clock() - started + wait_seconds > timeout_seconds:
                raise WorkflowTimeoutError(
                    f"Cleanup timed out after {self.settings.process_timeout_minutes} minutes "
                    f"with {len(status.units_of_work)} stacks remaining"
                )
            logger.debug(f"Waiting {wait_seconds}s before next batch")
            self.sleep(wait_seconds)


def state_machine_definition(
    detector_arn: str,
    consumer_arn: str,
    settings: Optional[CleanupSettings] = None,
) -> Dict[str, Any]:
    """Amazon States Language document for the same loop.

    Args:
        detector_arn: ARN of the function running detection
        consumer_arn: ARN of the function processing one batch
        settings: Wait and timeout settings

    Returns:
        State machine definition as a dictionary
    """
    settings = settings or CleanupSettings()

    def invoke(function_arn: str, next_state: str) -> Dict[str, Any]:
        return {
            'Type': 'Task',
            'Resource': 'arn:aws:states:::lambda:invoke',
            'Parameters': {
                'FunctionName': function_arn,
                'Payload.$': '$',
            },
            'OutputPath': '$.Payload',
            'Next': next_state,
        }

    return {
        'Comment': 'Deletes old uniform pipeline stacks in batches',
        'StartAt': DETECT_STATE,
        'TimeoutSeconds': settings.process_timeout_minutes * 60,
        'States': {
            DETECT_STATE: invoke(detector_arn, CONSUME_STATE),
            CONSUME_STATE: invoke(consumer_arn, CHECK_STATE),
            CHECK_STATE: {
                'Type': 'Choice',
                'Choices': [
                    {
                        'Variable': '$.isComplete',
                        'BooleanEquals': False,
                        'Next': WAIT_STATE,
                    },
                ],
                'Default': SUCCESS_STATE,
            },
            WAIT_STATE: {
                'Type': 'Wait',
                'Seconds': settings.minutes_between_deletes * 60,
                'Next': CONSUME_STATE,
            },
            SUCCESS_STATE: {'Type': 'Succeed'},
        },
    }
