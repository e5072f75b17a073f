"""Garbage collection of old inner pipelines and their stacks."""

from uniform_pipelines.cleanup.deleter import BatchStackDeleter
from uniform_pipelines.cleanup.detector import OldPipelineDetector
from uniform_pipelines.cleanup.models import (
    PipelineExecutionStatus,
    PipelineStackPair,
    ProgressStatus,
    UniformPipelineInfo,
)
from uniform_pipelines.cleanup.workflow import CleanupWorkflow, state_machine_definition

__all__ = [
    'BatchStackDeleter',
    'CleanupWorkflow',
    'OldPipelineDetector',
    'PipelineExecutionStatus',
    'PipelineStackPair',
    'ProgressStatus',
    'UniformPipelineInfo',
    'state_machine_definition',
]
