"""Data models exchanged by the cleanup workflow steps."""

from dataclasses import dataclass
from datetime import datetime
from enum import Enum
from typing import Generic, List, Optional, Sequence, TypeVar

from pydantic import BaseModel, ConfigDict, Field
from pydantic.alias_generators import to_camel

T = TypeVar('T')


class PipelineExecutionStatus(str, Enum):
    """CodePipeline execution statuses."""

    CANCELLED = "Cancelled"
    IN_PROGRESS = "InProgress"
    STOPPED = "Stopped"
    STOPPING = "Stopping"
    SUCCEEDED = "Succeeded"
    SUPERSEDED = "Superseded"
    FAILED = "Failed"


class PipelineStackPair(BaseModel):
    """An inner pipeline and the stack that deployed it; one unit of deletion."""

    model_config = ConfigDict(frozen=True, alias_generator=to_camel, populate_by_name=True)

    pipeline_name: str = Field(..., min_length=1)
    stack_name: str = Field(..., min_length=1)


class ProgressStatus(BaseModel, Generic[T]):
    """Checkpoint handed between workflow steps.

    Serialised as ``{"isComplete": ..., "unitsOfWork": [...]}``.
    """

    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True)

    is_complete: bool
    units_of_work: List[T] = Field(default_factory=list)

    @classmethod
    def of(cls, units_of_work: Sequence[T]) -> "ProgressStatus[T]":
        """Envelope that is complete exactly when no work remains."""
        units = list(units_of_work)
        return cls(is_complete=not units, units_of_work=units)

    def to_payload(self) -> dict:
        return self.model_dump(by_alias=True, mode='json')


@dataclass
class UniformPipelineInfo:
    """What cleanup knows about one deployed inner pipeline."""

    pipeline_name: str
    pipeline_arn: str
    contained_stack_name: str
    contained_stack_version: str
    pipeline_last_update: datetime
    cloudformation_stack_name: str
    pipeline_status: Optional[str] = None

    @property
    def is_in_progress(self) -> bool:
        return self.pipeline_status == PipelineExecutionStatus.IN_PROGRESS

    def to_stack_pair(self) -> PipelineStackPair:
        return PipelineStackPair(
            pipeline_name=self.pipeline_name,
            stack_name=self.cloudformation_stack_name,
        )
