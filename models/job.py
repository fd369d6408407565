"""
Set and job models.

A set groups the asset ids touched by a run; the import job runs against
that set and is polled until it reaches a terminal status.
"""

from enum import Enum
from typing import Optional
from pydantic import Field

from models.base import BaseSchema


class JobStatus(str, Enum):
    """Known job instance statuses."""

    QUEUED = "QUEUED"
    RUNNING = "RUNNING"
    COMPLETED_SUCCESS = "COMPLETED_SUCCESS"
    COMPLETED_FAILED = "COMPLETED_FAILED"
    CANCELLED = "CANCELLED"


# Anything outside these ends polling
ACTIVE_JOB_STATUSES = {JobStatus.QUEUED.value, JobStatus.RUNNING.value}


class JobCounter(BaseSchema):
    """Named counter reported by a job instance."""

    type: str
    description: Optional[str] = None
    value: str = "0"


class JobInstanceStatus(BaseSchema):
    """Snapshot of a running or finished job instance."""

    id: str
    name: Optional[str] = None
    progress: int = Field(default=0, ge=0, le=100)
    status: str = JobStatus.QUEUED.value
    status_desc: Optional[str] = None
    counters: list[JobCounter] = Field(default_factory=list)
    alerts: list[str] = Field(default_factory=list)
    submit_time: Optional[str] = None
    start_time: Optional[str] = None
    end_time: Optional[str] = None

    @property
    def is_terminal(self) -> bool:
        return self.status not in ACTIVE_JOB_STATUSES

    @property
    def succeeded(self) -> bool:
        return self.status == JobStatus.COMPLETED_SUCCESS.value

    def counter_map(self) -> dict[str, int]:
        """Counters keyed by type; non-numeric values count as 0."""
        result: dict[str, int] = {}
        for counter in self.counters:
            try:
                result[counter.type] = int(float(counter.value or 0))
            except ValueError:
                result[counter.type] = 0
        return result


class RepositorySet(BaseSchema):
    """Itemized set as returned by the repository."""

    id: str
    name: str
    description: Optional[str] = None
    member_ids: list[str] = Field(default_factory=list)
    member_count: int = 0


class JobDefinition(BaseSchema):
    """Job as listed by the repository."""

    id: str
    name: Optional[str] = None
    description: Optional[str] = None

