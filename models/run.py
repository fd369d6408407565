"""
Import run models.

A run is one submission of rows through the three-phase pipeline.
Everything here lives only for the duration of that run.
"""

from enum import Enum
from typing import Optional
from pydantic import Field

from models.base import BaseSchema
from models.imports import ImportRow
from models.verification import AssetVerificationResult, BatchVerificationSummary


class RunPhase(str, Enum):
    """Orchestrator state machine."""

    GROUPING = "grouping"
    COUNTING = "counting"
    SUBMITTING = "submitting"
    AWAITING_JOB = "awaiting_job"
    VERIFYING = "verifying"
    DONE = "done"
    ABORTED = "aborted"


class ImportRunSummary(BaseSchema):
    """Aggregate totals from post-job verification."""

    assets_submitted: int = 0
    assets_changed: int = 0
    assets_unchanged: int = 0
    assets_errored: int = 0
    total_files_added: int = 0


class ImportRunResult(BaseSchema):
    """Everything the presentation layer needs after a run."""

    phase: RunPhase
    rows: list[ImportRow] = Field(default_factory=list)
    set_id: Optional[str] = None
    job_id: Optional[str] = None
    instance_id: Optional[str] = None
    job_status: Optional[str] = None
    job_timed_out: bool = False
    counters: dict[str, int] = Field(default_factory=dict)
    verification_results: list[AssetVerificationResult] = Field(default_factory=list)
    verification_summary: Optional[BatchVerificationSummary] = None
    summary: ImportRunSummary = Field(default_factory=ImportRunSummary)
    warnings: list[str] = Field(default_factory=list)
    errors: list[str] = Field(default_factory=list)
    successful_ids_csv: str = ""
    verification_report_csv: str = ""

    @property
    def success_count(self) -> int:
        return sum(1 for row in self.rows if row.status == "success")

    @property
    def error_count(self) -> int:
        return sum(1 for row in self.rows if row.status == "error")

    @property
    def unchanged_count(self) -> int:
        return sum(1 for row in self.rows if row.status == "unchanged")
