"""
Verification models.

Before/after comparison of an asset's attached files once the import
job has finished.
"""

from enum import Enum
from typing import Optional
from pydantic import Field

from models.base import BaseSchema
from models.asset import AssetFile


class MatchType(str, Enum):
    """How an expected URL was found among the asset's files."""

    EXACT = "exact"      # URL present verbatim
    PARTIAL = "partial"  # Same final path segment only
    NONE = "none"


class VerificationStatus(str, Enum):
    """Per-asset verification outcome."""

    VERIFIED_SUCCESS = "verified_success"
    VERIFIED_PARTIAL = "verified_partial"
    VERIFIED_FAILED = "verified_failed"
    UNCHANGED = "unchanged"
    ERROR = "error"


class FileVerificationResult(BaseSchema):
    """Outcome for one expected URL on one asset."""

    url: str
    title: Optional[str] = None
    was_found: bool = False
    match_type: MatchType = MatchType.NONE
    pre_existing: bool = Field(
        default=False,
        description="URL was already attached before the import"
    )
    existing_file: Optional[AssetFile] = None
    verification_details: str = ""


class AssetVerificationResult(BaseSchema):
    """Verification result for one asset."""

    asset_id: str
    status: VerificationStatus
    files_before_count: int = Field(ge=0)
    files_after_count: int = Field(ge=0)
    files_added: int
    files_expected: int = Field(ge=0)
    file_verifications: list[FileVerificationResult] = Field(default_factory=list)
    verification_summary: str = ""
    warnings: list[str] = Field(default_factory=list)


class BatchVerificationSummary(BaseSchema):
    """Aggregate of all asset verification results in a run."""

    total_assets: int = 0
    verified_success: int = 0
    verified_partial: int = 0
    verified_failed: int = 0
    unchanged: int = 0
    errors: int = 0
    total_files_expected: int = 0
    total_files_added: int = 0
    success_rate: float = Field(default=0.0, ge=0, le=100)
    warnings: list[str] = Field(default_factory=list)
    recommendations: list[str] = Field(default_factory=list)
