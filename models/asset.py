"""
Asset models.

Repository-side shapes: asset metadata with its attached files, the file
type vocabulary (AssetFileAndLinkTypes mapping table), and the per-run
state the orchestrator keeps for each asset.
"""

from dataclasses import dataclass, field
from typing import Optional, Literal
from pydantic import Field

from models.base import BaseSchema


class AssetFile(BaseSchema):
    """File or link currently attached to an asset."""

    id: Optional[str] = None
    title: Optional[str] = None
    url: Optional[str] = None
    type: Optional[str] = None
    description: Optional[str] = None
    supplemental: Optional[bool] = None


class AssetMetadata(BaseSchema):
    """Asset metadata fetched fresh for each validation pass."""

    asset_id: str
    title: Optional[str] = None
    asset_type: Optional[str] = Field(
        None,
        description="Full type code, e.g. publication.journalArticle"
    )
    files: list[AssetFile] = Field(default_factory=list)


class AssetFileLink(BaseSchema):
    """One file to attach, as sent to the repository."""

    url: str = Field(..., min_length=1)
    title: Optional[str] = None
    description: Optional[str] = None
    type: Optional[str] = Field(None, description="AssetFileAndLinkTypes id")
    supplemental: bool = False


class FileTypeEntry(BaseSchema):
    """Row of the AssetFileAndLinkTypes mapping table."""

    id: str
    target_code: str
    applicability: Optional[str] = Field(
        None,
        description="file, link or both"
    )
    applicable_asset_types: Optional[str] = Field(
        None,
        description="Comma-separated category codes; empty means all"
    )


class FileTypeHint(BaseSchema):
    """Lightweight code used by the mapper to spot type columns."""

    code: str
    description: str = ""


class FileTypeConversion(BaseSchema):
    """Resolution of one raw file type value found in the CSV."""

    csv_value: str
    matched_id: Optional[str] = None
    matched_target_code: Optional[str] = None
    confidence: float = Field(ge=0.0, le=1.0)
    requires_manual_mapping: bool


class FileTypeValidationState(BaseSchema):
    """Reconciliation outcome for every distinct raw file type value."""

    has_invalid_types: bool = False
    conversions: list[FileTypeConversion] = Field(default_factory=list)
    auto_convertible: bool = True
    unresolved_values: list[str] = Field(default_factory=list)


Applicability = Literal["file", "link", "both"]


class BatchAssetMetadataResult(BaseSchema):
    """Batch existence check: metadata per found id, plus what failed."""

    metadata_map: dict[str, AssetMetadata] = Field(default_factory=dict)
    missing_asset_ids: list[str] = Field(default_factory=list)
    failed_asset_ids: list[str] = Field(default_factory=list)
    errors: dict[str, str] = Field(default_factory=dict)


@dataclass
class CachedAssetState:
    """Snapshot of an asset taken before a run, completed after the job."""
    asset_id: str
    asset_type: str
    files_before: list[AssetFile]
    files_after: list[AssetFile] = field(default_factory=list)
    remote_urls_from_csv: list[str] = field(default_factory=list)

    @property
    def remote_url_from_csv(self) -> str:
        return self.remote_urls_from_csv[0] if self.remote_urls_from_csv else ""
