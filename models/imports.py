"""
Import row models.

An ImportRow is one (asset id, file URL, metadata) line from the CSV or
the manual entry form. Rows fan into one AssetBatch per asset id.
"""

from dataclasses import dataclass, field
from enum import Enum
from typing import Optional
from pydantic import Field

from models.base import BaseSchema
from models.asset import AssetFileLink
from models.verification import AssetVerificationResult


class MappedField(str, Enum):
    """Semantic field a CSV column can be mapped to."""

    MMS_ID = "mmsId"
    REMOTE_URL = "remoteUrl"
    FILE_TITLE = "fileTitle"
    FILE_DESCRIPTION = "fileDescription"
    FILE_TYPE = "fileType"
    IGNORE = "ignore"


# Columns that must be mapped exactly once
REQUIRED_FIELDS = (MappedField.MMS_ID, MappedField.REMOTE_URL)


class RowStatus(str, Enum):
    """Processing status of one import row."""

    PENDING = "pending"
    SUCCESS = "success"
    ERROR = "error"
    UNCHANGED = "unchanged"


class ColumnMapping(BaseSchema):
    """Assignment of one CSV column to a semantic field."""

    csv_header: str
    sample_value: str = ""
    mapped_field: MappedField = MappedField.IGNORE
    confidence: float = Field(default=0.1, ge=0.0, le=1.0)


class ImportRow(BaseSchema):
    """One file to attach to one asset."""

    asset_id: str = ""
    remote_url: str = ""
    file_title: Optional[str] = None
    file_description: Optional[str] = None
    file_type: Optional[str] = None
    supplemental: bool = False
    status: RowStatus = RowStatus.PENDING
    error_message: Optional[str] = None
    verification: Optional[AssetVerificationResult] = None

    def mark(self, status: RowStatus, message: Optional[str] = None) -> None:
        """Set status and error message together."""
        self.status = status
        self.error_message = message

    def to_file_link(self) -> AssetFileLink:
        """Payload entry for the repository add-files call."""
        return AssetFileLink(
            url=self.remote_url,
            title=self.file_title or None,
            description=self.file_description or None,
            type=self.file_type or None,
            supplemental=self.supplemental,
        )


@dataclass
class AssetBatch:
    """All rows of one run that target the same asset."""
    asset_id: str
    rows: list[ImportRow] = field(default_factory=list)
    file_count_before: int = 0
    file_count_after: Optional[int] = None

    @property
    def url_rows(self) -> list[ImportRow]:
        """Rows that carry a file URL."""
        return [row for row in self.rows if row.remote_url]

    @property
    def files(self) -> list[AssetFileLink]:
        """Files to add; rows without a URL contribute nothing."""
        return [row.to_file_link() for row in self.url_rows]

    @property
    def files_added(self) -> Optional[int]:
        if self.file_count_after is None:
            return None
        return self.file_count_after - self.file_count_before

    def mark_rows(
        self,
        status: RowStatus,
        message: Optional[str] = None,
        with_url_only: bool = False,
    ) -> None:
        for row in (self.url_rows if with_url_only else self.rows):
            row.mark(status, message)
