"""
Manual entry models.

Rows typed into the form rather than uploaded. Each row carries one
explicit validation state instead of a combination of flags.
"""

from enum import Enum
from typing import Optional
from pydantic import Field

from models.base import BaseSchema


class RowValidationState(str, Enum):
    """Per-row state shown next to each manual entry."""

    PENDING = "pending"                        # No asset id yet
    PENDING_NEW = "pendingNew"                 # Id not in last validation
    VALIDATED_EXISTING = "validatedExisting"   # Id found in last validation
    VALID = "valid"
    INVALID = "invalid"
    DUPLICATE = "duplicate"


class EntryError(str, Enum):
    """Error flags carried by a row's fields."""

    INVALID_ASSET = "invalidAsset"
    DUPLICATE_ASSET_URL = "duplicateAssetUrl"
    REQUIRED = "required"
    INVALID_URL = "invalidUrl"


class ManualEntryInput(BaseSchema):
    """Row as submitted by the form."""

    asset_id: str = ""
    url: str = ""
    title: str = ""
    description: str = ""
    type: str = ""
    supplemental: bool = False


class ManualEntryView(ManualEntryInput):
    """Row plus its computed state and field errors."""

    entry_id: int
    state: RowValidationState = RowValidationState.PENDING
    asset_errors: list[EntryError] = Field(default_factory=list)
    url_errors: list[EntryError] = Field(default_factory=list)


class ManualValidationResponse(BaseSchema):
    """Outcome of validating the whole form."""

    valid: bool
    entries: list[ManualEntryView]
    messages: list[str] = Field(default_factory=list)
    invalid_asset_ids: list[str] = Field(default_factory=list)
    retry_asset_ids: list[str] = Field(default_factory=list)
    error: Optional[str] = None
