"""
Pydantic models for validation and serialization.
"""

from models.base import BaseSchema
from models.asset import (
    AssetFile,
    AssetMetadata,
    AssetFileLink,
    FileTypeEntry,
    FileTypeHint,
    FileTypeConversion,
    FileTypeValidationState,
    BatchAssetMetadataResult,
    CachedAssetState,
)
from models.verification import (
    MatchType,
    VerificationStatus,
    FileVerificationResult,
    AssetVerificationResult,
    BatchVerificationSummary,
)
from models.imports import (
    MappedField,
    RowStatus,
    ColumnMapping,
    ImportRow,
    AssetBatch,
    REQUIRED_FIELDS,
)
from models.job import (
    JobStatus,
    JobCounter,
    JobInstanceStatus,
    JobDefinition,
    RepositorySet,
)
from models.run import (
    RunPhase,
    ImportRunSummary,
    ImportRunResult,
)
from models.manual_entry import (
    RowValidationState,
    EntryError,
    ManualEntryInput,
    ManualEntryView,
    ManualValidationResponse,
)

__all__ = [
    # Base
    "BaseSchema",

    # Asset
    "AssetFile",
    "AssetMetadata",
    "AssetFileLink",
    "FileTypeEntry",
    "FileTypeHint",
    "FileTypeConversion",
    "FileTypeValidationState",
    "BatchAssetMetadataResult",
    "CachedAssetState",

    # Verification
    "MatchType",
    "VerificationStatus",
    "FileVerificationResult",
    "AssetVerificationResult",
    "BatchVerificationSummary",

    # Import rows
    "MappedField",
    "RowStatus",
    "ColumnMapping",
    "ImportRow",
    "AssetBatch",
    "REQUIRED_FIELDS",

    # Jobs
    "JobStatus",
    "JobCounter",
    "JobInstanceStatus",
    "JobDefinition",
    "RepositorySet",

    # Runs
    "RunPhase",
    "ImportRunSummary",
    "ImportRunResult",

    # Manual entry
    "RowValidationState",
    "EntryError",
    "ManualEntryInput",
    "ManualEntryView",
    "ManualValidationResponse",
]
