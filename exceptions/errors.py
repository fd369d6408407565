"""
Custom exception classes for the application.

Input errors halt before any remote call, remote errors carry the
repository's status and error details, and orchestration errors abort a run.
"""

from typing import Optional, Any
from datetime import datetime, timezone


class AppError(Exception):
    """
    Base exception for all application errors.

    All custom exceptions inherit from this.

    Attributes:
        code: Error code (e.g., "ASSET_NOT_FOUND")
        message: Human-readable message
        status_code: HTTP status code
        details: Additional context
    """

    def __init__(
        self,
        code: str,
        message: str,
        status_code: int = 500,
        details: Optional[dict[str, Any]] = None
    ):
        self.code = code
        self.message = message
        self.status_code = status_code
        self.details = details or {}
        self.timestamp = datetime.now(timezone.utc).isoformat()
        super().__init__(message)

    def to_dict(self) -> dict:
        """Convert to API response format."""
        return {
            "error": {
                "code": self.code,
                "message": self.message,
                "details": self.details,
                "timestamp": self.timestamp
            }
        }


class NotFoundError(AppError):
    """Resource not found (404)."""

    def __init__(
        self,
        resource: str,
        identifier: str,
        code: Optional[str] = None
    ):
        super().__init__(
            code=code or f"{resource.upper()}_NOT_FOUND",
            message=f"{resource} {identifier} not found",
            status_code=404,
            details={"id": identifier}
        )


class ValidationError(AppError):
    """Validation failed (422)."""

    def __init__(
        self,
        message: str,
        code: str = "VALIDATION_ERROR",
        details: Optional[dict] = None
    ):
        super().__init__(
            code=code,
            message=message,
            status_code=422,
            details=details
        )


class ConflictError(AppError):
    """Conflict with existing resource (409)."""

    def __init__(
        self,
        message: str,
        code: str = "CONFLICT",
        details: Optional[dict] = None
    ):
        super().__init__(
            code=code,
            message=message,
            status_code=409,
            details=details
        )


class DuplicateError(ConflictError):
    """Duplicate entries (409)."""

    def __init__(
        self,
        resource: str,
        field: str,
        value: str
    ):
        super().__init__(
            code=f"{resource.upper()}_{field.upper()}_DUPLICATE",
            message=f"Duplicate {resource} entries for {field}",
            details={field: value}
        )


class ExternalServiceError(AppError):
    """External service failure (503)."""

    def __init__(
        self,
        service: str,
        message: str,
        details: Optional[dict] = None
    ):
        super().__init__(
            code=f"{service.upper()}_ERROR",
            message=message,
            status_code=503,
            details={"service": service, **(details or {})}
        )


# ===================
# CSV UPLOAD ERRORS
# ===================

class InvalidFileTypeError(ValidationError):
    """Uploaded file is not a CSV."""

    def __init__(self, filename: str):
        super().__init__(
            code="INVALID_FILE_TYPE",
            message="Only .csv files can be imported",
            details={"filename": filename}
        )


class FileTooLargeError(ValidationError):
    """Uploaded file exceeds the size ceiling."""

    def __init__(self, size: int, max_size: int):
        super().__init__(
            code="FILE_TOO_LARGE",
            message=f"File is larger than {max_size // (1024 * 1024)} MB",
            details={"size": size, "max_size": max_size}
        )


class EmptyFileError(ValidationError):
    """CSV has no data rows."""

    def __init__(self):
        super().__init__(
            code="EMPTY_FILE",
            message="Empty file"
        )


class NoHeadersError(ValidationError):
    """CSV header row is blank."""

    def __init__(self):
        super().__init__(
            code="NO_HEADERS",
            message="No headers found"
        )


class CSVParseError(ValidationError):
    """Underlying CSV parser reported an error."""

    def __init__(
        self,
        message: str,
        details: Optional[dict] = None
    ):
        super().__init__(
            code="CSV_PARSE_ERROR",
            message=f"Failed to parse CSV: {message}",
            details=details
        )


class MappingValidationError(ValidationError):
    """Column mapping is incomplete or ambiguous."""

    def __init__(self, errors: list[str]):
        super().__init__(
            code="MAPPING_INVALID",
            message=f"Column mapping has {len(errors)} problem(s)",
            details={"errors": errors}
        )


class RequiredValuesMissingError(ValidationError):
    """Required columns have blank cells."""

    def __init__(self, messages: list[str]):
        super().__init__(
            code="REQUIRED_VALUES_MISSING",
            message="; ".join(messages),
            details={"errors": messages}
        )


class UnresolvedFileTypesError(ValidationError):
    """File type values still need a manual mapping."""

    def __init__(self, values: list[str]):
        super().__init__(
            code="FILE_TYPES_UNRESOLVED",
            message=f"{len(values)} file type value(s) require manual mapping",
            details={"values": values}
        )


# ===================
# REMOTE REPOSITORY ERRORS
# ===================

class RemoteApiError(ExternalServiceError):
    """
    Repository API call failed.

    status is the HTTP status (0 for transport failures). When the response
    body carried an errorList, its first entry is kept in details.
    """

    def __init__(
        self,
        message: str,
        status: int = 0,
        status_text: str = "",
        error_code: Optional[str] = None,
        error_message: Optional[str] = None,
        tracking_id: Optional[str] = None,
    ):
        self.status = status
        self.status_text = status_text
        self.error_code = error_code
        self.error_message = error_message
        self.tracking_id = tracking_id
        super().__init__(
            service="esploro",
            message=message,
            details={
                "status": status,
                "error_code": error_code,
                "error_message": error_message,
                "tracking_id": tracking_id,
            }
        )


class AssetNotFoundError(NotFoundError):
    """Asset id does not exist in the repository."""

    def __init__(self, asset_id: str):
        super().__init__(
            resource="Asset",
            identifier=asset_id,
            code="ASSET_NOT_FOUND"
        )


class ImportJobNotFoundError(NotFoundError):
    """No job matching the known import job names."""

    def __init__(self, job_id: str):
        super().__init__(
            resource="Import job",
            identifier=job_id,
            code="IMPORT_JOB_NOT_FOUND"
        )


# ===================
# ORCHESTRATION ERRORS
# ===================

class NoValidAssetsError(AppError):
    """Every asset failed pre-count; nothing to submit."""

    def __init__(self, failed: int):
        super().__init__(
            code="NO_VALID_ASSETS",
            message="No valid assets to process",
            status_code=422,
            details={"failed_assets": failed}
        )


def describe_remote_error(error: Exception, task_name: str) -> str:
    """
    Build the user-facing message for a failed repository task.

    Includes the HTTP status and the repository's error code, message and
    tracking id when they are known.
    """
    if isinstance(error, RemoteApiError) and error.status:
        details = ""
        if error.error_code:
            details += f" Error Code: {error.error_code}."
        if error.error_message and error.error_message.strip():
            details += f" {error.error_message.strip()}."
        if error.tracking_id and error.tracking_id != "unknown":
            details += f" Tracking ID: {error.tracking_id}."
        reason = error.status_text or "Request failed"
        return (
            f"{task_name} failed - {reason}. Status: {error.status} - {error.message}."
            f"{details} You may need to manually perform {task_name}."
        )

    message = getattr(error, "message", None) or str(error)
    if message:
        return f"{task_name} failed: {message}. You may need to manually perform {task_name}."

    return f"{task_name} failed. Please try again."
