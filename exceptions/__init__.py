"""
Custom exceptions module.

Input errors, remote repository errors and orchestration errors.
"""

from exceptions.errors import (
    # Base exceptions
    AppError,
    NotFoundError,
    ValidationError,
    ConflictError,
    DuplicateError,
    ExternalServiceError,

    # CSV upload
    InvalidFileTypeError,
    FileTooLargeError,
    EmptyFileError,
    NoHeadersError,
    CSVParseError,
    MappingValidationError,
    RequiredValuesMissingError,
    UnresolvedFileTypesError,

    # Remote repository
    RemoteApiError,
    AssetNotFoundError,
    ImportJobNotFoundError,

    # Orchestration
    NoValidAssetsError,

    # Helpers
    describe_remote_error,
)

__all__ = [
    # Base
    "AppError",
    "NotFoundError",
    "ValidationError",
    "ConflictError",
    "DuplicateError",
    "ExternalServiceError",

    # CSV upload
    "InvalidFileTypeError",
    "FileTooLargeError",
    "EmptyFileError",
    "NoHeadersError",
    "CSVParseError",
    "MappingValidationError",
    "RequiredValuesMissingError",
    "UnresolvedFileTypesError",

    # Remote repository
    "RemoteApiError",
    "AssetNotFoundError",
    "ImportJobNotFoundError",

    # Orchestration
    "NoValidAssetsError",

    # Helpers
    "describe_remote_error",
]
