"""
Asset file import API routes.

CSV preview, mapping and row building, file type reconciliation, pipeline
runs, and manual entry validation. Every AppError is returned in the
standard error format with its own status code.
"""

from typing import Optional

from fastapi import APIRouter, File, Form, Query, UploadFile
from fastapi.responses import JSONResponse
from pydantic import BaseModel, Field, TypeAdapter
from pydantic import ValidationError as PydanticValidationError
import structlog

from exceptions import AppError, ValidationError
from models.asset import Applicability, FileTypeEntry, FileTypeValidationState
from models.imports import ColumnMapping, ImportRow
from models.manual_entry import ManualEntryInput, ManualValidationResponse
from models.run import ImportRunResult
from parsers.csv_parser import parse_csv, validate_upload
from services.field_mapper_service import FieldMapperService, get_field_mapper_service
from services.file_type_service import get_file_type_service
from services.import_orchestrator_service import get_import_orchestrator
from services.manual_entry_service import ManualEntrySession

logger = structlog.get_logger(__name__)

router = APIRouter(prefix="/api/imports", tags=["Imports"])

_MAPPINGS_ADAPTER = TypeAdapter(list[ColumnMapping])


# ===================
# REQUEST / RESPONSE MODELS
# ===================


class CSVPreviewResponse(BaseModel):
    """Parsed upload with suggested column mappings."""

    filename: str
    headers: list[str]
    row_count: int
    data: list[dict[str, str]]
    mappings: list[ColumnMapping]
    errors: list[str] = Field(default_factory=list)


class CSVRowsResponse(BaseModel):
    """Import rows built from a CSV with confirmed mappings."""

    filename: str
    row_count: int
    rows: list[ImportRow]


class MappingValidationRequest(BaseModel):
    mappings: list[ColumnMapping]


class MappingValidationResponse(BaseModel):
    valid: bool
    errors: list[str] = Field(default_factory=list)


class FileTypeRequest(BaseModel):
    """Rows to reconcile, plus manual choices for values already seen."""

    rows: list[ImportRow]
    overrides: dict[str, str] = Field(
        default_factory=dict,
        description="Raw file type value -> vocabulary id"
    )


class RunRequest(BaseModel):
    rows: list[ImportRow] = Field(..., min_length=1)
    overrides: dict[str, str] = Field(default_factory=dict)


class ManualValidationRequest(BaseModel):
    entries: list[ManualEntryInput] = Field(..., min_length=1)


# ===================
# EXCEPTION HANDLER
# ===================

def handle_error(e: Exception) -> JSONResponse:
    """Convert exception to JSON response."""
    if isinstance(e, AppError):
        return JSONResponse(
            status_code=e.status_code,
            content=e.to_dict()
        )
    logger.error("unexpected_error", error=str(e), type=type(e).__name__)
    return JSONResponse(
        status_code=500,
        content={
            "error": {
                "code": "INTERNAL_ERROR",
                "message": "An unexpected error occurred"
            }
        }
    )


async def _reconcile(rows: list[ImportRow], overrides: dict[str, str]) -> FileTypeValidationState:
    service = get_file_type_service()
    vocabulary = await service.get_vocabulary()
    state = service.reconcile(rows, vocabulary)
    for csv_value, selected_id in overrides.items():
        state = service.apply_override(state, csv_value, selected_id, vocabulary)
    return state


# ===================
# CSV
# ===================

@router.post("/csv/preview", response_model=CSVPreviewResponse)
async def preview_csv(
    file: UploadFile = File(..., description="CSV with asset ids and file URLs")
):
    """
    Parse an uploaded CSV and suggest a field for every column.

    Mapping problems are returned, not raised, so the client can remap.
    """
    try:
        contents = await file.read()
        validate_upload(file.filename or "", len(contents))
        csv_data = parse_csv(contents)

        file_types = get_file_type_service()
        hints = file_types.build_hints(await file_types.get_vocabulary())
        mapper = FieldMapperService(file_type_hints=hints)

        mappings = mapper.generate_column_mapping(csv_data)
        errors = mapper.validate_mapping(mappings)

        logger.info(
            "csv_previewed",
            filename=file.filename,
            rows=csv_data.row_count,
            mapping_errors=len(errors),
        )

        return CSVPreviewResponse(
            filename=file.filename or "",
            headers=csv_data.headers,
            row_count=csv_data.row_count,
            data=csv_data.data,
            mappings=mappings,
            errors=errors,
        )
    except Exception as e:
        return handle_error(e)


@router.post("/csv/rows", response_model=CSVRowsResponse)
async def build_csv_rows(
    file: UploadFile = File(..., description="CSV with asset ids and file URLs"),
    mappings: str = Form(..., description="JSON list of confirmed column mappings"),
):
    """
    Apply confirmed column mappings to an uploaded CSV.

    Refused when a required column is unmapped or blank on some row, or
    when two rows attach the same URL to the same asset.
    """
    try:
        contents = await file.read()
        validate_upload(file.filename or "", len(contents))
        csv_data = parse_csv(contents)

        try:
            column_mappings = _MAPPINGS_ADAPTER.validate_json(mappings)
        except PydanticValidationError as e:
            raise ValidationError(
                message="Invalid column mappings",
                code="INVALID_MAPPINGS",
                details={"errors": [err["msg"] for err in e.errors()]},
            )

        rows = get_field_mapper_service().prepare_rows(csv_data, column_mappings)

        logger.info("csv_rows_built", filename=file.filename, rows=len(rows))
        return CSVRowsResponse(filename=file.filename or "", row_count=len(rows), rows=rows)
    except Exception as e:
        return handle_error(e)


@router.post("/csv/mapping/validate", response_model=MappingValidationResponse)
async def validate_mapping(request: MappingValidationRequest):
    """Recompute mapping errors after a manual remap."""
    errors = FieldMapperService().validate_mapping(request.mappings)
    return MappingValidationResponse(valid=not errors, errors=errors)


@router.post("/csv/file-types", response_model=FileTypeValidationState)
async def reconcile_file_types(request: FileTypeRequest):
    """Classify every distinct file type value against the vocabulary."""
    try:
        return await _reconcile(request.rows, request.overrides)
    except Exception as e:
        return handle_error(e)


@router.get("/file-types", response_model=list[FileTypeEntry])
async def list_file_types(
    asset_type: Optional[str] = Query(None, description="Full asset type code"),
    applicability: Optional[Applicability] = Query(None),
):
    """File type vocabulary, optionally filtered for one asset type."""
    service = get_file_type_service()
    vocabulary = await service.get_vocabulary()

    if asset_type:
        return service.filter_by_asset_type(vocabulary, asset_type, applicability)
    return service.filter_by_applicability(vocabulary, applicability)


# ===================
# RUN
# ===================

@router.post("/run", response_model=ImportRunResult)
async def run_import(request: RunRequest):
    """
    Run the three-phase pipeline for the given rows.

    Blocked before any remote write when two rows attach the same URL to
    the same asset, or when a file type value is still unresolved.
    """
    try:
        rows = request.rows
        FieldMapperService().ensure_no_duplicates(rows)

        state = await _reconcile(rows, request.overrides)
        if state.conversions:
            get_file_type_service().apply_conversions(rows, state)

        return await get_import_orchestrator().run(rows)
    except Exception as e:
        return handle_error(e)


# ===================
# MANUAL ENTRY
# ===================

@router.post("/manual/validate", response_model=ManualValidationResponse)
async def validate_manual_entries(request: ManualValidationRequest):
    """Validate manually typed rows and return each row's state."""
    try:
        session = ManualEntrySession(entries=request.entries)
        return await session.validate()
    except Exception as e:
        return handle_error(e)
