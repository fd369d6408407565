"""
Business logic services.

Each service handles one stage of the import pipeline.
"""

from services.field_mapper_service import FieldMapperService, get_field_mapper_service
from services.file_type_service import FileTypeService, get_file_type_service
from services.asset_service import AssetService, FetchOutcome, get_asset_service
from services.job_service import JobService, get_job_service
from services.job_monitor import JobMonitor, JobMonitorResult, LoopEnd, PollScheduler
from services.verification_service import VerificationService, get_verification_service
from services.manual_entry_service import ManualEntrySession
from services.import_orchestrator_service import ImportOrchestrator, get_import_orchestrator

__all__ = [
    "FieldMapperService",
    "get_field_mapper_service",
    "FileTypeService",
    "get_file_type_service",
    "AssetService",
    "FetchOutcome",
    "get_asset_service",
    "JobService",
    "get_job_service",
    "JobMonitor",
    "JobMonitorResult",
    "LoopEnd",
    "PollScheduler",
    "VerificationService",
    "get_verification_service",
    "ManualEntrySession",
    "ImportOrchestrator",
    "get_import_orchestrator",
]
