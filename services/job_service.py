"""
Set and job submission service.

Groups the asset ids of a run into an itemized set and triggers the file
import job against it.
"""

from datetime import datetime, timezone
from typing import Optional
import structlog

from config import settings
from exceptions import ImportJobNotFoundError, RemoteApiError
from integrations.esploro_client import EsploroClient, get_esploro_client
from models.job import JobDefinition, JobInstanceStatus, RepositorySet

logger = structlog.get_logger(__name__)

JOB_PAGE_SIZE = 100

# Counter types reported by the file import job
COUNTER_FILES_UPLOADED = "file_uploaded"
COUNTER_ASSETS_SUCCEEDED = "asset_succeeded"
COUNTER_ASSETS_FAILED = "asset_failed"


def build_set_name(prefix: Optional[str] = None, now: Optional[datetime] = None) -> str:
    """
    Name for a run's set.

    "Asset File Load - 2024-05-01T13-45-10"
    """
    now = now or datetime.now(timezone.utc)
    timestamp = now.strftime("%Y-%m-%dT%H-%M-%S")
    return f"{prefix or settings.set_name_prefix} - {timestamp}"


def build_set_description(member_count: int) -> str:
    return f"Auto-generated set for file ingestion. Contains {member_count} asset(s)."


def summarize_counters(job: JobInstanceStatus) -> dict[str, int]:
    """Counter map plus zero defaults for the counters the import job reports."""
    counters = job.counter_map()
    for key in (COUNTER_FILES_UPLOADED, COUNTER_ASSETS_SUCCEEDED, COUNTER_ASSETS_FAILED):
        counters.setdefault(key, 0)
    return counters


class JobService:
    """Set creation and import job execution."""

    def __init__(self, client: Optional[EsploroClient] = None):
        self.client = client or get_esploro_client()
        self._import_job_id: Optional[str] = None

    # ===================
    # SETS
    # ===================

    async def create_set(self, asset_ids: list[str], name: Optional[str] = None) -> RepositorySet:
        """Create an itemized set named after the current time."""
        set_name = name or build_set_name()
        created = await self.client.create_set(
            set_name,
            build_set_description(len(asset_ids)),
        )
        logger.info("set_created", set_id=created.id, name=set_name)
        return created

    async def add_members(self, set_id: str, asset_ids: list[str]) -> RepositorySet:
        """Add assets to a set and log members that did not make it in."""
        updated = await self.client.add_set_members(set_id, asset_ids)

        if updated.member_ids:
            missing = [a for a in asset_ids if a not in updated.member_ids]
            if missing:
                logger.warning("set_members_missing", set_id=set_id, missing=missing)

        logger.info("set_members_added", set_id=set_id, member_count=updated.member_count)
        return updated

    # ===================
    # JOBS
    # ===================

    def _is_import_job(self, job: JobDefinition) -> bool:
        name = job.name or ""
        return any(known == name or known in name for known in settings.import_job_names)

    async def _search_import_job(self) -> Optional[JobDefinition]:
        offset = 0
        while True:
            jobs, total = await self.client.list_jobs(offset=offset, limit=JOB_PAGE_SIZE)
            for job in jobs:
                if self._is_import_job(job):
                    return job

            offset += len(jobs)
            if not jobs or offset >= total:
                return None

    async def find_import_job_id(self) -> str:
        """
        Resolve the file import job id.

        The configured id is used when its name matches a known import job
        name; otherwise the job list is searched page by page.

        Raises:
            ImportJobNotFoundError: If no job matches
        """
        if self._import_job_id:
            return self._import_job_id

        configured = settings.import_job_id
        try:
            job = await self.client.get_job(configured)
            if self._is_import_job(job):
                self._import_job_id = job.id
                return job.id
            logger.warning("import_job_name_mismatch", job_id=configured, name=job.name)
        except RemoteApiError as e:
            logger.warning("import_job_lookup_failed", job_id=configured, error=e.message)

        job = await self._search_import_job()
        if job is None:
            raise ImportJobNotFoundError(configured)

        logger.info("import_job_discovered", job_id=job.id, name=job.name)
        self._import_job_id = job.id
        return job.id

    async def run_import_job(self, set_id: str) -> tuple[str, str]:
        """
        Trigger the import job against a set.

        Returns:
            (job_id, instance_id)
        """
        job_id = await self.find_import_job_id()
        instance_id = await self.client.run_job(job_id, set_id)
        return job_id, instance_id

    async def fetch_status(self, job_id: str, instance_id: str) -> JobInstanceStatus:
        return await self.client.fetch_job_instance(job_id, instance_id)


# Singleton instance
_job_service: Optional[JobService] = None


def get_job_service() -> JobService:
    """Get or create JobService instance."""
    global _job_service
    if _job_service is None:
        _job_service = JobService()
    return _job_service
