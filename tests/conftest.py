"""
Shared test fixtures.

The repository API is replaced by FakeEsploroClient, an in-memory stand-in
with the same async methods as EsploroClient.
"""

import sys
from pathlib import Path

# Add backend directory to Python path
backend_dir = Path(__file__).parent.parent
sys.path.insert(0, str(backend_dir))

import pytest
from collections import Counter
from typing import Optional

from exceptions import AssetNotFoundError, RemoteApiError
from models.asset import AssetFile, AssetFileLink, AssetMetadata, FileTypeEntry
from models.job import JobDefinition, JobInstanceStatus, RepositorySet
from tests.factories import sample_vocabulary

# ===================
# FAKE REPOSITORY CLIENT
# ===================


class FakeEsploroClient:
    """
    In-memory repository.

    Submitted files are attached to the asset straight away unless the
    asset id is listed in ignored_submissions. Job polls walk through
    job_statuses; the last status repeats.
    """

    def __init__(self):
        self.assets: dict[str, AssetMetadata] = {}
        self.fetch_errors: dict[str, Exception] = {}
        self.submit_errors: dict[str, Exception] = {}
        self.ignored_submissions: set[str] = set()
        self.vocabulary: list[FileTypeEntry] = sample_vocabulary()
        self.vocabulary_error: Optional[Exception] = None

        self.jobs: list[JobDefinition] = [
            JobDefinition(id="M50762", name="Import Research Assets Files"),
        ]
        self.job_statuses: list[str] = ["COMPLETED_SUCCESS"]
        self.poll_error: Optional[Exception] = None
        self.set_error: Optional[Exception] = None
        self.members_error: Optional[Exception] = None
        self.run_error: Optional[Exception] = None

        self.fetch_counts: Counter = Counter()
        self.submissions: list[tuple[str, list[AssetFileLink]]] = []
        self.sets: dict[str, RepositorySet] = {}
        self.job_runs: list[tuple[str, str]] = []
        self.polls = 0

    def add_asset(
        self,
        asset_id: str,
        files: Optional[list[AssetFile]] = None,
        asset_type: str = "publication.journalArticle",
    ) -> AssetMetadata:
        asset = AssetMetadata(asset_id=asset_id, asset_type=asset_type, files=files or [])
        self.assets[asset_id] = asset
        return asset

    # ===================
    # ASSETS
    # ===================

    async def fetch_asset(self, asset_id: str) -> AssetMetadata:
        self.fetch_counts[asset_id] += 1
        if asset_id in self.fetch_errors:
            raise self.fetch_errors[asset_id]
        if asset_id not in self.assets:
            raise AssetNotFoundError(asset_id)
        return self.assets[asset_id].model_copy(deep=True)

    async def submit_files(self, asset_id: str, files: list[AssetFileLink]) -> dict:
        if asset_id in self.submit_errors:
            raise self.submit_errors[asset_id]
        self.submissions.append((asset_id, list(files)))

        if asset_id not in self.ignored_submissions:
            asset = self.assets[asset_id]
            asset.files = asset.files + [
                AssetFile(url=f.url, title=f.title, type=f.type) for f in files
            ]
        return {}

    async def fetch_type_vocabulary(self) -> list[FileTypeEntry]:
        if self.vocabulary_error is not None:
            raise self.vocabulary_error
        return list(self.vocabulary)

    # ===================
    # SETS
    # ===================

    async def create_set(self, name: str, description: str, member_ids=None) -> RepositorySet:
        if self.set_error is not None:
            raise self.set_error
        created = RepositorySet(id=f"set-{len(self.sets) + 1}", name=name, description=description)
        self.sets[created.id] = created
        return created

    async def add_set_members(self, set_id: str, asset_ids: list[str]) -> RepositorySet:
        if self.members_error is not None:
            raise self.members_error
        current = self.sets[set_id]
        members = current.member_ids + [a for a in asset_ids if a not in current.member_ids]
        updated = current.model_copy(update={"member_ids": members, "member_count": len(members)})
        self.sets[set_id] = updated
        return updated

    # ===================
    # JOBS
    # ===================

    async def get_job(self, job_id: str) -> JobDefinition:
        for job in self.jobs:
            if job.id == job_id:
                return job
        raise RemoteApiError("Job not found", status=400, status_text="Bad Request")

    async def list_jobs(self, offset: int = 0, limit: int = 100) -> tuple[list[JobDefinition], int]:
        return self.jobs[offset:offset + limit], len(self.jobs)

    async def run_job(self, job_id: str, set_id: str) -> str:
        if self.run_error is not None:
            raise self.run_error
        self.job_runs.append((job_id, set_id))
        return f"inst-{len(self.job_runs)}"

    async def fetch_job_instance(self, job_id: str, instance_id: str) -> JobInstanceStatus:
        if self.poll_error is not None:
            raise self.poll_error
        status = self.job_statuses[min(self.polls, len(self.job_statuses) - 1)]
        self.polls += 1
        return JobInstanceStatus(
            id=instance_id,
            status=status,
            progress=100 if status.startswith("COMPLETED") else 50,
        )


# ===================
# FIXTURES
# ===================

@pytest.fixture
def fake_client() -> FakeEsploroClient:
    """
    In-memory repository client.

    Usage:
        def test_something(fake_client):
            fake_client.add_asset("991234")
            service = AssetService(client=fake_client)
    """
    return FakeEsploroClient()


@pytest.fixture
def vocabulary() -> list[FileTypeEntry]:
    """Sample file type vocabulary."""
    return sample_vocabulary()


@pytest.fixture
def orchestrator_factory(fake_client):
    """
    Build an ImportOrchestrator wired to the fake client.

    Usage:
        def test_run(orchestrator_factory):
            orchestrator = orchestrator_factory(timeout=1.0)
    """
    from services.asset_service import AssetService
    from services.import_orchestrator_service import ImportOrchestrator
    from services.job_monitor import JobMonitor
    from services.job_service import JobService
    from services.verification_service import VerificationService

    def build(interval: float = 0.01, timeout: float = 5.0) -> ImportOrchestrator:
        job_service = JobService(client=fake_client)
        return ImportOrchestrator(
            asset_service=AssetService(client=fake_client),
            job_service=job_service,
            verification_service=VerificationService(),
            monitor=JobMonitor(job_service=job_service, interval=interval, timeout=timeout),
            inter_asset_delay=0,
        )

    return build


# ===================
# API TEST CLIENT
# ===================

@pytest.fixture
def test_client():
    """
    Create FastAPI test client.

    Usage:
        def test_endpoint(test_client):
            response = test_client.get("/health")
            assert response.status_code == 200
    """
    from fastapi.testclient import TestClient
    from main import app

    return TestClient(app)
