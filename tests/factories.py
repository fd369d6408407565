"""
Test data factories.

Uses factory pattern to generate consistent test data.
"""

from typing import Optional

from models.asset import AssetFile, AssetMetadata, FileTypeEntry
from models.imports import ImportRow
from models.job import JobCounter, JobInstanceStatus


class AssetFileFactory:
    """
    Factory for files already attached to an asset.

    Usage:
        file = AssetFileFactory.create()
        file = AssetFileFactory.create(url="https://host/paper.pdf")
        files = AssetFileFactory.create_batch(3)
    """

    _counter = 0

    @classmethod
    def _next_counter(cls) -> int:
        cls._counter += 1
        return cls._counter

    @classmethod
    def create(
        cls,
        url: Optional[str] = None,
        title: Optional[str] = None,
        type: Optional[str] = "accepted",
    ) -> AssetFile:
        counter = cls._next_counter()
        return AssetFile(
            id=f"file-{counter}",
            url=url or f"https://files.example.org/existing-{counter}.pdf",
            title=title or f"Existing file {counter}",
            type=type,
        )

    @classmethod
    def create_batch(cls, count: int, **overrides) -> list[AssetFile]:
        return [cls.create(**overrides) for _ in range(count)]


class AssetFactory:
    """Factory for asset metadata as returned by the repository."""

    @classmethod
    def create(
        cls,
        asset_id: str = "991234",
        files: Optional[list[AssetFile]] = None,
        asset_type: Optional[str] = "publication.journalArticle",
        title: str = "Test asset",
    ) -> AssetMetadata:
        return AssetMetadata(
            asset_id=asset_id,
            title=title,
            asset_type=asset_type,
            files=files or [],
        )


class ImportRowFactory:
    """
    Factory for import rows.

    Usage:
        row = ImportRowFactory.create(asset_id="991234")
        rows = ImportRowFactory.create_batch(3, asset_id="991234")
    """

    _counter = 0

    @classmethod
    def _next_counter(cls) -> int:
        cls._counter += 1
        return cls._counter

    @classmethod
    def create(
        cls,
        asset_id: str = "991234",
        remote_url: Optional[str] = None,
        file_title: Optional[str] = None,
        file_type: Optional[str] = None,
        **extra,
    ) -> ImportRow:
        counter = cls._next_counter()
        return ImportRow(
            asset_id=asset_id,
            remote_url=remote_url if remote_url is not None else f"https://files.example.org/new-{counter}.pdf",
            file_title=file_title,
            file_type=file_type,
            **extra,
        )

    @classmethod
    def create_batch(cls, count: int, **overrides) -> list[ImportRow]:
        return [cls.create(**overrides) for _ in range(count)]


class JobStatusFactory:
    """Factory for job instance snapshots."""

    @classmethod
    def create(
        cls,
        status: str = "RUNNING",
        instance_id: str = "inst-1",
        progress: int = 50,
        files_uploaded: Optional[int] = None,
    ) -> JobInstanceStatus:
        counters = []
        if files_uploaded is not None:
            counters.append(JobCounter(type="file_uploaded", value=str(files_uploaded)))
        return JobInstanceStatus(
            id=instance_id,
            status=status,
            progress=progress,
            counters=counters,
        )


def sample_vocabulary() -> list[FileTypeEntry]:
    """Small AssetFileAndLinkTypes table covering the common cases."""
    return [
        FileTypeEntry(id="ACC", target_code="accepted", applicability="both", applicable_asset_types=""),
        FileTypeEntry(id="SUB", target_code="submitted", applicability="file", applicable_asset_types="publication"),
        FileTypeEntry(id="DATA", target_code="dataset", applicability="link", applicable_asset_types="dataset"),
        FileTypeEntry(id="SUPP", target_code="supplementary", applicability="both", applicable_asset_types="publication,dataset"),
    ]
