"""
Asset validation service.

Batch existence and metadata checks against the repository. Fetches for
different assets run concurrently; each outcome is kept as data so one
failure never cancels the rest.
"""

import asyncio
from dataclasses import dataclass
from typing import Optional
import structlog

from exceptions import AppError, AssetNotFoundError
from integrations.esploro_client import EsploroClient, get_esploro_client
from models.asset import AssetFileLink, AssetMetadata, BatchAssetMetadataResult

logger = structlog.get_logger(__name__)


@dataclass
class FetchOutcome:
    """Result of one asset fetch: metadata or the error it raised."""
    asset_id: str
    metadata: Optional[AssetMetadata] = None
    error: Optional[Exception] = None

    @property
    def ok(self) -> bool:
        return self.error is None

    @property
    def not_found(self) -> bool:
        return isinstance(self.error, AssetNotFoundError)

    @property
    def error_message(self) -> str:
        if self.error is None:
            return ""
        if isinstance(self.error, AppError):
            return self.error.message
        return str(self.error) or type(self.error).__name__


def unique_ids(asset_ids: list[str]) -> list[str]:
    """Trimmed, non-empty ids in first-seen order."""
    seen = []
    for asset_id in asset_ids:
        asset_id = (asset_id or "").strip()
        if asset_id and asset_id not in seen:
            seen.append(asset_id)
    return seen


class AssetService:
    """Asset metadata lookups."""

    def __init__(self, client: Optional[EsploroClient] = None):
        self.client = client or get_esploro_client()

    async def fetch_one(self, asset_id: str) -> FetchOutcome:
        """Fetch one asset; any exception is captured on the outcome."""
        try:
            metadata = await self.client.fetch_asset(asset_id)
            return FetchOutcome(asset_id=asset_id, metadata=metadata)
        except Exception as e:
            logger.warning(
                "asset_fetch_failed",
                asset_id=asset_id,
                not_found=isinstance(e, AssetNotFoundError),
                error=str(e),
            )
            return FetchOutcome(asset_id=asset_id, error=e)

    async def fetch_many(self, asset_ids: list[str]) -> dict[str, FetchOutcome]:
        """
        Fetch all assets concurrently and wait for every one to settle.

        Returns:
            Outcome per unique asset id, in first-seen order
        """
        ids = unique_ids(asset_ids)
        if not ids:
            return {}

        outcomes = await asyncio.gather(*(self.fetch_one(asset_id) for asset_id in ids))
        return {outcome.asset_id: outcome for outcome in outcomes}

    async def validate_assets(self, asset_ids: list[str]) -> BatchAssetMetadataResult:
        """
        Batch existence check.

        Found ids land in metadata_map; not-found ids in missing_asset_ids;
        any other failure in failed_asset_ids with its message in errors.
        """
        outcomes = await self.fetch_many(asset_ids)
        result = BatchAssetMetadataResult()

        for asset_id, outcome in outcomes.items():
            if outcome.ok:
                result.metadata_map[asset_id] = outcome.metadata
            elif outcome.not_found:
                result.missing_asset_ids.append(asset_id)
                result.errors[asset_id] = outcome.error_message
            else:
                result.failed_asset_ids.append(asset_id)
                result.errors[asset_id] = outcome.error_message

        logger.info(
            "assets_validated",
            requested=len(outcomes),
            found=len(result.metadata_map),
            missing=len(result.missing_asset_ids),
            failed=len(result.failed_asset_ids),
        )
        return result

    async def submit_files(self, asset_id: str, files: list[AssetFileLink]) -> None:
        """
        Queue all files for one asset in a single call.

        Raises:
            RemoteApiError: If the repository rejects the request
        """
        await self.client.submit_files(asset_id, files)
        logger.info("asset_files_submitted", asset_id=asset_id, file_count=len(files))


# Singleton instance
_asset_service: Optional[AssetService] = None


def get_asset_service() -> AssetService:
    """Get or create AssetService instance."""
    global _asset_service
    if _asset_service is None:
        _asset_service = AssetService()
    return _asset_service
