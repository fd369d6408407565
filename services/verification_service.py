"""
Verification service.

Compares each asset's files before the import with its files after the
job finished, and classifies the outcome per asset and per run.

The net file count is the primary signal: an asset whose count did not
grow is reported as unchanged whatever its URLs say.
"""

from typing import Optional
import structlog

from models.asset import AssetFile, CachedAssetState
from models.verification import (
    AssetVerificationResult,
    BatchVerificationSummary,
    FileVerificationResult,
    MatchType,
    VerificationStatus,
)
from utils.text_utils import url_filename

logger = structlog.get_logger(__name__)


def _find_exact(url: str, files: list[AssetFile]) -> Optional[AssetFile]:
    target = url.strip()
    return next((f for f in files if f.url and f.url.strip() == target), None)


def _find_partial(url: str, files: list[AssetFile]) -> Optional[AssetFile]:
    name = url_filename(url)
    if not name:
        return None
    return next((f for f in files if f.url and url_filename(f.url) == name), None)


class VerificationService:
    """Before/after diff of asset files."""

    def verify_file(
        self,
        url: str,
        files_before: list[AssetFile],
        files_after: list[AssetFile],
        title: Optional[str] = None,
    ) -> FileVerificationResult:
        """Locate one expected URL among an asset's files after the job."""
        exact = _find_exact(url, files_after)
        if exact is not None:
            pre_existing = _find_exact(url, files_before) is not None
            return FileVerificationResult(
                url=url,
                title=title,
                was_found=True,
                match_type=MatchType.EXACT,
                pre_existing=pre_existing,
                existing_file=exact,
                verification_details=(
                    "URL was already attached before the import"
                    if pre_existing else "URL found on the asset"
                ),
            )

        partial = _find_partial(url, files_after)
        if partial is not None:
            return FileVerificationResult(
                url=url,
                title=title,
                was_found=True,
                match_type=MatchType.PARTIAL,
                existing_file=partial,
                verification_details=f"Matched by filename only: {partial.url}",
            )

        return FileVerificationResult(
            url=url,
            title=title,
            was_found=False,
            match_type=MatchType.NONE,
            verification_details="URL not found on the asset",
        )

    def verify_asset(
        self,
        state: CachedAssetState,
        titles: Optional[dict[str, str]] = None,
    ) -> AssetVerificationResult:
        """
        Classify one asset.

        files_added <= 0 -> unchanged. Otherwise every expected URL matched
        exactly -> verified_success; some matched (exactly or by filename)
        -> verified_partial; none matched -> verified_failed.
        """
        titles = titles or {}
        before = len(state.files_before)
        after = len(state.files_after)
        added = after - before
        expected_urls = list(dict.fromkeys(u for u in state.remote_urls_from_csv if u))
        expected = len(expected_urls)

        checks = [
            self.verify_file(url, state.files_before, state.files_after, titles.get(url))
            for url in expected_urls
        ]
        exact = [c for c in checks if c.match_type == MatchType.EXACT]
        partial = [c for c in checks if c.match_type == MatchType.PARTIAL]
        missing = [c for c in checks if c.match_type == MatchType.NONE]

        warnings: list[str] = []

        if added <= 0:
            status = VerificationStatus.UNCHANGED
            replaced = [c for c in exact if not c.pre_existing]
            if replaced:
                warnings.append(
                    "File count did not change although the URL is now attached; "
                    "another file may have been replaced"
                )
        elif expected and len(exact) == expected:
            status = VerificationStatus.VERIFIED_SUCCESS
        elif exact or partial:
            status = VerificationStatus.VERIFIED_PARTIAL
        else:
            status = VerificationStatus.VERIFIED_FAILED

        if added > 0:
            if missing:
                warnings.append(
                    f"{len(missing)} expected URL(s) not found although files were added; "
                    "the job may still be processing"
                )
            if expected and added > expected:
                warnings.append(f"More files added than expected ({added} added, {expected} expected)")
            elif added < expected:
                warnings.append(f"Fewer files added than expected ({added} added, {expected} expected)")

        for check in partial:
            warnings.append(f"Partial match for {check.url}; verify the correct file was attached")

        summary = (
            f"{before} file(s) before, {after} after, {added} added, {expected} expected"
        )

        logger.debug(
            "asset_verified",
            asset_id=state.asset_id,
            status=status.value,
            files_added=added,
            files_expected=expected,
        )

        return AssetVerificationResult(
            asset_id=state.asset_id,
            status=status,
            files_before_count=before,
            files_after_count=after,
            files_added=added,
            files_expected=expected,
            file_verifications=checks,
            verification_summary=summary,
            warnings=warnings,
        )

    def error_result(self, state: CachedAssetState, message: str) -> AssetVerificationResult:
        """Result for an asset whose post-job fetch failed."""
        return AssetVerificationResult(
            asset_id=state.asset_id,
            status=VerificationStatus.ERROR,
            files_before_count=len(state.files_before),
            files_after_count=0,
            files_added=0,
            files_expected=len([u for u in state.remote_urls_from_csv if u]),
            verification_summary=f"Verification failed: {message}",
            warnings=[f"Could not fetch asset after import: {message}"],
        )

    def summarize(self, results: list[AssetVerificationResult]) -> BatchVerificationSummary:
        """Aggregate per-asset results with run-level recommendations."""
        counts = {status: 0 for status in VerificationStatus}
        for result in results:
            counts[result.status] += 1

        total = len(results)
        success_rate = round(counts[VerificationStatus.VERIFIED_SUCCESS] / total * 100, 1) if total else 0.0

        warnings = [
            f"{result.asset_id}: {warning}"
            for result in results
            for warning in result.warnings
        ]

        recommendations = []
        if counts[VerificationStatus.UNCHANGED]:
            recommendations.append(
                f"{counts[VerificationStatus.UNCHANGED]} asset(s) were unchanged. "
                "Check whether the file URLs were already attached."
            )
        if counts[VerificationStatus.VERIFIED_FAILED]:
            recommendations.append(
                f"{counts[VerificationStatus.VERIFIED_FAILED]} asset(s) did not receive the expected file. "
                "Review the import job report."
            )
        if counts[VerificationStatus.VERIFIED_PARTIAL]:
            recommendations.append(
                f"{counts[VerificationStatus.VERIFIED_PARTIAL]} asset(s) were only partially verified. "
                "Verify the attached files manually."
            )
        if counts[VerificationStatus.ERROR]:
            recommendations.append(
                f"{counts[VerificationStatus.ERROR]} asset(s) could not be verified. "
                "Check them in the repository."
            )

        return BatchVerificationSummary(
            total_assets=total,
            verified_success=counts[VerificationStatus.VERIFIED_SUCCESS],
            verified_partial=counts[VerificationStatus.VERIFIED_PARTIAL],
            verified_failed=counts[VerificationStatus.VERIFIED_FAILED],
            unchanged=counts[VerificationStatus.UNCHANGED],
            errors=counts[VerificationStatus.ERROR],
            total_files_expected=sum(r.files_expected for r in results),
            total_files_added=sum(max(r.files_added, 0) for r in results),
            success_rate=success_rate,
            warnings=warnings,
            recommendations=recommendations,
        )


# Singleton instance
_verification_service: Optional[VerificationService] = None


def get_verification_service() -> VerificationService:
    """Get or create VerificationService instance."""
    global _verification_service
    if _verification_service is None:
        _verification_service = VerificationService()
    return _verification_service
