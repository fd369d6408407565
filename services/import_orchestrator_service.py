"""
Import orchestrator.

Drives one run through the three-phase protocol:

    grouping -> counting -> submitting -> awaiting_job -> verifying -> done

with aborted reachable from any phase. Phase 1 records every asset's
files before anything is submitted so that Phase 3 can diff against it.
All run state lives in a RunContext created per run and dropped after.
"""

import asyncio
from dataclasses import dataclass, field
from typing import Callable, Optional
import structlog

from config import settings
from exceptions import AppError, ConflictError, NoValidAssetsError, describe_remote_error
from models.asset import CachedAssetState
from models.imports import AssetBatch, ImportRow, RowStatus
from models.job import JobStatus
from models.run import ImportRunResult, ImportRunSummary, RunPhase
from models.verification import AssetVerificationResult, VerificationStatus
from services.asset_service import AssetService, get_asset_service
from services.export_service import successful_ids_csv, verification_report_csv
from services.job_monitor import JobMonitor
from services.job_service import JobService, get_job_service, summarize_counters
from services.verification_service import VerificationService, get_verification_service

logger = structlog.get_logger(__name__)

MISSING_ID_MESSAGE = "Missing MMS ID"
NO_URL_MESSAGE = "No file URL provided"


@dataclass
class RunContext:
    """Mutable state of a single run."""
    rows: list[ImportRow]
    result: ImportRunResult
    batches: dict[str, AssetBatch] = field(default_factory=dict)
    cache: dict[str, CachedAssetState] = field(default_factory=dict)
    submitted: list[str] = field(default_factory=list)

    def active_batches(self) -> list[AssetBatch]:
        """Batches that survived pre-count, in first-seen order."""
        return [b for asset_id, b in self.batches.items() if asset_id in self.cache]


class ImportOrchestrator:
    """
    Runs the asset file import pipeline.

    One run at a time per orchestrator; a second concurrent run is refused.
    """

    def __init__(
        self,
        asset_service: Optional[AssetService] = None,
        job_service: Optional[JobService] = None,
        verification_service: Optional[VerificationService] = None,
        monitor: Optional[JobMonitor] = None,
        inter_asset_delay: Optional[float] = None,
    ):
        self.asset_service = asset_service or get_asset_service()
        self.job_service = job_service or get_job_service()
        self.verification_service = verification_service or get_verification_service()
        self.monitor = monitor or JobMonitor(job_service=self.job_service)
        self.inter_asset_delay = (
            inter_asset_delay if inter_asset_delay is not None else settings.inter_asset_delay_seconds
        )
        self._running = False

    # ===================
    # RUN
    # ===================

    async def run(
        self,
        rows: list[ImportRow],
        on_phase: Optional[Callable[[RunPhase], None]] = None,
    ) -> ImportRunResult:
        """
        Process rows end to end.

        Rows are updated in place and returned on the result. Remote side
        effects (submitted files, created set, triggered job) are never
        rolled back.

        Raises:
            ConflictError: If a run is already in progress
        """
        if self._running:
            raise ConflictError(message="An import run is already in progress", code="RUN_IN_PROGRESS")

        self._running = True
        ctx = RunContext(rows=rows, result=ImportRunResult(phase=RunPhase.GROUPING, rows=rows))

        def enter(phase: RunPhase) -> None:
            ctx.result.phase = phase
            logger.info("run_phase", phase=phase.value)
            if on_phase is not None:
                on_phase(phase)

        try:
            enter(RunPhase.GROUPING)
            self.group(ctx)

            enter(RunPhase.COUNTING)
            await self.precount(ctx)

            enter(RunPhase.SUBMITTING)
            job_ids = await self.submit(ctx)

            if job_ids is not None:
                enter(RunPhase.AWAITING_JOB)
                finished = await self.await_job(ctx, *job_ids)

                if finished:
                    enter(RunPhase.VERIFYING)
                    await self.verify(ctx)

            enter(RunPhase.DONE)
        except AppError as e:
            logger.error("run_aborted", code=e.code, error=e.message)
            ctx.result.errors.append(e.message)
            enter(RunPhase.ABORTED)
        finally:
            self._running = False

        ctx.result.successful_ids_csv = successful_ids_csv(ctx.rows)
        if ctx.result.verification_results:
            ctx.result.verification_report_csv = verification_report_csv(ctx.result.verification_results)
        ctx.result.summary.assets_submitted = len(ctx.submitted)

        logger.info(
            "run_finished",
            phase=ctx.result.phase.value,
            rows=len(rows),
            success=ctx.result.success_count,
            unchanged=ctx.result.unchanged_count,
            errors=ctx.result.error_count,
        )
        return ctx.result

    def stop(self) -> None:
        """Stop waiting for the job; submissions already sent are not recalled."""
        self.monitor.stop()

    # ===================
    # GROUPING
    # ===================

    def group(self, ctx: RunContext) -> None:
        """Fold rows into one batch per asset id; rows without an id fail here."""
        for row in ctx.rows:
            asset_id = (row.asset_id or "").strip()
            if not asset_id:
                row.mark(RowStatus.ERROR, MISSING_ID_MESSAGE)
                continue

            row.asset_id = asset_id
            row.mark(RowStatus.PENDING)
            ctx.batches.setdefault(asset_id, AssetBatch(asset_id=asset_id)).rows.append(row)

        logger.info("rows_grouped", rows=len(ctx.rows), assets=len(ctx.batches))

    # ===================
    # PHASE 1: PRE-COUNT
    # ===================

    async def precount(self, ctx: RunContext) -> None:
        """
        Record every asset's current files.

        Assets that cannot be fetched have their rows failed and drop out
        of the run.

        Raises:
            NoValidAssetsError: If no asset survives
        """
        outcomes = await self.asset_service.fetch_many(list(ctx.batches))

        failed = 0
        for asset_id, batch in ctx.batches.items():
            outcome = outcomes.get(asset_id)
            if outcome is None or not outcome.ok:
                failed += 1
                if outcome is not None and outcome.not_found:
                    batch.mark_rows(RowStatus.ERROR, f"Asset {asset_id} not found")
                else:
                    message = outcome.error_message if outcome is not None else "Asset lookup failed"
                    batch.mark_rows(RowStatus.ERROR, message)
                continue

            metadata = outcome.metadata
            batch.file_count_before = len(metadata.files)
            ctx.cache[asset_id] = CachedAssetState(
                asset_id=asset_id,
                asset_type=metadata.asset_type or "",
                files_before=list(metadata.files),
                remote_urls_from_csv=[row.remote_url for row in batch.rows if row.remote_url],
            )

        logger.info("precount_finished", valid=len(ctx.cache), failed=failed)

        if not ctx.cache:
            raise NoValidAssetsError(failed)

    # ===================
    # PHASE 2: SUBMIT + SET/JOB
    # ===================

    async def submit(self, ctx: RunContext) -> Optional[tuple[str, str]]:
        """
        Submit files asset by asset, then create the set and run the job.

        Returns:
            (job_id, instance_id), or None when no job was started
        """
        batches = ctx.active_batches()

        for index, batch in enumerate(batches):
            for row in batch.rows:
                if not row.remote_url:
                    row.mark(RowStatus.ERROR, NO_URL_MESSAGE)

            files = batch.files
            if not files:
                continue

            try:
                await self.asset_service.submit_files(batch.asset_id, files)
                batch.mark_rows(RowStatus.SUCCESS, with_url_only=True)
                ctx.submitted.append(batch.asset_id)
            except AppError as e:
                logger.warning("asset_submit_failed", asset_id=batch.asset_id, error=e.message)
                batch.mark_rows(RowStatus.ERROR, e.message, with_url_only=True)

            if index < len(batches) - 1 and self.inter_asset_delay > 0:
                await asyncio.sleep(self.inter_asset_delay)

        if not ctx.submitted:
            logger.warning("no_assets_submitted")
            return None

        return await self.start_job(ctx)

    async def start_job(self, ctx: RunContext) -> Optional[tuple[str, str]]:
        """
        Create the set for submitted assets and trigger the import job.

        A failure here leaves rows as they are and adds a warning that the
        job may need to be run by hand.
        """
        result = ctx.result

        try:
            created = await self.job_service.create_set(ctx.submitted)
        except AppError as e:
            result.warnings.append(describe_remote_error(e, "Set creation"))
            return None
        result.set_id = created.id

        try:
            await self.job_service.add_members(created.id, ctx.submitted)
        except AppError as e:
            result.warnings.append(describe_remote_error(e, "Adding assets to the set"))
            return None

        try:
            job_id, instance_id = await self.job_service.run_import_job(created.id)
        except AppError as e:
            result.warnings.append(describe_remote_error(e, "Job submission"))
            return None

        result.job_id = job_id
        result.instance_id = instance_id
        logger.info("import_job_started", set_id=created.id, job_id=job_id, instance_id=instance_id)
        return job_id, instance_id

    # ===================
    # AWAITING JOB
    # ===================

    async def await_job(self, ctx: RunContext, job_id: str, instance_id: str) -> bool:
        """
        Wait for the job to end.

        Returns:
            True when the job completed successfully and Phase 3 should run
        """
        result = ctx.result
        outcome = await self.monitor.watch(job_id, instance_id)

        if outcome.status is not None:
            result.job_status = outcome.status.status
            result.counters = summarize_counters(outcome.status)

        if outcome.error:
            result.warnings.append(
                f"Job monitoring failed: {outcome.error}. Check the job status manually."
            )
            return False

        if outcome.timed_out:
            result.job_timed_out = True
            result.warnings.append(
                f"Job did not finish within {int(self.monitor.timeout)} seconds. "
                "Check the job status manually."
            )
            return False

        if not outcome.terminal:
            result.warnings.append("Job monitoring was stopped. Check the job status manually.")
            return False

        if result.job_status != JobStatus.COMPLETED_SUCCESS.value:
            result.errors.append(f"Import job ended with status {result.job_status}")
            return False

        return True

    # ===================
    # PHASE 3: POST-COUNT + DIFF
    # ===================

    async def verify(self, ctx: RunContext) -> None:
        """
        Re-fetch every submitted asset and diff against its cached state.

        Assets whose file count did not grow have their rows marked
        unchanged. A failed fetch yields an error result for that asset
        only.
        """
        result = ctx.result
        outcomes = await self.asset_service.fetch_many(ctx.submitted)

        verifications: list[AssetVerificationResult] = []
        for asset_id in ctx.submitted:
            state = ctx.cache[asset_id]
            batch = ctx.batches[asset_id]
            outcome = outcomes.get(asset_id)

            if outcome is None or not outcome.ok:
                message = outcome.error_message if outcome is not None else "Asset lookup failed"
                verification = self.verification_service.error_result(state, message)
                result.errors.append(f"Verification of asset {asset_id} failed: {message}")
            else:
                state.files_after = list(outcome.metadata.files)
                batch.file_count_after = len(state.files_after)
                titles = {row.remote_url: row.file_title for row in batch.rows if row.file_title}
                verification = self.verification_service.verify_asset(state, titles)

                if verification.files_added <= 0:
                    batch.mark_rows(RowStatus.UNCHANGED, with_url_only=True)

            for row in batch.url_rows:
                row.verification = verification
            verifications.append(verification)

        result.verification_results = verifications
        result.verification_summary = self.verification_service.summarize(verifications)
        result.summary = ImportRunSummary(
            assets_submitted=len(ctx.submitted),
            assets_changed=sum(1 for v in verifications if v.files_added > 0),
            assets_unchanged=sum(1 for v in verifications if v.status == VerificationStatus.UNCHANGED),
            assets_errored=sum(1 for v in verifications if v.status == VerificationStatus.ERROR),
            total_files_added=sum(max(v.files_added, 0) for v in verifications),
        )

        logger.info(
            "verification_finished",
            assets=len(verifications),
            changed=result.summary.assets_changed,
            unchanged=result.summary.assets_unchanged,
            files_added=result.summary.total_files_added,
        )


# Singleton instance
_import_orchestrator: Optional[ImportOrchestrator] = None


def get_import_orchestrator() -> ImportOrchestrator:
    """Get or create ImportOrchestrator instance."""
    global _import_orchestrator
    if _import_orchestrator is None:
        _import_orchestrator = ImportOrchestrator()
    return _import_orchestrator
