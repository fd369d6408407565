"""
Job monitor.

Polls a job instance at a fixed interval until it reaches a terminal
status, the poll fails, the hard timeout passes, or the loop is stopped.
Only one status request is ever outstanding.
"""

import asyncio
from dataclasses import dataclass
from enum import Enum
from typing import Awaitable, Callable, Optional
import structlog

from config import settings
from exceptions import AppError
from models.job import JobInstanceStatus
from services.job_service import JobService, get_job_service

logger = structlog.get_logger(__name__)


class PollOutcome(str, Enum):
    """What a single tick decided."""

    CONTINUE = "continue"
    TERMINAL = "terminal"
    ERROR = "error"


class LoopEnd(str, Enum):
    """Why the poll loop stopped."""

    TERMINAL = "terminal"
    ERROR = "error"
    TIMEOUT = "timeout"
    STOPPED = "stopped"


Tick = Callable[[], Awaitable[PollOutcome]]


class PollScheduler:
    """
    Interval scheduler for one poll loop.

    start() runs the first tick immediately and then one tick per interval;
    the next tick is only issued after the previous one returned. stop()
    cancels the loop without issuing further ticks.
    """

    def __init__(self):
        self._task: Optional[asyncio.Task] = None
        self._stop_requested = False

    @property
    def running(self) -> bool:
        return self._task is not None and not self._task.done()

    @property
    def stop_requested(self) -> bool:
        return self._stop_requested

    def start(self, interval: float, tick: Tick, timeout: Optional[float] = None) -> "asyncio.Task[LoopEnd]":
        if self.running:
            raise RuntimeError("Poll loop already running")

        self._stop_requested = False
        self._task = asyncio.create_task(self._run(interval, tick, timeout))
        return self._task

    def stop(self) -> None:
        if self.running:
            self._stop_requested = True
            self._task.cancel()

    async def _run(self, interval: float, tick: Tick, timeout: Optional[float]) -> LoopEnd:
        loop = asyncio.get_running_loop()
        started = loop.time()

        while True:
            outcome = await tick()
            if outcome == PollOutcome.TERMINAL:
                return LoopEnd.TERMINAL
            if outcome == PollOutcome.ERROR:
                return LoopEnd.ERROR

            if timeout is not None:
                remaining = timeout - (loop.time() - started)
                if remaining <= 0:
                    return LoopEnd.TIMEOUT
                await asyncio.sleep(min(interval, remaining))
                if loop.time() - started >= timeout:
                    return LoopEnd.TIMEOUT
            else:
                await asyncio.sleep(interval)


@dataclass
class JobMonitorResult:
    """Final state of a monitored job instance."""
    end: LoopEnd
    status: Optional[JobInstanceStatus] = None
    polls: int = 0
    error: Optional[str] = None

    @property
    def terminal(self) -> bool:
        return self.end == LoopEnd.TERMINAL

    @property
    def timed_out(self) -> bool:
        return self.end == LoopEnd.TIMEOUT

    @property
    def succeeded(self) -> bool:
        return self.terminal and self.status is not None and self.status.succeeded


class JobMonitor:
    """Watches one job instance at a time."""

    def __init__(
        self,
        job_service: Optional[JobService] = None,
        interval: Optional[float] = None,
        timeout: Optional[float] = None,
    ):
        self.job_service = job_service or get_job_service()
        self.interval = interval if interval is not None else settings.job_poll_interval_seconds
        self.timeout = timeout if timeout is not None else settings.job_timeout_seconds
        self.scheduler = PollScheduler()

    async def watch(
        self,
        job_id: str,
        instance_id: str,
        on_progress: Optional[Callable[[JobInstanceStatus], None]] = None,
    ) -> JobMonitorResult:
        """
        Poll until the instance is terminal.

        Never raises for poll failures or timeouts; both are reported on
        the result and polling is not resumed.
        """
        result = JobMonitorResult(end=LoopEnd.TIMEOUT)

        async def tick() -> PollOutcome:
            result.polls += 1
            try:
                status = await self.job_service.fetch_status(job_id, instance_id)
            except AppError as e:
                result.error = e.message
                logger.error("job_poll_failed", job_id=job_id, instance_id=instance_id, error=e.message)
                return PollOutcome.ERROR

            result.status = status
            logger.debug(
                "job_polled",
                job_id=job_id,
                instance_id=instance_id,
                status=status.status,
                progress=status.progress,
            )
            if on_progress is not None:
                on_progress(status)

            return PollOutcome.TERMINAL if status.is_terminal else PollOutcome.CONTINUE

        task = self.scheduler.start(self.interval, tick, timeout=self.timeout)
        try:
            result.end = await task
        except asyncio.CancelledError:
            if not self.scheduler.stop_requested:
                raise
            result.end = LoopEnd.STOPPED

        logger.info(
            "job_monitor_finished",
            job_id=job_id,
            instance_id=instance_id,
            end=result.end.value,
            status=result.status.status if result.status else None,
            polls=result.polls,
        )
        return result

    def stop(self) -> None:
        """Stop polling; the remote job is left untouched."""
        self.scheduler.stop()
