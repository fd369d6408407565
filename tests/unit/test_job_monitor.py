"""
Unit tests for the job poll loop.

Run: pytest tests/unit/test_job_monitor.py -v
"""

import asyncio

import pytest

from services.job_monitor import JobMonitor, LoopEnd, PollOutcome, PollScheduler
from services.job_service import JobService
from exceptions import RemoteApiError


# ===================
# SCHEDULER
# ===================

class TestPollScheduler:
    """Tests for PollScheduler"""

    @pytest.mark.asyncio
    async def test_first_tick_is_immediate(self):
        """A long interval does not delay the first tick."""
        calls = []

        async def tick():
            calls.append(1)
            return PollOutcome.TERMINAL

        end = await asyncio.wait_for(PollScheduler().start(60, tick), timeout=1)

        assert end == LoopEnd.TERMINAL
        assert calls == [1]

    @pytest.mark.asyncio
    async def test_error_ends_loop(self):
        async def tick():
            return PollOutcome.ERROR

        assert await PollScheduler().start(0.01, tick) == LoopEnd.ERROR

    @pytest.mark.asyncio
    async def test_timeout(self):
        """Ticks that never finish are cut off by the timeout."""
        calls = []

        async def tick():
            calls.append(1)
            return PollOutcome.CONTINUE

        end = await PollScheduler().start(0.01, tick, timeout=0.05)

        assert end == LoopEnd.TIMEOUT
        assert len(calls) >= 2

    @pytest.mark.asyncio
    async def test_ticks_never_overlap(self):
        """The next tick starts only after the previous one returned."""
        active = 0
        peak = 0
        count = 0

        async def tick():
            nonlocal active, peak, count
            active += 1
            peak = max(peak, active)
            await asyncio.sleep(0.02)
            active -= 1
            count += 1
            return PollOutcome.TERMINAL if count == 3 else PollOutcome.CONTINUE

        await PollScheduler().start(0.001, tick)

        assert peak == 1
        assert count == 3

    @pytest.mark.asyncio
    async def test_stop_cancels_loop(self):
        async def tick():
            return PollOutcome.CONTINUE

        scheduler = PollScheduler()
        task = scheduler.start(0.01, tick)
        await asyncio.sleep(0.03)

        scheduler.stop()

        with pytest.raises(asyncio.CancelledError):
            await task
        assert scheduler.stop_requested is True
        assert scheduler.running is False

    @pytest.mark.asyncio
    async def test_cannot_start_twice(self):
        async def tick():
            return PollOutcome.CONTINUE

        scheduler = PollScheduler()
        scheduler.start(0.01, tick)

        with pytest.raises(RuntimeError):
            scheduler.start(0.01, tick)

        scheduler.stop()


# ===================
# MONITOR
# ===================

class TestJobMonitor:
    """Tests for JobMonitor.watch()"""

    def _monitor(self, fake_client, timeout: float = 5.0) -> JobMonitor:
        return JobMonitor(job_service=JobService(client=fake_client), interval=0.01, timeout=timeout)

    @pytest.mark.asyncio
    async def test_polls_until_terminal(self, fake_client):
        fake_client.job_statuses = ["QUEUED", "RUNNING", "RUNNING", "COMPLETED_SUCCESS"]
        seen = []

        result = await self._monitor(fake_client).watch("M50762", "inst-1", on_progress=lambda s: seen.append(s.status))

        assert result.terminal
        assert result.succeeded
        assert result.polls == 4
        assert seen == ["QUEUED", "RUNNING", "RUNNING", "COMPLETED_SUCCESS"]

    @pytest.mark.asyncio
    async def test_failed_job_is_terminal_not_successful(self, fake_client):
        fake_client.job_statuses = ["RUNNING", "COMPLETED_FAILED"]

        result = await self._monitor(fake_client).watch("M50762", "inst-1")

        assert result.terminal
        assert not result.succeeded
        assert result.status.status == "COMPLETED_FAILED"

    @pytest.mark.asyncio
    async def test_unknown_status_is_terminal(self, fake_client):
        fake_client.job_statuses = ["FINALIZING"]

        result = await self._monitor(fake_client).watch("M50762", "inst-1")

        assert result.end == LoopEnd.TERMINAL
        assert result.polls == 1

    @pytest.mark.asyncio
    async def test_poll_error_stops_without_retry(self, fake_client):
        fake_client.poll_error = RemoteApiError("Service unavailable", status=503)

        result = await self._monitor(fake_client).watch("M50762", "inst-1")

        assert result.end == LoopEnd.ERROR
        assert result.error == "Service unavailable"
        assert result.polls == 1

    @pytest.mark.asyncio
    async def test_timeout(self, fake_client):
        fake_client.job_statuses = ["RUNNING"]

        result = await self._monitor(fake_client, timeout=0.05).watch("M50762", "inst-1")

        assert result.timed_out
        assert result.status.status == "RUNNING"

    @pytest.mark.asyncio
    async def test_stop(self, fake_client):
        fake_client.job_statuses = ["RUNNING"]
        monitor = self._monitor(fake_client)

        watch = asyncio.create_task(monitor.watch("M50762", "inst-1"))
        await asyncio.sleep(0.03)
        monitor.stop()
        result = await watch

        assert result.end == LoopEnd.STOPPED
        assert result.polls >= 1
