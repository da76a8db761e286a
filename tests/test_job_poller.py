"""
Tests for the vendor job polling loop
"""
import asyncio
import itertools

import httpx
import pytest

from media_studio.exceptions import GenerationCancelled, GenerationFailed, GenerationTimeout, VendorError
from media_studio.services.job_poller import JobPoller, JobState, JobStatus


class FakeClock:
    """Monotonic clock advanced only by the fake sleep"""

    def __init__(self):
        self.now = 0.0
        self.sleeps = []

    def __call__(self):
        return self.now

    async def sleep(self, seconds):
        self.sleeps.append(seconds)
        self.now += seconds


def scripted(*statuses):
    """Status check returning each item in turn; exceptions are raised"""
    items = iter(statuses)

    async def check():
        item = next(items)
        if isinstance(item, Exception):
            raise item
        return item

    return check


def make_poller(clock, **kwargs):
    return JobPoller(
        initial_interval=kwargs.pop("initial_interval", 2),
        max_interval=kwargs.pop("max_interval", 15),
        backoff_factor=kwargs.pop("backoff_factor", 1.5),
        timeout=kwargs.pop("timeout", 600),
        sleep=clock.sleep,
        clock=clock,
    )


class TestSchedule:

    def test_backoff_is_capped(self):
        poller = JobPoller(initial_interval=2, max_interval=15, backoff_factor=1.5, timeout=600)
        intervals = list(itertools.islice(poller.intervals(), 8))
        assert intervals == [2, 3, 4.5, 6.75, 10.125, 15, 15, 15]

    def test_defaults_come_from_config(self):
        poller = JobPoller()
        assert poller.initial_interval == 2
        assert poller.max_interval == 15
        assert poller.backoff_factor == 1.5
        assert poller.timeout == 600


class TestPoll:

    def test_returns_completed_status(self):
        clock = FakeClock()
        check = scripted(
            JobStatus(JobState.QUEUED),
            JobStatus(JobState.IN_PROGRESS),
            JobStatus(JobState.COMPLETED, result={"ok": True}),
        )
        status = asyncio.run(make_poller(clock).poll(check))

        assert status.state == JobState.COMPLETED
        assert status.result == {"ok": True}
        assert clock.sleeps == [2, 3]

    def test_log_lines_are_reported_once(self):
        clock = FakeClock()
        check = scripted(
            JobStatus(JobState.IN_PROGRESS, logs=["Loading model"]),
            JobStatus(JobState.IN_PROGRESS, logs=["Loading model", "Step 1/20"]),
            JobStatus(JobState.COMPLETED, logs=["Loading model", "Step 1/20", "Done"]),
        )
        lines = []
        asyncio.run(make_poller(clock).poll(check, on_log=lines.append))
        assert lines == ["Loading model", "Step 1/20", "Done"]

    def test_failed_job_raises_with_vendor_message(self):
        clock = FakeClock()
        check = scripted(JobStatus(JobState.FAILED, error="NSFW content detected"))
        with pytest.raises(GenerationFailed) as exc_info:
            asyncio.run(make_poller(clock).poll(check))
        assert exc_info.value.message == "NSFW content detected"

    def test_times_out(self):
        """A job that never finishes stops before the timeout is overrun"""
        clock = FakeClock()

        async def never_done():
            return JobStatus(JobState.IN_PROGRESS)

        with pytest.raises(GenerationTimeout) as exc_info:
            asyncio.run(make_poller(clock, timeout=60).poll(never_done))

        assert sum(clock.sleeps) <= 60
        assert exc_info.value.details["timeout_seconds"] == 60
        assert exc_info.value.status_code == 504

    def test_transient_errors_keep_polling(self):
        clock = FakeClock()
        check = scripted(
            httpx.ReadTimeout("slow"),
            VendorError("bad gateway", vendor="fal", vendor_status=502, transient=True),
            JobStatus(JobState.COMPLETED),
        )
        status = asyncio.run(make_poller(clock).poll(check))
        assert status.state == JobState.COMPLETED
        assert len(clock.sleeps) == 2

    def test_non_transient_error_propagates(self):
        clock = FakeClock()
        check = scripted(VendorError("invalid key", vendor="fal", vendor_status=401))
        with pytest.raises(VendorError) as exc_info:
            asyncio.run(make_poller(clock).poll(check))
        assert exc_info.value.vendor_status == 401

    def test_cancel_before_first_check(self):
        calls = []

        async def check():
            calls.append(1)
            return JobStatus(JobState.IN_PROGRESS)

        async def run():
            event = asyncio.Event()
            event.set()
            await JobPoller(initial_interval=1, max_interval=1, timeout=10).poll(check, cancel_event=event)

        with pytest.raises(GenerationCancelled):
            asyncio.run(run())
        assert calls == []

    def test_cancel_interrupts_wait(self):
        """Setting the event wakes the poller without waiting out the interval"""

        async def check():
            return JobStatus(JobState.IN_PROGRESS)

        async def run():
            event = asyncio.Event()
            poller = JobPoller(initial_interval=30, max_interval=30, timeout=600)
            task = asyncio.ensure_future(poller.poll(check, cancel_event=event))
            await asyncio.sleep(0.05)
            event.set()
            return await asyncio.wait_for(task, timeout=2)

        with pytest.raises(GenerationCancelled):
            asyncio.run(run())
