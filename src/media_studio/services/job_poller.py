"""
Job Poller - waits for a queued vendor job to finish

Polls a status callable with exponential backoff (2s, 3s, 4.5s ... capped at
15s by default) until the job completes, fails, the overall wait exceeds the
timeout, or the caller cancels.
"""
import asyncio
import logging
import time
from dataclasses import dataclass, field
from enum import Enum
from typing import Any, Awaitable, Callable, Dict, List, Optional

import httpx

from ..config import config
from ..exceptions import GenerationCancelled, GenerationFailed, GenerationTimeout, VendorError

logger = logging.getLogger(__name__)


class JobState(str, Enum):
    QUEUED = "queued"
    IN_PROGRESS = "in_progress"
    COMPLETED = "completed"
    FAILED = "failed"


@dataclass
class JobStatus:
    """One status check of a vendor job"""
    state: JobState
    logs: List[str] = field(default_factory=list)
    result: Optional[Dict[str, Any]] = None
    error: Optional[str] = None
    queue_position: Optional[int] = None

    @property
    def is_terminal(self) -> bool:
        return self.state in (JobState.COMPLETED, JobState.FAILED)


StatusCheck = Callable[[], Awaitable[JobStatus]]
LogCallback = Callable[[str], None]


class JobPoller:
    """
    Bounded, cancellable polling loop

    `sleep` and `clock` are injectable so the schedule can be tested without
    waiting in real time.
    """

    def __init__(
        self,
        initial_interval: float = None,
        max_interval: float = None,
        backoff_factor: float = None,
        timeout: float = None,
        sleep: Callable[[float], Awaitable[None]] = asyncio.sleep,
        clock: Callable[[], float] = time.monotonic,
    ):
        self.initial_interval = initial_interval if initial_interval is not None else config.POLL_INITIAL_INTERVAL
        self.max_interval = max_interval if max_interval is not None else config.POLL_MAX_INTERVAL
        self.backoff_factor = backoff_factor if backoff_factor is not None else config.POLL_BACKOFF_FACTOR
        self.timeout = timeout if timeout is not None else config.POLL_TIMEOUT
        self._sleep = sleep
        self._clock = clock

    def intervals(self):
        """Yield the wait before each successive status check"""
        interval = self.initial_interval
        while True:
            yield interval
            interval = min(interval * self.backoff_factor, self.max_interval)

    async def poll(
        self,
        check_status: StatusCheck,
        on_log: Optional[LogCallback] = None,
        cancel_event: Optional[asyncio.Event] = None,
    ) -> JobStatus:
        """
        Poll until the job reaches a terminal state

        Returns:
            The COMPLETED status (with its result payload)

        Raises:
            GenerationFailed: The vendor reported the job as failed
            GenerationTimeout: The job did not finish within `timeout`
            GenerationCancelled: `cancel_event` was set
        """
        seen_logs = set()
        started = self._clock()
        schedule = self.intervals()
        checks = 0

        while True:
            if cancel_event is not None and cancel_event.is_set():
                logger.info(f"Polling cancelled after {checks} checks")
                raise GenerationCancelled("Generation was cancelled")

            checks += 1
            try:
                status = await check_status()
            except httpx.TimeoutException as e:
                logger.warning(f"Status check timed out, will retry: {e}")
                status = None
            except VendorError as e:
                if not e.transient:
                    raise
                logger.warning(f"Transient status check failure, will retry: {e.message}")
                status = None

            if status is not None:
                for line in status.logs:
                    if line and line not in seen_logs:
                        seen_logs.add(line)
                        logger.debug(f"[vendor] {line}")
                        if on_log is not None:
                            on_log(line)

                if status.state == JobState.COMPLETED:
                    logger.info(f"Job completed after {checks} checks ({self._clock() - started:.1f}s)")
                    return status
                if status.state == JobState.FAILED:
                    raise GenerationFailed(status.error or "Generation failed")

            interval = next(schedule)
            elapsed = self._clock() - started
            if elapsed + interval > self.timeout:
                logger.warning(f"Job did not finish within {self.timeout:.0f}s ({checks} checks)")
                raise GenerationTimeout(
                    f"Generation did not finish within {int(self.timeout)} seconds",
                    details={"timeout_seconds": self.timeout, "checks": checks},
                )

            if cancel_event is None:
                await self._sleep(interval)
            else:
                await self._wait_or_cancel(interval, cancel_event)

    async def _wait_or_cancel(self, interval: float, cancel_event: asyncio.Event) -> None:
        """Sleep for `interval` but wake early when the cancel event is set"""
        sleeper = asyncio.ensure_future(self._sleep(interval))
        waiter = asyncio.ensure_future(cancel_event.wait())
        try:
            await asyncio.wait({sleeper, waiter}, return_when=asyncio.FIRST_COMPLETED)
        finally:
            for task in (sleeper, waiter):
                if not task.done():
                    task.cancel()
