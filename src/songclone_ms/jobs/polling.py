"""
Bounded Polling of Asynchronous Provider Jobs.

Every slow provider call in songclone-ms ends in the same loop: read the
job status, stop on a terminal answer, otherwise wait and read again
until a budget runs out. This module owns that loop; the providers own
the status reads.

Probe Contract:
    A probe is an async callable taking no arguments. It performs exactly
    one status read (one network round trip) and classifies the reply
    into a PollOutcome. Each provider speaks its own status vocabulary
    ("succeeded"/"failed"/"canceled", "SUCCESS"/"CREATE_TASK_FAILED", an
    event stream...). Mapping that vocabulary to PENDING, SUCCESS or
    FAILURE is the probe's job and never the engine's.
    A transient read error should come back as PENDING; an exception
    raised by the probe ends the poll.

Bounds:
    PollBound.attempts(n): at most n probe calls.
    PollBound.duration(s): keep probing while less than s seconds of
        wall-clock time have elapsed since polling began.

Waiting between attempts uses ``await sleep(interval)`` so no thread is
held while a job runs remotely. Both the sleep function and the clock
are injectable, which lets tests run a 120-attempt loop instantly.

Example:
    async def probe() -> PollOutcome:
        data = await replicate.get_prediction(pid)
        return replicate.classify(data)

    output = await poll(probe, interval=3.0, bound=PollBound.attempts(60), kind="stems")
"""
from __future__ import annotations

import asyncio
import time
from dataclasses import dataclass
from enum import Enum
from typing import Any, Awaitable, Callable, Optional

from songclone_ms.core.errors import PollTimeoutError, ProviderError
from songclone_ms.core.logging import get_logger, verbose, warn
from songclone_ms.core.metrics import metrics
from songclone_ms.jobs.models import GenerationJob

_LOG = get_logger("songclone-ms.poll")


class PollStatus(str, Enum):
    PENDING = "PENDING"
    SUCCESS = "SUCCESS"
    FAILURE = "FAILURE"


@dataclass(frozen=True)
class PollOutcome:
    """
    Classified result of a single status read.

    Use the constructors rather than building instances by hand:
        PollOutcome.pending()
        PollOutcome.success({"audioUrl": ...})
        PollOutcome.failure("GENERATE_AUDIO_FAILED")
    """
    status: PollStatus
    payload: Any = None
    reason: Optional[str] = None

    @classmethod
    def pending(cls) -> "PollOutcome":
        return cls(PollStatus.PENDING)

    @classmethod
    def success(cls, payload: Any = None) -> "PollOutcome":
        return cls(PollStatus.SUCCESS, payload=payload)

    @classmethod
    def failure(cls, reason: str) -> "PollOutcome":
        return cls(PollStatus.FAILURE, reason=reason)

    @property
    def is_pending(self) -> bool:
        return self.status is PollStatus.PENDING


@dataclass(frozen=True)
class PollBound:
    """
    Polling budget, either an attempt count or a wall-clock duration.

    Attributes:
        max_attempts: Maximum number of probe calls, or None.
        max_seconds: Maximum elapsed seconds, or None.
    """
    max_attempts: Optional[int] = None
    max_seconds: Optional[float] = None

    def __post_init__(self):
        if self.max_attempts is None and self.max_seconds is None:
            raise ValueError("PollBound needs max_attempts or max_seconds")
        if self.max_attempts is not None and self.max_attempts < 1:
            raise ValueError(f"max_attempts must be positive, got {self.max_attempts}")
        if self.max_seconds is not None and self.max_seconds <= 0:
            raise ValueError(f"max_seconds must be positive, got {self.max_seconds}")

    @classmethod
    def attempts(cls, n: int) -> "PollBound":
        return cls(max_attempts=n)

    @classmethod
    def duration(cls, seconds: float) -> "PollBound":
        return cls(max_seconds=seconds)

    def exhausted(self, attempts_made: int, elapsed: float) -> bool:
        if self.max_attempts is not None and attempts_made >= self.max_attempts:
            return True
        if self.max_seconds is not None and elapsed >= self.max_seconds:
            return True
        return False

    def describe(self) -> str:
        if self.max_attempts is not None:
            return f"{self.max_attempts} attempts"
        return f"{self.max_seconds:g}s"


Probe = Callable[[], Awaitable[PollOutcome]]


async def poll(
    probe: Probe,
    interval: float,
    bound: PollBound,
    *,
    wait_first: bool = False,
    kind: str = "job",
    job: Optional[GenerationJob] = None,
    sleep: Callable[[float], Awaitable[Any]] = asyncio.sleep,
    clock: Callable[[], float] = time.monotonic,
) -> Any:
    """
    Probe until SUCCESS, FAILURE or an exhausted bound.

    Args:
        probe: One status read, classified. See module docstring.
        interval: Seconds to wait between probe calls.
        bound: Attempt or duration budget.
        wait_first: Wait ``interval`` before the first probe as well
            (for jobs that were only just submitted).
        kind: Label for logs and the poll-duration histogram.
        job: Optional GenerationJob updated from every outcome.
        sleep: Awaitable sleep, injectable for tests.
        clock: Monotonic clock, injectable for tests.

    Returns:
        The SUCCESS payload.

    Raises:
        ProviderError: The probe reported FAILURE.
        PollTimeoutError: The bound was exhausted while still pending.
    """
    started = clock()
    attempts = 0

    try:
        while True:
            if attempts > 0 or wait_first:
                await sleep(interval)

            attempts += 1
            outcome = await probe()

            if outcome.status is PollStatus.SUCCESS:
                if job is not None:
                    job.mark_succeeded(outcome.payload)
                verbose(_LOG, "poll_done", kind=kind, attempt=attempts)
                return outcome.payload

            if outcome.status is PollStatus.FAILURE:
                reason = outcome.reason or "unknown failure"
                if job is not None:
                    job.mark_failed(reason)
                warn(_LOG, "poll_failed", kind=kind, attempt=attempts, reason=reason)
                raise ProviderError(reason, details={"kind": kind, "attempts": attempts})

            elapsed = clock() - started
            if bound.exhausted(attempts, elapsed):
                reason = f"{kind} still pending after {bound.describe()}"
                if job is not None:
                    job.mark_failed(reason)
                warn(_LOG, "poll_timeout", kind=kind, attempts=attempts, seconds=elapsed)
                raise PollTimeoutError(reason, details={"kind": kind, "attempts": attempts})

            if job is not None:
                job.mark_running()
            verbose(_LOG, "poll_pending", kind=kind, attempt=attempts)
    finally:
        metrics.observe_poll(kind, clock() - started)
