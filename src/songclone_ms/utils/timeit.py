"""
Timing Utilities for Provider Round Trips.

A context manager that measures wall-clock time of a block. Used by the
service layer to report how long each clone tier or poll loop took, both
in log lines (``seconds=``) and in the Prometheus histograms.

Example Usage:
    with timeit("tier.zero-shot") as t:
        url = await seedvc.convert(song_url, sample_url, gender, 0)
    print(f"Took {t.timing.seconds:.3f}s")
"""
from __future__ import annotations

from dataclasses import dataclass
from time import perf_counter
from typing import Any, Dict, Optional


@dataclass
class Timing:
    """
    Timing measurement result.

    Attributes:
        name: Identifier for what was timed (e.g., "tier.trained").
        seconds: Duration in seconds.
        meta: Optional metadata dictionary for additional context.
    """
    name: str
    seconds: float
    meta: Optional[Dict[str, Any]] = None


class timeit:
    """
    Context manager for timing code blocks.

    The timing is recorded even when the block raises, so a failed tier
    still reports its elapsed time.

    Attributes:
        name: Identifier for this timing.
        meta: Optional metadata.
        timing: Timing result (available after context exit).
    """

    def __init__(self, name: str, meta: Optional[Dict[str, Any]] = None):
        self.name = name
        self.meta = meta
        self._t0: float | None = None
        self.timing: Timing | None = None

    def __enter__(self) -> "timeit":
        self._t0 = perf_counter()
        return self

    def __exit__(self, exc_type, exc, tb) -> None:
        t1 = perf_counter()
        assert self._t0 is not None
        self.timing = Timing(name=self.name, seconds=(t1 - self._t0), meta=self.meta)

    @property
    def seconds(self) -> float:
        """Elapsed seconds so far (or total, once the block has exited)."""
        if self.timing is not None:
            return self.timing.seconds
        if self._t0 is None:
            return 0.0
        return perf_counter() - self._t0
