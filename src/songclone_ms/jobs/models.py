"""
Remote Job Records.

A GenerationJob mirrors one asynchronous job held by a provider (a song
render, a stem split, a transcription, a training run or a voice
conversion). It is created when the provider accepts a submission,
changes only when a status read is applied to it, and lives no longer
than the request that created it. Nothing is persisted.

State machine:
    PENDING --pending read--> RUNNING
    PENDING/RUNNING --success--> SUCCEEDED (terminal)
    PENDING/RUNNING --failure--> FAILED    (terminal)

Reads applied to a terminal job are ignored.
"""
from __future__ import annotations

from dataclasses import dataclass
from enum import Enum
from typing import Any, Optional


class JobKind(str, Enum):
    SONG = "SONG"
    STEMS = "STEMS"
    TRANSCRIBE = "TRANSCRIBE"
    TRAIN = "TRAIN"
    CONVERT = "CONVERT"


class JobState(str, Enum):
    PENDING = "PENDING"
    RUNNING = "RUNNING"
    SUCCEEDED = "SUCCEEDED"
    FAILED = "FAILED"

    @property
    def terminal(self) -> bool:
        return self in (JobState.SUCCEEDED, JobState.FAILED)


@dataclass
class GenerationJob:
    """
    One provider-side job.

    Attributes:
        id: Provider's opaque job identifier.
        kind: What the job produces.
        state: Current state, see module docstring.
        result: Output URL or structured payload once SUCCEEDED.
        error: Failure reason once FAILED.
        polls: Number of status reads applied so far.
    """
    id: str
    kind: JobKind
    state: JobState = JobState.PENDING
    result: Optional[Any] = None
    error: Optional[str] = None
    polls: int = 0

    @property
    def done(self) -> bool:
        return self.state.terminal

    def mark_running(self) -> None:
        if self.done:
            return
        self.polls += 1
        self.state = JobState.RUNNING

    def mark_succeeded(self, result: Any) -> None:
        if self.done:
            return
        self.polls += 1
        self.state = JobState.SUCCEEDED
        self.result = result

    def mark_failed(self, error: str) -> None:
        if self.done:
            return
        self.polls += 1
        self.state = JobState.FAILED
        self.error = error

    def to_dict(self) -> dict:
        out = {"id": self.id, "kind": self.kind.value, "state": self.state.value}
        if self.result is not None:
            out["result"] = self.result
        if self.error is not None:
            out["error"] = self.error
        return out
