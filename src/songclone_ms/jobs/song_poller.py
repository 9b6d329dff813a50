"""
Waiting on Song, Stem and Transcription Jobs.

SongJobPoller pins the polling engine to the budgets of each job kind:

    song        Kie task        120 attempts x 2s
    stems       demucs          60 attempts x 3s
    transcribe  whisper         30 attempts x 2s

Every wait starts with a pause, since the job was only just submitted.
"""
from __future__ import annotations

import asyncio
import time
from typing import Any, Awaitable, Callable, Dict, Optional

from songclone_ms.core.config import PollingConfig
from songclone_ms.jobs.models import GenerationJob, JobKind
from songclone_ms.jobs.polling import PollBound, poll
from songclone_ms.providers.kie import KieClient, SongTrack
from songclone_ms.providers.replicate import ReplicateClient


class SongJobPoller:
    """
    Bounded waits for song-generation and stem-separation jobs.

    Args:
        kie: Kie client, needed for wait_for_song.
        replicate: Replicate client, needed for the prediction waits.
        config: Attempt counts and intervals.
        sleep: Awaitable sleep (injectable for tests).
        clock: Monotonic clock (injectable for tests).
    """

    def __init__(
        self,
        kie: Optional[KieClient] = None,
        replicate: Optional[ReplicateClient] = None,
        config: Optional[PollingConfig] = None,
        sleep: Optional[Callable[[float], Awaitable[Any]]] = None,
        clock: Optional[Callable[[], float]] = None,
    ):
        self._kie = kie
        self._replicate = replicate
        self._config = config or PollingConfig()
        self._sleep = sleep or asyncio.sleep
        self._clock = clock or time.monotonic

    async def wait_for_song(self, task_id: str) -> SongTrack:
        """
        Wait for a Kie song task to finish.

        Raises:
            ProviderError: The task failed.
            PollTimeoutError: Still running after the attempt budget.
        """
        if self._kie is None:
            raise RuntimeError("SongJobPoller has no Kie client")
        kie = self._kie
        job = GenerationJob(id=task_id, kind=JobKind.SONG)
        return await poll(
            lambda: kie.probe(task_id),
            interval=self._config.song_interval_s,
            bound=PollBound.attempts(self._config.song_attempts),
            wait_first=True,
            kind="song",
            job=job,
            sleep=self._sleep,
            clock=self._clock,
        )

    async def wait_for_stems(self, prediction_id: str) -> Dict[str, Any]:
        """Wait for a demucs prediction; returns the finished prediction."""
        return await self._wait_for_prediction(
            prediction_id,
            JobKind.STEMS,
            self._config.stems_attempts,
            self._config.stems_interval_s,
        )

    async def wait_for_transcription(self, prediction_id: str) -> Dict[str, Any]:
        """Wait for a whisper prediction; returns the finished prediction."""
        return await self._wait_for_prediction(
            prediction_id,
            JobKind.TRANSCRIBE,
            self._config.transcribe_attempts,
            self._config.transcribe_interval_s,
        )

    async def _wait_for_prediction(
        self,
        prediction_id: str,
        kind: JobKind,
        attempts: int,
        interval: float,
    ) -> Dict[str, Any]:
        if self._replicate is None:
            raise RuntimeError("SongJobPoller has no Replicate client")
        replicate = self._replicate
        job = GenerationJob(id=prediction_id, kind=kind)
        return await poll(
            lambda: replicate.probe(prediction_id),
            interval=interval,
            bound=PollBound.attempts(attempts),
            wait_first=True,
            kind=kind.value.lower(),
            job=job,
            sleep=self._sleep,
            clock=self._clock,
        )
