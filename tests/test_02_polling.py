"""
Tests for the bounded polling engine and job records.

A FakeClock stands in for both sleep and the monotonic clock, so long
budgets run instantly and the waits can be asserted exactly.
"""
import asyncio

import pytest

from songclone_ms.core.errors import PollTimeoutError, ProviderError
from songclone_ms.jobs import GenerationJob, JobKind, JobState, PollBound, PollOutcome, PollStatus, poll


def scripted(*outcomes):
    """Probe returning the given outcomes in order, counting calls."""
    calls = {"n": 0}
    items = list(outcomes)

    async def probe():
        calls["n"] += 1
        return items.pop(0) if items else PollOutcome.pending()

    return probe, calls


class TestPollOutcome:
    def test_constructors(self):
        assert PollOutcome.pending().status is PollStatus.PENDING
        assert PollOutcome.success("u").payload == "u"
        assert PollOutcome.failure("boom").reason == "boom"

    def test_is_pending(self):
        assert PollOutcome.pending().is_pending
        assert not PollOutcome.success(None).is_pending


class TestPollBound:
    def test_requires_a_limit(self):
        with pytest.raises(ValueError):
            PollBound()

    def test_rejects_non_positive(self):
        with pytest.raises(ValueError):
            PollBound.attempts(0)
        with pytest.raises(ValueError):
            PollBound.duration(0)

    def test_exhausted_by_attempts(self):
        bound = PollBound.attempts(3)
        assert not bound.exhausted(2, 1000.0)
        assert bound.exhausted(3, 0.0)

    def test_exhausted_by_duration(self):
        bound = PollBound.duration(120)
        assert not bound.exhausted(50, 119.9)
        assert bound.exhausted(1, 120.0)


class TestPoll:
    """Tests for poll()."""

    def test_success_on_first_attempt_does_not_sleep(self, fake_clock):
        probe, calls = scripted(PollOutcome.success("done"))
        result = asyncio.run(poll(probe, 2.0, PollBound.attempts(5),
                                  sleep=fake_clock.sleep, clock=fake_clock))
        assert result == "done"
        assert calls["n"] == 1
        assert fake_clock.sleeps == []

    def test_wait_first_sleeps_before_first_probe(self, fake_clock):
        probe, _ = scripted(PollOutcome.success("done"))
        asyncio.run(poll(probe, 2.0, PollBound.attempts(5), wait_first=True,
                         sleep=fake_clock.sleep, clock=fake_clock))
        assert fake_clock.sleeps == [2.0]

    def test_success_after_pending(self, fake_clock):
        probe, calls = scripted(PollOutcome.pending(), PollOutcome.pending(), PollOutcome.success(42))
        result = asyncio.run(poll(probe, 3.0, PollBound.attempts(10),
                                  sleep=fake_clock.sleep, clock=fake_clock))
        assert result == 42
        assert calls["n"] == 3
        assert fake_clock.sleeps == [3.0, 3.0]

    def test_failure_raises_provider_error(self, fake_clock):
        probe, calls = scripted(PollOutcome.pending(), PollOutcome.failure("GENERATE_AUDIO_FAILED"))
        with pytest.raises(ProviderError) as exc_info:
            asyncio.run(poll(probe, 1.0, PollBound.attempts(10),
                             sleep=fake_clock.sleep, clock=fake_clock))
        assert not isinstance(exc_info.value, PollTimeoutError)
        assert exc_info.value.message == "GENERATE_AUDIO_FAILED"
        assert calls["n"] == 2

    def test_attempt_bound_is_exact(self, fake_clock):
        probe, calls = scripted()
        with pytest.raises(PollTimeoutError) as exc_info:
            asyncio.run(poll(probe, 2.0, PollBound.attempts(120), kind="song",
                             sleep=fake_clock.sleep, clock=fake_clock))
        assert calls["n"] == 120
        assert len(fake_clock.sleeps) == 119
        assert "song" in exc_info.value.message
        assert exc_info.value.code == "TIMEOUT"

    def test_duration_bound(self, fake_clock):
        probe, calls = scripted()
        with pytest.raises(PollTimeoutError):
            asyncio.run(poll(probe, 4.0, PollBound.duration(120),
                             sleep=fake_clock.sleep, clock=fake_clock))
        # probes at t=0,4,...,120: the one at 120 sees the budget spent
        assert calls["n"] == 31
        assert fake_clock.now == 120.0

    def test_poll_timeout_is_a_provider_error(self):
        assert issubclass(PollTimeoutError, ProviderError)

    def test_job_record_follows_outcomes(self, fake_clock):
        job = GenerationJob(id="p1", kind=JobKind.STEMS)
        probe, _ = scripted(PollOutcome.pending(), PollOutcome.success({"output": "x"}))
        asyncio.run(poll(probe, 1.0, PollBound.attempts(5), job=job,
                         sleep=fake_clock.sleep, clock=fake_clock))
        assert job.state is JobState.SUCCEEDED
        assert job.result == {"output": "x"}
        assert job.polls == 2

    def test_job_record_counts_each_read_once_on_timeout(self, fake_clock):
        job = GenerationJob(id="p2", kind=JobKind.SONG)
        read_status, calls = scripted()
        with pytest.raises(PollTimeoutError):
            asyncio.run(poll(read_status, 1.0, PollBound.attempts(3), job=job,
                             sleep=fake_clock.sleep, clock=fake_clock))
        assert calls["n"] == 3
        assert job.state is JobState.FAILED
        assert job.polls == 3


class TestGenerationJob:
    def test_starts_pending(self):
        job = GenerationJob(id="t1", kind=JobKind.SONG)
        assert job.state is JobState.PENDING
        assert not job.done

    def test_running_then_failed(self):
        job = GenerationJob(id="t1", kind=JobKind.SONG)
        job.mark_running()
        assert job.state is JobState.RUNNING
        job.mark_failed("nope")
        assert job.done
        assert job.error == "nope"

    def test_terminal_state_is_sticky(self):
        job = GenerationJob(id="t1", kind=JobKind.TRAIN)
        job.mark_succeeded("url")
        job.mark_failed("late")
        job.mark_running()
        assert job.state is JobState.SUCCEEDED
        assert job.error is None
        assert job.polls == 1

    def test_to_dict(self):
        job = GenerationJob(id="t1", kind=JobKind.CONVERT)
        job.mark_succeeded("https://x")
        assert job.to_dict() == {"id": "t1", "kind": "CONVERT", "state": "SUCCEEDED", "result": "https://x"}
