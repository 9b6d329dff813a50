"""
Asynchronous Job Handling.

    - models.py: GenerationJob record and its state machine
    - polling.py: Provider-agnostic bounded polling engine
    - song_poller.py: Budgets for song, stem and transcription waits
"""
from songclone_ms.jobs.models import GenerationJob, JobKind, JobState
from songclone_ms.jobs.polling import PollBound, PollOutcome, PollStatus, poll

__all__ = [
    "GenerationJob",
    "JobKind",
    "JobState",
    "PollBound",
    "PollOutcome",
    "PollStatus",
    "poll",
]
