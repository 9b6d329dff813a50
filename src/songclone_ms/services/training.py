"""
Voice Model Training.

Training a personal RVC model is an offline job that runs for several
minutes on Replicate. This module covers both ends of it:

    TrainingPackager:
        audio bytes -> size check -> single-entry ZIP
        (dataset/voice-sample.wav) -> Replicate Files upload ->
        train-rvc-model prediction -> prediction id, returned at once.

    TrainingProgressEstimator / TrainingReport:
        one prediction read -> COMPLETE / FAILED / CANCELED / TRAINING,
        with a progress percentage estimated from "Epoch N" markers in the
        prediction logs. 100% is never estimated; only a succeeded
        prediction reports COMPLETE.

Hyper-parameters (sample rate 48k, v2, rmvpe_gpu, 30 epochs, batch 7)
are forwarded as configured.
"""
from __future__ import annotations

import re
from dataclasses import dataclass
from enum import Enum
from typing import Any, Dict, Optional

from songclone_ms.core.config import TrainingConfig
from songclone_ms.core.errors import ProviderError, ValidationError
from songclone_ms.core.logging import get_logger, info, preview, success, verbose
from songclone_ms.providers.replicate import CANCELED, FAILED, SUCCEEDED, ReplicateClient, first_output
from songclone_ms.utils.archive import SingleEntryZipBuilder

_LOG = get_logger("songclone-ms.training")

DATASET_ENTRY_NAME = "dataset/voice-sample.wav"
DATASET_FILENAME = "voice-dataset.zip"
DATASET_CONTENT_TYPE = "application/zip"

_EPOCH_PATTERN = re.compile(r"Epoch (\d+)")


class TrainingPackager:
    """
    Packages a voice recording and starts an RVC training run.

    Args:
        replicate: Authenticated ReplicateClient.
        config: Size limit and hyper-parameters.
    """

    def __init__(self, replicate: ReplicateClient, config: Optional[TrainingConfig] = None):
        self._replicate = replicate
        self._config = config or TrainingConfig()

    def validate(self, audio: bytes) -> None:
        """
        Raises:
            ValidationError: AUDIO_TOO_SHORT when below the minimum size.
        """
        if len(audio) < self._config.min_audio_bytes:
            raise ValidationError(
                "Audio too short, need at least 10 seconds",
                "AUDIO_TOO_SHORT",
                details={"bytes": len(audio), "min_bytes": self._config.min_audio_bytes},
            )

    def package(self, audio: bytes) -> bytes:
        """Build the dataset archive."""
        return SingleEntryZipBuilder(DATASET_ENTRY_NAME, audio).build()

    def training_input(self, dataset_url: str) -> Dict[str, Any]:
        c = self._config
        return {
            "dataset_zip": dataset_url,
            "sample_rate": c.sample_rate,
            "version": c.version,
            "f0method": c.f0_method,
            "epoch": c.epochs,
            "batch_size": c.batch_size,
        }

    async def submit_training(self, audio: bytes, content_type: str = "audio/wav") -> str:
        """
        Start training and return the provider's job id.

        Does not wait for training to finish.

        Raises:
            ValidationError: Audio below the minimum size (no network call made).
            ProviderError: Upload or submission rejected.
        """
        self.validate(audio)
        info(_LOG, "training_package", kb=round(len(audio) / 1024), mime=content_type)

        archive = self.package(audio)
        verbose(_LOG, "training_zip_built", kb=round(len(archive) / 1024))

        dataset_url = await self._replicate.upload_file(archive, DATASET_FILENAME, DATASET_CONTENT_TYPE)
        info(_LOG, "training_uploaded", url=preview(dataset_url))

        prediction = await self._replicate.create_prediction(
            self._config.model_path, {"input": self.training_input(dataset_url)}
        )
        job_id = prediction.get("id")
        if not job_id:
            raise ProviderError("Training submission returned no prediction id")
        success(_LOG, "training_started", job=job_id)
        return str(job_id)


class TrainingProgressEstimator:
    """
    Estimates training progress from free-text logs.

    progress = floor + (max_epoch / total_epochs) * (ceiling - floor),
    clamped to ceiling. With no epoch marker the result is exactly floor.

    Example:
        >>> round(TrainingProgressEstimator(10, 95).estimate("Epoch 10", 30))
        38
    """

    def __init__(self, floor: float = 10.0, ceiling: float = 95.0):
        self.floor = floor
        self.ceiling = ceiling

    def estimate(self, log_text: Optional[str], total_epochs: int) -> float:
        epochs = [int(m) for m in _EPOCH_PATTERN.findall(log_text or "")]
        if not epochs or total_epochs <= 0:
            return self.floor
        progress = self.floor + (max(epochs) / total_epochs) * (self.ceiling - self.floor)
        return min(progress, self.ceiling)


class TrainingStatus(str, Enum):
    TRAINING = "TRAINING"
    COMPLETE = "COMPLETE"
    FAILED = "FAILED"
    CANCELED = "CANCELED"


@dataclass
class TrainingReport:
    """Status of a training job as reported to callers."""
    status: TrainingStatus
    progress: Optional[int] = None
    model_url: Optional[str] = None
    message: Optional[str] = None
    error: Optional[str] = None

    def to_dict(self) -> Dict[str, Any]:
        out: Dict[str, Any] = {"status": self.status.value}
        if self.progress is not None:
            out["progress"] = self.progress
        if self.model_url is not None:
            out["modelUrl"] = self.model_url
        if self.message is not None:
            out["message"] = self.message
        if self.error is not None:
            out["error"] = self.error
        return out


def report_from_prediction(
    prediction: Dict[str, Any],
    estimator: TrainingProgressEstimator,
    total_epochs: int,
) -> TrainingReport:
    """Translate one training prediction read into a TrainingReport."""
    status = prediction.get("status")

    if status == SUCCEEDED and prediction.get("output"):
        return TrainingReport(
            TrainingStatus.COMPLETE,
            progress=100,
            model_url=first_output(prediction["output"]),
            message="Voice model trained successfully!",
        )

    if status == FAILED:
        return TrainingReport(
            TrainingStatus.FAILED,
            error=str(prediction.get("error") or "Training failed"),
            message="Voice training failed. Zero-shot cloning is still available.",
        )

    if status == CANCELED:
        return TrainingReport(TrainingStatus.CANCELED, message="Training was canceled.")

    progress = round(estimator.estimate(prediction.get("logs"), total_epochs))
    message = "Warming up training server..." if status == "starting" else "Training your voice model..."
    return TrainingReport(TrainingStatus.TRAINING, progress=progress, message=message)
