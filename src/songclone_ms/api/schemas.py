"""
API Request/Response Schemas.

This module defines Pydantic models for the songclone-ms endpoints.
Field names are snake_case in Python and camelCase on the wire
(``songUrl``, ``pitchShift``...); both spellings are accepted on input.

Models:
    CloneRequest / CloneResponse: /v1/voice/clone
    TrainRequest / TrainAck: /v1/voice/train
    SongCreateRequest / SongAck: /v1/songs
    StemsRequest: /v1/stems
    TranscribeRequest / TranscribeResponse: /v1/transcribe
    UploadRequest: /v1/uploads

Field-level rules that need an error code (URL scheme, base64 validity,
pitch range) are enforced by services/validators.py rather than here, so
clients get the same error codes from the API and the CLI.

Example Request:
    {
        "songUrl": "https://cdn.example.com/song.mp3",
        "rawSampleUrl": "https://cdn.example.com/me.webm",
        "gender": "M",
        "pitchShift": -2
    }
"""
from __future__ import annotations

from pydantic import BaseModel, ConfigDict, Field

from songclone_ms.services.validators import MAX_AUDIO_B64_BYTES

_WIRE = ConfigDict(populate_by_name=True)


class CloneRequest(BaseModel):
    """
    Voice clone request.

    Attributes:
        song_url: Song to re-sing (http(s) or data: URL).
        trained_model_ref: Trained model URL, "preset:" tag, or a sample
            URL stored in the same slot.
        raw_sample_url: Hosted reference recording for zero-shot cloning.
        gender: "M" or "F"; picks the preset voice.
        pitch_shift: Semitones, -24..24.
    """
    model_config = _WIRE

    song_url: str | None = Field(default=None, alias="songUrl")
    trained_model_ref: str | None = Field(default=None, alias="trainedModelRef")
    raw_sample_url: str | None = Field(default=None, alias="rawSampleUrl")
    gender: str | None = Field(default=None)
    pitch_shift: int | None = Field(default=None, alias="pitchShift")


class CloneResponse(BaseModel):
    success: bool = True
    url: str
    method: str
    note: str | None = None


class TrainRequest(BaseModel):
    model_config = _WIRE

    audio_base64: str | None = Field(default=None, alias="audioBase64", max_length=MAX_AUDIO_B64_BYTES)
    content_type: str | None = Field(default=None, alias="contentType")


class TrainAck(BaseModel):
    model_config = _WIRE

    success: bool = True
    training_job_id: str = Field(..., alias="trainingJobId")
    status: str = "TRAINING"


class SongCreateRequest(BaseModel):
    """
    Song generation request. One of prompt or lyrics is required; lyrics
    win when both are given.
    """
    model_config = _WIRE

    prompt: str | None = None
    lyrics: str | None = None
    style: str | None = None
    title: str | None = None
    instrumental: bool = False
    vocal_gender: str | None = Field(default=None, alias="vocalGender")


class SongAck(BaseModel):
    model_config = _WIRE

    success: bool = True
    task_id: str = Field(..., alias="taskId")
    status: str = "PENDING"


class StemsRequest(BaseModel):
    model_config = _WIRE

    audio_url: str | None = Field(default=None, alias="audioUrl")


class TranscribeRequest(BaseModel):
    model_config = _WIRE

    audio_url: str | None = Field(default=None, alias="audioUrl")
    audio_base64: str | None = Field(default=None, alias="audioBase64", max_length=MAX_AUDIO_B64_BYTES)


class TranscribeResponse(BaseModel):
    text: str


class UploadRequest(BaseModel):
    model_config = _WIRE

    audio_base64: str | None = Field(default=None, alias="audioBase64", max_length=MAX_AUDIO_B64_BYTES)
    content_type: str | None = Field(default=None, alias="contentType")
    file_name: str | None = Field(default=None, alias="fileName")
    force_hosted: bool = Field(default=False, alias="forceHosted")
