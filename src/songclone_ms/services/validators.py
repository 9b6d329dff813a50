"""
Input Validation for songclone-ms.

Validation happens before any provider is contacted, so a malformed
request never costs provider quota.

Validation Rules:
    - songUrl: Required, http(s) URL or data: URI, max 4096 characters
    - audio base64: Required where used, max 50MB encoded, must decode
    - pitchShift: Integer semitones in [-24, 24]
    - gender: "M"/"male" or "F"/"female" (case-insensitive), default F
    - song prompt: prompt or lyrics required, max 5000 characters
    - job id: Required, max 128 characters, URL-safe characters only

Error codes follow the pattern:
    - {FIELD}_REQUIRED: Missing required field
    - {FIELD}_TOO_LONG / {FIELD}_TOO_LARGE: Exceeds max size
    - {FIELD}_INVALID_{REASON}: Format/content invalid

Usage:
    from songclone_ms.services.validators import validate_song_url, validate_audio_b64

    song_url = validate_song_url(request.song_url)
    audio = validate_audio_b64(request.audio_base64)
"""
from __future__ import annotations

import base64
import binascii
import re
from typing import Optional

from songclone_ms.core.errors import ValidationError
from songclone_ms.core.logging import get_logger, warn

_LOG = get_logger("songclone-ms.validators")

MAX_URL_LENGTH = 4096
# Base64 adds ~33%: 50MB encoded is ~37.5MB of audio.
MAX_AUDIO_B64_BYTES = 50 * 1024 * 1024
MAX_PITCH_SHIFT = 24
MAX_PROMPT_LENGTH = 5000
MAX_JOB_ID_LENGTH = 128

_JOB_ID_PATTERN = re.compile(r"^[A-Za-z0-9._:-]+$")


def validate_song_url(url: Optional[str], max_length: int = MAX_URL_LENGTH) -> str:
    """
    Validate the song to convert.

    Raises:
        ValidationError: SONG_URL_REQUIRED, SONG_URL_TOO_LONG,
            SONG_URL_INVALID_SCHEME
    """
    if not url or not url.strip():
        raise ValidationError("songUrl required", "SONG_URL_REQUIRED")

    url = url.strip()
    if not url.startswith("data:") and len(url) > max_length:
        raise ValidationError(
            f"songUrl exceeds maximum length ({len(url)} > {max_length})",
            "SONG_URL_TOO_LONG",
        )
    if not url.startswith(("http://", "https://", "data:")):
        raise ValidationError("songUrl must be an http(s) or data: URL", "SONG_URL_INVALID_SCHEME")

    return url


def validate_optional_url(url: Optional[str], field: str) -> Optional[str]:
    """Strip an optional reference URL; empty means absent."""
    if not url or not url.strip():
        return None
    url = url.strip()
    if not url.startswith("data:") and len(url) > MAX_URL_LENGTH:
        raise ValidationError(
            f"{field} exceeds maximum length ({len(url)} > {MAX_URL_LENGTH})",
            f"{field.upper()}_TOO_LONG",
        )
    return url


def validate_audio_b64(b64: Optional[str], max_b64_size: int = MAX_AUDIO_B64_BYTES) -> bytes:
    """
    Validate and decode base64 audio.

    A ``data:...;base64,`` prefix is accepted and stripped.

    Raises:
        ValidationError: AUDIO_REQUIRED, AUDIO_TOO_LARGE, AUDIO_INVALID_BASE64
    """
    if not b64:
        raise ValidationError("audioBase64 required", "AUDIO_REQUIRED")

    if b64.startswith("data:") and "," in b64:
        b64 = b64.split(",", 1)[1]

    if len(b64) > max_b64_size:
        raise ValidationError(
            f"audioBase64 exceeds maximum size ({len(b64)} > {max_b64_size})",
            "AUDIO_TOO_LARGE",
        )

    try:
        decoded = base64.b64decode(b64, validate=True)
    except (binascii.Error, ValueError) as e:
        warn(_LOG, "audio_b64_decode_failed", error=str(e))
        raise ValidationError("Invalid base64 encoding in audioBase64", "AUDIO_INVALID_BASE64")

    if not decoded:
        raise ValidationError("audioBase64 decodes to nothing", "AUDIO_REQUIRED")

    return decoded


def validate_pitch_shift(value: Optional[int], limit: int = MAX_PITCH_SHIFT) -> int:
    """
    Validate a pitch shift in semitones. None means 0.

    Raises:
        ValidationError: PITCH_SHIFT_OUT_OF_RANGE
    """
    if value is None:
        return 0
    shift = int(value)
    if not -limit <= shift <= limit:
        raise ValidationError(
            f"pitchShift must be between -{limit} and {limit}, got {shift}",
            "PITCH_SHIFT_OUT_OF_RANGE",
        )
    return shift


def validate_gender(gender: Optional[str]) -> str:
    """
    Normalize gender to "M" or "F". None or empty means "F".

    Raises:
        ValidationError: GENDER_INVALID
    """
    if not gender:
        return "F"
    g = gender.strip().lower()
    if g in ("m", "male"):
        return "M"
    if g in ("f", "female"):
        return "F"
    raise ValidationError(f"gender must be M or F, got {gender!r}", "GENDER_INVALID")


def validate_song_prompt(prompt: Optional[str], lyrics: Optional[str],
                         max_length: int = MAX_PROMPT_LENGTH) -> str:
    """
    Validate song generation text. Lyrics win over prompt.

    Raises:
        ValidationError: PROMPT_REQUIRED, PROMPT_TOO_LONG
    """
    text = (lyrics or "").strip() or (prompt or "").strip()
    if not text:
        raise ValidationError("Prompt or lyrics required", "PROMPT_REQUIRED")
    if len(text) > max_length:
        raise ValidationError(
            f"Prompt exceeds maximum length ({len(text)} > {max_length})",
            "PROMPT_TOO_LONG",
        )
    return text


def validate_job_id(job_id: Optional[str], field: str = "jobId") -> str:
    """
    Validate a provider job id before it is put in a URL path.

    Raises:
        ValidationError: JOB_ID_REQUIRED, JOB_ID_INVALID
    """
    if not job_id or not job_id.strip():
        raise ValidationError(f"{field} required", "JOB_ID_REQUIRED")
    job_id = job_id.strip()
    if len(job_id) > MAX_JOB_ID_LENGTH or not _JOB_ID_PATTERN.match(job_id):
        raise ValidationError(f"{field} is not a valid job id", "JOB_ID_INVALID")
    return job_id
