"""
Configuration Management for songclone-ms.

This module provides centralized configuration handling with:
    - Default values (Defaults class)
    - Dataclass-based configuration objects
    - YAML file loading with environment variable overrides
    - Provider credentials kept apart from tunables
    - Validation with meaningful error messages

Configuration Hierarchy (highest priority first):
    1. Environment variables (REPLICATE_API_TOKEN, SONGCLONE_LOG_LEVEL, etc.)
    2. YAML config file (config/settings.yaml)
    3. Defaults class values

Example settings.yaml:
    providers:
      replicate_base_url: https://api.replicate.com/v1
      seedvc_space_url: https://plachta-seed-vc.hf.space

    rvc:
      poll_attempts: 3
      poll_interval_s: 5.0

    training:
      epochs: 30

    logging:
      level: 2  # NORMAL

Credentials are never written to settings.yaml in production; they come from
the environment and are injected into each provider client constructor.
"""

from __future__ import annotations

import os
from dataclasses import dataclass, field
from pathlib import Path
from typing import Any, Dict, Optional

import yaml

from songclone_ms.core.errors import ConfigurationError


class ConfigValidationError(Exception):
    """
    Raised when configuration validation fails.

    This exception is thrown when a configuration value is outside
    acceptable bounds or of the wrong type.
    """
    pass


class Defaults:
    """
    Centralized default configuration values.

    Timeout budgets are layered: per-call timeout << per-tier poll bound <<
    platform execution ceiling. Keep the sum of the tier budgets well below
    the hosting platform's request-duration limit.
    """

    # ─────────────────────────────────────────────────────────────────────────
    # Provider Endpoints
    # ─────────────────────────────────────────────────────────────────────────
    REPLICATE_BASE_URL = "https://api.replicate.com/v1"
    KIE_BASE_URL = "https://api.kie.ai/api/v1"
    SEEDVC_SPACE_URL = "https://plachta-seed-vc.hf.space"
    UPLOADCARE_UPLOAD_URL = "https://upload.uploadcare.com/base/"
    UPLOADCARE_CDN_URL = "https://ucarecdn.com"
    HTTP_TIMEOUT_S = 90.0               # Default per-call timeout
    PREFER_WAIT_MARGIN_S = 15.0         # Read timeout slack over a Prefer: wait hold

    # ─────────────────────────────────────────────────────────────────────────
    # RVC (direct conversion)
    # ─────────────────────────────────────────────────────────────────────────
    RVC_MODEL_PATH = "models/zsxkib/realistic-voice-cloning/predictions"
    RVC_PREFER_WAIT_S = 55              # Ask provider for synchronous completion
    RVC_POLL_ATTEMPTS = 3
    RVC_POLL_INTERVAL_S = 5.0
    RVC_INDEX_RATE = 0.5
    RVC_FILTER_RADIUS = 3
    RVC_RMS_MIX_RATE = 0.25
    RVC_PROTECT = 0.33

    # ─────────────────────────────────────────────────────────────────────────
    # Seed-VC (streaming conversion)
    # ─────────────────────────────────────────────────────────────────────────
    SEEDVC_WAKE_TIMEOUT_S = 10.0
    SEEDVC_WAKE_SETTLE_S = 3.0          # Pause after the warm-up ping
    SEEDVC_SUBMIT_TIMEOUT_S = 20.0
    SEEDVC_STATUS_TIMEOUT_S = 15.0      # Each status GET
    SEEDVC_POLL_INTERVAL_S = 4.0
    SEEDVC_MAX_WAIT_S = 120.0           # Outer wall-clock budget per variant
    SEEDVC_SINGING_DIFFUSION_STEPS = 10
    SEEDVC_STYLE_DIFFUSION_STEPS = 30

    # ─────────────────────────────────────────────────────────────────────────
    # Song generation / stems / transcription
    # ─────────────────────────────────────────────────────────────────────────
    SONG_POLL_ATTEMPTS = 120
    SONG_POLL_INTERVAL_S = 2.0
    SONG_CALLBACK_URL = "https://httpbin.org/post"
    STEMS_PREFER_WAIT_S = 120
    STEMS_POLL_ATTEMPTS = 60
    STEMS_POLL_INTERVAL_S = 3.0
    TRANSCRIBE_PREFER_WAIT_S = 60
    TRANSCRIBE_POLL_ATTEMPTS = 30
    TRANSCRIBE_POLL_INTERVAL_S = 2.0

    # ─────────────────────────────────────────────────────────────────────────
    # Training
    # ─────────────────────────────────────────────────────────────────────────
    TRAINING_MODEL_PATH = "models/replicate/train-rvc-model/predictions"
    TRAINING_MIN_AUDIO_BYTES = 10 * 1024
    TRAINING_SAMPLE_RATE = "48k"
    TRAINING_VERSION = "v2"
    TRAINING_F0_METHOD = "rmvpe_gpu"
    TRAINING_EPOCHS = 30
    TRAINING_BATCH_SIZE = 7
    TRAINING_PROGRESS_FLOOR = 10.0
    TRAINING_PROGRESS_CEILING = 95.0

    # ─────────────────────────────────────────────────────────────────────────
    # Uploads
    # ─────────────────────────────────────────────────────────────────────────
    UPLOAD_REPLICATE_MAX_KB = 4000
    UPLOAD_DATA_URL_MAX_KB = 2048

    # ─────────────────────────────────────────────────────────────────────────
    # Logging
    # ─────────────────────────────────────────────────────────────────────────
    LOGGING_URL_PREVIEW_CHARS = 80
    LOGGING_LEVEL = 2                   # 1=MINIMAL, 2=NORMAL, 3=VERBOSE, 4=DEBUG


@dataclass
class ProviderEndpoints:
    """Base URLs of every outbound provider."""
    replicate_base_url: str = Defaults.REPLICATE_BASE_URL
    kie_base_url: str = Defaults.KIE_BASE_URL
    seedvc_space_url: str = Defaults.SEEDVC_SPACE_URL
    uploadcare_upload_url: str = Defaults.UPLOADCARE_UPLOAD_URL
    uploadcare_cdn_url: str = Defaults.UPLOADCARE_CDN_URL
    http_timeout_s: float = Defaults.HTTP_TIMEOUT_S


@dataclass
class RVCConfig:
    """
    Direct (RVC) conversion configuration.

    The tuning constants are sent verbatim with every conversion and must
    stay at these values for output compatibility.
    """
    model_path: str = Defaults.RVC_MODEL_PATH
    prefer_wait_s: int = Defaults.RVC_PREFER_WAIT_S
    poll_attempts: int = Defaults.RVC_POLL_ATTEMPTS
    poll_interval_s: float = Defaults.RVC_POLL_INTERVAL_S
    index_rate: float = Defaults.RVC_INDEX_RATE
    filter_radius: int = Defaults.RVC_FILTER_RADIUS
    rms_mix_rate: float = Defaults.RVC_RMS_MIX_RATE
    protect: float = Defaults.RVC_PROTECT


@dataclass
class SeedVCConfig:
    """Streaming (Seed-VC) conversion configuration."""
    wake_timeout_s: float = Defaults.SEEDVC_WAKE_TIMEOUT_S
    wake_settle_s: float = Defaults.SEEDVC_WAKE_SETTLE_S
    submit_timeout_s: float = Defaults.SEEDVC_SUBMIT_TIMEOUT_S
    status_timeout_s: float = Defaults.SEEDVC_STATUS_TIMEOUT_S
    poll_interval_s: float = Defaults.SEEDVC_POLL_INTERVAL_S
    max_wait_s: float = Defaults.SEEDVC_MAX_WAIT_S
    singing_diffusion_steps: int = Defaults.SEEDVC_SINGING_DIFFUSION_STEPS
    style_diffusion_steps: int = Defaults.SEEDVC_STYLE_DIFFUSION_STEPS


@dataclass
class PollingConfig:
    """Bounds for song, stem and transcription jobs."""
    song_attempts: int = Defaults.SONG_POLL_ATTEMPTS
    song_interval_s: float = Defaults.SONG_POLL_INTERVAL_S
    stems_prefer_wait_s: int = Defaults.STEMS_PREFER_WAIT_S
    stems_attempts: int = Defaults.STEMS_POLL_ATTEMPTS
    stems_interval_s: float = Defaults.STEMS_POLL_INTERVAL_S
    transcribe_prefer_wait_s: int = Defaults.TRANSCRIBE_PREFER_WAIT_S
    transcribe_attempts: int = Defaults.TRANSCRIBE_POLL_ATTEMPTS
    transcribe_interval_s: float = Defaults.TRANSCRIBE_POLL_INTERVAL_S


@dataclass
class TrainingConfig:
    """
    Voice model training configuration.

    Hyper-parameters are forwarded to the training provider unchanged.
    """
    model_path: str = Defaults.TRAINING_MODEL_PATH
    min_audio_bytes: int = Defaults.TRAINING_MIN_AUDIO_BYTES
    sample_rate: str = Defaults.TRAINING_SAMPLE_RATE
    version: str = Defaults.TRAINING_VERSION
    f0_method: str = Defaults.TRAINING_F0_METHOD
    epochs: int = Defaults.TRAINING_EPOCHS
    batch_size: int = Defaults.TRAINING_BATCH_SIZE
    progress_floor: float = Defaults.TRAINING_PROGRESS_FLOOR
    progress_ceiling: float = Defaults.TRAINING_PROGRESS_CEILING


@dataclass
class UploadConfig:
    """Size limits for the upload fallback chain."""
    replicate_max_kb: int = Defaults.UPLOAD_REPLICATE_MAX_KB
    data_url_max_kb: int = Defaults.UPLOAD_DATA_URL_MAX_KB


@dataclass
class LoggingConfig:
    """
    Logging configuration.

    Log levels:
        1 = MINIMAL: Startup, shutdown, critical errors only
        2 = NORMAL: Request lifecycle, tier outcomes (default)
        3 = VERBOSE: Per-poll detail
        4 = DEBUG: Raw provider payload previews
    """
    url_preview_chars: int = Defaults.LOGGING_URL_PREVIEW_CHARS
    level: int = Defaults.LOGGING_LEVEL


@dataclass(frozen=True)
class ProviderCredentials:
    """
    Provider credentials, read once and passed to client constructors.

    Attributes:
        replicate_api_token: Replicate (RVC, training, stems, whisper, files).
        kie_api_key: Kie.ai song generation.
        uploadcare_public_key: Uploadcare public hosting.
    """
    replicate_api_token: Optional[str] = None
    kie_api_key: Optional[str] = None
    uploadcare_public_key: Optional[str] = None

    _ENV_NAMES = {
        "replicate_api_token": "REPLICATE_API_TOKEN",
        "kie_api_key": "KIE_API_KEY",
        "uploadcare_public_key": "UPLOADCARE_PUBLIC_KEY",
    }

    @classmethod
    def from_env(cls, raw: Optional[Dict[str, Any]] = None) -> "ProviderCredentials":
        """
        Build credentials from a YAML section, overridden by the environment.

        Empty strings are treated as absent.
        """
        raw = raw or {}
        values: Dict[str, Optional[str]] = {}
        for attr, env_name in cls._ENV_NAMES.items():
            value = os.getenv(env_name) or raw.get(attr)
            values[attr] = str(value) if value else None
        return cls(**values)

    def has(self, name: str) -> bool:
        """Whether the named credential is configured."""
        return bool(getattr(self, name))

    def require(self, name: str) -> str:
        """
        Return the named credential or fail before any network activity.

        Raises:
            ConfigurationError: If the credential is not configured.
        """
        value = getattr(self, name)
        if not value:
            env_name = self._ENV_NAMES.get(name, name.upper())
            raise ConfigurationError(f"{env_name} not configured", details={"credential": env_name})
        return value


@dataclass
class ServiceConfig:
    """
    Validated configuration for StudioService.

    Usage:
        settings = load_settings("config/settings.yaml")
        config = ServiceConfig.from_settings(settings)
        print(config.rvc.poll_attempts)
    """
    endpoints: ProviderEndpoints = field(default_factory=ProviderEndpoints)
    rvc: RVCConfig = field(default_factory=RVCConfig)
    seedvc: SeedVCConfig = field(default_factory=SeedVCConfig)
    polling: PollingConfig = field(default_factory=PollingConfig)
    training: TrainingConfig = field(default_factory=TrainingConfig)
    uploads: UploadConfig = field(default_factory=UploadConfig)
    logging: LoggingConfig = field(default_factory=LoggingConfig)

    @classmethod
    def from_settings(cls, settings: "Settings") -> "ServiceConfig":
        """
        Create ServiceConfig from Settings with validation.

        Args:
            settings: Raw Settings object loaded from YAML.

        Returns:
            Validated ServiceConfig instance.

        Raises:
            ConfigValidationError: If any value fails validation.
        """
        raw = settings.raw

        # ─────────────────────────────────────────────────────────────────────
        # Provider endpoints
        # ─────────────────────────────────────────────────────────────────────
        p = raw.get("providers", {}) or {}
        endpoints = ProviderEndpoints(
            replicate_base_url=str(p.get("replicate_base_url", Defaults.REPLICATE_BASE_URL)).rstrip("/"),
            kie_base_url=str(p.get("kie_base_url", Defaults.KIE_BASE_URL)).rstrip("/"),
            seedvc_space_url=str(p.get("seedvc_space_url", Defaults.SEEDVC_SPACE_URL)).rstrip("/"),
            uploadcare_upload_url=str(p.get("uploadcare_upload_url", Defaults.UPLOADCARE_UPLOAD_URL)),
            uploadcare_cdn_url=str(p.get("uploadcare_cdn_url", Defaults.UPLOADCARE_CDN_URL)).rstrip("/"),
            http_timeout_s=float(p.get("http_timeout_s", Defaults.HTTP_TIMEOUT_S)),
        )
        cls._validate_positive("providers.http_timeout_s", endpoints.http_timeout_s)

        # ─────────────────────────────────────────────────────────────────────
        # RVC
        # ─────────────────────────────────────────────────────────────────────
        r = raw.get("rvc", {}) or {}
        rvc = RVCConfig(
            model_path=str(r.get("model_path", Defaults.RVC_MODEL_PATH)),
            prefer_wait_s=int(r.get("prefer_wait_s", Defaults.RVC_PREFER_WAIT_S)),
            poll_attempts=int(r.get("poll_attempts", Defaults.RVC_POLL_ATTEMPTS)),
            poll_interval_s=float(r.get("poll_interval_s", Defaults.RVC_POLL_INTERVAL_S)),
        )
        cls._validate_range("rvc.prefer_wait_s", rvc.prefer_wait_s, 1, 60)
        cls._validate_positive("rvc.poll_attempts", rvc.poll_attempts)
        cls._validate_non_negative("rvc.poll_interval_s", rvc.poll_interval_s)

        # ─────────────────────────────────────────────────────────────────────
        # Seed-VC
        # ─────────────────────────────────────────────────────────────────────
        s = raw.get("seedvc", {}) or {}
        seedvc = SeedVCConfig(
            wake_timeout_s=float(s.get("wake_timeout_s", Defaults.SEEDVC_WAKE_TIMEOUT_S)),
            wake_settle_s=float(s.get("wake_settle_s", Defaults.SEEDVC_WAKE_SETTLE_S)),
            submit_timeout_s=float(s.get("submit_timeout_s", Defaults.SEEDVC_SUBMIT_TIMEOUT_S)),
            status_timeout_s=float(s.get("status_timeout_s", Defaults.SEEDVC_STATUS_TIMEOUT_S)),
            poll_interval_s=float(s.get("poll_interval_s", Defaults.SEEDVC_POLL_INTERVAL_S)),
            max_wait_s=float(s.get("max_wait_s", Defaults.SEEDVC_MAX_WAIT_S)),
        )
        cls._validate_positive("seedvc.status_timeout_s", seedvc.status_timeout_s)
        cls._validate_positive("seedvc.max_wait_s", seedvc.max_wait_s)
        cls._validate_non_negative("seedvc.poll_interval_s", seedvc.poll_interval_s)
        cls._validate_non_negative("seedvc.wake_settle_s", seedvc.wake_settle_s)
        if seedvc.status_timeout_s > seedvc.max_wait_s:
            raise ConfigValidationError("seedvc.status_timeout_s must not exceed seedvc.max_wait_s")

        # ─────────────────────────────────────────────────────────────────────
        # Song / stems / transcription polling
        # ─────────────────────────────────────────────────────────────────────
        pl = raw.get("polling", {}) or {}
        polling = PollingConfig(
            song_attempts=int(pl.get("song_attempts", Defaults.SONG_POLL_ATTEMPTS)),
            song_interval_s=float(pl.get("song_interval_s", Defaults.SONG_POLL_INTERVAL_S)),
            stems_attempts=int(pl.get("stems_attempts", Defaults.STEMS_POLL_ATTEMPTS)),
            stems_interval_s=float(pl.get("stems_interval_s", Defaults.STEMS_POLL_INTERVAL_S)),
            transcribe_attempts=int(pl.get("transcribe_attempts", Defaults.TRANSCRIBE_POLL_ATTEMPTS)),
            transcribe_interval_s=float(pl.get("transcribe_interval_s", Defaults.TRANSCRIBE_POLL_INTERVAL_S)),
        )
        cls._validate_positive("polling.song_attempts", polling.song_attempts)
        cls._validate_positive("polling.stems_attempts", polling.stems_attempts)
        cls._validate_positive("polling.transcribe_attempts", polling.transcribe_attempts)

        # ─────────────────────────────────────────────────────────────────────
        # Training
        # ─────────────────────────────────────────────────────────────────────
        t = raw.get("training", {}) or {}
        training = TrainingConfig(
            min_audio_bytes=int(t.get("min_audio_bytes", Defaults.TRAINING_MIN_AUDIO_BYTES)),
            epochs=int(t.get("epochs", Defaults.TRAINING_EPOCHS)),
            batch_size=int(t.get("batch_size", Defaults.TRAINING_BATCH_SIZE)),
            progress_floor=float(t.get("progress_floor", Defaults.TRAINING_PROGRESS_FLOOR)),
            progress_ceiling=float(t.get("progress_ceiling", Defaults.TRAINING_PROGRESS_CEILING)),
        )
        cls._validate_positive("training.min_audio_bytes", training.min_audio_bytes)
        cls._validate_positive("training.epochs", training.epochs)
        cls._validate_positive("training.batch_size", training.batch_size)
        cls._validate_range("training.progress_ceiling", training.progress_ceiling, 0, 99)
        cls._validate_range("training.progress_floor", training.progress_floor, 0, training.progress_ceiling)

        # ─────────────────────────────────────────────────────────────────────
        # Uploads
        # ─────────────────────────────────────────────────────────────────────
        u = raw.get("uploads", {}) or {}
        uploads = UploadConfig(
            replicate_max_kb=int(u.get("replicate_max_kb", Defaults.UPLOAD_REPLICATE_MAX_KB)),
            data_url_max_kb=int(u.get("data_url_max_kb", Defaults.UPLOAD_DATA_URL_MAX_KB)),
        )
        cls._validate_non_negative("uploads.replicate_max_kb", uploads.replicate_max_kb)
        cls._validate_non_negative("uploads.data_url_max_kb", uploads.data_url_max_kb)

        # ─────────────────────────────────────────────────────────────────────
        # Logging
        # ─────────────────────────────────────────────────────────────────────
        lg = raw.get("logging", {}) or {}
        log_level_raw = lg.get("level", Defaults.LOGGING_LEVEL)

        # Handle string log levels (e.g., "INFO", "DEBUG")
        if isinstance(log_level_raw, str):
            level_map = {
                "MINIMAL": 1, "1": 1,
                "NORMAL": 2, "INFO": 2, "2": 2,
                "VERBOSE": 3, "3": 3,
                "DEBUG": 4, "TRACE": 4, "4": 4,
            }
            log_level = level_map.get(log_level_raw.upper(), Defaults.LOGGING_LEVEL)
        else:
            log_level = int(log_level_raw)

        logging_cfg = LoggingConfig(
            url_preview_chars=int(lg.get("url_preview_chars", Defaults.LOGGING_URL_PREVIEW_CHARS)),
            level=log_level,
        )
        cls._validate_non_negative("logging.url_preview_chars", logging_cfg.url_preview_chars)
        cls._validate_range("logging.level", logging_cfg.level, 1, 4)

        return cls(
            endpoints=endpoints,
            rvc=rvc,
            seedvc=seedvc,
            polling=polling,
            training=training,
            uploads=uploads,
            logging=logging_cfg,
        )

    @staticmethod
    def _validate_positive(name: str, value: int | float) -> None:
        """Validate that a value is positive (> 0)."""
        if value <= 0:
            raise ConfigValidationError(f"{name} must be positive, got {value}")

    @staticmethod
    def _validate_non_negative(name: str, value: int | float) -> None:
        """Validate that a value is non-negative (>= 0)."""
        if value < 0:
            raise ConfigValidationError(f"{name} must be non-negative, got {value}")

    @staticmethod
    def _validate_range(name: str, value: int | float, min_val: int | float, max_val: int | float) -> None:
        """Validate that a value is within a range [min_val, max_val]."""
        if not (min_val <= value <= max_val):
            raise ConfigValidationError(f"{name} must be between {min_val} and {max_val}, got {value}")


@dataclass(frozen=True)
class Settings:
    """
    Immutable settings container loaded from YAML.

    This is the raw settings object before validation. Use
    get_service_config() to get validated ServiceConfig and
    get_credentials() for provider credentials.

    Attributes:
        raw: Dictionary of raw configuration values.
    """
    raw: Dict[str, Any]

    def get_service_config(self) -> ServiceConfig:
        """
        Get validated ServiceConfig from these settings.

        Raises:
            ConfigValidationError: If validation fails.
        """
        return ServiceConfig.from_settings(self)

    def get_credentials(self) -> ProviderCredentials:
        """Resolve provider credentials (environment wins over YAML)."""
        return ProviderCredentials.from_env(self.raw.get("credentials"))


def load_settings(path: str = "config/settings.yaml", missing_ok: bool = False) -> Settings:
    """
    Load settings from a YAML configuration file.

    Args:
        path: Path to the YAML configuration file.
        missing_ok: Return empty settings instead of raising when the
            file does not exist.

    Returns:
        Settings object with loaded configuration.

    Raises:
        FileNotFoundError: If the settings file doesn't exist and
            missing_ok is False.
    """
    p = Path(path)
    if not p.exists():
        if missing_ok:
            return Settings(raw={})
        raise FileNotFoundError(f"settings file not found: {p.resolve()}")

    with p.open("r", encoding="utf-8") as f:
        raw: Dict[str, Any] = yaml.safe_load(f) or {}

    return Settings(raw=raw)
