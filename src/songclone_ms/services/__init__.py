"""
Service Layer for songclone-ms.

    - studio_service.py: StudioService facade used by the API and CLI
    - voice_clone.py: Three-tier voice clone orchestration
    - training.py: Training packaging and progress estimation
    - validators.py: Request validation, run before any provider call
"""
from songclone_ms.core.errors import (
    ConfigurationError,
    ErrorCode,
    PollTimeoutError,
    ProviderError,
    ServiceError,
    ValidationError,
)
from songclone_ms.services.studio_service import (
    StemsResult,
    StudioService,
    get_service,
    reset_service,
)
from songclone_ms.services.training import (
    TrainingPackager,
    TrainingProgressEstimator,
    TrainingReport,
    TrainingStatus,
)
from songclone_ms.services.voice_clone import (
    CloneMethod,
    CloneTier,
    FallbackResult,
    Gender,
    VoiceCloneOrchestrator,
    VoiceCloneRequest,
)

__all__ = [
    "CloneMethod",
    "CloneTier",
    "ConfigurationError",
    "ErrorCode",
    "FallbackResult",
    "Gender",
    "PollTimeoutError",
    "ProviderError",
    "ServiceError",
    "StemsResult",
    "StudioService",
    "TrainingPackager",
    "TrainingProgressEstimator",
    "TrainingReport",
    "TrainingStatus",
    "ValidationError",
    "VoiceCloneOrchestrator",
    "VoiceCloneRequest",
    "get_service",
    "reset_service",
]
