"""
songclone-ms: Song Generation and Voice Cloning Facade.

Turns a short voice recording into a full song and optionally re-sings that
song in the user's own voice by coordinating several independent third-party
generation providers.

Providers:
    - Kie.ai (Suno V5): Song generation from lyrics/prompt
    - Replicate RVC: Voice conversion with a trained or preset model
    - Replicate train-rvc-model: Offline voice model training
    - Replicate demucs / whisper: Stem separation and transcription
    - Seed-VC (Gradio space): Zero-shot voice conversion
    - Uploadcare: Public hosting for reference audio

Key Features:
    - Three-tier voice conversion fallback (trained -> zero-shot -> preset)
    - Bounded polling of slow asynchronous provider jobs
    - Never fails a clone request: degrades to the original song
    - Single-entry ZIP packaging of training data (stored, CRC-32)
    - Training progress estimated from provider logs

Example Usage:
    >>> import asyncio
    >>> from songclone_ms.core.config import Settings
    >>> from songclone_ms.services import StudioService, VoiceCloneRequest
    >>>
    >>> service = StudioService(Settings(raw={}))
    >>> result = asyncio.run(service.clone_voice(
    ...     VoiceCloneRequest(song_url="https://cdn.example.com/song.mp3")
    ... ))
    >>> print(result.method, result.url)
"""

__version__ = "0.1.0"
__all__ = ["__version__"]
