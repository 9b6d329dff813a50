"""
FastAPI REST API Layer for songclone-ms.

This package defines all HTTP endpoints:
    - routes.py: Voice, song, stem, transcription and upload endpoints,
      plus /health and /metrics
    - schemas.py: Request/response Pydantic models
    - dependencies.py: FastAPI dependency injection
"""
