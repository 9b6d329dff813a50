"""
Provider Clients.

One module per remote service; none of them hold state beyond the
httpx.AsyncClient and credentials they are constructed with.

    - replicate.py: Replicate REST (predictions, files)
    - rvc.py: RVC voice conversion on Replicate (trained and preset tiers)
    - seedvc.py: Seed-VC zero-shot conversion on a Gradio space
    - kie.py: Kie.ai song generation
    - uploads.py: Uploadcare / Replicate / data: URL upload chain
"""
from songclone_ms.providers.kie import KieClient, SongRequest, SongTrack
from songclone_ms.providers.replicate import ReplicateClient
from songclone_ms.providers.rvc import RVCClient, RVCModel, pick_gender_preset
from songclone_ms.providers.seedvc import SeedVCClient, scan_event_stream
from songclone_ms.providers.uploads import UploadResult, UploadService

__all__ = [
    "KieClient",
    "SongRequest",
    "SongTrack",
    "ReplicateClient",
    "RVCClient",
    "RVCModel",
    "pick_gender_preset",
    "SeedVCClient",
    "scan_event_stream",
    "UploadResult",
    "UploadService",
]
