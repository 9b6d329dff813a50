"""
Command-Line Interface for songclone-ms.

Runs the StudioService operations without the HTTP server. Credentials
come from the environment (REPLICATE_API_TOKEN, KIE_API_KEY,
UPLOADCARE_PUBLIC_KEY) or the settings file.

Usage Examples:
    # Clone a song with a hosted voice sample
    songclone-ms clone https://cdn.example.com/song.mp3 \\
        --sample https://cdn.example.com/me.webm --gender M --pitch -2

    # Start training from a local recording
    songclone-ms train my_voice.wav

    # Check a training run
    songclone-ms training-status abc123 --json

    # Generate a song and wait for it
    songclone-ms song --lyrics "la la la" --style Pop --wait

    # Build the training archive locally (no network)
    songclone-ms zip my_voice.wav --out dataset.zip

Environment Variables:
    SONGCLONE_SETTINGS: Settings file (default: config/settings.yaml)
    SONGCLONE_LOG_LEVEL: Log verbosity (1-4)
"""

from __future__ import annotations

import argparse
import asyncio
import json
import os
from pathlib import Path
from typing import Any, Dict, List, Optional
from uuid import uuid4

from songclone_ms.core.config import load_settings
from songclone_ms.core.errors import ServiceError
from songclone_ms.core.logging import configure_logging, get_logger, info, set_request_id
from songclone_ms.providers.kie import DEFAULT_STYLE, DEFAULT_TITLE, SongRequest
from songclone_ms.services.studio_service import StudioService
from songclone_ms.services.training import DATASET_ENTRY_NAME
from songclone_ms.services.validators import validate_gender, validate_pitch_shift
from songclone_ms.services.voice_clone import VoiceCloneRequest
from songclone_ms.utils.archive import SingleEntryZipBuilder


def _parse_args(argv: Optional[List[str]] = None) -> argparse.Namespace:
    parser = argparse.ArgumentParser(prog="songclone-ms", description="songclone-ms CLI")
    parser.add_argument("--settings", help="Settings YAML path")
    parser.add_argument("--json", action="store_true", help="Print JSON result")

    sub = parser.add_subparsers(dest="command", required=True)

    clone = sub.add_parser("clone", help="Re-sing a song in your voice")
    clone.add_argument("song_url")
    clone.add_argument("--model", help="Trained model URL")
    clone.add_argument("--sample", help="Hosted voice sample URL")
    clone.add_argument("--gender", default="F", help="M or F (preset voice)")
    clone.add_argument("--pitch", type=int, default=0, help="Pitch shift in semitones")

    train = sub.add_parser("train", help="Start voice model training")
    train.add_argument("audio", help="Recording to train on")
    train.add_argument("--content-type", default="audio/wav")

    status = sub.add_parser("training-status", help="Check a training run")
    status.add_argument("job_id")

    song = sub.add_parser("song", help="Generate a song")
    song.add_argument("--prompt")
    song.add_argument("--lyrics")
    song.add_argument("--style", default=DEFAULT_STYLE)
    song.add_argument("--title", default=DEFAULT_TITLE)
    song.add_argument("--instrumental", action="store_true")
    song.add_argument("--vocal-gender", default="F")
    song.add_argument("--wait", action="store_true", help="Poll until the song is ready")

    zip_cmd = sub.add_parser("zip", help="Build the training archive locally")
    zip_cmd.add_argument("audio")
    zip_cmd.add_argument("--out", default="voice-dataset.zip")

    return parser.parse_args(argv)


async def _run(args: argparse.Namespace, service: StudioService) -> Dict[str, Any]:
    if args.command == "clone":
        request = VoiceCloneRequest(
            song_url=args.song_url,
            trained_model_ref=args.model,
            raw_sample_url=args.sample,
            gender=validate_gender(args.gender),
            pitch_shift=validate_pitch_shift(args.pitch),
        )
        return (await service.clone_voice(request)).to_dict()

    if args.command == "train":
        audio = Path(args.audio).read_bytes()
        job_id = await service.submit_training(audio, args.content_type)
        return {"success": True, "trainingJobId": job_id, "status": "TRAINING"}

    if args.command == "training-status":
        return (await service.training_status(args.job_id)).to_dict()

    if args.command == "song":
        request = SongRequest(
            prompt=args.prompt,
            lyrics=args.lyrics,
            style=args.style,
            title=args.title,
            instrumental=args.instrumental,
            vocal_gender=validate_gender(args.vocal_gender).lower(),
        )
        task_id = await service.start_song(request)
        if not args.wait:
            return {"success": True, "taskId": task_id, "status": "PENDING"}
        track = await service.wait_for_song(task_id)
        return {"success": True, "taskId": task_id, **track.to_dict()}

    raise SystemExit(f"Unknown command: {args.command}")


def _zip(args: argparse.Namespace) -> Dict[str, Any]:
    builder = SingleEntryZipBuilder(DATASET_ENTRY_NAME, Path(args.audio).read_bytes())
    out = Path(args.out)
    out.parent.mkdir(parents=True, exist_ok=True)
    data = builder.build()
    out.write_bytes(data)
    return {"ok": True, "out": str(out), "bytes": len(data), "crc32": f"{builder.entry.crc32:08x}"}


def _print(payload: Dict[str, Any], as_json: bool) -> None:
    if as_json:
        print(json.dumps(payload, ensure_ascii=False))
    else:
        for key, value in payload.items():
            print(f"{key}: {value}")


def main(argv: Optional[List[str]] = None) -> int:
    """
    Main CLI entry point.

    Returns:
        Exit code: 0 on success, 1 on a service error, 2 on a missing
        input file.
    """
    args = _parse_args(argv)

    configure_logging()
    log = get_logger("songclone-ms.cli")
    set_request_id(str(uuid4())[:12])

    try:
        if args.command == "zip":
            payload = _zip(args)
        else:
            path = args.settings or os.getenv("SONGCLONE_SETTINGS", "config/settings.yaml")
            service = StudioService(load_settings(path, missing_ok=True))
            info(log, "cli_command", command=args.command)
            payload = asyncio.run(_run(args, service))
    except FileNotFoundError as e:
        _print({"ok": False, "error": "FILE_NOT_FOUND", "message": str(e)}, args.json)
        return 2
    except ServiceError as e:
        _print(e.to_dict(), args.json)
        return 1

    _print(payload, args.json)
    return 0


if __name__ == "__main__":
    raise SystemExit(main())
