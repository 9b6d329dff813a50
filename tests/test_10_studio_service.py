"""
Tests for the StudioService facade, end to end against mock providers.
"""
import asyncio
import json

import httpx
import pytest

from songclone_ms.core.config import Settings
from songclone_ms.core.errors import ConfigurationError, PollTimeoutError, ProviderError, ValidationError
from songclone_ms.providers.kie import SongRequest
from songclone_ms.services import (
    CloneMethod,
    StudioService,
    TrainingStatus,
    VoiceCloneRequest,
    get_service,
    reset_service,
)
from songclone_ms.services.studio_service import extract_stems, extract_text

SONG = "https://cdn.test/song.mp3"
SAMPLE = "https://cdn.test/me.webm"
RVC_PATH = "realistic-voice-cloning/predictions"


class TestCloneVoice:
    def test_no_credentials_no_sample_makes_no_request(self, make_service, providers):
        result = asyncio.run(make_service().clone_voice(VoiceCloneRequest(song_url=SONG)))
        assert result.method is CloneMethod.NONE
        assert result.url == SONG
        assert providers.requests == []

    def test_no_credentials_zero_shot(self, make_service, providers):
        providers.add("POST", "/call/predict_1", httpx.Response(200, json={"event_id": "e1"}))
        providers.add("GET", "/call/predict_1/e1",
                      httpx.Response(200, text='event: complete\ndata: [null, {"url": "https://seed/out.wav"}]\n'))
        providers.add("GET", "seed.space.test", httpx.Response(200))
        result = asyncio.run(make_service().clone_voice(
            VoiceCloneRequest(song_url=SONG, raw_sample_url=SAMPLE)))
        assert result.method is CloneMethod.ZERO_SHOT
        assert result.url == "https://seed/out.wav"

    def test_preset_with_replicate(self, make_service, providers):
        providers.add("POST", RVC_PATH, httpx.Response(201, json={"status": "succeeded", "output": "https://rvc/out"}))
        result = asyncio.run(make_service(replicate_api_token="tok").clone_voice(
            VoiceCloneRequest(song_url=SONG, gender="M", pitch_shift=2)))
        assert result.method is CloneMethod.PRESET
        sent = json.loads(providers.requests[0].read())["input"]
        assert sent["rvc_model"] == "OG"
        assert sent["pitch_change"] == 2

    def test_invalid_song_url(self, make_service, providers):
        with pytest.raises(ValidationError):
            asyncio.run(make_service().clone_voice(VoiceCloneRequest(song_url="ftp://x")))
        assert providers.requests == []


class TestTraining:
    def test_submit_requires_token(self, make_service, providers):
        with pytest.raises(ConfigurationError):
            asyncio.run(make_service().submit_training(b"x" * 20000))
        assert providers.requests == []

    def test_submit(self, make_service, providers):
        providers.add("POST", "/files", httpx.Response(201, json={"url": "https://files/ds.zip"}))
        providers.add("POST", "train-rvc-model", httpx.Response(201, json={"id": "tr1", "status": "starting"}))
        job_id = asyncio.run(make_service(replicate_api_token="tok").submit_training(b"x" * 20000))
        assert job_id == "tr1"

    def test_status(self, make_service, providers):
        providers.add("GET", "/predictions/tr1",
                      httpx.Response(200, json={"status": "processing", "logs": "Epoch 3\nEpoch 6"}))
        report = asyncio.run(make_service(replicate_api_token="tok").training_status("tr1"))
        assert report.status is TrainingStatus.TRAINING
        assert report.progress == 27

    def test_status_read_failure(self, make_service, providers):
        providers.add("GET", "/predictions/tr1", httpx.Response(404))
        with pytest.raises(ProviderError):
            asyncio.run(make_service(replicate_api_token="tok").training_status("tr1"))


class TestSongs:
    def test_start_requires_key(self, make_service):
        with pytest.raises(ConfigurationError):
            asyncio.run(make_service().start_song(SongRequest(prompt="p")))

    def test_start_requires_text(self, make_service, providers):
        with pytest.raises(ValidationError):
            asyncio.run(make_service(kie_api_key="k").start_song(SongRequest()))
        assert providers.requests == []

    def test_check_ready(self, make_service, providers):
        providers.add("GET", "/record-info", httpx.Response(200, json={"code": 200, "data": {
            "status": "SUCCESS", "response": {"sunoData": [{"audioUrl": "https://s.mp3", "title": "Mine"}]}}}))
        result = asyncio.run(make_service(kie_api_key="k").check_song("t1"))
        assert result["ready"] is True
        assert result["audioUrl"] == "https://s.mp3"
        assert result["title"] == "Mine"

    def test_check_failed(self, make_service, providers):
        providers.add("GET", "/record-info", httpx.Response(200, json={"code": 200, "data": {
            "status": "CREATE_TASK_FAILED", "errorMessage": "bad lyrics"}}))
        result = asyncio.run(make_service(kie_api_key="k").check_song("t1"))
        assert result == {"taskId": "t1", "status": "FAILED", "ready": False, "error": "bad lyrics"}

    def test_wait_times_out(self, make_service, providers):
        providers.add("GET", "/record-info", httpx.Response(200, json={"code": 200, "data": {"status": "PENDING"}}))
        with pytest.raises(PollTimeoutError):
            asyncio.run(make_service(kie_api_key="k").wait_for_song("t1"))


class TestStemsAndTranscription:
    def test_stems_inline(self, make_service, providers):
        providers.add("POST", "/predictions", httpx.Response(201, json={
            "id": "s1", "status": "succeeded", "output": {"vocals": "https://v.wav", "no_vocals": "https://i.wav"}}))
        stems = asyncio.run(make_service(replicate_api_token="tok").separate_stems(SONG))
        assert stems.to_dict() == {"vocalsUrl": "https://v.wav", "instrumentalUrl": "https://i.wav"}
        assert providers.requests[0].headers["Prefer"] == "wait=120"
        assert providers.requests[0].extensions["timeout"]["read"] > 120

    def test_stems_polled(self, make_service, providers):
        providers.add("POST", "/predictions", httpx.Response(201, json={"id": "s1", "status": "processing"}))
        providers.add("GET", "/predictions/s1", [
            httpx.Response(200, json={"status": "processing"}),
            httpx.Response(200, json={"status": "succeeded", "output": ["https://v.wav", "https://i.wav"]}),
        ])
        stems = asyncio.run(make_service(replicate_api_token="tok").separate_stems(SONG))
        assert stems.vocals_url == "https://v.wav"
        assert stems.instrumental_url == "https://i.wav"

    def test_transcribe_base64(self, make_service, providers):
        providers.add("POST", "/predictions", httpx.Response(201, json={
            "id": "w1", "status": "succeeded", "output": {"text": " hello there "}}))
        text = asyncio.run(make_service(replicate_api_token="tok").transcribe(audio_base64="QUJD"))
        assert text == "hello there"
        sent = json.loads(providers.requests[0].read())["input"]
        assert sent["audio"] == "data:audio/webm;base64,QUJD"
        assert sent["task"] == "transcribe"

    def test_transcribe_needs_input(self, make_service):
        with pytest.raises(ValidationError):
            asyncio.run(make_service(replicate_api_token="tok").transcribe())


class TestHelpers:
    def test_extract_stems_other_and_fallback(self):
        assert extract_stems({"vocals": "v", "other": "o"}, SONG).instrumental_url == "o"
        assert extract_stems(["v"], SONG).instrumental_url == SONG

    def test_extract_stems_no_vocals(self):
        with pytest.raises(ProviderError):
            extract_stems({}, SONG)

    def test_extract_text_shapes(self):
        assert extract_text("hi ") == "hi"
        assert extract_text({"transcription": "yo"}) == "yo"
        assert extract_text([{"text": "a"}, {"text": " b"}]) == "a b"


class TestServiceInfo:
    def test_upload_config(self, make_service):
        assert make_service(uploadcare_public_key="p").upload_config() == {
            "uploadcare": True, "replicate": False, "kie": False}

    def test_health_has_no_secrets(self, make_service):
        info = make_service(replicate_api_token="very-secret").get_health_info()
        assert info["ok"] is True
        assert info["providers"]["replicate"] is True
        assert "very-secret" not in json.dumps(info)

    def test_singleton(self):
        reset_service()
        try:
            first = get_service(Settings(raw={}))
            assert get_service(Settings(raw={})) is first
            assert isinstance(first, StudioService)
        finally:
            reset_service()
