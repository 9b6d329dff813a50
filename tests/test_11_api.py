"""
Tests for the HTTP API.

The StudioService dependency is overridden with one wired to mock
providers, so no request leaves the process.
"""
import base64

import httpx
import pytest
from fastapi.testclient import TestClient

from songclone_ms.api.dependencies import get_studio_service
from songclone_ms.main import create_app

SONG = "https://cdn.test/song.mp3"


@pytest.fixture
def api(make_service):
    """Return a factory: credentials -> TestClient."""
    app = create_app()

    def build(**credentials):
        service = make_service(**credentials)
        app.dependency_overrides[get_studio_service] = lambda: service
        return TestClient(app)

    yield build
    app.dependency_overrides.clear()


class TestCloneEndpoint:
    def test_fallback_is_still_200(self, api):
        r = api().post("/v1/voice/clone", json={"songUrl": SONG})
        assert r.status_code == 200
        body = r.json()
        assert body["success"] is True
        assert body["method"] == "none"
        assert body["url"] == SONG
        assert len(r.headers["X-Request-Id"]) == 12

    def test_preset(self, api, providers):
        providers.add("POST", "realistic-voice-cloning", httpx.Response(
            201, json={"status": "succeeded", "output": "https://rvc/out.mp3"}))
        r = api(replicate_api_token="tok").post(
            "/v1/voice/clone", json={"songUrl": SONG, "gender": "M", "pitchShift": -2})
        assert r.status_code == 200
        assert r.json()["method"] == "preset"
        assert "OG" in r.json()["note"]

    def test_missing_song_url(self, api):
        r = api().post("/v1/voice/clone", json={})
        assert r.status_code == 400
        assert r.json()["error"] == "SONG_URL_REQUIRED"
        assert r.json()["ok"] is False

    def test_pitch_out_of_range(self, api):
        r = api().post("/v1/voice/clone", json={"songUrl": SONG, "pitchShift": 30})
        assert r.status_code == 400
        assert r.json()["error"] == "PITCH_SHIFT_OUT_OF_RANGE"

    def test_snake_case_accepted(self, api):
        r = api().post("/v1/voice/clone", json={"song_url": SONG})
        assert r.status_code == 200


class TestTrainEndpoints:
    def test_missing_token_is_500(self, api):
        audio = base64.b64encode(b"x" * 20000).decode()
        r = api().post("/v1/voice/train", json={"audioBase64": audio})
        assert r.status_code == 500
        assert r.json()["error"] == "CONFIGURATION_MISSING"

    def test_too_short(self, api):
        audio = base64.b64encode(b"x" * 100).decode()
        r = api(replicate_api_token="tok").post("/v1/voice/train", json={"audioBase64": audio})
        assert r.status_code == 400
        assert r.json()["error"] == "AUDIO_TOO_SHORT"

    def test_started(self, api, providers):
        providers.add("POST", "/files", httpx.Response(201, json={"url": "https://files/ds.zip"}))
        providers.add("POST", "train-rvc-model", httpx.Response(201, json={"id": "tr1"}))
        audio = base64.b64encode(b"x" * 20000).decode()
        r = api(replicate_api_token="tok").post("/v1/voice/train", json={"audioBase64": audio})
        assert r.status_code == 200
        assert r.json() == {"success": True, "trainingJobId": "tr1", "status": "TRAINING"}

    def test_status_complete(self, api, providers):
        providers.add("GET", "/predictions/tr1", httpx.Response(
            200, json={"status": "succeeded", "output": "https://m/me.zip"}))
        r = api(replicate_api_token="tok").get("/v1/voice/train/tr1")
        assert r.status_code == 200
        assert r.json()["status"] == "COMPLETE"
        assert r.json()["modelUrl"] == "https://m/me.zip"
        assert r.json()["progress"] == 100

    def test_status_network_error_is_502(self, api, providers):
        def refuse(request):
            raise httpx.ReadTimeout("slow", request=request)

        providers.add("GET", "/predictions/job1", refuse)
        r = api(replicate_api_token="tok").get("/v1/voice/train/job1")
        assert r.status_code == 502
        assert r.json()["error"] == "PROVIDER_FAILED"


class TestSongEndpoints:
    def test_create(self, api, providers):
        providers.add("POST", "/generate", httpx.Response(200, json={"code": 200, "data": {"taskId": "t1"}}))
        r = api(kie_api_key="k").post("/v1/songs", json={"lyrics": "la la", "vocalGender": "male"})
        assert r.status_code == 200
        assert r.json()["taskId"] == "t1"
        assert b'"vocalGender":"m"' in providers.requests[0].read().replace(b" ", b"")

    def test_provider_error_is_502(self, api, providers):
        providers.add("POST", "/generate", httpx.Response(200, json={"code": 500, "msg": "busy"}))
        r = api(kie_api_key="k").post("/v1/songs", json={"prompt": "rock song"})
        assert r.status_code == 502
        assert r.json()["error"] == "PROVIDER_FAILED"

    def test_network_error_is_502(self, api, providers):
        def refuse(request):
            raise httpx.ConnectError("refused", request=request)

        providers.add("POST", "/generate", refuse)
        r = api(kie_api_key="k").post("/v1/songs", json={"prompt": "rock song"})
        assert r.status_code == 502
        assert r.json()["error"] == "PROVIDER_FAILED"
        assert r.json()["details"] == {"reason": "ConnectError"}

    def test_status_pending(self, api, providers):
        providers.add("GET", "/record-info", httpx.Response(200, json={"code": 200, "data": {"status": "PENDING"}}))
        r = api(kie_api_key="k").get("/v1/songs/t1")
        assert r.json() == {"taskId": "t1", "status": "PENDING", "ready": False}


class TestStemsTranscribeEndpoints:
    def test_stems_timeout_is_504(self, api, providers):
        providers.add("POST", "/predictions", httpx.Response(201, json={"id": "s1", "status": "starting"}))
        providers.add("GET", "/predictions/s1", httpx.Response(200, json={"status": "processing"}))
        r = api(replicate_api_token="tok").post("/v1/stems", json={"audioUrl": SONG})
        assert r.status_code == 504
        assert r.json()["error"] == "TIMEOUT"

    def test_transcribe(self, api, providers):
        providers.add("POST", "/predictions", httpx.Response(201, json={"status": "succeeded", "output": "hello"}))
        r = api(replicate_api_token="tok").post("/v1/transcribe", json={"audioUrl": SONG})
        assert r.json() == {"text": "hello"}


class TestUploadEndpoints:
    def test_data_url_fallback(self, api):
        r = api().post("/v1/uploads", json={"audioBase64": base64.b64encode(b"abc").decode(),
                                            "contentType": "audio/wav"})
        assert r.status_code == 200
        assert r.json()["hosted"] is False
        assert r.json()["url"].startswith("data:audio/wav;base64,")

    def test_invalid_base64(self, api):
        r = api().post("/v1/uploads", json={"audioBase64": "@@@"})
        assert r.status_code == 400
        assert r.json()["error"] == "AUDIO_INVALID_BASE64"

    def test_config(self, api):
        r = api(uploadcare_public_key="pub").get("/v1/uploads/config")
        assert r.json() == {"uploadcare": True, "replicate": False, "kie": False}


class TestOperationalEndpoints:
    def test_health(self, api):
        r = api().get("/health")
        assert r.status_code == 200
        assert r.json()["service"] == "songclone-ms"

    def test_metrics(self, api):
        client = api()
        client.post("/v1/voice/clone", json={"songUrl": SONG})
        r = client.get("/metrics")
        assert r.status_code == 200
        assert "songclone_requests_total" in r.text
        assert "songclone_clone_results_total" in r.text
