"""
Tests for the Replicate client and RVC direct conversion.

Replicate is faked with httpx.MockTransport; no network is used.
"""
import asyncio
import json

import httpx
import pytest

from songclone_ms.core.config import RVCConfig
from songclone_ms.core.errors import ProviderError
from songclone_ms.jobs import PollStatus
from songclone_ms.providers.replicate import ReplicateClient, classify, first_output
from songclone_ms.providers.rvc import (
    FEMALE_PRESET,
    MALE_PRESET,
    RVCClient,
    RVCModel,
    pick_gender_preset,
)

BASE = "https://api.replicate.test/v1"
RVC_PATH = "realistic-voice-cloning/predictions"


def run(coro_factory, providers):
    """Run an async test body with a MockTransport-backed client."""
    async def main():
        async with providers.client() as http:
            return await coro_factory(http)
    return asyncio.run(main())


class TestClassify:
    def test_succeeded_with_output(self):
        outcome = classify({"status": "succeeded", "output": "https://x"})
        assert outcome.status is PollStatus.SUCCESS
        assert outcome.payload["output"] == "https://x"

    def test_succeeded_without_output_is_pending(self):
        assert classify({"status": "succeeded", "output": None}).is_pending

    @pytest.mark.parametrize("status", ["failed", "canceled"])
    def test_terminal_failures(self, status):
        outcome = classify({"status": status, "error": "oom"})
        assert outcome.status is PollStatus.FAILURE
        assert outcome.reason == "oom"

    @pytest.mark.parametrize("status", ["starting", "processing", None])
    def test_pending(self, status):
        assert classify({"status": status}).is_pending

    def test_first_output(self):
        assert first_output(["a", "b"]) == "a"
        assert first_output("a") == "a"
        assert first_output([]) is None
        assert first_output({"vocals": "a"}) is None


class TestReplicateClient:
    def test_create_sends_auth_and_prefer(self, providers):
        providers.add("POST", "/predictions", httpx.Response(201, json={"id": "p1", "status": "starting"}))
        result = run(lambda http: ReplicateClient(http, "tok", BASE).create_prediction(
            "predictions", {"input": {}}, prefer_wait=55), providers)
        request = providers.requests[0]
        assert result["id"] == "p1"
        assert request.headers["Authorization"] == "Bearer tok"
        assert request.headers["Prefer"] == "wait=55"
        assert str(request.url) == f"{BASE}/predictions"

    def test_create_error_raises(self, providers):
        providers.add("POST", "/predictions", httpx.Response(422, text="bad input"))
        with pytest.raises(ProviderError) as exc_info:
            run(lambda http: ReplicateClient(http, "tok", BASE).create_prediction("predictions", {}), providers)
        assert exc_info.value.details["status"] == 422

    def test_network_error_is_provider_error(self, providers):
        def refuse(request):
            raise httpx.ConnectError("refused", request=request)

        providers.add("POST", "/predictions", refuse)
        with pytest.raises(ProviderError) as exc_info:
            run(lambda http: ReplicateClient(http, "tok", BASE).create_prediction("predictions", {}), providers)
        assert exc_info.value.code == "PROVIDER_FAILED"
        assert exc_info.value.details == {"reason": "ConnectError"}

    def test_read_timeout_outlasts_prefer_wait(self, providers):
        providers.add("POST", "/predictions", httpx.Response(201, json={"id": "p1", "status": "starting"}))
        run(lambda http: ReplicateClient(http, "tok", BASE).create_prediction(
            "predictions", {"input": {}}, prefer_wait=120), providers)
        timeout = providers.requests[0].extensions["timeout"]
        assert timeout["read"] > 120

    def test_plain_calls_keep_client_timeout(self, providers):
        providers.add("POST", "/predictions", httpx.Response(201, json={"id": "p1", "status": "starting"}))

        async def body(http):
            return await ReplicateClient(http, "tok", BASE).create_prediction("predictions", {})

        async def main():
            async with httpx.AsyncClient(transport=providers.transport, timeout=30.0) as http:
                return await body(http)

        asyncio.run(main())
        assert providers.requests[0].extensions["timeout"]["read"] == 30.0

    def test_status_read_network_error_is_pending(self, providers):
        def refuse(request):
            raise httpx.ConnectError("refused", request=request)

        providers.add("GET", "/predictions/p1", refuse)
        outcome = run(lambda http: ReplicateClient(http, "tok", BASE).probe("p1"), providers)
        assert outcome.is_pending

    def test_get_prediction_error_is_none(self, providers):
        providers.add("GET", "/predictions/p1", httpx.Response(500))
        result = run(lambda http: ReplicateClient(http, "tok", BASE).get_prediction("p1"), providers)
        assert result is None

    def test_upload_prefers_urls_get(self, providers):
        providers.add("POST", "/files", httpx.Response(201, json={
            "urls": {"get": "https://files/abc"}, "url": "https://other"}))
        url = run(lambda http: ReplicateClient(http, "tok", BASE).upload_file(
            b"zipbytes", "voice-dataset.zip", "application/zip"), providers)
        assert url == "https://files/abc"
        body = providers.requests[0].read()
        assert b'name="content"' in body
        assert b'filename="voice-dataset.zip"' in body

    def test_upload_falls_back_to_url(self, providers):
        providers.add("POST", "/files", httpx.Response(201, json={"url": "https://files/xyz"}))
        url = run(lambda http: ReplicateClient(http, "tok", BASE).upload_file(b"x", "a.wav", "audio/wav"),
                  providers)
        assert url == "https://files/xyz"


class TestPickGenderPreset:
    @pytest.mark.parametrize("gender", ["m", "M", "male", "Male"])
    def test_male(self, gender):
        assert pick_gender_preset(gender) == MALE_PRESET

    @pytest.mark.parametrize("gender", ["f", "female", "", None, "x"])
    def test_female_default(self, gender):
        assert pick_gender_preset(gender) == FEMALE_PRESET


class TestRVCClient:
    """Tests for RVCClient.convert()."""

    def _convert(self, providers, model, sleeps=None):
        async def sleep(seconds):
            if sleeps is not None:
                sleeps.append(seconds)

        async def body(http):
            client = RVCClient(ReplicateClient(http, "tok", BASE), RVCConfig(), sleep=sleep)
            return await client.convert("https://cdn/song.mp3", 2, model)

        return run(body, providers)

    def test_trained_model_input(self, providers):
        providers.add("POST", RVC_PATH, httpx.Response(201, json={"status": "succeeded", "output": "https://out"}))
        url = self._convert(providers, RVCModel.trained("https://models/me.pth"))
        assert url == "https://out"
        sent = json.loads(providers.requests[0].read())["input"]
        assert sent["rvc_model"] == "CUSTOM"
        assert sent["custom_rvc_model_download_url"] == "https://models/me.pth"
        assert sent["song_input"] == "https://cdn/song.mp3"
        assert sent["pitch_change"] == 2
        assert sent["index_rate"] == 0.5
        assert sent["filter_radius"] == 3
        assert sent["rms_mix_rate"] == 0.25
        assert sent["protect"] == 0.33
        assert providers.requests[0].headers["Prefer"] == "wait=55"

    def test_preset_input_and_list_output(self, providers):
        providers.add("POST", RVC_PATH, httpx.Response(201, json={"status": "succeeded", "output": ["https://o1"]}))
        url = self._convert(providers, RVCModel.preset(MALE_PRESET))
        assert url == "https://o1"
        sent = json.loads(providers.requests[0].read())["input"]
        assert sent["rvc_model"] == "OG"
        assert "custom_rvc_model_download_url" not in sent

    def test_pending_then_polled(self, providers):
        sleeps = []
        providers.add("POST", RVC_PATH, httpx.Response(201, json={"id": "p9", "status": "processing"}))
        providers.add("GET", "/predictions/p9", [
            httpx.Response(200, json={"id": "p9", "status": "processing"}),
            httpx.Response(200, json={"id": "p9", "status": "succeeded", "output": "https://late"}),
        ])
        url = self._convert(providers, RVCModel.preset(FEMALE_PRESET), sleeps)
        assert url == "https://late"
        assert sleeps == [5.0, 5.0]

    def test_poll_budget_exhausted(self, providers):
        sleeps = []
        providers.add("POST", RVC_PATH, httpx.Response(201, json={"id": "p9", "status": "starting"}))
        providers.add("GET", "/predictions/p9", httpx.Response(200, json={"id": "p9", "status": "processing"}))
        url = self._convert(providers, RVCModel.preset(FEMALE_PRESET), sleeps)
        assert url is None
        assert len(providers.calls("GET", "/predictions/p9")) == 3
        assert sleeps == [5.0, 5.0, 5.0]

    def test_failed_prediction(self, providers):
        providers.add("POST", RVC_PATH, httpx.Response(201, json={"id": "p9", "status": "failed", "error": "x"}))
        assert self._convert(providers, RVCModel.preset(FEMALE_PRESET)) is None
        assert providers.calls("GET", "/predictions") == []

    def test_http_error_returns_none(self, providers):
        providers.add("POST", RVC_PATH, httpx.Response(500, text="boom"))
        assert self._convert(providers, RVCModel.preset(FEMALE_PRESET)) is None

    def test_network_error_returns_none(self, providers):
        def refuse(request):
            raise httpx.ConnectError("refused", request=request)

        providers.add("POST", RVC_PATH, refuse)
        assert self._convert(providers, RVCModel.preset(FEMALE_PRESET)) is None
