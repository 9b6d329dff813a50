"""Shared fixtures: fake time, mock providers and a StudioService around them."""
from __future__ import annotations

import os

import pytest


class FakeClock:
    """Monotonic clock advanced only by FakeClock.sleep."""

    def __init__(self):
        self.now = 0.0
        self.sleeps = []

    def __call__(self) -> float:
        return self.now

    async def sleep(self, seconds: float) -> None:
        self.sleeps.append(seconds)
        self.now += seconds


@pytest.fixture
def fake_clock():
    return FakeClock()


@pytest.fixture(autouse=True)
def clean_credentials(monkeypatch):
    """Tests never see real provider credentials from the environment."""
    for name in ("REPLICATE_API_TOKEN", "KIE_API_KEY", "UPLOADCARE_PUBLIC_KEY", "SONGCLONE_SETTINGS"):
        monkeypatch.delenv(name, raising=False)
    os.environ.setdefault("SONGCLONE_NO_COLOR", "1")
    yield


class MockProviders:
    """
    Routes requests made through an httpx.MockTransport.

    Routes are matched in registration order on method and a substring
    of the URL. A route's reply is an httpx.Response, a callable taking
    the request, or a list of either (consumed in order, the last one
    repeating). Unmatched requests get a 404. Every request is recorded.
    """

    def __init__(self):
        self.routes = []
        self.requests = []

    def add(self, method, fragment, reply):
        self.routes.append([method.upper(), fragment, reply])
        return self

    def handler(self, request):
        import httpx

        self.requests.append(request)
        for route in self.routes:
            method, fragment, reply = route
            if request.method != method or fragment not in str(request.url):
                continue
            if isinstance(reply, list):
                current = reply.pop(0) if len(reply) > 1 else reply[0]
            else:
                current = reply
            if callable(current):
                return current(request)
            # fresh copy: a Response object can only be sent once
            return httpx.Response(current.status_code, headers=current.headers, content=current.content)
        return httpx.Response(404, json={"detail": "not found"})

    @property
    def transport(self):
        import httpx

        return httpx.MockTransport(self.handler)

    def client(self):
        import httpx

        return httpx.AsyncClient(transport=self.transport)

    def calls(self, method, fragment):
        return [r for r in self.requests if r.method == method.upper() and fragment in str(r.url)]


@pytest.fixture
def providers():
    return MockProviders()


TEST_PROVIDERS = {
    "replicate_base_url": "https://api.replicate.test/v1",
    "kie_base_url": "https://api.kie.test/api/v1",
    "seedvc_space_url": "https://seed.space.test",
    "uploadcare_upload_url": "https://upload.test/base/",
    "uploadcare_cdn_url": "https://cdn.test",
}


@pytest.fixture
def make_service(providers, fake_clock):
    """Build a StudioService wired to the mock providers and fake time."""
    from songclone_ms.core.config import ProviderCredentials, Settings
    from songclone_ms.services.studio_service import StudioService

    def build(**credentials):
        return StudioService(
            Settings(raw={"providers": dict(TEST_PROVIDERS)}),
            transport=providers.transport,
            credentials=ProviderCredentials(**credentials),
            sleep=fake_clock.sleep,
            clock=fake_clock,
        )

    return build
