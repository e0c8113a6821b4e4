"""Shared fixtures for the estate-valuate test suite.

Provides a FastAPI test client and a way to swap every upstream provider
for an httpx.MockTransport, so no test touches the network.
"""

import os

import httpx
import pytest

# Settings are read at import time; pin them BEFORE importing the app
os.environ["RATE_LIMIT_RPM"] = "0"
os.environ["MODEL_PROVIDER"] = "mock"
os.environ["PROMETHEUS_ENABLED"] = "true"
os.environ["GULAND_SERVER_URL"] = "http://planning.test"
os.environ["MAPBOX_ACCESS_TOKEN"] = "test-mapbox-token"
os.environ.pop("API_KEY", None)

from fastapi.testclient import TestClient  # noqa: E402

from estate_valuate.core.http import upstream_transport  # noqa: E402
from estate_valuate.main import app  # noqa: E402


@pytest.fixture()
def client():
    """Server errors come back as 500 envelopes instead of being re-raised."""
    with TestClient(app, raise_server_exceptions=False) as c:
        yield c


@pytest.fixture()
def upstream():
    """Install a request handler as the upstream network.

    Returns the list every outgoing request is appended to, so tests can
    assert on what was (or was not) sent.
    """
    calls = []

    def install(handler):
        def recording(request: httpx.Request) -> httpx.Response:
            calls.append(request)
            return handler(request)

        app.dependency_overrides[upstream_transport] = lambda: httpx.MockTransport(recording)
        return calls

    yield install
    app.dependency_overrides.pop(upstream_transport, None)


def refuse(request: httpx.Request) -> httpx.Response:
    """Handler for tests that must not reach any provider."""
    raise AssertionError(f"unexpected upstream call: {request.method} {request.url}")
