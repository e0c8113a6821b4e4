"""Shared plumbing for provider clients.

Every provider client subclasses UpstreamClient. A call opens its own
httpx.AsyncClient with an explicit timeout, so no request can stall a route
forever, and every outcome is logged and counted per service.

Tests swap the network out by handing clients an httpx.MockTransport, either
directly or by overriding the `upstream_transport` FastAPI dependency.
"""

import logging
import time

import httpx

from .errors import DeadlineExceeded, UpstreamError
from .metrics import observe_upstream

logger = logging.getLogger(__name__)

BROWSER_UA = (
    "Mozilla/5.0 (Windows NT 10.0; Win64; x64) AppleWebKit/537.36 "
    "(KHTML, like Gecko) Chrome/138.0.0.0 Safari/537.36"
)
APP_UA = "EstateValuate/1.0"


def upstream_transport() -> httpx.AsyncBaseTransport | None:
    """FastAPI dependency: None means 'use the real network'."""
    return None


class UpstreamClient:
    service = "upstream"
    follow_redirects = True

    def __init__(self, base_url: str = "", timeout: float = 15.0,
                 transport: httpx.AsyncBaseTransport | None = None,
                 headers: dict | None = None):
        self.base_url = base_url.rstrip("/")
        self.timeout = timeout
        self.transport = transport
        self.headers = headers or {}

    def _client(self) -> httpx.AsyncClient:
        return httpx.AsyncClient(
            timeout=httpx.Timeout(self.timeout),
            transport=self.transport,
            headers=self.headers,
            follow_redirects=self.follow_redirects,
        )

    async def _request(self, method: str, url: str, **kwargs) -> httpx.Response:
        """One HTTP call. Raises UpstreamError on transport failure or non-2xx."""
        start = time.perf_counter()
        try:
            async with self._client() as client:
                r = await client.request(method, url, **kwargs)
        except httpx.TimeoutException as exc:
            observe_upstream(self.service, "timeout", time.perf_counter() - start)
            raise DeadlineExceeded(f"{self.service} timed out after {self.timeout:g}s",
                                   service=self.service) from exc
        except httpx.HTTPError as exc:
            observe_upstream(self.service, "transport_error", time.perf_counter() - start)
            raise UpstreamError(f"{self.service} unreachable: {exc.__class__.__name__}",
                                service=self.service) from exc

        elapsed = time.perf_counter() - start
        if r.is_success:
            observe_upstream(self.service, "ok", elapsed)
            logger.info("%s %s -> %s (%.0f ms)", self.service, method, r.status_code, elapsed * 1000,
                        extra={"service": self.service, "upstream_status": r.status_code,
                               "elapsed_ms": round(elapsed * 1000)})
            return r

        observe_upstream(self.service, "http_error", elapsed)
        logger.warning("%s %s -> %s", self.service, method, r.status_code,
                       extra={"service": self.service, "upstream_status": r.status_code})
        raise UpstreamError(
            f"{self.service} returned HTTP {r.status_code}",
            service=self.service,
            upstream_status=r.status_code,
        )

    async def _json(self, method: str, url: str, **kwargs):
        r = await self._request(method, url, **kwargs)
        try:
            return r.json()
        except ValueError as exc:
            raise UpstreamError(f"{self.service} returned a non-JSON body",
                                service=self.service) from exc
