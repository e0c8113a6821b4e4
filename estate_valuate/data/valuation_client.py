import json
import logging

import httpx

from ..core.config import Settings, settings as default_settings
from ..core.errors import UpstreamError
from ..core.http import UpstreamClient
from ..core.utils import mask_secret

logger = logging.getLogger(__name__)


class RestaValuation(UpstreamClient):
    """
    Bearer-authenticated valuation backend. It wants the JSON payload sent
    as text/plain.
    """
    service = "resta-valuation"

    def __init__(self, base_url: str, timeout: float = 15.0,
                 transport: httpx.AsyncBaseTransport | None = None):
        super().__init__(base_url, timeout=timeout, transport=transport,
                         headers={"accept-encoding": "gzip", "user-agent": "Dart/2.19 (dart:io)"})

    async def evaluate(self, payload: dict, auth_token: str) -> dict:
        token = auth_token[7:] if auth_token.lower().startswith("bearer ") else auth_token
        logger.info("valuation request transId=%s token=%s", payload.get("transId"), mask_secret(token))
        return await self._json(
            "POST", f"{self.base_url}/real-estate-evaluations",
            content=json.dumps(payload, ensure_ascii=False).encode("utf-8"),
            headers={
                "authorization": f"Bearer {token}",
                "content-type": "text/plain; charset=utf-8",
            },
        )


def route_error(exc: UpstreamError) -> UpstreamError:
    """What a route answers when the backend refused: 401 gets its own message, other statuses pass through."""
    if exc.upstream_status == 401:
        return UpstreamError("Authentication failed: token is invalid or expired",
                             service=exc.service, status_code=401)
    return exc.forwarded()


def valuation_client(cfg: Settings = default_settings, transport=None) -> RestaValuation:
    return RestaValuation(cfg.RESTA_BASE_URL, timeout=cfg.HTTP_TIMEOUT_SECONDS, transport=transport)
