from typing import Any, Dict, Iterable, List

import httpx

from .base import GeoPoint, UTILITY_TYPES, UtilitiesClient, UtilitiesResult
from ..core.config import Settings, settings as default_settings
from ..core.errors import UpstreamError
from ..core.http import APP_UA, UpstreamClient


def group_utilities(items: Iterable[Dict[str, Any]],
                    types: Iterable[str] = UTILITY_TYPES) -> Dict[str, List[Dict[str, Any]]]:
    """Every requested type gets a key; upstream order is kept inside each group."""
    grouped: Dict[str, List[Dict[str, Any]]] = {t: [] for t in types}
    for item in items:
        bucket = grouped.get(item.get("type"))
        if bucket is not None:
            bucket.append(item)
    return grouped


class RestaUtilities(UpstreamClient, UtilitiesClient):
    service = "resta-utilities"

    def __init__(self, base_url: str, timeout: float = 15.0,
                 transport: httpx.AsyncBaseTransport | None = None,
                 types: Iterable[str] = UTILITY_TYPES):
        super().__init__(base_url, timeout=timeout, transport=transport,
                         headers={"accept": "application/json", "user-agent": APP_UA})
        self.types = tuple(types)

    async def nearby(self, point: GeoPoint, distance: float, size: int) -> UtilitiesResult:
        payload = await self._json(
            "GET", f"{self.base_url}/map-utilities",
            params={
                "type": ",".join(self.types),
                "lat": point.lat,
                "lng": point.lng,
                "_distance": f"{distance:g}",
                "_size": size,
            },
        )
        items = payload.get("data") if isinstance(payload, dict) else None
        if not isinstance(items, list):
            raise UpstreamError("utilities response has no data list", service=self.service)
        return UtilitiesResult(
            total=payload.get("total", len(items)),
            items=items,
            grouped=group_utilities(items, self.types),
        )


def utilities_client(cfg: Settings = default_settings, transport=None) -> RestaUtilities:
    return RestaUtilities(cfg.RESTA_BASE_URL, timeout=cfg.HTTP_TIMEOUT_SECONDS, transport=transport)
