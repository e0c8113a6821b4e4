"""
Client for the planning backend (a small FastAPI service that fronts
guland.vn) and for guland's public pricing table.

Backend answers look like {"success": bool, "data": ..., "status_code": int};
they are re-shaped to {"success", "data", "status"} for the proxy routes.
"""

import logging
import time
from typing import Any, Dict, List, Tuple

import httpx

from ..core.config import Settings, settings as default_settings
from ..core.http import BROWSER_UA, UpstreamClient
from ..schemas import PricingRequest

logger = logging.getLogger(__name__)

PRICING_COLUMNS = (
    "id", "district_name", "ward_name", "road_name",
    "vt1", "vt2", "vt3", "vt4", "vt5", "type",
)
_SEARCHABLE_COLUMNS = ("district_name", "ward_name", "road_name")


def build_pricing_query(req: PricingRequest, now_ms: int | None = None) -> List[Tuple[str, str]]:
    """
    Simplified pricing filters -> the DataTables query string the pricing
    table expects. Order matters to nobody but keeps URLs diffable.
    """
    q: List[Tuple[str, str]] = [
        ("draw", str(req.draw)),
        ("start", str(req.start)),
        ("length", str(req.length)),
    ]
    for i, col in enumerate(PRICING_COLUMNS):
        value = getattr(req, col) if col in _SEARCHABLE_COLUMNS else ""
        q += [
            (f"columns[{i}][data]", col),
            (f"columns[{i}][name]", col),
            (f"columns[{i}][searchable]", "true"),
            (f"columns[{i}][orderable]", "true"),
            (f"columns[{i}][search][regex]", "false"),
            (f"columns[{i}][search][value]", value or ""),
        ]
    q += [
        ("search[value]", req.search_value or ""),
        ("search[regex]", "true" if req.search_regex else "false"),
        ("province_id", req.province_id or "01"),
    ]
    if req.district_id:
        q.append(("district_id", req.district_id))
    if req.road_id:
        q.append(("road_id", req.road_id))
    stamp = req.timestamp or str(now_ms if now_ms is not None else int(time.time() * 1000))
    q.append(("_", stamp))
    return q


def _wrap(response: Any) -> Dict[str, Any]:
    if not isinstance(response, dict):
        return {"success": True, "data": response, "status": None}
    return {
        "success": bool(response.get("success")),
        "data": response.get("data"),
        "status": response.get("status_code"),
    }


class GulandClient(UpstreamClient):
    service = "guland"

    def __init__(self, base_url: str, auth_token: str | None = None, pricing_url: str = "",
                 timeout: float = 30.0, transport: httpx.AsyncBaseTransport | None = None):
        headers = {"content-type": "application/json"}
        if auth_token:
            headers["authorization"] = f"Bearer {auth_token}"
        super().__init__(base_url, timeout=timeout, transport=transport, headers=headers)
        self.pricing_url = pricing_url

    async def health(self) -> Dict[str, Any]:
        data = await self._json("GET", f"{self.base_url}/health")
        return {"success": True, "data": data, "message": "Server is healthy"}

    async def planning_data(self, body: Dict[str, Any]) -> Dict[str, Any]:
        return _wrap(await self._json("POST", f"{self.base_url}/get-planning-data", json=body))

    async def geocoding(self, lat: float, lng: float, path: str) -> Dict[str, Any]:
        return _wrap(await self._json("GET", f"{self.base_url}/geocoding",
                                      params={"lat": lat, "lng": lng, "path": path}))

    async def geocoding_post(self, lat: float, lng: float, path: str) -> Dict[str, Any]:
        return _wrap(await self._json("POST", f"{self.base_url}/geocoding-post",
                                      json={"lat": lat, "lng": lng, "path": path}))

    async def check_plan(self, params: Dict[str, Any]) -> Dict[str, Any]:
        clean = {k: v for k, v in params.items() if v is not None}
        return _wrap(await self._json("GET", f"{self.base_url}/check-plan", params=clean))

    async def road_points(self, params: Dict[str, Any]) -> Dict[str, Any]:
        return _wrap(await self._json("GET", f"{self.base_url}/road-points", params=params))

    async def refresh_token(self) -> Dict[str, Any]:
        logger.info("refreshing planning backend CSRF token")
        return _wrap(await self._json("POST", f"{self.base_url}/refresh-token"))

    async def map_service(self, lat: float, lng: float) -> Any:
        return await self._json("GET", f"{self.base_url}/map-service", params={"lat": lat, "lng": lng})

    async def detail_layer(self, layer_id: str) -> httpx.Response:
        """Raw response: the layer comes back as JSON or as an image."""
        return await self._request("GET", f"{self.base_url}/map-service/detail-layer",
                                   params={"id": layer_id})

    async def pricing(self, req: PricingRequest) -> Any:
        return await self._json(
            "GET", self.pricing_url,
            params=build_pricing_query(req),
            headers={
                "accept": "application/json, text/javascript, */*; q=0.01",
                "accept-language": "en-US,en;q=0.9,vi;q=0.8",
                "cache-control": "no-cache",
                "referer": "https://guland.vn/",
                "user-agent": BROWSER_UA,
                "x-requested-with": "XMLHttpRequest",
            },
        )


def guland_client(cfg: Settings = default_settings, transport=None) -> GulandClient:
    return GulandClient(cfg.GULAND_SERVER_URL, cfg.GULAND_AUTH_TOKEN, cfg.GULAND_PRICING_URL,
                        timeout=cfg.GULAND_TIMEOUT_SECONDS, transport=transport)
