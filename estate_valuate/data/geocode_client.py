import logging
import re
from typing import Any, Dict

import httpx

from .base import AddressResolution, GeoPoint, LocationClient, ReverseGeocoder
from ..core.config import Settings, settings as default_settings
from ..core.errors import NoResults, UpstreamError
from ..core.http import BROWSER_UA, UpstreamClient

logger = logging.getLogger(__name__)

NO_ADDRESS = "N/A"

_ADMIN_PREFIX = re.compile(r"(Quận|Thành Phố|Phố|Phường|Đường)\s*", re.IGNORECASE)
_SEPARATOR = re.compile(r"\s*,\s*")
_EDGE_COMMA = re.compile(r"^,|,$")
_HOUSE_NUMBER = re.compile(r"^\d+\s*")
_STREET = re.compile(r"Đường\s+([^,]+),(.+)")


def _strip_admin(text: str) -> str:
    text = _ADMIN_PREFIX.sub("", text)
    text = _SEPARATOR.sub(", ", text)
    text = _EDGE_COMMA.sub("", text)
    return text.strip()


def normalize_keyword(address: str | None, formatted_address: str | None = None) -> str:
    """
    Turn a reverse-geocoded address into a short area-search keyword.

    "12 Đ. Lê Văn Lương, Phường Nhân Chính, Quận Thanh Xuân, Hà Nội"
        -> "Lê Văn Lương, Nhân Chính, Thanh Xuân, Hà Nội"

    Short addresses (two commas or fewer) are too coarse, so the provider's
    formatted_address is used for those instead. Returns "N/A" when nothing
    usable is left.
    """
    if not address:
        return NO_ADDRESS

    if address.count(",") <= 2:
        if not formatted_address:
            return NO_ADDRESS
        text = formatted_address.replace("Đ.", "Đường")
        text = _HOUSE_NUMBER.sub("", text)
    else:
        text = address.replace("Đ.", "Đường")
        text = _HOUSE_NUMBER.sub("", text)
        m = _STREET.search(text)
        if m:
            text = f"{m.group(1)},{m.group(2)}"

    return _strip_admin(text) or NO_ADDRESS


class GoongGeocode(UpstreamClient, ReverseGeocoder):
    """
    Reverse geocoding through Goong; only the first result is used.
    """
    service = "goong"

    def __init__(self, base_url: str, api_key: str | None, cookie: str | None = None,
                 timeout: float = 15.0, transport: httpx.AsyncBaseTransport | None = None):
        headers = {
            "accept": "application/json, text/plain, */*",
            "accept-language": "en-US,en;q=0.9,vi;q=0.8",
            "referer": "https://maps.goong.io/",
            "user-agent": BROWSER_UA,
        }
        if cookie:
            headers["cookie"] = cookie
        super().__init__(base_url, timeout=timeout, transport=transport, headers=headers)
        self.api_key = api_key

    async def reverse_keyword(self, point: GeoPoint) -> str:
        data = await self._json(
            "GET", f"{self.base_url}/geocode",
            params={"latlng": f"{point.lat},{point.lng}", "api_key": self.api_key or ""},
        )
        if not isinstance(data, dict):
            raise UpstreamError("goong geocode returned an unexpected body", service=self.service)
        status = data.get("status")
        if status not in (None, "OK", "ZERO_RESULTS"):
            raise UpstreamError(f"goong geocode status {status}", service=self.service)
        results = data.get("results") or []
        if not results:
            raise NoResults("No geocoding results for these coordinates")

        first = results[0]
        keyword = normalize_keyword(first.get("address"), first.get("formatted_address"))
        logger.info("reverse keyword for %.5f,%.5f: %s", point.lat, point.lng, keyword)
        return keyword


def parse_location(data: Dict[str, Any]) -> AddressResolution:
    """Resta's compact feature keys: c/d/w = city/district/ward, g = [lng, lat], dt = text."""
    features = data.get("features") or []
    if not features:
        raise NoResults("No location information found", status_code=404)
    f = features[0] or {}
    return AddressResolution(
        city=f.get("c") or "",
        district=f.get("d") or "",
        ward=f.get("w") or "",
        formatted_address=f.get("dt") or "",
        coordinates=f.get("g") or [],
        polygon=f.get("polygon") or [],
        bounding_box=f.get("bb") or [],
    )


class RestaLocation(UpstreamClient, LocationClient):
    service = "resta-location"

    def __init__(self, base_url: str, timeout: float = 15.0,
                 transport: httpx.AsyncBaseTransport | None = None):
        super().__init__(base_url, timeout=timeout, transport=transport,
                         headers={"accept-encoding": "gzip", "user-agent": "Dart/2.19 (dart:io)"})

    async def resolve(self, point: GeoPoint) -> tuple[dict, AddressResolution]:
        data = await self._json(
            "GET", f"{self.base_url}/features/location",
            params={"latitude": point.lat, "longitude": point.lng},
        )
        return data, parse_location(data)


class MapboxSearch(UpstreamClient):
    """Forward search, biased to Vietnamese addresses."""
    service = "mapbox"

    def __init__(self, base_url: str, access_token: str | None, timeout: float = 15.0,
                 transport: httpx.AsyncBaseTransport | None = None):
        super().__init__(base_url, timeout=timeout, transport=transport,
                         headers={"accept": "*/*", "referer": "https://docs.mapbox.com/"})
        self.access_token = access_token

    async def forward(self, query: str, limit: int = 5) -> dict:
        if not self.access_token:
            raise UpstreamError("Mapbox access token is not configured", service=self.service)
        return await self._json(
            "GET", f"{self.base_url}/forward",
            params={
                "q": query,
                "country": "vn",
                "types": "address,street,district,city",
                "auto_complete": "true",
                "language": "vi",
                "limit": limit,
                "access_token": self.access_token,
            },
        )


def goong_client(cfg: Settings = default_settings, transport=None) -> GoongGeocode:
    return GoongGeocode(cfg.GOONG_BASE_URL, cfg.GOONG_KEY, cfg.GOONG_COOKIE,
                        timeout=cfg.HTTP_TIMEOUT_SECONDS, transport=transport)


def location_client(cfg: Settings = default_settings, transport=None) -> RestaLocation:
    return RestaLocation(cfg.RESTA_BASE_URL, timeout=cfg.HTTP_TIMEOUT_SECONDS, transport=transport)


def mapbox_client(cfg: Settings = default_settings, transport=None) -> MapboxSearch:
    return MapboxSearch(cfg.MAPBOX_BASE_URL, cfg.MAPBOX_ACCESS_TOKEN,
                        timeout=cfg.HTTP_TIMEOUT_SECONDS, transport=transport)
