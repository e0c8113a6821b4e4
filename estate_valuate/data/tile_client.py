import ipaddress
from dataclasses import dataclass
from urllib.parse import urlparse

import httpx

from ..core.config import Settings, settings as default_settings
from ..core.errors import InvalidParameter, UpstreamError
from ..core.http import UpstreamClient


@dataclass
class Tile:
    content: bytes
    content_type: str


def allowed_tile_hosts(cfg: Settings) -> frozenset[str]:
    """Hosts of the planning layer templates plus TILE_ALLOWED_HOSTS."""
    hosts = {
        urlparse(template).hostname
        for template in (cfg.PLANNING_TILE_QH2030, cfg.PLANNING_TILE_QH500, cfg.PLANNING_TILE_QHPK)
    }
    hosts.update(h.strip().lower() for h in cfg.TILE_ALLOWED_HOSTS.split(","))
    return frozenset(h for h in hosts if h)


def _is_internal(host: str) -> bool:
    try:
        ip = ipaddress.ip_address(host)
    except ValueError:
        return host == "localhost" or host.endswith(".localhost")
    return ip.is_private or ip.is_loopback or ip.is_link_local or ip.is_reserved or ip.is_unspecified


class TileProxy(UpstreamClient):
    """Fetches raster tiles server-side so the browser avoids CORS and referer checks.

    Only hosts in `allowed_hosts` are fetched, and redirects are not followed,
    so the proxy cannot be pointed at internal addresses.
    """
    service = "tiles"
    follow_redirects = False

    def __init__(self, allowed_hosts: frozenset[str], timeout: float = 30.0,
                 transport: httpx.AsyncBaseTransport | None = None):
        super().__init__("", timeout=timeout, transport=transport, headers={
            "user-agent": ("Mozilla/5.0 (Windows NT 10.0; Win64; x64) AppleWebKit/537.36 "
                           "(KHTML, like Gecko) Chrome/91.0.4472.124 Safari/537.36"),
            "referer": "https://maps.google.com/",
        })
        self.allowed_hosts = allowed_hosts

    def check_url(self, url: str) -> None:
        parsed = urlparse(url)
        if parsed.scheme not in ("http", "https") or not parsed.hostname:
            raise InvalidParameter("url must be an absolute http(s) URL")
        host = parsed.hostname.lower()
        if _is_internal(host) or host not in self.allowed_hosts:
            raise InvalidParameter("url host is not an allowed tile server")

    async def fetch(self, url: str) -> Tile:
        self.check_url(url)
        try:
            r = await self._request("GET", url)
        except UpstreamError as exc:
            if exc.upstream_status and 300 <= exc.upstream_status < 400:
                raise UpstreamError("tile server redirected", service=self.service,
                                    status_code=502) from exc
            raise
        return Tile(content=r.content, content_type=r.headers.get("content-type") or "image/png")


def tile_client(cfg: Settings = default_settings, transport=None) -> TileProxy:
    return TileProxy(allowed_tile_hosts(cfg), timeout=cfg.TILE_TIMEOUT_SECONDS, transport=transport)
