import hmac
from datetime import datetime, timezone

from fastapi import Header, HTTPException, Request
from starlette.status import HTTP_401_UNAUTHORIZED, HTTP_429_TOO_MANY_REQUESTS

from .cache import counters
from .config import settings


def require_api_key(x_api_key: str | None = Header(default=None, alias="x-api-key")):
    """
    Header-based API key check on /api routes. No API_KEY configured means open access.
    """
    if not settings.API_KEY:
        return
    if not x_api_key or not hmac.compare_digest(x_api_key, settings.API_KEY):
        raise HTTPException(status_code=HTTP_401_UNAUTHORIZED, detail="Invalid API key")


def _caller(request: Request) -> str:
    peer = request.client.host if request.client else "unknown"
    # X-Forwarded-For is caller-controlled unless the peer is one of our proxies
    trusted = {p.strip() for p in settings.TRUSTED_PROXIES.split(",") if p.strip()}
    forwarded = request.headers.get("x-forwarded-for")
    if forwarded and peer in trusted:
        # Rightmost hop that is not a proxy of ours is the real client
        for hop in reversed([h.strip() for h in forwarded.split(",") if h.strip()]):
            if hop not in trusted:
                return hop
    return peer


def rate_limit(request: Request):
    """
    Requests per minute per (API key, caller). RATE_LIMIT_RPM=0 turns it off.
    """
    rpm = settings.RATE_LIMIT_RPM
    if rpm <= 0:
        return
    api_key = request.headers.get("x-api-key") or "anon"
    minute_bucket = datetime.now(timezone.utc).strftime("%Y%m%d%H%M")
    if counters.incr(f"rate:{api_key}:{_caller(request)}:{minute_bucket}") > rpm:
        raise HTTPException(status_code=HTTP_429_TOO_MANY_REQUESTS, detail="Rate limit exceeded")
