import os
from pydantic import BaseModel


def _strip_bearer(raw: str | None) -> str | None:
    if raw and raw.lower().startswith("bearer "):
        return raw[7:].strip()
    return raw


class Settings(BaseModel):
    # Basic
    ENV: str = os.getenv("ENV", "dev")
    CACHE_TTL_SECONDS: int = int(os.getenv("CACHE_TTL_SECONDS", "60"))

    # Timeouts (seconds)
    HTTP_TIMEOUT_SECONDS: float = float(os.getenv("HTTP_TIMEOUT_SECONDS", "15"))
    GULAND_TIMEOUT_SECONDS: float = float(os.getenv("GULAND_TIMEOUT_SECONDS", "30"))
    TILE_TIMEOUT_SECONDS: float = float(os.getenv("TILE_TIMEOUT_SECONDS", "30"))
    LLM_TIMEOUT_SECONDS: float = float(os.getenv("LLM_TIMEOUT_SECONDS", "120"))
    AGGREGATE_TIMEOUT_SECONDS: float = float(os.getenv("AGGREGATE_TIMEOUT_SECONDS", "30"))

    # Geocoding
    GOONG_KEY: str | None = os.getenv("GOONG_KEY")
    GOONG_COOKIE: str | None = os.getenv("GOONG_COOKIE")
    GOONG_BASE_URL: str = os.getenv("GOONG_BASE_URL", "https://maps.goong.io/api/goong")
    MAPBOX_ACCESS_TOKEN: str | None = os.getenv("MAPBOX_ACCESS_TOKEN") or os.getenv("NEXT_PUBLIC_MAPBOX_ACCESS_TOKEN")
    MAPBOX_BASE_URL: str = os.getenv("MAPBOX_BASE_URL", "https://api.mapbox.com/search/searchbox/v1")

    # Area prices
    CAFELAND_TOKEN: str | None = os.getenv("CAFELAND_TOKEN")
    CAFELAND_BASE_URL: str = os.getenv("CAFELAND_BASE_URL", "https://nhadat.cafeland.vn")

    # Listings / trends / utilities / valuation
    RESTA_BASE_URL: str = os.getenv("RESTA_BASE_URL", "https://apis.resta.vn/erest-listing")
    TREND_FROM: str = os.getenv("TREND_FROM", "2024-07")
    TREND_TO: str = os.getenv("TREND_TO", "2025-06-30")
    TREND_DEFAULT_CATEGORY: str = os.getenv("TREND_DEFAULT_CATEGORY", "nha_mat_pho")

    # Planning backend
    GULAND_SERVER_URL: str = (
        os.getenv("GULAND_SERVER_URL") or os.getenv("NEXT_PUBLIC_GULAND_SERVER_URL") or "http://localhost:8000"
    )
    GULAND_AUTH_TOKEN: str | None = os.getenv("GULAND_AUTH_TOKEN")
    GULAND_PRICING_URL: str = os.getenv("GULAND_PRICING_URL", "https://guland.vn/seo/pricing.data")

    # Planning tile layers ({z}/{x}/{y} templates)
    PLANNING_TILE_QH2030: str = os.getenv(
        "PLANNING_TILE_QH2030", "https://l5cfglaebpobj.vcdn.cloud/ha-noi-2030-2/{z}/{x}/{y}.png"
    )
    PLANNING_TILE_QH500: str = os.getenv(
        "PLANNING_TILE_QH500", "https://s3-han02.fptcloud.com/guland/hn-qhxd-2/{z}/{x}/{y}.png"
    )
    PLANNING_TILE_QHPK: str = os.getenv(
        "PLANNING_TILE_QHPK", "https://s3-hn-2.cloud.cmctelecom.vn/guland4/hanoi-qhpk2/{z}/{x}/{y}.png"
    )
    # Extra hosts the tile proxy may fetch from, on top of the planning layer hosts
    TILE_ALLOWED_HOSTS: str = os.getenv("TILE_ALLOWED_HOSTS", "")

    # LLM
    MODEL_PROVIDER: str = os.getenv("MODEL_PROVIDER", "mock")  # mock | openai
    AI_PROXY_URL: str | None = os.getenv("AI_SERVER_PROXY_URL") or os.getenv("PROXY_SERVER_URL")
    AI_PROXY_API_KEY: str | None = _strip_bearer(
        os.getenv("AI_SERVER_PROXY_API_KEY") or os.getenv("PROXY_SERVER_API_KEY")
    )
    AI_PROXY_MODEL: str = os.getenv("PROXY_SERVER_MODEL", "pplx-claude-4.0-sonnet")
    OPENAI_API_KEY: str | None = os.getenv("OPENAI_API_KEY")
    OPENAI_MODEL: str = os.getenv("OPENAI_MODEL", "gpt-4o-mini")

    # Security
    API_KEY: str | None = os.getenv("API_KEY")
    RATE_LIMIT_RPM: int = int(os.getenv("RATE_LIMIT_RPM", "120"))  # 0 disables
    # Peers whose X-Forwarded-For is believed (comma-separated IPs of the fronting proxies)
    TRUSTED_PROXIES: str = os.getenv("TRUSTED_PROXIES", "")

    # CORS
    ALLOW_ORIGINS: str = os.getenv("ALLOW_ORIGINS", "*")

    # Cache
    USE_REDIS: bool = os.getenv("USE_REDIS", "false").lower() == "true"
    REDIS_URL: str = os.getenv("REDIS_URL", "redis://localhost:6379/0")

    # Metrics
    PROMETHEUS_ENABLED: bool = os.getenv("PROMETHEUS_ENABLED", "true").lower() == "true"

settings = Settings()
