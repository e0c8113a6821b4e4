from datetime import datetime
from typing import Any, List, Optional

import httpx

from .base import TrendsClient, TrendPoint
from ..core.config import Settings, settings as default_settings
from ..core.http import APP_UA, UpstreamClient
from ..core.utils import round_half_up


def _parse_date(value: str) -> Optional[datetime]:
    text = str(value).strip().replace("Z", "+00:00")
    try:
        dt = datetime.fromisoformat(text)
    except ValueError:
        try:
            dt = datetime.strptime(text[:7], "%Y-%m")
        except ValueError:
            return None
    # Compare wall-clock dates only; mixing aware and naive values breaks sorting
    return dt.replace(tzinfo=None)


def to_trend_series(payload: Any, category: str) -> List[TrendPoint]:
    """
    Provider payload -> chart series for one category.

    Items without a date or a unit price are dropped, the rest are sorted
    oldest first. `price` is millions of VND per m²; the raw figure is kept.
    """
    items = payload.get(category) if isinstance(payload, dict) else None
    if not isinstance(items, list):
        return []

    dated = []
    for item in items:
        if not isinstance(item, dict) or not item.get("createdDate") or not item.get("pricePerUnit"):
            continue
        dt = _parse_date(item["createdDate"])
        if dt is None:
            continue
        dated.append((dt, item))
    dated.sort(key=lambda pair: pair[0])

    series: List[TrendPoint] = []
    for dt, item in dated:
        raw = float(item["pricePerUnit"])
        series.append(TrendPoint(
            month=f"T{dt.month}/{dt.year % 100:02d}",
            price=round_half_up(raw / 1_000_000),
            price_raw=raw,
            count=item.get("count"),
            min_price=item.get("minPrice"),
            max_price=item.get("maxPrice"),
            date=item["createdDate"],
        ))
    return series


class RestaTrends(UpstreamClient, TrendsClient):
    service = "resta-trends"

    def __init__(self, base_url: str, date_from: str, date_to: str, timeout: float = 15.0,
                 transport: httpx.AsyncBaseTransport | None = None):
        super().__init__(base_url, timeout=timeout, transport=transport,
                         headers={"accept": "application/json", "user-agent": APP_UA})
        self.date_from = date_from
        self.date_to = date_to

    async def price_series(self, city: str, district: str, category: str) -> List[TrendPoint]:
        # createdDate appears twice: lower and upper bound
        params = [
            ("address.city", city),
            ("address.district", district),
            ("category", category),
            ("createdDate", f"gte{self.date_from}"),
            ("createdDate", f"lte{self.date_to}"),
        ]
        payload = await self._json("GET", f"{self.base_url}/v2/market-real-estate-prices/aggregate",
                                   params=params)
        return to_trend_series(payload, category)


def trends_client(cfg: Settings = default_settings, transport=None) -> RestaTrends:
    return RestaTrends(cfg.RESTA_BASE_URL, cfg.TREND_FROM, cfg.TREND_TO,
                       timeout=cfg.HTTP_TIMEOUT_SECONDS, transport=transport)
