import logging
from typing import Any, Dict, List

from ..core.config import settings
from ..core.errors import UpstreamError
from ..data.base import TrendPoint, TrendsClient

logger = logging.getLogger(__name__)

NO_DATA_MESSAGE = "Không có dữ liệu xu hướng giá cho khu vực và loại bất động sản này."


class PriceTrendService:
    """
    Primary → Fallback → NoData.

    The caller's category is tried first. An error or an empty series moves
    on to the default category, unless that is what was just tried. If both
    come back empty the answer is a NoData result, never an exception.
    """
    def __init__(self, client: TrendsClient, default_category: str = settings.TREND_DEFAULT_CATEGORY):
        self.client = client
        self.default_category = default_category

    async def _attempt(self, city: str, district: str, category: str) -> List[TrendPoint]:
        try:
            return await self.client.price_series(city, district, category)
        except UpstreamError as exc:
            logger.warning("trend fetch failed for %s/%s/%s: %s", city, district, category, exc.message)
            return []
        except (TypeError, ValueError):
            logger.warning("malformed trend payload for %s/%s/%s", city, district, category, exc_info=True)
            return []

    async def trend(self, city: str, district: str, category: str) -> Dict[str, Any]:
        series = await self._attempt(city, district, category)
        if series:
            return self._result(series, category, fallback=False)

        if category != self.default_category:
            logger.info("no %s trend for %s/%s, trying %s", category, city, district, self.default_category)
            series = await self._attempt(city, district, self.default_category)
            if series:
                out = self._result(series, self.default_category, fallback=True)
                out["fallbackInfo"] = f"Fallback to {self.default_category} from {category}"
                return out

        return {
            "success": False,
            "data": [],
            "category": category,
            "fallback": False,
            "message": NO_DATA_MESSAGE,
        }

    @staticmethod
    def _result(series: List[TrendPoint], category: str, fallback: bool) -> Dict[str, Any]:
        return {
            "success": True,
            "data": [p.as_dict() for p in series],
            "source": "api",
            "category": category,
            "fallback": fallback,
        }
