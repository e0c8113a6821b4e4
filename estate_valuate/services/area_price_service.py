import asyncio
import logging

from ..core.config import settings
from ..core.errors import DeadlineExceeded
from ..data.base import AreaPriceSource, GeoPoint, PriceTable, ReverseGeocoder

logger = logging.getLogger(__name__)


class AreaPriceService:
    """
    Orchestrates:
      point → reverse-geocode keyword → suggestion hrefs → detail pages (concurrently) → merged table

    All-or-nothing: one failing page fails the lookup. Fragments are merged
    in href order, so a later href wins a label collision no matter which
    page answered first.
    """
    def __init__(self, geocoder: ReverseGeocoder, source: AreaPriceSource,
                 deadline_seconds: float = settings.AGGREGATE_TIMEOUT_SECONDS):
        self.geocoder = geocoder
        self.source = source
        self.deadline_seconds = deadline_seconds

    async def lookup(self, point: GeoPoint) -> PriceTable:
        try:
            return await asyncio.wait_for(self._lookup(point), timeout=self.deadline_seconds)
        except asyncio.TimeoutError:
            raise DeadlineExceeded(
                f"area price lookup exceeded {self.deadline_seconds:g}s", service="area-prices"
            ) from None

    async def _lookup(self, point: GeoPoint) -> PriceTable:
        keyword = await self.geocoder.reverse_keyword(point)
        hrefs = await self.source.suggest_hrefs(keyword)
        if not hrefs:
            return {}

        # gather returns results in argument order, not completion order
        fragments = await asyncio.gather(*(self.source.price_fragment(h) for h in hrefs))

        merged: PriceTable = {}
        for fragment in fragments:
            merged.update(fragment)
        logger.info("area prices for %r: %d labels from %d pages", keyword, len(merged), len(hrefs))
        return merged
