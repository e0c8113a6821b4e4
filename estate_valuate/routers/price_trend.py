import re

from fastapi import APIRouter, Depends, Query

from ..core.config import settings
from ..core.errors import InvalidParameter
from ..core.http import upstream_transport
from ..data.trends_client import trends_client
from ..services.price_trend_service import PriceTrendService

router = APIRouter()

_SLUG = re.compile(r"^[a-z0-9_]+$")

def service_dep(transport=Depends(upstream_transport)) -> PriceTrendService:
    return PriceTrendService(trends_client(transport=transport))

@router.get("/price-trend")
async def get_price_trend(
    city: str | None = Query(default=None),
    district: str | None = Query(default=None),
    category: str | None = Query(default=None),
    svc: PriceTrendService = Depends(service_dep),
):
    """
    Monthly price-per-m² series. Always 200 for well-formed input; the
    `success` flag says whether any data was found.
    """
    city = city or "ha_noi"
    district = district or "thanh_xuan"
    category = category or settings.TREND_DEFAULT_CATEGORY
    for name, value in (("city", city), ("district", district), ("category", category)):
        if not _SLUG.match(value):
            raise InvalidParameter(f"Invalid {name}: expected a lowercase slug like 'thanh_xuan'")
    return await svc.trend(city, district, category)
