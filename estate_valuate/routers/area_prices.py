from fastapi import APIRouter, Depends, Query

from ..core.errors import NoResults
from ..core.http import upstream_transport
from ..core.utils import parse_coordinates
from ..data.area_price_client import area_price_client
from ..data.base import GeoPoint
from ..data.geocode_client import goong_client
from ..services.area_price_service import AreaPriceService

router = APIRouter()

def service_dep(transport=Depends(upstream_transport)) -> AreaPriceService:
    return AreaPriceService(goong_client(transport=transport), area_price_client(transport=transport))

@router.get("/area-prices")
async def get_area_prices(
    lat: str | None = Query(default=None),
    lng: str | None = Query(default=None),
    svc: AreaPriceService = Depends(service_dep),
):
    lat_f, lng_f = parse_coordinates(lat, lng)
    try:
        data = await svc.lookup(GeoPoint(lat=lat_f, lng=lng_f))
    except NoResults as exc:
        return {"success": False, "data": {}, "error": exc.message}
    return {"success": True, "data": data}
