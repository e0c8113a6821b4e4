from fastapi import APIRouter, Depends, Query

from ..core.errors import InvalidParameter, UpstreamError
from ..core.http import upstream_transport
from ..core.utils import parse_coordinates, parse_float
from ..data.base import GeoPoint
from ..data.utilities_client import RestaUtilities, utilities_client

router = APIRouter()

def client_dep(transport=Depends(upstream_transport)) -> RestaUtilities:
    return utilities_client(transport=transport)

@router.get("/utilities")
async def get_utilities(
    lat: str | None = Query(default=None),
    lng: str | None = Query(default=None),
    distance: str = Query(default="10"),
    size: str = Query(default="5"),
    client: RestaUtilities = Depends(client_dep),
):
    lat_f, lng_f = parse_coordinates(lat, lng)
    distance_f = parse_float(distance, "distance")
    if distance_f <= 0:
        raise InvalidParameter("distance must be positive")
    if not size.isdigit() or int(size) < 1:
        raise InvalidParameter("size must be a positive integer")

    try:
        result = await client.nearby(GeoPoint(lat=lat_f, lng=lng_f), distance_f, int(size))
    except UpstreamError as exc:
        raise exc.forwarded() from exc
    return {
        "success": True,
        "total": result.total,
        "data": result.items,
        "groupedData": result.grouped,
    }
