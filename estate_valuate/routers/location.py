from dataclasses import asdict

from fastapi import APIRouter, Depends, Query

from ..core.http import upstream_transport
from ..core.utils import parse_coordinates
from ..data.base import GeoPoint
from ..data.geocode_client import RestaLocation, location_client

router = APIRouter()

def client_dep(transport=Depends(upstream_transport)) -> RestaLocation:
    return location_client(transport=transport)

@router.get("/location")
async def get_location(
    latitude: str | None = Query(default=None),
    longitude: str | None = Query(default=None),
    client: RestaLocation = Depends(client_dep),
):
    lat, lng = parse_coordinates(latitude, longitude)
    # NoResults (404) propagates when the provider has no feature here
    raw, parsed = await client.resolve(GeoPoint(lat=lat, lng=lng))
    return {"success": True, "location_info": raw, "parsed_address": asdict(parsed)}
