"""
Pass-through routes to the planning backend. Each answers the backend's
{success, data, status} shape: 200 when it succeeded, 500 otherwise.
"""

from typing import Any, Dict

from fastapi import APIRouter, Depends, Request
from fastapi.responses import JSONResponse

from ..core.errors import InvalidParameter
from ..core.http import upstream_transport
from ..core.utils import parse_float
from ..data.guland_client import GulandClient, guland_client
from ..schemas import GeocodingRequest, PlanningDataRequest, PricingRequest

router = APIRouter(prefix="/guland-proxy")

BOUNDS_PARAMS = ("lat", "lng", "lat_ne", "lng_ne", "lat_sw", "lng_sw")

DEFAULT_MAP_ATTR = (
    "type-map-filter%255B%255D%3Dhouse%26type-map-filter%255B%255D%3Dland%26Radio-SqhPriceType%3Don"
    "%26status-day%255B%255D%3D1%26status-day%255B%255D%3D2%26status-day%255B%255D%3D3"
    "%26size-filter%255B%255D%3D1%26size-filter%255B%255D%3D2%26size-filter%255B%255D%3D3"
    "%26size-filter%255B%255D%3D4%26price-filter%255B%255D%3D0-300%26price-filter%255B%255D%3D0-500"
    "%26price-filter%255B%255D%3D0-700%26price-filter%255B%255D%3D0-1000"
    "%26price-filter%255B%255D%3D1000-2000%26price-filter%255B%255D%3D2000-3000"
    "%26price-filter%255B%255D%3D3000-5000%26price-filter%255B%255D%3D5000-7000"
    "%26price-filter%255B%255D%3D7000-10000%26price-filter%255B%255D%3D10000-20000"
    "%26price-filter%255B%255D%3D20000-30000%26price-filter%255B%255D%3D30000-1000000"
)

def client_dep(transport=Depends(upstream_transport)) -> GulandClient:
    return guland_client(transport=transport)

def _answer(result: Dict[str, Any]) -> JSONResponse:
    return JSONResponse(result, status_code=200 if result.get("success") else 500)

def _bounds(request: Request) -> Dict[str, float]:
    try:
        return {k: parse_float(request.query_params.get(k), k) for k in BOUNDS_PARAMS}
    except InvalidParameter:
        raise InvalidParameter(
            f"Missing or invalid required parameters: {', '.join(BOUNDS_PARAMS)}"
        ) from None

def _int_param(request: Request, name: str, default: int) -> int:
    raw = request.query_params.get(name)
    if not raw:
        return default
    try:
        return int(raw)
    except ValueError:
        raise InvalidParameter(f"{name} must be an integer") from None

def _point(lat, lng, path) -> tuple[float, float, str]:
    if lat is None or lng is None or not path:
        raise InvalidParameter("Missing required parameters: lat, lng, path")
    return parse_float(lat, "lat"), parse_float(lng, "lng"), path


@router.post("/planning")
async def planning(req: PlanningDataRequest, client: GulandClient = Depends(client_dep)):
    if req.marker_lat is None or req.marker_lng is None or req.province_id in (None, ""):
        raise InvalidParameter("Missing required fields: marker_lat, marker_lng, province_id")
    return _answer(await client.planning_data(req.model_dump(exclude_none=True)))


@router.get("/check-plan")
async def check_plan(request: Request, client: GulandClient = Depends(client_dep)):
    q = request.query_params
    params = {
        **_bounds(request),
        "cid": q.get("cid") or "",
        "map": _int_param(request, "map", 1),
        "price": q.get("price") or "",
        "type": q.get("type") or "",
        "is_check_plan": _int_param(request, "is_check_plan", 0),
        "district_id": q.get("district_id") or "",
        "province_id": q.get("province_id") or "01",
        "ward_id": q.get("ward_id") or "",
        "map_attr": q.get("map_attr") or DEFAULT_MAP_ATTR,
    }
    return _answer(await client.check_plan(params))


@router.get("/geocoding")
async def geocoding(request: Request, client: GulandClient = Depends(client_dep)):
    q = request.query_params
    lat, lng, path = _point(q.get("lat"), q.get("lng"), q.get("path"))
    return _answer(await client.geocoding(lat, lng, path))


@router.post("/geocoding")
async def geocoding_post(req: GeocodingRequest, client: GulandClient = Depends(client_dep)):
    lat, lng, path = _point(req.lat, req.lng, req.path)
    return _answer(await client.geocoding_post(lat, lng, path))


@router.get("/road-points")
async def road_points(request: Request, client: GulandClient = Depends(client_dep)):
    return _answer(await client.road_points(_bounds(request)))


@router.get("/health")
async def health(client: GulandClient = Depends(client_dep)):
    return await client.health()


@router.post("/refresh-token")
async def refresh_token(client: GulandClient = Depends(client_dep)):
    return _answer(await client.refresh_token())


def _pricing_from_query(request: Request) -> PricingRequest:
    """Accepts both the simplified names and the raw DataTables keys."""
    q = request.query_params

    def pick(*keys: str, default: str = "") -> str:
        for key in keys:
            if q.get(key):
                return q[key]
        return default

    try:
        return PricingRequest(
            draw=int(pick("draw", default="1")),
            start=int(pick("start", default="0")),
            length=int(pick("length", default="50")),
            district_name=pick("district_name", "columns[1][search][value]"),
            ward_name=pick("ward_name", "columns[2][search][value]"),
            road_name=pick("road_name", "columns[3][search][value]"),
            province_id=pick("province_id", default="01"),
            district_id=pick("district_id"),
            road_id=pick("road_id"),
            search_value=pick("search_value", "search[value]"),
            search_regex=pick("search_regex", "search[regex]").lower() == "true",
            timestamp=pick("timestamp", "_") or None,
        )
    except ValueError:
        raise InvalidParameter("draw, start and length must be integers") from None


async def _pricing(req: PricingRequest, client: GulandClient) -> Dict[str, Any]:
    data = await client.pricing(req)
    return {"success": True, "data": data, "params": req.model_dump()}


@router.get("/pricing")
async def pricing(request: Request, client: GulandClient = Depends(client_dep)):
    return await _pricing(_pricing_from_query(request), client)


@router.post("/pricing")
async def pricing_post(req: PricingRequest, client: GulandClient = Depends(client_dep)):
    return await _pricing(req, client)
