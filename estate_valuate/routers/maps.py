from fastapi import APIRouter, Depends, Header, Query, Response
from fastapi.responses import JSONResponse

from ..core.errors import InvalidParameter, UpstreamError
from ..core.http import upstream_transport
from ..core.utils import parse_coordinates, weak_etag
from ..data.geocode_client import MapboxSearch, mapbox_client
from ..data.guland_client import GulandClient, guland_client
from ..data.tile_client import TileProxy, tile_client
from ..schemas import DetailLayerRequest

router = APIRouter()

TILE_CACHE_CONTROL = "public, max-age=86400"

def mapbox_dep(transport=Depends(upstream_transport)) -> MapboxSearch:
    return mapbox_client(transport=transport)

def tiles_dep(transport=Depends(upstream_transport)) -> TileProxy:
    return tile_client(transport=transport)

def guland_dep(transport=Depends(upstream_transport)) -> GulandClient:
    return guland_client(transport=transport)

@router.get("/mapbox-search")
async def mapbox_search(
    q: str | None = Query(default=None),
    limit: int = Query(default=5, ge=1, le=10),
    client: MapboxSearch = Depends(mapbox_dep),
):
    if not q or not q.strip():
        raise InvalidParameter("Query parameter q is required")
    try:
        return await client.forward(q.strip(), limit)
    except UpstreamError as exc:
        raise exc.forwarded() from exc

@router.get("/map-tile-proxy")
async def map_tile_proxy(
    url: str | None = Query(default=None),
    if_none_match: str | None = Header(default=None),
    client: TileProxy = Depends(tiles_dep),
):
    if not url:
        raise InvalidParameter("URL parameter is required")
    try:
        tile = await client.fetch(url)
    except UpstreamError as exc:
        raise exc.forwarded() from exc

    etag = weak_etag(tile.content)
    headers = {"Cache-Control": TILE_CACHE_CONTROL, "ETag": etag}
    if if_none_match == etag:
        return Response(status_code=304, headers=headers)
    return Response(content=tile.content, media_type=tile.content_type, headers=headers)

@router.get("/map-service")
async def map_service(
    lat: str | None = Query(default=None),
    lng: str | None = Query(default=None),
    client: GulandClient = Depends(guland_dep),
):
    lat_f, lng_f = parse_coordinates(lat, lng)
    try:
        data = await client.map_service(lat_f, lng_f)
    except UpstreamError as exc:
        raise UpstreamError(exc.message, service=exc.service, status_code=502) from exc
    return {"success": True, "data": data}

async def _detail_layer(layer_id: str | None, client: GulandClient) -> Response:
    if not layer_id:
        raise InvalidParameter("Layer id is required")
    try:
        r = await client.detail_layer(layer_id)
    except UpstreamError as exc:
        raise UpstreamError(exc.message, service=exc.service, status_code=502) from exc

    content_type = r.headers.get("content-type", "")
    if "application/json" in content_type:
        try:
            return JSONResponse({"success": True, "data": r.json()})
        except ValueError:
            raise UpstreamError("detail layer returned malformed JSON", service=client.service,
                                status_code=502) from None
    return Response(content=r.content, media_type=content_type or "application/octet-stream",
                    headers={"Cache-Control": TILE_CACHE_CONTROL})

@router.get("/map-service/detail-layer")
async def detail_layer(id: str | None = Query(default=None), client: GulandClient = Depends(guland_dep)):
    return await _detail_layer(id, client)

@router.post("/map-service/detail-layer")
async def detail_layer_post(req: DetailLayerRequest, client: GulandClient = Depends(guland_dep)):
    return await _detail_layer(req.id, client)
