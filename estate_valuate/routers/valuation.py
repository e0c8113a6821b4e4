from fastapi import APIRouter, Depends

from ..core.errors import InvalidParameter, UpstreamError
from ..core.http import upstream_transport
from ..data.valuation_client import RestaValuation, route_error, valuation_client
from ..schemas import CreatePayloadRequest, ValuationRequest
from ..services.payload_builder import build_valuation_payload

router = APIRouter()

def client_dep(transport=Depends(upstream_transport)) -> RestaValuation:
    return valuation_client(transport=transport)

@router.post("/create-payload")
def create_payload(req: CreatePayloadRequest):
    if req.address_info is None:
        raise InvalidParameter("Address info is required")
    payload = build_valuation_payload(req.address_info.model_dump(), req.property_details)
    return {"success": True, "payload": payload}

@router.post("/valuation")
async def valuate(req: ValuationRequest, client: RestaValuation = Depends(client_dep)):
    """
    Forward a payload built by /create-payload to the valuation backend with
    the caller's bearer token. The backend's status is passed through on failure.
    """
    if not req.payload:
        raise InvalidParameter("Valuation payload is required")
    if not req.auth_token:
        raise InvalidParameter("Authentication token is required")

    try:
        result = await client.evaluate(req.payload, req.auth_token)
    except UpstreamError as exc:
        raise route_error(exc) from exc
    return {"success": True, "valuation_result": result}
