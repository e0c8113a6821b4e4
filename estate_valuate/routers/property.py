from functools import lru_cache

from fastapi import APIRouter, Depends

from ..core.errors import InvalidParameter
from ..core.http import upstream_transport
from ..core.utils import parse_coordinates
from ..data.geocode_client import location_client
from ..data.trends_client import trends_client
from ..data.utilities_client import utilities_client
from ..data.valuation_client import valuation_client
from ..schemas import PropertyFlowRequest, PropertySummaryInput
from ..services.price_trend_service import PriceTrendService
from ..services.property_service import PropertyService, property_model

router = APIRouter()

@lru_cache
def model_dep():
    # One model per process, chosen by MODEL_PROVIDER
    return property_model()

def service_dep(transport=Depends(upstream_transport), model=Depends(model_dep)) -> PropertyService:
    return PropertyService(
        location=location_client(transport=transport),
        trends=PriceTrendService(trends_client(transport=transport)),
        utilities=utilities_client(transport=transport),
        valuation=valuation_client(transport=transport),
        model=model,
    )

@router.post("/property-valuation")
async def property_valuation(req: PropertyFlowRequest, svc: PropertyService = Depends(service_dep)):
    """Low / reasonable / high price estimate for the plot at a point."""
    lat, lng = parse_coordinates(req.latitude, req.longitude)
    return await svc.valuate(lat, lng, req.property_details)

@router.post("/property-analysis")
async def property_analysis(req: PropertyFlowRequest, svc: PropertyService = Depends(service_dep)):
    """Five-criterion radar score for the plot at a point."""
    lat, lng = parse_coordinates(req.latitude, req.longitude)
    return await svc.analyze(lat, lng, req.property_details)

@router.post("/property-summary")
async def property_summary(req: PropertySummaryInput, model=Depends(model_dep)):
    out = await model.summarize(req)
    return {"success": True, "result": out.model_dump()}

@router.post("/complete-flow")
async def complete_flow(req: PropertyFlowRequest, svc: PropertyService = Depends(service_dep)):
    """
    Location, valuation payload, backend valuation and nearby utilities in
    one call. The valuation backend's status is passed through on failure.
    """
    lat, lng = parse_coordinates(req.latitude, req.longitude)
    if not req.auth_token:
        raise InvalidParameter("Authentication token is required")
    return await svc.complete(lat, lng, req.property_details, req.auth_token)
