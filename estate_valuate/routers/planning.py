from functools import lru_cache

from fastapi import APIRouter, Depends

from ..core.errors import InvalidParameter
from ..core.utils import parse_coordinates
from ..models.base import PlanningModel
from ..schemas import PlanningAnalysisRequest, PlanningCaptureRequest
from ..services.planning_service import PlanningService, capture_planning_tiles, planning_model

router = APIRouter()

@lru_cache
def model_dep() -> PlanningModel:
    # One model per process, chosen by MODEL_PROVIDER
    return planning_model()

def service_dep(model: PlanningModel = Depends(model_dep)) -> PlanningService:
    return PlanningService(model)

@router.post("/planning-analysis")
async def planning_analysis(req: PlanningAnalysisRequest, svc: PlanningService = Depends(service_dep)):
    """
    Two shapes are accepted: a point (the planning tile under it is analysed)
    or an image URL together with a description of the plot.
    """
    if req.lat is not None and req.lng is not None:
        lat, lng = parse_coordinates(req.lat, req.lng)
        out = await svc.analyze_point(lat, lng)
    elif req.imagePath and req.landInfo:
        out = await svc.analyze_image(req.imagePath, req.landInfo)
    else:
        raise InvalidParameter("Provide either lat and lng, or imagePath and landInfo")
    return {"success": True, **out}

@router.post("/planning-capture")
def planning_capture(req: PlanningCaptureRequest):
    lat, lng = parse_coordinates(req.lat, req.lng)
    data = capture_planning_tiles(lat, lng, zoom=req.zoom, mosaic=req.useMosaic, map_type=req.mapType)
    return {"success": True, "data": data}
