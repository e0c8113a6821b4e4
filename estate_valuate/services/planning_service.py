import logging
import math
from typing import Dict, List

from ..core.config import Settings, settings as default_settings
from ..core.errors import InvalidParameter
from ..models.base import PlanningModel
from ..models.mock_model import MockPlanningModel
from ..models.openai_model import OpenAIPlanningModel
from ..schemas import PlanningAnalysis, PlanningAnalysisInput

logger = logging.getLogger(__name__)

MIN_ZOOM, MAX_ZOOM = 10, 18
MERCATOR_MAX_LAT = 85.05112878


def latlng_to_tile(lat: float, lng: float, zoom: int) -> tuple[int, int]:
    """Web-mercator slippy-map tile containing the point."""
    n = 2 ** zoom
    lat_rad = math.radians(max(-MERCATOR_MAX_LAT, min(MERCATOR_MAX_LAT, lat)))
    x = int((lng + 180.0) / 360.0 * n)
    y = int((1.0 - math.asinh(math.tan(lat_rad)) / math.pi) / 2.0 * n)
    return min(max(x, 0), n - 1), min(max(y, 0), n - 1)


def tile_bounds(x: int, y: int, zoom: int) -> Dict[str, float]:
    n = 2 ** zoom

    def lat_of(row: int) -> float:
        return math.degrees(math.atan(math.sinh(math.pi * (1 - 2 * row / n))))

    return {
        "north": lat_of(y),
        "south": lat_of(y + 1),
        "west": x / n * 360.0 - 180.0,
        "east": (x + 1) / n * 360.0 - 180.0,
    }


def layer_templates(cfg: Settings = default_settings) -> Dict[str, str]:
    return {
        "qh2030": cfg.PLANNING_TILE_QH2030,
        "qh500": cfg.PLANNING_TILE_QH500,
        "qhPK": cfg.PLANNING_TILE_QHPK,
    }


def clamp_zoom(zoom: int) -> int:
    safe = min(MAX_ZOOM, max(MIN_ZOOM, int(zoom)))
    if safe != zoom:
        logger.info("zoom %s adjusted to %s", zoom, safe)
    return safe


def planning_image_url(lat: float, lng: float, zoom: int = MAX_ZOOM, layer: str = "qh2030",
                       cfg: Settings = default_settings) -> str:
    """Single tile under the point, the image handed to the planning model."""
    z = clamp_zoom(zoom)
    x, y = latlng_to_tile(lat, lng, z)
    return layer_templates(cfg)[layer].format(z=z, x=x, y=y)


def capture_planning_tiles(lat: float, lng: float, zoom: int = MAX_ZOOM, mosaic: bool = True,
                           map_type: str = "qh2030", cfg: Settings = default_settings) -> Dict:
    """
    Tile URLs for every planning layer around a point: the centre tile, or a
    3×3 mosaic centred on it (row-major, north-west first).
    """
    templates = layer_templates(cfg)
    if map_type not in templates:
        raise InvalidParameter(f"mapType must be one of: {', '.join(templates)}")

    z = clamp_zoom(zoom)
    cx, cy = latlng_to_tile(lat, lng, z)
    radius = 1 if mosaic else 0
    tiles = [(cx + dx, cy + dy) for dy in range(-radius, radius + 1) for dx in range(-radius, radius + 1)]

    urls: Dict[str, List[str]] = {
        name: [tpl.format(z=z, x=x, y=y) for x, y in tiles] for name, tpl in templates.items()
    }
    nw = tile_bounds(cx - radius, cy - radius, z)
    se = tile_bounds(cx + radius, cy + radius, z)
    return {
        "imageUrl": templates[map_type].format(z=z, x=cx, y=cy),
        **urls,
        "tileCoordinates": {"x": cx, "y": cy, "zoom": z, "gridSize": 2 * radius + 1},
        "boundingBox": {"north": nw["north"], "west": nw["west"], "south": se["south"], "east": se["east"]},
    }


def planning_model(cfg: Settings = default_settings) -> PlanningModel:
    """Pick the LLM backend once, from configuration."""
    if cfg.MODEL_PROVIDER == "openai":
        return OpenAIPlanningModel(cfg)
    return MockPlanningModel()


class PlanningService:
    def __init__(self, model: PlanningModel, cfg: Settings = default_settings):
        self.model = model
        self.cfg = cfg

    async def analyze_point(self, lat: float, lng: float) -> Dict:
        image_url = planning_image_url(lat, lng, cfg=self.cfg)
        land_info = f"Thửa đất tại tọa độ: {lat:.6f}, {lng:.6f} (vị trí trung tâm ảnh bản đồ quy hoạch)"
        result = await self.model.analyze(PlanningAnalysisInput(imagePath=image_url, landInfo=land_info))
        return {"result": result.model_dump(), "imageUrl": image_url}

    async def analyze_image(self, image_path: str, land_info: str) -> Dict:
        result: PlanningAnalysis = await self.model.analyze(
            PlanningAnalysisInput(imagePath=image_path, landInfo=land_info)
        )
        return {"result": result.model_dump(), "imageUrl": image_path}
