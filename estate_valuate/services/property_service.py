"""Composed property flows.

property-valuation and property-analysis resolve the point, summarise the
local price trend as text and hand both to the LLM. complete-flow chains
location, payload, the valuation backend and nearby utilities without any
model in the loop.
"""

import logging
from dataclasses import asdict
from typing import Any, Dict, Mapping, Optional

from pydantic import ValidationError

from ..core.config import Settings, settings as default_settings
from ..core.errors import InvalidParameter, UpstreamError
from ..core.utils import to_slug
from ..data.base import AddressResolution, GeoPoint, LocationClient, UtilitiesClient
from ..data.valuation_client import RestaValuation, route_error
from ..models.mock_model import MockPropertyModel
from ..models.openai_model import OpenAIPropertyModel
from ..schemas import PropertyAnalysisInput, ValuationRangeInput
from .payload_builder import DEFAULT_PROPERTY_DETAILS, build_valuation_payload
from .price_trend_service import PriceTrendService

logger = logging.getLogger(__name__)

CATEGORY_BY_TYPE = {
    "apartment": "chung_cu",
    "lane_house": "nha_hem_ngo",
    "town_house": "nha_mat_pho",
    "land": "ban_dat",
    "villa": "biet_thu_lien_ke",
    "NORMAL": "nha_mat_pho",
}
DEFAULT_YEAR_BUILT = 2015
MARKET_DATA_UNAVAILABLE = "Dữ liệu thị trường không khả dụng"

# complete-flow asks for a small utilities sample around the plot
FLOW_UTILITIES_DISTANCE = 5
FLOW_UTILITIES_SIZE = 5


def category_for(property_type: Optional[str]) -> str:
    return CATEGORY_BY_TYPE.get(property_type or "NORMAL", "nha_mat_pho")


def format_market_data(trend: Mapping[str, Any]) -> str:
    """Price-trend result -> the short market summary the prompts expect."""
    points = trend.get("data") if trend.get("success") else None
    if not points:
        return MARKET_DATA_UNAVAILABLE

    prices = [p["price"] for p in points]
    earliest, latest = points[0], points[-1]
    avg_price = sum(prices) / len(prices)
    # min/max are VND; price is millions of VND
    low = min(p.get("minPrice") or p["price"] * 0.7 * 1_000_000 for p in points)
    high = max(p.get("maxPrice") or p["price"] * 1.3 * 1_000_000 for p in points)
    direction = "tăng" if latest["price"] > earliest["price"] else "giảm"
    change = abs((latest["price"] - earliest["price"]) / earliest["price"] * 100) if earliest["price"] else 0.0
    counts = [p["count"] for p in points if p.get("count") is not None]

    lines = [
        f"Dữ liệu thị trường bất động sản ({len(points)} tháng gần nhất):",
        f"- Giá trung bình: {avg_price:.0f} triệu VND/m²",
        f"- Khoảng giá: {low / 1_000_000:.0f} - {high / 1_000_000:.0f} triệu VND/m²",
        f"- Xu hướng: {direction} {change:.1f}% so với {len(points)} tháng trước",
        f"- Giá mới nhất ({latest['month']}): {latest['price']} triệu VND/m²",
    ]
    if counts:
        lines.append(f"- Số lượng giao dịch trung bình: {sum(counts) / len(counts):.0f} giao dịch/tháng")
    lines.append(f"- Nguồn dữ liệu: {trend.get('source') or 'API'}")
    lines.append("- Chi tiết từng tháng: " + ", ".join(f"{p['month']}: {p['price']}M VND/m²" for p in points))
    return "\n".join(lines)


def property_model(cfg: Settings = default_settings):
    """Same provider switch as the planning model."""
    if cfg.MODEL_PROVIDER == "openai":
        return OpenAIPropertyModel(cfg)
    return MockPropertyModel()


class PropertyService:
    def __init__(self, location: LocationClient, trends: PriceTrendService,
                 utilities: UtilitiesClient, valuation: RestaValuation, model):
        self.location = location
        self.trends = trends
        self.utilities = utilities
        self.valuation = valuation
        self.model = model

    async def _prepare(self, lat: float, lng: float, property_details: Mapping[str, Any]):
        # NoResults (404) propagates when the provider has no feature here
        raw, parsed = await self.location.resolve(GeoPoint(lat=lat, lng=lng))
        details = {**DEFAULT_PROPERTY_DETAILS, "yearBuilt": DEFAULT_YEAR_BUILT, **property_details}
        payload = build_valuation_payload({**asdict(parsed), "coordinates": [lng, lat]}, details)
        return raw, parsed, details, payload

    async def _market(self, parsed: AddressResolution, category: str) -> tuple[str, bool]:
        trend = await self.trends.trend(
            to_slug(parsed.city) or "ha_noi",
            to_slug(parsed.district) or "dong_da",
            category,
        )
        return format_market_data(trend), bool(trend.get("success"))

    async def valuate(self, lat: float, lng: float, property_details: Mapping[str, Any]) -> Dict[str, Any]:
        raw, parsed, details, payload = await self._prepare(lat, lng, property_details)
        category = category_for(payload["type"])
        market_data, from_api = await self._market(parsed, category)

        try:
            ai_input = ValuationRangeInput(
                address=parsed.formatted_address,
                size=payload["houseArea"],
                bedrooms=payload["bedRoom"],
                bathrooms=payload["bathRoom"],
                lotSize=payload["landArea"],
                yearBuilt=details["yearBuilt"],
                marketData=market_data,
            )
        except ValidationError as exc:
            raise InvalidParameter("Invalid property_details") from exc
        valuation = await self.model.valuation_range(ai_input)
        logger.info("valuation range for %s: %s", parsed.formatted_address, valuation.reasonableValue)

        return {
            "success": True,
            "result": {
                "valuation": valuation.model_dump(),
                "property_info": {
                    "address": parsed.formatted_address,
                    "location": {"city": parsed.city, "district": parsed.district, "ward": parsed.ward},
                    "specifications": {
                        "type": payload["type"],
                        "land_area": payload["landArea"],
                        "house_area": payload["houseArea"],
                        "bedrooms": payload["bedRoom"],
                        "bathrooms": payload["bathRoom"],
                        "lane_width": payload["laneWidth"],
                        "facade_width": payload["facadeWidth"],
                        "story_number": payload["storyNumber"],
                        "legal": payload["legal"],
                        "year_built": details["yearBuilt"],
                    },
                },
                "market_context": {"category": category, "data_source": "API" if from_api else "fallback"},
            },
            "input_data": {
                "coordinates": [lat, lng],
                "property_details": dict(property_details),
                "parsed_address": asdict(parsed),
                "valuation_payload": payload,
            },
            "ai_input": ai_input.model_dump(),
        }

    async def analyze(self, lat: float, lng: float, property_details: Mapping[str, Any]) -> Dict[str, Any]:
        raw, parsed, details, payload = await self._prepare(lat, lng, property_details)
        market_data, _ = await self._market(parsed, category_for(payload["type"]))

        try:
            ai_input = PropertyAnalysisInput(
                address=parsed.formatted_address,
                city=parsed.city,
                district=parsed.district,
                ward=parsed.ward,
                type=payload["type"],
                size=payload["houseArea"],
                lotSize=payload["landArea"],
                landArea=payload["landArea"],
                houseArea=payload["houseArea"],
                laneWidth=payload["laneWidth"],
                facadeWidth=payload["facadeWidth"],
                storyNumber=payload["storyNumber"],
                amenities=details.get("amenities") or [],
                legal=payload["legal"],
                marketData=market_data,
            )
        except ValidationError as exc:
            raise InvalidParameter("Invalid property_details") from exc
        analysis = await self.model.analyze_property(ai_input)
        return {
            "success": True,
            "result": analysis.model_dump(),
            "input_data": {
                "coordinates": [lat, lng],
                "property_details": dict(property_details),
                "parsed_address": asdict(parsed),
                "valuation_payload": payload,
            },
            "ai_input": ai_input.model_dump(),
        }

    async def complete(self, lat: float, lng: float, property_details: Mapping[str, Any],
                       auth_token: str) -> Dict[str, Any]:
        """
        Location -> payload -> valuation -> utilities. Location and valuation
        failures end the flow; a utilities failure only leaves `utilities` null.
        """
        raw, parsed = await self.location.resolve(GeoPoint(lat=lat, lng=lng))
        payload = build_valuation_payload(asdict(parsed), property_details)
        if len(payload["geoLocation"]) != 2:
            payload["geoLocation"] = [lng, lat]

        try:
            valuation_result = await self.valuation.evaluate(payload, auth_token)
        except UpstreamError as exc:
            raise route_error(exc) from exc

        utility_lng, utility_lat = payload["geoLocation"]
        try:
            found = await self.utilities.nearby(GeoPoint(lat=utility_lat, lng=utility_lng),
                                                FLOW_UTILITIES_DISTANCE, FLOW_UTILITIES_SIZE)
            utilities = {"total": found.total, "data": found.items, "groupedData": found.grouped}
        except UpstreamError as exc:
            logger.warning("utilities unavailable for complete flow: %s", exc.message)
            utilities = None

        return {
            "success": True,
            "input_coordinates": {"latitude": lat, "longitude": lng},
            "location_info": raw,
            "parsed_address": asdict(parsed),
            "valuation_payload": payload,
            "valuation_result": valuation_result,
            "utilities": utilities,
        }
