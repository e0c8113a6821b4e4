"""Tests for the property flows: market summaries, the property models and
/api/property-valuation, /api/property-analysis, /api/property-summary and
/api/complete-flow."""

import asyncio
import json
from types import SimpleNamespace
from unittest.mock import AsyncMock, MagicMock

import httpx
import openai
import pytest

from conftest import refuse
from estate_valuate.core.config import Settings, settings
from estate_valuate.core.errors import DeadlineExceeded, UpstreamError
from estate_valuate.main import create_app
from estate_valuate.models.mock_model import MockPropertyModel
from estate_valuate.models.openai_model import OpenAIPropertyModel
from estate_valuate.routers.planning import model_dep as planning_model_dep
from estate_valuate.routers.property import model_dep as property_model_dep
from estate_valuate.schemas import PropertyAnalysisInput, PropertySummaryInput, ValuationRangeInput
from estate_valuate.services.property_service import (
    MARKET_DATA_UNAVAILABLE,
    category_for,
    format_market_data,
    property_model,
)

TREND = {
    "success": True,
    "source": "api",
    "data": [
        {"month": "T7/24", "price": 120, "count": 8, "minPrice": 90_000_000, "maxPrice": None},
        {"month": "T8/24", "price": 130, "count": 12, "minPrice": None, "maxPrice": 180_000_000},
    ],
}

LOCATION = {"features": [{
    "c": "Hà Nội", "d": "Thanh Xuân", "w": "Nhân Chính",
    "dt": "Nhân Chính, Thanh Xuân, Hà Nội", "g": [105.8201, 21.0031],
}]}

TRENDS_PAYLOAD = {"nha_mat_pho": [
    {"createdDate": "2024-07-01T00:00:00Z", "pricePerUnit": 120_000_000, "count": 8},
    {"createdDate": "2024-08-01T00:00:00Z", "pricePerUnit": 130_000_000, "count": 12},
]}

UTILITIES = {"total": 2, "data": [
    {"type": "hospital", "name": "Bệnh viện Thanh Nhàn"},
    {"type": "cafe", "name": "Cộng Cà Phê"},
]}

BODY = {"latitude": 21.0031, "longitude": 105.8201}


def _providers(request: httpx.Request) -> httpx.Response:
    path = request.url.path
    if path.endswith("/features/location"):
        return httpx.Response(200, json=LOCATION)
    if path.endswith("/market-real-estate-prices/aggregate"):
        category = request.url.params["category"]
        return httpx.Response(200, json={category: TRENDS_PAYLOAD.get(category, [])})
    if path.endswith("/map-utilities"):
        return httpx.Response(200, json=UTILITIES)
    if path.endswith("/real-estate-evaluations"):
        return httpx.Response(200, json={"price": 5_400_000_000})
    return httpx.Response(404)


# =========================================================================
# Market summary and category mapping
# =========================================================================

class TestMarketData:
    def test_summary_lines(self):
        text = format_market_data(TREND)
        assert "(2 tháng gần nhất)" in text
        assert "Giá trung bình: 125 triệu VND/m²" in text
        assert "Khoảng giá: 90 - 180 triệu VND/m²" in text
        assert "Xu hướng: tăng 8.3%" in text
        assert "Giá mới nhất (T8/24): 130 triệu VND/m²" in text
        assert "Số lượng giao dịch trung bình: 10 giao dịch/tháng" in text
        assert text.endswith("T7/24: 120M VND/m², T8/24: 130M VND/m²")

    def test_no_data(self):
        assert format_market_data({"success": False, "data": []}) == MARKET_DATA_UNAVAILABLE

    def test_counts_line_skipped_without_counts(self):
        trend = {"success": True, "data": [{"month": "T1/25", "price": 100, "count": None}]}
        assert "giao dịch" not in format_market_data(trend)

    @pytest.mark.parametrize("kind,category", [
        ("apartment", "chung_cu"),
        ("lane_house", "nha_hem_ngo"),
        ("land", "ban_dat"),
        ("villa", "biet_thu_lien_ke"),
        ("NORMAL", "nha_mat_pho"),
        ("castle", "nha_mat_pho"),
        (None, "nha_mat_pho"),
    ])
    def test_category_for(self, kind, category):
        assert category_for(kind) == category


# =========================================================================
# Mock property model
# =========================================================================

def _valuation_input(market_data, lot_size=45.0):
    return ValuationRangeInput(address="Nhân Chính", size=45, bedrooms=2, bathrooms=2,
                               lotSize=lot_size, marketData=market_data)


class TestMockPropertyModel:
    def test_range_follows_market_average(self):
        out = asyncio.run(MockPropertyModel().valuation_range(_valuation_input(format_market_data(TREND))))
        assert out.reasonableValue == 125_000_000 * 45
        assert out.lowValue < out.reasonableValue < out.highValue

    def test_range_without_market_data(self):
        out = asyncio.run(MockPropertyModel().valuation_range(_valuation_input(MARKET_DATA_UNAVAILABLE, 10)))
        assert out.reasonableValue == 3_000_000_000

    def test_scores_stay_in_range(self):
        data = PropertyAnalysisInput(city="Hà Nội", district="Thanh Xuân", ward="Nhân Chính", type="town_house",
                                     size=45, lotSize=45, landArea=45, houseArea=45, laneWidth=10,
                                     facadeWidth=4, amenities=[f"a{i}" for i in range(20)], marketData="")
        radar = asyncio.run(MockPropertyModel().analyze_property(data)).radarScore
        assert radar.locationScore == 10
        assert len(radar.descriptions) == 5

    def test_mock_is_default_provider(self):
        assert isinstance(property_model(Settings(MODEL_PROVIDER="mock")), MockPropertyModel)


# =========================================================================
# OpenAI-compatible property model (client mocked)
# =========================================================================

RADAR = {"radarScore": {
    "legalityScore": 8, "liquidityScore": 7, "locationScore": 9, "evaluationScore": 6, "dividendScore": 7,
    "descriptions": ["Sổ hồng", "Dễ bán", "Gần trung tâm", "Giá hợp lý", "Cho thuê tốt"],
}}


def _openai_model(create):
    model = OpenAIPropertyModel(Settings(AI_PROXY_URL=None, AI_PROXY_API_KEY=None,
                                         OPENAI_API_KEY="sk-test", OPENAI_MODEL="gpt-4o-mini"))
    model.client = MagicMock()
    model.client.chat.completions.create = create
    return model


def _completion(content):
    return SimpleNamespace(choices=[SimpleNamespace(message=SimpleNamespace(content=content))])


class TestOpenAIPropertyModel:
    def test_valuation_range_prompt_and_answer(self):
        answer = {"lowValue": 5e9, "reasonableValue": 5.6e9, "highValue": 6.2e9}
        create = AsyncMock(return_value=_completion("```json\n" + json.dumps(answer) + "\n```"))
        out = asyncio.run(_openai_model(create).valuation_range(_valuation_input("Giá trung bình: 125 triệu")))

        assert out.reasonableValue == 5.6e9
        user = create.await_args.kwargs["messages"][1]["content"]
        assert "Nhân Chính" in user and "Giá trung bình: 125 triệu" in user

    def test_unordered_range_is_upstream_error(self):
        answer = {"lowValue": 7e9, "reasonableValue": 5e9, "highValue": 6e9}
        create = AsyncMock(return_value=_completion(json.dumps(answer)))
        with pytest.raises(UpstreamError):
            asyncio.run(_openai_model(create).valuation_range(_valuation_input("x")))

    def test_property_analysis(self):
        create = AsyncMock(return_value=_completion(json.dumps(RADAR, ensure_ascii=False)))
        data = PropertyAnalysisInput(city="Hà Nội", district="Thanh Xuân", ward="Nhân Chính", type="town_house",
                                     size=45, lotSize=45, landArea=45, houseArea=45, laneWidth=10,
                                     facadeWidth=4, amenities=["Bệnh viện (hospital)"], marketData="x")
        out = asyncio.run(_openai_model(create).analyze_property(data))
        assert out.radarScore.locationScore == 9
        assert "Bệnh viện (hospital)" in create.await_args.kwargs["messages"][1]["content"]

    def test_analysis_with_missing_descriptions_is_upstream_error(self):
        broken = {"radarScore": {**RADAR["radarScore"], "descriptions": ["chỉ một"]}}
        create = AsyncMock(return_value=_completion(json.dumps(broken)))
        data = PropertyAnalysisInput(city="c", district="d", ward="w", type="land", size=1, lotSize=1,
                                     landArea=1, houseArea=1, laneWidth=1, facadeWidth=1, marketData="x")
        with pytest.raises(UpstreamError):
            asyncio.run(_openai_model(create).analyze_property(data))

    def test_summary(self):
        create = AsyncMock(return_value=_completion('{"summary": "Vị trí tốt, pháp lý rõ ràng."}'))
        data = PropertySummaryInput(locationScore=9, utilitiesScore=7, planningScore=6, legalScore=8,
                                    qualityScore=5, locationDetails="Gần hồ")
        out = asyncio.run(_openai_model(create).summarize(data))
        assert out.summary.startswith("Vị trí tốt")
        assert "Location Score: 9" in create.await_args.kwargs["messages"][1]["content"]

    def test_timeout_is_deadline_exceeded(self):
        request = httpx.Request("POST", "https://api.openai.test/v1/chat/completions")
        create = AsyncMock(side_effect=openai.APITimeoutError(request=request))
        with pytest.raises(DeadlineExceeded) as exc_info:
            asyncio.run(_openai_model(create).valuation_range(_valuation_input("x")))
        assert exc_info.value.status_code == 504
        assert exc_info.value.service == "llm"


# =========================================================================
# Routes
# =========================================================================

class TestPropertyValuationRoute:
    def test_full_flow(self, client, upstream):
        calls = upstream(_providers)
        r = client.post("/api/property-valuation", json={**BODY, "property_details": {"landArea": 60}})
        assert r.status_code == 200
        body = r.json()
        assert body["success"] is True
        result = body["result"]
        assert result["valuation"]["reasonableValue"] == 125_000_000 * 60
        assert result["property_info"]["location"]["district"] == "Thanh Xuân"
        assert result["property_info"]["specifications"]["year_built"] == 2015
        assert result["market_context"] == {"category": "nha_mat_pho", "data_source": "API"}
        assert body["input_data"]["valuation_payload"]["geoLocation"] == [105.8201, 21.0031]
        assert "Giá trung bình: 125" in body["ai_input"]["marketData"]

        trend_call = next(c for c in calls if c.url.path.endswith("/aggregate"))
        assert trend_call.url.params["address.city"] == "ha_noi"
        assert trend_call.url.params["address.district"] == "thanh_xuan"

    def test_missing_trend_data_uses_fallback_text(self, client, upstream):
        def handler(request):
            if request.url.path.endswith("/aggregate"):
                return httpx.Response(503)
            return _providers(request)

        upstream(handler)
        body = client.post("/api/property-valuation", json=BODY).json()
        assert body["result"]["market_context"]["data_source"] == "fallback"
        assert body["ai_input"]["marketData"] == "Dữ liệu thị trường không khả dụng"

    def test_missing_coordinates_is_400(self, client, upstream):
        calls = upstream(refuse)
        assert client.post("/api/property-valuation", json={"latitude": 21.0}).status_code == 400
        assert calls == []

    def test_unknown_location_is_404(self, client, upstream):
        upstream(lambda r: httpx.Response(200, json={"features": []}))
        r = client.post("/api/property-valuation", json=BODY)
        assert r.status_code == 404
        assert r.json()["success"] is False

    def test_bad_property_details_is_400(self, client, upstream):
        upstream(_providers)
        r = client.post("/api/property-valuation", json={**BODY, "property_details": {"bedRoom": "nhiều"}})
        assert r.status_code == 400


class TestPropertyAnalysisRoute:
    def test_radar_score(self, client, upstream):
        upstream(_providers)
        r = client.post("/api/property-analysis", json={
            **BODY, "property_details": {"amenities": ["Bệnh viện", "Trường học"], "legal": "pink_book"},
        })
        assert r.status_code == 200
        body = r.json()
        radar = body["result"]["radarScore"]
        assert radar["legalityScore"] == 8
        assert len(radar["descriptions"]) == 5
        assert body["ai_input"]["amenities"] == ["Bệnh viện", "Trường học"]
        assert body["ai_input"]["city"] == "Hà Nội"

    def test_missing_coordinates_is_400(self, client, upstream):
        upstream(refuse)
        assert client.post("/api/property-analysis", json={}).status_code == 400


class TestPropertySummaryRoute:
    def test_summary(self, client):
        r = client.post("/api/property-summary", json={
            "locationScore": 9, "utilitiesScore": 7, "planningScore": 4, "legalScore": 8, "qualityScore": 6,
        })
        assert r.status_code == 200
        assert "vị trí" in r.json()["result"]["summary"]
        assert "quy hoạch" in r.json()["result"]["summary"]

    def test_scores_are_required(self, client):
        assert client.post("/api/property-summary", json={"locationScore": 9}).status_code == 400


class TestCompleteFlowRoute:
    def test_chains_location_valuation_and_utilities(self, client, upstream):
        calls = upstream(_providers)
        r = client.post("/api/complete-flow", json={**BODY, "auth_token": "tok"})
        assert r.status_code == 200
        body = r.json()
        assert body["success"] is True
        assert body["input_coordinates"] == {"latitude": 21.0031, "longitude": 105.8201}
        assert body["parsed_address"]["ward"] == "Nhân Chính"
        assert body["valuation_payload"]["geoLocation"] == [105.8201, 21.0031]
        assert body["valuation_result"] == {"price": 5_400_000_000}
        assert body["utilities"]["total"] == 2
        assert [u["name"] for u in body["utilities"]["groupedData"]["hospital"]] == ["Bệnh viện Thanh Nhàn"]

        paths = [c.url.path.rsplit("/", 1)[-1] for c in calls]
        assert paths == ["location", "real-estate-evaluations", "map-utilities"]
        utilities_call = calls[2]
        assert utilities_call.url.params["_distance"] == "5"
        assert utilities_call.url.params["_size"] == "5"

    def test_auth_token_is_required(self, client, upstream):
        calls = upstream(refuse)
        assert client.post("/api/complete-flow", json=BODY).status_code == 400
        assert calls == []

    def test_expired_token_is_401(self, client, upstream):
        def handler(request):
            if request.url.path.endswith("/real-estate-evaluations"):
                return httpx.Response(401)
            return _providers(request)

        calls = upstream(handler)
        r = client.post("/api/complete-flow", json={**BODY, "auth_token": "old"})
        assert r.status_code == 401
        assert not any(c.url.path.endswith("/map-utilities") for c in calls)

    def test_utilities_failure_leaves_utilities_null(self, client, upstream):
        def handler(request):
            if request.url.path.endswith("/map-utilities"):
                return httpx.Response(502)
            return _providers(request)

        upstream(handler)
        body = client.post("/api/complete-flow", json={**BODY, "auth_token": "tok"}).json()
        assert body["success"] is True
        assert body["utilities"] is None
        assert body["valuation_result"] == {"price": 5_400_000_000}


# =========================================================================
# Startup
# =========================================================================

class TestStartup:
    def test_missing_llm_credentials_fail_at_startup(self, monkeypatch):
        monkeypatch.setattr(settings, "MODEL_PROVIDER", "openai")
        for key in ("AI_PROXY_URL", "AI_PROXY_API_KEY", "OPENAI_API_KEY"):
            monkeypatch.setattr(settings, key, None)
        planning_model_dep.cache_clear()
        property_model_dep.cache_clear()
        try:
            with pytest.raises(RuntimeError):
                create_app()
        finally:
            planning_model_dep.cache_clear()
            property_model_dep.cache_clear()
