import re

from .base import PlanningModel, PropertyAnalysisModel, PropertySummaryModel, ValuationRangeModel
from ..schemas import (
    PlanningAnalysis,
    PlanningAnalysisInput,
    PropertyAnalysis,
    PropertyAnalysisInput,
    PropertySummary,
    PropertySummaryInput,
    RadarScore,
    ValuationRange,
    ValuationRangeInput,
)

# Used when the market summary carries no average price
MOCK_PRICE_PER_M2 = 300_000_000

_AVG_PRICE = re.compile(r"Giá trung bình:\s*([\d.]+)\s*triệu")


class MockPlanningModel(PlanningModel):
    """
    Offline stand-in used when no LLM provider is configured. Keeps the
    output schema so the UI and tests run without credentials, and says
    plainly that nothing was analysed.
    """
    async def analyze(self, data: PlanningAnalysisInput) -> PlanningAnalysis:
        return PlanningAnalysis(
            currentStatus="Chưa xác định (chưa cấu hình mô hình AI)",
            newPlanning="Chưa xác định",
            affectedArea="~0 m² (~0%)",
            impactLevel="THẤP",
            notes=f"Kết quả mô phỏng cho ảnh {data.imagePath}",
        )


class MockPropertyModel(ValuationRangeModel, PropertyAnalysisModel, PropertySummaryModel):
    """
    Deterministic answers for the property flows: the range is the land area
    times the market average (±15%), the radar scores sit in the middle.
    """
    async def valuation_range(self, data: ValuationRangeInput) -> ValuationRange:
        match = _AVG_PRICE.search(data.marketData)
        per_m2 = float(match.group(1)) * 1_000_000 if match else MOCK_PRICE_PER_M2
        reasonable = round(per_m2 * data.lotSize)
        return ValuationRange(
            lowValue=round(reasonable * 0.85),
            reasonableValue=reasonable,
            highValue=round(reasonable * 1.15),
        )

    async def analyze_property(self, data: PropertyAnalysisInput) -> PropertyAnalysis:
        location = min(10.0, 5.0 + len(data.amenities) * 0.5)
        return PropertyAnalysis(radarScore=RadarScore(
            legalityScore=8.0 if data.legal in (None, "pink_book", "red_book") else 5.0,
            liquidityScore=6.0,
            locationScore=location,
            evaluationScore=6.0,
            dividendScore=5.0,
            descriptions=[
                f"Pháp lý: {data.legal or 'sổ hồng'} (kết quả mô phỏng)",
                "Thanh khoản trung bình (kết quả mô phỏng)",
                f"{len(data.amenities)} tiện ích xung quanh (kết quả mô phỏng)",
                "Giá tương đương mặt bằng khu vực (kết quả mô phỏng)",
                "Tiềm năng sinh lời trung bình (kết quả mô phỏng)",
            ],
        ))

    async def summarize(self, data: PropertySummaryInput) -> PropertySummary:
        scores = {
            "vị trí": data.locationScore,
            "tiện ích": data.utilitiesScore,
            "quy hoạch": data.planningScore,
            "pháp lý": data.legalScore,
            "chất lượng": data.qualityScore,
        }
        best = max(scores, key=scores.get)
        worst = min(scores, key=scores.get)
        return PropertySummary(summary=f"Điểm mạnh nhất: {best}; điểm yếu nhất: {worst} (kết quả mô phỏng).")
