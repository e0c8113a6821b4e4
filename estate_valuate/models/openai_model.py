"""OpenAI-compatible models (direct OpenAI or the AI proxy) for the planning
and property flows. Every answer is parsed as JSON and validated against the
flow's output schema."""

from __future__ import annotations

import json
import logging
import re
from typing import Type, TypeVar

from pydantic import BaseModel, ValidationError

from .base import PlanningModel, PropertyAnalysisModel, PropertySummaryModel, ValuationRangeModel
from ..core.config import Settings, settings as default_settings
from ..core.errors import DeadlineExceeded, UpstreamError
from ..schemas import (
    PlanningAnalysis,
    PlanningAnalysisInput,
    PropertyAnalysis,
    PropertyAnalysisInput,
    PropertySummary,
    PropertySummaryInput,
    ValuationRange,
    ValuationRangeInput,
)

logger = logging.getLogger(__name__)

T = TypeVar("T", bound=BaseModel)

SYSTEM_PROMPT = (
    "You are a Vietnamese land-planning analyst. Read the planning map image, "
    "locate the plot described by the user and assess how the plan affects it. "
    "Impact level: CAO when more than 50% of the plot is affected or it is "
    "reclaimed for public works, TRUNG BÌNH for 20-50%, THẤP below 20%. "
    "Answer in Vietnamese and return ONLY a JSON object with the keys "
    "currentStatus, newPlanning, affectedArea, impactLevel, notes."
)

VALUATION_PROMPT = (
    "You are an expert Vietnamese real estate appraiser. Based on the property "
    "details and market data provided, estimate a value range in VND. "
    "Return ONLY a JSON object with the numeric keys lowValue, reasonableValue, "
    "highValue, where lowValue <= reasonableValue <= highValue."
)

ANALYSIS_PROMPT = (
    "Phân tích bất động sản và chấm 5 tiêu chí (1-10): legalityScore (giấy tờ, "
    "khung pháp lý; mặc định sổ đỏ chuẩn nếu không đề cập), liquidityScore "
    "(mặt tiền, hẻm, tốc độ giao dịch), locationScore (vị trí, tiện ích trong "
    "bán kính 3-4km, quy hoạch), evaluationScore (giá thị trường và xu hướng), "
    "dividendScore (tiềm năng cho thuê, bán lại). Chỉ trả về JSON dạng "
    '{"radarScore": {"legalityScore": .., "liquidityScore": .., "locationScore": .., '
    '"evaluationScore": .., "dividendScore": .., "descriptions": [5 câu ngắn theo '
    "đúng thứ tự các tiêu chí]}}. Tiếng Việt, ngắn gọn."
)

SUMMARY_PROMPT = (
    "You are an expert real estate analyst. Write a concise, balanced summary "
    "of the property's strengths and weaknesses from the multi-criteria scores, "
    "easy to understand for a general audience. Answer in Vietnamese and return "
    'ONLY a JSON object {"summary": "..."}.'
)

_FENCE = re.compile(r"^```(?:json)?\s*|\s*```$", re.MULTILINE)


def parse_output(content: str, schema: Type[T], what: str = "answer") -> T:
    """Model text -> validated output; tolerates a ```json fence around the object."""
    try:
        data = json.loads(_FENCE.sub("", content.strip()))
        return schema.model_validate(data)
    except (ValueError, ValidationError) as exc:
        raise UpstreamError(f"LLM returned a malformed {what}", service="llm") from exc


def parse_analysis(content: str) -> PlanningAnalysis:
    return parse_output(content, PlanningAnalysis, "planning analysis")


class OpenAIChatModel:
    """Credentials, client and the one chat-completion call every flow shares."""

    def __init__(self, cfg: Settings = default_settings):
        if cfg.AI_PROXY_URL and cfg.AI_PROXY_API_KEY:
            api_key, base_url, model = cfg.AI_PROXY_API_KEY, cfg.AI_PROXY_URL, cfg.AI_PROXY_MODEL
        elif cfg.OPENAI_API_KEY:
            api_key, base_url, model = cfg.OPENAI_API_KEY, None, cfg.OPENAI_MODEL
        else:
            raise RuntimeError("AI_SERVER_PROXY_URL/AI_SERVER_PROXY_API_KEY or OPENAI_API_KEY is required")

        import openai  # imported here so the mock provider works without it

        self._openai = openai
        self.model = model
        self.timeout = cfg.LLM_TIMEOUT_SECONDS
        self.client = openai.AsyncOpenAI(api_key=api_key, base_url=base_url,
                                         timeout=cfg.LLM_TIMEOUT_SECONDS)

    async def _complete(self, system: str, user_content, schema: Type[T], what: str) -> T:
        try:
            completion = await self.client.chat.completions.create(
                model=self.model,
                messages=[
                    {"role": "system", "content": system},
                    {"role": "user", "content": user_content},
                ],
                temperature=0,
            )
        except self._openai.APITimeoutError as exc:
            logger.warning("%s call timed out", what, extra={"service": "llm"})
            raise DeadlineExceeded(f"LLM timed out after {self.timeout:g}s", service="llm") from exc
        except self._openai.OpenAIError as exc:
            logger.warning("%s call failed: %s", what, exc.__class__.__name__, extra={"service": "llm"})
            raise UpstreamError("LLM provider call failed", service="llm") from exc

        content = completion.choices[0].message.content if completion.choices else None
        if not content:
            raise UpstreamError("No output received from AI model", service="llm")
        return parse_output(content, schema, what)


class OpenAIPlanningModel(OpenAIChatModel, PlanningModel):
    async def analyze(self, data: PlanningAnalysisInput) -> PlanningAnalysis:
        """Call the chat completion API with the map image and plot details.

        Parameters
        ----------
        data: PlanningAnalysisInput
            Image URL/path and a free-text description of the plot.

        Returns
        -------
        PlanningAnalysis
            Validated model answer.
        """
        user_content = [
            {"type": "text", "text": f"Thông tin thửa đất:\n{data.landInfo}"},
            {"type": "image_url", "image_url": {"url": data.imagePath}},
        ]
        return await self._complete(SYSTEM_PROMPT, user_content, PlanningAnalysis, "planning analysis")


class OpenAIPropertyModel(OpenAIChatModel, ValuationRangeModel, PropertyAnalysisModel, PropertySummaryModel):
    async def valuation_range(self, data: ValuationRangeInput) -> ValuationRange:
        user = (
            f"Địa chỉ: {data.address}\n"
            f"Diện tích sàn: {data.size:g} m²\n"
            f"Phòng ngủ: {data.bedrooms}\n"
            f"Phòng tắm: {data.bathrooms}\n"
            f"Diện tích đất: {data.lotSize:g} m²\n"
            f"Năm xây dựng: {data.yearBuilt or 'không rõ'}\n\n"
            f"Dữ liệu thị trường:\n{data.marketData}"
        )
        out = await self._complete(VALUATION_PROMPT, user, ValuationRange, "valuation range")
        if not out.lowValue <= out.reasonableValue <= out.highValue:
            raise UpstreamError("LLM returned an unordered valuation range", service="llm")
        return out

    async def analyze_property(self, data: PropertyAnalysisInput) -> PropertyAnalysis:
        user = (
            f"- Loại: {data.type}\n"
            f"- Địa chỉ: {data.address or ''}\n"
            f"- Diện tích đất / xây dựng: {data.landArea:g}m² / {data.houseArea:g}m²\n"
            f"- Hẻm / Mặt tiền: {data.laneWidth:g}m / {data.facadeWidth:g}m\n"
            f"- Số tầng: {data.storyNumber if data.storyNumber is not None else 'không rõ'}\n"
            f"- Tiện ích xung quanh: {', '.join(data.amenities) or 'không có dữ liệu'}\n"
            f"- Pháp lý: {data.legal or 'không đề cập'}\n"
            f"- Khu vực: {data.ward}, {data.district}, {data.city} (Cấp {data.administrativeLevel})\n"
            f"- Dữ liệu thị trường: {data.marketData}"
        )
        return await self._complete(ANALYSIS_PROMPT, user, PropertyAnalysis, "property analysis")

    async def summarize(self, data: PropertySummaryInput) -> PropertySummary:
        user = "\n".join(
            f"{label} Score: {score:g}\n{label} Details: {details}"
            for label, score, details in (
                ("Location", data.locationScore, data.locationDetails),
                ("Utilities", data.utilitiesScore, data.utilitiesDetails),
                ("Planning", data.planningScore, data.planningDetails),
                ("Legal", data.legalScore, data.legalDetails),
                ("Quality", data.qualityScore, data.qualityDetails),
            )
        )
        return await self._complete(SUMMARY_PROMPT, user, PropertySummary, "property summary")
