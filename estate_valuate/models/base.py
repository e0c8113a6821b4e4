from typing import Protocol

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


class PlanningModel(Protocol):
    async def analyze(self, data: PlanningAnalysisInput) -> PlanningAnalysis:
        """
        Reads a planning map image for one plot and returns:
        currentStatus, newPlanning, affectedArea, impactLevel, notes.
        """
        ...


class ValuationRangeModel(Protocol):
    async def valuation_range(self, data: ValuationRangeInput) -> ValuationRange:
        """
        Estimates lowValue <= reasonableValue <= highValue (VND) from the
        property details and a market summary.
        """
        ...


class PropertyAnalysisModel(Protocol):
    async def analyze_property(self, data: PropertyAnalysisInput) -> PropertyAnalysis:
        """
        Five 1-10 scores (legality, liquidity, location, evaluation, dividend)
        with one short description each.
        """
        ...


class PropertySummaryModel(Protocol):
    async def summarize(self, data: PropertySummaryInput) -> PropertySummary:
        ...
