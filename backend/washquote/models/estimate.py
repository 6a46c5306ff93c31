"""Estimate output models for the washquote estimator."""

from __future__ import annotations

from typing import Any

from pydantic import BaseModel, Field

from washquote.models.analysis import PropertyAnalysis  # noqa: TCH001 (pydantic resolves at runtime)
from washquote.models.enums import ServiceType
from washquote.models.property import PropertyData  # noqa: TCH001


class EstimateBreakdown(BaseModel):
    """One itemized charge of a service estimate."""

    item: str
    quantity: float = Field(ge=0)
    unit_price: float
    total_price: float


class ServiceEstimate(BaseModel):
    """Priced estimate for a single cleaning service.

    ``total_price`` is the sum of the breakdown lines rounded to cents, so
    with non-negative rates it can never fall below ``base_price``.
    """

    id: str
    analysis_id: str = ""
    service_type: ServiceType
    base_price: float
    square_footage_price: float
    window_price: float = 0.0
    total_price: float
    breakdown: list[EstimateBreakdown]


class AnalysisResponse(BaseModel):
    """Full result of analyzing one property request."""

    success: bool = True
    analysis_id: str
    property_data: PropertyData | None = None
    analysis: PropertyAnalysis
    estimates: list[ServiceEstimate]
    total_estimate: float
    processing_time_ms: int = Field(ge=0)

    def to_summary_dict(self) -> dict[str, Any]:
        """Produce a flat summary dict for the widget's results card."""
        from washquote.formatting import format_currency, format_square_feet

        return {
            "analysis_id": self.analysis_id,
            "address": self.property_data.address if self.property_data else None,
            "square_footage_formatted": format_square_feet(
                self.analysis.estimated_square_footage
            ),
            "total_windows": self.analysis.total_windows,
            "total_doors": self.analysis.total_doors,
            "confidence_percent": round(self.analysis.confidence * 100),
            "services": [
                {
                    "service_type": e.service_type.value,
                    "total_formatted": format_currency(e.total_price),
                }
                for e in self.estimates
            ],
            "total_estimate_formatted": format_currency(self.total_estimate),
        }
