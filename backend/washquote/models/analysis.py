"""Detection and analysis models produced from uploaded property photos."""

from __future__ import annotations

from datetime import datetime

from pydantic import BaseModel, Field

from washquote.models.enums import FeatureType
from washquote.models.property import PropertyData  # noqa: TCH001


class BoundingBox(BaseModel):
    """Pixel-space rectangle around a detected feature."""

    x: float = Field(ge=0)
    y: float = Field(ge=0)
    width: float = Field(ge=0)
    height: float = Field(ge=0)


class DetectedFeature(BaseModel):
    """A single typed region found in one image."""

    type: FeatureType
    confidence: float = Field(ge=0, le=1)
    bounding_box: BoundingBox
    area: float = Field(ge=0)


class PropertyAnalysis(BaseModel):
    """Aggregated analysis across every image of one request.

    Window and door totals are always derived from ``features``; the
    aggregate confidence is the mean of the per-image confidences.
    ``property_data`` keeps the address lookup result, when there was one.
    """

    id: str
    company_id: str
    image_id: str
    image_refs: list[str]
    features: list[DetectedFeature]
    total_windows: int = Field(ge=0)
    total_doors: int = Field(ge=0)
    estimated_square_footage: int = Field(gt=0)
    confidence: float = Field(ge=0, le=1)
    property_data: PropertyData | None = None
    processing_time_ms: int = Field(ge=0)
    created_at: datetime = Field(default_factory=datetime.now)


def count_features(
    features: list[DetectedFeature], feature_type: FeatureType
) -> int:
    """Count the features of one type."""
    return sum(1 for f in features if f.type == feature_type)
