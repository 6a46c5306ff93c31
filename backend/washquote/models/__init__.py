"""Domain models for the washquote estimator."""

from washquote.models.analysis import (
    BoundingBox,
    DetectedFeature,
    PropertyAnalysis,
    count_features,
)
from washquote.models.enums import FeatureType, MetricsSource, ServiceType
from washquote.models.estimate import (
    AnalysisResponse,
    EstimateBreakdown,
    ServiceEstimate,
)
from washquote.models.metrics import Difficulty, Dimensions, LLMAnalysisMetrics
from washquote.models.pricing import (
    Branding,
    FeatureToggles,
    GutterCleaningPricing,
    HouseWashingPricing,
    PricingConfig,
    RoofCleaningPricing,
    TenantConfig,
)
from washquote.models.property import PropertyData

__all__ = [
    "AnalysisResponse",
    "BoundingBox",
    "Branding",
    "DetectedFeature",
    "Difficulty",
    "Dimensions",
    "EstimateBreakdown",
    "FeatureToggles",
    "FeatureType",
    "GutterCleaningPricing",
    "HouseWashingPricing",
    "LLMAnalysisMetrics",
    "MetricsSource",
    "PricingConfig",
    "PropertyAnalysis",
    "PropertyData",
    "RoofCleaningPricing",
    "ServiceEstimate",
    "ServiceType",
    "TenantConfig",
    "count_features",
]
