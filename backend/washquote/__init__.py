"""Washquote exterior-cleaning estimator.

Usage::

    from washquote import create_engine, ServiceType

    engine = create_engine()
    estimate = engine.estimate(features, 2000, ServiceType.HOUSE_WASHING)
    print(estimate.total_price)
"""

from washquote.engine import EstimationEngine, calculate_square_footage
from washquote.factory import create_engine
from washquote.models.analysis import BoundingBox, DetectedFeature, PropertyAnalysis
from washquote.models.enums import FeatureType, MetricsSource, ServiceType
from washquote.models.estimate import (
    AnalysisResponse,
    EstimateBreakdown,
    ServiceEstimate,
)
from washquote.models.metrics import LLMAnalysisMetrics
from washquote.models.pricing import PricingConfig, TenantConfig
from washquote.models.property import PropertyData
from washquote.services.metrics_parser import coerce_metrics

__version__ = "0.1.0"

__all__ = [
    "AnalysisResponse",
    "BoundingBox",
    "DetectedFeature",
    "EstimateBreakdown",
    "EstimationEngine",
    "FeatureType",
    "LLMAnalysisMetrics",
    "MetricsSource",
    "PricingConfig",
    "PropertyAnalysis",
    "PropertyData",
    "ServiceEstimate",
    "ServiceType",
    "TenantConfig",
    "__version__",
    "calculate_square_footage",
    "coerce_metrics",
    "create_engine",
]
