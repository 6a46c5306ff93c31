"""Factory functions for creating pre-configured EstimationEngine instances."""

from __future__ import annotations

from typing import TYPE_CHECKING

from washquote.data.defaults import DEFAULT_PRICING
from washquote.engine import EstimationEngine

if TYPE_CHECKING:
    from washquote.models.pricing import PricingConfig


def create_engine(pricing: PricingConfig | None = None) -> EstimationEngine:
    """Create an EstimationEngine, using the default rates unless given others.

    Default rates: house washing $150 + $0.15/sq ft + $8/window, roof
    cleaning $200 + $0.25/sq ft of roof, gutter cleaning $100 +
    $3.50/linear ft.

    Example::

        from washquote import create_engine

        engine = create_engine()
        estimate = engine.estimate(features, 2000, "house_washing")
    """
    return EstimationEngine(pricing or DEFAULT_PRICING)
