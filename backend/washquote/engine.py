"""Core estimation engine for exterior cleaning services.

Every service is priced with a closed-form linear formula on top of a flat
base charge:

1. **House washing**: ``base + sq_ft * price_per_sq_ft + windows * price_per_window``.
   The window line only appears when at least one window was detected.
2. **Roof cleaning**: roof area is taken as 1.3x the living area to account
   for pitch and overhangs: ``base + round(sq_ft * 1.3) * price_per_sq_ft``.
3. **Gutter cleaning**: without a measured gutter run, linear feet are the
   perimeter of a square footprint plus 20%:
   ``base + round(sqrt(sq_ft) * 4 * 1.2) * price_per_linear_ft``.

Line totals are kept at full precision; only the estimate total is rounded
to cents.
"""

from __future__ import annotations

import math
import random
import uuid
from typing import TYPE_CHECKING

from washquote.exceptions import EstimatorValidationError, UnsupportedServiceError
from washquote.formatting import format_linear_feet, format_square_feet
from washquote.models.analysis import count_features
from washquote.models.enums import FeatureType, ServiceType
from washquote.models.estimate import EstimateBreakdown, ServiceEstimate

if TYPE_CHECKING:
    from collections.abc import Sequence

    from washquote.models.analysis import DetectedFeature
    from washquote.models.metrics import LLMAnalysisMetrics
    from washquote.models.pricing import PricingConfig

MIN_SQUARE_FOOTAGE = 800
MAX_SQUARE_FOOTAGE = 5000

_SQ_FT_PER_WINDOW = 125
_SQ_FT_VARIATION = 200
_ROOF_PITCH_FACTOR = 1.3
_GUTTER_SAFETY_FACTOR = 1.2
_DEFAULT_WALL_AREA_SQ_FT = 1600


def _round_half_up(value: float) -> int:
    return math.floor(value + 0.5)


def _require_finite(value: float, label: str) -> float:
    if not math.isfinite(value):
        msg = f"{label} is out of range"
        raise EstimatorValidationError(msg)
    return value


def clamp_square_footage(square_footage: float) -> int:
    """Round and clamp an area to the supported [800, 5000] sq ft range."""
    return max(
        MIN_SQUARE_FOOTAGE,
        min(MAX_SQUARE_FOOTAGE, _round_half_up(square_footage)),
    )


def calculate_square_footage(
    features: Sequence[DetectedFeature],
    rng: random.Random | None = None,
) -> int:
    """Estimate living area from detected windows.

    Used when no property record is available. Each window stands for
    roughly 125 sq ft, with up to ±200 sq ft of variation, and the result
    is clamped to [800, 5000] so zero detections still yield a usable area.
    """
    rng = rng or random.Random()
    windows = count_features(list(features), FeatureType.WINDOW)
    variation = rng.uniform(-_SQ_FT_VARIATION, _SQ_FT_VARIATION)
    return clamp_square_footage(windows * _SQ_FT_PER_WINDOW + variation)


def parse_service_type(service_type: ServiceType | str) -> ServiceType:
    """Convert a service identifier, raising UnsupportedServiceError if unknown."""
    try:
        return ServiceType(service_type)
    except ValueError:
        raise UnsupportedServiceError(str(service_type)) from None


class EstimationEngine:
    """Turns detected features and a living area into priced estimates.

    Args:
        pricing: The tenant's rates. The engine holds no other state, so
            the same inputs always yield the same prices.

    Example::

        engine = EstimationEngine(PricingConfig())
        estimate = engine.estimate(features, 2000, "house_washing")
    """

    def __init__(self, pricing: PricingConfig) -> None:
        self._pricing = pricing

    @property
    def pricing(self) -> PricingConfig:
        return self._pricing

    def estimate(
        self,
        features: Sequence[DetectedFeature],
        square_footage: int,
        service_type: ServiceType | str,
        gutter_length_ft: float | None = None,
    ) -> ServiceEstimate:
        """Price one service.

        Args:
            features: Detections aggregated over all images of the property.
            square_footage: Living area in square feet.
            service_type: One of the ``ServiceType`` identifiers.
            gutter_length_ft: Measured gutter run; when given it replaces
                the perimeter approximation for gutter cleaning.

        Raises:
            UnsupportedServiceError: If ``service_type`` is not supported.
            EstimatorValidationError: If ``square_footage`` is not a positive
                finite number, ``gutter_length_ft`` is negative or not
                finite, or the resulting total overflows.
        """
        service = parse_service_type(service_type)
        if not math.isfinite(square_footage) or square_footage <= 0:
            msg = f"Square footage must be a positive number, got {square_footage}"
            raise EstimatorValidationError(msg)
        if gutter_length_ft is not None and (
            not math.isfinite(gutter_length_ft) or gutter_length_ft < 0
        ):
            msg = f"Gutter length must be a non-negative number, got {gutter_length_ft}"
            raise EstimatorValidationError(msg)
        windows = count_features(list(features), FeatureType.WINDOW)
        return self._estimate_service(
            service, square_footage, windows, gutter_length_ft
        )

    def estimate_from_metrics(
        self,
        metrics: LLMAnalysisMetrics,
        service_type: ServiceType | str,
    ) -> ServiceEstimate:
        """Price one service from inference metrics instead of detections.

        Living area is half the measured wall area (1600 sq ft of wall when
        none was measured), clamped to [800, 5000].

        Raises:
            UnsupportedServiceError: If ``service_type`` is not supported.
            EstimatorValidationError: If a metric is not finite or the
                resulting total overflows.
        """
        service = parse_service_type(service_type)
        wall_area = _require_finite(metrics.wall_area_sq_ft, "Wall area")
        if wall_area <= 0:
            wall_area = _DEFAULT_WALL_AREA_SQ_FT
        square_footage = clamp_square_footage(wall_area / 2)
        windows = max(
            0, _round_half_up(_require_finite(metrics.window_count, "Window count"))
        )
        _require_finite(metrics.gutter_length_ft, "Gutter length")
        gutter_length = (
            metrics.gutter_length_ft if metrics.gutter_length_ft > 0 else None
        )
        return self._estimate_service(
            service, square_footage, windows, gutter_length
        )

    # ------------------------------------------------------------------
    # Per-service formulas
    # ------------------------------------------------------------------

    def _estimate_service(
        self,
        service: ServiceType,
        square_footage: int,
        windows: int,
        gutter_length_ft: float | None,
    ) -> ServiceEstimate:
        if service == ServiceType.HOUSE_WASHING:
            return self._house_washing(square_footage, windows)
        if service == ServiceType.ROOF_CLEANING:
            return self._roof_cleaning(square_footage)
        return self._gutter_cleaning(square_footage, gutter_length_ft)

    def _house_washing(self, square_footage: int, windows: int) -> ServiceEstimate:
        pricing = self._pricing.house_washing
        sq_ft_charge = square_footage * pricing.price_per_sq_ft
        window_charge = windows * pricing.price_per_window

        breakdown = [
            self._base_line("Base House Washing Service", pricing.base_price),
            EstimateBreakdown(
                item=f"House Washing ({format_square_feet(square_footage)})",
                quantity=square_footage,
                unit_price=pricing.price_per_sq_ft,
                total_price=sq_ft_charge,
            ),
        ]
        if windows > 0:
            breakdown.append(
                EstimateBreakdown(
                    item=f"Window Cleaning ({windows} windows)",
                    quantity=windows,
                    unit_price=pricing.price_per_window,
                    total_price=window_charge,
                )
            )

        return self._build(
            ServiceType.HOUSE_WASHING,
            base_price=pricing.base_price,
            square_footage_price=sq_ft_charge,
            window_price=window_charge,
            breakdown=breakdown,
        )

    def _roof_cleaning(self, square_footage: int) -> ServiceEstimate:
        pricing = self._pricing.roof_cleaning
        roof_area = _round_half_up(
            _require_finite(square_footage * _ROOF_PITCH_FACTOR, "Roof area")
        )
        roof_charge = roof_area * pricing.price_per_sq_ft

        breakdown = [
            self._base_line("Base Roof Cleaning Service", pricing.base_price),
            EstimateBreakdown(
                item=f"Roof Cleaning ({format_square_feet(roof_area)})",
                quantity=roof_area,
                unit_price=pricing.price_per_sq_ft,
                total_price=roof_charge,
            ),
        ]
        return self._build(
            ServiceType.ROOF_CLEANING,
            base_price=pricing.base_price,
            square_footage_price=roof_charge,
            breakdown=breakdown,
        )

    def _gutter_cleaning(
        self, square_footage: int, gutter_length_ft: float | None
    ) -> ServiceEstimate:
        pricing = self._pricing.gutter_cleaning
        if gutter_length_ft is not None:
            linear_feet: float = gutter_length_ft
        else:
            linear_feet = _round_half_up(
                math.sqrt(square_footage) * 4 * _GUTTER_SAFETY_FACTOR
            )
        gutter_charge = linear_feet * pricing.price_per_linear_ft

        breakdown = [
            self._base_line("Base Gutter Cleaning Service", pricing.base_price),
            EstimateBreakdown(
                item=f"Gutter Cleaning ({format_linear_feet(linear_feet)})",
                quantity=linear_feet,
                unit_price=pricing.price_per_linear_ft,
                total_price=gutter_charge,
            ),
        ]
        return self._build(
            ServiceType.GUTTER_CLEANING,
            base_price=pricing.base_price,
            square_footage_price=gutter_charge,
            breakdown=breakdown,
        )

    # ------------------------------------------------------------------
    # Helpers
    # ------------------------------------------------------------------

    @staticmethod
    def _base_line(label: str, base_price: float) -> EstimateBreakdown:
        return EstimateBreakdown(
            item=label,
            quantity=1,
            unit_price=base_price,
            total_price=base_price,
        )

    @staticmethod
    def _build(
        service: ServiceType,
        *,
        base_price: float,
        square_footage_price: float,
        breakdown: list[EstimateBreakdown],
        window_price: float = 0.0,
    ) -> ServiceEstimate:
        total = _require_finite(
            sum(line.total_price for line in breakdown), "Estimate total"
        )
        return ServiceEstimate(
            id=f"est_{uuid.uuid4().hex[:12]}",
            service_type=service,
            base_price=base_price,
            square_footage_price=square_footage_price,
            window_price=window_price,
            total_price=round(total, 2),
            breakdown=breakdown,
        )
