"""Estimator pipeline: orchestrates upload, lookup, detection and pricing."""

from __future__ import annotations

import asyncio
import logging
import math
import random
import time
import uuid
from dataclasses import dataclass
from typing import TYPE_CHECKING, Any

from washquote.engine import (
    EstimationEngine,
    calculate_square_footage,
    parse_service_type,
)
from washquote.exceptions import (
    AnalysisFailedError,
    EstimatorValidationError,
)
from washquote.models.analysis import PropertyAnalysis, count_features
from washquote.models.enums import FeatureType, MetricsSource, ServiceType
from washquote.models.estimate import AnalysisResponse
from washquote.services.metrics_parser import coerce_metrics
from washquote.services.storage import IMAGE_FOLDER

if TYPE_CHECKING:
    from collections.abc import Sequence

    from washquote.data.repository import TenantConfigRepository
    from washquote.models.analysis import DetectedFeature
    from washquote.models.estimate import ServiceEstimate
    from washquote.models.metrics import LLMAnalysisMetrics
    from washquote.models.pricing import TenantConfig
    from washquote.models.property import PropertyData
    from washquote.services.analysis_store import AnalysisStore
    from washquote.services.feature_detector import DetectionResult, FeatureDetector
    from washquote.services.metrics_analyzer import MetricsAnalyzer
    from washquote.services.property_lookup import PropertyLookup
    from washquote.services.storage import ImageStorage, ImageUpload, StoredImage

logger = logging.getLogger(__name__)

ANALYSIS_FAILED_MESSAGE = "Failed to analyze property"


@dataclass(frozen=True)
class MetricsEstimate:
    """Estimates priced from measurement metrics rather than detections."""

    metrics: LLMAnalysisMetrics
    source: MetricsSource
    estimates: list[ServiceEstimate]
    total_estimate: float
    image_ref: str | None = None
    raw: Any = None


class EstimatorPipeline:
    """Orchestrates upload -> lookup + detection -> estimation -> persistence.

    Collaborators are synchronous; the pipeline runs them in worker threads
    so independent images and the property lookup proceed concurrently.
    """

    def __init__(
        self,
        storage: ImageStorage,
        detector: FeatureDetector,
        property_lookup: PropertyLookup,
        tenants: TenantConfigRepository,
        store: AnalysisStore,
        metrics_analyzer: MetricsAnalyzer | None = None,
        rng: random.Random | None = None,
    ) -> None:
        self._storage = storage
        self._detector = detector
        self._property_lookup = property_lookup
        self._tenants = tenants
        self._store = store
        self._metrics_analyzer = metrics_analyzer
        self._rng = rng or random.Random()

    @property
    def tenants(self) -> TenantConfigRepository:
        return self._tenants

    @property
    def store(self) -> AnalysisStore:
        return self._store

    async def analyze(
        self,
        images: Sequence[ImageUpload],
        service_types: Sequence[str],
        company_id: str,
        address: str | None = None,
    ) -> AnalysisResponse:
        """Analyze property photos and price every requested service.

        Steps:
            1. Validate the request against the tenant's configuration
            2. Upload each image, then run detection on it; images are
               handled concurrently with each other and with the lookup
            3. Aggregate features and confidence across images
            4. Take square footage from the lookup, else derive it
            5. Price each service, persist the analysis, return the result

        Raises
        ------
        EstimatorValidationError
            If the request is invalid for this tenant.
        AnalysisFailedError
            If any upload, lookup, detection or pricing step fails.
        """
        start = time.monotonic()

        if not images:
            msg = "At least one image is required"
            raise EstimatorValidationError(msg)
        tenant = self._tenants.get(company_id)
        services = self._resolve_services(service_types, tenant)
        address = (address or "").strip() or None
        if address is None and tenant.features.require_address:
            msg = "An address is required for this estimator"
            raise EstimatorValidationError(msg)

        try:
            detections, stored, property_data = await self._gather(
                images, address, tenant
            )

            features: list[DetectedFeature] = [
                f for result in detections for f in result.features
            ]
            confidence = sum(r.confidence for r in detections) / len(detections)

            if property_data is not None and property_data.square_footage:
                square_footage = property_data.square_footage
            else:
                square_footage = calculate_square_footage(features, self._rng)

            analysis_id = str(uuid.uuid4())
            engine = EstimationEngine(tenant.pricing)
            estimates = [
                engine.estimate(features, square_footage, service).model_copy(
                    update={"analysis_id": analysis_id}
                )
                for service in services
            ]
            total_estimate = round(sum(e.total_price for e in estimates), 2)

            processing_time_ms = self._elapsed_ms(start)
            analysis = PropertyAnalysis(
                id=analysis_id,
                company_id=tenant.company_id,
                image_id=stored[0].ref,
                image_refs=[s.ref for s in stored],
                features=features,
                total_windows=count_features(features, FeatureType.WINDOW),
                total_doors=count_features(features, FeatureType.DOOR),
                estimated_square_footage=square_footage,
                confidence=confidence,
                property_data=property_data,
                processing_time_ms=processing_time_ms,
            )
            self._store.save(analysis)
        except Exception as exc:
            raise AnalysisFailedError(ANALYSIS_FAILED_MESSAGE) from exc

        logger.info(
            "Analysis %s: %d images, %d features, %d sq ft, total $%.2f",
            analysis_id,
            len(stored),
            len(features),
            square_footage,
            total_estimate,
        )
        return AnalysisResponse(
            analysis_id=analysis_id,
            property_data=property_data,
            analysis=analysis,
            estimates=estimates,
            total_estimate=total_estimate,
            processing_time_ms=self._elapsed_ms(start),
        )

    async def measure(
        self,
        image: ImageUpload,
        side: str,
        service_types: Sequence[str],
        company_id: str,
    ) -> MetricsEstimate:
        """Measure one house side with the metrics analyzer and price it.

        Raises
        ------
        EstimatorValidationError
            If the request is invalid or no metrics analyzer is configured.
        AnalysisFailedError
            If the upload or the analyzer call fails.
        """
        if self._metrics_analyzer is None:
            msg = "Measurement analysis is not configured"
            raise EstimatorValidationError(msg)
        tenant = self._tenants.get(company_id)
        services = self._resolve_services(service_types, tenant)
        analyzer = self._metrics_analyzer

        try:
            stored = await asyncio.to_thread(self._storage.upload, image, IMAGE_FOLDER)
            analysis = await asyncio.to_thread(analyzer.analyze, stored, side)
        except Exception as exc:
            raise AnalysisFailedError(ANALYSIS_FAILED_MESSAGE) from exc

        return self._price_metrics(
            analysis.metrics,
            analysis.source,
            services,
            tenant,
            image_ref=stored.ref,
            raw=analysis.raw,
        )

    def estimate_from_metrics(
        self,
        raw_metrics: Any,
        service_types: Sequence[str],
        company_id: str,
        side: str = "",
    ) -> MetricsEstimate:
        """Coerce client-supplied metrics and price the requested services."""
        tenant = self._tenants.get(company_id)
        services = self._resolve_services(service_types, tenant)
        result = coerce_metrics(raw_metrics, side)
        return self._price_metrics(result.metrics, result.source, services, tenant)

    # ------------------------------------------------------------------
    # Private helpers
    # ------------------------------------------------------------------

    async def _gather(
        self,
        images: Sequence[ImageUpload],
        address: str | None,
        tenant: TenantConfig,
    ) -> tuple[list[DetectionResult], list[StoredImage], PropertyData | None]:
        async def upload_and_detect(
            image: ImageUpload,
        ) -> tuple[StoredImage, DetectionResult]:
            stored = await asyncio.to_thread(self._storage.upload, image, IMAGE_FOLDER)
            detection = await asyncio.to_thread(self._detector.detect, stored)
            for warning in detection.warnings:
                logger.warning("Detection on %s: %s", stored.ref, warning)
            return stored, detection

        async def lookup() -> PropertyData | None:
            if address is None or not tenant.features.enable_property_lookup:
                return None
            return await asyncio.to_thread(self._property_lookup.lookup, address)

        property_data, *per_image = await asyncio.gather(
            lookup(),
            *(upload_and_detect(image) for image in images),
        )
        stored = [s for s, _ in per_image]
        detections = [d for _, d in per_image]
        return detections, stored, property_data

    def _price_metrics(
        self,
        metrics: LLMAnalysisMetrics,
        source: MetricsSource,
        services: list[ServiceType],
        tenant: TenantConfig,
        image_ref: str | None = None,
        raw: Any = None,
    ) -> MetricsEstimate:
        engine = EstimationEngine(tenant.pricing)
        estimates = [engine.estimate_from_metrics(metrics, s) for s in services]
        total_estimate = round(sum(e.total_price for e in estimates), 2)
        if not math.isfinite(total_estimate):
            msg = "Estimate total is out of range"
            raise EstimatorValidationError(msg)
        return MetricsEstimate(
            metrics=metrics,
            source=source,
            estimates=estimates,
            total_estimate=total_estimate,
            image_ref=image_ref,
            raw=raw,
        )

    @staticmethod
    def _resolve_services(
        service_types: Sequence[str], tenant: TenantConfig
    ) -> list[ServiceType]:
        """Parse, de-duplicate and permission-check requested services."""
        if not service_types:
            msg = "At least one service type is required"
            raise EstimatorValidationError(msg)

        services = list(dict.fromkeys(parse_service_type(s) for s in service_types))
        disabled = [s for s in services if not tenant.features.is_enabled(s)]
        if disabled:
            names = ", ".join(s.value for s in disabled)
            msg = f"Service not offered by this company: {names}"
            raise EstimatorValidationError(msg)
        return services

    @staticmethod
    def _elapsed_ms(start: float) -> int:
        return int((time.monotonic() - start) * 1000)
