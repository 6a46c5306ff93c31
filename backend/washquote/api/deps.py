"""Dependency wiring for FastAPI endpoints."""

from __future__ import annotations

import logging
import os
import tempfile
from pathlib import Path

import httpx

from washquote.data.repository import TenantConfigRepository
from washquote.services.analysis_store import DEFAULT_MAX_RECORDS, InMemoryAnalysisStore
from washquote.services.feature_detector import (
    FeatureDetector,
    SimulatedFeatureDetector,
    VisionFeatureDetector,
)
from washquote.services.metrics_analyzer import MetricsAnalyzer
from washquote.services.pipeline import EstimatorPipeline
from washquote.services.property_lookup import (
    PropertyLookup,
    ProviderPropertyLookup,
    SimulatedPropertyLookup,
)
from washquote.services.storage import (
    ImageStorage,
    LocalImageStorage,
    S3ImageStorage,
)

logger = logging.getLogger(__name__)

DEFAULT_VISION_MODEL = "claude-sonnet-4-5-20250929"
PROVIDER_TIMEOUT_SECONDS = 10.0


def create_storage() -> ImageStorage:
    """S3 when ``WASHQUOTE_S3_BUCKET`` is set, otherwise local disk."""
    bucket = os.environ.get("WASHQUOTE_S3_BUCKET", "")
    if bucket:
        return S3ImageStorage(bucket, region=os.environ.get("AWS_REGION") or None)

    root = os.environ.get("WASHQUOTE_UPLOAD_DIR") or (
        Path(tempfile.gettempdir()) / "washquote-uploads"
    )
    logger.info("WASHQUOTE_S3_BUCKET not set; storing uploads under %s", root)
    return LocalImageStorage(root)


def create_property_lookup() -> PropertyLookup:
    """Provider-backed lookup when records credentials are set, else simulated."""
    simulated = SimulatedPropertyLookup()
    records_url = os.environ.get("PROPERTY_RECORDS_URL", "")
    records_key = os.environ.get("PROPERTY_RECORDS_KEY", "")
    if not (records_url and records_key):
        return simulated

    return ProviderPropertyLookup(
        http_client=httpx.Client(timeout=PROVIDER_TIMEOUT_SECONDS),
        fallback=simulated,
        records_url=records_url,
        records_key=records_key,
        standardize_url=os.environ.get("PROPERTY_STANDARDIZE_URL") or None,
        standardize_key=os.environ.get("PROPERTY_STANDARDIZE_KEY") or None,
    )


def create_tenants() -> TenantConfigRepository:
    path = os.environ.get("WASHQUOTE_TENANTS_FILE", "")
    if path:
        return TenantConfigRepository.from_json_file(path)
    return TenantConfigRepository()


def create_store() -> InMemoryAnalysisStore:
    """In-memory store capped by ``WASHQUOTE_MAX_STORED_ANALYSES``."""
    raw = os.environ.get("WASHQUOTE_MAX_STORED_ANALYSES", "")
    return InMemoryAnalysisStore(int(raw) if raw else DEFAULT_MAX_RECORDS)


def create_pipeline() -> EstimatorPipeline:
    """Create an EstimatorPipeline configured from environment variables.

    Every external service is optional. Without ``ANTHROPIC_API_KEY`` the
    simulated detector is used and measurement falls back to conservative
    defaults; without S3 or property-provider settings, local storage and
    simulated property records are used.
    """
    api_key = os.environ.get("ANTHROPIC_API_KEY", "")
    model = os.environ.get("WASHQUOTE_VISION_MODEL") or DEFAULT_VISION_MODEL

    detector: FeatureDetector
    if api_key:
        detector = VisionFeatureDetector(api_key=api_key, model=model)
    else:
        logger.warning("ANTHROPIC_API_KEY not set; using simulated feature detection")
        detector = SimulatedFeatureDetector()

    return EstimatorPipeline(
        storage=create_storage(),
        detector=detector,
        property_lookup=create_property_lookup(),
        tenants=create_tenants(),
        store=create_store(),
        metrics_analyzer=MetricsAnalyzer(api_key=api_key or None, model=model),
    )
