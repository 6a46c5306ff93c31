"""Tests for the estimator pipeline; external services are mocked."""

from __future__ import annotations

import asyncio
import io
import logging
import random
from pathlib import Path
from unittest.mock import MagicMock

import pytest
from PIL import Image

from washquote.data.repository import TenantConfigRepository
from washquote.exceptions import (
    AnalysisFailedError,
    EstimatorValidationError,
    StorageError,
    UnsupportedServiceError,
    VisionAnalysisError,
)
from washquote.models.analysis import BoundingBox, DetectedFeature
from washquote.models.enums import FeatureType, MetricsSource, ServiceType
from washquote.models.metrics import LLMAnalysisMetrics
from washquote.models.pricing import Branding, FeatureToggles, TenantConfig
from washquote.models.property import PropertyData
from washquote.services.analysis_store import InMemoryAnalysisStore
from washquote.services.feature_detector import (
    DetectionResult,
    FeatureDetector,
    SimulatedFeatureDetector,
)
from washquote.services.metrics_analyzer import MetricsAnalysis, MetricsAnalyzer
from washquote.services.pipeline import EstimatorPipeline
from washquote.services.property_lookup import PropertyLookup
from washquote.services.storage import (
    ImageStorage,
    ImageUpload,
    LocalImageStorage,
    StoredImage,
)

# ---------------------------------------------------------------------------
# Fixtures / helpers
# ---------------------------------------------------------------------------


def _jpeg_bytes() -> bytes:
    out = io.BytesIO()
    Image.new("RGB", (32, 32), color=(90, 120, 200)).save(out, format="JPEG")
    return out.getvalue()


def _upload(name: str = "front.jpg") -> ImageUpload:
    return ImageUpload(filename=name, content_type="image/jpeg", data=_jpeg_bytes())


def _windows(count: int) -> list[DetectedFeature]:
    return [
        DetectedFeature(
            type=FeatureType.WINDOW,
            confidence=0.9,
            bounding_box=BoundingBox(x=0, y=0, width=10, height=10),
            area=100,
        )
        for _ in range(count)
    ]


def _detection(windows: int, confidence: float) -> DetectionResult:
    return DetectionResult(
        features=_windows(windows),
        confidence=confidence,
        processing_time_ms=5,
    )


def _mock_storage() -> MagicMock:
    storage = MagicMock(spec=ImageStorage)
    storage.upload.side_effect = lambda image, folder: StoredImage(
        ref=f"s3://bucket/{folder}/{image.filename}",
        content_type="image/jpeg",
        data=image.data,
    )
    return storage


def _mock_lookup(square_footage: int | None = 2000) -> MagicMock:
    lookup = MagicMock(spec=PropertyLookup)
    lookup.lookup.return_value = PropertyData(
        address="123 Main St",
        square_footage=square_footage,
        confidence=0.95,
    )
    return lookup


def _tenant(**features: bool) -> TenantConfig:
    return TenantConfig(
        company_id="sparkle",
        branding=Branding(company_name="Sparkle Wash"),
        features=FeatureToggles(**features),
    )


def _make_pipeline(
    *,
    storage: ImageStorage | None = None,
    detector: FeatureDetector | None = None,
    lookup: PropertyLookup | None = None,
    tenants: TenantConfigRepository | None = None,
    metrics_analyzer: MetricsAnalyzer | None = None,
) -> EstimatorPipeline:
    if detector is None:
        mock_detector = MagicMock(spec=FeatureDetector)
        mock_detector.detect.return_value = _detection(10, 0.9)
        detector = mock_detector
    return EstimatorPipeline(
        storage=storage or _mock_storage(),
        detector=detector,
        property_lookup=lookup or _mock_lookup(),
        tenants=tenants or TenantConfigRepository([_tenant()]),
        store=InMemoryAnalysisStore(),
        metrics_analyzer=metrics_analyzer,
        rng=random.Random(0),
    )


# ---------------------------------------------------------------------------
# analyze: happy path
# ---------------------------------------------------------------------------


class TestAnalyze:
    def test_worked_example_totals(self) -> None:
        pipeline = _make_pipeline()

        result = asyncio.run(
            pipeline.analyze(
                [_upload()],
                ["house_washing", "roof_cleaning", "gutter_cleaning"],
                "sparkle",
                address="123 Main St",
            )
        )

        totals = {e.service_type: e.total_price for e in result.estimates}
        assert totals == {
            ServiceType.HOUSE_WASHING: 530.00,
            ServiceType.ROOF_CLEANING: 850.00,
            ServiceType.GUTTER_CLEANING: 852.50,
        }
        assert result.total_estimate == 2232.50
        assert result.success is True
        assert result.property_data is not None
        assert result.analysis.estimated_square_footage == 2000

    def test_aggregates_across_images(self) -> None:
        detector = MagicMock(spec=FeatureDetector)
        detector.detect.side_effect = [_detection(4, 0.8), _detection(6, 1.0)]
        pipeline = _make_pipeline(detector=detector)

        result = asyncio.run(
            pipeline.analyze(
                [_upload("a.jpg"), _upload("b.jpg")], ["house_washing"], "sparkle"
            )
        )

        assert result.analysis.total_windows == 10
        assert result.analysis.total_doors == 0
        assert len(result.analysis.features) == 10
        assert result.analysis.confidence == pytest.approx(0.9)
        assert len(result.analysis.image_refs) == 2
        assert result.analysis.image_id in result.analysis.image_refs

    def test_detection_receives_stored_image(self) -> None:
        storage = _mock_storage()
        detector = MagicMock(spec=FeatureDetector)
        detector.detect.return_value = _detection(3, 0.9)
        pipeline = _make_pipeline(storage=storage, detector=detector)

        asyncio.run(pipeline.analyze([_upload("side.jpg")], ["roof_cleaning"], "sparkle"))

        stored = detector.detect.call_args.args[0]
        assert stored.ref == "s3://bucket/property-images/side.jpg"

    def test_estimates_tagged_with_analysis_id(self) -> None:
        result = asyncio.run(
            _make_pipeline().analyze([_upload()], ["roof_cleaning"], "sparkle")
        )

        assert result.estimates[0].analysis_id == result.analysis_id
        assert result.analysis.id == result.analysis_id

    def test_analysis_is_persisted(self) -> None:
        pipeline = _make_pipeline()

        result = asyncio.run(pipeline.analyze([_upload()], ["roof_cleaning"], "sparkle"))

        assert pipeline.store.get(result.analysis_id) == result.analysis

    def test_persisted_analysis_keeps_property_data(self) -> None:
        pipeline = _make_pipeline()

        result = asyncio.run(
            pipeline.analyze([_upload()], ["roof_cleaning"], "sparkle", address="1 A St")
        )

        stored = pipeline.store.get(result.analysis_id)
        assert stored is not None
        assert stored.property_data == result.property_data
        assert stored.property_data is not None
        assert stored.property_data.square_footage == 2000

    def test_detection_warnings_are_logged(
        self, caplog: pytest.LogCaptureFixture
    ) -> None:
        detector = MagicMock(spec=FeatureDetector)
        detector.detect.return_value = DetectionResult(
            features=_windows(10),
            confidence=0.9,
            processing_time_ms=5,
            warnings=["Skipped detection 3: 'type'"],
        )
        pipeline = _make_pipeline(detector=detector)

        with caplog.at_level(logging.WARNING, logger="washquote.services.pipeline"):
            asyncio.run(pipeline.analyze([_upload()], ["roof_cleaning"], "sparkle"))

        assert "Skipped detection 3" in caplog.text

    def test_without_address_square_footage_is_derived(self) -> None:

        lookup = _mock_lookup()
        pipeline = _make_pipeline(lookup=lookup)

        result = asyncio.run(pipeline.analyze([_upload()], ["house_washing"], "sparkle"))

        lookup.lookup.assert_not_called()
        assert result.property_data is None
        # 10 windows * 125 +/- 200
        assert 1050 <= result.analysis.estimated_square_footage <= 1450

    def test_lookup_without_square_footage_falls_back(self) -> None:
        pipeline = _make_pipeline(lookup=_mock_lookup(square_footage=None))

        result = asyncio.run(
            pipeline.analyze([_upload()], ["house_washing"], "sparkle", address="1 A St")
        )

        assert result.property_data is not None
        assert 1050 <= result.analysis.estimated_square_footage <= 1450

    def test_lookup_disabled_by_tenant(self) -> None:
        lookup = _mock_lookup()
        pipeline = _make_pipeline(
            lookup=lookup,
            tenants=TenantConfigRepository([_tenant(enable_property_lookup=False)]),
        )

        asyncio.run(
            pipeline.analyze([_upload()], ["house_washing"], "sparkle", address="1 A St")
        )

        lookup.lookup.assert_not_called()

    def test_duplicate_services_priced_once(self) -> None:
        result = asyncio.run(
            _make_pipeline().analyze(
                [_upload()], ["roof_cleaning", "roof_cleaning"], "sparkle"
            )
        )

        assert len(result.estimates) == 1

    def test_end_to_end_with_simulated_detector(self, tmp_path: Path) -> None:
        pipeline = _make_pipeline(
            storage=LocalImageStorage(tmp_path),
            detector=SimulatedFeatureDetector(rng=random.Random(5)),
        )

        result = asyncio.run(
            pipeline.analyze([_upload()], ["house_washing", "gutter_cleaning"], "demo")
        )

        assert 8 <= result.analysis.total_windows <= 24
        assert result.analysis.image_id.startswith("file://")
        assert result.total_estimate == pytest.approx(
            sum(e.total_price for e in result.estimates)
        )


# ---------------------------------------------------------------------------
# analyze: validation
# ---------------------------------------------------------------------------


class TestAnalyzeValidation:
    def test_no_images(self) -> None:
        with pytest.raises(EstimatorValidationError, match="image"):
            asyncio.run(_make_pipeline().analyze([], ["house_washing"], "sparkle"))

    def test_no_services(self) -> None:
        with pytest.raises(EstimatorValidationError, match="service"):
            asyncio.run(_make_pipeline().analyze([_upload()], [], "sparkle"))

    def test_unsupported_service(self) -> None:
        storage = _mock_storage()

        with pytest.raises(UnsupportedServiceError):
            asyncio.run(
                _make_pipeline(storage=storage).analyze(
                    [_upload()], ["window_tinting"], "sparkle"
                )
            )
        storage.upload.assert_not_called()

    def test_disabled_service(self) -> None:
        pipeline = _make_pipeline(
            tenants=TenantConfigRepository([_tenant(enable_gutter_cleaning=False)])
        )

        with pytest.raises(EstimatorValidationError, match="gutter_cleaning"):
            asyncio.run(pipeline.analyze([_upload()], ["gutter_cleaning"], "sparkle"))

    def test_required_address_missing(self) -> None:
        pipeline = _make_pipeline(
            tenants=TenantConfigRepository([_tenant(require_address=True)])
        )

        with pytest.raises(EstimatorValidationError, match="address"):
            asyncio.run(
                pipeline.analyze([_upload()], ["house_washing"], "sparkle", address="  ")
            )


# ---------------------------------------------------------------------------
# analyze: external failures
# ---------------------------------------------------------------------------


class TestAnalyzeFailures:
    def test_upload_failure(self) -> None:
        storage = MagicMock(spec=ImageStorage)
        storage.upload.side_effect = StorageError("bucket unavailable")
        pipeline = _make_pipeline(storage=storage)

        with pytest.raises(AnalysisFailedError, match="Failed to analyze property") as exc_info:
            asyncio.run(pipeline.analyze([_upload()], ["house_washing"], "sparkle"))
        assert isinstance(exc_info.value.__cause__, StorageError)

    def test_detection_failure_returns_no_partial_result(self) -> None:
        detector = MagicMock(spec=FeatureDetector)
        detector.detect.side_effect = [_detection(4, 0.9), VisionAnalysisError("boom")]
        pipeline = _make_pipeline(detector=detector)

        with pytest.raises(AnalysisFailedError):
            asyncio.run(
                pipeline.analyze(
                    [_upload("a.jpg"), _upload("b.jpg")], ["house_washing"], "sparkle"
                )
            )
        assert len(pipeline.store) == 0  # type: ignore[arg-type]

    def test_lookup_failure(self) -> None:
        lookup = MagicMock(spec=PropertyLookup)
        lookup.lookup.side_effect = RuntimeError("provider down")
        pipeline = _make_pipeline(lookup=lookup)

        with pytest.raises(AnalysisFailedError):
            asyncio.run(
                pipeline.analyze([_upload()], ["house_washing"], "sparkle", address="1 A St")
            )


# ---------------------------------------------------------------------------
# Metrics-based pricing
# ---------------------------------------------------------------------------


class TestEstimateFromMetrics:
    def test_loose_metrics_coerced_and_priced(self) -> None:
        result = _make_pipeline().estimate_from_metrics(
            {"windowCount": "10", "wallAreaSqFt": "4000 sq ft"},
            ["house_washing"],
            "sparkle",
        )

        assert result.source == MetricsSource.STRUCTURED
        assert result.metrics.window_count == 10
        assert result.total_estimate == 530.00

    def test_unusable_metrics_use_defaults(self) -> None:
        result = _make_pipeline().estimate_from_metrics(
            "no idea", ["gutter_cleaning"], "sparkle", side="back"
        )

        assert result.source == MetricsSource.DEFAULT
        assert result.metrics.side == "back"
        # conservative gutter run of 120 ft
        assert result.total_estimate == 520.00

    def test_validation_applies(self) -> None:
        with pytest.raises(EstimatorValidationError):
            _make_pipeline().estimate_from_metrics({}, [], "sparkle")


    def test_overflowing_metrics_rejected(self) -> None:
        with pytest.raises(EstimatorValidationError, match="out of range"):
            _make_pipeline().estimate_from_metrics(
                {"gutterLengthFt": 1e308}, ["gutter_cleaning"], "sparkle"
            )

    def test_overflowing_sum_of_services_rejected(self) -> None:
        with pytest.raises(EstimatorValidationError, match="out of range"):
            _make_pipeline().estimate_from_metrics(
                {"windowCount": 1e307 * 2, "gutterLengthFt": 5e307},
                ["house_washing", "gutter_cleaning"],
                "sparkle",
            )


class TestMeasure:

    def test_measure_prices_analyzer_metrics(self) -> None:
        analyzer = MagicMock(spec=MetricsAnalyzer)
        analyzer.analyze.return_value = MetricsAnalysis(
            metrics=LLMAnalysisMetrics(gutter_length_ft=200, wall_area_sq_ft=3000),
            source=MetricsSource.STRUCTURED,
            raw={"gutterLengthFt": 200},
        )
        pipeline = _make_pipeline(metrics_analyzer=analyzer)

        result = asyncio.run(
            pipeline.measure(_upload(), "front", ["gutter_cleaning"], "sparkle")
        )

        assert result.total_estimate == 800.00
        assert result.image_ref == "s3://bucket/property-images/front.jpg"
        assert analyzer.analyze.call_args.args[1] == "front"

    def test_measure_without_analyzer(self) -> None:
        with pytest.raises(EstimatorValidationError, match="not configured"):
            asyncio.run(
                _make_pipeline().measure(_upload(), "front", ["house_washing"], "sparkle")
            )

    def test_measure_analyzer_failure(self) -> None:
        analyzer = MagicMock(spec=MetricsAnalyzer)
        analyzer.analyze.side_effect = VisionAnalysisError("timeout")
        pipeline = _make_pipeline(metrics_analyzer=analyzer)

        with pytest.raises(AnalysisFailedError):
            asyncio.run(pipeline.measure(_upload(), "front", ["house_washing"], "sparkle"))
