"""Feature detection: finds windows, doors and roofs in property photos.

Two interchangeable detectors share the ``FeatureDetector`` contract:

- ``SimulatedFeatureDetector`` produces randomized but realistic
  residential detections and needs no credentials.
- ``VisionFeatureDetector`` asks the Anthropic Vision API for bounding
  boxes.
"""

from __future__ import annotations

import base64
import json
import logging
import random
import time
from dataclasses import dataclass, field
from typing import TYPE_CHECKING, Any, Protocol

import anthropic
from anthropic.types import ImageBlockParam, TextBlockParam
from pydantic import ValidationError

from washquote.exceptions import VisionAnalysisError
from washquote.models.analysis import BoundingBox, DetectedFeature
from washquote.models.enums import FeatureType
from washquote.services.metrics_parser import extract_json_block

if TYPE_CHECKING:
    from washquote.services.storage import StoredImage

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class DetectionResult:
    """Detections for one image."""

    features: list[DetectedFeature]
    confidence: float
    processing_time_ms: int
    warnings: list[str] = field(default_factory=list)


class FeatureDetector(Protocol):
    """Finds typed exterior features in one stored image."""

    def detect(self, image: StoredImage) -> DetectionResult:
        ...


def _elapsed_ms(start: float) -> int:
    return int((time.monotonic() - start) * 1000)


# ---------------------------------------------------------------------------
# Simulated detector
# ---------------------------------------------------------------------------


class SimulatedFeatureDetector:
    """Randomized detections within typical residential ranges.

    Each image yields 8-24 windows, 1-3 doors and exactly one roof spanning
    the top of the frame. Pass a seeded ``random.Random`` for repeatable
    output.
    """

    def __init__(
        self,
        rng: random.Random | None = None,
        image_size: tuple[int, int] = (1920, 1080),
    ) -> None:
        self._rng = rng or random.Random()
        self._width, self._height = image_size

    def detect(self, image: StoredImage) -> DetectionResult:
        start = time.monotonic()
        rng = self._rng
        features: list[DetectedFeature] = []

        for _ in range(rng.randint(8, 24)):
            features.append(
                self._feature(
                    FeatureType.WINDOW,
                    confidence=rng.uniform(0.85, 0.99),
                    width=rng.uniform(60, 100),
                    height=rng.uniform(80, 120),
                )
            )

        for _ in range(rng.randint(1, 3)):
            features.append(
                self._feature(
                    FeatureType.DOOR,
                    confidence=rng.uniform(0.90, 0.99),
                    width=rng.uniform(70, 90),
                    height=rng.uniform(100, 140),
                )
            )

        roof_height = self._height * 0.4
        features.append(
            DetectedFeature(
                type=FeatureType.ROOF,
                confidence=rng.uniform(0.94, 0.99),
                bounding_box=BoundingBox(
                    x=0, y=0, width=self._width, height=roof_height
                ),
                area=self._width * roof_height,
            )
        )

        logger.debug("Simulated %d detections for %s", len(features), image.ref)
        return DetectionResult(
            features=features,
            confidence=rng.uniform(0.92, 0.99),
            processing_time_ms=_elapsed_ms(start),
        )

    def _feature(
        self,
        feature_type: FeatureType,
        *,
        confidence: float,
        width: float,
        height: float,
    ) -> DetectedFeature:
        return DetectedFeature(
            type=feature_type,
            confidence=confidence,
            bounding_box=BoundingBox(
                x=self._rng.uniform(0, max(self._width - width, 0)),
                y=self._rng.uniform(0, max(self._height - height, 0)),
                width=width,
                height=height,
            ),
            area=width * height,
        )


# ---------------------------------------------------------------------------
# Vision API detector
# ---------------------------------------------------------------------------

DETECTION_PROMPT = (
    "You are inspecting a photo of a house exterior for a cleaning "
    "company.\n\n"
    "Locate every visible window, door and roof section, and any large "
    "wall surface.\n\n"
    "Output a JSON object matching EXACTLY this schema, wrapped in "
    "```json ... ``` code fences:\n\n"
    "```json\n"
    "{\n"
    '  "detections": [\n'
    "    {\n"
    '      "type": "<one of: window, door, roof, wall>",\n'
    '      "confidence": "<number between 0 and 1>",\n'
    '      "bounding_box": {"x": 0, "y": 0, "width": 0, "height": 0}\n'
    "    }\n"
    "  ]\n"
    "}\n"
    "```\n\n"
    "Bounding boxes are in image pixels. Include one entry per window "
    "pane group, not per pane."
)


class VisionFeatureDetector:
    """Detects exterior features with the Anthropic Vision API."""

    def __init__(
        self,
        api_key: str,
        model: str = "claude-sonnet-4-5-20250929",
        timeout: float = 60.0,
        client: anthropic.Anthropic | None = None,
    ) -> None:
        self._client = client or anthropic.Anthropic(
            api_key=api_key,
            timeout=timeout,
        )
        self._model = model

    def detect(self, image: StoredImage) -> DetectionResult:
        """Detect features in one image.

        Raises
        ------
        VisionAnalysisError
            If the API call fails or the response holds no usable detections.
        """
        start = time.monotonic()
        try:
            raw_response = self._call_api(image)
        except anthropic.APIError as exc:
            msg = f"Vision API call failed for {image.ref}: {exc}"
            raise VisionAnalysisError(msg) from exc

        features, warnings = self._parse_response(raw_response)
        if not features:
            msg = f"No detections found in vision response for {image.ref}"
            raise VisionAnalysisError(msg)

        confidence = sum(f.confidence for f in features) / len(features)
        return DetectionResult(
            features=features,
            confidence=confidence,
            processing_time_ms=_elapsed_ms(start),
            warnings=warnings,
        )

    def _call_api(self, image: StoredImage) -> str:
        content: list[ImageBlockParam | TextBlockParam] = [
            ImageBlockParam(
                type="image",
                source={
                    "type": "base64",
                    "media_type": image.content_type,
                    "data": base64.b64encode(image.data).decode("utf-8"),
                },
            ),
            TextBlockParam(
                type="text",
                text="Detect the exterior features in this photo.",
            ),
        ]
        response = self._client.messages.create(
            model=self._model,
            max_tokens=4096,
            system=DETECTION_PROMPT,
            messages=[{"role": "user", "content": content}],
        )
        text_blocks = [block.text for block in response.content if block.type == "text"]
        return "\n".join(text_blocks)

    @staticmethod
    def _parse_response(raw_response: str) -> tuple[list[DetectedFeature], list[str]]:
        """Parse detections, skipping entries that do not validate."""
        json_str = extract_json_block(raw_response) or raw_response.strip()
        try:
            data: Any = json.loads(json_str)
        except json.JSONDecodeError:
            logger.warning("Invalid JSON in vision detection response")
            return [], ["Vision response was not valid JSON"]

        entries = data.get("detections", []) if isinstance(data, dict) else data
        if not isinstance(entries, list):
            return [], ["Vision response has no detections list"]

        features: list[DetectedFeature] = []
        warnings: list[str] = []
        for index, entry in enumerate(entries):
            try:
                box = BoundingBox.model_validate(entry["bounding_box"])
                features.append(
                    DetectedFeature(
                        type=FeatureType(entry["type"]),
                        confidence=float(entry["confidence"]),
                        bounding_box=box,
                        area=box.width * box.height,
                    )
                )
            except (KeyError, TypeError, ValueError, ValidationError) as exc:
                warnings.append(f"Skipped detection {index}: {exc}")
        if warnings:
            logger.warning("Skipped %d malformed detections", len(warnings))
        return features, warnings
