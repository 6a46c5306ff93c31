"""Measurement analysis: asks a vision LLM for cleaning-relevant metrics."""

from __future__ import annotations

import base64
import logging
from dataclasses import dataclass
from typing import TYPE_CHECKING, Any

import anthropic
from anthropic.types import ImageBlockParam, TextBlockParam

from washquote.exceptions import VisionAnalysisError
from washquote.models.enums import MetricsSource
from washquote.services.metrics_parser import coerce_metrics, conservative_metrics

if TYPE_CHECKING:
    from washquote.models.metrics import LLMAnalysisMetrics
    from washquote.services.storage import StoredImage

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class MetricsAnalysis:
    """Metrics for one photo plus the raw service output."""

    metrics: LLMAnalysisMetrics
    source: MetricsSource
    raw: Any


def build_prompt(side: str) -> str:
    return (
        "Analyze this house exterior image for cleaning service estimation. "
        "Provide detailed measurements and counts:\n\n"
        "CRITICAL REQUIREMENTS:\n"
        "1. Count all visible windows (including different sizes and types)\n"
        "2. Measure gutter length in linear feet\n"
        "3. Calculate wall/siding surface area in square feet\n"
        "4. Estimate building dimensions (height and width in feet)\n"
        "5. Determine number of stories\n"
        "6. Assess difficulty factors (height, accessibility, condition)\n\n"
        "Return precise measurements suitable for professional service quotes.\n"
        "Be conservative but accurate in your estimates.\n\n"
        f"Image side: {side}\n\n"
        "Return a valid JSON object with keys: windowCount, gutterLengthFt, "
        "wallAreaSqFt, dimensions {heightFt, widthFt}, stories, "
        "difficulty {height, accessibility, condition}."
    )


class MetricsAnalyzer:
    """Sends one house side to the Anthropic Vision API and coerces the reply.

    Without an API key no call is made and a conservative default record
    is returned, so the estimator still works in demo deployments.
    """

    def __init__(
        self,
        api_key: str | None = None,
        model: str = "claude-sonnet-4-5-20250929",
        timeout: float = 60.0,
        client: anthropic.Anthropic | None = None,
    ) -> None:
        self._model = model
        self._client = client
        if self._client is None and api_key:
            self._client = anthropic.Anthropic(api_key=api_key, timeout=timeout)

    @property
    def is_configured(self) -> bool:
        return self._client is not None

    def analyze(self, image: StoredImage, side: str = "") -> MetricsAnalysis:
        """Measure one side of a house.

        Raises
        ------
        VisionAnalysisError
            If the API call itself fails. Unparseable replies never raise;
            they degrade to text extraction or the default record.
        """
        if self._client is None:
            fallback = conservative_metrics(side)
            return MetricsAnalysis(
                metrics=fallback,
                source=MetricsSource.DEFAULT,
                raw=fallback.model_dump(by_alias=True),
            )

        try:
            raw_response = self._call_api(image, side)
        except anthropic.APIError as exc:
            msg = f"Metrics analysis failed for {image.ref}: {exc}"
            raise VisionAnalysisError(msg) from exc

        result = coerce_metrics(raw_response, side)
        logger.info("Metrics for %s side parsed via %s", side or "unknown", result.source)
        return MetricsAnalysis(
            metrics=result.metrics,
            source=result.source,
            raw=result.raw,
        )

    def _call_api(self, image: StoredImage, side: str) -> str:
        assert self._client is not None
        content: list[ImageBlockParam | TextBlockParam] = [
            ImageBlockParam(
                type="image",
                source={
                    "type": "base64",
                    "media_type": image.content_type,
                    "data": base64.b64encode(image.data).decode("utf-8"),
                },
            ),
            TextBlockParam(type="text", text=build_prompt(side)),
        ]
        response = self._client.messages.create(
            model=self._model,
            max_tokens=2048,
            messages=[{"role": "user", "content": content}],
        )
        text_blocks = [block.text for block in response.content if block.type == "text"]
        return "\n".join(text_blocks)
