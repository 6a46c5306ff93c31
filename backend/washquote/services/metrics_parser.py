"""Coercion of loosely-typed inference output into ``LLMAnalysisMetrics``.

Vision/LLM services return measurements as JSON objects, JSON strings,
JSON wrapped in prose, or plain prose. Parsing degrades through three
tiers and never raises:

1. **Structured**: decode JSON and coerce every field (``"150ft"`` -> 150).
2. **Text extraction**: take the first six numbers in the text, in the
   fixed field order.
3. **Default**: a static conservative record.
"""

from __future__ import annotations

import json
import logging
import math
import re
from dataclasses import dataclass
from typing import Any

from washquote.models.enums import MetricsSource
from washquote.models.metrics import Difficulty, Dimensions, LLMAnalysisMetrics

logger = logging.getLogger(__name__)

_NON_NUMERIC = re.compile(r"[^0-9.\-]")
_LEADING_NUMBER = re.compile(r"-?(?:\d+\.?\d*|\.\d+)")
_ANY_NUMBER = re.compile(r"[0-9]+(?:\.[0-9]+)?")


@dataclass(frozen=True)
class MetricsResult:
    """Coerced metrics plus the tier that produced them."""

    metrics: LLMAnalysisMetrics
    source: MetricsSource
    raw: Any


def coerce_number(value: Any, default: float = 0.0) -> float:
    """Coerce a loosely-typed value to a finite float.

    Text keeps only digits, ``.`` and ``-`` before parsing the leading
    number, so ``"1900 sq ft"`` becomes 1900. Negative numbers pass through;
    anything unparseable or non-finite becomes ``default``.
    """
    if isinstance(value, bool) or value is None:
        return default
    if isinstance(value, str):
        match = _LEADING_NUMBER.match(_NON_NUMERIC.sub("", value))
        if match is None:
            return default
        number = float(match.group())
    elif isinstance(value, int | float):
        try:
            number = float(value)
        except OverflowError:
            return default
    else:
        return default
    return number if math.isfinite(number) else default


def extract_json_block(text: str) -> str | None:
    """Extract JSON from ```json ... ``` code fences."""
    start = text.find("```json")
    if start == -1:
        start = text.find("```")
        if start == -1:
            return None
        start += 3
    else:
        start += 7

    end = text.find("```", start)
    if end == -1:
        return None

    return text[start:end].strip()


def _decode(text: str) -> Any:
    try:
        return json.loads(text)
    except json.JSONDecodeError:
        fenced = extract_json_block(text)
        if fenced is None:
            raise
        return json.loads(fenced)


def _field(data: dict[str, Any], camel: str, snake: str) -> Any:
    return data[camel] if camel in data else data.get(snake)


def _text(value: Any) -> str:
    return str(value) if value else ""


def parse_metrics(value: Any, side: str = "") -> LLMAnalysisMetrics | None:
    """Coerce structured inference output, or return None if it is not structured.

    Accepts a dict or a JSON string (optionally fenced inside prose), with
    camelCase or snake_case keys. Missing numbers default to 0, except
    ``stories`` which defaults to 1; missing strings default to ``""``.
    """
    if isinstance(value, str):
        try:
            data = _decode(value)
        except json.JSONDecodeError:
            return None
    else:
        data = value

    if not isinstance(data, dict):
        return None

    dimensions = data.get("dimensions")
    if not isinstance(dimensions, dict):
        dimensions = {}
    difficulty = data.get("difficulty")
    if not isinstance(difficulty, dict):
        difficulty = {}

    return LLMAnalysisMetrics(
        window_count=coerce_number(_field(data, "windowCount", "window_count")),
        gutter_length_ft=coerce_number(
            _field(data, "gutterLengthFt", "gutter_length_ft")
        ),
        wall_area_sq_ft=coerce_number(
            _field(data, "wallAreaSqFt", "wall_area_sq_ft")
        ),
        dimensions=Dimensions(
            height_ft=coerce_number(_field(dimensions, "heightFt", "height_ft")),
            width_ft=coerce_number(_field(dimensions, "widthFt", "width_ft")),
        ),
        stories=coerce_number(data.get("stories"), default=1.0),
        difficulty=Difficulty(
            height=_text(difficulty.get("height")),
            accessibility=_text(difficulty.get("accessibility")),
            condition=_text(difficulty.get("condition")),
        ),
        side=_text(data.get("side")) or side,
    )


def extract_metrics_from_text(text: str, side: str = "") -> LLMAnalysisMetrics:
    """Best-effort extraction of the first six numbers found in ``text``.

    Numbers are assigned in order to window count, gutter length, wall
    area, height, width and stories.
    """
    numbers = [float(n) for n in _ANY_NUMBER.findall(text)]

    def nth(index: int, default: float = 0.0) -> float:
        return numbers[index] if index < len(numbers) else default

    return LLMAnalysisMetrics(
        window_count=nth(0),
        gutter_length_ft=nth(1),
        wall_area_sq_ft=nth(2),
        dimensions=Dimensions(height_ft=nth(3), width_ft=nth(4)),
        stories=nth(5, default=1.0),
        side=side,
    )


def conservative_metrics(side: str = "") -> LLMAnalysisMetrics:
    """Static record for a typical two-storey house side."""
    return LLMAnalysisMetrics(
        window_count=12,
        gutter_length_ft=120,
        wall_area_sq_ft=1800,
        dimensions=Dimensions(height_ft=18, width_ft=40),
        stories=2,
        difficulty=Difficulty(
            height="moderate",
            accessibility="good",
            condition="average",
        ),
        side=side,
    )


def coerce_metrics(raw: Any, side: str = "") -> MetricsResult:
    """Run the structured -> text extraction -> default chain on ``raw``."""
    parsed = parse_metrics(raw, side)
    if parsed is not None:
        return MetricsResult(metrics=parsed, source=MetricsSource.STRUCTURED, raw=raw)

    if isinstance(raw, str) and _ANY_NUMBER.search(raw):
        logger.warning("Unstructured metrics response; extracting numbers from text")
        return MetricsResult(
            metrics=extract_metrics_from_text(raw, side),
            source=MetricsSource.TEXT_EXTRACTION,
            raw=raw,
        )

    logger.warning("Unusable metrics response; using conservative defaults")
    return MetricsResult(
        metrics=conservative_metrics(side),
        source=MetricsSource.DEFAULT,
        raw=raw,
    )
