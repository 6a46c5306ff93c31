"""Measurement records returned by the vision/LLM inference service.

The inference service speaks camelCase JSON (``windowCount``,
``gutterLengthFt``...). Models accept either spelling on input and
serialize back to camelCase with ``model_dump(by_alias=True)``.
"""

from __future__ import annotations

from pydantic import BaseModel, ConfigDict, Field
from pydantic.alias_generators import to_camel


class _CamelModel(BaseModel):
    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True)


class Dimensions(_CamelModel):
    height_ft: float = 0.0
    width_ft: float = 0.0


class Difficulty(_CamelModel):
    """Free-text difficulty ratings (e.g. 'moderate', 'limited')."""

    height: str = ""
    accessibility: str = ""
    condition: str = ""


class LLMAnalysisMetrics(_CamelModel):
    """Measurements and counts for one side of a house."""

    window_count: float = 0.0
    gutter_length_ft: float = 0.0
    wall_area_sq_ft: float = 0.0
    dimensions: Dimensions = Field(default_factory=Dimensions)
    stories: float = 1.0
    difficulty: Difficulty = Field(default_factory=Difficulty)
    side: str = ""
