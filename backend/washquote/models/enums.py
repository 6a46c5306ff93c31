"""Enums for the washquote domain models."""

from enum import StrEnum


class ServiceType(StrEnum):
    """Cleaning services the estimation engine can price."""

    HOUSE_WASHING = "house_washing"
    ROOF_CLEANING = "roof_cleaning"
    GUTTER_CLEANING = "gutter_cleaning"


class FeatureType(StrEnum):
    """Kinds of exterior feature a detector can report."""

    WINDOW = "window"
    DOOR = "door"
    ROOF = "roof"
    WALL = "wall"


class MetricsSource(StrEnum):
    """Which parsing tier produced a metrics record."""

    STRUCTURED = "structured"
    TEXT_EXTRACTION = "text_extraction"
    DEFAULT = "default"
