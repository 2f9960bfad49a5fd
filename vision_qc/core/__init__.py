"""Core domain entities, exceptions and logging setup."""

from .entities import (
    Point, Corners, DetectedObject, TemplateFeature, InspectionTemplate,
    ComparisonStatus, MatchStrategy, FeatureComparison, InspectionSummary, InspectionResult,
)
from .exceptions import (
    ApplicationError, ValidationError, InvalidTemplateError, InvalidGeometryError,
    ConfigError, InspectionError,
)

__all__ = [
    "Point", "Corners", "DetectedObject", "TemplateFeature", "InspectionTemplate",
    "ComparisonStatus", "MatchStrategy", "FeatureComparison", "InspectionSummary", "InspectionResult",
    "ApplicationError", "ValidationError", "InvalidTemplateError", "InvalidGeometryError",
    "ConfigError", "InspectionError",
]
