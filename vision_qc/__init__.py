"""Template matching and tolerance evaluation for vision-based quality inspection."""

__version__ = "1.0.0"

from .core.entities import (
    Point, DetectedObject, TemplateFeature, InspectionTemplate,
    ComparisonStatus, MatchStrategy, FeatureComparison, InspectionResult,
)
from .config.settings import InspectionConfig, load_config
from .core.logging_config import configure_logging_from_config
from .services.quality_inspector import QualityInspector

__all__ = [
    "__version__",
    "Point", "DetectedObject", "TemplateFeature", "InspectionTemplate",
    "ComparisonStatus", "MatchStrategy", "FeatureComparison", "InspectionResult",
    "InspectionConfig", "load_config", "configure_logging_from_config", "QualityInspector",
]
