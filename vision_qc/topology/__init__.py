"""Template matching: corner-anchored fingerprints, coordinate matching and optimal assignment."""

from .fingerprint import (
    FeatureFingerprint, FingerprintCalculator, SimilarityWeights, DEFAULT_WEIGHTS,
    similarity, is_valid_quadrilateral,
)
from .four_corner_template import (
    FeatureDefinition, FeatureMetadata, FourCornerTemplate, CornerValidation,
    build_four_corner_template, update_corners, validate_corners,
)
from .four_corner_matcher import FourCornerMatcher
from .coordinate_matcher import AffineTransform, CoordinateBasedMatcher
from .hungarian import AssignmentResult, solve, calculate_total_cost

__all__ = [
    "FeatureFingerprint", "FingerprintCalculator", "SimilarityWeights", "DEFAULT_WEIGHTS",
    "similarity", "is_valid_quadrilateral",
    "FeatureDefinition", "FeatureMetadata", "FourCornerTemplate", "CornerValidation",
    "build_four_corner_template", "update_corners", "validate_corners",
    "FourCornerMatcher", "AffineTransform", "CoordinateBasedMatcher",
    "AssignmentResult", "solve", "calculate_total_cost",
]
