"""Four-corner (TOPOLOGY) matcher.

The part's four detected corners define the inspection frame. Every
detection is fingerprinted against those corners and compared with the
fingerprints stored in the template, so matching holds under translation,
rotation and scale of the part relative to the camera.

Flow:
1. validate the detected corners (invalid -> failed result, no comparisons)
2. fingerprint every detection in the detected frame
3. for each required feature pick the unclaimed same-class detection with
   the lowest fingerprint similarity; accept it below ``fingerprint_tolerance``
4. unmatched required features are MISSING, unclaimed detections are EXTRA
"""
from __future__ import annotations
from typing import List, Optional, Sequence
import logging
import time

from ..core.entities import (
    Point, DetectedObject, FeatureComparison, InspectionResult, MatchStrategy,
)
from ..utils.geometry import area_weights, interpolate, perspective_matrix, perspective_map
from .fingerprint import (
    FeatureFingerprint, FingerprintCalculator, SimilarityWeights, DEFAULT_WEIGHTS,
)
from .four_corner_template import FourCornerTemplate

logger = logging.getLogger(__name__)

ERROR_FRAME_RAW = "raw"
ERROR_FRAME_TEMPLATE = "template"
PROJECTION_BARYCENTRIC = "barycentric"
PROJECTION_PERSPECTIVE = "perspective"


class FourCornerMatcher:
    """Matches detections to a :class:`FourCornerTemplate` by fingerprint similarity."""

    def __init__(self, fingerprint_tolerance: float = 0.5,
                 weights: SimilarityWeights = DEFAULT_WEIGHTS,
                 treat_extra_as_error: bool = True,
                 error_frame: str = ERROR_FRAME_RAW,
                 missing_projection: str = PROJECTION_BARYCENTRIC,
                 calculator: Optional[FingerprintCalculator] = None):
        self.fingerprint_tolerance = fingerprint_tolerance
        self.weights = weights
        self.treat_extra_as_error = treat_extra_as_error
        self.error_frame = error_frame
        self.missing_projection = missing_projection
        self.calculator = calculator or FingerprintCalculator()

    def match(self, template: FourCornerTemplate, detected_corners: Sequence[Point],
              detections: Sequence[DetectedObject]) -> InspectionResult:
        start = time.perf_counter()
        result = InspectionResult(template_id=template.template_id, match_strategy=MatchStrategy.TOPOLOGY)

        logger.debug("Four-corner matching: %s against %d detections", template, len(detections))

        frame = tuple(Point.of(c) for c in detected_corners) if detected_corners is not None else ()
        if not self.calculator.is_valid_quadrilateral(frame):
            logger.info("Invalid detected quadrilateral for template %s", template.template_id)
            result.passed = False
            result.message = "Detected four-corner coordinates are invalid"
            result.processing_time_ms = (time.perf_counter() - start) * 1000.0
            return result

        fingerprints: List[FeatureFingerprint] = [
            self.calculator.calculate(obj.center, frame, f"detected_{i}")
            for i, obj in enumerate(detections)
        ]
        claimed = [False] * len(detections)

        to_template = None
        if self.error_frame == ERROR_FRAME_TEMPLATE:
            to_template = perspective_matrix(frame, template.corners)

        for feature_id in template.get_required_feature_ids():
            template_fp = template.fingerprints[feature_id]
            meta = template.metadata[feature_id]
            template_pos = template.positions[feature_id]

            best_index: Optional[int] = None
            best_score = float("inf")
            for i, obj in enumerate(detections):
                if obj.class_id != meta.class_id:
                    continue
                if claimed[i]:
                    continue
                score = template_fp.similarity(fingerprints[i], self.weights)
                if score < best_score:
                    best_score = score
                    best_index = i

            if best_index is not None and best_score < self.fingerprint_tolerance:
                claimed[best_index] = True
                detected_pos = detections[best_index].center
                measured = detected_pos
                if to_template is not None:
                    measured = perspective_map([detected_pos], to_template)[0]
                comparison = FeatureComparison.matched(
                    feature_id, meta.name, meta.class_id, meta.class_name,
                    template_pos, detected_pos,
                    abs(measured.x - template_pos.x), abs(measured.y - template_pos.y),
                    meta.tolerance,
                )
                logger.debug("%s: %s -> (%.1f, %.1f), score=%.3f, err=(%.1f, %.1f)",
                             comparison.status.value, feature_id, detected_pos.x, detected_pos.y,
                             best_score, comparison.x_error, comparison.y_error)
            else:
                comparison = FeatureComparison.missing(
                    feature_id, meta.name, meta.class_id, meta.class_name,
                    template_pos, self._project(template_pos, template.corners, frame),
                    meta.tolerance,
                )
                logger.debug("MISSING: %s, best score=%s (threshold=%.2f)", feature_id,
                             "n/a" if best_index is None else f"{best_score:.3f}",
                             self.fingerprint_tolerance)
            result.add_comparison(comparison)

        for i, obj in enumerate(detections):
            if claimed[i]:
                continue
            comparison = FeatureComparison.extra(f"extra_{i}", obj)
            nearest = self._nearest_feature(fingerprints[i], template, obj.class_id)
            if nearest is not None:
                meta = template.metadata[nearest]
                comparison.expected_feature_name = meta.name
                comparison.expected_class_name = meta.class_name
                comparison.expected_position = template.positions[nearest]
            result.add_comparison(comparison)
            logger.debug("EXTRA: class %d at (%.1f, %.1f)", obj.class_id, obj.center.x, obj.center.y)

        result.processing_time_ms = (time.perf_counter() - start) * 1000.0
        self._set_result_message(result, template)
        logger.info("Four-corner matching complete: %s", result.message)
        return result

    def _project(self, template_pos: Point, template_corners: Sequence[Point],
                 detected_corners: Sequence[Point]) -> Point:
        """Where a template-frame position should appear in the detected frame."""
        if self.missing_projection == PROJECTION_PERSPECTIVE:
            matrix = perspective_matrix(template_corners, detected_corners)
            return perspective_map([template_pos], matrix)[0]
        return interpolate(area_weights(template_pos, template_corners), detected_corners)

    def _nearest_feature(self, fingerprint: FeatureFingerprint, template: FourCornerTemplate,
                         class_id: int) -> Optional[str]:
        """Same-class template feature with the most similar fingerprint."""
        nearest = None
        min_score = float("inf")
        for feature_id, meta in template.metadata.items():
            if meta.class_id != class_id:
                continue
            score = fingerprint.similarity(template.fingerprints[feature_id], self.weights)
            if score < min_score:
                min_score = score
                nearest = feature_id
        return nearest

    def _set_result_message(self, result: InspectionResult, template: FourCornerTemplate) -> None:
        summary = result.summary
        required_ok = summary.passed == summary.total_features - summary.extra
        extras_fail = self.treat_extra_as_error and summary.extra > 0
        result.passed = required_ok and not extras_fail
        if result.passed:
            result.message = (f"Four-corner match passed - {summary.passed}/"
                              f"{len(template.get_required_feature_ids())} features matched")
        else:
            result.message = (f"Four-corner match failed - {summary.passed} passed, "
                              f"{summary.missing} missing, {summary.deviation} deviation, "
                              f"{summary.extra} extra")

