"""Coordinate-based (COORDINATE) matcher.

Used when no reliable corner anchor is available. A global translation is
estimated from per-class centroid offsets, every detection is moved back into
the template frame, and each required feature takes the nearest unclaimed
same-class detection.

Rotation is not estimated: :class:`AffineTransform` supports an angle but the
centroid estimate always produces ``angle=0``. Parts rotated relative to the
template therefore show up as deviations.
"""
from __future__ import annotations
from collections import defaultdict
from dataclasses import dataclass
from typing import Dict, List, Optional, Sequence
import logging
import math
import time

from ..core.entities import (
    Point, DetectedObject, FeatureComparison, InspectionResult, InspectionTemplate,
    MatchStrategy, TemplateFeature,
)
from . import hungarian

logger = logging.getLogger(__name__)

ASSIGNMENT_GREEDY = "greedy"
ASSIGNMENT_OPTIMAL = "optimal"


@dataclass(frozen=True, slots=True)
class AffineTransform:
    """Template -> detected frame: rotate by ``angle`` degrees, then translate."""
    tx: float
    ty: float
    angle: float = 0.0

    def apply_forward(self, p: Point) -> Point:
        """Template coordinates -> detected image coordinates."""
        rad = math.radians(self.angle)
        cos_a, sin_a = math.cos(rad), math.sin(rad)
        return Point(p.x * cos_a - p.y * sin_a + self.tx,
                     p.x * sin_a + p.y * cos_a + self.ty)

    def apply_inverse(self, p: Point) -> Point:
        """Detected image coordinates -> template coordinates."""
        rad = math.radians(self.angle)
        cos_a, sin_a = math.cos(rad), math.sin(rad)
        dx, dy = p.x - self.tx, p.y - self.ty
        return Point(dx * cos_a + dy * sin_a, -dx * sin_a + dy * cos_a)

    def __str__(self) -> str:
        return f"AffineTransform[dx={self.tx:.2f}, dy={self.ty:.2f}, angle={self.angle:.2f}°]"


def _centroid(points: Sequence[Point]) -> Point:
    return Point(sum(p.x for p in points) / len(points), sum(p.y for p in points) / len(points))


class CoordinateBasedMatcher:
    """Nearest-neighbour matching after removing the estimated global translation."""

    def __init__(self, match_distance_threshold: float = 300.0,
                 treat_extra_as_error: bool = True,
                 assignment: str = ASSIGNMENT_GREEDY):
        self.match_distance_threshold = match_distance_threshold
        self.treat_extra_as_error = treat_extra_as_error
        self.assignment = assignment

    def estimate_transform(self, template: InspectionTemplate,
                           detections: Sequence[DetectedObject]) -> Optional[AffineTransform]:
        """Weighted average of per-class centroid offsets (weight = detections of that class).

        Returns None when no class appears in both the template's required
        features and the detections.
        """
        template_by_class: Dict[int, List[Point]] = defaultdict(list)
        for feature in template.required_features:
            template_by_class[feature.class_id].append(feature.position)

        detected_by_class: Dict[int, List[Point]] = defaultdict(list)
        for obj in detections:
            detected_by_class[obj.class_id].append(obj.center)

        total_weight = 0.0
        weighted_tx = 0.0
        weighted_ty = 0.0
        for class_id, class_detected in detected_by_class.items():
            class_template = template_by_class.get(class_id)
            if not class_template:
                continue
            template_c = _centroid(class_template)
            detected_c = _centroid(class_detected)
            weight = float(len(class_detected))
            weighted_tx += (detected_c.x - template_c.x) * weight
            weighted_ty += (detected_c.y - template_c.y) * weight
            total_weight += weight
            logger.debug("Class %d offset: template centroid %s -> detected centroid %s",
                         class_id, template_c, detected_c)

        if total_weight == 0:
            logger.debug("No class shared by template and detections, no transform estimated")
            return None

        transform = AffineTransform(weighted_tx / total_weight, weighted_ty / total_weight, 0.0)
        logger.debug("Centroid-offset transform: %s (weight=%d)", transform, int(total_weight))
        return transform

    def match(self, template: InspectionTemplate,
              detections: Sequence[DetectedObject]) -> InspectionResult:
        start = time.perf_counter()
        result = InspectionResult(template_id=template.template_id, match_strategy=MatchStrategy.COORDINATE)

        transform = self.estimate_transform(template, detections)
        transformed = [transform.apply_inverse(obj.center) if transform else obj.center
                       for obj in detections]

        required = template.required_features
        if self.assignment == ASSIGNMENT_OPTIMAL:
            pairs = self._optimal_pairs(required, detections, transformed)
        else:
            pairs = self._greedy_pairs(required, detections, transformed)

        claimed = [False] * len(detections)
        for feature in required:
            tolerance = template.tolerance_for(feature)
            index = pairs.get(feature.id)
            if index is None:
                projected = transform.apply_forward(feature.position) if transform else feature.position
                result.add_comparison(FeatureComparison.missing(
                    feature.id, feature.name, feature.class_id, feature.class_name,
                    feature.position, projected, tolerance,
                ))
                logger.debug("MISSING: %s (%s) template %s -> expected at %s",
                             feature.id, feature.name, feature.position, projected)
                continue

            claimed[index] = True
            obj = detections[index]
            moved = transformed[index]
            comparison = FeatureComparison.matched(
                feature.id, feature.name, feature.class_id,
                obj.class_name or feature.class_name,
                feature.position, obj.center,
                abs(moved.x - feature.position.x), abs(moved.y - feature.position.y),
                tolerance,
            )
            result.add_comparison(comparison)
            logger.debug("%s: %s -> detection[%d], err=(%.2f, %.2f)", comparison.status.value,
                         feature.id, index, comparison.x_error, comparison.y_error)

        if self.treat_extra_as_error:
            for i, obj in enumerate(detections):
                if claimed[i]:
                    continue
                comparison = FeatureComparison.extra(f"detected_{i}", obj)
                nearest = self._nearest_template_feature(template, obj.class_id, transformed[i])
                if nearest is not None:
                    comparison.expected_position = nearest.position
                    comparison.expected_feature_name = nearest.name
                    comparison.expected_class_name = nearest.class_name
                result.add_comparison(comparison)
                logger.debug("EXTRA: detection[%d] class %d at %s", i, obj.class_id, obj.center)

        result.processing_time_ms = (time.perf_counter() - start) * 1000.0
        self._set_result_message(result, transform)
        logger.info("Coordinate matching complete: %s", result.message)
        return result

    def _greedy_pairs(self, required: Sequence[TemplateFeature], detections: Sequence[DetectedObject],
                      transformed: Sequence[Point]) -> Dict[str, int]:
        """Feature order decides: each takes its nearest unclaimed same-class detection."""
        claimed = set()
        pairs: Dict[str, int] = {}
        for feature in required:
            nearest = None
            min_distance = float("inf")
            for i, obj in enumerate(detections):
                if obj.class_id != feature.class_id or i in claimed:
                    continue
                distance = transformed[i].distance_to(feature.position)
                if distance < min_distance:
                    min_distance = distance
                    nearest = i
            if nearest is not None and min_distance <= self.match_distance_threshold:
                claimed.add(nearest)
                pairs[feature.id] = nearest
        return pairs

    def _optimal_pairs(self, required: Sequence[TemplateFeature], detections: Sequence[DetectedObject],
                       transformed: Sequence[Point]) -> Dict[str, int]:
        """Per class, the pairing with minimum total distance; pairs past the threshold are dropped."""
        features_by_class: Dict[int, List[TemplateFeature]] = defaultdict(list)
        for feature in required:
            features_by_class[feature.class_id].append(feature)
        detections_by_class: Dict[int, List[int]] = defaultdict(list)
        for i, obj in enumerate(detections):
            detections_by_class[obj.class_id].append(i)

        # Over-threshold pairs cost more than any admissible pairing can
        gate = self.match_distance_threshold * (len(detections) + 1) + 1.0

        pairs: Dict[str, int] = {}
        for class_id, features in features_by_class.items():
            candidates = detections_by_class.get(class_id)
            if not candidates:
                continue
            costs: List[List[float]] = []
            for feature in features:
                row = []
                for i in candidates:
                    distance = transformed[i].distance_to(feature.position)
                    row.append(distance if distance <= self.match_distance_threshold else gate)
                costs.append(row)

            solution = hungarian.solve(costs)
            if not solution.converged:
                logger.warning("Optimal assignment for class %d is best-effort", class_id)
            for row, column in enumerate(solution.assignment):
                if column == hungarian.UNASSIGNED or costs[row][column] >= gate:
                    continue
                pairs[features[row].id] = candidates[column]
        return pairs

    def _nearest_template_feature(self, template: InspectionTemplate, class_id: int,
                                  position: Point) -> Optional[TemplateFeature]:
        """Nearest same-class required feature, measured in the template frame."""
        nearest = None
        min_distance = float("inf")
        for feature in template.required_features:
            if feature.class_id != class_id:
                continue
            distance = position.distance_to(feature.position)
            if distance < min_distance:
                min_distance = distance
                nearest = feature
        return nearest

    def _set_result_message(self, result: InspectionResult, transform: Optional[AffineTransform]) -> None:
        summary = result.summary
        transform_info = (f", transform: dx={transform.tx:.1f}, dy={transform.ty:.1f}, "
                          f"angle={transform.angle:.1f}°") if transform else ""
        result.passed = (summary.passed == summary.total_features - summary.extra
                         and summary.extra == 0)
        if result.passed:
            result.message = (f"Inspection passed (coordinate match) - {summary.passed} features "
                              f"matched{transform_info} - {summary}")
        else:
            result.message = (f"Inspection failed (coordinate match) - {summary.passed} passed, "
                              f"{summary.missing} missing, {summary.deviation} deviation, "
                              f"{summary.extra} extra{transform_info} - {summary}")
