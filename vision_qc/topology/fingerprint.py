"""Affine-invariant fingerprints of a point relative to a four-corner frame.

A fingerprint describes where a feature sits inside the part outline
TL, TR, BR, BL without reference to image coordinates:

* distance ratios: distances to the four corners divided by the smallest
  one (scale invariant)
* relative angles: bearing to each corner minus the bearing to TL
  (rotation invariant, first entry is always 0)
* area weights: opposite-triangle area ratios (translation, scale and
  skew invariant, sum to 1)

Raw distances and bearings are kept for diagnostics only.
"""
from __future__ import annotations
from dataclasses import dataclass
from typing import Sequence, Tuple
import logging

import numpy as np

from ..core.entities import Point
from ..core.exceptions import InvalidGeometryError
from ..utils.geometry import (
    quadrilateral_area, contour_area, min_corner_separation,
    wrap_angle, angular_difference, area_weights,
)

logger = logging.getLogger(__name__)

Vector4 = Tuple[float, float, float, float]

# Corner outlines enclosing less than this are treated as collinear
AREA_EPSILON = 1e-6
# Minimum distance used as the ratio denominator (point on a corner)
DISTANCE_EPSILON = 1e-9

# Practical pixel thresholds for a usable corner quadrilateral
DEFAULT_MIN_CORNER_DISTANCE = 10.0
DEFAULT_MIN_AREA = 1000.0


@dataclass(frozen=True, slots=True)
class SimilarityWeights:
    """Weights of the three invariant families in :meth:`FeatureFingerprint.similarity`."""
    distance: float = 1.0
    angle: float = 0.5
    barycentric: float = 2.0


DEFAULT_WEIGHTS = SimilarityWeights()


@dataclass(frozen=True, slots=True)
class FeatureFingerprint:
    feature_id: str
    distance_ratios: Vector4
    relative_angles: Vector4  # radians, in (-pi, pi]
    barycentric_coords: Vector4
    raw_distances: Vector4
    raw_angles: Vector4

    def similarity(self, other: "FeatureFingerprint",
                   weights: SimilarityWeights = DEFAULT_WEIGHTS) -> float:
        """Weighted L1 distance between the invariants; 0 means identical, lower is closer."""
        dist_diff = float(np.abs(np.subtract(self.distance_ratios, other.distance_ratios)).sum())
        angle_diff = sum(angular_difference(a, b)
                         for a, b in zip(self.relative_angles, other.relative_angles))
        bary_diff = float(np.abs(np.subtract(self.barycentric_coords, other.barycentric_coords)).sum())
        return (weights.distance * dist_diff
                + weights.angle * angle_diff
                + weights.barycentric * bary_diff)

    def matches(self, other: "FeatureFingerprint", tolerance: float,
                weights: SimilarityWeights = DEFAULT_WEIGHTS) -> bool:
        return self.similarity(other, weights) < tolerance

    def __str__(self) -> str:
        def fmt(values):
            return "[" + ", ".join(f"{v:.3f}" for v in values) + "]"
        return (f"Fingerprint[{self.feature_id}: ratios={fmt(self.distance_ratios)}, "
                f"angles={fmt(self.relative_angles)}, bary={fmt(self.barycentric_coords)}]")


def similarity(a: FeatureFingerprint, b: FeatureFingerprint,
               weights: SimilarityWeights = DEFAULT_WEIGHTS) -> float:
    return a.similarity(b, weights)


def _require_four(corners: Sequence[Point]) -> None:
    if corners is None or len(corners) != 4:
        raise InvalidGeometryError(
            f"Must have exactly 4 corners, got {0 if corners is None else len(corners)}")


class FingerprintCalculator:
    """Computes fingerprints and checks corner quadrilaterals."""

    def __init__(self, min_corner_distance: float = DEFAULT_MIN_CORNER_DISTANCE,
                 min_area: float = DEFAULT_MIN_AREA):
        self.min_corner_distance = min_corner_distance
        self.min_area = min_area

    def calculate(self, point: Point, corners: Sequence[Point], feature_id: str) -> FeatureFingerprint:
        """Fingerprint of ``point`` in the frame of ``corners`` (TL, TR, BR, BL).

        Raises:
            InvalidGeometryError: fewer/more than 4 corners, or corners enclosing
                (near) zero area.
        """
        _require_four(corners)
        area = quadrilateral_area(corners)
        if area < AREA_EPSILON:
            raise InvalidGeometryError(f"Corners are collinear or coincident (area={area:.3g})")

        dx = np.array([point.x - c.x for c in corners])
        dy = np.array([point.y - c.y for c in corners])
        distances = np.hypot(dx, dy)
        angles = np.arctan2(dy, dx)

        min_dist = max(float(distances.min()), DISTANCE_EPSILON)
        ratios = distances / min_dist
        relative = tuple(wrap_angle(float(a - angles[0])) for a in angles)

        fingerprint = FeatureFingerprint(
            feature_id=feature_id,
            distance_ratios=tuple(float(r) for r in ratios),
            relative_angles=relative,
            barycentric_coords=area_weights(point, corners),
            raw_distances=tuple(float(d) for d in distances),
            raw_angles=tuple(float(a) for a in angles),
        )
        if logger.isEnabledFor(logging.DEBUG):
            logger.debug("%s", fingerprint)
        return fingerprint

    def is_valid_quadrilateral(self, corners: Sequence[Point]) -> bool:
        """True iff there are 4 corners, no two closer than ``min_corner_distance``
        and the outline encloses at least ``min_area``."""
        if corners is None or len(corners) != 4:
            return False

        separation = min_corner_separation(corners)
        if separation < self.min_corner_distance:
            logger.debug("Corners too close: %.2f pixels", separation)
            return False

        area = contour_area(corners)
        if area < self.min_area or area <= AREA_EPSILON:
            logger.debug("Quadrilateral area too small: %.2f", area)
            return False

        return True

    def ensure_valid_quadrilateral(self, corners: Sequence[Point]) -> None:
        _require_four(corners)
        if not self.is_valid_quadrilateral(corners):
            raise InvalidGeometryError(
                f"Invalid quadrilateral: corners closer than {self.min_corner_distance}px "
                f"or area below {self.min_area}px²")


def is_valid_quadrilateral(corners: Sequence[Point]) -> bool:
    return FingerprintCalculator().is_valid_quadrilateral(corners)
