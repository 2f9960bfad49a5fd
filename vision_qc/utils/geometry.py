"""Geometry helpers for four-corner frames (pure, easily unit tested)."""
from __future__ import annotations
from itertools import combinations
from typing import List, Sequence, Tuple
import math

import cv2
import numpy as np

from ..core.entities import Point

TWO_PI = 2.0 * math.pi

# Below this total the area weights of a point are undefined
WEIGHT_AREA_EPSILON = 1e-10


def triangle_area(p1: Point, p2: Point, p3: Point) -> float:
    """Unsigned triangle area (shoelace)."""
    return 0.5 * abs(
        p1.x * (p2.y - p3.y) +
        p2.x * (p3.y - p1.y) +
        p3.x * (p1.y - p2.y)
    )


def quadrilateral_area(corners: Sequence[Point]) -> float:
    """Area of the quadrilateral TL-TR-BR-BL split along the TL-BR diagonal."""
    tl, tr, br, bl = corners
    return triangle_area(tl, tr, br) + triangle_area(tl, br, bl)


def contour_area(corners: Sequence[Point]) -> float:
    """Polygon area of the corner outline as OpenCV measures it."""
    contour = np.array([[p.x, p.y] for p in corners], dtype=np.float32)
    return float(cv2.contourArea(contour))


def min_corner_separation(corners: Sequence[Point]) -> float:
    return min(a.distance_to(b) for a, b in combinations(corners, 2))


def wrap_angle(angle: float) -> float:
    """Wrap an angle in radians into (-pi, pi]."""
    wrapped = math.fmod(angle + math.pi, TWO_PI)
    if wrapped < 0:
        wrapped += TWO_PI
    wrapped -= math.pi
    if wrapped <= -math.pi:
        wrapped = math.pi
    return wrapped


def angular_difference(a: float, b: float) -> float:
    """Absolute difference of two angles folded into [0, pi]."""
    diff = abs(a - b) % TWO_PI
    return min(diff, TWO_PI - diff)


def area_weights(point: Point, corners: Sequence[Point]) -> Tuple[float, float, float, float]:
    """Weights of ``point`` w.r.t. the corners TL, TR, BR, BL.

    Each corner's weight is the area of the triangle formed by the point and
    the two corners opposite it, divided by the sum of the four areas. The
    ratios survive any affine map of point and corners together.
    """
    tl, tr, br, bl = corners
    areas = (
        triangle_area(point, tr, br),  # opposite TL
        triangle_area(point, br, bl),  # opposite TR
        triangle_area(point, bl, tl),  # opposite BR
        triangle_area(point, tl, tr),  # opposite BL
    )
    total = sum(areas)
    if total < WEIGHT_AREA_EPSILON:
        return (0.25, 0.25, 0.25, 0.25)
    return tuple(a / total for a in areas)  # type: ignore[return-value]


def interpolate(weights: Sequence[float], corners: Sequence[Point]) -> Point:
    x = sum(w * c.x for w, c in zip(weights, corners))
    y = sum(w * c.y for w, c in zip(weights, corners))
    return Point(x, y)


def interior_angles(corners: Sequence[Point]) -> List[float]:
    """Interior angle (radians) at each corner of the closed outline."""
    angles = []
    for i in range(4):
        prev, curr, nxt = corners[(i + 3) % 4], corners[i], corners[(i + 1) % 4]
        v1x, v1y = prev.x - curr.x, prev.y - curr.y
        v2x, v2y = nxt.x - curr.x, nxt.y - curr.y
        len1, len2 = math.hypot(v1x, v1y), math.hypot(v2x, v2y)
        if len1 == 0 or len2 == 0:
            angles.append(0.0)
            continue
        cos_angle = (v1x * v2x + v1y * v2y) / (len1 * len2)
        angles.append(math.acos(max(-1.0, min(1.0, cos_angle))))
    return angles


def perspective_matrix(src_corners: Sequence[Point], dst_corners: Sequence[Point]) -> np.ndarray:
    """3x3 homography taking the source corner outline onto the destination one."""
    src = np.array([[p.x, p.y] for p in src_corners], dtype=np.float32)
    dst = np.array([[p.x, p.y] for p in dst_corners], dtype=np.float32)
    return cv2.getPerspectiveTransform(src, dst)


def perspective_map(points: Sequence[Point], matrix: np.ndarray) -> List[Point]:
    if not points:
        return []
    pts = np.array([[[p.x, p.y]] for p in points], dtype=np.float64)
    mapped = cv2.perspectiveTransform(pts, np.asarray(matrix, dtype=np.float64))
    return [Point(float(x), float(y)) for x, y in mapped.reshape(-1, 2)]


def rotate_point(point: Point, angle_deg: float, origin: Point = Point(0.0, 0.0)) -> Point:
    """Rotate counter-clockwise (in image x/y terms) about ``origin``."""
    rad = math.radians(angle_deg)
    cos_a, sin_a = math.cos(rad), math.sin(rad)
    dx, dy = point.x - origin.x, point.y - origin.y
    return Point(origin.x + dx * cos_a - dy * sin_a, origin.y + dx * sin_a + dy * cos_a)
