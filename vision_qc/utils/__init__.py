"""Utility functions package."""

from .geometry import (
    triangle_area, quadrilateral_area, contour_area, min_corner_separation,
    wrap_angle, angular_difference, area_weights, interpolate, interior_angles,
    perspective_matrix, perspective_map, rotate_point,
)

__all__ = [
    "triangle_area", "quadrilateral_area", "contour_area", "min_corner_separation",
    "wrap_angle", "angular_difference", "area_weights", "interpolate", "interior_angles",
    "perspective_matrix", "perspective_map", "rotate_point",
]
