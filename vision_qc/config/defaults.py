"""Default configuration values."""

from typing import Any, Dict

DEFAULT_CONFIG: Dict[str, Any] = {
    # Strategy selection
    "match_strategy": "TOPOLOGY",  # TOPOLOGY, COORDINATE, CROP_AREA

    # Four-corner (topology) matching
    "fingerprint_tolerance": 0.5,
    "distance_ratio_weight": 1.0,
    "angle_weight": 0.5,
    "barycentric_weight": 2.0,
    "topology_error_frame": "raw",  # raw, template
    "missing_projection": "barycentric",  # barycentric, perspective
    "min_corner_distance": 10.0,  # pixels
    "min_quadrilateral_area": 1000.0,  # square pixels

    # Coordinate matching
    "match_distance_threshold": 300.0,  # pixels, template frame
    "coordinate_assignment": "greedy",  # greedy, optimal

    # Shared
    "treat_extra_as_error": True,
    "default_tolerance_x": 5.0,
    "default_tolerance_y": 5.0,

    # Debug and Logging Settings
    "log_level": "INFO",
    "structured_logging": False,
}
