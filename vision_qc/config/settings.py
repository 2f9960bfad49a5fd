"""Configuration dataclass and loading utilities.

Provides a strongly-typed configuration object that can be injected into the
inspector instead of passing loose keyword arguments around.

Precedence (highest first): ``VISION_QC_*`` environment variables, the JSON
config file, ``DEFAULT_CONFIG``.
"""
from __future__ import annotations
from dataclasses import dataclass, field, asdict
from typing import Any, Dict, Mapping, Optional
import json, os, logging

from ..core.exceptions import ConfigError
from .defaults import DEFAULT_CONFIG
from .validation import validate_config

logger = logging.getLogger(__name__)

ENV_PREFIX = "VISION_QC_"


@dataclass(slots=True)
class InspectionConfig:
    match_strategy: str = DEFAULT_CONFIG["match_strategy"]

    # Four-corner matching
    fingerprint_tolerance: float = DEFAULT_CONFIG["fingerprint_tolerance"]
    distance_ratio_weight: float = DEFAULT_CONFIG["distance_ratio_weight"]
    angle_weight: float = DEFAULT_CONFIG["angle_weight"]
    barycentric_weight: float = DEFAULT_CONFIG["barycentric_weight"]
    topology_error_frame: str = DEFAULT_CONFIG["topology_error_frame"]
    missing_projection: str = DEFAULT_CONFIG["missing_projection"]
    min_corner_distance: float = DEFAULT_CONFIG["min_corner_distance"]
    min_quadrilateral_area: float = DEFAULT_CONFIG["min_quadrilateral_area"]

    # Coordinate matching
    match_distance_threshold: float = DEFAULT_CONFIG["match_distance_threshold"]
    coordinate_assignment: str = DEFAULT_CONFIG["coordinate_assignment"]

    treat_extra_as_error: bool = DEFAULT_CONFIG["treat_extra_as_error"]
    default_tolerance_x: float = DEFAULT_CONFIG["default_tolerance_x"]
    default_tolerance_y: float = DEFAULT_CONFIG["default_tolerance_y"]

    log_level: str = DEFAULT_CONFIG["log_level"]
    structured_logging: bool = DEFAULT_CONFIG["structured_logging"]

    # Arbitrary extra values retained for forward compatibility
    extra: Dict[str, Any] = field(default_factory=dict)

    def to_dict(self) -> Dict[str, Any]:
        d = asdict(self)
        # merge extra keys at top-level for saving
        extra = d.pop("extra", {})
        d.update(extra)
        return d

    def get(self, key: str, default: Any = None) -> Any:
        if key in _FIELDS:
            return getattr(self, key)
        return self.extra.get(key, default)

    @classmethod
    def from_dict(cls, data: Mapping[str, Any]) -> "InspectionConfig":
        """Validate ``data`` merged over the defaults.

        Raises:
            ConfigError: a value is invalid and cannot be corrected.
        """
        merged = validate_config({**DEFAULT_CONFIG, **data})
        extra = {k: v for k, v in merged.items() if k not in _FIELDS}
        return cls(**{k: merged[k] for k in _FIELDS}, extra=extra)


_FIELDS = tuple(k for k in InspectionConfig.__annotations__ if k != "extra")


def _environment_overrides(environ: Optional[Mapping[str, str]] = None) -> Dict[str, str]:
    """``VISION_QC_<KEY>`` for every known key; values stay strings until validation."""
    environ = os.environ if environ is None else environ
    overrides = {}
    for key in _FIELDS:
        env_key = ENV_PREFIX + key.upper()
        value = environ.get(env_key)
        if value is not None and value.strip() != "":
            overrides[key] = value.strip()
            logger.debug("Configuration override from environment: %s", env_key)
    return overrides


def _read_json(path: str) -> Dict[str, Any]:
    if not os.path.isfile(path):
        logger.info(f"Configuration file '{path}' does not exist. Using defaults.")
        return {}
    try:
        with open(path, "r", encoding="utf-8") as f:
            loaded_data = json.load(f)
    except json.JSONDecodeError as e:
        logger.warning(f"Failed to parse JSON configuration file '{path}': {e}. Using defaults.")
        return {}
    except OSError as e:
        logger.warning(f"Could not read configuration file '{path}': {e}. Using defaults.")
        return {}

    if loaded_data is None:
        logger.warning(f"Configuration file '{path}' is empty, using defaults")
        return {}
    if not isinstance(loaded_data, dict):
        logger.warning(f"Configuration file '{path}' does not contain a JSON object, using defaults")
        return {}
    logger.info(f"Successfully loaded configuration from '{path}'")
    return loaded_data


def load_config(path: str = "config.json", environ: Optional[Mapping[str, str]] = None,
                strict: bool = False) -> InspectionConfig:
    """Load configuration from a JSON file plus environment overrides.

    Args:
        path: Path to the JSON config file; a missing or unreadable file
            yields defaults.
        environ: Environment mapping (defaults to ``os.environ``).
        strict: Raise instead of falling back to defaults on invalid values.

    Raises:
        ConfigError: only when ``strict`` is set and a value is invalid.
    """
    data = _read_json(path)
    data.update(_environment_overrides(environ))

    try:
        cfg = InspectionConfig.from_dict(data)
    except ConfigError as e:
        if strict:
            raise
        logger.error(f"Invalid configuration: {e}. Falling back to pure defaults.")
        return InspectionConfig()

    if cfg.extra:
        logger.info(f"Found extra configuration keys: {list(cfg.extra.keys())}")
    return cfg


def save_config(cfg: InspectionConfig, path: str = "config.json") -> None:
    """Save configuration to JSON.

    Raises:
        ConfigError: the file cannot be written.
    """
    try:
        with open(path, "w", encoding="utf-8") as f:
            json.dump(cfg.to_dict(), f, indent=2, ensure_ascii=False)
    except (OSError, TypeError) as e:
        raise ConfigError(f"Failed to save configuration to '{path}': {e}") from e
    logger.info(f"Configuration saved successfully to '{path}'")
