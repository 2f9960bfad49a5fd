"""Settings validation utilities and types."""

from __future__ import annotations
from typing import Any, Dict, List, Optional, Sequence
from dataclasses import dataclass

from ..core.exceptions import ConfigError


@dataclass
class ValidationResult:
    """Result of a validation operation."""

    is_valid: bool
    error_message: Optional[str] = None
    corrected_value: Optional[Any] = None


class SettingsValidator:
    """Settings validation with auto-correction of out-of-range numbers."""

    VALID_STRATEGIES = ["TOPOLOGY", "COORDINATE", "CROP_AREA"]

    VALID_ASSIGNMENTS = ["greedy", "optimal"]

    VALID_ERROR_FRAMES = ["raw", "template"]

    VALID_PROJECTIONS = ["barycentric", "perspective"]

    VALID_LOG_LEVELS = ["DEBUG", "INFO", "WARNING", "ERROR"]

    @staticmethod
    def validate_choice(value: Any, choices: Sequence[str], field_name: str = "Value",
                        case_insensitive: bool = False) -> ValidationResult:
        """Validate a value from a fixed set of strings."""
        if not isinstance(value, str):
            return ValidationResult(False, f"{field_name} must be a string")

        if case_insensitive:
            for choice in choices:
                if choice.lower() == value.lower():
                    if choice != value:
                        return ValidationResult(True, None, choice)
                    return ValidationResult(True)

        if value not in choices:
            return ValidationResult(
                False,
                f"Invalid {field_name} '{value}'. Must be one of: {', '.join(choices)}",
            )

        return ValidationResult(True)

    @staticmethod
    def validate_boolean(value: Any, field_name: str = "Value") -> ValidationResult:
        """Validate boolean values."""
        if not isinstance(value, bool):
            if isinstance(value, str):
                if value.lower() in ("true", "1", "yes", "on"):
                    return ValidationResult(True, None, True)
                elif value.lower() in ("false", "0", "no", "off"):
                    return ValidationResult(True, None, False)
                else:
                    return ValidationResult(False, f"{field_name} must be true or false")
            elif isinstance(value, (int, float)):
                return ValidationResult(True, None, bool(value))
            else:
                return ValidationResult(False, f"{field_name} must be true or false")

        return ValidationResult(True)

    @staticmethod
    def validate_float_range(value: Any, min_val: float, max_val: float,
                             field_name: str = "Value") -> ValidationResult:
        """Validate float within range."""
        if isinstance(value, bool):
            return ValidationResult(False, f"{field_name} must be a number")
        try:
            number = float(value)
        except (ValueError, TypeError):
            return ValidationResult(False, f"{field_name} must be a number")

        if number != number:  # NaN
            return ValidationResult(False, f"{field_name} must be a number")
        if number < min_val:
            return ValidationResult(True, f"{field_name} was below minimum, corrected to {min_val}", min_val)
        elif number > max_val:
            return ValidationResult(True, f"{field_name} was above maximum, corrected to {max_val}", max_val)

        if not isinstance(value, float):
            return ValidationResult(True, None, number)
        return ValidationResult(True)

    @staticmethod
    def validate_positive_float(value: Any, field_name: str = "Value") -> ValidationResult:
        """Validate a strictly positive number."""
        result = SettingsValidator.validate_float_range(value, 0.0, float("inf"), field_name)
        if result.is_valid:
            number = result.corrected_value if result.corrected_value is not None else value
            if float(number) <= 0:
                return ValidationResult(False, f"{field_name} must be greater than zero")
        return result


# key -> validator; each returns a ValidationResult
_RULES = {
    "match_strategy": lambda v: SettingsValidator.validate_choice(
        v, SettingsValidator.VALID_STRATEGIES, "match_strategy", case_insensitive=True),
    "fingerprint_tolerance": lambda v: SettingsValidator.validate_positive_float(v, "fingerprint_tolerance"),
    "distance_ratio_weight": lambda v: SettingsValidator.validate_float_range(v, 0.0, 100.0, "distance_ratio_weight"),
    "angle_weight": lambda v: SettingsValidator.validate_float_range(v, 0.0, 100.0, "angle_weight"),
    "barycentric_weight": lambda v: SettingsValidator.validate_float_range(v, 0.0, 100.0, "barycentric_weight"),
    "topology_error_frame": lambda v: SettingsValidator.validate_choice(
        v, SettingsValidator.VALID_ERROR_FRAMES, "topology_error_frame", case_insensitive=True),
    "missing_projection": lambda v: SettingsValidator.validate_choice(
        v, SettingsValidator.VALID_PROJECTIONS, "missing_projection", case_insensitive=True),
    "min_corner_distance": lambda v: SettingsValidator.validate_float_range(v, 0.0, 10000.0, "min_corner_distance"),
    "min_quadrilateral_area": lambda v: SettingsValidator.validate_float_range(v, 0.0, 1e8, "min_quadrilateral_area"),
    "match_distance_threshold": lambda v: SettingsValidator.validate_positive_float(v, "match_distance_threshold"),
    "coordinate_assignment": lambda v: SettingsValidator.validate_choice(
        v, SettingsValidator.VALID_ASSIGNMENTS, "coordinate_assignment", case_insensitive=True),
    "treat_extra_as_error": lambda v: SettingsValidator.validate_boolean(v, "treat_extra_as_error"),
    "default_tolerance_x": lambda v: SettingsValidator.validate_float_range(v, 0.0, 10000.0, "default_tolerance_x"),
    "default_tolerance_y": lambda v: SettingsValidator.validate_float_range(v, 0.0, 10000.0, "default_tolerance_y"),
    "log_level": lambda v: SettingsValidator.validate_choice(
        v, SettingsValidator.VALID_LOG_LEVELS, "log_level", case_insensitive=True),
    "structured_logging": lambda v: SettingsValidator.validate_boolean(v, "structured_logging"),
}


def validate_settings(values: Dict[str, Any]) -> Dict[str, ValidationResult]:
    """Run every known rule over ``values``; unknown keys are not checked."""
    return {key: rule(values[key]) for key, rule in _RULES.items() if key in values}


def validate_config(values: Dict[str, Any]) -> Dict[str, Any]:
    """Return a corrected copy of ``values``.

    Raises:
        ConfigError: one or more values are invalid and cannot be corrected.
    """
    corrected = dict(values)
    errors: List[str] = []
    for key, result in validate_settings(values).items():
        if not result.is_valid:
            errors.append(result.error_message or f"Invalid value for {key}")
        elif result.corrected_value is not None:
            corrected[key] = result.corrected_value
    if errors:
        raise ConfigError("; ".join(errors))
    return corrected
