"""Configuration management package."""

from .settings import InspectionConfig, load_config, save_config
from .defaults import DEFAULT_CONFIG
from .validation import ValidationResult, SettingsValidator, validate_config

__all__ = [
    "InspectionConfig", "load_config", "save_config", "DEFAULT_CONFIG",
    "ValidationResult", "SettingsValidator", "validate_config",
]
