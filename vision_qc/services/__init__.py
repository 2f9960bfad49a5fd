"""Inspection services."""

from .quality_inspector import QualityInspector

__all__ = ["QualityInspector"]
