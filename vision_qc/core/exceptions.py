"""Custom exceptions for the inspection engine."""

class ApplicationError(Exception):
    """Base application error."""
    pass

class ValidationError(ApplicationError):
    """Data validation errors."""
    pass

class InvalidTemplateError(ValidationError):
    """Template construction errors (missing id, wrong corner count, duplicate features)."""
    pass

class InvalidGeometryError(InvalidTemplateError):
    """Degenerate quadrilateral: collinear, coincident or near-zero area corners."""
    pass

class ConfigError(ApplicationError):
    """Configuration-related errors."""
    pass

class InspectionError(ApplicationError):
    """Inspection coordinator errors."""
    pass
