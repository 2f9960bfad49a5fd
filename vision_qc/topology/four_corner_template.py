"""Corner-anchored templates.

The four corners of the part (TL, TR, BR, BL, clockwise in image terms)
define the template's world frame. Every feature is stored with its raw
template-frame position, its fingerprint against the template's own corners
and its inspection metadata. Templates are read-only once built; build them
with :func:`build_four_corner_template` and recalibrate them with
:func:`update_corners`.
"""
from __future__ import annotations
from dataclasses import dataclass
from types import MappingProxyType
from typing import Dict, Iterable, List, Mapping, Optional, Sequence, Tuple
import logging
import math

from ..core.entities import Point, Corners, InspectionTemplate
from ..core.exceptions import InvalidTemplateError
from ..utils.geometry import interior_angles, perspective_matrix, perspective_map
from .fingerprint import FeatureFingerprint, FingerprintCalculator

logger = logging.getLogger(__name__)

DEFAULT_FEATURE_TOLERANCE = Point(10.0, 10.0)

# Acceptable interior angle range for a calibrated corner outline
MIN_INTERIOR_ANGLE_DEG = 45.0
MAX_INTERIOR_ANGLE_DEG = 135.0


@dataclass(frozen=True, slots=True)
class FeatureMetadata:
    name: str
    class_id: int
    class_name: Optional[str]
    required: bool
    tolerance: Point  # (x, y) allowed pixel deviation


@dataclass(frozen=True, slots=True)
class FeatureDefinition:
    """Input to the builder: one labelled feature in template-frame pixels."""
    id: str
    class_id: int
    position: Point
    name: Optional[str] = None
    class_name: Optional[str] = ""
    required: bool = True
    tolerance: Point = DEFAULT_FEATURE_TOLERANCE

    def __str__(self) -> str:
        return f"Feature[{self.id}: {self.name or self.id} at ({self.position.x:.0f},{self.position.y:.0f})]"


@dataclass(frozen=True, slots=True)
class CornerValidation:
    valid: bool
    message: str
    angles_deg: Tuple[float, ...] = ()


@dataclass(frozen=True)
class FourCornerTemplate:
    template_id: str
    corners: Corners
    fingerprints: Mapping[str, FeatureFingerprint]
    positions: Mapping[str, Point]
    metadata: Mapping[str, FeatureMetadata]

    def corner(self, index: int) -> Point:
        if not 0 <= index < 4:
            raise IndexError("Corner index must be 0-3")
        return self.corners[index]

    def get_fingerprint(self, feature_id: str) -> Optional[FeatureFingerprint]:
        return self.fingerprints.get(feature_id)

    def get_feature_position(self, feature_id: str) -> Optional[Point]:
        return self.positions.get(feature_id)

    def get_feature_metadata(self, feature_id: str) -> Optional[FeatureMetadata]:
        return self.metadata.get(feature_id)

    @property
    def feature_ids(self) -> List[str]:
        return list(self.fingerprints)

    @property
    def feature_count(self) -> int:
        return len(self.fingerprints)

    def get_required_feature_ids(self) -> List[str]:
        """Required features in insertion order."""
        return [fid for fid, meta in self.metadata.items() if meta.required]

    @classmethod
    def from_inspection_template(cls, template: InspectionTemplate,
                                 corners: Optional[Sequence[Point]] = None,
                                 calculator: Optional[FingerprintCalculator] = None) -> "FourCornerTemplate":
        """Corner-anchored view of a coordinate template.

        Only required features are carried over; a feature without its own
        tolerance gets the template default. Corners default to
        ``template.metadata['fourCorners']``.
        """
        if corners is None:
            corners = template.four_corners
        if corners is None:
            raise InvalidTemplateError(f"Template {template.template_id!r} does not define four corners")

        definitions = [
            FeatureDefinition(
                id=f.id,
                name=f.name,
                class_id=f.class_id,
                class_name=f.class_name or f.name,
                position=f.position,
                required=True,
                tolerance=template.tolerance_for(f),
            )
            for f in template.required_features
        ]
        return build_four_corner_template(template.template_id, corners, definitions, calculator)

    def __str__(self) -> str:
        tl, tr, br, bl = self.corners
        return (f"FourCornerTemplate[id={self.template_id}, corners=[TL{tl},TR{tr},BR{br},BL{bl}], "
                f"features={self.feature_count}]")


def _as_corners(corners: Sequence) -> Corners:
    if corners is None or len(corners) != 4:
        raise InvalidTemplateError(
            f"Must have exactly 4 corners, got {0 if corners is None else len(corners)}")
    return tuple(Point.of(c) for c in corners)  # type: ignore[return-value]


def _freeze(template_id: str, corners: Corners, fingerprints: Dict[str, FeatureFingerprint],
            positions: Dict[str, Point], metadata: Dict[str, FeatureMetadata]) -> FourCornerTemplate:
    return FourCornerTemplate(
        template_id=template_id,
        corners=corners,
        fingerprints=MappingProxyType(fingerprints),
        positions=MappingProxyType(positions),
        metadata=MappingProxyType(metadata),
    )


def build_four_corner_template(template_id: str, corners: Sequence[Point],
                               features: Iterable[FeatureDefinition],
                               calculator: Optional[FingerprintCalculator] = None) -> FourCornerTemplate:
    """Fingerprint every feature against the template's own corners.

    Raises:
        InvalidTemplateError: empty template id, wrong corner count or
            duplicate feature ids.
        InvalidGeometryError: degenerate corner quadrilateral.
    """
    if not template_id:
        raise InvalidTemplateError("Template ID is required")
    frame = _as_corners(corners)
    calculator = calculator or FingerprintCalculator()
    calculator.ensure_valid_quadrilateral(frame)

    fingerprints: Dict[str, FeatureFingerprint] = {}
    positions: Dict[str, Point] = {}
    metadata: Dict[str, FeatureMetadata] = {}

    for feature in features:
        if feature.id in fingerprints:
            raise InvalidTemplateError(f"Duplicate feature id {feature.id!r} in template {template_id!r}")
        position = Point.of(feature.position)
        fingerprints[feature.id] = calculator.calculate(position, frame, feature.id)
        positions[feature.id] = position
        metadata[feature.id] = FeatureMetadata(
            name=feature.name or feature.id,
            class_id=feature.class_id,
            class_name=feature.class_name,
            required=feature.required,
            tolerance=Point.of(feature.tolerance),
        )

    template = _freeze(template_id, frame, fingerprints, positions, metadata)
    logger.info("Template built: %s", template)
    return template


def update_corners(template: FourCornerTemplate, new_corners: Sequence[Point],
                   calculator: Optional[FingerprintCalculator] = None) -> FourCornerTemplate:
    """Recalibrate a template against newly measured corners.

    Fingerprints are corner-relative and carry over unchanged; raw positions
    are mapped from the old corner outline onto the new one so that reported
    pixel errors refer to the new frame.
    """
    frame = _as_corners(new_corners)
    calculator = calculator or FingerprintCalculator()
    calculator.ensure_valid_quadrilateral(frame)

    ids = template.feature_ids
    matrix = perspective_matrix(template.corners, frame)
    mapped = perspective_map([template.positions[fid] for fid in ids], matrix)

    logger.info("Updated corners for template: %s", template.template_id)
    return _freeze(
        template.template_id,
        frame,
        dict(template.fingerprints),
        dict(zip(ids, mapped)),
        dict(template.metadata),
    )


def validate_corners(corners: Sequence[Point],
                     calculator: Optional[FingerprintCalculator] = None) -> CornerValidation:
    """Check a corner outline is usable for calibration (non-degenerate, roughly rectangular)."""
    if corners is None or len(corners) != 4:
        return CornerValidation(False, "Exactly 4 corners are required")
    frame = tuple(Point.of(c) for c in corners)

    calculator = calculator or FingerprintCalculator()
    if not calculator.is_valid_quadrilateral(frame):
        return CornerValidation(False, "Invalid quadrilateral (coincident corners or area too small)")

    angles = tuple(math.degrees(a) for a in interior_angles(frame))
    for i, angle in enumerate(angles):
        if angle < MIN_INTERIOR_ANGLE_DEG or angle > MAX_INTERIOR_ANGLE_DEG:
            return CornerValidation(
                False,
                f"Corner {i} angle out of range: {angle:.1f}° "
                f"(expected {MIN_INTERIOR_ANGLE_DEG:.0f}°-{MAX_INTERIOR_ANGLE_DEG:.0f}°)",
                angles,
            )

    return CornerValidation(
        True,
        "Valid quadrilateral, angles: " + ", ".join(f"{a:.1f}°" for a in angles),
        angles,
    )
