"""Domain entities (data-only structures) used across matchers and services."""
from __future__ import annotations
from dataclasses import dataclass, field
from enum import Enum
from typing import Optional, Tuple, List, Dict, Any, Sequence
import math


@dataclass(frozen=True, slots=True)
class Point:
    x: float
    y: float

    def distance_to(self, other: "Point") -> float:
        return math.hypot(self.x - other.x, self.y - other.y)

    def manhattan_distance_to(self, other: "Point") -> float:
        return abs(self.x - other.x) + abs(self.y - other.y)

    def as_tuple(self) -> Tuple[float, float]:
        return (self.x, self.y)

    def to_dict(self) -> Dict[str, float]:
        return {"x": self.x, "y": self.y}

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "Point":
        return cls(float(data["x"]), float(data["y"]))

    @classmethod
    def of(cls, value: Any) -> "Point":
        """Coerce a Point, an (x, y) pair or an {'x','y'} mapping into a Point."""
        if isinstance(value, Point):
            return value
        if isinstance(value, dict):
            return cls.from_dict(value)
        x, y = value
        return cls(float(x), float(y))

    def __str__(self) -> str:
        return f"({self.x:.2f}, {self.y:.2f})"


Corners = Tuple[Point, Point, Point, Point]  # (TL, TR, BR, BL)


@dataclass(frozen=True, slots=True)
class DetectedObject:
    """A single detector output; immutable once handed to a matcher."""
    class_id: int
    center: Point
    width: float = 0.0
    height: float = 0.0
    confidence: float = 0.0
    class_name: Optional[str] = None  # Human-readable class name

    @property
    def top_left(self) -> Point:
        return Point(self.center.x - self.width / 2, self.center.y - self.height / 2)

    @property
    def bottom_right(self) -> Point:
        return Point(self.center.x + self.width / 2, self.center.y + self.height / 2)

    @property
    def bbox(self) -> Tuple[float, float, float, float]:
        """(x, y, w, h) with (x, y) the top-left corner."""
        tl = self.top_left
        return (tl.x, tl.y, self.width, self.height)

    @classmethod
    def from_xyxy(cls, class_id: int, xyxy: Sequence[float], confidence: float = 0.0,
                  class_name: Optional[str] = None) -> "DetectedObject":
        x1, y1, x2, y2 = xyxy
        return cls(
            class_id=int(class_id),
            center=Point((x1 + x2) / 2.0, (y1 + y2) / 2.0),
            width=float(x2 - x1),
            height=float(y2 - y1),
            confidence=float(confidence),
            class_name=class_name,
        )


@dataclass(frozen=True, slots=True)
class TemplateFeature:
    """A feature the inspected part must carry, in template-frame pixels."""
    id: str
    name: str
    position: Point
    class_id: int
    class_name: Optional[str] = None
    tolerance: Optional[Point] = None  # None: use the template default
    required: bool = True


@dataclass(slots=True)
class InspectionTemplate:
    """Feature list with positions and tolerances keyed by class (COORDINATE strategy)."""
    template_id: str
    features: List[TemplateFeature] = field(default_factory=list)
    tolerance_x: float = 5.0
    tolerance_y: float = 5.0
    metadata: Dict[str, Any] = field(default_factory=dict)

    def tolerance_for(self, feature: TemplateFeature) -> Point:
        if feature.tolerance is not None:
            return feature.tolerance
        return Point(self.tolerance_x, self.tolerance_y)

    @property
    def required_features(self) -> List[TemplateFeature]:
        return [f for f in self.features if f.required]

    @property
    def four_corners(self) -> Optional[Corners]:
        """Corners stored as metadata['fourCorners'] = [[x, y] * 4], or None."""
        raw = self.metadata.get("fourCorners")
        if raw is None or len(raw) != 4:
            return None
        return tuple(Point.of(c) for c in raw)  # type: ignore[return-value]


class ComparisonStatus(str, Enum):
    PASSED = "PASSED"
    DEVIATION_EXCEEDED = "DEVIATION_EXCEEDED"
    MISSING = "MISSING"
    EXTRA = "EXTRA"


class MatchStrategy(str, Enum):
    TOPOLOGY = "TOPOLOGY"
    COORDINATE = "COORDINATE"
    CROP_AREA = "CROP_AREA"


def _point_dict(p: Optional[Point]) -> Optional[Dict[str, float]]:
    return p.to_dict() if p is not None else None


@dataclass(slots=True)
class FeatureComparison:
    feature_id: str
    feature_name: Optional[str]
    status: ComparisonStatus
    class_id: int = 0
    class_name: Optional[str] = None
    template_position: Optional[Point] = None
    detected_position: Optional[Point] = None
    x_error: float = 0.0
    y_error: float = 0.0
    total_error: float = 0.0
    tolerance_x: float = 0.0
    tolerance_y: float = 0.0
    within_tolerance: bool = False
    confidence: float = 0.0
    # EXTRA diagnostics: nearest same-class template feature
    expected_position: Optional[Point] = None
    expected_feature_name: Optional[str] = None
    expected_class_name: Optional[str] = None

    @classmethod
    def matched(cls, feature_id: str, feature_name: Optional[str], class_id: int,
                class_name: Optional[str], template_position: Optional[Point],
                detected_position: Point, x_error: float, y_error: float,
                tolerance: Point) -> "FeatureComparison":
        """PASSED when both axis errors are within tolerance (inclusive), else DEVIATION_EXCEEDED."""
        within = x_error <= tolerance.x and y_error <= tolerance.y
        return cls(
            feature_id=feature_id,
            feature_name=feature_name,
            status=ComparisonStatus.PASSED if within else ComparisonStatus.DEVIATION_EXCEEDED,
            class_id=class_id,
            class_name=class_name,
            template_position=template_position,
            detected_position=detected_position,
            x_error=x_error,
            y_error=y_error,
            total_error=math.hypot(x_error, y_error),
            tolerance_x=tolerance.x,
            tolerance_y=tolerance.y,
            within_tolerance=within,
        )

    @classmethod
    def missing(cls, feature_id: str, feature_name: Optional[str], class_id: int,
                class_name: Optional[str], template_position: Point,
                projected_position: Optional[Point], tolerance: Point) -> "FeatureComparison":
        return cls(
            feature_id=feature_id,
            feature_name=feature_name,
            status=ComparisonStatus.MISSING,
            class_id=class_id,
            class_name=class_name,
            template_position=template_position,
            detected_position=projected_position,
            tolerance_x=tolerance.x,
            tolerance_y=tolerance.y,
        )

    @classmethod
    def extra(cls, feature_id: str, detection: DetectedObject) -> "FeatureComparison":
        return cls(
            feature_id=feature_id,
            feature_name=detection.class_name or "extra feature",
            status=ComparisonStatus.EXTRA,
            class_id=detection.class_id,
            class_name=detection.class_name,
            detected_position=detection.center,
            confidence=detection.confidence,
        )

    def to_dict(self) -> Dict[str, Any]:
        return {
            "featureId": self.feature_id,
            "featureName": self.feature_name,
            "classId": self.class_id,
            "className": self.class_name,
            "templatePosition": _point_dict(self.template_position),
            "detectedPosition": _point_dict(self.detected_position),
            "xError": self.x_error,
            "yError": self.y_error,
            "totalError": self.total_error,
            "toleranceX": self.tolerance_x,
            "toleranceY": self.tolerance_y,
            "withinTolerance": self.within_tolerance,
            "status": self.status.value,
            "confidence": self.confidence,
            "expectedPosition": _point_dict(self.expected_position),
            "expectedFeatureName": self.expected_feature_name,
            "expectedClassName": self.expected_class_name,
        }

    def __str__(self) -> str:
        return (f"FeatureComparison[{self.feature_id}: {self.feature_name}, status={self.status.value}, "
                f"error=({self.x_error:.2f},{self.y_error:.2f})]")


@dataclass(frozen=True, slots=True)
class InspectionSummary:
    total_features: int
    passed: int
    missing: int
    deviation: int
    extra: int

    def to_dict(self) -> Dict[str, int]:
        return {
            "totalFeatures": self.total_features,
            "passed": self.passed,
            "missing": self.missing,
            "deviation": self.deviation,
            "extra": self.extra,
        }

    def __str__(self) -> str:
        return (f"Summary[total={self.total_features}, passed={self.passed}, missing={self.missing}, "
                f"deviation={self.deviation}, extra={self.extra}]")


@dataclass(slots=True)
class InspectionResult:
    template_id: str
    match_strategy: MatchStrategy
    comparisons: List[FeatureComparison] = field(default_factory=list)
    passed: bool = False
    message: str = ""
    processing_time_ms: float = 0.0

    @classmethod
    def error(cls, template_id: str, match_strategy: MatchStrategy, message: str) -> "InspectionResult":
        """Failed result with no comparisons, used for invalid input at the matcher boundary."""
        return cls(template_id=template_id, match_strategy=match_strategy, passed=False, message=message)

    def add_comparison(self, comparison: FeatureComparison) -> None:
        self.comparisons.append(comparison)

    def _with_status(self, status: ComparisonStatus) -> List[FeatureComparison]:
        return [c for c in self.comparisons if c.status is status]

    @property
    def passed_features(self) -> List[FeatureComparison]:
        return self._with_status(ComparisonStatus.PASSED)

    @property
    def missing_features(self) -> List[FeatureComparison]:
        return self._with_status(ComparisonStatus.MISSING)

    @property
    def deviations(self) -> List[FeatureComparison]:
        return self._with_status(ComparisonStatus.DEVIATION_EXCEEDED)

    @property
    def extra_features(self) -> List[FeatureComparison]:
        return self._with_status(ComparisonStatus.EXTRA)

    @property
    def summary(self) -> InspectionSummary:
        return InspectionSummary(
            total_features=len(self.comparisons),
            passed=len(self.passed_features),
            missing=len(self.missing_features),
            deviation=len(self.deviations),
            extra=len(self.extra_features),
        )

    def to_dict(self) -> Dict[str, Any]:
        return {
            "templateId": self.template_id,
            "passed": self.passed,
            "message": self.message,
            "comparisons": [c.to_dict() for c in self.comparisons],
            "processingTimeMs": self.processing_time_ms,
            "matchStrategy": self.match_strategy.value,
            "summary": self.summary.to_dict(),
        }

    def __str__(self) -> str:
        return (f"InspectionResult[{self.template_id}: {'PASSED' if self.passed else 'FAILED'} - "
                f"{self.summary}]")
