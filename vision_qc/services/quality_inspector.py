"""Quality inspection coordinator.

Chooses a matching strategy for a template and a set of detections and runs
the matching matcher. Matchers are built from an :class:`InspectionConfig`
and rebuilt by :meth:`QualityInspector.configure`.
"""

import logging
import time
from typing import Any, Dict, Iterable, Optional, Sequence, Union

from ..config.settings import InspectionConfig
from ..core.entities import (
    Point, DetectedObject, InspectionResult, InspectionTemplate, MatchStrategy, TemplateFeature,
)
from ..core.exceptions import InspectionError, ValidationError
from ..topology.coordinate_matcher import CoordinateBasedMatcher
from ..topology.fingerprint import FingerprintCalculator, SimilarityWeights
from ..topology.four_corner_matcher import FourCornerMatcher
from ..topology.four_corner_template import FourCornerTemplate

logger = logging.getLogger(__name__)


class QualityInspector:
    """Runs TOPOLOGY, COORDINATE or CROP_AREA inspection against a template."""

    def __init__(self, config: Optional[InspectionConfig] = None):
        self.config = config or InspectionConfig()
        self._build_matchers()

    def configure(self, config: InspectionConfig) -> None:
        """Swap in a new configuration; matchers are rebuilt."""
        self.config = config
        self._build_matchers()
        logger.info("Inspector reconfigured: strategy=%s", config.match_strategy)

    def _build_matchers(self) -> None:
        cfg = self.config
        self.calculator = FingerprintCalculator(
            min_corner_distance=cfg.min_corner_distance,
            min_area=cfg.min_quadrilateral_area,
        )
        self.four_corner_matcher = FourCornerMatcher(
            fingerprint_tolerance=cfg.fingerprint_tolerance,
            weights=SimilarityWeights(
                distance=cfg.distance_ratio_weight,
                angle=cfg.angle_weight,
                barycentric=cfg.barycentric_weight,
            ),
            treat_extra_as_error=cfg.treat_extra_as_error,
            error_frame=cfg.topology_error_frame,
            missing_projection=cfg.missing_projection,
            calculator=self.calculator,
        )
        self.coordinate_matcher = CoordinateBasedMatcher(
            match_distance_threshold=cfg.match_distance_threshold,
            treat_extra_as_error=cfg.treat_extra_as_error,
            assignment=cfg.coordinate_assignment,
        )

    def create_template(self, template_id: str, features: Iterable[TemplateFeature],
                        four_corners: Optional[Sequence[Any]] = None,
                        metadata: Optional[Dict[str, Any]] = None) -> InspectionTemplate:
        """Template with the configured default tolerances.

        ``four_corners`` is stored as ``metadata['fourCorners']`` so the
        template can also be inspected with the TOPOLOGY strategy.
        """
        meta = dict(metadata or {})
        if four_corners is not None:
            meta["fourCorners"] = [list(Point.of(c).as_tuple()) for c in four_corners]
        return InspectionTemplate(
            template_id=template_id,
            features=list(features),
            tolerance_x=self.config.default_tolerance_x,
            tolerance_y=self.config.default_tolerance_y,
            metadata=meta,
        )

    def inspect(self, template: InspectionTemplate, detections: Sequence[DetectedObject],
                strategy: Union[MatchStrategy, str, None] = None,
                detected_corners: Optional[Sequence[Point]] = None) -> InspectionResult:
        """Inspect ``detections`` against ``template``.

        Args:
            template: Template to inspect against.
            detections: Detector output for the current frame.
            strategy: Overrides ``config.match_strategy`` for this call.
            detected_corners: The part's four corners (TL, TR, BR, BL) in the
                current frame; required for TOPOLOGY.

        Raises:
            InspectionError: unknown strategy name.
        """
        strategy = self._resolve_strategy(strategy)
        logger.info("Inspecting template %s with %d detections (strategy=%s)",
                    template.template_id, len(detections), strategy.value)

        if strategy is MatchStrategy.TOPOLOGY:
            return self.inspect_with_four_corners(template, detections, detected_corners)
        if strategy is MatchStrategy.COORDINATE:
            return self.coordinate_matcher.match(template, detections)

        # CROP_AREA: detections are already limited to the cropped region
        if detected_corners is not None:
            result = self.inspect_with_four_corners(template, detections, detected_corners)
        else:
            result = self.coordinate_matcher.match(template, detections)
        result.match_strategy = MatchStrategy.CROP_AREA
        return result

    def inspect_with_four_corners(self, template: InspectionTemplate,
                                  detections: Sequence[DetectedObject],
                                  detected_corners: Optional[Sequence[Point]]) -> InspectionResult:
        """TOPOLOGY inspection; bad corners or template geometry give a failed result."""
        start = time.perf_counter()
        if detected_corners is None or len(detected_corners) != 4:
            return self._failed(template, "Four-corner inspection requires exactly 4 detected corners", start)

        try:
            four_corner_template = FourCornerTemplate.from_inspection_template(
                template, calculator=self.calculator)
        except ValidationError as e:
            logger.warning("Template %s cannot be used for four-corner matching: %s",
                           template.template_id, e)
            return self._failed(template, f"Invalid four-corner template: {e}", start)

        return self.four_corner_matcher.match(four_corner_template, detected_corners, detections)

    def _resolve_strategy(self, strategy: Union[MatchStrategy, str, None]) -> MatchStrategy:
        if strategy is None:
            strategy = self.config.match_strategy
        if isinstance(strategy, MatchStrategy):
            return strategy
        try:
            return MatchStrategy(str(strategy).upper())
        except ValueError:
            valid = ", ".join(s.value for s in MatchStrategy)
            raise InspectionError(f"Unknown match strategy '{strategy}'. Must be one of: {valid}") from None

    @staticmethod
    def _failed(template: InspectionTemplate, message: str, start: float) -> InspectionResult:
        result = InspectionResult.error(template.template_id, MatchStrategy.TOPOLOGY, message)
        result.processing_time_ms = (time.perf_counter() - start) * 1000.0
        return result

