"""Unit tests for the coordinate (centroid offset) matcher."""
import logging

import pytest

from vision_qc.core.entities import Point, TemplateFeature, InspectionTemplate, ComparisonStatus, MatchStrategy
from vision_qc.topology import hungarian
from vision_qc.topology.coordinate_matcher import (
    AffineTransform, CoordinateBasedMatcher, ASSIGNMENT_OPTIMAL,
)

pytestmark = pytest.mark.unit


@pytest.fixture
def matcher():
    return CoordinateBasedMatcher()


class TestAffineTransform:
    def test_translation_round_trip(self):
        transform = AffineTransform(10.0, -5.0)
        p = Point(3, 4)

        assert transform.apply_forward(p) == Point(13.0, -1.0)
        back = transform.apply_inverse(transform.apply_forward(p))
        assert back.x == pytest.approx(3.0)
        assert back.y == pytest.approx(4.0)

    def test_rotation_round_trip(self):
        transform = AffineTransform(5.0, 5.0, angle=90.0)
        forward = transform.apply_forward(Point(10, 0))

        assert forward.x == pytest.approx(5.0)
        assert forward.y == pytest.approx(15.0)
        back = transform.apply_inverse(forward)
        assert back.x == pytest.approx(10.0)
        assert back.y == pytest.approx(0.0, abs=1e-9)


class TestEstimateTransform:
    def test_pure_translation(self, matcher, coordinate_template, detection):
        transform = matcher.estimate_transform(
            coordinate_template, [detection(120, 70), detection(180, 130)])

        assert transform.tx == pytest.approx(100.0)
        assert transform.ty == pytest.approx(50.0)
        assert transform.angle == 0.0

    def test_weighted_by_detection_count(self, matcher, detection):
        template = InspectionTemplate("W", [
            TemplateFeature(id="a", name="a", position=Point(0, 0), class_id=0),
            TemplateFeature(id="b", name="b", position=Point(0, 0), class_id=1),
        ])
        # class 0 offset (10, 0) with weight 3, class 1 offset (-10, 0) with weight 1
        detections = [detection(10, 0, 0), detection(10, 0, 0), detection(10, 0, 0), detection(-10, 0, 1)]
        transform = matcher.estimate_transform(template, detections)

        assert transform.tx == pytest.approx(5.0)
        assert transform.ty == pytest.approx(0.0)

    def test_no_shared_class(self, matcher, coordinate_template, detection):
        assert matcher.estimate_transform(coordinate_template, [detection(20, 20, class_id=9)]) is None
        assert matcher.estimate_transform(coordinate_template, []) is None


class TestMatch:
    def test_translated_part_passes(self, matcher, coordinate_template, detection):
        result = matcher.match(coordinate_template, [detection(120, 70), detection(180, 130)])

        assert result.passed
        assert result.match_strategy is MatchStrategy.COORDINATE
        assert [c.status for c in result.comparisons] == [ComparisonStatus.PASSED] * 2
        assert result.comparisons[0].detected_position == Point(120, 70)
        assert "dx=100.0, dy=50.0" in result.message

    def test_rotation_is_not_compensated(self, matcher, coordinate_template, detection, rigid):
        moved = [rigid(f.position, 30.0, 10.0, 10.0) for f in coordinate_template.features]
        result = matcher.match(coordinate_template, [detection(p.x, p.y) for p in moved])

        assert not result.passed
        assert "angle=0.0" in result.message
        assert [c.status for c in result.comparisons] == [ComparisonStatus.DEVIATION_EXCEEDED] * 2
        first = result.comparisons[0]
        assert first.feature_id == "f1"
        assert first.x_error == pytest.approx(19.02, abs=0.01)
        assert first.y_error == pytest.approx(10.98, abs=0.01)

    def test_missing_projected_with_transform(self, matcher, coordinate_template, detection):
        result = matcher.match(coordinate_template, [detection(120, 70)])

        missing = result.missing_features
        assert [c.feature_id for c in missing] == ["f2"]
        # one detection: offset is its distance from the two-feature centroid
        assert missing[0].detected_position.x == pytest.approx(150.0)
        assert missing[0].detected_position.y == pytest.approx(100.0)
        assert missing[0].template_position == Point(80, 80)

    def test_without_transform_everything_missing(self, matcher, coordinate_template, detection):
        result = matcher.match(coordinate_template, [detection(20, 20, class_id=9)])

        assert [c.status for c in result.comparisons] == [
            ComparisonStatus.MISSING, ComparisonStatus.MISSING, ComparisonStatus.EXTRA,
        ]
        assert result.missing_features[0].detected_position == Point(20, 20)
        extra = result.extra_features[0]
        assert extra.feature_id == "detected_0"
        assert extra.expected_feature_name is None
        assert "transform" not in result.message

    def test_distance_threshold(self, coordinate_template, detection):
        # offset (15, 0) leaves each detection 15px from its feature after alignment
        detections = [detection(20, 20), detection(110, 80)]

        strict = CoordinateBasedMatcher(match_distance_threshold=10.0).match(coordinate_template, detections)
        loose = CoordinateBasedMatcher(match_distance_threshold=20.0).match(coordinate_template, detections)

        assert len(strict.missing_features) == 2
        assert len(strict.extra_features) == 2
        assert [c.status for c in loose.comparisons] == [ComparisonStatus.DEVIATION_EXCEEDED] * 2
        assert loose.comparisons[0].x_error == pytest.approx(15.0)

    def test_extra_names_nearest_feature(self, matcher, coordinate_template, detection):
        detections = [detection(20, 20), detection(80, 80), detection(75, 85)]
        result = matcher.match(coordinate_template, detections)

        assert not result.passed
        extra = result.extra_features[0]
        assert extra.feature_id == "detected_2"
        assert extra.expected_feature_name == "hole_2"
        assert extra.expected_position == Point(80, 80)
        assert extra.expected_class_name == "hole"

    def test_extras_ignored_when_not_an_error(self, coordinate_template, detection):
        matcher = CoordinateBasedMatcher(treat_extra_as_error=False)
        result = matcher.match(coordinate_template, [detection(20, 20), detection(80, 80), detection(75, 85)])

        assert result.extra_features == []

    def test_optional_features_are_ignored(self, matcher, coordinate_template, detection):
        coordinate_template.features.append(
            TemplateFeature(id="opt", name="label", position=Point(50, 50), class_id=0, required=False))
        result = matcher.match(coordinate_template, [detection(20, 20), detection(80, 80)])

        assert result.passed
        assert [c.feature_id for c in result.comparisons] == ["f1", "f2"]


class TestOptimalAssignment:
    @pytest.fixture
    def crowded(self, detection):
        template = InspectionTemplate("O", [
            TemplateFeature(id="f1", name="f1", position=Point(100, 100), class_id=0),
            TemplateFeature(id="f2", name="f2", position=Point(110, 100), class_id=0),
        ], tolerance_x=10.0, tolerance_y=10.0)
        # detection centroid equals the feature centroid, so the estimated offset is zero
        detections = [detection(94, 100), detection(104, 100), detection(111, 300), detection(111, -100)]
        return template, detections

    def test_greedy_lets_first_feature_take_the_closest(self, crowded):
        template, detections = crowded
        result = CoordinateBasedMatcher(match_distance_threshold=7.0).match(template, detections)

        assert [c.feature_id for c in result.missing_features] == ["f2"]

    def test_optimal_pairs_both_features(self, crowded):
        template, detections = crowded
        matcher = CoordinateBasedMatcher(match_distance_threshold=7.0, assignment=ASSIGNMENT_OPTIMAL,
                                         treat_extra_as_error=False)
        result = matcher.match(template, detections)

        assert result.passed
        positions = {c.feature_id: c.detected_position for c in result.comparisons}
        assert positions == {"f1": Point(94, 100), "f2": Point(104, 100)}

    def test_capped_solver_is_logged_and_used(self, crowded, monkeypatch, caplog):
        template, detections = crowded
        real_solve = hungarian.solve
        monkeypatch.setattr(hungarian, "solve", lambda costs: real_solve(costs, max_iterations=1))
        matcher = CoordinateBasedMatcher(match_distance_threshold=7.0, assignment=ASSIGNMENT_OPTIMAL,
                                         treat_extra_as_error=False)

        with caplog.at_level(logging.WARNING):
            result = matcher.match(template, detections)

        assert any("best-effort" in r.getMessage() for r in caplog.records)
        matched = [c.detected_position for c in result.comparisons if c.status is not ComparisonStatus.MISSING]
        assert len(matched) == len(set(matched))
