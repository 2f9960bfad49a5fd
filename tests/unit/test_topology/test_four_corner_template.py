"""Unit tests for building and recalibrating corner-anchored templates."""
import pytest
from dataclasses import FrozenInstanceError

from vision_qc.core.entities import Point, TemplateFeature, InspectionTemplate
from vision_qc.core.exceptions import InvalidGeometryError, InvalidTemplateError
from vision_qc.topology.four_corner_template import (
    DEFAULT_FEATURE_TOLERANCE, FeatureDefinition, FourCornerTemplate,
    build_four_corner_template, update_corners, validate_corners,
)

pytestmark = pytest.mark.unit


def _features():
    return [
        FeatureDefinition(id="a", class_id=0, position=Point(20, 20), name="hole", class_name="hole"),
        FeatureDefinition(id="b", class_id=1, position=Point(80, 30), required=False),
        FeatureDefinition(id="c", class_id=0, position=Point(50, 80), tolerance=Point(3, 4)),
    ]


class TestBuild:
    def test_every_feature_gets_fingerprint_position_and_metadata(self, square_corners):
        template = build_four_corner_template("T", square_corners, _features())

        assert template.feature_ids == ["a", "b", "c"]
        assert template.feature_count == 3
        assert template.get_feature_position("a") == Point(20, 20)
        assert template.get_fingerprint("c").feature_id == "c"
        assert template.get_feature_metadata("missing") is None

    def test_metadata_defaults(self, square_corners):
        template = build_four_corner_template("T", square_corners, _features())

        b = template.get_feature_metadata("b")
        assert b.name == "b"
        assert not b.required
        assert b.tolerance == DEFAULT_FEATURE_TOLERANCE
        assert template.get_feature_metadata("c").tolerance == Point(3, 4)

    def test_required_ids_keep_insertion_order(self, square_corners):
        template = build_four_corner_template("T", square_corners, _features())
        assert template.get_required_feature_ids() == ["a", "c"]

    def test_corners_accept_pairs(self):
        template = build_four_corner_template("T", [(0, 0), (100, 0), (100, 100), (0, 100)], [])
        assert template.corner(2) == Point(100, 100)
        with pytest.raises(IndexError):
            template.corner(4)

    def test_template_is_read_only(self, square_corners):
        template = build_four_corner_template("T", square_corners, _features())

        with pytest.raises(FrozenInstanceError):
            template.template_id = "other"
        with pytest.raises(TypeError):
            template.fingerprints["x"] = template.fingerprints["a"]

    def test_empty_id_rejected(self, square_corners):
        with pytest.raises(InvalidTemplateError):
            build_four_corner_template("", square_corners, _features())

    def test_wrong_corner_count_rejected(self, square_corners):
        with pytest.raises(InvalidTemplateError):
            build_four_corner_template("T", square_corners[:3], _features())

    def test_duplicate_ids_rejected(self, square_corners):
        features = _features() + [FeatureDefinition(id="a", class_id=0, position=Point(10, 10))]
        with pytest.raises(InvalidTemplateError):
            build_four_corner_template("T", square_corners, features)

    def test_degenerate_corners_raise_geometry_error(self):
        corners = (Point(0, 0), Point(1, 0), Point(1, 1), Point(0, 1))
        with pytest.raises(InvalidGeometryError):
            build_four_corner_template("T", corners, _features())


class TestFromInspectionTemplate:
    def test_carries_required_features_only(self, coordinate_template):
        coordinate_template.features.append(
            TemplateFeature(id="opt", name="label", position=Point(50, 50), class_id=2, required=False))

        template = FourCornerTemplate.from_inspection_template(coordinate_template)

        assert template.feature_ids == ["f1", "f2"]
        assert template.get_feature_metadata("f1").tolerance == Point(5, 5)
        assert template.get_feature_metadata("f1").class_name == "hole"

    def test_class_name_falls_back_to_feature_name(self, square_corners):
        source = InspectionTemplate("T", [TemplateFeature(id="x", name="clip", position=Point(50, 50), class_id=0)])
        template = FourCornerTemplate.from_inspection_template(source, corners=square_corners)
        assert template.get_feature_metadata("x").class_name == "clip"

    def test_without_corners_raises(self):
        with pytest.raises(InvalidTemplateError):
            FourCornerTemplate.from_inspection_template(InspectionTemplate("T"))


class TestUpdateCorners:
    def test_fingerprints_kept_positions_mapped(self, square_corners):
        template = build_four_corner_template("T", square_corners, _features())
        new_corners = (Point(100, 100), Point(300, 100), Point(300, 300), Point(100, 300))

        updated = update_corners(template, new_corners)

        assert updated.corners == new_corners
        assert updated.fingerprints["a"] is template.fingerprints["a"]
        assert updated.get_feature_metadata("c") == template.get_feature_metadata("c")
        moved = updated.get_feature_position("a")
        assert moved.x == pytest.approx(140.0, abs=1e-3)
        assert moved.y == pytest.approx(140.0, abs=1e-3)
        # original template untouched
        assert template.get_feature_position("a") == Point(20, 20)

    def test_invalid_new_corners_raise(self, square_corners):
        template = build_four_corner_template("T", square_corners, _features())
        with pytest.raises(InvalidGeometryError):
            update_corners(template, (Point(0, 0), Point(0, 0), Point(0, 0), Point(0, 0)))


class TestValidateCorners:
    def test_square_is_valid(self, square_corners):
        result = validate_corners(square_corners)

        assert result.valid
        assert result.angles_deg == pytest.approx((90.0, 90.0, 90.0, 90.0))

    def test_wrong_count(self, square_corners):
        assert not validate_corners(square_corners[:2]).valid

    def test_skewed_outline_rejected(self):
        corners = (Point(0, 0), Point(100, 0), Point(300, 100), Point(200, 100))
        result = validate_corners(corners)

        assert not result.valid
        assert "angle out of range" in result.message
