"""Pytest configuration and shared fixtures for the inspection engine.

Provides the canonical part outlines, templates and detections used across
the unit and integration suites.
"""
import sys
import logging
from pathlib import Path

import pytest

# Add the project root to Python path
PROJECT_ROOT = Path(__file__).parent.parent
sys.path.insert(0, str(PROJECT_ROOT))

from vision_qc.config.settings import InspectionConfig
from vision_qc.core.entities import Point, DetectedObject, TemplateFeature, InspectionTemplate
from vision_qc.topology.four_corner_template import FeatureDefinition, build_four_corner_template
from vision_qc.utils.geometry import rotate_point


# Configure logging for tests
logging.basicConfig(
    level=logging.INFO,
    format='%(asctime)s - %(name)s - %(levelname)s - %(message)s',
    handlers=[logging.StreamHandler()]
)


def make_detection(x, y, class_id=0, class_name=None, confidence=0.9):
    """Detection centred at (x, y)."""
    return DetectedObject(class_id=class_id, center=Point(x, y), width=10.0, height=10.0,
                          confidence=confidence, class_name=class_name)


def rigid_transform(point, angle_deg=0.0, dx=0.0, dy=0.0):
    """Rotate about the origin, then translate."""
    rotated = rotate_point(point, angle_deg, Point(0.0, 0.0))
    return Point(rotated.x + dx, rotated.y + dy)


@pytest.fixture
def square_corners():
    """100 x 100 part outline (TL, TR, BR, BL)."""
    return (Point(0, 0), Point(100, 0), Point(100, 100), Point(0, 100))


@pytest.fixture
def large_square_corners():
    """1000 x 1000 part outline, used where pixel tolerances must stay tight."""
    return (Point(0, 0), Point(1000, 0), Point(1000, 1000), Point(0, 1000))


@pytest.fixture
def centre_template(square_corners):
    """Single feature 'A' (class 0) at the centre of the 100 x 100 outline, tolerance (5, 5)."""
    return build_four_corner_template(
        "T1", square_corners,
        [FeatureDefinition(id="A", class_id=0, position=Point(50, 50), name="screw",
                           class_name="screw", tolerance=Point(5, 5))],
    )


@pytest.fixture
def coordinate_template(square_corners):
    """Two class-0 features with the outline stored in metadata."""
    return InspectionTemplate(
        template_id="C1",
        features=[
            TemplateFeature(id="f1", name="hole_1", position=Point(20, 20), class_id=0, class_name="hole"),
            TemplateFeature(id="f2", name="hole_2", position=Point(80, 80), class_id=0, class_name="hole"),
        ],
        tolerance_x=5.0,
        tolerance_y=5.0,
        metadata={"fourCorners": [list(c.as_tuple()) for c in square_corners]},
    )


@pytest.fixture
def default_config():
    return InspectionConfig()


@pytest.fixture
def detection():
    """Factory for detections, see :func:`make_detection`."""
    return make_detection


@pytest.fixture
def rigid():
    """Factory applying a rotate-then-translate, see :func:`rigid_transform`."""
    return rigid_transform
