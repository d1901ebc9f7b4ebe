"""
Tests for the annotation data model.
"""

import pytest

from yolo_annotator.annotation.models import (
    Bounds,
    BoundingBox,
    ImageAnnotation,
    Point,
    PolygonSegment,
    Size,
)


class TestBoundingBox:
    """Test BoundingBox dataclass."""

    def test_copy_with_changes(self):
        box = BoundingBox(1, 2, 3, 4, "cup")

        moved = box.copy(x=10, label="bottle")

        assert (moved.x, moved.label) == (10, "bottle")
        assert (box.x, box.label) == (1, "cup")

    def test_dict_round_trip(self):
        box = BoundingBox(1.5, 2, 3, 4, "cup")

        data = box.to_dict()

        assert data["kind"] == "box"
        assert BoundingBox.from_dict(data) == box


class TestPolygonSegment:
    """Test PolygonSegment dataclass."""

    def test_create_derives_bounds_and_area(self):
        segment = PolygonSegment.create(
            [(10, 10), (60, 10), (60, 50), (10, 50)], "cup", click_points=[(30, 30)], score=0.8
        )

        assert segment.bounds == Bounds(10, 10, 50, 40)
        assert segment.area == 2000
        assert segment.click_points == [Point(30, 30)]
        assert segment.score == 0.8
        assert len(segment.id) == 32

    def test_create_rejects_short_polygon(self):
        assert PolygonSegment.create([(0, 0), (5, 5)], "cup") is None
        assert PolygonSegment.create([], "cup") is None

    def test_ids_are_unique(self, make_segment):
        assert make_segment().id != make_segment().id

    def test_effective_score_defaults_to_one(self, make_segment):
        assert make_segment().effective_score == 1.0
        assert make_segment(score=0.25).effective_score == 0.25

    def test_flat_coordinates(self):
        segment = PolygonSegment.create([(1, 2), (3, 4), (5, 6)], "cup")

        assert segment.flat_coordinates() == [1, 2, 3, 4, 5, 6]

    def test_copy_does_not_share_lists(self, make_segment):
        segment = make_segment()

        clone = segment.copy()
        clone.polygon.append(Point(0, 0))

        assert len(segment.polygon) == 4

    def test_dict_round_trip(self, make_segment):
        segment = make_segment(click_points=[(12, 14)], score=0.5)

        data = segment.to_dict()

        assert data["kind"] == "polygon"
        assert PolygonSegment.from_dict(data) == segment

    def test_from_dict_legacy_click_point(self):
        data = {
            "label": "cup",
            "polygon": [{"x": 0, "y": 0}, {"x": 4, "y": 0}, {"x": 4, "y": 4}],
            "clickPoint": {"x": 2, "y": 1},
        }

        segment = PolygonSegment.from_dict(data)

        assert segment.click_points == [Point(2, 1)]
        assert segment.id
        assert segment.bounds is None


class TestImageAnnotation:
    """Test ImageAnnotation dataclass."""

    def test_default_is_empty(self):
        record = ImageAnnotation()

        assert record.is_empty
        assert not record.original_size.is_set

    def test_annotations_boxes_first(self, make_segment):
        segment = make_segment()
        box = BoundingBox(0, 0, 1, 1, "cup")
        record = ImageAnnotation(boxes=[box], polygons=[segment])

        assert record.annotations() == [box, segment]

    def test_copy_is_deep(self):
        record = ImageAnnotation(Size(10, 10), boxes=[BoundingBox(0, 0, 1, 1, "cup")])

        clone = record.copy()
        clone.boxes[0].label = "bottle"
        clone.boxes.append(BoundingBox(1, 1, 1, 1, "cup"))

        assert record.boxes == [BoundingBox(0, 0, 1, 1, "cup")]

    def test_from_dict_accepts_camel_case_size(self):
        record = ImageAnnotation.from_dict({"originalSize": {"width": 640, "height": 480}})

        assert record.original_size == Size(640, 480)
        assert record.boxes == []

    @pytest.mark.parametrize("size,expected", [(Size(), False), (Size(10, 0), False), (Size(1, 1), True)])
    def test_size_is_set(self, size, expected):
        assert size.is_set is expected
