"""
Tests for mask to polygon extraction.

Tests boundary detection, contour tracing, Douglas-Peucker simplification
and the complete mask_to_polygon pipeline.
"""

import numpy as np
import pytest

from yolo_annotator.annotation.contour import (
    douglas_peucker,
    find_boundary_pixels,
    mask_bbox,
    mask_to_polygon,
    perpendicular_distance,
    polygon_area,
    polygon_bounds,
    simplify_closed_contour,
    trace_contours,
)


class TestBoundaryPixels:
    """Test find_boundary_pixels function."""

    def test_filled_square_boundary_is_ring(self):
        mask = np.zeros((10, 10), dtype=np.uint8)
        mask[2:7, 2:7] = 1

        pixels = find_boundary_pixels(mask)

        # 5x5 square: 25 pixels, 9 interior
        assert len(pixels) == 16
        assert (4, 4) not in pixels
        assert (2, 2) in pixels

    def test_mask_edge_counts_as_boundary(self):
        mask = np.ones((3, 3), dtype=bool)

        pixels = find_boundary_pixels(mask)

        assert len(pixels) == 8
        assert (1, 1) not in pixels

    def test_row_major_order(self):
        mask = np.zeros((5, 5), dtype=np.uint8)
        mask[1, 3] = 1
        mask[3, 1] = 1

        assert find_boundary_pixels(mask) == [(3, 1), (1, 3)]

    def test_rejects_non_2d(self):
        with pytest.raises(ValueError):
            find_boundary_pixels(np.zeros((4, 4, 3)))


class TestTraceContours:
    """Test trace_contours function."""

    def test_rectangle_single_contour(self, sample_mask):
        contours = trace_contours(sample_mask)

        assert len(contours) == 1
        # Perimeter of a 40x20 rectangle
        assert len(contours[0]) == 2 * 40 + 2 * 20 - 4

    def test_contour_is_connected(self, sample_mask):
        contour = trace_contours(sample_mask)[0]

        for (x1, y1), (x2, y2) in zip(contour, contour[1:]):
            assert max(abs(x1 - x2), abs(y1 - y2)) == 1

    def test_small_blobs_discarded(self):
        mask = np.zeros((20, 20), dtype=np.uint8)
        mask[5:7, 5:7] = 1  # 4 boundary pixels

        assert trace_contours(mask) == []
        assert len(trace_contours(mask, min_points=4)) == 1

    def test_disconnected_regions(self):
        mask = np.zeros((40, 80), dtype=np.uint8)
        mask[5:15, 5:15] = 1
        mask[20:35, 40:75] = 1

        contours = trace_contours(mask)

        assert len(contours) == 2

    def test_empty_mask(self):
        assert trace_contours(np.zeros((10, 10), dtype=np.uint8)) == []


class TestDouglasPeucker:
    """Test perpendicular_distance and douglas_peucker functions."""

    def test_perpendicular_distance_uses_infinite_line(self):
        # Beyond the end of the segment, still measured to the line
        assert perpendicular_distance((10, 3), (0, 0), (1, 0)) == pytest.approx(3)

    def test_degenerate_line(self):
        assert perpendicular_distance((5, 5), (1, 1), (1, 1)) == 0.0

    def test_collinear_points_removed(self):
        points = [(0, 0), (1, 0), (2, 0), (3, 0), (4, 0)]

        assert douglas_peucker(points, 1.0) == [(0, 0), (4, 0)]

    def test_corner_kept(self):
        points = [(0, 0), (5, 0), (10, 0), (10, 5), (10, 10)]

        assert douglas_peucker(points, 1.0) == [(0, 0), (10, 0), (10, 10)]

    def test_distance_equal_to_tolerance_removed(self):
        """Only points strictly farther than tolerance are kept."""
        points = [(0, 0), (5, 2), (10, 0)]

        assert douglas_peucker(points, 2.0) == [(0, 0), (10, 0)]
        assert douglas_peucker(points, 1.9) == points

    def test_short_input_unchanged(self):
        assert douglas_peucker([(0, 0), (1, 1)], 1.0) == [(0, 0), (1, 1)]

    def test_closed_ring_square(self):
        ring = (
            [(x, 0) for x in range(0, 10)]
            + [(9, y) for y in range(1, 10)]
            + [(x, 9) for x in range(8, -1, -1)]
            + [(0, y) for y in range(8, 0, -1)]
        )

        simplified = simplify_closed_contour(ring, 1.0)

        assert sorted(simplified) == [(0, 0), (0, 9), (9, 0), (9, 9)]

    def test_closed_ring_drops_collinear_seed(self):
        """A seed in the middle of an edge is not kept as a vertex."""
        ring = (
            [(x, 0) for x in range(5, 10)]
            + [(9, y) for y in range(1, 10)]
            + [(x, 9) for x in range(8, -1, -1)]
            + [(0, y) for y in range(8, -1, -1)]
            + [(x, 0) for x in range(1, 5)]
        )

        simplified = simplify_closed_contour(ring, 1.0)

        assert (5, 0) not in simplified
        assert sorted(simplified) == [(0, 0), (0, 9), (9, 0), (9, 9)]


class TestMaskToPolygon:
    """Test mask_to_polygon function."""

    def test_rectangle_reduces_to_corners(self, sample_mask):
        polygon = mask_to_polygon(sample_mask)

        assert sorted(polygon) == [(20, 10), (20, 29), (59, 10), (59, 29)]

    @pytest.mark.parametrize("tolerance", [1.0, 2.0, 3.0])
    @pytest.mark.parametrize("width,height", [(8, 8), (8, 30), (30, 8), (25, 17), (50, 40)])
    @pytest.mark.parametrize("placement", ["inside", "top_left", "bottom_right"])
    def test_rectangles_reduce_to_corners(self, width, height, placement, tolerance):
        """Any rectangle clearly larger than the tolerance keeps exactly its corners."""
        size = 64
        if placement == "top_left":
            x0, y0 = 0, 0
        elif placement == "bottom_right":
            x0, y0 = size - width, size - height
        else:
            x0, y0 = 5, 7
        mask = np.zeros((size, size), dtype=np.uint8)
        mask[y0:y0 + height, x0:x0 + width] = 1

        polygon = mask_to_polygon(mask, tolerance=tolerance)

        x1, y1 = x0 + width - 1, y0 + height - 1
        assert sorted(polygon) == sorted([(x0, y0), (x1, y0), (x1, y1), (x0, y1)])

    def test_area_close_to_mask_area(self, sample_mask):
        """Boundary pixel centers trim about half a pixel on every side."""
        polygon = mask_to_polygon(sample_mask)

        mask_area = int(sample_mask.sum())
        assert abs(polygon_area(polygon) - mask_area) <= 40 + 20

    def test_scaling_to_original_space(self, sample_mask):
        polygon = mask_to_polygon(sample_mask, scale_x=2.0, scale_y=0.5)

        assert sorted(polygon) == [(40, 5), (40, 15), (118, 5), (118, 15)]

    def test_keeps_largest_contour(self):
        mask = np.zeros((60, 60), dtype=np.uint8)
        mask[2:8, 2:8] = 1
        mask[20:50, 20:50] = 1

        polygon = mask_to_polygon(mask)

        xs = [x for x, _ in polygon]
        assert min(xs) == 20 and max(xs) == 49

    def test_empty_mask(self):
        assert mask_to_polygon(np.zeros((30, 30), dtype=np.uint8)) == []


class TestPolygonMeasures:
    """Test polygon_area, polygon_bounds and mask_bbox functions."""

    def test_polygon_area(self):
        square = [(0, 0), (10, 0), (10, 10), (0, 10)]

        assert polygon_area(square) == 100
        assert polygon_area(list(reversed(square))) == 100
        assert polygon_area([(0, 0), (1, 1)]) == 0.0

    def test_polygon_bounds(self):
        assert polygon_bounds([(5, 7), (15, 2), (9, 20)]) == (5, 2, 10, 18)
        assert polygon_bounds([]) == (0, 0, 0, 0)

    def test_mask_bbox(self, sample_mask):
        assert mask_bbox(sample_mask) == (20, 10, 39, 19)
        assert mask_bbox(np.zeros((5, 5))) is None
