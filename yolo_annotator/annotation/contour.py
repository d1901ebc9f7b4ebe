"""
Mask to Polygon Extraction

Turns a binary segmentation mask into a minimal polygon:

1. Boundary detection: a foreground pixel is a boundary pixel when it lies
   on the mask edge or one of its 4-neighbours is background.
2. Contour tracing: greedy walk over unvisited 8-connected boundary pixels
   in the fixed order E, SE, S, SW, W, NW, N, NE.
3. Simplification: Douglas-Peucker on the closed ring.
4. Rescale from mask space to original-image space.

Points are (x, y) tuples throughout. Nothing here raises for degenerate
input; empty masks produce empty results.
"""

import math
from typing import List, Optional, Sequence, Set, Tuple

import numpy as np

from ..common.constants import DEFAULT_SIMPLIFY_TOLERANCE, MIN_CONTOUR_POINTS
from ..common.geometry import round_half_up

PointXY = Tuple[float, float]

# E, SE, S, SW, W, NW, N, NE
NEIGHBOR_OFFSETS: Tuple[Tuple[int, int], ...] = (
    (1, 0), (1, 1), (0, 1), (-1, 1),
    (-1, 0), (-1, -1), (0, -1), (1, -1),
)


def _boundary_mask(mask: np.ndarray) -> np.ndarray:
    """Boolean array marking boundary pixels of a binary mask."""
    foreground = np.asarray(mask) > 0
    if foreground.ndim != 2:
        raise ValueError(f"Expected a 2D mask, got shape {foreground.shape}")

    # Zero padding makes pixels on the mask edge count as boundary
    padded = np.pad(foreground, 1, mode="constant", constant_values=False)
    interior = (
        padded[:-2, 1:-1]    # up
        & padded[2:, 1:-1]   # down
        & padded[1:-1, :-2]  # left
        & padded[1:-1, 2:]   # right
    )
    return foreground & ~interior


def find_boundary_pixels(mask: np.ndarray) -> List[Tuple[int, int]]:
    """
    Collect boundary pixels of a binary mask.

    Args:
        mask: 2D array, non-zero values are foreground

    Returns:
        List of (x, y) in row-major order
    """
    ys, xs = np.nonzero(_boundary_mask(mask))
    return [(int(x), int(y)) for y, x in zip(ys, xs)]


def trace_contours(
    mask: np.ndarray,
    min_points: int = MIN_CONTOUR_POINTS,
) -> List[List[Tuple[int, int]]]:
    """
    Trace contours over the boundary pixels of a binary mask.

    Seeds are taken from the end of the row-major boundary list. Each
    contour grows by stepping to the first unvisited boundary neighbour
    until none is left.

    Args:
        mask: 2D array, non-zero values are foreground
        min_points: Contours with fewer points are discarded as noise

    Returns:
        List of contours, each an ordered list of (x, y)
    """
    boundary = _boundary_mask(mask)
    height, width = boundary.shape
    ys, xs = np.nonzero(boundary)
    seeds = [(int(x), int(y)) for y, x in zip(ys, xs)]

    visited: Set[Tuple[int, int]] = set()
    contours = []

    while seeds:
        start = seeds.pop()
        if start in visited:
            continue

        contour = [start]
        visited.add(start)
        x, y = start

        while True:
            for dx, dy in NEIGHBOR_OFFSETS:
                nx, ny = x + dx, y + dy
                if not (0 <= nx < width and 0 <= ny < height):
                    continue
                if (nx, ny) in visited or not boundary[ny, nx]:
                    continue
                contour.append((nx, ny))
                visited.add((nx, ny))
                x, y = nx, ny
                break
            else:
                break

        if len(contour) >= min_points:
            contours.append(contour)

    return contours


def perpendicular_distance(point: PointXY, line_start: PointXY, line_end: PointXY) -> float:
    """Distance from a point to the infinite line through two points."""
    dx = line_end[0] - line_start[0]
    dy = line_end[1] - line_start[1]
    mag_sq = dx * dx + dy * dy
    if mag_sq == 0:
        return 0.0

    u = ((point[0] - line_start[0]) * dx + (point[1] - line_start[1]) * dy) / mag_sq
    closest_x = line_start[0] + u * dx
    closest_y = line_start[1] + u * dy
    return math.hypot(point[0] - closest_x, point[1] - closest_y)


def douglas_peucker(points: Sequence[PointXY], tolerance: float) -> List[PointXY]:
    """
    Simplify an open polyline with the Douglas-Peucker algorithm.

    Iterative form of the usual recursion: a sub-sequence is split at its
    farthest point when that distance exceeds tolerance, otherwise only
    its endpoints survive.

    Args:
        points: Ordered points
        tolerance: Maximum allowed deviation

    Returns:
        Simplified list; first and last points are always kept
    """
    n = len(points)
    if n <= 2:
        return list(points)

    keep = [False] * n
    keep[0] = keep[-1] = True
    stack = [(0, n - 1)]

    while stack:
        start, end = stack.pop()
        max_dist = 0.0
        max_index = start
        for i in range(start + 1, end):
            dist = perpendicular_distance(points[i], points[start], points[end])
            if dist > max_dist:
                max_dist = dist
                max_index = i

        if max_dist > tolerance:
            keep[max_index] = True
            stack.append((start, max_index))
            stack.append((max_index, end))

    return [p for p, kept in zip(points, keep) if kept]


def simplify_closed_contour(
    points: Sequence[PointXY],
    tolerance: float = DEFAULT_SIMPLIFY_TOLERANCE,
) -> List[PointXY]:
    """
    Simplify a closed contour.

    The ring is cut at the vertex farthest from the first point and each
    half is simplified separately, so the closing edge is treated like any
    other. The first point is dropped when it lies within tolerance of the
    line through its neighbours.

    Args:
        points: Ordered ring (closing edge implied)
        tolerance: Maximum allowed deviation

    Returns:
        Simplified ring, starting point not repeated
    """
    n = len(points)
    if n < 3:
        return list(points)

    seed = points[0]
    far_index = 0
    far_dist = 0.0
    for i in range(1, n):
        dist = math.hypot(points[i][0] - seed[0], points[i][1] - seed[1])
        if dist > far_dist:
            far_dist = dist
            far_index = i

    if far_index == 0:
        return [seed]

    first_half = douglas_peucker(points[:far_index + 1], tolerance)
    second_half = douglas_peucker(list(points[far_index:]) + [seed], tolerance)
    ring = first_half + second_half[1:-1]

    if len(ring) > 3 and perpendicular_distance(ring[0], ring[-1], ring[1]) <= tolerance:
        ring = ring[1:]

    return ring


def mask_to_polygon(
    mask: np.ndarray,
    scale_x: float = 1.0,
    scale_y: float = 1.0,
    tolerance: float = DEFAULT_SIMPLIFY_TOLERANCE,
    min_points: int = MIN_CONTOUR_POINTS,
) -> List[Tuple[int, int]]:
    """
    Convert a binary mask into a polygon in original-image space.

    Only the largest contour (by point count, first wins on ties) is kept.

    Args:
        mask: 2D array, non-zero values are foreground
        scale_x: Original width / mask width
        scale_y: Original height / mask height
        tolerance: Douglas-Peucker tolerance in mask pixels
        min_points: Minimum traced contour length

    Returns:
        List of integer (x, y) vertices, or [] if no contour was found.
        Callers reject results with fewer than 3 points.
    """
    contours = trace_contours(mask, min_points=min_points)
    if not contours:
        return []

    largest = max(contours, key=len)
    simplified = simplify_closed_contour(largest, tolerance)

    return [
        (round_half_up(x * scale_x), round_half_up(y * scale_y))
        for x, y in simplified
    ]


def polygon_area(points: Sequence[PointXY]) -> float:
    """Polygon area by the shoelace formula (absolute value)."""
    n = len(points)
    if n < 3:
        return 0.0

    total = 0.0
    for i in range(n):
        x1, y1 = points[i]
        x2, y2 = points[(i + 1) % n]
        total += x1 * y2 - x2 * y1
    return abs(total / 2)


def polygon_bounds(points: Sequence[PointXY]) -> Tuple[float, float, float, float]:
    """
    Axis-aligned bounds of a polygon.

    Returns:
        Tuple (x, y, width, height); all zeros for an empty polygon
    """
    if not points:
        return (0, 0, 0, 0)

    xs = [p[0] for p in points]
    ys = [p[1] for p in points]
    return (min(xs), min(ys), max(xs) - min(xs), max(ys) - min(ys))


def mask_bbox(mask: np.ndarray) -> Optional[Tuple[int, int, int, int]]:
    """
    Bounding box of the foreground pixels of a mask.

    Returns:
        Tuple (x, y, width, height) in mask pixels with width = max_x - min_x,
        or None if the mask is empty
    """
    ys, xs = np.nonzero(np.asarray(mask) > 0)
    if len(xs) == 0:
        return None

    x_min, x_max = int(xs.min()), int(xs.max())
    y_min, y_max = int(ys.min()), int(ys.max())
    return (x_min, y_min, x_max - x_min, y_max - y_min)
