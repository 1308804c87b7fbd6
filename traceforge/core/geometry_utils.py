"""Geometry primitives and predicates.

Pure functions operating on (lat, lon) coordinate pairs. Distances are planar
Euclidean in coordinate units; at building and parcel scale no geodesic
correction is needed. Every function treats its inputs as plain sequences, so
``LatLon`` tuples, numpy rows and bare tuples are interchangeable.
"""

from __future__ import annotations

import math
from typing import NamedTuple, Optional, Sequence, Tuple

import numpy as np
from shapely.geometry import LineString, Point, Polygon

Coordinate = Sequence[float]

_BOUNDARY_EPS = 1e-11


class LatLon(NamedTuple):
    """A coordinate pair. ``lat`` is the y axis, ``lon`` the x axis."""
    lat: float
    lon: float

    @property
    def xy(self) -> Tuple[float, float]:
        return (self.lon, self.lat)


def snap(coord: Coordinate, precision: int = 7) -> LatLon:
    """Round a coordinate to the fixed precision grid.

    Examples:
        >>> snap((50.123456789, 14.5))
        LatLon(lat=50.1234568, lon=14.5)
    """
    return LatLon(round(float(coord[0]), precision), round(float(coord[1]), precision))


def same_point(a: Coordinate, b: Coordinate, precision: int = 7) -> bool:
    """Return True if both coordinates snap to the same grid point."""
    return snap(a, precision) == snap(b, precision)


def distance(a: Coordinate, b: Coordinate) -> float:
    """Euclidean distance in coordinate-space units."""
    return math.hypot(b[0] - a[0], b[1] - a[1])


def point_on_line(p: Coordinate, a: Coordinate, b: Coordinate, tolerance: float) -> bool:
    """Check whether ``p`` lies on the segment ``a``-``b``.

    The distance a-b must equal the sum of the distances a-p and p-b within
    ``tolerance``. This absorbs floating rounding and digitization noise and
    never holds for points beyond the segment endpoints.

    Examples:
        >>> point_on_line((1, 0), (0, 0), (2, 0), 1e-9)
        True
        >>> point_on_line((3, 0), (0, 0), (2, 0), 1e-9)
        False
    """
    return abs(distance(a, b) - (distance(a, p) + distance(p, b))) <= tolerance


def point_inside_polygon(p: Coordinate, ring: Sequence[Coordinate]) -> bool:
    """Winding-angle test for a point against a (possibly unclosed) ring.

    Sums the signed turn angle seen from ``p`` between consecutive ring
    vertices. A point inside the ring sees a full turn, a point outside sees
    none. Points on the boundary are never inside. Totals within [359, 361]
    degrees, bounds included, count as a full turn.

    Args:
        p: Point to test
        ring: Ring vertices, closing vertex optional

    Returns:
        True if ``p`` is strictly inside the ring
    """
    if len(ring) < 3:
        return False
    pts = np.asarray(ring, dtype=float)[:, :2]
    point = np.asarray(p[:2], dtype=float)

    # Points on the boundary are not inside
    nxt = np.roll(pts, -1, axis=0)
    edge = np.hypot(*(nxt - pts).T)
    via_point = np.hypot(*(pts - point).T) + np.hypot(*(nxt - point).T)
    if np.any(np.abs(via_point - edge) <= _BOUNDARY_EPS):
        return False

    delta = pts - point
    alpha = np.degrees(np.arctan2(delta[:, 0], delta[:, 1]))
    turn = alpha - np.roll(alpha, 1)
    turn = np.where(turn > 180.0, turn - 360.0, turn)
    turn = np.where(turn <= -180.0, turn + 360.0, turn)

    return is_full_turn(float(turn.sum()))


def is_full_turn(total: float) -> bool:
    """True if a winding-angle sum in degrees amounts to one full turn."""
    return 359.0 <= abs(total) <= 361.0


def segment_intersection(
    a1: Coordinate,
    a2: Coordinate,
    b1: Coordinate,
    b2: Coordinate,
) -> Optional[LatLon]:
    """Intersection point of the infinite lines through two segments.

    The caller must check separately (with :func:`point_on_line`) that the
    point lies within the segment bounds.

    Returns:
        The intersection point, or None for parallel or degenerate segments

    Examples:
        >>> segment_intersection((0, 2), (2, 2), (1, 1), (1, 3))
        LatLon(lat=1.0, lon=2.0)
    """
    x1, y1 = a1[0], a1[1]
    x2, y2 = a2[0], a2[1]
    x3, y3 = b1[0], b1[1]
    x4, y4 = b2[0], b2[1]

    den = (x1 - x2) * (y3 - y4) - (y1 - y2) * (x3 - x4)
    scale = distance(a1, a2) * distance(b1, b2)
    if scale == 0.0 or abs(den) <= 1e-12 * scale:
        return None

    t = ((x1 - x3) * (y3 - y4) - (y1 - y3) * (x3 - x4)) / den
    return LatLon(x1 + t * (x2 - x1), y1 + t * (y2 - y1))


def segments_intersect(
    a1: Coordinate,
    a2: Coordinate,
    b1: Coordinate,
    b2: Coordinate,
) -> bool:
    """Return True if two finite segments cross or touch."""
    return _segment_geometry(a1, a2).intersects(_segment_geometry(b1, b2))


def segment_overlap(
    a1: Coordinate,
    a2: Coordinate,
    b1: Coordinate,
    b2: Coordinate,
    tolerance: float,
) -> bool:
    """Return True if either endpoint of segment b lies on segment a."""
    return (point_on_line(b1, a1, a2, tolerance)
            or point_on_line(b2, a1, a2, tolerance))


def point_to_segment_projection(
    point: Coordinate,
    segment_start: Coordinate,
    segment_end: Coordinate,
) -> Tuple[float, np.ndarray, float]:
    """Project a point onto a line segment and calculate distance.

    Uses parametric representation: P(t) = start + t * (end - start)
    where t is clamped to [0, 1] for segment projection.

    Args:
        point: Point coordinates
        segment_start: Segment start point
        segment_end: Segment end point

    Returns:
        Tuple of (parameter t, projected_point, distance)

    Examples:
        >>> t, proj, dist = point_to_segment_projection((0.5, 1.0), (0.0, 0.0), (1.0, 0.0))
        >>> t
        0.5
        >>> dist
        1.0
    """
    pt = np.asarray(point[:2], dtype=float)
    start = np.asarray(segment_start[:2], dtype=float)
    end = np.asarray(segment_end[:2], dtype=float)

    line_vec = end - start
    line_len_sq = float(np.dot(line_vec, line_vec))

    # Degenerate segment (start == end)
    if line_len_sq < 1e-30:
        return 0.0, start.copy(), float(np.linalg.norm(pt - start))

    t = float(np.dot(pt - start, line_vec)) / line_len_sq
    t = max(0.0, min(1.0, t))

    projection = start + t * line_vec
    return t, projection, float(np.linalg.norm(pt - projection))


def bbox_center(coords: Sequence[Coordinate]) -> LatLon:
    """Centre of the bounding box of ``coords``."""
    pts = np.asarray(coords, dtype=float)
    lo = pts[:, :2].min(axis=0)
    hi = pts[:, :2].max(axis=0)
    return LatLon(float((lo[0] + hi[0]) / 2.0), float((lo[1] + hi[1]) / 2.0))


def ring_polygon(ring: Sequence[Coordinate]) -> Polygon:
    """Shapely polygon for a ring, in (x=lon, y=lat) axis order."""
    return Polygon([(c[1], c[0]) for c in ring])


def polygon_ring(polygon: Polygon, precision: int = 7) -> list:
    """Exterior ring of a shapely polygon as snapped LatLon values."""
    return [snap((y, x), precision) for x, y in polygon.exterior.coords]


def _segment_geometry(a: Coordinate, b: Coordinate):
    if a[0] == b[0] and a[1] == b[1]:
        return Point(a[1], a[0])
    return LineString([(a[1], a[0]), (b[1], b[0])])


__all__ = [
    'Coordinate',
    'LatLon',
    'snap',
    'same_point',
    'distance',
    'point_on_line',
    'point_inside_polygon',
    'is_full_turn',
    'segment_intersection',
    'segments_intersect',
    'segment_overlap',
    'point_to_segment_projection',
    'bbox_center',
    'ring_polygon',
    'polygon_ring',
]
