"""Axis-aligned bounding box in (lat, lon) coordinates."""

from __future__ import annotations

from dataclasses import dataclass
from typing import Iterable, Sequence, Tuple

from shapely.geometry import Polygon, box


@dataclass(frozen=True)
class BBox:
    """Bounding box with inclusive bounds.

    Attributes:
        min_lat: Southern bound
        min_lon: Western bound
        max_lat: Northern bound
        max_lon: Eastern bound

    Examples:
        >>> bbox = BBox.from_coords([(0, 0), (2, 3)])
        >>> bbox.padded(1.0).contains((-1, 4))
        True
    """
    min_lat: float
    min_lon: float
    max_lat: float
    max_lon: float

    @classmethod
    def from_coords(cls, coords: Iterable[Sequence[float]]) -> "BBox":
        coords = list(coords)
        if not coords:
            raise ValueError("Cannot build a bounding box from no coordinates")
        lats = [c[0] for c in coords]
        lons = [c[1] for c in coords]
        return cls(min(lats), min(lons), max(lats), max(lons))

    @classmethod
    def around(cls, coord: Sequence[float], distance: float) -> "BBox":
        return cls(coord[0], coord[1], coord[0], coord[1]).padded(distance)

    def padded(self, distance: float) -> "BBox":
        return BBox(
            self.min_lat - distance,
            self.min_lon - distance,
            self.max_lat + distance,
            self.max_lon + distance,
        )

    def union(self, other: "BBox") -> "BBox":
        return BBox(
            min(self.min_lat, other.min_lat),
            min(self.min_lon, other.min_lon),
            max(self.max_lat, other.max_lat),
            max(self.max_lon, other.max_lon),
        )

    @property
    def center(self) -> Tuple[float, float]:
        return ((self.min_lat + self.max_lat) / 2.0, (self.min_lon + self.max_lon) / 2.0)

    def contains(self, coord: Sequence[float]) -> bool:
        return (self.min_lat <= coord[0] <= self.max_lat
                and self.min_lon <= coord[1] <= self.max_lon)

    def intersects(self, other: "BBox") -> bool:
        return not (other.min_lat > self.max_lat or other.max_lat < self.min_lat
                    or other.min_lon > self.max_lon or other.max_lon < self.min_lon)

    def to_polygon(self) -> Polygon:
        """Shapely box in (x=lon, y=lat) axis order."""
        return box(self.min_lon, self.min_lat, self.max_lon, self.max_lat)


__all__ = ['BBox']
