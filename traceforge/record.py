"""Traced source polygons.

A :class:`TraceRecord` holds the rings returned by an external source (outer
ring plus optional inner rings), normalised to the coordinate grid, and turns
them into new shadow objects inside an editor.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass, field
from typing import Callable, Dict, List, Optional, Sequence, Union

from .core.bbox import BBox
from .core.errors import MalformedPolygonError
from .core.geometry_utils import LatLon, snap
from .conflate.nodes import reuse_existing_nodes
from .editing.objects import EdMultipolygon, EdNode, EdWay

logger = logging.getLogger(__name__)

Ring = Sequence[Sequence[float]]


def normalize_ring(
    ring: Ring,
    adjust_lat: float = 0.0,
    adjust_lon: float = 0.0,
    precision: int = 7,
) -> List[LatLon]:
    """Shift, snap and deduplicate a ring.

    Consecutive duplicate vertices and the closing vertex are dropped, so the
    result lists each distinct vertex once.

    Examples:
        >>> normalize_ring([(0, 0), (0, 1), (0, 1), (1, 1), (0, 0)])
        [LatLon(lat=0.0, lon=0.0), LatLon(lat=0.0, lon=1.0), LatLon(lat=1.0, lon=1.0)]
    """
    result: List[LatLon] = []
    for coor in ring:
        latlon = snap((coor[0] + adjust_lat, coor[1] + adjust_lon), precision)
        if result and result[-1] == latlon:
            continue
        result.append(latlon)
    while len(result) > 1 and result[0] == result[-1]:
        result.pop()
    return result


@dataclass
class TraceRecord:
    """A polygon obtained from an external source.

    Attributes:
        outer: Outer ring, closing vertex optional
        inners: Inner rings
        tags: Tags describing the traced feature
        adjust_lat: Offset added to every latitude
        adjust_lon: Offset added to every longitude
        ref_key: Tag key holding the source's reference id, used to find
            the exact object to retrace
        precision: Decimal places coordinates are snapped to
    """
    outer: Ring
    inners: Sequence[Ring] = ()
    tags: Dict[str, str] = field(default_factory=dict)
    adjust_lat: float = 0.0
    adjust_lon: float = 0.0
    ref_key: Optional[str] = None
    precision: int = 7

    def __post_init__(self):
        self.outer_ring = normalize_ring(self.outer, self.adjust_lat, self.adjust_lon, self.precision)
        self.inner_rings = [normalize_ring(r, self.adjust_lat, self.adjust_lon, self.precision)
                            for r in self.inners]

    @property
    def ref(self) -> Optional[str]:
        if self.ref_key is None:
            return None
        return self.tags.get(self.ref_key)

    @property
    def has_inners(self) -> bool:
        return len(self.inner_rings) > 0

    def bbox(self) -> BBox:
        self.validate()
        return BBox.from_coords(self.outer_ring)

    def validate(self) -> None:
        """Check that every ring has at least three distinct vertices.

        Raises:
            MalformedPolygonError: If a ring is degenerate
        """
        if len(self.outer_ring) < 3:
            raise MalformedPolygonError(
                f"Outer way consists of less than 3 nodes ({len(self.outer_ring)})"
            )
        for i, ring in enumerate(self.inner_rings):
            if len(ring) < 3:
                raise MalformedPolygonError(
                    f"Inner way {i} consists of less than 3 nodes ({len(ring)})"
                )

    def create_object(
        self,
        editor,
        reuse_predicate: Optional[Callable[[EdNode], bool]] = None,
    ) -> Union[EdWay, EdMultipolygon]:
        """Create the traced geometry as new shadow objects.

        The record is validated before anything is created. A record without
        inner rings becomes a closed EdWay; otherwise an EdMultipolygon with
        one outer and the inner ways. With ``reuse_predicate`` the vertices of
        every ring are deduplicated against existing nodes.

        Raises:
            MalformedPolygonError: If a ring is degenerate
        """
        self.validate()

        outer_way = self._create_way(editor, self.outer_ring, reuse_predicate)
        if not self.has_inners:
            return outer_way

        multipolygon = editor.new_multipolygon()
        multipolygon.add_outer_way(outer_way)
        for ring in self.inner_rings:
            multipolygon.add_inner_way(self._create_way(editor, ring, reuse_predicate))
        return multipolygon

    @staticmethod
    def _create_way(editor, ring: List[LatLon], reuse_predicate) -> EdWay:
        nodes = [editor.new_node(c) for c in ring]
        way = editor.new_way(nodes + nodes[:1])
        if reuse_predicate is not None:
            reuse_existing_nodes(way, reuse_predicate)
        return way


__all__ = ['Ring', 'normalize_ring', 'TraceRecord']
