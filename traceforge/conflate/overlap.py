"""Overlap detection and correction between two area ways.

When a traced polygon overlaps an existing one, the shared region is given
to the traced polygon: intersection nodes are inserted into both rings, the
existing ring loses the vertices inside the traced one and gains the traced
vertices inside it, so both rings end up sharing a border.
"""

import logging
from dataclasses import dataclass, field
from typing import Callable, Dict, List, Optional

from ..core.geometry_utils import (
    LatLon,
    bbox_center,
    distance,
    point_inside_polygon,
    point_on_line,
    segment_intersection,
    segment_overlap,
    segments_intersect,
)
from ..editing.objects import EdNode, EdWay
from .nodes import merge_nodes

logger = logging.getLogger(__name__)


@dataclass
class OverlapResult:
    """Outcome of :func:`correct_overlapping`.

    Attributes:
        intersection_nodes: Nodes spliced into both ways
        removed_nodes: Vertices removed from the second way
        orphaned_nodes: Removed vertices no longer referenced by any way
        reinserted_nodes: Vertices of the first way added to the second one
    """
    intersection_nodes: List[EdNode] = field(default_factory=list)
    removed_nodes: List[EdNode] = field(default_factory=list)
    orphaned_nodes: List[EdNode] = field(default_factory=list)
    reinserted_nodes: List[EdNode] = field(default_factory=list)

    @property
    def changed(self) -> bool:
        return bool(self.intersection_nodes or self.removed_nodes or self.reinserted_nodes)


def _ring(way: EdWay) -> List[EdNode]:
    """Distinct vertices of a closed way (closing vertex dropped)."""
    nodes = way.nodes
    return nodes[:-1] if way.is_closed else nodes


def ways_overlap(a: EdWay, b: EdWay) -> bool:
    """True if some vertex of one way lies inside the other."""
    a_coords = a.coords
    b_coords = b.coords
    if any(point_inside_polygon(n.coor, a_coords) for n in _ring(b)):
        return True
    return any(point_inside_polygon(n.coor, b_coords) for n in _ring(a))


def _node_at(way_a: EdWay, way_b: EdWay, pos, found: List[EdNode],
             moves: Dict[EdNode, LatLon]) -> EdNode:
    """Existing node within the node-to-node distance of ``pos``, or a new node.

    A reused node is recorded in ``moves`` to be moved onto ``pos`` later.
    """
    editor = way_a.editor
    tol = editor.config.min_distance_node_to_node

    for node in found:
        if distance(moves.get(node, node.coor), pos) <= tol:
            return node

    best, best_dist = None, None
    for node in editor.search_nodes(way_a.bbox(tol).union(way_b.bbox(tol))):
        if not (node.has_referrers or node.is_tagged):
            continue
        dist = distance(node.coor, pos)
        if dist <= tol and (best_dist is None or dist < best_dist):
            best, best_dist = node, dist

    if best is not None:
        moves[best] = pos
        logger.debug("Reusing node %s as intersection at %s", best.unique_id, pos)
        return best
    node = editor.new_node(pos)
    logger.debug("New intersection node at %s", node.coor)
    return node


def _collect_intersections(way_a: EdWay, way_b: EdWay,
                           moves: Dict[EdNode, LatLon]) -> List[EdNode]:
    tol = way_a.editor.config.min_distance_node_to_node
    found: List[EdNode] = []

    def add(node):
        if node not in found:
            found.append(node)

    a_nodes = way_a.nodes
    b_nodes = way_b.nodes
    for i in range(len(a_nodes) - 1):
        a1, a2 = a_nodes[i].coor, a_nodes[i + 1].coor
        for j in range(len(b_nodes) - 1):
            b1, b2 = b_nodes[j].coor, b_nodes[j + 1].coor
            if not segments_intersect(a1, a2, b1, b2) and not segment_overlap(a1, a2, b1, b2, tol):
                continue

            point = segment_intersection(a1, a2, b1, b2)
            if point is not None and point_on_line(point, a1, a2, tol):
                add(_node_at(way_a, way_b, point, found, moves))
                continue

            # Parallel or collinear segments: endpoints of b lying on a are the intersections
            for end in (b_nodes[j], b_nodes[j + 1]):
                if point_on_line(end.coor, a1, a2, tol):
                    add(end)
    return found


def _twin(way: EdWay, node: EdNode, tol: float) -> Optional[EdNode]:
    """Nearest other vertex of ``way`` within ``tol`` of ``node``."""
    best, best_dist = None, None
    for other in dict.fromkeys(way.nodes):
        if other is node:
            continue
        dist = distance(other.coor, node.coor)
        if dist <= tol and (best_dist is None or dist < best_dist):
            best, best_dist = other, dist
    return best


def _splice_into(way: EdWay, node: EdNode, tol: float) -> bool:
    if way.contains_node(node):
        return False
    twin = _twin(way, node, tol)
    if twin is not None:
        # The twin gives way to the intersection node in every way holding it
        pos = node.coor
        merge_nodes(twin, node)
        node.set_coor(pos)
        return True
    for i in range(way.node_count - 1):
        if point_on_line(node.coor, way.node(i).coor, way.node(i + 1).coor, tol):
            way.add_node(i + 1, node)
            return True
    return False


def correct_overlapping(way_a: EdWay, way_b: EdWay) -> OverlapResult:
    """Resolve the overlap of two closed ways in favour of ``way_a``.

    1. Every crossing or collinearly overlapping segment pair yields an
       intersection node. An existing node within ``min_distance_node_to_node``
       is reused and moved to the exact position; otherwise a new node is
       created. The same position never yields two nodes.
    2. Intersection nodes are spliced into both ways. A vertex lying within
       ``min_distance_node_to_node`` of an intersection node is replaced by it
       instead.
    3. Vertices of ``way_b`` strictly inside ``way_a`` (and not part of it) are
       removed; ``way_b`` is re-closed if needed.
    4. Vertices of ``way_a`` inside the updated ``way_b`` are inserted into
       ``way_b`` at the segment crossed by the ray from the centre of
       ``way_a``'s bounding box through the vertex. This step is best effort
       for non-convex rings.

    If ``way_b`` would keep fewer than three distinct vertices, nothing is
    changed.

    Args:
        way_a: Way keeping the overlapping area (usually the traced one)
        way_b: Way giving the overlapping area up

    Returns:
        OverlapResult describing what changed

    Examples:
        >>> result = correct_overlapping(traced, existing)
        >>> [n.coor for n in result.intersection_nodes]
        [LatLon(lat=1.0, lon=2.0), LatLon(lat=2.0, lon=1.0)]
    """
    editor = way_a.editor
    editor.check_owned([way_a, way_b])
    tol = editor.config.min_distance_node_to_node
    result = OverlapResult()
    if way_a is way_b:
        return result

    # 1) intersections
    moves: Dict[EdNode, LatLon] = {}
    found = _collect_intersections(way_a, way_b, moves)

    a_coords = way_a.coords
    b_distinct = list(dict.fromkeys(_ring(way_b)))
    inside = [n for n in b_distinct
              if n not in found and not way_a.contains_node(n)
              and point_inside_polygon(n.coor, a_coords)]
    if len(set(b_distinct) | set(found)) - len(inside) < 3:
        logger.warning("Way %s is covered by way %s, overlap not corrected",
                       way_b.unique_id, way_a.unique_id)
        for node in found:
            if not node.has_original and not node.has_referrers:
                editor.discard(node)
        return result

    # 2) splice into both ways
    for node, pos in moves.items():
        node.set_coor(pos)
    result.intersection_nodes = found
    for node in found:
        _splice_into(way_a, node, tol)
        _splice_into(way_b, node, tol)

    # 3) remove vertices of b inside a
    a_coords = way_a.coords
    b_ring = _ring(way_b)
    remove = [n for n in dict.fromkeys(b_ring)
              if not way_a.contains_node(n) and point_inside_polygon(n.coor, a_coords)]
    if len(dict.fromkeys(b_ring)) - len(remove) < 3:
        logger.warning("Way %s is covered by way %s, overlap not corrected",
                       way_b.unique_id, way_a.unique_id)
        return result

    for node in remove:
        way_b.remove_node(node)
        result.removed_nodes.append(node)
        logger.debug("Removed node %s from way %s", node.unique_id, way_b.unique_id)
        if not node.has_referrers:
            result.orphaned_nodes.append(node)

    # 4) re-insert vertices of a inside b
    center = bbox_center(a_coords)
    for node in dict.fromkeys(_ring(way_a)):
        if way_b.contains_node(node):
            continue
        if not point_inside_polygon(node.coor, way_b.coords):
            continue
        for j in range(way_b.node_count - 1):
            if segments_intersect(center, node.coor, way_b.node(j).coor, way_b.node(j + 1).coor):
                way_b.add_node(j + 1, node)
                result.reinserted_nodes.append(node)
                logger.debug("Inserted node %s into way %s at %d",
                             node.unique_id, way_b.unique_id, j + 1)
                break

    return result


def fix_overlapped_ways(way: EdWay, predicate: Callable[[EdWay], bool]) -> List[EdWay]:
    """Correct every neighbour of ``way`` that satisfies ``predicate`` and overlaps it.

    Returns:
        The corrected neighbour ways
    """
    bbox = way.bbox(way.editor.config.min_distance)
    fixed = []
    for other in way.editor.search_ways(bbox, predicate):
        if other is way or not other.is_closed:
            continue
        if ways_overlap(way, other):
            if correct_overlapping(way, other).changed:
                fixed.append(other)
    return fixed


def remove_fully_covered_ways(way: EdWay, predicate: Callable[[EdWay], bool]) -> List[EdWay]:
    """Delete neighbours whose bounding-box centre lies inside ``way``.

    Neighbours referenced from outside the working set (for example by a
    relation) are kept.

    Returns:
        The deleted ways
    """
    editor = way.editor
    coords = way.coords
    removed = []
    for other in editor.search_ways(way.bbox(editor.config.min_distance), predicate):
        if other is way or not other.is_closed:
            continue
        if other.has_referrers:
            continue
        center = bbox_center(other.coords)
        if not point_inside_polygon(center, coords):
            continue
        logger.debug("Deleting way %s covered by way %s", other.unique_id, way.unique_id)
        other.delete()
        removed.append(other)
    return removed


__all__ = [
    'OverlapResult',
    'ways_overlap',
    'correct_overlapping',
    'fix_overlapped_ways',
    'remove_fully_covered_ways',
]
