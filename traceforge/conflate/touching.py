"""Touching-node insertion.

Two polygons sharing a border are often digitized with different vertex
density. A vertex of one that lies on a segment of the other must become a
vertex of both, otherwise the shared border has a silent gap.
"""

import logging
from typing import Callable, List, Optional, Union

from ..core.geometry_utils import distance, point_on_line, point_to_segment_projection
from ..editing.objects import EdMultipolygon, EdNode, EdWay
from .nodes import find_duplicate_node, merge_nodes

logger = logging.getLogger(__name__)


def _ways_of(obj: Union[EdWay, EdMultipolygon]) -> List[EdWay]:
    if isinstance(obj, EdMultipolygon):
        return obj.ways
    return [obj]


def connect_existing_touching_nodes(
    obj: Union[EdWay, EdMultipolygon],
    predicate: Callable[[EdNode], bool],
    tolerance: Optional[float] = None,
) -> int:
    """Insert existing nodes lying on the segments of ``obj``.

    Every segment is checked against the existing nodes that lie on it
    within ``tolerance`` (a distance in degrees, see
    :attr:`GeomDeviation.distance_latlon`) and satisfy ``predicate``. Nodes
    found on one segment are inserted in order of increasing distance from the
    segment's first endpoint. Nodes already in the way and nodes sitting on a
    segment endpoint are skipped, so repeating the call changes nothing.

    Args:
        obj: Way (or every way of a multipolygon) to connect
        predicate: Filter for acceptable existing nodes
        tolerance: On-line tolerance, defaults to ``min_distance_node_to_other_way``

    Returns:
        Number of inserted nodes
    """
    if predicate is None:
        raise ValueError("No node predicate specified")

    inserted = 0
    for way in _ways_of(obj):
        editor = way.editor
        i = 0
        while i < way.node_count - 1:
            x = way.node(i).coor
            y = way.node(i + 1).coor
            add: List[EdNode] = []
            for node in editor.find_existing_nodes_touching_way_segment(x, y, predicate, tolerance):
                if way.contains_node(node) or node in add:
                    continue
                add.append(node)
            for node in add:
                i += 1
                logger.debug("Connecting node %s into way %s", node.unique_id, way.unique_id)
                way.add_node(i, node)
                inserted += 1
            i += 1
    return inserted


def connect_touching_nodes(
    way: EdWay,
    other: EdWay,
    predicate: Optional[Callable[[EdNode], bool]] = None,
    tolerance: Optional[float] = None,
) -> int:
    """Insert the nodes of ``other`` that lie on segments of ``way``.

    Returns:
        Number of inserted nodes
    """
    if way is other:
        return 0
    way.editor.check_owned([way, other])

    config = way.editor.config
    if tolerance is None:
        tolerance = config.min_distance_node_to_other_way
    endpoint_tol = config.min_distance_node_to_node
    other_nodes = list(dict.fromkeys(other.nodes))

    inserted = 0
    i = 0
    while i < way.node_count - 1:
        x = way.node(i).coor
        y = way.node(i + 1).coor
        add = []
        for node in other_nodes:
            if way.contains_node(node):
                continue
            if distance(node.coor, x) <= endpoint_tol or distance(node.coor, y) <= endpoint_tol:
                continue
            if not point_on_line(node.coor, x, y, tolerance):
                continue
            if predicate is not None and not predicate(node):
                continue
            add.append(node)

        i += 1
        add.sort(key=lambda n: distance(x, n.coor))
        for node in add:
            logger.debug("Connecting node %s into way %s", node.unique_id, way.unique_id)
            way.add_node(i, node)
            i += 1
            inserted += 1
    return inserted


def connect_node_to_nearby_ways(node: EdNode, predicate: Callable[[EdWay], bool]) -> int:
    """Connect ``node`` into nearby area ways passing close by.

    For every way satisfying ``predicate`` whose nearest segment lies within
    ``min_distance_node_to_other_way`` of the node (measured perpendicular to
    the segment, with the foot strictly inside it), the node is inserted into
    that segment. If the way already has a vertex within
    ``min_distance_node_to_node``, the two nodes are merged instead.

    Returns:
        Number of ways the node was connected to
    """
    editor = node.editor
    config = editor.config
    bbox = node.bbox(config.min_distance_node_to_other_way)

    connected = 0
    for way in editor.search_ways(bbox, predicate):
        if way.contains_node(node) or way.node_count < 2:
            continue

        best_index = None
        best_dist = None
        for i in range(way.node_count - 1):
            t, _, dist = point_to_segment_projection(node.coor, way.node(i).coor, way.node(i + 1).coor)
            if t <= 0.0 or t >= 1.0:
                continue
            if best_dist is None or dist < best_dist:
                best_index, best_dist = i, dist
        if best_dist is None or best_dist >= config.min_distance_node_to_other_way:
            continue

        duplicate = find_duplicate_node(node, way.nodes, config.min_distance_node_to_node)
        if duplicate is not None:
            merge_nodes(node, duplicate)
            return connected + 1

        logger.debug("Connecting node %s into way %s at %d", node.unique_id, way.unique_id, best_index + 1)
        way.add_node(best_index + 1, node)
        connected += 1
    return connected


__all__ = [
    'connect_existing_touching_nodes',
    'connect_touching_nodes',
    'connect_node_to_nearby_ways',
]
