"""Clipping of neighbouring areas by a traced way.

Plain area ways are clipped with :func:`correct_overlapping`. Ways that are
boundaries of a multipolygon may be shared by several rings, so their new
geometry is computed with a shapely polygon difference and rebuilt from the
nodes already in play.
"""

import logging
from typing import Callable, List, Optional

from ..core.geometry_utils import distance, polygon_ring
from ..editing.objects import EdNode, EdWay
from .overlap import correct_overlapping, ways_overlap

logger = logging.getLogger(__name__)


def _skip(messages: Optional[List[str]], text: str) -> None:
    logger.warning(text)
    if messages is not None:
        messages.append(text)


def _match_node(coor, candidates: List[EdNode], tol: float) -> Optional[EdNode]:
    best, best_dist = None, None
    for node in candidates:
        dist = distance(node.coor, coor)
        if dist <= tol and (best_dist is None or dist < best_dist):
            best, best_dist = node, dist
    return best


def clip_boundary_way(clip_way: EdWay, way: EdWay, messages: Optional[List[str]] = None) -> bool:
    """Clip a multipolygon boundary way by ``clip_way`` using a polygon difference.

    The resulting ring reuses nodes of both ways found within
    ``min_distance_node_to_node`` of a result vertex; other vertices become new
    nodes. Results that vanish, split into several parts or gain a hole are
    skipped and reported through ``messages``.

    Returns:
        True if the way was changed
    """
    editor = way.editor
    config = editor.config

    poly = way.polygon()
    clip = clip_way.polygon()
    if not poly.is_valid or not clip.is_valid:
        _skip(messages, f"Way {way.unique_id} or clipping way is not a valid polygon, not clipped.")
        return False

    diff = poly.difference(clip)
    if diff.is_empty:
        _skip(messages, f"Way {way.unique_id} would vanish by clipping, not clipped.")
        return False
    if diff.geom_type != 'Polygon' or len(diff.interiors) > 0:
        _skip(messages, f"Clipping would split way {way.unique_id}, not clipped.")
        return False
    if abs(diff.area - poly.area) <= config.double_diff * max(poly.area, config.double_diff):
        return False

    ring = polygon_ring(diff, config.precision)[:-1]
    candidates = list(dict.fromkeys(way.nodes + clip_way.nodes))
    nodes: List[EdNode] = []
    for coor in ring:
        node = _match_node(coor, candidates, config.min_distance_node_to_node)
        if node is None:
            node = editor.new_node(coor)
            candidates.append(node)
        if not nodes or nodes[-1] is not node:
            nodes.append(node)
    if len(nodes) > 1 and nodes[0] is nodes[-1]:
        nodes.pop()
    if len(nodes) < 3:
        _skip(messages, f"Way {way.unique_id} would degenerate by clipping, not clipped.")
        return False

    way.set_nodes(nodes + nodes[:1])
    logger.debug("Clipped multipolygon way %s by way %s", way.unique_id, clip_way.unique_id)
    return True


def clip_areas(
    clip_way: EdWay,
    predicate: Callable[[EdWay], bool],
    boundary_predicate: Optional[Callable[[EdWay], bool]] = None,
    messages: Optional[List[str]] = None,
) -> List[EdWay]:
    """Clip every overlapping neighbour area of ``clip_way``.

    Args:
        clip_way: Way keeping the overlapping area
        predicate: Selects plain area ways to clip
        boundary_predicate: Selects multipolygon boundary ways to clip
        messages: Receives user-facing notes about skipped clips

    Returns:
        The changed ways
    """
    editor = clip_way.editor

    def wanted(w):
        return predicate(w) or (boundary_predicate is not None and boundary_predicate(w))

    changed = []
    for way in editor.search_ways(clip_way.bbox(editor.config.min_distance), wanted):
        if way is clip_way or not way.is_closed:
            continue
        if not ways_overlap(clip_way, way):
            continue
        if way.is_member_of_any_multipolygon():
            if clip_boundary_way(clip_way, way, messages):
                changed.append(way)
        elif correct_overlapping(clip_way, way).changed:
            changed.append(way)
    return changed


__all__ = ['clip_boundary_way', 'clip_areas']
