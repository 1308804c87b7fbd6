"""Node deduplication and reuse.

Traced vertices that fall within the node-to-node distance of an existing
node are replaced by that node, so a traced polygon shares vertices with its
neighbours instead of duplicating them.
"""

import logging
from typing import Callable, Dict, List, Optional

from ..core.errors import ClosedWayError
from ..core.geometry_utils import distance
from ..editing.objects import EdNode, EdWay

logger = logging.getLogger(__name__)


def _collapse_repeats(nodes: List[EdNode]) -> List[EdNode]:
    """Drop consecutive repeated nodes."""
    result: List[EdNode] = []
    for node in nodes:
        if not result or result[-1] is not node:
            result.append(node)
    return result


def _splice(way: EdWay, replacements: Dict[EdNode, EdNode]) -> None:
    was_closed = way.is_closed
    nodes = _collapse_repeats([replacements.get(n, n) for n in way.nodes])
    if was_closed and (len(nodes) < 4 or nodes[0] is not nodes[-1]):
        raise ClosedWayError(f"Node reuse opened closed way {way.unique_id}")
    way.set_nodes(nodes)


def _find_replacements(
    way: EdWay,
    predicate: Callable[[EdNode], bool],
) -> Dict[EdNode, EdNode]:
    editor = way.editor
    replacements: Dict[EdNode, EdNode] = {}
    for node in dict.fromkeys(way.nodes):
        existing = editor.find_existing_node_for_duplicate_merge(node, predicate)
        if existing is not None and existing is not node:
            replacements[node] = existing
    return replacements


def reuse_existing_nodes(way: EdWay, predicate: Callable[[EdNode], bool]) -> int:
    """Replace traced vertices by existing nodes at (nearly) the same position.

    Each vertex is matched against existing nodes within
    ``min_distance_node_to_node`` that satisfy ``predicate``; the nearest match
    takes the vertex's place and keeps its own position. Consecutive
    duplicates produced by the splice collapse to one occurrence.

    Args:
        way: Way whose vertices should be deduplicated
        predicate: Filter for acceptable existing nodes

    Returns:
        Number of replaced vertices

    Raises:
        ValueError: If no predicate is given
        ClosedWayError: If a closed way would stop being closed
    """
    if predicate is None:
        raise ValueError("No node predicate specified")

    replacements = _find_replacements(way, predicate)
    if not replacements:
        return 0

    _splice(way, replacements)
    for old, new in replacements.items():
        logger.debug("Reusing node %s instead of %s in way %s",
                     new.unique_id, old.unique_id, way.unique_id)
    return len(replacements)


def reuse_near_nodes(
    way: EdWay,
    predicate: Callable[[EdNode], bool],
    move_existing: bool = True,
) -> int:
    """Like :func:`reuse_existing_nodes`, optionally moving the reused node.

    With ``move_existing`` the matched existing node is moved to the traced
    coordinate, so the existing feature absorbs the new, more precise
    position.

    Returns:
        Number of replaced vertices
    """
    if predicate is None:
        raise ValueError("No node predicate specified")

    replacements = _find_replacements(way, predicate)
    if not replacements:
        return 0

    if move_existing:
        for old, new in replacements.items():
            new.set_coor(old.coor)
    _splice(way, replacements)
    logger.debug("Reused %d near nodes in way %s", len(replacements), way.unique_id)
    return len(replacements)


def merge_nodes(node: EdNode, other: EdNode) -> List[EdWay]:
    """Replace ``node`` by ``other`` in every way and move ``other`` onto it.

    Returns:
        Ways that were changed
    """
    if node is other:
        return []
    node.editor.check_owned([node, other])
    other.set_coor(node.coor)
    changed = []
    for way in node.editor_referrers(EdWay):
        _splice(way, {node: other})
        changed.append(way)
    logger.debug("Merged node %s into %s", node.unique_id, other.unique_id)
    return changed


def find_duplicate_node(node: EdNode, candidates, tolerance: float) -> Optional[EdNode]:
    """First node of ``candidates`` other than ``node`` within ``tolerance``."""
    for cand in candidates:
        if cand is not node and distance(cand.coor, node.coor) <= tolerance:
            return cand
    return None


__all__ = [
    'reuse_existing_nodes',
    'reuse_near_nodes',
    'merge_nodes',
    'find_duplicate_node',
]
