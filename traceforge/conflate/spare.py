"""Spare-node removal.

A spare node is a vertex collinear with its neighbours. It adds nothing to
the shape of a way and is typically left behind by overlap correction.
"""

import logging
from typing import Iterable, List, Optional

from ..core.geometry_utils import point_on_line
from ..dataset import Relation, Way
from ..editing.objects import EdNode, EdWay

logger = logging.getLogger(__name__)


def is_protected(node: EdNode, protected=()) -> bool:
    """True if ``node`` must not be removed as a spare node.

    Tagged nodes, nodes owned by more than one way and nodes referenced by a
    relation are shared infrastructure.
    """
    if node in protected or node.is_tagged:
        return True
    owners = len(node.editor_referrers(EdWay)) + len(node.external_referrers(Way))
    if owners != 1:
        return True
    return len(node.external_referrers(Relation)) > 0


def remove_spare_nodes(
    way: EdWay,
    protected: Iterable[EdNode] = (),
    tolerance: Optional[float] = None,
) -> List[EdNode]:
    """Repeatedly remove unprotected vertices collinear with their neighbours.

    Iterates to a fixed point, since removing one vertex can make its
    neighbour collinear. A closed way stays closed and keeps at least three
    distinct vertices; the endpoints of an open way are never removed.

    Args:
        way: Way to clean up
        protected: Nodes that must be kept regardless
        tolerance: On-line tolerance, defaults to ``min_distance_node_to_node``

    Returns:
        The removed nodes, in removal order
    """
    if tolerance is None:
        tolerance = way.editor.config.min_distance_node_to_node
    protected = set(protected)
    removed: List[EdNode] = []

    changed = True
    while changed:
        changed = False
        nodes = way.nodes
        closed = way.is_closed
        count = len(nodes) - 1 if closed else len(nodes)
        if count < (4 if closed else 3):
            break

        for i in range(count):
            if not closed and (i == 0 or i == count - 1):
                continue
            node = nodes[i]
            prev = nodes[i - 1] if i > 0 else nodes[count - 1]
            nxt = nodes[i + 1]
            if prev is node or nxt is node or is_protected(node, protected):
                continue
            if point_on_line(node.coor, prev.coor, nxt.coor, tolerance):
                way.remove_node(node)
                removed.append(node)
                logger.debug("Removed spare node %s from way %s", node.unique_id, way.unique_id)
                changed = True
                break

    return removed


__all__ = ['is_protected', 'remove_spare_nodes']
