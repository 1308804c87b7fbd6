"""Editing transaction over a host data source.

:class:`WayEditor` owns the working set of shadow objects for one trace. It is
the only way shadow objects are created, it mediates every lookup into the host
data source, and it finalizes the working set into an ordered list of change
operations. The host dataset is never touched by the editor itself.
"""

from __future__ import annotations

import logging
from typing import Callable, Dict, Iterable, List, Optional, Sequence

from ..core.bbox import BBox
from ..core.config import ConflationConfig
from ..core.errors import ForeignObjectError, IllegalStateError, InvariantError
from ..core.geometry_utils import distance, point_inside_polygon, point_on_line
from ..dataset import DataSource, Node, Relation, Way
from ..operations import (
    AddNode,
    AddRelation,
    AddWay,
    ChangeRelationMembers,
    ChangeTags,
    ChangeWayNodes,
    DeleteNode,
    DeleteRelation,
    DeleteWay,
    MoveNode,
    Operation,
)
from .objects import EdMultipolygon, EdNode, EdObject, EdWay

logger = logging.getLogger(__name__)

Predicate = Callable[[EdObject], bool]


class WayEditor:
    """Transaction coordinator for one conflation run.

    Example:
        ```python
        editor = WayEditor(dataset)
        nodes = [editor.new_node(c) for c in ring]
        way = editor.new_way(nodes + nodes[:1], {'building': 'yes'})
        ...
        dataset.apply(editor.finalize_edit())
        ```

    Attributes:
        data_source: Host data source queried for existing geometry
        config: Distance thresholds used by all lookups
    """

    def __init__(self, data_source: DataSource, config: Optional[ConflationConfig] = None):
        self.data_source = data_source
        self.config = config or ConflationConfig()
        self._seq = 0
        self._objects: List[EdObject] = []
        self._nodes: Dict[Node, EdNode] = {}
        self._ways: Dict[Way, EdWay] = {}
        self._relations: Dict[Relation, EdMultipolygon] = {}
        self._operations: Optional[List[Operation]] = None

    def _next_seq(self) -> int:
        self._seq += 1
        return self._seq

    @property
    def is_finalized(self) -> bool:
        return self._operations is not None

    def _check_open(self) -> None:
        if self._operations is not None:
            raise IllegalStateError("Editor is finalized")

    def _register(self, obj: EdObject) -> EdObject:
        self._objects.append(obj)
        return obj

    # ------------------------------------------------------------------
    # Creating and using shadow objects

    def use_node(self, node: Node) -> EdNode:
        """Shadow of an existing host node, created on first use."""
        self._check_open()
        edn = self._nodes.get(node)
        if edn is None:
            self._check_usable(node)
            edn = EdNode(self, original=node)
            self._nodes[node] = edn
            self._register(edn)
        return edn

    def use_way(self, way: Way) -> EdWay:
        """Shadow of an existing host way, created on first use."""
        self._check_open()
        edw = self._ways.get(way)
        if edw is None:
            self._check_usable(way)
            edw = EdWay(self, original=way)
            self._ways[way] = edw
            self._register(edw)
        return edw

    def use_multipolygon(self, relation: Relation) -> EdMultipolygon:
        """Shadow of an existing multipolygon relation, created on first use."""
        self._check_open()
        edr = self._relations.get(relation)
        if edr is None:
            self._check_usable(relation)
            edr = EdMultipolygon(self, original=relation)
            self._relations[relation] = edr
            self._register(edr)
        return edr

    def new_node(self, coor: Sequence[float], tags: Optional[Dict[str, str]] = None) -> EdNode:
        self._check_open()
        return self._register(EdNode(self, coor, tags=tags))

    def new_way(self, nodes: Iterable[EdNode], tags: Optional[Dict[str, str]] = None) -> EdWay:
        self._check_open()
        return self._register(EdWay(self, nodes, tags=tags))

    def new_multipolygon(self, tags: Optional[Dict[str, str]] = None) -> EdMultipolygon:
        self._check_open()
        return self._register(EdMultipolygon(self, tags=tags))

    def discard(self, obj: EdObject) -> None:
        """Drop a new object that is no longer needed.

        Raises:
            InvariantError: If the object is an original shadow or still referenced
        """
        self.check_owned([obj])
        if obj.has_original:
            raise InvariantError(f"Cannot discard shadow {obj!r}, delete it instead")
        if obj.has_editor_referrers:
            raise InvariantError(f"Cannot discard referenced {obj!r}")
        if isinstance(obj, EdWay):
            obj.remove_all_nodes()
        obj._set_deleted()

    def _check_usable(self, primitive) -> None:
        if not self.data_source.is_usable(primitive):
            raise InvariantError(f"{type(primitive).__name__} {primitive.id} is not usable")

    def owned_by_editor(self, objs: Iterable) -> bool:
        return all(isinstance(o, EdObject) and o.editor is self for o in objs)

    def check_owned(self, objs: Iterable) -> None:
        """Fail fast if any object belongs to another editor.

        Raises:
            ForeignObjectError: If an object was not created by this editor
        """
        if not self.owned_by_editor(objs):
            raise ForeignObjectError("EdObject(s) from a different WayEditor")

    def is_edited(self, primitive) -> bool:
        """True if ``primitive`` has a shadow in this working set."""
        return primitive in self._nodes or primitive in self._ways or primitive in self._relations

    # ------------------------------------------------------------------
    # Working set views

    def _live(self, cls) -> List:
        return [o for o in self._objects if isinstance(o, cls) and not o.is_deleted]

    @property
    def nodes(self) -> List[EdNode]:
        return self._live(EdNode)

    @property
    def ways(self) -> List[EdWay]:
        return self._live(EdWay)

    @property
    def multipolygons(self) -> List[EdMultipolygon]:
        return self._live(EdMultipolygon)

    def modified_ways(self) -> List[EdWay]:
        """Ways changed (or created) in this transaction."""
        return [w for w in self.ways if w.is_modified or not w.has_original]

    # ------------------------------------------------------------------
    # Searches

    def search_nodes(self, bbox: BBox, predicate: Optional[Predicate] = None) -> List[EdNode]:
        """Nodes inside ``bbox``: usable host nodes pulled into the editor plus edited ones."""
        self._check_open()
        for node in self.data_source.search_nodes(bbox):
            self.use_node(node)
        return [n for n in self.nodes
                if bbox.contains(n.coor) and (predicate is None or predicate(n))]

    def search_ways(self, bbox: BBox, predicate: Optional[Predicate] = None) -> List[EdWay]:
        """Ways whose current geometry lies in ``bbox``."""
        self._check_open()
        for way in self.data_source.search_ways(bbox):
            self.use_way(way)
        return [w for w in self.ways
                if w.node_count > 0 and w.bbox().intersects(bbox)
                and (predicate is None or predicate(w))]

    def find_existing_node_for_duplicate_merge(
        self,
        node: EdNode,
        predicate: Predicate,
        exclude_way: Optional[EdWay] = None,
    ) -> Optional[EdNode]:
        """Nearest other node within the node-to-node distance that satisfies ``predicate``.

        Args:
            node: Node looking for a duplicate
            predicate: Filter for acceptable existing nodes
            exclude_way: Nodes of this way are never returned

        Returns:
            The nearest matching node, or None
        """
        tol = self.config.min_distance_node_to_node
        best = None
        best_dist = None
        for cand in self.search_nodes(node.bbox(tol)):
            if cand is node:
                continue
            if exclude_way is not None and exclude_way.contains_node(cand):
                continue
            dist = distance(node.coor, cand.coor)
            if dist > tol:
                continue
            if not predicate(cand):
                continue
            if best_dist is None or dist < best_dist:
                best, best_dist = cand, dist
        return best

    def find_existing_nodes_touching_way_segment(
        self,
        a: Sequence[float],
        b: Sequence[float],
        predicate: Predicate,
        tolerance: Optional[float] = None,
    ) -> List[EdNode]:
        """Nodes lying on segment a-b, endpoints excluded, ordered by distance from ``a``."""
        if tolerance is None:
            tolerance = self.config.min_distance_node_to_other_way
        endpoint_tol = self.config.min_distance_node_to_node
        bbox = BBox.from_coords([a, b]).padded(tolerance)
        result = []
        for cand in self.search_nodes(bbox):
            p = cand.coor
            if distance(p, a) <= endpoint_tol or distance(p, b) <= endpoint_tol:
                continue
            if not point_on_line(p, a, b, tolerance):
                continue
            if predicate(cand):
                result.append(cand)
        result.sort(key=lambda n: (distance(a, n.coor), n._seq))
        return result

    def use_non_edited_areas_containing_point(self, pos: Sequence[float],
                                              predicate: Predicate) -> List[EdObject]:
        """Existing, not yet edited areas around ``pos`` that satisfy ``predicate``.

        Closed ways containing the point and multipolygons whose outer ring
        contains it (and no inner ring does) are pulled into the editor.
        """
        self._check_open()
        bbox = BBox.around(pos, self.config.min_distance)
        result: List[EdObject] = []

        for way in self.data_source.search_ways(bbox):
            if self.is_edited(way) or not way.is_closed:
                continue
            if not point_inside_polygon(pos, way.coords):
                continue
            edway = self.use_way(way)
            if predicate(edway):
                result.append(edway)

        for relation in self.data_source.search_relations(bbox):
            if self.is_edited(relation) or relation.get('type') != 'multipolygon':
                continue
            outers = relation.member_ways('outer')
            inners = relation.member_ways('inner')
            if not any(w.is_closed and point_inside_polygon(pos, w.coords) for w in outers):
                continue
            if any(w.is_closed and point_inside_polygon(pos, w.coords) for w in inners):
                continue
            mp = self.use_multipolygon(relation)
            if predicate(mp):
                result.append(mp)

        result.sort(key=lambda o: o._seq)
        return result

    # ------------------------------------------------------------------
    # Finalization

    def finalize_edit(self) -> List[Operation]:
        """Finalize the working set into an ordered list of operations.

        Operations come in dependency order: node additions, node changes,
        way changes, way additions, relation additions and changes, then
        relation, way and node deletions. A second call returns the same list.

        Returns:
            Operations to apply atomically, empty if nothing changed
        """
        if self._operations is not None:
            return list(self._operations)

        for obj in self._objects:
            if not obj.is_deleted:
                obj.update_modified_flag()

        self._drop_degenerate_ways()

        nodes = self.nodes
        ways = self.ways
        multipolygons = self.multipolygons

        ops: List[Operation] = []
        orphans: List[EdNode] = []

        for mp in multipolygons:
            if not mp.ways and not mp.has_original:
                mp._set_deleted()
        multipolygons = self.multipolygons

        # Nodes
        for node in nodes:
            if not node.has_original:
                if not node.has_editor_referrers and not node.is_tagged:
                    node._set_deleted()
                    continue
                ops.append(AddNode(node.final_node()))
            elif self._is_orphan(node):
                orphans.append(node)

        for node in nodes:
            if not node.has_original or node in orphans:
                continue
            modified = node.is_modified
            orig = node.final_node()
            if not modified:
                continue
            if node.coor != orig.coor:
                ops.append(MoveNode(orig, node.coor))
            if node.tags != orig.tags:
                ops.append(ChangeTags(orig, node.tags))

        # Ways
        new_ways = []
        for way in ways:
            if not way.has_original:
                new_ways.append(way)
                continue
            modified = way.is_modified
            orig = way.final_way()
            if not modified:
                continue
            final_nodes = way.final_nodes()
            if len(final_nodes) != len(orig.nodes) or any(
                    a is not b for a, b in zip(final_nodes, orig.nodes)):
                ops.append(ChangeWayNodes(orig, final_nodes))
            if way.tags != orig.tags:
                ops.append(ChangeTags(orig, way.tags))
        for way in new_ways:
            ops.append(AddWay(way.final_way()))

        # Relations
        for mp in multipolygons:
            modified = mp.is_modified
            if not mp.has_original:
                ops.append(AddRelation(mp.final_relation()))
                continue
            members = mp.final_members()
            orig = mp.final_relation()
            if not modified:
                continue
            if tuple(orig.members) != members:
                ops.append(ChangeRelationMembers(orig, members))
            if mp.tags != orig.tags:
                ops.append(ChangeTags(orig, mp.tags))

        # Deletions
        for obj in self._objects:
            if obj.is_deleted and obj.has_original and isinstance(obj, EdMultipolygon):
                ops.append(DeleteRelation(obj.original))
        for obj in self._objects:
            if obj.is_deleted and obj.has_original and isinstance(obj, EdWay):
                ops.append(DeleteWay(obj.original))
        for node in orphans:
            node._set_deleted()
            ops.append(DeleteNode(node.original))

        self._operations = ops
        logger.debug("Finalized editor: %d objects, %d operations", len(self._objects), len(ops))
        return list(ops)

    def _is_orphan(self, node: EdNode) -> bool:
        if node.has_editor_referrers or node.is_tagged:
            return False
        if node.has_external_referrers:
            return False
        referrers = self.data_source.referrers(node.original)
        # Relations keep plain node members verbatim, even when edited.
        if any(isinstance(r, Relation) for r in referrers):
            return False
        # A standalone node that never belonged to a way stays.
        return len(referrers) > 0

    def _drop_degenerate_ways(self) -> None:
        for way in self.ways:
            if way.node_count >= 2:
                continue
            logger.debug("Dropping degenerate way %s with %d nodes", way.unique_id, way.node_count)
            way.delete()


__all__ = ['WayEditor', 'Predicate']
