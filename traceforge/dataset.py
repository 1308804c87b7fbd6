"""Host dataset: primitives, the data source protocol and an in-memory host.

The conflation core only talks to the host through :class:`DataSource`:
bounding-box searches, a usability check and referrer lookup. Edits flow back
as an ordered list of :mod:`traceforge.operations` records that the host
applies atomically. :class:`DataSet` is a complete in-memory host backed by
shapely ``STRtree`` indexes.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass, field
from typing import Callable, Dict, Iterable, List, NamedTuple, Optional, Protocol, Sequence, Set

from shapely.geometry import LineString, Point
from shapely.strtree import STRtree

from .core.bbox import BBox
from .core.errors import OperationError
from .core.geometry_utils import LatLon, snap
from .core.types import OperationType

logger = logging.getLogger(__name__)


class _TaggedMixin:
    """Tag helpers shared by all host primitives."""

    def get(self, key: str, default: Optional[str] = None) -> Optional[str]:
        return self.tags.get(key, default)

    def has_key(self, key: str) -> bool:
        return key in self.tags

    @property
    def is_tagged(self) -> bool:
        return bool(self.tags)

    @property
    def is_new(self) -> bool:
        return self.id is None or self.id < 0


@dataclass(eq=False)
class Node(_TaggedMixin):
    """A point primitive."""
    coor: LatLon
    tags: Dict[str, str] = field(default_factory=dict)
    id: Optional[int] = None
    deleted: bool = False
    incomplete: bool = False

    def __post_init__(self):
        self.coor = LatLon(*self.coor)

    def bbox(self) -> BBox:
        return BBox.around(self.coor, 0.0)


@dataclass(eq=False)
class Way(_TaggedMixin):
    """An ordered node list; closed when the first node is the last one."""
    nodes: List[Node] = field(default_factory=list)
    tags: Dict[str, str] = field(default_factory=dict)
    id: Optional[int] = None
    deleted: bool = False
    incomplete: bool = False

    @property
    def coords(self) -> List[LatLon]:
        return [n.coor for n in self.nodes]

    @property
    def is_closed(self) -> bool:
        return len(self.nodes) >= 4 and self.nodes[0] is self.nodes[-1]

    def bbox(self) -> BBox:
        return BBox.from_coords(self.coords)


class Member(NamedTuple):
    """A relation member: role string and the member primitive."""
    role: str
    primitive: object


@dataclass(eq=False)
class Relation(_TaggedMixin):
    """A relation with ordered, role-tagged members."""
    members: List[Member] = field(default_factory=list)
    tags: Dict[str, str] = field(default_factory=dict)
    id: Optional[int] = None
    deleted: bool = False
    incomplete: bool = False

    def member_ways(self, role: Optional[str] = None) -> List[Way]:
        return [m.primitive for m in self.members
                if isinstance(m.primitive, Way) and (role is None or m.role == role)]


class DataSource(Protocol):
    """Narrow interface the conflation core needs from its host."""

    def search_ways(self, bbox: BBox) -> Set[Way]:
        ...

    def search_nodes(self, bbox: BBox) -> Set[Node]:
        ...

    def search_relations(self, bbox: BBox) -> Set[Relation]:
        ...

    def is_usable(self, primitive) -> bool:
        ...

    def referrers(self, primitive) -> List:
        ...


class DataSet:
    """In-memory host dataset.

    Spatial searches use shapely ``STRtree`` indexes that are rebuilt lazily
    after every change. Deleted primitives stay in the dataset flagged as
    ``deleted`` so that undo can restore them.

    Example:
        ```python
        ds = DataSet()
        a, b, c = (ds.add_node(p) for p in [(0, 0), (0, 1), (1, 1)])
        way = ds.add_way([a, b, c, a], {'building': 'yes'})
        ds.search_ways(BBox(0, 0, 0.5, 0.5))  # {way}
        ```
    """

    def __init__(self, precision: int = 7):
        self.precision = precision
        self._nodes: Dict[Node, None] = {}
        self._ways: Dict[Way, None] = {}
        self._relations: Dict[Relation, None] = {}
        self._next_id = 1
        self._next_new_id = -1
        self._undo_stack: List[List[Callable[[], None]]] = []
        self._dirty = True
        self._node_tree: Optional[STRtree] = None
        self._node_items: List[Node] = []
        self._way_tree: Optional[STRtree] = None
        self._way_items: List[Way] = []
        self._referrers: Dict[object, List] = {}

    # ------------------------------------------------------------------
    # Building

    def add_node(self, coor: Sequence[float], tags: Optional[Dict[str, str]] = None) -> Node:
        node = Node(snap(coor, self.precision), dict(tags or {}), id=self._take_id())
        self._nodes[node] = None
        self._dirty = True
        return node

    def add_way(self, nodes: Iterable[Node], tags: Optional[Dict[str, str]] = None) -> Way:
        nodes = list(nodes)
        for node in nodes:
            if node not in self._nodes:
                raise OperationError("Way refers to a node outside of the dataset")
        way = Way(nodes, dict(tags or {}), id=self._take_id())
        self._ways[way] = None
        self._dirty = True
        return way

    def add_polygon(self, coords: Sequence[Sequence[float]],
                    tags: Optional[Dict[str, str]] = None) -> Way:
        """Add a closed way through new nodes at ``coords`` (closing vertex optional)."""
        coords = list(coords)
        if len(coords) > 1 and snap(coords[0], self.precision) == snap(coords[-1], self.precision):
            coords = coords[:-1]
        nodes = [self.add_node(c) for c in coords]
        return self.add_way(nodes + nodes[:1], tags)

    def add_relation(self, members: Iterable[Member],
                     tags: Optional[Dict[str, str]] = None) -> Relation:
        relation = Relation([Member(*m) for m in members], dict(tags or {}), id=self._take_id())
        self._relations[relation] = None
        self._dirty = True
        return relation

    def _take_id(self) -> int:
        value = self._next_id
        self._next_id += 1
        return value

    # ------------------------------------------------------------------
    # DataSource

    @property
    def nodes(self) -> List[Node]:
        return [n for n in self._nodes if not n.deleted]

    @property
    def ways(self) -> List[Way]:
        return [w for w in self._ways if not w.deleted]

    @property
    def relations(self) -> List[Relation]:
        return [r for r in self._relations if not r.deleted]

    def contains(self, primitive) -> bool:
        return primitive in self._nodes or primitive in self._ways or primitive in self._relations

    def is_usable(self, primitive) -> bool:
        return (self.contains(primitive)
                and not primitive.deleted
                and not primitive.incomplete)

    def referrers(self, primitive) -> List:
        """Ways and relations currently referring to ``primitive``."""
        self._ensure_index()
        return list(self._referrers.get(primitive, ()))

    def search_nodes(self, bbox: BBox) -> Set[Node]:
        self._ensure_index()
        if self._node_tree is None:
            return set()
        hits = self._node_tree.query(bbox.to_polygon(), predicate='intersects')
        return {self._node_items[i] for i in hits if self.is_usable(self._node_items[i])}

    def search_ways(self, bbox: BBox) -> Set[Way]:
        """Ways whose bounding box intersects ``bbox``."""
        self._ensure_index()
        if self._way_tree is None:
            return set()
        hits = self._way_tree.query(bbox.to_polygon())
        return {self._way_items[i] for i in hits if self.is_usable(self._way_items[i])}

    def search_relations(self, bbox: BBox) -> Set[Relation]:
        members = set(self.search_ways(bbox)) | set(self.search_nodes(bbox))
        result = set()
        for relation in self.relations:
            if not self.is_usable(relation):
                continue
            if any(m.primitive in members for m in relation.members):
                result.add(relation)
        return result

    def _ensure_index(self) -> None:
        if not self._dirty:
            return

        self._node_items = self.nodes
        self._node_tree = (STRtree([Point(n.coor.lon, n.coor.lat) for n in self._node_items])
                           if self._node_items else None)

        self._way_items = [w for w in self.ways if w.nodes]
        geoms = []
        for way in self._way_items:
            if len(way.nodes) == 1:
                geoms.append(Point(way.nodes[0].coor.lon, way.nodes[0].coor.lat))
            else:
                geoms.append(LineString([(c.lon, c.lat) for c in way.coords]))
        self._way_tree = STRtree(geoms) if geoms else None

        referrers: Dict[object, List] = {}
        for way in self.ways:
            for node in dict.fromkeys(way.nodes):
                referrers.setdefault(node, []).append(way)
        for relation in self.relations:
            for member in dict.fromkeys(m.primitive for m in relation.members):
                referrers.setdefault(member, []).append(relation)
        self._referrers = referrers
        self._dirty = False

    # ------------------------------------------------------------------
    # Applying operations

    def apply(self, operations: Sequence) -> None:
        """Apply an operation batch atomically.

        Either every operation is applied or, if one of them fails, the
        already applied ones are reverted and :class:`OperationError` is
        raised. A successful batch can be reverted with :meth:`undo`.

        Args:
            operations: Ordered operation list from ``WayEditor.finalize_edit``

        Raises:
            OperationError: If an operation is not applicable
        """
        undo: List[Callable[[], None]] = []
        try:
            for op in operations:
                undo.append(self._apply_one(op))
                self._dirty = True
        except OperationError:
            self._revert(undo)
            raise
        except (AttributeError, TypeError, KeyError) as e:
            self._revert(undo)
            raise OperationError(f"Cannot apply {op!r}: {e}") from e

        if undo:
            self._undo_stack.append(undo)
        logger.debug("Applied %d operations", len(undo))

    def undo(self) -> bool:
        """Revert the last applied batch. Returns False if there is none."""
        if not self._undo_stack:
            return False
        self._revert(self._undo_stack.pop())
        return True

    def _revert(self, undo: List[Callable[[], None]]) -> None:
        for step in reversed(undo):
            step()
        self._dirty = True

    def _apply_one(self, op) -> Callable[[], None]:
        handler = self._handlers.get(op.kind)
        if handler is None:
            raise OperationError(f"Unsupported operation {op.kind}")
        return handler(self, op)

    def _check_present(self, primitive) -> None:
        if not self.contains(primitive) or primitive.deleted:
            raise OperationError(f"{type(primitive).__name__} {primitive.id} is not in the dataset")

    def _live_referrers(self, primitive) -> List:
        refs = [w for w in self.ways if primitive in w.nodes]
        refs.extend(r for r in self.relations
                    if any(m.primitive is primitive for m in r.members))
        return refs

    def _add_node(self, op) -> Callable[[], None]:
        node = op.node
        if node.id is not None:
            raise OperationError("Node was already added")
        node.id = self._next_new_id
        self._next_new_id -= 1
        self._nodes[node] = None

        def undo():
            del self._nodes[node]
            node.id = None
        return undo

    def _move_node(self, op) -> Callable[[], None]:
        node = op.node
        self._check_present(node)
        old = node.coor
        node.coor = snap(op.coor, self.precision)

        def undo():
            node.coor = old
        return undo

    def _change_tags(self, op) -> Callable[[], None]:
        target = op.target
        self._check_present(target)
        old = target.tags
        target.tags = dict(op.tags)

        def undo():
            target.tags = old
        return undo

    def _change_way_nodes(self, op) -> Callable[[], None]:
        way = op.way
        self._check_present(way)
        for node in op.nodes:
            self._check_present(node)
        old = way.nodes
        way.nodes = list(op.nodes)

        def undo():
            way.nodes = old
        return undo

    def _add_way(self, op) -> Callable[[], None]:
        way = op.way
        if way.id is not None:
            raise OperationError("Way was already added")
        for node in way.nodes:
            self._check_present(node)
        way.id = self._next_new_id
        self._next_new_id -= 1
        self._ways[way] = None

        def undo():
            del self._ways[way]
            way.id = None
        return undo

    def _add_relation(self, op) -> Callable[[], None]:
        relation = op.relation
        if relation.id is not None:
            raise OperationError("Relation was already added")
        for member in relation.members:
            self._check_present(member.primitive)
        relation.id = self._next_new_id
        self._next_new_id -= 1
        self._relations[relation] = None

        def undo():
            del self._relations[relation]
            relation.id = None
        return undo

    def _change_relation_members(self, op) -> Callable[[], None]:
        relation = op.relation
        self._check_present(relation)
        for member in op.members:
            self._check_present(member.primitive)
        old = relation.members
        relation.members = list(op.members)

        def undo():
            relation.members = old
        return undo

    def _delete(self, op) -> Callable[[], None]:
        primitive = op.primitive
        self._check_present(primitive)
        refs = self._live_referrers(primitive)
        if refs:
            raise OperationError(
                f"{type(primitive).__name__} {primitive.id} is still referenced by {len(refs)} objects"
            )
        primitive.deleted = True

        def undo():
            primitive.deleted = False
        return undo

    _handlers = {
        OperationType.ADD_NODE: _add_node,
        OperationType.MOVE_NODE: _move_node,
        OperationType.CHANGE_TAGS: _change_tags,
        OperationType.CHANGE_WAY_NODES: _change_way_nodes,
        OperationType.ADD_WAY: _add_way,
        OperationType.DELETE_WAY: _delete,
        OperationType.DELETE_NODE: _delete,
        OperationType.ADD_RELATION: _add_relation,
        OperationType.CHANGE_RELATION_MEMBERS: _change_relation_members,
        OperationType.DELETE_RELATION: _delete,
    }


__all__ = [
    'Node',
    'Way',
    'Member',
    'Relation',
    'DataSource',
    'DataSet',
]
