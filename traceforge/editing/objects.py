"""Shadow objects of the editing working set.

An :class:`EdObject` is a transaction-local, copy-on-write view of a host
primitive, or a brand-new primitive that does not exist in the host yet.
Shadow objects are created only through a :class:`~traceforge.editing.editor.WayEditor`,
which guarantees one shadow per original primitive.

Nodes keep weak, non-owning back-references to the ways and multipolygons that
contain them. Ownership always flows from ways to nodes and from
multipolygons to ways.
"""

from __future__ import annotations

import logging
import weakref
from typing import Dict, Iterable, List, Optional, Sequence, Tuple, Type

from shapely.geometry import Polygon

from ..core.bbox import BBox
from ..core.errors import ClosedWayError, IllegalStateError, InvariantError
from ..core.geometry_utils import LatLon, ring_polygon, snap
from ..core.types import MemberRole, ObjectState
from ..dataset import Member, Node, Relation, Way

logger = logging.getLogger(__name__)


class EdObject:
    """Common state of all shadow objects.

    The object is either new (``original is None``) or a shadow of an
    original host primitive. Its lifecycle is tracked by :class:`ObjectState`;
    every mutating method checks that the object is neither deleted nor
    finalized.
    """

    def __init__(self, editor, original=None, tags: Optional[Dict[str, str]] = None):
        self._editor = editor
        self._original = original
        self._seq = editor._next_seq()
        self._state = ObjectState.CLEAN
        self._final_modified = False
        self._refs: "weakref.WeakSet[EdObject]" = weakref.WeakSet()
        if original is not None:
            self._tags = dict(original.tags)
        else:
            self._tags = dict(tags or {})

    def __repr__(self):
        return f"<{type(self).__name__} {self.unique_id} {self._state.value}>"

    @property
    def editor(self):
        return self._editor

    @property
    def original(self):
        return self._original

    @property
    def has_original(self) -> bool:
        return self._original is not None

    @property
    def unique_id(self) -> int:
        """Original id, or a negative transaction-local id for new objects."""
        if self._original is not None and self._original.id is not None:
            return self._original.id
        return -self._seq

    @property
    def state(self) -> ObjectState:
        return self._state

    @property
    def is_modified(self) -> bool:
        if self._state is ObjectState.FINALIZED:
            return self._final_modified
        return self._state is ObjectState.MODIFIED

    @property
    def is_deleted(self) -> bool:
        return self._state is ObjectState.DELETED

    @property
    def is_finalized(self) -> bool:
        return self._state is ObjectState.FINALIZED

    # ------------------------------------------------------------------
    # State machine

    def _check_not_finalized(self) -> None:
        if self._state is ObjectState.FINALIZED:
            raise IllegalStateError(f"{self!r} is finalized")

    def _check_not_deleted(self) -> None:
        if self._state is ObjectState.DELETED:
            raise IllegalStateError(f"{self!r} is deleted")

    def _check_editable(self) -> None:
        self._check_not_finalized()
        self._check_not_deleted()

    def _set_modified(self) -> None:
        self._check_editable()
        self._state = ObjectState.MODIFIED

    def _set_deleted(self) -> None:
        self._check_editable()
        self._state = ObjectState.DELETED

    def _set_finalized(self) -> None:
        self._check_editable()
        self._final_modified = self._state is ObjectState.MODIFIED
        self._state = ObjectState.FINALIZED

    def update_modified_flag(self) -> None:
        """Reset the modified flag if the content equals the original again."""
        self._check_editable()
        if self._original is None or self._state is not ObjectState.MODIFIED:
            return
        if self._same_as_original():
            self._state = ObjectState.CLEAN

    def _same_as_original(self) -> bool:
        raise NotImplementedError

    # ------------------------------------------------------------------
    # Tags

    @property
    def tags(self) -> Dict[str, str]:
        self._check_not_deleted()
        return dict(self._tags)

    def set_tags(self, tags: Dict[str, str]) -> None:
        self._check_editable()
        self._tags = dict(tags)
        self._set_modified()

    def get(self, key: str, default: Optional[str] = None) -> Optional[str]:
        self._check_not_deleted()
        return self._tags.get(key, default)

    def has_key(self, key: str) -> bool:
        self._check_not_deleted()
        return key in self._tags

    def matches(self, tag_filter) -> bool:
        self._check_not_deleted()
        return tag_filter.matches(self)

    @property
    def is_tagged(self) -> bool:
        self._check_not_deleted()
        return bool(self._tags)

    def _has_original_tags(self) -> bool:
        return self._tags == self._original.tags

    # ------------------------------------------------------------------
    # Referrers

    def _add_ref(self, ref: "EdObject") -> None:
        self._refs.add(ref)

    def _remove_ref(self, ref: "EdObject") -> None:
        self._refs.discard(ref)

    def editor_referrers(self, cls: Type["EdObject"] = None) -> List["EdObject"]:
        """Shadow objects of this editor that refer to this object."""
        refs = [r for r in self._refs if cls is None or isinstance(r, cls)]
        refs.sort(key=lambda r: r._seq)
        return refs

    @property
    def has_editor_referrers(self) -> bool:
        return len(self._refs) > 0

    def is_referred_by(self, other: "EdObject") -> bool:
        return other in self._refs

    def external_referrers(self, cls: type = None) -> List:
        """Host primitives referring to the original that are not shadowed by this editor."""
        if self._original is None:
            return []
        return [p for p in self._editor.data_source.referrers(self._original)
                if (cls is None or isinstance(p, cls)) and not self._editor.is_edited(p)]

    @property
    def has_external_referrers(self) -> bool:
        return len(self.external_referrers()) > 0

    @property
    def has_referrers(self) -> bool:
        return self.has_editor_referrers or self.has_external_referrers


class EdNode(EdObject):
    """Shadow of a point."""

    def __init__(self, editor, coor: Sequence[float] = None, original: Optional[Node] = None,
                 tags: Optional[Dict[str, str]] = None):
        super().__init__(editor, original, tags)
        if original is not None:
            self._coor = original.coor
        else:
            self._coor = snap(coor, editor.config.precision)
        self._final: Optional[Node] = None

    @property
    def coor(self) -> LatLon:
        return self._coor

    def set_coor(self, coor: Sequence[float]) -> None:
        self._check_editable()
        coor = snap(coor, self._editor.config.precision)
        if coor == self._coor:
            return
        self._coor = coor
        self._set_modified()

    def bbox(self, dist: float = 0.0) -> BBox:
        return BBox.around(self._coor, dist)

    def final_node(self) -> Node:
        """Finalize and return the host node this shadow resolves to.

        Original nodes resolve to themselves (the emitted operations carry
        the new content); new nodes resolve to a fresh host node created once.
        """
        self._check_not_deleted()
        if not self.is_finalized:
            self._set_finalized()
            if self._original is None:
                self._final = Node(self._coor, dict(self._tags))
            else:
                self._final = self._original
        return self._final

    def _same_as_original(self) -> bool:
        return self._coor == self._original.coor and self._has_original_tags()

    def all_area_way_referrers(self, predicate) -> List["EdWay"]:
        """All ways containing this node that satisfy ``predicate``.

        Matching host ways outside the working set are pulled into the editor.
        """
        result = [w for w in self.editor_referrers(EdWay) if predicate(w)]
        for way in self.external_referrers(Way):
            edway = self._editor.use_way(way)
            if predicate(edway) and edway not in result:
                result.append(edway)
        return result


class EdWay(EdObject):
    """Shadow of a way: an ordered list of EdNodes plus tags."""

    def __init__(self, editor, nodes: Optional[Iterable[EdNode]] = None,
                 original: Optional[Way] = None, tags: Optional[Dict[str, str]] = None):
        super().__init__(editor, original, tags)
        if original is not None:
            nodes = [editor.use_node(n) for n in original.nodes]
        nodes = list(nodes or [])
        editor.check_owned(nodes)
        self._nodes: List[EdNode] = nodes
        for node in self._nodes:
            node._add_ref(self)
        self._final: Optional[Way] = None

    @property
    def nodes(self) -> List[EdNode]:
        return list(self._nodes)

    def node(self, index: int) -> EdNode:
        return self._nodes[index]

    @property
    def node_count(self) -> int:
        return len(self._nodes)

    @property
    def coords(self) -> List[LatLon]:
        return [n.coor for n in self._nodes]

    @property
    def is_closed(self) -> bool:
        return len(self._nodes) >= 4 and self._nodes[0] is self._nodes[-1]

    def contains_node(self, node: EdNode) -> bool:
        return node.is_referred_by(self)

    def _replace_node_list(self, nodes: List[EdNode]) -> None:
        old = self._nodes
        self._nodes = nodes
        keep = set(nodes)
        for node in old:
            if node not in keep:
                node._remove_ref(self)
        for node in nodes:
            node._add_ref(self)
        self._set_modified()

    def set_nodes(self, nodes: Iterable[EdNode]) -> None:
        self._check_editable()
        nodes = list(nodes)
        self._editor.check_owned(nodes)
        self._replace_node_list(nodes)

    def add_node(self, index: int, node: EdNode) -> None:
        """Insert ``node`` before position ``index``."""
        self._check_editable()
        self._editor.check_owned([node])
        if not 0 <= index <= len(self._nodes):
            raise IndexError(f"Node index {index} out of range")
        nodes = list(self._nodes)
        nodes.insert(index, node)
        self._replace_node_list(nodes)

    def remove_node(self, node: EdNode) -> bool:
        """Remove every occurrence of ``node``.

        A closed way stays closed: if the removed node was the first/last
        vertex, the new first vertex is appended again.

        Returns:
            True if the node was part of the way

        Raises:
            ClosedWayError: If a closed way would drop below three distinct vertices
        """
        self._check_editable()
        if not self.contains_node(node):
            return False

        was_closed = self.is_closed
        nodes = [n for n in self._nodes if n is not node]
        if was_closed:
            if nodes and nodes[0] is not nodes[-1]:
                nodes.append(nodes[0])
            if len(nodes) < 4:
                raise ClosedWayError(f"Removing {node!r} would open {self!r}")
        self._replace_node_list(nodes)
        return True

    def remove_all_nodes(self) -> None:
        self._check_editable()
        if not self._nodes:
            return
        self._replace_node_list([])

    def delete(self) -> None:
        """Delete the way and release its nodes.

        Raises:
            InvariantError: If a multipolygon still refers to the way
        """
        self._check_editable()
        if self.has_editor_referrers or self.external_referrers(Relation):
            raise InvariantError(f"{self!r} is still a relation member")
        for node in self._nodes:
            node._remove_ref(self)
        self._nodes = []
        self._set_deleted()
        logger.debug("Deleted way %s", self.unique_id)

    def bbox(self, dist: float = 0.0) -> BBox:
        self._check_not_deleted()
        return BBox.from_coords(self.coords).padded(dist)

    def polygon(self) -> Polygon:
        """Shapely polygon of a closed way, in (x=lon, y=lat) order."""
        return ring_polygon(self.coords)

    def final_way(self) -> Way:
        self._check_not_deleted()
        if not self.is_finalized:
            if self._original is None:
                nodes = [n.final_node() for n in self._nodes]
                self._final = Way(nodes, dict(self._tags))
            else:
                self._final = self._original
            self._set_finalized()
        return self._final

    def final_nodes(self) -> Tuple[Node, ...]:
        return tuple(n.final_node() for n in self._nodes)

    def _same_as_original(self) -> bool:
        orig = self._original.nodes
        if len(orig) != len(self._nodes):
            return False
        for en, n in zip(self._nodes, orig):
            if en.original is not n:
                return False
        return self._has_original_tags()

    def is_member_of_any_multipolygon(self) -> bool:
        if self.editor_referrers(EdMultipolygon):
            return True
        return any(r.get('type') == 'multipolygon' for r in self.external_referrers(Relation))

    def has_identical_node_geometry(self, nodes: Sequence[EdNode],
                                    allow_inverted: bool = False) -> bool:
        """Check whether ``nodes`` describe the same ring as this way.

        Open ways must match node by node. Closed rings match under any
        rotation and, with ``allow_inverted``, under reversed orientation.
        Nodes are compared by identity.
        """
        self._check_editable()
        nodes = list(nodes)
        if len(nodes) != len(self._nodes):
            return False
        if not self.is_closed:
            return all(a is b for a, b in zip(self._nodes, nodes))

        n = len(nodes) - 1
        for i in range(n):
            for j in range(n):
                if _identical_from_offsets(self._nodes, nodes, n, i, j, False):
                    return True
                if allow_inverted and _identical_from_offsets(self._nodes, nodes, n, i, j, True):
                    return True
        return False


def _identical_from_offsets(l1, l2, n, i, j, inverted) -> bool:
    for _ in range(n):
        if l1[i] is not l2[j]:
            return False
        i = (i + 1) % n
        j = (j - 1 + n) % n if inverted else (j + 1) % n
    return True


class EdMultipolygon(EdObject):
    """Shadow of a multipolygon relation.

    Way members with role ``outer`` or ``inner`` are shadowed as EdWays. Way
    members with any other role are shadowed too and keep their role string;
    non-way members of an original relation are kept verbatim.
    """

    def __init__(self, editor, original: Optional[Relation] = None,
                 tags: Optional[Dict[str, str]] = None):
        super().__init__(editor, original, tags)
        if original is None and 'type' not in self._tags:
            self._tags['type'] = 'multipolygon'
        # (role, EdWay) for outer/inner ways, (None, Member) for any other member;
        # that Member holds an EdWay when it refers to a usable way
        self._members: List[Tuple[Optional[MemberRole], object]] = []
        if original is not None:
            for member in original.members:
                role = _way_role(member)
                if role is not None:
                    way = editor.use_way(member.primitive)
                    self._members.append((role, way))
                    way._add_ref(self)
                elif isinstance(member.primitive, Way) and editor.data_source.is_usable(member.primitive):
                    way = editor.use_way(member.primitive)
                    self._members.append((None, Member(member.role, way)))
                    way._add_ref(self)
                else:
                    self._members.append((None, member))
        self._final: Optional[Relation] = None

    def _way_members(self) -> List[Tuple[MemberRole, EdWay]]:
        return [(r, w) for r, w in self._members if r is not None]

    @property
    def ways(self) -> List[EdWay]:
        return [w for _, w in self._way_members()]

    @property
    def outer_ways(self) -> List[EdWay]:
        return [w for r, w in self._way_members() if r is MemberRole.OUTER]

    @property
    def inner_ways(self) -> List[EdWay]:
        return [w for r, w in self._way_members() if r is MemberRole.INNER]

    @property
    def outer_way(self) -> EdWay:
        """The single outer way.

        Raises:
            InvariantError: If there is not exactly one outer way
        """
        outer = self.outer_ways
        if len(outer) != 1:
            raise InvariantError(f"{self!r} has {len(outer)} outer ways")
        return outer[0]

    def contains_way(self, way: EdWay) -> bool:
        return way.is_referred_by(self)

    def _add_way(self, role: MemberRole, way: EdWay) -> None:
        self._check_editable()
        self._editor.check_owned([way])
        self._members.append((role, way))
        way._add_ref(self)
        self._set_modified()

    def add_outer_way(self, way: EdWay) -> None:
        self._add_way(MemberRole.OUTER, way)

    def add_inner_way(self, way: EdWay) -> None:
        self._add_way(MemberRole.INNER, way)

    def remove_way(self, way: EdWay) -> bool:
        self._check_editable()
        members = [(r, m) for r, m in self._members if _member_way(r, m) is not way]
        if len(members) == len(self._members):
            return False
        self._members = members
        way._remove_ref(self)
        self._set_modified()
        return True

    def replace_way(self, old: EdWay, new: EdWay) -> bool:
        """Put ``new`` in place of every membership of ``old``."""
        self._check_editable()
        self._editor.check_owned([old, new])
        if not self.contains_way(old):
            return False
        self._members = [(r, _replace_member(r, m, old, new)) for r, m in self._members]
        old._remove_ref(self)
        new._add_ref(self)
        self._set_modified()
        return True

    def delete(self) -> None:
        self._check_editable()
        if self.external_referrers():
            raise InvariantError(f"{self!r} is still referenced")
        for role, item in self._members:
            way = _member_way(role, item)
            if way is not None:
                way._remove_ref(self)
        self._members = []
        self._set_deleted()

    def bbox(self, dist: float = 0.0) -> BBox:
        boxes = [w.bbox(dist) for w in self.ways]
        if not boxes:
            raise InvariantError(f"{self!r} has no ways")
        result = boxes[0]
        for b in boxes[1:]:
            result = result.union(b)
        return result

    def final_members(self) -> Tuple[Member, ...]:
        members = []
        for role, item in self._members:
            if role is None and isinstance(item.primitive, EdWay):
                members.append(Member(item.role, item.primitive.final_way()))
            elif role is None:
                members.append(item)
            else:
                members.append(Member(role.value, item.final_way()))
        return tuple(members)

    def final_relation(self) -> Relation:
        self._check_not_deleted()
        if not self.is_finalized:
            if self._original is None:
                self._final = Relation(list(self.final_members()), dict(self._tags))
            else:
                self._final = self._original
            self._set_finalized()
        return self._final

    def _same_as_original(self) -> bool:
        orig = self._original.members
        if len(orig) != len(self._members):
            return False
        for (role, item), member in zip(self._members, orig):
            if role is None and isinstance(item.primitive, EdWay):
                if item.primitive.original is not member.primitive or item.role != member.role:
                    return False
            elif role is None:
                if item is not member:
                    return False
            elif item.original is not member.primitive or role.value != member.role:
                return False
        return self._has_original_tags()


def _member_way(role: Optional[MemberRole], item) -> Optional[EdWay]:
    if role is not None:
        return item
    if isinstance(item.primitive, EdWay):
        return item.primitive
    return None


def _replace_member(role: Optional[MemberRole], item, old: EdWay, new: EdWay):
    if _member_way(role, item) is not old:
        return item
    return new if role is not None else Member(item.role, new)


def _way_role(member: Member) -> Optional[MemberRole]:
    if not isinstance(member.primitive, Way):
        return None
    for role in MemberRole:
        if member.role == role.value:
            return role
    return None


__all__ = [
    'EdObject',
    'EdNode',
    'EdWay',
    'EdMultipolygon',
]
