"""Immutable predicate objects for selecting tags, ways and nodes.

Predicates are plain frozen dataclasses constructed explicitly by the caller
and passed into the conflation functions. Every predicate is callable with the
object to test. Tag filters accept anything with a ``get(key)`` method, so they
work on shadow objects and host primitives alike; way and node predicates take
shadow objects (``EdWay``, ``EdMultipolygon``, ``EdNode``).
"""

from __future__ import annotations

from dataclasses import dataclass
from typing import Callable, FrozenSet, Optional, Tuple

from .dataset import Relation, Way
from .editing.objects import EdMultipolygon, EdNode, EdWay


@dataclass(frozen=True)
class TagFilter:
    """Match a single tag key.

    Attributes:
        key: Tag key to look at
        values: Accepted values, None accepts any value
        exclude: Values that never match

    Examples:
        >>> BUILDING_FILTER.matches({'building': 'yes'})
        True
        >>> BUILDING_FILTER.matches({'building': 'no'})
        False
    """
    key: str
    values: Optional[FrozenSet[str]] = None
    exclude: FrozenSet[str] = frozenset()

    @classmethod
    def any_value(cls, key: str, exclude: Tuple[str, ...] = ()) -> "TagFilter":
        return cls(key, None, frozenset(exclude))

    @classmethod
    def one_of(cls, key: str, *values: str) -> "TagFilter":
        return cls(key, frozenset(values))

    def matches(self, obj) -> bool:
        value = obj.get(self.key)
        if value is None or value in self.exclude:
            return False
        return self.values is None or value in self.values

    __call__ = matches


@dataclass(frozen=True)
class AnyOf:
    """Match if any of the filters matches."""
    filters: Tuple

    def matches(self, obj) -> bool:
        return any(f.matches(obj) for f in self.filters)

    __call__ = matches


@dataclass(frozen=True)
class AllOf:
    """Match if all of the filters match."""
    filters: Tuple

    def matches(self, obj) -> bool:
        return all(f.matches(obj) for f in self.filters)

    __call__ = matches


BUILDING_FILTER = TagFilter.any_value('building', exclude=('no', 'entrance'))

LANDUSE_FILTER = AnyOf((
    TagFilter.any_value('landuse', exclude=('no', 'military')),
    TagFilter.one_of('natural', 'scrub', 'wood', 'grassland'),
    TagFilter.one_of('leisure', 'garden'),
))

MULTIPOLYGON_FILTER = TagFilter.one_of('type', 'multipolygon')


@dataclass(frozen=True)
class AreaPredicate:
    """Closed ways and multipolygons whose tags match ``filter``."""
    filter: object

    def evaluate(self, obj) -> bool:
        if isinstance(obj, EdWay):
            return obj.is_closed and obj.matches(self.filter)
        if isinstance(obj, EdMultipolygon):
            return obj.matches(self.filter)
        return False

    __call__ = evaluate


@dataclass(frozen=True)
class MultipolygonBoundaryWayPredicate:
    """Ways that are members of a multipolygon whose tags match ``filter``.

    Both multipolygons pulled into the editor and relations that stay outside
    of it are considered.
    """
    filter: object

    def evaluate(self, way: EdWay) -> bool:
        for mp in way.editor_referrers(EdMultipolygon):
            if mp.matches(self.filter):
                return True
        for relation in way.external_referrers(Relation):
            if MULTIPOLYGON_FILTER.matches(relation) and self.filter.matches(relation):
                return True
        return False

    __call__ = evaluate


@dataclass(frozen=True)
class AreaBoundaryWayNodePredicate:
    """Nodes on the boundary of an area whose tags match ``filter``.

    The area is a closed way matching ``filter`` or a way that is a member of
    a matching multipolygon.
    """
    filter: object

    def evaluate(self, node: EdNode) -> bool:
        boundary = MultipolygonBoundaryWayPredicate(self.filter)
        for way in node.editor_referrers(EdWay):
            if way.is_closed and way.matches(self.filter):
                return True
            if boundary(way):
                return True

        source = node.editor.data_source
        for way in node.external_referrers(Way):
            if way.is_closed and self.filter.matches(way):
                return True
            for relation in source.referrers(way):
                if (isinstance(relation, Relation)
                        and MULTIPOLYGON_FILTER.matches(relation)
                        and self.filter.matches(relation)):
                    return True
        return False

    __call__ = evaluate


@dataclass(frozen=True)
class ExcludeEdNodesPredicate:
    """Reject nodes that currently belong to ``obj`` (an EdWay or EdMultipolygon)."""
    obj: object

    def evaluate(self, node: EdNode) -> bool:
        if isinstance(self.obj, EdMultipolygon):
            return not any(w.contains_node(node) for w in self.obj.ways)
        return not self.obj.contains_node(node)

    __call__ = evaluate


@dataclass(frozen=True)
class AndPredicate:
    """Logical conjunction of predicates."""
    predicates: Tuple[Callable, ...]

    def evaluate(self, obj) -> bool:
        return all(p(obj) for p in self.predicates)

    __call__ = evaluate


def accept_all(obj) -> bool:
    return True


__all__ = [
    'TagFilter',
    'AnyOf',
    'AllOf',
    'BUILDING_FILTER',
    'LANDUSE_FILTER',
    'MULTIPOLYGON_FILTER',
    'AreaPredicate',
    'MultipolygonBoundaryWayPredicate',
    'AreaBoundaryWayNodePredicate',
    'ExcludeEdNodesPredicate',
    'AndPredicate',
    'accept_all',
]
