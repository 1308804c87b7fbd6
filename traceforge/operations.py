"""Typed change operations emitted by a finalized editing transaction.

An operation list is applied by the host as one atomic, undoable batch.
Operations refer to host primitives (see :mod:`traceforge.dataset`); primitives
created by the transaction carry no id until their ``Add*`` operation has been
applied.
"""

from __future__ import annotations

from dataclasses import dataclass
from typing import TYPE_CHECKING, ClassVar, Dict, Tuple, Union

from .core.geometry_utils import LatLon
from .core.types import OperationType

if TYPE_CHECKING:
    from .dataset import Member, Node, Relation, Way


@dataclass(frozen=True)
class Operation:
    """Base class of all change operations."""
    kind: ClassVar[OperationType]

    @property
    def primitive(self):
        """The host primitive this operation creates or changes."""
        raise NotImplementedError


@dataclass(frozen=True)
class AddNode(Operation):
    node: "Node"
    kind: ClassVar[OperationType] = OperationType.ADD_NODE

    @property
    def primitive(self):
        return self.node


@dataclass(frozen=True)
class MoveNode(Operation):
    node: "Node"
    coor: LatLon
    kind: ClassVar[OperationType] = OperationType.MOVE_NODE

    @property
    def primitive(self):
        return self.node


@dataclass(frozen=True)
class ChangeTags(Operation):
    target: Union["Node", "Way", "Relation"]
    tags: Dict[str, str]
    kind: ClassVar[OperationType] = OperationType.CHANGE_TAGS

    @property
    def primitive(self):
        return self.target


@dataclass(frozen=True)
class ChangeWayNodes(Operation):
    way: "Way"
    nodes: Tuple["Node", ...]
    kind: ClassVar[OperationType] = OperationType.CHANGE_WAY_NODES

    @property
    def primitive(self):
        return self.way


@dataclass(frozen=True)
class AddWay(Operation):
    way: "Way"
    kind: ClassVar[OperationType] = OperationType.ADD_WAY

    @property
    def primitive(self):
        return self.way


@dataclass(frozen=True)
class DeleteWay(Operation):
    way: "Way"
    kind: ClassVar[OperationType] = OperationType.DELETE_WAY

    @property
    def primitive(self):
        return self.way


@dataclass(frozen=True)
class DeleteNode(Operation):
    node: "Node"
    kind: ClassVar[OperationType] = OperationType.DELETE_NODE

    @property
    def primitive(self):
        return self.node


@dataclass(frozen=True)
class AddRelation(Operation):
    relation: "Relation"
    kind: ClassVar[OperationType] = OperationType.ADD_RELATION

    @property
    def primitive(self):
        return self.relation


@dataclass(frozen=True)
class ChangeRelationMembers(Operation):
    relation: "Relation"
    members: Tuple["Member", ...]
    kind: ClassVar[OperationType] = OperationType.CHANGE_RELATION_MEMBERS

    @property
    def primitive(self):
        return self.relation


@dataclass(frozen=True)
class DeleteRelation(Operation):
    relation: "Relation"
    kind: ClassVar[OperationType] = OperationType.DELETE_RELATION

    @property
    def primitive(self):
        return self.relation


def count_by_kind(operations) -> Dict[OperationType, int]:
    """Histogram of operation kinds, handy for logging and tests."""
    counts: Dict[OperationType, int] = {}
    for op in operations:
        counts[op.kind] = counts.get(op.kind, 0) + 1
    return counts


__all__ = [
    'Operation',
    'AddNode',
    'MoveNode',
    'ChangeTags',
    'ChangeWayNodes',
    'AddWay',
    'DeleteWay',
    'DeleteNode',
    'AddRelation',
    'ChangeRelationMembers',
    'DeleteRelation',
    'count_by_kind',
]
