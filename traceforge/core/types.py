"""Type definitions for traceforge operations.

This module defines the enums shared by the editing layer, the operation
records and the trace pipeline.
"""

from enum import Enum


class ObjectState(Enum):
    """Lifecycle state of a shadow object inside one editing transaction.

    Attributes:
        CLEAN: Freshly created or pulled in, no structural change yet
        MODIFIED: Content differs (or may differ) from the original
        DELETED: Removed from the working set before finalization
        FINALIZED: Resolved into a concrete primitive, no further edits

    Examples:
        >>> from traceforge.core.types import ObjectState
        >>> node.state is ObjectState.CLEAN
        True
    """
    CLEAN = 'clean'
    MODIFIED = 'modified'
    DELETED = 'deleted'
    FINALIZED = 'finalized'


class MemberRole(Enum):
    """Role of a way inside a multipolygon relation.

    Attributes:
        OUTER: Outer boundary ring
        INNER: Hole ring
    """
    OUTER = 'outer'
    INNER = 'inner'


class OperationType(Enum):
    """Kind of an emitted change operation.

    Attributes:
        ADD_NODE: Create a new node
        MOVE_NODE: Change coordinates of an existing node
        CHANGE_TAGS: Replace the tag map of an existing primitive
        CHANGE_WAY_NODES: Replace the node list of an existing way
        ADD_WAY: Create a new way
        DELETE_WAY: Delete an existing way
        DELETE_NODE: Delete an existing node
        ADD_RELATION: Create a new relation
        CHANGE_RELATION_MEMBERS: Replace the member list of an existing relation
        DELETE_RELATION: Delete an existing relation
    """
    ADD_NODE = 'add_node'
    MOVE_NODE = 'move_node'
    CHANGE_TAGS = 'change_tags'
    CHANGE_WAY_NODES = 'change_way_nodes'
    ADD_WAY = 'add_way'
    DELETE_WAY = 'delete_way'
    DELETE_NODE = 'delete_node'
    ADD_RELATION = 'add_relation'
    CHANGE_RELATION_MEMBERS = 'change_relation_members'
    DELETE_RELATION = 'delete_relation'


class TraceStatus(Enum):
    """Outcome of a trace request.

    Attributes:
        CHANGED: Operations were produced
        UNCHANGED: Nothing to do, the operation list is empty
        AMBIGUOUS: More than one existing feature could be retraced
        REJECTED: The request is not supported (e.g. multipolygon retrace)
        CANCELLED: Cancelled before the editing transaction started

    Examples:
        >>> from traceforge import trace_polygon, TraceStatus
        >>> result = trace_polygon(dataset, record, position)
        >>> if result.status is TraceStatus.AMBIGUOUS:
        ...     print(result.messages)
    """
    CHANGED = 'changed'
    UNCHANGED = 'unchanged'
    AMBIGUOUS = 'ambiguous'
    REJECTED = 'rejected'
    CANCELLED = 'cancelled'


__all__ = [
    'ObjectState',
    'MemberRole',
    'OperationType',
    'TraceStatus',
]
