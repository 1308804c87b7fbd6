"""Traceforge - conflation of traced polygons into an existing map dataset.

This library takes polygons traced from an external source and merges them
into existing map data: nodes are reused, touching nodes are connected,
overlapping neighbours are corrected and duplicate ways are merged. All edits
happen on a copy-on-write working set and are emitted as an ordered list of
change operations.
"""

import logging

# Host dataset
from .dataset import Node, Way, Relation, Member, DataSource, DataSet

# Change operations
from .operations import (
    Operation,
    AddNode,
    MoveNode,
    ChangeTags,
    ChangeWayNodes,
    AddWay,
    DeleteWay,
    DeleteNode,
    AddRelation,
    ChangeRelationMembers,
    DeleteRelation,
    count_by_kind,
)

# Editing transaction
from .editing import EdObject, EdNode, EdWay, EdMultipolygon, WayEditor

# Predicates
from .predicates import (
    TagFilter,
    AnyOf,
    AllOf,
    BUILDING_FILTER,
    LANDUSE_FILTER,
    MULTIPOLYGON_FILTER,
    AreaPredicate,
    MultipolygonBoundaryWayPredicate,
    AreaBoundaryWayNodePredicate,
    ExcludeEdNodesPredicate,
    AndPredicate,
    accept_all,
)

# Conflation algorithms
from .conflate import (
    reuse_existing_nodes,
    reuse_near_nodes,
    merge_nodes,
    connect_existing_touching_nodes,
    connect_touching_nodes,
    connect_node_to_nearby_ways,
    OverlapResult,
    ways_overlap,
    correct_overlapping,
    fix_overlapped_ways,
    remove_fully_covered_ways,
    remove_spare_nodes,
    is_merge_candidate,
    merge_duplicate_ways,
    clip_areas,
    clip_boundary_way,
)

# Tracing
from .tags import copy_forward_tags, merge_tags
from .record import TraceRecord, normalize_ring
from .pipeline import TraceSettings, TraceResult, trace_polygon

# Core types, exceptions and configuration
from .core import (
    ObjectState,
    MemberRole,
    OperationType,
    TraceStatus,
    TraceforgeError,
    InvariantError,
    ForeignObjectError,
    IllegalStateError,
    ClosedWayError,
    MalformedPolygonError,
    ConfigurationError,
    OperationError,
    ConflationConfig,
    GeomDeviation,
    BBox,
    LatLon,
)

logging.getLogger(__name__).addHandler(logging.NullHandler())

__all__ = [

    # Host dataset
    'Node',
    'Way',
    'Relation',
    'Member',
    'DataSource',
    'DataSet',

    # Operations
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

    # Editing
    'EdObject',
    'EdNode',
    'EdWay',
    'EdMultipolygon',
    'WayEditor',

    # Predicates
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

    # Conflation
    'reuse_existing_nodes',
    'reuse_near_nodes',
    'merge_nodes',
    'connect_existing_touching_nodes',
    'connect_touching_nodes',
    'connect_node_to_nearby_ways',
    'OverlapResult',
    'ways_overlap',
    'correct_overlapping',
    'fix_overlapped_ways',
    'remove_fully_covered_ways',
    'remove_spare_nodes',
    'is_merge_candidate',
    'merge_duplicate_ways',
    'clip_areas',
    'clip_boundary_way',

    # Tracing
    'copy_forward_tags',
    'merge_tags',
    'TraceRecord',
    'normalize_ring',
    'TraceSettings',
    'TraceResult',
    'trace_polygon',

    # Core
    'ObjectState',
    'MemberRole',
    'OperationType',
    'TraceStatus',
    'TraceforgeError',
    'InvariantError',
    'ForeignObjectError',
    'IllegalStateError',
    'ClosedWayError',
    'MalformedPolygonError',
    'ConfigurationError',
    'OperationError',
    'ConflationConfig',
    'GeomDeviation',
    'BBox',
    'LatLon',
]
