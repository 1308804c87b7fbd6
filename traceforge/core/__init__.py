"""Core types and utilities for traceforge.

This module provides type definitions, enums, exceptions, configuration and
the geometry primitives used throughout the library.
"""

from .types import (
    ObjectState,
    MemberRole,
    OperationType,
    TraceStatus,
)

from .errors import (
    TraceforgeError,
    InvariantError,
    ForeignObjectError,
    IllegalStateError,
    ClosedWayError,
    MalformedPolygonError,
    ConfigurationError,
    OperationError,
)

from .config import (
    DEFAULT_BASE_RESOLUTION,
    METERS_PER_DEGREE,
    ConflationConfig,
    GeomDeviation,
)

from .bbox import BBox
from .geometry_utils import LatLon

__all__ = [
    # Enums
    'ObjectState',
    'MemberRole',
    'OperationType',
    'TraceStatus',

    # Exceptions
    'TraceforgeError',
    'InvariantError',
    'ForeignObjectError',
    'IllegalStateError',
    'ClosedWayError',
    'MalformedPolygonError',
    'ConfigurationError',
    'OperationError',

    # Configuration
    'DEFAULT_BASE_RESOLUTION',
    'METERS_PER_DEGREE',
    'ConflationConfig',
    'GeomDeviation',

    # Values
    'BBox',
    'LatLon',
]
