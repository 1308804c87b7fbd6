"""Exception hierarchy for traceforge.

Invariant errors signal a bug in the conflation core and abort the whole
transaction. Malformed input aborts one trace only. Neither leaves the host
dataset partially modified, since the dataset is only changed when a finalized
operation batch is applied.
"""


class TraceforgeError(Exception):
    """Base class for all traceforge errors."""
    pass


class InvariantError(TraceforgeError):
    """Raised when an internal invariant of the working set is violated."""
    pass


class ForeignObjectError(InvariantError):
    """Raised when an object from another editor is passed to a mutating call."""
    pass


class IllegalStateError(InvariantError):
    """Raised when a finalized or deleted object is edited."""
    pass


class ClosedWayError(InvariantError):
    """Raised when an edit would silently open a closed way."""
    pass


class MalformedPolygonError(TraceforgeError):
    """Raised when a source polygon has fewer than three distinct vertices."""
    pass


class ConfigurationError(TraceforgeError, ValueError):
    """Raised for inconsistent tolerance settings."""
    pass


class OperationError(TraceforgeError):
    """Raised when the host cannot apply an operation batch."""
    pass


__all__ = [
    'TraceforgeError',
    'InvariantError',
    'ForeignObjectError',
    'IllegalStateError',
    'ClosedWayError',
    'MalformedPolygonError',
    'ConfigurationError',
    'OperationError',
]
