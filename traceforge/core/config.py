"""Tolerance settings for the conflation algorithms.

All distance thresholds are expressed in coordinate units (degrees) and are
derived from a single base resolution. Smaller thresholds gate tighter, more
certain merges, so they must satisfy::

    min_distance_node_to_node <= min_distance_node_to_other_way <= min_distance
"""

from __future__ import annotations

from dataclasses import dataclass
from typing import Optional

from .errors import ConfigurationError

#: Resolution of the original tracing imagery (tile size / pixels).
DEFAULT_BASE_RESOLUTION = 0.0004 / 2048

METERS_PER_DEGREE = 111120.00071117


@dataclass(frozen=True)
class ConflationConfig:
    """Distance thresholds used throughout a transaction.

    Attributes:
        min_distance: Search radius for nearby objects
        min_distance_node_to_node: Two nodes closer than this are duplicates
        min_distance_node_to_other_way: A node closer than this to another
            way's segment gets connected into it
        precision: Decimal places coordinates are snapped to
        double_diff: Maximal difference for plain float comparisons
        merge_min_shared_nodes: If set, two ways sharing at least this many
            distinct nodes are duplicate candidates even if their geometry
            differs

    Examples:
        >>> config = ConflationConfig.from_resolution(1e-7)
        >>> config.min_distance_node_to_node <= config.min_distance
        True
    """
    min_distance: float = DEFAULT_BASE_RESOLUTION * 30
    min_distance_node_to_node: float = DEFAULT_BASE_RESOLUTION * 2.5
    min_distance_node_to_other_way: float = DEFAULT_BASE_RESOLUTION * 5
    precision: int = 7
    double_diff: float = 1e-7
    merge_min_shared_nodes: Optional[int] = None

    def __post_init__(self):
        self.validate()

    @classmethod
    def from_resolution(cls, base: float, **overrides) -> "ConflationConfig":
        """Derive all distance thresholds from one base resolution."""
        if base <= 0:
            raise ConfigurationError(f"Base resolution must be positive, got {base}")
        values = {
            'min_distance': base * 30,
            'min_distance_node_to_node': base * 2.5,
            'min_distance_node_to_other_way': base * 5,
        }
        values.update(overrides)
        return cls(**values)

    def validate(self) -> None:
        if min(self.min_distance, self.min_distance_node_to_node,
               self.min_distance_node_to_other_way) <= 0:
            raise ConfigurationError("Distance thresholds must be positive")
        if not (self.min_distance_node_to_node
                <= self.min_distance_node_to_other_way
                <= self.min_distance):
            raise ConfigurationError(
                "Thresholds must satisfy node_to_node <= node_to_other_way <= min_distance"
            )
        if self.precision < 0:
            raise ConfigurationError(f"Precision must not be negative, got {self.precision}")
        if self.merge_min_shared_nodes is not None and self.merge_min_shared_nodes < 1:
            raise ConfigurationError("merge_min_shared_nodes must be at least 1")


@dataclass(frozen=True)
class GeomDeviation:
    """A tolerance expressed in real-world units.

    Attributes:
        distance_meters: Allowed positional deviation in meters
        angle_rad: Allowed angular deviation in radians
    """
    distance_meters: float
    angle_rad: float

    def __post_init__(self):
        if self.distance_meters < 0.0:
            raise ConfigurationError("Negative deviation distance")
        if self.angle_rad < 0.0:
            raise ConfigurationError("Negative deviation angle")

    @property
    def distance_latlon(self) -> float:
        """Deviation distance converted to degrees."""
        return self.distance_meters / METERS_PER_DEGREE


__all__ = [
    'DEFAULT_BASE_RESOLUTION',
    'METERS_PER_DEGREE',
    'ConflationConfig',
    'GeomDeviation',
]
