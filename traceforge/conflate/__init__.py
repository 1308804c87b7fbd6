"""Conflation algorithms operating on the editing working set."""

from .nodes import reuse_existing_nodes, reuse_near_nodes, merge_nodes
from .touching import (
    connect_existing_touching_nodes,
    connect_touching_nodes,
    connect_node_to_nearby_ways,
)
from .overlap import (
    OverlapResult,
    ways_overlap,
    correct_overlapping,
    fix_overlapped_ways,
    remove_fully_covered_ways,
)
from .spare import remove_spare_nodes
from .merge import is_merge_candidate, merge_duplicate_ways
from .clip import clip_areas, clip_boundary_way

__all__ = [
    # Node reuse
    'reuse_existing_nodes',
    'reuse_near_nodes',
    'merge_nodes',

    # Touching nodes
    'connect_existing_touching_nodes',
    'connect_touching_nodes',
    'connect_node_to_nearby_ways',

    # Overlap
    'OverlapResult',
    'ways_overlap',
    'correct_overlapping',
    'fix_overlapped_ways',
    'remove_fully_covered_ways',

    # Cleanup
    'remove_spare_nodes',
    'is_merge_candidate',
    'merge_duplicate_ways',
    'clip_areas',
    'clip_boundary_way',
]
