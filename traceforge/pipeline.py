"""Trace pipeline: conflate one traced polygon into the host dataset.

The pipeline is a fixed sequence of small steps sharing a
:class:`TraceContext`. Each step returns a :class:`StepResult`; a step may stop
the run early with a final :class:`TraceStatus` (ambiguous retrace, nothing to
do, unsupported request).
"""

from __future__ import annotations

import logging
import math
from dataclasses import dataclass, field
from typing import Callable, Dict, List, Optional, Sequence, Tuple

from .conflate.clip import clip_areas
from .conflate.merge import merge_duplicate_ways
from .conflate.overlap import remove_fully_covered_ways
from .conflate.spare import remove_spare_nodes
from .conflate.touching import connect_existing_touching_nodes
from .core.config import ConflationConfig, GeomDeviation
from .core.geometry_utils import LatLon, distance, snap
from .core.types import TraceStatus
from .dataset import DataSource
from .editing.editor import WayEditor
from .editing.objects import EdMultipolygon, EdObject, EdWay
from .operations import Operation, count_by_kind
from .predicates import (
    BUILDING_FILTER,
    AndPredicate,
    AreaBoundaryWayNodePredicate,
    AreaPredicate,
    ExcludeEdNodesPredicate,
    MultipolygonBoundaryWayPredicate,
)
from .record import TraceRecord
from .tags import copy_forward_tags

logger = logging.getLogger(__name__)

TraceStep = Callable[["TraceContext"], "StepResult"]

NOTHING_CHANGED = "Nothing changed."


@dataclass
class TraceSettings:
    """Feature switches and filters of one trace.

    Attributes:
        area_filter: Tag filter describing areas of the traced kind
        perform_retrace: Replace the geometry of an existing area at the position
        perform_clipping: Clip overlapping neighbour areas
        perform_way_merging: Merge the result with identical ways
        connect_touching: Insert existing nodes lying on traced segments
        remove_covered_ways: Delete neighbours fully covered by the traced way
        remove_spare_nodes: Drop collinear vertices from changed neighbours
        clip_boundary_ways: Also clip ways that bound a multipolygon
        allow_inverted: Accept duplicates running in the opposite direction
        tolerance: Real-world tolerance for touching nodes, None falls back to
            the editor's node-to-way distance
        source_tag: Value written to the ``source`` key, if any
    """
    area_filter: object = BUILDING_FILTER
    perform_retrace: bool = True
    perform_clipping: bool = True
    perform_way_merging: bool = True
    connect_touching: bool = True
    remove_covered_ways: bool = True
    remove_spare_nodes: bool = True
    clip_boundary_ways: bool = True
    allow_inverted: bool = True
    tolerance: Optional[GeomDeviation] = field(default_factory=lambda: GeomDeviation(0.2, math.radians(15)))
    source_tag: Optional[str] = None

    @property
    def area_predicate(self) -> AreaPredicate:
        return AreaPredicate(self.area_filter)

    @property
    def node_predicate(self) -> AreaBoundaryWayNodePredicate:
        return AreaBoundaryWayNodePredicate(self.area_filter)

    @property
    def boundary_predicate(self) -> MultipolygonBoundaryWayPredicate:
        return MultipolygonBoundaryWayPredicate(self.area_filter)


@dataclass
class TraceContext:
    """Runtime state shared across pipeline steps."""

    editor: WayEditor
    record: TraceRecord
    position: LatLon
    settings: TraceSettings
    traced: Optional[EdObject] = None
    retrace: Optional[EdObject] = None
    messages: List[str] = field(default_factory=list)
    metadata: Dict[str, object] = field(default_factory=dict)

    @property
    def outer_way(self) -> EdWay:
        if isinstance(self.traced, EdMultipolygon):
            return self.traced.outer_way
        return self.traced

    @property
    def traced_ways(self) -> List[EdWay]:
        if isinstance(self.traced, EdMultipolygon):
            return self.traced.ways
        return [self.traced]


@dataclass
class StepResult:
    """Outcome of running a single pipeline step."""

    name: str
    changed: bool
    message: str = ""
    stop: Optional[TraceStatus] = None


@dataclass
class TraceResult:
    """Outcome of :func:`trace_polygon`.

    Attributes:
        status: Final status of the trace
        operations: Operations for the host to apply, empty unless CHANGED
        traced: The traced shadow object, if the transaction got that far
        messages: Notes for the end user
        history: Results of the executed steps
    """
    status: TraceStatus
    operations: List[Operation] = field(default_factory=list)
    traced: Optional[EdObject] = None
    messages: List[str] = field(default_factory=list)
    history: List[StepResult] = field(default_factory=list)

    @property
    def changed(self) -> bool:
        return self.status is TraceStatus.CHANGED


def run_steps(steps: Sequence[TraceStep], context: TraceContext) -> Tuple[Optional[TraceStatus], List[StepResult]]:
    """Execute steps in order until one of them stops the run."""
    history: List[StepResult] = []
    for step in steps:
        result = step(context)
        history.append(result)
        if result.message:
            logger.debug("%s: %s", result.name, result.message)
        if result.stop is not None:
            return result.stop, history
    return None, history


# ----------------------------------------------------------------------
# Steps


def find_retrace_step(ctx: TraceContext) -> StepResult:
    """Pick the existing area at the trace position to retrace, if any.

    An area carrying the record's reference id wins outright. Otherwise more
    than one candidate makes the retrace ambiguous.
    """
    if not ctx.settings.perform_retrace:
        return StepResult("find_retrace", False)

    areas = ctx.editor.use_non_edited_areas_containing_point(ctx.position, ctx.settings.area_predicate)
    ref = ctx.record.ref
    if ref is not None:
        for area in areas:
            if area.get(ctx.record.ref_key) == ref:
                ctx.retrace = area
                return StepResult("find_retrace", False, f"exact match {area.unique_id}")

    if len(areas) > 1:
        msg = "Multiple existing areas found, retrace is not possible."
        ctx.messages.append(msg)
        return StepResult("find_retrace", False, msg, stop=TraceStatus.AMBIGUOUS)
    if areas:
        ctx.retrace = areas[0]
        return StepResult("find_retrace", False, f"candidate {areas[0].unique_id}")
    return StepResult("find_retrace", False)


def create_step(ctx: TraceContext) -> StepResult:
    ctx.traced = ctx.record.create_object(ctx.editor, ctx.settings.node_predicate)
    return StepResult("create", True)


def _rotations_match(a: List[LatLon], b: List[LatLon], tol: float) -> bool:
    n = len(a)
    if n != len(b):
        return False
    for candidate in (b, b[::-1]):
        for offset in range(n):
            if all(distance(a[k], candidate[(k + offset) % n]) <= tol for k in range(n)):
                return True
    return False


def identical_ring(way: EdWay, coords: Sequence[LatLon], tol: float) -> bool:
    """True if the closed ``way`` has the same vertices as ``coords`` up to rotation and direction."""
    if not way.is_closed:
        return False
    ring = list(coords)
    if len(ring) > 1 and ring[0] == ring[-1]:
        ring = ring[:-1]
    return _rotations_match(way.coords[:-1], ring, tol)


def retrace_step(ctx: TraceContext) -> StepResult:
    """Move the traced geometry onto the retraced way."""
    retrace = ctx.retrace
    if retrace is None:
        return StepResult("retrace", False)

    if isinstance(ctx.traced, EdMultipolygon) or not isinstance(retrace, EdWay) or retrace.has_referrers:
        msg = "Multipolygon retrace is not supported yet."
        ctx.messages.append(msg)
        return StepResult("retrace", False, msg, stop=TraceStatus.REJECTED)

    traced = ctx.traced
    tol = ctx.editor.config.min_distance_node_to_node
    if identical_ring(retrace, traced.coords, tol):
        ctx.editor.discard(traced)
        ctx.traced = retrace
        tags = copy_forward_tags(retrace.tags, ctx.record.tags, ctx.settings.source_tag)
        if tags == retrace.tags:
            ctx.messages.append(NOTHING_CHANGED)
            return StepResult("retrace", False, "identical geometry", stop=TraceStatus.UNCHANGED)
        retrace.set_tags(tags)
        return StepResult("retrace", True, "identical geometry, tags updated", stop=TraceStatus.CHANGED)

    nodes = traced.nodes
    ctx.editor.discard(traced)
    retrace.set_nodes(nodes)
    ctx.traced = retrace
    return StepResult("retrace", True, f"retracing way {retrace.unique_id}")


def tag_step(ctx: TraceContext) -> StepResult:
    traced = ctx.traced
    if traced.has_original:
        tags = copy_forward_tags(traced.tags, ctx.record.tags, ctx.settings.source_tag)
    else:
        tags = dict(traced.tags)
        tags.update(ctx.record.tags)
        if ctx.settings.source_tag is not None:
            tags['source'] = ctx.settings.source_tag
    if tags == traced.tags:
        return StepResult("tag", False)
    traced.set_tags(tags)
    return StepResult("tag", True)


def connect_touching_step(ctx: TraceContext) -> StepResult:
    if not ctx.settings.connect_touching:
        return StepResult("connect_touching", False)
    predicate = AndPredicate((ExcludeEdNodesPredicate(ctx.traced), ctx.settings.node_predicate))
    tolerance = ctx.settings.tolerance
    count = connect_existing_touching_nodes(
        ctx.traced, predicate, tolerance.distance_latlon if tolerance is not None else None)
    return StepResult("connect_touching", count > 0, f"{count} nodes connected")


def remove_covered_step(ctx: TraceContext) -> StepResult:
    if not ctx.settings.remove_covered_ways:
        return StepResult("remove_covered", False)
    removed = remove_fully_covered_ways(ctx.outer_way, ctx.settings.area_predicate)
    return StepResult("remove_covered", bool(removed), f"{len(removed)} ways removed")


def clip_step(ctx: TraceContext) -> StepResult:
    if not ctx.settings.perform_clipping:
        return StepResult("clip", False)
    boundary = ctx.settings.boundary_predicate if ctx.settings.clip_boundary_ways else None
    changed = clip_areas(ctx.outer_way, ctx.settings.area_predicate, boundary, ctx.messages)
    ctx.metadata['clipped_ways'] = changed
    return StepResult("clip", bool(changed), f"{len(changed)} ways clipped")


def remove_spare_step(ctx: TraceContext) -> StepResult:
    if not ctx.settings.remove_spare_nodes:
        return StepResult("remove_spare", False)
    traced_ways = ctx.traced_ways
    protected = {n for w in traced_ways for n in w.nodes}
    predicate = ctx.settings.area_predicate
    removed = 0
    for way in ctx.editor.modified_ways():
        if way in traced_ways or not way.has_original or not predicate(way):
            continue
        removed += len(remove_spare_nodes(way, protected))
    return StepResult("remove_spare", removed > 0, f"{removed} spare nodes removed")


def merge_step(ctx: TraceContext) -> StepResult:
    if not ctx.settings.perform_way_merging:
        return StepResult("merge", False)
    outer = ctx.outer_way
    survivor = merge_duplicate_ways(ctx.editor.modified_ways(), ctx.settings.area_predicate,
                                    ctx.settings.allow_inverted, keep=outer)
    if survivor is outer:
        return StepResult("merge", False)
    if isinstance(ctx.traced, EdWay):
        ctx.traced = survivor
    return StepResult("merge", True, f"merged into way {survivor.unique_id}")


DEFAULT_STEPS: Tuple[TraceStep, ...] = (
    find_retrace_step,
    create_step,
    retrace_step,
    tag_step,
    connect_touching_step,
    remove_covered_step,
    clip_step,
    remove_spare_step,
    merge_step,
)


def trace_polygon(
    data_source: DataSource,
    record: TraceRecord,
    position: Optional[Sequence[float]] = None,
    settings: Optional[TraceSettings] = None,
    config: Optional[ConflationConfig] = None,
    cancelled: Optional[Callable[[], bool]] = None,
    steps: Sequence[TraceStep] = DEFAULT_STEPS,
) -> TraceResult:
    """Conflate a traced polygon into ``data_source``.

    The record is validated and the cancellation callback consulted before
    the editing transaction starts. Once the transaction runs it either
    completes or raises; the data source itself is never modified, the
    caller applies ``result.operations`` as one batch.

    Args:
        data_source: Host dataset
        record: Traced polygon
        position: Position the user traced at, defaults to the outer ring's bbox centre
        settings: Feature switches and filters
        config: Distance thresholds
        cancelled: Returns True if the trace should be abandoned
        steps: Pipeline steps to run

    Returns:
        TraceResult with status, operations and user messages

    Raises:
        MalformedPolygonError: If the record has a degenerate ring

    Examples:
        >>> result = trace_polygon(dataset, TraceRecord(ring, tags={'building': 'yes'}))
        >>> if result.changed:
        ...     dataset.apply(result.operations)
    """
    settings = settings or TraceSettings()
    record.validate()

    if cancelled is not None and cancelled():
        return TraceResult(TraceStatus.CANCELLED, messages=["Trace cancelled."])

    if position is None:
        position = record.bbox().center
    position = snap(position, record.precision)

    editor = WayEditor(data_source, config)
    ctx = TraceContext(editor, record, position, settings)
    status, history = run_steps(steps, ctx)

    if status in (TraceStatus.AMBIGUOUS, TraceStatus.REJECTED):
        return TraceResult(status, traced=ctx.traced, messages=ctx.messages, history=history)

    operations = editor.finalize_edit()
    if operations:
        status = TraceStatus.CHANGED
    else:
        status = TraceStatus.UNCHANGED
        if NOTHING_CHANGED not in ctx.messages:
            ctx.messages.append(NOTHING_CHANGED)

    logger.info("Trace finished: %s, %s", status.value,
                {k.value: v for k, v in count_by_kind(operations).items()})
    return TraceResult(status, operations, ctx.traced, ctx.messages, history)


__all__ = [
    'TraceStep',
    'TraceSettings',
    'TraceContext',
    'StepResult',
    'TraceResult',
    'run_steps',
    'identical_ring',
    'find_retrace_step',
    'create_step',
    'retrace_step',
    'tag_step',
    'connect_touching_step',
    'remove_covered_step',
    'clip_step',
    'remove_spare_step',
    'merge_step',
    'DEFAULT_STEPS',
    'trace_polygon',
]
