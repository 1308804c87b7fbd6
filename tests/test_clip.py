from traceforge.conflate import clip_areas, clip_boundary_way
from traceforge.core import ConflationConfig, LatLon
from traceforge.dataset import DataSet
from traceforge.editing import WayEditor
from traceforge.predicates import (
    BUILDING_FILTER,
    LANDUSE_FILTER,
    AreaPredicate,
    MultipolygonBoundaryWayPredicate,
)


def _editor(ds):
    return WayEditor(ds, ConflationConfig.from_resolution(0.01))


def _traced(editor, coords):
    nodes = [editor.new_node(c) for c in coords]
    return editor.new_way(nodes + nodes[:1], {'building': 'yes'})


def _boundary(ds, coords):
    way = ds.add_polygon(coords)
    ds.add_relation([('outer', way)], {'type': 'multipolygon', 'landuse': 'residential'})
    return way


BOUNDARY = [(0, 0), (0, 2), (2, 2), (2, 0)]


class TestClipBoundaryWay:
    """Tests for clipping multipolygon boundary ways."""

    def test_corner_cut(self):
        ds = DataSet()
        way = _boundary(ds, BOUNDARY)
        editor = _editor(ds)
        clip = _traced(editor, [(1, 1), (1, 3), (3, 3), (3, 1)])
        edway = editor.use_way(way)

        assert clip_boundary_way(clip, edway)

        assert edway.is_closed
        assert set(edway.coords) == {LatLon(*c) for c in [(0, 0), (0, 2), (1, 2), (1, 1), (2, 1), (2, 0)]}
        assert edway.node_count == 7
        # the corner of the clipping way is shared
        assert clip.node(0) in edway.nodes
        assert edway.polygon().area == 3.0

    def test_vanishing_way_is_skipped(self):
        ds = DataSet()
        way = _boundary(ds, [(0.5, 0.5), (0.5, 1), (1, 1), (1, 0.5)])
        editor = _editor(ds)
        clip = _traced(editor, BOUNDARY)
        edway = editor.use_way(way)
        messages = []

        assert not clip_boundary_way(clip, edway, messages)
        assert len(messages) == 1
        assert not edway.is_modified

    def test_split_way_is_skipped(self):
        ds = DataSet()
        way = _boundary(ds, BOUNDARY)
        editor = _editor(ds)
        clip = _traced(editor, [(-1, 0.5), (-1, 1.5), (3, 1.5), (3, 0.5)])
        messages = []

        assert not clip_boundary_way(clip, editor.use_way(way), messages)
        assert 'split' in messages[0]

    def test_disjoint_way_is_unchanged(self):
        ds = DataSet()
        way = _boundary(ds, BOUNDARY)
        editor = _editor(ds)
        clip = _traced(editor, [(5, 5), (5, 6), (6, 6), (6, 5)])
        assert not clip_boundary_way(clip, editor.use_way(way))


class TestClipAreas:
    """Tests for clipping every overlapping neighbour."""

    def test_plain_and_boundary_ways(self):
        ds = DataSet()
        building = ds.add_polygon([(1, 1), (1, 3), (3, 3), (3, 1)], {'building': 'yes'})
        editor = _editor(ds)
        clip = _traced(editor, BOUNDARY)

        changed = clip_areas(clip, AreaPredicate(BUILDING_FILTER))
        assert [w.original for w in changed] == [building]

    def test_boundary_predicate(self):
        ds = DataSet()
        way = _boundary(ds, [(1, 1), (1, 3), (3, 3), (3, 1)])
        editor = _editor(ds)
        clip = _traced(editor, BOUNDARY)

        assert clip_areas(clip, AreaPredicate(BUILDING_FILTER)) == []
        changed = clip_areas(clip, AreaPredicate(BUILDING_FILTER),
                             MultipolygonBoundaryWayPredicate(LANDUSE_FILTER))
        assert [w.original for w in changed] == [way]

        ops = editor.finalize_edit()
        ds.apply(ops)
        assert way.is_closed
        assert len(way.nodes) == 7
