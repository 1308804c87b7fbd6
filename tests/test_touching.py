from traceforge.conflate import (
    connect_existing_touching_nodes,
    connect_node_to_nearby_ways,
    connect_touching_nodes,
)
from traceforge.core import ConflationConfig, LatLon
from traceforge.dataset import DataSet
from traceforge.editing import WayEditor
from traceforge.predicates import (
    BUILDING_FILTER,
    AndPredicate,
    AreaBoundaryWayNodePredicate,
    AreaPredicate,
    ExcludeEdNodesPredicate,
)


def _editor(ds):
    return WayEditor(ds, ConflationConfig.from_resolution(0.01))


def _traced(editor, coords, tags=None):
    nodes = [editor.new_node(c) for c in coords]
    return editor.new_way(nodes + nodes[:1], tags)


def _predicate(traced):
    return AndPredicate((ExcludeEdNodesPredicate(traced), AreaBoundaryWayNodePredicate(BUILDING_FILTER)))


TRACED = [(0, 1), (0, 2), (1, 2), (1, 1)]


class TestConnectExistingTouchingNodes:
    """Tests for inserting existing nodes lying on traced segments."""

    def test_inserts_node_on_segment(self):
        ds = DataSet()
        ds.add_polygon([(0, 0), (0, 1), (0.5, 1), (1, 1), (1, 0)], {'building': 'yes'})
        editor = _editor(ds)
        traced = _traced(editor, TRACED)

        assert connect_existing_touching_nodes(traced, _predicate(traced)) == 1
        assert traced.coords == [
            LatLon(0, 1), LatLon(0, 2), LatLon(1, 2), LatLon(1, 1), LatLon(0.5, 1), LatLon(0, 1),
        ]
        assert traced.node(4).has_original
        assert traced.is_closed

    def test_nodes_ordered_along_segment(self):
        """Test that several nodes on one segment keep their order along it."""
        ds = DataSet()
        ds.add_polygon([(0, 0), (0, 1), (0.25, 1), (0.5, 1), (0.75, 1), (1, 1), (1, 0)],
                       {'building': 'yes'})
        editor = _editor(ds)
        traced = _traced(editor, TRACED)

        assert connect_existing_touching_nodes(traced, _predicate(traced)) == 3
        assert [c.lat for c in traced.coords[3:]] == [1, 0.75, 0.5, 0.25, 0]

    def test_repeated_call_changes_nothing(self):
        ds = DataSet()
        ds.add_polygon([(0, 0), (0, 1), (0.5, 1), (1, 1), (1, 0)], {'building': 'yes'})
        editor = _editor(ds)
        traced = _traced(editor, TRACED)
        connect_existing_touching_nodes(traced, _predicate(traced))
        nodes = traced.nodes

        assert connect_existing_touching_nodes(traced, _predicate(traced)) == 0
        assert traced.nodes == nodes

    def test_other_areas_are_ignored(self):
        ds = DataSet()
        ds.add_polygon([(0, 0), (0, 1), (0.5, 1), (1, 1), (1, 0)], {'landuse': 'meadow'})
        editor = _editor(ds)
        traced = _traced(editor, TRACED)
        assert connect_existing_touching_nodes(traced, _predicate(traced)) == 0

    def test_tolerance(self):
        """Test that a wider tolerance picks up nodes slightly off the segment."""
        ds = DataSet()
        ds.add_polygon([(0, 0), (0, 0.99), (0.5, 0.99), (1, 0.99), (1, 0)], {'building': 'yes'})
        editor = _editor(ds)
        traced = _traced(editor, TRACED)
        assert connect_existing_touching_nodes(traced, _predicate(traced), tolerance=1e-6) == 0
        assert connect_existing_touching_nodes(traced, _predicate(traced), tolerance=0.05) == 1


class TestConnectTouchingNodes:
    """Tests for connecting two given ways."""

    def test_nodes_of_other_way(self):
        editor = _editor(DataSet())
        traced = _traced(editor, TRACED)
        other = _traced(editor, [(0, 0), (0, 1), (0.5, 1), (1, 1), (1, 0)])

        assert connect_touching_nodes(traced, other) == 1
        assert LatLon(0.5, 1) in traced.coords

    def test_same_way(self):
        editor = _editor(DataSet())
        traced = _traced(editor, TRACED)
        assert connect_touching_nodes(traced, traced) == 0


class TestConnectNodeToNearbyWays:
    """Tests for connecting a node into close area ways."""

    def test_node_near_segment(self):
        ds = DataSet()
        way = ds.add_polygon([(0, 0), (0, 2), (2, 2), (2, 0)], {'building': 'yes'})
        editor = _editor(ds)
        node = editor.new_node((1, 2.01))

        assert connect_node_to_nearby_ways(node, AreaPredicate(BUILDING_FILTER)) == 1
        edway = editor.use_way(way)
        assert edway.node(2) is node
        assert edway.is_closed

    def test_node_far_away(self):
        ds = DataSet()
        ds.add_polygon([(0, 0), (0, 2), (2, 2), (2, 0)], {'building': 'yes'})
        editor = _editor(ds)
        node = editor.new_node((1, 2.2))
        assert connect_node_to_nearby_ways(node, AreaPredicate(BUILDING_FILTER)) == 0
