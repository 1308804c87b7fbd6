import pytest

from traceforge.conflate import merge_nodes, reuse_existing_nodes, reuse_near_nodes
from traceforge.core import ClosedWayError, ConflationConfig, LatLon
from traceforge.dataset import DataSet
from traceforge.editing import EdWay, WayEditor
from traceforge.predicates import BUILDING_FILTER, AreaBoundaryWayNodePredicate, accept_all


def _setup():
    ds = DataSet()
    existing = ds.add_polygon([(0, 0), (0, 1), (1, 1), (1, 0)], {'building': 'yes'})
    editor = WayEditor(ds, ConflationConfig.from_resolution(0.01))
    return ds, existing, editor


def _traced(editor, coords):
    nodes = [editor.new_node(c) for c in coords]
    return editor.new_way(nodes + nodes[:1])


class TestReuseExistingNodes:
    """Tests for replacing traced vertices by existing nodes."""

    def test_reuses_nearby_building_nodes(self):
        ds, existing, editor = _setup()
        traced = _traced(editor, [(0.01, 1.0), (0, 2), (1, 2), (1.0, 1.01)])

        count = reuse_existing_nodes(traced, AreaBoundaryWayNodePredicate(BUILDING_FILTER))

        assert count == 2
        assert traced.is_closed
        assert traced.node(0).original is existing.nodes[1]
        assert traced.node(3).original is existing.nodes[2]
        # the existing node keeps its position
        assert traced.node(0).coor == LatLon(0.0, 1.0)

    def test_predicate_filters_candidates(self):
        ds, existing, editor = _setup()
        existing.tags = {'landuse': 'meadow'}
        traced = _traced(editor, [(0.01, 1.0), (0, 2), (1, 2), (1.0, 1.01)])

        assert reuse_existing_nodes(traced, AreaBoundaryWayNodePredicate(BUILDING_FILTER)) == 0
        assert not any(n.has_original for n in traced.nodes)

    def test_missing_predicate(self):
        ds, existing, editor = _setup()
        traced = _traced(editor, [(0, 1), (0, 2), (1, 2)])
        with pytest.raises(ValueError):
            reuse_existing_nodes(traced, None)

    def test_collapse_would_open_ring(self):
        """Test that two vertices snapping to the same node cannot open a triangle."""
        ds, existing, editor = _setup()
        traced = _traced(editor, [(0.01, 0.0), (0.0, 0.01), (-1, -1)])
        with pytest.raises(ClosedWayError):
            reuse_existing_nodes(traced, accept_all)

    def test_no_duplicate_nodes_after_reuse(self):
        ds, existing, editor = _setup()
        traced = _traced(editor, [(0.01, 1.0), (0.0, 1.01), (0, 2), (1, 2), (1, 1)])
        reuse_existing_nodes(traced, accept_all)

        nodes = traced.nodes
        assert all(a is not b for a, b in zip(nodes, nodes[1:]))
        assert len(set(nodes[:-1])) == len(nodes) - 1


class TestReuseNearNodes:
    """Tests for reusing and moving existing nodes."""

    def test_moves_existing_node(self):
        ds, existing, editor = _setup()
        traced = _traced(editor, [(0.01, 1.0), (0, 2), (1, 2)])

        assert reuse_near_nodes(traced, accept_all) == 1
        reused = traced.node(0)
        assert reused.original is existing.nodes[1]
        assert reused.coor == LatLon(0.01, 1.0)
        assert reused.is_modified

    def test_keep_position(self):
        ds, existing, editor = _setup()
        traced = _traced(editor, [(0.01, 1.0), (0, 2), (1, 2)])
        reuse_near_nodes(traced, accept_all, move_existing=False)
        assert traced.node(0).coor == LatLon(0.0, 1.0)


class TestMergeNodes:
    """Tests for merging two nodes."""

    def test_merge_into_other(self):
        ds, existing, editor = _setup()
        traced = _traced(editor, [(0.01, 1.0), (0, 2), (1, 2)])
        node = traced.node(0)
        other = editor.use_node(existing.nodes[1])

        changed = merge_nodes(node, other)

        assert changed == [traced]
        assert traced.node(0) is other
        assert traced.node(3) is other
        assert other.coor == LatLon(0.01, 1.0)
        assert not node.has_editor_referrers
        assert other.editor_referrers(EdWay) == [traced]

    def test_merge_with_itself(self):
        ds, existing, editor = _setup()
        node = editor.new_node((5, 5))
        assert merge_nodes(node, node) == []
