import pytest

from traceforge.core import (
    ClosedWayError,
    ForeignObjectError,
    IllegalStateError,
    InvariantError,
    LatLon,
    MemberRole,
    ObjectState,
)
from traceforge.dataset import DataSet
from traceforge.editing import EdMultipolygon, EdWay, WayEditor


def _ring(editor, coords):
    nodes = [editor.new_node(c) for c in coords]
    return editor.new_way(nodes + nodes[:1])


SQUARE = [(0, 0), (0, 1), (1, 1), (1, 0)]


class TestEdNode:
    """Tests for node shadows."""

    def test_new_node(self):
        editor = WayEditor(DataSet())
        node = editor.new_node((1.123456789, 2.0))
        assert node.coor == LatLon(1.1234568, 2.0)
        assert not node.has_original
        assert node.unique_id < 0
        assert node.state is ObjectState.CLEAN

    def test_move_shadow(self):
        ds = DataSet()
        orig = ds.add_node((0, 0))
        editor = WayEditor(ds)
        node = editor.use_node(orig)
        assert node.unique_id == orig.id

        node.set_coor((0, 0))
        assert not node.is_modified

        node.set_coor((0.5, 0))
        assert node.is_modified
        assert orig.coor == LatLon(0.0, 0.0)

    def test_modified_flag_resets(self):
        """Test that moving back to the original position clears the modified flag."""
        ds = DataSet()
        orig = ds.add_node((0, 0))
        editor = WayEditor(ds)
        node = editor.use_node(orig)
        node.set_coor((1, 1))
        node.set_coor((0, 0))
        node.update_modified_flag()
        assert not node.is_modified

    def test_tags_are_copied(self):
        editor = WayEditor(DataSet())
        node = editor.new_node((0, 0), {'entrance': 'yes'})
        tags = node.tags
        tags['entrance'] = 'no'
        assert node.get('entrance') == 'yes'
        assert node.is_tagged


class TestEdWay:
    """Tests for way shadows."""

    def test_closed_way(self):
        editor = WayEditor(DataSet())
        way = _ring(editor, SQUARE)
        assert way.is_closed
        assert way.node_count == 5
        assert all(way.contains_node(n) for n in way.nodes)

    def test_two_node_loop_is_not_closed(self):
        editor = WayEditor(DataSet())
        a = editor.new_node((0, 0))
        b = editor.new_node((0, 1))
        assert not editor.new_way([a, b, a]).is_closed

    def test_referrers_follow_node_list(self):
        editor = WayEditor(DataSet())
        way = _ring(editor, SQUARE)
        node = way.node(1)
        assert node.editor_referrers(EdWay) == [way]

        way.remove_node(node)
        assert not node.has_editor_referrers
        assert way.node_count == 4

    def test_remove_first_node_keeps_ring_closed(self):
        editor = WayEditor(DataSet())
        way = _ring(editor, SQUARE)
        first = way.node(0)
        way.remove_node(first)
        assert way.is_closed
        assert not way.contains_node(first)

    def test_remove_node_from_triangle(self):
        """Test that a closed way cannot drop below three distinct vertices."""
        editor = WayEditor(DataSet())
        way = _ring(editor, SQUARE[:3])
        with pytest.raises(ClosedWayError):
            way.remove_node(way.node(1))

    def test_add_node_out_of_range(self):
        editor = WayEditor(DataSet())
        way = _ring(editor, SQUARE)
        with pytest.raises(IndexError):
            way.add_node(7, editor.new_node((5, 5)))

    def test_identical_geometry_under_rotation(self):
        editor = WayEditor(DataSet())
        way = _ring(editor, SQUARE)
        a, b, c, d = way.nodes[:4]
        assert way.has_identical_node_geometry([c, d, a, b, c])
        assert not way.has_identical_node_geometry([a, d, c, b, a])
        assert way.has_identical_node_geometry([a, d, c, b, a], allow_inverted=True)

    def test_foreign_node(self):
        first = WayEditor(DataSet())
        second = WayEditor(DataSet())
        way = _ring(first, SQUARE)
        with pytest.raises(ForeignObjectError):
            way.add_node(1, second.new_node((0.5, 0.5)))

    def test_deleted_way_rejects_edits(self):
        editor = WayEditor(DataSet())
        way = _ring(editor, SQUARE)
        way.delete()
        assert way.is_deleted
        with pytest.raises(IllegalStateError):
            way.set_tags({'building': 'yes'})

    def test_polygon(self):
        editor = WayEditor(DataSet())
        way = _ring(editor, SQUARE)
        assert way.polygon().area == pytest.approx(1.0)


class TestEdMultipolygon:
    """Tests for multipolygon shadows."""

    def test_new_multipolygon(self):
        editor = WayEditor(DataSet())
        outer = _ring(editor, [(0, 0), (0, 4), (4, 4), (4, 0)])
        inner = _ring(editor, [(1, 1), (1, 2), (2, 2), (2, 1)])
        mp = editor.new_multipolygon({'building': 'yes'})
        mp.add_outer_way(outer)
        mp.add_inner_way(inner)

        assert mp.get('type') == 'multipolygon'
        assert mp.outer_way is outer
        assert mp.inner_ways == [inner]
        assert outer.editor_referrers(EdMultipolygon) == [mp]

    def test_outer_way_requires_exactly_one(self):
        editor = WayEditor(DataSet())
        mp = editor.new_multipolygon()
        with pytest.raises(InvariantError):
            mp.outer_way

    def test_way_in_multipolygon_cannot_be_deleted(self):
        editor = WayEditor(DataSet())
        outer = _ring(editor, SQUARE)
        mp = editor.new_multipolygon()
        mp.add_outer_way(outer)
        with pytest.raises(InvariantError):
            outer.delete()

    def test_shadow_of_relation(self):
        ds = DataSet()
        outer = ds.add_polygon([(0, 0), (0, 4), (4, 4), (4, 0)])
        node = ds.add_node((9, 9))
        rel = ds.add_relation([('outer', outer), ('label', node)], {'type': 'multipolygon'})
        editor = WayEditor(ds)
        mp = editor.use_multipolygon(rel)

        assert mp.outer_way.original is outer
        assert len(mp.final_members()) == 2
        assert mp.final_members()[1].primitive is node

    def test_member_with_other_role_is_referenced(self):
        """Test that a way member with an unknown role still blocks deletion."""
        ds = DataSet()
        outer = ds.add_polygon([(0, 0), (0, 4), (4, 4), (4, 0)])
        extra = ds.add_polygon(SQUARE)
        rel = ds.add_relation([('outer', outer), ('', extra)], {'type': 'multipolygon'})
        editor = WayEditor(ds)
        mp = editor.use_multipolygon(rel)
        edway = editor.use_way(extra)

        assert edway.editor_referrers(EdMultipolygon) == [mp]
        assert mp.ways == [mp.outer_way]
        with pytest.raises(InvariantError):
            edway.delete()
        assert editor.finalize_edit() == []

    def test_replace_way(self):
        editor = WayEditor(DataSet())
        old = _ring(editor, SQUARE)
        new = _ring(editor, SQUARE)
        mp = editor.new_multipolygon()
        mp.add_outer_way(old)
        assert mp.replace_way(old, new)
        assert mp.outer_way is new
        assert not old.has_editor_referrers
        assert MemberRole.OUTER.value == 'outer'
