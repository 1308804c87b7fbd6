import pytest

from traceforge.core import BBox, LatLon, OperationError
from traceforge.dataset import DataSet, Member, Node, Way
from traceforge.operations import (
    AddNode,
    AddWay,
    ChangeTags,
    ChangeWayNodes,
    DeleteNode,
    DeleteWay,
    MoveNode,
)


def _square(ds, lat=0.0, lon=0.0, size=1.0, tags=None):
    return ds.add_polygon(
        [(lat, lon), (lat, lon + size), (lat + size, lon + size), (lat + size, lon)],
        tags or {'building': 'yes'},
    )


class TestBuilding:
    """Tests for building a dataset."""

    def test_add_polygon_closes_ring(self):
        ds = DataSet()
        way = _square(ds)
        assert way.is_closed
        assert len(way.nodes) == 5
        assert len(ds.nodes) == 4
        assert way.id > 0

    def test_add_polygon_with_closing_vertex(self):
        """Test that an explicit closing vertex does not create a duplicate node."""
        ds = DataSet()
        way = ds.add_polygon([(0, 0), (0, 1), (1, 1), (0, 0)])
        assert len(way.nodes) == 4
        assert len(ds.nodes) == 3

    def test_coordinates_are_snapped(self):
        ds = DataSet()
        node = ds.add_node((50.123456789, 14.0))
        assert node.coor == LatLon(50.1234568, 14.0)

    def test_way_with_foreign_node(self):
        ds = DataSet()
        with pytest.raises(OperationError):
            ds.add_way([Node((0, 0))])

    def test_relation_members(self):
        ds = DataSet()
        outer = _square(ds, size=4.0, tags={})
        inner = _square(ds, 1.0, 1.0, tags={})
        rel = ds.add_relation([('outer', outer), ('inner', inner)], {'type': 'multipolygon'})
        assert rel.member_ways('outer') == [outer]
        assert rel.member_ways('inner') == [inner]
        assert ds.referrers(outer) == [rel]


class TestSearch:
    """Tests for spatial searches and referrers."""

    def test_search_ways_by_bounding_box(self):
        """Test that a box inside a large way finds it."""
        ds = DataSet()
        way = _square(ds, size=10.0)
        assert ds.search_ways(BBox(4, 4, 5, 5)) == {way}
        assert ds.search_ways(BBox(20, 20, 21, 21)) == set()

    def test_search_nodes(self):
        ds = DataSet()
        way = _square(ds)
        found = ds.search_nodes(BBox(-0.5, -0.5, 0.5, 0.5))
        assert found == {way.nodes[0]}

    def test_search_relations(self):
        ds = DataSet()
        outer = _square(ds, tags={})
        rel = ds.add_relation([Member('outer', outer)], {'type': 'multipolygon'})
        assert ds.search_relations(BBox(0, 0, 1, 1)) == {rel}

    def test_deleted_and_incomplete_are_not_usable(self):
        ds = DataSet()
        way = _square(ds)
        way.incomplete = True
        assert not ds.is_usable(way)
        assert ds.search_ways(BBox(0, 0, 1, 1)) == set()
        assert not ds.is_usable(Node((0, 0)))

    def test_referrers_of_shared_node(self):
        ds = DataSet()
        a = _square(ds)
        shared = a.nodes[1]
        b = ds.add_way([shared, ds.add_node((0, 2)), ds.add_node((1, 2)), shared])
        assert set(ds.referrers(shared)) == {a, b}


class TestApply:
    """Tests for atomic operation batches."""

    def test_apply_new_way(self):
        ds = DataSet()
        nodes = [Node(c) for c in [(0, 0), (0, 1), (1, 1)]]
        way = Way(nodes + nodes[:1], {'building': 'yes'})
        ds.apply([AddNode(n) for n in nodes] + [AddWay(way)])

        assert way in ds.ways
        assert all(n.id < 0 for n in nodes)
        assert way.id < 0
        assert ds.search_ways(BBox(0, 0, 1, 1)) == {way}

    def test_failed_batch_rolls_back(self):
        """Test that a failing operation reverts the earlier ones."""
        ds = DataSet()
        way = _square(ds)
        node = way.nodes[1]
        ops = [
            MoveNode(node, LatLon(0.0, 2.0)),
            ChangeTags(way, {'building': 'house'}),
            DeleteNode(node),
        ]
        with pytest.raises(OperationError):
            ds.apply(ops)

        assert node.coor == LatLon(0.0, 1.0)
        assert way.tags == {'building': 'yes'}
        assert not node.deleted

    def test_undo(self):
        ds = DataSet()
        way = _square(ds)
        old_nodes = list(way.nodes)
        removed = way.nodes[1]
        new_nodes = (way.nodes[0],) + tuple(way.nodes[2:])
        ds.apply([ChangeWayNodes(way, new_nodes), DeleteNode(removed)])
        assert removed.deleted
        assert len(way.nodes) == 4

        assert ds.undo()
        assert way.nodes == old_nodes
        assert not removed.deleted
        assert not ds.undo()

    def test_delete_referenced_way(self):
        ds = DataSet()
        way = _square(ds)
        ds.add_relation([('outer', way)], {'type': 'multipolygon'})
        with pytest.raises(OperationError):
            ds.apply([DeleteWay(way)])
        assert not way.deleted

    def test_add_twice(self):
        ds = DataSet()
        node = Node((0, 0))
        ds.apply([AddNode(node)])
        with pytest.raises(OperationError):
            ds.apply([AddNode(node)])

    def test_change_of_missing_primitive(self):
        ds = DataSet()
        with pytest.raises(OperationError):
            ds.apply([MoveNode(Node((0, 0)), LatLon(1.0, 1.0))])
