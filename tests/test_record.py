import pytest

from traceforge.core import LatLon, MalformedPolygonError
from traceforge.dataset import DataSet
from traceforge.editing import EdMultipolygon, EdWay, WayEditor
from traceforge.record import TraceRecord, normalize_ring
from traceforge.tags import copy_forward_tags


class TestNormalizeRing:
    """Tests for ring normalisation."""

    def test_drops_duplicates_and_closing_vertex(self):
        ring = normalize_ring([(0, 0), (0, 1), (0, 1), (1, 1), (0, 0)])
        assert ring == [LatLon(0, 0), LatLon(0, 1), LatLon(1, 1)]

    def test_duplicates_after_snapping(self):
        ring = normalize_ring([(0, 0), (0, 1), (0.00000001, 1), (1, 1)])
        assert len(ring) == 3

    def test_adjustment(self):
        ring = normalize_ring([(0, 0), (0, 1), (1, 1)], adjust_lat=0.5, adjust_lon=-0.5)
        assert ring == [LatLon(0.5, -0.5), LatLon(0.5, 0.5), LatLon(1.5, 0.5)]


class TestTraceRecord:
    """Tests for traced records."""

    def test_validate_degenerate_outer(self):
        record = TraceRecord([(0, 0), (0, 1), (0, 0)])
        with pytest.raises(MalformedPolygonError):
            record.validate()

    def test_validate_degenerate_inner(self):
        record = TraceRecord([(0, 0), (0, 4), (4, 4), (4, 0)], inners=[[(1, 1), (1, 2)]])
        with pytest.raises(MalformedPolygonError):
            record.validate()

    def test_ref(self):
        record = TraceRecord([(0, 0), (0, 1), (1, 1)], tags={'ref:ruian:building': '42'},
                             ref_key='ref:ruian:building')
        assert record.ref == '42'
        assert TraceRecord([(0, 0), (0, 1), (1, 1)]).ref is None

    def test_bbox(self):
        record = TraceRecord([(0, 0), (0, 2), (1, 2), (1, 0)])
        assert record.bbox().center == (0.5, 1.0)

    def test_create_way(self):
        editor = WayEditor(DataSet())
        record = TraceRecord([(0, 0), (0, 1), (1, 1), (1, 0), (0, 0)])
        obj = record.create_object(editor)

        assert isinstance(obj, EdWay)
        assert obj.is_closed
        assert obj.node_count == 5
        assert not obj.has_original

    def test_create_multipolygon(self):
        editor = WayEditor(DataSet())
        record = TraceRecord([(0, 0), (0, 4), (4, 4), (4, 0)],
                             inners=[[(1, 1), (1, 2), (2, 2), (2, 1)]])
        obj = record.create_object(editor)

        assert isinstance(obj, EdMultipolygon)
        assert obj.outer_way.node_count == 5
        assert len(obj.inner_ways) == 1
        assert obj.inner_ways[0].is_closed

    def test_create_malformed(self):
        editor = WayEditor(DataSet())
        with pytest.raises(MalformedPolygonError):
            TraceRecord([(0, 0), (0, 1)]).create_object(editor)
        assert editor.nodes == []


class TestCopyForwardTags:
    """Tests for tag copy-forward onto retraced objects."""

    def test_specific_building_value(self):
        tags = copy_forward_tags({'building': 'yes'}, {'building': 'house', 'start_date': '1920'})
        assert tags == {'building': 'house', 'start_date': '1920'}

    def test_keeps_specific_value(self):
        assert copy_forward_tags({'building': 'church'}, {'building': 'house'}) == {'building': 'church'}

    def test_fill_missing_only(self):
        tags = copy_forward_tags({'building': 'yes', 'building:levels': '3'},
                                 {'building:levels': '2', 'building:flats': '4'})
        assert tags['building:levels'] == '3'
        assert tags['building:flats'] == '4'

    def test_overwrite_reference(self):
        tags = copy_forward_tags({'ref:ruian:building': '1', 'ref:ruian': '2'},
                                 {'ref:ruian:building': '2'})
        assert tags == {'ref:ruian:building': '2'}

    def test_source(self):
        target = {'building': 'yes'}
        tags = copy_forward_tags(target, {}, source_tag='cuzk:ruian')
        assert tags['source'] == 'cuzk:ruian'
        assert target == {'building': 'yes'}
