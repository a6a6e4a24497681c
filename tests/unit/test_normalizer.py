"""Tests for response normalization."""
import pytest

from idvt.services.normalizer import (
    filter_rows,
    flatten_rows,
    process_dhis2_data,
    tabular_rows,
)

ANALYTICS = {
    "headers": [{"name": "dx"}, {"name": "ou"}, {"name": "value"}],
    "rows": [["d1", "A", "10"], ["d1", "B", "4"]],
    "metaData": {"items": {"d1": {"name": "ANC 1st visit"}, "A": {"name": "Kampala"}}},
}


class TestTabularRows:
    def test_rows_zipped_with_headers_and_labels(self):
        rows = tabular_rows(ANALYTICS)
        assert rows[0] == {
            "dx-name": "ANC 1st visit",
            "ou-name": "Kampala",
            "dx": "d1",
            "ou": "A",
            "value": "10",
        }
        assert rows[1]["ou-name"] == ""

    def test_list_grid(self):
        data = {"listGrid": {"headers": [{"name": "a"}, {"name": "b"}], "rows": [[1, 2]]}}
        assert tabular_rows(data) == [{"a": 1, "b": 2}]

    def test_without_metadata_no_label_columns(self):
        data = {"headers": [{"name": "ou"}, {"name": "value"}], "rows": [["A", "1"]]}
        assert tabular_rows(data) == [{"ou": "A", "value": "1"}]

    def test_other_shapes(self):
        assert tabular_rows({"organisationUnits": []}) is None
        assert tabular_rows([1, 2]) is None

    def test_empty_headers_still_tabular(self):
        data = {"headers": [], "rows": []}
        assert tabular_rows(data) == []
        assert process_dhis2_data(data) == []


class TestFlattenRows:
    def test_none_option(self):
        assert flatten_rows([{"a": 1}]) == [{"a": 1}]
        assert flatten_rows({"a": 1}, "NONE") == [{"a": 1}]
        assert flatten_rows(None) == []

    def test_flatten_nested(self):
        assert flatten_rows([{"a": {"b": 1}, "c": 2}], "FLATTEN") == [{"a.b": 1, "c": 2}]

    def test_entries(self):
        data = {"x": {"v": 1}, "y": 2}
        assert flatten_rows(data, "ENTRIES") == [{"key": "x", "v": 1}, {"key": "y", "value": 2}]

    def test_unknown_option(self):
        with pytest.raises(ValueError):
            flatten_rows([], "PIVOT")


def test_filter_rows_pads_values():
    rows = [{"month": "03", "v": 1}, {"month": "12", "v": 2}]
    assert filter_rows(rows, {"month": 3}) == [{"month": "03", "v": 1}]


class TestProcessDhis2Data:
    def test_tabular_with_filters(self):
        data = {"headers": [{"name": "month"}, {"name": "value"}], "rows": [["03", "5"], ["04", "6"]]}
        assert process_dhis2_data(data, other_filters={"month": "4"}) == [{"month": "04", "value": "6"}]

    def test_tabular_with_join(self):
        data = {"headers": [{"name": "ou"}, {"name": "value"}], "rows": [["A", "5"], ["Z", "6"]]}
        join = [{"id": "A", "name": "Kampala"}]
        rows = process_dhis2_data(data, join_data=join, from_column="ou", to_column="id")
        assert rows == [{"id": "A", "name": "Kampala", "ou": "A", "value": "5"}]

    def test_join_needs_both_columns(self):
        data = {"headers": [{"name": "ou"}], "rows": [["A"]]}
        rows = process_dhis2_data(data, join_data=[{"id": "B"}], from_column="ou")
        assert rows == [{"ou": "A"}]

    def test_plain_payload_flattened(self):
        data = [{"id": "A", "parent": {"id": "P"}}]
        assert process_dhis2_data(data, flattening_option="FLATTEN") == [{"id": "A", "parent.id": "P"}]

    def test_plain_payload_join_then_filter(self):
        data = [{"id": "A", "month": "01"}, {"id": "B", "month": "02"}]
        join = [{"ou": "A"}, {"ou": "B"}]
        rows = process_dhis2_data(
            data, join_data=join, from_column="id", to_column="ou", other_filters={"month": 2}
        )
        assert rows == [{"ou": "B", "id": "B", "month": "02"}]
