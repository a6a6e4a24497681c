"""Tests for the global filter snapshot and relative periods."""
from datetime import date

import pytest

from idvt.schemas.selection import Selection
from idvt.services import global_filters as gf
from idvt.services.global_filters import (
    GlobalFilters,
    attribution_combos,
    build_global_filters,
    relative_periods,
)

TODAY = date(2024, 2, 15)


class TestGlobalFilters:
    def test_values_are_string_tuples(self):
        filters = GlobalFilters({gf.PERIOD: ["2023", 2024], gf.MIN_SUBLEVEL: 0})
        assert filters[gf.PERIOD] == ("2023", "2024")
        assert filters[gf.MIN_SUBLEVEL] == ("0",)

    def test_is_read_only(self):
        filters = GlobalFilters({gf.PERIOD: ["2023"]})
        with pytest.raises(TypeError):
            filters[gf.PERIOD] = ("2024",)

    def test_source_mapping_changes_do_not_leak(self):
        source = {gf.PERIOD: ["2023"]}
        filters = GlobalFilters(source)
        source[gf.PERIOD].append("2024")
        assert filters[gf.PERIOD] == ("2023",)

    def test_joined(self):
        filters = GlobalFilters({gf.ORGANISATION_UNIT: ["A", "B"]})
        assert filters.joined(gf.ORGANISATION_UNIT) == "A-B"
        assert filters.joined(gf.LEVEL) == ""

    def test_with_overrides_returns_new_snapshot(self):
        filters = GlobalFilters({gf.PERIOD: ["2023"], gf.LEVEL: ["3"]})
        overridden = filters.with_overrides({gf.PERIOD: "LAST_YEAR"})
        assert overridden[gf.PERIOD] == ("LAST_YEAR",)
        assert overridden[gf.LEVEL] == ("3",)
        assert filters[gf.PERIOD] == ("2023",)

    def test_no_overrides_returns_same_snapshot(self):
        filters = GlobalFilters({gf.PERIOD: ["2023"]})
        assert filters.with_overrides({}) is filters


class TestRelativePeriods:
    def test_last_3_months_oldest_first(self):
        assert relative_periods("LAST_3_MONTHS", TODAY) == ["202311", "202312", "202401"]

    def test_last_4_quarters(self):
        assert relative_periods("LAST_4_QUARTERS", TODAY) == ["2023Q1", "2023Q2", "2023Q3", "2023Q4"]

    def test_this_quarter(self):
        assert relative_periods("THIS_QUARTER", date(2024, 8, 1)) == ["2024Q3"]

    def test_last_5_years(self):
        assert relative_periods("LAST_5_YEARS", TODAY) == ["2019", "2020", "2021", "2022", "2023"]

    def test_this_week_uses_iso_week(self):
        assert relative_periods("THIS_WEEK", date(2024, 1, 3)) == ["2024W1"]

    def test_unknown_token_passes_through(self):
        assert relative_periods("LAST_52_WEEKS", TODAY) == ["LAST_52_WEEKS"]


def _selection(**kwargs) -> Selection:
    return Selection(**kwargs)


class TestBuildGlobalFilters:
    def test_periods_and_organisations_always_present(self):
        filters = build_global_filters(_selection())
        assert filters[gf.PERIOD] == ()
        assert filters[gf.ORGANISATION_UNIT] == ()
        assert gf.LEVEL not in filters
        assert gf.ORGANISATION_UNIT_GROUP not in filters

    def test_fixed_and_relative_periods(self):
        selection = _selection(periods=[
            {"type": "fixed", "value": "2022"},
            {"type": "relative", "value": "LAST_MONTH"},
        ])
        filters = build_global_filters(selection, TODAY)
        assert filters[gf.PERIOD] == ("2022", "202401")

    def test_deepest_level_selected(self):
        filters = build_global_filters(_selection(levels=["2", "4", "3"]))
        assert filters[gf.LEVEL] == ("4",)

    def test_optional_selections(self):
        selection = _selection(
            organisations=["A"],
            min_sublevel=0,
            groups=["g1"],
            data_elements=[{"id": "de1", "name": "ANC 1"}],
            data_element_groups=["deg1"],
            data_element_group_sets=["degs1"],
        )
        filters = build_global_filters(selection)
        assert filters[gf.ORGANISATION_UNIT] == ("A",)
        assert filters[gf.MIN_SUBLEVEL] == ("0",)
        assert filters[gf.ORGANISATION_UNIT_GROUP] == ("g1",)
        assert filters[gf.DATA_ELEMENT] == ("de1",)
        assert filters[gf.DATA_ELEMENT_GROUP] == ("deg1",)
        assert filters[gf.DATA_ELEMENT_GROUP_SET] == ("degs1",)

    def test_attribution(self):
        selection = _selection(
            attribution={"c1": "a,b", "c2": "x"},
            category_combo={
                "categories": [{"id": "c1"}, {"id": "c2"}],
                "category_option_combos": [
                    {"id": "coc1", "category_options": [{"id": "a"}, {"id": "x"}]},
                    {"id": "coc2", "category_options": [{"id": "b"}, {"id": "x"}]},
                    {"id": "coc3", "category_options": [{"id": "a"}, {"id": "y"}]},
                ],
            },
        )
        assert attribution_combos(selection) == ["coc1", "coc2"]
        filters = build_global_filters(selection)
        assert filters[gf.CATEGORY_OPTION_COMBO] == ("coc1", "coc2")
        assert filters[gf.ATTRIBUTION_KEYS] == ("c1", "c2")
        assert filters[gf.ATTRIBUTION_VALUES] == ("a", "b", "x")

    def test_attribution_needs_every_category(self):
        selection = _selection(
            attribution={"c1": "a"},
            category_combo={"categories": [{"id": "c1"}, {"id": "c2"}]},
        )
        assert attribution_combos(selection) == []
