"""
Global filters: reserved dimension ids and the immutable snapshot built from
the dashboard selection.

A query references a global filter by using one of the reserved ids as a
dimension key or inside an expression value; the engine swaps the id for the
selected values.
"""
import itertools
import logging
from datetime import date, timedelta
from types import MappingProxyType
from typing import Any, Iterable, Iterator, List, Mapping, Optional, Tuple

from idvt.schemas.selection import Selection

logger = logging.getLogger(__name__)

PERIOD = "m5D13FqKZwN"
LEVEL = "GQhi6pRnTKF"
ORGANISATION_UNIT = "mclvD0Z9mfT"
MIN_SUBLEVEL = "ww1uoD3DsYg"
ORGANISATION_UNIT_GROUP = "of2WvtwqbHR"
DATA_ELEMENT = "h9oh0VhweQM"
DATA_ELEMENT_GROUP = "JsPfHe1QkJe"
DATA_ELEMENT_GROUP_SET = "HdiJ61vwqTX"
CATEGORY_OPTION_COMBO = "WSiMOMi4QWh"
ATTRIBUTION_KEYS = "DCtmg8VKCTI"
ATTRIBUTION_VALUES = "ZqQdTbcqQhJ"

GLOBAL_IDS = {
    PERIOD: "Period",
    LEVEL: "Organisation unit level",
    ORGANISATION_UNIT: "Organisation unit",
    MIN_SUBLEVEL: "Minimum sublevel",
    ORGANISATION_UNIT_GROUP: "Organisation unit group",
    DATA_ELEMENT: "Data element",
    DATA_ELEMENT_GROUP: "Data element group",
    DATA_ELEMENT_GROUP_SET: "Data element group set",
    CATEGORY_OPTION_COMBO: "Category option combo",
    ATTRIBUTION_KEYS: "Attribution categories",
    ATTRIBUTION_VALUES: "Attribution options",
}


class GlobalFilters(Mapping[str, Tuple[str, ...]]):
    """Read-only mapping of reserved id -> selected values, taken once per cycle."""

    __slots__ = ("_values",)

    def __init__(self, values: Optional[Mapping[str, Iterable[Any]]] = None):
        self._values = MappingProxyType(
            {key: _as_tuple(value) for key, value in (values or {}).items()}
        )

    def __getitem__(self, key: str) -> Tuple[str, ...]:
        return self._values[key]

    def __iter__(self) -> Iterator[str]:
        return iter(self._values)

    def __len__(self) -> int:
        return len(self._values)

    def __repr__(self) -> str:
        return f"GlobalFilters({dict(self._values)!r})"

    def joined(self, key: str, separator: str = "-") -> str:
        """Values of ``key`` joined by ``separator``, or "" when the filter is not set."""
        return separator.join(self._values.get(key, ()))

    def with_overrides(self, overrides: Optional[Mapping[str, Any]]) -> "GlobalFilters":
        """A new snapshot where each overridden key carries the override value(s)."""
        if not overrides:
            return self
        merged = dict(self._values)
        merged.update({key: _as_tuple(value) for key, value in overrides.items()})
        return GlobalFilters(merged)


def _as_tuple(value: Any) -> Tuple[str, ...]:
    if value is None:
        return ()
    if isinstance(value, (list, tuple, set, frozenset)):
        return tuple(str(v) for v in value)
    return (str(value),)


# ---------------------------------------------------------------------------
# Relative periods
# ---------------------------------------------------------------------------

def _week_id(day: date) -> str:
    year, week, _ = day.isocalendar()
    return f"{year}W{week}"


def _shift_month(year: int, month: int, delta: int) -> Tuple[int, int]:
    index = year * 12 + (month - 1) + delta
    return index // 12, index % 12 + 1


def _month_id(year: int, month: int) -> str:
    return f"{year}{month:02d}"


def _quarter_id(year: int, quarter: int) -> str:
    return f"{year}Q{quarter}"


def _last_months(today: date, count: int) -> List[str]:
    return [
        _month_id(*_shift_month(today.year, today.month, -offset))
        for offset in range(count, 0, -1)
    ]


def _last_quarters(today: date, count: int) -> List[str]:
    current = today.year * 4 + (today.month - 1) // 3
    return [
        _quarter_id(index // 4, index % 4 + 1)
        for index in range(current - count, current)
    ]


def _last_weeks(today: date, count: int) -> List[str]:
    return [_week_id(today - timedelta(weeks=offset)) for offset in range(count, 0, -1)]


RELATIVE_PERIODS = {
    "THIS_WEEK": lambda today: [_week_id(today)],
    "LAST_WEEK": lambda today: _last_weeks(today, 1),
    "LAST_4_WEEKS": lambda today: _last_weeks(today, 4),
    "THIS_MONTH": lambda today: [_month_id(today.year, today.month)],
    "LAST_MONTH": lambda today: _last_months(today, 1),
    "LAST_3_MONTHS": lambda today: _last_months(today, 3),
    "LAST_6_MONTHS": lambda today: _last_months(today, 6),
    "LAST_12_MONTHS": lambda today: _last_months(today, 12),
    "THIS_QUARTER": lambda today: [_quarter_id(today.year, (today.month - 1) // 3 + 1)],
    "LAST_QUARTER": lambda today: _last_quarters(today, 1),
    "LAST_4_QUARTERS": lambda today: _last_quarters(today, 4),
    "THIS_YEAR": lambda today: [str(today.year)],
    "LAST_YEAR": lambda today: [str(today.year - 1)],
    "LAST_5_YEARS": lambda today: [str(year) for year in range(today.year - 5, today.year)],
}


def relative_periods(token: str, today: Optional[date] = None) -> List[str]:
    """
    Expand a relative period token into DHIS2 period ids, oldest first.

    Unknown tokens are returned as-is since the analytics API understands
    most relative periods natively.
    """
    expand = RELATIVE_PERIODS.get(token)
    if expand is None:
        logger.debug("Passing relative period %s through unexpanded", token)
        return [token]
    return expand(today or date.today())


# ---------------------------------------------------------------------------
# Snapshot from selection
# ---------------------------------------------------------------------------

def attribution_combos(selection: Selection) -> List[str]:
    """Category option combos matching every combination of the attribution options."""
    combo = selection.category_combo
    if not combo or not selection.attribution:
        return []
    if len(combo.categories) != len(selection.attribution):
        return []
    options = [value.split(",") for value in selection.attribution.values()]
    found = []
    for combination in itertools.product(*options):
        for option_combo in combo.category_option_combos:
            if all(o.id in combination for o in option_combo.category_options):
                found.append(option_combo.id)
                break
    return found


def build_global_filters(selection: Selection, today: Optional[date] = None) -> GlobalFilters:
    """
    Derive the global filter snapshot from the dashboard selection.

    Args:
        selection: Periods, organisation units, levels, groups, data elements and attribution
        today: Reference date for relative periods (defaults to today)

    Returns:
        GlobalFilters keyed by the reserved ids
    """
    periods = []
    for period in selection.periods:
        if period.type == "relative":
            periods.extend(relative_periods(period.value, today))
        else:
            periods.append(period.value)

    filters = {
        PERIOD: periods,
        ORGANISATION_UNIT: selection.organisations,
    }
    if selection.levels:
        filters[LEVEL] = [sorted(selection.levels)[-1]]
    if selection.min_sublevel is not None:
        filters[MIN_SUBLEVEL] = [selection.min_sublevel]
    if selection.groups:
        filters[ORGANISATION_UNIT_GROUP] = selection.groups
    if selection.data_elements:
        filters[DATA_ELEMENT] = [de.id for de in selection.data_elements]
    if selection.data_element_groups:
        filters[DATA_ELEMENT_GROUP] = selection.data_element_groups
    if selection.data_element_group_sets:
        filters[DATA_ELEMENT_GROUP_SET] = selection.data_element_group_sets

    combos = attribution_combos(selection)
    if combos:
        filters[CATEGORY_OPTION_COMBO] = combos
    if selection.attribution:
        filters[ATTRIBUTION_KEYS] = list(selection.attribution.keys())
        filters[ATTRIBUTION_VALUES] = [
            option for value in selection.attribution.values() for option in value.split(",")
        ]
    return GlobalFilters(filters)
