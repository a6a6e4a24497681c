"""Joining a secondary ("joinTo") result into a primary result set."""
from typing import Any, Dict, List, Optional, Sequence

Row = Dict[str, Any]


def _first_match(rows: Sequence[Row], column: str, key: Any) -> Optional[Row]:
    for row in rows:
        if row.get(column) == key:
            return row
    return None


def merge_data_sources(
    primary: Sequence[Row],
    secondary: Sequence[Row],
    from_column: str,
    to_column: str,
    from_first: bool = False,
) -> List[Row]:
    """
    Inner-join two row sets on ``from_column`` == ``to_column``.

    By default each primary row looks up the first secondary row whose
    ``to_column`` equals its ``from_column``. With ``from_first`` the
    secondary rows drive and look up primary rows the same way. Either way
    the merged row layers primary fields over secondary fields, and rows
    without a counterpart are dropped.
    """
    driving, lookup = (secondary, primary) if from_first else (primary, secondary)
    merged = []
    for row in driving:
        key = row.get(from_column)
        if key is None:
            continue
        match = _first_match(lookup, to_column, key)
        if match is None:
            continue
        primary_row, secondary_row = (match, row) if from_first else (row, match)
        merged.append({**secondary_row, **primary_row})
    return merged
