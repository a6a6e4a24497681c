"""
Normalization of DHIS2 and API responses into flat rows.

DHIS2 answers analytics and SQL view queries with ``{headers, rows}`` (SQL
views wrap it in ``listGrid``); rows are zipped with the header names, and
when ``metaData.items`` is present every column but the last also gets a
``<header>-name`` label column.
"""
import logging
from typing import Any, Dict, List, Mapping, Optional, Sequence

import pandas as pd

from idvt.services.merge import merge_data_sources

logger = logging.getLogger(__name__)

Row = Dict[str, Any]

FLATTEN_NONE = "NONE"
FLATTEN_NESTED = "FLATTEN"
FLATTEN_ENTRIES = "ENTRIES"


def _as_records(data: Any) -> List[Any]:
    if data is None:
        return []
    if isinstance(data, Mapping):
        return [dict(data)]
    return list(data)


def _flatten_record(record: Any) -> Any:
    if not isinstance(record, Mapping) or not record:
        return record
    return pd.json_normalize(dict(record), sep=".").to_dict("records")[0]


def _entries(data: Any) -> List[Row]:
    if not isinstance(data, Mapping):
        return _as_records(data)
    rows = []
    for key, value in data.items():
        if isinstance(value, Mapping):
            rows.append({"key": key, **value})
        else:
            rows.append({"key": key, "value": value})
    return rows


def flatten_rows(data: Any, flattening_option: Optional[str] = None) -> List[Any]:
    """
    Reshape a response into a list of rows.

    Options:
        None / "" / "NONE": a list passes through, a mapping becomes one row
        "FLATTEN": nested mappings become dotted columns ({"a": {"b": 1}} -> {"a.b": 1})
        "ENTRIES": a mapping of key -> object becomes rows carrying a "key" column
    """
    option = (flattening_option or FLATTEN_NONE).upper()
    if option == FLATTEN_NONE:
        return _as_records(data)
    if option == FLATTEN_NESTED:
        return [_flatten_record(record) for record in _as_records(data)]
    if option == FLATTEN_ENTRIES:
        return _entries(data)
    raise ValueError(f"Unknown flattening option: {flattening_option}")


def filter_rows(rows: Sequence[Row], other_filters: Mapping[str, Any]) -> List[Row]:
    """Keep rows where every filter column equals the filter value left-padded to two digits."""
    return [
        row for row in rows
        if all(row.get(key) == str(value).rjust(2, "0") for key, value in other_filters.items())
    ]


def tabular_rows(data: Mapping[str, Any]) -> Optional[List[Row]]:
    """Rows of a headers+rows (or listGrid) response, or None for any other shape."""
    if not isinstance(data, Mapping) or not ("headers" in data or "listGrid" in data):
        return None
    grid = data.get("listGrid") or data
    headers = grid.get("headers")
    rows = grid.get("rows")
    if headers is None or rows is None:
        return None

    names = [header["name"] for header in headers]
    items = (data.get("metaData") or {}).get("items")
    processed = []
    for row in rows:
        record: Row = {}
        if items:
            for index, value in enumerate(row[:-1]):
                record[f"{names[index]}-name"] = (items.get(value) or {}).get("name", "")
        record.update(zip(names, row))
        processed.append(record)
    return processed


def process_dhis2_data(
    data: Any,
    flattening_option: Optional[str] = None,
    join_data: Optional[Sequence[Row]] = None,
    from_column: Optional[str] = None,
    to_column: Optional[str] = None,
    from_first: bool = False,
    other_filters: Optional[Mapping[str, Any]] = None,
) -> List[Row]:
    """
    Normalize a DHIS2 response and apply the join or the extra filters.

    Args:
        data: Decoded JSON response
        flattening_option: Reshaping applied to the rows (see flatten_rows)
        join_data: Rows of the joinTo query, if any
        from_column / to_column / from_first: Join parameters
        other_filters: Column -> value filters applied when there is no join

    Returns:
        List of flat rows
    """
    should_join = join_data is not None and bool(from_column) and bool(to_column)
    rows = tabular_rows(data)

    if rows is not None:
        processed = flatten_rows(rows, flattening_option)
        if should_join:
            return merge_data_sources(processed, join_data, from_column, to_column, from_first)
        if other_filters:
            return filter_rows(processed, other_filters)
        return processed

    processed = flatten_rows(data, flattening_option)
    if should_join:
        merged = merge_data_sources(processed, join_data, from_column, to_column, from_first)
        if other_filters:
            return filter_rows(merged, other_filters)
        return merged
    return processed
