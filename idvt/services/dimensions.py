"""
Dimension resolution: turns a query's declared dimensions plus the global
filter snapshot into flat (resource, type, dimension, value) entries.
"""
from typing import Dict, List, Mapping, NamedTuple, Optional, Sequence

from idvt.schemas.query import DataDimension, ResolvedDataQuery, ResolvedIndicator


class ResolvedDimension(NamedTuple):
    resource: str
    type: str
    dimension: str
    value: str


def resolve_dimensions(
    data_dimensions: Mapping[str, DataDimension],
    global_filters: Mapping[str, Sequence[str]],
) -> List[ResolvedDimension]:
    """
    Resolve each declared dimension to its value.

    Entries missing ``type`` or ``dimension`` are skipped. When the filter
    snapshot has the dimension key, the value is the filter's values each
    prefixed with ``prefix`` and joined by ";"; otherwise it is the prefixed key.
    Output keeps input order and is not deduplicated.
    """
    resolved = []
    for key, dimension in data_dimensions.items():
        if not dimension.type or not dimension.dimension:
            continue
        prefix = dimension.prefix or ""
        if key in global_filters:
            value = ";".join(f"{prefix}{v}" for v in global_filters[key])
        else:
            value = f"{prefix}{key}"
        resolved.append(
            ResolvedDimension(dimension.resource, dimension.type, dimension.dimension, value)
        )
    return resolved


def _unique(values) -> List[str]:
    return list(dict.fromkeys(values))


def _scoped_keys(query: Optional[ResolvedDataQuery], resource: str) -> List[str]:
    if query is None:
        return []
    keys = [key for key, d in query.data_dimensions.items() if d.resource == resource]
    keys += [str(e.value) for column, e in query.expressions.items() if column == resource]
    return keys


def find_levels_and_ous(indicator: Optional[ResolvedIndicator]) -> Dict[str, List[str]]:
    """Organisation units and levels an indicator is scoped to, deduplicated."""
    if indicator is None:
        return {"levels": [], "ous": []}
    sides = (indicator.denominator, indicator.numerator)
    ous = _unique(key for side in sides for key in _scoped_keys(side, "ou"))
    levels = _unique(key for side in sides for key in _scoped_keys(side, "oul"))
    return {"levels": levels, "ous": ous}


def cycle_key(
    indicators: Sequence[ResolvedIndicator],
    global_filters: Mapping[str, Sequence[str]],
) -> List[str]:
    """
    Everything a visualization's result depends on: each dimension key and
    expression value, with reserved ids replaced by their selected values.
    """
    key = []
    for indicator in indicators:
        ids = []
        for side in (indicator.numerator, indicator.denominator):
            if side is None:
                continue
            ids.extend(side.data_dimensions.keys())
            ids.extend(str(e.value) for e in side.expressions.values())
        for id_ in _unique(ids):
            key.extend(global_filters[id_] if id_ in global_filters else [id_])
    return _unique(key)
