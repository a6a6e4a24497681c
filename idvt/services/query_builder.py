"""
Query building: resolved dimensions and expressions -> DHIS2 resource paths.

One builder per QueryType:
- ANALYTICS: ``analytics.json?dimension=dx:a;b&filter=pe:2023``
- SQL_VIEW: ``sqlViews/<id>/data.json?var=col:value&paging=false``
- API: the stored query text, untouched
"""
import logging
import re
from typing import Callable, Dict, List, Mapping, Optional, Sequence, Tuple

from idvt.schemas.query import Expression, QueryType, ResolvedDataQuery, ResolvedIndicator
from idvt.services.dimensions import ResolvedDimension, resolve_dimensions
from idvt.services.expression import evaluate, format_number

logger = logging.getLogger(__name__)

SQL_VARIABLE = re.compile(r"\$\{(\w+)\}")
CALC_MARKER = "calc"

Filters = Mapping[str, Sequence[str]]


def build_analytics_params(resolved: Sequence[ResolvedDimension]) -> str:
    """
    Group resolved dimensions by (type, dimension) and render them as query pairs.

    A group with an empty dimension yields one ``type=value`` pair per distinct
    value; any other group yields ``type=dimension:v1;v2``.
    """
    groups: Dict[Tuple[str, str], List[str]] = {}
    for entry in resolved:
        groups.setdefault((entry.type, entry.dimension), []).append(entry.value)

    pairs = []
    for (type_, dimension), values in groups.items():
        if dimension == "":
            pairs.extend(f"{type_}={value}" for value in dict.fromkeys(values))
        else:
            pairs.append(f"{type_}={dimension}:{';'.join(values)}")
    return "&".join(pairs)


def parse_analytics_params(params: str) -> Dict[Tuple[str, str], List[str]]:
    """Inverse of build_analytics_params: (type, dimension) -> values."""
    parsed: Dict[Tuple[str, str], List[str]] = {}
    for pair in filter(None, params.split("&")):
        type_, _, rest = pair.partition("=")
        dimension, sep, values = rest.partition(":")
        if not sep:
            dimension, values = "", rest
        parsed.setdefault((type_, dimension), []).extend(values.split(";"))
    return parsed


def get_search_params(sql: Optional[str]) -> List[str]:
    """Names of the ``${variable}`` placeholders in a SQL view, in first-seen order."""
    if not sql:
        return []
    return list(dict.fromkeys(SQL_VARIABLE.findall(sql)))


def resolve_calc(text: str) -> str:
    """
    Evaluate the ``calc`` suffix of a substituted value.

    "5+calc2*3" -> "5+6": everything from the first "calc" on, with the marker
    removed, is evaluated and put back in its place.
    """
    index = text.find(CALC_MARKER)
    if index == -1:
        return text
    suffix = text[index:]
    computed = evaluate(suffix.replace(CALC_MARKER, ""))
    return text[:index] + format_number(computed)


def substitute_expression(expression: Expression, global_filters: Filters) -> Optional[str]:
    """
    The value a SQL view variable takes for one expression, or None to keep the default.
    """
    value = "" if expression.value is None else str(expression.value)
    if expression.is_global:
        if value in global_filters:
            return "-".join(global_filters[value])
        return None
    if not value:
        return None

    matching = [global_id for global_id in global_filters if global_id in value]
    if not matching:
        return value
    for global_id in matching:
        value = value.replace(global_id, "-".join(global_filters[global_id]))
    return resolve_calc(value)


def build_sql_view_params(
    expressions: Mapping[str, Expression],
    global_filters: Filters,
    defaults: Mapping[str, str],
) -> str:
    """Render ``var=<column>:<value>`` pairs for a SQL view, joined by "&"."""
    params = dict(defaults)
    for column, expression in expressions.items():
        value = substitute_expression(expression, global_filters)
        if value is not None:
            params[column] = value
    return "&".join(f"var={column}:{value}" for column, value in params.items())


def _analytics_query(query: ResolvedDataQuery, global_filters: Filters) -> Optional[str]:
    params = build_analytics_params(resolve_dimensions(query.data_dimensions, global_filters))
    if not params:
        return None
    return f"analytics.json?{params}"


def _sql_view_query(query: ResolvedDataQuery, global_filters: Filters) -> Optional[str]:
    sql_view_id = next(iter(query.data_dimensions), None)
    if sql_view_id is None:
        return None
    defaults = {name: "NULL" for name in get_search_params(query.query)}
    params = build_sql_view_params(query.expressions, global_filters, defaults)
    if params:
        return f"sqlViews/{sql_view_id}/data.json?{params}&paging=false"
    return f"sqlViews/{sql_view_id}/data.json"


def _api_query(query: ResolvedDataQuery, global_filters: Filters) -> Optional[str]:
    return query.query


QUERY_BUILDERS: Dict[QueryType, Callable[[ResolvedDataQuery, Filters], Optional[str]]] = {
    QueryType.ANALYTICS: _analytics_query,
    QueryType.SQL_VIEW: _sql_view_query,
    QueryType.API: _api_query,
}

_missing_builders = set(QueryType) - set(QUERY_BUILDERS)
if _missing_builders:
    raise RuntimeError(f"No query builder for {sorted(t.value for t in _missing_builders)}")


def build_query(query: ResolvedDataQuery, global_filters: Filters) -> Optional[str]:
    """
    Build the resource path for a data query.

    Returns None when the query declares no dimensions (ANALYTICS, SQL_VIEW)
    or has no text (API).
    """
    return QUERY_BUILDERS[query.type](query, global_filters)


def build_indicator_queries(
    indicators: Sequence[ResolvedIndicator], global_filters: Filters
) -> List[Dict[str, str]]:
    """Per indicator, the numerator and denominator paths; halves without a query are omitted."""
    built = []
    for indicator in indicators:
        queries = {}
        for side in ("numerator", "denominator"):
            data_query = getattr(indicator, side)
            if data_query is None:
                continue
            path = build_query(data_query, global_filters)
            if path:
                queries[side] = path
        built.append(queries)
    return built
