"""
Indicator computation: pair numerator rows with denominator rows and compute
the ratio (or custom formula) per row.

Rows are paired by composite key, the sorted concatenation of every value
except ``value`` and ``total``. A row with no denominator partner, or with
a missing or zero side, gets value 0.
"""
import asyncio
import logging
from typing import Any, Dict, List, Mapping, Optional, Sequence

from idvt.schemas.query import ResolvedIndicator
from idvt.services.dispatcher import QueryDispatcher
from idvt.services.expression import Number, evaluate, format_number
from idvt.services.normalizer import flatten_rows

logger = logging.getLogger(__name__)

Row = Dict[str, Any]

VALUE_FIELDS = ("value", "total")


def composite_key(row: Mapping[str, Any]) -> str:
    """Sorted, concatenated string of every non-value field of a row."""
    return "".join(sorted(str(v) for k, v in row.items() if k not in VALUE_FIELDS))


def _is_missing(value: Any) -> bool:
    return value is None or value == ""


def row_value(row: Mapping[str, Any]) -> Any:
    """The row's ``value``, falling back to ``total``."""
    value = row.get("value")
    if _is_missing(value):
        value = row.get("total")
    return value


def compute_value(indicator: ResolvedIndicator, numerator: Any, denominator: Any) -> Number:
    """
    Compute one indicator value.

    Missing values give 0. Custom indicators evaluate the factor with ``x``
    and ``y`` replaced by numerator and denominator. Otherwise a zero
    denominator gives 0 and the quotient is evaluated with the factor
    appended ("*100").
    """
    if _is_missing(numerator) or _is_missing(denominator):
        return 0
    if indicator.custom:
        expression = indicator.factor.replace("x", str(numerator)).replace("y", str(denominator))
        return evaluate(expression)
    if float(denominator) == 0:
        return 0
    quotient = float(numerator) / float(denominator)
    if indicator.factor != "1":
        return evaluate(f"{format_number(quotient)}{indicator.factor}")
    return quotient


def compute_indicator(
    indicator: ResolvedIndicator,
    numerator_rows: Optional[Sequence[Row]],
    denominator_rows: Optional[Sequence[Row]],
) -> Optional[List[Row]]:
    """
    Compute indicator values for every numerator row.

    Returns:
        Numerator rows with ``value`` replaced by the computed value, or the
        numerator rows unchanged when there is no denominator
    """
    if numerator_rows is None or denominator_rows is None:
        return numerator_rows

    denominators: Dict[str, Row] = {}
    for row in denominator_rows:
        denominators.setdefault(composite_key(row), row)

    computed = []
    for row in numerator_rows:
        match = denominators.get(composite_key(row))
        if match is None:
            value = 0
        else:
            value = compute_value(indicator, row_value(row), row_value(match))
        computed.append({**row, "value": value})
    return computed


async def query_indicator(
    dispatcher: QueryDispatcher,
    indicator: ResolvedIndicator,
    global_filters: Mapping[str, Sequence[str]],
    other_filters: Optional[Mapping[str, Any]] = None,
) -> Any:
    """Run numerator and denominator concurrently and compute the indicator."""
    numerator, denominator = await asyncio.gather(
        dispatcher.execute(indicator.numerator, global_filters, other_filters),
        dispatcher.execute(indicator.denominator, global_filters, other_filters),
    )
    if numerator is not None and denominator is not None:
        return compute_indicator(indicator, flatten_rows(numerator), flatten_rows(denominator))
    return numerator
