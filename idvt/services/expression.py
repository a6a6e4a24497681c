"""
Arithmetic evaluation for indicator factors and SQL-view ``calc`` segments.

Expressions arrive fully substituted (numbers and ``+ - * / ^`` with
parentheses); ``^`` means exponentiation.
"""
import logging
from typing import Union

import pandas as pd

from idvt.services.errors import ExpressionError

logger = logging.getLogger(__name__)

Number = Union[int, float]


def evaluate(expression: str) -> Number:
    """
    Evaluate an arithmetic expression.

    Args:
        expression: Text such as "2*100" or "(10/2)^2"

    Returns:
        The result as a plain Python int or float

    Raises:
        ExpressionError: if the text is empty or not a valid arithmetic expression
    """
    if expression is None or not str(expression).strip():
        raise ExpressionError(str(expression), "empty expression")
    text = str(expression).replace("^", "**")
    try:
        result = pd.eval(text, engine="python", parser="python", local_dict={}, global_dict={})
    except Exception as e:
        raise ExpressionError(str(expression)) from e
    if hasattr(result, "item"):
        result = result.item()
    if not isinstance(result, (int, float)) or isinstance(result, bool):
        raise ExpressionError(str(expression), "not a number")
    return result


def format_number(value: Number) -> str:
    """Render a number for string substitution: 6.0 -> "6", 2.5 -> "2.5"."""
    if isinstance(value, float) and value.is_integer():
        return str(int(value))
    return str(value)
