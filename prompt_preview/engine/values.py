"""Runtime value model for the template engine.

Template values are plain Python data: None, bool, float, str, list and
dict with string keys. This module converts host data into that shape
and implements the truthiness, equality, coercion and stringification
rules templates rely on. None of the operations here raise on bad data;
failed numeric coercion yields NaN, which is falsy and renders as "".

Example:
    >>> from prompt_preview.engine.values import to_value, is_truthy, stringify
    >>> value = to_value({"level": 10, "tags": ()})
    >>> value
    {'level': 10.0, 'tags': []}
    >>> is_truthy(value["tags"])
    False
    >>> stringify(value["level"])
    '10'
"""

from __future__ import annotations

import math
from collections.abc import Mapping
from typing import Any, Union

from pydantic import BaseModel

Value = Union[None, bool, float, str, list["Value"], dict[str, "Value"]]

NAN = float("nan")


def to_value(obj: Any) -> Value:
    """Convert host data into a template value.

    Integers become floats, tuples become lists, mappings become dicts
    with string keys, pydantic models are dumped. Anything else is
    converted with str().

    Args:
        obj: Host object.

    Returns:
        Equivalent template value.
    """
    if obj is None or isinstance(obj, (bool, str)):
        return obj
    if isinstance(obj, (int, float)):
        return float(obj)
    if isinstance(obj, BaseModel):
        return to_value(obj.model_dump())
    if isinstance(obj, Mapping):
        return {str(key): to_value(item) for key, item in obj.items()}
    if isinstance(obj, (list, tuple)):
        return [to_value(item) for item in obj]
    return str(obj)


def to_host(value: Value) -> Any:
    """Convert a template value back to host data.

    Integral floats come back as int so JSON output stays clean.
    """
    if isinstance(value, float) and value.is_integer():
        return int(value)
    if isinstance(value, list):
        return [to_host(item) for item in value]
    if isinstance(value, dict):
        return {key: to_host(item) for key, item in value.items()}
    return value


def is_number(value: Value) -> bool:
    # bool is an int subclass in Python, never a template number
    return isinstance(value, (int, float)) and not isinstance(value, bool)


def is_truthy(value: Value) -> bool:
    """Template truthiness.

    False for null, false, 0, NaN, "", [] and {}; true otherwise.
    """
    if value is None or value is False:
        return False
    if is_number(value):
        return value != 0 and not math.isnan(value)
    if isinstance(value, (str, list, dict)):
        return len(value) > 0
    return True


def to_number(value: Value) -> float:
    """Coerce a value to a number, NaN when it has no numeric reading."""
    if isinstance(value, bool):
        return 1.0 if value else 0.0
    if is_number(value):
        return float(value)
    if isinstance(value, str):
        text = value.strip()
        if not text:
            return NAN
        try:
            return float(text)
        except ValueError:
            return NAN
    return NAN


def equals(left: Value, right: Value) -> bool:
    """Structural equality with number/numeric-string coercion."""
    if left is None or right is None:
        return left is None and right is None
    if isinstance(left, bool) or isinstance(right, bool):
        return isinstance(left, bool) and isinstance(right, bool) and left == right
    if is_number(left) and is_number(right):
        return float(left) == float(right)
    if is_number(left) and isinstance(right, str):
        return float(left) == to_number(right)
    if isinstance(left, str) and is_number(right):
        return to_number(left) == float(right)
    if isinstance(left, list) and isinstance(right, list):
        return len(left) == len(right) and all(equals(a, b) for a, b in zip(left, right))
    if isinstance(left, dict) and isinstance(right, dict):
        return left.keys() == right.keys() and all(equals(left[k], right[k]) for k in left)
    if type(left) is not type(right):
        return False
    return left == right


def compare(op: str, left: Value, right: Value) -> bool:
    """Ordering comparison; strings order lexicographically, the rest numerically."""
    if isinstance(left, str) and isinstance(right, str):
        a: Any = left
        b: Any = right
    else:
        a = to_number(left)
        b = to_number(right)
        if math.isnan(a) or math.isnan(b):
            return False
    if op == "<":
        return a < b
    if op == "<=":
        return a <= b
    if op == ">":
        return a > b
    if op == ">=":
        return a >= b
    raise ValueError(f"Unknown comparison operator: {op}")


def add(left: Value, right: Value) -> Value:
    if isinstance(left, str) or isinstance(right, str):
        return stringify(left) + stringify(right)
    if isinstance(left, list) and isinstance(right, list):
        return left + right
    return to_number(left) + to_number(right)


def arithmetic(op: str, left: Value, right: Value) -> float:
    """Numeric -, *, / and %. Division or modulo by zero yields NaN."""
    a = to_number(left)
    b = to_number(right)
    if op == "-":
        return a - b
    if op == "*":
        return a * b
    if b == 0 or math.isnan(b):
        return NAN
    if op == "/":
        return a / b
    if op == "%":
        return math.fmod(a, b)
    raise ValueError(f"Unknown arithmetic operator: {op}")


def contains(container: Value, item: Value) -> bool:
    """Membership test behind the `in` operator."""
    if isinstance(container, str):
        return stringify(item) in container
    if isinstance(container, list):
        return any(equals(item, element) for element in container)
    if isinstance(container, dict):
        return isinstance(item, str) and item in container
    return False


def format_number(number: float) -> str:
    if math.isnan(number):
        return ""
    if math.isinf(number):
        return "Infinity" if number > 0 else "-Infinity"
    if number.is_integer():
        return str(int(number))
    return repr(number)


def stringify(value: Value) -> str:
    """Render a value as output text.

    null -> "", booleans -> "true"/"false", integral numbers without a
    trailing ".0", lists and maps -> "".
    """
    if value is None:
        return ""
    if isinstance(value, bool):
        return "true" if value else "false"
    if is_number(value):
        return format_number(float(value))
    if isinstance(value, str):
        return value
    return ""
