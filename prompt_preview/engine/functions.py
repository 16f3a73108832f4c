"""Function registry and built-in template functions.

Templates may only call functions present in the registry handed to the
parser; anything else is rejected before rendering starts. Built-ins
never raise on bad data: they fall back to null, empty or false so that
previews work against incomplete scenarios.

Example:
    >>> from prompt_preview.engine.functions import default_registry
    >>> registry = default_registry()
    >>> registry.get("upper").call(None, ["lydia"])
    'LYDIA'
"""

from __future__ import annotations

import inspect
import json
import math
import re
from collections.abc import Callable, Iterable
from dataclasses import dataclass

from prompt_preview.engine.errors import RenderLimitExceeded
from prompt_preview.engine.scope import MISSING, Scope
from prompt_preview.engine.values import (
    Value,
    equals,
    is_number,
    stringify,
    to_host,
    to_number,
)

# Longest list range() may build
RANGE_LIMIT = 100_000

SHORT_TIME_PATTERN = re.compile(r"(\d{1,2}:\d{2}\s*(?:AM|PM))", re.IGNORECASE)


@dataclass(frozen=True)
class Function:
    """Registered template function.

    Attributes:
        name: Name templates call it by.
        func: Implementation taking template values.
        pass_scope: Whether the current Scope is passed as first argument.
    """

    name: str
    func: Callable[..., Value]
    pass_scope: bool = False

    def accepts(self, count: int) -> bool:
        """Check whether the signature accepts ``count`` template arguments."""
        placeholders = [None] * (count + (1 if self.pass_scope else 0))
        try:
            inspect.signature(self.func).bind(*placeholders)
        except TypeError:
            return False
        return True

    def call(self, scope: Scope | None, args: list[Value]) -> Value:
        if self.pass_scope:
            return self.func(scope, *args)
        return self.func(*args)


class FunctionRegistry:
    """Name -> Function mapping consulted by the expression parser."""

    def __init__(self, functions: Iterable[Function] = ()) -> None:
        self._functions: dict[str, Function] = {f.name: f for f in functions}

    def register(
        self, name: str, func: Callable[..., Value], *, pass_scope: bool = False
    ) -> None:
        self._functions[name] = Function(name, func, pass_scope)

    def function(
        self, name: str, *, pass_scope: bool = False
    ) -> Callable[[Callable[..., Value]], Callable[..., Value]]:
        """Decorator form of ``register``."""

        def decorator(func: Callable[..., Value]) -> Callable[..., Value]:
            self.register(name, func, pass_scope=pass_scope)
            return func

        return decorator

    def get(self, name: str) -> Function | None:
        return self._functions.get(name)

    def names(self) -> list[str]:
        return sorted(self._functions)

    def extended(self, other: FunctionRegistry) -> FunctionRegistry:
        """Return a new registry with ``other``'s functions layered on top."""
        return FunctionRegistry([*self._functions.values(), *other._functions.values()])

    def __contains__(self, name: object) -> bool:
        return name in self._functions

    def __len__(self) -> int:
        return len(self._functions)


BUILTINS = FunctionRegistry()


def default_registry() -> FunctionRegistry:
    """Return a fresh registry holding only the built-ins."""
    return BUILTINS.extended(FunctionRegistry())


def _sort_key(value: Value) -> tuple[int, object]:
    if is_number(value):
        number = float(value)
        return (0, -math.inf if math.isnan(number) else number)
    if isinstance(value, str):
        return (1, value)
    return (2, stringify(value))


def _numbers(values: Value) -> list[float]:
    if not isinstance(values, list):
        return []
    return [n for n in (to_number(v) for v in values) if not math.isnan(n)]


# =============================================================================
# Collections
# =============================================================================


@BUILTINS.function("length")
def _length(value: Value = None) -> Value:
    if isinstance(value, (str, list, dict)):
        return float(len(value))
    return 0.0


@BUILTINS.function("contains")
def _contains(haystack: Value = None, needle: Value = None) -> Value:
    if isinstance(haystack, str) and isinstance(needle, str):
        return needle in haystack
    if isinstance(haystack, list):
        return any(equals(needle, item) for item in haystack)
    if isinstance(haystack, dict):
        return isinstance(needle, str) and needle in haystack
    return False


@BUILTINS.function("join")
def _join(values: Value = None, separator: Value = ",") -> Value:
    sep = separator if isinstance(separator, str) else ","
    if isinstance(values, list):
        return sep.join(stringify(item) for item in values)
    return stringify(values)


@BUILTINS.function("first")
def _first(values: Value = None) -> Value:
    if isinstance(values, (list, str)) and values:
        return values[0]
    return None


@BUILTINS.function("last")
def _last(values: Value = None) -> Value:
    if isinstance(values, (list, str)) and values:
        return values[-1]
    return None


@BUILTINS.function("at")
def _at(values: Value = None, index: Value = None) -> Value:
    number = to_number(index)
    if not isinstance(values, list) or not math.isfinite(number):
        return None
    position = int(number)
    if -len(values) <= position < len(values):
        return values[position]
    return None


@BUILTINS.function("append")
def _append(values: Value = None, item: Value = None) -> Value:
    if isinstance(values, list):
        return [*values, item]
    return [item]


@BUILTINS.function("sort")
def _sort(values: Value = None) -> Value:
    if not isinstance(values, list):
        return []
    return sorted(values, key=_sort_key)


@BUILTINS.function("keys")
def _keys(mapping: Value = None) -> Value:
    if isinstance(mapping, dict):
        return sorted(mapping)
    return []


@BUILTINS.function("values")
def _values(mapping: Value = None) -> Value:
    if isinstance(mapping, dict):
        return [mapping[key] for key in sorted(mapping)]
    return []


@BUILTINS.function("min")
def _min(values: Value = None) -> Value:
    numbers = _numbers(values)
    return min(numbers) if numbers else None


@BUILTINS.function("max")
def _max(values: Value = None) -> Value:
    numbers = _numbers(values)
    return max(numbers) if numbers else None


@BUILTINS.function("range")
def _range(start: Value = None, end: Value = None) -> Value:
    low = to_number(start)
    high = to_number(end)
    if end is None:
        low, high = 0.0, low
    if not (math.isfinite(low) and math.isfinite(high)):
        return []
    first, stop = math.ceil(low), math.ceil(high)
    if stop - first > RANGE_LIMIT:
        raise RenderLimitExceeded("range_length", RANGE_LIMIT)
    return [float(i) for i in range(first, stop)]


# =============================================================================
# Strings
# =============================================================================


@BUILTINS.function("lower")
def _lower(value: Value = None) -> Value:
    return stringify(value).lower()


@BUILTINS.function("upper")
def _upper(value: Value = None) -> Value:
    return stringify(value).upper()


@BUILTINS.function("capitalize")
def _capitalize(value: Value = None) -> Value:
    text = stringify(value)
    return text[:1].upper() + text[1:]


@BUILTINS.function("trim")
def _trim(value: Value = None) -> Value:
    return stringify(value).strip()


@BUILTINS.function("replace")
def _replace(value: Value = None, old: Value = None, new: Value = None) -> Value:
    text = stringify(value)
    search = stringify(old)
    if not search:
        return text
    return text.replace(search, stringify(new))


@BUILTINS.function("to_string")
def _to_string(value: Value = None) -> Value:
    if isinstance(value, (list, dict)):
        return json.dumps(to_host(value), ensure_ascii=False)
    return stringify(value)


@BUILTINS.function("short_time")
def _short_time(value: Value = None) -> Value:
    # "Middas, 3:00 PM, 17th of Last Seed, 4E 201" -> "3:00 PM"
    text = stringify(value)
    match = SHORT_TIME_PATTERN.search(text)
    return match.group(1) if match else text


# =============================================================================
# Numbers
# =============================================================================


@BUILTINS.function("int")
def _int(value: Value = None) -> Value:
    number = to_number(value)
    if math.isnan(number) or math.isinf(number):
        return None
    return float(math.trunc(number))


@BUILTINS.function("float")
def _float(value: Value = None) -> Value:
    number = to_number(value)
    return None if math.isnan(number) else number


@BUILTINS.function("round")
def _round(value: Value = None, digits: Value = 0.0) -> Value:
    number = to_number(value)
    places = to_number(digits)
    if math.isnan(number) or math.isinf(number):
        return None
    scale = 10 ** int(0 if math.isnan(places) else max(-15.0, min(15.0, places)))
    # half away from zero
    return math.copysign(math.floor(abs(number) * scale + 0.5), number) / scale


@BUILTINS.function("odd")
def _odd(value: Value = None) -> Value:
    number = to_number(value)
    if not number.is_integer():
        return False
    return int(number) % 2 == 1


@BUILTINS.function("even")
def _even(value: Value = None) -> Value:
    number = to_number(value)
    if not number.is_integer():
        return False
    return int(number) % 2 == 0


@BUILTINS.function("divisibleBy")
def _divisible_by(value: Value = None, divisor: Value = None) -> Value:
    number = to_number(value)
    by = to_number(divisor)
    if not math.isfinite(number) or math.isnan(by) or by == 0:
        return False
    return math.fmod(number, by) == 0


# =============================================================================
# Presence and types
# =============================================================================


@BUILTINS.function("exists", pass_scope=True)
def _exists(scope: Scope, value: Value = None) -> Value:
    # exists("npc.name") checks a variable path, exists(npc.name) the value itself
    if isinstance(value, str):
        return scope.resolve(value) is not MISSING
    return value is not None


@BUILTINS.function("existsIn")
def _exists_in(mapping: Value = None, key: Value = None) -> Value:
    return isinstance(mapping, dict) and stringify(key) in mapping


BUILTINS.register("has_key", _exists_in)


@BUILTINS.function("default")
def _default(value: Value = None, fallback: Value = None) -> Value:
    if value is None or value == "":
        return fallback
    return value


@BUILTINS.function("isString")
def _is_string(value: Value = None) -> Value:
    return isinstance(value, str)


@BUILTINS.function("isNumber")
def _is_number(value: Value = None) -> Value:
    return is_number(value)


@BUILTINS.function("isArray")
def _is_array(value: Value = None) -> Value:
    return isinstance(value, list)


@BUILTINS.function("isObject")
def _is_object(value: Value = None) -> Value:
    return isinstance(value, dict)


@BUILTINS.function("isBoolean")
def _is_boolean(value: Value = None) -> Value:
    return isinstance(value, bool)


__all__ = [
    "BUILTINS",
    "Function",
    "FunctionRegistry",
    "RANGE_LIMIT",
    "default_registry",
]
