"""Unit tests for expressions module."""

import math

import pytest

from prompt_preview.engine.errors import ParseError, UnknownFunction
from prompt_preview.engine.expressions import Attribute, Call, Literal, Variable, parse_expression
from prompt_preview.engine.functions import default_registry
from prompt_preview.engine.scope import Scope
from prompt_preview.engine.values import Value

STATE: dict[str, Value] = {
    "npc": {"name": "Lydia", "level": 10.0, "tags": ["housecarl", "nord"]},
    "items": ["sword", "shield", "mead"],
    "events": [{"text": "first"}, {"text": "second"}],
    "zero": 0.0,
    "flag": False,
}


def evaluate(text: str, state: dict[str, Value] | None = None) -> Value:
    expr = parse_expression(text, default_registry(), line=1)
    return expr.evaluate(Scope(state if state is not None else STATE))


class TestLiterals:
    """Tests for literal parsing."""

    def test_number(self) -> None:
        assert evaluate("42") == 42.0
        assert evaluate("2.5") == 2.5

    def test_strings_with_either_quote(self) -> None:
        assert evaluate('"double"') == "double"
        assert evaluate("'single'") == "single"

    def test_string_escapes(self) -> None:
        assert evaluate(r'"a\nb\t\"c\""') == 'a\nb\t"c"'

    def test_keywords(self) -> None:
        assert evaluate("true") is True
        assert evaluate("false") is False
        assert evaluate("null") is None
        assert evaluate("none") is None

    def test_list_literal(self) -> None:
        assert evaluate("[1, 'a', true, null]") == [1.0, "a", True, None]
        assert evaluate("[]") == []

    def test_map_literal(self) -> None:
        assert evaluate('{"a": 1, b: npc.name}') == {"a": 1.0, "b": "Lydia"}
        assert evaluate("{}") == {}

    def test_literal_node(self) -> None:
        assert parse_expression('"x"', default_registry(), line=1) == Literal("x")


class TestVariablePaths:
    """Tests for variable and member access."""

    def test_plain_variable(self) -> None:
        assert parse_expression("npc", default_registry(), line=1) == Variable("npc")

    def test_dotted_path(self) -> None:
        assert evaluate("npc.name") == "Lydia"
        expr = parse_expression("npc.name", default_registry(), line=1)
        assert expr == Attribute(Variable("npc"), "name")

    def test_numeric_segment_indexes_list(self) -> None:
        assert evaluate("items.1") == "shield"
        assert evaluate("events.0.text") == "first"

    def test_subscript(self) -> None:
        assert evaluate("items[0]") == "sword"
        assert evaluate('npc["name"]') == "Lydia"
        assert evaluate("items[length(items) - 1]") == "mead"

    def test_negative_subscript(self) -> None:
        assert evaluate("items[-1]") == "mead"

    def test_missing_paths_are_null(self) -> None:
        assert evaluate("missing") is None
        assert evaluate("npc.nonexistent.deep") is None
        assert evaluate("items[10]") is None
        assert evaluate("items.9.name") is None
        assert evaluate("npc.name.first") is None
        assert evaluate("items[0.5]") is None


class TestOperators:
    """Tests for operator semantics and precedence."""

    @pytest.mark.parametrize(
        ("text", "expected"),
        [
            ("1 + 2 * 3", 7.0),
            ("(1 + 2) * 3", 9.0),
            ("10 - 2 - 3", 5.0),
            ("12 / 2 / 3", 2.0),
            ("-2 * 3", -6.0),
            ("7 % 4", 3.0),
            ("--3", 3.0),
        ],
    )
    def test_arithmetic(self, text: str, expected: float) -> None:
        assert evaluate(text) == expected

    def test_division_by_zero_is_nan(self) -> None:
        assert math.isnan(evaluate("1 / 0"))

    def test_string_concatenation(self) -> None:
        assert evaluate('"HP: " + npc.level') == "HP: 10"

    @pytest.mark.parametrize(
        ("text", "expected"),
        [
            ("3 > 2", True),
            ("3 <= 2", False),
            ("'b' > 'a'", True),
            ('"10" == 10', True),
            ("npc.name != 'Lydia'", False),
            ("null == missing", True),
            ("2 < 10", True),
        ],
    )
    def test_comparisons(self, text: str, expected: bool) -> None:
        assert evaluate(text) is expected

    def test_in_operator(self) -> None:
        assert evaluate('"nord" in npc.tags') is True
        assert evaluate('"name" in npc') is True
        assert evaluate('"yd" in npc.name') is True
        assert evaluate('"orc" in npc.tags') is False

    def test_and_or_return_booleans(self) -> None:
        assert evaluate('"x" or "y"') is True
        assert evaluate('npc and items') is True
        assert evaluate("null and missing") is False
        assert evaluate("zero or flag") is False

    def test_and_binds_tighter_than_or(self) -> None:
        assert evaluate("true or false and false") is True

    def test_not_binds_to_its_operand(self) -> None:
        # (not zero) == flag -> true == false
        assert evaluate("not zero == flag") is False
        assert evaluate("not (zero == flag)") is True

    def test_not_of_missing(self) -> None:
        assert evaluate("not missing") is True
        assert evaluate("not not npc") is True

    def test_comparison_binds_tighter_than_and(self) -> None:
        assert evaluate("npc.level > 5 and npc.name == 'Lydia'") is True


class TestCalls:
    """Tests for function calls inside expressions."""

    def test_call_node(self) -> None:
        expr = parse_expression("upper(npc.name)", default_registry(), line=1)
        assert isinstance(expr, Call)
        assert expr.function.name == "upper"

    def test_nested_calls(self) -> None:
        assert evaluate("upper(first(npc.tags))") == "HOUSECARL"

    def test_call_result_member_access(self) -> None:
        assert evaluate("first(events).text") == "first"

    def test_unknown_function_rejected_at_parse(self) -> None:
        with pytest.raises(UnknownFunction) as exc_info:
            parse_expression("get_mood(npc)", default_registry(), line=4, template="a.prompt")
        assert exc_info.value.name == "get_mood"
        assert exc_info.value.line == 4
        assert "a.prompt, line 4" in str(exc_info.value)

    def test_too_many_arguments(self) -> None:
        with pytest.raises(ParseError) as exc_info:
            parse_expression("upper(1, 2)", default_registry(), line=1)
        assert "does not take 2 argument(s)" in exc_info.value.message


class TestSyntaxErrors:
    """Tests for malformed expressions."""

    @pytest.mark.parametrize(
        "text",
        [
            "",
            "   ",
            "1 +",
            "a b",
            "(1 + 2",
            "[1, 2",
            "{1: 2}",
            "npc.name()",
            "npc.",
            "a @ b",
            "and",
        ],
    )
    def test_malformed(self, text: str) -> None:
        with pytest.raises(ParseError):
            parse_expression(text, default_registry(), line=1)

    def test_message_quotes_expression(self) -> None:
        with pytest.raises(ParseError) as exc_info:
            parse_expression("a b", default_registry(), line=2)
        assert exc_info.value.message == "Unexpected 'b' in 'a b'"
        assert exc_info.value.line == 2

    def test_method_call_message(self) -> None:
        with pytest.raises(ParseError) as exc_info:
            parse_expression("npc.name()", default_registry(), line=1)
        assert "Method call '.name()' is not supported" in exc_info.value.message
