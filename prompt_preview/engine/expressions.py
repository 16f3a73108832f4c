"""Expression sublanguage: parser and evaluator.

Precedence, highest first:

    primary      literal, variable path, call, (expr), [list], {map}
    unary        not, -
    multiplicative  * / %
    additive     + -
    comparison   == != < <= > >= in
    and
    or

Evaluation never raises on data problems: a missing variable path is
null, operations on mismatched types coerce or yield NaN. Unknown
function names are rejected while parsing.

Example:
    >>> from prompt_preview.engine.expressions import parse_expression
    >>> from prompt_preview.engine.functions import default_registry
    >>> from prompt_preview.engine.scope import Scope
    >>> expr = parse_expression('upper(npc.name) + "!"', default_registry(), line=1)
    >>> expr.evaluate(Scope({"npc": {"name": "Lydia"}}))
    'LYDIA!'
"""

from __future__ import annotations

import math
import re
from dataclasses import dataclass

from prompt_preview.engine import values
from prompt_preview.engine.errors import ParseError, UnknownFunction
from prompt_preview.engine.functions import Function, FunctionRegistry
from prompt_preview.engine.scope import Scope
from prompt_preview.engine.values import Value, is_truthy, to_number

TOKEN_PATTERN = re.compile(
    r"""
    (?P<number>\d+(?:\.\d+)?)
    |(?P<string>"(?:[^"\\]|\\.)*"|'(?:[^'\\]|\\.)*')
    |(?P<name>[A-Za-z_][A-Za-z0-9_]*)
    |(?P<op>==|!=|<=|>=|[<>+\-*/%()\[\]{},.:])
    """,
    re.VERBOSE,
)
INDEX_PATTERN = re.compile(r"\d+")

ESCAPES = {"n": "\n", "t": "\t", "\\": "\\", '"': '"', "'": "'"}
KEYWORD_LITERALS: dict[str, Value] = {
    "true": True,
    "false": False,
    "null": None,
    "none": None,
}
COMPARISON_OPS = ("==", "!=", "<", "<=", ">", ">=")


# =============================================================================
# Expression tree
# =============================================================================


class Expr:
    """Base class for expression nodes."""

    def evaluate(self, scope: Scope) -> Value:
        raise NotImplementedError


@dataclass(frozen=True)
class Literal(Expr):
    value: Value

    def evaluate(self, scope: Scope) -> Value:
        return self.value


@dataclass(frozen=True)
class ListLiteral(Expr):
    items: tuple[Expr, ...]

    def evaluate(self, scope: Scope) -> Value:
        return [item.evaluate(scope) for item in self.items]


@dataclass(frozen=True)
class MapLiteral(Expr):
    items: tuple[tuple[str, Expr], ...]

    def evaluate(self, scope: Scope) -> Value:
        return {key: item.evaluate(scope) for key, item in self.items}


@dataclass(frozen=True)
class Variable(Expr):
    name: str

    def evaluate(self, scope: Scope) -> Value:
        return scope.lookup(self.name)


def get_item(target: Value, key: Value) -> Value:
    """Index a list, map or string; anything unresolvable is null."""
    if isinstance(target, dict):
        name = key if isinstance(key, str) else values.stringify(key)
        return target.get(name)
    if isinstance(target, (list, str)):
        number = to_number(key)
        if not math.isfinite(number) or not number.is_integer():
            return None
        position = int(number)
        if -len(target) <= position < len(target):
            return target[position]
    return None


@dataclass(frozen=True)
class Attribute(Expr):
    target: Expr
    name: str

    def evaluate(self, scope: Scope) -> Value:
        target = self.target.evaluate(scope)
        if isinstance(target, list) and INDEX_PATTERN.fullmatch(self.name):
            return get_item(target, float(self.name))
        if isinstance(target, dict):
            return target.get(self.name)
        return None


@dataclass(frozen=True)
class Index(Expr):
    target: Expr
    index: Expr

    def evaluate(self, scope: Scope) -> Value:
        return get_item(self.target.evaluate(scope), self.index.evaluate(scope))


@dataclass(frozen=True)
class Call(Expr):
    function: Function
    args: tuple[Expr, ...]

    def evaluate(self, scope: Scope) -> Value:
        return self.function.call(scope, [arg.evaluate(scope) for arg in self.args])


@dataclass(frozen=True)
class Unary(Expr):
    op: str
    operand: Expr

    def evaluate(self, scope: Scope) -> Value:
        value = self.operand.evaluate(scope)
        if self.op == "not":
            return not is_truthy(value)
        return -to_number(value)


@dataclass(frozen=True)
class Binary(Expr):
    op: str
    left: Expr
    right: Expr

    def evaluate(self, scope: Scope) -> Value:
        if self.op == "and":
            return is_truthy(self.left.evaluate(scope)) and is_truthy(self.right.evaluate(scope))
        if self.op == "or":
            return is_truthy(self.left.evaluate(scope)) or is_truthy(self.right.evaluate(scope))

        left = self.left.evaluate(scope)
        right = self.right.evaluate(scope)
        if self.op == "==":
            return values.equals(left, right)
        if self.op == "!=":
            return not values.equals(left, right)
        if self.op in ("<", "<=", ">", ">="):
            return values.compare(self.op, left, right)
        if self.op == "in":
            return values.contains(right, left)
        if self.op == "+":
            return values.add(left, right)
        return values.arithmetic(self.op, left, right)


# =============================================================================
# Parser
# =============================================================================


@dataclass(frozen=True)
class _Tok:
    kind: str
    text: str


class ExpressionParser:
    """Recursive-descent parser for one expression string.

    Function names are resolved against ``registry`` while parsing, so an
    unknown name or an impossible argument count is reported before any
    rendering happens.
    """

    def __init__(
        self,
        text: str,
        registry: FunctionRegistry,
        line: int,
        template: str | None = None,
    ) -> None:
        self._text = text
        self._registry = registry
        self._line = line
        self._template = template
        self._tokens = self._tokenize(text)
        self._pos = 0

    def parse(self) -> Expr:
        if not self._tokens:
            raise self._error("Empty expression")
        expr = self._parse_or()
        if self._peek() is not None:
            raise self._error(f"Unexpected '{self._peek().text}'")
        return expr

    # -------------------------------------------------------------------------
    # Tokens
    # -------------------------------------------------------------------------

    def _tokenize(self, text: str) -> list[_Tok]:
        tokens: list[_Tok] = []
        pos = 0
        while pos < len(text):
            if text[pos].isspace():
                pos += 1
                continue
            # after a dot only an integer segment is allowed (list.0.name)
            if tokens and tokens[-1].text == "." and tokens[-1].kind == "op":
                index = INDEX_PATTERN.match(text, pos)
                if index:
                    tokens.append(_Tok("name", index.group()))
                    pos = index.end()
                    continue
            match = TOKEN_PATTERN.match(text, pos)
            if match is None:
                raise self._error(f"Unexpected character '{text[pos]}'")
            kind = match.lastgroup or "op"
            tokens.append(_Tok(kind, match.group()))
            pos = match.end()
        return tokens

    def _peek(self, offset: int = 0) -> _Tok | None:
        index = self._pos + offset
        return self._tokens[index] if index < len(self._tokens) else None

    def _at(self, text: str, kind: str | None = None) -> bool:
        tok = self._peek()
        return tok is not None and tok.text == text and (kind is None or tok.kind == kind)

    def _next(self) -> _Tok:
        tok = self._peek()
        if tok is None:
            raise self._error("Unexpected end of expression")
        self._pos += 1
        return tok

    def _expect(self, text: str) -> None:
        tok = self._peek()
        if tok is None or tok.text != text:
            found = tok.text if tok else "end of expression"
            raise self._error(f"Expected '{text}' but found '{found}'")
        self._pos += 1

    def _error(self, message: str) -> ParseError:
        return ParseError(f"{message} in '{self._text}'", line=self._line, template=self._template)

    # -------------------------------------------------------------------------
    # Grammar
    # -------------------------------------------------------------------------

    def _parse_or(self) -> Expr:
        left = self._parse_and()
        while self._at("or", "name"):
            self._pos += 1
            left = Binary("or", left, self._parse_and())
        return left

    def _parse_and(self) -> Expr:
        left = self._parse_comparison()
        while self._at("and", "name"):
            self._pos += 1
            left = Binary("and", left, self._parse_comparison())
        return left

    def _parse_comparison(self) -> Expr:
        left = self._parse_additive()
        while True:
            tok = self._peek()
            if tok is None:
                return left
            if tok.kind == "op" and tok.text in COMPARISON_OPS:
                op = tok.text
            elif tok.kind == "name" and tok.text == "in":
                op = "in"
            else:
                return left
            self._pos += 1
            left = Binary(op, left, self._parse_additive())

    def _parse_additive(self) -> Expr:
        left = self._parse_multiplicative()
        while self._at("+", "op") or self._at("-", "op"):
            op = self._next().text
            left = Binary(op, left, self._parse_multiplicative())
        return left

    def _parse_multiplicative(self) -> Expr:
        left = self._parse_unary()
        while self._at("*", "op") or self._at("/", "op") or self._at("%", "op"):
            op = self._next().text
            left = Binary(op, left, self._parse_unary())
        return left

    def _parse_unary(self) -> Expr:
        if self._at("not", "name"):
            self._pos += 1
            return Unary("not", self._parse_unary())
        if self._at("-", "op"):
            self._pos += 1
            return Unary("-", self._parse_unary())
        return self._parse_postfix(self._parse_primary())

    def _parse_primary(self) -> Expr:
        tok = self._next()

        if tok.kind == "number":
            return Literal(float(tok.text))
        if tok.kind == "string":
            return Literal(_unquote(tok.text))
        if tok.kind == "name":
            if tok.text in KEYWORD_LITERALS:
                return Literal(KEYWORD_LITERALS[tok.text])
            if tok.text in ("and", "or", "not", "in"):
                raise self._error(f"Unexpected keyword '{tok.text}'")
            if self._at("(", "op"):
                return self._parse_call(tok.text)
            return Variable(tok.text)
        if tok.text == "(":
            expr = self._parse_or()
            self._expect(")")
            return expr
        if tok.text == "[":
            return ListLiteral(tuple(self._parse_items("]")))
        if tok.text == "{":
            return self._parse_map()
        raise self._error(f"Unexpected '{tok.text}'")

    def _parse_items(self, closer: str) -> list[Expr]:
        items: list[Expr] = []
        while not self._at(closer, "op"):
            items.append(self._parse_or())
            if not self._at(closer, "op"):
                self._expect(",")
        self._expect(closer)
        return items

    def _parse_map(self) -> Expr:
        items: list[tuple[str, Expr]] = []
        while not self._at("}", "op"):
            key = self._next()
            if key.kind == "string":
                name = _unquote(key.text)
            elif key.kind == "name":
                name = key.text
            else:
                raise self._error(f"Invalid map key '{key.text}'")
            self._expect(":")
            items.append((name, self._parse_or()))
            if not self._at("}", "op"):
                self._expect(",")
        self._expect("}")
        return MapLiteral(tuple(items))

    def _parse_call(self, name: str) -> Expr:
        function = self._registry.get(name)
        if function is None:
            raise UnknownFunction(name, line=self._line, template=self._template)
        self._expect("(")
        args = self._parse_items(")")
        if not function.accepts(len(args)):
            raise self._error(f"Function '{name}' does not take {len(args)} argument(s)")
        return Call(function, tuple(args))

    def _parse_postfix(self, expr: Expr) -> Expr:
        while True:
            if self._at(".", "op"):
                self._pos += 1
                tok = self._next()
                if tok.kind != "name":
                    raise self._error(f"Expected attribute name after '.', found '{tok.text}'")
                if self._at("(", "op"):
                    raise self._error(f"Method call '.{tok.text}()' is not supported")
                expr = Attribute(expr, tok.text)
            elif self._at("[", "op"):
                self._pos += 1
                index = self._parse_or()
                self._expect("]")
                expr = Index(expr, index)
            else:
                return expr


def _unquote(literal: str) -> str:
    body = literal[1:-1]
    result: list[str] = []
    pos = 0
    while pos < len(body):
        char = body[pos]
        if char == "\\" and pos + 1 < len(body):
            escaped = body[pos + 1]
            result.append(ESCAPES.get(escaped, "\\" + escaped))
            pos += 2
        else:
            result.append(char)
            pos += 1
    return "".join(result)


def parse_expression(
    text: str,
    registry: FunctionRegistry,
    line: int,
    template: str | None = None,
) -> Expr:
    """Parse one expression string.

    Args:
        text: Expression source, e.g. ``npc.name``.
        registry: Functions the expression may call.
        line: 1-based line of the enclosing directive.
        template: Template path for error messages.

    Returns:
        Expression tree ready for evaluation.

    Raises:
        ParseError: Malformed expression or bad call arity.
        UnknownFunction: Call to a name missing from the registry.
    """
    return ExpressionParser(text, registry, line, template).parse()
