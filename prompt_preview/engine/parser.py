"""Template parser.

Turns the lexer's token stream into a tree of nodes. All structural
checks happen here: unknown directive keywords, unbalanced
``if``/``for``/``block`` pairs, malformed ``for``/``set`` headers and
every expression inside the template. A template that parses cleanly
can only fail later on reference or resource errors.

Example:
    >>> from prompt_preview.engine.functions import default_registry
    >>> from prompt_preview.engine.parser import parse_template
    >>> nodes = parse_template("{% if npc %}{{ npc.name }}{% endif %}", default_registry())
    >>> type(nodes[0]).__name__
    'IfNode'
"""

from __future__ import annotations

import re
from collections.abc import Iterator
from dataclasses import dataclass, field

from prompt_preview.engine.errors import ParseError
from prompt_preview.engine.expressions import Expr, parse_expression
from prompt_preview.engine.functions import FunctionRegistry
from prompt_preview.engine.lexer import Token, TokenKind, tokenize

FOR_PATTERN = re.compile(
    r"(?P<first>[A-Za-z_]\w*)(?:\s*,\s*(?P<second>[A-Za-z_]\w*))?\s+in\s+(?P<iterable>.+)",
    re.DOTALL,
)
SET_PATTERN = re.compile(r"(?P<target>[A-Za-z_]\w*(?:\.[A-Za-z_]\w*)*)\s*=(?!=)\s*(?P<value>.+)", re.DOTALL)
BLOCK_NAME_PATTERN = re.compile(r"[A-Za-z_][\w.\-]*")

END_KEYWORDS = {"if": "endif", "for": "endfor", "block": "endblock"}


# =============================================================================
# Nodes
# =============================================================================


@dataclass
class Node:
    line: int


@dataclass
class TextNode(Node):
    text: str


@dataclass
class OutputNode(Node):
    expr: Expr


@dataclass
class IfNode(Node):
    branches: list[tuple[Expr, list[Node]]]
    else_body: list[Node] | None = None


@dataclass
class ForNode(Node):
    """``for value in xs`` or ``for key, value in xs``."""

    value_name: str
    key_name: str | None
    iterable: Expr
    body: list[Node] = field(default_factory=list)


@dataclass
class SetNode(Node):
    target: list[str]
    expr: Expr


@dataclass
class BlockNode(Node):
    name: str
    body: list[Node] = field(default_factory=list)


@dataclass
class IncludeNode(Node):
    ref: Expr


def iter_blocks(nodes: list[Node]) -> Iterator[BlockNode]:
    """Yield every block declared in ``nodes``, at any nesting depth, in order."""
    for node in nodes:
        if isinstance(node, BlockNode):
            yield node
            yield from iter_blocks(node.body)
        elif isinstance(node, IfNode):
            for _, body in node.branches:
                yield from iter_blocks(body)
            if node.else_body:
                yield from iter_blocks(node.else_body)
        elif isinstance(node, ForNode):
            yield from iter_blocks(node.body)


def iter_includes(nodes: list[Node]) -> Iterator[IncludeNode]:
    """Yield every include directive in ``nodes``, at any nesting depth."""
    for node in nodes:
        if isinstance(node, IncludeNode):
            yield node
        elif isinstance(node, (BlockNode, ForNode)):
            yield from iter_includes(node.body)
        elif isinstance(node, IfNode):
            for _, body in node.branches:
                yield from iter_includes(body)
            if node.else_body:
                yield from iter_includes(node.else_body)


# =============================================================================
# Parser
# =============================================================================


def _split_keyword(statement: str) -> tuple[str, str]:
    """Split a statement body into keyword and remainder.

    ``else if`` is returned as a single keyword, also when the condition
    follows ``if`` directly in parentheses.
    """
    parts = statement.split(None, 1)
    if not parts:
        return "", ""
    keyword = parts[0]
    rest = parts[1].strip() if len(parts) > 1 else ""
    if keyword == "else" and rest[:2] == "if" and (rest[2:3].isspace() or rest[2:3] in ("", "(")):
        return "else if", rest[2:].strip()
    return keyword, rest


class TemplateParser:
    """Builds the node tree for one template document."""

    def __init__(
        self,
        source: str,
        registry: FunctionRegistry,
        template: str | None = None,
    ) -> None:
        self._registry = registry
        self._template = template
        self._tokens = tokenize(source, template)
        self._pos = 0

    def parse(self) -> list[Node]:
        nodes, closing = self._parse_body(stop=())
        if closing is not None:
            keyword, _, token = closing
            raise self._error(f"Unexpected '{keyword}' without an open block", token.line)
        return nodes

    def _error(self, message: str, line: int) -> ParseError:
        return ParseError(message, line=line, template=self._template)

    def _expr(self, text: str, line: int) -> Expr:
        return parse_expression(text, self._registry, line, self._template)

    def _parse_body(
        self, stop: tuple[str, ...]
    ) -> tuple[list[Node], tuple[str, str, Token] | None]:
        """Parse nodes until a statement whose keyword is in ``stop``.

        Returns:
            The parsed nodes and the (keyword, remainder, token) of the
            stopping statement, or None at end of input.
        """
        nodes: list[Node] = []
        while self._pos < len(self._tokens):
            token = self._tokens[self._pos]
            self._pos += 1

            if token.kind is TokenKind.TEXT:
                nodes.append(TextNode(token.line, token.value))
                continue
            if token.kind is TokenKind.EXPRESSION:
                nodes.append(OutputNode(token.line, self._expr(token.value, token.line)))
                continue

            keyword, rest = _split_keyword(token.value)
            if keyword in stop:
                return nodes, (keyword, rest, token)
            if keyword in ("endif", "endfor", "endblock", "else", "else if"):
                return nodes, (keyword, rest, token)
            nodes.append(self._parse_statement(keyword, rest, token))

        return nodes, None

    def _parse_statement(self, keyword: str, rest: str, token: Token) -> Node:
        if keyword == "if":
            return self._parse_if(rest, token)
        if keyword == "for":
            return self._parse_for(rest, token)
        if keyword == "set":
            return self._parse_set(rest, token)
        if keyword == "block":
            return self._parse_block(rest, token)
        if keyword == "include":
            if not rest:
                raise self._error("'include' needs a template reference", token.line)
            return IncludeNode(token.line, self._expr(rest, token.line))
        if not keyword:
            raise self._error("Empty statement", token.line)
        raise self._error(f"Unknown directive '{keyword}'", token.line)

    def _close(self, opener: str, token: Token, closing: tuple[str, str, Token] | None) -> None:
        expected = END_KEYWORDS[opener]
        if closing is None:
            raise self._error(f"Unclosed '{opener}', expected '{expected}'", token.line)
        keyword, rest, end_token = closing
        if keyword != expected:
            raise self._error(f"Unexpected '{keyword}' inside '{opener}'", end_token.line)
        if rest and opener != "block":
            raise self._error(f"Unexpected text after '{expected}': '{rest}'", end_token.line)

    def _parse_if(self, condition: str, token: Token) -> IfNode:
        if not condition:
            raise self._error("'if' needs a condition", token.line)
        node = IfNode(token.line, branches=[])
        current_condition = self._expr(condition, token.line)

        while True:
            body, closing = self._parse_body(stop=("else if", "else", "endif"))
            if closing is None:
                raise self._error("Unclosed 'if', expected 'endif'", token.line)
            keyword, rest, branch_token = closing
            node.branches.append((current_condition, body))

            if keyword == "else if":
                if not rest:
                    raise self._error("'else if' needs a condition", branch_token.line)
                current_condition = self._expr(rest, branch_token.line)
                continue
            if keyword == "else":
                if rest:
                    raise self._error(f"Unexpected text after 'else': '{rest}'", branch_token.line)
                else_body, closing = self._parse_body(stop=("endif",))
                if closing is not None and closing[0] in ("else", "else if"):
                    raise self._error(f"'{closing[0]}' after 'else'", closing[2].line)
                self._close("if", token, closing)
                node.else_body = else_body
                return node
            self._close("if", token, closing)
            return node

    def _parse_for(self, header: str, token: Token) -> ForNode:
        match = FOR_PATTERN.fullmatch(header)
        if match is None:
            raise self._error(f"Invalid 'for' syntax: '{header}'", token.line)
        if match.group("second"):
            key_name, value_name = match.group("first"), match.group("second")
        else:
            key_name, value_name = None, match.group("first")
        iterable = self._expr(match.group("iterable"), token.line)
        body, closing = self._parse_body(stop=("endfor",))
        self._close("for", token, closing)
        return ForNode(token.line, value_name, key_name, iterable, body)

    def _parse_set(self, assignment: str, token: Token) -> SetNode:
        match = SET_PATTERN.fullmatch(assignment)
        if match is None:
            raise self._error(f"Invalid 'set' syntax: '{assignment}'", token.line)
        target = match.group("target").split(".")
        return SetNode(token.line, target, self._expr(match.group("value"), token.line))

    def _parse_block(self, name: str, token: Token) -> BlockNode:
        if not BLOCK_NAME_PATTERN.fullmatch(name):
            raise self._error(f"Invalid block name: '{name}'", token.line)
        body, closing = self._parse_body(stop=("endblock",))
        self._close("block", token, closing)
        end_name = closing[1] if closing else ""
        if end_name and end_name != name:
            raise self._error(
                f"'endblock {end_name}' does not match 'block {name}'", closing[2].line
            )
        return BlockNode(token.line, name, body)


def parse_template(
    source: str,
    registry: FunctionRegistry,
    template: str | None = None,
) -> list[Node]:
    """Parse template source into nodes.

    Args:
        source: Template text.
        registry: Functions expressions may call.
        template: Template path for error messages.

    Raises:
        ParseError: Any syntax problem, located by line.
        UnknownFunction: Call to an unregistered function.
    """
    return TemplateParser(source, registry, template).parse()
