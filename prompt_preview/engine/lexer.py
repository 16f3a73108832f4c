"""Template lexer.

Splits template source into literal-text runs and directive tokens:
``{{ expression }}``, ``{% statement %}`` and ``{# comment #}``. Comments
are dropped here and never reach the parser. Literal text is passed
through untouched unless a directive carries a ``-`` whitespace-control
marker (``{%-``, ``-%}``, ``{{-``, ``-}}``).

Example:
    >>> from prompt_preview.engine.lexer import tokenize
    >>> [t.kind.value for t in tokenize("Hi {{ name }}{# note #}!")]
    ['text', 'expression', 'text']
"""

from __future__ import annotations

from dataclasses import dataclass
from enum import Enum

from prompt_preview.engine.errors import ParseError

CLOSERS = {"{": "}}", "%": "%}", "#": "#}"}


class TokenKind(Enum):
    TEXT = "text"
    EXPRESSION = "expression"
    STATEMENT = "statement"


@dataclass(frozen=True)
class Token:
    """Single lexer token.

    Attributes:
        kind: Token kind.
        value: Literal text, or the trimmed directive body.
        line: 1-based line where the token starts.
    """

    kind: TokenKind
    value: str
    line: int


def _find_closer(source: str, start: int, closer: str, skip_strings: bool) -> int:
    """Return the index of ``closer`` at or after ``start``, -1 if absent.

    Inside expressions and statements quoted strings are skipped, so a
    literal "}}" in a string does not end the directive.
    """
    if not skip_strings:
        return source.find(closer, start)

    pos = start
    quote: str | None = None
    while pos < len(source):
        char = source[pos]
        if quote:
            if char == "\\":
                pos += 2
                continue
            if char == quote:
                quote = None
        elif char in "\"'":
            quote = char
        elif source.startswith(closer, pos):
            return pos
        pos += 1
    return -1


def tokenize(source: str, template: str | None = None) -> list[Token]:
    """Tokenize template source.

    Args:
        source: Template text.
        template: Template path used in error messages.

    Returns:
        Tokens in document order; adjacent text is never split.

    Raises:
        ParseError: A directive or comment is never closed.
    """
    tokens: list[Token] = []
    pos = 0
    line = 1
    strip_next = False

    def add_text(text: str, text_line: int) -> None:
        nonlocal strip_next
        if strip_next:
            stripped = text.lstrip()
            text_line += text.count("\n", 0, len(text) - len(stripped))
            text = stripped
            strip_next = False
        if not text:
            return
        if tokens and tokens[-1].kind is TokenKind.TEXT:
            previous = tokens.pop()
            tokens.append(Token(TokenKind.TEXT, previous.value + text, previous.line))
        else:
            tokens.append(Token(TokenKind.TEXT, text, text_line))

    def strip_previous() -> None:
        if tokens and tokens[-1].kind is TokenKind.TEXT:
            previous = tokens.pop()
            stripped = previous.value.rstrip()
            if stripped:
                tokens.append(Token(TokenKind.TEXT, stripped, previous.line))

    while pos < len(source):
        start = source.find("{", pos)
        while start != -1 and source[start + 1 : start + 2] not in CLOSERS:
            start = source.find("{", start + 1)

        if start == -1:
            add_text(source[pos:], line)
            break

        add_text(source[pos:start], line)
        line += source.count("\n", pos, start)

        marker = source[start + 1]
        closer = CLOSERS[marker]
        end = _find_closer(source, start + 2, closer, skip_strings=marker != "#")
        if end == -1:
            raise ParseError(f"Unterminated '{{{marker}' directive", line=line, template=template)

        body = source[start + 2 : end]
        if body.startswith("-"):
            body = body[1:]
            strip_previous()
        trim_after = body.endswith("-")
        if trim_after:
            body = body[:-1]

        if marker == "{":
            tokens.append(Token(TokenKind.EXPRESSION, body.strip(), line))
        elif marker == "%":
            tokens.append(Token(TokenKind.STATEMENT, body.strip(), line))

        strip_next = trim_after
        line += source.count("\n", start, end + 2)
        pos = end + 2

    return tokens
