"""Section assembler.

Carves rendered text into role-tagged chat messages using marker lines::

    [ system ]
    You are Lydia.
    [ end system ]

A marker only counts when the whole trimmed line is exactly the marker,
matched case-sensitively. Text outside every section stays in the
rendered text but never becomes a message.

Example:
    >>> messages = split_sections("[ user ]\\nhi\\n[ end user ]")
    >>> messages[0].role, messages[0].content
    ('user', 'hi')
"""

from __future__ import annotations

import re
from dataclasses import dataclass, field
from typing import Literal

from pydantic import BaseModel

from prompt_preview.engine.errors import MalformedSections

Role = Literal["system", "user", "assistant", "cache"]

ROLES: tuple[str, ...] = ("system", "user", "assistant", "cache")
START_MARKERS = {f"[ {role} ]": role for role in ROLES}
END_MARKERS = {f"[ end {role} ]": role for role in ROLES}

LINE_BREAK = re.compile(r"\r?\n")


class RenderedMessage(BaseModel):
    """One chat message cut out of the rendered text."""

    role: Role
    content: str


@dataclass
class _OpenSection:
    role: str
    line: int
    lines: list[str] = field(default_factory=list)


def _trim_blank_edges(lines: list[str]) -> str:
    # At most one blank line is dropped from each end
    if lines and not lines[0].strip():
        lines = lines[1:]
    if lines and not lines[-1].strip():
        lines = lines[:-1]
    return "\n".join(lines)


def split_sections(text: str) -> list[RenderedMessage]:
    """Split rendered text into messages, in order of their opening markers.

    Raises:
        MalformedSections: A role opened twice, closed without being
            open, or still open at the end of the text.
    """
    open_sections: dict[str, _OpenSection] = {}
    sections: list[_OpenSection] = []

    for number, line in enumerate(LINE_BREAK.split(text), start=1):
        marker = line.strip()
        if marker in START_MARKERS:
            role = START_MARKERS[marker]
            if role in open_sections:
                raise MalformedSections(
                    f"'[ {role} ]' at line {number} while '{role}' is already open "
                    f"since line {open_sections[role].line}"
                )
            section = _OpenSection(role, number)
            open_sections[role] = section
            sections.append(section)
        elif marker in END_MARKERS:
            role = END_MARKERS[marker]
            if role not in open_sections:
                raise MalformedSections(
                    f"'[ end {role} ]' at line {number} without an open '[ {role} ]'"
                )
            del open_sections[role]
        else:
            for section in open_sections.values():
                section.lines.append(line)

    if open_sections:
        unclosed = ", ".join(
            f"'{section.role}' (line {section.line})" for section in open_sections.values()
        )
        raise MalformedSections(f"Unclosed section(s) at end of text: {unclosed}")

    return [
        RenderedMessage(role=section.role, content=_trim_blank_edges(section.lines))
        for section in sections
    ]
