"""Render entry point.

Wires the pieces of one render together: parse the root template,
declare override and root blocks, interpret the node tree with includes
resolved through the caller's loader, then split the text into messages.

Every call builds its own scope, block table, include cache and counters,
so concurrent renders never see each other's state.

Example:
    >>> result = await render(
    ...     "Hello {{ npc.name }}!\\n[ system ]\\nYou are {{ npc.name }}.\\n[ end system ]",
    ...     {"npc": {"name": "Lydia"}},
    ...     loader,
    ... )
    >>> result.messages[0].content
    'You are Lydia.'
"""

from __future__ import annotations

import logging
import posixpath
from collections.abc import Iterable, Mapping
from typing import Any

from pydantic import BaseModel

from prompt_preview.engine.functions import FunctionRegistry, default_registry
from prompt_preview.engine.includes import (
    DEFAULT_EXTENSION,
    FileLoader,
    IncludeResolver,
    TemplateDocument,
)
from prompt_preview.engine.interpreter import Interpreter
from prompt_preview.engine.limits import RenderLimits
from prompt_preview.engine.parser import parse_template
from prompt_preview.engine.scope import Scope
from prompt_preview.engine.sections import RenderedMessage, split_sections
from prompt_preview.engine.values import to_value

logger = logging.getLogger(__name__)

# Include depth of caller-supplied override documents, above the root
OVERRIDE_DEPTH = -1


class RenderResult(BaseModel):
    """Outcome of a successful render.

    Attributes:
        messages: Role-tagged messages in order of their opening markers.
        rendered_text: Full rendered text, markers and outside text included.
    """

    messages: list[RenderedMessage]
    rendered_text: str


def _root_document(nodes: list, template_path: str | None) -> TemplateDocument:
    if template_path is None:
        return TemplateDocument(None, "", nodes, 0)
    path = posixpath.normpath(template_path.replace("\\", "/"))
    return TemplateDocument(path, posixpath.dirname(path), nodes, 0)


async def render(
    template_source: str,
    state: Mapping[str, Any] | BaseModel | None,
    file_loader: FileLoader,
    *,
    template_path: str | None = None,
    limits: RenderLimits | None = None,
    functions: FunctionRegistry | None = None,
    overrides: Iterable[tuple[str, str]] = (),
    extension: str = DEFAULT_EXTENSION,
) -> RenderResult:
    """Render a template against a state map.

    Args:
        template_source: Root template text.
        state: Simulation state; converted to template values, never mutated.
        file_loader: ``async (base_dir, ref) -> str`` used for includes.
            Must raise FileNotFoundError for missing files.
        template_path: Root-relative path of the root template. Anchors
            relative includes and labels errors.
        limits: Resource limits, defaults when omitted.
        functions: Extra functions layered over the built-ins.
        overrides: ``(label, source)`` documents whose blocks take
            precedence over every template in the render.
        extension: Suffix appended to include references that have none.

    Returns:
        RenderResult with messages and the full rendered text.

    Raises:
        TemplateError: Any fatal failure; nothing partial is returned.
    """
    limits = limits or RenderLimits()
    registry = default_registry()
    if functions is not None:
        registry = registry.extended(functions)

    values = to_value(state) if state is not None else {}
    if not isinstance(values, dict):
        raise TypeError(f"State must be a mapping, got {type(state).__name__}")

    nodes = parse_template(template_source, registry, template=template_path)
    root = _root_document(nodes, template_path)

    resolver = IncludeResolver(file_loader, registry, limits, extension)
    interpreter = Interpreter(Scope(values), resolver, limits)

    for label, source in overrides:
        override = TemplateDocument(
            label, "", parse_template(source, registry, template=label), OVERRIDE_DEPTH
        )
        interpreter.blocks.declare_all(override)
        logger.debug("Override document declared: %s", label)

    text = await interpreter.render_document(root)
    messages = split_sections(text)
    logger.debug(
        "Rendered %s: %d chars, %d message(s), %d loop iteration(s)",
        root.label,
        len(text),
        len(messages),
        interpreter.iterations,
    )
    return RenderResult(messages=messages, rendered_text=text)
