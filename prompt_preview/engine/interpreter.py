"""Control-flow interpreter.

Walks the node tree of a document and produces text. Owns the per-render
Block Table and the resource counters; includes are delegated to the
IncludeResolver and rendered recursively in a fresh scope frame.

Example:
    >>> interpreter = Interpreter(Scope(state), resolver, RenderLimits())
    >>> text = await interpreter.render_document(document)
"""

from __future__ import annotations

import logging
from dataclasses import dataclass

from prompt_preview.engine.errors import RenderLimitExceeded, TemplateNotFound
from prompt_preview.engine.includes import IncludeResolver, TemplateDocument
from prompt_preview.engine.limits import RenderLimits
from prompt_preview.engine.parser import (
    BlockNode,
    ForNode,
    IfNode,
    IncludeNode,
    Node,
    OutputNode,
    SetNode,
    TextNode,
    iter_blocks,
)
from prompt_preview.engine.scope import Scope
from prompt_preview.engine.values import Value, is_truthy, stringify

logger = logging.getLogger(__name__)


# =============================================================================
# Block Table
# =============================================================================


@dataclass
class BlockDefinition:
    """Winning definition of a named block.

    Attributes:
        name: Block name.
        body: Nodes to render wherever the block is emitted.
        document: Declaring document; its directory anchors includes
            inside the body.
    """

    name: str
    body: list[Node]
    document: TemplateDocument

    @property
    def depth(self) -> int:
        return self.document.depth


class BlockTable:
    """Name -> most specific block definition, one table per render.

    A definition replaces the current one when its document sits at the
    same or a shallower include depth, so the outermost template wins
    and later declarations at equal depth win over earlier ones.
    """

    def __init__(self) -> None:
        self._definitions: dict[str, BlockDefinition] = {}

    def declare(self, block: BlockNode, document: TemplateDocument) -> bool:
        """Register ``block``; return whether it became the active definition."""
        existing = self._definitions.get(block.name)
        if existing is not None and existing.depth < document.depth:
            return False
        if existing is not None:
            logger.debug(
                "Block '%s' from %s overrides %s",
                block.name,
                document.label,
                existing.document.label,
            )
        self._definitions[block.name] = BlockDefinition(block.name, block.body, document)
        return True

    def declare_all(self, document: TemplateDocument) -> None:
        for block in iter_blocks(document.nodes):
            self.declare(block, document)

    def get(self, name: str) -> BlockDefinition | None:
        return self._definitions.get(name)

    def __contains__(self, name: object) -> bool:
        return name in self._definitions

    def __len__(self) -> int:
        return len(self._definitions)


# =============================================================================
# Interpreter
# =============================================================================


def _with_path(container: Value, path: list[str], value: Value) -> Value:
    """Return a copy of ``container`` with ``value`` stored at ``path``."""
    updated = dict(container) if isinstance(container, dict) else {}
    head, *rest = path
    updated[head] = _with_path(updated.get(head), rest, value) if rest else value
    return updated


def _iteration_items(iterable: Value) -> list[tuple[Value, Value]]:
    if isinstance(iterable, list):
        return [(float(index), item) for index, item in enumerate(iterable)]
    if isinstance(iterable, dict):
        return [(key, iterable[key]) for key in sorted(iterable)]
    return []


class Interpreter:
    """Renders documents against one scope for one render call."""

    def __init__(
        self,
        scope: Scope,
        resolver: IncludeResolver,
        limits: RenderLimits,
        blocks: BlockTable | None = None,
    ) -> None:
        self.scope = scope
        self.blocks = blocks if blocks is not None else BlockTable()
        self._resolver = resolver
        self._limits = limits
        self._output_chars = 0
        self._iterations = 0
        self._emitting: list[str] = []

    @property
    def output_chars(self) -> int:
        return self._output_chars

    @property
    def iterations(self) -> int:
        return self._iterations

    async def render_document(self, document: TemplateDocument) -> str:
        """Register the document's blocks, then render it in place."""
        self.blocks.declare_all(document)
        with self._resolver.activate(document):
            return await self.render_nodes(document.nodes, document)

    async def render_nodes(self, nodes: list[Node], document: TemplateDocument) -> str:
        parts: list[str] = []
        for node in nodes:
            parts.append(await self._render_node(node, document))
        return "".join(parts)

    async def _render_node(self, node: Node, document: TemplateDocument) -> str:
        if isinstance(node, TextNode):
            return self._emit(node.text)
        if isinstance(node, OutputNode):
            return self._emit(stringify(node.expr.evaluate(self.scope)))
        if isinstance(node, IfNode):
            return await self._render_if(node, document)
        if isinstance(node, ForNode):
            return await self._render_for(node, document)
        if isinstance(node, SetNode):
            self._assign(node.target, node.expr.evaluate(self.scope))
            return ""
        if isinstance(node, BlockNode):
            return await self._render_block(node, document)
        if isinstance(node, IncludeNode):
            return await self._render_include(node, document)
        raise TypeError(f"Unknown node type: {type(node).__name__}")

    def _emit(self, text: str) -> str:
        self._output_chars += len(text)
        if self._output_chars > self._limits.max_output_chars:
            raise RenderLimitExceeded("max_output_chars", self._limits.max_output_chars)
        return text

    async def _render_if(self, node: IfNode, document: TemplateDocument) -> str:
        for condition, body in node.branches:
            if is_truthy(condition.evaluate(self.scope)):
                return await self.render_nodes(body, document)
        if node.else_body is not None:
            return await self.render_nodes(node.else_body, document)
        return ""

    async def _render_block(self, node: BlockNode, document: TemplateDocument) -> str:
        definition = self.blocks.get(node.name)
        # A block reached again while its own definition renders falls back
        # to the inline body, otherwise mutually referencing overrides loop
        if definition is None or node.name in self._emitting:
            body, owner = node.body, document
        else:
            body, owner = definition.body, definition.document
        self._emitting.append(node.name)
        try:
            return await self.render_nodes(body, owner)
        finally:
            self._emitting.pop()

    async def _render_for(self, node: ForNode, document: TemplateDocument) -> str:
        iterable = node.iterable.evaluate(self.scope)
        items = _iteration_items(iterable)
        parent = self.scope.lookup("loop")
        is_map = isinstance(iterable, dict)
        length = float(len(items))

        parts: list[str] = []
        for position, (key, item) in enumerate(items):
            self._iterations += 1
            if self._iterations > self._limits.max_iterations:
                raise RenderLimitExceeded("max_iterations", self._limits.max_iterations)

            loop: dict[str, Value] = {
                "index": float(position),
                "index1": float(position + 1),
                "is_first": position == 0,
                "is_last": position == len(items) - 1,
                "length": length,
                "parent": parent if isinstance(parent, dict) else None,
            }
            if is_map:
                loop["key"] = key

            bindings: dict[str, Value] = {"loop": loop, node.value_name: item}
            if node.key_name is not None:
                bindings[node.key_name] = key
            with self.scope.frame(bindings):
                parts.append(await self.render_nodes(node.body, document))
        return "".join(parts)

    def _assign(self, target: list[str], value: Value) -> None:
        # Bound values never reach _emit, so their size is checked here
        if isinstance(value, (str, list)) and len(value) > self._limits.max_output_chars:
            raise RenderLimitExceeded("max_output_chars", self._limits.max_output_chars)
        name, *path = target
        if not path:
            self.scope.set(name, value)
            return
        # Copy on write: the state frame and outer bindings stay untouched
        self.scope.set(name, _with_path(self.scope.lookup(name), path, value))

    async def _render_include(self, node: IncludeNode, document: TemplateDocument) -> str:
        ref = node.ref.evaluate(self.scope)
        if not isinstance(ref, str) or not ref.strip():
            raise TemplateNotFound(
                stringify(ref),
                f"Include at {document.label}, line {node.line} does not name a template",
            )
        child = await self._resolver.resolve(document.base_dir, ref, document.depth + 1)
        with self.scope.frame():
            return await self.render_document(child)
