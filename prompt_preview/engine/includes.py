"""Include resolution for submodule templates.

Resolves ``{% include "ref" %}`` references relative to the including
document, loads them through the caller's async file loader and parses
them. Tracks the active include chain so that cycles are reported as
CircularInclude instead of recursing until the stack runs out.

Example:
    >>> resolver = IncludeResolver(loader, default_registry(), RenderLimits())
    >>> resolver.normalize("submodules/bio", "../system_head")
    'submodules/system_head.prompt'
"""

from __future__ import annotations

import logging
import posixpath
from collections.abc import Awaitable, Callable, Iterator
from contextlib import contextmanager
from dataclasses import dataclass

from prompt_preview.engine.errors import (
    CircularInclude,
    IncludeOutsideRoot,
    ParseError,
    RenderLimitExceeded,
    TemplateNotFound,
)
from prompt_preview.engine.functions import FunctionRegistry
from prompt_preview.engine.limits import RenderLimits
from prompt_preview.engine.parser import Node, parse_template

logger = logging.getLogger(__name__)

FileLoader = Callable[[str, str], Awaitable[str]]

DEFAULT_EXTENSION = ".prompt"


@dataclass
class TemplateDocument:
    """One parsed template taking part in a render.

    Attributes:
        path: Root-relative POSIX path, None for an anonymous root source.
        base_dir: Directory that relative references resolve against.
        nodes: Parsed node tree.
        depth: Include depth (root is 0, override documents are -1).
    """

    path: str | None
    base_dir: str
    nodes: list[Node]
    depth: int

    @property
    def label(self) -> str:
        return self.path or "<root>"


class IncludeResolver:
    """Loads and parses included documents for a single render.

    Parsed documents are cached for the lifetime of the resolver, which
    is one render; nothing is shared between renders.
    """

    def __init__(
        self,
        loader: FileLoader,
        registry: FunctionRegistry,
        limits: RenderLimits,
        extension: str = DEFAULT_EXTENSION,
    ) -> None:
        self._loader = loader
        self._registry = registry
        self._limits = limits
        self._extension = extension
        self._active: list[str] = []
        self._parsed: dict[str, list[Node]] = {}

    @property
    def active(self) -> list[str]:
        return list(self._active)

    def normalize(self, base_dir: str, ref: str) -> str:
        """Join ``ref`` onto ``base_dir`` and normalise it.

        A reference without a suffix gets the resolver's extension
        (``.prompt`` by default) appended.

        Raises:
            IncludeOutsideRoot: Absolute reference or one that climbs
                above the prompt root.
        """
        cleaned = ref.strip().replace("\\", "/")
        if not cleaned:
            raise TemplateNotFound(ref, "Empty template reference")
        if cleaned.startswith("/") or posixpath.splitdrive(cleaned)[0] or ":" in cleaned.split("/")[0]:
            raise IncludeOutsideRoot(ref)
        if not posixpath.splitext(cleaned)[1]:
            cleaned += self._extension

        path = posixpath.normpath(posixpath.join(base_dir, cleaned))
        if path == ".." or path.startswith("../"):
            raise IncludeOutsideRoot(ref)
        return path

    async def resolve(self, base_dir: str, ref: str, depth: int) -> TemplateDocument:
        """Load and parse the document ``ref`` names.

        Args:
            base_dir: Directory of the including document.
            ref: Reference as written in the include directive.
            depth: Include depth the new document will render at.

        Raises:
            IncludeOutsideRoot: Reference escapes the prompt root.
            CircularInclude: Document is already being rendered.
            RenderLimitExceeded: Include depth limit reached.
            TemplateNotFound: Loader has no such file.
            ParseError: Included document is malformed or not UTF-8.
        """
        path = self.normalize(base_dir, ref)
        if path in self._active:
            raise CircularInclude([*self._active, path])
        if depth > self._limits.max_include_depth:
            raise RenderLimitExceeded("max_include_depth", self._limits.max_include_depth)

        nodes = self._parsed.get(path)
        if nodes is None:
            directory, name = posixpath.split(path)
            try:
                source = await self._loader(directory, name)
            except FileNotFoundError as e:
                raise TemplateNotFound(path) from e
            except UnicodeDecodeError as e:
                raise ParseError(
                    f"Template is not valid UTF-8 (byte {e.start}: {e.reason})", line=1, template=path
                ) from e
            nodes = parse_template(source, self._registry, template=path)
            self._parsed[path] = nodes
            logger.debug("Include loaded (depth %d)", depth, extra={"template": path})

        return TemplateDocument(path, posixpath.dirname(path), nodes, depth)

    @contextmanager
    def activate(self, document: TemplateDocument) -> Iterator[None]:
        """Mark ``document`` as being rendered for the duration of the block."""
        if document.path is None:
            yield
            return
        self._active.append(document.path)
        try:
            yield
        finally:
            self._active.pop()
