"""File loaders for template includes.

A loader is the async callable ``loader(base_dir, ref) -> str`` the
renderer uses to read included templates. It must raise
FileNotFoundError when nothing is found.

Example:
    >>> loader = FileSystemLoader([Path("edited-prompts/my-set"), Path("prompts")])
    >>> source = await loader("submodules/character_bio", "0010_name.prompt")
"""

from __future__ import annotations

import asyncio
import logging
import posixpath
from collections.abc import Mapping
from pathlib import Path

logger = logging.getLogger(__name__)


class FileSystemLoader:
    """Reads templates from layered directories, first root wins.

    Files are read in a worker thread so a render never blocks the
    event loop. Paths resolving outside a root are never read from it.

    Example:
        >>> loader = FileSystemLoader([Path("edited-prompts"), Path("prompts")])
        >>> await loader("", "dialogue_response.prompt")
    """

    def __init__(self, roots: list[Path]) -> None:
        self.roots = [root.resolve() for root in roots]

    def find(self, base_dir: str, ref: str) -> Path | None:
        """Return the first existing file for ``base_dir/ref`` across the roots."""
        relative = posixpath.join(base_dir, ref.replace("\\", "/"))
        for root in self.roots:
            candidate = (root / relative).resolve()
            if not candidate.is_relative_to(root):
                logger.warning("Refusing path outside prompt root %s: %s", root, relative)
                continue
            if candidate.is_file():
                return candidate
        return None

    def read(self, base_dir: str, ref: str) -> str:
        path = self.find(base_dir, ref)
        if path is None:
            raise FileNotFoundError(posixpath.join(base_dir, ref))
        logger.debug("Reading template: %s", path)
        return path.read_text(encoding="utf-8")

    async def __call__(self, base_dir: str, ref: str) -> str:
        return await asyncio.to_thread(self.read, base_dir, ref)


class DictLoader:
    """In-memory loader keyed by root-relative POSIX path.

    Example:
        >>> loader = DictLoader({"submodules/bio.prompt": "Bio of {{ npc.name }}"})
        >>> await loader("submodules", "bio.prompt")
        'Bio of {{ npc.name }}'
    """

    def __init__(self, files: Mapping[str, str]) -> None:
        self.files = dict(files)

    async def __call__(self, base_dir: str, ref: str) -> str:
        path = posixpath.normpath(posixpath.join(base_dir, ref.replace("\\", "/")))
        try:
            return self.files[path]
        except KeyError:
            raise FileNotFoundError(path) from None
