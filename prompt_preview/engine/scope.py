"""Variable scope stack.

A scope is a stack of frames (dicts). Lookups walk from the innermost
frame outwards; ``set`` always writes the innermost frame. The outermost
frame is the simulation state and is never written to.
"""

from __future__ import annotations

from collections.abc import Iterator
from contextlib import contextmanager

from prompt_preview.engine.values import Value

MISSING = object()


class Scope:
    """Stack of variable frames for one render.

    Example:
        >>> scope = Scope({"npc": {"name": "Lydia"}})
        >>> with scope.frame({"n": 1.0}):
        ...     scope.lookup("n")
        1.0
        >>> scope.lookup("n") is None
        True
    """

    def __init__(self, state: dict[str, Value]) -> None:
        self._frames: list[dict[str, Value]] = [state, {}]

    @property
    def depth(self) -> int:
        return len(self._frames)

    def lookup(self, name: str) -> Value:
        """Return the innermost binding of ``name``, None when unbound."""
        for frame in reversed(self._frames):
            if name in frame:
                return frame[name]
        return None

    def resolve(self, path: str) -> object:
        """Resolve a dotted path, returning MISSING if any segment is absent.

        Unlike ``lookup`` this distinguishes an explicit null from a
        missing binding, which ``exists()`` needs.
        """
        head, *rest = path.split(".")
        current: object = MISSING
        for frame in reversed(self._frames):
            if head in frame:
                current = frame[head]
                break
        if current is MISSING:
            return MISSING
        for segment in rest:
            if isinstance(current, dict) and segment in current:
                current = current[segment]
            elif isinstance(current, list) and segment.isdigit() and int(segment) < len(current):
                current = current[int(segment)]
            else:
                return MISSING
        return current

    def set(self, name: str, value: Value) -> None:
        self._frames[-1][name] = value

    @contextmanager
    def frame(self, values: dict[str, Value] | None = None) -> Iterator[None]:
        """Push a frame for the duration of the block."""
        self._frames.append(dict(values or {}))
        try:
            yield
        finally:
            self._frames.pop()
