"""Logging configuration for Prompt Preview.

One line per record, prefixed with an emoji that tells at a glance which
part of the pipeline spoke: config and loaders, the engine, the state
builder or the CLI. Records may name the template they concern through
``extra={"template": path}``; the formatter then appends the path so
include chains stay readable in debug output.

Logs always go to stderr. Rendered prompts own stdout so they can be
piped into other tools.

Example:
    >>> from prompt_preview.utils.logging_config import setup_logging
    >>> import logging
    >>> setup_logging(level=logging.DEBUG)
    >>> logger = logging.getLogger("prompt_preview.engine.includes")
    >>> logger.debug("Include loaded (depth %d)", 1, extra={"template": "submodules/bio.prompt"})
    2026.10.19 14:32:07 | DEBUG   | 📎 includes: Include loaded (depth 1) [submodules/bio.prompt]
"""

from __future__ import annotations

import logging
import sys
from datetime import datetime
from typing import TextIO

# Keyed by the last segment of the logger name
EMOJI_MAP: dict[str, str] = {
    "config": "⚙️",
    "cli": "🎬",
    "renderer": "🖋️",
    "interpreter": "🧩",
    "includes": "📎",
    "state": "🌍",
    "storage": "💾",
    "loaders": "📂",
    "prompts": "📝",
    "report": "📄",
}

DEFAULT_EMOJI = "📋"

TIMESTAMP_FORMAT = "%Y.%m.%d %H:%M:%S"
LEVEL_WIDTH = 7


class EmojiFormatter(logging.Formatter):
    """Formatter producing ``YYYY.MM.DD HH:MM:SS | LEVEL   | 🏷️ module: message``.

    A ``template`` attribute on the record is appended in brackets, and
    exception tracebacks follow on the next lines.

    Example:
        >>> handler = logging.StreamHandler()
        >>> handler.setFormatter(EmojiFormatter())
    """

    def format(self, record: logging.LogRecord) -> str:
        module = record.name.rsplit(".", 1)[-1]
        emoji = EMOJI_MAP.get(module, DEFAULT_EMOJI)
        timestamp = datetime.fromtimestamp(record.created).strftime(TIMESTAMP_FORMAT)
        level = record.levelname.ljust(LEVEL_WIDTH)

        line = f"{timestamp} | {level} | {emoji} {module}: {record.getMessage()}"

        template = getattr(record, "template", None)
        if template:
            line += f" [{template}]"
        if record.exc_info:
            line += "\n" + self.formatException(record.exc_info)
        return line


def setup_logging(level: int = logging.INFO, stream: TextIO | None = None) -> None:
    """Install a single EmojiFormatter handler on the root logger.

    Existing root handlers are removed, so calling this twice does not
    duplicate output.

    Args:
        level: Root logger level (default: logging.INFO).
        stream: Destination stream, sys.stderr when omitted.
    """
    root_logger = logging.getLogger()
    for handler in root_logger.handlers[:]:
        root_logger.removeHandler(handler)

    handler = logging.StreamHandler(stream if stream is not None else sys.stderr)
    handler.setFormatter(EmojiFormatter())
    root_logger.addHandler(handler)
    root_logger.setLevel(level)
