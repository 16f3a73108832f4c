"""Storage module for Prompt Preview.

Loads scenario files (JSON) and character override files from disk.
Validates scenario data using the Pydantic models.

Example:
    >>> from pathlib import Path
    >>> from prompt_preview.utils.storage import load_scenario
    >>> scenario = load_scenario(Path("scenarios/lydia.json"))
    >>> scenario.primary_npc().name
    'Lydia'
"""

from __future__ import annotations

import json
import logging
from pathlib import Path

from pydantic import ValidationError

from prompt_preview.simulation.models import Scenario

logger = logging.getLogger(__name__)


# =============================================================================
# Exceptions
# =============================================================================


class ScenarioNotFoundError(Exception):
    """Scenario file doesn't exist.

    Example:
        >>> raise ScenarioNotFoundError(Path("scenarios/missing.json"))
    """

    def __init__(self, path: Path) -> None:
        self.path = path
        super().__init__(f"Scenario not found: {path}")


class InvalidDataError(Exception):
    """File reading, JSON parsing or validation failed.

    Example:
        >>> raise InvalidDataError("Invalid JSON syntax", Path("file.json"))
    """

    def __init__(self, message: str, path: Path | None = None) -> None:
        self.path = path
        super().__init__(message)


# =============================================================================
# Functions
# =============================================================================


def load_scenario(path: Path) -> Scenario:
    """Load a scenario from a JSON file.

    Args:
        path: Path to scenario file (e.g., Path("scenarios/lydia.json")).

    Returns:
        Validated Scenario instance.

    Raises:
        ScenarioNotFoundError: File doesn't exist.
        InvalidDataError: File unreadable or not UTF-8, JSON parsing failed or
            validation failed.
    """
    if not path.is_file():
        logger.error("Scenario file not found: %s", path)
        raise ScenarioNotFoundError(path)

    try:
        with open(path, encoding="utf-8") as f:
            data = json.load(f)
    except json.JSONDecodeError as e:
        logger.error("Invalid JSON in %s: %s", path, e)
        raise InvalidDataError(f"Invalid JSON in {path}: {e}", path)
    except UnicodeDecodeError as e:
        logger.error("Scenario %s is not valid UTF-8: %s", path, e)
        raise InvalidDataError(f"Cannot decode {path}: {e}", path)
    except OSError as e:
        logger.error("Cannot read %s: %s", path, e)
        raise InvalidDataError(f"Cannot read {path}: {e}", path)

    try:
        scenario = Scenario.model_validate(data)
    except ValidationError as e:
        logger.error("Validation error in %s: %s", path, e)
        raise InvalidDataError(f"Validation error in {path}: {e}", path)

    logger.debug(
        "Loaded scenario %s: %d NPCs, %d chat entries, %d game events",
        path.name,
        len(scenario.npcs),
        len(scenario.chat_history),
        len(scenario.game_events),
    )
    return scenario


def load_override(path: Path) -> tuple[str, str]:
    """Read a character override file.

    Args:
        path: Path to a ``.prompt`` file holding block definitions.

    Returns:
        (label, source) pair as the renderer's ``overrides`` expects.

    Raises:
        InvalidDataError: File missing, unreadable or not UTF-8.
    """
    try:
        source = path.read_text(encoding="utf-8")
    except OSError as e:
        logger.error("Cannot read override %s: %s", path, e)
        raise InvalidDataError(f"Cannot read override {path}: {e}", path)
    except UnicodeDecodeError as e:
        logger.error("Override %s is not valid UTF-8: %s", path, e)
        raise InvalidDataError(f"Cannot decode override {path}: {e}", path)
    return path.name, source
