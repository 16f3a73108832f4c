"""Scenario models, state builder and game decorator emulation."""

from prompt_preview.simulation.decorators import build_decorators
from prompt_preview.simulation.models import (
    ActionSpec,
    ChatEntry,
    GameEvent,
    NpcConfig,
    PlayerConfig,
    Scenario,
    SceneConfig,
)
from prompt_preview.simulation.state import build_state

__all__ = [
    "ActionSpec",
    "ChatEntry",
    "GameEvent",
    "NpcConfig",
    "PlayerConfig",
    "Scenario",
    "SceneConfig",
    "build_decorators",
    "build_state",
]
