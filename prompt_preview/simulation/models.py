"""Scenario models.

A scenario is the caller-side description of a moment in the game that a
prompt is previewed against: who the player is, which NPCs are around,
where and when the scene happens, what has been said and what happened.
Scenario files are JSON; every field has a neutral default so a partial
file still renders.

Example:
    >>> scenario = Scenario(
    ...     npcs=[NpcConfig(uuid="npc_lydia", name="Lydia", gender="Female")],
    ...     scene=SceneConfig(location="Whiterun", time_of_day="Evening"),
    ... )
    >>> scenario.primary_npc().name
    'Lydia'
"""

from __future__ import annotations

import json
from typing import Any, Literal

from pydantic import BaseModel, ConfigDict, Field, field_validator

# =============================================================================
# Actors
# =============================================================================


class PlayerConfig(BaseModel):
    """Player character attributes.

    Example:
        >>> player = PlayerConfig(name="Dovah Kiin", gender="Female")
    """

    model_config = ConfigDict(extra="allow")

    name: str = "Player"
    gender: str = "Male"
    race: str = "Nord"
    level: int = 25
    is_in_combat: bool = False
    bio: str = ""


class NpcConfig(BaseModel):
    """One NPC present in the scene.

    Example:
        >>> npc = NpcConfig(uuid="npc_lydia", name="Lydia", gender="Female", distance=150)
    """

    model_config = ConfigDict(extra="allow")

    uuid: str
    name: str
    display_name: str = ""
    gender: str = "Male"
    race: str = "Nord"
    distance: float = 200.0
    is_virtual: bool = False
    is_virtual_private: bool = False

    @property
    def shown_name(self) -> str:
        return self.display_name or self.name


# =============================================================================
# Scene
# =============================================================================


class SceneConfig(BaseModel):
    """Where and when the scene takes place.

    ``time_of_day`` and ``weather`` are names such as "Evening" or
    "Light Rain"; unknown names fall back to mid-afternoon and clear sky.
    """

    model_config = ConfigDict(extra="allow")

    location: str = "Whiterun"
    weather: str = "Clear"
    time_of_day: str = "Afternoon"
    world_prompt: str = ""
    scene_prompt: str = ""


class ChatAction(BaseModel):
    model_config = ConfigDict(extra="allow")

    name: str
    params: dict[str, str] = {}


class ChatEntry(BaseModel):
    """One prior chat turn.

    Example:
        >>> entry = ChatEntry(type="npc", speaker="Lydia", target="Player", content="Hello.")
    """

    model_config = ConfigDict(extra="allow")

    type: Literal["player", "npc", "system", "narration"]
    content: str
    speaker: str | None = None
    target: str | None = None
    timestamp: int = 0
    action: ChatAction | None = None
    gm_action: str | None = None


class GameEvent(BaseModel):
    """A fired game event such as a spell cast or a hit.

    Example:
        >>> event = GameEvent(event_type="spell_cast", fields={"spell": "Flames"})
    """

    model_config = ConfigDict(extra="allow")

    event_type: str
    fields: dict[str, str | float] = {}
    timestamp: int = 0


class ActionSpec(BaseModel):
    """An action the NPC is allowed to take."""

    model_config = ConfigDict(extra="allow")

    name: str
    description: str = ""
    parameter_schema: str = ""


# =============================================================================
# Scenario
# =============================================================================


class Scenario(BaseModel):
    """Everything a prompt preview renders against.

    Example:
        >>> scenario = Scenario.model_validate_json(Path("lydia.json").read_text())
    """

    model_config = ConfigDict(extra="allow")

    npc: NpcConfig | None = None
    player: PlayerConfig = Field(default_factory=PlayerConfig)
    scene: SceneConfig = Field(default_factory=SceneConfig)
    npcs: list[NpcConfig] = []
    chat_history: list[ChatEntry] = []
    game_events: list[GameEvent] = []
    eligible_actions: list[ActionSpec] = []

    dialogue_request: str = ""
    dialogue_response: str = ""
    render_mode: str = "full"
    relevant_memories: str = ""

    response_target: dict[str, Any] | None = None
    triggering_event: dict[str, Any] | None = None
    crosshair_target: dict[str, Any] | None = None
    last_speaker: str = ""
    candidate_dialogues: list[Any] | None = None

    scene_plan: dict[str, Any] | None = None
    is_continuous_mode: bool = False

    custom_variables: dict[str, Any] = {}

    @field_validator("scene_plan", mode="before")
    @classmethod
    def _parse_scene_plan(cls, value: Any) -> Any:
        # Scene plans are often pasted as raw JSON text
        if isinstance(value, str):
            if not value.strip():
                return None
            try:
                return json.loads(value)
            except json.JSONDecodeError as e:
                raise ValueError(f"scene_plan is not valid JSON: {e}") from e
        return value

    def primary_npc(self) -> NpcConfig | None:
        """The NPC the prompt is rendered for: ``npc`` or the first of ``npcs``."""
        if self.npc is not None:
            return self.npc
        return self.npcs[0] if self.npcs else None
