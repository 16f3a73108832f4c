"""Game-side decorator functions emulated from a state map.

Real prompt files call functions the game provides at render time, such
as ``decnpc(actorUUID)`` or ``get_recent_events(20, npc.UUID)``. This
module binds equivalents to a built state so those prompts can be
previewed outside the game. Everything is answered from the state map
alone; functions with no meaningful offline answer return the neutral
defaults the game would report for an ordinary, idle actor.

Example:
    >>> registry = build_decorators(build_state(scenario))
    >>> registry.get("get_name").call(None, ["player_001"])
    'Player'
"""

from __future__ import annotations

import math
from collections.abc import Callable
from typing import Any

from prompt_preview.engine.functions import FunctionRegistry
from prompt_preview.engine.values import Value, is_number, stringify, to_number, to_value

# Multiplier from game distance units to meters
METERS_PER_UNIT = 0.01428

DEFAULT_EVENT_COUNT = 20

BASE_GAME_PLUGINS = ["Skyrim.esm", "Update.esm", "Dawnguard.esm", "HearthFires.esm", "Dragonborn.esm"]

# Event types produced from fired game events
GAME_EVENT_TYPES = {
    "spell", "hit", "combat", "death", "equip", "activation",
    "book_read", "quest_stage", "location_change", "shout",
    "item_pickup", "skill_increase",
}  # fmt: skip

# Status queries answered with a constant: name -> value
CONSTANT_DECORATORS: dict[str, Any] = {
    "get_base_actor_value": 100,
    "get_event_history_count": DEFAULT_EVENT_COUNT,
    "is_narration_enabled": True,
    "distance_between": 200,
    "has_line_of_sight": True,
    "is_summoned": False,
    "is_reanimated": False,
    "is_hostile_to_actor": False,
    "has_weapon_drawn": False,
    "is_knocked_down": False,
    "is_follower": False,
    "is_sneaking": False,
    "is_sprinting": False,
    "is_swimming": False,
    "is_unconscious": False,
    "get_worn_equipment": {},
    "get_inventory": {},
    "get_merchant_inventory": {"isMerchant": False},
    "worn_has_keyword": False,
    "actor_has_keyword": False,
    "is_in_faction": False,
    "get_faction_rank": -1,
    "get_relationship_rank": 0,
    "get_crime_gold": {"total": 0, "violent": 0, "nonViolent": 0},
    "get_civil_war_side": "Neutral",
    "has_magic_effect": False,
    "has_spell": False,
    "get_spell_list": [],
    "has_perk": False,
    "get_all_perks": [],
    "is_scene_newer_than_location": True,
    "track_entity_state": {"hasPrevious": False, "changed": False},
    "is_audio_tags_enabled": False,
    "get_narrator_uuid": "",
    "get_actor_tts": "",
    "get_all_active_quests": [],
    "get_selected_quests": [],
    "render_quest_template": "",
    "is_quest_active": False,
    "get_quest_stage": 0,
    "is_first_person": True,
    "is_vr": False,
    "get_all_loaded_plugins": BASE_GAME_PLUGINS,
    "get_global_value": 0,
    "get_form_name": "Item",
}


def _constant(value: Any) -> Callable[..., Value]:
    frozen = to_value(value)

    def decorator(*_args: Value) -> Value:
        # Fresh copy per call so templates never share a mutable default
        return to_value(frozen)

    return decorator


def _entries(value: Value) -> list[dict[str, Value]]:
    if not isinstance(value, list):
        return []
    return [item for item in value if isinstance(item, dict)]


def resolve_actor(state: dict[str, Value], uuid: Value) -> dict[str, Value] | None:
    """Find the player, primary NPC or nearby NPC with this UUID."""
    wanted = stringify(uuid)
    candidates = [state.get("player"), state.get("npc"), *_entries(state.get("nearby_npcs"))]
    for actor in candidates:
        if isinstance(actor, dict) and stringify(actor.get("UUID")) == wanted:
            return actor
    return None


def build_decorators(state: dict[str, Value]) -> FunctionRegistry:
    """Bind the game decorator functions to ``state``.

    Args:
        state: Map produced by ``build_state`` (or any map with the same keys).

    Returns:
        Registry to pass as ``functions`` to the renderer.
    """
    registry = FunctionRegistry()

    for name, value in CONSTANT_DECORATORS.items():
        registry.register(name, _constant(value))

    # =========================================================================
    # Actors
    # =========================================================================

    @registry.function("decnpc")
    def decnpc(uuid: Value = None) -> Value:
        actor = resolve_actor(state, uuid)
        if actor is not None:
            return actor
        return {"name": f"NPC({stringify(uuid)})", "gender": "Unknown", "race": "Unknown"}

    @registry.function("isValidActor")
    def is_valid_actor(uuid: Value = None) -> Value:
        if stringify(uuid) in ("", "0"):
            return False
        return resolve_actor(state, uuid) is not None

    @registry.function("get_name")
    def get_name(uuid: Value = None) -> Value:
        actor = resolve_actor(state, uuid)
        if actor is None:
            return f"NPC({stringify(uuid)})"
        return stringify(actor.get("name")) or "Unknown"

    @registry.function("get_location")
    def get_location(*_args: Value) -> Value:
        # Every actor shares the scene location
        return state.get("location")

    @registry.function("is_player")
    def is_player(uuid: Value = None) -> Value:
        player = state.get("player")
        return isinstance(player, dict) and stringify(uuid) == stringify(player.get("UUID"))

    @registry.function("is_in_combat")
    def is_in_combat(uuid: Value = None) -> Value:
        actor = resolve_actor(state, uuid)
        return bool(actor and actor.get("isInCombat"))

    @registry.function("get_actor_value")
    def get_actor_value(uuid: Value = None, stat: Value = None) -> Value:
        actor = resolve_actor(state, uuid)
        if actor is None:
            return 0.0
        name = stringify(stat)
        if name in actor:
            value = actor[name]
            return 0.0 if value is None else value
        skills = actor.get("skills")
        if isinstance(skills, dict) and skills.get(name) is not None:
            return skills[name]
        return 0.0

    # =========================================================================
    # Events and memories
    # =========================================================================

    @registry.function("get_recent_events")
    def get_recent_events(count: Value = None, uuid: Value = None) -> Value:
        events = _entries(state.get("event_history"))
        if not events:
            return state.get("recent_events") or ""
        limit = int(count) if is_number(count) and math.isfinite(count) else DEFAULT_EVENT_COUNT
        if isinstance(uuid, str) and uuid:
            events = [
                e for e in events if uuid in (e.get("originatingActor"), e.get("targetActor"))
            ]
        return events[-limit:] if limit > 0 else events

    @registry.function("get_relevant_memories")
    def get_relevant_memories(*_args: Value) -> Value:
        return state.get("relevant_memories") or ""

    @registry.function("get_nearby_npc_list")
    def get_nearby_npc_list(*_args: Value) -> Value:
        return state.get("nearby_npcs") or []

    @registry.function("format_event")
    def format_event(event: Value = None, style: Value = "verbose") -> Value:
        if not isinstance(event, dict) or not isinstance(event.get("data"), dict):
            return ""
        event_type = stringify(event.get("type"))
        text = stringify(event["data"].get("text"))
        if event_type in ("dialogue", "dialogue_player_text"):
            return text
        if event_type in ("gamemaster_dialogue", "direct_narration"):
            return f"*{text}*"
        if event_type in GAME_EVENT_TYPES and stringify(style) in ("recent_events", "compact"):
            return text
        return f"[{event_type}] {text}"

    # =========================================================================
    # Actions and distances
    # =========================================================================

    @registry.function("is_action_enabled")
    def is_action_enabled(name: Value = None) -> Value:
        wanted = stringify(name)
        return any(a.get("name") == wanted for a in _entries(state.get("eligible_actions")))

    @registry.function("units_to_meters")
    def units_to_meters(units: Value = None) -> Value:
        if not is_number(units):
            return units
        # Round half up
        return float(math.floor(to_number(units) * METERS_PER_UNIT + 0.5))

    # =========================================================================
    # Scene
    # =========================================================================

    def scene_context() -> str:
        return stringify(state.get("sceneContext"))

    def location_description() -> str:
        location = state.get("locationObject")
        return stringify(location.get("description")) if isinstance(location, dict) else ""

    @registry.function("has_current_scene_description")
    def has_current_scene_description(*_args: Value) -> Value:
        return bool(scene_context())

    @registry.function("get_current_scene_description")
    def get_current_scene_description(*_args: Value) -> Value:
        return scene_context()

    @registry.function("has_current_location_description")
    def has_current_location_description(*_args: Value) -> Value:
        return bool(location_description())

    @registry.function("get_current_location_description")
    def get_current_location_description(*_args: Value) -> Value:
        return location_description()

    @registry.function("get_scene_context")
    def get_scene_context(*_args: Value) -> Value:
        weather = state.get("currentWeather")
        weather_name = stringify(weather.get("name")) if isinstance(weather, dict) else ""
        parts = [
            f"## Current Location\nThe scene is taking place in **{stringify(state.get('location'))}**",
            f"## Current Time\n**Time**: {stringify(state.get('gameTime'))}\n"
            f"- {stringify(state.get('time_desc'))}",
            f"## Current Weather\n**Weather**: {weather_name or 'Clear'}",
        ]
        if scene_context():
            parts.append(f"## Scene\n{scene_context()}")
        return "\n\n".join(parts)

    # =========================================================================
    # Short-lived events
    # =========================================================================

    def short_lived() -> list[dict[str, Value]]:
        scene = state.get("scene")
        return _entries(scene.get("short_lived_events")) if isinstance(scene, dict) else []

    @registry.function("get_short_lived_events_count")
    def get_short_lived_events_count(*_args: Value) -> Value:
        return float(len(short_lived()))

    @registry.function("get_active_short_lived_events")
    def get_active_short_lived_events(*_args: Value) -> Value:
        return short_lived()

    @registry.function("get_short_lived_events_by_type")
    def get_short_lived_events_by_type(event_type: Value = None) -> Value:
        wanted = stringify(event_type)
        return [e for e in short_lived() if e.get("type") == wanted]

    @registry.function("get_short_lived_events_by_entity")
    def get_short_lived_events_by_entity(uuid: Value = None) -> Value:
        wanted = stringify(uuid)
        keys = ("source_uuid", "originatingActor", "targetActor")
        return [e for e in short_lived() if any(e.get(key) == wanted for key in keys)]

    @registry.function("is_plugin_loaded")
    def is_plugin_loaded(name: Value = None) -> Value:
        return stringify(name) in BASE_GAME_PLUGINS

    return registry
