"""Simulation state builder.

Turns a Scenario into the nested value map templates render against.
Besides copying scenario fields, it derives the presentation-only data
real prompts expect from the game: an in-game clock string, weather
flags, pronouns, first and last names, per-event time strings and the
legacy plain-text event history.

The builder is a pure function of the scenario: no clock, no randomness,
so the same scenario always produces the same state.

Example:
    >>> state = build_state(Scenario(scene=SceneConfig(time_of_day="Evening")))
    >>> state["gameTime"]
    'Middas, 6:00 PM, 17th of Last Seed, 4E 201'
"""

from __future__ import annotations

import logging
from dataclasses import dataclass
from typing import Any

from prompt_preview.engine.values import Value, to_value
from prompt_preview.simulation.models import (
    ChatEntry,
    GameEvent,
    NpcConfig,
    PlayerConfig,
    Scenario,
)

logger = logging.getLogger(__name__)

PLAYER_UUID = "player_001"
DEFAULT_NPC_DISTANCE = 200.0

# =============================================================================
# Clock
# =============================================================================

WEEKDAYS = ["Sundas", "Morndas", "Tirdas", "Middas", "Turdas", "Fredas", "Loredas"]
MONTHS = [
    "Morning Star", "Sun's Dawn", "First Seed", "Rain's Hand", "Second Seed", "Mid Year",
    "Sun's Height", "Last Seed", "Hearthfire", "Frostfall", "Sun's Dusk", "Evening Star",
]  # fmt: skip

# Time-of-day name -> (hour, minute)
TIME_MAP: dict[str, tuple[int, int]] = {
    "Dawn": (6, 0),
    "Early Morning": (7, 30),
    "Morning": (9, 0),
    "Late Morning": (10, 30),
    "Noon": (12, 0),
    "Early Afternoon": (13, 30),
    "Afternoon": (14, 0),
    "Late Afternoon": (16, 0),
    "Evening": (18, 0),
    "Dusk": (19, 30),
    "Night": (21, 0),
    "Late Night": (23, 0),
    "Midnight": (0, 0),
}
DEFAULT_TIME = (14, 0)

# Fixed calendar date every preview happens on
GAME_DAY = 17
GAME_WEEKDAY = WEEKDAYS[3]
GAME_MONTH = MONTHS[7]
GAME_YEAR = "4E 201"


@dataclass(frozen=True)
class GameClock:
    """Derived in-game time for a time-of-day name."""

    hour: int
    minute: int
    description: str

    @property
    def minutes(self) -> int:
        return self.hour * 60 + self.minute

    @property
    def display_hour(self) -> int:
        return _display_hour(self.hour)

    @property
    def ampm(self) -> str:
        return "PM" if self.hour >= 12 else "AM"

    @property
    def text(self) -> str:
        return (
            f"{GAME_WEEKDAY}, {self.display_hour}:{self.minute:02d} {self.ampm}, "
            f"{GAME_DAY}th of {GAME_MONTH}, {GAME_YEAR}"
        )

    def as_dict(self) -> dict[str, Any]:
        return {
            "hour": self.hour,
            "minute": self.minute,
            "displayHour": self.display_hour,
            "ampm": self.ampm,
            "day": GAME_DAY,
            "monthName": GAME_MONTH,
            "weekdayName": GAME_WEEKDAY,
            "year": GAME_YEAR,
        }


def _display_hour(hour: int) -> int:
    if hour == 0:
        return 12
    return hour - 12 if hour > 12 else hour


def derive_clock(time_of_day: str) -> GameClock:
    hour, minute = TIME_MAP.get(time_of_day, DEFAULT_TIME)
    return GameClock(hour, minute, time_of_day)


def event_time_text(minutes: int) -> str:
    """Format minutes since midnight as "3:05 PM"."""
    hour = (minutes // 60) % 24
    ampm = "PM" if hour >= 12 else "AM"
    return f"{_display_hour(hour)}:{minutes % 60:02d} {ampm}"


# =============================================================================
# Weather
# =============================================================================

# Weather name -> (is_raining, is_snowing, wind_speed)
WEATHER_MAP: dict[str, tuple[bool, bool, int]] = {
    "Clear": (False, False, 0),
    "Cloudy": (False, False, 10),
    "Overcast": (False, False, 15),
    "Fog": (False, False, 5),
    "Light Rain": (True, False, 10),
    "Rain": (True, False, 20),
    "Heavy Rain": (True, False, 30),
    "Thunderstorm": (True, False, 40),
    "Light Snow": (False, True, 10),
    "Snow": (False, True, 20),
    "Blizzard": (False, True, 50),
}


def derive_weather(weather: str) -> dict[str, Any]:
    is_raining, is_snowing, wind_speed = WEATHER_MAP.get(weather, (False, False, 0))
    return {
        "name": weather,
        "isRaining": is_raining,
        "isSnowing": is_snowing,
        "windSpeed": wind_speed,
    }


# =============================================================================
# Actors
# =============================================================================

NPC_SKILLS = {
    "OneHanded": 25, "TwoHanded": 20, "Marksman": 20, "Block": 20,
    "Smithing": 20, "HeavyArmor": 20, "LightArmor": 25, "Pickpocket": 15,
    "Lockpicking": 15, "Sneak": 20, "Alchemy": 15, "Speech": 25,
    "Alteration": 15, "Conjuration": 15, "Destruction": 15, "Illusion": 15,
    "Restoration": 15, "Enchanting": 15,
}  # fmt: skip


def _person_fields(name: str, gender: str) -> dict[str, Any]:
    """Name split and pronouns shared by player and NPC objects."""
    first, _, last = name.partition(" ")
    is_female = gender == "Female"
    return {
        "firstName": first,
        "lastName": last.strip(),
        "sex": gender,
        "isFemale": is_female,
        "subjectivePronoun": "she" if is_female else "he",
        "objectivePronoun": "her" if is_female else "him",
        "possessiveAdjective": "her" if is_female else "his",
        "reflexivePronoun": "herself" if is_female else "himself",
    }


def build_player(player: PlayerConfig) -> dict[str, Any]:
    name = player.name or "Player"
    gender = player.gender or "Male"
    return {
        "name": name,
        "UUID": PLAYER_UUID,
        "gender": gender,
        "race": player.race or "Nord",
        "level": player.level,
        "isInCombat": player.is_in_combat,
        "bio": player.bio,
        **_person_fields(name, gender),
        "class": "Adventurer",
        "health": 100,
        "maxHealth": 100,
        "magicka": 100,
        "maxMagicka": 100,
        "stamina": 100,
        "maxStamina": 100,
    }


def build_npc(npc: NpcConfig) -> dict[str, Any]:
    name = npc.shown_name
    return {
        "name": name,
        "UUID": npc.uuid,
        "gender": npc.gender,
        "race": npc.race,
        **_person_fields(name, npc.gender),
        "level": 10,
        "class": "Citizen",
        "health": 100,
        "maxHealth": 100,
        "magicka": 50,
        "maxMagicka": 50,
        "stamina": 100,
        "maxStamina": 100,
        "isInCombat": False,
        "isDead": False,
        "isVirtual": npc.is_virtual,
        "isVirtualPrivate": npc.is_virtual_private,
        "universalTranslatorSpeechPattern": "",
        "distance": npc.distance or DEFAULT_NPC_DISTANCE,
        "factions": [],
        "keywords": [],
        "skills": dict(NPC_SKILLS),
    }


PLACEHOLDER_NPC = {"name": "NPC", "UUID": "npc_001", "gender": "Unknown", "race": "Unknown"}


# =============================================================================
# Events
# =============================================================================

# Game event type -> event history type
EVENT_TYPE_MAP = {
    "spell_cast": "spell",
    "shout_cast": "shout",
}


def _uuid_by_name(npcs: dict[str, dict[str, Any]], name: str) -> str | None:
    for uuid, npc in npcs.items():
        if npc["name"] == name:
            return uuid
    return None


def chat_event(
    entry: ChatEntry,
    minutes: int,
    location: str,
    npcs: dict[str, dict[str, Any]],
) -> dict[str, Any]:
    """Convert one chat turn into an event history entry."""
    originating = ""
    target = ""
    target_name = entry.target or ""

    if entry.type == "player":
        event_type = "dialogue_player_text"
        originating = PLAYER_UUID
        if target_name and target_name not in ("Player", entry.speaker):
            target = _uuid_by_name(npcs, target_name) or ""
        data = {"speaker": entry.speaker or "Player", "text": entry.content}
    elif entry.type == "npc":
        event_type = "dialogue"
        originating = _uuid_by_name(npcs, entry.speaker or "") or ""
        if target_name and target_name != "Player":
            target = _uuid_by_name(npcs, target_name) or PLAYER_UUID
        else:
            target = PLAYER_UUID
        data = {"speaker": entry.speaker or "NPC", "text": entry.content}
    elif entry.type == "narration":
        event_type = "gamemaster_dialogue" if entry.gm_action == "Narrate" else "direct_narration"
        data = {"text": entry.content}
    else:
        event_type = "gamemaster_dialogue" if entry.gm_action else "system"
        data = {"text": entry.content}

    return {
        "type": event_type,
        "gameTime": minutes,
        "gameTimeStr": event_time_text(minutes),
        "originatingActor": originating,
        "targetActor": target,
        "location": location,
        "data": data,
    }


def describe_game_event(event: GameEvent) -> str:
    """Human-readable one-line summary of a game event."""
    f = event.fields

    def field(name: str, fallback: str = "") -> str:
        value = f.get(name)
        if value is None or value == "":
            return fallback
        if isinstance(value, float) and value.is_integer():
            return str(int(value))
        return str(value)

    kind = event.event_type
    if kind == "spell_cast":
        text = f"Cast {field('spell', 'a spell')}"
        if field("school"):
            text += f" ({field('school')})"
        if field("target") and field("target") != "self":
            text += f" at {field('target')}"
        return text
    if kind == "hit":
        text = f"Hit {field('target', 'target')} with {field('weapon', 'a weapon')}"
        return text + (f" for {field('damage')} damage" if field("damage") else "")
    if kind == "combat":
        state = {"enter": "Entered", "exit": "Left"}.get(field("state"), field("state", "In"))
        return f"{state} combat" + (f" with {field('enemy')}" if field("enemy") else "")
    if kind == "death":
        return f"{field('victim', 'Someone')} died" + (
            f" from {field('cause')}" if field("cause") else ""
        )
    if kind == "equip":
        return f"Equipped {field('item', 'an item')}" + (
            f" in {field('slot')}" if field("slot") else ""
        )
    if kind == "activation":
        return f"Activated {field('object', 'an object')}" + (
            f" ({field('type')})" if field("type") else ""
        )
    if kind == "book_read":
        book_type = field("type")
        suffix = f" ({book_type})" if book_type and book_type != "normal" else ""
        return f'Read "{field("title", "a book")}"{suffix}'
    if kind == "quest_stage":
        return f"Quest {field('quest', 'unknown')} advanced to stage {field('stage', '?')}"
    if kind == "location_change":
        return f"Moved from {field('from', '?')} to {field('to', '?')}"
    if kind == "shout_cast":
        words = field("words")
        suffix = f" ({words} word{'' if words == '1' else 's'})" if words else ""
        return f"Used {field('shout', 'a shout')}{suffix}"
    if kind == "item_pickup":
        return f"Picked up {field('item', 'an item')}" + (
            f" ({field('type')})" if field("type") else ""
        )
    if kind == "skill_increase":
        return f"{field('skill', 'Skill')} increased to {field('level', '?')}"
    return ", ".join(f"{key}={field(key)}" for key in f if field(key))


def game_event(event: GameEvent, minutes: int, location: str) -> dict[str, Any]:
    """Convert a fired game event into an event history entry."""
    data: dict[str, Any] = dict(event.fields)
    data["text"] = describe_game_event(event)

    originating = PLAYER_UUID
    target = ""
    if event.event_type == "hit" and event.fields.get("target"):
        target = str(event.fields["target"])
    elif event.event_type == "death":
        originating = str(event.fields.get("victim") or PLAYER_UUID)

    return {
        "type": EVENT_TYPE_MAP.get(event.event_type, event.event_type),
        "gameTime": minutes,
        "gameTimeStr": event_time_text(minutes),
        "originatingActor": originating,
        "targetActor": target,
        "location": location,
        "data": data,
    }


def legacy_history(entries: list[ChatEntry], player_name: str) -> str:
    lines = []
    for entry in entries:
        if entry.type == "player":
            lines.append(f"{player_name}: {entry.content}")
        elif entry.type == "npc":
            lines.append(f"{entry.speaker}: {entry.content}")
        elif entry.type == "narration":
            lines.append(f"*{entry.content}*")
        else:
            lines.append(entry.content)
    return "\n".join(lines)


# =============================================================================
# Builder
# =============================================================================


def build_state(scenario: Scenario) -> dict[str, Value]:
    """Build the template state map for a scenario.

    Args:
        scenario: Scenario to preview against.

    Returns:
        Nested value map. Keys follow the variable names real prompts
        use (``npc``, ``player``, ``gameTime``, ``eligible_actions``, ...).
        ``custom_variables`` are merged last and win over derived keys.
    """
    scene = scenario.scene
    player = build_player(scenario.player)
    npcs = {npc.uuid: build_npc(npc) for npc in scenario.npcs}

    primary = scenario.primary_npc()
    npc = build_npc(primary) if primary is not None else dict(PLACEHOLDER_NPC)
    primary_uuid = primary.uuid if primary is not None else None
    nearby = [build_npc(n) for n in scenario.npcs if n.uuid != primary_uuid]

    clock = derive_clock(scene.time_of_day or "Afternoon")
    weather = derive_weather(scene.weather or "Clear")

    events = [
        chat_event(entry, clock.minutes + offset, scene.location, npcs)
        for offset, entry in enumerate(scenario.chat_history)
    ]
    # Game events follow the chat turns on the event clock
    start = clock.minutes + len(events)
    events.extend(
        [
            game_event(event, start + offset, scene.location)
            for offset, event in enumerate(scenario.game_events)
        ]
    )

    # Short-lived events restart their clock offsets at zero
    short_lived = []
    for offset, event in enumerate(scenario.game_events):
        structured = game_event(event, clock.minutes + offset, scene.location)
        structured.update(
            source_uuid=structured["originatingActor"],
            entity=structured["originatingActor"],
            timestamp=event.timestamp,
        )
        short_lived.append(structured)

    if scenario.candidate_dialogues is not None:
        candidates: list[Any] = list(scenario.candidate_dialogues)
    else:
        candidates = [
            {
                "name": n.shown_name,
                "UUID": n.uuid,
                "gender": n.gender,
                "race": n.race,
                "distance": n.distance or DEFAULT_NPC_DISTANCE,
            }
            for n in scenario.npcs
        ]

    location_object = {"name": scene.location, "description": scene.scene_prompt}
    scene_context = "\n".join(p for p in (scene.world_prompt, scene.scene_prompt) if p)

    state: dict[str, Any] = {
        "npc": npc,
        "player": player,
        "location": scene.location,
        "dialogue_request": scenario.dialogue_request,
        "dialogue_response": scenario.dialogue_response,
        "lastSpeaker": {"name": scenario.last_speaker},
        "candidateDialogues": candidates,
        "eligible_actions": [action.model_dump() for action in scenario.eligible_actions],
        "render_mode": scenario.render_mode,
        "structured_json_actions": False,
        "actorUUID": npc["UUID"],
        "responseTarget": scenario.response_target,
        "triggeringEvent": scenario.triggering_event,
        "crosshairTarget": scenario.crosshair_target,
        "embed_actions_in_dialogue": False,
        "promptForDialogue": scenario.dialogue_request,
        "gameTime": clock.text,
        "gameTimeJson": clock.as_dict(),
        "gameTimeNumeric": clock.minutes,
        "time_desc": clock.description,
        "currentWeather": weather,
        "is_indoors": False,
        "sceneContext": scene_context,
        "locationObject": location_object,
        "location_object": location_object,
        "scene": {"short_lived_events": short_lived},
        "scene_plan": scenario.scene_plan,
        "is_continuous_mode": scenario.is_continuous_mode,
        "has_scene_plan": bool(scenario.scene_plan),
        "isTimePaused": False,
        # Read by the decorator functions
        "nearby_npcs": nearby,
        "event_history": events,
        "recent_events": legacy_history(scenario.chat_history, player["name"]),
        "relevant_memories": scenario.relevant_memories,
        **scenario.custom_variables,
    }

    logger.debug(
        "Built state: npc=%s, %d nearby, %d events, %d short-lived",
        npc["name"],
        len(nearby),
        len(events),
        len(short_lived),
    )
    return to_value(state)
