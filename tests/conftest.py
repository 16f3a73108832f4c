"""Pytest configuration and shared fixtures."""

from collections.abc import Callable
from pathlib import Path

import pytest

from prompt_preview.config import Config
from prompt_preview.simulation import NpcConfig, PlayerConfig, Scenario, SceneConfig
from prompt_preview.simulation.models import ChatEntry


@pytest.fixture
def project_root() -> Path:
    """Return the project root directory."""
    return Path(__file__).parent.parent


def make_config_toml(render: str = "", prompts: str = "") -> str:
    """Generate config.toml content with optional section bodies."""
    return f"""[render]
{render}

[prompts]
{prompts}
"""


@pytest.fixture
def make_config(tmp_path: Path) -> Callable[..., Config]:
    """Factory writing config.toml plus prompt directories into tmp_path."""

    def factory(render: str = "", prompts: str = "") -> Config:
        (tmp_path / "config.toml").write_text(make_config_toml(render, prompts), encoding="utf-8")
        (tmp_path / "prompts").mkdir(exist_ok=True)
        (tmp_path / "edited-prompts").mkdir(exist_ok=True)
        return Config.load(project_root=tmp_path)

    return factory


@pytest.fixture
def lydia_scenario() -> Scenario:
    """Scenario with Lydia as primary NPC and Hulda nearby."""
    return Scenario(
        npcs=[
            NpcConfig(uuid="npc_lydia", name="Lydia", gender="Female", distance=150),
            NpcConfig(uuid="npc_hulda", name="Hulda", gender="Female", distance=600),
        ],
        player=PlayerConfig(name="Dovah Kiin", level=12),
        scene=SceneConfig(location="Whiterun", weather="Light Rain", time_of_day="Evening"),
        chat_history=[
            ChatEntry(type="player", speaker="Dovah Kiin", target="Lydia", content="Ready?"),
            ChatEntry(type="npc", speaker="Lydia", target="Player", content="Yes."),
        ],
        dialogue_request="Let's go.",
    )
