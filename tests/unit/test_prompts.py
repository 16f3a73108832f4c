"""Unit tests for prompts module."""

from collections.abc import Callable
from pathlib import Path

import pytest

from prompt_preview.config import Config, ConfigError, PromptNotFoundError
from prompt_preview.engine import (
    CircularInclude,
    ParseError,
    RenderedMessage,
    RenderLimitExceeded,
    TemplateNotFound,
    UnknownFunction,
)
from prompt_preview.simulation import Scenario
from prompt_preview.utils.prompts import PromptRenderer
from prompt_preview.utils.storage import InvalidDataError


def write_file(path: Path, content: str = "") -> Path:
    path.parent.mkdir(parents=True, exist_ok=True)
    path.write_text(content, encoding="utf-8")
    return path


@pytest.fixture
def config(make_config: Callable[..., Config]) -> Config:
    return make_config()


@pytest.fixture
def prompts_dir(tmp_path: Path, config: Config) -> Path:
    return tmp_path / "prompts"


# =============================================================================
# Rendering
# =============================================================================


class TestRender:
    """Tests for PromptRenderer.render."""

    @pytest.mark.asyncio
    async def test_render_with_scenario(
        self, config: Config, prompts_dir: Path, lydia_scenario: Scenario
    ) -> None:
        write_file(
            prompts_dir / "dialogue.prompt",
            "[ system ]\nYou are {{ npc.name }} in {{ location }}.\n[ end system ]\n"
            "[ user ]\n{{ player.name }}: {{ dialogue_request }}\n[ end user ]\n",
        )

        result = await PromptRenderer(config).render("dialogue", lydia_scenario)

        assert result.messages == [
            RenderedMessage(role="system", content="You are Lydia in Whiterun."),
            RenderedMessage(role="user", content="Dovah Kiin: Let's go."),
        ]

    @pytest.mark.asyncio
    async def test_render_without_scenario(self, config: Config, prompts_dir: Path) -> None:
        """An empty scenario still provides placeholder actors."""
        write_file(prompts_dir / "hello.prompt", "Hi {{ npc.name }} and {{ player.name }}")
        result = await PromptRenderer(config).render("hello")
        assert result.rendered_text == "Hi NPC and Player"
        assert result.messages == []

    @pytest.mark.asyncio
    async def test_includes_resolve_against_prompt_roots(
        self, config: Config, prompts_dir: Path
    ) -> None:
        write_file(prompts_dir / "main.prompt", '{% include "parts/head" %}!')
        write_file(prompts_dir / "parts" / "head.prompt", '{% include "name" %}')
        write_file(prompts_dir / "parts" / "name.prompt", "{{ npc.name }}")

        result = await PromptRenderer(config).render("main", Scenario())

        assert result.rendered_text == "NPC!"

    @pytest.mark.asyncio
    async def test_edited_include_shadows_original(
        self, tmp_path: Path, config: Config, prompts_dir: Path
    ) -> None:
        write_file(prompts_dir / "main.prompt", '[{% include "parts/bio" %}]')
        write_file(prompts_dir / "parts" / "bio.prompt", "original")
        write_file(tmp_path / "edited-prompts" / "parts" / "bio.prompt", "edited")

        result = await PromptRenderer(config).render("main")

        assert result.rendered_text == "[edited]"

    @pytest.mark.asyncio
    async def test_prompt_set_layered_first(
        self, tmp_path: Path, config: Config, prompts_dir: Path
    ) -> None:
        write_file(prompts_dir / "main.prompt", '[{% include "bio" %}]')
        write_file(prompts_dir / "bio.prompt", "original")
        write_file(tmp_path / "edited-prompts" / "terse" / "bio.prompt", "terse")

        assert (await PromptRenderer(config).render("main")).rendered_text == "[original]"
        assert (await PromptRenderer(config, "terse").render("main")).rendered_text == "[terse]"

    def test_missing_prompt_set(self, config: Config) -> None:
        with pytest.raises(ConfigError, match="Prompt set not found"):
            PromptRenderer(config, "missing-set")

    @pytest.mark.asyncio
    async def test_decorators_available(
        self, config: Config, prompts_dir: Path, lydia_scenario: Scenario
    ) -> None:
        write_file(prompts_dir / "who.prompt", "{{ get_name(actorUUID) }}/{{ is_player(player.UUID) }}")
        result = await PromptRenderer(config).render("who", lydia_scenario)
        assert result.rendered_text == "Lydia/true"

    @pytest.mark.asyncio
    async def test_character_overrides_win(
        self, tmp_path: Path, config: Config, prompts_dir: Path
    ) -> None:
        write_file(prompts_dir / "bio.prompt", "{% block personality %}Loyal{% endblock %}")
        character = write_file(
            tmp_path / "characters" / "lydia.prompt",
            "{% block personality %}Sarcastic{% endblock %}",
        )

        result = await PromptRenderer(config).render("bio", characters=[character])

        assert result.rendered_text == "Sarcastic"

    @pytest.mark.asyncio
    async def test_missing_character_file(self, tmp_path: Path, config: Config, prompts_dir: Path) -> None:
        write_file(prompts_dir / "bio.prompt", "x")
        with pytest.raises(InvalidDataError):
            await PromptRenderer(config).render("bio", characters=[tmp_path / "nobody.prompt"])

    @pytest.mark.asyncio
    async def test_prompt_not_found(self, config: Config) -> None:
        with pytest.raises(PromptNotFoundError):
            await PromptRenderer(config).render("nowhere")

    @pytest.mark.asyncio
    async def test_render_limits_from_config(
        self, make_config: Callable[..., Config], tmp_path: Path
    ) -> None:
        config = make_config(render="max_iterations = 3")
        write_file(tmp_path / "prompts" / "loop.prompt", "{% for i in range(5) %}{{ i }}{% endfor %}")
        with pytest.raises(RenderLimitExceeded) as exc_info:
            await PromptRenderer(config).render("loop")
        assert exc_info.value.limit == "max_iterations"

    @pytest.mark.asyncio
    async def test_parse_error_names_prompt_file(self, config: Config, prompts_dir: Path) -> None:
        write_file(prompts_dir / "broken.prompt", "line one\n{% if x %}")
        with pytest.raises(ParseError) as exc_info:
            await PromptRenderer(config).render("broken")
        assert exc_info.value.template == "broken.prompt"
        assert exc_info.value.line == 2

    @pytest.mark.asyncio
    async def test_undecodable_prompt_is_parse_error(self, config: Config, prompts_dir: Path) -> None:
        (prompts_dir / "latin1.prompt").write_bytes(b"caf\xe9 \xff\n")
        with pytest.raises(ParseError) as exc_info:
            await PromptRenderer(config).render("latin1")
        assert exc_info.value.template == "latin1.prompt"
        assert exc_info.value.line == 1

    @pytest.mark.asyncio
    async def test_undecodable_include_is_parse_error(self, config: Config, prompts_dir: Path) -> None:
        write_file(prompts_dir / "main.prompt", 'before {% include "latin1" %}')
        (prompts_dir / "latin1.prompt").write_bytes(b"caf\xe9 \xff\n")
        with pytest.raises(ParseError) as exc_info:
            await PromptRenderer(config).render("main")
        assert exc_info.value.template == "latin1.prompt"
        assert "not valid UTF-8" in str(exc_info.value)

    @pytest.mark.asyncio
    async def test_include_uses_configured_extension(
        self, make_config: Callable[..., Config], tmp_path: Path
    ) -> None:
        config = make_config(prompts='extension = ".txt"')
        write_file(tmp_path / "prompts" / "main.txt", 'A{% include "parts/b" %}')
        write_file(tmp_path / "prompts" / "parts" / "b.txt", "B")
        result = await PromptRenderer(config).render("main")
        assert result.rendered_text == "AB"



# =============================================================================
# Checking
# =============================================================================


class TestCheck:
    """Tests for PromptRenderer.check."""

    @pytest.mark.asyncio
    async def test_lists_literal_includes(self, config: Config, prompts_dir: Path) -> None:
        write_file(prompts_dir / "main.prompt", '{% include "a" %}{% if x %}{% include "b" %}{% endif %}')
        write_file(prompts_dir / "a.prompt", '{% include "sub/c" %}')
        write_file(prompts_dir / "b.prompt", "b")
        write_file(prompts_dir / "sub" / "c.prompt", "c")

        checked = await PromptRenderer(config).check("main")

        assert checked == ["main.prompt", "a.prompt", "sub/c.prompt", "b.prompt"]

    @pytest.mark.asyncio
    async def test_dynamic_includes_skipped(self, config: Config, prompts_dir: Path) -> None:
        write_file(prompts_dir / "main.prompt", "{% include npc.bio_template %}")
        assert await PromptRenderer(config).check("main") == ["main.prompt"]

    @pytest.mark.asyncio
    async def test_shared_include_checked_once(self, config: Config, prompts_dir: Path) -> None:
        write_file(prompts_dir / "main.prompt", '{% include "a" %}{% include "a" %}')
        write_file(prompts_dir / "a.prompt", "a")
        assert await PromptRenderer(config).check("main") == ["main.prompt", "a.prompt"]

    @pytest.mark.asyncio
    async def test_self_include_behind_condition(self, config: Config, prompts_dir: Path) -> None:
        """A literal include is followed whether or not its branch would render."""
        write_file(prompts_dir / "loop.prompt", '{% if again %}{% include "loop" %}{% endif %}')
        with pytest.raises(CircularInclude) as exc_info:
            await PromptRenderer(config).check("loop")
        assert exc_info.value.path == ["loop.prompt", "loop.prompt"]

    @pytest.mark.asyncio
    async def test_diamond_is_not_a_cycle(self, config: Config, prompts_dir: Path) -> None:
        write_file(prompts_dir / "main.prompt", '{% include "a" %}{% include "b" %}')
        write_file(prompts_dir / "a.prompt", '{% include "shared" %}')
        write_file(prompts_dir / "b.prompt", '{% include "shared" %}')
        write_file(prompts_dir / "shared.prompt", "s")
        checked = await PromptRenderer(config).check("main")
        assert checked == ["main.prompt", "a.prompt", "shared.prompt", "b.prompt"]

    @pytest.mark.asyncio
    async def test_missing_include(self, config: Config, prompts_dir: Path) -> None:
        write_file(prompts_dir / "main.prompt", '{% include "gone" %}')
        with pytest.raises(TemplateNotFound) as exc_info:
            await PromptRenderer(config).check("main")
        assert exc_info.value.ref == "gone.prompt"

    @pytest.mark.asyncio
    async def test_syntax_error_in_include(self, config: Config, prompts_dir: Path) -> None:
        write_file(prompts_dir / "main.prompt", '{% include "bad" %}')
        write_file(prompts_dir / "bad.prompt", "{{ mystery(1) }}")
        with pytest.raises(UnknownFunction) as exc_info:
            await PromptRenderer(config).check("main")
        assert exc_info.value.template == "bad.prompt"

    @pytest.mark.asyncio
    async def test_decorators_known_to_check(self, config: Config, prompts_dir: Path) -> None:
        write_file(prompts_dir / "main.prompt", "{{ get_scene_context() }}")
        assert await PromptRenderer(config).check("main") == ["main.prompt"]

    @pytest.mark.asyncio
    async def test_circular_include(self, config: Config, prompts_dir: Path) -> None:
        write_file(prompts_dir / "a.prompt", '{% include "b" %}')
        write_file(prompts_dir / "b.prompt", '{% include "a" %}')
        with pytest.raises(CircularInclude) as exc_info:
            await PromptRenderer(config).check("a")
        assert str(exc_info.value) == "Circular include: a.prompt -> b.prompt -> a.prompt"
        with pytest.raises(CircularInclude):
            await PromptRenderer(config).render("a")

    @pytest.mark.asyncio
    async def test_include_uses_configured_extension(
        self, make_config: Callable[..., Config], tmp_path: Path
    ) -> None:
        config = make_config(prompts='extension = ".txt"')
        write_file(tmp_path / "prompts" / "main.txt", '{% include "part" %}')
        write_file(tmp_path / "prompts" / "part.txt", "p")
        assert await PromptRenderer(config).check("main") == ["main.txt", "part.txt"]
