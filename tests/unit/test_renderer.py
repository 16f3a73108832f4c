"""Unit tests for renderer module."""

import asyncio
import copy
import json

import pytest
from pydantic import BaseModel

from prompt_preview.engine import (
    FunctionRegistry,
    MalformedSections,
    ParseError,
    RenderedMessage,
    RenderResult,
    TemplateError,
    UnknownFunction,
    render,
)
from prompt_preview.utils.loaders import DictLoader

LYDIA_TEMPLATE = "Hello {{ npc.name }}!\n[ system ]\nYou are {{ npc.name }}.\n[ end system ]"


class _State(BaseModel):
    name: str
    level: int


class TestRender:
    """Tests for the render entry point."""

    @pytest.mark.asyncio
    async def test_end_to_end(self) -> None:
        result = await render(LYDIA_TEMPLATE, {"npc": {"name": "Lydia"}}, DictLoader({}))

        assert result.rendered_text == "Hello Lydia!\n[ system ]\nYou are Lydia.\n[ end system ]"
        assert result.messages == [RenderedMessage(role="system", content="You are Lydia.")]

    @pytest.mark.asyncio
    async def test_idempotent(self) -> None:
        state = {"npc": {"name": "Lydia"}, "xs": {"b": 1, "a": 2}}
        source = LYDIA_TEMPLATE + "{% for k, v in xs %}{{ k }}{{ v }}{% endfor %}"
        first = await render(source, state, DictLoader({}))
        second = await render(source, state, DictLoader({}))
        assert first == second

    @pytest.mark.asyncio
    async def test_state_not_mutated(self) -> None:
        state = {"npc": {"name": "Lydia", "tags": ["nord"]}}
        original = copy.deepcopy(state)
        source = '{% set npc.name = "X" %}{% set npc.tags = append(npc.tags, "x") %}{{ npc.name }}'
        await render(source, state, DictLoader({}))
        assert state == original

    @pytest.mark.asyncio
    async def test_concurrent_renders_are_independent(self) -> None:
        loader = DictLoader(
            {
                "greet.prompt": "{% block who %}{{ npc.name }}{% endblock %}",
            }
        )
        source = '{% set tag = npc.name %}[ user ]\n{% include "greet" %}/{{ tag }}\n[ end user ]'
        names = [f"npc{i}" for i in range(20)]

        results = await asyncio.gather(
            *(render(source, {"npc": {"name": name}}, loader) for name in names)
        )

        assert [r.messages[0].content for r in results] == [f"{n}/{n}" for n in names]

    @pytest.mark.asyncio
    async def test_state_none_is_empty(self) -> None:
        result = await render("[{{ npc.name }}]", None, DictLoader({}))
        assert result.rendered_text == "[]"

    @pytest.mark.asyncio
    async def test_pydantic_state(self) -> None:
        result = await render("{{ name }} {{ level }}", _State(name="Lydia", level=10), DictLoader({}))
        assert result.rendered_text == "Lydia 10"

    @pytest.mark.asyncio
    async def test_non_mapping_state_rejected(self) -> None:
        with pytest.raises(TypeError):
            await render("x", ["not", "a", "map"], DictLoader({}))

    @pytest.mark.asyncio
    async def test_extra_functions(self) -> None:
        functions = FunctionRegistry()
        functions.register("get_mood", lambda uuid=None: "calm")
        result = await render(
            "{{ get_mood(npc) }} {{ upper('x') }}", {}, DictLoader({}), functions=functions
        )
        assert result.rendered_text == "calm X"

    @pytest.mark.asyncio
    async def test_extra_function_may_replace_builtin(self) -> None:
        functions = FunctionRegistry()
        functions.register("upper", lambda value=None: "custom")
        result = await render("{{ upper('x') }}", {}, DictLoader({}), functions=functions)
        assert result.rendered_text == "custom"

    @pytest.mark.asyncio
    async def test_unknown_function(self) -> None:
        with pytest.raises(UnknownFunction) as exc_info:
            await render("ok {{ get_mood(npc) }}", {}, DictLoader({}))
        assert exc_info.value.name == "get_mood"
        assert exc_info.value.kind == "UnknownFunction"

    @pytest.mark.asyncio
    async def test_parse_error_names_template_path(self) -> None:
        with pytest.raises(ParseError) as exc_info:
            await render("{% if x %}", {}, DictLoader({}), template_path="dialogue.prompt")
        assert exc_info.value.template == "dialogue.prompt"

    @pytest.mark.asyncio
    async def test_malformed_sections_fail_render(self) -> None:
        with pytest.raises(MalformedSections):
            await render("[ user ]\n{{ x }}", {"x": 1}, DictLoader({}))

    @pytest.mark.asyncio
    async def test_sections_from_rendered_text_not_source(self) -> None:
        source = "{% if admin %}[ system ]\nsecret\n[ end system ]\n{% endif %}[ user ]\nhi\n[ end user ]"
        result = await render(source, {"admin": False}, DictLoader({}))
        assert [m.role for m in result.messages] == ["user"]

    @pytest.mark.asyncio
    async def test_marker_produced_by_expression(self) -> None:
        result = await render("{{ open }}\nhi\n{{ close }}", {"open": "[ user ]", "close": "[ end user ]"}, DictLoader({}))
        assert result.messages == [RenderedMessage(role="user", content="hi")]

    @pytest.mark.asyncio
    async def test_all_errors_are_template_errors(self) -> None:
        with pytest.raises(TemplateError):
            await render('{% include "nowhere" %}', {}, DictLoader({}))

    @pytest.mark.asyncio
    async def test_override_parse_error_names_label(self) -> None:
        with pytest.raises(ParseError) as exc_info:
            await render("x", {}, DictLoader({}), overrides=[("lydia.prompt", "{% block a %}")])
        assert exc_info.value.template == "lydia.prompt"


class TestRenderResult:
    """Tests for the RenderResult model."""

    def test_json_shape(self) -> None:
        result = RenderResult(
            messages=[RenderedMessage(role="user", content="hi")],
            rendered_text="[ user ]\nhi\n[ end user ]",
        )
        data = json.loads(result.model_dump_json())
        assert data == {
            "messages": [{"role": "user", "content": "hi"}],
            "rendered_text": "[ user ]\nhi\n[ end user ]",
        }

    def test_role_validated(self) -> None:
        with pytest.raises(ValueError):
            RenderedMessage(role="tool", content="x")
