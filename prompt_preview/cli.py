"""Command-line interface for Prompt Preview.

Entry point for rendering prompt templates against scenarios, validating
templates and inspecting the state a scenario produces.

Example:
    >>> # Render a prompt against a scenario
    >>> python -m prompt_preview.cli render dialogue_response --scenario scenarios/lydia.json
    >>> # Validate a prompt and its includes
    >>> python -m prompt_preview.cli check dialogue_response
    >>> # Dump the template state of a scenario
    >>> python -m prompt_preview.cli state scenarios/lydia.json
"""

from __future__ import annotations

import asyncio
import json
import logging
from enum import Enum
from pathlib import Path

import typer

from prompt_preview.config import Config, ConfigError
from prompt_preview.engine import TemplateError
from prompt_preview.engine.values import to_host
from prompt_preview.report import format_result
from prompt_preview.simulation import Scenario, build_state
from prompt_preview.utils.exit_codes import (
    EXIT_CONFIG_ERROR,
    EXIT_INPUT_ERROR,
    EXIT_SUCCESS,
    exit_code_for,
    log_exit,
)
from prompt_preview.utils.logging_config import setup_logging
from prompt_preview.utils.prompts import PromptRenderer
from prompt_preview.utils.storage import InvalidDataError, ScenarioNotFoundError, load_scenario

logger = logging.getLogger(__name__)

app = typer.Typer(
    name="prompt-preview",
    help="Prompt Preview - render Inja prompt templates against simulated game state",
)


class OutputFormat(str, Enum):
    text = "text"
    json = "json"
    markdown = "markdown"


@app.callback()
def main(
    verbose: bool = typer.Option(False, "--verbose", "-v", help="Enable verbose logging"),
) -> None:
    """Prompt Preview CLI - render Inja prompt templates."""
    level = logging.DEBUG if verbose else logging.INFO
    setup_logging(level=level)


def _load_config() -> Config:
    try:
        return Config.load()
    except ConfigError as e:
        typer.echo(f"Configuration error: {e}", err=True)
        raise typer.Exit(code=EXIT_CONFIG_ERROR)


def _load_scenario(path: Path | None) -> Scenario:
    if path is None:
        return Scenario()
    try:
        return load_scenario(path)
    except ScenarioNotFoundError:
        typer.echo(f"Scenario '{path}' not found", err=True)
        raise typer.Exit(code=EXIT_INPUT_ERROR)
    except InvalidDataError as e:
        typer.echo(f"Invalid scenario data: {e}", err=True)
        raise typer.Exit(code=EXIT_INPUT_ERROR)


def _fail(error: Exception, template: str) -> typer.Exit:
    """Report a render failure and return the Exit to raise."""
    code = exit_code_for(error)
    kind = getattr(error, "kind", type(error).__name__)
    typer.echo(f"{kind}: {error}", err=True)
    log_exit(logger, code, f"{template}: {error}")
    return typer.Exit(code=code)


@app.command()
def render(
    template: str,
    scenario: Path | None = typer.Option(None, "--scenario", "-s", help="Scenario JSON file"),
    prompt_set: str | None = typer.Option(
        None, "--prompt-set", "-p", help="Prompt set layered over the prompts"
    ),
    character: list[Path] | None = typer.Option(
        None, "--character", "-c", help="Character override file (repeatable)"
    ),
    output_format: OutputFormat = typer.Option(
        OutputFormat.text, "--format", "-f", help="Output format"
    ),
) -> None:
    """Render a prompt template.

    Renders the named template against the scenario and prints the
    resulting chat messages.

    Args:
        template: Prompt name relative to a prompt root (e.g. "dialogue_response").
    """
    config = _load_config()
    loaded = _load_scenario(scenario)

    try:
        renderer = PromptRenderer(config, prompt_set=prompt_set)
        result = asyncio.run(renderer.render(template, loaded, characters=character))
    except ConfigError as e:
        typer.echo(f"Configuration error: {e}", err=True)
        raise typer.Exit(code=EXIT_CONFIG_ERROR)
    except InvalidDataError as e:
        typer.echo(f"Invalid character file: {e}", err=True)
        raise typer.Exit(code=EXIT_INPUT_ERROR)
    except TemplateError as e:
        raise _fail(e, template)

    typer.echo(format_result(result, output_format.value, template=template), nl=False)
    raise typer.Exit(code=EXIT_SUCCESS)


@app.command()
def check(
    template: str,
    prompt_set: str | None = typer.Option(
        None, "--prompt-set", "-p", help="Prompt set layered over the prompts"
    ),
) -> None:
    """Validate a prompt template without rendering it.

    Parses the template and every include it names with a literal path.

    Args:
        template: Prompt name relative to a prompt root.
    """
    config = _load_config()

    try:
        renderer = PromptRenderer(config, prompt_set=prompt_set)
        checked = asyncio.run(renderer.check(template))
    except ConfigError as e:
        typer.echo(f"Configuration error: {e}", err=True)
        raise typer.Exit(code=EXIT_CONFIG_ERROR)
    except TemplateError as e:
        raise _fail(e, template)

    for path in checked:
        typer.echo(f"ok  {path}")
    raise typer.Exit(code=EXIT_SUCCESS)


@app.command()
def state(scenario: Path) -> None:
    """Print the template state built from a scenario file as JSON.

    Args:
        scenario: Scenario JSON file.
    """
    loaded = _load_scenario(scenario)
    typer.echo(json.dumps(to_host(build_state(loaded)), indent=2, ensure_ascii=False))
    raise typer.Exit(code=EXIT_SUCCESS)


if __name__ == "__main__":
    app()
