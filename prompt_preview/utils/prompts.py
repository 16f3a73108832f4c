"""Prompt rendering module for Prompt Preview.

Resolves named prompts through Config, builds the simulation state and
decorator functions from a scenario, and runs the template engine with a
file loader over the configured prompt roots.

Example:
    >>> from prompt_preview.config import Config
    >>> from prompt_preview.utils.prompts import PromptRenderer
    >>> config = Config.load()
    >>> renderer = PromptRenderer(config, prompt_set="my-set")
    >>> result = await renderer.render("dialogue_response", scenario)
    >>> [message.role for message in result.messages]
    ['system', 'user']
"""

from __future__ import annotations

import asyncio
import logging
import posixpath
from pathlib import Path

from prompt_preview.config import Config
from prompt_preview.engine import (
    ParseError,
    RenderResult,
    TemplateNotFound,
    default_registry,
    render,
)
from prompt_preview.engine.expressions import Literal
from prompt_preview.engine.includes import IncludeResolver, TemplateDocument
from prompt_preview.engine.parser import iter_includes, parse_template
from prompt_preview.simulation import Scenario, build_decorators, build_state
from prompt_preview.utils.loaders import FileSystemLoader
from prompt_preview.utils.storage import load_override

logger = logging.getLogger(__name__)


class PromptRenderer:
    """Renders named prompts from the layered prompt directories.

    Uses Config.prompt_roots() for the search order, so a prompt set's
    edited files shadow the originals file by file.

    Example:
        >>> renderer = PromptRenderer(Config.load())
        >>> result = await renderer.render("dialogue_response")
    """

    def __init__(self, config: Config, prompt_set: str | None = None) -> None:
        """Initialize renderer with configuration and optional prompt set.

        Args:
            config: Application configuration instance.
            prompt_set: Prompt set name or path layered over the edited
                and original prompts.

        Raises:
            ConfigError: If the prompt set directory doesn't exist.
        """
        self._config = config
        self._prompt_set = prompt_set
        self.loader = FileSystemLoader(config.prompt_roots(prompt_set))

    async def _read_prompt(self, template_name: str) -> tuple[str, str]:
        """Return (root-relative path, source) for a named prompt."""
        path = self._config.resolve_prompt(template_name, self._prompt_set)
        relative = self._config.prompt_filename(template_name)
        logger.debug("Template path resolved: %s", path)
        try:
            source = await asyncio.to_thread(path.read_text, encoding="utf-8")
        except OSError as e:
            raise TemplateNotFound(template_name, f"Cannot read '{template_name}': {e}") from e
        except UnicodeDecodeError as e:
            raise ParseError(
                f"Template is not valid UTF-8 (byte {e.start}: {e.reason})", line=1, template=relative
            ) from e
        return relative, source

    async def render(
        self,
        template_name: str,
        scenario: Scenario | None = None,
        characters: list[Path] | None = None,
    ) -> RenderResult:
        """Render a named prompt against a scenario.

        Args:
            template_name: Prompt identifier relative to a prompt root
                (e.g., "dialogue_response").
            scenario: Scenario to render against; an empty scenario if None.
            characters: Character override files whose blocks win over
                every template block.

        Returns:
            Engine RenderResult.

        Raises:
            PromptNotFoundError: Prompt not found in any root.
            ParseError: Prompt file is not valid UTF-8.
            InvalidDataError: Character override file unreadable.
            TemplateError: Any render failure.
        """
        relative, source = await self._read_prompt(template_name)
        state = build_state(scenario or Scenario())
        overrides = [load_override(path) for path in characters or []]

        result = await render(
            source,
            state,
            self.loader,
            template_path=relative,
            limits=self._config.render,
            functions=build_decorators(state),
            overrides=overrides,
            extension=self._config.prompts.extension,
        )
        logger.info(
            "Rendered %s: %d message(s), %d chars",
            relative,
            len(result.messages),
            len(result.rendered_text),
        )
        return result

    async def check(self, template_name: str) -> list[str]:
        """Parse a prompt and every include it names with a literal path.

        Nothing is rendered, so includes chosen at render time by an
        expression are not followed. Literal includes are walked depth
        first along their include chain, so a template that includes
        itself, directly or through others, is reported here rather than
        waiting for a render that happens to take that branch.

        Args:
            template_name: Prompt identifier relative to a prompt root.

        Returns:
            Root-relative paths of every parsed template, in the order
            they are first reached.

        Raises:
            CircularInclude: A literal include chain returns to a template
                already on it.
            TemplateError: First syntax or reference error found.
        """
        registry = default_registry().extended(build_decorators(build_state(Scenario())))
        resolver = IncludeResolver(
            self.loader, registry, self._config.render, self._config.prompts.extension
        )

        relative, source = await self._read_prompt(template_name)
        root = TemplateDocument(
            relative,
            posixpath.dirname(relative),
            parse_template(source, registry, template=relative),
            0,
        )
        checked = [relative]

        async def visit(document: TemplateDocument) -> None:
            with resolver.activate(document):
                for include in iter_includes(document.nodes):
                    if not isinstance(include.ref, Literal) or not isinstance(include.ref.value, str):
                        logger.debug(
                            "Skipping dynamic include at line %d",
                            include.line,
                            extra={"template": document.path},
                        )
                        continue
                    child = await resolver.resolve(
                        document.base_dir, include.ref.value, document.depth + 1
                    )
                    if child.path in checked:
                        continue
                    checked.append(child.path)
                    await visit(child)

        await visit(root)
        logger.info("Checked %s: %d template(s)", relative, len(checked))
        return checked
