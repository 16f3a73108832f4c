"""Configuration loader for Prompt Preview.

Loads application settings from config.toml and directory overrides from
.env, and resolves prompt files across the layered prompt directories
(prompt set, edited prompts, original prompts).

Example:
    >>> from prompt_preview.config import Config
    >>> config = Config.load()
    >>> print(config.render.max_include_depth)  # 32
    >>> path = config.resolve_prompt("dialogue_response")
"""

from __future__ import annotations

import logging
import sys
from pathlib import Path

from dotenv import load_dotenv
from pydantic import BaseModel, ValidationError, field_validator
from pydantic_settings import BaseSettings, SettingsConfigDict

from prompt_preview.engine.errors import TemplateNotFound
from prompt_preview.engine.limits import RenderLimits

if sys.version_info >= (3, 11):
    import tomllib
else:
    import tomli as tomllib

logger = logging.getLogger(__name__)

CONFIG_FILENAME = "config.toml"


class ConfigError(Exception):
    """Raised when configuration loading fails.

    This includes missing config.toml, invalid TOML syntax,
    and validation errors for configuration values.
    """

    pass


class PromptNotFoundError(TemplateNotFound):
    """Raised when a named prompt exists in none of the prompt roots.

    Example:
        >>> raise PromptNotFoundError("dialogue_response", [Path("prompts")])
    """

    def __init__(self, name: str, searched: list[Path]) -> None:
        self.searched = searched
        where = ", ".join(str(path) for path in searched) or "no prompt directories"
        super().__init__(name, f"Prompt '{name}' not found in {where}")


class PromptsConfig(BaseModel):
    """Prompt directory configuration.

    Relative directories are resolved against the project root.

    Example:
        >>> config = PromptsConfig(edited_dir="my-edits")
        >>> config.extension
        '.prompt'
    """

    original_dir: str = "prompts"
    edited_dir: str = "edited-prompts"
    extension: str = ".prompt"

    @field_validator("extension")
    @classmethod
    def _dotted(cls, value: str) -> str:
        if not value.startswith("."):
            raise ValueError("must start with '.'")
        return value


class EnvSettings(BaseSettings):
    """Environment variables loader using pydantic-settings.

    Reads from os.environ after load_dotenv() populates it.
    """

    model_config = SettingsConfigDict(env_prefix="PROMPT_PREVIEW_")

    original_dir: str | None = None
    edited_dir: str | None = None


def _load_env_settings(env_file_path: Path | None) -> EnvSettings:
    """Load environment settings from specified .env file.

    Uses python-dotenv to load .env into os.environ,
    then pydantic-settings reads from there.

    Args:
        env_file_path: Path to .env file, or None to skip file loading.

    Returns:
        EnvSettings instance with loaded values.
    """
    if env_file_path is not None and env_file_path.exists():
        load_dotenv(env_file_path, override=True)

    return EnvSettings()


def _section_error(section: str, data: dict, error: ValidationError) -> ConfigError:
    errors = error.errors()
    if not errors:
        return ConfigError(f"Validation error in {section} config: {error}")
    err = errors[0]
    field = ".".join(str(loc) for loc in err["loc"])
    value = data.get(err["loc"][0]) if err["loc"] else None
    return ConfigError(f"Config error: {section}.{field} {err['msg']}, got {value}")


class Config:
    """Main configuration class for Prompt Preview.

    Example:
        >>> config = Config.load()
        >>> config.prompt_roots()
        [PosixPath('/project/edited-prompts'), PosixPath('/project/prompts')]
    """

    def __init__(
        self,
        render: RenderLimits,
        prompts: PromptsConfig,
        project_root: Path,
    ) -> None:
        """Initialize Config instance.

        Args:
            render: Resource limits applied to every render.
            prompts: Prompt directory settings (env overrides applied).
            project_root: Project root directory path.
        """
        self.render = render
        self.prompts = prompts
        self.project_root = project_root

    @classmethod
    def load(
        cls,
        config_path: Path | None = None,
        project_root: Path | None = None,
    ) -> Config:
        """Load configuration from files.

        Args:
            config_path: Path to config.toml. If None, uses project root.
            project_root: Project root directory. If None, auto-detects
                by walking up from the working directory.

        Returns:
            Config instance with all settings loaded.

        Raises:
            ConfigError: If config.toml is missing, has invalid syntax,
                or contains invalid values.
        """
        if project_root is None:
            project_root = cls._find_project_root()

        if config_path is None:
            config_path = project_root / CONFIG_FILENAME

        if not config_path.exists():
            raise ConfigError(f"Configuration file not found: {config_path}")

        try:
            with open(config_path, "rb") as f:
                toml_data = tomllib.load(f)
        except tomllib.TOMLDecodeError as e:
            raise ConfigError(f"Invalid TOML syntax in {config_path}: {e}")

        # Both sections are optional, defaults if missing
        render_data = toml_data.get("render", {})
        try:
            render = RenderLimits(**render_data)
        except ValidationError as e:
            raise _section_error("render", render_data, e)

        prompts_data = dict(toml_data.get("prompts", {}))
        env_file = project_root / ".env"
        env_settings = _load_env_settings(env_file if env_file.exists() else None)
        if env_settings.original_dir:
            prompts_data["original_dir"] = env_settings.original_dir
        if env_settings.edited_dir:
            prompts_data["edited_dir"] = env_settings.edited_dir

        try:
            prompts = PromptsConfig(**prompts_data)
        except ValidationError as e:
            raise _section_error("prompts", prompts_data, e)

        logger.debug(
            "Config loaded: original=%s, edited=%s, max_include_depth=%d",
            prompts.original_dir,
            prompts.edited_dir,
            render.max_include_depth,
        )

        return cls(render=render, prompts=prompts, project_root=project_root)

    @staticmethod
    def _find_project_root() -> Path:
        """Find project root by walking up from the working directory.

        Looks for config.toml to identify project root.

        Returns:
            Path to project root directory.

        Raises:
            ConfigError: If config.toml not found in any parent.
        """
        current = Path.cwd().resolve()
        while True:
            if (current / CONFIG_FILENAME).exists():
                return current
            if current == current.parent:
                break
            current = current.parent

        raise ConfigError(f"Could not find project root (no {CONFIG_FILENAME} found)")

    def _directory(self, value: str) -> Path:
        path = Path(value)
        return path if path.is_absolute() else self.project_root / path

    @property
    def original_dir(self) -> Path:
        return self._directory(self.prompts.original_dir)

    @property
    def edited_dir(self) -> Path:
        return self._directory(self.prompts.edited_dir)

    def prompt_set_dir(self, prompt_set: str) -> Path:
        """Directory of a named prompt set, looked up inside the edited directory."""
        path = Path(prompt_set)
        return path if path.is_absolute() else self.edited_dir / path

    def prompt_roots(self, prompt_set: str | None = None) -> list[Path]:
        """Ordered prompt directories, most specific first.

        Resolution order:
        1. The prompt set directory (if prompt_set provided)
        2. The edited prompts directory
        3. The original prompts directory

        Directories that don't exist are skipped.

        Raises:
            ConfigError: If the named prompt set doesn't exist.
        """
        candidates: list[Path] = []
        if prompt_set is not None:
            set_dir = self.prompt_set_dir(prompt_set)
            if not set_dir.is_dir():
                raise ConfigError(f"Prompt set not found: {set_dir}")
            candidates.append(set_dir)
        candidates.extend([self.edited_dir, self.original_dir])

        roots: list[Path] = []
        for candidate in candidates:
            resolved = candidate.resolve()
            if resolved.is_dir() and resolved not in roots:
                roots.append(resolved)
        return roots

    def prompt_filename(self, prompt_name: str) -> str:
        """Root-relative file name for a prompt identifier."""
        name = prompt_name.replace("\\", "/")
        if not Path(name).suffix:
            name += self.prompts.extension
        return name

    def resolve_prompt(self, prompt_name: str, prompt_set: str | None = None) -> Path:
        """Resolve prompt file path across the prompt roots.

        Args:
            prompt_name: Prompt identifier relative to a prompt root, with
                or without extension (e.g., "dialogue_response").
            prompt_set: Name or path of a prompt set (optional).

        Returns:
            Path to the first matching prompt file.

        Raises:
            PromptNotFoundError: If no root contains the prompt.
        """
        filename = self.prompt_filename(prompt_name)
        roots = self.prompt_roots(prompt_set)

        for root in roots:
            path = (root / filename).resolve()
            if not path.is_relative_to(root):
                logger.warning("Prompt name escapes prompt root: %s", prompt_name)
                continue
            if path.is_file():
                logger.debug("Using prompt: %s", path)
                return path

        raise PromptNotFoundError(prompt_name, roots)
