"""Standard exit codes for CLI.

Maps every failure the preview can hit to one process exit code, with
readable names and descriptions for logging.

Example:
    >>> from prompt_preview.utils.exit_codes import exit_code_for, log_exit
    >>> import logging
    >>> logger = logging.getLogger(__name__)
    >>> log_exit(logger, exit_code_for(CircularInclude(["a", "b", "a"])), "render aborted")
"""

import logging

from pydantic import ValidationError

from prompt_preview.config import ConfigError
from prompt_preview.engine.errors import (
    CircularInclude,
    MalformedSections,
    ParseError,
    RenderLimitExceeded,
    TemplateNotFound,
    UnknownFunction,
)
from prompt_preview.utils.storage import InvalidDataError, ScenarioNotFoundError

# Exit code constants
EXIT_SUCCESS = 0
EXIT_CONFIG_ERROR = 1
EXIT_INPUT_ERROR = 2
EXIT_TEMPLATE_ERROR = 3
EXIT_REFERENCE_ERROR = 4
EXIT_LIMIT_ERROR = 5

# Mapping: code -> name
EXIT_CODE_NAMES: dict[int, str] = {
    EXIT_SUCCESS: "SUCCESS",
    EXIT_CONFIG_ERROR: "CONFIG_ERROR",
    EXIT_INPUT_ERROR: "INPUT_ERROR",
    EXIT_TEMPLATE_ERROR: "TEMPLATE_ERROR",
    EXIT_REFERENCE_ERROR: "REFERENCE_ERROR",
    EXIT_LIMIT_ERROR: "LIMIT_ERROR",
}

# Mapping: code -> description
EXIT_CODE_DESCRIPTIONS: dict[int, str] = {
    EXIT_SUCCESS: "Successful execution",
    EXIT_CONFIG_ERROR: "Configuration error (broken config.toml, missing prompt set)",
    EXIT_INPUT_ERROR: "Input data error (missing or invalid scenario file)",
    EXIT_TEMPLATE_ERROR: "Template error (syntax error, unknown function, malformed sections)",
    EXIT_REFERENCE_ERROR: "Reference error (missing template, circular include)",
    EXIT_LIMIT_ERROR: "Render limit exceeded (include depth, output size, loop iterations)",
}

# Checked in order, first match wins
_ERROR_CODES: list[tuple[type[Exception], int]] = [
    (ConfigError, EXIT_CONFIG_ERROR),
    (ScenarioNotFoundError, EXIT_INPUT_ERROR),
    (InvalidDataError, EXIT_INPUT_ERROR),
    (ValidationError, EXIT_INPUT_ERROR),
    (ParseError, EXIT_TEMPLATE_ERROR),
    (UnknownFunction, EXIT_TEMPLATE_ERROR),
    (MalformedSections, EXIT_TEMPLATE_ERROR),
    (TemplateNotFound, EXIT_REFERENCE_ERROR),
    (CircularInclude, EXIT_REFERENCE_ERROR),
    (RenderLimitExceeded, EXIT_LIMIT_ERROR),
]


def get_exit_code_name(code: int) -> str:
    """Return readable name for exit code.

    Args:
        code: Exit code integer.

    Returns:
        Code name (e.g. "CONFIG_ERROR") or "UNKNOWN({code})" for unknown codes.
    """
    return EXIT_CODE_NAMES.get(code, f"UNKNOWN({code})")


def get_exit_code_description(code: int) -> str:
    """Return description for exit code.

    Args:
        code: Exit code integer.

    Returns:
        Code description or "Unknown exit code: {code}" for unknown codes.
    """
    return EXIT_CODE_DESCRIPTIONS.get(code, f"Unknown exit code: {code}")


def exit_code_for(error: Exception) -> int:
    """Return the exit code for an error raised while previewing.

    Raises:
        TypeError: If the error is not one the preview maps to a code.
    """
    for error_type, code in _ERROR_CODES:
        if isinstance(error, error_type):
            return code
    raise TypeError(f"No exit code for {type(error).__name__}")


def log_exit(logger: logging.Logger, code: int, message: str | None = None) -> None:
    """Log exit code with optional message.

    Args:
        logger: Logger object.
        code: Exit code.
        message: Additional context (optional).

    Note:
        SUCCESS is logged via logger.info(), all other codes via logger.error().
    """
    code_name = get_exit_code_name(code)
    code_description = get_exit_code_description(code)

    if message:
        log_message = f"[{code_name}] {code_description}: {message}"
    else:
        log_message = f"[{code_name}] {code_description}"

    if code == EXIT_SUCCESS:
        logger.info(log_message)
    else:
        logger.error(log_message)
