"""Template error hierarchy for Prompt Preview.

Defines the failure kinds a render can surface to its caller. Every fatal
condition aborts the whole render with exactly one of these exceptions.

Example:
    >>> from prompt_preview.engine.errors import ParseError
    >>> try:
    ...     raise ParseError("Unterminated '{{'", line=3)
    ... except ParseError as e:
    ...     print(e.line)
    3
"""

from __future__ import annotations


class TemplateError(Exception):
    """Base class for template rendering errors.

    All render failures inherit from this class, allowing callers
    to catch every failure kind with a single except clause and
    dispatch on ``kind``.

    Example:
        >>> raise TemplateError("Generic template failure")
        Traceback (most recent call last):
        ...
        TemplateError: Generic template failure
    """

    kind = "TemplateError"


class ParseError(TemplateError):
    """Malformed, unterminated or unknown directive.

    Always carries the 1-based line where the offending construct starts
    and, for included documents, the template path.

    Example:
        >>> e = ParseError("Unknown directive 'macro'", line=7, template="bio/main.prompt")
        >>> str(e)
        "bio/main.prompt, line 7: Unknown directive 'macro'"
    """

    kind = "ParseError"

    def __init__(self, message: str, line: int, template: str | None = None) -> None:
        """Initialize parse error.

        Args:
            message: Description of the syntax problem.
            line: 1-based line number of the offending construct.
            template: Path of the template being parsed (None for the root source).
        """
        self.message = message
        self.line = line
        self.template = template
        location = f"{template}, line {line}" if template else f"line {line}"
        super().__init__(f"{location}: {message}")


class UnknownFunction(TemplateError):
    """Template calls a function missing from the registry.

    Detected while parsing, before any output is produced.

    Example:
        >>> e = UnknownFunction("get_mood", line=2)
        >>> e.name
        'get_mood'
    """

    kind = "UnknownFunction"

    def __init__(self, name: str, line: int, template: str | None = None) -> None:
        """Initialize unknown function error.

        Args:
            name: Function name as written in the template.
            line: 1-based line number of the call.
            template: Path of the template being parsed.
        """
        self.name = name
        self.line = line
        self.template = template
        location = f"{template}, line {line}" if template else f"line {line}"
        super().__init__(f"{location}: Unknown function '{name}'")


class TemplateNotFound(TemplateError):
    """Referenced template does not exist.

    Example:
        >>> e = TemplateNotFound("submodules/missing.prompt")
        >>> e.ref
        'submodules/missing.prompt'
    """

    kind = "TemplateNotFound"

    def __init__(self, ref: str, message: str | None = None) -> None:
        """Initialize not-found error.

        Args:
            ref: Template reference that could not be loaded.
            message: Optional override for the error text.
        """
        self.ref = ref
        super().__init__(message or f"Template not found: {ref}")


class IncludeOutsideRoot(TemplateNotFound):
    """Include reference escapes the permitted prompt root.

    Example:
        >>> e = IncludeOutsideRoot("../../secrets.txt")
        >>> isinstance(e, TemplateNotFound)
        True
    """

    def __init__(self, ref: str) -> None:
        super().__init__(ref, f"Template reference escapes prompt root: {ref}")


class CircularInclude(TemplateError):
    """Include chain revisits a template that is still being rendered.

    Example:
        >>> e = CircularInclude(["a.prompt", "b.prompt", "a.prompt"])
        >>> str(e)
        'Circular include: a.prompt -> b.prompt -> a.prompt'
    """

    kind = "CircularInclude"

    def __init__(self, path: list[str]) -> None:
        """Initialize circular include error.

        Args:
            path: Active include chain, ending with the repeated template.
        """
        self.path = path
        super().__init__("Circular include: " + " -> ".join(path))


class MalformedSections(TemplateError):
    """Section markers in rendered text do not pair up.

    Example:
        >>> e = MalformedSections("'[ user ]' opened at line 4 while already open")
        >>> e.detail
        "'[ user ]' opened at line 4 while already open"
    """

    kind = "MalformedSections"

    def __init__(self, detail: str) -> None:
        self.detail = detail
        super().__init__(f"Malformed sections: {detail}")


class RenderLimitExceeded(TemplateError):
    """Render exceeded a configured resource limit.

    Example:
        >>> e = RenderLimitExceeded("max_iterations", 100000)
        >>> e.limit
        'max_iterations'
    """

    kind = "RenderLimitExceeded"

    def __init__(self, limit: str, value: int) -> None:
        """Initialize limit error.

        Args:
            limit: Name of the exceeded limit (a RenderLimits field).
            value: Configured value of that limit.
        """
        self.limit = limit
        self.value = value
        super().__init__(f"Render limit exceeded: {limit}={value}")
