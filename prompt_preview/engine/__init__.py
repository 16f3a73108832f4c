"""Inja-style prompt template engine.

Public surface: ``render`` plus the result, limit, registry and error
types callers need to drive it and dispatch on failures.
"""

from prompt_preview.engine.errors import (
    CircularInclude,
    IncludeOutsideRoot,
    MalformedSections,
    ParseError,
    RenderLimitExceeded,
    TemplateError,
    TemplateNotFound,
    UnknownFunction,
)
from prompt_preview.engine.functions import FunctionRegistry, default_registry
from prompt_preview.engine.includes import FileLoader
from prompt_preview.engine.limits import RenderLimits
from prompt_preview.engine.renderer import RenderResult, render
from prompt_preview.engine.sections import RenderedMessage, split_sections

__all__ = [
    "CircularInclude",
    "FileLoader",
    "FunctionRegistry",
    "IncludeOutsideRoot",
    "MalformedSections",
    "ParseError",
    "RenderLimitExceeded",
    "RenderLimits",
    "RenderResult",
    "RenderedMessage",
    "TemplateError",
    "TemplateNotFound",
    "UnknownFunction",
    "default_registry",
    "render",
    "split_sections",
]
