"""Utility modules for Prompt Preview.

This package provides the pieces around the template engine:
- PromptRenderer: renders named prompts against scenarios
- FileSystemLoader / DictLoader: include loaders
- load_scenario: scenario file loading
"""

from prompt_preview.utils.loaders import DictLoader, FileSystemLoader
from prompt_preview.utils.prompts import PromptRenderer
from prompt_preview.utils.storage import InvalidDataError, ScenarioNotFoundError, load_scenario

__all__ = [
    "DictLoader",
    "FileSystemLoader",
    "InvalidDataError",
    "PromptRenderer",
    "ScenarioNotFoundError",
    "load_scenario",
]
