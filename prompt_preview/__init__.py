"""Prompt Preview - offline renderer for Inja prompt templates.

Renders game prompt templates against a simulated game state and splits
the result into role-tagged chat messages, the way the game assembles
them before calling a language model.
"""

__version__ = "0.1.0"
