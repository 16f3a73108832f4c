"""Preview report formatting.

Formats a RenderResult for the terminal (plain text), for tools (JSON)
or for pasting into notes and issues (Markdown).

Example:
    >>> from prompt_preview.report import format_result
    >>> print(format_result(result, "markdown", template="dialogue_response"))
"""

from __future__ import annotations

import logging
from typing import Literal

from jinja2 import Environment, StrictUndefined

from prompt_preview.engine import RenderResult

logger = logging.getLogger(__name__)

ReportFormat = Literal["text", "json", "markdown"]

MARKDOWN_TEMPLATE = """\
# Prompt preview: {{ template }}

{% if messages -%}
{% for message in messages -%}
## {{ loop.index }}. {{ message.role }}

```
{{ message.content }}
```

{% endfor -%}
{% else -%}
_No sections found; the rendered text has no role markers._

{% endif -%}
<details>
<summary>Rendered text ({{ rendered_text | length }} chars)</summary>

```
{{ rendered_text }}
```

</details>
"""

_env = Environment(
    undefined=StrictUndefined,
    autoescape=False,
    keep_trailing_newline=True,
)


def format_text(result: RenderResult) -> str:
    """One banner per message followed by its content."""
    if not result.messages:
        return result.rendered_text
    blocks = [f"=== {message.role} ===\n{message.content}" for message in result.messages]
    return "\n\n".join(blocks) + "\n"


def format_json(result: RenderResult) -> str:
    return result.model_dump_json(indent=2) + "\n"


def format_markdown(result: RenderResult, template: str = "prompt") -> str:
    return _env.from_string(MARKDOWN_TEMPLATE).render(
        template=template,
        messages=result.messages,
        rendered_text=result.rendered_text,
    )


def format_result(result: RenderResult, fmt: ReportFormat = "text", template: str = "prompt") -> str:
    """Format a render result.

    Args:
        result: Result to format.
        fmt: "text", "json" or "markdown".
        template: Template name shown in the Markdown heading.

    Returns:
        Formatted report.

    Raises:
        ValueError: Unknown format.
    """
    if fmt == "text":
        return format_text(result)
    if fmt == "json":
        return format_json(result)
    if fmt == "markdown":
        return format_markdown(result, template)
    raise ValueError(f"Unknown report format: {fmt}")
