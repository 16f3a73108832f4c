"""Resource limits applied to every render."""

from pydantic import BaseModel, Field


class RenderLimits(BaseModel):
    """Upper bounds that stop pathological templates.

    Exceeding any of them aborts the render with RenderLimitExceeded.

    Example:
        >>> limits = RenderLimits(max_iterations=500)
        >>> limits.max_include_depth
        32
    """

    max_include_depth: int = Field(ge=1, default=32)
    max_output_chars: int = Field(ge=1, default=1_000_000)
    max_iterations: int = Field(ge=1, default=100_000)
