"""
Token counting and usage normalization.

Turns whatever usage summary a provider returns into exact token counts.
"""

from dataclasses import dataclass
from typing import Optional


@dataclass(frozen=True)
class TokenUsage:
    """Token usage as reported by a model provider.

    Any field may be missing; providers do not always report all three.
    """
    input_tokens: Optional[int] = None
    output_tokens: Optional[int] = None
    total_tokens: Optional[int] = None


@dataclass(frozen=True)
class NormalizedUsage:
    """Token counts ready for cost calculation and storage."""
    input_tokens: int
    output_tokens: int
    total_tokens: int

    def __post_init__(self):
        """Validate token counts are non-negative."""
        if self.input_tokens < 0:
            raise ValueError("input_tokens cannot be negative")
        if self.output_tokens < 0:
            raise ValueError("output_tokens cannot be negative")
        if self.total_tokens < 0:
            raise ValueError("total_tokens cannot be negative")


def normalize_usage(usage: Optional[TokenUsage]) -> NormalizedUsage:
    """Fill in missing token counts.

    Input and output default to 0; total defaults to input + output
    when the provider did not report it separately.

    Args:
        usage: Raw usage from the provider, or None if it sent nothing

    Returns:
        NormalizedUsage with every count populated
    """
    if usage is None:
        return NormalizedUsage(input_tokens=0, output_tokens=0, total_tokens=0)

    input_tokens = usage.input_tokens or 0
    output_tokens = usage.output_tokens or 0
    total_tokens = usage.total_tokens
    if total_tokens is None:
        total_tokens = input_tokens + output_tokens

    return NormalizedUsage(
        input_tokens=input_tokens,
        output_tokens=output_tokens,
        total_tokens=total_tokens
    )
