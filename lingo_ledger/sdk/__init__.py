"""
SDK for Lingo Ledger.

Provides the model adapters the app calls through.
"""

from .gemini_client import GeminiAdapter, UpstreamError
from .types import ModelAdapter, ModelResponse

__all__ = ["GeminiAdapter", "ModelAdapter", "ModelResponse", "UpstreamError"]
