"""
Catalog of the generative models the app can route requests to.
"""

from dataclasses import dataclass
from enum import Enum
from typing import Dict, List, Optional


class ModelTier(Enum):
    """Rough price/quality band of a model."""
    BUDGET = "budget"
    STANDARD = "standard"
    PREMIUM = "premium"
    ENTERPRISE = "enterprise"


@dataclass(frozen=True)
class ModelCapabilities:
    """What a model can be used for."""
    content_generation: bool = True
    translation: bool = True
    evaluation: bool = True


@dataclass(frozen=True)
class ModelInfo:
    """Static description of a model offered to administrators."""
    id: str
    provider: str
    label: str
    description: str
    tier: ModelTier
    provider_model: str  # Identifier sent to the provider API
    cost_note: Optional[str] = None
    capabilities: ModelCapabilities = ModelCapabilities()


DEFAULT_MODEL_ID = "gemini-2.5-flash-lite"

MODEL_CATALOG: Dict[str, ModelInfo] = {
    "gemini-2.5-flash-lite": ModelInfo(
        id="gemini-2.5-flash-lite",
        provider="google",
        label="Gemini 2.5 Flash Lite",
        description="Fastest and most cost-effective option for everyday learning content.",
        tier=ModelTier.BUDGET,
        provider_model="gemini-2.5-flash-lite",
        cost_note="Lowest cost per request; ideal for high-volume usage."
    ),
    "gemini-2.5-flash": ModelInfo(
        id="gemini-2.5-flash",
        provider="google",
        label="Gemini 2.5 Flash",
        description="Balanced choice offering better reasoning while staying efficient.",
        tier=ModelTier.STANDARD,
        provider_model="gemini-2.5-flash",
        cost_note="Moderate cost; use when higher accuracy is needed."
    ),
    "gemini-2.5-pro": ModelInfo(
        id="gemini-2.5-pro",
        provider="google",
        label="Gemini 2.5 Pro",
        description="Highest quality responses with deeper reasoning and nuance.",
        tier=ModelTier.PREMIUM,
        provider_model="gemini-2.5-pro",
        cost_note="Highest cost; reserve for premium subscribers or critical tasks."
    ),
}


def list_catalog() -> List[ModelInfo]:
    """All catalog entries in declaration order."""
    return list(MODEL_CATALOG.values())
