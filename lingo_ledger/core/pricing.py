"""
Pricing calculations and rate management.

Handles cost computations for the supported Gemini models.
"""

from dataclasses import dataclass
from decimal import Decimal
from typing import Dict, Optional, Tuple

DEFAULT_CURRENCY = "USD"

_TOKENS_PER_MILLION = Decimal("1000000")


@dataclass(frozen=True)
class ModelPricing:
    """Per-token pricing for a specific model."""
    currency: str
    input_per_million: Decimal  # Cost per 1M input tokens
    output_per_million: Decimal  # Cost per 1M output tokens
    source: Optional[str] = None
    effective_date: Optional[str] = None


@dataclass(frozen=True)
class UsageCostBreakdown:
    """Cost of a single model call, split by direction."""
    input_cost: float
    output_cost: float
    total_cost: float
    currency: str


@dataclass(frozen=True)
class PricingTable:
    """Fixed pricing table for supported models."""
    prices: Dict[str, ModelPricing]

    def get_pricing(self, model_id: str) -> Optional[ModelPricing]:
        """Get pricing for a specific model.

        Args:
            model_id: Model identifier

        Returns:
            ModelPricing for the model, or None if the model is unpriced
        """
        return self.prices.get(model_id)


_GOOGLE_SOURCE = "Google AI Studio Pricing (July 2024)"
_GOOGLE_EFFECTIVE_DATE = "2024-07-01"

# Fixed pricing table - no dynamic fetching
PRICING_TABLE = PricingTable({
    "gemini-2.5-flash-lite": ModelPricing(
        currency="USD",
        input_per_million=Decimal("0.075"),
        output_per_million=Decimal("0.30"),
        source=_GOOGLE_SOURCE,
        effective_date=_GOOGLE_EFFECTIVE_DATE
    ),
    "gemini-2.5-flash": ModelPricing(
        currency="USD",
        input_per_million=Decimal("0.35"),
        output_per_million=Decimal("1.05"),
        source=_GOOGLE_SOURCE,
        effective_date=_GOOGLE_EFFECTIVE_DATE
    ),
    "gemini-2.5-pro": ModelPricing(
        currency="USD",
        input_per_million=Decimal("3.50"),
        output_per_million=Decimal("10.50"),
        source=_GOOGLE_SOURCE,
        effective_date=_GOOGLE_EFFECTIVE_DATE
    )
})


def calculate_usage_cost(
    model_id: str,
    input_tokens: int,
    output_tokens: int,
    table: PricingTable = PRICING_TABLE
) -> UsageCostBreakdown:
    """Calculate the cost of a model call.

    Unpriced models cost nothing so that recording usage never fails
    because of a missing table entry. No rounding is applied; formatting
    is left to whoever displays the value.

    Args:
        model_id: Model identifier
        input_tokens: Prompt tokens sent to the model
        output_tokens: Tokens generated by the model
        table: Pricing table to look the model up in

    Returns:
        UsageCostBreakdown with input, output and total cost
    """
    pricing = table.get_pricing(model_id)
    if pricing is None:
        return UsageCostBreakdown(
            input_cost=0.0,
            output_cost=0.0,
            total_cost=0.0,
            currency=DEFAULT_CURRENCY
        )

    # (tokens / 1M) * cost_per_1M, per direction
    input_cost = float((Decimal(input_tokens) / _TOKENS_PER_MILLION) * pricing.input_per_million)
    output_cost = float((Decimal(output_tokens) / _TOKENS_PER_MILLION) * pricing.output_per_million)

    return UsageCostBreakdown(
        input_cost=input_cost,
        output_cost=output_cost,
        total_cost=input_cost + output_cost,
        currency=pricing.currency
    )


def get_pricing_metadata(
    model_id: str,
    table: PricingTable = PRICING_TABLE
) -> Optional[Tuple[Optional[str], Optional[str]]]:
    """Return (source, effective_date) of a model's pricing, if priced."""
    pricing = table.get_pricing(model_id)
    if pricing is None:
        return None
    return pricing.source, pricing.effective_date
