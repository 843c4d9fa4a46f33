"""
Cost calculations for provider exchanges.

Costs are computed in Decimal from the provider's per-token price and
converted to float at the boundary.
"""

from decimal import Decimal
from typing import Optional, Union

from .providers import Provider
from .token_counter import TokenUsage, estimate_tokens

# Token volume assumed when checking a provider against a per-request budget
BUDGET_REFERENCE_TOKENS = 1000


def _to_decimal(value: Union[int, float, Decimal]) -> Decimal:
    # str() avoids binary float artefacts such as 3.7e-07 -> 3.69999...e-07
    return value if isinstance(value, Decimal) else Decimal(str(value))


def calculate_cost(cost_per_token: float, usage: TokenUsage) -> float:
    """Cost of an exchange at a flat per-token price.

    Args:
        cost_per_token: Provider price per token
        usage: Token usage of the exchange

    Returns:
        Total cost

    Raises:
        ValueError: If the price is negative
    """
    if cost_per_token < 0:
        raise ValueError("cost_per_token cannot be negative")
    total = Decimal(usage.total_tokens) * _to_decimal(cost_per_token)
    return float(total)


def estimate_exchange_cost(provider: Provider, tokens: int = BUDGET_REFERENCE_TOKENS) -> float:
    """Estimated cost of a ``tokens``-sized exchange with this provider."""
    return float(Decimal(tokens) * _to_decimal(provider.cost_per_token))


def meets_budget(provider: Provider, max_budget: Optional[float]) -> bool:
    """True when no budget is set or a reference exchange fits inside it."""
    if max_budget is None:
        return True
    return estimate_exchange_cost(provider) <= max_budget


def estimate_request_cost(provider: Provider, prompt: str, max_tokens: int) -> float:
    """Upper-bound estimate for a prompt answered with up to ``max_tokens``."""
    tokens = estimate_tokens(prompt) + max_tokens
    return estimate_exchange_cost(provider, tokens)
