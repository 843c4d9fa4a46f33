"""
Running cost ledger.

Records the cost of every completed response and derives savings from smart
routing, remaining budget, a monthly projection and optimization metrics.

Savings model: the counterfactual cost of a response is its total tokens at
the price of the most expensive available provider. Only smart-routed
responses earn savings.

An over-budget ledger keeps working; a negative ``budget_remaining`` is the
signal, surfaced as an advisory ``BudgetExceeded`` warning.
"""

import json
import threading
import warnings
from collections import deque
from dataclasses import asdict, dataclass
from datetime import datetime, timedelta
from typing import Callable, Deque, Dict, Iterable, List, Optional

from .errors import BudgetExceeded
from .models import AiResponse
from .providers import HIGH_COST_CATEGORIES, Provider, ProviderCategory
from ai_route_guard.utils.logger import get_logger

logger = get_logger(__name__)

DEFAULT_BUDGET = 1000.0
DEFAULT_HISTORY_SIZE = 1000
DEFAULT_METRICS_WINDOW = 100
PROJECTION_DAYS = 30


@dataclass(frozen=True)
class CostHistoryEntry:
    """One recorded response in the ledger history."""
    timestamp: datetime
    cost: float
    provider_id: str
    category: Optional[ProviderCategory]
    was_optimal: bool
    savings: float


@dataclass(frozen=True)
class OptimizationMetrics:
    """Routing quality over the trailing metrics window."""
    routing_accuracy: float
    cheapest_model_usage: float
    expensive_model_avoidance: float
    savings_percentage: float


@dataclass(frozen=True)
class CostSnapshot:
    """Point-in-time view of the ledger."""
    total_spent: float
    savings_from_routing: float
    cost_per_request: float
    budget_remaining: float
    monthly_projection: float
    optimization: OptimizationMetrics

    @property
    def over_budget(self) -> bool:
        return self.budget_remaining < 0


class CostLedger:
    """Spend, savings and budget account derived from completed responses."""

    def __init__(
        self,
        budget: float = DEFAULT_BUDGET,
        history_size: int = DEFAULT_HISTORY_SIZE,
        metrics_window: int = DEFAULT_METRICS_WINDOW,
        now: Callable[[], datetime] = datetime.now,
    ):
        if budget < 0:
            raise ValueError("budget cannot be negative")
        if history_size <= 0:
            raise ValueError("history_size must be > 0")
        if metrics_window <= 0:
            raise ValueError("metrics_window must be > 0")
        self._budget = budget
        self.metrics_window = metrics_window
        self._now = now
        self._history: Deque[CostHistoryEntry] = deque(maxlen=history_size)
        self._total_spent = 0.0
        self._total_savings = 0.0
        self._request_count = 0
        self._lock = threading.Lock()

    def record(
        self,
        response: AiResponse,
        providers: Iterable[Provider],
        was_smart_routed: bool,
    ) -> CostHistoryEntry:
        """Record a completed response.

        Args:
            response: The successful response
            providers: Current provider catalog (for the counterfactual price)
            was_smart_routed: True when routing, not the caller, chose the provider

        Returns:
            The appended history entry
        """
        providers = list(providers)
        available = [p for p in providers if p.is_available]
        most_expensive = max(available, key=lambda p: p.cost_per_token, default=None)
        counterfactual = (
            response.token_usage.total_tokens * most_expensive.cost_per_token
            if most_expensive is not None
            else response.cost
        )
        savings = max(0.0, counterfactual - response.cost) if was_smart_routed else 0.0
        category = next((p.category for p in providers if p.id == response.provider_id), None)

        entry = CostHistoryEntry(
            timestamp=response.timestamp,
            cost=response.cost,
            provider_id=response.provider_id,
            category=category,
            was_optimal=savings > 0,
            savings=savings,
        )
        with self._lock:
            self._total_spent += response.cost
            self._total_savings += savings
            self._request_count += 1
            self._history.append(entry)
            remaining = self._budget - self._total_spent

        if remaining < 0:
            message = (
                f"Budget of ${self._budget:,.2f} exceeded: "
                f"spent ${self._total_spent:,.4f} ({-remaining:,.4f} over)"
            )
            logger.warning(message)
            warnings.warn(message, BudgetExceeded, stacklevel=2)
        return entry

    def snapshot(self) -> CostSnapshot:
        with self._lock:
            return CostSnapshot(
                total_spent=self._total_spent,
                savings_from_routing=self._total_savings,
                cost_per_request=(
                    self._total_spent / self._request_count if self._request_count else 0.0
                ),
                budget_remaining=self._budget - self._total_spent,
                monthly_projection=self._monthly_projection(),
                optimization=self._optimization_metrics(),
            )

    def _monthly_projection(self) -> float:
        """Cost of the trailing 24 hours, projected over 30 days."""
        day_ago = self._now() - timedelta(days=1)
        recent = sum(e.cost for e in self._history if e.timestamp > day_ago)
        return recent * PROJECTION_DAYS

    def _optimization_metrics(self) -> OptimizationMetrics:
        potential = self._total_spent + self._total_savings
        savings_percentage = self._total_savings / potential if potential > 0 else 0.0

        recent = list(self._history)[-self.metrics_window:]
        if not recent:
            return OptimizationMetrics(0.0, 0.0, 0.0, savings_percentage)

        count = len(recent)
        optimal = sum(1 for e in recent if e.savings > 0)
        cheapest = sum(1 for e in recent if e.category == ProviderCategory.FAST_CHEAP)
        expensive = sum(1 for e in recent if e.category in HIGH_COST_CATEGORIES)
        return OptimizationMetrics(
            routing_accuracy=optimal / count,
            cheapest_model_usage=cheapest / count,
            expensive_model_avoidance=1 - expensive / count,
            savings_percentage=savings_percentage,
        )

    def history(self) -> List[CostHistoryEntry]:
        with self._lock:
            return list(self._history)

    def cost_breakdown(self) -> Dict[str, float]:
        """Recorded cost per provider id (within the retained history)."""
        breakdown: Dict[str, float] = {}
        with self._lock:
            for entry in self._history:
                breakdown[entry.provider_id] = breakdown.get(entry.provider_id, 0.0) + entry.cost
        return breakdown

    def set_budget(self, amount: float) -> None:
        if amount < 0:
            raise ValueError("budget cannot be negative")
        with self._lock:
            self._budget = amount

    def get_budget(self) -> float:
        return self._budget

    def is_over_budget(self) -> bool:
        with self._lock:
            return self._total_spent > self._budget

    def budget_utilization(self) -> float:
        """Spend as a percentage of the budget."""
        with self._lock:
            return (self._total_spent / self._budget) * 100 if self._budget > 0 else 0.0

    def reset(self) -> None:
        """Clear history and totals; the budget is kept."""
        with self._lock:
            self._history.clear()
            self._total_spent = 0.0
            self._total_savings = 0.0
            self._request_count = 0

    def export_data(self) -> str:
        """JSON dump of totals, history, breakdown and optimization metrics."""
        snapshot = self.snapshot()
        history = [
            {
                "timestamp": e.timestamp.isoformat(),
                "cost": e.cost,
                "provider": e.provider_id,
                "wasOptimal": e.was_optimal,
                "savings": e.savings,
            }
            for e in self.history()
        ]
        data = {
            "totalSpent": snapshot.total_spent,
            "totalSavings": snapshot.savings_from_routing,
            "budget": self._budget,
            "costHistory": history,
            "breakdown": self.cost_breakdown(),
            "optimization": asdict(snapshot.optimization),
            "exportedAt": self._now().isoformat(),
        }
        return json.dumps(data, indent=2)
