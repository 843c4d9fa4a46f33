"""
Unit tests for the cost ledger.

Tests spend and savings arithmetic, budget signalling, projections and
optimization metrics.
"""

import json
import warnings
from datetime import datetime, timedelta

import pytest

from ai_route_guard.core.errors import BudgetExceeded
from ai_route_guard.core.ledger import CostLedger
from ai_route_guard.core.models import AiResponse
from ai_route_guard.core.providers import Provider, ProviderCategory
from ai_route_guard.core.token_counter import TokenUsage

NOW = datetime(2024, 3, 1, 12, 0, 0)

CHEAP = Provider(id="gemini-pro", name="Gemini", category=ProviderCategory.FAST_CHEAP,
                 cost_per_token=0.000001)
GENERAL = Provider(id="gpt-4", name="GPT-4", category=ProviderCategory.GENERAL,
                   cost_per_token=0.00003)
REASONING = Provider(id="claude-3", name="Claude", category=ProviderCategory.REASONING,
                     cost_per_token=0.00001)
PROVIDERS = [CHEAP, GENERAL, REASONING]


def _response(provider_id="gemini-pro", cost=0.0001, tokens=100, timestamp=NOW):
    return AiResponse(
        id="resp",
        request_id="req",
        provider_id=provider_id,
        content="content",
        confidence=0.9,
        cost=cost,
        response_time_ms=10.0,
        timestamp=timestamp,
        token_usage=TokenUsage(prompt_tokens=tokens // 2, completion_tokens=tokens - tokens // 2),
    )


class TestLedgerArithmetic:
    """Test totals and savings."""

    def setup_method(self):
        self.ledger = CostLedger(budget=10.0, now=lambda: NOW)

    def test_empty_snapshot(self):
        snapshot = self.ledger.snapshot()
        assert snapshot.total_spent == 0.0
        assert snapshot.cost_per_request == 0.0
        assert snapshot.budget_remaining == 10.0
        assert snapshot.monthly_projection == 0.0
        assert snapshot.optimization.routing_accuracy == 0.0
        assert snapshot.optimization.cheapest_model_usage == 0.0
        assert snapshot.optimization.expensive_model_avoidance == 0.0
        assert snapshot.optimization.savings_percentage == 0.0

    def test_total_spent_is_sum_of_costs(self):
        costs = [0.1, 0.25, 0.05, 1.2]
        for cost in costs:
            self.ledger.record(_response(cost=cost), PROVIDERS, was_smart_routed=False)

        snapshot = self.ledger.snapshot()
        assert snapshot.total_spent == pytest.approx(sum(costs))
        assert snapshot.budget_remaining == pytest.approx(10.0 - sum(costs))
        assert snapshot.cost_per_request == pytest.approx(sum(costs) / 4)

    def test_smart_routed_savings_against_most_expensive(self):
        entry = self.ledger.record(_response(cost=0.0001, tokens=100), PROVIDERS, was_smart_routed=True)

        # 100 tokens at gpt-4's 0.00003 = 0.003
        assert entry.savings == pytest.approx(0.0029)
        assert entry.was_optimal is True
        assert self.ledger.snapshot().savings_from_routing == pytest.approx(0.0029)

    def test_explicit_provider_earns_no_savings(self):
        entry = self.ledger.record(_response(cost=0.0001), PROVIDERS, was_smart_routed=False)
        assert entry.savings == 0.0
        assert entry.was_optimal is False

    def test_savings_never_negative(self):
        entry = self.ledger.record(_response("gpt-4", cost=1.0, tokens=10), PROVIDERS, was_smart_routed=True)
        assert entry.savings == 0.0

    def test_unavailable_providers_ignored_for_counterfactual(self):
        down_gpt = Provider(id="gpt-4", name="GPT-4", category=ProviderCategory.GENERAL,
                            cost_per_token=0.00003, is_available=False)
        entry = self.ledger.record(
            _response(cost=0.0001, tokens=100), [CHEAP, down_gpt, REASONING], was_smart_routed=True
        )
        # claude-3 at 0.00001 is the most expensive available
        assert entry.savings == pytest.approx(0.0009)

    def test_savings_percentage(self):
        self.ledger.record(_response(cost=0.0001, tokens=100), PROVIDERS, was_smart_routed=True)
        optimization = self.ledger.snapshot().optimization
        assert optimization.savings_percentage == pytest.approx(0.0029 / 0.003)


class TestBudget:
    """Test advisory budget signalling."""

    def test_over_budget_warns_and_keeps_working(self):
        ledger = CostLedger(budget=0.5)
        with pytest.warns(BudgetExceeded):
            ledger.record(_response(cost=0.75), PROVIDERS, was_smart_routed=False)

        snapshot = ledger.snapshot()
        assert snapshot.budget_remaining == pytest.approx(-0.25)
        assert snapshot.over_budget is True
        assert ledger.is_over_budget() is True

    def test_within_budget_does_not_warn(self):
        ledger = CostLedger(budget=1.0)
        with warnings.catch_warnings():
            warnings.simplefilter("error")
            ledger.record(_response(cost=0.5), PROVIDERS, was_smart_routed=False)
        assert not ledger.is_over_budget()

    def test_set_budget_and_utilization(self):
        ledger = CostLedger(budget=1.0)
        ledger.record(_response(cost=0.25), PROVIDERS, was_smart_routed=False)
        assert ledger.budget_utilization() == pytest.approx(25.0)

        ledger.set_budget(2.0)
        assert ledger.get_budget() == 2.0
        assert ledger.budget_utilization() == pytest.approx(12.5)

    def test_zero_budget_utilization(self):
        assert CostLedger(budget=0.0).budget_utilization() == 0.0

    def test_negative_budget_rejected(self):
        with pytest.raises(ValueError, match="budget cannot be negative"):
            CostLedger().set_budget(-1)


class TestProjectionAndMetrics:
    """Test the monthly projection and optimization metrics."""

    def test_monthly_projection_uses_trailing_day(self):
        ledger = CostLedger(now=lambda: NOW)
        ledger.record(_response(cost=0.1, timestamp=NOW - timedelta(hours=2)), PROVIDERS, False)
        ledger.record(_response(cost=0.2, timestamp=NOW - timedelta(hours=23)), PROVIDERS, False)
        ledger.record(_response(cost=5.0, timestamp=NOW - timedelta(days=2)), PROVIDERS, False)

        assert ledger.snapshot().monthly_projection == pytest.approx(0.3 * 30)

    def test_category_metrics(self):
        ledger = CostLedger()
        ledger.record(_response("gemini-pro"), PROVIDERS, was_smart_routed=True)
        ledger.record(_response("gemini-pro"), PROVIDERS, was_smart_routed=True)
        ledger.record(_response("gpt-4", cost=0.003), PROVIDERS, was_smart_routed=False)
        ledger.record(_response("claude-3", cost=0.001), PROVIDERS, was_smart_routed=False)

        optimization = ledger.snapshot().optimization
        assert optimization.routing_accuracy == pytest.approx(0.5)
        assert optimization.cheapest_model_usage == pytest.approx(0.5)
        assert optimization.expensive_model_avoidance == pytest.approx(0.5)

    def test_metrics_use_trailing_window(self):
        ledger = CostLedger(metrics_window=2)
        ledger.record(_response("gpt-4", cost=0.003), PROVIDERS, was_smart_routed=False)
        ledger.record(_response("gemini-pro"), PROVIDERS, was_smart_routed=False)
        ledger.record(_response("gemini-pro"), PROVIDERS, was_smart_routed=False)

        assert ledger.snapshot().optimization.cheapest_model_usage == 1.0

    def test_history_is_bounded(self):
        ledger = CostLedger(history_size=3)
        for _ in range(5):
            ledger.record(_response(cost=0.1), PROVIDERS, was_smart_routed=False)

        assert len(ledger.history()) == 3
        # Totals still cover every recorded response
        assert ledger.snapshot().total_spent == pytest.approx(0.5)


class TestLedgerExtras:
    """Test breakdown, reset and export."""

    def setup_method(self):
        self.ledger = CostLedger(budget=100.0, now=lambda: NOW)
        self.ledger.record(_response("gemini-pro", cost=0.1), PROVIDERS, was_smart_routed=True)
        self.ledger.record(_response("gpt-4", cost=0.4), PROVIDERS, was_smart_routed=False)
        self.ledger.record(_response("gemini-pro", cost=0.2), PROVIDERS, was_smart_routed=True)

    def test_cost_breakdown(self):
        breakdown = self.ledger.cost_breakdown()
        assert breakdown["gemini-pro"] == pytest.approx(0.3)
        assert breakdown["gpt-4"] == pytest.approx(0.4)

    def test_reset_keeps_budget(self):
        self.ledger.reset()
        snapshot = self.ledger.snapshot()
        assert snapshot.total_spent == 0.0
        assert snapshot.savings_from_routing == 0.0
        assert self.ledger.history() == []
        assert self.ledger.get_budget() == 100.0

    def test_export_data(self):
        data = json.loads(self.ledger.export_data())

        assert data["totalSpent"] == pytest.approx(0.7)
        assert data["budget"] == 100.0
        assert len(data["costHistory"]) == 3
        assert data["costHistory"][1]["provider"] == "gpt-4"
        assert data["exportedAt"] == NOW.isoformat()
        assert set(data["optimization"]) == {
            "routing_accuracy",
            "cheapest_model_usage",
            "expensive_model_avoidance",
            "savings_percentage",
        }
