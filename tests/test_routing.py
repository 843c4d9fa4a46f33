"""
Unit tests for prompt classification and provider selection.
"""

import pytest

from ai_route_guard.core.providers import (
    Provider,
    ProviderCategory,
    ProviderRegistry,
    SecurityLevel,
)
from ai_route_guard.core.routing import (
    RoutingEngine,
    RoutingOptions,
    classify_prompt,
    complexity_score,
    contains_math_delimiters,
)

MATH_PROMPT = (
    "Please discuss the physical meaning of $$ E=mc^2 $$ in relativity "
    + "and mass-energy equivalence " * 10
)[:150]


def _engine(*providers):
    registry = ProviderRegistry()
    registry.replace(providers)
    return RoutingEngine(registry)


GEMINI = Provider(
    id="gemini",
    name="Gemini",
    category=ProviderCategory.FAST_CHEAP,
    cost_per_token=0.0000004,
    quality=0.75,
)
CLAUDE = Provider(
    id="claude",
    name="Claude",
    category=ProviderCategory.REASONING,
    cost_per_token=0.00001,
    specialties=("reasoning", "code"),
    security_level=SecurityLevel.ENTERPRISE,
    quality=0.95,
)
GPT = Provider(
    id="gpt",
    name="GPT",
    category=ProviderCategory.GENERAL,
    cost_per_token=0.00003,
    specialties=("general", "creative"),
    quality=0.9,
)


class TestClassification:
    """Test prompt classification."""

    def test_short_prompt_is_simple(self):
        profile = classify_prompt("hello")
        assert not profile.is_complex
        assert not profile.is_code_related
        assert not profile.is_creative

    def test_long_prompt_is_complex(self):
        assert classify_prompt("a" * 101).is_complex
        assert not classify_prompt("a" * 100).is_complex

    def test_code_fence_is_complex(self):
        profile = classify_prompt("```x = 1```")
        assert profile.is_complex
        assert profile.has_code_fence

    @pytest.mark.parametrize("prompt", [
        "solve $$ x^2 = 4 $$",
        r"solve \[ x^2 = 4 \]",
        r"inline \( a + b \) here",
    ])
    def test_math_delimiters(self, prompt):
        assert contains_math_delimiters(prompt)
        assert classify_prompt(prompt).is_complex

    def test_single_dollar_is_not_math(self):
        assert not contains_math_delimiters("costs $5")

    def test_keywords_are_case_insensitive(self):
        assert classify_prompt("Please DEBUG this").is_code_related
        assert classify_prompt("Brainstorm names").is_creative

    def test_math_prompt_fixture(self):
        assert len(MATH_PROMPT) == 150
        profile = classify_prompt(MATH_PROMPT)
        assert profile.is_complex
        assert not profile.is_code_related
        assert not profile.is_creative


class TestComplexityScore:
    """Test the complexity score used for complex prompts."""

    def test_scores(self):
        # reasoning +3, "reasoning" +2, "code" +1, enterprise +1
        assert complexity_score(CLAUDE) == 7
        assert complexity_score(GPT) == 2
        assert complexity_score(GEMINI) == 0


class TestRecommend:
    """Test the selection order."""

    def test_simple_prompt_goes_to_cheapest_category(self):
        engine = _engine(GEMINI, CLAUDE)
        assert engine.recommend("hello") == "gemini"

    def test_complex_math_prompt_goes_to_highest_score(self):
        engine = _engine(GEMINI, CLAUDE)
        assert engine.recommend(MATH_PROMPT) == "claude"

    def test_cost_optimization_overrides_topic_for_short_prompts(self):
        engine = _engine(GEMINI, CLAUDE, GPT)
        assert engine.recommend("debug this function") == "gemini"

    def test_code_prompt_without_cost_optimization(self):
        engine = _engine(GEMINI, CLAUDE, GPT)
        options = RoutingOptions(prefer_cost_optimization=False)
        assert engine.recommend("debug this function", options) == "claude"

    def test_creative_prompt_without_cost_optimization(self):
        engine = _engine(GEMINI, CLAUDE, GPT)
        options = RoutingOptions(prefer_cost_optimization=False)
        assert engine.recommend("tell me a story", options) == "gpt"

    def test_simple_prompt_without_fast_cheap_prefers_general(self):
        engine = _engine(CLAUDE, GPT)
        assert engine.recommend("hello") == "gpt"

    def test_plain_prompt_without_cost_optimization_is_cheapest(self):
        engine = _engine(GPT, CLAUDE, GEMINI)
        options = RoutingOptions(prefer_cost_optimization=False)
        assert engine.recommend("hello", options) == "gemini"

    def test_excluded_provider_never_chosen(self):
        engine = _engine(GEMINI, CLAUDE)
        options = RoutingOptions(exclude_providers={"gemini"})
        assert engine.recommend("hello", options) == "claude"

    def test_budget_filters_expensive_providers(self):
        engine = _engine(GEMINI, CLAUDE)
        # 1000 tokens: claude costs 0.01, gemini 0.0004
        options = RoutingOptions(max_budget=0.001)
        assert engine.recommend(MATH_PROMPT, options) == "gemini"

    def test_minimum_quality_filters_providers(self):
        engine = _engine(GEMINI, CLAUDE)
        options = RoutingOptions(minimum_quality=0.9)
        assert engine.recommend("hello", options) == "claude"

    def test_last_resort_ignores_budget(self):
        engine = _engine(GEMINI, CLAUDE)
        options = RoutingOptions(max_budget=0.0)
        assert engine.recommend("hello", options) == "gemini"

    def test_unavailable_provider_never_recommended(self):
        down_gemini = Provider(
            id="gemini",
            name="Gemini",
            category=ProviderCategory.FAST_CHEAP,
            cost_per_token=0.0000004,
            is_available=False,
        )
        engine = _engine(down_gemini, CLAUDE, GPT)
        for prompt in ["hello", MATH_PROMPT, "debug this", "write a poem", "x" * 500]:
            for prefer in (True, False):
                options = RoutingOptions(prefer_cost_optimization=prefer)
                assert engine.recommend(prompt, options) != "gemini"

    def test_absent_when_nothing_available(self):
        engine = _engine(Provider(
            id="off",
            name="Off",
            category=ProviderCategory.GENERAL,
            cost_per_token=0.0,
            is_available=False,
        ))
        assert engine.recommend("hello") is None

    def test_absent_when_everything_excluded(self):
        engine = _engine(GEMINI)
        assert engine.recommend("hello", RoutingOptions(exclude_providers=["gemini"])) is None


class TestRoutingOptions:
    """Test routing option validation."""

    def test_exclude_providers_coerced_to_frozenset(self):
        options = RoutingOptions(exclude_providers=["a", "b"])
        assert options.exclude_providers == frozenset({"a", "b"})

    def test_negative_budget_rejected(self):
        with pytest.raises(ValueError, match="max_budget cannot be negative"):
            RoutingOptions(max_budget=-1.0)

    def test_cache_scope_ignores_exclusion_order(self):
        first = RoutingOptions(exclude_providers=["b", "a"])
        second = RoutingOptions(exclude_providers={"a", "b"})
        assert first.cache_scope() == second.cache_scope()

    def test_cache_scope_differs_per_policy(self):
        scopes = {
            RoutingOptions().cache_scope(),
            RoutingOptions(prefer_cost_optimization=False).cache_scope(),
            RoutingOptions(minimum_quality=0.9).cache_scope(),
            RoutingOptions(max_budget=0.01).cache_scope(),
            RoutingOptions(exclude_providers={"a"}).cache_scope(),
        }
        assert len(scopes) == 5
