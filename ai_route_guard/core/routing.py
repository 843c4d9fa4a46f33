"""
Prompt classification and provider selection.

Selection order (first match wins; every candidate must be available, not
excluded, of sufficient quality and within budget):

1. Simple prompt with cost optimization on - fast-cheap, else general/consensus
2. Code keywords - reasoning-specialized
3. Creative keywords - general-purpose
4. Complex prompt - highest complexity score
5. Cheapest candidate

Cost optimization deliberately overrides topic routing for short, simple
prompts: a low-stakes question goes to the cheap model even if it mentions code.
"""

import json
import re
from dataclasses import dataclass, field
from typing import FrozenSet, Iterable, List, Optional

from .pricing import meets_budget
from .providers import Provider, ProviderCategory, ProviderRegistry, SecurityLevel
from ai_route_guard.utils.logger import get_logger

logger = get_logger(__name__)

COMPLEX_PROMPT_LENGTH = 100

CODE_KEYWORDS = (
    "code", "function", "debug", "implement", "refactor",
    "class", "method", "variable", "syntax",
)
CREATIVE_KEYWORDS = (
    "creative", "story", "design", "write", "generate", "brainstorm", "idea",
)

_CODE_FENCE = "```"
_MATH_DELIMITERS = re.compile(
    r"\$\$.+?\$\$"        # $$ display $$
    r"|\\\[.+?\\\]"        # \[ display \]
    r"|\\\(.+?\\\)",       # \( inline \)
    re.DOTALL,
)


@dataclass(frozen=True)
class RoutingOptions:
    """Caller policy for a single recommendation."""
    prefer_cost_optimization: bool = True
    minimum_quality: Optional[float] = None
    max_budget: Optional[float] = None
    exclude_providers: FrozenSet[str] = field(default_factory=frozenset)

    def __post_init__(self):
        # Accept any iterable of ids for convenience
        if not isinstance(self.exclude_providers, frozenset):
            object.__setattr__(self, "exclude_providers", frozenset(self.exclude_providers))
        if self.max_budget is not None and self.max_budget < 0:
            raise ValueError("max_budget cannot be negative")

    def cache_scope(self) -> str:
        """Stable text form of the policy, for scoping cached smart-routed replies."""
        return json.dumps(
            {
                "cost_first": self.prefer_cost_optimization,
                "exclude": sorted(self.exclude_providers),
                "max_budget": self.max_budget,
                "min_quality": self.minimum_quality,
            },
            sort_keys=True,
            separators=(",", ":"),
        )


@dataclass(frozen=True)
class PromptProfile:
    """What the router knows about a prompt."""
    is_complex: bool
    has_code_fence: bool
    has_math: bool
    is_code_related: bool
    is_creative: bool


def contains_code_fence(prompt: str) -> bool:
    return _CODE_FENCE in prompt


def contains_math_delimiters(prompt: str) -> bool:
    return _MATH_DELIMITERS.search(prompt) is not None


def _contains_any(text: str, keywords: Iterable[str]) -> bool:
    return any(keyword in text for keyword in keywords)


def classify_prompt(prompt: str) -> PromptProfile:
    """Classify a prompt for routing."""
    lowered = prompt.lower()
    has_fence = contains_code_fence(prompt)
    has_math = contains_math_delimiters(prompt)
    return PromptProfile(
        is_complex=len(prompt) > COMPLEX_PROMPT_LENGTH or has_fence or has_math,
        has_code_fence=has_fence,
        has_math=has_math,
        is_code_related=_contains_any(lowered, CODE_KEYWORDS),
        is_creative=_contains_any(lowered, CREATIVE_KEYWORDS),
    )


def complexity_score(provider: Provider) -> int:
    """Suitability of a provider for complex prompts."""
    score = 0
    if provider.category == ProviderCategory.REASONING:
        score += 3
    if provider.category == ProviderCategory.GENERAL:
        score += 2
    if "reasoning" in provider.specialties:
        score += 2
    if "code" in provider.specialties:
        score += 1
    if provider.security_level == SecurityLevel.ENTERPRISE:
        score += 1
    return score


class RoutingEngine:
    """Chooses a provider id for a prompt from live registry state."""

    def __init__(self, registry: ProviderRegistry):
        self.registry = registry

    def candidates(self, options: RoutingOptions) -> List[Provider]:
        """Available, non-excluded providers that satisfy quality and budget."""
        result = []
        for provider in self.registry.available():
            if provider.id in options.exclude_providers:
                continue
            if options.minimum_quality is not None and provider.quality < options.minimum_quality:
                continue
            if not meets_budget(provider, options.max_budget):
                continue
            result.append(provider)
        return result

    def recommend(self, prompt: str, options: Optional[RoutingOptions] = None) -> Optional[str]:
        """Select the optimal provider id for a prompt.

        Args:
            prompt: Prompt text
            options: Caller routing policy

        Returns:
            Provider id, or None when no provider can serve the request
        """
        options = options or RoutingOptions()
        profile = classify_prompt(prompt)
        eligible = self.candidates(options)

        choice = self._select(profile, options, eligible)
        if choice is None:
            choice = self._last_resort(options)

        if choice is None:
            logger.warning("No AI provider available for routing")
            return None
        logger.info(
            "Routed prompt (len=%d, complex=%s) to %s",
            len(prompt), profile.is_complex, choice.id,
        )
        return choice.id

    def _select(
        self,
        profile: PromptProfile,
        options: RoutingOptions,
        eligible: List[Provider],
    ) -> Optional[Provider]:
        if not eligible:
            return None

        # 1. Cost optimization for simple prompts
        if not profile.is_complex and options.prefer_cost_optimization:
            match = self._first_of(eligible, ProviderCategory.FAST_CHEAP)
            if match is None:
                match = self._first_of(eligible, ProviderCategory.GENERAL, ProviderCategory.CONSENSUS)
            if match is not None:
                return match

        # 2. Code-related prompts
        if profile.is_code_related:
            match = self._first_of(eligible, ProviderCategory.REASONING)
            if match is not None:
                return match

        # 3. Creative prompts
        if profile.is_creative:
            match = self._first_of(eligible, ProviderCategory.GENERAL)
            if match is not None:
                return match

        # 4. Complex prompts go to the most capable candidate
        if profile.is_complex:
            # Ties go to the cheaper provider
            return max(eligible, key=lambda p: (complexity_score(p), -p.cost_per_token))

        # 5. Cheapest candidate
        return min(eligible, key=lambda p: p.cost_per_token)

    def _last_resort(self, options: RoutingOptions) -> Optional[Provider]:
        """Cheapest available non-excluded provider, ignoring budget and quality."""
        remaining = [
            p for p in self.registry.available()
            if p.id not in options.exclude_providers
        ]
        if not remaining:
            return None
        return min(remaining, key=lambda p: p.cost_per_token)

    @staticmethod
    def _first_of(providers: List[Provider], *categories: ProviderCategory) -> Optional[Provider]:
        for category in categories:
            for provider in providers:
                if provider.category == category:
                    return provider
        return None
