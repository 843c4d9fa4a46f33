"""
Deterministic offline adapter.

Stands in for the remote backend in tests and offline runs. Replies depend
only on the prompt and the provider category, so repeated runs are identical.
"""

import hashlib
from typing import Dict, Iterable, List, Optional

from ai_route_guard.core.providers import Provider, ProviderCategory
from .base import GenerateRequest, ProviderAdapter, ProviderReply

_OPENERS: Dict[ProviderCategory, List[str]] = {
    ProviderCategory.REASONING: [
        "Based on the code context you've provided, here's my analysis:",
        "I can help you debug this issue. The problem appears to be:",
        "Let me reason through this step by step:",
    ],
    ProviderCategory.GENERAL: [
        "Great question! Here's an approach that should work:",
        "I'd be happy to help with that. Let me walk through it:",
        "That's an interesting challenge. Here's how I would approach it:",
    ],
    ProviderCategory.FAST_CHEAP: [
        "Quick answer: here's what you need to know.",
        "The short version is this:",
        "Fast response: the key point is this.",
    ],
    ProviderCategory.LOCAL: [
        "Local model response: here's my analysis.",
        "Processing locally, the answer is:",
        "Local AI result:",
    ],
    ProviderCategory.CONSENSUS: [
        "Consensus across models:",
        "The combined recommendation is:",
        "Multiple models agree on this:",
    ],
}


class FixtureProviderError(RuntimeError):
    """Scripted failure raised by the fixture adapter."""


class FixtureAdapter(ProviderAdapter):
    """Deterministic ``ProviderAdapter`` with scripted failures.

    Args:
        failing_providers: Provider ids whose calls always fail
        fail_once: Provider ids whose next call fails once
    """

    def __init__(
        self,
        failing_providers: Optional[Iterable[str]] = None,
        fail_once: Optional[Iterable[str]] = None,
    ):
        self.failing_providers = set(failing_providers or ())
        self.fail_once = set(fail_once or ())
        self.calls: List[str] = []

    def generate(self, request: GenerateRequest, provider: Provider) -> ProviderReply:
        self.calls.append(provider.id)
        if provider.id in self.failing_providers:
            raise FixtureProviderError(f"provider {provider.id} is failing")
        if provider.id in self.fail_once:
            self.fail_once.discard(provider.id)
            raise FixtureProviderError(f"provider {provider.id} failed once")

        openers = _OPENERS.get(provider.category, _OPENERS[ProviderCategory.GENERAL])
        digest = hashlib.sha256(request.prompt.encode("utf-8")).digest()
        opener = openers[digest[0] % len(openers)]
        topic = " ".join(request.prompt.split()[:12])
        content = (
            f"{opener}\n\nRegarding \"{topic}\": this is a fixture response "
            f"generated offline by {provider.name}."
        )
        return ProviderReply(
            content=content,
            model=request.model,
            confidence=0.92,
            quality_score=0.85,
        )

    @property
    def call_count(self) -> int:
        return len(self.calls)
