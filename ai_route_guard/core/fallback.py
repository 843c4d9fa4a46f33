"""
Fallback execution across providers.

The primary choice is tried first, then the remaining available providers in
ascending cost order. Each provider is tried at most once per call; there is
no backoff beyond switching providers.
"""

import time
from datetime import datetime
from typing import AbstractSet, Callable, List, Optional

from .errors import AllProvidersFailed, NoProviderAvailable
from .models import AiRequest, AiResponse, new_id
from .pricing import calculate_cost
from .providers import Provider, ProviderRegistry
from .token_counter import TokenUsage, estimate_tokens
from ai_route_guard.sdk.base import GenerateRequest, ProviderAdapter, ProviderReply
from ai_route_guard.utils.logger import get_logger

logger = get_logger(__name__)


class FallbackExecutor:
    """Drives the remote call through an ordered provider chain."""

    def __init__(
        self,
        registry: ProviderRegistry,
        adapter: ProviderAdapter,
        clock: Callable[[], float] = time.monotonic,
        now: Callable[[], datetime] = datetime.now,
    ):
        self.registry = registry
        self.adapter = adapter
        self._clock = clock
        self._now = now

    def try_order(
        self,
        primary_provider_id: Optional[str],
        exclude: AbstractSet[str] = frozenset(),
    ) -> List[Provider]:
        """Primary first, then the other available providers cheapest first.

        Providers in ``exclude`` are never tried, not even as the primary.
        """
        available = [p for p in self.registry.available() if p.id not in exclude]
        order: List[Provider] = []
        primary = self.registry.get(primary_provider_id) if primary_provider_id else None
        if primary is not None and primary.is_available and primary.id not in exclude:
            order.append(primary)
        rest = sorted(
            (p for p in available if p.id != primary_provider_id),
            key=lambda p: p.cost_per_token,
        )
        order.extend(rest)
        return order

    def dispatch(
        self,
        request: AiRequest,
        primary_provider_id: Optional[str],
        exclude: AbstractSet[str] = frozenset(),
    ) -> AiResponse:
        """Send the request, falling back across providers on failure.

        Args:
            request: The request to send
            primary_provider_id: Provider chosen by routing or by the caller
            exclude: Provider ids the caller ruled out

        Returns:
            Response tagged with the provider that actually answered

        Raises:
            NoProviderAvailable: If no provider is available at all
            AllProvidersFailed: If every candidate failed; chained to the last error
        """
        order = self.try_order(primary_provider_id, exclude)
        if not order:
            raise NoProviderAvailable("No available AI provider")

        attempted: List[str] = []
        last_error: Optional[Exception] = None
        for provider in order:
            attempted.append(provider.id)
            started = self._clock()
            try:
                reply = self.adapter.generate(GenerateRequest.from_request(request, provider), provider)
            except Exception as e:
                last_error = e
                logger.warning("Provider %s failed for request %s: %s", provider.id, request.id, e)
                continue
            elapsed_ms = (self._clock() - started) * 1000.0
            if provider.id != primary_provider_id:
                logger.info("Request %s served by fallback provider %s", request.id, provider.id)
            return self._to_response(request, provider, reply, elapsed_ms)

        logger.error("All %d providers failed for request %s", len(attempted), request.id)
        raise AllProvidersFailed(
            f"All providers failed ({', '.join(attempted)}): {last_error}",
            attempted=attempted,
            last_error=last_error,
        ) from last_error

    def _to_response(
        self,
        request: AiRequest,
        provider: Provider,
        reply: ProviderReply,
        elapsed_ms: float,
    ) -> AiResponse:
        usage = TokenUsage(
            prompt_tokens=(
                reply.prompt_tokens if reply.prompt_tokens is not None
                else estimate_tokens(request.prompt)
            ),
            completion_tokens=(
                reply.completion_tokens if reply.completion_tokens is not None
                else estimate_tokens(reply.content)
            ),
        )
        cost = reply.cost if reply.cost is not None else calculate_cost(provider.cost_per_token, usage)
        return AiResponse(
            id=new_id("resp"),
            request_id=request.id,
            provider_id=provider.id,
            content=reply.content,
            confidence=reply.confidence,
            cost=cost,
            response_time_ms=elapsed_ms,
            timestamp=self._now(),
            token_usage=usage,
            quality_score=reply.quality_score,
            model=reply.model or request.model or provider.model_name,
        )
