"""
Routing service.

Entry point used by the surrounding application. A call to ``send_message``
runs through:

    security gate -> rate limiter -> cache lookup -> routing -> fallback
    dispatch -> ledger -> cache insert -> audit -> session update

Security and rate checks fail before any remote call or cost accrual. The
cache and ledger are only touched once a response is confirmed.
"""

import json
import threading
import time
from datetime import datetime
from typing import Callable, Dict, List, Optional, Set

from .audit import AuditQueue, AuditSink, new_audit_entry
from .cache import CacheStats, ResponseCache, TTLPolicy, build_cache_key
from .errors import NoProviderAvailable, SecurityViolation, SessionBusy
from .fallback import FallbackExecutor
from .ledger import CostLedger, CostSnapshot
from .models import (
    AiRequest,
    AiResponse,
    ChatMessage,
    ChatSession,
    MessageType,
    ProjectContext,
    SecurityContext,
    new_id,
)
from .pricing import estimate_request_cost
from .providers import Provider, ProviderRegistry
from .ratelimit import RateLimiter
from .routing import RoutingEngine, RoutingOptions
from .security import SecurityGate
from ai_route_guard.config.loader import RouterConfig
from ai_route_guard.sdk.base import ProviderAdapter
from ai_route_guard.sdk.sources import StaticProviderSource
from ai_route_guard.storage.exports import FileExportSink
from ai_route_guard.storage.models import AuditOutcome, RiskLevel
from ai_route_guard.storage.repository import SqliteAuditSink
from ai_route_guard.utils.logger import get_logger

logger = get_logger(__name__)

# Cache-key provider prefix for calls where routing picks the provider
AUTO_PROVIDER = "auto"

ExportSink = Callable[[str, str], str]


class RoutingService:
    """Routes prompts to providers with caching, limits, fallback and cost accounting.

    All collaborators are injected; anything not given is built from
    ``config``. One instance holds one cache, one rate window and one ledger.
    """

    def __init__(
        self,
        registry: ProviderRegistry,
        adapter: ProviderAdapter,
        config: Optional[RouterConfig] = None,
        audit_sink: Optional[AuditSink] = None,
        export_sink: Optional[ExportSink] = None,
        security_gate: Optional[SecurityGate] = None,
        clock: Callable[[], float] = time.time,
        now: Callable[[], datetime] = datetime.now,
    ):
        self.config = config or RouterConfig.default()
        self.registry = registry
        self.adapter = adapter
        self._now = now

        self.security_gate = security_gate or SecurityGate()
        self.rate_limiter = RateLimiter(
            requests_per_minute=self.config.rate_limit.requests_per_minute,
            clock=clock,
        )
        cache_config = self.config.cache
        self.cache = ResponseCache(
            max_entries=cache_config.max_entries,
            min_content_length=cache_config.min_content_length,
            ttl_policy=TTLPolicy(
                short_seconds=cache_config.short_ttl_seconds,
                default_seconds=cache_config.default_ttl_seconds,
                long_seconds=cache_config.long_ttl_seconds,
            ),
            clock=clock,
        )
        self.ledger = CostLedger(
            budget=self.config.ledger.budget,
            history_size=self.config.ledger.history_size,
            metrics_window=self.config.ledger.metrics_window,
            now=now,
        )
        self.routing = RoutingEngine(registry)
        self.fallback = FallbackExecutor(registry, adapter, now=now)
        if audit_sink is None:
            audit_sink = SqliteAuditSink(self.config.audit.db_path)
        self.audit = AuditQueue(audit_sink, batch_size=self.config.audit.batch_size)
        self.export_sink = export_sink

        self._sessions: Dict[str, ChatSession] = {}
        self._in_progress: Set[str] = set()
        self._session_lock = threading.Lock()

    @classmethod
    def from_config(
        cls,
        config: RouterConfig,
        adapter: ProviderAdapter,
        **kwargs,
    ) -> "RoutingService":
        """Service whose provider catalog is the static list in ``config``."""
        registry = ProviderRegistry(StaticProviderSource(config.providers))
        return cls(registry, adapter, config=config, **kwargs)

    def initialize(self) -> List[Provider]:
        return self.registry.initialize()

    def recommend(self, prompt: str, options: Optional[RoutingOptions] = None) -> Optional[str]:
        return self.routing.recommend(prompt, options or self._default_options())

    def _default_options(self) -> RoutingOptions:
        return RoutingOptions(prefer_cost_optimization=self.config.prefer_cost_optimization)

    # Sessions

    def create_session(
        self,
        context: Optional[ProjectContext] = None,
        name: Optional[str] = None,
    ) -> str:
        session = ChatSession(
            id=new_id("session"),
            name=name or f"Chat {self._now():%Y-%m-%d %H:%M}",
            context=context or ProjectContext(),
            created_at=self._now(),
        )
        with self._session_lock:
            self._sessions[session.id] = session
        return session.id

    def get_session(self, session_id: str) -> ChatSession:
        with self._session_lock:
            session = self._sessions.get(session_id)
        if session is None:
            raise KeyError(f"Unknown session: {session_id}")
        return session

    def export_conversation(self, session_id: str, sink: Optional[ExportSink] = None) -> str:
        """Serialize a session to JSON and hand it to the export sink.

        Args:
            session_id: Session to export
            sink: Overrides the service's export sink for this call

        Returns:
            Location reported by the sink

        Raises:
            KeyError: If the session doesn't exist
        """
        session = self.get_session(session_id)
        payload = json.dumps(session.to_export_dict(), indent=2)
        sink = sink or self.export_sink or FileExportSink()
        location = sink(session_id, payload)
        logger.info("Exported session %s to %s", session_id, location)
        return location

    # Sending

    def send_message(
        self,
        session_id: str,
        prompt: str,
        context: Optional[ProjectContext] = None,
        provider_id: Optional[str] = None,
        security_context: Optional[SecurityContext] = None,
        model: Optional[str] = None,
        options: Optional[RoutingOptions] = None,
    ) -> AiResponse:
        """Answer a prompt within a session.

        Args:
            session_id: Session created by ``create_session``
            prompt: The user prompt
            context: Project context; defaults to the session's
            provider_id: Explicit provider; skips smart routing
            security_context: Caller identity and compliance posture
            model: Pin a model name instead of the provider's default
            options: Routing policy for smart-routed calls

        Returns:
            The response, possibly served from cache

        Raises:
            KeyError: If the session doesn't exist
            SessionBusy: If a send for this session is already in flight
            SecurityViolation: If the prompt contains sensitive content
            RateLimitExceeded: If the per-minute limit is reached
            NoProviderAvailable: If no provider can be chosen
            AllProvidersFailed: If every provider in the chain failed
        """
        session = self.get_session(session_id)
        with self._session_lock:
            if session_id in self._in_progress:
                raise SessionBusy(f"A message is already being sent for session {session_id}")
            self._in_progress.add(session_id)
        try:
            response = self._send(session, prompt, context, provider_id, security_context, model, options)
        finally:
            with self._session_lock:
                self._in_progress.discard(session_id)

        session.messages.append(ChatMessage(
            type=MessageType.USER,
            content=prompt,
            timestamp=self._now(),
        ))
        session.messages.append(ChatMessage(
            type=MessageType.ASSISTANT,
            content=response.content,
            timestamp=response.timestamp,
            metadata={
                "provider": response.provider_id,
                "model": response.model,
                "cost": response.cost,
                "responseTimeMs": response.response_time_ms,
                "confidence": response.confidence,
                "fromCache": response.from_cache,
            },
        ))
        return response

    def _send(
        self,
        session: ChatSession,
        prompt: str,
        context: Optional[ProjectContext],
        provider_id: Optional[str],
        security_context: Optional[SecurityContext],
        model: Optional[str],
        options: Optional[RoutingOptions],
    ) -> AiResponse:
        try:
            self.security_gate.enforce(prompt)
        except SecurityViolation as e:
            self.audit.append(new_audit_entry(
                operation="ai_request",
                resource=session.id,
                outcome=AuditOutcome.FAILURE,
                risk_level=RiskLevel.HIGH,
                compliance_flags=e.detectors,
                timestamp=self._now(),
            ))
            raise

        self.rate_limiter.check_and_record()

        dispatch = self.config.dispatch
        request = AiRequest(
            id=new_id("req"),
            prompt=prompt,
            session_id=session.id,
            timestamp=self._now(),
            context=context or session.context,
            provider_id=provider_id,
            security_context=security_context,
            model=model,
            max_tokens=dispatch.max_tokens,
            temperature=dispatch.temperature,
            timeout_seconds=dispatch.timeout_seconds,
        )

        if provider_id is None:
            options = options or self._default_options()
            # Smart-routed replies are only shared between calls with the same policy
            key_provider = f"{AUTO_PROVIDER}:{options.cache_scope()}"
        else:
            key_provider = provider_id
        key = build_cache_key(
            prompt,
            key_provider,
            model or "",
            request.temperature,
            request.max_tokens,
        )
        cached = self.cache.get(key)
        if cached is not None:
            return cached

        if provider_id is not None:
            if self.registry.get(provider_id) is None:
                raise NoProviderAvailable(f"Unknown AI provider: {provider_id}")
            primary = provider_id
            excluded = frozenset()
        else:
            primary = self.routing.recommend(prompt, options)
            if primary is None:
                raise NoProviderAvailable("No available AI provider")
            excluded = options.exclude_providers

        response = self.fallback.dispatch(request, primary, exclude=excluded)

        self.ledger.record(response, self.registry.all(), was_smart_routed=provider_id is None)
        self.cache.put(key, response, prompt)

        if security_context is None or security_context.auditing_enabled:
            flags = (security_context.compliance_level,) if security_context else ()
            self.audit.append(new_audit_entry(
                operation="ai_request",
                resource=response.provider_id,
                outcome=AuditOutcome.SUCCESS,
                risk_level=RiskLevel.LOW,
                compliance_flags=flags,
                timestamp=self._now(),
            ))
        return response

    # Accounting

    def estimate_cost(self, prompt: str, provider_id: str, max_tokens: Optional[int] = None) -> float:
        """Upper-bound cost of sending ``prompt`` to a provider.

        Raises:
            KeyError: If the provider is unknown
        """
        provider = self.registry.get(provider_id)
        if provider is None:
            raise KeyError(f"Unknown AI provider: {provider_id}")
        return estimate_request_cost(provider, prompt, max_tokens or self.config.dispatch.max_tokens)

    def get_cost_snapshot(self) -> CostSnapshot:
        return self.ledger.snapshot()

    def get_cache_stats(self) -> CacheStats:
        return self.cache.stats()

    def clear_cache(self) -> None:
        self.cache.clear()
        logger.info("Response cache cleared")

    def reset_ledger(self) -> None:
        self.ledger.reset()
        logger.info("Cost ledger reset")

    def flush_audit(self) -> bool:
        return self.audit.flush()
