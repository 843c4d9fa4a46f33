"""
Provider catalog and registry.

Holds the AI providers known to the engine together with their static
attributes (cost, latency, specialties) and their live availability.
"""

from dataclasses import dataclass, field, replace
from enum import Enum
from typing import Callable, Dict, Iterable, List, Optional, Tuple

from ai_route_guard.utils.logger import get_logger

logger = get_logger(__name__)


class ProviderCategory(Enum):
    """Broad family a provider belongs to, used by the routing rules."""
    GENERAL = "general-purpose"
    FAST_CHEAP = "fast-cheap"
    REASONING = "reasoning-specialized"
    LOCAL = "local"
    CONSENSUS = "consensus"


class SecurityLevel(Enum):
    """Security posture advertised by a provider."""
    BASIC = "basic"
    ENTERPRISE = "enterprise"
    GOVERNMENT = "government"


# Categories counted as "expensive" by the ledger's avoidance metric
HIGH_COST_CATEGORIES = frozenset({ProviderCategory.REASONING, ProviderCategory.GENERAL})


@dataclass(frozen=True)
class RateLimits:
    """Provider-side request limits."""
    requests_per_minute: int = 60
    tokens_per_minute: int = 50000


@dataclass(frozen=True)
class Provider:
    """An AI model endpoint with its cost/latency/availability characteristics."""
    id: str
    name: str
    category: ProviderCategory
    cost_per_token: float
    model: str = ""
    is_available: bool = True
    latency_ms: int = 1000
    specialties: Tuple[str, ...] = ()
    security_level: SecurityLevel = SecurityLevel.BASIC
    quality: float = 0.8
    rate_limits: RateLimits = field(default_factory=RateLimits)

    def __post_init__(self):
        """Validate provider attributes."""
        if not self.id:
            raise ValueError("provider id cannot be empty")
        if self.cost_per_token < 0:
            raise ValueError("cost_per_token cannot be negative")
        if not 0.0 <= self.quality <= 1.0:
            raise ValueError("quality must be between 0 and 1")
        if self.latency_ms < 0:
            raise ValueError("latency_ms cannot be negative")

    @property
    def model_name(self) -> str:
        """Model identifier sent to the backend (falls back to the id)."""
        return self.model or self.id


# Minimal catalog used when the backend catalog cannot be loaded
FALLBACK_PROVIDERS: Tuple[Provider, ...] = (
    Provider(
        id="gemini-pro",
        name="Gemini Pro",
        category=ProviderCategory.FAST_CHEAP,
        model="gemini-pro",
        cost_per_token=0.00000037,
        latency_ms=800,
        specialties=("fast", "cost-effective", "multimodal"),
        security_level=SecurityLevel.BASIC,
        quality=0.75,
    ),
)


class ProviderRegistry:
    """Id-indexed catalog of providers.

    The id map is rebuilt whenever the provider list changes, so lookups stay
    O(1). Provider identity never changes after load; only availability may be
    refreshed.
    """

    def __init__(self, source: Optional[Callable[[], Iterable[Provider]]] = None):
        """Initialize the registry.

        Args:
            source: Callable returning the backend provider catalog
                (the ``listProviders`` collaborator)
        """
        self._source = source
        self._providers: List[Provider] = []
        self._by_id: Dict[str, Provider] = {}

    def initialize(self) -> List[Provider]:
        """Load providers from the backend collaborator.

        A failing or empty catalog is replaced by ``FALLBACK_PROVIDERS`` so
        the engine stays usable.

        Returns:
            The loaded provider list
        """
        providers: List[Provider] = []
        if self._source is not None:
            try:
                providers = list(self._source())
            except Exception as e:
                logger.warning("Failed to load provider catalog, using fallback set: %s", e)
        if not providers:
            logger.info("Provider catalog empty, using %d fallback provider(s)", len(FALLBACK_PROVIDERS))
            providers = list(FALLBACK_PROVIDERS)
        self.replace(providers)
        logger.info("Loaded %d AI providers", len(self._providers))
        return self.all()

    def replace(self, providers: Iterable[Provider]) -> None:
        """Replace the whole catalog and rebuild the id map.

        Raises:
            ValueError: If two providers share an id
        """
        providers = list(providers)
        by_id: Dict[str, Provider] = {}
        for provider in providers:
            if provider.id in by_id:
                raise ValueError(f"Duplicate provider id: {provider.id}")
            by_id[provider.id] = provider
        self._providers = providers
        self._by_id = by_id

    def set_availability(self, provider_id: str, is_available: bool) -> Provider:
        """Refresh the availability flag of one provider.

        Raises:
            KeyError: If the provider is unknown
        """
        current = self._by_id[provider_id]
        updated = replace(current, is_available=is_available)
        self.replace(updated if p.id == provider_id else p for p in self._providers)
        logger.debug("Provider %s availability set to %s", provider_id, is_available)
        return updated

    def get(self, provider_id: str) -> Optional[Provider]:
        return self._by_id.get(provider_id)

    def all(self) -> List[Provider]:
        return list(self._providers)

    def available(self) -> List[Provider]:
        return [p for p in self._providers if p.is_available]

    def by_category(self, category: ProviderCategory) -> List[Provider]:
        return [p for p in self._providers if p.category == category]

    def cheapest(self) -> Optional[Provider]:
        """Cheapest available provider by cost per token."""
        available = self.available()
        if not available:
            return None
        return min(available, key=lambda p: p.cost_per_token)

    def most_expensive(self) -> Optional[Provider]:
        """Most expensive available provider by cost per token."""
        available = self.available()
        if not available:
            return None
        return max(available, key=lambda p: p.cost_per_token)

    def __len__(self) -> int:
        return len(self._providers)
