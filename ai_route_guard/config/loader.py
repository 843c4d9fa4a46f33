"""
Configuration management and loading.

Loads router settings and the static provider catalog from YAML.
"""

from dataclasses import dataclass, field
from pathlib import Path
from typing import Any, Dict, Optional, Tuple

import yaml

from ai_route_guard.core.providers import (
    Provider,
    ProviderCategory,
    RateLimits,
    SecurityLevel,
)
from ai_route_guard.storage.db import IN_MEMORY_DB


DEFAULT_PROVIDERS: Tuple[Provider, ...] = (
    Provider(
        id="claude-3",
        name="Claude 3 Sonnet",
        category=ProviderCategory.REASONING,
        model="claude-3-sonnet",
        cost_per_token=0.00001102,
        latency_ms=1200,
        specialties=("reasoning", "code", "analysis"),
        security_level=SecurityLevel.ENTERPRISE,
        quality=0.95,
        rate_limits=RateLimits(requests_per_minute=50, tokens_per_minute=40000),
    ),
    Provider(
        id="gpt-4",
        name="GPT-4 Turbo",
        category=ProviderCategory.GENERAL,
        model="gpt-4-turbo",
        cost_per_token=0.00003,
        latency_ms=1800,
        specialties=("general", "creative", "reasoning"),
        security_level=SecurityLevel.ENTERPRISE,
        quality=0.9,
        rate_limits=RateLimits(requests_per_minute=40, tokens_per_minute=30000),
    ),
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
        rate_limits=RateLimits(requests_per_minute=60, tokens_per_minute=50000),
    ),
)


@dataclass(frozen=True)
class RateLimitConfig:
    """Engine-wide request limit."""
    requests_per_minute: int = 60

    def __post_init__(self):
        if self.requests_per_minute <= 0:
            raise ValueError("requests_per_minute must be > 0")


@dataclass(frozen=True)
class CacheConfig:
    """Response cache capacity and TTLs."""
    max_entries: int = 500
    min_content_length: int = 20
    short_ttl_seconds: float = 60.0
    default_ttl_seconds: float = 300.0
    long_ttl_seconds: float = 900.0

    def __post_init__(self):
        if self.max_entries <= 0:
            raise ValueError("max_entries must be > 0")
        if self.min_content_length < 0:
            raise ValueError("min_content_length cannot be negative")
        for name in ("short_ttl_seconds", "default_ttl_seconds", "long_ttl_seconds"):
            if getattr(self, name) <= 0:
                raise ValueError(f"{name} must be > 0")


@dataclass(frozen=True)
class LedgerConfig:
    """Budget and history retention for the cost ledger."""
    budget: float = 1000.0
    history_size: int = 1000
    metrics_window: int = 100

    def __post_init__(self):
        if self.budget < 0:
            raise ValueError("budget cannot be negative")
        if self.history_size <= 0:
            raise ValueError("history_size must be > 0")
        if self.metrics_window <= 0:
            raise ValueError("metrics_window must be > 0")


@dataclass(frozen=True)
class AuditConfig:
    """Audit batching and the SQLite sink location."""
    batch_size: int = 5
    db_path: str = "ai_route_guard.db"

    def __post_init__(self):
        if self.batch_size <= 0:
            raise ValueError("batch_size must be > 0")
        if self.db_path == IN_MEMORY_DB:
            raise ValueError("db_path cannot be ':memory:'; audit batches need a database file")


@dataclass(frozen=True)
class DispatchConfig:
    """Per-request settings handed to the provider adapter."""
    timeout_seconds: float = 30.0
    max_tokens: int = 4000
    temperature: float = 0.7

    def __post_init__(self):
        if self.timeout_seconds <= 0:
            raise ValueError("timeout_seconds must be > 0")
        if self.max_tokens <= 0:
            raise ValueError("max_tokens must be > 0")
        if not 0.0 <= self.temperature <= 2.0:
            raise ValueError("temperature must be between 0 and 2")


@dataclass(frozen=True)
class LoggingConfig:
    level: str = "INFO"
    file_path: Optional[str] = None

    def as_dict(self) -> Dict[str, Any]:
        return {"level": self.level, "file_path": self.file_path}


@dataclass(frozen=True)
class RouterConfig:
    """Complete router configuration."""
    rate_limit: RateLimitConfig = field(default_factory=RateLimitConfig)
    cache: CacheConfig = field(default_factory=CacheConfig)
    ledger: LedgerConfig = field(default_factory=LedgerConfig)
    audit: AuditConfig = field(default_factory=AuditConfig)
    dispatch: DispatchConfig = field(default_factory=DispatchConfig)
    prefer_cost_optimization: bool = True
    logging: LoggingConfig = field(default_factory=LoggingConfig)
    providers: Tuple[Provider, ...] = DEFAULT_PROVIDERS

    @classmethod
    def default(cls) -> "RouterConfig":
        return cls()


_SECTION_KEYS = {
    "rate_limit": {"requests_per_minute"},
    "cache": {"max_entries", "min_content_length", "ttl"},
    "ledger": {"budget", "history_size", "metrics_window"},
    "audit": {"batch_size", "db_path"},
    "dispatch": {"timeout_seconds", "max_tokens", "temperature"},
    "routing": {"prefer_cost_optimization"},
    "logging": {"level", "file_path"},
}
_TTL_KEYS = {"short_seconds", "default_seconds", "long_seconds"}
_PROVIDER_KEYS = {
    "id", "name", "category", "model", "cost_per_token", "latency_ms",
    "specialties", "security_level", "is_available", "quality", "rate_limits",
}
_RATE_LIMIT_KEYS = {"requests_per_minute", "tokens_per_minute"}


def load_router_config(path: str) -> RouterConfig:
    """Load and validate router configuration from YAML file.

    Every section is optional and falls back to its defaults, but unknown
    keys are rejected so a typo can never silently disable a limit.

    Args:
        path: Path to YAML configuration file

    Returns:
        Validated RouterConfig object

    Raises:
        FileNotFoundError: If config file doesn't exist
        yaml.YAMLError: If YAML is invalid
        ValueError: If configuration is invalid
    """
    config_path = Path(path)
    if not config_path.exists():
        raise FileNotFoundError(f"Router config file not found: {path}")

    with open(config_path, 'r', encoding='utf-8') as f:
        try:
            raw_config = yaml.safe_load(f)
        except yaml.YAMLError as e:
            raise yaml.YAMLError(f"Invalid YAML in config file {path}: {e}")

    if not raw_config:
        raise ValueError("Configuration file is empty")
    if not isinstance(raw_config, dict):
        raise ValueError("Configuration root must be a dictionary")

    allowed_top_keys = set(_SECTION_KEYS) | {"providers"}
    unknown_keys = set(raw_config.keys()) - allowed_top_keys
    if unknown_keys:
        raise ValueError(f"Unknown configuration keys: {unknown_keys}")

    sections = {name: _section(raw_config, name) for name in _SECTION_KEYS}

    cache_data = dict(sections["cache"])
    ttl_data = cache_data.pop("ttl", None) or {}
    if not isinstance(ttl_data, dict):
        raise ValueError("'cache.ttl' must be a dictionary")
    unknown_ttl_keys = set(ttl_data.keys()) - _TTL_KEYS
    if unknown_ttl_keys:
        raise ValueError(f"Unknown keys in cache.ttl: {unknown_ttl_keys}")

    cache = CacheConfig(
        max_entries=_as_int(cache_data, "max_entries", 500, "cache"),
        min_content_length=_as_int(cache_data, "min_content_length", 20, "cache"),
        short_ttl_seconds=_as_float(ttl_data, "short_seconds", 60.0, "cache.ttl"),
        default_ttl_seconds=_as_float(ttl_data, "default_seconds", 300.0, "cache.ttl"),
        long_ttl_seconds=_as_float(ttl_data, "long_seconds", 900.0, "cache.ttl"),
    )

    routing_data = sections["routing"]
    prefer_cost = routing_data.get("prefer_cost_optimization", True)
    if not isinstance(prefer_cost, bool):
        raise ValueError("'prefer_cost_optimization' in routing must be a boolean")

    logging_data = sections["logging"]
    level = logging_data.get("level", "INFO")
    if not isinstance(level, str):
        raise ValueError("'level' in logging must be a string")
    file_path = logging_data.get("file_path")
    if file_path is not None and not isinstance(file_path, str):
        raise ValueError("'file_path' in logging must be a string")

    audit_data = sections["audit"]
    db_path = audit_data.get("db_path", "ai_route_guard.db")
    if not isinstance(db_path, str) or not db_path:
        raise ValueError("'db_path' in audit must be a non-empty string")

    providers = DEFAULT_PROVIDERS
    if "providers" in raw_config:
        providers = _parse_providers(raw_config["providers"])

    return RouterConfig(
        rate_limit=RateLimitConfig(
            requests_per_minute=_as_int(sections["rate_limit"], "requests_per_minute", 60, "rate_limit"),
        ),
        cache=cache,
        ledger=LedgerConfig(
            budget=_as_float(sections["ledger"], "budget", 1000.0, "ledger"),
            history_size=_as_int(sections["ledger"], "history_size", 1000, "ledger"),
            metrics_window=_as_int(sections["ledger"], "metrics_window", 100, "ledger"),
        ),
        audit=AuditConfig(
            batch_size=_as_int(audit_data, "batch_size", 5, "audit"),
            db_path=db_path,
        ),
        dispatch=DispatchConfig(
            timeout_seconds=_as_float(sections["dispatch"], "timeout_seconds", 30.0, "dispatch"),
            max_tokens=_as_int(sections["dispatch"], "max_tokens", 4000, "dispatch"),
            temperature=_as_float(sections["dispatch"], "temperature", 0.7, "dispatch"),
        ),
        prefer_cost_optimization=prefer_cost,
        logging=LoggingConfig(level=level.upper(), file_path=file_path),
        providers=providers,
    )


def _section(raw_config: Dict, name: str) -> Dict:
    data = raw_config.get(name) or {}
    if not isinstance(data, dict):
        raise ValueError(f"'{name}' must be a dictionary")
    unknown_keys = set(data.keys()) - _SECTION_KEYS[name]
    if unknown_keys:
        raise ValueError(f"Unknown keys in {name}: {unknown_keys}")
    return data


def _as_int(data: Dict, key: str, default: int, path: str) -> int:
    value = data.get(key, default)
    # bool is an int subclass; reject it explicitly
    if isinstance(value, bool) or not isinstance(value, int):
        raise ValueError(f"'{key}' in {path} must be an integer")
    return value


def _as_float(data: Dict, key: str, default: float, path: str) -> float:
    value = data.get(key, default)
    if isinstance(value, bool) or not isinstance(value, (int, float)):
        raise ValueError(f"'{key}' in {path} must be a number")
    return float(value)


def _parse_providers(data: Any) -> Tuple[Provider, ...]:
    """Parse and validate the static provider catalog.

    Args:
        data: The raw ``providers`` list

    Returns:
        Tuple of validated providers

    Raises:
        ValueError: If an entry is invalid or an id is repeated
    """
    if not isinstance(data, list):
        raise ValueError("'providers' must be a list")

    providers = []
    seen = set()
    for index, item in enumerate(data):
        path = f"providers[{index}]"
        if not isinstance(item, dict):
            raise ValueError(f"{path} must be a dictionary")
        unknown_keys = set(item.keys()) - _PROVIDER_KEYS
        if unknown_keys:
            raise ValueError(f"Unknown keys in {path}: {unknown_keys}")

        for required in ("id", "category", "cost_per_token"):
            if required not in item:
                raise ValueError(f"Missing required '{required}' in {path}")

        provider_id = item["id"]
        if not isinstance(provider_id, str) or not provider_id:
            raise ValueError(f"'id' in {path} must be a non-empty string")
        if provider_id in seen:
            raise ValueError(f"Duplicate provider id: {provider_id}")
        seen.add(provider_id)

        try:
            category = ProviderCategory(str(item["category"]).lower())
        except ValueError:
            valid = [c.value for c in ProviderCategory]
            raise ValueError(f"'category' in {path} must be one of: {valid}")

        try:
            security_level = SecurityLevel(str(item.get("security_level", "basic")).lower())
        except ValueError:
            valid = [s.value for s in SecurityLevel]
            raise ValueError(f"'security_level' in {path} must be one of: {valid}")

        specialties = item.get("specialties", [])
        if not isinstance(specialties, list) or not all(isinstance(s, str) for s in specialties):
            raise ValueError(f"'specialties' in {path} must be a list of strings")

        is_available = item.get("is_available", True)
        if not isinstance(is_available, bool):
            raise ValueError(f"'is_available' in {path} must be a boolean")

        limits_data = item.get("rate_limits") or {}
        if not isinstance(limits_data, dict):
            raise ValueError(f"'rate_limits' in {path} must be a dictionary")
        unknown_limit_keys = set(limits_data.keys()) - _RATE_LIMIT_KEYS
        if unknown_limit_keys:
            raise ValueError(f"Unknown keys in {path}.rate_limits: {unknown_limit_keys}")

        providers.append(Provider(
            id=provider_id,
            name=str(item.get("name", provider_id)),
            category=category,
            model=str(item.get("model", "")),
            cost_per_token=_as_float(item, "cost_per_token", 0.0, path),
            latency_ms=_as_int(item, "latency_ms", 1000, path),
            specialties=tuple(specialties),
            security_level=security_level,
            is_available=is_available,
            quality=_as_float(item, "quality", 0.8, path),
            rate_limits=RateLimits(
                requests_per_minute=_as_int(limits_data, "requests_per_minute", 60, f"{path}.rate_limits"),
                tokens_per_minute=_as_int(limits_data, "tokens_per_minute", 50000, f"{path}.rate_limits"),
            ),
        ))

    if not providers:
        raise ValueError("'providers' must not be empty")
    return tuple(providers)
