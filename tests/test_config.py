"""
Unit tests for configuration loading and validation.

Tests strict validation and error handling for router configs.
"""

import os
import tempfile

import pytest
import yaml

from ai_route_guard.config.loader import (
    DEFAULT_PROVIDERS,
    AuditConfig,
    CacheConfig,
    DispatchConfig,
    RouterConfig,
    load_router_config,
)
from ai_route_guard.core.providers import ProviderCategory, SecurityLevel


class TestDefaults:
    """Test the built-in configuration."""

    def test_default_values(self):
        config = RouterConfig.default()
        assert config.rate_limit.requests_per_minute == 60
        assert config.cache.max_entries == 500
        assert config.cache.min_content_length == 20
        assert config.cache.short_ttl_seconds == 60.0
        assert config.cache.long_ttl_seconds == 900.0
        assert config.ledger.budget == 1000.0
        assert config.audit.batch_size == 5
        assert config.dispatch.timeout_seconds == 30.0
        assert config.prefer_cost_optimization is True

    def test_default_catalog(self):
        by_id = {p.id: p for p in DEFAULT_PROVIDERS}
        assert by_id["claude-3"].category == ProviderCategory.REASONING
        assert by_id["gpt-4"].category == ProviderCategory.GENERAL
        assert by_id["gemini-pro"].category == ProviderCategory.FAST_CHEAP
        assert by_id["gemini-pro"].cost_per_token == 0.00000037

    def test_dataclass_validation(self):
        with pytest.raises(ValueError, match="max_entries must be > 0"):
            CacheConfig(max_entries=0)
        with pytest.raises(ValueError, match="timeout_seconds must be > 0"):
            DispatchConfig(timeout_seconds=0)

    def test_in_memory_audit_database_rejected(self):
        with pytest.raises(ValueError, match="db_path cannot be ':memory:'"):
            AuditConfig(db_path=":memory:")


class TestConfigLoading:
    """Test configuration loading and validation."""

    def setup_method(self):
        self.temp_dir = tempfile.mkdtemp()

    def teardown_method(self):
        import shutil
        shutil.rmtree(self.temp_dir, ignore_errors=True)

    def _write_config(self, config_data, filename: str = "config.yaml") -> str:
        config_path = os.path.join(self.temp_dir, filename)
        with open(config_path, 'w', encoding='utf-8') as f:
            yaml.dump(config_data, f)
        return config_path

    def test_full_config_loads_correctly(self):
        config_path = self._write_config({
            "rate_limit": {"requests_per_minute": 30},
            "cache": {
                "max_entries": 100,
                "min_content_length": 10,
                "ttl": {"short_seconds": 30, "default_seconds": 120, "long_seconds": 600},
            },
            "ledger": {"budget": 50.0, "history_size": 200, "metrics_window": 20},
            "audit": {"batch_size": 10, "db_path": "audit.db"},
            "dispatch": {"timeout_seconds": 12.5, "max_tokens": 1000, "temperature": 0.2},
            "routing": {"prefer_cost_optimization": False},
            "logging": {"level": "debug", "file_path": "router.log"},
            "providers": [
                {
                    "id": "local-llama",
                    "name": "Local Llama",
                    "category": "local",
                    "cost_per_token": 0,
                    "specialties": ["code"],
                    "security_level": "government",
                    "quality": 0.6,
                    "rate_limits": {"requests_per_minute": 10},
                },
            ],
        })

        config = load_router_config(config_path)

        assert config.rate_limit.requests_per_minute == 30
        assert config.cache.max_entries == 100
        assert config.cache.default_ttl_seconds == 120.0
        assert config.ledger.budget == 50.0
        assert config.audit.db_path == "audit.db"
        assert config.dispatch.timeout_seconds == 12.5
        assert config.prefer_cost_optimization is False
        assert config.logging.level == "DEBUG"
        assert config.logging.file_path == "router.log"

        assert len(config.providers) == 1
        local = config.providers[0]
        assert local.category == ProviderCategory.LOCAL
        assert local.security_level == SecurityLevel.GOVERNMENT
        assert local.specialties == ("code",)
        assert local.rate_limits.requests_per_minute == 10
        assert local.rate_limits.tokens_per_minute == 50000

    def test_partial_config_uses_defaults(self):
        config = load_router_config(self._write_config({"ledger": {"budget": 5}}))

        assert config.ledger.budget == 5.0
        assert config.rate_limit.requests_per_minute == 60
        assert config.providers == DEFAULT_PROVIDERS

    def test_missing_file_raises_error(self):
        with pytest.raises(FileNotFoundError, match="Router config file not found"):
            load_router_config("nonexistent.yaml")

    def test_empty_config_raises_error(self):
        with pytest.raises(ValueError, match="Configuration file is empty"):
            load_router_config(self._write_config({}))

    def test_invalid_yaml_raises_error(self):
        config_path = os.path.join(self.temp_dir, "bad.yaml")
        with open(config_path, 'w', encoding='utf-8') as f:
            f.write("cache: [unclosed\n")

        with pytest.raises(yaml.YAMLError):
            load_router_config(config_path)

    def test_unknown_top_level_key(self):
        with pytest.raises(ValueError, match="Unknown configuration keys"):
            load_router_config(self._write_config({"budgets": {}}))

    def test_unknown_section_key(self):
        with pytest.raises(ValueError, match="Unknown keys in cache"):
            load_router_config(self._write_config({"cache": {"size": 10}}))

    def test_unknown_ttl_key(self):
        with pytest.raises(ValueError, match="Unknown keys in cache.ttl"):
            load_router_config(self._write_config({"cache": {"ttl": {"medium_seconds": 5}}}))

    def test_non_numeric_value(self):
        with pytest.raises(ValueError, match="'budget' in ledger must be a number"):
            load_router_config(self._write_config({"ledger": {"budget": "lots"}}))

    def test_boolean_is_not_an_integer(self):
        with pytest.raises(ValueError, match="must be an integer"):
            load_router_config(self._write_config({"rate_limit": {"requests_per_minute": True}}))

    def test_invalid_value_rejected(self):
        with pytest.raises(ValueError, match="requests_per_minute must be > 0"):
            load_router_config(self._write_config({"rate_limit": {"requests_per_minute": 0}}))

    def test_section_must_be_mapping(self):
        with pytest.raises(ValueError, match="'cache' must be a dictionary"):
            load_router_config(self._write_config({"cache": [1, 2]}))

    def test_invalid_provider_category(self):
        with pytest.raises(ValueError, match="'category' in providers"):
            load_router_config(self._write_config({
                "providers": [{"id": "x", "category": "quantum", "cost_per_token": 0.1}],
            }))

    def test_provider_missing_cost(self):
        with pytest.raises(ValueError, match="Missing required 'cost_per_token'"):
            load_router_config(self._write_config({
                "providers": [{"id": "x", "category": "local"}],
            }))

    def test_duplicate_provider_ids(self):
        provider = {"id": "x", "category": "local", "cost_per_token": 0}
        with pytest.raises(ValueError, match="Duplicate provider id: x"):
            load_router_config(self._write_config({"providers": [provider, provider]}))

    def test_empty_provider_list(self):
        with pytest.raises(ValueError, match="'providers' must not be empty"):
            load_router_config(self._write_config({"providers": []}))
