"""Tests for wp_post_sync.config_schema -- Pydantic config models."""

import pytest
from pydantic import ValidationError

from wp_post_sync.config_schema import (
    LoggingConfig,
    SyncConfig,
    UnifiedConfig,
    WordPressConfig,
    build_config,
    to_fallbacks,
)


class TestUnifiedConfig:
    """Tests for the top-level UnifiedConfig model."""

    def test_empty_dict_produces_valid_defaults(self):
        config = UnifiedConfig()
        assert config.wordpress.base_url is None
        assert config.sync.statuses == ["publish", "draft"]
        assert config.sync.lock_timeout == 600.0
        assert config.logging.level == "INFO"

    def test_full_config_with_all_sections(self):
        config = UnifiedConfig(
            wordpress={
                "base_url": "https://blog.example.com/wp-json/wp/v2",
                "bearer_token": "t",
                "insecure": True,
                "timeout": 12,
            },
            sync={
                "cache_path": "/var/cache/wp",
                "sync_limit": 50,
                "statuses": ["publish", "future"],
                "lock_timeout": 30,
            },
            logging={"level": "DEBUG", "file": "/tmp/sync.log", "format": "json"},
        )
        assert config.wordpress.timeout == 12.0
        assert config.sync.statuses == ["publish", "future"]
        assert config.logging.format == "json"

    def test_unknown_sections_ignored(self):
        config = UnifiedConfig(**{"unknown_section": {"x": 1}})
        assert config.sync == SyncConfig()

    def test_frozen_model_prevents_mutation(self):
        config = UnifiedConfig()
        with pytest.raises(ValidationError):
            config.sync = SyncConfig()


class TestWordPressConfig:
    def test_all_fields_optional_zero_config(self):
        config = WordPressConfig()
        assert config.bearer_token is None
        assert config.insecure is False

    def test_timeout_must_be_positive(self):
        with pytest.raises(ValidationError):
            WordPressConfig(timeout=0)


class TestSyncConfig:
    @pytest.mark.parametrize("limit", [0, 101])
    def test_sync_limit_range(self, limit):
        with pytest.raises(ValidationError):
            SyncConfig(sync_limit=limit)

    def test_statuses_not_empty(self):
        with pytest.raises(ValidationError):
            SyncConfig(statuses=[])


class TestLoggingConfig:
    def test_defaults(self):
        config = LoggingConfig()
        assert config.file is None
        assert config.format == "text"

    def test_format_rejects_invalid_strings(self):
        with pytest.raises(ValidationError):
            LoggingConfig(format="xml")


class TestBuildConfig:
    def test_empty_dict_returns_defaults(self):
        assert build_config({}) == UnifiedConfig()

    def test_partial_sections_fill_defaults(self):
        config = build_config({"sync": {"sync_limit": 5}})
        assert config.sync.sync_limit == 5
        assert config.sync.statuses == ["publish", "draft"]
        assert config.wordpress == WordPressConfig()


class TestToFallbacks:
    """Flattening YAML values for load_config()."""

    def test_zero_config_only_booleans(self):
        assert to_fallbacks(UnifiedConfig()) == {
            "insecure": False,
            "debug": False,
        }

    def test_full_config(self):
        unified = build_config(
            {
                "wordpress": {
                    "base_url": "https://blog.example.com",
                    "bearer_token": "t",
                    "timeout": 9,
                },
                "sync": {"cache_path": "cache", "sync_limit": 7},
            }
        )
        assert to_fallbacks(unified) == {
            "base_url": "https://blog.example.com",
            "bearer_token": "t",
            "insecure": False,
            "debug": False,
            "timeout": 9.0,
            "cache_path": "cache",
            "sync_limit": 7,
        }
