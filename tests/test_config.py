"""Tests for config loading."""

import pytest

from suggestion_engine.config import ApiConfig, EngineConfig, ResolutionConfig, load_config


class TestConfig:
    def test_defaults(self):
        config = EngineConfig()
        assert config.cache.max_entries == 100
        assert config.cache.ttl_seconds == 300
        assert config.highlight.virtualization_threshold == 50
        assert config.highlight.render_batch_size == 20
        assert config.navigation.auto_advance_delay == 0.3
        assert config.resolution.batch_size == 5
        assert config.resolution.max_retries == 3

    def test_load_config_defaults(self, tmp_path):
        """Loading from non-existent path returns defaults."""
        config = load_config(tmp_path / "nonexistent.yaml")
        assert config.resolution.batch_delay == 0.5

    def test_load_config_from_yaml(self, tmp_path):
        yaml_path = tmp_path / "config.yaml"
        yaml_path.write_text(
            "resolution:\n  batch_size: 10\n  enable_auto_retry: false\nhighlight:\n  render_batch_size: 5\n"
        )
        config = load_config(yaml_path)
        assert config.resolution.batch_size == 10
        assert config.resolution.enable_auto_retry is False
        assert config.highlight.render_batch_size == 5
        # Defaults for unspecified
        assert config.cache.max_entries == 100
        assert config.resolution.retry_delay_multiplier == 2.0

    def test_empty_yaml(self, tmp_path):
        yaml_path = tmp_path / "config.yaml"
        yaml_path.write_text("")
        assert load_config(yaml_path) == EngineConfig()

    def test_api_url_from_env(self, monkeypatch):
        monkeypatch.setenv("SUGGESTION_API_URL", "https://blog.example.com/")
        assert ApiConfig().resolved_base_url == "https://blog.example.com"

    def test_api_url_config_wins(self, monkeypatch):
        monkeypatch.setenv("SUGGESTION_API_URL", "https://env.example.com")
        assert ApiConfig(base_url="https://cfg.example.com").resolved_base_url == "https://cfg.example.com"

    def test_frozen_config(self):
        config = ResolutionConfig()
        with pytest.raises(AttributeError):
            config.batch_size = 99
