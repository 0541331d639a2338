"""Tests for config validation."""

import pytest

from suggestion_engine.config import load_config


class TestConfigValidation:
    def test_valid_defaults(self):
        """Default config passes validation without raising."""
        config = load_config(None)
        assert config.resolution.max_retries == 3
        assert config.api.timeout == 30

    @pytest.mark.parametrize(
        "section,field,value",
        [
            ("cache", "max_entries", 0),
            ("cache", "ttl_seconds", -1),
            ("highlight", "render_batch_size", 0),
            ("highlight", "visibility_debounce", -0.5),
            ("navigation", "auto_advance_delay", 30),
            ("resolution", "batch_size", 0),
            ("resolution", "max_retries", 99),
            ("resolution", "retry_delay_multiplier", 0.5),
            ("api", "timeout", 0),
            ("api", "max_attempts", 0),
        ],
    )
    def test_out_of_range_value_names_field(self, tmp_path, section, field, value):
        yaml = tmp_path / "bad.yaml"
        yaml.write_text(f"{section}:\n  {field}: {value}\n")
        with pytest.raises(ValueError, match=field):
            load_config(yaml)

    def test_unknown_key_rejected(self, tmp_path):
        yaml = tmp_path / "bad.yaml"
        yaml.write_text("resolution:\n  batch_sise: 3\n")
        with pytest.raises(TypeError):
            load_config(yaml)
