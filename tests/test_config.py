"""
Tests for configuration loading and validation.
"""

import pytest

from bdc_pipeline.config import (
    PipelineConfig,
    deep_merge,
    load_config,
    load_yaml,
    save_config,
    validate_config,
)


@pytest.fixture(autouse=True)
def no_user_agent_env(monkeypatch):
    monkeypatch.delenv("SEC_USER_AGENT", raising=False)


class TestLoadConfig:
    """Tests for load_config."""

    def test_base_matches_defaults(self):
        """Test configs/base.yaml carries the model defaults."""
        assert load_config() == PipelineConfig()

    def test_overrides(self):
        """Test dict overrides merge into nested sections."""
        config = load_config(overrides={"segments": {"budget_seconds": None}, "store": {"backend": "memory"}})
        assert config.segments.budget_seconds is None
        assert config.segments.segment_chars == 150_000
        assert config.store.backend == "memory"

    def test_yaml_file(self, tmp_path):
        """Test a second YAML file merges over the base."""
        path = tmp_path / "small.yaml"
        path.write_text("segments:\n  threshold_chars: 1000\nscale:\n  precision: 3\n", encoding="utf-8")
        config = load_config(path)
        assert config.segments.threshold_chars == 1000
        assert config.scale.precision == 3
        assert config.region.trail_chars == 300_000

    def test_missing_file(self, tmp_path):
        """Test a missing config file raises."""
        with pytest.raises(FileNotFoundError):
            load_config(tmp_path / "missing.yaml")

    def test_user_agent_env(self, monkeypatch):
        """Test SEC_USER_AGENT overrides the source user agent."""
        monkeypatch.setenv("SEC_USER_AGENT", "Jane Analyst jane@example.org")
        assert load_config().source.user_agent == "Jane Analyst jane@example.org"

    def test_save_roundtrip(self, tmp_path):
        """Test a saved config loads back unchanged."""
        config = load_config(overrides={"dedup": {"strict_key": True}})
        path = save_config(config, tmp_path / "out" / "config.yaml")
        assert PipelineConfig.model_validate(load_yaml(path)) == config


class TestConfigHelpers:
    """Tests for hashing, merging and validation."""

    def test_deep_merge(self):
        """Test nested dicts merge and scalars replace."""
        merged = deep_merge({"a": {"b": 1, "c": 2}, "d": 3}, {"a": {"c": 5}, "d": 4})
        assert merged == {"a": {"b": 1, "c": 5}, "d": 4}

    def test_hash_stable(self):
        """Test equal configs hash equally."""
        assert PipelineConfig().config_hash() == PipelineConfig().config_hash()
        assert len(PipelineConfig().config_hash()) == 12

    def test_hash_tracks_parse_settings(self):
        """Test parse settings change the hash but source settings do not."""
        base = PipelineConfig().config_hash()
        assert load_config(overrides={"scale": {"precision": 2}}).config_hash() != base
        assert load_config(overrides={"source": {"timeout": 5}}).config_hash() == base

    def test_defaults_valid(self):
        """Test the default config has no warnings."""
        assert validate_config(PipelineConfig()) == []

    def test_invalid_settings_reported(self):
        """Test inconsistent settings are reported."""
        config = PipelineConfig.model_validate({
            "segments": {"segment_chars": 1000, "overlap_chars": 1000, "budget_seconds": 0},
            "store": {"backend": "postgres", "batch_size": 0},
            "source": {"user_agent": "anonymous"},
        })
        warnings = validate_config(config)
        assert len(warnings) == 5
        assert any("backend" in w for w in warnings)
        assert any("overlap_chars" in w for w in warnings)
        assert any("budget_seconds" in w for w in warnings)
        assert any("batch_size" in w for w in warnings)
        assert any("user_agent" in w for w in warnings)
