"""Unit tests for engine configuration."""

from pathlib import Path

import pytest
from pydantic import ValidationError

from cdb.core.config import EngineConfig


class TestEngineConfig:
    """Test EngineConfig model and validation."""

    def test_default_config(self) -> None:
        """Test default configuration values."""
        config = EngineConfig()

        assert config.max_lines == 50_000
        assert config.max_bytes == 10 * 1024 * 1024
        assert config.fallback_lines == 100
        assert config.merge_proximity == 0
        assert config.min_trace_frames == 2
        assert config.test_block_max_lines == 200
        assert config.rules_file is None

    def test_bounds(self) -> None:
        """Test that out-of-range values are rejected."""
        with pytest.raises(ValidationError):
            EngineConfig(max_lines=0)
        with pytest.raises(ValidationError):
            EngineConfig(max_bytes=100)
        with pytest.raises(ValidationError):
            EngineConfig(fallback_lines=0)
        with pytest.raises(ValidationError):
            EngineConfig(merge_proximity=-1)

    def test_frozen(self) -> None:
        """Test that configuration is immutable."""
        config = EngineConfig()

        with pytest.raises(ValidationError):
            config.max_lines = 10  # type: ignore[misc]

    def test_from_env(self, monkeypatch: pytest.MonkeyPatch) -> None:
        """Test loading configuration from environment variables."""
        monkeypatch.setenv("CDB_MAX_LINES", "2000")
        monkeypatch.setenv("CDB_FALLBACK_LINES", "40")
        monkeypatch.setenv("CDB_RULES_FILE", "/etc/cdb/rules.json")

        config = EngineConfig.from_env()

        assert config.max_lines == 2000
        assert config.fallback_lines == 40
        assert config.rules_file == Path("/etc/cdb/rules.json")

    def test_overrides_take_precedence(self, monkeypatch: pytest.MonkeyPatch) -> None:
        """Test that explicit overrides win over environment variables."""
        monkeypatch.setenv("CDB_FALLBACK_LINES", "40")

        config = EngineConfig.from_env(fallback_lines=60, max_lines=None)

        assert config.fallback_lines == 60
        assert config.max_lines == 50_000

    def test_invalid_env_value(self, monkeypatch: pytest.MonkeyPatch) -> None:
        """Test that a malformed environment value is reported."""
        monkeypatch.setenv("CDB_MAX_LINES", "lots")

        with pytest.raises(ValidationError):
            EngineConfig.from_env()
