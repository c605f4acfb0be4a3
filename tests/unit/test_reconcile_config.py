"""Unit tests for processor configuration."""

from __future__ import annotations

import pytest

from cmdbsync.reconcile import ProcessorConfig


class TestProcessorConfig:
    """Defaults, validation and environment loading."""

    def test_defaults(self) -> None:
        """Defaults bound every call and allow a modest batch fan-out."""
        config = ProcessorConfig()
        assert config.call_timeout_s == 10.0
        assert config.max_concurrency == 16
        assert config.discovery_source == "cmdbsync"
        assert config.failure_log_max == 1000

    @pytest.mark.parametrize(
        ("kwargs", "match"),
        [
            ({"call_timeout_s": 0}, "call_timeout_s"),
            ({"max_concurrency": 0}, "max_concurrency"),
            ({"failure_log_max": 0}, "failure_log_max"),
        ],
    )
    def test_rejects_non_positive_bounds(
        self, kwargs: dict[str, float], match: str
    ) -> None:
        """Zero bounds are rejected."""
        with pytest.raises(ValueError, match=match):
            ProcessorConfig(**kwargs)  # type: ignore[arg-type]

    def test_from_env(self, monkeypatch: pytest.MonkeyPatch) -> None:
        """Environment variables override the defaults."""
        monkeypatch.setenv("CMDBSYNC_CALL_TIMEOUT_S", "2.5")
        monkeypatch.setenv("CMDBSYNC_MAX_CONCURRENCY", "3")
        monkeypatch.setenv("CMDBSYNC_DISCOVERY_SOURCE", " aws-config ")
        monkeypatch.setenv("CMDBSYNC_FAILURE_LOG_MAX", "50")

        config = ProcessorConfig.from_env()

        assert config.call_timeout_s == 2.5
        assert config.max_concurrency == 3
        assert config.discovery_source == "aws-config"
        assert config.failure_log_max == 50

    def test_from_env_blank_values_use_defaults(
        self, monkeypatch: pytest.MonkeyPatch
    ) -> None:
        """Blank variables fall back to defaults."""
        monkeypatch.setenv("CMDBSYNC_CALL_TIMEOUT_S", " ")
        monkeypatch.delenv("CMDBSYNC_MAX_CONCURRENCY", raising=False)
        monkeypatch.delenv("CMDBSYNC_DISCOVERY_SOURCE", raising=False)
        monkeypatch.delenv("CMDBSYNC_FAILURE_LOG_MAX", raising=False)
        assert ProcessorConfig.from_env() == ProcessorConfig()

    @pytest.mark.parametrize(
        ("name", "value", "match"),
        [
            ("CMDBSYNC_CALL_TIMEOUT_S", "soon", "must be a number"),
            ("CMDBSYNC_CALL_TIMEOUT_S", "-1", "must be positive"),
            ("CMDBSYNC_MAX_CONCURRENCY", "1.5", "must be an integer"),
            ("CMDBSYNC_MAX_CONCURRENCY", "0", "must be positive"),
        ],
    )
    def test_from_env_rejects_malformed_values(
        self, monkeypatch: pytest.MonkeyPatch, name: str, value: str, match: str
    ) -> None:
        """Malformed numeric variables raise ValueError naming the variable."""
        monkeypatch.setenv(name, value)
        with pytest.raises(ValueError, match=match) as excinfo:
            ProcessorConfig.from_env()
        assert name in str(excinfo.value)
