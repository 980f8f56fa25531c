"""Tests for runtime config — env-driven settings."""

from __future__ import annotations

import pytest

from utpwatch.config import WatchSettings


@pytest.fixture(autouse=True)
def _no_dotenv(monkeypatch, tmp_path):
    """Run from an empty directory so a stray .env cannot leak in."""
    monkeypatch.chdir(tmp_path)


class TestWatchSettings:
    def test_defaults(self):
        settings = WatchSettings()
        assert settings.log_level == "info"
        assert settings.poll_interval_seconds == 0.25
        assert settings.unlock_timeout_seconds == 10.0
        assert settings.write_sidecar is False
        assert settings.telemetry_only is False

    def test_table_layout_defaults(self):
        settings = WatchSettings()
        assert settings.default_columns == 120
        assert settings.table_margin == 2
        assert settings.table_min_width == 40

    def test_environment_override(self, monkeypatch):
        monkeypatch.setenv("UTPWATCH_POLL_INTERVAL_SECONDS", "0.5")
        monkeypatch.setenv("UTPWATCH_WRITE_SIDECAR", "true")
        settings = WatchSettings()
        assert settings.poll_interval_seconds == 0.5
        assert settings.write_sidecar is True

    def test_dotenv_file(self, tmp_path):
        (tmp_path / ".env").write_text("UTPWATCH_TELEMETRY_ONLY=true\n", encoding="utf-8")
        assert WatchSettings().telemetry_only is True

    def test_explicit_values_win(self, monkeypatch):
        monkeypatch.setenv("UTPWATCH_DEFAULT_COLUMNS", "200")
        assert WatchSettings(default_columns=90).default_columns == 90
