"""Runtime configuration — env-driven.

Centralized settings using pydantic-settings.  Reads from a ``.env`` file
and ``UTPWATCH_*`` environment variables; CLI options default from here.
"""

from __future__ import annotations

from pydantic_settings import BaseSettings, SettingsConfigDict


class WatchSettings(BaseSettings):
    """Tailing and rendering settings with environment variable overrides.

    Examples
    --------
    Override via environment::

        export UTPWATCH_LOG_LEVEL=debug
        export UTPWATCH_POLL_INTERVAL_SECONDS=0.5
        export UTPWATCH_WRITE_SIDECAR=true

    Or via .env file::

        UTPWATCH_TELEMETRY_ONLY=true
    """

    model_config = SettingsConfigDict(
        env_file=".env",
        env_prefix="UTPWATCH_",
        env_file_encoding="utf-8",
        extra="ignore",
    )

    # Sink level: debug, utp, info, warning, error
    log_level: str = "info"

    # Tailing
    poll_interval_seconds: float = 0.25
    unlock_timeout_seconds: float = 10.0
    write_sidecar: bool = False
    telemetry_only: bool = False

    # Table layout
    default_columns: int = 120
    table_margin: int = 2
    table_min_width: int = 40


# Module-level singleton; import as `from utpwatch.config import config`
config = WatchSettings()
