"""Configuration management for the DirectPrint agent."""

import socket
from functools import lru_cache
from pathlib import Path

from pydantic import Field, field_validator
from pydantic_settings import BaseSettings, SettingsConfigDict

# Default cloud hub the kiosk connects to
DEFAULT_CLOUD_URL = "https://justpri.duckdns.org"

# Printer name that triggers spooler auto-detection
AUTO_PRINTER = "auto"


def _default_kiosk_id() -> str:
    return f"kiosk_{socket.gethostname()}"


class AgentSettings(BaseSettings):
    """Settings for the DirectPrint agent, loaded from environment / .env.

    Attributes:
        cloud_url: Base URL of the cloud hub (socket and poll endpoint).
        printer_name: CUPS printer name, or 'auto' to use the spooler default.
        kiosk_id: Identity of this kiosk towards the cloud.
        poll_interval: Milliseconds between job polls.
        heartbeat_interval: Milliseconds between heartbeats.
        status_log_interval: Milliseconds between "agent alive" log lines.
        temp_dir: Scratch directory for in-flight job files.
        conversion_timeout: Seconds allowed for one conversion tool run.
        health_check_timeout: Seconds allowed for one printer status query.
        print_timeout: Seconds allowed for print submission.
        poll_timeout: Seconds allowed for one poll request.
        cleanup_delay: Seconds to wait after printing before deleting job files.
        sweep_interval: Seconds between scratch directory sweeps.
        stale_file_age: Age in seconds after which a scratch file is swept.
        log_level: Logging level (DEBUG, INFO, WARNING, ERROR).
    """

    model_config = SettingsConfigDict(
        env_file=".env",
        env_file_encoding="utf-8",
        case_sensitive=False,
        extra="ignore",
    )

    cloud_url: str = DEFAULT_CLOUD_URL
    printer_name: str = AUTO_PRINTER
    kiosk_id: str = Field(default_factory=_default_kiosk_id)

    # Timers (milliseconds, matching the cloud-side convention)
    poll_interval: int = Field(default=5000, gt=0)
    heartbeat_interval: int = Field(default=30000, gt=0)
    status_log_interval: int = Field(default=60000, gt=0)

    temp_dir: Path = Path("./print-queue")

    # Bounds on external calls (seconds)
    conversion_timeout: float = 60.0
    health_check_timeout: float = 5.0
    print_timeout: float = 30.0
    poll_timeout: float = 10.0

    # Scratch file housekeeping (seconds)
    cleanup_delay: float = 5.0
    sweep_interval: float = 300.0
    stale_file_age: float = 1800.0

    log_level: str = "INFO"

    @field_validator("cloud_url")
    @classmethod
    def _strip_trailing_slash(cls, value: str) -> str:
        return value.rstrip("/")

    @field_validator("printer_name")
    @classmethod
    def _normalize_printer_name(cls, value: str) -> str:
        value = value.strip()
        return value or AUTO_PRINTER

    @property
    def auto_printer(self) -> bool:
        """Whether the printer should be auto-detected from the spooler."""
        return self.printer_name.lower() == AUTO_PRINTER

    def ensure_temp_dir(self) -> Path:
        """Create the scratch directory if needed.

        Returns:
            Path: The scratch directory.
        """
        self.temp_dir.mkdir(parents=True, exist_ok=True)
        return self.temp_dir


@lru_cache
def get_settings() -> AgentSettings:
    """Get cached settings instance.

    Returns:
        AgentSettings: Agent settings.
    """
    return AgentSettings()
