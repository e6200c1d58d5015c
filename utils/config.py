"""
Configuration management.
"""

import os
from dataclasses import dataclass, field
from typing import List


def _env_bool(name: str, default: str) -> bool:
    return os.getenv(name, default).lower() in ("true", "1", "yes")


def _env_list(name: str) -> List[str]:
    raw = os.getenv(name, "")
    return [item.strip() for item in raw.split(",") if item.strip()]


@dataclass
class Config:
    """
    Application configuration.

    Loads from environment variables with sensible defaults.
    """

    # Server
    host: str = field(default_factory=lambda: os.getenv("HOST", "127.0.0.1"))
    port: int = field(default_factory=lambda: int(os.getenv("PORT", "8000")))
    debug: bool = field(default_factory=lambda: _env_bool("DEBUG", "false"))
    log_level: str = field(default_factory=lambda: os.getenv("LOG_LEVEL", "INFO").upper())
    allowed_origins: List[str] = field(default_factory=lambda: _env_list("ALLOWED_ORIGINS"))

    # Intake
    max_upload_mb: int = field(default_factory=lambda: int(os.getenv("MAX_UPLOAD_MB", "25")))
    extractor: str = field(default_factory=lambda: os.getenv("EXTRACTOR", "sample"))
    intake_start_delay: float = field(
        default_factory=lambda: float(os.getenv("INTAKE_START_DELAY", "0.5"))
    )
    intake_complete_delay: float = field(
        default_factory=lambda: float(os.getenv("INTAKE_COMPLETE_DELAY", "2.2"))
    )
    allow_placeholder_entities: bool = field(
        default_factory=lambda: _env_bool("ALLOW_PLACEHOLDER_ENTITIES", "true")
    )

    # Orchestrator
    poll_attempts: int = field(default_factory=lambda: int(os.getenv("RUNE_POLL_ATTEMPTS", "20")))
    poll_interval: float = field(
        default_factory=lambda: float(os.getenv("RUNE_POLL_INTERVAL", "0.25"))
    )

    # Deal synthesis
    cap_rate_multiple: float = field(
        default_factory=lambda: float(os.getenv("CAP_RATE_MULTIPLE", "10"))
    )

    def __post_init__(self):
        """Validate configuration values."""
        if self.max_upload_mb <= 0:
            raise ValueError("max_upload_mb must be positive")
        if self.poll_attempts < 1:
            raise ValueError("poll_attempts must be at least 1")
        if self.poll_interval < 0:
            raise ValueError("poll_interval must be non-negative")
        if self.intake_complete_delay < self.intake_start_delay:
            raise ValueError("intake_complete_delay must be >= intake_start_delay")

    @property
    def max_upload_bytes(self) -> int:
        """Upload size limit in bytes."""
        return self.max_upload_mb * 1024 * 1024

    @property
    def poll_window_seconds(self) -> float:
        """Hard ceiling on how long the orchestrator waits for an extraction."""
        return self.poll_attempts * self.poll_interval

    @classmethod
    def load(cls) -> "Config":
        """Load configuration from environment."""
        return cls()

    def to_dict(self) -> dict:
        """Convert config to dictionary."""
        return {
            "host": self.host,
            "port": self.port,
            "debug": self.debug,
            "log_level": self.log_level,
            "allowed_origins": list(self.allowed_origins),
            "max_upload_mb": self.max_upload_mb,
            "extractor": self.extractor,
            "intake_start_delay": self.intake_start_delay,
            "intake_complete_delay": self.intake_complete_delay,
            "allow_placeholder_entities": self.allow_placeholder_entities,
            "poll_attempts": self.poll_attempts,
            "poll_interval": self.poll_interval,
            "cap_rate_multiple": self.cap_rate_multiple,
        }
