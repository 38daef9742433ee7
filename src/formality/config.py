"""Engine configuration."""

from __future__ import annotations

import logging
import os
from dataclasses import dataclass

logger = logging.getLogger(__name__)


def _env_int(name: str, default: int) -> int:
    raw = os.environ.get(name)
    if raw is None or raw.strip() == "":
        return default
    try:
        return int(raw)
    except ValueError:
        raise ValueError(f"{name} must be an integer, got {raw!r}") from None


@dataclass
class EngineConfig:
    """Timing and logging settings shared by all forms.

    Durations are milliseconds, as written in configuration; the
    ``*_seconds`` properties convert for asyncio.
    """

    debounce_ms: int = 1000
    poll_interval_ms: int = 10
    validation_timeout_ms: int = 5000
    log_level: str = "WARNING"

    @classmethod
    def from_env(cls) -> EngineConfig:
        """Create config from environment variables.

        Reads FORMALITY_DEBOUNCE_MS, FORMALITY_POLL_INTERVAL_MS,
        FORMALITY_VALIDATION_TIMEOUT_MS and FORMALITY_LOG_LEVEL; anything
        unset keeps its default.
        """
        defaults = cls()
        return cls(
            debounce_ms=_env_int("FORMALITY_DEBOUNCE_MS", defaults.debounce_ms),
            poll_interval_ms=_env_int(
                "FORMALITY_POLL_INTERVAL_MS", defaults.poll_interval_ms
            ),
            validation_timeout_ms=_env_int(
                "FORMALITY_VALIDATION_TIMEOUT_MS", defaults.validation_timeout_ms
            ),
            log_level=os.environ.get("FORMALITY_LOG_LEVEL", defaults.log_level).upper(),
        )

    @property
    def debounce_seconds(self) -> float:
        return self.debounce_ms / 1000

    @property
    def poll_interval_seconds(self) -> float:
        return self.poll_interval_ms / 1000

    @property
    def validation_timeout_seconds(self) -> float:
        return self.validation_timeout_ms / 1000

    @property
    def logging_level(self) -> int:
        """The log level as a ``logging`` constant (WARNING if unknown)."""
        level = logging.getLevelName(self.log_level.upper())
        if isinstance(level, int):
            return level
        logger.warning("Unknown log level %r, using WARNING", self.log_level)
        return logging.WARNING
