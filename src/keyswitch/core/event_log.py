# Core: Structured Event Log
#
# Operational event logging for source changes and activation fan-out.
# Events are rendered as JSON lines by structlog and appended to a daily
# file under the configured log directory.
#
# Key material never goes into an event. Use mask_secret() when a
# preview is useful for troubleshooting.

import logging
from datetime import datetime, timezone
from enum import Enum
from pathlib import Path
from typing import Any, Dict, Optional
from uuid import uuid4

import structlog

_EVENT_LOGGER_NAME = "keyswitch.events"


class EventType(str, Enum):
    """Operational events recorded by the store and the switcher."""

    SOURCE_CREATED = "source.created"
    SOURCE_UPDATED = "source.updated"
    SOURCE_DELETED = "source.deleted"
    SOURCE_ACTIVATED = "source.activated"

    MASTER_KEY_GENERATED = "master_key.generated"

    SINK_FAILED = "activation.sink_failed"

    SYSTEM_START = "system.start"
    SYSTEM_STOP = "system.stop"


def mask_secret(value: Optional[str]) -> str:
    """Return a short preview such as ``sk-a...9xyz`` or ``****``."""
    if not value:
        return ""
    if len(value) <= 8:
        return "****"
    return f"{value[:4]}...{value[-4:]}"


class EventLogger:
    """
    Writes structured operational events.

    Args:
        log_dir: Directory for daily event files (default: ./logs)
        level: Minimum stdlib level for the file handler
    """

    def __init__(self, log_dir: Optional[Path] = None, level: int = logging.INFO):
        self.log_dir = Path(log_dir) if log_dir else Path("./logs")
        self.log_dir.mkdir(parents=True, exist_ok=True)

        structlog.configure(
            processors=[
                structlog.stdlib.add_log_level,
                structlog.stdlib.add_logger_name,
                structlog.processors.TimeStamper(fmt="iso"),
                structlog.processors.StackInfoRenderer(),
                structlog.processors.format_exc_info,
                structlog.processors.JSONRenderer(),
            ],
            wrapper_class=structlog.stdlib.BoundLogger,
            context_class=dict,
            logger_factory=structlog.stdlib.LoggerFactory(),
            cache_logger_on_first_use=False,
        )

        self._file_handler = self._setup_file_handler(level)
        self.logger = structlog.get_logger(_EVENT_LOGGER_NAME)

    def _setup_file_handler(self, level: int) -> logging.FileHandler:
        """Attach a daily file handler to the event logger, replacing any
        handler left behind by a previous instance."""
        today = datetime.now().strftime("%Y-%m-%d")
        log_file = self.log_dir / f"keyswitch_{today}.log"

        file_handler = logging.FileHandler(log_file, mode="a", encoding="utf-8")
        file_handler.setLevel(level)
        # structlog already rendered the line
        file_handler.setFormatter(logging.Formatter("%(message)s"))

        std_logger = logging.getLogger(_EVENT_LOGGER_NAME)
        for handler in list(std_logger.handlers):
            std_logger.removeHandler(handler)
            handler.close()
        std_logger.addHandler(file_handler)
        std_logger.setLevel(level)
        std_logger.propagate = False
        return file_handler

    @property
    def log_file(self) -> Path:
        return Path(self._file_handler.baseFilename)

    def log_event(
        self,
        event_type: EventType,
        message: str,
        details: Optional[Dict[str, Any]] = None,
        level: int = logging.INFO,
    ) -> str:
        """
        Record one event.

        Args:
            event_type: Kind of event (from EventType)
            message: Human-readable description
            details: Extra context (never plaintext keys)
            level: stdlib level the line is emitted at

        Returns:
            str: Event ID (UUID)
        """
        event_id = str(uuid4())
        self.logger.log(
            level,
            "keyswitch_event",
            event_id=event_id,
            event_type=event_type.value,
            message=message,
            timestamp=datetime.now(timezone.utc).isoformat(),
            details=details or {},
        )
        return event_id

    def close(self) -> None:
        std_logger = logging.getLogger(_EVENT_LOGGER_NAME)
        std_logger.removeHandler(self._file_handler)
        self._file_handler.close()


# ── Singleton ────────────────────────────────────────────────────────

_event_logger: Optional[EventLogger] = None


def get_event_logger() -> EventLogger:
    """Get the process-wide event logger, creating it on first use."""
    global _event_logger
    if _event_logger is None:
        _event_logger = EventLogger()
    return _event_logger


def set_event_logger(instance: Optional[EventLogger]) -> None:
    """Replace the process-wide event logger (startup wiring and tests)."""
    global _event_logger
    _event_logger = instance


def configure_logging(log_dir: Path, level: str = "INFO") -> EventLogger:
    """
    Configure stdlib diagnostics and the structured event log.

    Module loggers (``logging.getLogger(__name__)``) go to stderr at
    ``level``; events go to the daily JSON file in ``log_dir``.
    """
    numeric_level = logging.getLevelName(level.upper())
    if not isinstance(numeric_level, int):
        numeric_level = logging.INFO

    logging.basicConfig(
        level=numeric_level,
        format="%(asctime)s %(levelname)s %(name)s: %(message)s",
    )

    event_logger = EventLogger(log_dir=log_dir, level=numeric_level)
    set_event_logger(event_logger)
    return event_logger
