"""Logging configuration for stackhub.

Supports two console formats:
- text: Human-readable for local development
- json: Structured logging for production (log aggregation)

Optionally mirrors every record into an instance-tagged log file:
    2026-01-01T00:00:00+00:00 [INFO] [01hx...]: Script started
Records without an instance_id extra are tagged [system].
"""

import logging
import sys
import time
from collections import deque
from datetime import datetime, timezone
from pathlib import Path
from typing import Any

from pythonjsonlogger import json as jsonlogger

from stackhub.config import LoggingConfig

SYSTEM_TAG = "system"


class RateLimitFilter(logging.Filter):
    """Filter to prevent log storms from repeated messages.

    Suppresses duplicate log messages within a time window.
    Useful for high-frequency errors that would otherwise flood logs.

    Args:
        rate_limit_seconds: Minimum seconds between identical messages (default: 5)
        max_cache_size: Maximum number of messages to track (default: 1000)
    """

    def __init__(
        self,
        rate_limit_seconds: float = 5.0,
        max_cache_size: int = 1000,
        name: str = "",
    ) -> None:
        super().__init__(name)
        self._rate_limit = rate_limit_seconds
        self._max_cache = max_cache_size
        self._last_log: dict[str, float] = {}

    def filter(self, record: logging.LogRecord) -> bool:
        """Filter duplicate messages within the rate limit window."""
        # ERROR and above always pass through
        if record.levelno >= logging.ERROR:
            return True

        # Script output lines repeat legitimately
        if getattr(record, "instance_id", None):
            return True

        key = f"{record.name}:{record.lineno}:{record.getMessage()}"

        now = time.monotonic()
        last_time = self._last_log.get(key)

        if last_time is not None and now - last_time < self._rate_limit:
            return False

        self._last_log[key] = now

        if len(self._last_log) > self._max_cache:
            oldest_keys = sorted(self._last_log, key=self._last_log.get)[:100]  # type: ignore[arg-type]
            for old_key in oldest_keys:
                del self._last_log[old_key]

        return True


class StackHubJsonFormatter(jsonlogger.JsonFormatter):
    """JSON formatter with standard fields for log aggregation.

    Adds:
    - timestamp: ISO 8601 format with timezone
    - level: Log level name
    - logger: Logger name
    - service: Service identifier
    - pid: Process ID
    """

    def __init__(self, config: LoggingConfig, *args: Any, **kwargs: Any) -> None:
        super().__init__(*args, **kwargs)
        self._service = config.service_name

    def add_fields(
        self,
        log_record: dict[str, Any],
        record: logging.LogRecord,
        message_dict: dict[str, Any],
    ) -> None:
        super().add_fields(log_record, record, message_dict)

        log_record["timestamp"] = datetime.fromtimestamp(
            record.created, tz=timezone.utc
        ).isoformat()
        log_record["level"] = record.levelname
        log_record["logger"] = record.name
        log_record["service"] = self._service
        log_record["pid"] = record.process

        log_record["filename"] = record.filename
        log_record["lineno"] = record.lineno

        if record.exc_info:
            log_record["exception"] = self.formatException(record.exc_info)

        log_record.pop("color_message", None)


class InstanceLogFormatter(logging.Formatter):
    """Single-line formatter tagging each record with its instance id."""

    def format(self, record: logging.LogRecord) -> str:
        timestamp = datetime.fromtimestamp(record.created, tz=timezone.utc).isoformat()
        tag = getattr(record, "instance_id", None) or SYSTEM_TAG
        line = f"{timestamp} [{record.levelname}] [{tag}]: {record.getMessage()}"
        if record.exc_info:
            line = f"{line} | {self.formatException(record.exc_info)!r}"
        return line


class InstanceLogFileHandler(logging.FileHandler):
    """File handler that creates the parent directory on first write."""

    def __init__(self, path: str | Path) -> None:
        super().__init__(path, encoding="utf-8", delay=True)

    def _open(self):  # type: ignore[no-untyped-def]
        Path(self.baseFilename).parent.mkdir(parents=True, exist_ok=True)
        return super()._open()


def tail_instance_logs(path: str | Path, instance_id: str, lines: int = 100) -> list[str]:
    """Return the last lines of the instance log file tagged with instance_id.

    Args:
        path: Instance log file path
        instance_id: Instance ID to filter by
        lines: Maximum number of lines to return

    Returns:
        Matching lines in file order, or an empty list if the file is missing.
    """
    log_path = Path(path)
    if lines <= 0 or not log_path.exists():
        return []

    tag = f"[{instance_id}]"
    matched: deque[str] = deque(maxlen=lines)
    with log_path.open(encoding="utf-8", errors="replace") as fh:
        for line in fh:
            if tag in line:
                matched.append(line.rstrip("\n"))
    return list(matched)


def setup_logging(config: LoggingConfig) -> None:
    """Configure logging for the application.

    Args:
        config: Logging configuration settings.
    """
    level = getattr(logging, config.level.upper(), logging.INFO)

    if config.format == "json":
        formatter: logging.Formatter = StackHubJsonFormatter(config)
    else:
        formatter = logging.Formatter(
            "%(asctime)s - %(name)s - %(levelname)s - %(message)s"
        )

    handler = logging.StreamHandler(sys.stdout)
    handler.setFormatter(formatter)
    handler.addFilter(RateLimitFilter(rate_limit_seconds=5.0))

    root_logger = logging.getLogger()
    root_logger.handlers.clear()
    root_logger.addHandler(handler)
    root_logger.setLevel(level)

    if config.instance_log_file:
        file_handler = InstanceLogFileHandler(config.instance_log_file)
        file_handler.setFormatter(InstanceLogFormatter())
        root_logger.addHandler(file_handler)

    for name in ("uvicorn", "uvicorn.error"):
        uv_logger = logging.getLogger(name)
        uv_logger.handlers.clear()
        uv_logger.propagate = False
        uv_logger.addHandler(handler)

    logging.getLogger("uvicorn.access").disabled = True

    # Suppress verbose HTTP client logs (polling noise)
    logging.getLogger("httpx").setLevel(logging.WARNING)
    logging.getLogger("httpcore").setLevel(logging.WARNING)
