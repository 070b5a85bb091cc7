from __future__ import annotations

import logging
import threading
from collections import deque

DEFAULT_FORMAT = "%(levelname)s [%(name)s] %(message)s"


class RecentLogHandler(logging.Handler):
    """Keep the most recent formatted log lines in memory."""

    def __init__(self, capacity: int = 500) -> None:
        super().__init__()
        self._lines: deque[str] = deque(maxlen=max(1, capacity))
        self._lock = threading.Lock()

    def emit(self, record: logging.LogRecord) -> None:
        try:
            message = self.format(record)
        except Exception:
            self.handleError(record)
            return
        with self._lock:
            self._lines.append(message)

    def lines(self, limit: int | None = None) -> list[str]:
        with self._lock:
            items = list(self._lines)
        if limit is not None and limit >= 0:
            return items[-limit:] if limit else []
        return items

    def clear(self) -> None:
        with self._lock:
            self._lines.clear()


def configure_logging(level: str = "INFO") -> None:
    if not logging.getLogger().handlers:
        logging.basicConfig(level=level.upper(), format=DEFAULT_FORMAT)
    else:
        logging.getLogger().setLevel(level.upper())


def install_recent_log_buffer(
    capacity: int = 500,
    level: int = logging.INFO,
    formatter: logging.Formatter | None = None,
) -> RecentLogHandler:
    handler = RecentLogHandler(capacity=capacity)
    handler.setLevel(level)
    handler.setFormatter(
        formatter
        or logging.Formatter("%(asctime)s [%(levelname)s] %(name)s: %(message)s")
    )
    logging.getLogger().addHandler(handler)
    logging.getLogger(__name__).debug("Recent log buffer installed capacity=%d", capacity)
    return handler


__all__ = ["DEFAULT_FORMAT", "RecentLogHandler", "configure_logging", "install_recent_log_buffer"]
