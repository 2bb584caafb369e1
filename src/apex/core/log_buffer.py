"""In-memory ring buffer of recent log records for the debug console and bug reports."""

import logging
import threading
from collections import deque


class LogBuffer(logging.Handler):
    """
    Logging handler keeping the last ``capacity`` formatted records.

    Usage:
        buffer = LogBuffer(500)
        logging.getLogger().addHandler(buffer)
        buffer.tail(50)
    """

    def __init__(self, capacity: int = 500, level: int = logging.DEBUG):
        super().__init__(level)
        self.capacity = capacity
        self._records: deque[str] = deque(maxlen=capacity)
        self._buffer_lock = threading.Lock()
        self.setFormatter(logging.Formatter("%(asctime)s [%(levelname)s] %(name)s: %(message)s"))

    def emit(self, record: logging.LogRecord) -> None:
        try:
            line = self.format(record)
        except Exception:  # noqa: BLE001
            self.handleError(record)
            return
        with self._buffer_lock:
            self._records.append(line)

    def tail(self, count: int | None = None) -> list[str]:
        with self._buffer_lock:
            lines = list(self._records)
        if count is None:
            return lines
        return lines[-count:] if count > 0 else []

    def clear(self) -> None:
        with self._buffer_lock:
            self._records.clear()

    def __len__(self) -> int:
        with self._buffer_lock:
            return len(self._records)
