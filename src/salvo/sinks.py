import logging
from typing import Protocol

from .config import ConfigurationError

logger = logging.getLogger(__name__)


class MetricsSink(Protocol):
    def append(self, latency_s: float) -> None: ...


class FileLatencySink:
    """Append-only log of per-request latencies in milliseconds."""

    def __init__(self, path: str):
        self.path = path
        try:
            self._fh = open(path, "a", encoding="utf-8")
        except OSError as e:
            raise ConfigurationError(f"Cannot open latency log {path}: {e}") from e
        self._failed = False
        logger.info(f"Writing latencies to {path}")

    def append(self, latency_s: float) -> None:
        if self._failed:
            return
        # buffered write on the event loop thread; flushed when the sink closes
        try:
            self._fh.write(f"{latency_s * 1000:.3f}\n")
        except (OSError, ValueError) as e:
            # only the first failure is reported, outcomes are unaffected
            self._failed = True
            logger.error(f"Latency log {self.path} stopped accepting writes: {e}")

    def close(self) -> None:
        if not self._fh.closed:
            self._fh.close()

    def __enter__(self):
        return self

    def __exit__(self, *exc):
        self.close()
