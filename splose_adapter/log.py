import json
import logging
import time

logger = logging.getLogger("splose_adapter")

if not logger.handlers:
    _handler = logging.StreamHandler()
    _handler.setFormatter(logging.Formatter("%(message)s"))
    logger.addHandler(_handler)
    logger.setLevel(logging.INFO)


def configure_logging(level: str = "INFO"):
    logger.setLevel(level.upper())


def log_info(event: str, **kwargs):
    """Emit a structured JSON log entry. Never include appointment contents."""
    entry = {"level": "INFO", "event": event, **kwargs}
    logger.info(json.dumps(entry, default=str))


def log_warning(event: str, **kwargs):
    entry = {"level": "WARNING", "event": event, **kwargs}
    logger.warning(json.dumps(entry, default=str))


def log_error(event: str, error_code: str = None, **kwargs):
    """Emit a structured JSON error log entry."""
    entry = {"level": "ERROR", "event": event, "error_code": error_code, **kwargs}
    logger.error(json.dumps(entry, default=str))


class Timer:
    """Context manager for measuring execution time in milliseconds."""

    def __enter__(self):
        self.start = time.perf_counter()
        return self

    def __exit__(self, *args):
        self.duration_ms = round((time.perf_counter() - self.start) * 1000, 2)
