"""
Logging utilities for the assistant API.

Provides a consistent logging format and keeps chatty Google client
libraries from flooding the output at debug level.
"""

import logging
import sys

_NOISY_LOGGERS: tuple[str, ...] = (
    "googleapiclient.discovery",
    "googleapiclient.discovery_cache",
    "google.auth.transport.requests",
    "httpx",
    "urllib3",
)


def configure_logging(level: str = "INFO") -> None:
    """Configure root logging with the service's line format."""
    logging.basicConfig(
        level=level.upper(),
        format="%(asctime)s | %(levelname)s | %(name)s | %(message)s",
        stream=sys.stdout,
    )
    for name in _NOISY_LOGGERS:
        logging.getLogger(name).setLevel(logging.WARNING)


def redact(value: str | None, visible: int = 4) -> str:
    """Render a credential for log lines without revealing it."""
    if not value:
        return "missing"
    if len(value) <= visible:
        return "***"
    return f"{value[:visible]}***"


__all__ = ["configure_logging", "redact"]
