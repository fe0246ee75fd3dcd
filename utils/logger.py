"""
Centralized structured logging.

Every proxy module logs through here so failover, rate-limit retries and
cache fallbacks show up as one JSON line each:
 - consistent fields (ts, level, logger, msg)
 - extra context merged from `log_extra(...)`
 - level controlled by LOG_LEVEL
"""

from __future__ import annotations
import datetime
import json
import logging
import os
import sys
from typing import Any

# LogRecord attributes that are never copied into the payload
_RESERVED = frozenset(
    logging.LogRecord("", 0, "", 0, "", (), None).__dict__.keys()
) | {"message", "asctime"}


class JsonFormatter(logging.Formatter):
    def format(self, record: logging.LogRecord) -> str:
        payload = {
            "ts": datetime.datetime.now(datetime.timezone.utc).isoformat(),
            "level": record.levelname.lower(),
            "logger": record.name,
            "msg": record.getMessage(),
        }

        # merge extra fields
        for k, v in record.__dict__.items():
            if k not in _RESERVED:
                payload[k] = v

        if record.exc_info:
            payload["exc"] = self.formatException(record.exc_info)

        return json.dumps(payload, default=str)


def setup_logger(name: str) -> logging.Logger:
    level = os.getenv("LOG_LEVEL", "INFO").upper()
    logger = logging.getLogger(name)
    logger.setLevel(level)

    if logger.handlers:
        return logger

    handler = logging.StreamHandler(sys.stdout)
    handler.setFormatter(JsonFormatter())
    logger.addHandler(handler)
    return logger


def get_logger(name: str = "fundproxy") -> logging.Logger:
    """Return a configured logger under the `fundproxy` namespace."""
    if not name.startswith("fundproxy"):
        name = f"fundproxy.{name}"
    return setup_logger(name)


def log_extra(**kwargs: Any) -> dict:
    return {"extra": kwargs}
