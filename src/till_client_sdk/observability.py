from __future__ import annotations

import json
import logging
from datetime import datetime, timezone
from typing import Any

LOGGER_NAME = "till_client_sdk"
_REDACTED_KEYS = {"card_last4", "card_number", "reference", "authorization", "token"}


def get_logger(name: str = LOGGER_NAME) -> logging.Logger:
    logger = logging.getLogger(name)
    if logger.handlers:
        return logger
    logger.setLevel(logging.INFO)
    handler = logging.StreamHandler()
    handler.setFormatter(logging.Formatter("%(message)s"))
    logger.addHandler(handler)
    return logger


def log_json(logger: logging.Logger, payload: dict[str, Any], level: int = logging.INFO) -> None:
    logger.log(level, json.dumps(payload, ensure_ascii=False, default=str))


def log_action(
    logger: logging.Logger,
    module: str,
    action: str,
    outcome: str,
    trace_id: str | None = None,
    **context: Any,
) -> None:
    payload: dict[str, Any] = {
        "ts": datetime.now(timezone.utc).isoformat(),
        "level": "INFO" if outcome == "success" else "WARNING",
        "module": module,
        "action": action,
        "trace_id": trace_id,
        "outcome": outcome,
    }
    payload.update({key: value for key, value in context.items() if key not in _REDACTED_KEYS})
    log_json(logger, payload, logging.INFO if outcome == "success" else logging.WARNING)
