"""Identifiers attached to backend calls.

The trace id follows one conversation with the backend and is replaced by
whatever id the server echoes back. An idempotency key names one logical
mutation (a sale, a cash movement, a stock movement) so the backend can
collapse retries of it.
"""

from __future__ import annotations

import uuid
from dataclasses import dataclass
from typing import Any, Mapping

TRACE_HEADER = "X-Trace-ID"
IDEMPOTENCY_HEADER = "Idempotency-Key"
_ECHOED_TRACE_HEADERS = (TRACE_HEADER, "X-Request-ID")


def _new_id() -> str:
    return str(uuid.uuid4())


@dataclass
class TraceContext:
    trace_id: str | None = None

    def ensure(self) -> str:
        if not self.trace_id:
            self.trace_id = _new_id()
        return self.trace_id

    def adopt(self, headers: Mapping[str, str] | None = None, payload: Any = None) -> None:
        """Take the id the backend echoed; a ``trace_id`` in the body beats the headers."""
        for key in _ECHOED_TRACE_HEADERS:
            echoed = (headers or {}).get(key)
            if echoed:
                self.trace_id = echoed
                break
        if isinstance(payload, Mapping):
            body_trace = payload.get("trace_id")
            if isinstance(body_trace, str) and body_trace:
                self.trace_id = body_trace


@dataclass(frozen=True)
class IdempotencyKeys:
    transaction_id: str
    idempotency_key: str


def new_idempotency_keys() -> IdempotencyKeys:
    return IdempotencyKeys(transaction_id=_new_id(), idempotency_key=_new_id())


def idempotency_headers(key: str | None) -> dict[str, str]:
    return {IDEMPOTENCY_HEADER: key} if key else {}
