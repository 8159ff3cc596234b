from __future__ import annotations

import json
import time
from collections.abc import Mapping
from dataclasses import dataclass
from typing import Any, Callable
from urllib.parse import urljoin

import requests
from requests.adapters import HTTPAdapter

from .config import ClientConfig
from .error_mapper import map_envelope_failure, map_error
from .exceptions import BackendUnavailable
from .observability import get_logger, log_json
from .request_ids import IDEMPOTENCY_HEADER, TRACE_HEADER, TraceContext

logger = get_logger(__name__)


@dataclass
class LastOperation:
    module: str
    operation: str
    duration_ms: int
    result: str
    trace_id: str | None


@dataclass
class HttpClient:
    config: ClientConfig
    trace: TraceContext | None = None
    session: requests.Session | None = None
    clock: Callable[[], float] = time.monotonic
    sleep: Callable[[float], None] = time.sleep
    cache_ttl_seconds: float = 3.0
    enable_get_cache: bool = True
    _cache: dict[str, tuple[float, Any]] | None = None
    last_operation: LastOperation | None = None

    def __post_init__(self) -> None:
        if self.session is None:
            self.session = requests.Session()
            adapter = HTTPAdapter(
                pool_connections=self.config.max_connections,
                pool_maxsize=self.config.max_connections,
            )
            self.session.mount("http://", adapter)
            self.session.mount("https://", adapter)
        if self._cache is None:
            self._cache = {}

    def _build_url(self, path: str) -> str:
        base = self.config.api_base_url.rstrip("/") + "/"
        return urljoin(base, path.lstrip("/"))

    def request(
        self,
        method: str,
        path: str,
        *,
        headers: dict[str, str] | None = None,
        json_body: dict[str, Any] | None = None,
        params: dict[str, Any] | None = None,
        timeout: float | None = None,
        module: str = "unknown",
        operation: str = "unknown",
        use_get_cache: bool = True,
        cache_ttl: float | None = None,
        refresh_cache: bool = False,
        invalidate_paths: list[str] | None = None,
    ) -> Any:
        """Send one request and return the decoded payload.

        GETs are retried with exponential backoff. Mutations are retried only
        when they carry an ``Idempotency-Key`` header, since the backend will
        then collapse duplicates. A caller ``timeout`` bounds the whole call,
        retries and backoff included; without one each attempt uses the
        configured connect/read timeouts. Transport failures and timeouts
        surface as :class:`BackendUnavailable`. ``cache_ttl`` overrides
        ``cache_ttl_seconds`` for a cached GET and ``refresh_cache`` skips the
        cached copy while still storing the fresh one.
        """
        if self.session is None:
            raise RuntimeError("HTTP session not initialized")
        request_headers = {"Accept": "application/json"}
        if headers:
            request_headers.update(headers)
        trace_context = self.trace or TraceContext()
        request_headers[TRACE_HEADER] = trace_context.ensure()

        normalized_method = method.upper()
        url = self._build_url(path)
        can_retry = normalized_method in {"GET", "HEAD"} or IDEMPOTENCY_HEADER in request_headers
        attempts = self.config.retries + 1 if can_retry else 1
        cache_key = self._cache_key(normalized_method, url, request_headers, params)
        should_use_get_cache = self.enable_get_cache and use_get_cache and normalized_method == "GET"
        if should_use_get_cache and cache_key and not refresh_cache:
            cached = self._read_cache(cache_key)
            if cached is not None:
                self.last_operation = LastOperation(
                    module=module,
                    operation=operation,
                    duration_ms=0,
                    result="success(cache)",
                    trace_id=trace_context.trace_id,
                )
                return cached

        started = self.clock()
        deadline = started + timeout if timeout is not None else None
        response: requests.Response | None = None
        failure: requests.RequestException | None = None
        for attempt in range(attempts):
            request_timeout: float | tuple[float, float] = (
                self.config.connect_timeout_seconds,
                self.config.read_timeout_seconds,
            )
            if deadline is not None:
                remaining = deadline - self.clock()
                if remaining <= 0:
                    break
                request_timeout = remaining
            try:
                response = self.session.request(
                    method=normalized_method,
                    url=url,
                    headers=request_headers,
                    json=json_body,
                    params=params,
                    timeout=request_timeout,
                    verify=self.config.verify_ssl,
                )
                failure = None
            except requests.RequestException as exc:
                failure = exc
            else:
                if response.status_code < 500:
                    break
            if attempt < attempts - 1:
                pause = self.config.retry_backoff_seconds * (2**attempt)
                if deadline is not None:
                    pause = min(pause, max(deadline - self.clock(), 0.0))
                self.sleep(pause)

        if failure is not None or response is None:
            self._record_operation(module, operation, started, "unavailable", trace_context.trace_id)
            raise _unavailable(failure, trace_context.trace_id) from failure

        trace_context.adopt(response.headers)
        if response.ok:
            if not response.content:
                self._record_operation(module, operation, started, "success", trace_context.trace_id)
                self._invalidate_cache(invalidate_paths or [])
                return None
            parsed = self._unwrap(response.json(), trace_context)
            if should_use_get_cache and cache_key:
                self._write_cache(cache_key, parsed, cache_ttl)
            if normalized_method != "GET":
                self._invalidate_cache(invalidate_paths or [])
            self._record_operation(module, operation, started, "success", trace_context.trace_id)
            return parsed

        payload = None
        try:
            payload = response.json()
        except json.JSONDecodeError:
            payload = {"message": response.text}
        trace_context.adopt(payload=payload)
        self._record_operation(module, operation, started, "error", trace_context.trace_id)
        raise map_error(response.status_code, payload if isinstance(payload, dict) else None, trace_context.trace_id)

    def clear_cache(self) -> None:
        if self._cache is not None:
            self._cache.clear()

    def _unwrap(self, payload: Any, trace_context: TraceContext) -> Any:
        # Backend replies use a {success, data, message} envelope.
        if not isinstance(payload, dict) or "success" not in payload:
            return payload
        if payload.get("success") is False:
            trace_context.adopt(payload=payload)
            raise map_envelope_failure(payload, trace_context.trace_id)
        if "data" in payload:
            return payload["data"]
        return {key: value for key, value in payload.items() if key != "success"}

    def _record_operation(self, module: str, operation: str, started: float, result: str, trace_id: str | None) -> None:
        self.last_operation = LastOperation(
            module=module,
            operation=operation,
            duration_ms=int((self.clock() - started) * 1000),
            result=result,
            trace_id=trace_id,
        )
        log_json(
            logger,
            {
                "module": module,
                "operation": operation,
                "duration_ms": self.last_operation.duration_ms,
                "result": result,
                "trace_id": trace_id,
            },
        )

    def _cache_key(
        self,
        method: str,
        url: str,
        headers: Mapping[str, str],
        params: dict[str, Any] | None,
    ) -> str | None:
        if method != "GET":
            return None
        safe_headers = {key: value for key, value in headers.items() if key in {"Authorization", "X-Terminal-ID"}}
        return json.dumps({"url": url, "headers": safe_headers, "params": params or {}}, sort_keys=True, default=str)

    def _read_cache(self, key: str) -> Any:
        if self._cache is None:
            return None
        record = self._cache.get(key)
        if not record:
            return None
        expires_at, payload = record
        if self.clock() >= expires_at:
            self._cache.pop(key, None)
            return None
        return payload

    def _write_cache(self, key: str, payload: Any, ttl: float | None = None) -> None:
        if self._cache is None:
            self._cache = {}
        lifetime = self.cache_ttl_seconds if ttl is None else ttl
        self._cache[key] = (self.clock() + lifetime, payload)

    def _invalidate_cache(self, paths: list[str]) -> None:
        if self._cache is None or not paths:
            return
        doomed = [key for key in self._cache if any(path in key for path in paths)]
        for key in doomed:
            self._cache.pop(key, None)


def _unavailable(failure: requests.RequestException | None, trace_id: str | None) -> BackendUnavailable:
    # No failure means the caller's time budget ran out between attempts.
    timed_out = failure is None or isinstance(failure, requests.Timeout)
    name = type(failure).__name__ if failure is not None else "DeadlineExceeded"
    return BackendUnavailable(
        code="TIMEOUT" if timed_out else "TRANSPORT_ERROR",
        message=(str(failure) if failure is not None else "") or name,
        details={"type": name},
        trace_id=trace_id,
        status_code=0,
        raw_payload=None,
    )
