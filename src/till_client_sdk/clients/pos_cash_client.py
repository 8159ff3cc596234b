from __future__ import annotations

from dataclasses import dataclass
from decimal import Decimal
from typing import Any

from ..exceptions import ApiError, ConflictError, SessionAlreadyOpenError, SessionNotOpenError
from ..request_ids import idempotency_headers
from ..models_pos_cash import (
    CashCloseRequest,
    CashSessionListResponse,
    CashMovementListResponse,
    CashMovementRequest,
    CashMovementResponse,
    CashOpenRequest,
    CashSessionSnapshot,
    CashSettings,
    CashStatusResponse,
)
from .base import BaseClient, expect_object

CASH_STATUS_PATH = "/cash/status"
CASH_MOVEMENTS_PATH = "/cash/movements"


@dataclass
class PosCashClient(BaseClient):
    def get_status(self, *, use_cache: bool = True) -> CashStatusResponse:
        try:
            data = self._request(
                "GET",
                CASH_STATUS_PATH,
                module="pos_cash",
                operation="get_status",
                use_get_cache=use_cache,
            )
        except ApiError as exc:
            raise _map_cash_error(exc) from exc
        return CashStatusResponse.model_validate(expect_object(data, "cash status"))

    def open_session(
        self,
        opening_amount: Decimal,
        notes: str = "",
        *,
        idempotency_key: str | None = None,
    ) -> CashSessionSnapshot | None:
        request = CashOpenRequest(opening_amount=opening_amount, notes=notes)
        data = self._mutate("/cash/open", request.model_dump(mode="json"), idempotency_key, "open_session")
        return CashSessionSnapshot.model_validate(data) if isinstance(data, dict) else None

    def close_session(
        self,
        notes: str = "",
        physical_count: Decimal | None = None,
        *,
        idempotency_key: str | None = None,
    ) -> CashSessionSnapshot | None:
        request = CashCloseRequest(
            closing_notes=notes or "",
            closing_amount=physical_count,
            compare_with_physical=physical_count is not None,
        )
        body = request.model_dump(mode="json", exclude_none=True)
        data = self._mutate("/cash/close", body, idempotency_key, "close_session")
        return CashSessionSnapshot.model_validate(data) if isinstance(data, dict) else None

    def record_movement(
        self,
        movement: CashMovementRequest,
        *,
        idempotency_key: str | None = None,
    ) -> CashMovementResponse:
        data = self._mutate(
            CASH_MOVEMENTS_PATH,
            movement.model_dump(mode="json", exclude_none=True),
            idempotency_key,
            "record_movement",
        )
        return CashMovementResponse.model_validate(expect_object(data, "cash movement"))

    def list_movements(self, *, current_session_only: bool = True, **filters: Any) -> CashMovementListResponse:
        params = {key: value for key, value in filters.items() if value not in (None, "")}
        params["current_session_only"] = "true" if current_session_only else "false"
        try:
            data = self._request(
                "GET",
                CASH_MOVEMENTS_PATH,
                params=params,
                module="pos_cash",
                operation="list_movements",
            )
        except ApiError as exc:
            raise _map_cash_error(exc) from exc
        return CashMovementListResponse.model_validate(expect_object(data, "cash movements"))

    def list_sessions(self, page: int = 1, limit: int = 20, **filters: Any) -> CashSessionListResponse:
        """Closed and open sessions, newest first, one page at a time."""
        params = {key: value for key, value in filters.items() if value not in (None, "")}
        params.update(page=page, limit=limit)
        data = self._request(
            "GET",
            "/cash/history",
            params=params,
            module="pos_cash",
            operation="list_sessions",
            use_get_cache=False,
        )
        return CashSessionListResponse.model_validate(expect_object(data, "cash history"))

    def get_session(self, session_id: Any) -> CashSessionSnapshot:
        data = self._request(
            "GET",
            f"/cash/sessions/{session_id}",
            module="pos_cash",
            operation="get_session",
            use_get_cache=False,
        )
        payload = expect_object(data, "cash session")
        # Detail replies may nest the session next to its movements.
        if isinstance(payload.get("session"), dict):
            payload = payload["session"]
        return CashSessionSnapshot.model_validate(payload)

    def get_settings(self) -> CashSettings:
        data = self._request("GET", "/cash/settings", module="pos_cash", operation="get_settings")
        return CashSettings.model_validate(expect_object(data, "cash settings"))

    def _mutate(self, path: str, body: dict[str, Any], idempotency_key: str | None, operation: str) -> Any:
        try:
            return self._request(
                "POST",
                path,
                json_body=body,
                headers=idempotency_headers(idempotency_key),
                module="pos_cash",
                operation=operation,
                invalidate_paths=[CASH_STATUS_PATH, CASH_MOVEMENTS_PATH],
            )
        except ApiError as exc:
            raise _map_cash_error(exc) from exc


def _map_cash_error(exc: ApiError) -> Exception:
    """Turn backend cash-state rejections into the matching local precondition."""
    if isinstance(exc, ConflictError) or exc.status_code == 400 or exc.status_code == 200:
        combined = f"{exc.code} {exc.message}".lower()
        if "already open" in combined or "ya hay una caja abierta" in combined or exc.code == "SESSION_ALREADY_OPEN":
            return SessionAlreadyOpenError(exc.message)
        if "no open" in combined or "not open" in combined or "caja cerrada" in combined or exc.code == "SESSION_NOT_OPEN":
            return SessionNotOpenError(exc.message)
    return exc
