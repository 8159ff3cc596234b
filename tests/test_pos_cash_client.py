from __future__ import annotations

import json
from decimal import Decimal

import pytest
import responses

from till_client_sdk import load_config
from till_client_sdk.clients.pos_cash_client import PosCashClient
from till_client_sdk.exceptions import SessionAlreadyOpenError, SessionNotOpenError
from till_client_sdk.http_client import HttpClient
from till_client_sdk.models_pos_cash import CashMovementRequest
from till_client_sdk.request_ids import TraceContext


def _cash_client() -> PosCashClient:
    http = HttpClient(load_config(), trace=TraceContext())
    return PosCashClient(http=http, access_token="token")


def _status_payload(cash_sales: str = "0.00") -> dict:
    return {
        "session": {
            "id": 12,
            "status": "open",
            "opening_amount": "1000.00",
            "opening_date": "2026-03-01T09:00:00Z",
            "cash_sales": cash_sales,
            "sale_count": 1,
        },
        "movements": [{"id": 1, "type": "deposit", "amount": "50.00", "description": "float"}],
        "settings": {"min_cash_amount": "2000", "max_cash_amount": "20000", "allow_negative_cash": False},
    }


@responses.activate
def test_get_status_parses_session(till_env) -> None:
    responses.add(responses.GET, f"{till_env}/cash/status", json=_status_payload("500.00"), status=200)
    status = _cash_client().get_status()
    assert status.session.status == "open"
    assert status.session.cash_sales == Decimal("500.00")
    assert status.movements[0].type == "deposit"
    assert status.settings.allow_negative_cash is False


@responses.activate
def test_open_session_when_already_open(till_env) -> None:
    responses.add(
        responses.POST,
        f"{till_env}/cash/open",
        json={"code": "CONFLICT", "message": "A cash session is already open"},
        status=409,
    )
    with pytest.raises(SessionAlreadyOpenError):
        _cash_client().open_session(Decimal("1000"), idempotency_key="idem-open")
    assert responses.calls[0].request.headers["Idempotency-Key"] == "idem-open"


@responses.activate
def test_movement_without_session_maps_error(till_env) -> None:
    responses.add(
        responses.POST,
        f"{till_env}/cash/movements",
        json={"success": False, "message": "No open cash session"},
        status=200,
    )
    movement = CashMovementRequest(type="deposit", amount=Decimal("10"), description="float")
    with pytest.raises(SessionNotOpenError):
        _cash_client().record_movement(movement)


@responses.activate
def test_close_session_body(till_env) -> None:
    responses.add(responses.POST, f"{till_env}/cash/close", json={"id": 12, "status": "closed"}, status=200)
    client = _cash_client()
    snapshot = client.close_session("end of day", Decimal("1490.00"))
    assert snapshot.status == "closed"
    body = json.loads(responses.calls[0].request.body.decode("utf-8"))
    assert body == {"closing_notes": "end of day", "closing_amount": "1490.00", "compare_with_physical": True}


@responses.activate
def test_close_session_without_count(till_env) -> None:
    responses.add(responses.POST, f"{till_env}/cash/close", body="", status=204)
    assert _cash_client().close_session("bye") is None
    body = json.loads(responses.calls[0].request.body.decode("utf-8"))
    assert body == {"closing_notes": "bye", "compare_with_physical": False}


@responses.activate
def test_movement_invalidates_cached_status(till_env) -> None:
    responses.add(responses.GET, f"{till_env}/cash/status", json=_status_payload(), status=200)
    responses.add(
        responses.POST,
        f"{till_env}/cash/movements",
        json={"id": 2, "type": "expense", "amount": "30.00", "description": "cleaning"},
        status=201,
    )
    client = _cash_client()
    client.get_status()
    client.get_status()
    movement = client.record_movement(
        CashMovementRequest(type="expense", amount=Decimal("30"), description="cleaning")
    )
    client.get_status()
    assert movement.amount == Decimal("30.00")
    methods = [call.request.method for call in responses.calls]
    assert methods == ["GET", "POST", "GET"]


@responses.activate
def test_list_movements_and_settings(till_env) -> None:
    responses.add(responses.GET, f"{till_env}/cash/movements", json={"movements": []}, status=200)
    responses.add(responses.GET, f"{till_env}/cash/settings", json={"require_count_for_close": True}, status=200)
    client = _cash_client()
    assert client.list_movements(type="expense").movements == []
    assert "current_session_only=true" in responses.calls[0].request.url
    assert client.get_settings().require_count_for_close is True


@responses.activate
def test_list_sessions_pages_history(till_env) -> None:
    responses.add(
        responses.GET,
        f"{till_env}/cash/history",
        json={
            "success": True,
            "data": {
                "history": [
                    {"id": 12, "status": "closed", "opening_amount": "1000.00", "closing_amount": "1490.00", "difference": "-10.00"},
                    {"id": 11, "status": "closed", "opening_amount": "800.00"},
                ],
                "pagination": {"page": 2, "limit": 2, "total": 5, "pages": 3},
            },
        },
        status=200,
    )
    client = _cash_client()
    result = client.list_sessions(page=2, limit=2, start_date="2026-03-01", end_date=None)

    assert [session.id for session in result.sessions] == [12, 11]
    assert result.sessions[0].difference == Decimal("-10.00")
    assert result.pagination.pages == 3
    url = responses.calls[0].request.url
    assert "page=2" in url and "limit=2" in url and "start_date=2026-03-01" in url
    assert "end_date" not in url


@responses.activate
def test_list_sessions_is_never_served_from_cache(till_env) -> None:
    responses.add(responses.GET, f"{till_env}/cash/history", json={"history": []}, status=200)
    client = _cash_client()
    assert client.list_sessions().sessions == []
    assert client.list_sessions().pagination.limit == 20
    assert len(responses.calls) == 2


@responses.activate
def test_get_session_accepts_nested_detail(till_env) -> None:
    responses.add(
        responses.GET,
        f"{till_env}/cash/sessions/12",
        json={
            "success": True,
            "data": {
                "session": {"id": 12, "status": "closed", "closing_amount": "1490.00", "closed_at": "2026-03-01T22:00:00Z"},
                "movements": [{"id": 1, "type": "deposit", "amount": "50.00"}],
            },
        },
        status=200,
    )
    responses.add(responses.GET, f"{till_env}/cash/sessions/13", json={"id": 13, "status": "open"}, status=200)
    client = _cash_client()

    closed = client.get_session(12)
    assert closed.closing_amount == Decimal("1490.00")
    assert closed.closed_at is not None
    assert client.get_session(13).status == "open"
