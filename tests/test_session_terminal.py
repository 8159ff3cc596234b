from __future__ import annotations

import json
from decimal import Decimal

import pytest
import responses

from fake_backend import make_product
from till_client_sdk import ApiSession, load_config
from till_client_sdk.exceptions import CashSessionClosedError, InsufficientStockError


def _status(cash_sales: str, status: str = "open") -> dict:
    return {
        "session": {
            "id": 3,
            "status": status,
            "opening_amount": "1000.00",
            "cash_sales": cash_sales,
        },
        "movements": [],
        "settings": {"allow_negative_cash": False},
    }


def _session() -> ApiSession:
    return ApiSession(config=load_config(), token="token", terminal_id="till-1")


@responses.activate
def test_terminal_commits_sale_over_http(till_env) -> None:
    responses.add(responses.GET, f"{till_env}/cash/status", json=_status("0.00"), status=200)
    responses.add(responses.GET, f"{till_env}/cash/status", json=_status("500.00"), status=200)
    responses.add(responses.GET, f"{till_env}/products/p1/stock", json={"stock": "10"}, status=200)
    responses.add(
        responses.POST,
        f"{till_env}/sales",
        json={"success": True, "data": {"id": 90, "status": "completed", "total": "500.00"}},
        status=201,
    )
    terminal = _session().terminal()
    terminal.add_item(make_product(price_cash="250"), 2)

    result = terminal.commit_sale()

    assert result.sale.id == 90
    assert result.cash_refreshed is True
    assert terminal.cash_register.session.cash_sales == Decimal("500.00")
    assert terminal.stock.cached_level("p1") == Decimal("8")
    sale_call = next(call for call in responses.calls if call.request.method == "POST")
    body = json.loads(sale_call.request.body.decode("utf-8"))
    assert sale_call.request.headers["Idempotency-Key"] == result.record.idempotency_key
    assert body["payment_method"] == "cash"
    assert body["items"][0]["price_type"] == "cash"
    assert body["total"] == "500.00"


@responses.activate
def test_terminal_blocks_sale_without_open_session(till_env) -> None:
    responses.add(responses.GET, f"{till_env}/cash/status", json={"session": None}, status=200)
    terminal = _session().terminal()
    terminal.add_item(make_product(), 1)
    with pytest.raises(CashSessionClosedError):
        terminal.commit_sale()
    assert all(call.request.method == "GET" for call in responses.calls)


@responses.activate
def test_terminal_rechecks_stock_from_backend(till_env) -> None:
    responses.add(responses.GET, f"{till_env}/cash/status", json=_status("0.00"), status=200)
    responses.add(responses.GET, f"{till_env}/products/p1/stock", json={"stock": "1"}, status=200)
    terminal = _session().terminal()
    terminal.add_item(make_product(stock="10"), 2)
    with pytest.raises(InsufficientStockError):
        terminal.commit_sale()
    assert not any(call.request.method == "POST" for call in responses.calls)


@responses.activate
def test_stock_ledger_posts_movement(till_env) -> None:
    responses.add(responses.GET, f"{till_env}/products/p1/stock", json={"stock": 10}, status=200)
    responses.add(
        responses.POST,
        f"{till_env}/stock/movements",
        json={
            "id": 5,
            "product_id": "p1",
            "type": "exit",
            "quantity": 4,
            "previous_stock": 10,
            "new_stock": 6,
            "reason": "damaged",
        },
        status=201,
    )
    ledger = _session().stock_ledger(user_id="u-1")
    row = ledger.apply_exit("p1", 4, "damaged")

    assert row.new_stock == 6
    assert ledger.book.cached_level("p1") == Decimal("6")
    post = responses.calls[1].request
    assert "Idempotency-Key" in post.headers
    body = json.loads(post.body.decode("utf-8"))
    assert body["type"] == "exit"
    assert body["previous_stock"] == 10
    assert body["new_stock"] == 6
