from __future__ import annotations

import json

import responses

from till_client_sdk import load_config
from till_client_sdk.clients.stock_client import StockClient
from till_client_sdk.http_client import HttpClient
from till_client_sdk.models_stock import StockMovementRequest, stock_alert_level
from till_client_sdk.request_ids import TraceContext


class _Clock:
    def __init__(self) -> None:
        self.now = 100.0

    def __call__(self) -> float:
        return self.now


def _stock_client(clock: _Clock | None = None) -> StockClient:
    http = HttpClient(load_config(), trace=TraceContext(), clock=clock or _Clock())
    return StockClient(http=http, access_token="token")


def _alerts_payload() -> dict:
    return {
        "success": True,
        "data": [
            {"id": "p1", "name": "Rice 1kg", "stock": 0, "min_stock": 5, "level": "critical"},
            {"id": "p2", "name": "Beans 500g", "stock": 3, "min_stock": 5, "level": "low"},
            {"id": "p3", "name": "Salt", "stock": 2, "min_stock": 4},
        ],
    }


def test_stock_alert_level_thresholds() -> None:
    assert stock_alert_level(0, 5) == "critical"
    assert stock_alert_level(-1, 0) == "critical"
    assert stock_alert_level(5, 5) == "low"
    assert stock_alert_level(6, 5) is None


@responses.activate
def test_get_stock_alerts_parses_levels(till_env) -> None:
    responses.add(responses.GET, f"{till_env}/stock/alerts", json=_alerts_payload(), status=200)
    alerts = _stock_client().get_stock_alerts()

    assert [alert.alert_level for alert in alerts.alerts] == ["critical", "low", "low"]
    assert [alert.id for alert in alerts.critical] == ["p1"]
    assert alerts.alerts[1].name == "Beans 500g"
    assert "limit=50" in responses.calls[0].request.url


@responses.activate
def test_stock_alerts_cached_for_thirty_seconds(till_env) -> None:
    responses.add(responses.GET, f"{till_env}/stock/alerts", json=_alerts_payload(), status=200)
    clock = _Clock()
    client = _stock_client(clock)

    client.get_stock_alerts()
    clock.now += 29
    client.get_stock_alerts()
    assert len(responses.calls) == 1

    clock.now += 2
    client.get_stock_alerts()
    assert len(responses.calls) == 2


@responses.activate
def test_force_refresh_bypasses_alert_cache(till_env) -> None:
    responses.add(responses.GET, f"{till_env}/stock/alerts", json=_alerts_payload(), status=200)
    responses.add(responses.GET, f"{till_env}/stock/alerts", json={"alerts": []}, status=200)
    client = _stock_client()

    client.get_stock_alerts()
    assert client.get_stock_alerts(force_refresh=True).alerts == []
    assert client.get_stock_alerts().alerts == []
    assert len(responses.calls) == 2


@responses.activate
def test_stock_movement_invalidates_alerts(till_env) -> None:
    responses.add(responses.GET, f"{till_env}/stock/alerts", json=_alerts_payload(), status=200)
    responses.add(
        responses.POST,
        f"{till_env}/stock/movements",
        json={
            "id": 9,
            "product_id": "p1",
            "type": "entry",
            "quantity": 10,
            "previous_stock": 0,
            "new_stock": 10,
            "reason": "Delivery",
        },
        status=201,
    )
    client = _stock_client()

    client.get_stock_alerts()
    movement = client.create_movement(
        StockMovementRequest(product_id="p1", type="entry", quantity=10, reason="Delivery", previous_stock=0, new_stock=10),
        idempotency_key="idem-stock",
    )
    client.get_stock_alerts()

    assert movement.new_stock == 10
    assert [call.request.method for call in responses.calls] == ["GET", "POST", "GET"]
    assert json.loads(responses.calls[1].request.body.decode("utf-8"))["reason"] == "Delivery"


@responses.activate
def test_get_stock_stats_totals_monthly_movements(till_env) -> None:
    responses.add(
        responses.GET,
        f"{till_env}/stock/stats",
        json={
            "success": True,
            "data": {
                "general": {"total_products": 40},
                "monthly_movements": [
                    {"type": "entry", "total_quantity": 120},
                    {"type": "exit", "total_quantity": 45},
                    {"type": "entry", "total_quantity": 30},
                ],
                "low_stock_products": [{"id": "p2", "name": "Beans 500g", "stock": 3, "min_stock": 5}],
            },
        },
        status=200,
    )
    stats = _stock_client().get_stock_stats()

    assert stats.general["total_products"] == 40
    assert stats.monthly_total("entry") == 150
    assert stats.monthly_total("exit") == 45
    assert stats.monthly_total("adjustment") == 0
    assert stats.low_stock_products[0].alert_level == "low"
