from __future__ import annotations

from dataclasses import dataclass
from typing import Any, Mapping

from ..request_ids import idempotency_headers
from ..models_catalog import ProductStockResponse
from ..models_stock import (
    StockAlert,
    StockAlertListResponse,
    StockMovement,
    StockMovementListResponse,
    StockMovementQuery,
    StockMovementRequest,
    StockStats,
)
from .base import BaseClient, coerce_model, expect_object

STOCK_MOVEMENTS_PATH = "/stock/movements"
STOCK_ALERTS_PATH = "/stock/alerts"
STOCK_STATS_PATH = "/stock/stats"
ALERTS_CACHE_SECONDS = 30.0
STATS_CACHE_SECONDS = 60.0


@dataclass
class StockClient(BaseClient):
    def get_product_stock(self, product_id: Any, *, use_cache: bool = False) -> ProductStockResponse:
        data = self._request(
            "GET",
            f"/products/{product_id}/stock",
            module="stock",
            operation="get_product_stock",
            use_get_cache=use_cache,
        )
        payload = expect_object(data, "product stock")
        payload.setdefault("product_id", product_id)
        return ProductStockResponse.model_validate(payload)

    def create_movement(
        self,
        movement: StockMovementRequest | Mapping[str, Any],
        *,
        idempotency_key: str | None = None,
    ) -> StockMovement:
        request = coerce_model(movement, StockMovementRequest)
        data = self._request(
            "POST",
            STOCK_MOVEMENTS_PATH,
            json_body=request.model_dump(mode="json"),
            headers=idempotency_headers(idempotency_key),
            module="stock",
            operation="create_movement",
            invalidate_paths=[
                STOCK_MOVEMENTS_PATH,
                STOCK_ALERTS_PATH,
                STOCK_STATS_PATH,
                f"/products/{request.product_id}/stock",
            ],
        )
        return StockMovement.model_validate(expect_object(data, "stock movement"))

    def list_movements(self, filters: StockMovementQuery | Mapping[str, Any] | None = None) -> StockMovementListResponse:
        params = None
        if filters is not None:
            params = coerce_model(filters, StockMovementQuery).model_dump(exclude_none=True, mode="json")
        data = self._request("GET", STOCK_MOVEMENTS_PATH, params=params, module="stock", operation="list_movements")
        return StockMovementListResponse.model_validate(expect_object(data, "stock movements"))

    def get_stock_alerts(self, limit: int = 50, *, force_refresh: bool = False) -> StockAlertListResponse:
        """Products at or below their minimum stock, cached for 30 seconds."""
        data = self._request(
            "GET",
            STOCK_ALERTS_PATH,
            params={"limit": limit},
            module="stock",
            operation="get_stock_alerts",
            refresh_cache=force_refresh,
            cache_ttl=ALERTS_CACHE_SECONDS,
        )
        rows = data if isinstance(data, list) else expect_object(data, "stock alerts").get("alerts", [])
        return StockAlertListResponse(alerts=[StockAlert.model_validate(row) for row in rows])

    def get_stock_stats(self, *, force_refresh: bool = False) -> StockStats:
        data = self._request(
            "GET",
            STOCK_STATS_PATH,
            module="stock",
            operation="get_stock_stats",
            refresh_cache=force_refresh,
            cache_ttl=STATS_CACHE_SECONDS,
        )
        return StockStats.model_validate(expect_object(data, "stock stats"))
