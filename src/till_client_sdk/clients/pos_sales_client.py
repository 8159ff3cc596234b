from __future__ import annotations

from dataclasses import dataclass
from typing import Any, Mapping

from ..request_ids import idempotency_headers
from ..models_pos_sales import (
    SaleCancelRequest,
    SaleCancelResponse,
    SaleListResponse,
    SaleQuery,
    SaleRecord,
    SaleResponse,
)
from .base import BaseClient, coerce_model, expect_object

SALES_PATH = "/sales"


@dataclass
class PosSalesClient(BaseClient):
    def create_sale(self, record: SaleRecord | Mapping[str, Any], *, timeout: float | None = None) -> SaleResponse:
        request = coerce_model(record, SaleRecord)
        data = self._request(
            "POST",
            SALES_PATH,
            json_body=request.model_dump(mode="json", exclude_none=True),
            headers=idempotency_headers(request.idempotency_key),
            timeout=timeout if timeout is not None else self.timeout,
            module="pos_sales",
            operation="create_sale",
            invalidate_paths=[SALES_PATH],
        )
        return SaleResponse.model_validate(expect_object(data, "create sale"))

    def get_sale(self, sale_id: Any) -> SaleResponse:
        data = self._request("GET", f"{SALES_PATH}/{sale_id}", module="pos_sales", operation="get_sale")
        return SaleResponse.model_validate(expect_object(data, "sale"))

    def list_sales(self, filters: SaleQuery | Mapping[str, Any] | None = None) -> SaleListResponse:
        params = None
        if filters is not None:
            query = coerce_model(filters, SaleQuery)
            params = query.model_dump(by_alias=True, exclude_none=True, mode="json")
        data = self._request("GET", SALES_PATH, params=params, module="pos_sales", operation="list_sales")
        return SaleListResponse.model_validate(expect_object(data, "list sales"))

    def cancel_sale(
        self,
        sale_id: Any,
        reason: str,
        *,
        idempotency_key: str | None = None,
        timeout: float | None = None,
    ) -> SaleCancelResponse:
        request = SaleCancelRequest(reason=reason)
        data = self._request(
            "PATCH",
            f"{SALES_PATH}/{sale_id}/cancel",
            json_body=request.model_dump(mode="json"),
            headers=idempotency_headers(idempotency_key),
            timeout=timeout if timeout is not None else self.timeout,
            module="pos_sales",
            operation="cancel_sale",
            invalidate_paths=[SALES_PATH],
        )
        if data is None:
            return SaleCancelResponse()
        return SaleCancelResponse.model_validate(expect_object(data, "cancel sale"))
