from __future__ import annotations

from dataclasses import dataclass
from typing import Any

from ..models_catalog import Customer
from .base import BaseClient, expect_object


@dataclass
class CustomersClient(BaseClient):
    def get_customer(self, customer_id: Any) -> Customer:
        data = self._request(
            "GET",
            f"/customers/{customer_id}/balance",
            module="customers",
            operation="get_customer",
            use_get_cache=False,
        )
        payload = expect_object(data, "customer balance")
        if "customer" in payload and isinstance(payload["customer"], dict):
            payload = payload["customer"]
        return Customer.model_validate(payload)
