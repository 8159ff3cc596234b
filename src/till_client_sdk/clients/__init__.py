from .customers_client import CustomersClient
from .pos_cash_client import PosCashClient
from .pos_sales_client import PosSalesClient
from .stock_client import StockClient

__all__ = [
    "CustomersClient",
    "PosCashClient",
    "PosSalesClient",
    "StockClient",
]
