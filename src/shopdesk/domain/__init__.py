from .models import (
    AggregationState,
    Customer,
    DerivedSaleMetrics,
    ExpenseRequest,
    IncomeRequest,
    NewCustomer,
    Product,
    SaleDraft,
    StockRisk,
    Totals,
    Transaction,
    TransactionFilter,
    TransactionType,
)
from .dates import DateRange
from .errors import (
    AppError,
    ValidationError,
    NotFoundError,
    InsufficientStockError,
    RequestFailedError,
    SessionExpiredError,
)

__all__ = [
    "AggregationState",
    "Customer",
    "DerivedSaleMetrics",
    "ExpenseRequest",
    "IncomeRequest",
    "NewCustomer",
    "Product",
    "SaleDraft",
    "StockRisk",
    "Totals",
    "Transaction",
    "TransactionFilter",
    "TransactionType",
    "DateRange",
    "AppError",
    "ValidationError",
    "NotFoundError",
    "InsufficientStockError",
    "RequestFailedError",
    "SessionExpiredError",
]
