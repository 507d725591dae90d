from __future__ import annotations

from dataclasses import dataclass, field
from datetime import datetime
from decimal import Decimal
from enum import Enum
from typing import Optional, Union

from shopdesk.domain.dates import DateRange, to_naive_timestamp
from shopdesk.domain.money import ZERO


class TransactionType(str, Enum):
    INCOME = "INCOME"
    EXPENSE = "EXPENSE"


class StockRisk(str, Enum):
    OK = "ok"
    LOW = "low"
    DEPLETED = "depleted"


class Frequency(str, Enum):
    MONTHLY = "MONTHLY"
    WEEKLY = "WEEKLY"
    YEARLY = "YEARLY"


@dataclass(frozen=True)
class Product:
    id: int
    name: str
    cost_price: Decimal
    sale_price: Decimal
    stock: int
    min_stock: int
    unit: str = "unit"
    active: bool = True
    description: Optional[str] = None


@dataclass(frozen=True)
class Customer:
    id: int
    name: str
    contact_number: Optional[str] = None
    email: Optional[str] = None


@dataclass(frozen=True)
class NewCustomer:
    name: str
    contact_number: Optional[str] = None
    email: Optional[str] = None

    def to_payload(self) -> dict:
        body: dict = {"name": self.name}
        if self.contact_number:
            body["contactNumber"] = self.contact_number
        if self.email:
            body["email"] = self.email
        return body


@dataclass(frozen=True)
class IncomeRequest:
    product_id: int
    quantity: int
    amount: Decimal
    description: str
    date: datetime
    customer_id: Optional[int] = None
    new_customer: Optional[NewCustomer] = None

    type = TransactionType.INCOME

    def __post_init__(self) -> None:
        if (self.customer_id is None) == (self.new_customer is None):
            raise ValueError("Income needs exactly one of customer_id or new_customer.")

    def to_payload(self) -> dict:
        body = {
            "type": self.type.value,
            "description": self.description,
            "amount": float(self.amount),
            "productId": self.product_id,
            "quantity": self.quantity,
            "transactionDate": to_naive_timestamp(self.date),
        }
        if self.customer_id is not None:
            body["customerId"] = self.customer_id
        else:
            body["customer"] = self.new_customer.to_payload()
        return body


@dataclass(frozen=True)
class ExpenseRequest:
    description: str
    amount: Decimal
    date: datetime

    type = TransactionType.EXPENSE

    def to_payload(self) -> dict:
        return {
            "type": self.type.value,
            "description": self.description,
            "amount": float(self.amount),
            "transactionDate": to_naive_timestamp(self.date),
        }


TransactionRequest = Union[IncomeRequest, ExpenseRequest]


@dataclass(frozen=True)
class IncomeDetails:
    product_id: Optional[int] = None
    quantity: Optional[int] = None
    customer_id: Optional[int] = None
    customer_name: Optional[str] = None


@dataclass(frozen=True)
class Transaction:
    id: int
    type: TransactionType
    amount: Decimal
    date: datetime
    description: str = ""
    details: Optional[IncomeDetails] = None


@dataclass(frozen=True)
class TransactionFilter:
    type: Optional[TransactionType] = None
    range: Optional[DateRange] = None

    def to_params(self) -> dict[str, str]:
        params: dict[str, str] = {}
        if self.type is not None:
            params["type"] = self.type.value
        if self.range is not None:
            params["startDate"], params["endDate"] = self.range.as_params()
        return params


@dataclass(frozen=True)
class DerivedSaleMetrics:
    total_amount: Decimal = ZERO
    estimated_profit: Decimal = ZERO
    profit_margin_percent: Decimal = ZERO
    remaining_stock: int = 0
    stock_risk: StockRisk = StockRisk.OK


@dataclass
class SaleDraft:
    product_id: Optional[int] = None
    quantity: int = 1
    unit_price: Decimal = ZERO
    date: datetime = field(default_factory=lambda: datetime.now().replace(microsecond=0))
    notes: str = ""
    customer_id: Optional[int] = None
    new_customer: Optional[NewCustomer] = None


@dataclass(frozen=True)
class Totals:
    income: Decimal = ZERO
    expense: Decimal = ZERO
    net: Decimal = ZERO


@dataclass(frozen=True)
class AggregationState:
    transactions: tuple[Transaction, ...] = ()
    totals: Totals = Totals()
    filter: Optional[TransactionFilter] = None
    fetched_at: Optional[datetime] = None


@dataclass(frozen=True)
class FixedExpense:
    id: int
    name: str
    amount: Decimal
    frequency: Frequency
    description: Optional[str] = None
    active: bool = True


@dataclass(frozen=True)
class TopProduct:
    product_id: int
    product_name: str
    quantity: int
    total: Decimal


@dataclass(frozen=True)
class SalesSummary:
    total_sales: Decimal
    sales_count: int
    average_ticket: Decimal
    total_profit: Decimal = ZERO
    top_products: tuple[TopProduct, ...] = ()
