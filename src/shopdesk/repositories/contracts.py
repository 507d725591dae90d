from __future__ import annotations

from typing import Optional, Protocol

from shopdesk.domain.models import (
    Customer,
    FixedExpense,
    NewCustomer,
    Product,
    Transaction,
    TransactionFilter,
    TransactionRequest,
)


class ProductRepository(Protocol):
    def list_products(self, active_only: bool = True) -> list[Product]: ...
    def get_product(self, product_id: int) -> Product: ...
    def create_product(self, fields: dict) -> Product: ...
    def update_product(self, product_id: int, fields: dict) -> Product: ...
    def delete_product(self, product_id: int) -> None: ...


class CustomerRepository(Protocol):
    def list_customers(self) -> list[Customer]: ...
    def create_customer(self, customer: NewCustomer) -> Customer: ...


class TransactionRepository(Protocol):
    def list_transactions(self, flt: TransactionFilter) -> list[Transaction]: ...
    def create_transaction(self, request: TransactionRequest) -> Transaction: ...


class FixedExpenseRepository(Protocol):
    def list_fixed_expenses(self, active_only: Optional[bool] = None) -> list[FixedExpense]: ...
    def create_fixed_expense(self, fields: dict) -> FixedExpense: ...
    def update_fixed_expense(self, expense_id: int, fields: dict) -> FixedExpense: ...
    def set_fixed_expense_status(self, expense_id: int, active: bool) -> None: ...


class DataPort(ProductRepository, CustomerRepository, TransactionRepository, FixedExpenseRepository, Protocol):
    """Everything the client reads from or writes to the backend."""

    def login(self, username: str, password: str) -> dict: ...
    def register(self, fields: dict) -> dict: ...
