from __future__ import annotations

import logging
from dataclasses import dataclass
from datetime import datetime
from decimal import Decimal
from enum import Enum
from typing import Optional

from shopdesk.application.streams import Stream
from shopdesk.domain.calculations import compute_sale_metrics
from shopdesk.domain.errors import AppError, InsufficientStockError, ValidationError
from shopdesk.domain.models import (
    Customer,
    DerivedSaleMetrics,
    IncomeRequest,
    NewCustomer,
    Product,
    SaleDraft,
    Transaction,
)
from shopdesk.domain.money import ZERO, to_decimal
from shopdesk.repositories.async_port import AsyncDataPort
from shopdesk.repositories.contracts import DataPort

log = logging.getLogger("shopdesk.sales")

MAX_QUANTITY = 1_000_000


class CustomerMode(str, Enum):
    EXISTING = "existing"
    NEW = "new"


@dataclass(frozen=True)
class SubmitCheck:
    errors: tuple[AppError, ...] = ()
    request: Optional[IncomeRequest] = None
    transaction: Optional[Transaction] = None

    @property
    def ok(self) -> bool:
        return not self.errors

    def error_for(self, field: str) -> Optional[AppError]:
        for e in self.errors:
            if getattr(e, "field", None) == field:
                return e
        return None


class SaleComputationEngine:
    """Live sale form model.

    Every mutation recomputes the derived metrics and pushes them on
    ``metrics``. Bad input never raises: it yields degenerate metrics, and
    validation problems come back as ``SubmitCheck`` errors.
    """

    def __init__(self, port: DataPort):
        self.port = port
        self._aport = AsyncDataPort(port)
        self.products: tuple[Product, ...] = ()
        self.customers: tuple[Customer, ...] = ()
        self.draft = SaleDraft()
        self.product: Optional[Product] = None
        self._price_overridden = False
        self._price_invalid = False
        self._submitting = False

        self.metrics: Stream[DerivedSaleMetrics] = Stream(DerivedSaleMetrics())
        self.errors: Stream[AppError] = Stream(replay=False)
        self.submitting: Stream[bool] = Stream(False)

    # ---------- catalog ----------
    async def load_products(self) -> list[Product]:
        try:
            rows = await self._aport.list_products(True)
        except AppError as e:
            log.warning("sale_products_load_failed error=%s", e)
            self.errors.push(e)
            return []
        # only sellable products are offered
        self.products = tuple(p for p in rows if p.active and p.stock > 0)
        if self.draft.product_id is not None:
            self.set_product(self.draft.product_id)
        return list(self.products)

    async def load_customers(self) -> list[Customer]:
        try:
            rows = await self._aport.list_customers()
        except AppError as e:
            log.warning("sale_customers_load_failed error=%s", e)
            self.errors.push(e)
            return []
        self.customers = tuple(rows)
        return list(self.customers)

    def search_products(self, term: str) -> list[Product]:
        needle = (term or "").strip().lower()
        if not needle:
            return list(self.products)
        return [
            p for p in self.products
            if needle in p.name.lower() or needle in (p.description or "").lower()
        ]

    # ---------- draft mutations ----------
    def set_product(self, product_id: Optional[int]) -> DerivedSaleMetrics:
        self.draft.product_id = product_id
        self.product = next((p for p in self.products if p.id == product_id), None)
        if self.product is not None and not self._price_overridden:
            self.draft.unit_price = self.product.sale_price
        return self.recompute()

    def set_quantity(self, quantity: object) -> DerivedSaleMetrics:
        try:
            q = int(quantity)  # type: ignore[call-overload]
        except (TypeError, ValueError, OverflowError):
            q = 0
        self.draft.quantity = q if abs(q) <= MAX_QUANTITY else 0
        return self.recompute()

    def set_unit_price(self, price: object) -> DerivedSaleMetrics:
        """Override the unit price. ``None`` drops the override."""
        if price is None:
            self._price_overridden = False
            self._price_invalid = False
            self.draft.unit_price = self.product.sale_price if self.product else ZERO
            return self.recompute()
        try:
            self.draft.unit_price = to_decimal(price)
            self._price_invalid = False
        except ValueError:
            self.draft.unit_price = ZERO
            self._price_invalid = True
        self._price_overridden = True
        return self.recompute()

    def set_date(self, when: datetime) -> None:
        if isinstance(when, datetime):
            self.draft.date = when.replace(microsecond=0)

    def set_notes(self, notes: str) -> None:
        self.draft.notes = str(notes or "").strip()

    def set_customer(self, customer_id: Optional[int]) -> None:
        self.draft.customer_id = customer_id

    def set_new_customer(self, name: str, contact_number: Optional[str] = None, email: Optional[str] = None) -> None:
        self.draft.new_customer = NewCustomer(
            name=(name or "").strip(),
            contact_number=(contact_number or "").strip() or None,
            email=(email or "").strip() or None,
        )

    def reset(self) -> None:
        self.draft = SaleDraft()
        self.product = None
        self._price_overridden = False
        self._price_invalid = False
        self.recompute()

    # ---------- derived ----------
    def recompute(self) -> DerivedSaleMetrics:
        # an unparseable price renders like an invalid quantity
        quantity = 0 if self._price_invalid else self.draft.quantity
        m = compute_sale_metrics(self.product, quantity, self.draft.unit_price)
        self.metrics.push_if_changed(m)
        return m

    @property
    def will_be_low_stock(self) -> bool:
        if self.product is None or self.draft.quantity < 1:
            return False
        remaining = self.product.stock - self.draft.quantity
        return 0 < remaining <= self.product.min_stock

    # ---------- submission ----------
    def validate_for_submit(self) -> SubmitCheck:
        errors: list[AppError] = []
        if self.product is None:
            errors.append(ValidationError("Select a product.", field="product_id"))
        if self.draft.quantity < 1:
            errors.append(ValidationError("Quantity must be >= 1.", field="quantity"))
        if self._price_invalid:
            errors.append(ValidationError("Unit price must be a number.", field="unit_price"))
        elif self.draft.unit_price < 0:
            errors.append(ValidationError("Unit price must be >= 0.", field="unit_price"))
        if self.product is not None and self.draft.quantity > self.product.stock:
            errors.append(InsufficientStockError(
                f"Not enough stock for {self.product.name}. Available: {self.product.stock}",
                available=self.product.stock,
            ))
        return SubmitCheck(errors=tuple(errors))

    def build_transaction_request(self, customer_mode: CustomerMode | str) -> SubmitCheck:
        errors = list(self.validate_for_submit().errors)

        try:
            mode = CustomerMode(customer_mode)
        except ValueError:
            errors.append(ValidationError(f"Unknown customer mode: {customer_mode}", field="customer_mode"))
            return SubmitCheck(errors=tuple(errors))

        customer_id = None
        new_customer = None
        if mode is CustomerMode.EXISTING:
            customer_id = self.draft.customer_id
            if customer_id is None:
                errors.append(ValidationError("Select a customer.", field="customer_id"))
            elif self.customers and all(c.id != customer_id for c in self.customers):
                errors.append(ValidationError("Selected customer does not exist.", field="customer_id"))
        else:
            new_customer = self.draft.new_customer
            if new_customer is None or not new_customer.name:
                errors.append(ValidationError("Customer name is required.", field="customer_name"))

        product = self.product
        if errors or product is None:
            return SubmitCheck(errors=tuple(errors))

        amount: Decimal = self.draft.unit_price * self.draft.quantity
        request = IncomeRequest(
            product_id=product.id,
            quantity=self.draft.quantity,
            amount=amount,
            description=self.draft.notes or f"Sale: {product.name} x{self.draft.quantity}",
            date=self.draft.date,
            customer_id=customer_id,
            new_customer=new_customer,
        )
        return SubmitCheck(request=request)

    async def submit(self, customer_mode: CustomerMode | str) -> SubmitCheck:
        """Send the draft once. Never retried; the user triggers it again."""
        if self._submitting:
            return SubmitCheck(errors=(ValidationError("This sale is already being saved."),))

        check = self.build_transaction_request(customer_mode)
        if not check.ok:
            log.info("sale_blocked reasons=%s", ",".join(e.kind for e in check.errors))
            for e in check.errors:
                self.errors.push(e)
            return check

        request = check.request
        if request is None:
            return check
        self._submitting = True
        self.submitting.push(True)
        try:
            tx = await self._aport.create_transaction(request)
        except InsufficientStockError as e:
            if e.available is None and self.product is not None:
                e.available = self.product.stock
            log.warning("sale_rejected_stock product_id=%s qty=%s", request.product_id, request.quantity)
            self.errors.push(e)
            return SubmitCheck(errors=(e,), request=request)
        except AppError as e:
            log.warning("sale_submit_failed product_id=%s error=%s", request.product_id, e)
            self.errors.push(e)
            return SubmitCheck(errors=(e,), request=request)
        finally:
            self._submitting = False
            self.submitting.push(False)

        log.info(
            "sale_submitted transaction_id=%s product_id=%s qty=%s amount=%s",
            tx.id, request.product_id, request.quantity, request.amount,
        )
        self.reset()
        return SubmitCheck(request=request, transaction=tx)
