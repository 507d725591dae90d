from __future__ import annotations

import logging
import re
from typing import Any, Optional

import requests

from shopdesk.application.session import SessionContext
from shopdesk.domain.dates import parse_timestamp
from shopdesk.domain.errors import (
    AuthorizationError,
    InsufficientStockError,
    NotFoundError,
    RequestFailedError,
    SessionExpiredError,
)
from shopdesk.domain.models import (
    Customer,
    FixedExpense,
    Frequency,
    IncomeDetails,
    NewCustomer,
    Product,
    Transaction,
    TransactionFilter,
    TransactionRequest,
    TransactionType,
)
from shopdesk.domain.money import to_decimal

log = logging.getLogger("shopdesk.http")

_AVAILABLE_RE = re.compile(r"(?:available|disponible)\D{0,12}(\d+)", re.IGNORECASE)


def _error_message(r: requests.Response) -> str:
    try:
        body = r.json()
    except ValueError:
        return (r.text or "").strip()
    if isinstance(body, dict):
        for key in ("message", "error", "detail"):
            if isinstance(body.get(key), str):
                return body[key]
    return ""


def _available_from(message: str) -> Optional[int]:
    m = _AVAILABLE_RE.search(message or "")
    return int(m.group(1)) if m else None


def _opt_int(value: Any) -> Optional[int]:
    return None if value is None else int(value)


def parse_product(d: dict) -> Product:
    # purchasePrice is what the backend stores; costPrice is an older alias
    cost = d.get("purchasePrice", d.get("costPrice"))
    if cost is None:
        raise ValueError("product without purchasePrice")
    stock = int(d.get("stock", 0))
    min_stock = int(d.get("minStock", 0))
    if stock < 0 or min_stock < 0:
        raise ValueError(f"product {d.get('id')} has negative stock values")
    return Product(
        id=int(d["id"]),
        name=str(d.get("name") or ""),
        cost_price=to_decimal(cost),
        sale_price=to_decimal(d.get("salePrice")),
        stock=stock,
        min_stock=min_stock,
        unit=str(d.get("unit") or "unit"),
        active=bool(d.get("active", True)),
        description=d.get("description"),
    )


def parse_customer(d: dict) -> Customer:
    return Customer(
        id=int(d["id"]),
        name=str(d.get("name") or ""),
        contact_number=d.get("contactNumber"),
        email=d.get("email"),
    )


def parse_transaction(d: dict) -> Transaction:
    kind = TransactionType(str(d["type"]).upper())
    details = None
    if kind is TransactionType.INCOME:
        customer = d.get("customer") or {}
        details = IncomeDetails(
            product_id=_opt_int(d.get("productId")),
            quantity=_opt_int(d.get("quantity")),
            customer_id=_opt_int(d.get("customerId", customer.get("id"))),
            customer_name=customer.get("name"),
        )
    return Transaction(
        id=int(d["id"]),
        type=kind,
        amount=to_decimal(d["amount"]),
        date=parse_timestamp(d["transactionDate"]),
        description=str(d.get("description") or ""),
        details=details,
    )


def parse_fixed_expense(d: dict) -> FixedExpense:
    return FixedExpense(
        id=int(d["id"]),
        name=str(d.get("name") or ""),
        amount=to_decimal(d["amount"]),
        frequency=Frequency(str(d["frequency"]).upper()),
        description=d.get("description"),
        active=bool(d.get("active", True)),
    )


class HttpDataPort:
    """Data port over the REST backend. Blocking; wrap with AsyncDataPort on the event loop."""

    def __init__(
        self,
        base_url: str,
        session: SessionContext,
        timeout: float = 10,
        http: Optional[requests.Session] = None,
    ):
        self.base_url = base_url.rstrip("/")
        self.session = session
        self.timeout = timeout
        self.http = http or requests.Session()

    def _request(self, method: str, path: str, *, params: Optional[dict] = None, json: Any = None, auth: bool = True) -> Any:
        headers = {"Accept": "application/json"}
        token = self.session.token
        if auth and token:
            headers["Authorization"] = f"Bearer {token}"

        try:
            r = self.http.request(
                method,
                f"{self.base_url}{path}",
                params=params,
                json=json,
                headers=headers,
                timeout=self.timeout,
            )
        except requests.RequestException as e:
            log.warning("http_transport_failed method=%s path=%s error=%s", method, path, e)
            raise RequestFailedError(str(e)) from e

        status = r.status_code
        if status >= 400:
            message = _error_message(r)
            log.warning("http_error method=%s path=%s status=%s message=%s", method, path, status, message)
            if status == 401 and auth:
                self.session.expire()
                raise SessionExpiredError(message or "Unauthorized")
            if status in (401, 403):
                raise AuthorizationError(message or "Forbidden")
            if status == 404:
                raise NotFoundError(message or f"{path} not found")
            if status == 400 and "stock" in message.lower():
                raise InsufficientStockError(message, available=_available_from(message))
            raise RequestFailedError(message or f"HTTP {status}", status=status)

        if status == 204 or not r.content:
            return None
        try:
            return r.json()
        except ValueError as e:
            raise RequestFailedError(f"Invalid JSON from {path}", status=status) from e

    def _parse_list(self, rows: Any, parser, what: str) -> list:
        if not isinstance(rows, list):
            raise RequestFailedError(f"Expected a list of {what}.")
        try:
            return [parser(row) for row in rows]
        except (KeyError, TypeError, ValueError, AttributeError) as e:
            raise RequestFailedError(f"Malformed {what} payload: {e}") from e

    def _parse_one(self, row: Any, parser, what: str):
        try:
            return parser(row)
        except (KeyError, TypeError, ValueError, AttributeError) as e:
            raise RequestFailedError(f"Malformed {what} payload: {e}") from e

    # ---------- auth ----------
    def login(self, username: str, password: str) -> dict:
        body = self._request("POST", "/api/auth/login", json={"username": username, "password": password}, auth=False)
        if not isinstance(body, dict) or not body.get("token"):
            raise AuthorizationError("Login response without token.")
        return body

    def register(self, fields: dict) -> dict:
        return self._request("POST", "/api/auth/register", json=fields, auth=False) or {}

    # ---------- products ----------
    def list_products(self, active_only: bool = True) -> list[Product]:
        rows = self._request("GET", "/api/products", params={"activeOnly": str(bool(active_only)).lower()})
        return self._parse_list(rows, parse_product, "products")

    def get_product(self, product_id: int) -> Product:
        return self._parse_one(self._request("GET", f"/api/products/{int(product_id)}"), parse_product, "product")

    def create_product(self, fields: dict) -> Product:
        return self._parse_one(self._request("POST", "/api/products", json=fields), parse_product, "product")

    def update_product(self, product_id: int, fields: dict) -> Product:
        body = self._request("PUT", f"/api/products/{int(product_id)}", json=fields)
        return self._parse_one(body, parse_product, "product")

    def delete_product(self, product_id: int) -> None:
        self._request("DELETE", f"/api/products/{int(product_id)}")

    # ---------- customers ----------
    def list_customers(self) -> list[Customer]:
        return self._parse_list(self._request("GET", "/api/customers"), parse_customer, "customers")

    def create_customer(self, customer: NewCustomer) -> Customer:
        body = self._request("POST", "/api/customers", json=customer.to_payload())
        return self._parse_one(body, parse_customer, "customer")

    # ---------- transactions ----------
    def list_transactions(self, flt: TransactionFilter) -> list[Transaction]:
        rows = self._request("GET", "/api/transactions", params=flt.to_params())
        return self._parse_list(rows, parse_transaction, "transactions")

    def create_transaction(self, request: TransactionRequest) -> Transaction:
        body = self._request("POST", "/api/transactions", json=request.to_payload())
        return self._parse_one(body, parse_transaction, "transaction")

    # ---------- fixed expenses ----------
    def list_fixed_expenses(self, active_only: Optional[bool] = None) -> list[FixedExpense]:
        params = None if active_only is None else {"activeOnly": str(bool(active_only)).lower()}
        rows = self._request("GET", "/api/fixed-expenses", params=params)
        return self._parse_list(rows, parse_fixed_expense, "fixed expenses")

    def create_fixed_expense(self, fields: dict) -> FixedExpense:
        body = self._request("POST", "/api/fixed-expenses", json=fields)
        return self._parse_one(body, parse_fixed_expense, "fixed expense")

    def update_fixed_expense(self, expense_id: int, fields: dict) -> FixedExpense:
        body = self._request("PUT", f"/api/fixed-expenses/{int(expense_id)}", json=fields)
        return self._parse_one(body, parse_fixed_expense, "fixed expense")

    def set_fixed_expense_status(self, expense_id: int, active: bool) -> None:
        self._request("PATCH", f"/api/fixed-expenses/{int(expense_id)}/status", params={"active": str(bool(active)).lower()})
