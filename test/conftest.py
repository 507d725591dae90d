import sys
from datetime import datetime
from decimal import Decimal
from pathlib import Path

ROOT = Path(__file__).resolve().parents[1]
SRC = ROOT / "src"
if str(SRC) not in sys.path:
    sys.path.insert(0, str(SRC))


def make_product(pid=1, name="Widget", cost="60", price="100", stock=10, min_stock=3, active=True):
    from shopdesk.domain.models import Product

    return Product(
        id=pid,
        name=name,
        cost_price=Decimal(cost),
        sale_price=Decimal(price),
        stock=stock,
        min_stock=min_stock,
        active=active,
    )


def make_tx(tid, kind, amount, when, product_id=None, quantity=None):
    from shopdesk.domain.models import IncomeDetails, Transaction, TransactionType

    kind = TransactionType(kind)
    details = None
    if kind is TransactionType.INCOME:
        details = IncomeDetails(product_id=product_id, quantity=quantity, customer_id=1, customer_name="Ana")
    if isinstance(when, str):
        when = datetime.fromisoformat(when)
    return Transaction(id=tid, type=kind, amount=Decimal(str(amount)), date=when, description=f"tx {tid}", details=details)


class FakePort:
    """In-memory blocking data port."""

    def __init__(self, products=(), customers=(), transactions=()):
        self.products = list(products)
        self.customers = list(customers)
        self.transactions = list(transactions)
        self.created = []
        self.create_error = None
        self.list_error = None
        self.calls = []

    def list_products(self, active_only=True):
        self.calls.append(("list_products", active_only))
        if self.list_error is not None:
            raise self.list_error
        return list(self.products)

    def get_product(self, product_id):
        return next((p for p in self.products if p.id == product_id), None)

    def list_customers(self):
        return list(self.customers)

    def list_transactions(self, flt):
        self.calls.append(("list_transactions", flt))
        return list(self.transactions)

    def create_transaction(self, request):
        from shopdesk.domain.models import Transaction

        self.calls.append(("create_transaction", request))
        if self.create_error is not None:
            raise self.create_error
        self.created.append(request)
        return Transaction(
            id=100 + len(self.created),
            type=request.type,
            amount=request.amount,
            date=request.date,
            description=request.description,
        )
