from __future__ import annotations

from decimal import Decimal
from typing import Iterable, Optional

from shopdesk.domain.models import (
    DerivedSaleMetrics,
    Product,
    StockRisk,
    Totals,
    Transaction,
    TransactionType,
)
from shopdesk.domain.money import CENT, HUNDRED, ZERO, round2, to_decimal


def classify_stock(remaining: int, min_stock: int) -> StockRisk:
    if remaining <= 0:
        return StockRisk.DEPLETED
    if remaining <= min_stock:
        return StockRisk.LOW
    return StockRisk.OK


def margin_percent(profit: Decimal, cost_basis: Decimal, unit_price: Decimal) -> Decimal:
    # zero (or sub-cent) cost with a positive price is reported as all profit
    if cost_basis >= CENT:
        return round2(profit / cost_basis * HUNDRED)
    return HUNDRED if unit_price > 0 else ZERO


def compute_sale_metrics(product: Optional[Product], quantity: int, unit_price: object) -> DerivedSaleMetrics:
    """Derive totals, profit, margin and projected stock for one sale line.

    Without a product everything is zero. A quantity below 1 yields zero totals
    with the stock left untouched, so callers can render an invalid state.
    """
    if product is None:
        return DerivedSaleMetrics()

    price = to_decimal(unit_price)
    qty = int(quantity) if int(quantity) >= 1 else 0
    remaining = int(product.stock) - qty

    if qty == 0:
        return DerivedSaleMetrics(
            remaining_stock=remaining,
            stock_risk=classify_stock(remaining, int(product.min_stock)),
        )

    total = price * qty
    cost_basis = to_decimal(product.cost_price) * qty
    profit = total - cost_basis
    return DerivedSaleMetrics(
        total_amount=total,
        estimated_profit=profit,
        profit_margin_percent=margin_percent(profit, cost_basis, price),
        remaining_stock=remaining,
        stock_risk=classify_stock(remaining, int(product.min_stock)),
    )


def compute_totals(transactions: Iterable[Transaction]) -> Totals:
    income = ZERO
    expense = ZERO
    for t in transactions:
        if t.type is TransactionType.INCOME:
            income += to_decimal(t.amount)
        elif t.type is TransactionType.EXPENSE:
            expense += to_decimal(t.amount)
    return Totals(income=round2(income), expense=round2(expense), net=round2(income - expense))
