from __future__ import annotations

import sys
from typing import Callable, TextIO

from shopdesk.domain.dates import to_naive_timestamp
from shopdesk.domain.errors import AppError
from shopdesk.domain.models import AggregationState, DerivedSaleMetrics, TransactionType


def format_money(value) -> str:
    return f"{value:,.2f}"


class ConsoleDashboard:
    """Renders scheduler pushes as plain text lines."""

    def __init__(self, out: TextIO = sys.stdout, max_rows: int = 10):
        self.out = out
        self.max_rows = max_rows
        self._unsubscribe: list[Callable[[], None]] = []

    def attach(self, scheduler) -> None:
        self._unsubscribe = [
            scheduler.state.subscribe(self.render_state),
            scheduler.loading.subscribe(self.render_loading),
            scheduler.errors.subscribe(self.render_error),
        ]

    def detach(self) -> None:
        for unsubscribe in self._unsubscribe:
            unsubscribe()
        self._unsubscribe = []

    def render_loading(self, loading: bool) -> None:
        if loading:
            print("Loading…", file=self.out)

    def render_error(self, error: AppError) -> None:
        print(f"! {error.user_message}", file=self.out)

    def render_state(self, state: AggregationState) -> None:
        if state.fetched_at is None:
            return
        t = state.totals
        print(
            f"[{to_naive_timestamp(state.fetched_at)}] income {format_money(t.income)} | "
            f"expense {format_money(t.expense)} | net {format_money(t.net)} | "
            f"{len(state.transactions)} transactions",
            file=self.out,
        )
        for tx in state.transactions[: self.max_rows]:
            sign = "+" if tx.type is TransactionType.INCOME else "-"
            amount = sign + format_money(tx.amount)
            print(f"  {to_naive_timestamp(tx.date)}  {amount:>13}  {tx.description}", file=self.out)


def render_sale_metrics(m: DerivedSaleMetrics, out: TextIO = sys.stdout) -> None:
    print(f"Total:            {format_money(m.total_amount)}", file=out)
    print(f"Estimated profit: {format_money(m.estimated_profit)}", file=out)
    print(f"Margin:           {m.profit_margin_percent}%", file=out)
    print(f"Remaining stock:  {m.remaining_stock} ({m.stock_risk.value})", file=out)
