from __future__ import annotations

from typing import Iterable, Optional

from openpyxl import Workbook
from openpyxl.styles import Font
from openpyxl.utils import get_column_letter
from openpyxl.worksheet.table import Table, TableStyleInfo

from shopdesk.domain.dates import to_naive_timestamp
from shopdesk.domain.models import (
    AggregationState,
    Product,
    SalesSummary,
    TopProduct,
    Transaction,
    TransactionType,
)
from shopdesk.domain.money import ZERO, round2


class ReportingService:
    def __init__(self, inventory_service=None):
        self.inventory = inventory_service

    def _catalog(self) -> dict[int, Product]:
        if self.inventory is None:
            return {}
        return {p.id: p for p in self.inventory.list_products(active_only=False)}

    @staticmethod
    def _sale_cost(t: Transaction, catalog: dict[int, Product]):
        d = t.details
        if d is None or d.product_id is None or d.product_id not in catalog:
            return ZERO
        return catalog[d.product_id].cost_price * int(d.quantity or 0)

    def summarize_sales(
        self,
        transactions: Iterable[Transaction],
        products: Optional[Iterable[Product]] = None,
        top: int = 5,
    ) -> SalesSummary:
        """Income totals, profit and the best sellers by revenue.

        Profit is amount minus cost times quantity; sales whose product cost is
        unknown count their full amount.
        """
        catalog = {p.id: p for p in products} if products is not None else self._catalog()
        sales = [t for t in transactions if t.type is TransactionType.INCOME]

        total = sum((t.amount for t in sales), ZERO)
        count = len(sales)
        average = round2(total / count) if count else ZERO

        profit = ZERO
        for t in sales:
            profit += t.amount - self._sale_cost(t, catalog)

        by_product: dict[int, list] = {}
        for t in sales:
            if t.details is None or t.details.product_id is None:
                continue
            pid = t.details.product_id
            row = by_product.setdefault(pid, [0, ZERO])
            row[0] += int(t.details.quantity or 0)
            row[1] += t.amount

        ranked = sorted(by_product.items(), key=lambda kv: kv[1][1], reverse=True)[:top]
        top_products = tuple(
            TopProduct(
                product_id=pid,
                product_name=catalog[pid].name if pid in catalog else f"#{pid}",
                quantity=qty,
                total=round2(amount),
            )
            for pid, (qty, amount) in ranked
        )
        return SalesSummary(
            total_sales=round2(total),
            sales_count=count,
            average_ticket=average,
            total_profit=round2(profit),
            top_products=top_products,
        )

    def export_transactions_excel(self, path: str, state: AggregationState) -> None:
        wb = Workbook()

        def money(cell):
            cell.number_format = "#,##0.00"

        def bold_row(ws, r):
            for c in ws[r]:
                c.font = Font(bold=True)

        def set_widths(ws, widths: dict[str, int]):
            for col, w in widths.items():
                ws.column_dimensions[col].width = w

        def add_table(ws, name: str, start_row: int, start_col: int, end_row: int, end_col: int):
            ref = f"{get_column_letter(start_col)}{start_row}:{get_column_letter(end_col)}{end_row}"
            tab = Table(displayName=name, ref=ref)
            tab.tableStyleInfo = TableStyleInfo(
                name="TableStyleMedium9",
                showRowStripes=True,
                showColumnStripes=False,
            )
            ws.add_table(tab)

        catalog = self._catalog()
        summary = self.summarize_sales(state.transactions, catalog.values())

        # -------- 1) Summary --------
        ws = wb.active
        ws.title = "Summary"
        ws["A1"] = "Summary"
        ws["A1"].font = Font(bold=True, size=14)

        window = ""
        if state.filter is not None and state.filter.range is not None:
            start, end = state.filter.range.as_params()
            window = f"{start}  ->  {end}"
        ws["A3"] = "Window"
        ws["B3"] = window

        rows = [
            ("Transactions", len(state.transactions), "int"),
            ("Income", float(state.totals.income), "money"),
            ("Expense", float(state.totals.expense), "money"),
            ("Net", float(state.totals.net), "money"),
            ("Sales count", summary.sales_count, "int"),
            ("Average ticket", float(summary.average_ticket), "money"),
            ("Profit", float(summary.total_profit), "money"),
        ]
        start_row = 5
        for i, (label, val, kind) in enumerate(rows):
            r = start_row + i
            ws[f"A{r}"] = label
            ws[f"B{r}"] = val
            if kind == "money":
                money(ws[f"B{r}"])

        set_widths(ws, {"A": 28, "B": 44})

        # -------- 2) Transactions --------
        ws2 = wb.create_sheet("Transactions")
        ws2.append(["ID", "Date", "Type", "Description", "Product", "Qty", "Customer", "Amount"])
        bold_row(ws2, 1)

        out_row = 2
        for t in state.transactions:
            d = t.details
            product = ""
            if d is not None and d.product_id is not None:
                known = catalog.get(d.product_id)
                product = known.name if known is not None else f"#{d.product_id}"
            ws2.append([
                int(t.id), to_naive_timestamp(t.date), t.type.value, t.description,
                product, (d.quantity if d else None), ((d.customer_name or "") if d else ""),
                float(t.amount),
            ])
            money(ws2[f"H{out_row}"])
            out_row += 1

        ws2.freeze_panes = "A2"
        set_widths(ws2, {"A": 8, "B": 22, "C": 10, "D": 40, "E": 28, "F": 6, "G": 24, "H": 14})
        if ws2.max_row >= 2:
            add_table(ws2, "TransactionsDetail", 1, 1, ws2.max_row, 8)

        # -------- 3) Top products --------
        ws3 = wb.create_sheet("Top Products")
        ws3.append(["Product ID", "Product", "Qty", "Total"])
        bold_row(ws3, 1)
        for i, tp in enumerate(summary.top_products, start=2):
            ws3.append([tp.product_id, tp.product_name, tp.quantity, float(tp.total)])
            money(ws3[f"D{i}"])
        set_widths(ws3, {"A": 12, "B": 34, "C": 8, "D": 16})

        wb.save(path)
