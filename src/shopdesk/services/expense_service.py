from __future__ import annotations

import logging
from datetime import datetime
from decimal import Decimal
from typing import Optional

from shopdesk.domain.errors import ValidationError
from shopdesk.domain.models import ExpenseRequest, FixedExpense, Frequency, Transaction
from shopdesk.domain.money import round2, to_decimal

log = logging.getLogger(__name__)


def _amount(value: object) -> Decimal:
    try:
        amount = round2(value)
    except ValueError as e:
        raise ValidationError("Amount must be a number.", field="amount") from e
    if amount <= 0:
        raise ValidationError("Amount must be > 0.", field="amount")
    return amount


class ExpenseService:
    def __init__(self, repo):
        self.repo = repo

    def create_expense(self, description: str, amount: object, when: Optional[datetime] = None) -> Transaction:
        description = (description or "").strip()
        if not description:
            raise ValidationError("Description is required.", field="description")
        request = ExpenseRequest(
            description=description,
            amount=_amount(amount),
            date=(when or datetime.now()).replace(microsecond=0),
        )
        tx = self.repo.create_transaction(request)
        log.info("expense_created transaction_id=%s amount=%s", tx.id, request.amount)
        return tx

    # ---------- fixed expenses ----------
    def list_fixed_expenses(self, active_only: Optional[bool] = None) -> list[FixedExpense]:
        return self.repo.list_fixed_expenses(active_only)

    def _fixed_fields(self, name: str, amount: object, frequency: str, description: Optional[str]) -> dict:
        name = (name or "").strip()
        if not name:
            raise ValidationError("Name is required.", field="name")
        try:
            freq = Frequency(str(frequency).upper())
        except ValueError as e:
            raise ValidationError("Frequency must be MONTHLY, WEEKLY or YEARLY.", field="frequency") from e
        return {
            "name": name,
            "description": (description or "").strip() or None,
            "amount": float(_amount(amount)),
            "frequency": freq.value,
        }

    def create_fixed_expense(self, name: str, amount: object, frequency: str, description: Optional[str] = None) -> FixedExpense:
        return self.repo.create_fixed_expense(self._fixed_fields(name, amount, frequency, description))

    def update_fixed_expense(
        self, expense_id: int, name: str, amount: object, frequency: str, description: Optional[str] = None
    ) -> FixedExpense:
        return self.repo.update_fixed_expense(int(expense_id), self._fixed_fields(name, amount, frequency, description))

    def set_fixed_expense_active(self, expense_id: int, active: bool) -> None:
        self.repo.set_fixed_expense_status(int(expense_id), bool(active))

    def monthly_fixed_cost(self) -> Decimal:
        """Active fixed expenses normalised to a monthly amount."""
        factors = {Frequency.MONTHLY: 1, Frequency.WEEKLY: to_decimal("52") / 12, Frequency.YEARLY: to_decimal("1") / 12}
        total = to_decimal(0)
        for fe in self.list_fixed_expenses(active_only=True):
            total += to_decimal(fe.amount) * factors[fe.frequency]
        return round2(total)
