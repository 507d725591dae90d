from __future__ import annotations

import re
from typing import Optional

from shopdesk.domain.errors import ValidationError
from shopdesk.domain.models import Customer, NewCustomer

_EMAIL_RE = re.compile(r"^[^@\s]+@[^@\s]+\.[^@\s]+$")


def validate_new_customer(name: str, contact_number: Optional[str] = None, email: Optional[str] = None) -> NewCustomer:
    name = (name or "").strip()
    email = (email or "").strip() or None
    if not name:
        raise ValidationError("Customer name is required.", field="customer_name")
    if email and not _EMAIL_RE.match(email):
        raise ValidationError("Email is not valid.", field="customer_email")
    return NewCustomer(name=name, contact_number=(contact_number or "").strip() or None, email=email)


class CustomerService:
    def __init__(self, repo):
        self.repo = repo

    def list_customers(self) -> list[Customer]:
        return sorted(self.repo.list_customers(), key=lambda c: c.name.lower())

    def create_customer(self, name: str, contact_number: Optional[str] = None, email: Optional[str] = None) -> Customer:
        return self.repo.create_customer(validate_new_customer(name, contact_number, email))
