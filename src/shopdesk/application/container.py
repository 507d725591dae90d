from __future__ import annotations

from dataclasses import dataclass
from typing import Optional

import requests

from shopdesk.application.session import SessionContext
from shopdesk.config import Settings, load_settings
from shopdesk.repositories.async_port import AsyncDataPort
from shopdesk.repositories.http_repo import HttpDataPort
from shopdesk.services.auth_service import AuthService
from shopdesk.services.customer_service import CustomerService
from shopdesk.services.dashboard_service import LiveAggregationScheduler
from shopdesk.services.expense_service import ExpenseService
from shopdesk.services.inventory_service import InventoryService
from shopdesk.services.reporting_service import ReportingService
from shopdesk.services.sales_service import SaleComputationEngine


@dataclass(frozen=True)
class AppContainer:
    settings: Settings
    session: SessionContext
    port: HttpDataPort
    inventory: InventoryService
    customers: CustomerService
    expenses: ExpenseService
    reporting: ReportingService
    auth: AuthService

    def new_sale_engine(self) -> SaleComputationEngine:
        """One engine per opened sale form."""
        return SaleComputationEngine(self.port)

    def new_dashboard(self) -> LiveAggregationScheduler:
        """One scheduler per dashboard view instance."""
        return LiveAggregationScheduler(AsyncDataPort(self.port), debounce_ms=self.settings.debounce_ms)


def build_container(settings: Optional[Settings] = None, http: Optional[requests.Session] = None) -> AppContainer:
    settings = settings or load_settings()
    session = SessionContext()
    port = HttpDataPort(settings.api_url, session, timeout=settings.http_timeout, http=http)

    inventory = InventoryService(port)
    customers = CustomerService(port)
    expenses = ExpenseService(port)
    reporting = ReportingService(inventory)
    auth = AuthService(port, session)

    return AppContainer(
        settings=settings,
        session=session,
        port=port,
        inventory=inventory,
        customers=customers,
        expenses=expenses,
        reporting=reporting,
        auth=auth,
    )
