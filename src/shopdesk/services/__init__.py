from .auth_service import AuthService
from .customer_service import CustomerService
from .dashboard_service import LiveAggregationScheduler
from .expense_service import ExpenseService
from .inventory_service import InventoryService
from .reporting_service import ReportingService
from .sales_service import SaleComputationEngine

__all__ = [
    "AuthService",
    "CustomerService",
    "LiveAggregationScheduler",
    "ExpenseService",
    "InventoryService",
    "ReportingService",
    "SaleComputationEngine",
]
