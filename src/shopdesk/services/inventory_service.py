from __future__ import annotations

from decimal import Decimal
from typing import Optional

from shopdesk.domain.calculations import margin_percent
from shopdesk.domain.errors import NotFoundError, ValidationError
from shopdesk.domain.models import Product
from shopdesk.domain.money import ZERO, round2, to_decimal

SUGGESTED_MARKUP = Decimal("1.4")


def _money(value: object, field: str) -> Decimal:
    try:
        return to_decimal(value)
    except ValueError as e:
        raise ValidationError(f"{field} must be a number.", field=field) from e


class InventoryService:
    def __init__(self, repo):
        self.repo = repo

    def list_products(self, active_only: bool = False) -> list[Product]:
        return self.repo.list_products(active_only)

    def get_product(self, product_id: int) -> Product:
        p = self.repo.get_product(int(product_id))
        if not p:
            raise NotFoundError("Product not found.")
        return p

    def _validated_fields(
        self,
        name: str,
        cost: object,
        price: object,
        stock: int,
        min_stock: int,
        unit: str,
        description: Optional[str],
    ) -> dict:
        name = (name or "").strip()
        unit = (unit or "").strip()
        if not name:
            raise ValidationError("Name is required.", field="name")
        if not unit:
            raise ValidationError("Unit is required.", field="unit")
        if int(stock) < 0 or int(min_stock) < 0:
            raise ValidationError("Stock values must be >= 0.", field="stock")
        cost_d = _money(cost, "cost_price")
        price_d = _money(price, "sale_price")
        if cost_d < 0:
            raise ValidationError("Cost must be >= 0.", field="cost_price")
        if price_d <= 0:
            raise ValidationError("Price must be > 0.", field="sale_price")
        return {
            "name": name,
            "description": (description or "").strip() or None,
            "purchasePrice": float(cost_d),
            "salePrice": float(price_d),
            "stock": int(stock),
            "minStock": int(min_stock),
            "unit": unit,
        }

    def add_product(
        self,
        name: str,
        cost: object,
        price: object,
        stock: int,
        min_stock: int,
        unit: str = "unit",
        description: Optional[str] = None,
    ) -> Product:
        fields = self._validated_fields(name, cost, price, stock, min_stock, unit, description)
        return self.repo.create_product(fields)

    def update_product(
        self,
        product_id: int,
        name: str,
        cost: object,
        price: object,
        stock: int,
        min_stock: int,
        unit: str = "unit",
        description: Optional[str] = None,
        active: bool = True,
    ) -> Product:
        fields = self._validated_fields(name, cost, price, stock, min_stock, unit, description)
        fields["active"] = bool(active)
        return self.repo.update_product(int(product_id), fields)

    def delete_product(self, product_id: int) -> None:
        self.repo.delete_product(int(product_id))

    @staticmethod
    def is_low_stock(product: Product) -> bool:
        return int(product.stock) <= int(product.min_stock)

    @classmethod
    def stock_status(cls, product: Product) -> str:
        if not product.active:
            return "inactive"
        if int(product.stock) == 0:
            return "out-of-stock"
        if cls.is_low_stock(product):
            return "low-stock"
        return "in-stock"

    @staticmethod
    def profit_per_unit(product: Product) -> Decimal:
        return to_decimal(product.sale_price) - to_decimal(product.cost_price)

    @classmethod
    def profit_margin(cls, product: Product) -> Decimal:
        """Markup over cost, same rule as the sale form."""
        cost = to_decimal(product.cost_price)
        return margin_percent(cls.profit_per_unit(product), cost, to_decimal(product.sale_price))

    @staticmethod
    def suggested_price(cost: object, current_price: object = 0) -> Decimal:
        """Cost plus a 40% markup, offered only while the sale price is still empty."""
        current = to_decimal(current_price)
        if current != 0:
            return current
        suggested = round2(to_decimal(cost) * SUGGESTED_MARKUP)
        return suggested if suggested > 0 else ZERO

    def low_stock_products(self) -> list[Product]:
        return [p for p in self.list_products(active_only=True) if self.is_low_stock(p)]

    @staticmethod
    def search(products: list[Product], term: str, status: str = "all") -> list[Product]:
        needle = (term or "").strip().lower()
        rows = list(products)
        if needle:
            rows = [p for p in rows if needle in p.name.lower() or needle in (p.description or "").lower()]
        if status == "active":
            rows = [p for p in rows if p.active]
        elif status == "lowStock":
            rows = [p for p in rows if p.active and InventoryService.is_low_stock(p)]
        return rows
