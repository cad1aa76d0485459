"""
Data-source catalog.

Aggregate queries may only touch the tables and columns listed here. Every
identifier reaching SQL is checked against this allowlist first.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from typing import Optional


@dataclass(frozen=True)
class DataSource:
    name: str
    table: str
    numeric_fields: frozenset[str]
    filter_fields: frozenset[str]
    time_fields: frozenset[str] = field(default_factory=lambda: frozenset({"created_at"}))

    def allows_aggregate(self, column: str) -> bool:
        # COUNT may target any known column (or the id)
        return column in self.numeric_fields or column in self.filter_fields or column == "id"

    def allows_filter(self, column: str) -> bool:
        return column in self.filter_fields or column in self.numeric_fields

    def allows_time(self, column: str) -> bool:
        return column in self.time_fields


DATA_SOURCES: dict[str, DataSource] = {
    "orders": DataSource(
        name="orders",
        table="orders",
        numeric_fields=frozenset(
            {"total_amount", "subtotal", "tax_amount", "shipping_amount", "discount_amount", "item_count"}
        ),
        filter_fields=frozenset({"status", "payment_status", "channel", "customer_id", "currency"}),
        time_fields=frozenset({"created_at", "updated_at", "completed_at"}),
    ),
    "products": DataSource(
        name="products",
        table="products",
        numeric_fields=frozenset({"price", "cost", "stock_quantity"}),
        filter_fields=frozenset({"status", "category", "brand", "sku"}),
        time_fields=frozenset({"created_at", "updated_at"}),
    ),
    "customers": DataSource(
        name="customers",
        table="customers",
        numeric_fields=frozenset({"lifetime_value", "order_count"}),
        filter_fields=frozenset({"status", "segment", "country", "source"}),
        time_fields=frozenset({"created_at", "last_order_at"}),
    ),
    "analytics": DataSource(
        name="analytics",
        table="analytics_events",
        numeric_fields=frozenset({"value", "duration_seconds"}),
        filter_fields=frozenset({"event_type", "session_id", "page", "source"}),
        time_fields=frozenset({"created_at"}),
    ),
    "inventory": DataSource(
        name="inventory",
        table="inventory_updates",
        numeric_fields=frozenset({"quantity_change", "quantity_after", "unit_cost"}),
        filter_fields=frozenset({"product_id", "warehouse_id", "reason"}),
        time_fields=frozenset({"created_at"}),
    ),
    "payments": DataSource(
        name="payments",
        table="payments",
        numeric_fields=frozenset({"amount", "fee_amount", "refunded_amount"}),
        filter_fields=frozenset({"status", "method", "provider", "currency", "order_id"}),
        time_fields=frozenset({"created_at", "paid_at"}),
    ),
}


def get_data_source(name: str) -> Optional[DataSource]:
    """Look up a data source by its catalog name."""
    return DATA_SOURCES.get(name)
