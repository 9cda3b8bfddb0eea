"""Selectors for the shop kernel (read side)."""

from shop_kernel.selectors.inventory_selector import (
    InventorySelector,
    LowStockAlert,
    StockValuation,
)
from shop_kernel.selectors.report_selector import (
    DashboardSummary,
    RepairReport,
    ReportSelector,
    RevenueReport,
)

__all__ = [
    "DashboardSummary",
    "InventorySelector",
    "LowStockAlert",
    "RepairReport",
    "ReportSelector",
    "RevenueReport",
    "StockValuation",
]
