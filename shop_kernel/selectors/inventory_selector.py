"""
Module: shop_kernel.selectors.inventory_selector
Responsibility: Read-only inventory queries -- low-stock alerts, per-part
    stock reconciliation against approved transactions, and stock valuation.
Architecture position: Kernel > Selectors.

Invariants checked:
    ``part.stock == part.opening_stock + sum(applied_delta)`` over Approved
    transactions.  ``unbalanced_parts`` returning anything means that
    invariant was broken outside the ledger.
"""

from __future__ import annotations

from dataclasses import dataclass
from decimal import Decimal

from shop_kernel.domain.entities import Part, TransactionStatus, TransactionType
from shop_kernel.domain.money import sum_amounts
from shop_kernel.domain.stock import StockReconciliation, reconcile
from shop_kernel.selectors.base import BaseSelector
from shop_kernel.store import EntityType


@dataclass(frozen=True)
class LowStockAlert:
    part_id: str
    name: str
    stock: int
    min_stock_level: int
    pending_intake: int

    @property
    def shortfall(self) -> int:
        return max(0, self.min_stock_level - self.stock)


@dataclass(frozen=True)
class StockValuation:
    part_count: int
    units_on_hand: int
    cost_value: Decimal
    sale_value: Decimal


class InventorySelector(BaseSelector):
    """Reads part stock and its transaction history."""

    def low_stock(self) -> list[LowStockAlert]:
        """Parts at or below their minimum level, in catalog order."""
        pending = self._pending_intake_by_part()
        return [
            LowStockAlert(
                part_id=p.id,
                name=p.name,
                stock=p.stock,
                min_stock_level=p.min_stock_level,
                pending_intake=pending.get(p.id, 0),
            )
            for p in self.store.list(EntityType.PART)
            if p.is_low_stock
        ]

    def reconcile_part(self, part_id: str) -> StockReconciliation:
        part: Part = self.store.get(EntityType.PART, part_id)
        return reconcile(part, self.store.list(EntityType.TRANSACTION))

    def reconcile_all(self) -> list[StockReconciliation]:
        transactions = self.store.list(EntityType.TRANSACTION)
        return [reconcile(p, transactions) for p in self.store.list(EntityType.PART)]

    def unbalanced_parts(self) -> list[StockReconciliation]:
        return [r for r in self.reconcile_all() if not r.is_balanced]

    def valuation(self) -> StockValuation:
        parts = self.store.list(EntityType.PART)
        return StockValuation(
            part_count=len(parts),
            units_on_hand=sum(p.stock for p in parts),
            cost_value=sum_amounts(p.cost_price * p.stock for p in parts),
            sale_value=sum_amounts(p.sale_price * p.stock for p in parts),
        )

    def visible_parts(self) -> list[Part]:
        """Parts whose category is visible, ordered by category sort order."""
        order = {
            c.name: c.sort_order
            for c in self.store.list(EntityType.INVENTORY_CATEGORY)
            if c.is_visible
        }
        parts = [p for p in self.store.list(EntityType.PART) if p.category in order]
        return sorted(parts, key=lambda p: order[p.category])

    def _pending_intake_by_part(self) -> dict[str, int]:
        totals: dict[str, int] = {}
        for t in self.store.list(EntityType.TRANSACTION):
            if t.status == TransactionStatus.PENDING and t.type == TransactionType.STOCK_INTAKE:
                totals[t.part_id] = totals.get(t.part_id, 0) + t.quantity
        return totals
