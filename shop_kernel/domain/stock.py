"""
Stock arithmetic (``shop_kernel.domain.stock``).

Responsibility
--------------
The pure rules behind the inventory ledger: how a transaction's type maps
to a signed delta, how a delta is applied to a stock count, and how a
part's expected stock is rebuilt from its approved transactions.

Invariants
----------
* Only ``Stock Intake`` adds stock; every other type removes it.
* Applied stock never drops below zero.  Over-consumption is absorbed by
  the floor rather than refused, and the absorbed part is visible as the
  difference between the requested delta and ``applied_delta``.
* ``part.stock == part.opening_stock + sum(applied_delta)`` over the
  part's approved transactions.
"""

from __future__ import annotations

from dataclasses import dataclass
from typing import Iterable

from shop_kernel.domain.entities import (
    Part,
    Transaction,
    TransactionStatus,
    TransactionType,
)


def signed_delta(tx_type: TransactionType, quantity: int) -> int:
    """Requested stock change for a transaction of ``tx_type``."""
    if tx_type == TransactionType.STOCK_INTAKE:
        return quantity
    return -quantity


def apply_delta(stock: int, delta: int) -> int:
    """New stock after ``delta``, floored at zero."""
    return max(0, stock + delta)


def is_valid_quantity(quantity: object) -> bool:
    """Positive ``int`` (``bool`` is not a quantity)."""
    return isinstance(quantity, int) and not isinstance(quantity, bool) and quantity > 0


@dataclass(frozen=True)
class StockReconciliation:
    """Comparison of a part's stored stock with its approved history."""

    part_id: str
    stock: int
    opening_stock: int
    approved_delta: int
    requested_delta: int
    approved_count: int

    @property
    def expected_stock(self) -> int:
        return self.opening_stock + self.approved_delta

    @property
    def is_balanced(self) -> bool:
        return self.stock == self.expected_stock

    @property
    def absorbed_by_floor(self) -> int:
        """Units requested for removal that the zero floor swallowed."""
        return self.approved_delta - self.requested_delta


def reconcile(part: Part, transactions: Iterable[Transaction]) -> StockReconciliation:
    """Rebuild ``part``'s expected stock from its approved transactions."""
    approved = [
        t for t in transactions
        if t.part_id == part.id and t.status == TransactionStatus.APPROVED
    ]
    return StockReconciliation(
        part_id=part.id,
        stock=part.stock,
        opening_stock=part.opening_stock,
        approved_delta=sum(t.applied_delta for t in approved),
        requested_delta=sum(signed_delta(t.type, t.quantity) for t in approved),
        approved_count=len(approved),
    )
