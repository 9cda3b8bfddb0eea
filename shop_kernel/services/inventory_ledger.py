"""
InventoryLedger -- stock levels and the transaction approval state machine.

Responsibility:
    Records requested stock movements as Pending transactions and applies
    them to part stock on approval.  Approval is the ONLY path that changes
    ``Part.stock``.

Architecture position:
    Kernel > Services -- imperative shell.  Pure stock arithmetic lives in
    ``shop_kernel.domain.stock``; the legal status moves live in
    ``shop_kernel.domain.workflow.TRANSACTION_WORKFLOW``.

Invariants enforced:
    - Pending -> Approved | Rejected, exactly once.  Terminal states have
      no exits, so a second approval fails and leaves stock untouched.
    - ``part.stock == part.opening_stock + sum(applied_delta)`` over the
      part's Approved transactions.
    - Stock is floored at zero.  Over-consumption is absorbed, not refused;
      ``applied_delta`` records what was actually applied.

Failure modes:
    - InvalidQuantityError: quantity is not a positive int.
    - EntityNotFoundError: unknown part or transaction.
    - InvalidStateTransitionError: approve/reject of a resolved transaction.
"""

from __future__ import annotations

from dataclasses import replace

from shop_kernel.domain.entities import (
    Part,
    Transaction,
    TransactionStatus,
    TransactionType,
)
from shop_kernel.domain.stock import apply_delta, is_valid_quantity, signed_delta
from shop_kernel.domain.workflow import TRANSACTION_WORKFLOW
from shop_kernel.exceptions import (
    InvalidQuantityError,
    InvalidStateTransitionError,
)
from shop_kernel.logging_config import get_logger
from shop_kernel.services.base import BaseService
from shop_kernel.store import EntityType

logger = get_logger("services.inventory_ledger")


class InventoryLedger(BaseService):
    """
    Service for requesting and resolving stock transactions.

    Contract:
        ``request_transaction`` never changes stock.  ``approve_transaction``
        changes exactly one part's stock, once.
    """

    def request_transaction(
        self,
        part_id: str,
        quantity: int,
        tx_type: TransactionType,
        requested_by: str,
        repair_id: str | None = None,
        note: str = "",
    ) -> Transaction:
        """
        Create a Pending transaction against ``part_id``.

        Raises:
            InvalidQuantityError: quantity is not a positive integer.
            EntityNotFoundError: part does not exist.
        """
        if not is_valid_quantity(quantity):
            raise InvalidQuantityError(quantity)

        with self.store.locked():
            self.store.get(EntityType.PART, part_id)
            tx = Transaction(
                id=self.ids.new_id("TX"),
                part_id=part_id,
                quantity=quantity,
                type=TransactionType(tx_type),
                requested_by=requested_by,
                timestamp=self.clock.now(),
                repair_id=repair_id,
                note=note,
            )
            self.store.upsert(tx)

        logger.info(
            "transaction_requested",
            extra={
                "transaction_id": tx.id,
                "part_id": part_id,
                "quantity": quantity,
                "type": tx.type.value,
                "requested_by": requested_by,
                "repair_id": repair_id,
            },
        )
        return tx

    def approve_transaction(self, transaction_id: str, approver_id: str) -> Transaction:
        """
        Approve a Pending transaction and apply it to stock.

        Returns:
            The Approved transaction, with ``applied_delta`` set.

        Raises:
            EntityNotFoundError: unknown transaction (or its part vanished).
            InvalidStateTransitionError: transaction is not Pending.
        """
        with self.store.locked():
            tx = self._resolvable(transaction_id, TransactionStatus.APPROVED)
            part: Part = self.store.get(EntityType.PART, tx.part_id)

            old_stock = part.stock
            new_stock = apply_delta(old_stock, signed_delta(tx.type, tx.quantity))
            applied = new_stock - old_stock

            approved = replace(
                tx,
                status=TransactionStatus.APPROVED,
                approved_by=approver_id,
                resolved_at=self.clock.now(),
                applied_delta=applied,
            )
            self.store.upsert(replace(part, stock=new_stock))
            self.store.upsert(approved)

        logger.info(
            "transaction_approved",
            extra={
                "transaction_id": tx.id,
                "part_id": part.id,
                "approver_id": approver_id,
                "old_stock": old_stock,
                "new_stock": new_stock,
                "applied_delta": applied,
            },
        )
        if applied != signed_delta(tx.type, tx.quantity):
            logger.warning(
                "stock_floor_applied",
                extra={
                    "transaction_id": tx.id,
                    "part_id": part.id,
                    "requested_quantity": tx.quantity,
                    "applied_delta": applied,
                },
            )
        return approved

    def reject_transaction(
        self, transaction_id: str, rejected_by: str | None = None,
    ) -> Transaction:
        """Reject a Pending transaction.  No stock effect."""
        with self.store.locked():
            tx = self._resolvable(transaction_id, TransactionStatus.REJECTED)
            rejected = replace(
                tx,
                status=TransactionStatus.REJECTED,
                approved_by=rejected_by,
                resolved_at=self.clock.now(),
            )
            self.store.upsert(rejected)

        logger.info(
            "transaction_rejected",
            extra={"transaction_id": tx.id, "part_id": tx.part_id, "rejected_by": rejected_by},
        )
        return rejected

    def pending_transactions(self, part_id: str | None = None) -> list[Transaction]:
        """Pending transactions, oldest first, optionally for one part."""
        return [
            t for t in self.store.list(EntityType.TRANSACTION)
            if t.status == TransactionStatus.PENDING
            and (part_id is None or t.part_id == part_id)
        ]

    def history(self, part_id: str) -> list[Transaction]:
        """Every transaction against ``part_id``, in request order."""
        self.store.get(EntityType.PART, part_id)
        return [t for t in self.store.list(EntityType.TRANSACTION) if t.part_id == part_id]

    def _resolvable(self, transaction_id: str, target: TransactionStatus) -> Transaction:
        tx: Transaction = self.store.get(EntityType.TRANSACTION, transaction_id)
        if not TRANSACTION_WORKFLOW.allows(tx.status.value, target.value):
            logger.warning(
                "transaction_transition_refused",
                extra={
                    "transaction_id": tx.id,
                    "from_state": tx.status.value,
                    "to_state": target.value,
                },
            )
            raise InvalidStateTransitionError(
                "Transaction", tx.id, tx.status.value, target.value,
            )
        return tx
