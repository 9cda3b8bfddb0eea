"""
RepairWorkflow -- repair job lifecycle and part consumption.

Responsibility:
    Opens repair jobs, moves them through
    Received -> In Progress -> Completed -> Delivered (or Cancelled from any
    open state), and draws parts from stock through the inventory ledger.

Architecture position:
    Kernel > Services -- imperative shell.  Depends on InventoryLedger for
    every stock effect; never touches ``Part.stock`` itself.

Invariants enforced:
    - Only transitions declared in REPAIR_WORKFLOW are accepted.
    - Parts are consumed only while the job is Received or In Progress.
    - Every PartUsage on a job names the ledger transaction it created.
    - Cancelling a job rejects its still-Pending part transactions.
    - An invoiced job cannot be cancelled.

Failure modes:
    - InvalidStateTransitionError: illegal status move or consumption on a
      closed job.
    - MissingFieldError: open_job without customer name or device.
    - ReferentialConflictError: cancel of an invoiced job.
    - InvalidAmountError: negative labor or estimated cost.
    - Anything InventoryLedger raises for the consumption itself.
"""

from __future__ import annotations

from dataclasses import replace
from decimal import Decimal

from shop_kernel.domain.entities import (
    PartUsage,
    RepairJob,
    RepairStatus,
    TransactionStatus,
    TransactionType,
)
from shop_kernel.domain.money import to_amount
from shop_kernel.domain.workflow import REPAIR_CONSUMING_STATES, REPAIR_WORKFLOW
from shop_kernel.exceptions import (
    InvalidAmountError,
    InvalidStateTransitionError,
    MissingFieldError,
    ReferentialConflictError,
)
from shop_kernel.logging_config import get_logger
from shop_kernel.services.base import BaseService
from shop_kernel.services.inventory_ledger import InventoryLedger
from shop_kernel.store import EntityType

logger = get_logger("services.repair_workflow")


def _non_negative(value, field_name: str) -> Decimal:
    try:
        amount = to_amount(value)
    except ValueError as exc:
        raise InvalidAmountError(value, str(exc)) from exc
    if amount < 0:
        raise InvalidAmountError(value, f"{field_name} cannot be negative")
    return amount


class RepairWorkflow(BaseService):
    """Service for repair jobs."""

    def __init__(self, store, ledger: InventoryLedger, clock=None, ids=None):
        super().__init__(store, clock, ids)
        self.ledger = ledger

    def open_job(
        self,
        customer_name: str,
        device: str,
        issue: str = "",
        customer_phone: str = "",
        asset_id: str | None = None,
        labor_cost: Decimal | int | str = 0,
        estimated_cost: Decimal | int | str = 0,
    ) -> RepairJob:
        """
        Create a Received repair job.

        ``asset_id`` links the job to an organization asset; it is optional
        because most jobs are walk-in customer devices.
        """
        if not customer_name or not customer_name.strip():
            raise MissingFieldError("RepairJob", "customer_name")
        if not device or not device.strip():
            raise MissingFieldError("RepairJob", "device")
        labor = _non_negative(labor_cost, "labor_cost")
        estimate = _non_negative(estimated_cost, "estimated_cost")

        with self.store.locked():
            if asset_id is not None:
                self.store.get(EntityType.ASSET, asset_id)
            now = self.clock.now()
            job = RepairJob(
                id=self.ids.new_id("REP"),
                customer_name=customer_name.strip(),
                device=device.strip(),
                issue=issue,
                created_at=now,
                customer_phone=customer_phone,
                asset_id=asset_id,
                labor_cost=labor,
                estimated_cost=estimate,
                updated_at=now,
            )
            self.store.upsert(job)

        logger.info(
            "repair_opened",
            extra={"repair_id": job.id, "device": job.device, "asset_id": asset_id},
        )
        return job

    def start(self, job_id: str) -> RepairJob:
        return self._advance(job_id, "start")

    def complete(self, job_id: str) -> RepairJob:
        return self._advance(job_id, "complete")

    def deliver(self, job_id: str) -> RepairJob:
        return self._advance(job_id, "deliver")

    def cancel(self, job_id: str, cancelled_by: str | None = None) -> RepairJob:
        """
        Cancel an open job and reject its Pending part transactions.

        Raises:
            ReferentialConflictError: the job has already been invoiced.
        """
        with self.store.locked():
            invoiced = tuple(
                i.id for i in self.store.list(EntityType.INVOICE) if i.repair_id == job_id
            )
            if invoiced:
                raise ReferentialConflictError("RepairJob", job_id, "Invoice", invoiced)
            job = self._advance(job_id, "cancel")
            rejected = []
            for tx_id in job.transaction_ids:
                tx = self.store.find(EntityType.TRANSACTION, tx_id)
                if tx is not None and tx.status == TransactionStatus.PENDING:
                    self.ledger.reject_transaction(tx_id, rejected_by=cancelled_by)
                    rejected.append(tx_id)

        if rejected:
            logger.info(
                "repair_pending_parts_rejected",
                extra={"repair_id": job_id, "transaction_ids": rejected},
            )
        return job

    def set_labor_cost(self, job_id: str, labor_cost: Decimal | int | str) -> RepairJob:
        labor = _non_negative(labor_cost, "labor_cost")
        with self.store.locked():
            job: RepairJob = self.store.get(EntityType.REPAIR, job_id)
            if REPAIR_WORKFLOW.is_terminal(job.status.value):
                raise InvalidStateTransitionError(
                    "RepairJob", job_id, job.status.value, job.status.value,
                )
            updated = replace(job, labor_cost=labor, updated_at=self.clock.now())
            self.store.upsert(updated)
        return updated

    def consume_part(
        self,
        job_id: str,
        part_id: str,
        quantity: int,
        requested_by: str,
        approver_id: str | None = None,
    ) -> RepairJob:
        """
        Draw ``quantity`` of ``part_id`` for the job.

        A Stock Usage transaction is requested through the ledger.  When
        ``approver_id`` is given the transaction is approved immediately;
        otherwise it waits for manual approval.

        Returns:
            The job with the new PartUsage appended.
        """
        with self.store.locked():
            job: RepairJob = self.store.get(EntityType.REPAIR, job_id)
            if job.status.value not in REPAIR_CONSUMING_STATES:
                raise InvalidStateTransitionError(
                    "RepairJob", job_id, job.status.value, "consume_part",
                )

            tx = self.ledger.request_transaction(
                part_id,
                quantity,
                TransactionType.STOCK_USAGE,
                requested_by,
                repair_id=job_id,
                note=f"Repair {job_id}",
            )
            if approver_id is not None:
                tx = self.ledger.approve_transaction(tx.id, approver_id)

            updated = replace(
                job,
                parts_used=job.parts_used + (PartUsage(part_id, quantity, tx.id),),
                updated_at=self.clock.now(),
            )
            self.store.upsert(updated)

        logger.info(
            "repair_part_consumed",
            extra={
                "repair_id": job_id,
                "part_id": part_id,
                "quantity": quantity,
                "transaction_id": tx.id,
                "auto_approved": approver_id is not None,
            },
        )
        return updated

    def _advance(self, job_id: str, action: str) -> RepairJob:
        with self.store.locked():
            job: RepairJob = self.store.get(EntityType.REPAIR, job_id)
            target = REPAIR_WORKFLOW.target_of(job.status.value, action)
            if target is None:
                logger.warning(
                    "repair_transition_refused",
                    extra={"repair_id": job_id, "from_state": job.status.value, "action": action},
                )
                raise InvalidStateTransitionError(
                    "RepairJob", job_id, job.status.value, action,
                )
            updated = replace(job, status=RepairStatus(target), updated_at=self.clock.now())
            self.store.upsert(updated)

        logger.info(
            "repair_status_changed",
            extra={"repair_id": job_id, "from_state": job.status.value, "to_state": target},
        )
        return updated
