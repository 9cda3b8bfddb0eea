"""
BillingLedger -- invoices from repair jobs and their payment status.

Responsibility:
    Prices a finished repair job into an invoice (parts actually drawn
    from stock plus labor plus any manual lines) and records payments
    against it.

Architecture position:
    Kernel > Services -- imperative shell.  Money arithmetic is Decimal
    throughout (``shop_kernel.domain.money``).

Invariants enforced:
    - One invoice per repair job.
    - Only Approved part consumptions are billed; Pending or Rejected
      usages are left off the invoice.
    - total == sum(quantity * unit_price) over the line items.
    - Payment moves Unpaid -> Partially Paid -> Paid; Paid is terminal.
    - amount_paid never exceeds total.

Failure modes:
    - InvalidStateTransitionError: job not Completed/Delivered, or payment
      on a Paid invoice.
    - DuplicateRecordError: the job already has an invoice.
    - InvalidAmountError: non-positive payment, payment above the balance
      due, or negative line price.
    - InvalidQuantityError: line item quantity not a positive int.
"""

from __future__ import annotations

from dataclasses import replace
from decimal import Decimal
from typing import Iterable

from shop_kernel.domain.entities import (
    Invoice,
    LineItem,
    LineItemKind,
    Part,
    PaymentStatus,
    RepairJob,
    TransactionStatus,
)
from shop_kernel.domain.money import sum_amounts, to_amount
from shop_kernel.domain.stock import is_valid_quantity
from shop_kernel.domain.workflow import PAYMENT_WORKFLOW, REPAIR_BILLABLE_STATES
from shop_kernel.exceptions import (
    DuplicateRecordError,
    InvalidAmountError,
    InvalidQuantityError,
    InvalidStateTransitionError,
)
from shop_kernel.logging_config import get_logger
from shop_kernel.services.base import BaseService
from shop_kernel.store import EntityType

logger = get_logger("services.billing_ledger")


class BillingLedger(BaseService):
    """Service for invoicing repair jobs and taking payments."""

    def generate_invoice(
        self,
        repair_id: str,
        extra_items: Iterable[LineItem] = (),
        labor_cost: Decimal | int | str | None = None,
    ) -> Invoice:
        """
        Build the invoice for a finished repair job.

        Args:
            repair_id: Job to bill; must be Completed or Delivered.
            extra_items: Manual lines appended after parts and labor.
            labor_cost: Overrides the job's recorded labor cost.

        Raises:
            InvalidStateTransitionError: job is not billable yet.
            DuplicateRecordError: an invoice already exists for the job.
        """
        extras = tuple(self._checked_item(item) for item in extra_items)
        if labor_cost is not None:
            labor = self._amount(labor_cost, allow_zero=True)
        else:
            labor = None

        with self.store.locked():
            job: RepairJob = self.store.get(EntityType.REPAIR, repair_id)
            if job.status.value not in REPAIR_BILLABLE_STATES:
                raise InvalidStateTransitionError(
                    "RepairJob", repair_id, job.status.value, "invoice",
                )
            existing = self.invoice_for_repair(repair_id)
            if existing is not None:
                raise DuplicateRecordError("Invoice", "repair_id", repair_id)

            items = list(self._part_lines(job))
            labor_amount = labor if labor is not None else job.labor_cost
            if labor_amount > 0:
                items.append(LineItem(
                    description="Labor",
                    quantity=1,
                    unit_price=labor_amount,
                    kind=LineItemKind.LABOR,
                ))
            items.extend(extras)

            invoice = Invoice(
                id=self.ids.new_id("INV"),
                repair_id=repair_id,
                customer_name=job.customer_name,
                line_items=tuple(items),
                total=sum_amounts(i.amount for i in items),
                issued_at=self.clock.now(),
            )
            self.store.upsert(invoice)

        logger.info(
            "invoice_generated",
            extra={
                "invoice_id": invoice.id,
                "repair_id": repair_id,
                "line_count": len(invoice.line_items),
                "total": invoice.total,
            },
        )
        return invoice

    def record_payment(self, invoice_id: str, amount: Decimal | int | str) -> Invoice:
        """
        Apply a payment.  Cumulative payments reaching the total mark the
        invoice Paid; anything less leaves it Partially Paid.

        Raises:
            InvalidAmountError: amount is not positive or exceeds the
                balance due.
            InvalidStateTransitionError: invoice is already Paid.
        """
        paid_now = self._amount(amount, allow_zero=False)

        with self.store.locked():
            invoice: Invoice = self.store.get(EntityType.INVOICE, invoice_id)
            if PAYMENT_WORKFLOW.is_terminal(invoice.payment_status.value):
                raise InvalidStateTransitionError(
                    "Invoice", invoice_id, invoice.payment_status.value, "pay",
                )
            if paid_now > invoice.balance_due:
                raise InvalidAmountError(
                    amount, f"exceeds balance due {invoice.balance_due}",
                )
            amount_paid = invoice.amount_paid + paid_now
            action = "pay_full" if amount_paid >= invoice.total else "pay_part"
            target = PAYMENT_WORKFLOW.target_of(invoice.payment_status.value, action)
            if target is None:
                raise InvalidStateTransitionError(
                    "Invoice", invoice_id, invoice.payment_status.value, action,
                )
            status = PaymentStatus(target)
            updated = replace(
                invoice,
                amount_paid=amount_paid,
                payment_status=status,
                paid_at=self.clock.now() if status == PaymentStatus.PAID else None,
            )
            self.store.upsert(updated)

        logger.info(
            "invoice_payment_recorded",
            extra={
                "invoice_id": invoice_id,
                "amount": paid_now,
                "amount_paid": amount_paid,
                "payment_status": status.value,
            },
        )
        return updated

    def mark_paid(self, invoice_id: str) -> Invoice:
        """Pay the outstanding balance in full."""
        with self.store.locked():
            invoice: Invoice = self.store.get(EntityType.INVOICE, invoice_id)
            if PAYMENT_WORKFLOW.is_terminal(invoice.payment_status.value):
                raise InvalidStateTransitionError(
                    "Invoice", invoice_id, invoice.payment_status.value, "pay_full",
                )
            if invoice.balance_due == 0:
                # Zero-total invoice: nothing to collect.
                updated = replace(
                    invoice, payment_status=PaymentStatus.PAID, paid_at=self.clock.now(),
                )
                self.store.upsert(updated)
                return updated
            return self.record_payment(invoice_id, invoice.balance_due)

    def invoice_for_repair(self, repair_id: str) -> Invoice | None:
        for invoice in self.store.list(EntityType.INVOICE):
            if invoice.repair_id == repair_id:
                return invoice
        return None

    def _part_lines(self, job: RepairJob) -> Iterable[LineItem]:
        for usage in job.parts_used:
            tx = self.store.find(EntityType.TRANSACTION, usage.transaction_id)
            if tx is None or tx.status != TransactionStatus.APPROVED:
                continue
            part: Part | None = self.store.find(EntityType.PART, usage.part_id)
            if part is None:
                logger.warning(
                    "invoice_part_missing",
                    extra={"repair_id": job.id, "part_id": usage.part_id},
                )
                continue
            yield LineItem(
                description=part.name,
                quantity=usage.quantity,
                unit_price=part.sale_price,
                kind=LineItemKind.PART,
                part_id=part.id,
            )

    def _checked_item(self, item: LineItem) -> LineItem:
        if not is_valid_quantity(item.quantity):
            raise InvalidQuantityError(item.quantity)
        return replace(item, unit_price=self._amount(item.unit_price, allow_zero=True))

    @staticmethod
    def _amount(value, allow_zero: bool) -> Decimal:
        try:
            amount = to_amount(value)
        except ValueError as exc:
            raise InvalidAmountError(value, str(exc)) from exc
        if amount < 0:
            raise InvalidAmountError(value, "cannot be negative")
        if amount == 0 and not allow_zero:
            raise InvalidAmountError(value, "must be positive")
        return amount
