"""
Workflow state machines (``shop_kernel.domain.workflow``).

Responsibility
--------------
Declares, once, the lifecycle of every record that has one: stock
transactions, repair jobs and invoice payments.  Services consult these
tables before changing a status; nothing else decides which moves are legal.

Architecture position
---------------------
**Kernel domain layer** -- pure value objects.  ZERO I/O.

Invariants enforced
-------------------
* Transitions reference only states in ``Workflow.states``.
* ``initial_state`` is a member of ``states``.
* Terminal states have no outgoing transitions.
"""

from __future__ import annotations

from dataclasses import dataclass

from shop_kernel.domain.entities import (
    PaymentStatus,
    RepairStatus,
    TransactionStatus,
)


@dataclass(frozen=True)
class Transition:
    """A valid state transition, named by the action that fires it."""
    from_state: str
    to_state: str
    action: str


@dataclass(frozen=True)
class Workflow:
    """A state machine definition for a record lifecycle."""
    name: str
    description: str
    initial_state: str
    states: tuple[str, ...]
    transitions: tuple[Transition, ...]
    terminal_states: tuple[str, ...] = ()

    def allows(self, from_state: str, to_state: str) -> bool:
        return any(
            t.from_state == from_state and t.to_state == to_state
            for t in self.transitions
        )

    def target_of(self, from_state: str, action: str) -> str | None:
        """State reached by ``action`` from ``from_state``, or None if illegal."""
        for t in self.transitions:
            if t.from_state == from_state and t.action == action:
                return t.to_state
        return None

    def is_terminal(self, state: str) -> bool:
        return state in self.terminal_states


# -----------------------------------------------------------------------------
# Stock transaction approval
# -----------------------------------------------------------------------------

TRANSACTION_WORKFLOW = Workflow(
    name="stock_transaction",
    description="Stock movement approval",
    initial_state=TransactionStatus.PENDING.value,
    states=(
        TransactionStatus.PENDING.value,
        TransactionStatus.APPROVED.value,
        TransactionStatus.REJECTED.value,
    ),
    transitions=(
        Transition(TransactionStatus.PENDING.value, TransactionStatus.APPROVED.value, action="approve"),
        Transition(TransactionStatus.PENDING.value, TransactionStatus.REJECTED.value, action="reject"),
    ),
    terminal_states=(
        TransactionStatus.APPROVED.value,
        TransactionStatus.REJECTED.value,
    ),
)


# -----------------------------------------------------------------------------
# Repair job progression
# -----------------------------------------------------------------------------

_R = RepairStatus

REPAIR_WORKFLOW = Workflow(
    name="repair_job",
    description="Repair job progression with cancel from any open state",
    initial_state=_R.RECEIVED.value,
    states=tuple(s.value for s in _R),
    transitions=(
        Transition(_R.RECEIVED.value, _R.IN_PROGRESS.value, action="start"),
        Transition(_R.IN_PROGRESS.value, _R.COMPLETED.value, action="complete"),
        Transition(_R.COMPLETED.value, _R.DELIVERED.value, action="deliver"),
        Transition(_R.RECEIVED.value, _R.CANCELLED.value, action="cancel"),
        Transition(_R.IN_PROGRESS.value, _R.CANCELLED.value, action="cancel"),
        Transition(_R.COMPLETED.value, _R.CANCELLED.value, action="cancel"),
    ),
    terminal_states=(_R.DELIVERED.value, _R.CANCELLED.value),
)

# States in which a job may still draw parts from stock.
REPAIR_CONSUMING_STATES: frozenset[str] = frozenset({
    _R.RECEIVED.value,
    _R.IN_PROGRESS.value,
})

# States from which an invoice can be raised.
REPAIR_BILLABLE_STATES: frozenset[str] = frozenset({
    _R.COMPLETED.value,
    _R.DELIVERED.value,
})


# -----------------------------------------------------------------------------
# Invoice payment
# -----------------------------------------------------------------------------

_P = PaymentStatus

PAYMENT_WORKFLOW = Workflow(
    name="invoice_payment",
    description="Invoice payment status",
    initial_state=_P.UNPAID.value,
    states=tuple(s.value for s in _P),
    transitions=(
        Transition(_P.UNPAID.value, _P.PARTIALLY_PAID.value, action="pay_part"),
        Transition(_P.UNPAID.value, _P.PAID.value, action="pay_full"),
        Transition(_P.PARTIALLY_PAID.value, _P.PARTIALLY_PAID.value, action="pay_part"),
        Transition(_P.PARTIALLY_PAID.value, _P.PAID.value, action="pay_full"),
    ),
    terminal_states=(_P.PAID.value,),
)
