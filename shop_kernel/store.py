"""
shop_kernel.store -- Entity Store.

Responsibility:
    Holds every domain collection in memory as id-keyed maps and exposes
    get / list / upsert / remove per entity type.  Upsert is idempotent
    (replace if the id exists, insert otherwise).  Removal is refused while
    a non-terminal record of another type still references the target.

Architecture position:
    Kernel > Store.  Imports only from domain/ and exceptions.  Services
    mutate the store; selectors only read it.

Invariants enforced:
    - Block-on-reference removal policy (see ``_blocking_references``).
    - Resolved transactions and paid invoices cannot be removed.
    - All access goes through one re-entrant lock.  Services hold it via
      ``locked()`` across each check-then-act so a status check and the
      write that depends on it are never split.

Failure modes:
    - EntityNotFoundError from ``get``/``remove`` on an unknown id.
    - ReferentialConflictError / ImmutableRecordError from ``remove``.
"""

from __future__ import annotations

import threading
from contextlib import contextmanager
from enum import Enum
from typing import Any, Iterator

from shop_kernel.domain.entities import (
    Asset,
    Assignment,
    Department,
    Employee,
    FullState,
    InventoryCategory,
    Invoice,
    Part,
    PaymentStatus,
    RepairJob,
    SiteConfig,
    Transaction,
    TransactionStatus,
)
from shop_kernel.domain.workflow import REPAIR_WORKFLOW
from shop_kernel.exceptions import (
    EntityNotFoundError,
    ImmutableRecordError,
    ReferentialConflictError,
)
from shop_kernel.logging_config import get_logger

logger = get_logger("store")


class EntityType(str, Enum):
    """Collections held by the store; value is the display name."""

    EMPLOYEE = "Employee"
    ASSET = "Asset"
    ASSIGNMENT = "Assignment"
    PART = "Part"
    TRANSACTION = "Transaction"
    REPAIR = "RepairJob"
    INVOICE = "Invoice"
    INVENTORY_CATEGORY = "InventoryCategory"
    DEPARTMENT = "Department"


_RECORD_TYPES: dict[type, EntityType] = {
    Employee: EntityType.EMPLOYEE,
    Asset: EntityType.ASSET,
    Assignment: EntityType.ASSIGNMENT,
    Part: EntityType.PART,
    Transaction: EntityType.TRANSACTION,
    RepairJob: EntityType.REPAIR,
    Invoice: EntityType.INVOICE,
    InventoryCategory: EntityType.INVENTORY_CATEGORY,
    Department: EntityType.DEPARTMENT,
}

# FullState attribute for each collection
_STATE_FIELDS: dict[EntityType, str] = {
    EntityType.EMPLOYEE: "employees",
    EntityType.ASSET: "assets",
    EntityType.ASSIGNMENT: "assignments",
    EntityType.PART: "parts",
    EntityType.TRANSACTION: "transactions",
    EntityType.REPAIR: "repairs",
    EntityType.INVOICE: "invoices",
    EntityType.INVENTORY_CATEGORY: "inventory_categories",
    EntityType.DEPARTMENT: "departments",
}


def entity_type_of(record: Any) -> EntityType:
    try:
        return _RECORD_TYPES[type(record)]
    except KeyError:
        raise TypeError(f"Not a storable record: {type(record).__name__}") from None


class EntityStore:
    """
    Normalized, id-keyed collections of all domain records.

    Contract:
        Records are frozen dataclasses; the store replaces them wholesale
        on upsert.  ``list`` returns records in insertion order (an upsert
        of an existing id keeps its position).

    Guarantees:
        - ``snapshot()`` is a consistent, immutable ``FullState``.
        - ``version`` increases by one on every accepted write.
    """

    def __init__(self, state: FullState | None = None):
        self._lock = threading.RLock()
        self._collections: dict[EntityType, dict[str, Any]] = {t: {} for t in EntityType}
        self._site = SiteConfig()
        self._version = 0
        if state is not None:
            self.restore(state)

    # ------------------------------------------------------------------
    # Locking
    # ------------------------------------------------------------------

    @contextmanager
    def locked(self) -> Iterator["EntityStore"]:
        """Hold the store lock for a multi-step check-then-act."""
        with self._lock:
            yield self

    @property
    def version(self) -> int:
        return self._version

    # ------------------------------------------------------------------
    # Reads
    # ------------------------------------------------------------------

    def get(self, entity_type: EntityType, entity_id: str) -> Any:
        """Return the record or raise EntityNotFoundError."""
        with self._lock:
            record = self._collections[entity_type].get(entity_id)
        if record is None:
            raise EntityNotFoundError(entity_type.value, entity_id)
        return record

    def find(self, entity_type: EntityType, entity_id: str) -> Any | None:
        with self._lock:
            return self._collections[entity_type].get(entity_id)

    def exists(self, entity_type: EntityType, entity_id: str) -> bool:
        with self._lock:
            return entity_id in self._collections[entity_type]

    def list(self, entity_type: EntityType) -> tuple[Any, ...]:
        with self._lock:
            return tuple(self._collections[entity_type].values())

    @property
    def site(self) -> SiteConfig:
        return self._site

    # ------------------------------------------------------------------
    # Writes
    # ------------------------------------------------------------------

    def upsert(self, record: Any) -> Any:
        """Insert ``record`` or replace the record with the same id."""
        entity_type = entity_type_of(record)
        with self._lock:
            collection = self._collections[entity_type]
            created = record.id not in collection
            collection[record.id] = record
            self._version += 1
        logger.debug(
            "record_upserted",
            extra={
                "entity_type": entity_type.value,
                "record_id": record.id,
                "is_new": created,
            },
        )
        return record

    def remove(self, entity_type: EntityType, entity_id: str) -> Any:
        """Remove a record if nothing non-terminal references it.

        Raises:
            EntityNotFoundError: unknown id.
            ImmutableRecordError: resolved transaction or (partly) paid invoice.
            ReferentialConflictError: still referenced elsewhere.
        """
        with self._lock:
            record = self.get(entity_type, entity_id)
            self._check_removable(entity_type, record)
            del self._collections[entity_type][entity_id]
            self._version += 1
        logger.info(
            "record_removed",
            extra={"entity_type": entity_type.value, "record_id": entity_id},
        )
        return record

    def set_site(self, site: SiteConfig) -> SiteConfig:
        with self._lock:
            self._site = site
            self._version += 1
        return site

    # ------------------------------------------------------------------
    # Whole-state
    # ------------------------------------------------------------------

    def snapshot(self) -> FullState:
        with self._lock:
            return FullState(
                site=self._site,
                **{
                    field_name: tuple(self._collections[t].values())
                    for t, field_name in _STATE_FIELDS.items()
                },
            )

    def restore(self, state: FullState) -> None:
        """Replace every collection with the contents of ``state``."""
        with self._lock:
            for t, field_name in _STATE_FIELDS.items():
                self._collections[t] = {r.id: r for r in getattr(state, field_name)}
            self._site = state.site
            self._version += 1
        logger.info(
            "store_restored",
            extra={
                "counts": {
                    t.value: len(self._collections[t]) for t in EntityType
                },
            },
        )

    # ------------------------------------------------------------------
    # Referential policy
    # ------------------------------------------------------------------

    def _check_removable(self, entity_type: EntityType, record: Any) -> None:
        if entity_type == EntityType.TRANSACTION and record.status != TransactionStatus.PENDING:
            raise ImmutableRecordError(entity_type.value, record.id, record.status.value)
        if entity_type == EntityType.INVOICE and record.payment_status != PaymentStatus.UNPAID:
            raise ImmutableRecordError(entity_type.value, record.id, record.payment_status.value)

        conflict = self._blocking_references(entity_type, record)
        if conflict is not None:
            referenced_by, ids = conflict
            logger.warning(
                "record_removal_blocked",
                extra={
                    "entity_type": entity_type.value,
                    "record_id": record.id,
                    "referenced_by": referenced_by.value,
                    "referencing_ids": list(ids),
                },
            )
            raise ReferentialConflictError(
                entity_type.value, record.id, referenced_by.value, ids,
            )

    def _blocking_references(
        self, entity_type: EntityType, record: Any,
    ) -> tuple[EntityType, tuple[str, ...]] | None:
        """First (referencing type, ids) that blocks removal, or None."""
        c = self._collections

        def open_repairs():
            return [
                r for r in c[EntityType.REPAIR].values()
                if not REPAIR_WORKFLOW.is_terminal(r.status.value)
            ]

        checks: list[tuple[EntityType, list[str]]] = []

        if entity_type == EntityType.PART:
            checks.append((EntityType.TRANSACTION, [
                t.id for t in c[EntityType.TRANSACTION].values()
                if t.part_id == record.id and t.status == TransactionStatus.PENDING
            ]))
            checks.append((EntityType.REPAIR, [
                r.id for r in open_repairs()
                if any(u.part_id == record.id for u in r.parts_used)
            ]))
        elif entity_type == EntityType.ASSET:
            checks.append((EntityType.ASSIGNMENT, [
                a.id for a in c[EntityType.ASSIGNMENT].values()
                if a.asset_id == record.id and a.is_open
            ]))
            checks.append((EntityType.REPAIR, [
                r.id for r in open_repairs() if r.asset_id == record.id
            ]))
        elif entity_type == EntityType.EMPLOYEE:
            checks.append((EntityType.ASSIGNMENT, [
                a.id for a in c[EntityType.ASSIGNMENT].values()
                if a.employee_id == record.id and a.is_open
            ]))
            checks.append((EntityType.TRANSACTION, [
                t.id for t in c[EntityType.TRANSACTION].values()
                if t.requested_by == record.id and t.status == TransactionStatus.PENDING
            ]))
        elif entity_type == EntityType.INVENTORY_CATEGORY:
            checks.append((EntityType.PART, [
                p.id for p in c[EntityType.PART].values() if p.category == record.name
            ]))
        elif entity_type == EntityType.DEPARTMENT:
            checks.append((EntityType.EMPLOYEE, [
                e.id for e in c[EntityType.EMPLOYEE].values() if e.department == record.name
            ]))
        elif entity_type == EntityType.REPAIR:
            checks.append((EntityType.INVOICE, [
                i.id for i in c[EntityType.INVOICE].values() if i.repair_id == record.id
            ]))
        elif entity_type == EntityType.ASSIGNMENT and record.is_open:
            # An open assignment is what keeps its asset Assigned.
            checks.append((EntityType.ASSET, [record.asset_id]))

        for referenced_by, ids in checks:
            if ids:
                return referenced_by, tuple(ids)
        return None
