"""
Tests for EntityStore -- collections, versioning and the removal policy.

Covers:
- get/find/list/upsert semantics and insertion order
- version bumps on every accepted write
- snapshot()/restore() whole-state exchange
- remove(): blocked by live references, immutable resolved records
"""

from dataclasses import replace

import pytest

from shop_kernel.domain.entities import (
    Department,
    FullState,
    InventoryCategory,
    TransactionType,
)
from shop_kernel.exceptions import (
    EntityNotFoundError,
    ImmutableRecordError,
    ReferentialConflictError,
)
from shop_kernel.store import EntityStore, EntityType, entity_type_of


class TestReadsAndWrites:

    def test_get_unknown_raises(self, store):
        with pytest.raises(EntityNotFoundError) as exc_info:
            store.get(EntityType.PART, "P999")
        assert exc_info.value.entity_type == "Part"
        assert exc_info.value.entity_id == "P999"

    def test_find_unknown_returns_none(self, store):
        assert store.find(EntityType.ASSET, "nope") is None

    def test_upsert_replaces_in_place(self, store):
        ids_before = [p.id for p in store.list(EntityType.PART)]
        part = store.get(EntityType.PART, "P001")
        store.upsert(replace(part, name="Renamed"))
        assert [p.id for p in store.list(EntityType.PART)] == ids_before
        assert store.get(EntityType.PART, "P001").name == "Renamed"

    def test_upsert_inserts_new(self, store):
        store.upsert(Department(id="dept-9", name="Legal"))
        assert store.exists(EntityType.DEPARTMENT, "dept-9")
        assert store.list(EntityType.DEPARTMENT)[-1].name == "Legal"

    def test_version_counts_writes(self, store):
        start = store.version
        store.upsert(Department(id="dept-9", name="Legal"))
        store.remove(EntityType.DEPARTMENT, "dept-9")
        assert store.version == start + 2

    def test_reads_do_not_bump_version(self, store):
        start = store.version
        store.list(EntityType.EMPLOYEE)
        store.snapshot()
        assert store.version == start

    def test_entity_type_of_rejects_foreign_objects(self):
        with pytest.raises(TypeError):
            entity_type_of(object())


class TestSnapshotRestore:

    def test_snapshot_matches_seed(self, store, seed_state):
        assert store.snapshot() == seed_state

    def test_restore_replaces_everything(self, store):
        store.restore(FullState())
        assert store.list(EntityType.EMPLOYEE) == ()
        assert store.list(EntityType.PART) == ()

    def test_snapshot_is_isolated_from_later_writes(self, store):
        snap = store.snapshot()
        store.upsert(Department(id="dept-9", name="Legal"))
        assert len(snap.departments) == 4


class TestRemovalPolicy:

    def test_unreferenced_record_removed(self, store, captured_logs):
        store.upsert(InventoryCategory(id="cat-9", name="Speaker"))
        removed = store.remove(EntityType.INVENTORY_CATEGORY, "cat-9")
        assert removed.name == "Speaker"
        assert any(r["message"] == "record_removed" for r in captured_logs())

    def test_category_in_use_blocked(self, store, captured_logs):
        with pytest.raises(ReferentialConflictError) as exc_info:
            store.remove(EntityType.INVENTORY_CATEGORY, "cat-1")
        assert exc_info.value.referenced_by == "Part"
        assert exc_info.value.referencing_ids == ("P001",)
        assert store.exists(EntityType.INVENTORY_CATEGORY, "cat-1")
        assert any(r["message"] == "record_removal_blocked" for r in captured_logs())

    def test_department_with_employees_blocked(self, store):
        with pytest.raises(ReferentialConflictError) as exc_info:
            store.remove(EntityType.DEPARTMENT, "dept-1")
        assert exc_info.value.referencing_ids == ("E001",)

    def test_empty_department_removed(self, store):
        store.remove(EntityType.DEPARTMENT, "dept-4")
        assert not store.exists(EntityType.DEPARTMENT, "dept-4")

    def test_part_with_pending_transaction_blocked(self, store, ledger):
        tx = ledger.request_transaction("P002", 1, TransactionType.STOCK_USAGE, "E001")
        with pytest.raises(ReferentialConflictError) as exc_info:
            store.remove(EntityType.PART, "P002")
        assert exc_info.value.referenced_by == "Transaction"
        assert exc_info.value.referencing_ids == (tx.id,)

    def test_part_removable_once_transactions_resolved(self, store, ledger):
        tx = ledger.request_transaction("P002", 1, TransactionType.STOCK_USAGE, "E001")
        ledger.reject_transaction(tx.id, "E001")
        store.remove(EntityType.PART, "P002")
        assert not store.exists(EntityType.PART, "P002")

    def test_asset_with_open_assignment_blocked(self, store, tracker):
        tracker.checkout("ASSET-1", "E002")
        with pytest.raises(ReferentialConflictError) as exc_info:
            store.remove(EntityType.ASSET, "ASSET-1")
        assert exc_info.value.referenced_by == "Assignment"

    def test_employee_holding_asset_blocked(self, store, tracker):
        tracker.checkout("ASSET-2", "E002")
        with pytest.raises(ReferentialConflictError):
            store.remove(EntityType.EMPLOYEE, "E002")

    def test_open_assignment_blocked(self, store, tracker):
        assignment = tracker.checkout("ASSET-2", "E002")
        with pytest.raises(ReferentialConflictError) as exc_info:
            store.remove(EntityType.ASSIGNMENT, assignment.id)
        assert exc_info.value.referencing_ids == ("ASSET-2",)

    def test_asset_on_open_repair_blocked(self, store, repairs):
        job = repairs.open_job("Acme", "Laptop", asset_id="ASSET-2")
        with pytest.raises(ReferentialConflictError) as exc_info:
            store.remove(EntityType.ASSET, "ASSET-2")
        assert exc_info.value.referencing_ids == (job.id,)

    def test_resolved_transaction_immutable(self, store, ledger):
        tx = ledger.request_transaction("P001", 1, TransactionType.STOCK_INTAKE, "E001")
        ledger.approve_transaction(tx.id, "E001")
        with pytest.raises(ImmutableRecordError) as exc_info:
            store.remove(EntityType.TRANSACTION, tx.id)
        assert exc_info.value.status == "Approved"

    def test_remove_unknown_raises(self, store):
        with pytest.raises(EntityNotFoundError):
            store.remove(EntityType.ASSET, "ASSET-404")

    def test_blocked_removal_does_not_bump_version(self, store):
        start = store.version
        with pytest.raises(ReferentialConflictError):
            store.remove(EntityType.INVENTORY_CATEGORY, "cat-2")
        assert store.version == start


def test_store_accepts_initial_state(seed_state):
    assert EntityStore(seed_state).get(EntityType.EMPLOYEE, "E001").name == "Sarah Admin"
