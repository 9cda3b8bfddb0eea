"""
Tests for ShopApplication -- the root controller.

Covers:
- Authentication gates: no session, Pending employees, role visibility,
  permission flags
- Persist-after-mutation: exactly one save per accepted mutation, none
  for refused ones
- Persistence failures become warnings, state stays intact
- Start-up: load existing snapshot, fall back to seed on corrupt data
- SQL-backed restart through ShopApplication.open()
- Log context binding per operation
"""

from decimal import Decimal

import pytest

from shop_kernel.app import ShopApplication, ShopSettings
from shop_kernel.db.engine import reset_engine
from shop_kernel.domain.access_policy import Feature
from shop_kernel.domain.codec import SnapshotFormatError
from shop_kernel.domain.entities import (
    AssetStatus,
    EmployeeStatus,
    Permissions,
    Role,
    TransactionStatus,
    TransactionType,
)
from shop_kernel.exceptions import (
    InvalidQuantityError,
    NotAuthenticatedError,
    PermissionDeniedError,
    ReferentialConflictError,
)
from shop_kernel.store import EntityType


class BrokenSnapshotStore:
    def __init__(self, load_error=None):
        self._load_error = load_error

    def save(self, state):
        raise OSError("database is locked")

    def load(self):
        if self._load_error is not None:
            raise self._load_error
        return None


def login_new_staff(app):
    """Create an Active staff member as the Admin, then log in as them."""
    app.login("Admin", "1234")
    staff = app.add_employee("Sam Staff", "sam@company.com", "Support", Role.STAFF)
    assert app.login("sam@company.com", "password").id == staff.id
    return staff


class TestAccessControl:

    def test_mutation_requires_login(self, app):
        with pytest.raises(NotAuthenticatedError):
            app.request_transaction("P001", 1, TransactionType.STOCK_INTAKE)

    def test_read_requires_login(self, app):
        with pytest.raises(NotAuthenticatedError):
            app.dashboard()

    def test_visible_features_by_role(self, app):
        assert app.visible_features() == frozenset()
        app.login("manager@company.com", "password")
        assert Feature.SETTINGS not in app.visible_features()
        app.login("Admin", "1234")
        assert Feature.SETTINGS in app.visible_features()

    def test_pending_employee_cannot_mutate(self, app):
        app.register("New Hire", "new@company.com", "Support")
        with pytest.raises(PermissionDeniedError) as exc_info:
            app.request_transaction("P001", 1, TransactionType.STOCK_INTAKE)
        assert "Pending" in exc_info.value.reason

    def test_pending_employee_can_view_dashboard(self, app):
        app.register("New Hire", "new@company.com", "Support")
        assert app.dashboard().pending_employees == 1

    def test_approved_employee_can_work(self, app):
        employee = app.register("New Hire", "new@company.com", "Support")
        app.login("Admin", "1234")
        app.approve_employee(employee.id)
        app.login("new@company.com", "password")
        tx = app.request_transaction("P001", 1, TransactionType.STOCK_INTAKE)
        assert tx.requested_by == employee.id

    def test_staff_cannot_see_assets(self, app):
        login_new_staff(app)
        with pytest.raises(PermissionDeniedError):
            app.checkout("ASSET-1", "E002")
        with pytest.raises(PermissionDeniedError):
            app.revenue_report()

    def test_staff_cannot_approve(self, app):
        login_new_staff(app)
        tx = app.request_transaction("P002", 5, TransactionType.STOCK_INTAKE)
        with pytest.raises(PermissionDeniedError):
            app.approve_transaction(tx.id)

    def test_staff_cannot_auto_approve_usage(self, app):
        login_new_staff(app)
        job = app.open_repair("Jane", "iPhone")
        with pytest.raises(PermissionDeniedError):
            app.consume_part(job.id, "P001", 1, auto_approve=True)
        app.consume_part(job.id, "P001", 1)

    def test_delete_needs_flag(self, manager_app):
        with pytest.raises(PermissionDeniedError) as exc_info:
            manager_app.remove_part("P001")
        assert "can_delete" in exc_info.value.reason

    def test_settings_admin_only(self, manager_app):
        with pytest.raises(PermissionDeniedError):
            manager_app.update_site(site_name="Other")

    def test_export_needs_flag(self, app):
        login_new_staff(app)
        with pytest.raises(PermissionDeniedError):
            app.export_state()


class TestWorkflowsThroughApplication:

    def test_stock_intake_approved_by_manager(self, manager_app):
        tx = manager_app.request_transaction("P002", 10, TransactionType.STOCK_INTAKE)
        approved = manager_app.approve_transaction(tx.id)
        assert approved.status == TransactionStatus.APPROVED
        assert approved.approved_by == "E002"
        assert manager_app.store.get(EntityType.PART, "P002").stock == 13
        assert manager_app.low_stock() == []

    def test_asset_checkout_cycle(self, manager_app):
        assignment = manager_app.checkout("ASSET-1", "E001")
        assert manager_app.store.get(EntityType.ASSET, "ASSET-1").status == AssetStatus.ASSIGNED
        manager_app.checkin(assignment.id)
        assert manager_app.store.get(EntityType.ASSET, "ASSET-1").status == AssetStatus.AVAILABLE

    def test_repair_to_paid_invoice(self, admin_app):
        job = admin_app.open_repair("Jane Doe", "iPhone 15", labor_cost="50")
        admin_app.start_repair(job.id)
        admin_app.consume_part(job.id, "P001", 1, auto_approve=True)
        admin_app.complete_repair(job.id)
        invoice = admin_app.generate_invoice(job.id)
        assert invoice.total == Decimal("299.00")
        admin_app.record_payment(invoice.id, "99")
        paid = admin_app.mark_invoice_paid(invoice.id)
        assert paid.balance_due == Decimal("0")
        admin_app.deliver_repair(job.id)
        assert admin_app.revenue_report().collected_total == Decimal("299.00")

    def test_deactivation_refused_while_holding_asset(self, admin_app):
        admin_app.checkout("ASSET-2", "E002")
        with pytest.raises(ReferentialConflictError):
            admin_app.deactivate_employee("E002")

    def test_update_employee_refreshes_own_session(self, admin_app):
        admin_app.update_employee("E001", permissions=Permissions())
        assert admin_app.current_user().permissions == Permissions()

    def test_export_state(self, admin_app):
        document = admin_app.export_state()
        assert [e["id"] for e in document["employees"]] == ["E001", "E002"]


class TestPersistAfterMutation:

    def test_seeding_saves_once(self, app, snapshot_store):
        assert snapshot_store.save_count == 1
        assert snapshot_store.load() == app.store.snapshot()

    def test_each_mutation_saves_once(self, manager_app, snapshot_store):
        before = snapshot_store.save_count
        tx = manager_app.request_transaction("P001", 3, TransactionType.STOCK_INTAKE)
        manager_app.approve_transaction(tx.id)
        assert snapshot_store.save_count == before + 2
        assert snapshot_store.load() == manager_app.store.snapshot()

    def test_refused_mutation_does_not_save(self, manager_app, snapshot_store):
        before = snapshot_store.save_count
        with pytest.raises(InvalidQuantityError):
            manager_app.request_transaction("P001", 0, TransactionType.STOCK_INTAKE)
        with pytest.raises(PermissionDeniedError):
            manager_app.remove_part("P001")
        assert snapshot_store.save_count == before

    def test_save_failure_recorded_as_warning(self, seed_state, deterministic_clock, captured_logs):
        app = ShopApplication(
            settings=ShopSettings(background_saves=False),
            seed=seed_state,
            snapshot_store=BrokenSnapshotStore(),
            clock=deterministic_clock,
        )
        app.login("manager@company.com", "password")
        tx = app.request_transaction("P002", 10, TransactionType.STOCK_INTAKE)
        app.approve_transaction(tx.id)

        assert app.store.get(EntityType.PART, "P002").stock == 13
        assert len(app.warnings) == 3
        assert {w.operation for w in app.warnings} == {"save"}
        assert "database is locked" in app.warnings[-1].reason
        assert any(r["message"] == "persistence_warning_recorded" for r in captured_logs())

    def test_background_save_failure_recorded(self, seed_state):
        app = ShopApplication(seed=seed_state, snapshot_store=BrokenSnapshotStore())
        try:
            assert app.flush(timeout=5)
            assert [w.operation for w in app.warnings] == ["save"]
        finally:
            app.close()


class TestStartup:

    def test_existing_snapshot_wins_over_seed(self, seed_state, snapshot_store):
        first = ShopApplication(ShopSettings(background_saves=False), seed_state, snapshot_store)
        first.login("manager@company.com", "password")
        tx = first.request_transaction("P002", 10, TransactionType.STOCK_INTAKE)
        first.approve_transaction(tx.id)

        second = ShopApplication(ShopSettings(background_saves=False), seed_state, snapshot_store)
        assert second.store.get(EntityType.PART, "P002").stock == 13
        assert second.store.snapshot() == first.store.snapshot()

    def test_corrupt_snapshot_falls_back_to_seed(self, seed_state):
        app = ShopApplication(
            ShopSettings(background_saves=False),
            seed_state,
            BrokenSnapshotStore(load_error=SnapshotFormatError("Snapshot checksum mismatch")),
        )
        assert app.store.snapshot() == seed_state
        assert app.warnings[0].operation == "load"

    def test_no_seed_starts_empty(self):
        app = ShopApplication(ShopSettings(background_saves=False))
        assert app.store.list(EntityType.EMPLOYEE) == ()


class TestSqlBackedApplication:

    @pytest.fixture
    def settings(self, tmp_path):
        yield ShopSettings(database_url=f"sqlite:///{tmp_path / 'shop.db'}")
        reset_engine()

    def test_restart_restores_state_and_session(self, settings, seed_state):
        first = ShopApplication.open(settings, seed_state)
        first.login("manager@company.com", "password")
        first.checkout("ASSET-1", "E001")
        assert first.flush(timeout=5)
        first.close()

        second = ShopApplication.open(settings, seed_state)
        try:
            assert second.store.get(EntityType.ASSET, "ASSET-1").status == AssetStatus.ASSIGNED
            assert second.current_user().id == "E002"
            assert second.warnings == ()
        finally:
            second.close()


class TestOperationLogging:

    def test_operation_context_bound(self, manager_app, captured_logs):
        tx = manager_app.request_transaction("P001", 1, TransactionType.STOCK_INTAKE)
        manager_app.approve_transaction(tx.id)

        record = next(r for r in captured_logs() if r["message"] == "transaction_approved")
        assert record["operation"] == "approve_transaction"
        assert record["actor_id"] == "E002"
        assert "correlation_id" in record

    def test_status_change_emits_employee_update(self, admin_app, captured_logs):
        admin_app.update_employee("E002", status=EmployeeStatus.ACTIVE, role=Role.MANAGER)
        assert any(r["message"] == "employee_updated" for r in captured_logs())


class TestDeactivatedSession:

    def test_deactivated_user_loses_read_access(self, app):
        staff = login_new_staff(app)
        assert app.dashboard().total_assets == 2

        app.login("Admin", "1234")
        app.deactivate_employee(staff.id)
        app.auth.session_store.set(app.auth.settings.session_key, staff)

        with pytest.raises(PermissionDeniedError) as exc_info:
            app.dashboard()
        assert "Inactive" in exc_info.value.reason
        with pytest.raises(PermissionDeniedError):
            app.low_stock()
