"""
ShopApplication -- the root controller.

Responsibility:
    Owns the EntityStore, every service, the session store and snapshot
    persistence.  Each public mutation:

        1. resolves the current user and checks the access policy,
        2. runs the service call under the store lock,
        3. takes an immutable snapshot under the same lock,
        4. hands the snapshot to persistence (fire-and-forget).

Architecture position:
    Kernel > App -- outermost kernel layer.  Receives an already-built
    ``ShopSettings`` and seed ``FullState``; it never reads configuration
    files itself.

Invariants enforced:
    - Every accepted mutation is followed by exactly one save request.
    - A failed save or load never changes in-memory state; it is recorded
      as a PersistenceWarning in ``warnings`` and logged at WARNING.
    - Mutations require an Active current user.

Failure modes:
    - NotAuthenticatedError: no current session.
    - PermissionDeniedError: role, feature or permission flag forbids it.
    - Anything the services raise, with state unchanged.
"""

from __future__ import annotations

import random
import threading
from dataclasses import dataclass, field
from decimal import Decimal
from typing import Any, Callable, Iterable, TypeVar
from uuid import uuid4

from sqlalchemy.exc import SQLAlchemyError

from shop_kernel.db.engine import create_tables, get_session_factory, init_engine_from_url
from shop_kernel.domain.access_policy import Action, Feature, can_see, permitted_tabs, require
from shop_kernel.domain.clock import Clock, SystemClock
from shop_kernel.domain.codec import SnapshotFormatError, encode_state
from shop_kernel.domain.entities import (
    Asset,
    AssetStatus,
    Assignment,
    Department,
    Employee,
    EmployeeStatus,
    FullState,
    InventoryCategory,
    Invoice,
    LineItem,
    Part,
    Permissions,
    RepairJob,
    Role,
    SiteConfig,
    Transaction,
    TransactionType,
)
from shop_kernel.exceptions import (
    NotAuthenticatedError,
    PermissionDeniedError,
    PersistenceWarning,
)
from shop_kernel.logging_config import LogContext, configure_logging, get_logger
from shop_kernel.selectors.inventory_selector import InventorySelector, LowStockAlert
from shop_kernel.selectors.report_selector import (
    DashboardSummary,
    RepairReport,
    ReportSelector,
    RevenueReport,
)
from shop_kernel.services.assignment_tracker import AssignmentTracker
from shop_kernel.services.auth_service import (
    AuthService,
    AuthSettings,
    CredentialVerifier,
    InMemorySessionStore,
    SessionStore,
    SqlSessionStore,
)
from shop_kernel.services.billing_ledger import BillingLedger
from shop_kernel.services.catalog_service import CatalogService
from shop_kernel.services.inventory_ledger import InventoryLedger
from shop_kernel.services.persistence import (
    InMemorySnapshotStore,
    SnapshotStore,
    SnapshotWriter,
    SqlSnapshotStore,
)
from shop_kernel.services.repair_workflow import RepairWorkflow
from shop_kernel.store import EntityStore
from shop_kernel.utils.ids import IdGenerator

logger = get_logger("app")

T = TypeVar("T")


@dataclass(frozen=True)
class ShopSettings:
    """Runtime settings handed to the controller by the configuration layer."""

    database_url: str = "sqlite:///mobifix.db"
    site: SiteConfig = field(default_factory=SiteConfig)
    auth: AuthSettings = field(default_factory=AuthSettings)
    background_saves: bool = True
    log_level: str = "INFO"


class ShopApplication:
    """
    Root controller for the shop kernel.

    Build one with ``ShopApplication.open(settings, seed)`` for SQL-backed
    persistence, or construct it directly with explicit stores (the
    defaults keep everything in memory).
    """

    def __init__(
        self,
        settings: ShopSettings | None = None,
        seed: FullState | None = None,
        snapshot_store: SnapshotStore | None = None,
        session_store: SessionStore | None = None,
        clock: Clock | None = None,
        ids: IdGenerator | None = None,
        rng: random.Random | None = None,
        verifier: CredentialVerifier | None = None,
    ):
        self.settings = settings or ShopSettings()
        self.clock = clock or SystemClock()
        self.ids = ids or IdGenerator()
        self.rng = rng or random.Random()

        self.store = EntityStore()
        self.ledger = InventoryLedger(self.store, self.clock, self.ids)
        self.tracker = AssignmentTracker(self.store, self.clock, self.ids)
        self.repairs = RepairWorkflow(self.store, self.ledger, self.clock, self.ids)
        self.billing = BillingLedger(self.store, self.clock, self.ids)
        self.catalog = CatalogService(self.store, self.clock, self.ids, self.rng)
        self.auth = AuthService(
            self.store,
            session_store or InMemorySessionStore(),
            self.settings.auth,
            verifier,
            self.clock,
            self.ids,
            self.rng,
        )
        self.inventory_view = InventorySelector(self.store)
        self.reports = ReportSelector(self.store)

        self.snapshot_store = snapshot_store or InMemorySnapshotStore()
        self._warnings: list[PersistenceWarning] = []
        self._warnings_lock = threading.Lock()
        self._writer = (
            SnapshotWriter(self.snapshot_store, on_error=self._record_save_failure)
            if self.settings.background_saves
            else None
        )

        self._load_or_seed(seed)

    @classmethod
    def open(
        cls,
        settings: ShopSettings,
        seed: FullState | None = None,
        clock: Clock | None = None,
        **kwargs: Any,
    ) -> "ShopApplication":
        """Start over SQL-backed stores, creating missing tables first."""
        configure_logging(level=settings.log_level)
        init_engine_from_url(settings.database_url)
        create_tables()
        factory = get_session_factory()
        clock = clock or SystemClock()
        return cls(
            settings=settings,
            seed=seed,
            snapshot_store=SqlSnapshotStore(factory, clock),
            session_store=SqlSessionStore(factory, clock),
            clock=clock,
            **kwargs,
        )

    # ------------------------------------------------------------------
    # Persistence plumbing
    # ------------------------------------------------------------------

    @property
    def warnings(self) -> tuple[PersistenceWarning, ...]:
        with self._warnings_lock:
            return tuple(self._warnings)

    def flush(self, timeout: float | None = None) -> bool:
        """Wait until every requested save has been attempted."""
        if self._writer is None:
            return True
        return self._writer.flush(timeout)

    def close(self) -> None:
        if self._writer is not None:
            self._writer.close()

    def _load_or_seed(self, seed: FullState | None) -> None:
        state = None
        try:
            state = self.snapshot_store.load()
        except (SnapshotFormatError, SQLAlchemyError) as exc:
            self._record_warning(PersistenceWarning("load", str(exc)))

        if state is not None:
            self.store.restore(state)
            logger.info("state_loaded_from_snapshot")
            return

        self.store.restore(seed if seed is not None else FullState(site=self.settings.site))
        logger.info("state_seeded", extra={"from_seed": seed is not None})
        self._save(self.store.snapshot())

    def _save(self, state: FullState) -> None:
        if self._writer is not None:
            self._writer.submit(state)
            return
        try:
            self.snapshot_store.save(state)
        except Exception as exc:
            logger.warning("snapshot_save_failed", extra={"error": str(exc)}, exc_info=True)
            self._record_save_failure(exc)

    def _record_save_failure(self, exc: Exception) -> None:
        self._record_warning(PersistenceWarning("save", str(exc)))

    def _record_warning(self, warning: PersistenceWarning) -> None:
        with self._warnings_lock:
            self._warnings.append(warning)
        logger.warning(
            "persistence_warning_recorded",
            extra={"persistence_operation": warning.operation, "reason": warning.reason},
        )

    def _commit(self, operation: str, actor: Employee | None, fn: Callable[[], T]) -> T:
        """Run ``fn`` and submit the resulting snapshot, both under the store lock."""
        with LogContext.bind(
            correlation_id=uuid4().hex,
            actor_id=actor.id if actor else None,
            operation=operation,
        ):
            with self.store.locked():
                version = self.store.version
                result = fn()
                if self.store.version != version:
                    # submit order must match snapshot order
                    self._save(self.store.snapshot())
        return result

    # ------------------------------------------------------------------
    # Access
    # ------------------------------------------------------------------

    def current_user(self) -> Employee | None:
        return self.auth.current_user()

    def visible_features(self) -> frozenset[Feature]:
        user = self.current_user()
        if user is None:
            return frozenset()
        return permitted_tabs(user.role)

    def _require(
        self,
        operation: str,
        feature: Feature | None = None,
        action: Action | None = None,
    ) -> Employee:
        user = self.current_user()
        if user is None:
            raise NotAuthenticatedError(operation)
        if not user.is_active:
            raise PermissionDeniedError(
                user.id, operation, f"employee status is {user.status.value}",
            )
        if feature is not None and not can_see(user.role, feature):
            logger.info(
                "access_denied",
                extra={"employee_id": user.id, "operation": operation, "feature": feature.value},
            )
            raise PermissionDeniedError(
                user.id, operation, f"role {user.role.value} cannot use {feature.value}",
            )
        if action is not None:
            require(user, action)
        return user

    def _require_viewer(self, operation: str, feature: Feature) -> Employee:
        user = self.current_user()
        if user is None:
            raise NotAuthenticatedError(operation)
        if user.status == EmployeeStatus.INACTIVE:
            raise PermissionDeniedError(user.id, operation, "employee status is Inactive")
        if not can_see(user.role, feature):
            raise PermissionDeniedError(
                user.id, operation, f"role {user.role.value} cannot use {feature.value}",
            )
        return user

    # ------------------------------------------------------------------
    # Authentication
    # ------------------------------------------------------------------

    def login(self, identifier: str, secret: str) -> Employee | None:
        return self.auth.login(identifier, secret)

    def register(self, name: str, email: str, department: str) -> Employee:
        return self._commit("register", None, lambda: self.auth.register(name, email, department))

    def logout(self) -> None:
        self.auth.logout()

    # ------------------------------------------------------------------
    # Inventory ledger
    # ------------------------------------------------------------------

    def request_transaction(
        self, part_id: str, quantity: int, tx_type: TransactionType, note: str = "",
    ) -> Transaction:
        user = self._require("request_transaction", Feature.INVENTORY)
        return self._commit(
            "request_transaction", user,
            lambda: self.ledger.request_transaction(part_id, quantity, tx_type, user.id, note=note),
        )

    def approve_transaction(self, transaction_id: str) -> Transaction:
        user = self._require("approve_transaction", action=Action.APPROVE_TRANSACTION)
        return self._commit(
            "approve_transaction", user,
            lambda: self.ledger.approve_transaction(transaction_id, user.id),
        )

    def reject_transaction(self, transaction_id: str) -> Transaction:
        user = self._require("reject_transaction", action=Action.APPROVE_TRANSACTION)
        return self._commit(
            "reject_transaction", user,
            lambda: self.ledger.reject_transaction(transaction_id, user.id),
        )

    # ------------------------------------------------------------------
    # Assignments
    # ------------------------------------------------------------------

    def checkout(self, asset_id: str, employee_id: str, notes: str = "") -> Assignment:
        user = self._require("checkout", Feature.ASSIGNMENTS)
        return self._commit(
            "checkout", user, lambda: self.tracker.checkout(asset_id, employee_id, notes),
        )

    def checkin(self, assignment_id: str) -> Assignment:
        user = self._require("checkin", Feature.ASSIGNMENTS)
        return self._commit("checkin", user, lambda: self.tracker.checkin(assignment_id))

    # ------------------------------------------------------------------
    # Repairs
    # ------------------------------------------------------------------

    def open_repair(
        self,
        customer_name: str,
        device: str,
        issue: str = "",
        customer_phone: str = "",
        asset_id: str | None = None,
        labor_cost: Decimal | int | str = 0,
        estimated_cost: Decimal | int | str = 0,
    ) -> RepairJob:
        user = self._require("open_repair", Feature.REPAIRS)
        return self._commit(
            "open_repair", user,
            lambda: self.repairs.open_job(
                customer_name, device, issue, customer_phone, asset_id,
                labor_cost, estimated_cost,
            ),
        )

    def start_repair(self, job_id: str) -> RepairJob:
        user = self._require("start_repair", Feature.REPAIRS)
        return self._commit("start_repair", user, lambda: self.repairs.start(job_id))

    def complete_repair(self, job_id: str) -> RepairJob:
        user = self._require("complete_repair", Feature.REPAIRS)
        return self._commit("complete_repair", user, lambda: self.repairs.complete(job_id))

    def deliver_repair(self, job_id: str) -> RepairJob:
        user = self._require("deliver_repair", Feature.REPAIRS)
        return self._commit("deliver_repair", user, lambda: self.repairs.deliver(job_id))

    def cancel_repair(self, job_id: str) -> RepairJob:
        user = self._require("cancel_repair", Feature.REPAIRS)
        return self._commit("cancel_repair", user, lambda: self.repairs.cancel(job_id, user.id))

    def set_repair_labor(self, job_id: str, labor_cost: Decimal | int | str) -> RepairJob:
        user = self._require("set_repair_labor", Feature.REPAIRS)
        return self._commit(
            "set_repair_labor", user, lambda: self.repairs.set_labor_cost(job_id, labor_cost),
        )

    def consume_part(
        self, job_id: str, part_id: str, quantity: int, auto_approve: bool = False,
    ) -> RepairJob:
        """Draw a part for a job; ``auto_approve`` needs approval rights."""
        action = Action.APPROVE_TRANSACTION if auto_approve else None
        user = self._require("consume_part", Feature.REPAIRS, action)
        return self._commit(
            "consume_part", user,
            lambda: self.repairs.consume_part(
                job_id, part_id, quantity, user.id,
                approver_id=user.id if auto_approve else None,
            ),
        )

    # ------------------------------------------------------------------
    # Billing
    # ------------------------------------------------------------------

    def generate_invoice(
        self,
        repair_id: str,
        extra_items: Iterable[LineItem] = (),
        labor_cost: Decimal | int | str | None = None,
    ) -> Invoice:
        user = self._require("generate_invoice", Feature.BILLING)
        return self._commit(
            "generate_invoice", user,
            lambda: self.billing.generate_invoice(repair_id, tuple(extra_items), labor_cost),
        )

    def record_payment(self, invoice_id: str, amount: Decimal | int | str) -> Invoice:
        user = self._require("record_payment", Feature.BILLING)
        return self._commit(
            "record_payment", user, lambda: self.billing.record_payment(invoice_id, amount),
        )

    def mark_invoice_paid(self, invoice_id: str) -> Invoice:
        user = self._require("mark_invoice_paid", Feature.BILLING)
        return self._commit("mark_invoice_paid", user, lambda: self.billing.mark_paid(invoice_id))

    # ------------------------------------------------------------------
    # Catalog
    # ------------------------------------------------------------------

    def add_part(self, name: str, supplier: str, category: str, **fields: Any) -> Part:
        user = self._require("add_part", Feature.INVENTORY)
        return self._commit(
            "add_part", user, lambda: self.catalog.add_part(name, supplier, category, **fields),
        )

    def update_part(self, part_id: str, **changes: Any) -> Part:
        user = self._require("update_part", Feature.INVENTORY)
        return self._commit("update_part", user, lambda: self.catalog.update_part(part_id, **changes))

    def remove_part(self, part_id: str) -> Part:
        user = self._require("remove_part", Feature.INVENTORY, Action.DELETE)
        return self._commit("remove_part", user, lambda: self.catalog.remove_part(part_id))

    def add_asset(self, tag: str, serial_number: str, model: str, category: str, **fields: Any) -> Asset:
        user = self._require("add_asset", Feature.ASSETS)
        return self._commit(
            "add_asset", user,
            lambda: self.catalog.add_asset(tag, serial_number, model, category, **fields),
        )

    def update_asset(self, asset_id: str, **changes: Any) -> Asset:
        user = self._require("update_asset", Feature.ASSETS)
        return self._commit("update_asset", user, lambda: self.catalog.update_asset(asset_id, **changes))

    def set_asset_status(self, asset_id: str, status: AssetStatus) -> Asset:
        user = self._require("set_asset_status", Feature.ASSETS)
        return self._commit(
            "set_asset_status", user, lambda: self.catalog.set_asset_status(asset_id, status),
        )

    def remove_asset(self, asset_id: str) -> Asset:
        user = self._require("remove_asset", Feature.ASSETS, Action.DELETE)
        return self._commit("remove_asset", user, lambda: self.catalog.remove_asset(asset_id))

    def add_category(self, name: str, is_visible: bool = True) -> InventoryCategory:
        user = self._require("add_category", Feature.SETTINGS)
        return self._commit("add_category", user, lambda: self.catalog.add_category(name, is_visible))

    def set_category_visibility(self, category_id: str, is_visible: bool) -> InventoryCategory:
        user = self._require("set_category_visibility", Feature.SETTINGS)
        return self._commit(
            "set_category_visibility", user,
            lambda: self.catalog.set_category_visibility(category_id, is_visible),
        )

    def reorder_categories(self, ordered_ids: list[str]) -> list[InventoryCategory]:
        user = self._require("reorder_categories", Feature.SETTINGS)
        return self._commit(
            "reorder_categories", user, lambda: self.catalog.reorder_categories(ordered_ids),
        )

    def remove_category(self, category_id: str) -> InventoryCategory:
        user = self._require("remove_category", Feature.SETTINGS, Action.DELETE)
        return self._commit("remove_category", user, lambda: self.catalog.remove_category(category_id))

    def add_department(self, name: str) -> Department:
        user = self._require("add_department", Feature.SETTINGS)
        return self._commit("add_department", user, lambda: self.catalog.add_department(name))

    def reorder_departments(self, ordered_ids: list[str]) -> list[Department]:
        user = self._require("reorder_departments", Feature.SETTINGS)
        return self._commit(
            "reorder_departments", user, lambda: self.catalog.reorder_departments(ordered_ids),
        )

    def remove_department(self, department_id: str) -> Department:
        user = self._require("remove_department", Feature.SETTINGS, Action.DELETE)
        return self._commit(
            "remove_department", user, lambda: self.catalog.remove_department(department_id),
        )

    def update_site(self, site_name: str | None = None, currency: str | None = None) -> SiteConfig:
        user = self._require("update_site", Feature.SETTINGS, Action.EDIT_SETTINGS)
        return self._commit("update_site", user, lambda: self.catalog.update_site(site_name, currency))

    # ------------------------------------------------------------------
    # Employees
    # ------------------------------------------------------------------

    def add_employee(
        self,
        name: str,
        email: str,
        department: str,
        role: Role = Role.STAFF,
        permissions: Permissions | None = None,
    ) -> Employee:
        user = self._require("add_employee", Feature.EMPLOYEES, Action.MANAGE_USERS)
        return self._commit(
            "add_employee", user,
            lambda: self.catalog.add_employee(
                name, email, department, role, EmployeeStatus.ACTIVE, permissions,
            ),
        )

    def update_employee(self, employee_id: str, **changes: Any) -> Employee:
        """Change role, status, permissions or department of an employee."""
        user = self._require("update_employee", Feature.EMPLOYEES, Action.MANAGE_USERS)
        updated = self._commit(
            "update_employee", user, lambda: self.catalog.update_employee(employee_id, **changes),
        )
        self.auth.refresh_session(updated)
        return updated

    def approve_employee(self, employee_id: str) -> Employee:
        """Activate a self-registered (Pending) employee."""
        return self.update_employee(employee_id, status=EmployeeStatus.ACTIVE)

    def deactivate_employee(self, employee_id: str) -> Employee:
        return self.update_employee(employee_id, status=EmployeeStatus.INACTIVE)

    # ------------------------------------------------------------------
    # Reads
    # ------------------------------------------------------------------

    def dashboard(self) -> DashboardSummary:
        self._require_viewer("dashboard", Feature.DASHBOARD)
        return self.reports.dashboard()

    def low_stock(self) -> list[LowStockAlert]:
        self._require_viewer("low_stock", Feature.INVENTORY)
        return self.inventory_view.low_stock()

    def revenue_report(self) -> RevenueReport:
        self._require_viewer("revenue_report", Feature.REPORTS)
        return self.reports.revenue()

    def repair_report(self) -> RepairReport:
        self._require_viewer("repair_report", Feature.REPORTS)
        return self.reports.repairs()

    def export_state(self) -> dict[str, Any]:
        """Encoded snapshot of everything; needs the export permission."""
        user = self._require("export_state", action=Action.EXPORT)
        document = encode_state(self.store.snapshot())
        logger.info("state_exported", extra={"employee_id": user.id})
        return document
