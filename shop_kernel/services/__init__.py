"""Services for the shop kernel (write side)."""

from shop_kernel.services.assignment_tracker import AssignmentTracker
from shop_kernel.services.auth_service import (
    AuthService,
    AuthSettings,
    CredentialVerifier,
    InMemorySessionStore,
    PlaintextVerifier,
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

__all__ = [
    "AssignmentTracker",
    "AuthService",
    "AuthSettings",
    "BillingLedger",
    "CatalogService",
    "CredentialVerifier",
    "InMemorySessionStore",
    "InMemorySnapshotStore",
    "InventoryLedger",
    "PlaintextVerifier",
    "RepairWorkflow",
    "SessionStore",
    "SnapshotStore",
    "SnapshotWriter",
    "SqlSessionStore",
    "SqlSnapshotStore",
]
