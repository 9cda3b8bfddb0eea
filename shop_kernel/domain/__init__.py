"""
Pure domain layer.

This module contains the shop's value objects and rules with NO
dependencies on:
- ORM (SQLAlchemy)
- Database
- Wall-clock time (see clock.Clock)
- I/O

All domain objects are immutable and deterministic.
"""

from shop_kernel.domain.access_policy import (
    Action,
    Feature,
    can_mutate,
    can_see,
    check_action,
    permitted_tabs,
    require,
)
from shop_kernel.domain.clock import Clock, DeterministicClock, SystemClock
from shop_kernel.domain.codec import (
    SCHEMA_VERSION,
    SnapshotFormatError,
    decode_state,
    encode_state,
)
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
    LineItemKind,
    Part,
    PartUsage,
    PaymentStatus,
    Permissions,
    RepairJob,
    RepairStatus,
    Role,
    SiteConfig,
    Transaction,
    TransactionStatus,
    TransactionType,
)
from shop_kernel.domain.money import format_money, to_amount
from shop_kernel.domain.stock import StockReconciliation, reconcile
from shop_kernel.domain.workflow import (
    PAYMENT_WORKFLOW,
    REPAIR_WORKFLOW,
    TRANSACTION_WORKFLOW,
    Transition,
    Workflow,
)

__all__ = [
    "Action",
    "Asset",
    "AssetStatus",
    "Assignment",
    "Clock",
    "Department",
    "DeterministicClock",
    "Employee",
    "EmployeeStatus",
    "Feature",
    "FullState",
    "InventoryCategory",
    "Invoice",
    "LineItem",
    "LineItemKind",
    "PAYMENT_WORKFLOW",
    "Part",
    "PartUsage",
    "PaymentStatus",
    "Permissions",
    "REPAIR_WORKFLOW",
    "RepairJob",
    "RepairStatus",
    "Role",
    "SCHEMA_VERSION",
    "SiteConfig",
    "SnapshotFormatError",
    "StockReconciliation",
    "SystemClock",
    "TRANSACTION_WORKFLOW",
    "Transaction",
    "TransactionStatus",
    "TransactionType",
    "Transition",
    "Workflow",
    "can_mutate",
    "can_see",
    "check_action",
    "decode_state",
    "encode_state",
    "format_money",
    "permitted_tabs",
    "reconcile",
    "require",
    "to_amount",
]
