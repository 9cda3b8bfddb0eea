"""
Domain records (``shop_kernel.domain.entities``).

Responsibility
--------------
Frozen value objects for every collection the shop tracks: employees,
assets, assignments, parts, stock transactions, repair jobs, invoices,
inventory categories, departments, and the site configuration, plus the
``FullState`` aggregate that is the unit of persistence.

Architecture position
---------------------
**Kernel domain layer** -- pure value objects.  ZERO I/O.  Records never
own each other across collections: every cross-collection field is a
string id (or, for department and part category, the referenced name).

Invariants enforced here
------------------------
* Part stock and opening stock are never negative.
* Transaction quantity is positive.
* Money fields are ``Decimal`` -- never float.

Cross-collection invariants (one open assignment per asset, stock
reconciliation) need the whole store and are enforced by the services.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from datetime import date, datetime
from decimal import Decimal
from enum import Enum


# =========================================================================
# Enumerations
# =========================================================================


class Role(str, Enum):
    """Coarse feature-visibility tier."""

    ADMIN = "Admin"
    MANAGER = "Manager"
    STAFF = "Staff"


class EmployeeStatus(str, Enum):
    ACTIVE = "Active"
    PENDING = "Pending"
    INACTIVE = "Inactive"


class AssetStatus(str, Enum):
    AVAILABLE = "Available"
    ASSIGNED = "Assigned"
    IN_REPAIR = "In Repair"
    RETIRED = "Retired"


class TransactionType(str, Enum):
    """Stock movement kinds.  Only intake adds stock."""

    STOCK_INTAKE = "Stock Intake"
    STOCK_USAGE = "Stock Usage"
    ADJUSTMENT = "Adjustment"


class TransactionStatus(str, Enum):
    PENDING = "Pending"
    APPROVED = "Approved"
    REJECTED = "Rejected"


class RepairStatus(str, Enum):
    RECEIVED = "Received"
    IN_PROGRESS = "In Progress"
    COMPLETED = "Completed"
    DELIVERED = "Delivered"
    CANCELLED = "Cancelled"


class PaymentStatus(str, Enum):
    UNPAID = "Unpaid"
    PARTIALLY_PAID = "Partially Paid"
    PAID = "Paid"


class LineItemKind(str, Enum):
    PART = "part"
    LABOR = "labor"
    OTHER = "other"


# =========================================================================
# People and organization
# =========================================================================


@dataclass(frozen=True)
class Permissions:
    """Per-employee capability flags, configurable independently of role."""

    can_delete: bool = False
    can_export: bool = False
    can_access_ai: bool = False
    can_manage_users: bool = False


@dataclass(frozen=True)
class Employee:
    id: str
    staff_id: str
    name: str
    email: str
    department: str
    role: Role = Role.STAFF
    status: EmployeeStatus = EmployeeStatus.PENDING
    permissions: Permissions = field(default_factory=Permissions)
    password: str = "password"
    join_date: date | None = None

    @property
    def is_active(self) -> bool:
        return self.status == EmployeeStatus.ACTIVE


@dataclass(frozen=True)
class Department:
    id: str
    name: str
    sort_order: int = 0


@dataclass(frozen=True)
class InventoryCategory:
    id: str
    name: str
    is_visible: bool = True
    sort_order: int = 0


@dataclass(frozen=True)
class SiteConfig:
    """Process-wide settings, mutated only by an Admin."""

    site_name: str = "MobiFix"
    currency: str = "$"

    @property
    def site_abbreviation(self) -> str:
        """Initials of the site name, at most two letters; ``MF`` if empty."""
        initials = "".join(word[0] for word in self.site_name.split() if word)
        return initials.upper()[:2] or "MF"


# =========================================================================
# Hardware and checkouts
# =========================================================================


@dataclass(frozen=True)
class Asset:
    id: str
    tag: str
    serial_number: str
    model: str
    category: str
    specs: str = ""
    status: AssetStatus = AssetStatus.AVAILABLE
    purchase_date: date | None = None
    warranty_expiry: date | None = None


@dataclass(frozen=True)
class Assignment:
    id: str
    asset_id: str
    employee_id: str
    checkout_date: datetime
    return_date: datetime | None = None
    notes: str = ""

    @property
    def is_open(self) -> bool:
        return self.return_date is None


# =========================================================================
# Inventory
# =========================================================================


@dataclass(frozen=True)
class Part:
    """
    A consumable spare part.

    ``stock`` only ever changes through transaction approval.
    ``opening_stock`` is the count on hand when the part entered the
    catalog; it is the baseline that approved movements are summed onto.
    """

    id: str
    name: str
    supplier: str
    category: str
    stock: int = 0
    min_stock_level: int = 0
    sale_price: Decimal = Decimal("0")
    cost_price: Decimal = Decimal("0")
    opening_stock: int = 0

    def __post_init__(self):
        # INVARIANT: stock is floor-clamped at zero on every approval
        if self.stock < 0:
            raise ValueError(f"Part {self.id}: stock cannot be negative ({self.stock})")
        if self.opening_stock < 0:
            raise ValueError(
                f"Part {self.id}: opening_stock cannot be negative ({self.opening_stock})"
            )

    @property
    def is_low_stock(self) -> bool:
        return self.stock <= self.min_stock_level


@dataclass(frozen=True)
class Transaction:
    """
    A requested stock movement against one part.

    Created Pending; becomes Approved or Rejected exactly once.
    ``applied_delta`` is the stock change actually applied on approval
    (after the zero floor), and stays 0 otherwise.
    """

    id: str
    part_id: str
    quantity: int
    type: TransactionType
    requested_by: str
    timestamp: datetime
    status: TransactionStatus = TransactionStatus.PENDING
    approved_by: str | None = None
    resolved_at: datetime | None = None
    applied_delta: int = 0
    repair_id: str | None = None
    note: str = ""

    def __post_init__(self):
        if self.quantity <= 0:
            raise ValueError(f"Transaction {self.id}: quantity must be positive")


# =========================================================================
# Repairs and billing
# =========================================================================


@dataclass(frozen=True)
class PartUsage:
    """One part consumption recorded on a repair job."""

    part_id: str
    quantity: int
    transaction_id: str


@dataclass(frozen=True)
class RepairJob:
    id: str
    customer_name: str
    device: str
    issue: str
    created_at: datetime
    status: RepairStatus = RepairStatus.RECEIVED
    customer_phone: str = ""
    asset_id: str | None = None
    parts_used: tuple[PartUsage, ...] = ()
    labor_cost: Decimal = Decimal("0")
    estimated_cost: Decimal = Decimal("0")
    updated_at: datetime | None = None

    @property
    def transaction_ids(self) -> tuple[str, ...]:
        return tuple(u.transaction_id for u in self.parts_used)


@dataclass(frozen=True)
class LineItem:
    description: str
    quantity: int
    unit_price: Decimal
    kind: LineItemKind = LineItemKind.OTHER
    part_id: str | None = None

    @property
    def amount(self) -> Decimal:
        return self.unit_price * self.quantity


@dataclass(frozen=True)
class Invoice:
    id: str
    repair_id: str
    customer_name: str
    line_items: tuple[LineItem, ...]
    total: Decimal
    issued_at: datetime
    amount_paid: Decimal = Decimal("0")
    payment_status: PaymentStatus = PaymentStatus.UNPAID
    paid_at: datetime | None = None

    @property
    def balance_due(self) -> Decimal:
        return max(Decimal("0"), self.total - self.amount_paid)


# =========================================================================
# Aggregate
# =========================================================================


@dataclass(frozen=True)
class FullState:
    """
    Every collection plus the site configuration.

    This is the only shape that crosses the persistence boundary: saves
    and loads are always of the complete state, never partial.
    """

    employees: tuple[Employee, ...] = ()
    assets: tuple[Asset, ...] = ()
    assignments: tuple[Assignment, ...] = ()
    parts: tuple[Part, ...] = ()
    transactions: tuple[Transaction, ...] = ()
    repairs: tuple[RepairJob, ...] = ()
    invoices: tuple[Invoice, ...] = ()
    inventory_categories: tuple[InventoryCategory, ...] = ()
    departments: tuple[Department, ...] = ()
    site: SiteConfig = field(default_factory=SiteConfig)
