"""
CatalogService -- maintenance edits of reference records.

Responsibility:
    Creates, edits and removes assets, parts, inventory categories,
    departments and employees, and changes the site configuration.  Every
    edit is checked against the same invariants the workflow services
    rely on.

Architecture position:
    Kernel > Services -- imperative shell.  Access policy is checked by
    the root controller before these methods are called.

Invariants enforced:
    - Part stock is never writable here.  A new part's stock becomes its
      ``opening_stock``; afterwards only transaction approval moves it.
    - Asset status Assigned is never set here (checkout does that), and an
      asset with an open assignment keeps its status.
    - Asset tags, category names, department names and employee emails
      are unique.
    - Employees are never hard-deleted; deactivation sets Inactive.
"""

from __future__ import annotations

import random
from dataclasses import replace
from datetime import date
from decimal import Decimal
from typing import Any

from shop_kernel.domain.entities import (
    Asset,
    AssetStatus,
    Department,
    Employee,
    EmployeeStatus,
    InventoryCategory,
    Part,
    Permissions,
    Role,
    SiteConfig,
)
from shop_kernel.domain.money import to_amount
from shop_kernel.exceptions import (
    DuplicateRecordError,
    EntityNotFoundError,
    InvalidAmountError,
    InvalidQuantityError,
    InvalidStateTransitionError,
    MissingFieldError,
    ReferentialConflictError,
    ValidationError,
)
from shop_kernel.logging_config import get_logger
from shop_kernel.services.base import BaseService
from shop_kernel.store import EntityType
from shop_kernel.utils.ids import generate_staff_id

logger = get_logger("services.catalog")

# Part fields a catalog edit may change.
_EDITABLE_PART_FIELDS = frozenset({
    "name", "supplier", "category", "min_stock_level", "sale_price", "cost_price",
})

_EDITABLE_ASSET_FIELDS = frozenset({
    "tag", "serial_number", "model", "category", "specs",
    "purchase_date", "warranty_expiry",
})


def _required(value: str | None, entity_type: str, field_name: str) -> str:
    if value is None or not str(value).strip():
        raise MissingFieldError(entity_type, field_name)
    return str(value).strip()


def _price(value: Any) -> Decimal:
    try:
        amount = to_amount(value)
    except ValueError as exc:
        raise InvalidAmountError(value, str(exc)) from exc
    if amount < 0:
        raise InvalidAmountError(value, "cannot be negative")
    return amount


def _count(value: Any) -> int:
    if isinstance(value, bool) or not isinstance(value, int) or value < 0:
        raise InvalidQuantityError(value, "must be a non-negative integer")
    return value


class CatalogService(BaseService):
    """Service for reference-data maintenance."""

    def __init__(self, store, clock=None, ids=None, rng: random.Random | None = None):
        super().__init__(store, clock, ids)
        self.rng = rng or random.Random()

    # ------------------------------------------------------------------
    # Parts
    # ------------------------------------------------------------------

    def add_part(
        self,
        name: str,
        supplier: str,
        category: str,
        stock: int = 0,
        min_stock_level: int = 0,
        sale_price: Decimal | int | str = 0,
        cost_price: Decimal | int | str = 0,
    ) -> Part:
        """Create a part; ``stock`` is recorded as its opening stock."""
        name = _required(name, "Part", "name")
        supplier = _required(supplier, "Part", "supplier")
        stock = _count(stock)
        with self.store.locked():
            self._require_category(category)
            part = Part(
                id=self.ids.new_id("P"),
                name=name,
                supplier=supplier,
                category=category,
                stock=stock,
                min_stock_level=_count(min_stock_level),
                sale_price=_price(sale_price),
                cost_price=_price(cost_price),
                opening_stock=stock,
            )
            self.store.upsert(part)
        logger.info(
            "part_created",
            extra={"part_id": part.id, "category": category, "opening_stock": stock},
        )
        return part

    def update_part(self, part_id: str, **changes: Any) -> Part:
        """
        Edit descriptive fields of a part.

        Raises:
            ValidationError: an attempt to edit stock or an unknown field.
        """
        if "stock" in changes or "opening_stock" in changes:
            raise ValidationError(
                f"Part {part_id}: stock changes only through transaction approval"
            )
        unknown = set(changes) - _EDITABLE_PART_FIELDS
        if unknown:
            raise ValidationError(f"Part fields not editable: {sorted(unknown)}")

        if "name" in changes:
            changes["name"] = _required(changes["name"], "Part", "name")
        if "supplier" in changes:
            changes["supplier"] = _required(changes["supplier"], "Part", "supplier")
        if "min_stock_level" in changes:
            changes["min_stock_level"] = _count(changes["min_stock_level"])
        for key in ("sale_price", "cost_price"):
            if key in changes:
                changes[key] = _price(changes[key])

        with self.store.locked():
            part: Part = self.store.get(EntityType.PART, part_id)
            if "category" in changes:
                self._require_category(changes["category"])
            updated = replace(part, **changes)
            self.store.upsert(updated)
        logger.info("part_updated", extra={"part_id": part_id, "fields": sorted(changes)})
        return updated

    def remove_part(self, part_id: str) -> Part:
        return self.store.remove(EntityType.PART, part_id)

    # ------------------------------------------------------------------
    # Assets
    # ------------------------------------------------------------------

    def add_asset(
        self,
        tag: str,
        serial_number: str,
        model: str,
        category: str,
        specs: str = "",
        purchase_date: date | None = None,
        warranty_expiry: date | None = None,
    ) -> Asset:
        tag = _required(tag, "Asset", "tag")
        with self.store.locked():
            self._require_unique_tag(tag)
            asset = Asset(
                id=self.ids.new_id("ASSET"),
                tag=tag,
                serial_number=_required(serial_number, "Asset", "serial_number"),
                model=_required(model, "Asset", "model"),
                category=_required(category, "Asset", "category"),
                specs=specs,
                purchase_date=purchase_date,
                warranty_expiry=warranty_expiry,
            )
            self.store.upsert(asset)
        logger.info("asset_created", extra={"asset_id": asset.id, "tag": tag})
        return asset

    def update_asset(self, asset_id: str, **changes: Any) -> Asset:
        if "status" in changes:
            raise ValidationError("Use set_asset_status to change an asset's status")
        unknown = set(changes) - _EDITABLE_ASSET_FIELDS
        if unknown:
            raise ValidationError(f"Asset fields not editable: {sorted(unknown)}")
        with self.store.locked():
            asset: Asset = self.store.get(EntityType.ASSET, asset_id)
            if "tag" in changes and changes["tag"] != asset.tag:
                changes["tag"] = _required(changes["tag"], "Asset", "tag")
                self._require_unique_tag(changes["tag"])
            updated = replace(asset, **changes)
            self.store.upsert(updated)
        logger.info("asset_updated", extra={"asset_id": asset_id, "fields": sorted(changes)})
        return updated

    def set_asset_status(self, asset_id: str, status: AssetStatus) -> Asset:
        """
        Move an asset between Available, In Repair and Retired.

        Raises:
            InvalidStateTransitionError: target is Assigned, or the asset
                currently has an open assignment.
        """
        status = AssetStatus(status)
        with self.store.locked():
            asset: Asset = self.store.get(EntityType.ASSET, asset_id)
            open_ids = [
                a.id for a in self.store.list(EntityType.ASSIGNMENT)
                if a.asset_id == asset_id and a.is_open
            ]
            if status == AssetStatus.ASSIGNED or open_ids:
                raise InvalidStateTransitionError(
                    "Asset", asset_id, asset.status.value, status.value,
                )
            updated = replace(asset, status=status)
            self.store.upsert(updated)
        logger.info(
            "asset_status_changed",
            extra={"asset_id": asset_id, "from_state": asset.status.value, "to_state": status.value},
        )
        return updated

    def remove_asset(self, asset_id: str) -> Asset:
        return self.store.remove(EntityType.ASSET, asset_id)

    # ------------------------------------------------------------------
    # Inventory categories
    # ------------------------------------------------------------------

    def add_category(self, name: str, is_visible: bool = True) -> InventoryCategory:
        name = _required(name, "InventoryCategory", "name")
        with self.store.locked():
            existing = self.store.list(EntityType.INVENTORY_CATEGORY)
            if any(c.name.casefold() == name.casefold() for c in existing):
                raise DuplicateRecordError("InventoryCategory", "name", name)
            category = InventoryCategory(
                id=self.ids.new_id("cat"),
                name=name,
                is_visible=is_visible,
                sort_order=max((c.sort_order for c in existing), default=-1) + 1,
            )
            self.store.upsert(category)
        logger.info("category_created", extra={"category_id": category.id, "category_name": name})
        return category

    def set_category_visibility(self, category_id: str, is_visible: bool) -> InventoryCategory:
        with self.store.locked():
            category = self.store.get(EntityType.INVENTORY_CATEGORY, category_id)
            updated = replace(category, is_visible=is_visible)
            self.store.upsert(updated)
        return updated

    def reorder_categories(self, ordered_ids: list[str]) -> list[InventoryCategory]:
        """Assign ``sort_order`` by position in ``ordered_ids``."""
        return self._reorder(EntityType.INVENTORY_CATEGORY, ordered_ids)

    def remove_category(self, category_id: str) -> InventoryCategory:
        return self.store.remove(EntityType.INVENTORY_CATEGORY, category_id)

    # ------------------------------------------------------------------
    # Departments
    # ------------------------------------------------------------------

    def add_department(self, name: str) -> Department:
        name = _required(name, "Department", "name")
        with self.store.locked():
            existing = self.store.list(EntityType.DEPARTMENT)
            if any(d.name.casefold() == name.casefold() for d in existing):
                raise DuplicateRecordError("Department", "name", name)
            department = Department(
                id=self.ids.new_id("dept"),
                name=name,
                sort_order=max((d.sort_order for d in existing), default=-1) + 1,
            )
            self.store.upsert(department)
        logger.info("department_created", extra={"department_id": department.id, "department_name": name})
        return department

    def reorder_departments(self, ordered_ids: list[str]) -> list[Department]:
        return self._reorder(EntityType.DEPARTMENT, ordered_ids)

    def remove_department(self, department_id: str) -> Department:
        return self.store.remove(EntityType.DEPARTMENT, department_id)

    # ------------------------------------------------------------------
    # Employees
    # ------------------------------------------------------------------

    def add_employee(
        self,
        name: str,
        email: str,
        department: str,
        role: Role = Role.STAFF,
        status: EmployeeStatus = EmployeeStatus.ACTIVE,
        permissions: Permissions | None = None,
    ) -> Employee:
        """Create an employee directly (staff directory), Active by default."""
        name = _required(name, "Employee", "name")
        email = _required(email, "Employee", "email")
        with self.store.locked():
            if any(e.email.casefold() == email.casefold()
                   for e in self.store.list(EntityType.EMPLOYEE)):
                raise DuplicateRecordError("Employee", "email", email)
            self._require_department(department)
            employee = Employee(
                id=self.ids.new_id("E"),
                staff_id=generate_staff_id(self.store.site.site_abbreviation, self.rng),
                name=name,
                email=email,
                department=department,
                role=Role(role),
                status=EmployeeStatus(status),
                permissions=permissions or Permissions(),
                join_date=self.clock.today(),
            )
            self.store.upsert(employee)
        logger.info(
            "employee_created",
            extra={"employee_id": employee.id, "role": employee.role.value},
        )
        return employee

    def update_employee(
        self,
        employee_id: str,
        *,
        role: Role | None = None,
        status: EmployeeStatus | None = None,
        permissions: Permissions | None = None,
        department: str | None = None,
    ) -> Employee:
        """Change role, status, permission flags or department."""
        with self.store.locked():
            employee: Employee = self.store.get(EntityType.EMPLOYEE, employee_id)
            changes: dict[str, Any] = {}
            if role is not None:
                changes["role"] = Role(role)
            if status is not None:
                changes["status"] = EmployeeStatus(status)
            if permissions is not None:
                changes["permissions"] = permissions
            if department is not None:
                self._require_department(department)
                changes["department"] = department
            if changes.get("status") == EmployeeStatus.INACTIVE:
                self._require_no_open_assignments(employee_id)
            updated = replace(employee, **changes)
            self.store.upsert(updated)
        logger.info(
            "employee_updated",
            extra={"employee_id": employee_id, "fields": sorted(changes)},
        )
        return updated

    def deactivate_employee(self, employee_id: str) -> Employee:
        """Set status Inactive.  Refused while the employee holds assets."""
        return self.update_employee(employee_id, status=EmployeeStatus.INACTIVE)

    # ------------------------------------------------------------------
    # Site
    # ------------------------------------------------------------------

    def update_site(self, site_name: str | None = None, currency: str | None = None) -> SiteConfig:
        with self.store.locked():
            updated = self.store.site
            if site_name is not None:
                updated = replace(updated, site_name=_required(site_name, "SiteConfig", "site_name"))
            if currency is not None:
                updated = replace(updated, currency=_required(currency, "SiteConfig", "currency"))
            self.store.set_site(updated)
        logger.info(
            "site_config_updated",
            extra={"site_name": updated.site_name, "currency": updated.currency},
        )
        return updated

    # ------------------------------------------------------------------
    # Helpers
    # ------------------------------------------------------------------

    def _require_category(self, name: str) -> None:
        if not any(c.name == name for c in self.store.list(EntityType.INVENTORY_CATEGORY)):
            raise EntityNotFoundError("InventoryCategory", name)

    def _require_department(self, name: str) -> None:
        if not any(d.name == name for d in self.store.list(EntityType.DEPARTMENT)):
            raise EntityNotFoundError("Department", name)

    def _require_unique_tag(self, tag: str) -> None:
        if any(a.tag == tag for a in self.store.list(EntityType.ASSET)):
            raise DuplicateRecordError("Asset", "tag", tag)

    def _require_no_open_assignments(self, employee_id: str) -> None:
        open_ids = tuple(
            a.id for a in self.store.list(EntityType.ASSIGNMENT)
            if a.employee_id == employee_id and a.is_open
        )
        if open_ids:
            raise ReferentialConflictError("Employee", employee_id, "Assignment", open_ids)

    def _reorder(self, entity_type: EntityType, ordered_ids: list[str]) -> list:
        with self.store.locked():
            records = [self.store.get(entity_type, record_id) for record_id in ordered_ids]
            reordered = [replace(r, sort_order=i) for i, r in enumerate(records)]
            for r in reordered:
                self.store.upsert(r)
        return reordered
