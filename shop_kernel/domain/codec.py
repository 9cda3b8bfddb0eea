"""
Snapshot codec (``shop_kernel.domain.codec``).

Responsibility
--------------
Converts a ``FullState`` to a single JSON-compatible document and back.
The document is the persistence contract: snapshot stores only ever see
plain dicts, lists, strings, numbers, booleans and None.

Encoding rules
--------------
* ``Decimal``   -> string (never float, so prices survive a round trip)
* ``date``      -> ISO-8601 date string
* ``datetime``  -> ISO-8601 string with offset
* enums         -> their ``value``
* tuples        -> lists

Failure modes
-------------
* ``SnapshotFormatError`` if the document is missing a collection, has an
  unsupported ``schema_version``, or a record cannot be rebuilt.
"""

from __future__ import annotations

from datetime import date, datetime
from decimal import Decimal
from typing import Any

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

SCHEMA_VERSION = 1

COLLECTION_KEYS: tuple[str, ...] = (
    "employees",
    "assets",
    "assignments",
    "parts",
    "transactions",
    "repairs",
    "invoices",
    "inventory_categories",
    "departments",
)


class SnapshotFormatError(ValueError):
    """Document cannot be decoded into a FullState."""


# -------------------------------------------------------------------------
# Scalars
# -------------------------------------------------------------------------


def _iso(value: date | datetime | None) -> str | None:
    return value.isoformat() if value is not None else None


def _date(value: str | None) -> date | None:
    return date.fromisoformat(value) if value else None


def _datetime(value: str | None) -> datetime | None:
    return datetime.fromisoformat(value) if value else None


def _money(value: Any) -> Decimal:
    return Decimal(str(value)) if value is not None else Decimal("0")


# -------------------------------------------------------------------------
# Encoding
# -------------------------------------------------------------------------


def _encode_employee(e: Employee) -> dict[str, Any]:
    return {
        "id": e.id,
        "staff_id": e.staff_id,
        "name": e.name,
        "email": e.email,
        "department": e.department,
        "role": e.role.value,
        "status": e.status.value,
        "permissions": {
            "can_delete": e.permissions.can_delete,
            "can_export": e.permissions.can_export,
            "can_access_ai": e.permissions.can_access_ai,
            "can_manage_users": e.permissions.can_manage_users,
        },
        "password": e.password,
        "join_date": _iso(e.join_date),
    }


def _encode_asset(a: Asset) -> dict[str, Any]:
    return {
        "id": a.id,
        "tag": a.tag,
        "serial_number": a.serial_number,
        "model": a.model,
        "category": a.category,
        "specs": a.specs,
        "status": a.status.value,
        "purchase_date": _iso(a.purchase_date),
        "warranty_expiry": _iso(a.warranty_expiry),
    }


def _encode_assignment(a: Assignment) -> dict[str, Any]:
    return {
        "id": a.id,
        "asset_id": a.asset_id,
        "employee_id": a.employee_id,
        "checkout_date": _iso(a.checkout_date),
        "return_date": _iso(a.return_date),
        "notes": a.notes,
    }


def _encode_part(p: Part) -> dict[str, Any]:
    return {
        "id": p.id,
        "name": p.name,
        "supplier": p.supplier,
        "category": p.category,
        "stock": p.stock,
        "min_stock_level": p.min_stock_level,
        "sale_price": str(p.sale_price),
        "cost_price": str(p.cost_price),
        "opening_stock": p.opening_stock,
    }


def _encode_transaction(t: Transaction) -> dict[str, Any]:
    return {
        "id": t.id,
        "part_id": t.part_id,
        "quantity": t.quantity,
        "type": t.type.value,
        "status": t.status.value,
        "requested_by": t.requested_by,
        "approved_by": t.approved_by,
        "timestamp": _iso(t.timestamp),
        "resolved_at": _iso(t.resolved_at),
        "applied_delta": t.applied_delta,
        "repair_id": t.repair_id,
        "note": t.note,
    }


def _encode_repair(r: RepairJob) -> dict[str, Any]:
    return {
        "id": r.id,
        "customer_name": r.customer_name,
        "customer_phone": r.customer_phone,
        "device": r.device,
        "issue": r.issue,
        "asset_id": r.asset_id,
        "status": r.status.value,
        "parts_used": [
            {"part_id": u.part_id, "quantity": u.quantity, "transaction_id": u.transaction_id}
            for u in r.parts_used
        ],
        "labor_cost": str(r.labor_cost),
        "estimated_cost": str(r.estimated_cost),
        "created_at": _iso(r.created_at),
        "updated_at": _iso(r.updated_at),
    }


def _encode_invoice(i: Invoice) -> dict[str, Any]:
    return {
        "id": i.id,
        "repair_id": i.repair_id,
        "customer_name": i.customer_name,
        "line_items": [
            {
                "description": li.description,
                "quantity": li.quantity,
                "unit_price": str(li.unit_price),
                "kind": li.kind.value,
                "part_id": li.part_id,
            }
            for li in i.line_items
        ],
        "total": str(i.total),
        "amount_paid": str(i.amount_paid),
        "payment_status": i.payment_status.value,
        "issued_at": _iso(i.issued_at),
        "paid_at": _iso(i.paid_at),
    }


def _encode_category(c: InventoryCategory) -> dict[str, Any]:
    return {"id": c.id, "name": c.name, "is_visible": c.is_visible, "sort_order": c.sort_order}


def _encode_department(d: Department) -> dict[str, Any]:
    return {"id": d.id, "name": d.name, "sort_order": d.sort_order}


def encode_state(state: FullState) -> dict[str, Any]:
    """Encode the complete state as one JSON-compatible document."""
    return {
        "schema_version": SCHEMA_VERSION,
        "employees": [_encode_employee(e) for e in state.employees],
        "assets": [_encode_asset(a) for a in state.assets],
        "assignments": [_encode_assignment(a) for a in state.assignments],
        "parts": [_encode_part(p) for p in state.parts],
        "transactions": [_encode_transaction(t) for t in state.transactions],
        "repairs": [_encode_repair(r) for r in state.repairs],
        "invoices": [_encode_invoice(i) for i in state.invoices],
        "inventory_categories": [_encode_category(c) for c in state.inventory_categories],
        "departments": [_encode_department(d) for d in state.departments],
        "site": {"site_name": state.site.site_name, "currency": state.site.currency},
    }


def encode_employee(employee: Employee) -> dict[str, Any]:
    """Encode one employee record (used by the session store)."""
    return _encode_employee(employee)


# -------------------------------------------------------------------------
# Decoding
# -------------------------------------------------------------------------


def _decode_employee(d: dict[str, Any]) -> Employee:
    perms = d.get("permissions") or {}
    return Employee(
        id=d["id"],
        staff_id=d["staff_id"],
        name=d["name"],
        email=d["email"],
        department=d["department"],
        role=Role(d["role"]),
        status=EmployeeStatus(d["status"]),
        permissions=Permissions(
            can_delete=bool(perms.get("can_delete", False)),
            can_export=bool(perms.get("can_export", False)),
            can_access_ai=bool(perms.get("can_access_ai", False)),
            can_manage_users=bool(perms.get("can_manage_users", False)),
        ),
        password=d.get("password", ""),
        join_date=_date(d.get("join_date")),
    )


def _decode_asset(d: dict[str, Any]) -> Asset:
    return Asset(
        id=d["id"],
        tag=d["tag"],
        serial_number=d["serial_number"],
        model=d["model"],
        category=d["category"],
        specs=d.get("specs", ""),
        status=AssetStatus(d["status"]),
        purchase_date=_date(d.get("purchase_date")),
        warranty_expiry=_date(d.get("warranty_expiry")),
    )


def _decode_assignment(d: dict[str, Any]) -> Assignment:
    return Assignment(
        id=d["id"],
        asset_id=d["asset_id"],
        employee_id=d["employee_id"],
        checkout_date=_datetime(d["checkout_date"]),
        return_date=_datetime(d.get("return_date")),
        notes=d.get("notes", ""),
    )


def _decode_part(d: dict[str, Any]) -> Part:
    return Part(
        id=d["id"],
        name=d["name"],
        supplier=d.get("supplier", ""),
        category=d["category"],
        stock=int(d["stock"]),
        min_stock_level=int(d.get("min_stock_level", 0)),
        sale_price=_money(d.get("sale_price")),
        cost_price=_money(d.get("cost_price")),
        opening_stock=int(d.get("opening_stock", 0)),
    )


def _decode_transaction(d: dict[str, Any]) -> Transaction:
    return Transaction(
        id=d["id"],
        part_id=d["part_id"],
        quantity=int(d["quantity"]),
        type=TransactionType(d["type"]),
        status=TransactionStatus(d["status"]),
        requested_by=d["requested_by"],
        approved_by=d.get("approved_by"),
        timestamp=_datetime(d["timestamp"]),
        resolved_at=_datetime(d.get("resolved_at")),
        applied_delta=int(d.get("applied_delta", 0)),
        repair_id=d.get("repair_id"),
        note=d.get("note", ""),
    )


def _decode_repair(d: dict[str, Any]) -> RepairJob:
    return RepairJob(
        id=d["id"],
        customer_name=d["customer_name"],
        customer_phone=d.get("customer_phone", ""),
        device=d["device"],
        issue=d.get("issue", ""),
        asset_id=d.get("asset_id"),
        status=RepairStatus(d["status"]),
        parts_used=tuple(
            PartUsage(
                part_id=u["part_id"],
                quantity=int(u["quantity"]),
                transaction_id=u["transaction_id"],
            )
            for u in d.get("parts_used", [])
        ),
        labor_cost=_money(d.get("labor_cost")),
        estimated_cost=_money(d.get("estimated_cost")),
        created_at=_datetime(d["created_at"]),
        updated_at=_datetime(d.get("updated_at")),
    )


def _decode_invoice(d: dict[str, Any]) -> Invoice:
    return Invoice(
        id=d["id"],
        repair_id=d["repair_id"],
        customer_name=d.get("customer_name", ""),
        line_items=tuple(
            LineItem(
                description=li["description"],
                quantity=int(li["quantity"]),
                unit_price=_money(li["unit_price"]),
                kind=LineItemKind(li.get("kind", LineItemKind.OTHER.value)),
                part_id=li.get("part_id"),
            )
            for li in d.get("line_items", [])
        ),
        total=_money(d["total"]),
        amount_paid=_money(d.get("amount_paid")),
        payment_status=PaymentStatus(d["payment_status"]),
        issued_at=_datetime(d["issued_at"]),
        paid_at=_datetime(d.get("paid_at")),
    )


def _decode_category(d: dict[str, Any]) -> InventoryCategory:
    return InventoryCategory(
        id=d["id"],
        name=d["name"],
        is_visible=bool(d.get("is_visible", True)),
        sort_order=int(d.get("sort_order", 0)),
    )


def _decode_department(d: dict[str, Any]) -> Department:
    return Department(id=d["id"], name=d["name"], sort_order=int(d.get("sort_order", 0)))


_DECODERS = {
    "employees": _decode_employee,
    "assets": _decode_asset,
    "assignments": _decode_assignment,
    "parts": _decode_part,
    "transactions": _decode_transaction,
    "repairs": _decode_repair,
    "invoices": _decode_invoice,
    "inventory_categories": _decode_category,
    "departments": _decode_department,
}


def decode_state(document: dict[str, Any]) -> FullState:
    """Rebuild a ``FullState`` from a document produced by ``encode_state``.

    Raises:
        SnapshotFormatError: if the document is not a valid snapshot.
    """
    if not isinstance(document, dict):
        raise SnapshotFormatError(f"Snapshot must be an object, got {type(document).__name__}")

    version = document.get("schema_version")
    if version != SCHEMA_VERSION:
        raise SnapshotFormatError(f"Unsupported snapshot schema_version: {version!r}")

    collections: dict[str, tuple] = {}
    for key in COLLECTION_KEYS:
        if key not in document:
            raise SnapshotFormatError(f"Snapshot is missing collection '{key}'")
        decoder = _DECODERS[key]
        try:
            collections[key] = tuple(decoder(item) for item in document[key])
        except (KeyError, TypeError, ValueError) as exc:
            raise SnapshotFormatError(f"Invalid record in '{key}': {exc}") from exc

    site_doc = document.get("site") or {}
    site = SiteConfig(
        site_name=site_doc.get("site_name", SiteConfig.site_name),
        currency=site_doc.get("currency", SiteConfig.currency),
    )
    return FullState(site=site, **collections)


def decode_employee(document: dict[str, Any]) -> Employee:
    """Decode one employee record (used by the session store)."""
    try:
        return _decode_employee(document)
    except (KeyError, TypeError, ValueError) as exc:
        raise SnapshotFormatError(f"Invalid employee record: {exc}") from exc
