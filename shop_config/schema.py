"""
Configuration Schema (``shop_config.schema``).

Responsibility
--------------
Frozen dataclasses describing the parsed YAML configuration: site
settings, login rules, persistence target and the first-run seed
records.  These are plain data; nothing here knows about the kernel.

Architecture position
---------------------
**Config layer** -- pure data definitions.  Produced by
``shop_config.loader``, checked by ``shop_config.validator``, translated
into kernel objects by ``shop_config.bridges``.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from datetime import date


@dataclass(frozen=True)
class SiteDef:
    site_name: str = "MobiFix"
    currency: str = "$"


@dataclass(frozen=True)
class AuthDef:
    master_identifier: str = "Admin"
    master_secret: str = "1234"
    universal_secret: str = "admin"
    allow_universal_fallback: bool = True
    session_key: str = "mobifix_session"


@dataclass(frozen=True)
class PersistenceDef:
    database_url: str = "sqlite:///mobifix.db"
    background_saves: bool = True


@dataclass(frozen=True)
class LoggingDef:
    level: str = "INFO"


@dataclass(frozen=True)
class PermissionsDef:
    can_delete: bool = False
    can_export: bool = False
    can_access_ai: bool = False
    can_manage_users: bool = False


@dataclass(frozen=True)
class EmployeeSeed:
    id: str
    staff_id: str
    name: str
    email: str
    department: str
    role: str
    status: str = "Active"
    password: str = "password"
    permissions: PermissionsDef = field(default_factory=PermissionsDef)
    join_date: date | None = None


@dataclass(frozen=True)
class AssetSeed:
    id: str
    tag: str
    serial_number: str
    model: str
    category: str
    specs: str = ""
    status: str = "Available"
    purchase_date: date | None = None
    warranty_expiry: date | None = None


@dataclass(frozen=True)
class PartSeed:
    """Prices stay strings here; the bridge turns them into Decimal."""

    id: str
    name: str
    supplier: str
    category: str
    stock: int = 0
    min_stock_level: int = 0
    sale_price: str = "0"
    cost_price: str = "0"


@dataclass(frozen=True)
class CategorySeed:
    id: str
    name: str
    is_visible: bool = True


@dataclass(frozen=True)
class DepartmentSeed:
    id: str
    name: str


@dataclass(frozen=True)
class SeedData:
    employees: tuple[EmployeeSeed, ...] = ()
    assets: tuple[AssetSeed, ...] = ()
    parts: tuple[PartSeed, ...] = ()
    inventory_categories: tuple[CategorySeed, ...] = ()
    departments: tuple[DepartmentSeed, ...] = ()


@dataclass(frozen=True)
class ShopConfiguration:
    """
    The complete, validated configuration.

    ``checksum`` is the SHA-256 of the raw YAML documents, so two loads of
    the same files always agree.
    """

    config_id: str
    version: int
    site: SiteDef
    auth: AuthDef
    persistence: PersistenceDef
    logging: LoggingDef
    seed: SeedData
    checksum: str = ""
