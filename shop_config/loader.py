"""
Configuration Loader (``shop_config.loader``).

Responsibility
--------------
Loads the YAML fragments of a configuration directory and parses them into
``shop_config.schema`` dataclasses.  The single public entry point for
runtime configuration is ``shop_config.get_active_config()``; this module
is its internal tooling.

Invariants enforced
-------------------
* Missing required keys raise ``KeyError``; bad dates raise ``ValueError``.
  There are no silent defaults for required fields.
* ``compute_checksum`` is deterministic for the same parsed content.

Failure modes
-------------
* Missing ``site.yaml``  -> ``FileNotFoundError`` propagates.
* Malformed YAML  -> ``yaml.YAMLError`` propagates.
"""

from __future__ import annotations

import hashlib
import json
from datetime import date
from pathlib import Path
from typing import Any

import yaml

from shop_config.schema import (
    AssetSeed,
    AuthDef,
    CategorySeed,
    DepartmentSeed,
    EmployeeSeed,
    LoggingDef,
    PartSeed,
    PermissionsDef,
    PersistenceDef,
    SeedData,
    ShopConfiguration,
    SiteDef,
)

SITE_FILE = "site.yaml"
SEED_FILE = "seed.yaml"


def load_yaml_file(path: Path) -> dict[str, Any]:
    """
    Load a single YAML file and return its contents as a dict.

    Raises:
        FileNotFoundError: if the file does not exist.
        yaml.YAMLError: if the file contains invalid YAML.
    """
    with open(path) as f:
        return yaml.safe_load(f) or {}


def parse_date(value: Any) -> date | None:
    """Parse a YAML date (already a ``date``, or an ISO string)."""
    if value is None or value == "":
        return None
    if isinstance(value, date):
        return value
    if isinstance(value, str):
        return date.fromisoformat(value)
    raise ValueError(f"Cannot parse date from {value!r}")


def parse_site(data: dict[str, Any]) -> SiteDef:
    return SiteDef(
        site_name=str(data.get("site_name", SiteDef.site_name)),
        currency=str(data.get("currency", SiteDef.currency)),
    )


def parse_auth(data: dict[str, Any]) -> AuthDef:
    return AuthDef(
        master_identifier=str(data.get("master_identifier", AuthDef.master_identifier)),
        master_secret=str(data.get("master_secret", AuthDef.master_secret)),
        universal_secret=str(data.get("universal_secret", AuthDef.universal_secret)),
        allow_universal_fallback=bool(
            data.get("allow_universal_fallback", AuthDef.allow_universal_fallback)
        ),
        session_key=str(data.get("session_key", AuthDef.session_key)),
    )


def parse_persistence(data: dict[str, Any]) -> PersistenceDef:
    return PersistenceDef(
        database_url=str(data.get("database_url", PersistenceDef.database_url)),
        background_saves=bool(data.get("background_saves", PersistenceDef.background_saves)),
    )


def parse_logging(data: dict[str, Any]) -> LoggingDef:
    return LoggingDef(level=str(data.get("level", LoggingDef.level)).upper())


def parse_employee(data: dict[str, Any]) -> EmployeeSeed:
    perms = data.get("permissions") or {}
    return EmployeeSeed(
        id=str(data["id"]),
        staff_id=str(data["staff_id"]),
        name=data["name"],
        email=data["email"],
        department=data["department"],
        role=data["role"],
        status=data.get("status", "Active"),
        password=str(data.get("password", "password")),
        permissions=PermissionsDef(
            can_delete=bool(perms.get("can_delete", False)),
            can_export=bool(perms.get("can_export", False)),
            can_access_ai=bool(perms.get("can_access_ai", False)),
            can_manage_users=bool(perms.get("can_manage_users", False)),
        ),
        join_date=parse_date(data.get("join_date")),
    )


def parse_asset(data: dict[str, Any]) -> AssetSeed:
    return AssetSeed(
        id=str(data["id"]),
        tag=str(data["tag"]),
        serial_number=str(data["serial_number"]),
        model=data["model"],
        category=data["category"],
        specs=data.get("specs", ""),
        status=data.get("status", "Available"),
        purchase_date=parse_date(data.get("purchase_date")),
        warranty_expiry=parse_date(data.get("warranty_expiry")),
    )


def parse_part(data: dict[str, Any]) -> PartSeed:
    return PartSeed(
        id=str(data["id"]),
        name=data["name"],
        supplier=data["supplier"],
        category=data["category"],
        stock=data.get("stock", 0),
        min_stock_level=data.get("min_stock_level", 0),
        sale_price=str(data.get("sale_price", "0")),
        cost_price=str(data.get("cost_price", "0")),
    )


def parse_seed(data: dict[str, Any]) -> SeedData:
    return SeedData(
        employees=tuple(parse_employee(e) for e in data.get("employees", [])),
        assets=tuple(parse_asset(a) for a in data.get("assets", [])),
        parts=tuple(parse_part(p) for p in data.get("parts", [])),
        inventory_categories=tuple(
            CategorySeed(id=str(c["id"]), name=c["name"], is_visible=bool(c.get("is_visible", True)))
            for c in data.get("inventory_categories", [])
        ),
        departments=tuple(
            DepartmentSeed(id=str(d["id"]), name=d["name"])
            for d in data.get("departments", [])
        ),
    )


def compute_checksum(*documents: dict[str, Any]) -> str:
    """SHA-256 over the canonical JSON of the raw documents."""
    canonical = json.dumps(list(documents), sort_keys=True, separators=(",", ":"), default=str)
    return hashlib.sha256(canonical.encode("utf-8")).hexdigest()


def load_configuration(config_dir: Path) -> ShopConfiguration:
    """
    Load ``site.yaml`` and (if present) ``seed.yaml`` from ``config_dir``.

    Raises:
        FileNotFoundError: ``site.yaml`` is missing.
        KeyError / ValueError: a fragment is malformed.
    """
    site_doc = load_yaml_file(config_dir / SITE_FILE)
    seed_path = config_dir / SEED_FILE
    seed_doc = load_yaml_file(seed_path) if seed_path.exists() else {}

    return ShopConfiguration(
        config_id=str(site_doc.get("config_id", config_dir.name)),
        version=int(site_doc.get("version", 1)),
        site=parse_site(site_doc.get("site") or {}),
        auth=parse_auth(site_doc.get("auth") or {}),
        persistence=parse_persistence(site_doc.get("persistence") or {}),
        logging=parse_logging(site_doc.get("logging") or {}),
        seed=parse_seed(seed_doc),
        checksum=compute_checksum(site_doc, seed_doc),
    )
