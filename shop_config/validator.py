"""
Configuration Validator (``shop_config.validator``).

Responsibility
--------------
Checks a parsed ``ShopConfiguration`` for structural problems before it is
handed to the kernel, so a bad seed file fails at load time instead of
inside a service.

Invariants enforced
-------------------
* Role, status and asset-status values are known.
* Record ids are unique per collection; employee emails are unique.
* Every employee's department and every part's category exist.
* Stock counts are non-negative integers; prices are non-negative decimals.
* The seed contains at least one Admin (the master login resolves to it).

Failure modes
-------------
* Errors  -> configuration MUST NOT be used.
* Warnings  -> usable, but worth a look (e.g. universal fallback enabled).
"""

from __future__ import annotations

from dataclasses import dataclass, field
from decimal import Decimal, InvalidOperation

from shop_config.schema import ShopConfiguration

VALID_ROLES = frozenset({"Admin", "Manager", "Staff"})
VALID_EMPLOYEE_STATUSES = frozenset({"Active", "Pending", "Inactive"})
VALID_ASSET_STATUSES = frozenset({"Available", "Assigned", "In Repair", "Retired"})
VALID_LOG_LEVELS = frozenset({"DEBUG", "INFO", "WARNING", "ERROR", "CRITICAL"})


@dataclass
class ConfigValidationResult:
    """
    Result of configuration validation.

    ``is_valid`` is True only when ``errors`` is empty.
    """

    errors: list[str] = field(default_factory=list)
    warnings: list[str] = field(default_factory=list)

    @property
    def is_valid(self) -> bool:
        return len(self.errors) == 0

    def add_error(self, msg: str) -> None:
        self.errors.append(msg)

    def add_warning(self, msg: str) -> None:
        self.warnings.append(msg)


def _check_unique(result: ConfigValidationResult, kind: str, values: list[str]) -> None:
    seen: set[str] = set()
    for v in values:
        if v in seen:
            result.add_error(f"Duplicate {kind}: {v}")
        seen.add(v)


def validate_configuration(config: ShopConfiguration) -> ConfigValidationResult:
    """Validate a loaded configuration."""
    result = ConfigValidationResult()
    seed = config.seed

    if not config.site.site_name.strip():
        result.add_error("site.site_name must not be empty")
    if not config.site.currency.strip():
        result.add_error("site.currency must not be empty")
    if config.logging.level not in VALID_LOG_LEVELS:
        result.add_error(f"logging.level must be one of {sorted(VALID_LOG_LEVELS)}")
    if config.auth.allow_universal_fallback:
        result.add_warning("auth.allow_universal_fallback is enabled")

    _check_unique(result, "employee id", [e.id for e in seed.employees])
    _check_unique(result, "employee email", [e.email.casefold() for e in seed.employees])
    _check_unique(result, "asset id", [a.id for a in seed.assets])
    _check_unique(result, "asset tag", [a.tag for a in seed.assets])
    _check_unique(result, "part id", [p.id for p in seed.parts])
    _check_unique(result, "category id", [c.id for c in seed.inventory_categories])
    _check_unique(result, "category name", [c.name for c in seed.inventory_categories])
    _check_unique(result, "department id", [d.id for d in seed.departments])
    _check_unique(result, "department name", [d.name for d in seed.departments])

    departments = {d.name for d in seed.departments}
    for e in seed.employees:
        if e.role not in VALID_ROLES:
            result.add_error(f"Employee {e.id}: unknown role {e.role!r}")
        if e.status not in VALID_EMPLOYEE_STATUSES:
            result.add_error(f"Employee {e.id}: unknown status {e.status!r}")
        if e.department not in departments:
            result.add_error(f"Employee {e.id}: unknown department {e.department!r}")

    if seed.employees and not any(e.role == "Admin" for e in seed.employees):
        result.add_error("Seed must contain at least one Admin employee")

    for a in seed.assets:
        if a.status not in VALID_ASSET_STATUSES:
            result.add_error(f"Asset {a.id}: unknown status {a.status!r}")
        elif a.status == "Assigned":
            result.add_error(f"Asset {a.id}: cannot be seeded as Assigned without an assignment")

    categories = {c.name for c in seed.inventory_categories}
    for p in seed.parts:
        if p.category not in categories:
            result.add_error(f"Part {p.id}: unknown category {p.category!r}")
        for name, count in (("stock", p.stock), ("min_stock_level", p.min_stock_level)):
            if isinstance(count, bool) or not isinstance(count, int) or count < 0:
                result.add_error(f"Part {p.id}: {name} must be a non-negative integer")
        for name, price in (("sale_price", p.sale_price), ("cost_price", p.cost_price)):
            try:
                if Decimal(price) < 0:
                    result.add_error(f"Part {p.id}: {name} cannot be negative")
            except InvalidOperation:
                result.add_error(f"Part {p.id}: {name} is not a number: {price!r}")

    return result
