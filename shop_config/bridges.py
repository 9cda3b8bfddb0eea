"""
Config -> Kernel Bridges.

Functions that convert a ``ShopConfiguration`` into kernel inputs.  They
live in shop_config (the producer) because the kernel must NEVER import
shop_config.

Usage:
    from shop_config import get_active_config
    from shop_config.bridges import build_seed_state, build_settings

    config = get_active_config()
    app = ShopApplication.open(build_settings(config), build_seed_state(config))
"""

from __future__ import annotations

from decimal import Decimal

from shop_config.schema import ShopConfiguration
from shop_kernel.app import ShopSettings
from shop_kernel.domain.entities import (
    Asset,
    AssetStatus,
    Department,
    Employee,
    EmployeeStatus,
    FullState,
    InventoryCategory,
    Part,
    Permissions,
    Role,
    SiteConfig,
)
from shop_kernel.services.auth_service import AuthSettings


def build_site(config: ShopConfiguration) -> SiteConfig:
    return SiteConfig(site_name=config.site.site_name, currency=config.site.currency)


def build_settings(config: ShopConfiguration) -> ShopSettings:
    """Runtime settings for ``ShopApplication``."""
    a = config.auth
    return ShopSettings(
        database_url=config.persistence.database_url,
        site=build_site(config),
        auth=AuthSettings(
            master_identifier=a.master_identifier,
            master_secret=a.master_secret,
            universal_secret=a.universal_secret,
            allow_universal_fallback=a.allow_universal_fallback,
            session_key=a.session_key,
        ),
        background_saves=config.persistence.background_saves,
        log_level=config.logging.level,
    )


def build_seed_state(config: ShopConfiguration) -> FullState:
    """First-run state.  Seed stock becomes each part's opening stock."""
    seed = config.seed
    return FullState(
        employees=tuple(
            Employee(
                id=e.id,
                staff_id=e.staff_id,
                name=e.name,
                email=e.email,
                department=e.department,
                role=Role(e.role),
                status=EmployeeStatus(e.status),
                permissions=Permissions(
                    can_delete=e.permissions.can_delete,
                    can_export=e.permissions.can_export,
                    can_access_ai=e.permissions.can_access_ai,
                    can_manage_users=e.permissions.can_manage_users,
                ),
                password=e.password,
                join_date=e.join_date,
            )
            for e in seed.employees
        ),
        assets=tuple(
            Asset(
                id=a.id,
                tag=a.tag,
                serial_number=a.serial_number,
                model=a.model,
                category=a.category,
                specs=a.specs,
                status=AssetStatus(a.status),
                purchase_date=a.purchase_date,
                warranty_expiry=a.warranty_expiry,
            )
            for a in seed.assets
        ),
        parts=tuple(
            Part(
                id=p.id,
                name=p.name,
                supplier=p.supplier,
                category=p.category,
                stock=p.stock,
                min_stock_level=p.min_stock_level,
                sale_price=Decimal(p.sale_price),
                cost_price=Decimal(p.cost_price),
                opening_stock=p.stock,
            )
            for p in seed.parts
        ),
        inventory_categories=tuple(
            InventoryCategory(id=c.id, name=c.name, is_visible=c.is_visible, sort_order=i)
            for i, c in enumerate(seed.inventory_categories)
        ),
        departments=tuple(
            Department(id=d.id, name=d.name, sort_order=i)
            for i, d in enumerate(seed.departments)
        ),
        site=build_site(config),
    )
