"""Tests for CatalogService -- parts, assets, categories, departments, staff, site."""

from decimal import Decimal

import pytest

from shop_kernel.domain.entities import (
    AssetStatus,
    EmployeeStatus,
    Permissions,
    Role,
    TransactionType,
)
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
from shop_kernel.store import EntityType


class TestParts:

    def test_add_part_records_opening_stock(self, catalog):
        part = catalog.add_part(
            "Pixel 8 Battery", "TechParts Co", "Battery",
            stock=6, min_stock_level=2, sale_price="89.90", cost_price=50,
        )
        assert part.opening_stock == 6
        assert part.sale_price == Decimal("89.90")
        assert part.cost_price == Decimal("50.00")

    def test_unknown_category(self, catalog):
        with pytest.raises(EntityNotFoundError):
            catalog.add_part("Lens", "S", "Camera")

    def test_negative_values_rejected(self, catalog):
        with pytest.raises(InvalidQuantityError):
            catalog.add_part("Lens", "S", "Screen", stock=-1)
        with pytest.raises(InvalidAmountError):
            catalog.add_part("Lens", "S", "Screen", sale_price="-3")

    def test_stock_not_editable(self, catalog):
        with pytest.raises(ValidationError):
            catalog.update_part("P001", stock=50)

    def test_update_descriptive_fields(self, catalog):
        part = catalog.update_part("P001", supplier="New Supplier", min_stock_level=8)
        assert part.supplier == "New Supplier"
        assert part.is_low_stock is False
        assert part.stock == 12

    def test_remove_part_blocked_by_pending(self, catalog, ledger):
        ledger.request_transaction("P001", 1, TransactionType.STOCK_INTAKE, "E001")
        with pytest.raises(ReferentialConflictError):
            catalog.remove_part("P001")


class TestAssets:

    def test_add_asset(self, catalog):
        asset = catalog.add_asset("TAG-003", "SN1", "Pixel 8", "Mobile")
        assert asset.status == AssetStatus.AVAILABLE

    def test_duplicate_tag(self, catalog):
        with pytest.raises(DuplicateRecordError):
            catalog.add_asset("TAG-001", "SN1", "Pixel 8", "Mobile")

    def test_status_change(self, catalog):
        asset = catalog.set_asset_status("ASSET-1", AssetStatus.IN_REPAIR)
        assert asset.status == AssetStatus.IN_REPAIR

    def test_cannot_set_assigned_directly(self, catalog):
        with pytest.raises(InvalidStateTransitionError):
            catalog.set_asset_status("ASSET-1", AssetStatus.ASSIGNED)

    def test_cannot_change_status_while_assigned(self, catalog, tracker):
        tracker.checkout("ASSET-1", "E002")
        with pytest.raises(InvalidStateTransitionError):
            catalog.set_asset_status("ASSET-1", AssetStatus.RETIRED)

    def test_status_not_editable_through_update(self, catalog):
        with pytest.raises(ValidationError):
            catalog.update_asset("ASSET-1", status=AssetStatus.RETIRED)


class TestCategoriesAndDepartments:

    def test_add_and_hide_category(self, catalog):
        category = catalog.add_category("Camera", is_visible=True)
        hidden = catalog.set_category_visibility(category.id, False)
        assert hidden.is_visible is False

    def test_duplicate_category(self, catalog):
        with pytest.raises(DuplicateRecordError):
            catalog.add_category("Screen")

    def test_reorder(self, store, catalog):
        catalog.reorder_categories(["cat-3", "cat-1", "cat-2"])
        orders = {c.id: c.sort_order for c in store.list(EntityType.INVENTORY_CATEGORY)}
        assert orders == {"cat-3": 0, "cat-1": 1, "cat-2": 2}

    def test_department_in_use(self, catalog):
        with pytest.raises(ReferentialConflictError):
            catalog.remove_department("dept-2")

    def test_add_department(self, catalog):
        assert catalog.add_department("Legal").name == "Legal"
        with pytest.raises(DuplicateRecordError):
            catalog.add_department("Legal")


class TestEmployees:

    def test_add_employee(self, catalog, deterministic_clock):
        employee = catalog.add_employee("Ann", "ann@company.com", "Support", Role.STAFF)
        assert employee.status == EmployeeStatus.ACTIVE
        assert employee.staff_id.startswith("M-")
        assert employee.join_date == deterministic_clock.today()

    def test_email_unique_case_insensitive(self, catalog):
        with pytest.raises(DuplicateRecordError):
            catalog.add_employee("Dup", "ADMIN@company.com", "IT")

    def test_missing_name(self, catalog):
        with pytest.raises(MissingFieldError):
            catalog.add_employee(" ", "x@company.com", "IT")

    def test_update_role_and_permissions(self, catalog):
        updated = catalog.update_employee(
            "E002", role=Role.ADMIN, permissions=Permissions(can_delete=True),
        )
        assert updated.role == Role.ADMIN
        assert updated.permissions.can_delete

    def test_deactivate_refused_while_holding_assets(self, catalog, tracker):
        tracker.checkout("ASSET-1", "E002")
        with pytest.raises(ReferentialConflictError):
            catalog.deactivate_employee("E002")

    def test_deactivate(self, catalog):
        assert catalog.deactivate_employee("E002").status == EmployeeStatus.INACTIVE


class TestSite:

    def test_update_site(self, store, catalog):
        site = catalog.update_site(site_name="Fix Hub", currency="€")
        assert store.site == site
        assert site.site_abbreviation == "FH"

    def test_empty_name_rejected(self, catalog):
        with pytest.raises(MissingFieldError):
            catalog.update_site(site_name="")
