"""Tests for InventorySelector and ReportSelector."""

from dataclasses import replace
from datetime import date
from decimal import Decimal

import pytest

from shop_kernel.domain.entities import AssetStatus, TransactionType
from shop_kernel.selectors.inventory_selector import InventorySelector
from shop_kernel.selectors.report_selector import ReportSelector
from shop_kernel.store import EntityType


@pytest.fixture
def inventory(store):
    return InventorySelector(store)


@pytest.fixture
def reports(store):
    return ReportSelector(store)


class TestInventorySelector:

    def test_low_stock_on_seed(self, inventory):
        alerts = inventory.low_stock()
        assert [a.part_id for a in alerts] == ["P002"]
        assert alerts[0].shortfall == 2
        assert alerts[0].pending_intake == 0

    def test_low_stock_counts_pending_intake(self, inventory, ledger):
        ledger.request_transaction("P002", 4, TransactionType.STOCK_INTAKE, "E002")
        ledger.request_transaction("P002", 1, TransactionType.STOCK_USAGE, "E002")
        assert inventory.low_stock()[0].pending_intake == 4

    def test_intake_clears_alert(self, inventory, ledger):
        tx = ledger.request_transaction("P002", 10, TransactionType.STOCK_INTAKE, "E002")
        ledger.approve_transaction(tx.id, "E001")
        assert inventory.low_stock() == []

    def test_seed_is_balanced(self, inventory):
        assert inventory.unbalanced_parts() == []

    def test_out_of_band_edit_detected(self, store, inventory):
        part = store.get(EntityType.PART, "P001")
        store.upsert(replace(part, stock=99))
        assert [r.part_id for r in inventory.unbalanced_parts()] == ["P001"]

    def test_valuation(self, inventory):
        value = inventory.valuation()
        assert value.part_count == 2
        assert value.units_on_hand == 15
        assert value.cost_value == Decimal("2040.00")
        assert value.sale_value == Decimal("3375.00")

    def test_visible_parts_respects_category_visibility(self, inventory, catalog):
        catalog.set_category_visibility("cat-1", False)
        assert [p.id for p in inventory.visible_parts()] == ["P002"]


class TestReportSelector:

    def test_dashboard_on_seed(self, reports):
        summary = reports.dashboard()
        assert summary.total_assets == 2
        assert summary.assets_by_status[AssetStatus.AVAILABLE.value] == 2
        assert summary.active_employees == 2
        assert summary.pending_employees == 0
        assert summary.low_stock_parts == 1

    def test_dashboard_tracks_activity(self, reports, tracker, ledger, auth):
        tracker.checkout("ASSET-1", "E002")
        ledger.request_transaction("P001", 1, TransactionType.STOCK_USAGE, "E002")
        auth.register("New Hire", "new@company.com", "IT")
        summary = reports.dashboard()
        assert summary.open_assignments == 1
        assert summary.assets_by_status["Assigned"] == 1
        assert summary.pending_transactions == 1
        assert summary.pending_employees == 1

    def test_revenue(self, reports, repairs, billing):
        job = repairs.open_job("Jane", "iPhone", labor_cost=100)
        repairs.start(job.id)
        repairs.complete(job.id)
        invoice = billing.generate_invoice(job.id)
        billing.record_payment(invoice.id, 40)

        revenue = reports.revenue()
        assert revenue.invoice_count == 1
        assert revenue.invoiced_total == Decimal("100.00")
        assert revenue.collected_total == Decimal("40.00")
        assert revenue.outstanding_total == Decimal("60.00")
        assert revenue.by_payment_status["Partially Paid"] == 1

    def test_repair_report_counts_approved_parts_only(self, reports, repairs):
        job = repairs.open_job("Jane", "iPhone", labor_cost=30)
        repairs.consume_part(job.id, "P001", 2, "E002", approver_id="E001")
        repairs.consume_part(job.id, "P002", 5, "E002")
        cancelled = repairs.open_job("Bob", "Pixel", labor_cost=50)
        repairs.cancel(cancelled.id)

        report = reports.repairs()
        assert report.total_jobs == 2
        assert report.by_status["Cancelled"] == 1
        assert report.parts_consumed == 2
        assert report.labor_total == Decimal("30.00")

    def test_warranty_expiring(self, reports):
        expiring = reports.warranty_expiring(date(2024, 12, 20), within_days=30)
        assert [a.id for a in expiring] == ["ASSET-1"]
