"""
Module: shop_kernel.selectors.report_selector
Responsibility: Read-only summaries behind the dashboard and the reports
    view: asset utilisation, repair throughput, billing totals and warranty
    expiry.
Architecture position: Kernel > Selectors.
"""

from __future__ import annotations

from collections import Counter
from dataclasses import dataclass, field
from datetime import date, timedelta
from decimal import Decimal

from shop_kernel.domain.entities import (
    Asset,
    AssetStatus,
    EmployeeStatus,
    PaymentStatus,
    RepairStatus,
    TransactionStatus,
)
from shop_kernel.domain.money import sum_amounts
from shop_kernel.selectors.base import BaseSelector
from shop_kernel.store import EntityType


@dataclass(frozen=True)
class DashboardSummary:
    total_assets: int
    assets_by_status: dict[str, int]
    open_assignments: int
    active_employees: int
    pending_employees: int
    pending_transactions: int
    low_stock_parts: int


@dataclass(frozen=True)
class RevenueReport:
    invoice_count: int
    invoiced_total: Decimal
    collected_total: Decimal
    outstanding_total: Decimal
    by_payment_status: dict[str, int] = field(default_factory=dict)


@dataclass(frozen=True)
class RepairReport:
    total_jobs: int
    by_status: dict[str, int]
    parts_consumed: int
    labor_total: Decimal


class ReportSelector(BaseSelector):
    """Summaries over the whole store."""

    def dashboard(self) -> DashboardSummary:
        assets = self.store.list(EntityType.ASSET)
        employees = self.store.list(EntityType.EMPLOYEE)
        status_counts = Counter(a.status.value for a in assets)
        return DashboardSummary(
            total_assets=len(assets),
            assets_by_status={s.value: status_counts.get(s.value, 0) for s in AssetStatus},
            open_assignments=sum(1 for a in self.store.list(EntityType.ASSIGNMENT) if a.is_open),
            active_employees=sum(1 for e in employees if e.status == EmployeeStatus.ACTIVE),
            pending_employees=sum(1 for e in employees if e.status == EmployeeStatus.PENDING),
            pending_transactions=sum(
                1 for t in self.store.list(EntityType.TRANSACTION)
                if t.status == TransactionStatus.PENDING
            ),
            low_stock_parts=sum(1 for p in self.store.list(EntityType.PART) if p.is_low_stock),
        )

    def revenue(self) -> RevenueReport:
        invoices = self.store.list(EntityType.INVOICE)
        counts = Counter(i.payment_status.value for i in invoices)
        return RevenueReport(
            invoice_count=len(invoices),
            invoiced_total=sum_amounts(i.total for i in invoices),
            collected_total=sum_amounts(min(i.amount_paid, i.total) for i in invoices),
            outstanding_total=sum_amounts(i.balance_due for i in invoices),
            by_payment_status={s.value: counts.get(s.value, 0) for s in PaymentStatus},
        )

    def repairs(self) -> RepairReport:
        jobs = self.store.list(EntityType.REPAIR)
        counts = Counter(j.status.value for j in jobs)
        approved = {
            t.id for t in self.store.list(EntityType.TRANSACTION)
            if t.status == TransactionStatus.APPROVED
        }
        return RepairReport(
            total_jobs=len(jobs),
            by_status={s.value: counts.get(s.value, 0) for s in RepairStatus},
            parts_consumed=sum(
                u.quantity for j in jobs for u in j.parts_used if u.transaction_id in approved
            ),
            labor_total=sum_amounts(
                j.labor_cost for j in jobs if j.status != RepairStatus.CANCELLED
            ),
        )

    def warranty_expiring(self, today: date, within_days: int = 30) -> list[Asset]:
        """Non-retired assets whose warranty ends within ``within_days``."""
        horizon = today + timedelta(days=within_days)
        return [
            a for a in self.store.list(EntityType.ASSET)
            if a.warranty_expiry is not None
            and a.status != AssetStatus.RETIRED
            and today <= a.warranty_expiry <= horizon
        ]
