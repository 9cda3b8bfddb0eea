"""
AssignmentTracker -- asset checkout and check-in.

Responsibility:
    Hands hardware assets out to employees and takes them back, keeping
    ``Asset.status`` in step with the open assignment.

Architecture position:
    Kernel > Services -- imperative shell.

Invariants enforced:
    - At most one open Assignment per asset.
    - Asset.status == Assigned iff an open Assignment references the asset.
    - checkout and checkin run under the store lock, so a check-in and a
      concurrent checkout on the same asset never interleave.

Failure modes:
    - AlreadyAssignedError: asset already has an open assignment.
    - NotAvailableError: asset is not Available, or employee is not Active.
    - NotOpenError: assignment was already checked in.
    - EntityNotFoundError: unknown asset, employee or assignment.
"""

from __future__ import annotations

from dataclasses import replace

from shop_kernel.domain.entities import Asset, AssetStatus, Assignment, Employee
from shop_kernel.exceptions import (
    AlreadyAssignedError,
    NotAvailableError,
    NotOpenError,
)
from shop_kernel.logging_config import get_logger
from shop_kernel.services.base import BaseService
from shop_kernel.store import EntityType

logger = get_logger("services.assignment_tracker")


class AssignmentTracker(BaseService):
    """Service for checking assets out to employees and back in."""

    def checkout(self, asset_id: str, employee_id: str, notes: str = "") -> Assignment:
        """
        Open an assignment of ``asset_id`` to ``employee_id``.

        Returns:
            The new open Assignment.

        Raises:
            AlreadyAssignedError: an open assignment already exists.
            NotAvailableError: asset not Available or employee not Active.
            EntityNotFoundError: unknown asset or employee.
        """
        with self.store.locked():
            asset: Asset = self.store.get(EntityType.ASSET, asset_id)
            employee: Employee = self.store.get(EntityType.EMPLOYEE, employee_id)

            current = self._open_assignment(asset_id)
            if current is not None:
                logger.warning(
                    "checkout_refused",
                    extra={
                        "asset_id": asset_id,
                        "employee_id": employee_id,
                        "reason": "already_assigned",
                        "assignment_id": current.id,
                    },
                )
                raise AlreadyAssignedError(asset_id, current.id, current.employee_id)
            if asset.status != AssetStatus.AVAILABLE:
                logger.warning(
                    "checkout_refused",
                    extra={
                        "asset_id": asset_id,
                        "employee_id": employee_id,
                        "reason": "asset_not_available",
                        "status": asset.status.value,
                    },
                )
                raise NotAvailableError("Asset", asset_id, asset.status.value)
            if not employee.is_active:
                raise NotAvailableError("Employee", employee_id, employee.status.value)

            assignment = Assignment(
                id=self.ids.new_id("ASN"),
                asset_id=asset_id,
                employee_id=employee_id,
                checkout_date=self.clock.now(),
                notes=notes,
            )
            self.store.upsert(assignment)
            self.store.upsert(replace(asset, status=AssetStatus.ASSIGNED))

        logger.info(
            "asset_checked_out",
            extra={
                "assignment_id": assignment.id,
                "asset_id": asset_id,
                "employee_id": employee_id,
            },
        )
        return assignment

    def checkin(self, assignment_id: str) -> Assignment:
        """
        Close an open assignment and make its asset Available again.

        Raises:
            NotOpenError: the assignment was already returned.
            EntityNotFoundError: unknown assignment.
        """
        with self.store.locked():
            assignment: Assignment = self.store.get(EntityType.ASSIGNMENT, assignment_id)
            if not assignment.is_open:
                raise NotOpenError(assignment_id, assignment.return_date.isoformat())

            closed = replace(assignment, return_date=self.clock.now())
            self.store.upsert(closed)

            asset = self.store.find(EntityType.ASSET, assignment.asset_id)
            if asset is not None:
                self.store.upsert(replace(asset, status=AssetStatus.AVAILABLE))
            else:
                logger.warning(
                    "checkin_asset_missing",
                    extra={"assignment_id": assignment_id, "asset_id": assignment.asset_id},
                )

        logger.info(
            "asset_checked_in",
            extra={
                "assignment_id": assignment_id,
                "asset_id": assignment.asset_id,
                "employee_id": assignment.employee_id,
            },
        )
        return closed

    def open_assignment_for(self, asset_id: str) -> Assignment | None:
        """The open assignment of ``asset_id``, if any."""
        with self.store.locked():
            return self._open_assignment(asset_id)

    def assignments_for_employee(
        self, employee_id: str, open_only: bool = False,
    ) -> list[Assignment]:
        """Assignments held by ``employee_id``, in checkout order."""
        return [
            a for a in self.store.list(EntityType.ASSIGNMENT)
            if a.employee_id == employee_id and (a.is_open or not open_only)
        ]

    def _open_assignment(self, asset_id: str) -> Assignment | None:
        for a in self.store.list(EntityType.ASSIGNMENT):
            if a.asset_id == asset_id and a.is_open:
                return a
        return None
