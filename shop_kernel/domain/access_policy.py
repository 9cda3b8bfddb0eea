"""
shop_kernel.domain.access_policy -- Role and permission checks.

Responsibility:
    The single place that decides what an employee may see and do.
    Feature visibility is a function of role alone; record-level actions
    (delete, export, user management) consult the employee's own
    permission flags because those are configured per employee.

Architecture position:
    Kernel > Domain.  Pure functions, no side effects.  The root controller
    calls ``require`` before every gated mutation.

Invariants:
    - Admin sees every feature; Manager every feature except Admin-only ones;
      Staff only the Staff tier.
    - A non-Active employee is denied every gated action.
"""

from __future__ import annotations

from enum import Enum

from shop_kernel.domain.entities import Employee, Role
from shop_kernel.exceptions import PermissionDeniedError


class Feature(str, Enum):
    DASHBOARD = "dashboard"
    ASSETS = "assets"
    ASSIGNMENTS = "assignments"
    INVENTORY = "inventory"
    BILLING = "billing"
    REPAIRS = "repairs"
    REPORTS = "reports"
    EMPLOYEES = "employees"
    SETTINGS = "settings"


class Action(str, Enum):
    DELETE = "delete"
    EXPORT = "export"
    ACCESS_AI = "access_ai"
    MANAGE_USERS = "manage_users"
    APPROVE_TRANSACTION = "approve_transaction"
    EDIT_SETTINGS = "edit_settings"


# Minimum role that sees each feature, in navigation order.
FEATURE_MIN_ROLE: dict[Feature, Role] = {
    Feature.DASHBOARD: Role.STAFF,
    Feature.ASSETS: Role.MANAGER,
    Feature.ASSIGNMENTS: Role.MANAGER,
    Feature.INVENTORY: Role.STAFF,
    Feature.BILLING: Role.STAFF,
    Feature.REPAIRS: Role.STAFF,
    Feature.REPORTS: Role.MANAGER,
    Feature.EMPLOYEES: Role.MANAGER,
    Feature.SETTINGS: Role.ADMIN,
}

# action -> name of the Permissions flag that grants it
_FLAG_ACTIONS: dict[Action, str] = {
    Action.DELETE: "can_delete",
    Action.EXPORT: "can_export",
    Action.ACCESS_AI: "can_access_ai",
    Action.MANAGE_USERS: "can_manage_users",
}

# action -> roles that may perform it regardless of flags
_ROLE_ACTIONS: dict[Action, frozenset[Role]] = {
    Action.APPROVE_TRANSACTION: frozenset({Role.ADMIN, Role.MANAGER}),
    Action.EDIT_SETTINGS: frozenset({Role.ADMIN}),
}


def permitted_tabs(role: Role) -> frozenset[Feature]:
    """Return the features visible to ``role``."""
    if role == Role.ADMIN:
        return frozenset(FEATURE_MIN_ROLE)
    if role == Role.MANAGER:
        return frozenset(f for f, m in FEATURE_MIN_ROLE.items() if m != Role.ADMIN)
    return frozenset(f for f, m in FEATURE_MIN_ROLE.items() if m == Role.STAFF)


def can_see(role: Role, feature: Feature) -> bool:
    return feature in permitted_tabs(role)


def check_action(employee: Employee, action: Action) -> tuple[bool, str]:
    """Check whether ``employee`` may perform ``action``.

    Returns:
        (allowed, reason). reason is empty when allowed, or a short message
        when denied.
    """
    if not employee.is_active:
        return (False, f"employee status is {employee.status.value}")

    flag = _FLAG_ACTIONS.get(action)
    if flag is not None:
        if getattr(employee.permissions, flag):
            return (True, "")
        return (False, f"permission '{flag}' not granted")

    roles = _ROLE_ACTIONS.get(action)
    if roles is not None:
        if employee.role in roles:
            return (True, "")
        return (False, f"role {employee.role.value} may not {action.value}")

    return (False, f"unknown action '{action}'")


def can_mutate(employee: Employee, action: Action) -> bool:
    """True iff ``employee`` may perform ``action``."""
    allowed, _ = check_action(employee, action)
    return allowed


def require(employee: Employee, action: Action) -> None:
    """Raise PermissionDeniedError unless ``employee`` may perform ``action``."""
    allowed, reason = check_action(employee, action)
    if not allowed:
        raise PermissionDeniedError(employee.id, Action(action).value, reason)
