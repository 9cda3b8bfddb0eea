"""
Tests for AuthService -- login rules, registration and the session store.

Covers:
- Master bypass resolves to the first Admin
- Email/password login, case-insensitive email
- Universal fallback secret (enabled and disabled)
- Inactive employees cannot log in
- register(): Staff/Pending, validation, session started
- SqlSessionStore round trip
"""

import pytest

from shop_kernel.domain.entities import EmployeeStatus, Role
from shop_kernel.exceptions import (
    DuplicateRecordError,
    EntityNotFoundError,
    MissingFieldError,
)
from shop_kernel.services.auth_service import (
    SESSION_KEY,
    AuthService,
    AuthSettings,
    InMemorySessionStore,
    SqlSessionStore,
)


class TestLogin:

    def test_master_bypass_resolves_admin(self, auth, captured_logs):
        user = auth.login("Admin", "1234")
        assert user.id == "E001"
        assert user.role == Role.ADMIN
        assert auth.current_user().id == "E001"
        assert any(r["message"] == "login_master_bypass" for r in captured_logs())

    def test_email_and_password(self, auth):
        assert auth.login("manager@company.com", "password").id == "E002"

    def test_email_case_insensitive(self, auth):
        assert auth.login("  Manager@Company.COM ", "password").id == "E002"

    def test_wrong_password(self, auth):
        settings = AuthSettings(allow_universal_fallback=False)
        strict = AuthService(auth.store, settings=settings)
        assert strict.login("manager@company.com", "nope") is None
        assert strict.current_user() is None

    def test_unknown_email(self, auth):
        assert auth.login("ghost@company.com", "password") is None

    def test_universal_fallback_warns(self, auth, captured_logs):
        user = auth.login("manager@company.com", "admin")
        assert user.id == "E002"
        warning = next(
            r for r in captured_logs() if r["message"] == "login_universal_fallback_used"
        )
        assert warning["level"] == "WARNING"

    def test_universal_fallback_disabled(self, store):
        strict = AuthService(store, settings=AuthSettings(allow_universal_fallback=False))
        assert strict.login("manager@company.com", "admin") is None

    def test_inactive_employee_cannot_log_in(self, auth, catalog):
        catalog.deactivate_employee("E002")
        assert auth.login("manager@company.com", "password") is None

    def test_logout_clears_session(self, auth):
        auth.login("Admin", "1234")
        auth.logout()
        assert auth.current_user() is None


class TestRegister:

    def test_registers_pending_staff(self, auth, deterministic_clock):
        employee = auth.register("New Hire", "new@company.com", "Support")
        assert employee.role == Role.STAFF
        assert employee.status == EmployeeStatus.PENDING
        assert not any(vars(employee.permissions).values())
        assert employee.staff_id.startswith("M-")
        assert employee.join_date == deterministic_clock.today()
        assert auth.current_user().id == employee.id

    def test_duplicate_email(self, auth):
        with pytest.raises(DuplicateRecordError):
            auth.register("Copy", "Admin@Company.com", "IT")

    def test_unknown_department(self, auth):
        with pytest.raises(EntityNotFoundError):
            auth.register("New Hire", "new@company.com", "Marketing")

    @pytest.mark.parametrize("name,email", [("", "a@b.c"), ("Name", "  ")])
    def test_missing_fields(self, auth, name, email):
        with pytest.raises(MissingFieldError):
            auth.register(name, email, "IT")


class TestSessions:

    def test_current_user_reflects_store_changes(self, auth, catalog):
        auth.login("manager@company.com", "password")
        catalog.update_employee("E002", role=Role.ADMIN)
        assert auth.current_user().role == Role.ADMIN

    def test_in_memory_store(self, seed_state):
        sessions = InMemorySessionStore()
        employee = seed_state.employees[0]
        sessions.set(SESSION_KEY, employee)
        assert sessions.get(SESSION_KEY) == employee
        sessions.clear(SESSION_KEY)
        assert sessions.get(SESSION_KEY) is None

    def test_sql_store_round_trip(self, sql_session_factory, seed_state, deterministic_clock):
        sessions = SqlSessionStore(sql_session_factory, deterministic_clock)
        admin, manager = seed_state.employees
        assert sessions.get(SESSION_KEY) is None

        sessions.set(SESSION_KEY, admin)
        sessions.set(SESSION_KEY, manager)
        assert sessions.get(SESSION_KEY) == manager

        sessions.clear(SESSION_KEY)
        assert sessions.get(SESSION_KEY) is None
