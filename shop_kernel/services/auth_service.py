"""
AuthService -- login, self-registration and the current session.

Responsibility:
    Resolves credentials to an Employee, registers new staff, and keeps
    the single current-session identity in a SessionStore.

Architecture position:
    Kernel > Services -- imperative shell.  Credential comparison is
    delegated to a ``CredentialVerifier`` so a hashing scheme can replace
    the plaintext placeholder without touching the login rules.

Invariants enforced:
    - At most one current session, stored under one fixed key.
    - Email is unique, compared case-insensitively.
    - Registered employees start as Staff / Pending with no permissions.

Login rules, in order:
    1. Master bypass identifier and secret resolve to the first Admin.
    2. Email match AND (verifier accepts the stored password OR the
       universal fallback secret is enabled and supplied).

Failure modes:
    - MissingFieldError / DuplicateRecordError / EntityNotFoundError from
      ``register``.
    - ``login`` never raises for bad credentials; it returns None.
"""

from __future__ import annotations

import json
import random
import threading
from dataclasses import dataclass
from typing import Protocol

from sqlalchemy.orm import Session, sessionmaker

from shop_kernel.db.engine import session_scope
from shop_kernel.domain.clock import Clock, SystemClock
from shop_kernel.domain.codec import decode_employee, encode_employee
from shop_kernel.domain.entities import (
    Employee,
    EmployeeStatus,
    Permissions,
    Role,
)
from shop_kernel.exceptions import (
    DuplicateRecordError,
    EntityNotFoundError,
    MissingFieldError,
)
from shop_kernel.logging_config import get_logger
from shop_kernel.models.snapshot import SessionEntryModel
from shop_kernel.services.base import BaseService
from shop_kernel.store import EntityType
from shop_kernel.utils.ids import generate_staff_id

logger = get_logger("services.auth")

SESSION_KEY = "mobifix_session"


@dataclass(frozen=True)
class AuthSettings:
    """Login rules that vary per deployment."""

    master_identifier: str = "Admin"
    master_secret: str = "1234"
    universal_secret: str = "admin"
    allow_universal_fallback: bool = True
    session_key: str = SESSION_KEY


# ---------------------------------------------------------------------------
# Credential verification
# ---------------------------------------------------------------------------


class CredentialVerifier(Protocol):
    def verify(self, employee: Employee, secret: str) -> bool:
        ...


class PlaintextVerifier:
    """Compares the secret with the stored placeholder password."""

    def verify(self, employee: Employee, secret: str) -> bool:
        return employee.password == secret


# ---------------------------------------------------------------------------
# Session stores
# ---------------------------------------------------------------------------


class SessionStore(Protocol):
    def get(self, key: str) -> Employee | None:
        ...

    def set(self, key: str, employee: Employee) -> None:
        ...

    def clear(self, key: str) -> None:
        ...


class InMemorySessionStore:
    """Session store for embedding and tests."""

    def __init__(self):
        self._entries: dict[str, Employee] = {}
        self._lock = threading.Lock()

    def get(self, key: str) -> Employee | None:
        with self._lock:
            return self._entries.get(key)

    def set(self, key: str, employee: Employee) -> None:
        with self._lock:
            self._entries[key] = employee

    def clear(self, key: str) -> None:
        with self._lock:
            self._entries.pop(key, None)


class SqlSessionStore:
    """
    Session store backed by the ``session_entries`` table.

    The employee is stored as its JSON-encoded record.  An unreadable row
    is treated as no session (and logged), so a corrupt entry never blocks
    start-up.
    """

    def __init__(self, session_factory: sessionmaker[Session], clock: Clock | None = None):
        self._session_factory = session_factory
        self._clock = clock or SystemClock()

    def get(self, key: str) -> Employee | None:
        with self._session_factory() as session:
            row = session.get(SessionEntryModel, key)
            if row is None:
                return None
            payload = row.payload
        try:
            return decode_employee(json.loads(payload))
        except ValueError as exc:
            logger.warning("session_entry_unreadable", extra={"key": key, "error": str(exc)})
            return None

    def set(self, key: str, employee: Employee) -> None:
        payload = json.dumps(encode_employee(employee), sort_keys=True)
        with session_scope(self._session_factory) as session:
            session.merge(SessionEntryModel(
                key=key, payload=payload, updated_at=self._clock.now(),
            ))

    def clear(self, key: str) -> None:
        with session_scope(self._session_factory) as session:
            row = session.get(SessionEntryModel, key)
            if row is not None:
                session.delete(row)


# ---------------------------------------------------------------------------
# Service
# ---------------------------------------------------------------------------


class AuthService(BaseService):
    """Service for logging employees in and out and registering staff."""

    def __init__(
        self,
        store,
        session_store: SessionStore | None = None,
        settings: AuthSettings | None = None,
        verifier: CredentialVerifier | None = None,
        clock=None,
        ids=None,
        rng: random.Random | None = None,
    ):
        super().__init__(store, clock, ids)
        self.session_store = session_store or InMemorySessionStore()
        self.settings = settings or AuthSettings()
        self.verifier = verifier or PlaintextVerifier()
        self.rng = rng or random.Random()

    def login(self, identifier: str, secret: str) -> Employee | None:
        """
        Resolve credentials to an employee and make it the current session.

        Returns:
            The logged-in Employee, or None when the credentials match
            nobody (or only an Inactive employee).
        """
        s = self.settings
        if identifier == s.master_identifier and secret == s.master_secret:
            admin = next(
                (e for e in self.store.list(EntityType.EMPLOYEE) if e.role == Role.ADMIN),
                None,
            )
            if admin is not None:
                logger.info("login_master_bypass", extra={"employee_id": admin.id})
                return self._start_session(admin)

        employee = self.find_by_email(identifier)
        if employee is None:
            logger.info("login_failed", extra={"reason": "unknown_identifier"})
            return None

        if not self.verifier.verify(employee, secret):
            if not (s.allow_universal_fallback and secret == s.universal_secret):
                logger.info("login_failed", extra={"employee_id": employee.id, "reason": "bad_secret"})
                return None
            logger.warning("login_universal_fallback_used", extra={"employee_id": employee.id})

        if employee.status == EmployeeStatus.INACTIVE:
            logger.info("login_failed", extra={"employee_id": employee.id, "reason": "inactive"})
            return None
        return self._start_session(employee)

    def register(self, name: str, email: str, department: str) -> Employee:
        """
        Create a Pending Staff employee and log them in.

        Raises:
            MissingFieldError: name or email empty.
            DuplicateRecordError: email already registered.
            EntityNotFoundError: department does not exist.
        """
        if not name or not name.strip():
            raise MissingFieldError("Employee", "name")
        if not email or not email.strip():
            raise MissingFieldError("Employee", "email")
        email = email.strip()

        with self.store.locked():
            if self.find_by_email(email) is not None:
                raise DuplicateRecordError("Employee", "email", email)
            if not any(d.name == department for d in self.store.list(EntityType.DEPARTMENT)):
                raise EntityNotFoundError("Department", department)

            employee = Employee(
                id=self.ids.new_id("E"),
                staff_id=generate_staff_id(self.store.site.site_abbreviation, self.rng),
                name=name.strip(),
                email=email,
                department=department,
                role=Role.STAFF,
                status=EmployeeStatus.PENDING,
                permissions=Permissions(),
                join_date=self.clock.today(),
            )
            self.store.upsert(employee)

        logger.info(
            "employee_registered",
            extra={"employee_id": employee.id, "staff_id": employee.staff_id, "department": department},
        )
        return self._start_session(employee)

    def logout(self) -> None:
        current = self.current_user()
        self.session_store.clear(self.settings.session_key)
        logger.info("logout", extra={"employee_id": current.id if current else None})

    def current_user(self) -> Employee | None:
        """The session employee, refreshed from the store when still present."""
        employee = self.session_store.get(self.settings.session_key)
        if employee is None:
            return None
        return self.store.find(EntityType.EMPLOYEE, employee.id) or employee

    def refresh_session(self, employee: Employee) -> None:
        """Rewrite the stored session if it belongs to ``employee``."""
        current = self.session_store.get(self.settings.session_key)
        if current is not None and current.id == employee.id:
            self.session_store.set(self.settings.session_key, employee)

    def find_by_email(self, email: str) -> Employee | None:
        wanted = email.strip().casefold()
        for e in self.store.list(EntityType.EMPLOYEE):
            if e.email.casefold() == wanted:
                return e
        return None

    def _start_session(self, employee: Employee) -> Employee:
        self.session_store.set(self.settings.session_key, employee)
        logger.info("login_succeeded", extra={"employee_id": employee.id, "role": employee.role.value})
        return employee
