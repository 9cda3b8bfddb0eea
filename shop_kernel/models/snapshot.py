"""
Module: shop_kernel.models.snapshot
Responsibility: ORM persistence for whole-state snapshots and the
    current-session key/value entry.

Architecture position: Kernel > Models.  May import from db/base.py only.

Invariants enforced:
    - A snapshot row holds one complete encoded ``FullState`` document plus
      its SHA-256 checksum; partial documents are never written.
    - Session entries are keyed by a fixed string key, so there is at most
      one row per key.

Failure modes:
    - IntegrityError on a duplicate session key insert (callers merge).
"""

from __future__ import annotations

from datetime import datetime

from sqlalchemy import CheckConstraint, Index, String
from sqlalchemy.orm import Mapped, mapped_column

from shop_kernel.db.base import Base


class StateSnapshotModel(Base):
    """Persistent encoded FullState.

    Contract:
        Only the newest row is read on load; the snapshot store prunes
        older rows after each save.
    """

    __tablename__ = "state_snapshots"

    __table_args__ = (
        CheckConstraint("schema_version > 0", name="ck_state_snapshots_version"),
        Index("idx_state_snapshots_saved_at", "saved_at"),
    )

    id: Mapped[int] = mapped_column(primary_key=True, autoincrement=True)

    schema_version: Mapped[int] = mapped_column(nullable=False)

    document: Mapped[str] = mapped_column(nullable=False)

    checksum: Mapped[str] = mapped_column(String(64), nullable=False)

    saved_at: Mapped[datetime] = mapped_column(nullable=False)

    def __repr__(self) -> str:
        return (
            f"<StateSnapshot {self.id} v{self.schema_version} "
            f"{self.checksum[:12]} at {self.saved_at}>"
        )


class SessionEntryModel(Base):
    """Key/value row holding the serialized current-session employee."""

    __tablename__ = "session_entries"

    key: Mapped[str] = mapped_column(String(64), primary_key=True)

    payload: Mapped[str] = mapped_column(nullable=False)

    updated_at: Mapped[datetime] = mapped_column(nullable=False)

    def __repr__(self) -> str:
        return f"<SessionEntry {self.key} at {self.updated_at}>"
