"""ORM models for snapshot persistence and the session store."""

from shop_kernel.models.snapshot import SessionEntryModel, StateSnapshotModel

__all__ = [
    "SessionEntryModel",
    "StateSnapshotModel",
]
