"""
Snapshot persistence -- whole-state save/load and the background writer.

Responsibility:
    ``SnapshotStore`` is the load/save contract the root controller depends
    on.  ``SqlSnapshotStore`` keeps the latest encoded ``FullState`` in the
    ``state_snapshots`` table.  ``SnapshotWriter`` runs saves on a single
    background worker so a mutation never waits on the database.

Architecture position:
    Kernel > Services -- imperative shell infrastructure.  Encoding is owned
    by ``shop_kernel.domain.codec``; this module only moves documents.

Invariants enforced:
    - Saves are always of the complete state.
    - Saves are applied in submission order (one worker).
    - A failed save never touches in-memory state.  The writer reports it
      through ``on_error`` and carries on with the next snapshot.

Failure modes:
    - ``load`` raises SnapshotFormatError for a corrupt or foreign document;
      the controller treats that as "no usable snapshot".
    - Database errors propagate out of ``save``/``load``; the writer
      catches them at its boundary.
"""

from __future__ import annotations

import json
import threading
from concurrent.futures import Future, ThreadPoolExecutor, wait
from typing import Callable, Protocol

from sqlalchemy import delete, select
from sqlalchemy.orm import Session, sessionmaker

from shop_kernel.db.engine import session_scope
from shop_kernel.domain.clock import Clock, SystemClock
from shop_kernel.domain.codec import (
    SCHEMA_VERSION,
    SnapshotFormatError,
    decode_state,
    encode_state,
)
from shop_kernel.domain.entities import FullState
from shop_kernel.logging_config import get_logger
from shop_kernel.models.snapshot import StateSnapshotModel
from shop_kernel.utils.hashing import hash_payload

logger = get_logger("services.persistence")


class SnapshotStore(Protocol):
    """Load/save contract for whole-state persistence."""

    def save(self, state: FullState) -> None:
        ...

    def load(self) -> FullState | None:
        ...


class InMemorySnapshotStore:
    """Keeps the last encoded document in memory; for embedding and tests."""

    def __init__(self):
        self._document: str | None = None
        self.save_count = 0

    def save(self, state: FullState) -> None:
        self._document = json.dumps(encode_state(state), sort_keys=True)
        self.save_count += 1

    def load(self) -> FullState | None:
        if self._document is None:
            return None
        return decode_state(json.loads(self._document))


class SqlSnapshotStore:
    """
    Snapshot store on any SQLAlchemy database.

    Contract:
        ``save`` inserts a new row and prunes older ones in the same
        transaction; ``load`` reads the newest row.

    Guarantees:
        - The stored checksum is verified on load.
    """

    def __init__(self, session_factory: sessionmaker[Session], clock: Clock | None = None):
        self._session_factory = session_factory
        self._clock = clock or SystemClock()

    def save(self, state: FullState) -> None:
        document = encode_state(state)
        checksum = hash_payload(document)
        with session_scope(self._session_factory) as session:
            row = StateSnapshotModel(
                schema_version=SCHEMA_VERSION,
                document=json.dumps(document, sort_keys=True),
                checksum=checksum,
                saved_at=self._clock.now(),
            )
            session.add(row)
            session.flush()
            session.execute(
                delete(StateSnapshotModel).where(StateSnapshotModel.id != row.id)
            )
        logger.debug("snapshot_saved", extra={"checksum": checksum})

    def load(self) -> FullState | None:
        with self._session_factory() as session:
            row = session.execute(
                select(StateSnapshotModel).order_by(StateSnapshotModel.id.desc()).limit(1)
            ).scalar_one_or_none()
            if row is None:
                return None
            raw, checksum = row.document, row.checksum

        try:
            document = json.loads(raw)
        except json.JSONDecodeError as exc:
            raise SnapshotFormatError(f"Snapshot is not valid JSON: {exc}") from exc
        if hash_payload(document) != checksum:
            raise SnapshotFormatError("Snapshot checksum mismatch")

        state = decode_state(document)
        logger.info("snapshot_loaded", extra={"checksum": checksum})
        return state


class SnapshotWriter:
    """
    Fire-and-forget background saver.

    ``submit`` hands an immutable snapshot to a single worker thread and
    returns at once.  ``flush`` waits until every submitted save finished.
    """

    def __init__(
        self,
        store: SnapshotStore,
        on_error: Callable[[Exception], None] | None = None,
    ):
        self._store = store
        self._on_error = on_error
        self._executor = ThreadPoolExecutor(max_workers=1, thread_name_prefix="snapshot-writer")
        self._pending: list[Future] = []
        self._pending_lock = threading.Lock()

    def submit(self, state: FullState) -> Future:
        with self._pending_lock:
            future = self._executor.submit(self._save, state)
            self._pending = [f for f in self._pending if not f.done()]
            self._pending.append(future)
        return future

    def flush(self, timeout: float | None = None) -> bool:
        """Wait for pending saves.  Returns False if the timeout expired."""
        with self._pending_lock:
            pending = list(self._pending)
        _, not_done = wait(pending, timeout=timeout)
        return not not_done

    def close(self) -> None:
        self._executor.shutdown(wait=True)

    def _save(self, state: FullState) -> None:
        try:
            self._store.save(state)
        except Exception as exc:
            logger.warning(
                "snapshot_save_failed",
                extra={"error": str(exc)},
                exc_info=True,
            )
            if self._on_error is not None:
                self._on_error(exc)
