"""
BaseService -- abstract base for all kernel services.

Responsibility:
    Provides the common constructor contract for every write-side service
    in the kernel layer.  All concrete services receive the shared
    ``EntityStore``, an injectable ``Clock`` and an ``IdGenerator``.

Architecture position:
    Kernel > Services -- imperative shell infrastructure.
    Every service in ``shop_kernel/services/`` that mutates state extends
    this class.

Invariants enforced:
    - Services never persist.  The root controller owns save-after-mutate;
      a service only changes the in-memory store.
    - Every check-then-act runs inside ``self.store.locked()``.
"""

from abc import ABC

from shop_kernel.domain.clock import Clock, SystemClock
from shop_kernel.store import EntityStore
from shop_kernel.utils.ids import IdGenerator


class BaseService(ABC):
    """
    Abstract base class for all kernel services.

    Non-goals:
        - Does NOT provide query-only summaries -- those belong in
          ``shop_kernel/selectors/``.
        - Does NOT check access policy; the root controller does.
    """

    def __init__(
        self,
        store: EntityStore,
        clock: Clock | None = None,
        ids: IdGenerator | None = None,
    ):
        """
        Initialize the service.

        Args:
            store: Shared entity store.
            clock: Time source (defaults to SystemClock).
            ids: Record id generator.
        """
        self.store = store
        self.clock = clock or SystemClock()
        self.ids = ids or IdGenerator()
