"""
Module: shop_kernel.selectors.base
Responsibility: Abstract base class for all read-only selectors.  Selectors
    form the "Q" side of the kernel: structured read access to store data
    without mutation capability.
Architecture position: Kernel > Selectors.  May import from store.py and
    domain/.  MUST NOT import from services/ or outer layers.

Invariants enforced:
    - Read-only access: selectors never call ``upsert``, ``remove``,
      ``restore`` or ``set_site`` on the store.
    - DTO return convention: selectors return frozen dataclasses or plain
      computed values.
"""

from abc import ABC

from shop_kernel.store import EntityStore


class BaseSelector(ABC):
    """
    Abstract base class for all selectors.

    Contract:
        Selectors read from the store the caller hands them and return
        DTOs or computed results.  They MUST NOT mutate any data.
    """

    def __init__(self, store: EntityStore):
        self.store = store
