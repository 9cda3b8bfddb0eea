"""
Identifier generation.

Record ids are ``PREFIX-XXXXXXXXXX`` strings built from uuid4, so they are
unique without a central counter.  Staff ids follow the shop convention of
site abbreviation plus a three-digit suffix; the suffix is random and is
not guaranteed unique (it is a display label, not a key).
"""

import random
from uuid import uuid4


class IdGenerator:
    """Produces record ids for new entities."""

    def __init__(self, length: int = 10):
        self._length = length

    def new_id(self, prefix: str) -> str:
        return f"{prefix}-{uuid4().hex[: self._length].upper()}"


def generate_staff_id(site_abbreviation: str, rng: random.Random | None = None) -> str:
    """
    Build a staff id such as ``MF-427``.

    Args:
        site_abbreviation: Prefix, normally ``SiteConfig.site_abbreviation``.
        rng: Random source; pass a seeded instance for reproducible ids.
    """
    rng = rng or random.Random()
    return f"{site_abbreviation}-{rng.randint(100, 999)}"
