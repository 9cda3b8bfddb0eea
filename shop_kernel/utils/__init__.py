"""Utility modules for the shop kernel."""

from shop_kernel.utils.hashing import canonicalize_json, hash_payload
from shop_kernel.utils.ids import IdGenerator, generate_staff_id

__all__ = [
    "canonicalize_json",
    "hash_payload",
    "IdGenerator",
    "generate_staff_id",
]
