"""
Module: shop_kernel.db.base
Responsibility: Declarative base class for the SQLAlchemy ORM models that back
    snapshot persistence and the session store.
Architecture position: Kernel > DB.  Lowest-level import target within the
    persistence layer.  ALL model files import from here.  This module MUST NOT
    import from models/, services/, selectors/, domain/, or outer layers.

Invariants enforced:
    - datetime columns are always timezone-aware.
    - Document bodies are stored as text; the JSON shape is owned by
      ``shop_kernel.domain.codec``, never by the schema.
"""

from datetime import datetime
from typing import ClassVar

from sqlalchemy import DateTime, Integer, Text
from sqlalchemy.orm import DeclarativeBase


class Base(DeclarativeBase):
    """
    Declarative base for all SQLAlchemy models.

    Guarantees:
        - datetime maps to DateTime(timezone=True).
        - str maps to Text, so document payloads are never truncated.
        - int maps to Integer (SQLite rowid-compatible autoincrement).
    """

    type_annotation_map: ClassVar[dict] = {
        datetime: DateTime(timezone=True),
        str: Text,
        int: Integer,
    }
