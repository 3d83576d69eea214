"""Declarative base and shared column types."""

from __future__ import annotations

from datetime import datetime
from decimal import Decimal
from typing import Any

from sqlalchemy import JSON, DateTime, Numeric, func
from sqlalchemy.orm import DeclarativeBase, Mapped, mapped_column


class Base(DeclarativeBase):
    """Base class for all ORM models.

    Amounts are stored as NUMERIC(14, 4) and column bags as portable JSON so the
    same models run on SQLite and PostgreSQL.
    """

    type_annotation_map = {
        datetime: DateTime(timezone=True),
        Decimal: Numeric(14, 4),
        dict[str, Any]: JSON,
    }


class TimestampMixin:
    """Adds a server-side ``created_at``."""

    created_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True),
        server_default=func.now(),
        nullable=False,
    )
