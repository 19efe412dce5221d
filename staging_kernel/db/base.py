"""
Module: staging_kernel.db.base
Responsibility: Declarative base for the staging ORM tables.  Provides the
    surrogate key type, the type annotation map, and the EBS "WHO" audit
    columns mixin.
Architecture position: Kernel > DB.  Lowest-level import target within the
    kernel; MUST NOT import from models/, services/, domain/.

Invariants enforced:
    - Surrogate keys are integers assigned by a store sequence.  On SQLite
      the column renders as INTEGER so ROWID autoincrement applies.
    - Decimal maps to Numeric; monetary values never travel as float.
"""

from datetime import date, datetime
from decimal import Decimal
from typing import ClassVar

from sqlalchemy import BigInteger, Date, DateTime, Integer, Numeric, func
from sqlalchemy.orm import DeclarativeBase, Mapped, mapped_column

# BIGINT on Oracle/PostgreSQL, INTEGER on SQLite (required for ROWID aliasing)
SurrogateKey = BigInteger().with_variant(Integer(), "sqlite")


class Base(DeclarativeBase):
    """
    Declarative base for all staging models.

    Guarantees:
        - Decimal maps to Numeric(38, 9).
        - datetime maps to DateTime(timezone=True).
        - date maps to Date.
    """

    type_annotation_map: ClassVar[dict] = {
        Decimal: Numeric(38, 9, asdecimal=True),
        datetime: DateTime(timezone=True),
        date: Date,
    }


class WhoColumns:
    """
    EBS-style audit columns.

    ``created_by`` / ``last_updated_by`` hold the caller's user id (-1 when
    anonymous).  ``last_update_date`` moves on every core-authored update;
    writes by the import procedure may or may not touch it.
    """

    created_by: Mapped[int] = mapped_column(Integer, nullable=False, default=-1)
    creation_date: Mapped[datetime] = mapped_column(
        nullable=False, server_default=func.now()
    )
    last_updated_by: Mapped[int] = mapped_column(Integer, nullable=False, default=-1)
    last_update_date: Mapped[datetime] = mapped_column(
        nullable=False, server_default=func.now(), onupdate=func.now()
    )
