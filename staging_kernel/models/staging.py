"""
Staging ORM Models (``staging_kernel.models.staging``).

Responsibility
--------------
SQLAlchemy persistence for the four relations the service touches:

* ``xxap_invoice_hdr_stg_wira`` -- staged headers (written by the core and
  by the import procedure).
* ``xxap_invoice_lines_stg_wira`` -- staged lines, one header each.
* ``ap_invoices_interface`` / ``ap_invoice_lines_interface`` -- downstream
  interface tables.  Declared as plain ``Table`` objects so dev/test
  schemas are complete; the core never writes them.

Lower-case names are case-insensitive to SQLAlchemy and render unquoted,
so on Oracle they resolve to the upper-case dictionary names.

Architecture position
---------------------
**Kernel > Models** -- persistence.  Imports from ``db/base.py`` only.
"""

from datetime import date
from decimal import Decimal

from sqlalchemy import (
    Column,
    Date,
    ForeignKey,
    Index,
    Integer,
    Numeric,
    Sequence,
    String,
    Table,
)
from sqlalchemy.orm import Mapped, mapped_column, relationship

from staging_kernel.db.base import Base, SurrogateKey, WhoColumns

HEADER_TABLE = "xxap_invoice_hdr_stg_wira"
LINES_TABLE = "xxap_invoice_lines_stg_wira"
HEADER_SEQUENCE = Sequence("xxap_invoice_hdr_stg_s")
LINES_SEQUENCE = Sequence("xxap_invoice_lines_stg_s")


# ---------------------------------------------------------------------------
# 1. StagingHeaderModel
# ---------------------------------------------------------------------------


class StagingHeaderModel(WhoColumns, Base):
    """
    ORM model for a staged invoice header.

    Guarantees:
        - staging_id comes from the header sequence and is never updated.
        - process_flag defaults to 'N'.
        - Rows are never deleted; cancellation is a flag change.
    """

    __tablename__ = HEADER_TABLE

    __table_args__ = (
        Index("xxap_inv_hdr_stg_num_n1", "invoice_num", "org_id"),
        Index("xxap_inv_hdr_stg_batch_n2", "org_id", "batch_id", "process_flag"),
    )

    staging_id: Mapped[int] = mapped_column(
        SurrogateKey, HEADER_SEQUENCE, primary_key=True
    )
    batch_id: Mapped[int | None] = mapped_column(Integer, nullable=True)
    invoice_num: Mapped[str] = mapped_column(String(50), nullable=False)
    invoice_date: Mapped[date] = mapped_column(nullable=False)
    invoice_type_lookup_code: Mapped[str] = mapped_column(
        String(25), nullable=False, default="STANDARD"
    )
    invoice_amount: Mapped[Decimal] = mapped_column(nullable=False)
    invoice_currency_code: Mapped[str] = mapped_column(
        String(15), nullable=False, default="USD"
    )
    exchange_rate: Mapped[Decimal | None] = mapped_column(nullable=True)
    exchange_rate_type: Mapped[str | None] = mapped_column(String(30), nullable=True)
    exchange_date: Mapped[date | None] = mapped_column(nullable=True)
    gl_date: Mapped[date | None] = mapped_column(nullable=True)
    vendor_num: Mapped[str] = mapped_column(String(30), nullable=False)
    vendor_site_code: Mapped[str] = mapped_column(String(15), nullable=False)
    terms_name: Mapped[str | None] = mapped_column(String(50), nullable=True)
    description: Mapped[str | None] = mapped_column(String(240), nullable=True)
    org_id: Mapped[int] = mapped_column(Integer, nullable=False)
    process_flag: Mapped[str] = mapped_column(String(1), nullable=False, default="N")
    error_message: Mapped[str | None] = mapped_column(String(4000), nullable=True)

    lines: Mapped[list["StagingLineModel"]] = relationship(
        order_by="StagingLineModel.line_number",
        viewonly=True,
    )

    def __repr__(self) -> str:
        return f"<StagingHeaderModel {self.staging_id}: {self.invoice_num} [{self.process_flag}]>"


# ---------------------------------------------------------------------------
# 2. StagingLineModel
# ---------------------------------------------------------------------------


class StagingLineModel(WhoColumns, Base):
    """
    ORM model for a staged invoice line.

    Guarantees:
        - staging_id FK to the header; the store refuses orphans.
        - line_number is caller-assigned and neither unique nor contiguous.
    """

    __tablename__ = LINES_TABLE

    __table_args__ = (
        Index("xxap_inv_lines_stg_hdr_n1", "staging_id", "line_number"),
    )

    line_staging_id: Mapped[int] = mapped_column(
        SurrogateKey, LINES_SEQUENCE, primary_key=True
    )
    staging_id: Mapped[int] = mapped_column(
        SurrogateKey, ForeignKey(f"{HEADER_TABLE}.staging_id"), nullable=False
    )
    line_number: Mapped[int] = mapped_column(Integer, nullable=False)
    line_type_lookup_code: Mapped[str] = mapped_column(String(25), nullable=False)
    amount: Mapped[Decimal] = mapped_column(nullable=False)
    description: Mapped[str | None] = mapped_column(String(240), nullable=True)
    dist_code_combination_id: Mapped[int | None] = mapped_column(Integer, nullable=True)
    account_code: Mapped[str | None] = mapped_column(String(240), nullable=True)
    po_number: Mapped[str | None] = mapped_column(String(20), nullable=True)
    po_line_number: Mapped[int | None] = mapped_column(Integer, nullable=True)
    quantity_invoiced: Mapped[Decimal | None] = mapped_column(nullable=True)
    unit_price: Mapped[Decimal | None] = mapped_column(nullable=True)
    tax_code: Mapped[str | None] = mapped_column(String(30), nullable=True)
    tax_rate: Mapped[Decimal | None] = mapped_column(nullable=True)
    tax_amount: Mapped[Decimal | None] = mapped_column(nullable=True)
    process_flag: Mapped[str] = mapped_column(String(1), nullable=False, default="N")
    error_message: Mapped[str | None] = mapped_column(String(4000), nullable=True)

    def __repr__(self) -> str:
        return (
            f"<StagingLineModel {self.line_staging_id}: "
            f"{self.staging_id}/{self.line_number} [{self.process_flag}]>"
        )


# ---------------------------------------------------------------------------
# 3. Interface tables (owned by the import procedure)
# ---------------------------------------------------------------------------

ap_invoices_interface = Table(
    "ap_invoices_interface",
    Base.metadata,
    Column("invoice_id", SurrogateKey, primary_key=True),
    Column("invoice_num", String(50), nullable=False),
    Column("invoice_type_lookup_code", String(25)),
    Column("invoice_date", Date),
    Column("vendor_num", String(30)),
    Column("vendor_site_code", String(15)),
    Column("invoice_amount", Numeric(38, 9, asdecimal=True)),
    Column("invoice_currency_code", String(15)),
    Column("terms_name", String(50)),
    Column("description", String(240)),
    Column("gl_date", Date),
    Column("org_id", Integer),
    Column("group_id", String(80)),
    Column("source", String(80)),
    Column("status", String(25)),
)

ap_invoice_lines_interface = Table(
    "ap_invoice_lines_interface",
    Base.metadata,
    Column("invoice_line_id", SurrogateKey, primary_key=True),
    Column("invoice_id", SurrogateKey, ForeignKey("ap_invoices_interface.invoice_id")),
    Column("line_number", Integer),
    Column("line_type_lookup_code", String(25)),
    Column("amount", Numeric(38, 9, asdecimal=True)),
    Column("description", String(240)),
    Column("dist_code_combination_id", Integer),
    Column("po_number", String(20)),
    Column("po_line_number", Integer),
    Column("quantity_invoiced", Numeric(38, 9, asdecimal=True)),
    Column("unit_price", Numeric(38, 9, asdecimal=True)),
    Column("tax_classification_code", String(30)),
    Column("org_id", Integer),
)
