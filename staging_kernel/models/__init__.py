"""ORM models for the staging and interface tables."""

from staging_kernel.models.staging import (
    StagingHeaderModel,
    StagingLineModel,
    ap_invoice_lines_interface,
    ap_invoices_interface,
)

__all__ = [
    "StagingHeaderModel",
    "StagingLineModel",
    "ap_invoice_lines_interface",
    "ap_invoices_interface",
]
