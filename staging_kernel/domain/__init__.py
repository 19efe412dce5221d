"""Pure domain layer: flag vocabulary, lifecycle workflow, DTOs, input validation."""

from staging_kernel.domain.dtos import (
    CancelResult,
    CreateResult,
    InvoiceHeaderInput,
    InvoiceLineInput,
    InvoiceSnapshot,
    LineSnapshot,
    LineType,
    ProcedureOutcome,
    ProcessResult,
    ProcessScope,
    ProcessStatus,
    StatusSnapshot,
)
from staging_kernel.domain.process_flag import UNKNOWN_LABEL, ProcessFlag, status_label
from staging_kernel.domain.validation import parse_header, parse_line
from staging_kernel.domain.workflow import STAGING_WORKFLOW, Transition, Workflow

__all__ = [
    "CancelResult",
    "CreateResult",
    "InvoiceHeaderInput",
    "InvoiceLineInput",
    "InvoiceSnapshot",
    "LineSnapshot",
    "LineType",
    "ProcedureOutcome",
    "ProcessFlag",
    "ProcessResult",
    "ProcessScope",
    "ProcessStatus",
    "STAGING_WORKFLOW",
    "StatusSnapshot",
    "Transition",
    "UNKNOWN_LABEL",
    "Workflow",
    "parse_header",
    "parse_line",
    "status_label",
]
