"""
DTOs -- Pure domain data transfer objects.

Responsibility:
    Immutable inputs (InvoiceHeaderInput, InvoiceLineInput) and results
    (CreateResult, StatusSnapshot, InvoiceSnapshot, LineSnapshot,
    ProcessScope, ProcedureOutcome, ProcessResult, CancelResult) that flow
    between the facade, the services and callers.

Architecture position:
    Kernel > Domain -- zero I/O.  from_model() class methods are boundary
    converters invoked only from the service layer.

Invariants enforced:
    - Amounts are Decimal, never float.
    - Snapshots are read-only copies; mutating one never touches the store.
    - ProcessResult.status is derived from the return code alone.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from datetime import date
from decimal import Decimal
from enum import Enum
from typing import TYPE_CHECKING

from staging_kernel.domain.process_flag import status_label
from staging_kernel.exceptions import ExternalProcedureError

if TYPE_CHECKING:
    from staging_kernel.models.staging import StagingHeaderModel, StagingLineModel


class LineType(str, Enum):
    """Line type lookup codes accepted on staged lines."""

    ITEM = "ITEM"
    TAX = "TAX"
    FREIGHT = "FREIGHT"
    MISCELLANEOUS = "MISCELLANEOUS"


# ---------------------------------------------------------------------------
# Inputs
# ---------------------------------------------------------------------------


@dataclass(frozen=True)
class InvoiceLineInput:
    """One caller-supplied line, already validated."""

    line_number: int
    line_type: LineType
    amount: Decimal
    description: str | None = None
    dist_code_ccid: int | None = None
    account_code: str | None = None
    po_number: str | None = None
    po_line_number: int | None = None
    quantity: Decimal | None = None
    unit_price: Decimal | None = None
    tax_code: str | None = None
    tax_rate: Decimal | None = None
    tax_amount: Decimal | None = None


@dataclass(frozen=True)
class InvoiceHeaderInput:
    """
    A caller-supplied header, already validated.

    invoice_amount is the caller's declaration; it is not reconciled with
    the line amounts here.
    """

    invoice_num: str
    invoice_date: date
    invoice_amount: Decimal
    vendor_num: str
    vendor_site_code: str
    org_id: int
    invoice_type: str | None = None
    currency_code: str | None = None
    exchange_rate: Decimal | None = None
    exchange_rate_type: str | None = None
    exchange_date: date | None = None
    terms_name: str | None = None
    description: str | None = None
    gl_date: date | None = None
    batch_id: int | None = None
    user_id: int | None = None
    lines: tuple[InvoiceLineInput, ...] = ()


# ---------------------------------------------------------------------------
# Results
# ---------------------------------------------------------------------------


@dataclass(frozen=True)
class CreateResult:
    """
    Outcome of a create.

    lines_persisted counts lines actually written.  When it is lower than
    lines_requested, line_error holds the failure that stopped the run and
    the header stays in New with the lines written so far.
    """

    staging_id: int
    lines_persisted: int
    lines_requested: int
    line_error: str | None = None

    @property
    def complete(self) -> bool:
        return self.lines_persisted == self.lines_requested

    @property
    def message(self) -> str:
        return f"Invoice created successfully with {self.lines_persisted} line(s)"


@dataclass(frozen=True)
class StatusSnapshot:
    """Best-effort read of a header's flag; error_message is '' when unset."""

    staging_id: int
    process_flag: str
    status_label: str
    error_message: str

    @classmethod
    def from_model(cls, model: StagingHeaderModel) -> StatusSnapshot:
        return cls(
            staging_id=model.staging_id,
            process_flag=model.process_flag,
            status_label=status_label(model.process_flag),
            error_message=model.error_message or "",
        )


@dataclass(frozen=True)
class LineSnapshot:
    line_staging_id: int
    line_number: int
    line_type: str
    amount: Decimal
    description: str | None
    dist_code_ccid: int | None
    process_flag: str
    error_message: str | None

    @classmethod
    def from_model(cls, model: StagingLineModel) -> LineSnapshot:
        return cls(
            line_staging_id=model.line_staging_id,
            line_number=model.line_number,
            line_type=model.line_type_lookup_code,
            amount=model.amount,
            description=model.description,
            dist_code_ccid=model.dist_code_combination_id,
            process_flag=model.process_flag,
            error_message=model.error_message,
        )


@dataclass(frozen=True)
class InvoiceSnapshot:
    """Header plus its lines ordered by ascending line_number."""

    staging_id: int
    invoice_num: str
    invoice_date: date
    invoice_type: str
    invoice_amount: Decimal
    currency_code: str
    vendor_num: str
    vendor_site_code: str
    org_id: int
    batch_id: int | None
    process_flag: str
    process_status: str
    error_message: str | None
    lines: tuple[LineSnapshot, ...] = ()

    @classmethod
    def from_model(
        cls, model: StagingHeaderModel, lines: list[StagingLineModel]
    ) -> InvoiceSnapshot:
        return cls(
            staging_id=model.staging_id,
            invoice_num=model.invoice_num,
            invoice_date=model.invoice_date,
            invoice_type=model.invoice_type_lookup_code,
            invoice_amount=model.invoice_amount,
            currency_code=model.invoice_currency_code,
            vendor_num=model.vendor_num,
            vendor_site_code=model.vendor_site_code,
            org_id=model.org_id,
            batch_id=model.batch_id,
            process_flag=model.process_flag,
            process_status=status_label(model.process_flag),
            error_message=model.error_message,
            lines=tuple(LineSnapshot.from_model(line) for line in lines),
        )


@dataclass(frozen=True)
class CancelResult:
    staging_id: int
    cancelled: bool
    message: str


# ---------------------------------------------------------------------------
# Processing
# ---------------------------------------------------------------------------


@dataclass(frozen=True)
class ProcessScope:
    """
    What one procedure run covers.

    staging_id overrides batch_id; with neither, the run covers everything
    pending for org_id.
    """

    org_id: int
    batch_id: int | None = None
    staging_id: int | None = None

    @classmethod
    def build(
        cls, org_id: int, batch_id: int | None = None, staging_id: int | None = None
    ) -> ProcessScope:
        if staging_id is not None:
            return cls(org_id=org_id, staging_id=staging_id)
        return cls(org_id=org_id, batch_id=batch_id)

    @property
    def kind(self) -> str:
        if self.staging_id is not None:
            return "invoice"
        if self.batch_id is not None:
            return "batch"
        return "org"


@dataclass(frozen=True)
class ProcedureOutcome:
    """Raw signal returned by the import procedure."""

    return_code: str
    message: str | None = None
    tracking_id: int | None = None


class ProcessStatus(str, Enum):
    SUCCESS = "success"
    WARNING = "warning"
    ERROR = "error"


RETURN_CODE_STATUS: dict[str, ProcessStatus] = {
    "0": ProcessStatus.SUCCESS,
    "1": ProcessStatus.WARNING,
    "2": ProcessStatus.ERROR,
}

DEFAULT_PROCESS_MESSAGE = "Completed"


@dataclass(frozen=True)
class ProcessResult:
    """The procedure's report, classified by return code and passed through."""

    status: ProcessStatus
    return_code: str
    message: str
    tracking_id: int | None = None
    scope: ProcessScope | None = field(default=None, compare=False)

    @classmethod
    def from_outcome(
        cls, outcome: ProcedureOutcome, scope: ProcessScope | None = None
    ) -> ProcessResult:
        # Classified exactly as reported; " 0 " is not "0"
        return_code = str(outcome.return_code)
        return cls(
            status=RETURN_CODE_STATUS.get(return_code, ProcessStatus.ERROR),
            return_code=return_code,
            message=outcome.message if outcome.message is not None else DEFAULT_PROCESS_MESSAGE,
            tracking_id=outcome.tracking_id,
            scope=scope,
        )

    @property
    def is_error(self) -> bool:
        return self.status is ProcessStatus.ERROR

    def raise_for_error(self) -> ProcessResult:
        """Raise ExternalProcedureError if the procedure reported an error."""
        if self.is_error:
            raise ExternalProcedureError(self.return_code, self.message)
        return self
