"""
InvoiceFacade -- the single entry point for callers.

Responsibility:
    Sequences StagingRepository, LifecycleEngine and ProcessingOrchestrator
    into the public operations: create, status, search, process, cancel.
    Owns the units of work (one ``StorePool.session_scope()`` each).

Architecture position:
    Kernel > Services (outermost).  Transport adapters (CLI, HTTP) call
    only this class.

Invariants enforced:
    - create validates the header and every line before the first write.
    - create is NOT atomic: the header commits on its own, then each line
      commits on its own.  A failing line stops the run; the header stays
      in New with the lines written so far and the result reports
      lines_persisted < lines_requested.  Nothing is rolled back.
    - cancel runs header then lines in one unit of work.
    - status/search return None for not-found; they never raise for it.
    - process results are classified from the return code alone.
"""

from collections.abc import Iterable, Mapping
from dataclasses import replace
from typing import Any

from staging_kernel.db.pool import StorePool
from staging_kernel.domain.dtos import (
    CancelResult,
    CreateResult,
    InvoiceHeaderInput,
    InvoiceLineInput,
    InvoiceSnapshot,
    ProcessResult,
    StatusSnapshot,
)
from staging_kernel.domain.validation import parse_header, parse_line
from staging_kernel.exceptions import PersistenceError, ValidationError
from staging_kernel.logging_config import LogContext, get_logger
from staging_kernel.services.import_procedure import ImportProcedure
from staging_kernel.services.lifecycle_engine import DEFAULT_CANCEL_MESSAGE, LifecycleEngine
from staging_kernel.services.processing_orchestrator import ProcessingOrchestrator
from staging_kernel.services.staging_repository import StagingRepository

logger = get_logger("services.invoice_facade")


class InvoiceFacade:
    """
    Public operations over the staging store.

    Contract:
        Built once per process around the shared StorePool and the import
        procedure.  Safe to call from several threads; every call acquires
        and releases its own connection.
    """

    def __init__(
        self,
        pool: StorePool,
        procedure: ImportProcedure,
        *,
        invoice_type: str = "STANDARD",
        currency_code: str = "USD",
        cancel_message: str = DEFAULT_CANCEL_MESSAGE,
        user_id: int = -1,
    ):
        self._pool = pool
        self._orchestrator = ProcessingOrchestrator(pool, procedure)
        self._invoice_type = invoice_type
        self._currency_code = currency_code
        self._cancel_message = cancel_message
        self._user_id = user_id

    @property
    def pool(self) -> StorePool:
        return self._pool

    def _repository(self, session) -> StagingRepository:
        return StagingRepository(
            session,
            invoice_type=self._invoice_type,
            currency_code=self._currency_code,
            user_id=self._user_id,
        )

    # ------------------------------------------------------------------
    # create
    # ------------------------------------------------------------------

    def create(
        self,
        header: InvoiceHeaderInput | Mapping[str, Any],
        lines: Iterable[InvoiceLineInput | Mapping[str, Any]] | None = None,
    ) -> CreateResult:
        """
        Stage a header and its lines.

        ``header`` may be a validated InvoiceHeaderInput or a raw mapping;
        ``lines``, when given, replaces the header's own lines.

        Returns:
            CreateResult.  lines_persisted counts lines actually written.

        Raises:
            ValidationError: Malformed input.  Nothing was written.
            PersistenceError: The header insert failed.  Nothing was written.
        """
        invoice = self._coerce(header, lines)

        with LogContext.bind(
            invoice_num=invoice.invoice_num, org_id=invoice.org_id, batch_id=invoice.batch_id
        ):
            with self._pool.session_scope() as session:
                staging_id = self._repository(session).insert_header(invoice)

            with LogContext.bind(staging_id=staging_id):
                persisted = 0
                line_error: str | None = None
                for line in invoice.lines:
                    try:
                        with self._pool.session_scope() as session:
                            self._repository(session).insert_line(
                                staging_id, line, invoice.user_id
                            )
                    except PersistenceError as exc:
                        line_error = str(exc)
                        logger.warning(
                            "line_insert_failed",
                            extra={
                                "line_number": line.line_number,
                                "lines_persisted": persisted,
                                "lines_requested": len(invoice.lines),
                                "error_code": exc.code,
                                "detail": exc.detail,
                            },
                        )
                        break
                    persisted += 1

                result = CreateResult(
                    staging_id=staging_id,
                    lines_persisted=persisted,
                    lines_requested=len(invoice.lines),
                    line_error=line_error,
                )
                logger.info(
                    "invoice_created",
                    extra={
                        "lines_persisted": persisted,
                        "lines_requested": result.lines_requested,
                        "complete": result.complete,
                    },
                )
        return result

    @staticmethod
    def _coerce(
        header: InvoiceHeaderInput | Mapping[str, Any],
        lines: Iterable[InvoiceLineInput | Mapping[str, Any]] | None,
    ) -> InvoiceHeaderInput:
        if isinstance(header, Mapping):
            data = dict(header)
            if lines is not None:
                data["lines"] = list(lines)
            return parse_header(data)

        if lines is None:
            return header

        parsed: list[InvoiceLineInput] = []
        errors: list[str] = []
        for index, line in enumerate(lines):
            if isinstance(line, InvoiceLineInput):
                parsed.append(line)
                continue
            try:
                parsed.append(parse_line(line))
            except ValidationError as exc:
                errors.extend(f"lines[{index}].{err}" for err in exc.errors)
        if errors:
            raise ValidationError(f"Invalid invoice: {'; '.join(errors)}", errors)
        return replace(header, lines=tuple(parsed))

    # ------------------------------------------------------------------
    # reads
    # ------------------------------------------------------------------

    def status(self, staging_id: int) -> StatusSnapshot | None:
        """Best-effort flag snapshot, or None when the id is unknown."""
        with self._pool.session_scope() as session:
            return self._repository(session).get_status(staging_id)

    def search(self, invoice_num: str, org_id: int | None = None) -> InvoiceSnapshot | None:
        """Header plus ordered lines, or None.  Without org_id every org is searched."""
        with self._pool.session_scope() as session:
            return self._repository(session).search(invoice_num, org_id)

    # ------------------------------------------------------------------
    # transitions
    # ------------------------------------------------------------------

    def process(
        self,
        org_id: int,
        batch_id: int | None = None,
        staging_id: int | None = None,
    ) -> ProcessResult:
        """Run the import procedure; see ProcessingOrchestrator.process."""
        return self._orchestrator.process(org_id, batch_id, staging_id)

    def cancel(self, staging_id: int, user_id: int | None = None) -> CancelResult:
        """
        Cancel a New or Error invoice.

        Raises:
            StagingNotFoundError: Unknown staging_id.
            IllegalTransitionError: Current status does not allow cancel;
                ``reason`` names it.  Flags are left unchanged.
        """
        with LogContext.bind(staging_id=staging_id, actor_id=user_id):
            with self._pool.session_scope() as session:
                engine = LifecycleEngine(
                    self._repository(session), cancel_message=self._cancel_message
                )
                return engine.cancel(staging_id, updated_by=user_id)
