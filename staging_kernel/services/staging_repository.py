"""
StagingRepository -- all reads and writes of staging rows.

Responsibility:
    Translates domain operations into statements against the staged
    header/line tables and maps store failures onto the staging exception
    hierarchy.  Surrogate ids come from the store sequences.

Architecture position:
    Kernel > Services.  Session-bound (flush only); the facade owns the
    unit of work.  Flag updates are called by the LifecycleEngine only.

Invariants enforced:
    - New headers and lines start in process_flag 'N'.
    - Lines are only written for an existing header; the store's foreign
      key refuses orphans and the refusal surfaces as OrphanLineError.
    - Nothing here deletes a row.
    - Reads are plain snapshots; the import procedure may change a row
      right after it is read.

Failure modes:
    - PersistenceError on constraint violations or connectivity loss.
    - OrphanLineError when a line names a missing header.
"""

from sqlalchemy import func, select, update
from sqlalchemy.exc import IntegrityError, SQLAlchemyError
from sqlalchemy.orm import Session

from staging_kernel.domain.dtos import (
    InvoiceHeaderInput,
    InvoiceLineInput,
    InvoiceSnapshot,
    StatusSnapshot,
)
from staging_kernel.domain.process_flag import ProcessFlag
from staging_kernel.exceptions import OrphanLineError, PersistenceError
from staging_kernel.logging_config import get_logger
from staging_kernel.models.staging import StagingHeaderModel, StagingLineModel
from staging_kernel.services.base import BaseService

logger = get_logger("services.staging_repository")

# SQLite: "FOREIGN KEY constraint failed"; Oracle: ORA-02291 parent key not found
_FK_MARKERS = ("foreign key", "ora-02291", "parent key not found")


def _detail(exc: SQLAlchemyError) -> str:
    orig = getattr(exc, "orig", None)
    return str(orig if orig is not None else exc)


def _flag_code(flag: ProcessFlag | str) -> str:
    return flag.value if isinstance(flag, ProcessFlag) else flag


class StagingRepository(BaseService):
    """
    Store access for staged invoices.

    Contract:
        Constructed per unit of work with the session from
        ``StorePool.session_scope()``.  ``invoice_type`` / ``currency_code``
        fill headers that omit them; ``user_id`` is the fallback for the
        WHO columns.
    """

    def __init__(
        self,
        session: Session,
        *,
        invoice_type: str = "STANDARD",
        currency_code: str = "USD",
        user_id: int = -1,
    ):
        super().__init__(session)
        self.invoice_type = invoice_type
        self.currency_code = currency_code
        self.user_id = user_id

    # ------------------------------------------------------------------
    # Writes
    # ------------------------------------------------------------------

    def insert_header(self, header: InvoiceHeaderInput) -> int:
        """
        Insert one header with process_flag 'N' and return its staging_id.

        Lines on ``header`` are ignored; they go through insert_line().
        """
        who = header.user_id if header.user_id is not None else self.user_id
        model = StagingHeaderModel(
            batch_id=header.batch_id,
            invoice_num=header.invoice_num,
            invoice_date=header.invoice_date,
            invoice_type_lookup_code=header.invoice_type or self.invoice_type,
            invoice_amount=header.invoice_amount,
            invoice_currency_code=header.currency_code or self.currency_code,
            exchange_rate=header.exchange_rate,
            exchange_rate_type=header.exchange_rate_type,
            exchange_date=header.exchange_date,
            gl_date=header.gl_date,
            vendor_num=header.vendor_num,
            vendor_site_code=header.vendor_site_code,
            terms_name=header.terms_name,
            description=header.description,
            org_id=header.org_id,
            process_flag=ProcessFlag.NEW.value,
            error_message=None,
            created_by=who,
            last_updated_by=who,
        )
        self.session.add(model)
        try:
            self.session.flush()
        except SQLAlchemyError as exc:
            raise PersistenceError("insert_header", _detail(exc)) from exc

        logger.info(
            "header_inserted",
            extra={
                "staging_id": model.staging_id,
                "invoice_num": header.invoice_num,
                "org_id": header.org_id,
                "batch_id": header.batch_id,
            },
        )
        return model.staging_id

    def insert_line(
        self, staging_id: int, line: InvoiceLineInput, user_id: int | None = None
    ) -> int:
        """Insert one line under ``staging_id`` and return its line_staging_id."""
        who = user_id if user_id is not None else self.user_id
        model = StagingLineModel(
            staging_id=staging_id,
            line_number=line.line_number,
            line_type_lookup_code=line.line_type.value,
            amount=line.amount,
            description=line.description,
            dist_code_combination_id=line.dist_code_ccid,
            account_code=line.account_code,
            po_number=line.po_number,
            po_line_number=line.po_line_number,
            quantity_invoiced=line.quantity,
            unit_price=line.unit_price,
            tax_code=line.tax_code,
            tax_rate=line.tax_rate,
            tax_amount=line.tax_amount,
            process_flag=ProcessFlag.NEW.value,
            error_message=None,
            created_by=who,
            last_updated_by=who,
        )
        self.session.add(model)
        try:
            self.session.flush()
        except IntegrityError as exc:
            detail = _detail(exc)
            if any(marker in detail.lower() for marker in _FK_MARKERS):
                raise OrphanLineError(staging_id, detail) from exc
            raise PersistenceError("insert_line", detail) from exc
        except SQLAlchemyError as exc:
            raise PersistenceError("insert_line", _detail(exc)) from exc

        logger.debug(
            "line_inserted",
            extra={
                "staging_id": staging_id,
                "line_staging_id": model.line_staging_id,
                "line_number": line.line_number,
            },
        )
        return model.line_staging_id

    def update_header_flag(
        self,
        staging_id: int,
        flag: ProcessFlag | str,
        error_message: str | None = None,
        updated_by: int | None = None,
    ) -> int:
        """Set the header's flag and error_message together.  Returns rows updated."""
        stmt = (
            update(StagingHeaderModel)
            .where(StagingHeaderModel.staging_id == staging_id)
            .values(
                process_flag=_flag_code(flag),
                error_message=error_message,
                last_updated_by=updated_by if updated_by is not None else self.user_id,
                last_update_date=func.now(),
            )
            .execution_options(synchronize_session="fetch")
        )
        return self._execute_update("update_header_flag", stmt)

    def update_lines_flag(
        self,
        staging_id: int,
        flag: ProcessFlag | str,
        error_message: str | None = None,
        updated_by: int | None = None,
    ) -> int:
        """Set every line of the header to ``flag``.  Returns rows updated."""
        stmt = (
            update(StagingLineModel)
            .where(StagingLineModel.staging_id == staging_id)
            .values(
                process_flag=_flag_code(flag),
                error_message=error_message,
                last_updated_by=updated_by if updated_by is not None else self.user_id,
                last_update_date=func.now(),
            )
            .execution_options(synchronize_session="fetch")
        )
        return self._execute_update("update_lines_flag", stmt)

    def _execute_update(self, operation: str, stmt) -> int:
        try:
            result = self.session.execute(stmt)
        except SQLAlchemyError as exc:
            raise PersistenceError(operation, _detail(exc)) from exc
        return result.rowcount

    # ------------------------------------------------------------------
    # Reads
    # ------------------------------------------------------------------

    def lock_header(self, staging_id: int) -> StagingHeaderModel | None:
        """
        Load the header with a row lock (SELECT ... FOR UPDATE).

        The lock holds until the owning unit of work ends.  SQLite has no
        row locks; the clause is dropped there.
        """
        try:
            return self.session.execute(
                select(StagingHeaderModel)
                .where(StagingHeaderModel.staging_id == staging_id)
                .with_for_update()
                .execution_options(populate_existing=True)
            ).scalar_one_or_none()
        except SQLAlchemyError as exc:
            raise PersistenceError("lock_header", _detail(exc)) from exc

    def get_status(self, staging_id: int) -> StatusSnapshot | None:
        """Current flag, label and error_message of a header, or None."""
        try:
            header = self.session.execute(
                select(StagingHeaderModel)
                .where(StagingHeaderModel.staging_id == staging_id)
                .execution_options(populate_existing=True)
            ).scalar_one_or_none()
        except SQLAlchemyError as exc:
            raise PersistenceError("get_status", _detail(exc)) from exc
        if header is None:
            return None
        return StatusSnapshot.from_model(header)

    def search(self, invoice_num: str, org_id: int | None = None) -> InvoiceSnapshot | None:
        """
        Find a header by invoice number, optionally within one org.

        Without org_id the match spans every org.  invoice_num is not
        unique; when several headers match, the oldest (lowest staging_id)
        is returned and the ambiguity is logged.
        """
        stmt = select(StagingHeaderModel).where(StagingHeaderModel.invoice_num == invoice_num)
        if org_id is not None:
            stmt = stmt.where(StagingHeaderModel.org_id == org_id)
        stmt = stmt.order_by(StagingHeaderModel.staging_id)

        try:
            headers = self.session.execute(stmt).scalars().all()
            if not headers:
                return None
            header = headers[0]
            lines = (
                self.session.execute(
                    select(StagingLineModel)
                    .where(StagingLineModel.staging_id == header.staging_id)
                    .order_by(StagingLineModel.line_number, StagingLineModel.line_staging_id)
                )
                .scalars()
                .all()
            )
        except SQLAlchemyError as exc:
            raise PersistenceError("search", _detail(exc)) from exc

        if len(headers) > 1:
            logger.warning(
                "search_ambiguous_match",
                extra={
                    "invoice_num": invoice_num,
                    "org_id": org_id,
                    "match_count": len(headers),
                    "staging_id": header.staging_id,
                },
            )
        return InvoiceSnapshot.from_model(header, list(lines))
