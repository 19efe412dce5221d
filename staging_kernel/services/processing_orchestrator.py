"""
Processing Orchestrator - runs the import procedure for one scope.

Scope resolution: staging_id overrides batch_id; with neither the run
covers everything pending for the org (the procedure decides what that
means).  The procedure is the sole authority for row-level flag changes
during the run.

The call is one long unit of work on one pooled connection.  The result
is classified from the return code only ("0" success, "1" warning,
anything else error) and the diagnostic is passed through unchanged.
Nothing is polled or retried: the procedure's idempotency is unknown, so
re-submission is the caller's decision.
"""

import time

from staging_kernel.db.pool import StorePool
from staging_kernel.domain.dtos import ProcessResult, ProcessScope, ProcessStatus
from staging_kernel.logging_config import LogContext, get_logger
from staging_kernel.services.import_procedure import ImportProcedure

logger = get_logger("services.processing_orchestrator")

_LOG_LEVEL = {
    ProcessStatus.SUCCESS: "info",
    ProcessStatus.WARNING: "warning",
    ProcessStatus.ERROR: "error",
}


class ProcessingOrchestrator:
    """Invokes the import procedure and maps its signal into a ProcessResult."""

    def __init__(self, pool: StorePool, procedure: ImportProcedure):
        self._pool = pool
        self._procedure = procedure

    def process(
        self,
        org_id: int,
        batch_id: int | None = None,
        staging_id: int | None = None,
    ) -> ProcessResult:
        """
        Run the procedure once.

        Returns:
            ProcessResult with status/return_code/message/tracking_id as
            reported.  A reported error is a result, not an exception; use
            ``raise_for_error()`` to turn it into ExternalProcedureError.

        Raises:
            PersistenceError: The store or driver failed before the
                procedure could report.
            ProcedureConfigurationError: A single-invoice run was asked of
                a procedure with no staging_id parameter; nothing ran.
        """
        scope = ProcessScope.build(org_id, batch_id, staging_id)

        with LogContext.bind(org_id=scope.org_id, batch_id=scope.batch_id, staging_id=scope.staging_id):
            logger.info("import_procedure_started", extra={"scope": scope.kind})
            started = time.monotonic()

            with self._pool.connection_scope() as connection:
                outcome = self._procedure.invoke(connection, scope)

            result = ProcessResult.from_outcome(outcome, scope)
            duration_ms = round((time.monotonic() - started) * 1000, 2)

            getattr(logger, _LOG_LEVEL[result.status])(
                "import_procedure_completed",
                extra={
                    "scope": scope.kind,
                    "status": result.status.value,
                    "return_code": result.return_code,
                    "tracking_id": result.tracking_id,
                    "diagnostic": result.message,
                    "duration_ms": duration_ms,
                },
            )
        return result
