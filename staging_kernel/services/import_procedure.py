"""
ImportProcedure -- capability interface for the validate/transfer/import step.

Responsibility:
    Hides the external procedure behind ``invoke(connection, scope)`` so the
    orchestrator can be exercised against a fake.  ``StoredImportProcedure``
    is the production implementation: one anonymous PL/SQL block that sets
    up the EBS session context and calls the package procedure.

Architecture position:
    Kernel > Services.  Receives a Core ``Connection`` from
    ``StorePool.connection_scope()``; never opens its own.

Invariants enforced:
    - The procedure is called exactly once per invoke; no retries.
    - Return code and diagnostic are reported exactly as received.
    - The procedure name and parameter names are plain identifiers; they
      are the only text spliced into the block, everything else is bound.

Failure modes:
    - ProcedureConfigurationError when a single-invoice scope is requested
      but no staging_id parameter is configured; nothing is executed.
    - PersistenceError when the driver raises (connection loss, missing
      package, PL/SQL exception escaping the procedure).
"""

import re
from abc import ABC, abstractmethod

from sqlalchemy.engine import Connection

from staging_kernel.domain.dtos import ProcedureOutcome, ProcessScope
from staging_kernel.exceptions import PersistenceError, ProcedureConfigurationError
from staging_kernel.logging_config import get_logger

logger = get_logger("services.import_procedure")

DEFAULT_PROCEDURE = "XXAP_INVOICE_INTERFACE_PKG_WIRA.main_process"

ERRBUF_SIZE = 4000
RETCODE_SIZE = 10

_QUALIFIED_NAME = re.compile(r"^[A-Za-z][\w$#]*(\.[A-Za-z][\w$#]*){0,2}$")
_IDENTIFIER = re.compile(r"^[A-Za-z][\w$#]*$")


class ImportProcedure(ABC):
    """The external validate -> transfer -> import step."""

    @abstractmethod
    def invoke(self, connection: Connection, scope: ProcessScope) -> ProcedureOutcome:
        """Run the procedure once for ``scope`` and return its raw signal."""


class StoredImportProcedure(ImportProcedure):
    """
    Calls the PL/SQL import package through the driver's cursor.

    OUT binds: ``errbuf`` (diagnostic), ``retcode`` ("0"/"1"/"2"), and,
    when ``request_id_param`` is set, the concurrent request id.
    ``staging_id_param`` names the procedure argument used for
    single-invoice runs; without it a staging_id scope is refused rather
    than run as the wider batch or org scope.
    """

    def __init__(
        self,
        name: str = DEFAULT_PROCEDURE,
        *,
        apps_user_id: int = 0,
        apps_resp_id: int = 20639,
        apps_resp_appl_id: int = 200,
        staging_id_param: str | None = "p_staging_id",
        request_id_param: str | None = None,
    ):
        if not _QUALIFIED_NAME.match(name):
            raise ValueError(f"Invalid procedure name: {name!r}")
        for param in (staging_id_param, request_id_param):
            if param is not None and not _IDENTIFIER.match(param):
                raise ValueError(f"Invalid procedure parameter name: {param!r}")
        self.name = name
        self.apps_user_id = apps_user_id
        self.apps_resp_id = apps_resp_id
        self.apps_resp_appl_id = apps_resp_appl_id
        self.staging_id_param = staging_id_param
        self.request_id_param = request_id_param

    def build_block(self, scope: ProcessScope) -> str:
        """The anonymous PL/SQL block for ``scope``."""
        if scope.staging_id is not None and not self.staging_id_param:
            raise ProcedureConfigurationError(
                "procedure.staging_id_param",
                f"Cannot run staging_id {scope.staging_id} on its own without a staging_id parameter",
            )
        args = [
            "errbuf => :errbuf",
            "retcode => :retcode",
            "p_org_id => :org_id",
            "p_batch_id => :batch_id",
        ]
        if scope.staging_id is not None:
            args.append(f"{self.staging_id_param} => :staging_id")
        if self.request_id_param:
            args.append(f"{self.request_id_param} => :request_id")
        joined = ",\n    ".join(args)
        return (
            "BEGIN\n"
            "  fnd_global.apps_initialize(:user_id, :resp_id, :resp_appl_id);\n"
            "  fnd_request.set_org_id(:org_id);\n"
            f"  {self.name}(\n    {joined}\n  );\n"
            "END;"
        )

    def invoke(self, connection: Connection, scope: ProcessScope) -> ProcedureOutcome:
        block = self.build_block(scope)
        dbapi_error = connection.dialect.loaded_dbapi.Error

        cursor = connection.connection.cursor()
        try:
            errbuf = cursor.var(str, ERRBUF_SIZE)
            retcode = cursor.var(str, RETCODE_SIZE)
            binds = {
                "user_id": self.apps_user_id,
                "resp_id": self.apps_resp_id,
                "resp_appl_id": self.apps_resp_appl_id,
                "org_id": scope.org_id,
                "batch_id": scope.batch_id,
                "errbuf": errbuf,
                "retcode": retcode,
            }
            if scope.staging_id is not None:
                binds["staging_id"] = scope.staging_id
            request_id = None
            if self.request_id_param:
                request_id = cursor.var(int)
                binds["request_id"] = request_id

            logger.debug("import_procedure_invoking", extra={"procedure": self.name})
            cursor.execute(block, binds)
        except dbapi_error as exc:
            raise PersistenceError("import_procedure", str(exc)) from exc
        finally:
            cursor.close()

        code = retcode.getvalue()
        tracking = request_id.getvalue() if request_id is not None else None
        return ProcedureOutcome(
            return_code="" if code is None else str(code),
            message=errbuf.getvalue(),
            tracking_id=int(tracking) if tracking is not None else None,
        )
