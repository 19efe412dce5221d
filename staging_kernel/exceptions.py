"""
Typed Exception Hierarchy for the Invoice Staging Kernel.

===============================================================================
EXCEPTION HIERARCHY
===============================================================================

All exceptions inherit from StagingError:

    StagingError (base)
    |
    +-- ValidationError
    |
    +-- NotFoundError
    |   +-- StagingNotFoundError
    |
    +-- IllegalTransitionError
    |
    +-- PersistenceError
    |   +-- OrphanLineError
    |   +-- StoreNotInitializedError
    |
    +-- ExternalProcedureError
    |
    +-- ProcedureConfigurationError

===============================================================================
ERROR CODES - QUICK REFERENCE
===============================================================================

Category      | Code                        | When Raised
--------------|-----------------------------|-------------------------------------------
Input         | VALIDATION_ERROR            | Malformed or missing required input
--------------|-----------------------------|-------------------------------------------
Lookup        | NOT_FOUND                   | No matching record
              | STAGING_NOT_FOUND           | staging_id does not exist
--------------|-----------------------------|-------------------------------------------
Lifecycle     | ILLEGAL_TRANSITION          | Transition not allowed from current flag
--------------|-----------------------------|-------------------------------------------
Store         | PERSISTENCE_ERROR           | Connectivity loss, constraint violation
              | ORPHAN_LINE                 | Line insert references a missing header
              | STORE_NOT_INITIALIZED       | Pool used after close()
--------------|-----------------------------|-------------------------------------------
Processing    | EXTERNAL_PROCEDURE_FAILURE  | Import procedure reported an error
              | PROCEDURE_NOT_CONFIGURED    | Procedure settings cannot serve the scope

===============================================================================
HANDLING PATTERNS
===============================================================================

1. NOT-FOUND IS A RESULT, NOT A FAULT:

    snapshot = facade.status(staging_id)
    if snapshot is None:
        ...  # 404-style response

   Only operations that cannot return a result (cancel) raise
   StagingNotFoundError.

2. REJECTIONS CARRY THE STATE NAME:

    except IllegalTransitionError as e:
        respond(400, e.reason)          # "Cannot cancel invoice with status 'Cancelled'..."
        log.info(e.current_label)       # "Cancelled"

3. NOTHING IS RETRIED AUTOMATICALLY:

   The import procedure's idempotency is unknown.  A PersistenceError or
   an error ProcessResult goes back to the caller unchanged; re-submission
   is the caller's decision.
"""


class StagingError(Exception):
    """
    Base exception for all staging kernel errors.

    All subclasses carry a `code` class attribute for machine-readable
    error identification.
    """

    code: str = "STAGING_ERROR"


class ValidationError(StagingError):
    """Caller input is malformed or missing required fields.  Never retried."""

    code: str = "VALIDATION_ERROR"

    def __init__(self, message: str, errors: list[str] | None = None):
        self.errors: list[str] = errors or []
        super().__init__(message)


# Lookup


class NotFoundError(StagingError):
    """Base exception for lookups that matched nothing."""

    code: str = "NOT_FOUND"


class StagingNotFoundError(NotFoundError):
    """No staging header with the given id."""

    code: str = "STAGING_NOT_FOUND"

    def __init__(self, staging_id: int):
        self.staging_id = staging_id
        super().__init__(f"Invoice with staging_id {staging_id} not found")


# Lifecycle


class IllegalTransitionError(StagingError):
    """
    Requested transition is not allowed from the header's current flag.

    The message names the current state by its human-readable label so the
    caller can explain the rejection without another lookup.
    """

    code: str = "ILLEGAL_TRANSITION"

    def __init__(
        self,
        staging_id: int,
        current_flag: str | None,
        current_label: str,
        target_flag: str,
        reason: str,
    ):
        self.staging_id = staging_id
        self.current_flag = current_flag
        self.current_label = current_label
        self.target_flag = target_flag
        self.reason = reason
        super().__init__(reason)


# Store


class PersistenceError(StagingError):
    """Store connectivity or constraint failure.  Surfaced as a server fault."""

    code: str = "PERSISTENCE_ERROR"

    def __init__(self, operation: str, detail: str):
        self.operation = operation
        self.detail = detail
        super().__init__(f"{operation} failed: {detail}")


class OrphanLineError(PersistenceError):
    """Line insert refused because the parent header does not exist."""

    code: str = "ORPHAN_LINE"

    def __init__(self, staging_id: int, detail: str):
        self.staging_id = staging_id
        super().__init__("insert_line", f"no header with staging_id {staging_id} ({detail})")


class StoreNotInitializedError(PersistenceError):
    """The pool was closed and can no longer hand out connections."""

    code: str = "STORE_NOT_INITIALIZED"

    def __init__(self):
        super().__init__("acquire", "store pool has been closed")


# Processing


class ExternalProcedureError(StagingError):
    """
    The validate/transfer/import procedure reported an error.

    The diagnostic is the procedure's own text, unmodified.
    """

    code: str = "EXTERNAL_PROCEDURE_FAILURE"

    def __init__(self, return_code: str, diagnostic: str):
        self.return_code = return_code
        self.diagnostic = diagnostic
        super().__init__(diagnostic)


class ProcedureConfigurationError(StagingError):
    """The procedure settings cannot express the requested run; nothing was called."""

    code: str = "PROCEDURE_NOT_CONFIGURED"

    def __init__(self, setting: str, reason: str):
        self.setting = setting
        self.reason = reason
        super().__init__(f"{reason} (set {setting})")


def error_category(exc: BaseException) -> str:
    """
    Classify an exception for transport adapters.

    Returns one of ``client``, ``not_found``, ``conflict`` or ``server``.
    Anything outside the staging hierarchy is a server fault.
    """
    if isinstance(exc, ValidationError):
        return "client"
    if isinstance(exc, NotFoundError):
        return "not_found"
    if isinstance(exc, IllegalTransitionError):
        return "conflict"
    return "server"
