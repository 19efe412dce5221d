"""
LifecycleEngine -- enforces the process-flag state machine.

Responsibility:
    Decides whether a caller-initiated transition is legal for a header's
    current flag and, if so, applies it to the header and then to all of
    its lines inside the caller's unit of work.

Architecture position:
    Kernel > Services.  Consults ``STAGING_WORKFLOW``; writes only through
    ``StagingRepository.update_header_flag`` / ``update_lines_flag``.

Invariants enforced:
    - Cancel is legal only from N or E; every other flag (including codes
      the engine does not know) is rejected with the flag's label.
    - X and I are terminal.
    - Transitions into X or E write error_message together with the flag,
      for the header and every line, in one unit of work.
    - Transitions owned by the import procedure are never applied here.
    - Writes by the import procedure are not re-verified.

Failure modes:
    - StagingNotFoundError: no header with that staging_id.
    - IllegalTransitionError: transition not allowed from the current flag,
      or owned by the import procedure.  Nothing is written.
"""

from staging_kernel.domain.dtos import CancelResult
from staging_kernel.domain.process_flag import status_label
from staging_kernel.domain.workflow import (
    ACTION_CANCEL,
    ACTOR_CALLER,
    STAGING_WORKFLOW,
    Transition,
    Workflow,
)
from staging_kernel.exceptions import IllegalTransitionError, StagingNotFoundError
from staging_kernel.logging_config import get_logger
from staging_kernel.services.staging_repository import StagingRepository

logger = get_logger("services.lifecycle_engine")

DEFAULT_CANCEL_MESSAGE = "Cancelled by user"


class LifecycleEngine:
    """
    Applies caller-authorised transitions to staged invoices.

    Contract:
        Built around a StagingRepository bound to the caller's session.
        The caller commits; a raised exception means nothing was written
        by this engine.
    """

    def __init__(
        self,
        repository: StagingRepository,
        workflow: Workflow = STAGING_WORKFLOW,
        cancel_message: str = DEFAULT_CANCEL_MESSAGE,
    ):
        self._repository = repository
        self._workflow = workflow
        self._cancel_message = cancel_message

    @property
    def workflow(self) -> Workflow:
        return self._workflow

    def check(self, staging_id: int, current_flag: str | None, action: str, actor: str) -> Transition:
        """
        Return the transition ``action`` from ``current_flag``.

        Raises:
            IllegalTransitionError: If the workflow has no such transition
                or it belongs to another actor.
        """
        transition = self._workflow.find(current_flag, action)
        if transition is None:
            target = self._target_of(action)
            raise IllegalTransitionError(
                staging_id=staging_id,
                current_flag=current_flag,
                current_label=status_label(current_flag),
                target_flag=target,
                reason=self._rejection_reason(action, current_flag),
            )
        if transition.actor != actor:
            raise IllegalTransitionError(
                staging_id=staging_id,
                current_flag=current_flag,
                current_label=status_label(current_flag),
                target_flag=transition.to_state,
                reason=(
                    f"Transition '{action}' is performed by {transition.actor}, not {actor}"
                ),
            )
        return transition

    def apply(
        self,
        staging_id: int,
        action: str,
        *,
        error_message: str | None = None,
        updated_by: int | None = None,
    ):
        """
        Lock the header, check the transition and write header then lines.

        Only caller-owned transitions are applied; the import procedure's
        transitions are rejected whatever the current flag.

        Returns:
            The locked header model, with the new flag applied.
        """
        header = self._repository.lock_header(staging_id)
        if header is None:
            raise StagingNotFoundError(staging_id)

        current = header.process_flag
        try:
            transition = self.check(staging_id, current, action, ACTOR_CALLER)
        except IllegalTransitionError as exc:
            logger.debug(
                "transition_rejected",
                extra={
                    "staging_id": staging_id,
                    "action": action,
                    "current_flag": current,
                    "current_label": exc.current_label,
                },
            )
            raise

        if transition.annotates and not error_message:
            raise ValueError(
                f"Transition '{action}' into {transition.to_state} requires an error_message"
            )

        self._repository.update_header_flag(
            staging_id, transition.to_state, error_message, updated_by
        )
        line_count = self._repository.update_lines_flag(
            staging_id, transition.to_state, error_message, updated_by
        )

        logger.info(
            "transition_applied",
            extra={
                "staging_id": staging_id,
                "action": action,
                "from_flag": current,
                "to_flag": transition.to_state,
                "lines_updated": line_count,
            },
        )
        return header

    def cancel(self, staging_id: int, updated_by: int | None = None) -> CancelResult:
        """
        Move a New or Error invoice to Cancelled, header first, then lines.

        Raises:
            StagingNotFoundError: Unknown staging_id.
            IllegalTransitionError: Current flag is not N or E.  The reason
                names the current status, e.g. "Cancelled".
        """
        try:
            header = self.apply(
                staging_id,
                ACTION_CANCEL,
                error_message=self._cancel_message,
                updated_by=updated_by,
            )
        except IllegalTransitionError as exc:
            logger.info(
                "cancel_rejected",
                extra={
                    "staging_id": staging_id,
                    "current_flag": exc.current_flag,
                    "current_label": exc.current_label,
                },
            )
            raise
        logger.info(
            "invoice_cancelled",
            extra={"staging_id": staging_id, "invoice_num": header.invoice_num},
        )
        return CancelResult(
            staging_id=staging_id,
            cancelled=True,
            message=f"Invoice {header.invoice_num} cancelled successfully",
        )

    # ------------------------------------------------------------------
    # Helpers
    # ------------------------------------------------------------------

    def _target_of(self, action: str) -> str:
        for t in self._workflow.transitions:
            if t.action == action:
                return t.to_state
        return ""

    def _rejection_reason(self, action: str, current_flag: str | None) -> str:
        label = status_label(current_flag)
        allowed = " or ".join(status_label(s) for s in self._workflow.sources_for(action))
        if action == ACTION_CANCEL:
            return (
                f"Cannot cancel invoice with status '{label}'. "
                f"Only {allowed} status can be cancelled."
            )
        if not allowed:
            return f"Unknown action '{action}'"
        return f"Cannot {action} invoice with status '{label}'. Allowed from: {allowed}."

