"""
Staging lifecycle workflow (``staging_kernel.domain.workflow``).

Responsibility
--------------
Pure value objects for the process-flag state machine, plus the one
``STAGING_WORKFLOW`` definition every service consults before a mutating
statement executes.

Architecture position
---------------------
**Kernel domain layer** -- pure value objects.  ZERO I/O.  No imports
from ``db/``, ``models/``, ``services/``.

Invariants enforced
-------------------
* Transitions reference only states in ``Workflow.states``.
* ``initial_state`` is a member of ``states``.
* Terminal states have no outgoing transitions.
* Transitions into X or E are annotated: the flag and error_message
  change together, for the header and all of its lines.
"""

from __future__ import annotations

from dataclasses import dataclass

from staging_kernel.domain.process_flag import ProcessFlag

ACTOR_EXTERNAL_PROCEDURE = "external_procedure"
ACTOR_CALLER = "caller"


@dataclass(frozen=True)
class Guard:
    """A condition that must hold before a transition fires.

    Contract: frozen, descriptive only.
    Non-goals: does not evaluate the condition -- the lifecycle engine does.
    """
    name: str
    description: str


@dataclass(frozen=True)
class Transition:
    """A legal flag change and the actor allowed to trigger it.

    ``annotates=True`` means the error_message is written in the same unit
    of work as the flag.
    """
    from_state: str
    to_state: str
    action: str
    actor: str
    guard: Guard | None = None
    annotates: bool = False


@dataclass(frozen=True)
class Workflow:
    """A state machine definition for the staged invoice lifecycle.

    Contract: frozen; ``transitions`` reference only states in ``states``.
    """
    name: str
    description: str
    initial_state: str
    states: tuple[str, ...]
    transitions: tuple[Transition, ...]
    terminal_states: tuple[str, ...] = ()

    def __post_init__(self):
        if self.initial_state not in self.states:
            raise ValueError(f"initial_state {self.initial_state!r} not in states")
        for t in self.transitions:
            if t.from_state not in self.states or t.to_state not in self.states:
                raise ValueError(f"transition {t.action} references an unknown state")
            if t.from_state in self.terminal_states:
                raise ValueError(f"terminal state {t.from_state!r} has an outgoing transition")

    def transitions_from(self, state: str | None) -> tuple[Transition, ...]:
        return tuple(t for t in self.transitions if t.from_state == state)

    def find(self, from_state: str | None, action: str) -> Transition | None:
        """Return the transition for ``action`` out of ``from_state``, or None."""
        for t in self.transitions:
            if t.from_state == from_state and t.action == action:
                return t
        return None

    def sources_for(self, action: str) -> tuple[str, ...]:
        """States from which ``action`` is legal, in declaration order."""
        return tuple(t.from_state for t in self.transitions if t.action == action)

    def is_terminal(self, state: str | None) -> bool:
        return state in self.terminal_states


# -----------------------------------------------------------------------------
# Guards
# -----------------------------------------------------------------------------

NOT_YET_IMPORTED = Guard(
    name="not_yet_imported",
    description="Invoice has not been validated, transferred or imported",
)


# -----------------------------------------------------------------------------
# Staging Workflow
# -----------------------------------------------------------------------------

_N = ProcessFlag.NEW.value
_V = ProcessFlag.VALIDATED.value
_E = ProcessFlag.ERROR.value
_P = ProcessFlag.PROCESSED.value
_I = ProcessFlag.INTERFACED.value
_X = ProcessFlag.CANCELLED.value

ACTION_VALIDATE = "validate"
ACTION_REJECT = "reject"
ACTION_TRANSFER = "transfer"
ACTION_IMPORT = "import"
ACTION_CANCEL = "cancel"

STAGING_WORKFLOW = Workflow(
    name="ap_invoice_staging",
    description="Staged AP invoice from creation to import or cancellation",
    initial_state=_N,
    states=(_N, _V, _E, _P, _I, _X),
    transitions=(
        Transition(_N, _V, ACTION_VALIDATE, ACTOR_EXTERNAL_PROCEDURE),
        Transition(_N, _E, ACTION_REJECT, ACTOR_EXTERNAL_PROCEDURE, annotates=True),
        Transition(_V, _E, ACTION_REJECT, ACTOR_EXTERNAL_PROCEDURE, annotates=True),
        Transition(_V, _P, ACTION_TRANSFER, ACTOR_EXTERNAL_PROCEDURE),
        Transition(_P, _I, ACTION_IMPORT, ACTOR_EXTERNAL_PROCEDURE),
        Transition(
            _N, _X, ACTION_CANCEL, ACTOR_CALLER, guard=NOT_YET_IMPORTED, annotates=True
        ),
        Transition(
            _E, _X, ACTION_CANCEL, ACTOR_CALLER, guard=NOT_YET_IMPORTED, annotates=True
        ),
    ),
    terminal_states=(_X, _I),
)
