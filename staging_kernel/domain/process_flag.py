"""
Process flag vocabulary (``staging_kernel.domain.process_flag``).

Single-character lifecycle codes shared with the import procedure.  The
codes are bit-exact: the procedure writes them into the same column.

Unknown codes are expected (the procedure is the source of truth and may
write values this module has never seen); they map to the ``Unknown``
label instead of failing.
"""

from __future__ import annotations

from enum import Enum

UNKNOWN_LABEL = "Unknown"


class ProcessFlag(Enum):
    """Lifecycle state of a staged header or line."""

    NEW = "N"
    VALIDATED = "V"
    ERROR = "E"
    PROCESSED = "P"
    INTERFACED = "I"
    CANCELLED = "X"

    @property
    def label(self) -> str:
        return _LABELS[self]

    @classmethod
    def parse(cls, code: str | None) -> ProcessFlag | None:
        """Return the member for ``code``, or None when the code is unknown."""
        if code is None:
            return None
        try:
            return cls(code)
        except ValueError:
            return None


_LABELS: dict[ProcessFlag, str] = {
    ProcessFlag.NEW: "New",
    ProcessFlag.VALIDATED: "Validated",
    ProcessFlag.ERROR: "Error",
    ProcessFlag.PROCESSED: "Processed",
    ProcessFlag.INTERFACED: "Interfaced",
    ProcessFlag.CANCELLED: "Cancelled",
}


def status_label(code: str | None) -> str:
    """Human-readable label for a raw flag code; ``Unknown`` for anything else."""
    flag = ProcessFlag.parse(code)
    return flag.label if flag is not None else UNKNOWN_LABEL
