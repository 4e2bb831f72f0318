"""Trigger to procedure resolution."""

from __future__ import annotations

from typing import TYPE_CHECKING, List, Optional, Sequence

if TYPE_CHECKING:
    from .config import Procedure


class ProcedureNotFound(LookupError):
    """Raised when no configured procedure carries the requested trigger."""

    def __init__(self, trigger: str, available: Sequence[str]) -> None:
        self.trigger = trigger
        self.available = list(available)
        listing = "".join(f"- {name}\n" for name in self.available)
        super().__init__(
            f'Could not find a backup procedure with the trigger "{trigger}".\n'
            f"Here's a list of available triggers:\n{listing}"
        )


def resolve(trigger: Optional[str], procedures: Sequence["Procedure"]) -> Optional["Procedure"]:
    """Return the first procedure whose trigger equals ``trigger``.

    ``None`` means no resolution was requested: nothing is scanned and
    ``None`` is returned, so callers must not dispatch.
    """
    if trigger is None:
        return None

    for procedure in procedures:
        if procedure.trigger == trigger:
            return procedure
    raise ProcedureNotFound(trigger, [procedure.trigger for procedure in procedures])


def duplicate_triggers(procedures: Sequence["Procedure"]) -> List[str]:
    seen = set()
    duplicates: List[str] = []
    for procedure in procedures:
        if procedure.trigger in seen and procedure.trigger not in duplicates:
            duplicates.append(procedure.trigger)
        seen.add(procedure.trigger)
    return duplicates
