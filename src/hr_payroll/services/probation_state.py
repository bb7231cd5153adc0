"""Probation state machine with transition validation."""

from __future__ import annotations

from hr_payroll.errors import PreconditionError
from hr_payroll.models.enums import ProbationEvent


class InvalidProbationTransitionError(PreconditionError):
    """Raised when a probation event cannot follow the current one."""

    code = "INVALID_PROBATION_TRANSITION"

    def __init__(self, from_event: str | None, to_event: str, reason: str | None = None):
        self.from_event = from_event
        self.to_event = to_event
        self.reason = reason
        msg = f"Invalid probation transition from '{from_event}' to '{to_event}'"
        if reason:
            msg += f": {reason}"
        super().__init__(msg, {"from_event": from_event, "to_event": to_event})


class ProbationStateMachine:
    """State machine over the kind of an employment's current probation record.

    Allowed transitions:
    - (none) → initial
    - initial → extension | passed | failed
    - extension → extension | passed | failed
    - passed, failed: terminal
    """

    VALID_TRANSITIONS: dict[ProbationEvent | None, list[ProbationEvent]] = {
        None: [ProbationEvent.INITIAL],
        ProbationEvent.INITIAL: [
            ProbationEvent.EXTENSION,
            ProbationEvent.PASSED,
            ProbationEvent.FAILED,
        ],
        ProbationEvent.EXTENSION: [
            ProbationEvent.EXTENSION,
            ProbationEvent.PASSED,
            ProbationEvent.FAILED,
        ],
        ProbationEvent.PASSED: [],
        ProbationEvent.FAILED: [],
    }

    @staticmethod
    def _coerce(event: ProbationEvent | str | None) -> ProbationEvent | None:
        return None if event is None else ProbationEvent(event)

    @classmethod
    def can_transition(cls, from_event: ProbationEvent | str | None, to_event: ProbationEvent | str) -> bool:
        """Check if a transition is valid."""
        allowed = cls.VALID_TRANSITIONS.get(cls._coerce(from_event), [])
        return ProbationEvent(to_event) in allowed

    @classmethod
    def validate_transition(cls, from_event: ProbationEvent | str | None, to_event: ProbationEvent | str) -> None:
        """Validate a transition, raising InvalidProbationTransitionError if invalid."""
        if not cls.can_transition(from_event, to_event):
            source = cls._coerce(from_event)
            reason = "probation already decided" if source is not None and source.is_terminal else None
            raise InvalidProbationTransitionError(
                source.value if source is not None else None,
                ProbationEvent(to_event).value,
                reason,
            )

    @classmethod
    def is_terminal(cls, event: ProbationEvent | str | None) -> bool:
        source = cls._coerce(event)
        return source is not None and source.is_terminal

    @classmethod
    def can_extend(cls, event: ProbationEvent | str | None) -> bool:
        return cls.can_transition(event, ProbationEvent.EXTENSION)

    @classmethod
    def get_next_events(cls, current: ProbationEvent | str | None) -> list[ProbationEvent]:
        """Get list of valid next events from the current one."""
        return list(cls.VALID_TRANSITIONS.get(cls._coerce(current), []))
