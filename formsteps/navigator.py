"""Section navigator for formsteps form sessions.

This module implements the state machine that moves a session between the
sections of a form. States are ``Section(i)`` for each section index plus
the terminal ``Submitted`` status.

Transitions:
- next: validate section i; advance to i+1 if valid, otherwise stay and
  expose per-field errors
- previous: unconditional move to i-1
- jump: unconditional move to any section j, without validating section i
- submit (last section only): validate the section, then delegate to the
  SubmissionCoordinator; on success the navigator becomes terminal

Navigation never mutates FormState and never fetches a schema.

Usage:
    >>> from formsteps.schema import FormSchema
    >>> from formsteps.state import FormState
    >>> schema = FormSchema.from_payload({"sections": [
    ...     {"title": "One", "fields": [{"fieldId": "a", "type": "text"}]},
    ...     {"title": "Two", "fields": [{"fieldId": "b", "type": "text"}]}]})
    >>> nav = SectionNavigator(schema, FormState(schema))
    >>> nav.next().is_valid
    True
    >>> nav.index
    1
"""

import logging
from dataclasses import dataclass
from typing import Any, Dict, List, Optional, Set

from formsteps.errors import FieldError, FormStepsError, InvalidNavigationError, SubmissionError
from formsteps.events import EventEmitter, FormEvent, new_event
from formsteps.schema import FormSchema, Section
from formsteps.state import FormState
from formsteps.submission import SubmissionCoordinator, SubmissionResult
from formsteps.types import EventType, NavigationAction, SessionStatus
from formsteps.validation import FieldValidator, SectionValidationResult

logger = logging.getLogger(__name__)


# Actions allowed per status; positional rules (first/last section) are
# checked separately by each transition
VALID_ACTIONS: Dict[SessionStatus, Set[NavigationAction]] = {
    SessionStatus.LOADING: set(),
    SessionStatus.ACTIVE: {
        NavigationAction.NEXT,
        NavigationAction.PREVIOUS,
        NavigationAction.JUMP,
        NavigationAction.SUBMIT,
    },
    SessionStatus.SUBMITTED: set(),
    SessionStatus.ENDED: set(),
}


@dataclass(frozen=True)
class ProgressStep:
    """One numbered control of the progress indicator."""
    number: int
    title: str
    is_current: bool

    @property
    def index(self) -> int:
        return self.number - 1


class SectionNavigator:
    """State machine over the sections of one form session.

    Attributes:
        schema: The schema being navigated
        state: Field values, read for validation only
        index: Current section index
        status: ACTIVE until submitted or ended
    """

    def __init__(
        self,
        schema: FormSchema,
        state: FormState,
        validator: Optional[FieldValidator] = None,
        coordinator: Optional[SubmissionCoordinator] = None,
        session_id: str = "",
        emitter: Optional[EventEmitter] = None,
        index: int = 0,
    ):
        if not 0 <= index < schema.section_count:
            raise ValueError(f"Section index {index} out of range for {schema.section_count} sections")
        self.schema = schema
        self.state = state
        self.validator = validator or FieldValidator()
        self.coordinator = coordinator
        self.session_id = session_id
        self.index = index
        self.status = SessionStatus.ACTIVE
        self._emitter = emitter
        self._errors: Dict[str, FieldError] = {}
        self._events: List[FormEvent] = []
        self._record(EventType.SECTION_ENTERED, {"title": self.current_section.title})

    @property
    def current_section(self) -> Section:
        return self.schema.sections[self.index]

    @property
    def section_count(self) -> int:
        return self.schema.section_count

    @property
    def is_first(self) -> bool:
        return self.index == 0

    @property
    def is_last(self) -> bool:
        return self.index == self.section_count - 1

    @property
    def progress(self) -> float:
        """Linear progress, ``index / (N - 1)``; a single-section form is complete."""
        if self.section_count <= 1:
            return 1.0
        return self.index / (self.section_count - 1)

    @property
    def errors(self) -> Dict[str, FieldError]:
        """Errors from the last blocked transition, keyed by field id."""
        return dict(self._errors)

    @property
    def current_errors(self) -> Dict[str, FieldError]:
        """Errors for fields of the current section only."""
        ids = set(self.current_section.field_ids)
        return {k: v for k, v in self._errors.items() if k in ids}

    def progress_steps(self) -> List[ProgressStep]:
        return [
            ProgressStep(number=i + 1, title=s.title, is_current=i == self.index)
            for i, s in enumerate(self.schema.sections)
        ]

    def can_perform(self, action: NavigationAction) -> bool:
        """Check whether ``action`` is allowed from the current state."""
        if action not in VALID_ACTIONS[self.status]:
            return False
        if action == NavigationAction.NEXT:
            return not self.is_last
        if action == NavigationAction.PREVIOUS:
            return not self.is_first
        if action == NavigationAction.SUBMIT:
            return self.is_last
        return True

    def next(self) -> SectionValidationResult:
        """Validate the current section and advance if it is valid.

        Returns:
            The section's validation result; the index moved iff it is valid

        Raises:
            InvalidNavigationError: If on the last section or not active
        """
        self._check(NavigationAction.NEXT)
        if self.is_last:
            raise self._invalid(
                NavigationAction.NEXT,
                "Already on the last section; submit instead",
            )

        result = self._validate_current()
        if result.is_valid:
            self._enter(self.index + 1)
        return result

    def previous(self) -> None:
        """Move back one section without validating.

        Raises:
            InvalidNavigationError: If on the first section or not active
        """
        self._check(NavigationAction.PREVIOUS)
        if self.is_first:
            raise self._invalid(NavigationAction.PREVIOUS, "Already on the first section")
        self._enter(self.index - 1)

    def jump_to(self, index: int) -> None:
        """Move to any section without validating the one being left.

        Raises:
            InvalidNavigationError: If ``index`` is out of range or not active
        """
        self._check(NavigationAction.JUMP)
        if not 0 <= index < self.section_count:
            raise self._invalid(
                NavigationAction.JUMP,
                f"Section index {index} out of range; valid indices are 0-{self.section_count - 1}",
            )
        self._enter(index)

    async def submit(self) -> SubmissionResult:
        """Validate the last section and hand the form to the coordinator.

        Returns:
            SubmissionResult; ok means the navigator is now SUBMITTED. A
            failing result leaves the navigator on the last section with the
            errors exposed.

        Raises:
            InvalidNavigationError: If not on the last section or not active
            SubmissionError: If the transport fails; state is unchanged
        """
        self._check(NavigationAction.SUBMIT)
        if not self.is_last:
            raise self._invalid(
                NavigationAction.SUBMIT,
                f"Submit is only available on the last section (section {self.section_count})",
            )
        if self.coordinator is None:
            raise FormStepsError("No submission coordinator configured")

        result = self._validate_current()
        if not result.is_valid:
            return SubmissionResult(ok=False, errors=result.errors)

        try:
            outcome = await self.coordinator.submit(self.state, self.schema)
        except SubmissionError as exc:
            logger.warning("Submission failed: %s", exc)
            self._record(EventType.SUBMISSION_FAILED, exc.to_dict())
            raise

        if not outcome.ok:
            self._errors = outcome.errors_by_field
            self._record(
                EventType.VALIDATION_FAILED,
                {"errors": [e.to_dict() for e in outcome.errors], "sweep": True},
            )
            return outcome

        self.status = SessionStatus.SUBMITTED
        self._errors = {}
        self._record(EventType.FORM_SUBMITTED, {"submissionId": outcome.ack.submission_id})
        return outcome

    def rebind(self, schema: FormSchema, state: FormState) -> None:
        """Switch to a reshaped schema, clamping the index into its range."""
        self.schema = schema
        self.state = state
        self._errors = {}
        if self.index >= schema.section_count:
            self._enter(schema.section_count - 1)

    def end(self) -> None:
        """Mark the navigator ENDED; no further transitions are allowed."""
        self.status = SessionStatus.ENDED
        self._errors = {}

    def get_events(self) -> List[FormEvent]:
        """Events recorded by this navigator, in chronological order."""
        return list(self._events)

    def _validate_current(self) -> SectionValidationResult:
        result = self.validator.validate_section(self.current_section, self.state)
        if result.is_valid:
            self._errors = {}
            self._record(EventType.VALIDATION_PASSED)
        else:
            self._errors = result.errors_by_field
            logger.info(
                "Section %d (%s) blocked by invalid field(s): %s",
                self.index + 1, self.current_section.title,
                ", ".join(e.field_id for e in result.errors),
            )
            self._record(
                EventType.VALIDATION_FAILED,
                {"errors": [e.to_dict() for e in result.errors]},
            )
        return result

    def _enter(self, index: int) -> None:
        logger.debug("Section %d -> %d", self.index, index)
        self.index = index
        self._errors = {}
        self._record(EventType.SECTION_ENTERED, {"title": self.current_section.title})

    def _check(self, action: NavigationAction) -> None:
        if action not in VALID_ACTIONS[self.status]:
            raise InvalidNavigationError(
                action=action,
                status=self.status,
                index=self.index,
                message=(
                    f"Cannot {action.value}: the session is '{self.status.value}' "
                    f"and accepts no further navigation"
                ),
            )

    def _invalid(self, action: NavigationAction, message: str) -> InvalidNavigationError:
        return InvalidNavigationError(
            action=action, status=self.status, index=self.index, message=message
        )

    def _record(self, event_type: EventType, payload: Optional[Dict[str, Any]] = None) -> None:
        event = new_event(event_type, self.session_id, self.index, payload)
        self._events.append(event)
        if self._emitter is not None:
            self._emitter.emit(event)


__all__ = [
    "SectionNavigator",
    "ProgressStep",
    "VALID_ACTIONS",
]
