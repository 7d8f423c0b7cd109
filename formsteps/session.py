"""FormSession orchestrator for formsteps.

This module provides the FormSession class that coordinates the schema
loader, form state, navigator, and submission coordinator for one form
session, plus the render model (SectionView / FieldView) a UI binds to.

A session loads its schema once at start, then serves every navigation from
memory. Only an explicit shape request (a different section or field count)
goes back to the network.

Usage:
    >>> import asyncio
    >>> async def main():
    ...     async with create_session() as session:
    ...         await session.start()
    ...         session.set_value("firstName", "John")
    ...         session.next()
    >>> asyncio.run(main())  # doctest: +SKIP
"""

import logging
import uuid
from dataclasses import dataclass, field
from typing import Any, Dict, List, Optional

import httpx

from formsteps.cache import SchemaCache
from formsteps.config import FormStepsSettings, configure_logging, get_settings
from formsteps.errors import FieldError, FormStepsError, InvalidNavigationError, LoadError
from formsteps.events import EventEmitter, FormEvent, new_event
from formsteps.loader import SchemaLoader
from formsteps.navigator import ProgressStep, SectionNavigator
from formsteps.schema import ChoiceField, Field, FormSchema, SchemaParams
from formsteps.state import FormState
from formsteps.submission import HttpSubmissionTransport, SubmissionCoordinator, SubmissionResult
from formsteps.types import EventType, NavigationAction, SessionStatus
from formsteps.validation import FieldValidator, SectionValidationResult

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class OptionView:
    value: str
    label: str
    test_id: str
    selected: bool


@dataclass(frozen=True)
class FieldView:
    """Render model of one field control.

    ``test_id`` is the control's ``data-test-id``; ``error`` is the message to
    show next to it, if the last transition was blocked by this field.
    """
    field_id: str
    type: str
    label: str
    test_id: str
    required: bool
    value: Any
    error: Optional[str] = None
    placeholder: Optional[str] = None
    options: List[OptionView] = field(default_factory=list)


@dataclass(frozen=True)
class SectionView:
    """Render model of the current section."""
    index: int
    title: str
    fields: List[FieldView]
    description: Optional[str] = None
    is_first: bool = False
    is_last: bool = False
    progress: float = 0.0

    @property
    def number(self) -> int:
        return self.index + 1

    def get_field(self, field_id: str) -> Optional[FieldView]:
        for view in self.fields:
            if view.field_id == field_id:
                return view
        return None


class FormSession:
    """Orchestrator for one multi-section form session.

    Attributes:
        session_id: Identifier stamped on every event
        loader: Schema loader (and, through it, the session's SchemaCache)
        validator: Field validator shared by navigator and coordinator
        coordinator: Submission coordinator, required for submit
    """

    def __init__(
        self,
        loader: SchemaLoader,
        coordinator: Optional[SubmissionCoordinator] = None,
        validator: Optional[FieldValidator] = None,
        emitter: Optional[EventEmitter] = None,
        session_id: Optional[str] = None,
        http_client: Optional[httpx.AsyncClient] = None,
    ):
        """Initialize the session.

        Args:
            loader: Schema loader to use
            coordinator: Submission coordinator; submit is unavailable without one
            validator: Field validator; the coordinator's when omitted
            emitter: Event emitter to publish session events on
            session_id: Session identifier; generated when omitted
            http_client: Client owned by this session, closed by aclose()
        """
        self.session_id = session_id or f"fs_{uuid.uuid4().hex[:16]}"
        self.loader = loader
        self.coordinator = coordinator
        self.validator = validator or (coordinator.validator if coordinator else FieldValidator())
        self.emitter = emitter or EventEmitter()
        self._http_client = http_client
        self._schema: Optional[FormSchema] = None
        self._state: Optional[FormState] = None
        self._navigator: Optional[SectionNavigator] = None
        self._ended = False
        self._last_result: Optional[SubmissionResult] = None
        self._events: List[FormEvent] = []
        self.emitter.on_any(self._events.append)

    async def __aenter__(self) -> "FormSession":
        return self

    async def __aexit__(self, *exc_info: Any) -> None:
        await self.aclose()

    async def aclose(self) -> None:
        if self._http_client is not None:
            await self._http_client.aclose()

    @property
    def status(self) -> SessionStatus:
        if self._ended:
            return SessionStatus.ENDED
        if self._navigator is None:
            return SessionStatus.LOADING
        return self._navigator.status

    @property
    def schema(self) -> Optional[FormSchema]:
        return self._schema

    @property
    def cache(self) -> SchemaCache:
        return self.loader.cache

    @property
    def fetch_count(self) -> int:
        """Network schema fetches made by this session."""
        return self.loader.fetch_count

    @property
    def index(self) -> Optional[int]:
        return self._navigator.index if self._navigator else None

    @property
    def values(self) -> Dict[str, Any]:
        """Current field values; empty once the session is over."""
        return self._state.to_dict() if self._state is not None else {}

    @property
    def errors(self) -> Dict[str, FieldError]:
        return self._navigator.errors if self._navigator else {}

    @property
    def progress(self) -> float:
        return self._navigator.progress if self._navigator else 0.0

    @property
    def last_result(self) -> Optional[SubmissionResult]:
        return self._last_result

    def get_events(self) -> List[FormEvent]:
        return list(self._events)

    async def start(self, params: Optional[SchemaParams] = None) -> FormSchema:
        """Load the schema and enter the first section.

        Calling start on a session that is already active returns its schema
        without reloading. If a shape request is made while the first load
        is in flight, whichever schema was requested last ends up adopted.

        Raises:
            LoadError: If the schema cannot be loaded; the session stays
                LOADING and start may be called again
        """
        if self._ended:
            raise FormStepsError("Session has ended")
        if self._navigator is not None:
            return self._schema

        params = params or SchemaParams()
        schema = await self._load(params)
        return self._adopt(params, schema)

    async def request_shape(
        self,
        section_count: Optional[int] = None,
        field_count: Optional[int] = None,
    ) -> FormSchema:
        """Switch the form to a different shape.

        The new schema is adopted only if no newer shape request was made
        while it was loading. Values of surviving field ids are kept.

        Raises:
            LoadError: If the schema cannot be loaded; the current form is kept
        """
        params = SchemaParams(section_count=section_count, field_count=field_count)
        if self._navigator is None:
            return await self.start(params)
        if self.status != SessionStatus.ACTIVE:
            raise FormStepsError(f"Cannot change shape of a '{self.status.value}' session")

        schema = await self._load(params)
        return self._adopt(params, schema)

    def _adopt(self, params: SchemaParams, schema: FormSchema) -> FormSchema:
        """Make a freshly loaded schema current, unless it has been superseded.

        The first schema to arrive always enters Section(0), even if a newer
        request is still loading; that request rebinds the form when it lands.
        """
        if self._ended:
            raise FormStepsError("Session has ended")

        if self._navigator is None:
            self._schema = schema
            self._state = FormState(schema)
            self._navigator = SectionNavigator(
                schema,
                self._state,
                validator=self.validator,
                coordinator=self.coordinator,
                session_id=self.session_id,
                emitter=self.emitter,
            )
            return schema

        if not self.cache.is_current(params) or self.status != SessionStatus.ACTIVE:
            self._emit(EventType.SCHEMA_DISCARDED, {"params": params.to_query()})
            return self._schema
        if schema is self._schema:
            return schema

        self._schema = schema
        self._state.rebind(schema)
        self._navigator.rebind(schema, self._state)
        return schema

    def set_value(self, field_id: str, value: Any) -> None:
        self._require_active()
        self._state.set(field_id, value)
        self._emit(EventType.FIELD_UPDATED, {"fieldId": field_id})

    def get_value(self, field_id: str) -> Any:
        if self._state is None:
            raise FormStepsError("No form state: the session is not active")
        return self._state[field_id]

    def clear_value(self, field_id: str) -> None:
        self._require_active()
        self._state.clear(field_id)
        self._emit(EventType.FIELD_UPDATED, {"fieldId": field_id, "cleared": True})

    def next(self) -> SectionValidationResult:
        return self._require_navigator(NavigationAction.NEXT).next()

    def previous(self) -> None:
        self._require_navigator(NavigationAction.PREVIOUS).previous()

    def jump_to(self, index: int) -> None:
        self._require_navigator(NavigationAction.JUMP).jump_to(index)

    async def submit(self) -> SubmissionResult:
        """Submit from the last section.

        On success the form state is discarded and the session is SUBMITTED.

        Raises:
            SubmissionError: If delivery fails; the session stays on the last
                section with its values intact
        """
        result = await self._require_navigator(NavigationAction.SUBMIT).submit()
        self._last_result = result
        if result.ok:
            self._state = None
        return result

    def end(self) -> None:
        """Abandon the session, discarding its values."""
        if self._ended:
            return
        if self._navigator is not None:
            self._navigator.end()
        self._state = None
        self._ended = True
        self._emit(EventType.SESSION_ENDED)

    def progress_steps(self) -> List[ProgressStep]:
        return self._navigator.progress_steps() if self._navigator else []

    def render(self) -> SectionView:
        """Build the render model of the current section."""
        navigator = self._require_navigator(None)
        if self._state is None:
            raise FormStepsError("No form state: the session is not active")
        section = navigator.current_section
        errors = navigator.current_errors
        return SectionView(
            index=navigator.index,
            title=section.title,
            description=section.description,
            fields=[self._field_view(f, errors.get(f.field_id)) for f in section.fields],
            is_first=navigator.is_first,
            is_last=navigator.is_last,
            progress=navigator.progress,
        )

    def _field_view(self, f: Field, error: Optional[FieldError]) -> FieldView:
        value = self._state[f.field_id]
        options: List[OptionView] = []
        if isinstance(f, ChoiceField):
            options = [
                OptionView(
                    value=o.value,
                    label=o.label,
                    test_id=o.test_id(f.field_id),
                    selected=o.value == value,
                )
                for o in f.options
            ]
        return FieldView(
            field_id=f.field_id,
            type=f.field_type.value,
            label=f.label,
            test_id=f.test_id,
            required=f.required,
            value=value,
            error=error.message if error else None,
            placeholder=f.placeholder,
            options=options,
        )

    async def _load(self, params: SchemaParams) -> FormSchema:
        fetches_before = self.loader.fetch_count
        try:
            schema = await self.loader.load(params)
        except LoadError as exc:
            self._emit(EventType.SCHEMA_LOAD_FAILED, exc.to_dict())
            raise
        self._emit(
            EventType.SCHEMA_LOADED,
            {
                "params": params.to_query(),
                "sections": schema.section_count,
                "fields": schema.field_count,
                "fetched": self.loader.fetch_count > fetches_before,
            },
        )
        return schema

    def _require_navigator(self, action: Optional[NavigationAction]) -> SectionNavigator:
        if self._navigator is None:
            raise InvalidNavigationError(
                action=action or NavigationAction.JUMP,
                status=self.status,
                index=None,
                message="The form schema has not been loaded yet",
            )
        return self._navigator

    def _require_active(self) -> None:
        if self.status != SessionStatus.ACTIVE:
            raise FormStepsError(f"Cannot edit a '{self.status.value}' session")

    def _emit(self, event_type: EventType, payload: Optional[Dict[str, Any]] = None) -> None:
        self.emitter.emit(new_event(event_type, self.session_id, self.index, payload))


def create_session(
    settings: Optional[FormStepsSettings] = None,
    client: Optional[httpx.AsyncClient] = None,
    emitter: Optional[EventEmitter] = None,
    validator: Optional[FieldValidator] = None,
) -> FormSession:
    """Build a FormSession wired to the form API described by ``settings``.

    Args:
        settings: Engine settings; get_settings() when omitted
        client: HTTP client to use; one is created (and owned by the
            session) from the settings when omitted
        emitter: Event emitter for session events
        validator: Field validator; one is built from the settings when omitted
    """
    settings = settings or get_settings()
    configure_logging(settings.log_level)
    owned_client = None
    if client is None:
        client = owned_client = httpx.AsyncClient(
            base_url=settings.api_base_url,
            timeout=settings.request_timeout_seconds,
        )
    validator = validator or FieldValidator(minimum_age_years=settings.minimum_age_years)
    loader = SchemaLoader(client, SchemaCache(), path=settings.schema_path)
    coordinator = SubmissionCoordinator(
        HttpSubmissionTransport(client, path=settings.submit_path),
        validator=validator,
    )
    return FormSession(
        loader,
        coordinator=coordinator,
        validator=validator,
        emitter=emitter,
        http_client=owned_client,
    )


__all__ = [
    "FormSession",
    "SectionView",
    "FieldView",
    "OptionView",
    "create_session",
]
