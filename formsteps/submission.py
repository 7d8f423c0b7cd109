"""Final submission of a completed form.

SubmissionCoordinator re-validates every field in every section before
handing the values to a SubmissionTransport. The sweep runs even though the
navigator already gated each section, because jump-to-section lets a user
reach the last section with earlier sections never validated.

Validation failures come back as a SubmissionResult with ``ok=False``;
transport failures raise SubmissionError. Either way the FormState is left
untouched so the user can correct and retry.
"""

import logging
import uuid
from dataclasses import dataclass, field
from datetime import datetime, timezone
from typing import Any, Dict, List, Optional

import httpx
from typing_extensions import Protocol

from formsteps.errors import FieldError, SubmissionError
from formsteps.schema import FormSchema
from formsteps.state import FormState
from formsteps.validation import FieldValidator

logger = logging.getLogger(__name__)

DEFAULT_SUBMIT_PATH = "/api/form/submit"


class SubmissionTransport(Protocol):
    """Delivers a submission payload and returns the receiver's response body."""

    async def send(self, payload: Dict[str, Any]) -> Dict[str, Any]:
        ...


@dataclass(frozen=True)
class SubmissionAck:
    """Acknowledgement of an accepted submission.

    Attributes:
        submission_id: Id assigned by the receiver, or generated locally when
            the response carries none
        received_at: UTC time the acknowledgement was received
        response: Raw response body
    """
    submission_id: str
    received_at: datetime
    response: Dict[str, Any] = field(default_factory=dict)

    def to_dict(self) -> Dict[str, Any]:
        return {
            "submissionId": self.submission_id,
            "receivedAt": self.received_at.isoformat(),
            "response": self.response,
        }


@dataclass(frozen=True)
class SubmissionResult:
    """Outcome of a submit attempt.

    Exactly one of ``ack`` (when ok) or a non-empty ``errors`` (when not ok)
    is populated.
    """
    ok: bool
    ack: Optional[SubmissionAck] = None
    errors: List[FieldError] = field(default_factory=list)

    @property
    def errors_by_field(self) -> Dict[str, FieldError]:
        return {e.field_id: e for e in self.errors}

    def to_dict(self) -> Dict[str, Any]:
        result: Dict[str, Any] = {"ok": self.ok}
        if self.ack is not None:
            result["ack"] = self.ack.to_dict()
        if self.errors:
            result["errors"] = [e.to_dict() for e in self.errors]
        return result


class HttpSubmissionTransport:
    """POSTs submissions as JSON through an httpx.AsyncClient."""

    def __init__(
        self,
        client: httpx.AsyncClient,
        path: str = DEFAULT_SUBMIT_PATH,
        timeout: Optional[float] = None,
    ):
        self._client = client
        self.path = path
        self._timeout = httpx.USE_CLIENT_DEFAULT if timeout is None else timeout

    async def send(self, payload: Dict[str, Any]) -> Dict[str, Any]:
        """POST the payload.

        Raises:
            SubmissionError: On transport failure, timeout, or a non-2xx status
        """
        try:
            response = await self._client.post(self.path, json=payload, timeout=self._timeout)
            response.raise_for_status()
        except httpx.HTTPStatusError as exc:
            raise SubmissionError(
                f"Submission was rejected with HTTP {exc.response.status_code}",
                status_code=exc.response.status_code,
            ) from exc
        except httpx.HTTPError as exc:
            raise SubmissionError(f"Could not deliver submission: {exc}") from exc

        if not response.content:
            return {}
        try:
            body = response.json()
        except ValueError:
            logger.warning("Submission response from %s is not JSON; ignoring body", self.path)
            return {}
        return body if isinstance(body, dict) else {"body": body}


class SubmissionCoordinator:
    """Final validation sweep and hand-off to the submit transport.

    Examples:
        >>> class NullTransport:
        ...     async def send(self, payload):
        ...         return {"submissionId": "sub_1"}
        >>> coordinator = SubmissionCoordinator(NullTransport())
    """

    def __init__(
        self,
        transport: SubmissionTransport,
        validator: Optional[FieldValidator] = None,
    ):
        self.transport = transport
        self.validator = validator or FieldValidator()

    async def submit(self, state: FormState, schema: FormSchema) -> SubmissionResult:
        """Validate the whole form and deliver it.

        Args:
            state: Current field values
            schema: The schema the values belong to

        Returns:
            SubmissionResult with an ack, or with every failing field

        Raises:
            SubmissionError: If the transport fails
        """
        sweep = self.validator.validate_form(schema, state)
        if not sweep.is_valid:
            logger.info(
                "Submission blocked by %d invalid field(s): %s",
                len(sweep.errors), ", ".join(e.field_id for e in sweep.errors),
            )
            return SubmissionResult(ok=False, errors=sweep.errors)

        payload = build_payload(state, schema)
        logger.info("Submitting form with %d section(s)", schema.section_count)
        response = await self.transport.send(payload)

        submission_id = (
            response.get("submissionId")
            or response.get("id")
            or f"sub_{uuid.uuid4().hex[:16]}"
        )
        ack = SubmissionAck(
            submission_id=str(submission_id),
            received_at=datetime.now(timezone.utc),
            response=response,
        )
        return SubmissionResult(ok=True, ack=ack)


def build_payload(state: FormState, schema: FormSchema) -> Dict[str, Any]:
    """Group values by section title, in display order."""
    payload: Dict[str, Any] = {
        "sections": [
            {"title": section.title, "values": state.values_for(section)}
            for section in schema.sections
        ],
    }
    query = schema.params.to_query()
    if query:
        payload["params"] = query
    return payload


__all__ = [
    "SubmissionCoordinator",
    "SubmissionTransport",
    "HttpSubmissionTransport",
    "SubmissionAck",
    "SubmissionResult",
    "build_payload",
    "DEFAULT_SUBMIT_PATH",
]
