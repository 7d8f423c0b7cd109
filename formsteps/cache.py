"""Schema cache owned by a form session.

SchemaCache remembers the schemas a session has fetched, keyed by the
SchemaParams they were fetched with, and decides whether a load needs the
network. It holds two slots:

- the default slot, filled by the default-shape fetch on initial load and
  only ever replaced by another default-shape fetch;
- the shaped slot, holding the most recent non-default shape and replaced by
  every fetch of a different non-default shape.

It also tracks in-flight fetches (one per key) and the key the UI requested
most recently. A fetch result is committed only while its key is still the
latest request; a response for a superseded key is discarded so it can never
expose a shape that disagrees with what is currently rendered.

``fetch_count`` increments exactly once per network fetch, i.e. once per
cache miss, and never on a hit or when joining an in-flight fetch.
"""

import asyncio
import logging
from dataclasses import dataclass
from datetime import datetime, timezone
from typing import Dict, Optional

from formsteps.schema import FormSchema, SchemaParams

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class CacheEntry:
    """A committed schema and when it was fetched."""
    params: SchemaParams
    schema: FormSchema
    fetched_at: datetime


class SchemaCache:
    """Two-slot schema cache with in-flight tracking and staleness rules.

    Examples:
        >>> cache = SchemaCache()
        >>> cache.get(SchemaParams()) is None
        True
        >>> cache.fetch_count
        0
    """

    def __init__(self):
        self._default: Optional[CacheEntry] = None
        self._shaped: Optional[CacheEntry] = None
        self._in_flight: Dict[SchemaParams, "asyncio.Future[FormSchema]"] = {}
        self._latest: Optional[SchemaParams] = None
        self.fetch_count = 0
        self.hit_count = 0
        self.discard_count = 0

    @property
    def latest_params(self) -> Optional[SchemaParams]:
        """Params of the most recent load request, if any."""
        return self._latest

    def get(self, params: SchemaParams) -> Optional[FormSchema]:
        """Return the committed schema for an equal key, if one is held."""
        entry = self._default if params.is_default else self._shaped
        if entry is not None and entry.params == params:
            return entry.schema
        return None

    def mark_requested(self, params: SchemaParams) -> None:
        """Record ``params`` as the latest request, superseding earlier ones."""
        if self._latest is not None and self._latest != params:
            logger.debug("Schema request %s supersedes %s", params, self._latest)
        self._latest = params

    def is_current(self, params: SchemaParams) -> bool:
        return self._latest == params

    def record_hit(self, params: SchemaParams) -> None:
        self.hit_count += 1
        logger.debug("Schema cache hit for %s", params)

    def in_flight(self, params: SchemaParams) -> "Optional[asyncio.Future[FormSchema]]":
        return self._in_flight.get(params)

    def begin_fetch(self, params: SchemaParams, future: "asyncio.Future[FormSchema]") -> None:
        """Register an outgoing fetch for ``params`` and count it.

        Raises:
            RuntimeError: If a fetch for the same key is already in flight
        """
        if params in self._in_flight:
            raise RuntimeError(f"A schema fetch for {params} is already in flight")
        self._in_flight[params] = future
        self.fetch_count += 1

    def end_fetch(self, params: SchemaParams) -> None:
        self._in_flight.pop(params, None)

    def store(self, params: SchemaParams, schema: FormSchema) -> bool:
        """Commit a fetched schema unless its request has been superseded.

        Returns:
            True if the schema was committed, False if it was discarded as stale
        """
        if self._latest is not None and self._latest != params:
            self.discard_count += 1
            logger.info(
                "Discarding schema response for %s; latest request is %s",
                params, self._latest,
            )
            return False

        entry = CacheEntry(params=params, schema=schema, fetched_at=datetime.now(timezone.utc))
        if params.is_default:
            self._default = entry
        else:
            self._shaped = entry
        return True

    def clear(self) -> None:
        """Drop both slots. In-flight fetches and counters are left alone."""
        self._default = None
        self._shaped = None


__all__ = [
    "SchemaCache",
    "CacheEntry",
]
