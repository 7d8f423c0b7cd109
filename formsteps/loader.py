"""Schema retrieval over HTTP.

SchemaLoader fetches form schemas from ``GET /api/form`` with optional
``sectionCount`` / ``fieldCount`` query parameters, consulting its
SchemaCache first. Concurrent loads of the same key share one request;
loads of a key that has been superseded while in flight are returned to
their caller but never committed to the cache.

Usage:
    >>> import httpx
    >>> client = httpx.AsyncClient(base_url="http://localhost:3000")
    >>> loader = SchemaLoader(client)
    >>> loader.fetch_count
    0
"""

import asyncio
import logging
from typing import Optional

import httpx

from formsteps.cache import SchemaCache
from formsteps.errors import LoadError
from formsteps.schema import FormSchema, SchemaDocumentError, SchemaParams

logger = logging.getLogger(__name__)

DEFAULT_SCHEMA_PATH = "/api/form"


class SchemaLoader:
    """Loads form schemas through an httpx.AsyncClient and a SchemaCache.

    Attributes:
        cache: The SchemaCache consulted before every fetch
        path: Request path of the schema endpoint
    """

    def __init__(
        self,
        client: httpx.AsyncClient,
        cache: Optional[SchemaCache] = None,
        path: str = DEFAULT_SCHEMA_PATH,
        timeout: Optional[float] = None,
    ):
        """Initialize the loader.

        Args:
            client: HTTP client, typically created with the API base URL
            cache: Cache to consult and fill; a fresh one when omitted
            path: Schema endpoint path
            timeout: Per-request timeout in seconds; the client's own
                timeout when omitted
        """
        self._client = client
        self.cache = cache if cache is not None else SchemaCache()
        self.path = path
        self._timeout = (
            httpx.USE_CLIENT_DEFAULT if timeout is None else timeout
        )

    @property
    def fetch_count(self) -> int:
        """Number of network fetches performed so far (cache misses)."""
        return self.cache.fetch_count

    async def load(self, params: Optional[SchemaParams] = None) -> FormSchema:
        """Return the schema for ``params``, fetching only on a cache miss.

        Args:
            params: Requested shape; the default shape when omitted

        Returns:
            The FormSchema for ``params``

        Raises:
            LoadError: If the fetch fails, times out, or returns an invalid
                document. The cache is left unchanged.
        """
        params = params or SchemaParams()
        self.cache.mark_requested(params)

        cached = self.cache.get(params)
        if cached is not None:
            self.cache.record_hit(params)
            return cached

        pending = self.cache.in_flight(params)
        if pending is None:
            pending = asyncio.ensure_future(self._fetch_and_store(params))
            self.cache.begin_fetch(params, pending)
        else:
            logger.debug("Joining in-flight schema fetch for %s", params)

        # cancelling one caller never cancels the shared fetch
        return await asyncio.shield(pending)

    async def _fetch_and_store(self, params: SchemaParams) -> FormSchema:
        logger.info("Fetching form schema %s %s", self.path, params.to_query() or "(default)")
        try:
            schema = await self._fetch(params)
        except LoadError as exc:
            logger.warning("Form schema fetch failed for %s: %s", params, exc)
            raise
        finally:
            self.cache.end_fetch(params)

        self.cache.store(params, schema)
        return schema

    async def _fetch(self, params: SchemaParams) -> FormSchema:
        query = params.to_query()
        try:
            response = await self._client.get(self.path, params=query, timeout=self._timeout)
            response.raise_for_status()
        except httpx.TimeoutException as exc:
            raise LoadError(
                f"Timed out fetching form schema from {self.path}",
                params=query,
                timed_out=True,
            ) from exc
        except httpx.HTTPStatusError as exc:
            raise LoadError(
                f"Form schema request returned HTTP {exc.response.status_code}",
                params=query,
                status_code=exc.response.status_code,
            ) from exc
        except httpx.HTTPError as exc:
            raise LoadError(
                f"Could not fetch form schema: {exc}",
                params=query,
            ) from exc

        try:
            payload = response.json()
        except ValueError as exc:
            raise LoadError(
                "Form schema response is not valid JSON",
                params=query,
                status_code=response.status_code,
            ) from exc

        try:
            return FormSchema.from_payload(payload, params)
        except SchemaDocumentError as exc:
            raise LoadError(str(exc), params=query, status_code=response.status_code) from exc


__all__ = [
    "SchemaLoader",
    "DEFAULT_SCHEMA_PATH",
]
