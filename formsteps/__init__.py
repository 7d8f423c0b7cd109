"""formsteps: a dynamic multi-section form engine.

formsteps drives registration-style forms whose shape comes from a remote
schema:
- Schema loading with a session-owned cache that fetches once per shape
- Per-field validation keyed by field type and explicit semantic roles
- Section navigation that gates Next/Submit on validation and never loses
  entered values
- A final full-form sweep before handing values to the submit transport
- Audit event stream for every load, edit, transition and submission

Basic usage:
    >>> import asyncio
    >>> from formsteps import create_session
    >>> async def main():
    ...     async with create_session() as session:
    ...         await session.start()
    ...         print(session.render().title)
    >>> asyncio.run(main())  # doctest: +SKIP
"""

__version__ = "0.1.0"
__author__ = "formsteps contributors"

# Version info
VERSION = (0, 1, 0)

# Core exports
from formsteps.session import FormSession, create_session

# Package metadata
__all__ = [
    "__version__",
    "VERSION",
    "FormSession",
    "create_session",
]
