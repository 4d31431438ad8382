"""Exceptions raised by graph queries.

Every :class:`QueryError` is reportable: it aborts the current query only.
:class:`SnapshotError` is raised at startup when no graphs can be loaded.
"""

from __future__ import annotations


class QueryError(ValueError):
    """Base class for failures of a single query."""


class NotFoundError(QueryError, LookupError):
    """A locator, content key or symbol resolved to nothing."""


class PreconditionError(QueryError):
    """A resolved entity has the wrong variant or lacks a required edge."""


class MalformedInputError(QueryError):
    """Input that cannot be parsed (mangled symbol, regular expression)."""


class SnapshotError(RuntimeError):
    """The persisted graphs are missing or unreadable."""
