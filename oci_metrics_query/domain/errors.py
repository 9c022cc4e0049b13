"""Exceptions raised by the query resolvers."""

from __future__ import annotations


class ParseError(ValueError):
    """Template variable query string matches none of the known functions."""

    def __init__(self, query: str) -> None:
        super().__init__(f"Unable to parse templating string: {query!r}")
        self.query = query


class MetadataLookupError(RuntimeError):
    """A named metadata lookup failed against the backend.

    The message names the lookup (``"Unable to get regions: ..."``) and the
    original exception is chained as ``__cause__``.
    """

    def __init__(self, kind: str, cause: BaseException) -> None:
        super().__init__(f"Unable to get {kind}: {cause}")
        self.kind = kind


class BackendError(RuntimeError):
    """Backend answered with a body that cannot be interpreted."""
