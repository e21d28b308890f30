from __future__ import annotations

from typing import Any, Sequence

_RETRYABLE_STATUSES = {408, 409, 429}


class RecipeSearchError(Exception):
    """Base class for pipeline and query-path failures."""


class SourceReadError(RecipeSearchError):
    """The recipe source file could not be opened or a row is malformed."""


class EmbeddingServiceError(RecipeSearchError):
    """The upstream embedding service rejected or failed a request."""

    def __init__(
        self,
        message: str,
        *,
        status: int | None = None,
        payload: Any = None,
        retryable: bool | None = None,
    ) -> None:
        super().__init__(message)
        self.status = status
        self.payload = payload
        self._retryable = retryable

    @property
    def retryable(self) -> bool:
        if self._retryable is not None:
            return self._retryable
        # no status means transport failure or timeout
        if self.status is None:
            return True
        return self.status in _RETRYABLE_STATUSES or self.status >= 500


class IndexProvisioningError(RecipeSearchError):
    """Listing or creating the vector index failed."""


class IndexWriteError(RecipeSearchError):
    """An upsert was rejected; ``entries`` holds the batch for retry or reporting."""

    def __init__(self, message: str, *, entries: Sequence[Any] = ()) -> None:
        super().__init__(message)
        self.entries = tuple(entries)

    @property
    def retryable(self) -> bool:
        return True


class IndexQueryError(RecipeSearchError):
    """A nearest-neighbour query against the index failed."""


class InvalidQueryError(RecipeSearchError):
    """The user query is empty or whitespace."""
