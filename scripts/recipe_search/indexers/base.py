from __future__ import annotations

from abc import ABC, abstractmethod
from typing import Iterable, Iterator, List, Sequence, TypeVar

from ..models import IndexEntry, RetrievalResult

T = TypeVar("T")


class BaseIndexGateway(ABC):
    """Narrow contract over an external vector index."""

    @abstractmethod
    def ensure_index(self, name: str, dimension: int, indexed_fields: Sequence[str]) -> bool:
        """Create ``name`` if it does not exist. Returns True when it was created."""

    @abstractmethod
    def upsert(self, index_name: str, entries: Sequence[IndexEntry]) -> None:
        ...

    @abstractmethod
    def query(
        self,
        index_name: str,
        vector: Sequence[float],
        *,
        top_k: int = 5,
        include_metadata: bool = True,
    ) -> Sequence[RetrievalResult]:
        ...


def collapse_matches(results: Iterable[RetrievalResult], top_k: int) -> List[RetrievalResult]:
    """Keep one match per recipe, the one with the highest score."""
    fused: dict[str, RetrievalResult] = {}
    for result in results:
        existing = fused.get(result.recipe_id)
        if existing is None or result.score > existing.score:
            fused[result.recipe_id] = result
    return sorted(fused.values(), key=lambda item: item.score, reverse=True)[:top_k]


def iter_batches(items: Iterable[T], batch_size: int) -> Iterator[List[T]]:
    if batch_size <= 0:
        raise ValueError(f"batch_size must be positive, got {batch_size}")
    buffer: list[T] = []
    for item in items:
        buffer.append(item)
        if len(buffer) >= batch_size:
            yield buffer
            buffer = []
    if buffer:
        yield buffer


def partition(items: Sequence[T], batch_size: int) -> List[List[T]]:
    """Split ``items`` into consecutive chunks of at most ``batch_size``."""
    if batch_size <= 0:
        raise ValueError(f"batch_size must be positive, got {batch_size}")
    return [list(items[start:start + batch_size]) for start in range(0, len(items), batch_size)]
