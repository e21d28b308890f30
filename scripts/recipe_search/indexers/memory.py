from __future__ import annotations

import math
from typing import Dict, Sequence, Tuple

from ..errors import IndexProvisioningError, IndexQueryError, IndexWriteError
from ..models import IndexEntry, RetrievalResult
from .base import BaseIndexGateway, collapse_matches


def _cosine(left: Sequence[float], right: Sequence[float]) -> float:
    dot = sum(a * b for a, b in zip(left, right))
    norm = math.sqrt(sum(a * a for a in left)) * math.sqrt(sum(b * b for b in right))
    return dot / norm if norm else 0.0


class InMemoryIndexGateway(BaseIndexGateway):
    """Process-local index with brute-force cosine search.

    Entries are keyed by composite vector id, so re-upserting a recipe
    overwrites its slots rather than duplicating them.
    """

    def __init__(self) -> None:
        self._dimensions: Dict[str, int] = {}
        self._indexed_fields: Dict[str, Tuple[str, ...]] = {}
        self._vectors: Dict[str, Dict[str, IndexEntry]] = {}
        self.create_calls = 0
        self.upsert_calls = 0

    def ensure_index(self, name: str, dimension: int, indexed_fields: Sequence[str]) -> bool:
        if name in self._dimensions:
            return False
        if dimension <= 0:
            raise IndexProvisioningError(f"Index '{name}' needs a positive dimension, got {dimension}")
        self.create_calls += 1
        self._dimensions[name] = dimension
        self._indexed_fields[name] = tuple(indexed_fields)
        self._vectors[name] = {}
        return True

    def upsert(self, index_name: str, entries: Sequence[IndexEntry]) -> None:
        if not entries:
            return
        store = self._vectors.get(index_name)
        if store is None:
            raise IndexWriteError(f"Index '{index_name}' does not exist", entries=entries)
        dimension = self._dimensions[index_name]
        for entry in entries:
            if len(entry.values) != dimension:
                raise IndexWriteError(
                    f"Vector {entry.vector_id} has dimension {len(entry.values)}, index expects {dimension}",
                    entries=entries,
                )
        self.upsert_calls += 1
        for entry in entries:
            store[entry.vector_id] = entry

    def query(
        self,
        index_name: str,
        vector: Sequence[float],
        *,
        top_k: int = 5,
        include_metadata: bool = True,
    ) -> Sequence[RetrievalResult]:
        store = self._vectors.get(index_name)
        if store is None:
            raise IndexQueryError(f"Index '{index_name}' does not exist")

        ranked = sorted(
            ((_cosine(vector, entry.values), entry) for entry in store.values()),
            key=lambda item: item[0],
            reverse=True,
        )
        results = [
            RetrievalResult(
                recipe_id=entry.id,
                score=score,
                metadata=entry.payload() if include_metadata else {},
            )
            for score, entry in ranked
        ]
        return collapse_matches(results, top_k)

    # Introspection ------------------------------------------------------
    def indexes(self) -> Sequence[str]:
        return list(self._dimensions)

    def indexed_fields(self, name: str) -> Tuple[str, ...]:
        return self._indexed_fields[name]

    def entries(self, index_name: str) -> Sequence[IndexEntry]:
        return list(self._vectors.get(index_name, {}).values())
