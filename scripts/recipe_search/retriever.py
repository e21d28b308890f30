from __future__ import annotations

import asyncio
import logging
from typing import Sequence

from .embeddings import EmbeddingClient
from .errors import IndexQueryError, InvalidQueryError
from .indexers.base import BaseIndexGateway
from .models import RetrievalResult

logger = logging.getLogger(__name__)


class RecipeSearcher:
    """Query-time consumer: embed one string and ask the index for neighbours."""

    def __init__(
        self,
        *,
        embedder: EmbeddingClient,
        gateway: BaseIndexGateway,
        index_name: str,
        top_k: int = 5,
        call_timeout: float | None = None,
    ) -> None:
        self.embedder = embedder
        self.gateway = gateway
        self.index_name = index_name
        self.top_k = top_k
        self.call_timeout = call_timeout

    async def search(self, query: str, *, top_k: int | None = None) -> Sequence[RetrievalResult]:
        text = (query or "").strip()
        if not text:
            raise InvalidQueryError("Please enter a valid query")

        vectors = await self.embedder.embed([text])
        try:
            matches = await asyncio.wait_for(
                asyncio.to_thread(
                    self.gateway.query,
                    self.index_name,
                    vectors[0],
                    top_k=top_k or self.top_k,
                    include_metadata=True,
                ),
                timeout=self.call_timeout,
            )
        except asyncio.TimeoutError as exc:
            raise IndexQueryError(f"Query against '{self.index_name}' timed out after {self.call_timeout}s") from exc
        logger.info("Query %r returned %d matches", text, len(matches))
        return matches
