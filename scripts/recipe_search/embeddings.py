from __future__ import annotations

import asyncio
import logging
from typing import List, Sequence

import openai
from langchain_core.embeddings import Embeddings
from langchain_openai import OpenAIEmbeddings

from .errors import EmbeddingServiceError

logger = logging.getLogger(__name__)

DEFAULT_EMBED_MODEL = "text-embedding-ada-002"
# OpenAI accepts at most 2048 inputs per embeddings request.
MAX_EMBEDDING_BATCH = 2048
SAMPLE_TEXTS = (
    "Sample document text goes here",
    "there will be several phrases in each batch",
)


def build_embeddings(model_name: str, api_key: str, *, max_retries: int = 0) -> OpenAIEmbeddings:
    # the orchestrator owns retries
    return OpenAIEmbeddings(model=model_name, api_key=api_key, max_retries=max_retries)


class EmbeddingClient:
    """Turn batches of text into vectors through a LangChain embeddings provider."""

    def __init__(
        self,
        embeddings: Embeddings,
        *,
        max_batch_size: int = MAX_EMBEDDING_BATCH,
        timeout: float | None = None,
    ) -> None:
        self._embeddings = embeddings
        self.max_batch_size = max_batch_size
        self.timeout = timeout

    async def embed(self, texts: Sequence[str]) -> List[List[float]]:
        """Embed ``texts`` with a single upstream call, preserving order."""
        if not texts:
            raise ValueError("embed requires at least one text")
        if len(texts) > self.max_batch_size:
            raise ValueError(f"embed accepts at most {self.max_batch_size} texts, got {len(texts)}")

        try:
            vectors = await asyncio.wait_for(
                self._embeddings.aembed_documents(list(texts)),
                timeout=self.timeout,
            )
        except asyncio.TimeoutError as exc:
            raise EmbeddingServiceError(f"Embedding request timed out after {self.timeout}s") from exc
        except openai.APIStatusError as exc:
            raise EmbeddingServiceError(
                f"Embedding service returned {exc.status_code}: {exc.message}",
                status=exc.status_code,
                payload=exc.body,
            ) from exc
        except openai.OpenAIError as exc:
            raise EmbeddingServiceError(
                f"Embedding request failed: {exc}",
                payload=getattr(exc, "body", None),
            ) from exc

        if len(vectors) != len(texts):
            raise EmbeddingServiceError(
                f"Embedding service returned {len(vectors)} vectors for {len(texts)} inputs"
            )
        return [list(vector) for vector in vectors]

    async def sample_dimension(self) -> int:
        vectors = await self.embed(SAMPLE_TEXTS)
        dimension = len(vectors[0])
        logger.info("Embedding dimension resolved to %d", dimension)
        return dimension
