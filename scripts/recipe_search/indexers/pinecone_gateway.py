from __future__ import annotations

import logging
from typing import Sequence

from pinecone import Pinecone, PodSpec, ServerlessSpec

from ..errors import IndexProvisioningError, IndexQueryError, IndexWriteError
from ..models import IndexEntry, RetrievalResult, recipe_id_from_vector_id
from .base import BaseIndexGateway, collapse_matches

logger = logging.getLogger(__name__)

# Pinecone rejects queries with top_k above this.
MAX_QUERY_TOP_K = 10000


class PineconeIndexGateway(BaseIndexGateway):
    """Index gateway backed by the Pinecone client.

    With ``pod_environment`` set, indexes are created as pod indexes and only
    the requested metadata fields are indexed for filtering; otherwise a
    serverless index is created in ``cloud``/``region``.

    Every recipe is stored as several fragment vectors, so queries ask for
    ``top_k * overfetch`` vectors and collapse them to one match per recipe.
    """

    def __init__(
        self,
        *,
        pinecone_client: Pinecone,
        namespace: str = "",
        pod_environment: str | None = None,
        cloud: str = "aws",
        region: str = "us-east-1",
        metric: str = "cosine",
        overfetch: int = 20,
    ) -> None:
        self._client = pinecone_client
        self._namespace = namespace
        self._pod_environment = pod_environment
        self._cloud = cloud
        self._region = region
        self._metric = metric
        self._overfetch = max(1, overfetch)

    def ensure_index(self, name: str, dimension: int, indexed_fields: Sequence[str]) -> bool:
        try:
            indexes = {item["name"] for item in self._client.list_indexes()}
            if name in indexes:
                logger.info("Using existing index '%s'", name)
                return False
            logger.info("Creating index '%s' with dimension %d", name, dimension)
            self._client.create_index(
                name=name,
                dimension=dimension,
                metric=self._metric,
                spec=self._build_spec(indexed_fields),
            )
        except Exception as exc:
            raise IndexProvisioningError(f"Could not provision index '{name}': {exc}") from exc
        return True

    def upsert(self, index_name: str, entries: Sequence[IndexEntry]) -> None:
        if not entries:
            return
        vectors = [
            {"id": entry.vector_id, "values": list(entry.values), "metadata": entry.payload()}
            for entry in entries
        ]
        try:
            self._client.Index(index_name).upsert(vectors=vectors, namespace=self._namespace)
        except Exception as exc:
            raise IndexWriteError(
                f"Upsert of {len(entries)} vectors into '{index_name}' failed: {exc}",
                entries=entries,
            ) from exc

    def query(
        self,
        index_name: str,
        vector: Sequence[float],
        *,
        top_k: int = 5,
        include_metadata: bool = True,
    ) -> Sequence[RetrievalResult]:
        try:
            response = self._client.Index(index_name).query(
                vector=list(vector),
                top_k=min(top_k * self._overfetch, MAX_QUERY_TOP_K),
                include_metadata=include_metadata,
                namespace=self._namespace,
            )
        except Exception as exc:
            raise IndexQueryError(f"Query against '{index_name}' failed: {exc}") from exc

        retrievals: list[RetrievalResult] = []
        for match in response.matches or []:
            metadata = dict(match.metadata or {})
            recipe_id = metadata.get("recipe_id") or recipe_id_from_vector_id(match.id)
            retrievals.append(
                RetrievalResult(
                    recipe_id=str(recipe_id),
                    score=float(match.score),
                    metadata=metadata,
                )
            )
        return collapse_matches(retrievals, top_k)

    def _build_spec(self, indexed_fields: Sequence[str]):
        if self._pod_environment:
            return PodSpec(
                environment=self._pod_environment,
                metadata_config={"indexed": list(indexed_fields)},
            )
        return ServerlessSpec(cloud=self._cloud, region=self._region)
