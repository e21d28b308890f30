"""HTTP adapter for recipe search.

``POST /api/search`` with ``{"query": "..."}`` embeds the query and returns
the nearest recipes from the index. The searcher is built on first use so a
missing credential surfaces as a 500 on the request rather than at startup.
"""
from __future__ import annotations

import logging
from typing import Any, Callable, Dict, List, Optional

from fastapi import FastAPI
from fastapi.responses import JSONResponse
from pinecone import Pinecone
from pydantic import BaseModel

from .config import Settings
from .embeddings import EmbeddingClient, build_embeddings
from .errors import EmbeddingServiceError, InvalidQueryError, RecipeSearchError
from .indexers.pinecone_gateway import PineconeIndexGateway
from .retriever import RecipeSearcher

logger = logging.getLogger(__name__)

GENERIC_ERROR = "An error occurred during your request."
MISSING_KEY_ERROR = "OpenAI API key not configured, please set OPENAI_API_KEY"


class SearchRequest(BaseModel):
    query: Optional[str] = ""


class SearchMatch(BaseModel):
    id: str
    score: float
    metadata: Optional[Dict[str, Any]] = None


class SearchResponse(BaseModel):
    matches: List[SearchMatch]


def build_searcher(settings: Settings) -> RecipeSearcher:
    embeddings = build_embeddings(settings.embedding_model, settings.openai_api_key)
    gateway = PineconeIndexGateway(
        pinecone_client=Pinecone(api_key=settings.pinecone_api_key),
        namespace=settings.namespace,
        pod_environment=settings.pinecone_environment,
        cloud=settings.pinecone_cloud,
        region=settings.pinecone_region,
    )
    return RecipeSearcher(
        embedder=EmbeddingClient(embeddings, timeout=settings.call_timeout),
        gateway=gateway,
        index_name=settings.index_name,
        top_k=settings.top_k,
        call_timeout=settings.call_timeout,
    )


def _error(status_code: int, message: str) -> JSONResponse:
    return JSONResponse(status_code=status_code, content={"error": {"message": message}})


def create_app(
    settings: Settings,
    *,
    searcher_factory: Callable[[Settings], RecipeSearcher] = build_searcher,
) -> FastAPI:
    app = FastAPI(title="Recipe Search API")
    app.state.searcher = None

    def get_searcher() -> RecipeSearcher:
        if app.state.searcher is None:
            try:
                app.state.searcher = searcher_factory(settings)
            except Exception as exc:
                raise RecipeSearchError(f"Could not initialise search clients: {exc}") from exc
        return app.state.searcher

    @app.get("/ping")
    async def ping():
        return {"message": "pong"}

    @app.post("/api/search", response_model=SearchResponse)
    async def search(req: SearchRequest):
        if not settings.openai_api_key:
            return _error(500, MISSING_KEY_ERROR)

        try:
            matches = await get_searcher().search(req.query or "")
        except InvalidQueryError as exc:
            return _error(400, str(exc))
        except EmbeddingServiceError as exc:
            logger.error("Embedding service error %s: %s", exc.status, exc.payload)
            if settings.forward_upstream_errors and exc.status:
                return JSONResponse(status_code=exc.status, content=exc.payload or {"error": {"message": str(exc)}})
            return _error(500, GENERIC_ERROR)
        except RecipeSearchError as exc:
            logger.exception("Search failed: %s", exc)
            return _error(500, GENERIC_ERROR)

        return SearchResponse(
            matches=[
                SearchMatch(id=match.recipe_id, score=match.score, metadata=match.metadata)
                for match in matches
            ]
        )

    return app
