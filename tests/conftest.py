"""Shared fixtures: fake embedding providers, an in-memory index and CSV helpers."""
from __future__ import annotations

import asyncio
import csv
from pathlib import Path
from typing import Callable, Dict, List, Sequence

import httpx
import openai
import pytest
from langchain_core.embeddings import DeterministicFakeEmbedding, Embeddings

from recipe_search.embeddings import EmbeddingClient
from recipe_search.indexers.memory import InMemoryIndexGateway
from recipe_search.models import REQUIRED_COLUMNS

DIMENSION = 8

SOUP_ROW: Dict[str, str] = {
    "id": "1",
    "name": "Soup",
    "minutes": "30",
    "tags": "'easy','quick'",
    "steps": "'boil water','add salt'",
    "ingredients": "'water','salt'",
    "description": "Simple soup",
}


def make_status_error(status: int, body: object = None) -> openai.APIStatusError:
    request = httpx.Request("POST", "https://api.openai.com/v1/embeddings")
    response = httpx.Response(status, request=request)
    return openai.APIStatusError(f"upstream returned {status}", response=response, body=body)


def make_connection_error() -> openai.APIConnectionError:
    request = httpx.Request("POST", "https://api.openai.com/v1/embeddings")
    return openai.APIConnectionError(request=request)


class ScriptedEmbeddings(Embeddings):
    """Deterministic vectors plus hooks for failures, latency and call tracking."""

    def __init__(
        self,
        *,
        size: int = DIMENSION,
        fail_when: Callable[[Sequence[str], int], Exception | None] | None = None,
        delay: float = 0.0,
    ) -> None:
        self._inner = DeterministicFakeEmbedding(size=size)
        self._fail_when = fail_when
        self._delay = delay
        self.calls: List[List[str]] = []
        self.in_flight = 0
        self.max_in_flight = 0

    def embed_documents(self, texts: List[str]) -> List[List[float]]:
        return self._inner.embed_documents(texts)

    def embed_query(self, text: str) -> List[float]:
        return self._inner.embed_query(text)

    async def aembed_documents(self, texts: List[str]) -> List[List[float]]:
        self.calls.append(list(texts))
        self.in_flight += 1
        self.max_in_flight = max(self.max_in_flight, self.in_flight)
        try:
            if self._delay:
                await asyncio.sleep(self._delay)
            if self._fail_when is not None:
                error = self._fail_when(texts, len(self.calls))
                if error is not None:
                    raise error
            return self.embed_documents(texts)
        finally:
            self.in_flight -= 1


def write_recipes(path: Path, rows: Sequence[Dict[str, str]], columns: Sequence[str] = REQUIRED_COLUMNS) -> Path:
    with path.open("w", encoding="utf-8", newline="") as fh:
        writer = csv.DictWriter(fh, fieldnames=list(columns), extrasaction="ignore")
        writer.writeheader()
        for row in rows:
            writer.writerow(row)
    return path


def recipe_row(recipe_id: str, **overrides: str) -> Dict[str, str]:
    row = dict(SOUP_ROW, id=recipe_id, name=f"Recipe {recipe_id}")
    row.update(overrides)
    return row


@pytest.fixture
def fake_embeddings() -> ScriptedEmbeddings:
    return ScriptedEmbeddings()


@pytest.fixture
def embedder(fake_embeddings: ScriptedEmbeddings) -> EmbeddingClient:
    return EmbeddingClient(fake_embeddings, timeout=5)


@pytest.fixture
def memory_gateway() -> InMemoryIndexGateway:
    return InMemoryIndexGateway()


@pytest.fixture
def soup_csv(tmp_path: Path) -> Path:
    return write_recipes(tmp_path / "recipes.csv", [SOUP_ROW])
