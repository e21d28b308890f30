from __future__ import annotations

from dataclasses import dataclass, field
from typing import Any, Dict, List, Sequence

REQUIRED_COLUMNS = ("id", "name", "minutes", "tags", "steps", "ingredients", "description")


@dataclass(frozen=True)
class RawRecord:
    """One row of the recipe source file, list columns still encoded as text."""

    id: str
    name: str
    minutes: str
    tags: str
    steps: str
    ingredients: str
    description: str


@dataclass(frozen=True)
class ExtractedFields:
    """Multi-value columns decoded from their quoted-literal encoding."""

    tags: Sequence[str] = ()
    steps: Sequence[str] = ()
    ingredients: Sequence[str] = ()


@dataclass(frozen=True)
class RecipeMetadata:
    """Payload attached to every vector derived from one recipe."""

    name: str
    description: str
    minutes: str
    tags: Sequence[str] = ()
    steps: Sequence[str] = ()
    ingredients: Sequence[str] = ()

    def as_payload(self, recipe_id: str) -> Dict[str, Any]:
        return {
            "recipe_id": recipe_id,
            "name": self.name,
            "description": self.description,
            "minutes": self.minutes,
            "tags": list(self.tags),
            "steps": list(self.steps),
            "ingredients": list(self.ingredients),
        }


@dataclass(frozen=True)
class IndexEntry:
    """Atomic unit written to the vector index.

    Every fragment embedded for a recipe becomes one entry; all of them share
    ``id`` and ``metadata`` and differ in ``slot`` and ``values``.
    """

    id: str
    slot: int
    values: Sequence[float]
    metadata: RecipeMetadata

    @property
    def vector_id(self) -> str:
        return f"{self.id}#{self.slot}"

    def payload(self) -> Dict[str, Any]:
        return self.metadata.as_payload(self.id)


def recipe_id_from_vector_id(vector_id: str) -> str:
    recipe_id, _, _ = vector_id.rpartition("#")
    return recipe_id or vector_id


@dataclass(frozen=True)
class RetrievalResult:
    """A nearest-neighbour match, collapsed to the recipe it came from."""

    recipe_id: str
    score: float
    metadata: Dict[str, Any]


@dataclass(frozen=True)
class RecordOutcome:
    """Tagged success/failure of ingesting a single recipe."""

    recipe_id: str
    ok: bool
    fragments: int = 0
    entries_written: int = 0
    error: str | None = None


@dataclass
class IngestionReport:
    """Aggregated outcomes of one ingestion run."""

    dimension: int | None = None
    outcomes: List[RecordOutcome] = field(default_factory=list)

    @property
    def processed(self) -> int:
        return len(self.outcomes)

    @property
    def succeeded(self) -> int:
        return sum(1 for outcome in self.outcomes if outcome.ok)

    @property
    def failed_ids(self) -> List[str]:
        return [outcome.recipe_id for outcome in self.outcomes if not outcome.ok]

    @property
    def entries_written(self) -> int:
        return sum(outcome.entries_written for outcome in self.outcomes)
