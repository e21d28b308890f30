from __future__ import annotations

from abc import ABC, abstractmethod
from typing import List, Sequence

from .models import ExtractedFields, RawRecord, RecipeMetadata

# Each phrasing becomes its own vector.
DEFAULT_DURATION_TEMPLATES: Sequence[str] = (
    "done in {minutes} minutes",
    "time taken {minutes} minutes",
    "{minutes} minutes",
)


class Composer(ABC):
    """Interface for turning one recipe into the texts that get embedded."""

    @abstractmethod
    def compose(self, record: RawRecord, fields: ExtractedFields) -> List[str]:
        """Return the ordered fragments for the record."""

    @abstractmethod
    def metadata(self, record: RawRecord, fields: ExtractedFields) -> RecipeMetadata:
        """Return the metadata stored with each of the record's vectors."""


class QueryComposer(Composer):
    """Fragments: name, each tag, step and ingredient, duration phrasings, description."""

    def __init__(self, duration_templates: Sequence[str] = DEFAULT_DURATION_TEMPLATES) -> None:
        self.duration_templates = tuple(duration_templates)

    def compose(self, record: RawRecord, fields: ExtractedFields) -> List[str]:
        fragments = [
            record.name,
            *fields.tags,
            *fields.steps,
            *fields.ingredients,
        ]
        if record.minutes:
            fragments.extend(template.format(minutes=record.minutes) for template in self.duration_templates)
        if record.description:
            fragments.append(record.description)
        return [fragment for fragment in fragments if fragment]

    def metadata(self, record: RawRecord, fields: ExtractedFields) -> RecipeMetadata:
        return RecipeMetadata(
            name=record.name,
            description=record.description,
            minutes=record.minutes,
            tags=tuple(fields.tags),
            steps=tuple(fields.steps),
            ingredients=tuple(fields.ingredients),
        )
