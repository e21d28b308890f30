from __future__ import annotations

from abc import ABC, abstractmethod
from pathlib import Path
from typing import Iterator

import pandas as pd

from .errors import SourceReadError
from .models import REQUIRED_COLUMNS, RawRecord


class RecipeCollector(ABC):
    """Interface for fetching raw recipe rows prior to extraction."""

    @abstractmethod
    def collect(self) -> Iterator[RawRecord]:
        """Yield the recipes to index, in source order."""


class CsvRecipeCollector(RecipeCollector):
    """Stream recipes out of a delimited file, ``chunk_size`` rows at a time.

    Each call to :meth:`collect` reopens the file, so the collector can be
    iterated more than once. Only the required columns are kept.
    """

    def __init__(self, path: Path, *, chunk_size: int = 1000, delimiter: str = ",") -> None:
        self.path = Path(path)
        self.chunk_size = chunk_size
        self.delimiter = delimiter

    def collect(self) -> Iterator[RawRecord]:
        try:
            reader = pd.read_csv(
                self.path,
                sep=self.delimiter,
                dtype=str,
                keep_default_na=False,
                chunksize=self.chunk_size,
            )
        except (OSError, ValueError) as exc:
            # pandas parser errors subclass ValueError
            raise SourceReadError(f"Cannot open recipe source {self.path}: {exc}") from exc

        with reader:
            row_number = 0
            for frame in self._iter_frames(reader):
                missing = [column for column in REQUIRED_COLUMNS if column not in frame.columns]
                if missing:
                    raise SourceReadError(
                        f"Recipe source {self.path} is missing required columns: {', '.join(missing)}"
                    )
                for row in frame[list(REQUIRED_COLUMNS)].itertuples(index=False, name=None):
                    row_number += 1
                    yield self._to_record(row, row_number)

    # Internal helpers -------------------------------------------------
    def _iter_frames(self, reader) -> Iterator[pd.DataFrame]:
        while True:
            try:
                frame = next(reader)
            except StopIteration:
                return
            except (OSError, ValueError) as exc:
                raise SourceReadError(f"Failed reading recipe source {self.path}: {exc}") from exc
            yield frame

    def _to_record(self, row: tuple, row_number: int) -> RawRecord:
        # with keep_default_na=False only cells absent from a short row come back as NaN
        missing = [column for column, value in zip(REQUIRED_COLUMNS, row) if not isinstance(value, str)]
        if missing:
            raise SourceReadError(
                f"Row {row_number} of {self.path} is missing required columns: {', '.join(missing)}"
            )
        values = {column: value.strip() for column, value in zip(REQUIRED_COLUMNS, row)}
        if not values["id"]:
            raise SourceReadError(f"Row {row_number} of {self.path} has no id")
        return RawRecord(**values)
