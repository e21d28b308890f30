from __future__ import annotations

import asyncio
import logging
from dataclasses import dataclass
from itertools import islice
from typing import Any, Awaitable, Callable, Iterable, List, Sequence

from .collectors import RecipeCollector
from .composers import Composer, QueryComposer
from .embeddings import EmbeddingClient
from .errors import EmbeddingServiceError, IndexProvisioningError, IndexWriteError
from .extractors import extract_fields
from .indexers.base import BaseIndexGateway, iter_batches, partition
from .models import IndexEntry, IngestionReport, RawRecord, RecordOutcome

logger = logging.getLogger(__name__)

INDEXED_FIELDS = ("name", "description")


@dataclass
class PipelineConfig:
    index_name: str = "recipes"
    limit: int | None = 1600
    batch_size: int = 32
    max_concurrency: int | None = None
    indexed_fields: Sequence[str] = INDEXED_FIELDS
    call_timeout: float | None = 60.0
    max_retries: int = 3
    retry_delay: float = 0.8
    retry_backoff: float = 1.7
    dry_run: bool = False

    def __post_init__(self) -> None:
        if self.batch_size <= 0:
            raise ValueError("batch_size must be positive")
        if self.max_retries < 1:
            raise ValueError("max_retries counts attempts and must be at least 1")
        if self.limit is not None and self.limit < 0:
            raise ValueError("limit must not be negative")


class IngestionOrchestrator:
    """Coordinates reading, extraction, embedding and upserting of recipes.

    Batches run strictly one after another; the records inside a batch run
    concurrently. A failing record is reported in the final
    :class:`IngestionReport` and does not stop the rest of the run.
    """

    def __init__(
        self,
        *,
        collector: RecipeCollector,
        embedder: EmbeddingClient,
        gateway: BaseIndexGateway,
        composer: Composer | None = None,
        config: PipelineConfig | None = None,
    ) -> None:
        self.collector = collector
        self.embedder = embedder
        self.gateway = gateway
        self.composer = composer or QueryComposer()
        self.config = config or PipelineConfig()

    async def run(self) -> IngestionReport:
        logger.info("Starting recipe ingestion into '%s'", self.config.index_name)
        dimension = None
        if self.config.dry_run:
            logger.info("Dry-run enabled; skipping embedding and indexing")
        else:
            dimension = await self._with_retry(self.embedder.sample_dimension)
            await self._ensure_index(dimension)

        records = self.collector.collect()
        if self.config.limit is not None:
            records = islice(records, self.config.limit)

        report = await self.ingest_records(records, dimension=dimension)
        logger.info(
            "Ingestion finished: %d/%d recipes indexed, %d vectors written",
            report.succeeded,
            report.processed,
            report.entries_written,
        )
        if report.failed_ids:
            logger.warning("Failed recipe ids: %s", ", ".join(report.failed_ids))
        return report

    async def ingest_records(self, records: Iterable[RawRecord], *, dimension: int | None) -> IngestionReport:
        """Process ``records`` batch by batch against an already provisioned index."""
        report = IngestionReport(dimension=dimension)
        for batch_number, batch in enumerate(iter_batches(records, self.config.batch_size), start=1):
            outcomes = await self._process_batch(batch, dimension)
            report.outcomes.extend(outcomes)
            failed = sum(1 for outcome in outcomes if not outcome.ok)
            logger.info(
                "Batch %d: %d recipes, %d failed (%d processed so far)",
                batch_number,
                len(batch),
                failed,
                report.processed,
            )
        return report

    # Internal helpers -------------------------------------------------
    async def _process_batch(self, batch: Sequence[RawRecord], dimension: int | None) -> List[RecordOutcome]:
        semaphore = asyncio.Semaphore(self.config.max_concurrency or len(batch))

        async def ingest_with_semaphore(record: RawRecord) -> RecordOutcome:
            async with semaphore:
                return await self._ingest_guarded(record, dimension)

        return list(await asyncio.gather(*(ingest_with_semaphore(record) for record in batch)))

    async def _ingest_guarded(self, record: RawRecord, dimension: int | None) -> RecordOutcome:
        try:
            return await self._ingest_record(record, dimension)
        except Exception as exc:
            logger.warning("Recipe %s failed: %s", record.id, exc)
            return RecordOutcome(recipe_id=record.id, ok=False, error=str(exc) or type(exc).__name__)

    async def _ingest_record(self, record: RawRecord, dimension: int | None) -> RecordOutcome:
        fields = extract_fields(record)
        fragments = self.composer.compose(record, fields)
        if self.config.dry_run or not fragments:
            if not fragments:
                logger.debug("Recipe %s has no text to embed", record.id)
            return RecordOutcome(recipe_id=record.id, ok=True, fragments=len(fragments))

        vectors: list[list[float]] = []
        for chunk in partition(fragments, self.embedder.max_batch_size):
            vectors.extend(await self._with_retry(self.embedder.embed, chunk))

        for vector in vectors:
            if dimension is not None and len(vector) != dimension:
                raise EmbeddingServiceError(
                    f"Expected {dimension}-dimensional embeddings, got {len(vector)}",
                    retryable=False,
                )

        metadata = self.composer.metadata(record, fields)
        entries = [
            IndexEntry(id=record.id, slot=slot, values=vector, metadata=metadata)
            for slot, vector in enumerate(vectors)
        ]
        await self._with_retry(self._upsert, entries)
        return RecordOutcome(
            recipe_id=record.id,
            ok=True,
            fragments=len(fragments),
            entries_written=len(entries),
        )

    async def _ensure_index(self, dimension: int) -> None:
        try:
            await asyncio.wait_for(
                asyncio.to_thread(
                    self.gateway.ensure_index,
                    self.config.index_name,
                    dimension,
                    self.config.indexed_fields,
                ),
                timeout=self.config.call_timeout,
            )
        except asyncio.TimeoutError as exc:
            raise IndexProvisioningError(
                f"Provisioning '{self.config.index_name}' timed out after {self.config.call_timeout}s"
            ) from exc

    async def _upsert(self, entries: Sequence[IndexEntry]) -> None:
        # A timed-out call keeps running in its worker thread, so a retry may
        # overlap it. Both write the same composite ids, which is safe.
        try:
            await asyncio.wait_for(
                asyncio.to_thread(self.gateway.upsert, self.config.index_name, entries),
                timeout=self.config.call_timeout,
            )
        except asyncio.TimeoutError as exc:
            raise IndexWriteError(
                f"Upsert into '{self.config.index_name}' timed out after {self.config.call_timeout}s",
                entries=entries,
            ) from exc

    async def _with_retry(self, func: Callable[..., Awaitable[Any]], *args: Any) -> Any:
        delay = self.config.retry_delay
        for attempt in range(1, self.config.max_retries + 1):
            try:
                return await func(*args)
            except (EmbeddingServiceError, IndexWriteError) as exc:
                if not exc.retryable or attempt == self.config.max_retries:
                    raise
                logger.warning(
                    "%s failed (attempt %d/%d): %s",
                    getattr(func, "__name__", "call"),
                    attempt,
                    self.config.max_retries,
                    exc,
                )
                await asyncio.sleep(delay)
                delay *= self.config.retry_backoff
