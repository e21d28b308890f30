import asyncio
import time
from unittest.mock import MagicMock

import pytest

from recipe_search.collectors import CsvRecipeCollector
from recipe_search.embeddings import SAMPLE_TEXTS, EmbeddingClient
from recipe_search.errors import IndexProvisioningError, IndexWriteError
from recipe_search.indexers.memory import InMemoryIndexGateway
from recipe_search.orchestrator import IngestionOrchestrator, PipelineConfig

from conftest import DIMENSION, ScriptedEmbeddings, make_status_error, recipe_row, write_recipes


def _orchestrator(path, embeddings, gateway, **config):
    config.setdefault("retry_delay", 0)
    return IngestionOrchestrator(
        collector=CsvRecipeCollector(path),
        embedder=EmbeddingClient(embeddings, timeout=5),
        gateway=gateway,
        config=PipelineConfig(**config),
    )


def test_soup_row_is_indexed_under_one_recipe_id(soup_csv, fake_embeddings, memory_gateway):
    report = asyncio.run(_orchestrator(soup_csv, fake_embeddings, memory_gateway).run())

    entries = memory_gateway.entries("recipes")
    assert report.failed_ids == []
    assert report.entries_written == 11
    assert len(entries) == 11
    assert {entry.id for entry in entries} == {"1"}
    assert len({entry.metadata for entry in entries}) == 1
    assert list(entries[0].metadata.tags) == ["easy", "quick"]
    assert list(entries[0].metadata.steps) == ["boil water", "add salt"]
    assert list(entries[0].metadata.ingredients) == ["water", "salt"]
    assert len({tuple(entry.values) for entry in entries}) == 11
    assert memory_gateway.upsert_calls == 1


def test_dimension_is_resolved_once_and_reused(tmp_path, fake_embeddings):
    path = write_recipes(tmp_path / "recipes.csv", [recipe_row(str(i)) for i in range(3)])
    gateway = MagicMock(wraps=InMemoryIndexGateway())

    report = asyncio.run(_orchestrator(path, fake_embeddings, gateway).run())

    assert report.dimension == DIMENSION
    assert fake_embeddings.calls.count(list(SAMPLE_TEXTS)) == 1
    gateway.ensure_index.assert_called_once_with("recipes", DIMENSION, ("name", "description"))
    for call in gateway.upsert.call_args_list:
        assert all(len(entry.values) == DIMENSION for entry in call.args[1])


def test_existing_index_is_not_recreated(soup_csv, fake_embeddings, memory_gateway):
    asyncio.run(_orchestrator(soup_csv, fake_embeddings, memory_gateway).run())
    asyncio.run(_orchestrator(soup_csv, fake_embeddings, memory_gateway).run())

    assert memory_gateway.create_calls == 1
    assert len(memory_gateway.entries("recipes")) == 11


def test_import_is_bounded_by_limit(tmp_path, fake_embeddings, memory_gateway):
    path = write_recipes(tmp_path / "recipes.csv", [recipe_row(str(i)) for i in range(10)])

    report = asyncio.run(_orchestrator(path, fake_embeddings, memory_gateway, limit=4).run())

    assert [outcome.recipe_id for outcome in report.outcomes] == ["0", "1", "2", "3"]


def test_batches_run_sequentially_with_bounded_concurrency(tmp_path, memory_gateway):
    path = write_recipes(tmp_path / "recipes.csv", [recipe_row(str(i)) for i in range(7)])
    embeddings = ScriptedEmbeddings(delay=0.02)

    report = asyncio.run(_orchestrator(path, embeddings, memory_gateway, batch_size=3).run())

    assert report.processed == 7
    assert embeddings.max_in_flight == 3


def test_failed_record_does_not_abort_the_run(tmp_path, memory_gateway):
    rows = [recipe_row("1"), recipe_row("2", name="Broken"), recipe_row("3")]
    path = write_recipes(tmp_path / "recipes.csv", rows)
    embeddings = ScriptedEmbeddings(
        fail_when=lambda texts, call: make_status_error(400) if "Broken" in texts else None
    )

    report = asyncio.run(_orchestrator(path, embeddings, memory_gateway).run())

    assert report.failed_ids == ["2"]
    assert report.succeeded == 2
    assert {entry.id for entry in memory_gateway.entries("recipes")} == {"1", "3"}
    failed = report.outcomes[1]
    assert not failed.ok
    assert "400" in failed.error
    # client errors are not retried
    assert sum(1 for texts in embeddings.calls if "Broken" in texts) == 1


def test_transient_errors_are_retried(soup_csv, memory_gateway):
    attempts = []

    def fail_twice(texts, call):
        if "Soup" in texts:
            attempts.append(call)
            if len(attempts) <= 2:
                return make_status_error(503)
        return None

    embeddings = ScriptedEmbeddings(fail_when=fail_twice)

    report = asyncio.run(_orchestrator(soup_csv, embeddings, memory_gateway, max_retries=3).run())

    assert report.failed_ids == []
    assert len(attempts) == 3


def test_retries_give_up_after_max_attempts(soup_csv, memory_gateway):
    embeddings = ScriptedEmbeddings(
        fail_when=lambda texts, call: make_status_error(429) if "Soup" in texts else None
    )

    report = asyncio.run(_orchestrator(soup_csv, embeddings, memory_gateway, max_retries=2).run())

    assert report.failed_ids == ["1"]
    assert sum(1 for texts in embeddings.calls if "Soup" in texts) == 2


def test_upsert_failures_are_reported_per_record(soup_csv, fake_embeddings):
    gateway = MagicMock(wraps=InMemoryIndexGateway())
    gateway.upsert.side_effect = IndexWriteError("index unavailable")

    report = asyncio.run(_orchestrator(soup_csv, fake_embeddings, gateway, max_retries=2).run())

    assert report.failed_ids == ["1"]
    assert gateway.upsert.call_count == 2


def test_fragments_are_split_by_embedding_batch_limit(soup_csv, fake_embeddings, memory_gateway):
    orchestrator = IngestionOrchestrator(
        collector=CsvRecipeCollector(soup_csv),
        embedder=EmbeddingClient(fake_embeddings, max_batch_size=4),
        gateway=memory_gateway,
        config=PipelineConfig(retry_delay=0),
    )

    report = asyncio.run(orchestrator.run())

    record_calls = [texts for texts in fake_embeddings.calls if texts != list(SAMPLE_TEXTS)]
    assert [len(texts) for texts in record_calls] == [4, 4, 3]
    assert report.entries_written == 11
    slots = sorted(entry.slot for entry in memory_gateway.entries("recipes"))
    assert slots == list(range(11))


def test_provisioning_failure_aborts_the_run(soup_csv, fake_embeddings):
    gateway = MagicMock(wraps=InMemoryIndexGateway())
    gateway.ensure_index.side_effect = IndexProvisioningError("quota exceeded")

    with pytest.raises(IndexProvisioningError):
        asyncio.run(_orchestrator(soup_csv, fake_embeddings, gateway).run())

    gateway.upsert.assert_not_called()


def test_dry_run_composes_without_calling_services(soup_csv, fake_embeddings, memory_gateway):
    report = asyncio.run(_orchestrator(soup_csv, fake_embeddings, memory_gateway, dry_run=True).run())

    assert fake_embeddings.calls == []
    assert memory_gateway.indexes() == []
    assert report.outcomes[0].fragments == 11
    assert report.entries_written == 0


@pytest.mark.parametrize("kwargs", [{"batch_size": 0}, {"max_retries": 0}, {"limit": -1}])
def test_invalid_pipeline_config(kwargs):
    with pytest.raises(ValueError):
        PipelineConfig(**kwargs)


def test_dimension_mismatch_is_a_typed_non_retried_failure(soup_csv, memory_gateway):
    class ShrinkingEmbeddings(ScriptedEmbeddings):
        async def aembed_documents(self, texts):
            self.calls.append(list(texts))
            size = DIMENSION if list(texts) == list(SAMPLE_TEXTS) else DIMENSION // 2
            return [[0.1] * size for _ in texts]

    embeddings = ShrinkingEmbeddings()

    report = asyncio.run(_orchestrator(soup_csv, embeddings, memory_gateway).run())

    assert report.failed_ids == ["1"]
    assert "Expected 8-dimensional embeddings" in report.outcomes[0].error
    assert len(embeddings.calls) == 2
    assert memory_gateway.entries("recipes") == []


def test_timed_out_upserts_are_retried_then_reported(soup_csv, fake_embeddings):
    class SlowGateway(InMemoryIndexGateway):
        def upsert(self, index_name, entries):
            time.sleep(0.2)
            super().upsert(index_name, entries)

    gateway = MagicMock(wraps=SlowGateway())

    report = asyncio.run(
        _orchestrator(soup_csv, fake_embeddings, gateway, call_timeout=0.05, max_retries=2).run()
    )

    assert report.failed_ids == ["1"]
    assert "timed out" in report.outcomes[0].error
    assert gateway.upsert.call_count == 2
