"""Command-line controller for the recipe ingestion pipeline and search API."""
from __future__ import annotations

import argparse
import asyncio
import dataclasses
import json
import logging
from pathlib import Path

from pinecone import Pinecone

from recipe_search.api import build_searcher, create_app
from recipe_search.collectors import CsvRecipeCollector
from recipe_search.composers import QueryComposer
from recipe_search.config import Settings, ensure_env
from recipe_search.embeddings import EmbeddingClient, build_embeddings
from recipe_search.indexers.pinecone_gateway import PineconeIndexGateway
from recipe_search.orchestrator import IngestionOrchestrator, PipelineConfig

LOGGER = logging.getLogger("recipe_search")


def parse_args() -> argparse.Namespace:
    parser = argparse.ArgumentParser(description="Recipe vector index controller")
    subparsers = parser.add_subparsers(dest="command", required=False)

    import_cmd = subparsers.add_parser("import", help="Embed recipes from the CSV source and upsert them")
    import_cmd.add_argument("--file", type=Path, help="Recipe CSV file (default: RECIPES_FILE)")
    import_cmd.add_argument("--limit", type=int, help="Only import the first N recipes (0 for all)")
    import_cmd.add_argument("--batch-size", type=int, help="Recipes processed concurrently per batch")
    import_cmd.add_argument("--dry-run", action="store_true", help="Compose fragments without embedding or writing")

    search_cmd = subparsers.add_parser("search", help="Run a single query against the index")
    search_cmd.add_argument("query", help="Free-text query, e.g. 'quick vegetable soup'")
    search_cmd.add_argument("--top-k", type=int, help="Number of matches to return")

    serve_cmd = subparsers.add_parser("serve", help="Serve the search API over HTTP")
    serve_cmd.add_argument("--host", default="127.0.0.1")
    serve_cmd.add_argument("--port", type=int, default=8000)

    return parser.parse_args()


def build_orchestrator(settings: Settings, args: argparse.Namespace) -> IngestionOrchestrator:
    limit = settings.import_limit if args.limit is None else args.limit
    config = PipelineConfig(
        index_name=settings.index_name,
        limit=limit or None,
        batch_size=args.batch_size or settings.batch_size,
        call_timeout=settings.call_timeout,
        max_retries=settings.max_retries,
        dry_run=args.dry_run,
    )
    collector = CsvRecipeCollector(args.file or settings.recipes_file)

    openai_api_key = settings.openai_api_key if args.dry_run else ensure_env("OPENAI_API_KEY")
    pinecone_api_key = settings.pinecone_api_key if args.dry_run else ensure_env("PINECONE_API_KEY")

    embeddings = build_embeddings(settings.embedding_model, openai_api_key or "unused")
    gateway = PineconeIndexGateway(
        pinecone_client=Pinecone(api_key=pinecone_api_key or "unused"),
        namespace=settings.namespace,
        pod_environment=settings.pinecone_environment,
        cloud=settings.pinecone_cloud,
        region=settings.pinecone_region,
    )
    return IngestionOrchestrator(
        collector=collector,
        embedder=EmbeddingClient(embeddings, timeout=settings.call_timeout),
        gateway=gateway,
        composer=QueryComposer(),
        config=config,
    )


def run_import(settings: Settings, args: argparse.Namespace) -> int:
    orchestrator = build_orchestrator(settings, args)
    report = asyncio.run(orchestrator.run())
    LOGGER.info(
        "Imported %d of %d recipes (%d vectors)",
        report.succeeded,
        report.processed,
        report.entries_written,
    )
    return 1 if report.failed_ids else 0


def run_search(settings: Settings, args: argparse.Namespace) -> int:
    ensure_env("OPENAI_API_KEY")
    ensure_env("PINECONE_API_KEY")
    searcher = build_searcher(settings)
    matches = asyncio.run(searcher.search(args.query, top_k=args.top_k))
    print(json.dumps([dataclasses.asdict(match) for match in matches], indent=2))
    return 0


def run_serve(settings: Settings, args: argparse.Namespace) -> int:
    import uvicorn

    uvicorn.run(create_app(settings), host=args.host, port=args.port)
    return 0


def main() -> int:
    settings = Settings.from_env()
    logging.basicConfig(
        level=getattr(logging, settings.log_level, logging.INFO),
        format="%(asctime)s [%(levelname)s] %(name)s: %(message)s",
    )
    args = parse_args()

    command = args.command or "import"
    if command == "import":
        if args.command is None:
            args = argparse.Namespace(file=None, limit=None, batch_size=None, dry_run=False)
        return run_import(settings, args)
    if command == "search":
        return run_search(settings, args)
    if command == "serve":
        return run_serve(settings, args)
    raise ValueError(f"Unknown command '{command}'")


if __name__ == "__main__":
    raise SystemExit(main())
