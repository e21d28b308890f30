"""Composable ingestion and search components for the recipe vector index."""

from .collectors import CsvRecipeCollector, RecipeCollector
from .composers import DEFAULT_DURATION_TEMPLATES, QueryComposer
from .embeddings import EmbeddingClient
from .errors import (
    EmbeddingServiceError,
    IndexProvisioningError,
    IndexQueryError,
    IndexWriteError,
    InvalidQueryError,
    RecipeSearchError,
    SourceReadError,
)
from .extractors import extract_fields, extract_literals
from .indexers import InMemoryIndexGateway, PineconeIndexGateway, partition
from .models import (
    ExtractedFields,
    IndexEntry,
    IngestionReport,
    RawRecord,
    RecipeMetadata,
    RecordOutcome,
    RetrievalResult,
)
from .orchestrator import IngestionOrchestrator, PipelineConfig
from .retriever import RecipeSearcher

__all__ = [
    "CsvRecipeCollector",
    "RecipeCollector",
    "DEFAULT_DURATION_TEMPLATES",
    "QueryComposer",
    "EmbeddingClient",
    "EmbeddingServiceError",
    "IndexProvisioningError",
    "IndexQueryError",
    "IndexWriteError",
    "InvalidQueryError",
    "RecipeSearchError",
    "SourceReadError",
    "extract_fields",
    "extract_literals",
    "InMemoryIndexGateway",
    "PineconeIndexGateway",
    "partition",
    "ExtractedFields",
    "IndexEntry",
    "IngestionReport",
    "RawRecord",
    "RecipeMetadata",
    "RecordOutcome",
    "RetrievalResult",
    "IngestionOrchestrator",
    "PipelineConfig",
    "RecipeSearcher",
]
