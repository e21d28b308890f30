"""Index gateways for the recipe ingestion pipeline."""

from .base import (
    BaseIndexGateway,
    collapse_matches,
    iter_batches,
    partition,
)
from .memory import InMemoryIndexGateway
from .pinecone_gateway import PineconeIndexGateway

__all__ = [
    "BaseIndexGateway",
    "InMemoryIndexGateway",
    "PineconeIndexGateway",
    "collapse_matches",
    "iter_batches",
    "partition",
]
