from __future__ import annotations

import os
from dataclasses import dataclass
from pathlib import Path

from dotenv import load_dotenv

from .embeddings import DEFAULT_EMBED_MODEL

DEFAULT_INDEX_NAME = "recipes"
DEFAULT_RECIPES_FILE = Path("data") / "RAW_recipes.csv"
DEFAULT_REGION = "us-east-1"


def ensure_env(var_name: str) -> str:
    value = os.environ.get(var_name)
    if not value:
        raise RuntimeError(f"{var_name} is required")
    return value


def _env_flag(var_name: str, default: bool = False) -> bool:
    value = os.environ.get(var_name)
    if value is None:
        return default
    return value.strip().lower() in ("1", "true", "yes", "on")


def _env_int(var_name: str, default: int) -> int:
    value = os.environ.get(var_name)
    return int(value) if value else default


def _env_float(var_name: str, default: float) -> float:
    value = os.environ.get(var_name)
    return float(value) if value else default


@dataclass(frozen=True)
class Settings:
    """Runtime settings, read from the environment (and ``.env`` when present).

    API keys are optional here; entry points decide whether a missing key is
    fatal (the import CLI) or a per-request error (the search endpoint).
    """

    openai_api_key: str = ""
    pinecone_api_key: str = ""
    index_name: str = DEFAULT_INDEX_NAME
    namespace: str = ""
    pinecone_environment: str | None = None
    pinecone_cloud: str = "aws"
    pinecone_region: str = DEFAULT_REGION
    embedding_model: str = DEFAULT_EMBED_MODEL
    recipes_file: Path = DEFAULT_RECIPES_FILE
    import_limit: int = 1600
    batch_size: int = 32
    call_timeout: float = 60.0
    max_retries: int = 3
    top_k: int = 5
    forward_upstream_errors: bool = False
    log_level: str = "INFO"

    @classmethod
    def from_env(cls, *, dotenv: bool = True) -> "Settings":
        if dotenv:
            load_dotenv()
        return cls(
            openai_api_key=os.environ.get("OPENAI_API_KEY", ""),
            pinecone_api_key=os.environ.get("PINECONE_API_KEY", ""),
            index_name=os.environ.get("PINECONE_INDEX", DEFAULT_INDEX_NAME),
            namespace=os.environ.get("PINECONE_NAMESPACE", ""),
            pinecone_environment=os.environ.get("PINECONE_ENVIRONMENT") or None,
            pinecone_cloud=os.environ.get("PINECONE_CLOUD", "aws"),
            pinecone_region=os.environ.get("PINECONE_REGION", DEFAULT_REGION),
            embedding_model=os.environ.get("OPENAI_EMBEDDING_MODEL", DEFAULT_EMBED_MODEL),
            recipes_file=Path(os.environ.get("RECIPES_FILE", str(DEFAULT_RECIPES_FILE))),
            import_limit=_env_int("IMPORT_LIMIT", 1600),
            batch_size=_env_int("IMPORT_BATCH_SIZE", 32),
            call_timeout=_env_float("CALL_TIMEOUT", 60.0),
            max_retries=_env_int("MAX_RETRIES", 3),
            top_k=_env_int("SEARCH_TOP_K", 5),
            forward_upstream_errors=_env_flag("FORWARD_UPSTREAM_ERRORS"),
            log_level=os.environ.get("LOG_LEVEL", "INFO").upper(),
        )
