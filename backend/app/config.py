"""Typed settings configuration - single source of truth."""

from functools import lru_cache
from typing import Literal

from pydantic import SecretStr
from pydantic_settings import BaseSettings, SettingsConfigDict


class Settings(BaseSettings):
    """Application settings loaded from environment variables."""

    model_config = SettingsConfigDict(env_file=".env", env_file_encoding="utf-8", extra="ignore")

    # Database
    database_url: str | None = None

    # Cache
    redis_url: str | None = None
    redis_socket_timeout_seconds: float = 2.0

    # UI
    ui_origin: str = "http://localhost:5173"

    # Auth collaborator
    auth_url: str | None = None
    auth_api_key: SecretStr | None = None

    # Object storage collaborator
    storage_url: str | None = None
    storage_api_key: SecretStr | None = None
    storage_bucket: str = "documents"
    storage_local_root: str = "./var/storage"

    # Completion service
    llm_base_url: str | None = None
    llm_api_key: SecretStr | None = None
    llm_model: str = "google/gemini-2.5-flash"
    llm_classifier_model: str = "google/gemini-2.5-flash-lite"

    # Text extraction caps
    extract_max_input_bytes: int = 500_000
    extract_max_output_chars: int = 50_000

    # Chunking
    chunk_size: int = 1000
    chunk_overlap: int = 200
    max_chunks_per_document: int = 500
    chunk_insert_batch_size: int = 100

    # Retrieval
    retrieval_top_k: int = 5
    retrieval_chunk_scan_limit: int = 100
    retrieval_min_token_length: int = 4

    # Chat payload limits
    chat_max_messages: int = 50
    chat_max_message_chars: int = 10_000

    # Uploads
    upload_max_bytes: int = 50 * 1024 * 1024

    # Ingestion worker
    ingest_mode: Literal["background", "inline"] = "background"
    ingest_max_concurrency: int = 4
    ingest_timeout_seconds: float = 120.0

    # Rate limiting (requests per minute)
    chat_requests_per_min: int = 20
    document_requests_per_min: int = 60

    log_level: str = "INFO"


@lru_cache
def get_settings() -> Settings:
    """Get cached settings instance."""
    return Settings()
