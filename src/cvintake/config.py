from __future__ import annotations

from functools import lru_cache
from typing import Optional

from pydantic_settings import BaseSettings, SettingsConfigDict


class Settings(BaseSettings):
    model_config = SettingsConfigDict(env_file=".env", env_file_encoding="utf-8", extra="ignore")

    # Local persistence
    data_dir: str = "data/submissions"
    kv_store_path: str = "data/local_storage.json"

    # Blob storage
    blob_dir: str = "data/blobs"
    blob_base_url: str = "http://localhost:8000/files"
    storage_endpoint: Optional[str] = None      # enables HttpBlobStorage when set
    storage_token: Optional[str] = None
    upload_chunk_size: int = 64 * 1024

    # Personal-info step
    max_upload_bytes: int = 10 * 1024 * 1024
    autosave_interval_seconds: float = 30.0
    upload_wait_timeout_seconds: float = 30.0
    cancel_uploads_on_remove: bool = False

    # Submission history / export
    recent_submissions_limit: int = 50
    render_width: int = 600
    render_scale: int = 2
    jpeg_quality: int = 95
    export_dir: str = "data/exports"

    # Logging
    log_level: str = "INFO"
    log_file: str = "logs/cvintake.log"


@lru_cache(maxsize=1)
def get_settings() -> Settings:
    return Settings()
