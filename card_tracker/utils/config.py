"""Configuration and settings management."""

from typing import Optional
from pydantic_settings import BaseSettings
from pydantic import field_validator
from pathlib import Path

from .error_handler import ConfigurationError

class Settings(BaseSettings):
    # Pokemon TCG API
    POKEMON_TCG_API_KEY: Optional[str] = None
    API_BASE_URL: str = "https://api.pokemontcg.io/v2"
    API_PAGE_SIZE: int = 50

    # Logging
    LOG_LEVEL: str = "INFO"

    # Persistent storage and response cache
    STORAGE_PATH: str = "data/tracker.db"
    CACHE_EXPIRE_HOURS: int = 24

    # Search-as-you-type
    SEARCH_DEBOUNCE_MS: int = 300
    SEARCH_MIN_LENGTH: int = 2

    # Collection view
    PAGE_SIZE: int = 20

    # Bulk prefetch throttling
    BATCH_SIZE: int = 10
    BATCH_DELAY_MS: int = 100

    # Exports
    EXPORT_DIR: str = "output"

    @field_validator('POKEMON_TCG_API_KEY', mode='before')
    @classmethod
    def validate_api_key(cls, v):
        """Convert empty/whitespace strings to None."""
        if isinstance(v, str) and not v.strip():
            return None
        return v

    @field_validator('LOG_LEVEL', mode='before')
    @classmethod
    def validate_log_level(cls, v):
        """Convert empty/whitespace strings to default."""
        if isinstance(v, str) and not v.strip():
            return "INFO"
        return v

    @field_validator('STORAGE_PATH', mode='before')
    @classmethod
    def validate_storage_path(cls, v):
        """Convert empty/whitespace strings to default."""
        if isinstance(v, str) and not v.strip():
            return "data/tracker.db"
        return v

    @field_validator('API_BASE_URL', mode='before')
    @classmethod
    def validate_base_url(cls, v):
        """Strip trailing slashes so paths can be appended."""
        if isinstance(v, str):
            v = v.strip()
            if not v:
                return "https://api.pokemontcg.io/v2"
            return v.rstrip("/")
        return v

    @field_validator('PAGE_SIZE', 'BATCH_SIZE', mode='after')
    @classmethod
    def validate_positive(cls, v):
        if v < 1:
            raise ValueError("must be at least 1")
        return v

    @property
    def cache_duration_seconds(self) -> float:
        return self.CACHE_EXPIRE_HOURS * 3600.0

    model_config = {
        "env_file": ".env",
        "env_file_encoding": "utf-8",
        "case_sensitive": False,
        "extra": "ignore"
    }

# Global settings instance
settings = Settings()

def resolve_storage_path(path: Optional[str] = None) -> Path:
    """Resolve the storage file, relative paths against the working directory."""
    storage_path = Path(path or settings.STORAGE_PATH).expanduser()
    if not storage_path.is_absolute():
        storage_path = Path.cwd() / storage_path
    return storage_path

def ensure_storage_dir(path: Optional[str] = None) -> Path:
    """Ensure the directory holding the storage file exists."""
    storage_path = resolve_storage_path(path)
    try:
        storage_path.parent.mkdir(parents=True, exist_ok=True)
    except OSError as e:
        raise ConfigurationError(
            f"Cannot create storage directory: {storage_path.parent}",
            details={"storage_path": str(storage_path), "error": str(e)}
        ) from e
    return storage_path

def ensure_export_dir(directory: Optional[str] = None) -> Path:
    """Ensure the export directory exists."""
    export_dir = Path(directory or settings.EXPORT_DIR).expanduser()
    try:
        export_dir.mkdir(parents=True, exist_ok=True)
    except OSError as e:
        raise ConfigurationError(
            f"Cannot create export directory: {export_dir}",
            details={"export_dir": str(export_dir), "error": str(e)}
        ) from e
    return export_dir
