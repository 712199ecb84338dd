"""
Configuration for the Retail Assistant.

Reads settings from the environment (optionally via a .env file) and exposes
them as a typed Settings object. Every external call gets its own finite
timeout so a slow collaborator can never hang a request.
"""

import os
from pathlib import Path
from typing import Optional

from dotenv import load_dotenv
from pydantic import BaseModel, Field

# Load environment variables
load_dotenv()


def _project_root() -> Path:
    """Return project root (parent of the retail_assistant package)."""
    return Path(__file__).resolve().parent.parent


DEFAULT_CATALOG_DB_PATH = _project_root() / "db" / "catalog.db"


class Settings(BaseModel):
    """Typed view over the environment configuration."""

    # Chat completion
    openai_api_key: Optional[str] = None
    openai_base_url: Optional[str] = "https://openrouter.ai/api/v1"
    chat_model: str = "openai/gpt-4o-mini"
    chat_max_tokens: int = Field(default=800, gt=0)
    chat_temperature: float = Field(default=0.7, ge=0, le=2)
    chat_timeout: float = Field(default=30.0, gt=0)
    chat_max_retries: int = Field(default=0, ge=0)

    # Embeddings and search index
    embedding_model: str = "openai/text-embedding-3-small"
    embedding_dimensions: int = Field(default=1536, gt=0)
    embedding_timeout: float = Field(default=30.0, gt=0)
    vector_store_path: str = "./vector_store"
    search_collection: str = "products"
    search_timeout: float = Field(default=30.0, gt=0)

    # Catalog
    catalog_db_path: str = str(DEFAULT_CATALOG_DB_PATH)

    # Checkout API (Strangler Fig target)
    checkout_api_base_url: str = "http://localhost:5100"
    checkout_timeout: float = Field(default=30.0, gt=0)

    log_level: str = "INFO"

    @classmethod
    def from_env(cls) -> "Settings":
        """Build settings from environment variables, falling back to defaults."""
        defaults = cls()
        return cls(
            openai_api_key=os.getenv("OPENAI_API_KEY"),
            openai_base_url=os.getenv("OPENAI_BASE_URL", defaults.openai_base_url),
            chat_model=os.getenv("CHAT_MODEL", defaults.chat_model),
            chat_max_tokens=int(os.getenv("CHAT_MAX_TOKENS", defaults.chat_max_tokens)),
            chat_temperature=float(os.getenv("CHAT_TEMPERATURE", defaults.chat_temperature)),
            chat_timeout=float(os.getenv("CHAT_TIMEOUT", defaults.chat_timeout)),
            chat_max_retries=int(os.getenv("CHAT_MAX_RETRIES", defaults.chat_max_retries)),
            embedding_model=os.getenv("EMBEDDING_MODEL", defaults.embedding_model),
            embedding_dimensions=int(os.getenv("EMBEDDING_DIMENSIONS", defaults.embedding_dimensions)),
            embedding_timeout=float(os.getenv("EMBEDDING_TIMEOUT", defaults.embedding_timeout)),
            vector_store_path=os.getenv("VECTOR_STORE_PATH", defaults.vector_store_path),
            search_collection=os.getenv("SEARCH_COLLECTION", defaults.search_collection),
            search_timeout=float(os.getenv("SEARCH_TIMEOUT", defaults.search_timeout)),
            catalog_db_path=os.getenv("CATALOG_DB_PATH", defaults.catalog_db_path),
            checkout_api_base_url=os.getenv("CHECKOUT_API_BASE_URL", defaults.checkout_api_base_url),
            checkout_timeout=float(os.getenv("CHECKOUT_TIMEOUT", defaults.checkout_timeout)),
            log_level=os.getenv("LOG_LEVEL", defaults.log_level).upper(),
        )


# Global settings instance
_settings: Optional[Settings] = None


def get_settings() -> Settings:
    """Get the process-wide settings, loading them on first use."""
    global _settings
    if _settings is None:
        _settings = Settings.from_env()
    return _settings


def set_settings(settings: Optional[Settings]) -> None:
    """Replace the process-wide settings (None forces a reload)."""
    global _settings
    _settings = settings
