"""Pydantic Settings with YAML layering.

Priority (highest first): env vars > .env > config.yaml > config.default.yaml
"""

from __future__ import annotations

import os
from functools import lru_cache
from pathlib import Path
from typing import Any

from dotenv import load_dotenv
from pydantic import BaseModel, Field
from pydantic_settings import BaseSettings, PydanticBaseSettingsSource, SettingsConfigDict, YamlConfigSettingsSource


# ---------------------------------------------------------------------------
# Sub-models
# ---------------------------------------------------------------------------

class GeminiConfig(BaseModel):
    """Gemini File Search connection."""

    api_key: str | None = None
    model: str = "gemini-2.5-flash"
    store_display_name: str = "pgc-policies"


class DocstoreConfig(BaseModel):
    path: str = "./data/docstore.db"


class BlobstoreConfig(BaseModel):
    path: str = "./data/blobs"
    base_url: str = "http://localhost:8000/blobs"
    signing_key: str | None = None
    url_ttl_minutes: int = 60


class IndexingConfig(BaseModel):
    """Polling budget for asynchronous indexing operations."""

    poll_interval: float = Field(5.0, ge=0)  # seconds between operation polls
    max_poll_attempts: int = Field(60, gt=0)  # 60 x 5s = 5 minute ceiling
    progress_every: int = Field(6, gt=0)  # log progress every N polls (~30s)


class UploadConfig(BaseModel):
    max_size_mb: int = 100
    allowed_types: list[str] = ["pdf", "docx", "doc"]


class PromptsConfig(BaseModel):
    """System prompt used by the search engine."""

    system_prompt: str = (
        "You are a helpful AI assistant that answers questions about company policies and guidelines.\n\n"
        "Instructions:\n"
        "- Search through the provided documents to find relevant information\n"
        "- Provide accurate, concise answers based only on the document contents\n"
        "- Always cite your sources using inline citations [1], [2], etc.\n"
        "- If you cannot find the answer in the documents, say so clearly\n"
        "- If multiple documents contain relevant information, synthesize the information coherently\n"
        "- If relevant, present information as a markdown table for better clarity\n"
        "- Use **bold** for emphasis on important terms and key requirements\n"
        "- Be professional and clear in your responses"
    )


# ---------------------------------------------------------------------------
# Main settings
# ---------------------------------------------------------------------------

def _root() -> Path:
    return Path(os.environ.get("POLICYDESK_ROOT", "."))


def _yaml_files() -> list[Path]:
    """Return YAML config file paths relative to the project root."""
    root = _root()
    files = [root / "config.default.yaml"]
    user_cfg = root / "config.yaml"
    if user_cfg.exists():
        files.append(user_cfg)
    return files


class Settings(BaseSettings):
    """Application settings loaded from YAML + env vars."""

    model_config = SettingsConfigDict(
        env_prefix="POLICYDESK_",
        env_nested_delimiter="__",
    )

    gemini: GeminiConfig = GeminiConfig()
    docstore: DocstoreConfig = DocstoreConfig()
    blobstore: BlobstoreConfig = BlobstoreConfig()
    indexing: IndexingConfig = IndexingConfig()
    upload: UploadConfig = UploadConfig()
    prompts: PromptsConfig = PromptsConfig()

    @classmethod
    def settings_customise_sources(
        cls,
        settings_cls: type[BaseSettings],
        init_settings: PydanticBaseSettingsSource,
        env_settings: PydanticBaseSettingsSource,
        dotenv_settings: PydanticBaseSettingsSource,
        file_secret_settings: PydanticBaseSettingsSource,
    ) -> tuple[PydanticBaseSettingsSource, ...]:
        return (
            init_settings,
            env_settings,
            YamlConfigSettingsSource(
                settings_cls,
                yaml_file=_yaml_files(),
            ),
        )

    @property
    def gemini_api_key(self) -> str | None:
        """Configured key, falling back to the SDK's conventional GEMINI_API_KEY."""
        return self.gemini.api_key or os.environ.get("GEMINI_API_KEY")


# ---------------------------------------------------------------------------
# Singleton accessor
# ---------------------------------------------------------------------------

@lru_cache(maxsize=1)
def get_settings(**kwargs: Any) -> Settings:
    """Lazy singleton for settings. Call reset_settings() to reload."""
    load_dotenv(_root() / ".env", override=False)
    return Settings(**kwargs)


def reset_settings() -> None:
    """Clear the settings cache so the next get_settings() reloads from disk."""
    get_settings.cache_clear()
