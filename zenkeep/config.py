"""Service configuration loaded from environment variables."""

from __future__ import annotations

from pathlib import Path
from typing import Literal

from pydantic_settings import BaseSettings


class Settings(BaseSettings):
    """Application settings loaded from .env file."""

    model_config = {"env_file": ".env", "env_file_encoding": "utf-8"}

    # Storage
    storage_backend: Literal["json", "redis", "memory"] = "json"
    data_dir: Path = Path("data")
    redis_url: str = "redis://localhost:6379"

    # AI suggestions (Ollama)
    ai_enabled: bool = True
    ollama_base_url: str = "http://localhost:11434"
    ollama_model: str = "qwen3:1.7b"
    ai_timeout: float = 60.0

    # HTTP
    host: str = "0.0.0.0"
    port: int = 8000
    log_level: str = "INFO"


settings = Settings()
