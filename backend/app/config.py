"""Application configuration. All sensitive config from .env."""
from pydantic_settings import BaseSettings
from typing import Optional


class Settings(BaseSettings):
    """App settings from environment."""

    # Database - default SQLite for easy local dev; use DATABASE_URL for PostgreSQL
    database_url: str = "sqlite:///./signals.db"

    # SQLAlchemy pooling (Postgres only)
    db_pool_size: int = 5
    db_max_overflow: int = 10
    db_pool_timeout_s: int = 30
    db_pool_recycle_s: int = 1800

    # SQLite concurrency tuning (used when DATABASE_URL starts with sqlite://)
    sqlite_busy_timeout_ms: int = 5000

    # LLM providers, tried in llm_provider_chain order until one is accepted
    openai_api_key: str = ""
    openai_model: str = "gpt-4o-mini"

    anthropic_api_key: str = ""
    anthropic_model: str = "claude-3-5-haiku-latest"

    ollama_base_url: Optional[str] = None  # e.g. http://localhost:11434
    ollama_model: str = "llama3.1"
    ollama_timeout_s: float = 120.0

    llm_provider_chain: list[str] = ["openai", "anthropic", "ollama"]
    llm_timeout_s: float = 60.0

    # Extraction request shape
    extraction_max_tokens: int = 1500
    extraction_temperature: float = 0.1
    extraction_body_max_chars: int = 5000

    # CORS
    cors_origins: list[str] = ["http://localhost:3000", "http://localhost:5173"]

    # Redis (Celery broker/backend)
    redis_url: str = "redis://localhost:6379/0"
    celery_broker_url: Optional[str] = None  # defaults to redis_url if not set

    # Auth - JWT or API key
    secret_key: str = ""
    api_key_header: str = "X-API-Key"
    api_key: str = ""
    api_key_user_id: Optional[int] = None
    jwt_algorithm: str = "HS256"

    # Where the UI shows an application (used for redirect targets)
    app_base_path: str = "/applications"

    class Config:
        env_file = ".env"
        extra = "ignore"

    @property
    def celery_broker(self) -> str:
        return self.celery_broker_url or self.redis_url


settings = Settings()
