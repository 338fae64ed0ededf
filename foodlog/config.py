"""Application configuration loaded from environment variables."""

from pydantic_settings import BaseSettings
from pydantic import Field
from functools import lru_cache


class Settings(BaseSettings):
    """Centralised settings — no hardcoded values anywhere else."""

    # Database
    database_url: str = Field(
        "sqlite+aiosqlite:///./foodlog.db", env="DATABASE_URL"
    )

    # Google AI
    google_api_key: str = Field("", env="GOOGLE_API_KEY")
    llm_model: str = Field("gemini-2.5-flash", env="LLM_MODEL")
    llm_fallback_model: str = Field("gemma-3-12b-it", env="LLM_FALLBACK_MODEL")
    prompt_version: str = Field("v1", env="PROMPT_VERSION")

    # Oracles
    oracle_timeout_seconds: float = Field(45.0, env="ORACLE_TIMEOUT_SECONDS")
    trigger_cache_ttl_seconds: int = Field(3600, env="TRIGGER_CACHE_TTL_SECONDS")
    # Deterministic keyword oracles for local development; no API key needed.
    use_stub_oracles: bool = Field(False, env="USE_STUB_ORACLES")

    # Security
    allowed_origins: str = Field(
        "http://localhost:8081,http://localhost:3000",
        env="ALLOWED_ORIGINS",
    )

    # App
    app_env: str = Field("development", env="APP_ENV")
    log_level: str = Field("INFO", env="LOG_LEVEL")

    # Derived
    @property
    def allowed_origins_list(self) -> list[str]:
        """Return ALLOWED_ORIGINS as a list."""
        return [o.strip() for o in self.allowed_origins.split(",")]

    @property
    def is_sqlite(self) -> bool:
        return self.database_url.startswith("sqlite")

    model_config = {"env_file": ".env", "env_file_encoding": "utf-8", "extra": "ignore"}


@lru_cache(maxsize=1)
def get_settings() -> Settings:
    """Return cached Settings instance."""
    return Settings()


settings = get_settings()
