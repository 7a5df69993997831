# catalog/core/config.py
from functools import lru_cache
from pydantic_settings import BaseSettings, SettingsConfigDict


class Settings(BaseSettings):
    """
    Centralized application settings loaded from environment.

    Required env vars (.env):
      - SUPABASE_URL
      - SUPABASE_KEY (anon key)
      - DATABASE_URL (Supabase Postgres connection string)
      - SUPABASE_JWT_SECRET (JWT signing secret from Supabase project settings)

    Optional:
      - SUPABASE_SERVICE_ROLE_KEY (used by the Storage client)
      - OPERATOR_EMAILS (JSON list, e.g. '["owner@example.com"]')
      - OPERATOR_ROLE (app_metadata.role value that also grants operator access)
    """

    PROJECT_NAME: str = "Catalog Backend"
    API_V1_STR: str = "/api/v1"
    LOG_LEVEL: str = "INFO"

    # Supabase / DB config
    SUPABASE_URL: str
    SUPABASE_KEY: str
    DATABASE_URL: str

    # JWT verification (backend-side)
    SUPABASE_JWT_SECRET: str
    SUPABASE_JWT_ALG: str = "HS256"

    # Service role key bypasses RLS (backend only)
    SUPABASE_SERVICE_ROLE_KEY: str | None = None

    # Who may mutate the catalog
    OPERATOR_EMAILS: list[str] = []
    OPERATOR_ROLE: str | None = None

    # Report owner mismatch as 404 instead of 403
    HIDE_FOREIGN_ENTITIES: bool = False

    # Storage buckets + upload limits
    PRODUCTS_BUCKET: str = "products"
    BANNERS_BUCKET: str = "banners"
    MAX_IMAGE_BYTES: int = 5 * 1024 * 1024

    model_config = SettingsConfigDict(env_file=".env", extra="ignore")


@lru_cache
def get_settings() -> Settings:
    """
    Cached settings loader.
    Ensures we don't re-parse .env on every import / request.
    """
    return Settings()
