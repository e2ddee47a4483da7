# Pydantic settings

from pydantic import field_validator
from pydantic_settings import BaseSettings, SettingsConfigDict
import os


class Settings(BaseSettings):
    """Application settings"""

    # App
    app_name: str = "Berry Analytics API"
    app_version: str = "1.0.0"
    environment: str = "production"
    debug: bool = False

    # Server
    host: str = "0.0.0.0"
    port: int = 5000
    cors_origin: str = "*"

    # BigQuery
    bigquery_project_id: str | None = None
    bigquery_dataset_id: str | None = None
    events_table_prefix: str = "events_"

    # Service account (shared with the Firebase project)
    firebase_client_email: str | None = None
    firebase_private_key: str | None = None

    model_config = SettingsConfigDict(
        # Use .env.local if it exists (for local dev), otherwise .env (for Docker)
        env_file=".env.local" if os.path.exists(".env.local") else ".env",
        case_sensitive=False,
        extra="ignore"
    )

    @field_validator("firebase_private_key")
    @classmethod
    def unescape_private_key(cls, v: str | None) -> str | None:
        # Keys pasted into .env files usually carry literal "\n" sequences
        if v is None:
            return v
        return v.replace("\\n", "\n")

    @property
    def is_development(self) -> bool:
        return self.environment.lower() == "development"

    @property
    def cors_origins(self) -> list[str]:
        return [origin.strip() for origin in self.cors_origin.split(",") if origin.strip()]


settings = Settings()
