from __future__ import annotations

import os
from pathlib import Path

from pydantic import Field, SecretStr
from pydantic_settings import BaseSettings, SettingsConfigDict


class Settings(BaseSettings):
    """Unified application settings for Telecare.

    Loads from env with support for repo ".env" files. Avoids manual load_dotenv().
    """

    _app_env = (os.getenv("APP_ENV") or "").strip().lower()
    _env_files = (
        []
        if _app_env in {"test", "ci"}
        else [
            str((Path(__file__).resolve().parents[1] / ".env")),  # apps/telecare/.env
            str((Path(__file__).resolve().parents[3] / ".env")),  # repo root .env
        ]
    )

    # Load env vars from apps/telecare/.env first, then repo root .env
    model_config = SettingsConfigDict(
        env_file=_env_files,
        case_sensitive=False,
        extra="ignore",
    )

    # --- App / Core ---
    app_env: str = Field(default="dev", alias="APP_ENV")
    app_name: str = Field(default="Telecare API", alias="APP_NAME")
    debug: bool = Field(default=False, alias="DEBUG")

    cors_allow_origins: list[str] = Field(
        default=["http://localhost:5173"], alias="CORS_ALLOW_ORIGINS"
    )

    # --- MongoDB ---
    mongo_uri: str = Field(default="mongodb://localhost:27017", alias="MONGO_URI")
    mongo_database: str = Field(default="telecare", alias="MONGO_DATABASE")
    mongo_app_name: str = Field(default="telecare", alias="MONGO_APP_NAME")
    mongo_server_selection_timeout_ms: int = Field(
        default=5000, alias="MONGO_SERVER_SELECTION_TIMEOUT_MS", ge=100
    )

    conversations_collection: str = Field(
        default="conversations", alias="CONVERSATIONS_COLLECTION"
    )
    messages_collection: str = Field(default="messages", alias="MESSAGES_COLLECTION")
    chats_collection: str = Field(default="chats", alias="CHATS_COLLECTION")
    reports_collection: str = Field(default="reports", alias="REPORTS_COLLECTION")
    users_collection: str = Field(default="users", alias="USERS_COLLECTION")

    # --- Gemini (credential slots are tried in order) ---
    gemini_api_key_1: SecretStr | None = Field(default=None, alias="GEMINI_API_KEY_1")
    gemini_api_key_2: SecretStr | None = Field(default=None, alias="GEMINI_API_KEY_2")
    gemini_api_key_3: SecretStr | None = Field(default=None, alias="GEMINI_API_KEY_3")
    gemini_model: str = Field(default="gemini-flash-latest", alias="GEMINI_MODEL")

    llm_max_attempts_per_key: int = Field(
        default=3, alias="LLM_MAX_ATTEMPTS_PER_KEY", ge=1, le=10
    )
    llm_backoff_seconds: float = Field(default=1.0, alias="LLM_BACKOFF_SECONDS", ge=0)
    llm_timeout_seconds: float = Field(default=60.0, alias="LLM_TIMEOUT_SECONDS", gt=0)

    # --- Cloudinary ---
    cloudinary_cloud_name: str | None = Field(default=None, alias="CLOUDINARY_CLOUD_NAME")
    cloudinary_api_key: str | None = Field(default=None, alias="CLOUDINARY_API_KEY")
    cloudinary_api_secret: SecretStr | None = Field(default=None, alias="CLOUDINARY_API_SECRET")
    cloudinary_folder: str = Field(default="PDF-DOCS-IMGS", alias="CLOUDINARY_FOLDER")

    shared_file_download_timeout: float = Field(
        default=30.0, alias="SHARED_FILE_DOWNLOAD_TIMEOUT", gt=0
    )

    # --- Realtime ---
    ws_send_timeout_seconds: float = Field(default=5.0, alias="WS_SEND_TIMEOUT_SECONDS", gt=0)

    @property
    def gemini_api_keys(self) -> list[str]:
        keys: list[str] = []
        for slot in (self.gemini_api_key_1, self.gemini_api_key_2, self.gemini_api_key_3):
            if slot is None:
                continue
            value = slot.get_secret_value().strip()
            if value:
                keys.append(value)
        return keys


settings = Settings()
