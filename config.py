from functools import lru_cache
from pathlib import Path

from pydantic_settings import BaseSettings, SettingsConfigDict


class Settings(BaseSettings):
    model_config = SettingsConfigDict(
        env_file=".env",
        env_file_encoding="utf-8",
        extra="ignore",
    )

    app_name: str = "Task Manager API"

    # Replace this with a strong, random string outside local development
    secret_key: str = "change-me-in-production"
    algorithm: str = "HS256"
    access_token_expire_minutes: int = 60 * 24 * 7
    bcrypt_rounds: int = 12

    # Origins of the front-end apps allowed to call the API
    cors_origins: list[str] = ["http://localhost:3000", "http://localhost:5173"]

    host: str = "127.0.0.1"
    port: int = 8000
    reload: bool = False

    log_level: str = "INFO"
    default_page_size: int = 10


class ClientSettings(BaseSettings):
    model_config = SettingsConfigDict(
        env_prefix="TASK_MANAGER_",
        env_file=".env",
        env_file_encoding="utf-8",
        extra="ignore",
    )

    api_url: str = "http://localhost:8000"
    storage_path: Path = Path.home() / ".task_manager" / "storage.json"
    page_size: int = 6


@lru_cache
def get_settings() -> Settings:
    return Settings()


@lru_cache
def get_client_settings() -> ClientSettings:
    return ClientSettings()
