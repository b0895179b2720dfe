"""Application configuration loaded from environment variables."""

from functools import lru_cache

from pydantic_settings import BaseSettings


class Settings(BaseSettings):
    """All configuration is loaded from environment variables (or .env file)."""

    # --- App ---
    app_name: str = "glucosync"
    app_version: str = "0.1.0"
    debug: bool = False
    log_level: str = "INFO"
    environment: str = "development"  # development | staging | production

    # --- Care-plan store ---
    database_url: str | None = None  # unset → in-memory care-plan store
    db_pool_min_size: int = 2
    db_pool_max_size: int = 10

    # --- Vital-signs platform (in-memory) ---
    vital_signs_available: bool = True
    auto_grant_access: bool = True  # decision applied on the first access request

    # --- Sync ---
    sync_config_path: str | None = None  # override for the bundled sync_config.yaml
    enable_scheduler: bool = True

    model_config = {"env_file": ".env", "env_file_encoding": "utf-8"}


@lru_cache
def get_settings() -> Settings:
    return Settings()
