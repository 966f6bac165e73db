"""Engine settings via pydantic-settings."""

from functools import lru_cache

from pydantic_settings import BaseSettings, SettingsConfigDict


class Settings(BaseSettings):
    """Engine configuration loaded from environment variables with FARMLEDGER_ prefix."""

    model_config = SettingsConfigDict(
        env_prefix="FARMLEDGER_",
        env_file=".env",
        case_sensitive=False,
    )

    # --- Core ---
    app_version: str = "0.1.0"
    environment: str = "development"
    database_url: str = "sqlite+aiosqlite:///./farmledger.db"
    database_echo: bool = False
    log_level: str = "INFO"
    log_format: str = "json"

    # --- Sessions ---
    session_ttl_seconds: int = 7 * 24 * 60 * 60  # 7 days
    session_token_bytes: int = 48

    # --- Credentials ---
    username_min_length: int = 3
    username_max_length: int = 50
    password_min_length: int = 6
    password_max_length: int = 128
    argon2_time_cost: int = 2
    argon2_memory_cost: int = 65536  # 64 MB
    argon2_parallelism: int = 1

    # --- Leaderboards ---
    leaderboard_default_limit: int = 10
    leaderboard_max_limit: int = 100
    leaderboard_summary_limit: int = 5

    # --- New account defaults ---
    default_farm_level: int = 1
    default_total_coins: int = 100


@lru_cache
def get_settings() -> Settings:
    """Get cached engine settings."""
    return Settings()
