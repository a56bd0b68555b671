from pydantic_settings import BaseSettings, SettingsConfigDict


class Settings(BaseSettings):
    app_name: str = "nlpipe"
    environment: str = "development"
    host: str = "127.0.0.1"
    port: int = 8000
    log_level: str = "INFO"
    # Read-only tenant entity store (projects, contacts, wallets, categories)
    database_url: str = "sqlite:///./nlpipe.db"
    sqlite_timeout: int = 20  # SQLite connection timeout in seconds
    sqlite_check_same_thread: bool = False  # Store queries run on worker threads

    # Cache TTLs (seconds)
    default_cache_ttl_seconds: int = 300
    entity_cache_ttl_seconds: int = 30 * 60  # Per-(type, term, tenant) search results
    response_cache_ttl_seconds: int = 15 * 60  # Whole-answer memoization

    # Entity resolution defaults
    entity_min_confidence: float = 0.5
    entity_max_results: int = 5

    # Intent validation
    low_confidence_threshold: float = 0.5

    # Used to turn "today" / "this week" / ... into concrete dates when the
    # request does not carry its own timezone
    default_timezone: str = "UTC"

    model_config = SettingsConfigDict(
        env_file=".env",
        env_prefix="NLPIPE_",
        extra="ignore",  # Ignore extra environment variables that aren't in the Settings class
    )


settings = Settings()
