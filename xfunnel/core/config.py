from pydantic_settings import BaseSettings, SettingsConfigDict


class Settings(BaseSettings):
    model_config = SettingsConfigDict(env_file=".env", env_file_encoding="utf-8", extra="ignore")

    # PostgreSQL (Supabase-hosted response_analysis table)
    postgres_host: str = "localhost"
    postgres_port: int = 5432
    postgres_user: str = "xfunnel"
    postgres_password: str = "changeme"
    postgres_db: str = "xfunnel"

    @property
    def postgres_url(self) -> str:
        return (
            f"postgresql+asyncpg://{self.postgres_user}:{self.postgres_password}"
            f"@{self.postgres_host}:{self.postgres_port}/{self.postgres_db}"
        )

    # App
    app_env: str = "development"
    app_debug: bool = True
    app_host: str = "0.0.0.0"
    app_port: int = 8000

    # CORS
    allowed_origins: str = "*"  # comma-separated, e.g. "https://app.xfunnel.ai,https://admin.xfunnel.ai"

    # Aggregation
    report_timezone: str = "UTC"  # calendar used for week/month buckets and batch labels
    top_competitors: int = 5  # competitors shown next to the analyzed company before "Rest"
    default_granularity: str = "batch"  # batch | week | month

    # Logging
    log_level: str = "INFO"
    log_json: bool = False  # set True in production for structured JSON logs

    # Sentry
    sentry_dsn: str = ""  # leave empty to disable
    sentry_release: str = "xfunnel@1.0.0"
    sentry_traces_sample_rate: float | None = None  # None = 0.1 in production, 1.0 elsewhere


settings = Settings()


def validate_settings_for_production() -> None:
    """Validate critical settings. Called on startup in non-test environments."""
    from zoneinfo import ZoneInfo, ZoneInfoNotFoundError

    errors: list[str] = []

    try:
        ZoneInfo(settings.report_timezone)
    except (ZoneInfoNotFoundError, ValueError):
        errors.append(f"REPORT_TIMEZONE is not a known IANA timezone: {settings.report_timezone!r}")

    if settings.default_granularity not in ("batch", "week", "month"):
        errors.append("DEFAULT_GRANULARITY must be one of: batch, week, month")

    if settings.top_competitors < 1:
        errors.append("TOP_COMPETITORS must be at least 1")

    if settings.app_env == "production":
        if settings.allowed_origins == "*":
            errors.append("ALLOWED_ORIGINS must not be '*' in production")
        if settings.app_debug:
            errors.append("APP_DEBUG must be false in production")
        if settings.postgres_password in ("changeme", ""):
            errors.append("POSTGRES_PASSWORD must be set in production")

    if errors:
        raise SystemExit("Configuration errors:\n  - " + "\n  - ".join(errors))
