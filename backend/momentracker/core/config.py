from pathlib import Path
from zoneinfo import ZoneInfo, ZoneInfoNotFoundError

from pydantic import AliasChoices, Field, model_validator
from pydantic_settings import BaseSettings, SettingsConfigDict

from momentracker.domain.trending.dimensions import TWENTY_FOUR_HOURS, expected_samples

BASE_DIR = Path(__file__).resolve().parents[2]
ENV_FILE = BASE_DIR / ".env"

SECONDS_PER_DAY = int(TWENTY_FOUR_HOURS.total_seconds())


class Settings(BaseSettings):
    model_config = SettingsConfigDict(env_file=ENV_FILE, env_file_encoding="utf-8", extra="ignore")

    app_env: str = "dev"
    log_level: str = "INFO"

    finnhub_api_key: str | None = Field(
        default=None,
        validation_alias=AliasChoices("FINNHUB_API_KEY", "NEXT_PUBLIC_FINNHUB_API_KEY"),
    )
    finnhub_base_url: str = "https://finnhub.io/api/v1"
    finnhub_stream_url: str = "wss://ws.finnhub.io"
    stocktwits_base_url: str = "https://api.stocktwits.com/api/2"
    provider_timeout_seconds: float = 10.0

    trending_feed_limit: int = 30
    trending_poll_interval_seconds: int = 120
    trending_six_hour_min_avg_score: float = 50.0
    trending_twenty_four_hour_min_avg_score: float = 40.0
    trending_verify_current_membership: bool = False
    trending_collect_sentiment: bool = False
    trending_sentiment_min_messages: int = 10
    trending_snapshot_retention_days: int = 30

    quote_retention_days: int = 365
    resolve_max_concurrency: int = 8
    resolve_timeout_seconds: float = 15.0
    market_timezone: str = "America/New_York"

    live_stream_reconnect_delay_seconds: float = 3.0
    live_stream_refresh_interval_seconds: int = 60
    live_stream_redis_channel: str = "momentracker:live:prices"
    live_stream_max_symbols_per_connection: int = 100
    live_stream_queue_size: int = 512
    live_stream_latest_key: str = "momentracker:live:latest"
    live_stream_latest_ttl_seconds: int = 86_400

    postgres_db: str = "momentracker"
    postgres_user: str = "momentracker"
    postgres_password: str = "momentracker"
    postgres_host: str = "localhost"
    postgres_port: int = 5432

    redis_url: str = "redis://localhost:6379/0"

    cors_allow_origins: list[str] = ["http://localhost:3000", "http://127.0.0.1:3000"]

    @model_validator(mode="after")
    def _validate_runtime_limits(self) -> "Settings":
        try:
            ZoneInfo(self.market_timezone)
        except (ZoneInfoNotFoundError, ValueError) as exc:
            raise ValueError(f"MARKET_TIMEZONE is not a valid IANA zone: {self.market_timezone}") from exc

        if self.trending_poll_interval_seconds < 1 or self.trending_poll_interval_seconds > SECONDS_PER_DAY:
            raise ValueError("TRENDING_POLL_INTERVAL_SECONDS must be between 1 and 86400")
        if self.resolve_max_concurrency < 1:
            raise ValueError("RESOLVE_MAX_CONCURRENCY must be >= 1")
        if self.resolve_timeout_seconds <= 0 or self.provider_timeout_seconds <= 0:
            raise ValueError("provider and resolve timeouts must be positive")
        if self.live_stream_reconnect_delay_seconds <= 0:
            raise ValueError("LIVE_STREAM_RECONNECT_DELAY_SECONDS must be positive")
        return self

    @property
    def expected_daily_snapshots(self) -> int:
        return expected_samples(window=TWENTY_FOUR_HOURS, poll_interval_seconds=self.trending_poll_interval_seconds)

    @property
    def database_url(self) -> str:
        return (
            f"postgresql+psycopg://{self.postgres_user}:{self.postgres_password}"
            f"@{self.postgres_host}:{self.postgres_port}/{self.postgres_db}"
        )


settings = Settings()
