"""Configuration system using pydantic-settings with environment variable loading."""

from decimal import Decimal
from typing import Literal

from pydantic_settings import BaseSettings, SettingsConfigDict


class ProviderSettings(BaseSettings):
    """Upstream provider connection, rate limit and retry settings."""

    model_config = SettingsConfigDict(env_prefix="PROVIDER_")

    timeout_seconds: float = 10.0
    user_agent: str = "Memecoin-Aggregator/1.0"
    sol_usd_price: Decimal = Decimal("130")  # reference rate for USD-only upstreams

    # Retry policy: 1s, 2s, 4s ... capped at 10s
    max_retries: int = 3
    retry_initial_delay: float = 1.0
    retry_max_delay: float = 10.0
    retry_backoff_factor: float = 2.0

    dexscreener_base_url: str = "https://api.dexscreener.com"
    dexscreener_rate_limit: int = 300  # requests per minute
    geckoterminal_base_url: str = "https://api.geckoterminal.com/api/v2"
    geckoterminal_rate_limit: int = 30
    jupiter_base_url: str = "https://api.jup.ag"
    jupiter_rate_limit: int = 600
    jupiter_timeout_seconds: float = 15.0


class CacheSettings(BaseSettings):
    """Cache backend and TTL settings."""

    model_config = SettingsConfigDict(env_prefix="CACHE_")

    backend: Literal["redis", "memory"] = "redis"
    redis_url: str = "redis://localhost:6379/0"
    prefix: str = "meme-coin:"
    ttl: int = 30  # seconds
    search_ttl: int = 60
    filter_universe_limit: int = 1000
    default_limit: int = 50


class DetectorSettings(BaseSettings):
    """Change detection thresholds and broadcast topic."""

    model_config = SettingsConfigDict(env_prefix="DETECTOR_")

    interval: float = 30.0
    snapshot_limit: int = 100
    price_change_threshold: Decimal = Decimal("0.05")  # 5% relative move
    volume_spike_ratio: Decimal = Decimal("1.5")
    topic: str = "token_updates"
    prune_missing: bool = False  # drop state for assets absent from the latest snapshot


class SchedulerSettings(BaseSettings):
    """Periodic job intervals."""

    model_config = SettingsConfigDict(env_prefix="SCHEDULER_")

    fetch_interval: float = 30.0
    cleanup_interval: float = 3600.0
    shutdown_timeout: float = 10.0


class ApiSettings(BaseSettings):
    """HTTP server configuration."""

    model_config = SettingsConfigDict(env_prefix="API_")

    host: str = "0.0.0.0"
    port: int = 3000
    enabled: bool = True
    cors_origins: list[str] = ["*"]

    # Per-client request limits (keyed by remote address)
    rate_limit_enabled: bool = True
    rate_limit_window: int = 60  # seconds
    rate_limit_max: int = 100  # /api/tokens and /api/tokens/filter
    search_rate_limit_window: int = 60
    search_rate_limit_max: int = 30


class AppSettings(BaseSettings):
    """Root application settings, composing all sub-settings."""

    model_config = SettingsConfigDict(
        env_file=".env",
        env_file_encoding="utf-8",
        env_nested_delimiter="__",
    )

    log_level: str = "INFO"
    log_format: Literal["console", "json"] = "console"  # LOG_FORMAT
    providers: ProviderSettings = ProviderSettings()
    cache: CacheSettings = CacheSettings()
    detector: DetectorSettings = DetectorSettings()
    scheduler: SchedulerSettings = SchedulerSettings()
    api: ApiSettings = ApiSettings()
