from functools import lru_cache

from pydantic_settings import BaseSettings, SettingsConfigDict


class Settings(BaseSettings):
    app_name: str = "campus-connect-api"
    environment: str = "dev"
    host: str = "0.0.0.0"
    port: int = 5000
    database_url: str | None = None
    database_pool_min_size: int = 1
    database_pool_max_size: int = 20
    database_command_timeout_seconds: float = 15.0
    shutdown_grace_seconds: float = 10.0
    pagination_default_limit: int = 10
    pagination_max_limit: int = 50
    batch_max_items: int = 500
    batch_results_detail_limit: int = 100
    cors_origins: list[str] = ["http://localhost:3000", "https://hoppscotch.io"]
    rate_limit_enabled: bool = True
    rate_limit_window_seconds: int = 900
    rate_limit_read_max: int = 300
    rate_limit_write_max: int = 20
    rate_limit_batch_window_seconds: int = 3600
    rate_limit_batch_max: int = 10
    otel_enabled: bool = True
    otel_service_name: str = "campus-connect-api"
    otel_exporter_otlp_endpoint: str | None = None
    otel_exporter_otlp_headers: str | None = None
    otel_trace_sample_ratio: float = 1.0

    model_config = SettingsConfigDict(env_prefix="CC_", extra="ignore")

    @property
    def is_development(self) -> bool:
        return self.environment == "dev"


@lru_cache
def get_settings() -> Settings:
    return Settings()
