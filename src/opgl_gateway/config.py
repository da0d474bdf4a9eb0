from pydantic_settings import BaseSettings, SettingsConfigDict


class Settings(BaseSettings):
    model_config = SettingsConfigDict(env_file=".env", extra="ignore")

    app_env: str = "local"
    app_host: str = "0.0.0.0"
    app_port: int = 8080
    log_level: str = "INFO"

    postgres_host: str = "postgres"
    postgres_port: int = 5432
    postgres_db: str = "opgl_gateway"
    postgres_user: str = "opgl"
    postgres_password: str = "opgl"

    # full SQLAlchemy URL, wins over the postgres_* fields when set
    database_url: str | None = None

    jwt_secret: str = "change-me"
    jwt_issuer: str = "opgl-gateway"
    jwt_access_ttl_seconds: int = 15 * 60
    jwt_refresh_ttl_seconds: int = 7 * 24 * 3600

    data_service_url: str = "http://localhost:8081"
    cortex_service_url: str = "http://localhost:8082"
    downstream_timeout_seconds: float = 10.0
    analysis_match_count: int = 20

    default_rate_limit: int = 100
    default_rate_window_seconds: int = 60
    counter_retention_windows: int = 2
    last_used_queue_size: int = 1000

    admin_token: str | None = None

    @property
    def postgres_dsn(self) -> str:
        # psycopg (v3) DSN
        return (
            f"postgresql+psycopg://{self.postgres_user}:{self.postgres_password}"
            f"@{self.postgres_host}:{self.postgres_port}/{self.postgres_db}"
        )

    @property
    def sqlalchemy_url(self) -> str:
        return self.database_url or self.postgres_dsn
