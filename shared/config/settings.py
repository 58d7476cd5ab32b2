import os
from dataclasses import dataclass, field

from dotenv import load_dotenv

load_dotenv()


def _env_bool(name: str, default: bool) -> bool:
    value = os.getenv(name)
    if value is None:
        return default
    return value.strip().lower() in ("1", "true", "yes", "on")


def _database_url() -> str:
    url = os.getenv("DATABASE_URL")
    if url:
        return url
    user = os.getenv("POSTGRES_USER", "postgres")
    password = os.getenv("POSTGRES_PASSWORD", "postgres")
    host = os.getenv("POSTGRES_HOST", "localhost")  # 'postgres' inside docker-compose
    port = os.getenv("POSTGRES_PORT", "5432")
    name = os.getenv("POSTGRES_DB", "erp")
    return f"postgresql+asyncpg://{user}:{password}@{host}:{port}/{name}"


@dataclass(frozen=True)
class Settings:
    database_url: str = field(default_factory=_database_url)
    sql_echo: bool = field(default_factory=lambda: _env_bool("SQL_ECHO", False))

    jwt_secret_key: str = field(default_factory=lambda: os.getenv("JWT_SECRET_KEY", ""))
    jwt_algorithm: str = field(default_factory=lambda: os.getenv("JWT_ALGORITHM", "HS256"))
    access_token_expire_minutes: int = field(
        default_factory=lambda: int(os.getenv("ACCESS_TOKEN_EXPIRE_MINUTES", "1440"))
    )
    allow_admin_signup: bool = field(default_factory=lambda: _env_bool("ALLOW_ADMIN_SIGNUP", False))

    stripe_secret_key: str = field(default_factory=lambda: os.getenv("STRIPE_SECRET_KEY", ""))
    stripe_api_base: str = field(
        default_factory=lambda: os.getenv("STRIPE_API_BASE", "https://api.stripe.com")
    )
    gateway_timeout_seconds: float = field(
        default_factory=lambda: float(os.getenv("GATEWAY_TIMEOUT_SECONDS", "30"))
    )
    allow_partial_payments: bool = field(
        default_factory=lambda: _env_bool("ALLOW_PARTIAL_PAYMENTS", False)
    )

    otel_enabled: bool = field(default_factory=lambda: _env_bool("OTEL_ENABLED", True))
    otlp_endpoint: str = field(
        default_factory=lambda: os.getenv("OTLP_ENDPOINT", "http://localhost:4317")
    )
    log_level: str = field(default_factory=lambda: os.getenv("LOG_LEVEL", "INFO").upper())

    rate_limit_enabled: bool = field(default_factory=lambda: _env_bool("RATE_LIMIT_ENABLED", True))
    auth_rate_limit: str = field(default_factory=lambda: os.getenv("AUTH_RATE_LIMIT", "10/minute"))

    cors_origins: list[str] = field(
        default_factory=lambda: [
            origin.strip()
            for origin in os.getenv(
                "CORS_ORIGINS",
                "http://localhost:3000,http://localhost:5173,http://localhost:4200",
            ).split(",")
            if origin.strip()
        ]
    )


settings = Settings()
