from functools import lru_cache
import json

from pydantic_settings import BaseSettings, SettingsConfigDict


def parse_cors_origins(value: str) -> list[str]:
    if not value:
        return []

    parsed: list[str]
    raw = value.strip()
    if raw.startswith("["):
        try:
            items = json.loads(raw)
            parsed = [str(item).strip() for item in items if str(item).strip()]
        except (TypeError, ValueError):
            parsed = []
    else:
        parsed = [origin.strip() for origin in raw.split(",") if origin.strip()]

    # Preserve order and remove duplicates.
    return list(dict.fromkeys(parsed))


class Settings(BaseSettings):
    model_config = SettingsConfigDict(env_file=".env", case_sensitive=False, extra="ignore")

    app_name: str = "RechargeHub"
    environment: str = "development"
    api_v1_prefix: str = "/api/v1"

    # Security
    secret_key: str
    access_token_expire_minutes: int = 30
    jwt_algorithm: str = "HS256"

    # Database
    database_url: str
    db_pool_size: int = 5
    db_max_overflow: int = 5
    db_pool_timeout: int = 15
    db_pool_recycle: int = 1200
    db_pool_pre_ping: bool = True

    # Phone numbers are local 10-digit numbers; this calling code is stripped
    # when a caller submits the international form.
    country_calling_code: str = "225"

    # Orders
    orders_default_page_size: int = 10
    orders_max_page_size: int = 100
    orders_require_payment_to_complete: bool = True

    # Plans
    plans_cache_ttl_seconds: int = 60

    # Logging
    log_level: str = "INFO"
    log_json: bool = False

    # Rate limiting
    rate_limit_enabled: bool = True

    # CORS
    cors_origins: str = "http://localhost:5173,http://localhost:3000"
    auto_create_tables: bool = False


@lru_cache
def get_settings() -> Settings:
    return Settings()
