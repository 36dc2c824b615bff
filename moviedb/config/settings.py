"""
Environment-based configuration loader
"""

import os
from typing import Optional

DEFAULT_JWT_SECRET = "super_secret_key"


def _env_bool(name: str, default: str) -> bool:
    return os.getenv(name, default).lower() in ("true", "1", "yes")


def parse_duration(value: str) -> int:
    """Parse a duration such as '3600', '3600s', '60m', '1h' or '7d' into seconds"""
    raw = (value or "").strip().lower()
    if not raw:
        raise ValueError("Duration is empty")

    multipliers = {"s": 1, "m": 60, "h": 3600, "d": 86400}
    unit = raw[-1]
    if unit in multipliers:
        number = raw[:-1]
    else:
        unit, number = "s", raw

    if not number.isdigit():
        raise ValueError(f"Invalid duration: {value!r}")
    return int(number) * multipliers[unit]


class Settings:
    """Configuration class using environment variables"""

    def __init__(self):
        # Environment
        self.environment = os.getenv("ENVIRONMENT", "development").lower()
        self.debug = _env_bool("DEBUG", "false")

        # API Configuration
        self.api_host = os.getenv("API_HOST", "0.0.0.0")
        self.api_port = int(os.getenv("PORT", os.getenv("API_PORT", "8080")))
        self.api_title = os.getenv("API_TITLE", "KIB Movie Database API")
        self.api_version = os.getenv("API_VERSION", "1.0.0")
        self.api_log_level = os.getenv("API_LOG_LEVEL", "info")
        self.api_reload = _env_bool("API_RELOAD", "false")
        self.cors_origins = [o.strip() for o in os.getenv("CORS_ORIGINS", "*").split(",") if o.strip()]

        # Database Configuration
        self.database_host = os.getenv("DATABASE_HOST", "postgres")
        self.database_port = int(os.getenv("DATABASE_PORT", "5432"))
        self.database_user = os.getenv("DATABASE_USER", "kib_user")
        self.database_password = os.getenv("DATABASE_PASSWORD", "kib_password")
        self.database_name = os.getenv("DATABASE_NAME", "kib_db")
        self.database_url = os.getenv(
            "DATABASE_URL",
            f"postgresql://{self.database_user}:{self.database_password}"
            f"@{self.database_host}:{self.database_port}/{self.database_name}",
        )
        self.db_pool_size = int(os.getenv("DB_POOL_SIZE", "5"))
        self.db_max_overflow = int(os.getenv("DB_MAX_OVERFLOW", "10"))
        self.db_echo = _env_bool("DB_ECHO", "false")

        # Cache Configuration
        self.redis_host = os.getenv("REDIS_HOST", "redis")
        self.redis_port = int(os.getenv("REDIS_PORT", "6379"))
        self.redis_db = int(os.getenv("REDIS_DB", "0"))
        self.redis_url = os.getenv("REDIS_URL", f"redis://{self.redis_host}:{self.redis_port}/{self.redis_db}")
        self.cache_enabled = _env_bool("CACHE_ENABLED", "true")
        self.cache_default_ttl = int(os.getenv("CACHE_DEFAULT_TTL", "60"))

        # TMDB Configuration
        self.tmdb_api_key = os.getenv("TMDB_API_KEY", "")
        self.tmdb_base_url = os.getenv("TMDB_BASE_URL", "https://api.themoviedb.org/3").rstrip("/")
        self.tmdb_timeout = float(os.getenv("TMDB_TIMEOUT", "10"))
        self.tmdb_max_retries = int(os.getenv("TMDB_MAX_RETRIES", "3"))
        self.tmdb_retry_delay = float(os.getenv("TMDB_RETRY_DELAY", "1.0"))

        # Security Configuration
        self.jwt_secret = os.getenv("JWT_SECRET", DEFAULT_JWT_SECRET)
        self.jwt_algorithm = os.getenv("JWT_ALGORITHM", "HS256")
        self.jwt_expiration = os.getenv("JWT_EXPIRATION", "3600s")

        # Sync Configuration
        self.sync_enabled = _env_bool("SYNC_ENABLED", "true")
        self.sync_on_startup = _env_bool("SYNC_ON_STARTUP", "true")
        self.sync_interval_seconds = int(os.getenv("SYNC_INTERVAL_SECONDS", "3600"))
        self.sync_initial_pages = int(os.getenv("SYNC_INITIAL_PAGES", "3"))
        self.sync_save_delay = float(os.getenv("SYNC_SAVE_DELAY", "0.1"))
        self.sync_batch_delay = float(os.getenv("SYNC_BATCH_DELAY", "0.25"))

        # Logging Configuration
        self.log_level = os.getenv("LOG_LEVEL", "INFO")
        self.log_format = os.getenv("LOG_FORMAT", "json")

        # Metrics Configuration
        self.metrics_enabled = _env_bool("METRICS_ENABLED", "true")

        # Pagination
        self.default_page_size = int(os.getenv("DEFAULT_PAGE_SIZE", "20"))
        self.max_page_size = int(os.getenv("MAX_PAGE_SIZE", "100"))

    @property
    def jwt_expiration_seconds(self) -> int:
        return parse_duration(self.jwt_expiration)

    def validate(self) -> None:
        """Validate configuration settings"""
        errors = []

        # Validate required settings for production
        if self.environment == "production":
            if not self.jwt_secret or self.jwt_secret == DEFAULT_JWT_SECRET:
                errors.append("JWT_SECRET is required for production environment")
            elif len(self.jwt_secret) < 32:
                errors.append("JWT_SECRET must be at least 32 characters long")

        # Validate numeric ranges
        if self.api_port < 1 or self.api_port > 65535:
            errors.append(f"PORT must be between 1 and 65535, got {self.api_port}")

        if self.default_page_size > self.max_page_size:
            errors.append(
                f"DEFAULT_PAGE_SIZE ({self.default_page_size}) cannot exceed MAX_PAGE_SIZE ({self.max_page_size})"
            )

        if self.tmdb_max_retries < 0:
            errors.append(f"TMDB_MAX_RETRIES must be non-negative, got {self.tmdb_max_retries}")

        if self.sync_interval_seconds <= 0:
            errors.append(f"SYNC_INTERVAL_SECONDS must be positive, got {self.sync_interval_seconds}")

        if self.cache_default_ttl <= 0:
            errors.append(f"CACHE_DEFAULT_TTL must be positive, got {self.cache_default_ttl}")

        if self.db_pool_size <= 0:
            errors.append(f"DB_POOL_SIZE must be positive, got {self.db_pool_size}")

        if self.jwt_algorithm not in ("HS256", "HS384", "HS512"):
            errors.append(f"JWT_ALGORITHM must be an HMAC algorithm, got {self.jwt_algorithm}")

        try:
            parse_duration(self.jwt_expiration)
        except ValueError as e:
            errors.append(f"JWT_EXPIRATION is invalid: {e}")

        if self.log_format.lower() not in ("json", "text"):
            errors.append(f"LOG_FORMAT must be 'json' or 'text', got {self.log_format}")

        if errors:
            raise ValueError("Configuration validation failed:\n" + "\n".join(errors))


def load_settings() -> Settings:
    """Load and validate settings"""
    settings = Settings()
    settings.validate()
    return settings


# Global settings instance
_settings: Optional[Settings] = None


def get_settings() -> Settings:
    """Get global settings instance"""
    global _settings
    if _settings is None:
        _settings = load_settings()
    return _settings