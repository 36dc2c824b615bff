"""
Configuration loader: .env files, validation and a printable summary
"""

import logging
import os
import sys
from contextlib import contextmanager
from typing import Any, Dict, Iterable, List, Optional

from . import settings as settings_module
from .settings import Settings

logger = logging.getLogger(__name__)

DEFAULT_ENV_FILES = [".env.local", ".env"]


class ConfigurationError(Exception):
    """Raised when the configuration cannot be loaded or does not validate"""

    def __init__(self, message: str, errors: Optional[List[str]] = None):
        self.message = message
        self.errors = errors or []
        super().__init__(self.message)


def read_env_file(path: str) -> Dict[str, str]:
    """
    Parse KEY=value lines. Blank lines and comments are skipped, an ``export``
    prefix is allowed, and values may be wrapped in single or double quotes.
    """
    values: Dict[str, str] = {}
    with open(path, "r") as f:
        for number, raw in enumerate(f, start=1):
            line = raw.strip()
            if not line or line.startswith("#"):
                continue
            if line.startswith("export "):
                line = line[len("export "):].lstrip()
            if "=" not in line:
                raise ConfigurationError(f"{path}:{number}: expected KEY=value")

            key, value = (part.strip() for part in line.split("=", 1))
            if len(value) >= 2 and value[0] == value[-1] and value[0] in "\"'":
                value = value[1:-1]
            elif " #" in value:
                value = value.split(" #", 1)[0].rstrip()
            values[key] = value
    return values


@contextmanager
def _environment(overrides: Dict[str, str]):
    """Temporarily apply values to os.environ"""
    previous = {key: os.environ.get(key) for key in overrides}
    os.environ.update(overrides)
    try:
        yield
    finally:
        for key, value in previous.items():
            if value is None:
                os.environ.pop(key, None)
            else:
                os.environ[key] = value


def _validation_errors(error: ValueError) -> List[str]:
    lines = str(error).splitlines()
    return [line for line in lines[1:] if line] or lines


class ConfigurationLoader:
    """Builds Settings from the process environment plus optional .env files"""

    def __init__(self, env_files: Optional[Iterable[str]] = None):
        # Earlier files win over later ones; neither overrides the real environment
        self.env_files = list(env_files) if env_files is not None else list(DEFAULT_ENV_FILES)
        self._settings: Optional[Settings] = None

    def collect_file_values(self) -> Dict[str, str]:
        """Values from the env files that are not already set in the environment"""
        collected: Dict[str, str] = {}
        for env_file in self.env_files:
            if not os.path.exists(env_file):
                continue
            if not os.access(env_file, os.R_OK):
                raise ConfigurationError(f"Environment file {env_file} exists but is not readable")

            try:
                values = read_env_file(env_file)
            except OSError as e:
                raise ConfigurationError(f"Failed to read environment file {env_file}: {e}")

            logger.info(f"Loading configuration from {env_file}")
            for key, value in values.items():
                if key not in collected and not os.getenv(key):
                    collected[key] = value
        return collected

    def load_settings(self, validate: bool = True) -> Settings:
        """
        Apply the env files to os.environ and build validated Settings

        Raises:
            ConfigurationError: a file is unreadable or malformed, or validation fails
        """
        file_values = self.collect_file_values()
        if not file_values:
            logger.info("No .env values applied, using environment variables and defaults")
        os.environ.update(file_values)

        settings = self._build(validate)
        self._settings = settings
        logger.info(f"Configuration loaded for environment: {settings.environment}")
        return settings

    @staticmethod
    def _build(validate: bool) -> Settings:
        try:
            settings = Settings()
            if validate:
                settings.validate()
        except ValueError as e:
            raise ConfigurationError(str(e), _validation_errors(e))
        return settings

    def get_settings(self) -> Optional[Settings]:
        return self._settings

    def validate_environment_file(self, env_file_path: str) -> Dict[str, Any]:
        """
        Check an environment file without changing the active environment

        Returns:
            Dict with ``valid``, ``errors``, ``warnings``, ``file_exists`` and ``file_readable``
        """
        result = {"valid": False, "errors": [], "warnings": [], "file_exists": False, "file_readable": False}

        values: Dict[str, str] = {}
        if not os.path.exists(env_file_path):
            result["warnings"].append(f"Environment file {env_file_path} does not exist")
        elif not os.access(env_file_path, os.R_OK):
            result["file_exists"] = True
            result["errors"].append(f"File {env_file_path} is not readable")
            return result
        else:
            result["file_exists"] = result["file_readable"] = True
            try:
                values = read_env_file(env_file_path)
            except ConfigurationError as e:
                result["errors"].append(e.message)
                return result

        shadowed = sorted(key for key in values if os.getenv(key))
        if shadowed:
            result["warnings"].append(f"Overridden by the process environment: {', '.join(shadowed)}")

        with _environment({k: v for k, v in values.items() if k not in shadowed}):
            try:
                settings = self._build(validate=True)
            except ConfigurationError as e:
                result["errors"].extend(e.errors or [e.message])
                return result

        result["valid"] = True
        if not settings.tmdb_api_key:
            result["warnings"].append("TMDB_API_KEY is not set; TMDB sync is disabled")
        if settings.environment == "production":
            if settings.debug:
                result["warnings"].append("Debug mode is enabled in production")
            if settings.api_reload:
                result["warnings"].append("API reload is enabled in production")
            if not settings.cache_enabled:
                result["warnings"].append("Redis cache is disabled in production")
        return result


def load_configuration(
    env_files: Optional[Iterable[str]] = None, validate: bool = True, exit_on_error: bool = True
) -> Settings:
    """
    Load configuration and install it as the global settings

    Args:
        env_files: Paths to environment files, defaults to .env.local and .env
        validate: Whether to perform validation
        exit_on_error: Exit the process instead of raising ConfigurationError
    """
    try:
        settings = ConfigurationLoader(env_files).load_settings(validate=validate)
    except ConfigurationError as e:
        logger.error(f"Configuration error: {e.message.splitlines()[0]}")
        for error in e.errors:
            logger.error(f"  {error}")

        if exit_on_error:
            logger.error("Exiting due to configuration errors")
            sys.exit(1)
        raise

    settings_module._settings = settings
    return settings


def get_configuration_summary(settings: Settings) -> str:
    """Human-readable configuration overview; secrets are reported only as configured or not"""
    sections = {
        "API": [
            ("Host", settings.api_host),
            ("Port", settings.api_port),
            ("Log Level", settings.api_log_level),
            ("Reload", settings.api_reload),
            ("CORS Origins", ", ".join(settings.cors_origins)),
        ],
        "Auth": [
            ("Algorithm", settings.jwt_algorithm),
            ("Token Lifetime Seconds", settings.jwt_expiration_seconds),
            ("Secret Configured", settings.jwt_secret != settings_module.DEFAULT_JWT_SECRET),
        ],
        "TMDB": [
            ("Base URL", settings.tmdb_base_url),
            ("API Key Configured", bool(settings.tmdb_api_key)),
            ("Max Retries", settings.tmdb_max_retries),
        ],
        "Sync": [
            ("Enabled", settings.sync_enabled),
            ("On Startup", settings.sync_on_startup),
            ("Interval Seconds", settings.sync_interval_seconds),
        ],
        "Cache": [
            ("Enabled", settings.cache_enabled),
            ("Redis", f"{settings.redis_host}:{settings.redis_port}/{settings.redis_db}"),
            ("Default TTL", settings.cache_default_ttl),
        ],
        "Database": [
            ("Pool Size", settings.db_pool_size),
            ("Max Overflow", settings.db_max_overflow),
            ("Echo", settings.db_echo),
        ],
        "Monitoring": [
            ("Metrics Enabled", settings.metrics_enabled),
            ("Log Format", settings.log_format),
        ],
    }

    lines = [f"Environment: {settings.environment}", f"Debug Mode: {settings.debug}"]
    for title, entries in sections.items():
        lines.append("")
        lines.append(f"{title} Configuration:")
        lines.extend(f"  {label}: {value}" for label, value in entries)
    return "\n".join(lines)
