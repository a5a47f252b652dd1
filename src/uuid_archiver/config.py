import logging
import os
from dataclasses import dataclass
from functools import lru_cache

from .exceptions import ConfigurationError

logger = logging.getLogger(__name__)


@dataclass(frozen=True, slots=True)
class AppConfig:
    """Application configuration loaded from environment variables."""

    # --- Required Variables ---
    bucket_name: str
    service_name: str
    environment: str

    # --- Optional Variables ---
    queue_url: str | None
    api_key: str | None

    # --- Optional Variables with Defaults ---
    shard_prefix: str
    archive_prefix: str
    lookback_hours: int
    fetch_concurrency: int
    s3_operation_timeout_seconds: int
    log_level: str

    @classmethod
    def load_from_env(cls) -> "AppConfig":
        """
        Loads configuration from environment variables, performing validation and type casting.
        Fails fast with a ConfigurationError if anything is invalid.
        """
        try:
            # --- Handle required string variables ---
            bucket_name = os.environ["BUCKET_NAME"]
            service_name = os.environ["SERVICE_NAME"]
            environment = os.environ["ENVIRONMENT"]

            # --- Handle optional secrets and endpoints ---
            queue_url = os.getenv("QUEUE_URL") or None
            api_key = os.getenv("API_KEY") or None

            # --- Handle storage layout ---
            shard_prefix = os.getenv("SHARD_PREFIX", "shards").strip("/")
            archive_prefix = os.getenv("ARCHIVE_PREFIX", "archive").strip("/")
            if not shard_prefix or not archive_prefix:
                raise ValueError("SHARD_PREFIX and ARCHIVE_PREFIX must not be empty.")
            if shard_prefix == archive_prefix:
                raise ValueError("SHARD_PREFIX and ARCHIVE_PREFIX must differ.")

            # --- Handle numeric variables with validation ---
            lookback_hours = int(os.getenv("LOOKBACK_HOURS", "2"))
            if lookback_hours <= 0:
                raise ValueError("LOOKBACK_HOURS must be a positive integer.")

            fetch_concurrency = int(os.getenv("FETCH_CONCURRENCY", "8"))
            if fetch_concurrency <= 0:
                raise ValueError("FETCH_CONCURRENCY must be a positive integer.")

            s3_operation_timeout_seconds = int(
                os.getenv("S3_OPERATION_TIMEOUT_SECONDS", "30")
            )
            if s3_operation_timeout_seconds <= 0:
                raise ValueError(
                    "S3_OPERATION_TIMEOUT_SECONDS must be a positive integer."
                )

            # --- Handle special-case variables like log level ---
            log_level = os.getenv("LOG_LEVEL", "INFO").upper()
            allowed_log_levels = ["DEBUG", "INFO", "WARNING", "ERROR", "CRITICAL"]
            if log_level not in allowed_log_levels:
                raise ValueError(
                    f"LOG_LEVEL must be one of {allowed_log_levels}, not '{log_level}'"
                )

        except KeyError as e:
            raise ConfigurationError(
                f"Missing required environment variable: {e.args[0]}"
            ) from e
        except (ValueError, TypeError) as e:
            raise ConfigurationError(
                f"Invalid value for an environment variable: {e}"
            ) from e

        return cls(
            bucket_name=bucket_name,
            service_name=service_name,
            environment=environment,
            queue_url=queue_url,
            api_key=api_key,
            shard_prefix=shard_prefix,
            archive_prefix=archive_prefix,
            lookback_hours=lookback_hours,
            fetch_concurrency=fetch_concurrency,
            s3_operation_timeout_seconds=s3_operation_timeout_seconds,
            log_level=log_level,
        )

    def require_queue_url(self) -> str:
        if not self.queue_url:
            raise ConfigurationError("QUEUE_URL must be set to accept records.")
        return self.queue_url


# --- Singleton Factory Function (Lazy-loaded and Cached) ---
@lru_cache(maxsize=1)
def get_config() -> AppConfig:
    """
    Loads the application configuration from environment variables.
    The result is cached using lru_cache, so the environment is only read once
    on the first call. This avoids import-time side effects.
    """
    logger.info("Loading application configuration from environment...")
    return AppConfig.load_from_env()
