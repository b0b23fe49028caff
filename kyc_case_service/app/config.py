# Application Configuration using Pydantic BaseSettings
from pydantic_settings import BaseSettings
from typing import Optional

class AppSettings(BaseSettings):
    # Case / party store
    CASE_STORE_BACKEND: str = "mongo" # "mongo" or "memory"
    MONGO_DETAILS: str = "mongodb://mongo:27017"
    DB_NAME: str = "kyc_case_db"

    # Optimistic concurrency: re-read and re-apply on version conflicts
    VERSION_CONFLICT_MAX_RETRIES: int = 3
    VERSION_CONFLICT_BACKOFF_SECONDS: float = 0.05

    # Notification feed (Kafka)
    KAFKA_BOOTSTRAP_SERVERS: Optional[str] = "kafka:29092"
    NOTIFICATION_KAFKA_TOPIC: str = "kyc_case_notifications"
    NOTIFICATION_PUBLISH_RETRIES: int = 2

    # Identity provider. When unset, callers identify themselves with X-User-* headers.
    IDENTITY_SERVICE_URL: Optional[str] = None # e.g., http://auth:8080/api/v1
    DEFAULT_HTTP_TIMEOUT: float = 5.0

    # Observability
    LOG_LEVEL: str = "INFO"
    OTEL_EXPORTER_OTLP_TRACES_ENDPOINT: Optional[str] = None
    OTEL_EXPORTER_OTLP_METRICS_ENDPOINT: Optional[str] = None
    SERVICE_NAME_API: str = "kyc-case-api"

    model_config = {
        "env_file": ".env",
        "env_file_encoding": "utf-8",
        "extra": "ignore",
    }

# Instantiate settings to be imported by other modules
settings = AppSettings()

import logging
logger = logging.getLogger(__name__)
logger.info("Application settings module initialized.")
