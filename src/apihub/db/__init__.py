"""Database module for apihub."""

from apihub.db.repositories import (
    ApiKeyRepository,
    ApiLogRepository,
    ApiRepository,
    EndpointLogRepository,
    EndpointRepository,
)
from apihub.db.session import REQUIRED_TABLES, Database
from apihub.db.tables import Api, ApiKey, ApiLog, Base, Endpoint, EndpointLog

__all__ = [
    # Models
    "Base",
    "Api",
    "ApiKey",
    "ApiLog",
    "Endpoint",
    "EndpointLog",
    # Database
    "Database",
    "REQUIRED_TABLES",
    # Repositories
    "ApiKeyRepository",
    "ApiLogRepository",
    "ApiRepository",
    "EndpointLogRepository",
    "EndpointRepository",
]
