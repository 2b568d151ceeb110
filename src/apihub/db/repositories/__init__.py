from apihub.db.repositories.api_keys_repository import (
    ApiKeyRepository,
    generate_raw_key,
    hash_api_key,
)
from apihub.db.repositories.apis_repository import ApiRepository
from apihub.db.repositories.endpoints_repository import EndpointRepository
from apihub.db.repositories.logs_repository import (
    ApiLogRepository,
    EndpointLogRepository,
)

__all__ = [
    "ApiKeyRepository",
    "ApiLogRepository",
    "ApiRepository",
    "EndpointLogRepository",
    "EndpointRepository",
    "generate_raw_key",
    "hash_api_key",
]
