"""Request and response payloads exposed by the HTTP API."""

from apihub.contracts.analytics import (
    DailyTraffic,
    DailyUsers,
    TrafficAnalyticsResponse,
    UserAnalyticsResponse,
)
from apihub.contracts.api_keys import (
    ApiKeyResponse,
    ApiKeysListResponse,
    IssuedApiKeyResponse,
    UpdateApiKeyRequest,
)
from apihub.contracts.apis import (
    ApiResponse,
    ApiStats,
    ApisListResponse,
    CreateApiRequest,
    CreateApiResponse,
    UpdateApiRequest,
)
from apihub.contracts.common import (
    ApiSort,
    BodyContentType,
    HttpMethod,
    ProviderAuthLocation,
    ProviderAuthType,
    Visibility,
)
from apihub.contracts.endpoints import (
    CreateEndpointRequest,
    EndpointResponse,
    EndpointsListResponse,
    EndpointTestParameters,
    EndpointTestRequest,
    EndpointTestResponse,
    HeaderValue,
    ParameterSpec,
    UpdateEndpointRequest,
)
from apihub.contracts.health import DependencyHealth, HealthResponse, ReadinessResponse

__all__ = [
    # Analytics
    "DailyTraffic",
    "DailyUsers",
    "TrafficAnalyticsResponse",
    "UserAnalyticsResponse",
    # API keys
    "ApiKeyResponse",
    "ApiKeysListResponse",
    "IssuedApiKeyResponse",
    "UpdateApiKeyRequest",
    # APIs
    "ApiResponse",
    "ApiStats",
    "ApisListResponse",
    "CreateApiRequest",
    "CreateApiResponse",
    "UpdateApiRequest",
    # Common
    "ApiSort",
    "BodyContentType",
    "HttpMethod",
    "ProviderAuthLocation",
    "ProviderAuthType",
    "Visibility",
    # Endpoints
    "CreateEndpointRequest",
    "EndpointResponse",
    "EndpointsListResponse",
    "EndpointTestParameters",
    "EndpointTestRequest",
    "EndpointTestResponse",
    "HeaderValue",
    "ParameterSpec",
    "UpdateEndpointRequest",
    # Health
    "DependencyHealth",
    "HealthResponse",
    "ReadinessResponse",
]
