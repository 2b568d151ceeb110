"""Shared contract enums and aliases."""

from enum import StrEnum
from typing import Literal

HttpMethod = Literal["GET", "POST", "PUT", "PATCH", "DELETE", "HEAD", "OPTIONS"]


class Visibility(StrEnum):
    PUBLIC = "public"
    PRIVATE = "private"


class ProviderAuthType(StrEnum):
    API_KEY = "apiKey"
    OAUTH2 = "oauth2"
    NONE = "none"


class ProviderAuthLocation(StrEnum):
    HEADER = "header"
    QUERY = "query"


class BodyContentType(StrEnum):
    JSON = "json"
    FORM_DATA = "form-data"


class ApiSort(StrEnum):
    VIEWS = "views"
    CREATED_AT = "createdAt"


__all__ = [
    "ApiSort",
    "BodyContentType",
    "HttpMethod",
    "ProviderAuthLocation",
    "ProviderAuthType",
    "Visibility",
]
