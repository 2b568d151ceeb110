"""Endpoint definition and endpoint test contract payloads."""

from typing import Any

from pydantic import AliasChoices, BaseModel, Field, field_validator, model_validator

from apihub.contracts.common import BodyContentType, HttpMethod


class ParameterSpec(BaseModel):
    """One declared query, body, or header parameter."""

    name: str = Field(min_length=1, max_length=255)
    type: str = "string"
    required: bool = False
    description: str | None = None
    enum_values: list[str] | None = None
    # Headers only: a static value sent on every call.
    value: str | None = None

    @model_validator(mode="after")
    def _enum_needs_values(self) -> "ParameterSpec":
        if self.type == "enum" and not self.enum_values:
            raise ValueError(f"Enum parameter '{self.name}' needs enum_values")
        return self


class EndpointResponse(BaseModel):
    id: str
    api_id: str
    method: str
    path: str
    description: str | None = None
    query_parameters: list[ParameterSpec] = Field(default_factory=list)
    body_parameters: list[ParameterSpec] = Field(default_factory=list)
    headers: list[ParameterSpec] = Field(default_factory=list)
    body_content_type: BodyContentType = BodyContentType.JSON
    auth_required: bool = False
    total_calls: int = 0
    error_count: int = 0
    created_at: str
    updated_at: str


class EndpointsListResponse(BaseModel):
    endpoints: list[EndpointResponse]
    total: int


class CreateEndpointRequest(BaseModel):
    """Request body to define an endpoint on an API."""

    method: HttpMethod
    path: str = Field(min_length=1, max_length=2048)
    description: str | None = None
    query_parameters: list[ParameterSpec] = Field(default_factory=list)
    body_parameters: list[ParameterSpec] = Field(default_factory=list)
    headers: list[ParameterSpec] = Field(default_factory=list)
    body_content_type: BodyContentType = BodyContentType.JSON
    auth_required: bool = False

    @field_validator("method", mode="before")
    @classmethod
    def _normalize_method(cls, value: object) -> object:
        if isinstance(value, str):
            return value.strip().upper()
        return value


_REQUIRED_ENDPOINT_FIELDS = frozenset(
    {
        "method",
        "path",
        "query_parameters",
        "body_parameters",
        "headers",
        "body_content_type",
        "auth_required",
    }
)


class UpdateEndpointRequest(BaseModel):
    """Typed patch for an endpoint. Only fields present in the payload are merged."""

    method: HttpMethod | None = None
    path: str | None = Field(default=None, min_length=1, max_length=2048)
    description: str | None = None
    query_parameters: list[ParameterSpec] | None = None
    body_parameters: list[ParameterSpec] | None = None
    headers: list[ParameterSpec] | None = None
    body_content_type: BodyContentType | None = None
    auth_required: bool | None = None

    @field_validator("method", mode="before")
    @classmethod
    def _normalize_method(cls, value: object) -> object:
        if isinstance(value, str):
            return value.strip().upper()
        return value

    @model_validator(mode="after")
    def _check_patch(self) -> "UpdateEndpointRequest":
        if not self.model_fields_set:
            raise ValueError("No fields provided to update")
        nulled = sorted(
            name
            for name in self.model_fields_set & _REQUIRED_ENDPOINT_FIELDS
            if getattr(self, name) is None
        )
        if nulled:
            raise ValueError(f"Fields cannot be null: {', '.join(nulled)}")
        return self

    def changes(self) -> dict[str, object]:
        """Explicitly provided fields, with parameter schemas as plain dicts."""
        return self.model_dump(mode="json", exclude_unset=True)


class HeaderValue(BaseModel):
    name: str = Field(min_length=1)
    value: str


class EndpointTestParameters(BaseModel):
    # Browser clients send camelCase keys.
    query_params: dict[str, Any] = Field(
        default_factory=dict,
        validation_alias=AliasChoices("query_params", "queryParams"),
    )
    body_params: dict[str, Any] = Field(
        default_factory=dict,
        validation_alias=AliasChoices("body_params", "bodyParams"),
    )


class EndpointTestRequest(BaseModel):
    """Caller-supplied request description for a live endpoint test."""

    parameters: EndpointTestParameters = Field(default_factory=EndpointTestParameters)
    headers: list[HeaderValue] = Field(default_factory=list)

    @field_validator("headers", mode="before")
    @classmethod
    def _headers_from_mapping(cls, value: object) -> object:
        # Accept {"Name": "value"} as well as [{"name": ..., "value": ...}].
        if isinstance(value, dict):
            return [{"name": k, "value": str(v)} for k, v in value.items()]
        return value


class EndpointTestResponse(BaseModel):
    success: bool
    status: int
    data: Any = None
    headers: dict[str, str] = Field(default_factory=dict)
    latency_ms: float | None = None
    error: str | None = None


__all__ = [
    "CreateEndpointRequest",
    "EndpointResponse",
    "EndpointsListResponse",
    "HeaderValue",
    "ParameterSpec",
    "EndpointTestRequest",
    "EndpointTestResponse",
    "EndpointTestParameters",
    "UpdateEndpointRequest",
]
