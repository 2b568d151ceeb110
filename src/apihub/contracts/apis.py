"""API catalog contract payloads."""

from pydantic import BaseModel, Field, model_validator

from apihub.contracts.common import ProviderAuthLocation, ProviderAuthType, Visibility


class ApiStats(BaseModel):
    """Rolling call statistics for an API."""

    total_calls: int = 0
    total_errors: int = 0
    average_latency: float = 0.0


class ApiResponse(BaseModel):
    """API as returned to any reader. Never carries the provider key."""

    id: str
    owner_id: str
    name: str
    description: str | None = None
    category: str
    base_url: str
    logo: str | None = None
    visibility: Visibility
    requires_api_key: bool
    provider_auth_type: ProviderAuthType | None = None
    provider_auth_location: ProviderAuthLocation | None = None
    provider_auth_field: str | None = None
    has_provider_key: bool = False
    total_views: int = 0
    stats: ApiStats = Field(default_factory=ApiStats)
    created_at: str
    updated_at: str


class ApisListResponse(BaseModel):
    apis: list[ApiResponse]
    total: int
    page: int
    limit: int


class CreateApiRequest(BaseModel):
    """Request body to register an API."""

    name: str = Field(min_length=1, max_length=255)
    base_url: str = Field(min_length=1, max_length=2048)
    category: str = Field(min_length=1, max_length=100)
    description: str | None = None
    logo: str | None = Field(default=None, max_length=2048)
    visibility: Visibility = Visibility.PUBLIC
    requires_api_key: bool = False
    provider_auth_type: ProviderAuthType | None = None
    provider_auth_location: ProviderAuthLocation | None = None
    provider_auth_field: str | None = Field(default=None, max_length=255)
    # Plaintext on the wire only; encrypted before it reaches the store.
    provider_auth_key: str | None = Field(default=None, min_length=1)


class CreateApiResponse(BaseModel):
    api: ApiResponse
    # Raw owner key, present only when requires_api_key issued one.
    api_key: str | None = None


# Patch fields whose columns are NOT NULL; an explicit null is rejected.
_REQUIRED_API_FIELDS = frozenset(
    {"name", "base_url", "category", "visibility", "requires_api_key"}
)


class UpdateApiRequest(BaseModel):
    """Typed patch for an API. Only fields present in the payload are merged."""

    name: str | None = Field(default=None, min_length=1, max_length=255)
    base_url: str | None = Field(default=None, min_length=1, max_length=2048)
    category: str | None = Field(default=None, min_length=1, max_length=100)
    description: str | None = None
    logo: str | None = Field(default=None, max_length=2048)
    visibility: Visibility | None = None
    requires_api_key: bool | None = None
    provider_auth_type: ProviderAuthType | None = None
    provider_auth_location: ProviderAuthLocation | None = None
    provider_auth_field: str | None = Field(default=None, max_length=255)
    provider_auth_key: str | None = Field(default=None, min_length=1)

    @model_validator(mode="after")
    def _check_patch(self) -> "UpdateApiRequest":
        if not self.model_fields_set:
            raise ValueError("No fields provided to update")
        nulled = sorted(
            name
            for name in self.model_fields_set & _REQUIRED_API_FIELDS
            if getattr(self, name) is None
        )
        if nulled:
            raise ValueError(f"Fields cannot be null: {', '.join(nulled)}")
        return self

    def changes(self) -> dict[str, object]:
        """Explicitly provided fields, ready to merge onto the row."""
        return self.model_dump(exclude_unset=True)


__all__ = [
    "ApiResponse",
    "ApiStats",
    "ApisListResponse",
    "CreateApiRequest",
    "CreateApiResponse",
    "UpdateApiRequest",
]
