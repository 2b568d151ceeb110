"""SQLAlchemy models for apihub persistence."""

import uuid
from datetime import UTC, datetime
from typing import Any

from sqlalchemy import (
    JSON,
    Boolean,
    DateTime,
    Float,
    ForeignKey,
    Index,
    Integer,
    String,
    Text,
    UniqueConstraint,
)
from sqlalchemy.orm import DeclarativeBase, Mapped, mapped_column, relationship


class Base(DeclarativeBase):
    """Base class for all models."""

    id: Mapped[str] = mapped_column(
        String(36), primary_key=True, default=lambda: str(uuid.uuid4())
    )
    created_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True),
        nullable=False,
        default=lambda: datetime.now(UTC),
    )
    updated_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True),
        nullable=False,
        default=lambda: datetime.now(UTC),
        onupdate=lambda: datetime.now(UTC),
    )


class Api(Base):
    """
    A third-party API registered by its owner.

    The provider credential is stored only as an AES-GCM token produced by
    ``apihub.crypto.encrypt_secret``.
    """

    __tablename__ = "apis"

    owner_id: Mapped[str] = mapped_column(String(64), nullable=False)
    name: Mapped[str] = mapped_column(String(255), nullable=False)
    description: Mapped[str | None] = mapped_column(Text, nullable=True)
    category: Mapped[str] = mapped_column(String(100), nullable=False)
    base_url: Mapped[str] = mapped_column(String(2048), nullable=False)
    logo: Mapped[str | None] = mapped_column(String(2048), nullable=True)

    # public or private
    visibility: Mapped[str] = mapped_column(String(20), nullable=False, default="public")
    requires_api_key: Mapped[bool] = mapped_column(Boolean, nullable=False, default=False)

    # Provider auth descriptor: apiKey, oauth2, none
    provider_auth_type: Mapped[str | None] = mapped_column(String(20), nullable=True)
    provider_auth_location: Mapped[str | None] = mapped_column(String(20), nullable=True)
    provider_auth_field: Mapped[str | None] = mapped_column(String(255), nullable=True)
    provider_auth_key: Mapped[str | None] = mapped_column(Text, nullable=True)

    total_views: Mapped[int] = mapped_column(Integer, nullable=False, default=0)

    __table_args__ = (
        Index("ix_apis_owner_id", "owner_id"),
        Index("ix_apis_visibility_category", "visibility", "category"),
        Index("ix_apis_created_at", "created_at"),
    )

    def __repr__(self) -> str:
        return f"<Api(id={self.id!r}, name={self.name!r}, owner_id={self.owner_id!r})>"

    @property
    def has_provider_key(self) -> bool:
        return bool(self.provider_auth_key)


class Endpoint(Base):
    """
    One operation (method + path template) exposed by an API.

    ``total_calls`` and ``error_count`` are only ever changed through
    single-statement increments by the stats aggregator.
    """

    __tablename__ = "endpoints"

    api_id: Mapped[str] = mapped_column(
        String(36), ForeignKey("apis.id", ondelete="CASCADE"), nullable=False
    )
    method: Mapped[str] = mapped_column(String(10), nullable=False)
    path: Mapped[str] = mapped_column(String(2048), nullable=False)
    description: Mapped[str | None] = mapped_column(Text, nullable=True)

    # Ordered parameter schemas: [{name, type, required, enum_values, value}]
    query_parameters: Mapped[list[dict[str, Any]]] = mapped_column(JSON, default=list)
    body_parameters: Mapped[list[dict[str, Any]]] = mapped_column(JSON, default=list)
    headers: Mapped[list[dict[str, Any]]] = mapped_column(JSON, default=list)

    # json or form-data
    body_content_type: Mapped[str] = mapped_column(
        String(20), nullable=False, default="json"
    )
    auth_required: Mapped[bool] = mapped_column(Boolean, nullable=False, default=False)

    total_calls: Mapped[int] = mapped_column(Integer, nullable=False, default=0)
    error_count: Mapped[int] = mapped_column(Integer, nullable=False, default=0)

    api: Mapped["Api"] = relationship("Api", lazy="joined")

    __table_args__ = (Index("ix_endpoints_api_id", "api_id"),)

    def __repr__(self) -> str:
        return (
            f"<Endpoint(id={self.id!r}, method={self.method!r}, path={self.path!r})>"
        )


class ApiKey(Base):
    """Consumer credential issued per (API, user) pair. Only the hash is stored."""

    __tablename__ = "api_keys"

    api_id: Mapped[str] = mapped_column(
        String(36), ForeignKey("apis.id", ondelete="CASCADE"), nullable=False
    )
    user_id: Mapped[str] = mapped_column(String(64), nullable=False)
    key_hash: Mapped[str] = mapped_column(String(64), nullable=False)
    key_prefix: Mapped[str] = mapped_column(String(16), nullable=False)
    is_active: Mapped[bool] = mapped_column(Boolean, nullable=False, default=True)
    last_used_at: Mapped[datetime | None] = mapped_column(
        DateTime(timezone=True), nullable=True
    )

    __table_args__ = (
        UniqueConstraint("api_id", "user_id", name="uq_api_keys_api_user"),
        Index("ix_api_keys_key_hash", "key_hash"),
    )

    def __repr__(self) -> str:
        return (
            f"<ApiKey(id={self.id!r}, api_id={self.api_id!r}, "
            f"prefix={self.key_prefix!r})>"
        )


class EndpointLog(Base):
    """Immutable record of one executed test call."""

    __tablename__ = "endpoint_logs"

    endpoint_id: Mapped[str] = mapped_column(
        String(36), ForeignKey("endpoints.id", ondelete="CASCADE"), nullable=False
    )
    user_id: Mapped[str | None] = mapped_column(String(64), nullable=True)
    success: Mapped[bool] = mapped_column(Boolean, nullable=False)
    latency: Mapped[float] = mapped_column(Float, nullable=False)
    error_message: Mapped[str | None] = mapped_column(Text, nullable=True)

    __table_args__ = (
        Index("ix_endpoint_logs_endpoint_created", "endpoint_id", "created_at"),
        Index("ix_endpoint_logs_user_id", "user_id"),
    )

    def __repr__(self) -> str:
        return (
            f"<EndpointLog(id={self.id!r}, endpoint_id={self.endpoint_id!r}, "
            f"success={self.success!r})>"
        )


class ApiLog(Base):
    """Rolling per-API aggregate. At most one row per API."""

    __tablename__ = "api_logs"

    api_id: Mapped[str] = mapped_column(
        String(36),
        ForeignKey("apis.id", ondelete="CASCADE"),
        nullable=False,
        unique=True,
    )
    total_calls: Mapped[int] = mapped_column(Integer, nullable=False, default=0)
    total_errors: Mapped[int] = mapped_column(Integer, nullable=False, default=0)
    average_latency: Mapped[float] = mapped_column(Float, nullable=False, default=0.0)

    def __repr__(self) -> str:
        return (
            f"<ApiLog(api_id={self.api_id!r}, total_calls={self.total_calls!r}, "
            f"average_latency={self.average_latency!r})>"
        )
