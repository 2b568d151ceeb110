"""Traffic and user analytics contract payloads."""

from pydantic import BaseModel, Field


class DailyTraffic(BaseModel):
    """One UTC calendar day of calls."""

    date: str
    calls: int
    errors: int
    latency: int


class TrafficAnalyticsResponse(BaseModel):
    total_calls: int = 0
    error_rate: float = 0.0
    average_latency: int = 0
    per_day: list[DailyTraffic] = Field(default_factory=list)


class DailyUsers(BaseModel):
    date: str
    active_users: int


class UserAnalyticsResponse(BaseModel):
    active_users: int = 0
    total_users: int = 0
    per_day: list[DailyUsers] = Field(default_factory=list)


__all__ = [
    "DailyTraffic",
    "DailyUsers",
    "TrafficAnalyticsResponse",
    "UserAnalyticsResponse",
]
