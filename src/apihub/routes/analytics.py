"""Traffic and user analytics routes."""

from fastapi import APIRouter, Depends, Query

from apihub.auth import get_caller_id
from apihub.config import get_settings
from apihub.contracts import TrafficAnalyticsResponse, UserAnalyticsResponse
from apihub.db.session import Database
from apihub.errors import ApiHubError, to_http_exception
from apihub.routes.apis_utils import load_visible_api
from apihub.routes.depends import get_analytics_reader, require_database
from apihub.services import AnalyticsReader

router = APIRouter(prefix="/apis/{api_id}/analytics", tags=["analytics"])


async def _check_visible(db: Database, api_id: str, caller_id: str | None) -> None:
    try:
        async with db.session() as session:
            await load_visible_api(session, api_id, caller_id)
    except ApiHubError as exc:
        raise to_http_exception(exc) from exc


@router.get("/traffic", response_model=TrafficAnalyticsResponse)
async def traffic_analytics(
    api_id: str,
    days: int | None = Query(default=None, ge=1),
    caller_id: str | None = Depends(get_caller_id),
    db: Database = Depends(require_database),
    reader: AnalyticsReader = Depends(get_analytics_reader),
) -> TrafficAnalyticsResponse:
    """Calls, error rate, and latency per UTC day over the last ``days`` days."""
    await _check_visible(db, api_id, caller_id)
    return await reader.traffic(api_id, days or get_settings().analytics_default_days)


@router.get("/users", response_model=UserAnalyticsResponse)
async def user_analytics(
    api_id: str,
    days: int | None = Query(default=None, ge=1),
    caller_id: str | None = Depends(get_caller_id),
    db: Database = Depends(require_database),
    reader: AnalyticsReader = Depends(get_analytics_reader),
) -> UserAnalyticsResponse:
    """Distinct callers per UTC day, plus those active in the last 24 hours."""
    await _check_visible(db, api_id, caller_id)
    return await reader.users(api_id, days or get_settings().analytics_default_days)
