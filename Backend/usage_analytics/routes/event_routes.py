"""
Event ingestion (API-key authenticated) and reporting (caller authenticated).
"""

from typing import Any, Optional

from fastapi import APIRouter, Body, Depends, Query, Request, Response
from sqlalchemy.orm import Session

from usage_analytics.database import get_db
from usage_analytics.errors import InvalidInput
from usage_analytics.middleware.auth_middleware import AuthContext, get_api_key, get_current_user
from usage_analytics.middleware.rate_limiter import RateLimiter, rate_limit_headers
from usage_analytics.schemas.event import EventAck, EventSummary, UserSummary
from usage_analytics.services.aggregation_service import AggregationService
from usage_analytics.services.authenticator import Authenticator, LastUsedRecorder
from usage_analytics.services.ingestion_service import IngestionService, RequestMetadata
from usage_analytics.utils.dates import parse_timestamp

router = APIRouter(prefix="/events", tags=["Events"])


def get_rate_limiter(request: Request) -> RateLimiter:
    return request.app.state.rate_limiter


def get_usage_recorder(request: Request) -> LastUsedRecorder:
    return request.app.state.usage_recorder


def get_ingestion_service(
    rate_limiter: RateLimiter = Depends(get_rate_limiter),
    recorder: LastUsedRecorder = Depends(get_usage_recorder),
) -> IngestionService:
    return IngestionService(Authenticator(recorder=recorder), rate_limiter)


def get_aggregation_service() -> AggregationService:
    return AggregationService()


def _parse_bound(value: Optional[str], name: str):
    if not value:
        return None
    parsed = parse_timestamp(value)
    if parsed is None:
        raise InvalidInput(f"Invalid {name}")
    return parsed


@router.post("", response_model=EventAck)
def collect_event(
    request: Request,
    response: Response,
    payload: Optional[Any] = Body(None),
    api_key: Optional[str] = Depends(get_api_key),
    db: Session = Depends(get_db),
    service: IngestionService = Depends(get_ingestion_service),
):
    """Collect one event. Authenticated by the `x-api-key` header."""
    ack = service.ingest(
        db,
        api_key,
        payload,
        RequestMetadata(user_agent=request.headers.get("user-agent")),
    )
    response.headers.update(rate_limit_headers(ack.rate_limit))
    return EventAck()


@router.get("/summary", response_model=EventSummary)
def event_summary(
    event: Optional[str] = Query(None),
    start_date: Optional[str] = Query(None, alias="startDate"),
    end_date: Optional[str] = Query(None, alias="endDate"),
    app_id: Optional[str] = Query(None, alias="app"),
    auth: AuthContext = Depends(get_current_user),
    db: Session = Depends(get_db),
    service: AggregationService = Depends(get_aggregation_service),
):
    """Count, unique IPs and device breakdown for one event name."""
    if not event:
        raise InvalidInput("Event parameter is required")
    return service.summarize(
        db,
        auth.caller_id,
        event,
        app_id=app_id,
        start=_parse_bound(start_date, "startDate"),
        end=_parse_bound(end_date, "endDate"),
    )


@router.get("/by-ip", response_model=UserSummary)
def events_by_ip(
    ip: Optional[str] = Query(None),
    auth: AuthContext = Depends(get_current_user),
    db: Session = Depends(get_db),
    service: AggregationService = Depends(get_aggregation_service),
):
    """Activity of one visitor (identified by IP address) across the caller's apps."""
    if not ip:
        raise InvalidInput("ip parameter is required")
    return service.user_history(db, auth.caller_id, ip)
