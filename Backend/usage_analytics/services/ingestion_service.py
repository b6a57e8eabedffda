"""
Event ingestion write path.

authenticate key -> admit through rate limiter -> validate payload -> insert.
The first failing step short-circuits; nothing is written unless every step
passes, and the insert is one commit.
"""
from __future__ import annotations

from dataclasses import dataclass, field
from datetime import datetime
from typing import Any, Dict, Optional
import logging

from pydantic import ValidationError
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import Session

from usage_analytics.errors import InvalidPayload, RateLimited, StorageFailure
from usage_analytics.middleware.rate_limiter import RateLimitDecision, RateLimiter, rate_limit_headers
from usage_analytics.models.event import AnalyticsEvent
from usage_analytics.repositories.event import EventStore
from usage_analytics.schemas.event import EventPayload
from usage_analytics.services.authenticator import Authenticator
from usage_analytics.utils.dates import parse_timestamp, utc_now

logger = logging.getLogger(__name__)


@dataclass
class RequestMetadata:
    """What the transport knows about the request, as opposed to what the body claims."""
    user_agent: Optional[str] = None
    received_at: datetime = field(default_factory=utc_now)


@dataclass(frozen=True)
class IngestAck:
    event_id: Any
    app_id: Any
    rate_limit: RateLimitDecision


def _text(metadata: Optional[Dict[str, Any]], name: str) -> Optional[str]:
    if not metadata:
        return None
    value = metadata.get(name)
    if value is None or value == "":
        return None
    return str(value)


class IngestionService:
    def __init__(
        self,
        authenticator: Authenticator,
        rate_limiter: RateLimiter,
        event_store: Optional[EventStore] = None,
    ):
        self.authenticator = authenticator
        self.rate_limiter = rate_limiter
        self.event_store = event_store or EventStore()

    def ingest(
        self,
        db: Session,
        raw_credential: Optional[str],
        payload: Any,
        request_meta: Optional[RequestMetadata] = None,
    ) -> IngestAck:
        request_meta = request_meta or RequestMetadata()

        key = self.authenticator.authenticate(db, raw_credential)

        decision = self.rate_limiter.check(key.key_id)
        if not decision.allowed:
            logger.info("Rate limit exceeded for API key: %s...", key.key_prefix)
            raise RateLimited(
                f"Rate limit exceeded. Maximum {decision.limit} requests per "
                f"{int(self.rate_limiter.window_seconds)} seconds.",
                headers=rate_limit_headers(decision),
            )

        data = self._validate(payload)

        metadata = data.metadata
        row = AnalyticsEvent(
            app_id=key.app_id,
            event=data.event,
            url=data.url,
            referrer=data.referrer or None,
            device=data.device or None,
            ip_address=data.ip_address or None,
            # Header, not body: clients cannot spoof it through the payload
            user_agent=request_meta.user_agent or None,
            browser=_text(metadata, "browser"),
            os=_text(metadata, "os"),
            screen_size=_text(metadata, "screenSize"),
            metadata_=metadata or None,
            timestamp=parse_timestamp(data.timestamp) or request_meta.received_at,
            created_at=request_meta.received_at,
        )

        logger.info("Collecting event: %s for app: %s", data.event, key.app_id)
        try:
            self.event_store.add(db, row)
            db.commit()
        except SQLAlchemyError as e:
            db.rollback()
            logger.error("Error inserting analytics event for app %s: %s", key.app_id, e, exc_info=True)
            raise StorageFailure("Failed to store analytics event") from e

        return IngestAck(event_id=row.id, app_id=key.app_id, rate_limit=decision)

    @staticmethod
    def _validate(payload: Any) -> EventPayload:
        if not isinstance(payload, dict):
            raise InvalidPayload("Request body must be a JSON object")
        try:
            data = EventPayload.model_validate(payload)
        except ValidationError as e:
            raise InvalidPayload(f"Invalid event payload: {e.error_count()} invalid field(s)") from e
        if not (data.event and data.event.strip()) or not (data.url and data.url.strip()):
            raise InvalidPayload()
        return data
