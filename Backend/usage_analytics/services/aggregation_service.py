"""
Reporting over stored events, scoped to the apps a caller owns.

A "unique user" is a distinct non-empty IP address. Events without an IP or
device still count towards `count`; they just do not show up in
`unique_users` or the device histogram.
"""
from __future__ import annotations

from datetime import datetime
from typing import List, Optional
from uuid import UUID
import logging

from sqlalchemy.orm import Session

from usage_analytics.errors import InvalidInput, NotFound
from usage_analytics.repositories.app import AppStore
from usage_analytics.repositories.event import EventStore
from usage_analytics.schemas.event import EventSummary, RecentEvent, UserSummary
from usage_analytics.utils.dates import ensure_utc

logger = logging.getLogger(__name__)

RECENT_EVENTS_LIMIT = 10


def _parse_app_id(value) -> Optional[UUID]:
    if value is None or value == "":
        return None
    if isinstance(value, UUID):
        return value
    try:
        return UUID(str(value))
    except ValueError:
        # Malformed ids are indistinguishable from ids the caller does not own
        raise NotFound("App not found or unauthorized")


class AggregationService:
    def __init__(self, app_store: Optional[AppStore] = None, event_store: Optional[EventStore] = None):
        self.app_store = app_store or AppStore()
        self.event_store = event_store or EventStore()

    def _scope(self, db: Session, caller_id: str, app_id=None) -> List[UUID]:
        app_uuid = _parse_app_id(app_id)
        if app_uuid is not None:
            if self.app_store.get_owned(db, app_uuid, caller_id) is None:
                raise NotFound("App not found or unauthorized")
            return [app_uuid]
        return self.app_store.ids_for_owner(db, caller_id)

    def summarize(
        self,
        db: Session,
        caller_id: str,
        event: str,
        app_id=None,
        start: Optional[datetime] = None,
        end: Optional[datetime] = None,
    ) -> EventSummary:
        if not event:
            raise InvalidInput("Event parameter is required")
        start, end = ensure_utc(start), ensure_utc(end)

        app_ids = self._scope(db, caller_id, app_id)
        if not app_ids:
            return EventSummary(event=event)

        logger.info("Fetching event summary for: %s, apps: %d, caller: %s", event, len(app_ids), caller_id)
        summary = EventSummary(
            event=event,
            count=self.event_store.count(db, app_ids, event, start, end),
            unique_users=self.event_store.count_distinct_ips(db, app_ids, event, start, end),
            device_data=self.event_store.device_histogram(db, app_ids, event, start, end),
        )
        logger.info("Event summary: %d total events, %d unique users", summary.count, summary.unique_users)
        return summary

    def user_history(self, db: Session, caller_id: str, ip_address: str) -> UserSummary:
        if not ip_address:
            raise InvalidInput("ip parameter is required")

        app_ids = self._scope(db, caller_id)
        if not app_ids:
            return UserSummary(user_id=ip_address, ip_address=ip_address)

        total = self.event_store.count_for_ip(db, app_ids, ip_address)
        recent = self.event_store.recent_for_ip(db, app_ids, ip_address, limit=RECENT_EVENTS_LIMIT)

        device_details = {}
        if recent:
            latest = recent[0]
            device_details = {
                "browser": latest.browser,
                "os": latest.os,
                "screenSize": latest.screen_size,
                "device": latest.device,
            }

        return UserSummary(
            user_id=ip_address,
            ip_address=ip_address,
            total_events=total,
            device_details=device_details,
            recent_events=[
                RecentEvent(event=e.event, url=e.url, timestamp=ensure_utc(e.timestamp)) for e in recent
            ],
        )
