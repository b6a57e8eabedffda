"""
Repository for analytics events.

Insert-only writes plus the aggregate queries the reporting side needs. The
aggregates run inside the database (COUNT / COUNT DISTINCT / GROUP BY) rather
than materialising every matching row.
"""

from __future__ import annotations

from datetime import datetime
from typing import Dict, Optional, Sequence
from uuid import UUID

from sqlalchemy import and_, distinct, func, select
from sqlalchemy.orm import Session

from usage_analytics.models.event import AnalyticsEvent
from usage_analytics.repositories.base import BaseRepository


class EventStore(BaseRepository[AnalyticsEvent]):
    @staticmethod
    def _event_filter(
        app_ids: Sequence[UUID],
        event: str,
        start: Optional[datetime],
        end: Optional[datetime],
    ):
        clauses = [AnalyticsEvent.app_id.in_(list(app_ids)), AnalyticsEvent.event == event]
        if start is not None:
            clauses.append(AnalyticsEvent.timestamp >= start)
        if end is not None:
            clauses.append(AnalyticsEvent.timestamp <= end)
        return and_(*clauses)

    def count(self, session: Session, app_ids, event, start=None, end=None) -> int:
        stmt = select(func.count(AnalyticsEvent.id)).where(self._event_filter(app_ids, event, start, end))
        return session.execute(stmt).scalar_one()

    def count_distinct_ips(self, session: Session, app_ids, event, start=None, end=None) -> int:
        stmt = select(func.count(distinct(AnalyticsEvent.ip_address))).where(
            self._event_filter(app_ids, event, start, end),
            AnalyticsEvent.ip_address.is_not(None),
            AnalyticsEvent.ip_address != "",
        )
        return session.execute(stmt).scalar_one()

    def device_histogram(self, session: Session, app_ids, event, start=None, end=None) -> Dict[str, int]:
        stmt = (
            select(AnalyticsEvent.device, func.count(AnalyticsEvent.id))
            .where(
                self._event_filter(app_ids, event, start, end),
                AnalyticsEvent.device.is_not(None),
                AnalyticsEvent.device != "",
            )
            .group_by(AnalyticsEvent.device)
        )
        return {device: n for device, n in session.execute(stmt).all()}

    def count_for_ip(self, session: Session, app_ids: Sequence[UUID], ip_address: str) -> int:
        stmt = select(func.count(AnalyticsEvent.id)).where(
            AnalyticsEvent.app_id.in_(list(app_ids)),
            AnalyticsEvent.ip_address == ip_address,
        )
        return session.execute(stmt).scalar_one()

    def recent_for_ip(
        self,
        session: Session,
        app_ids: Sequence[UUID],
        ip_address: str,
        limit: int = 10,
    ) -> list[AnalyticsEvent]:
        """Newest first by event timestamp; ties broken by receipt time."""
        stmt = (
            select(AnalyticsEvent)
            .where(AnalyticsEvent.app_id.in_(list(app_ids)), AnalyticsEvent.ip_address == ip_address)
            .order_by(AnalyticsEvent.timestamp.desc(), AnalyticsEvent.created_at.desc())
            .limit(limit)
        )
        return list(session.execute(stmt).scalars())
