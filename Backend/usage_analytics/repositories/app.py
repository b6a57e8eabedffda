"""Repository for registered apps."""

from __future__ import annotations

from uuid import UUID

from sqlalchemy import delete, select
from sqlalchemy.orm import Session

from usage_analytics.models.app import App, ApiKey
from usage_analytics.models.event import AnalyticsEvent
from usage_analytics.repositories.base import BaseRepository


class AppStore(BaseRepository[App]):
    def get_owned(self, session: Session, app_id: UUID, owner_id: str) -> App | None:
        """Return the app only if `owner_id` owns it."""
        stmt = select(App).where(App.id == app_id, App.owner_id == owner_id)
        return session.execute(stmt).scalar_one_or_none()

    def list_for_owner(self, session: Session, owner_id: str) -> list[App]:
        stmt = select(App).where(App.owner_id == owner_id).order_by(App.created_at.desc())
        return list(session.execute(stmt).scalars())

    def ids_for_owner(self, session: Session, owner_id: str) -> list[UUID]:
        stmt = select(App.id).where(App.owner_id == owner_id)
        return list(session.execute(stmt).scalars())

    def delete_cascade(self, session: Session, app_id: UUID) -> None:
        """
        Stage deletion of an app together with its keys and events.

        The caller commits; nothing is visible until the single commit lands.
        """
        session.execute(delete(AnalyticsEvent).where(AnalyticsEvent.app_id == app_id))
        session.execute(delete(ApiKey).where(ApiKey.app_id == app_id))
        session.execute(delete(App).where(App.id == app_id))
