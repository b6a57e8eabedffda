"""Repository for API key database operations."""

from __future__ import annotations

from datetime import datetime
from uuid import UUID

from sqlalchemy import select, update
from sqlalchemy.orm import Session

from usage_analytics.models.app import ApiKey
from usage_analytics.repositories.base import BaseRepository


class KeyStore(BaseRepository[ApiKey]):
    """Maps key identity to hashed secret, owner app, status and usage timestamps."""

    def get_by_hash(self, session: Session, key_hash: str) -> ApiKey | None:
        stmt = select(ApiKey).where(ApiKey.key_hash == key_hash)
        return session.execute(stmt).scalar_one_or_none()

    def get_owned(self, session: Session, key_id: UUID, owner_id: str) -> ApiKey | None:
        stmt = select(ApiKey).where(ApiKey.id == key_id, ApiKey.owner_id == owner_id)
        return session.execute(stmt).scalar_one_or_none()

    def list_for_app(self, session: Session, app_id: UUID) -> list[ApiKey]:
        stmt = select(ApiKey).where(ApiKey.app_id == app_id).order_by(ApiKey.created_at.desc())
        return list(session.execute(stmt).scalars())

    def touch_last_used(self, session: Session, key_id: UUID, when: datetime) -> int:
        """Set last_used_at; returns the number of rows updated."""
        stmt = update(ApiKey).where(ApiKey.id == key_id).values(last_used_at=when)
        return session.execute(stmt).rowcount

    def deactivate(self, session: Session, api_key: ApiKey, when: datetime) -> ApiKey:
        api_key.is_active = False
        api_key.revoked_at = when
        session.flush()
        return api_key
