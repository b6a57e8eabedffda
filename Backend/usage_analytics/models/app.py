"""
SQLAlchemy ORM models for registered Apps + their API Keys.

- App: a website/app owned by exactly one caller identity
- ApiKey: stores prefix + hashed key, plus usage and revocation metadata

Notes:
- key_hash stores a hash (never the raw secret)
- key_prefix is used for display (first N chars of the issued key)
- deleting an App cascades to its keys and events
"""

import uuid

from sqlalchemy import Column, String, Boolean, DateTime, Text, ForeignKey, UniqueConstraint, Index, Uuid, func, true
from sqlalchemy.orm import relationship

from usage_analytics.database import Base


class App(Base):
    __tablename__ = "apps"

    id = Column(Uuid, primary_key=True, default=uuid.uuid4)
    owner_id = Column(String(255), nullable=False, index=True)  # caller identity from upstream auth
    name = Column(String(200), nullable=False)
    domain = Column(String(255), nullable=False)
    description = Column(Text, nullable=True)
    created_at = Column(DateTime(timezone=True), nullable=False, server_default=func.now())
    updated_at = Column(DateTime(timezone=True), nullable=False, server_default=func.now(), onupdate=func.now())

    api_keys = relationship("ApiKey", back_populates="app", passive_deletes=True)

    __table_args__ = (
        Index("ix_apps_owner_id_created_at", "owner_id", "created_at"),
    )


class ApiKey(Base):
    __tablename__ = "api_keys"

    id = Column(Uuid, primary_key=True, default=uuid.uuid4)
    app_id = Column(Uuid, ForeignKey("apps.id", ondelete="CASCADE"), nullable=False, index=True)
    owner_id = Column(String(255), nullable=False, index=True)
    key_hash = Column(String(255), nullable=False)
    key_prefix = Column(String(32), nullable=False)
    is_active = Column(Boolean, nullable=False, default=True, server_default=true())
    expires_at = Column(DateTime(timezone=True), nullable=True)
    last_used_at = Column(DateTime(timezone=True), nullable=True)
    created_at = Column(DateTime(timezone=True), nullable=False, server_default=func.now())
    revoked_at = Column(DateTime(timezone=True), nullable=True)

    app = relationship("App", back_populates="api_keys")

    __table_args__ = (
        UniqueConstraint("key_hash", name="uq_api_keys_key_hash"),
        Index("ix_api_keys_app_id_is_active", "app_id", "is_active"),
    )
