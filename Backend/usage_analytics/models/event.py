"""
ORM model for ingested analytics events.

Rows are insert-only; they go away only when their App is deleted.
"""

import uuid

from sqlalchemy import Column, DateTime, Text, ForeignKey, Index, JSON, Uuid, func
from sqlalchemy.dialects.postgresql import JSONB

from usage_analytics.database import Base


class AnalyticsEvent(Base):
    __tablename__ = "analytics_events"

    id = Column(Uuid, primary_key=True, default=uuid.uuid4)
    app_id = Column(Uuid, ForeignKey("apps.id", ondelete="CASCADE"), nullable=False, index=True)
    event = Column(Text, nullable=False, index=True)
    url = Column(Text, nullable=False)
    referrer = Column(Text, nullable=True)
    device = Column(Text, nullable=True, index=True)
    ip_address = Column(Text, nullable=True)
    user_agent = Column(Text, nullable=True)
    browser = Column(Text, nullable=True)
    os = Column(Text, nullable=True)
    screen_size = Column(Text, nullable=True)
    metadata_ = Column("metadata", JSON().with_variant(JSONB, "postgresql"), nullable=True)
    timestamp = Column(DateTime(timezone=True), nullable=False, index=True)  # client-supplied or server-assigned
    created_at = Column(DateTime(timezone=True), nullable=False, server_default=func.now())  # server-received

    __table_args__ = (
        Index("ix_analytics_events_app_id_event", "app_id", "event"),
        Index("ix_analytics_events_app_id_ip_address", "app_id", "ip_address"),
    )
