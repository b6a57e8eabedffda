"""Audit log ORM model for app/key lifecycle actions."""

from uuid import uuid4

from sqlalchemy import Column, DateTime, String, Text, Index, JSON, Uuid
from sqlalchemy.dialects.postgresql import JSONB

from usage_analytics.database import Base


class AuditLog(Base):
    __tablename__ = "audit_logs"

    id = Column(Uuid, primary_key=True, default=uuid4)
    timestamp = Column(DateTime(timezone=True), nullable=False, index=True)
    action = Column(String(255), nullable=False, index=True)
    actor_id = Column(String(255), nullable=True, index=True)
    actor_type = Column(String(50), nullable=False)  # user/system/anonymous
    resource_type = Column(String(100), nullable=False, index=True)
    resource_id = Column(String(255), nullable=True)
    decision = Column(String(20), nullable=False, index=True)  # allowed/denied
    reason = Column(Text, nullable=True)
    details = Column(JSON().with_variant(JSONB, "postgresql"), nullable=True)
    ip_address = Column(String(64), nullable=True)
    user_agent = Column(Text, nullable=True)
    request_id = Column(String(128), nullable=True, index=True)


Index("ix_audit_logs_actor_action_ts", AuditLog.actor_id, AuditLog.action, AuditLog.timestamp)
