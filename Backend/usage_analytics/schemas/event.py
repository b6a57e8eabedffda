"""
Pydantic schemas for event ingestion and reporting.

EventPayload is deliberately lenient: every field is optional so that the
ingestion pipeline, not request parsing, decides what a bad payload is (and
only after the caller's key has been checked).
"""

from __future__ import annotations

from typing import Any, Dict, List, Optional

from pydantic import BaseModel, ConfigDict, Field
from pydantic.alias_generators import to_camel

from usage_analytics.schemas.common import CamelModel, UtcDatetime


# -------------------------
# Ingestion
# -------------------------

class EventPayload(CamelModel):
    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True, extra="ignore")

    event: Optional[str] = None
    url: Optional[str] = None
    referrer: Optional[str] = None
    device: Optional[str] = None
    ip_address: Optional[str] = None
    timestamp: Optional[Any] = None  # ISO-8601 text or epoch millis
    metadata: Optional[Dict[str, Any]] = None


class EventAck(BaseModel):
    success: bool = True
    message: str = "Event collected successfully"


# -------------------------
# Reporting
# -------------------------

class EventSummary(CamelModel):
    event: str
    count: int = 0
    unique_users: int = 0
    device_data: Dict[str, int] = Field(default_factory=dict)


class RecentEvent(CamelModel):
    event: str
    url: str
    timestamp: UtcDatetime


class UserSummary(CamelModel):
    user_id: str
    ip_address: str
    total_events: int = 0
    device_details: Dict[str, Optional[str]] = Field(default_factory=dict)
    recent_events: List[RecentEvent] = Field(default_factory=list)
