"""
Pydantic schemas for Apps + API Keys.

Rules:
- Schemas do NOT generate DB fields (id, timestamps). DB does.
- JSON keys are camelCase on the wire.
- "secret shown once": AppRegistered carries the raw apiKey only in the
  response to the call that minted it. Nothing else exposes it, or its hash.
"""

from __future__ import annotations

from typing import List, Optional
from uuid import UUID

from pydantic import BaseModel, Field

from usage_analytics.schemas.common import CamelModel, UtcDatetime


# -------------------------
# Apps
# -------------------------

class AppCreate(CamelModel):
    # Emptiness is checked by the lifecycle service so it can answer InvalidInput
    name: Optional[str] = Field(None, max_length=200)
    domain: Optional[str] = Field(None, max_length=255)
    description: Optional[str] = None


class AppResponse(CamelModel):
    id: UUID
    name: str
    domain: str
    description: Optional[str] = None
    created_at: Optional[UtcDatetime] = None


class AppList(CamelModel):
    apps: List[AppResponse]


class AppRegistered(CamelModel):
    """
    Only returned when a key is minted.
    Never store or re-display the plaintext api_key later.
    """
    app: AppResponse
    api_key: str


# -------------------------
# API Keys
# -------------------------

class APIKeySummary(CamelModel):
    id: UUID
    key_prefix: str
    is_active: bool
    expires_at: Optional[UtcDatetime] = None
    last_used_at: Optional[UtcDatetime] = None
    created_at: Optional[UtcDatetime] = None
    revoked_at: Optional[UtcDatetime] = None


class APIKeyList(CamelModel):
    api_keys: List[APIKeySummary]


class MessageResponse(BaseModel):
    message: str
