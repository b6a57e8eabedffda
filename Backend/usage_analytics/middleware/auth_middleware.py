"""Request authentication: caller identity (bearer JWT) and ingestion API keys."""
from __future__ import annotations

from typing import Optional
import logging

from fastapi import Depends, Request
from fastapi.security import APIKeyHeader, HTTPAuthorizationCredentials, HTTPBearer

from usage_analytics.errors import Unauthenticated
from usage_analytics.utils.security import decode_token

logger = logging.getLogger(__name__)

API_KEY_HEADER_NAME = "x-api-key"

bearer_scheme = HTTPBearer(auto_error=False)
api_key_header = APIKeyHeader(name=API_KEY_HEADER_NAME, auto_error=False)


class AuthContext:
    """The authenticated dashboard principal (app owner)."""
    def __init__(self, caller_id: str):
        self.caller_id = caller_id


async def get_current_user_optional(
    credentials: Optional[HTTPAuthorizationCredentials] = Depends(bearer_scheme),
) -> Optional[AuthContext]:
    """
    Try to authenticate via JWT bearer token.
    Returns None if missing/invalid.
    """
    if not credentials:
        return None

    payload = decode_token(credentials.credentials)
    if not payload:
        return None

    if payload.get("type", "access") != "access":
        return None

    sub = payload.get("sub")
    if not sub:
        return None

    return AuthContext(caller_id=str(sub))


async def get_current_user(
    request: Request,
    ctx: Optional[AuthContext] = Depends(get_current_user_optional),
) -> AuthContext:
    """Strict version for endpoints that REQUIRE a caller identity."""
    if not ctx:
        logger.info("Rejected unauthenticated request to %s", request.url.path)
        raise Unauthenticated()
    return ctx


async def get_api_key(api_key: Optional[str] = Depends(api_key_header)) -> Optional[str]:
    """Raw ingestion credential, if any. Validation happens in the ingestion pipeline."""
    return api_key
