import secrets
import hashlib
import hmac
from datetime import datetime, timezone, timedelta
from typing import Optional, Dict, Any, Tuple

import jwt

from usage_analytics.config import settings


JWT_SECRET = settings.jwt_secret
if not JWT_SECRET:
    # Fail fast: prevents silent token invalidation across restarts/pods
    raise RuntimeError("JWT_SECRET must be set (do not default-generate it).")

JWT_ALGORITHM = settings.jwt_algorithm
JWT_ACCESS_TOKEN_EXPIRE_MINUTES = settings.jwt_access_token_expire_minutes

# ---- API Key Configuration ----
API_KEY_SCHEME = "ak_"
API_KEY_PREFIX_LENGTH = settings.api_key_prefix_length

# Secret used to hash API keys safely (HMAC). Changing it invalidates every issued key.
API_KEY_HASH_SECRET = settings.api_key_hash_secret or JWT_SECRET


def _utc_now() -> datetime:
    return datetime.now(timezone.utc)


def create_access_token(subject: str, expires_delta: Optional[timedelta] = None, **claims: Any) -> str:
    """
    Create a caller-identity JWT.

    Sign-in lives upstream; this exists for local development and tests.
    """
    now = _utc_now()
    exp = now + (expires_delta or timedelta(minutes=JWT_ACCESS_TOKEN_EXPIRE_MINUTES))
    payload = dict(claims)
    payload.update({"sub": subject, "exp": exp, "iat": now, "type": "access"})
    return jwt.encode(payload, JWT_SECRET, algorithm=JWT_ALGORITHM)


def decode_token(token: str) -> Optional[Dict[str, Any]]:
    """Decode and validate JWT token."""
    try:
        return jwt.decode(token, JWT_SECRET, algorithms=[JWT_ALGORITHM])
    except jwt.ExpiredSignatureError:
        return None
    except jwt.InvalidTokenError:
        return None


def _hmac_sha256_hex(secret: str, message: str) -> str:
    return hmac.new(secret.encode("utf-8"), message.encode("utf-8"), hashlib.sha256).hexdigest()


def generate_api_key() -> Tuple[str, str, str]:
    """
    Generate a new API key.
    Returns: (full_key, prefix, key_hash)
    - full_key: shown once to the caller
    - prefix: for identification (first N chars)
    - key_hash: stored in database (HMAC-based)
    """
    full_key = API_KEY_SCHEME + secrets.token_hex(16)
    prefix = full_key[:API_KEY_PREFIX_LENGTH]
    return full_key, prefix, hash_api_key(full_key)


def hash_api_key(api_key: str) -> str:
    """Hash an API key for lookup (HMAC-based)."""
    return _hmac_sha256_hex(API_KEY_HASH_SECRET, api_key)
