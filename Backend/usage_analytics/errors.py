"""
Error taxonomy for the analytics core.

Every failure the core can report is an AnalyticsError subclass carrying a
stable machine-readable `kind` and the HTTP status it maps to. Messages never
distinguish "does not exist" from "not yours".
"""

from typing import Dict, Optional


class AnalyticsError(Exception):
    kind = "Error"
    status_code = 500
    default_message = "Internal server error"

    def __init__(self, message: Optional[str] = None, headers: Optional[Dict[str, str]] = None):
        self.message = message or self.default_message
        self.headers = headers
        super().__init__(self.message)

    def to_dict(self) -> Dict[str, str]:
        return {"error": self.message, "code": self.kind}


# ---------- API key authentication ----------

class MissingCredential(AnalyticsError):
    kind = "MissingCredential"
    status_code = 401
    default_message = "Missing x-api-key header"


class InvalidCredential(AnalyticsError):
    kind = "InvalidCredential"
    status_code = 401
    default_message = "Invalid API key"


class Revoked(AnalyticsError):
    kind = "Revoked"
    status_code = 401
    default_message = "API key has been revoked"


class Expired(AnalyticsError):
    kind = "Expired"
    status_code = 401
    default_message = "API key has expired"


class RateLimited(AnalyticsError):
    kind = "RateLimited"
    status_code = 429
    default_message = "Rate limit exceeded. Maximum 100 requests per minute."


# ---------- Input ----------

class InvalidPayload(AnalyticsError):
    kind = "InvalidPayload"
    status_code = 400
    default_message = "Event name and URL are required"


class InvalidInput(AnalyticsError):
    kind = "InvalidInput"
    status_code = 400
    default_message = "Invalid input"


# ---------- Caller identity / ownership ----------

class Unauthenticated(AnalyticsError):
    kind = "Unauthenticated"
    status_code = 401
    default_message = "Unauthorized"


class NotFound(AnalyticsError):
    kind = "NotFound"
    status_code = 404
    default_message = "Not found"


# ---------- Storage ----------

class StorageFailure(AnalyticsError):
    kind = "StorageFailure"
    status_code = 500
    default_message = "Storage operation failed"
