"""Audit trail for app/key lifecycle actions (SQLAlchemy sync)."""

from __future__ import annotations

from datetime import datetime, timezone
from typing import Optional, Dict, Any
import logging
import json
from uuid import uuid4

from sqlalchemy.orm import Session

from usage_analytics.models.audit_log import AuditLog

logger = logging.getLogger(__name__)

REDACT_KEYS = {
    "password", "secret", "token",
    "access_token", "authorization",
    "api_key", "apikey", "key_hash",
}


def _utc_now() -> datetime:
    return datetime.now(timezone.utc)


def _safe_json(value: Any) -> Any:
    try:
        json.dumps(value)
        return value
    except (TypeError, ValueError):
        return str(value)


def _redact(obj: Any) -> Any:
    if isinstance(obj, dict):
        out = {}
        for k, v in obj.items():
            if isinstance(k, str) and k.lower() in REDACT_KEYS:
                out[k] = "***REDACTED***"
            else:
                out[k] = _redact(v)
        return out
    if isinstance(obj, list):
        return [_redact(x) for x in obj]
    return obj


class AuditLogger:
    """
    Audit logger that writes to:
    - application logs (INFO/WARN)
    - the `audit_logs` table

    Persisting the row is best-effort: a failure is logged and swallowed so
    the audited operation itself still succeeds.
    """

    def __init__(self, session_factory=None):
        self._session_factory = session_factory

    def set_session_factory(self, session_factory):
        self._session_factory = session_factory

    def log(
        self,
        action: str,
        actor_id: Optional[str],
        actor_type: str,
        resource_type: str,
        resource_id: Optional[str] = None,
        decision: str = "allowed",
        reason: Optional[str] = None,
        details: Optional[Dict[str, Any]] = None,
        ip_address: Optional[str] = None,
        user_agent: Optional[str] = None,
        request_id: Optional[str] = None,
        db: Optional[Session] = None,
    ) -> Optional[AuditLog]:
        safe_details = _safe_json(_redact(details or {}))

        log_level = logging.WARNING if decision == "denied" else logging.INFO
        logger.log(
            log_level,
            "AUDIT action=%s actor=%s:%s resource=%s:%s decision=%s request_id=%s reason=%s",
            action, actor_type, actor_id, resource_type, resource_id, decision, request_id, reason
        )

        close_after = False
        if db is None:
            if self._session_factory is None:
                return None
            db = self._session_factory()
            close_after = True

        row = AuditLog(
            id=uuid4(),
            timestamp=_utc_now(),
            action=action,
            actor_id=actor_id,
            actor_type=actor_type,
            resource_type=resource_type,
            resource_id=resource_id,
            decision=decision,
            reason=reason,
            details=safe_details,
            ip_address=ip_address,
            user_agent=user_agent,
            request_id=request_id,
        )
        try:
            db.add(row)
            db.commit()
        except Exception:
            logger.exception("Failed to store audit log")
            try:
                db.rollback()
            except Exception:
                logger.exception("Failed rollback after audit log failure")
            return None
        finally:
            if close_after:
                db.close()
        return row


audit_logger = AuditLogger()


def audit_log(
    action: str,
    actor_id: Optional[str],
    resource_type: str,
    resource_id: Optional[Any] = None,
    actor_type: str = "user",
    decision: str = "allowed",
    reason: Optional[str] = None,
    details: Optional[Dict[str, Any]] = None,
    request=None,
    db: Optional[Session] = None,
) -> Optional[AuditLog]:
    ip_address = None
    user_agent = None
    request_id = None

    if request is not None:
        ip_address = request.client.host if request.client else None
        user_agent = request.headers.get("user-agent")
        request_id = request.headers.get("x-request-id")

    return audit_logger.log(
        action=action,
        actor_id=str(actor_id) if actor_id is not None else None,
        actor_type=actor_type,
        resource_type=resource_type,
        resource_id=str(resource_id) if resource_id else None,
        decision=decision,
        reason=reason,
        details=details,
        ip_address=ip_address,
        user_agent=user_agent,
        request_id=request_id,
        db=db,
    )
