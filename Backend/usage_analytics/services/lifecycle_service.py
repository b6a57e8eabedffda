"""App and API key lifecycle management (SQLAlchemy sync).

Every operation is scoped to the calling owner. Anything the caller does not
own is reported exactly like something that does not exist.
"""
from __future__ import annotations

from typing import List, Optional, Tuple
from uuid import UUID
import logging

from sqlalchemy.exc import IntegrityError
from sqlalchemy.orm import Session

from usage_analytics.errors import InvalidInput, NotFound, StorageFailure
from usage_analytics.models.app import App, ApiKey
from usage_analytics.repositories.api_key import KeyStore
from usage_analytics.repositories.app import AppStore
from usage_analytics.utils.dates import utc_now
from usage_analytics.utils.security import generate_api_key

logger = logging.getLogger(__name__)


def _as_uuid(value, what: str) -> UUID:
    if isinstance(value, UUID):
        return value
    try:
        return UUID(str(value))
    except ValueError:
        raise NotFound(f"{what} not found")


class LifecycleService:
    def __init__(self, session: Session, app_store: Optional[AppStore] = None, key_store: Optional[KeyStore] = None):
        self.session = session
        self.app_store = app_store or AppStore()
        self.key_store = key_store or KeyStore()

    # ================== Apps ==================

    def _new_app(self, caller_id: str, name: Optional[str], domain: Optional[str], description: Optional[str]) -> App:
        name = (name or "").strip()
        domain = (domain or "").strip()
        if not name or not domain:
            raise InvalidInput("Name and domain are required")
        app = App(
            owner_id=caller_id,
            name=name,
            domain=domain,
            description=description or None,
            created_at=utc_now(),
            updated_at=utc_now(),
        )
        return self.app_store.add(self.session, app)

    def _new_key(self, app: App, caller_id: str) -> Tuple[ApiKey, str]:
        raw_key, prefix, key_hash = generate_api_key()
        key = self.key_store.add(
            self.session,
            ApiKey(
                app_id=app.id,
                owner_id=caller_id,
                key_hash=key_hash,
                key_prefix=prefix,
                is_active=True,
                expires_at=None,
                created_at=utc_now(),
            ),
        )
        return key, raw_key

    def _commit(self, failure_message: str) -> None:
        try:
            self.session.commit()
        except IntegrityError as e:
            self.session.rollback()
            logger.error("%s: %s", failure_message, e, exc_info=True)
            raise StorageFailure(failure_message) from e

    def create_app(self, caller_id: str, name: Optional[str], domain: Optional[str], description: Optional[str] = None) -> App:
        app = self._new_app(caller_id, name, domain, description)
        self._commit("Failed to create app")
        logger.info("Created app %s for caller %s", app.id, caller_id)
        return app

    def register_app(
        self,
        caller_id: str,
        name: Optional[str],
        domain: Optional[str],
        description: Optional[str] = None,
    ) -> Tuple[App, str]:
        """Create an app together with its first key in one transaction."""
        app = self._new_app(caller_id, name, domain, description)
        _, raw_key = self._new_key(app, caller_id)
        self._commit("Failed to create app")
        logger.info("Registered app %s with API key for caller %s", app.id, caller_id)
        return app, raw_key

    def get_app(self, app_id, caller_id: str) -> App:
        app = self.app_store.get_owned(self.session, _as_uuid(app_id, "App"), caller_id)
        if app is None:
            raise NotFound("App not found")
        return app

    def list_apps(self, caller_id: str) -> List[App]:
        return self.app_store.list_for_owner(self.session, caller_id)

    def delete_app(self, app_id, caller_id: str) -> UUID:
        """Delete an app with all of its keys and events, atomically."""
        app_uuid = self.get_app(app_id, caller_id).id
        self.app_store.delete_cascade(self.session, app_uuid)
        self._commit("Failed to delete app")
        logger.info("Deleted app %s for caller %s", app_uuid, caller_id)
        return app_uuid

    # ================== API Keys ==================

    def issue_key(self, app_id, caller_id: str) -> Tuple[App, str]:
        """
        Mint a new active, non-expiring key for an owned app.

        Returns the raw key; only its hash and prefix are stored.
        """
        app = self.get_app(app_id, caller_id)
        key, raw_key = self._new_key(app, caller_id)
        self._commit("Failed to create API key")
        logger.info("Issued API key %s (%s...) for app %s", key.id, key.key_prefix, app.id)
        return app, raw_key

    def list_keys(self, app_id, caller_id: str) -> List[ApiKey]:
        app = self.get_app(app_id, caller_id)
        return self.key_store.list_for_app(self.session, app.id)

    def revoke_key(self, key_id, caller_id: str) -> ApiKey:
        """
        Deactivate a key owned by the caller.

        Revoking an already-revoked key succeeds and keeps the original
        revocation time.
        """
        key = self.key_store.get_owned(self.session, _as_uuid(key_id, "API key"), caller_id)
        if key is None:
            raise NotFound("API key not found")
        if not key.is_active:
            return key
        self.key_store.deactivate(self.session, key, utc_now())
        self._commit("Failed to revoke API key")
        logger.info("Revoked API key %s (%s...)", key.id, key.key_prefix)
        return key
