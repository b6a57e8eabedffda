"""API key authentication for ingestion clients."""
from __future__ import annotations

from concurrent.futures import Future, ThreadPoolExecutor, wait
from dataclasses import dataclass
from datetime import datetime
from typing import Callable, Optional, Set
from uuid import UUID
import logging
import threading

from sqlalchemy.orm import Session

from usage_analytics.errors import Expired, InvalidCredential, MissingCredential, Revoked
from usage_analytics.repositories.api_key import KeyStore
from usage_analytics.utils.dates import ensure_utc, utc_now
from usage_analytics.utils.security import hash_api_key

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class AuthenticatedKey:
    key_id: UUID
    app_id: UUID
    key_prefix: str


class LastUsedRecorder:
    """
    Best-effort, non-blocking bookkeeping of API key `last_used_at`.

    Updates run on a small worker pool, each with its own session, after the
    request that triggered them has moved on. At most `max_pending` updates
    are queued; beyond that they are dropped. Failures are logged, never
    raised to the request.
    """

    def __init__(
        self,
        session_factory: Callable[[], Session],
        max_workers: int = 2,
        max_pending: int = 1000,
        key_store: Optional[KeyStore] = None,
    ):
        self._session_factory = session_factory
        self._key_store = key_store or KeyStore()
        self._executor = ThreadPoolExecutor(max_workers=max_workers, thread_name_prefix="last-used")
        self._slots = threading.BoundedSemaphore(max_pending)
        self._pending: Set[Future] = set()
        self._pending_lock = threading.Lock()

    def record(self, key_id: UUID, when: Optional[datetime] = None) -> bool:
        """Queue an update. Returns False if it was dropped."""
        if not self._slots.acquire(blocking=False):
            logger.debug("Dropping last_used_at update for key %s: queue full", key_id)
            return False
        try:
            future = self._executor.submit(self._touch, key_id, when or utc_now())
        except RuntimeError:
            # executor already shut down
            self._slots.release()
            logger.warning("Dropping last_used_at update for key %s: recorder stopped", key_id)
            return False
        with self._pending_lock:
            self._pending.add(future)
        future.add_done_callback(self._done)
        return True

    def _done(self, future: Future) -> None:
        with self._pending_lock:
            self._pending.discard(future)
        self._slots.release()

    def _touch(self, key_id: UUID, when: datetime) -> None:
        db = self._session_factory()
        try:
            self._key_store.touch_last_used(db, key_id, when)
            db.commit()
        except Exception:
            logger.exception("Failed updating api key last_used_at for key %s", key_id)
            db.rollback()
        finally:
            db.close()

    def drain(self, timeout: Optional[float] = None) -> None:
        """Block until every queued update has finished."""
        with self._pending_lock:
            pending = list(self._pending)
        if pending:
            wait(pending, timeout=timeout)

    def shutdown(self, wait_for_pending: bool = True) -> None:
        self._executor.shutdown(wait=wait_for_pending)


class Authenticator:
    """
    Validate a presented API key against the key store.

    Order of checks: presence, hash lookup, revocation, expiry. A successful
    check schedules the last-used update and returns the owning app.
    """

    def __init__(
        self,
        recorder: Optional[LastUsedRecorder] = None,
        key_store: Optional[KeyStore] = None,
        clock: Callable[[], datetime] = utc_now,
    ):
        self._recorder = recorder
        self._key_store = key_store or KeyStore()
        self._clock = clock

    def authenticate(self, db: Session, raw_credential: Optional[str]) -> AuthenticatedKey:
        if not raw_credential:
            raise MissingCredential()

        key_row = self._key_store.get_by_hash(db, hash_api_key(raw_credential))
        if key_row is None:
            raise InvalidCredential()

        if not key_row.is_active:
            raise Revoked()

        now = self._clock()
        expires_at = ensure_utc(key_row.expires_at)
        if expires_at is not None and expires_at < now:
            raise Expired()

        if self._recorder is not None:
            self._recorder.record(key_row.id, now)

        return AuthenticatedKey(key_id=key_row.id, app_id=key_row.app_id, key_prefix=key_row.key_prefix)
