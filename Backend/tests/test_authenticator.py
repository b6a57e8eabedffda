"""Tests for API key authentication and last-used bookkeeping."""

from __future__ import annotations

from datetime import timedelta
import threading
from unittest.mock import MagicMock

import pytest
from sqlalchemy import select

from usage_analytics.errors import Expired, InvalidCredential, MissingCredential, Revoked
from usage_analytics.models.app import ApiKey
from usage_analytics.services.authenticator import Authenticator, LastUsedRecorder
from usage_analytics.services.lifecycle_service import LifecycleService
from usage_analytics.utils.dates import ensure_utc, utc_now


@pytest.fixture
def issued(db_session):
    app, raw_key = LifecycleService(db_session).register_app("owner-1", "Shop", "shop.example.com")
    key = db_session.execute(select(ApiKey).where(ApiKey.app_id == app.id)).scalar_one()
    return app, key, raw_key


@pytest.mark.parametrize("credential", [None, ""])
def test_missing_credential(db_session, credential) -> None:
    with pytest.raises(MissingCredential):
        Authenticator().authenticate(db_session, credential)


def test_unknown_credential(db_session, issued) -> None:
    with pytest.raises(InvalidCredential):
        Authenticator().authenticate(db_session, "ak_" + "0" * 32)


def test_valid_key_resolves_owning_app(db_session, issued) -> None:
    app, key, raw_key = issued
    result = Authenticator().authenticate(db_session, raw_key)
    assert result.app_id == app.id
    assert result.key_id == key.id
    assert result.key_prefix == raw_key[:12]


def test_revoked_key_is_rejected(db_session, issued) -> None:
    _, key, raw_key = issued
    LifecycleService(db_session).revoke_key(key.id, "owner-1")
    with pytest.raises(Revoked):
        Authenticator().authenticate(db_session, raw_key)


def test_expired_key_is_rejected(db_session, issued) -> None:
    _, key, raw_key = issued
    key.expires_at = utc_now() - timedelta(minutes=1)
    db_session.commit()
    with pytest.raises(Expired):
        Authenticator().authenticate(db_session, raw_key)


def test_revocation_wins_over_expiry(db_session, issued) -> None:
    _, key, raw_key = issued
    key.expires_at = utc_now() - timedelta(minutes=1)
    db_session.commit()
    LifecycleService(db_session).revoke_key(key.id, "owner-1")
    with pytest.raises(Revoked):
        Authenticator().authenticate(db_session, raw_key)


def test_key_expiring_in_the_future_is_accepted(db_session, issued) -> None:
    _, key, raw_key = issued
    key.expires_at = utc_now() + timedelta(days=1)
    db_session.commit()
    assert Authenticator().authenticate(db_session, raw_key).key_id == key.id


def test_success_schedules_last_used_update(db_session, issued) -> None:
    _, key, raw_key = issued
    recorder = MagicMock(spec=LastUsedRecorder)
    Authenticator(recorder=recorder).authenticate(db_session, raw_key)
    recorder.record.assert_called_once()
    assert recorder.record.call_args.args[0] == key.id


def test_failure_does_not_touch_last_used(db_session, issued) -> None:
    recorder = MagicMock(spec=LastUsedRecorder)
    with pytest.raises(InvalidCredential):
        Authenticator(recorder=recorder).authenticate(db_session, "ak_nope")
    recorder.record.assert_not_called()


def test_recorder_updates_last_used_in_background(db_session, issued, recorder) -> None:
    _, key, raw_key = issued
    Authenticator(recorder=recorder).authenticate(db_session, raw_key)
    recorder.drain(timeout=5)

    db_session.expire_all()
    refreshed = db_session.get(ApiKey, key.id)
    assert refreshed.last_used_at is not None
    assert ensure_utc(refreshed.last_used_at) <= utc_now()


def test_recorder_drops_updates_when_queue_is_full(session_factory) -> None:
    release = MagicMock()
    recorder = LastUsedRecorder(session_factory, max_workers=1, max_pending=1)
    blocker = threading.Event()
    recorder._touch = lambda key_id, when: (blocker.wait(5), release())
    try:
        assert recorder.record("first") is True
        assert recorder.record("second") is False
    finally:
        blocker.set()
        recorder.shutdown(wait_for_pending=True)
    release.assert_called_once()


def test_recorder_failures_are_swallowed(session_factory, caplog) -> None:
    store = MagicMock()
    store.touch_last_used.side_effect = RuntimeError("db down")
    recorder = LastUsedRecorder(session_factory, key_store=store)
    try:
        assert recorder.record("some-key") is True
        recorder.drain(timeout=5)
    finally:
        recorder.shutdown()
    assert "Failed updating api key last_used_at" in caplog.text
