"""Tests for token, caller-identity and API key helpers."""

from __future__ import annotations

from datetime import timedelta
import asyncio

import jwt
from fastapi.security import HTTPAuthorizationCredentials

from usage_analytics.middleware.auth_middleware import get_current_user_optional
from usage_analytics.repositories.base import BaseRepository
from usage_analytics.utils.security import (
    JWT_ALGORITHM,
    JWT_SECRET,
    create_access_token,
    decode_token,
    generate_api_key,
    hash_api_key,
)


def test_generated_key_shape() -> None:
    full_key, prefix, key_hash = generate_api_key()

    assert full_key.startswith("ak_")
    assert len(full_key) == 35
    assert prefix == full_key[:12]
    assert key_hash == hash_api_key(full_key)
    assert len(key_hash) == 64


def test_generated_keys_are_unique() -> None:
    keys = {generate_api_key()[0] for _ in range(50)}
    assert len(keys) == 50


def test_hash_is_deterministic_and_not_the_key() -> None:
    assert hash_api_key("ak_abc") == hash_api_key("ak_abc")
    assert hash_api_key("ak_abc") != hash_api_key("ak_abd")
    assert "ak_abc" not in hash_api_key("ak_abc")


def test_access_token_round_trip() -> None:
    payload = decode_token(create_access_token("owner-1", email="owner@example.com"))
    assert payload["sub"] == "owner-1"
    assert payload["type"] == "access"
    assert payload["email"] == "owner@example.com"


def test_expired_token_is_rejected() -> None:
    token = create_access_token("owner-1", expires_delta=timedelta(seconds=-10))
    assert decode_token(token) is None


def test_token_signed_with_other_secret_is_rejected() -> None:
    token = jwt.encode({"sub": "owner-1"}, JWT_SECRET + "-other", algorithm=JWT_ALGORITHM)
    assert decode_token(token) is None


def test_caller_context_carries_only_the_subject() -> None:
    credentials = HTTPAuthorizationCredentials(
        scheme="Bearer",
        credentials=create_access_token("owner-1", email="owner@example.com"),
    )
    ctx = asyncio.run(get_current_user_optional(credentials))
    assert vars(ctx) == {"caller_id": "owner-1"}


def test_repositories_share_only_the_add_helper() -> None:
    assert not hasattr(BaseRepository, "get")
    assert not hasattr(BaseRepository, "model")
