"""
Tests for token encryption at rest and the signed OAuth state tokens.
"""

import time
from datetime import datetime, timedelta, timezone

import pytest
from cryptography.fernet import Fernet
from sqlalchemy import select

from config.settings import config
from connectors.encryption import decrypt_token, encrypt_token, reset_cipher
from connectors.state import (
    InvalidStateError,
    create_state,
    peek_nonce,
    pop_flow,
    stash_flow,
    verify_state,
)
from database.models import PendingOAuthFlow


class TestEncryption:
    def test_roundtrip_is_not_plaintext(self):
        cipher = encrypt_token("ya29.secret")
        assert cipher != "ya29.secret"
        assert decrypt_token(cipher) == "ya29.secret"

    def test_empty_values_pass_through(self):
        assert decrypt_token(None) is None
        assert decrypt_token("") == ""

    def test_legacy_plaintext_is_returned_unchanged(self):
        assert decrypt_token("plain-old-token") == "plain-old-token"

    def test_configured_key_is_used(self, monkeypatch):
        key = Fernet.generate_key().decode()
        monkeypatch.setattr(config, "token_encryption_key", key)
        reset_cipher()
        try:
            cipher = encrypt_token("abc")
            assert Fernet(key.encode()).decrypt(cipher.encode()) == b"abc"
        finally:
            monkeypatch.undo()
            reset_cipher()


class TestState:
    def test_verify_returns_payload(self):
        state, nonce = create_state(7, "google")
        payload = verify_state(state, "google")
        assert payload["user_id"] == 7
        assert payload["provider"] == "google"
        assert payload["nonce"] == nonce
        assert peek_nonce(state) == nonce

    def test_tampered_signature(self):
        state, _ = create_state(7, "google")
        with pytest.raises(InvalidStateError):
            verify_state(state[:-4] + "zzzz", "google")

    def test_wrong_provider(self):
        state, _ = create_state(7, "google")
        with pytest.raises(InvalidStateError):
            verify_state(state, "microsoft")

    def test_expired(self, monkeypatch):
        state, _ = create_state(7, "google")
        later = time.time() + config.oauth_state_ttl_seconds + 5
        monkeypatch.setattr(time, "time", lambda: later)
        with pytest.raises(InvalidStateError):
            verify_state(state, "google")

    @pytest.mark.parametrize("garbage", ["", "no-dot", "!!!.abc", "e30.deadbeef"])
    def test_garbage(self, garbage):
        with pytest.raises(InvalidStateError):
            verify_state(garbage, "google")

    def test_peek_nonce_on_garbage(self):
        assert peek_nonce(None) is None
        assert peek_nonce("no-dot") is None
        assert peek_nonce("!!!.abc") is None


class TestPendingFlows:
    @pytest.mark.asyncio
    async def test_pop_is_single_use(self, db, user):
        await stash_flow(db, "n1", user.id, "google")
        await stash_flow(db, "n2", user.id, "microsoft")
        await db.commit()

        assert await pop_flow(db, "n1") == {"user_id": user.id, "provider": "google"}
        assert await pop_flow(db, "n1") is None
        await db.commit()

        remaining = (await db.execute(select(PendingOAuthFlow.nonce))).scalars().all()
        assert remaining == ["n2"]

    @pytest.mark.asyncio
    async def test_stale_flows_are_pruned(self, db, user):
        created = datetime.now(timezone.utc) - timedelta(seconds=config.oauth_state_ttl_seconds + 60)
        db.add(PendingOAuthFlow(nonce="old", user_id=user.id, provider="google", created_at=created))
        await db.commit()

        await stash_flow(db, "new", user.id, "google")
        await db.commit()

        remaining = (await db.execute(select(PendingOAuthFlow.nonce))).scalars().all()
        assert remaining == ["new"]

    @pytest.mark.asyncio
    async def test_stale_flow_is_consumed_but_not_returned(self, db, user):
        created = datetime.now(timezone.utc) - timedelta(seconds=config.oauth_state_ttl_seconds + 60)
        db.add(PendingOAuthFlow(nonce="old", user_id=user.id, provider="google", created_at=created))
        await db.commit()

        assert await pop_flow(db, "old") is None
        await db.commit()
        assert await db.get(PendingOAuthFlow, "old") is None

    @pytest.mark.asyncio
    async def test_pop_without_nonce(self, db):
        assert await pop_flow(db, None) is None
        assert await pop_flow(db, "") is None
