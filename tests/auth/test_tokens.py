"""Tests for signed session and federation-state tokens."""

from datetime import datetime, timedelta, timezone

import jwt
import pytest

from cwhub.auth.tokens import create_session_token, create_state_token, verify_token
from cwhub.config import get_settings


class TestSessionTokens:
    def test_round_trip_claims(self):
        token = create_session_token("user-1", "session-1")
        payload = verify_token(token)
        assert payload["sub"] == "user-1"
        assert payload["sid"] == "session-1"
        assert payload["type"] == "session"
        assert payload["iss"] == get_settings().session_issuer

    def test_swapped_payload_rejected(self):
        header, _, signature = create_session_token("user-1", "session-1").split(".")
        _, payload, _ = create_session_token("user-2", "session-1").split(".")
        with pytest.raises(jwt.InvalidTokenError):
            verify_token(f"{header}.{payload}.{signature}")

    def test_foreign_secret_rejected(self):
        forged = jwt.encode(
            {"sub": "user-1", "sid": "session-1", "type": "session", "iss": get_settings().session_issuer},
            "some-other-secret-entirely",
            algorithm="HS256",
        )
        with pytest.raises(jwt.InvalidTokenError):
            verify_token(forged)

    def test_wrong_issuer_rejected(self):
        forged = jwt.encode(
            {"sub": "user-1", "sid": "session-1", "type": "session", "iss": "someone-else"},
            get_settings().session_secret,
            algorithm="HS256",
        )
        with pytest.raises(jwt.InvalidTokenError):
            verify_token(forged)

    def test_issued_at_is_honoured(self):
        issued = datetime.now(timezone.utc) - timedelta(hours=1)
        payload = verify_token(create_session_token("u", "s", issued_at=issued))
        assert payload["iat"] == int(issued.timestamp())


class TestStateTokens:
    def test_state_token_verifies_as_state(self):
        payload = verify_token(create_state_token(), expected_type="federation_state")
        assert len(payload["nonce"]) == 32

    def test_state_token_is_not_a_session(self):
        with pytest.raises(jwt.InvalidTokenError, match="Expected token type"):
            verify_token(create_state_token(), expected_type="session")

    def test_session_token_is_not_a_state(self):
        with pytest.raises(jwt.InvalidTokenError):
            verify_token(create_session_token("u", "s"), expected_type="federation_state")

    def test_expired_state_rejected(self, monkeypatch):
        monkeypatch.setenv("CWH_FEDERATION_STATE_TTL_SECONDS", "-5")
        get_settings.cache_clear()
        token = create_state_token()
        with pytest.raises(jwt.InvalidTokenError, match="expired"):
            verify_token(token, expected_type="federation_state")
