"""
Session Token Tests.

Tests: round trip, expiry, tampering, wrong secret, malformed subject.
"""

from datetime import timedelta

import pytest
from jose import jwt

from eduaudit.auth.jwt import TokenError, create_session_token, decode_session_token
from eduaudit.config import settings


class TestSessionTokens:
    def test_round_trip(self):
        assert decode_session_token(create_session_token(42)) == 42

    def test_expired(self):
        token = create_session_token(42, expires_delta=timedelta(seconds=-1))
        with pytest.raises(TokenError):
            decode_session_token(token)

    def test_tampered_signature(self):
        token = create_session_token(42)
        head, body, sig = token.split(".")
        tampered = ".".join([head, body, sig[:-2] + ("AA" if not sig.endswith("AA") else "BB")])
        with pytest.raises(TokenError):
            decode_session_token(tampered)

    def test_wrong_secret(self):
        token = jwt.encode({"sub": "42"}, "some-other-secret", algorithm="HS256")
        with pytest.raises(TokenError):
            decode_session_token(token)

    def test_missing_subject(self):
        token = jwt.encode({"iat": 0}, settings.session_secret, algorithm=settings.session_algorithm)
        with pytest.raises(TokenError, match="subject"):
            decode_session_token(token)

    def test_non_integer_subject(self):
        token = jwt.encode({"sub": "alice"}, settings.session_secret, algorithm=settings.session_algorithm)
        with pytest.raises(TokenError, match="not a user id"):
            decode_session_token(token)

    def test_garbage(self):
        with pytest.raises(TokenError):
            decode_session_token("not-a-token")
