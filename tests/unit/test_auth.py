"""
Tests for bearer token verification.
"""

import base64
import json
import time

import pytest

from ms_upload.api.auth import InvalidTokenError, TokenVerifier


def b64(obj) -> str:
    raw = json.dumps(obj).encode()
    return base64.urlsafe_b64encode(raw).rstrip(b"=").decode()


@pytest.fixture
def verifier():
    return TokenVerifier("secret")


class TestTokenVerifier:

    def test_round_trip(self, verifier):
        token = verifier.issue({"sub": "u1", "email": "u1@example.com"})

        context = verifier.decode(token)

        assert context.user_id == "u1"
        assert context.email == "u1@example.com"
        assert "exp" in context.claims

    def test_numeric_subject_is_stringified(self, verifier):
        assert verifier.decode(verifier.issue({"sub": 42})).user_id == "42"

    def test_wrong_secret_is_rejected(self, verifier):
        token = TokenVerifier("other").issue({"sub": "u1"})
        with pytest.raises(InvalidTokenError, match="signature"):
            verifier.decode(token)

    def test_tampered_payload_is_rejected(self, verifier):
        header, _, signature = verifier.issue({"sub": "u1"}).split(".")
        forged = ".".join([header, b64({"sub": "admin"}), signature])

        with pytest.raises(InvalidTokenError):
            verifier.decode(forged)

    def test_expired_token_is_rejected(self, verifier):
        token = verifier.issue({"sub": "u1", "exp": int(time.time()) - 10})
        with pytest.raises(InvalidTokenError, match="expired"):
            verifier.decode(token)

    def test_missing_subject_is_rejected(self, verifier):
        with pytest.raises(InvalidTokenError, match="subject"):
            verifier.decode(verifier.issue({"email": "x@example.com"}))

    def test_alg_none_is_rejected(self, verifier):
        token = ".".join([b64({"alg": "none", "typ": "JWT"}), b64({"sub": "u1"}), ""])
        with pytest.raises(InvalidTokenError, match="algorithm"):
            verifier.decode(token)

    @pytest.mark.parametrize("token", ["", "abc", "a.b", "a.b.c.d", "!!!.@@@.###"])
    def test_malformed_tokens_are_rejected(self, verifier, token):
        with pytest.raises(InvalidTokenError):
            verifier.decode(token)

    def test_empty_secret_is_refused(self):
        with pytest.raises(ValueError):
            TokenVerifier("")
