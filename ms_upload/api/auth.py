"""HS256 bearer token verification for tokens issued by the identity service."""

import base64
import hmac
import json
import time
from dataclasses import dataclass, field
from hashlib import sha256
from typing import Any, Dict, Optional


class InvalidTokenError(Exception):
    """Token is malformed, badly signed or expired."""
    pass


def _b64url(data: bytes) -> str:
    return base64.urlsafe_b64encode(data).rstrip(b"=").decode("utf-8")


def _b64url_decode(data: str) -> bytes:
    padding = "=" * (-len(data) % 4)
    return base64.urlsafe_b64decode(data + padding)


@dataclass
class AuthContext:
    user_id: str
    email: str = ""
    claims: Dict[str, Any] = field(default_factory=dict)


class TokenVerifier:
    def __init__(self, secret: str) -> None:
        if not secret:
            raise ValueError("token secret must not be empty")
        self._secret = secret.encode("utf-8")

    def issue(self, claims: Dict[str, Any], expires_in: Optional[int] = 3600) -> str:
        """Sign claims. Used by tooling and tests; production tokens come from the identity service."""
        claims = dict(claims)
        if expires_in is not None and "exp" not in claims:
            claims["exp"] = int(time.time()) + expires_in
        header = {"alg": "HS256", "typ": "JWT"}
        signing_input = ".".join(
            [
                _b64url(json.dumps(header, separators=(",", ":"), sort_keys=True).encode()),
                _b64url(json.dumps(claims, separators=(",", ":"), sort_keys=True).encode()),
            ]
        )
        signature = hmac.new(self._secret, signing_input.encode("utf-8"), sha256).digest()
        return signing_input + "." + _b64url(signature)

    def decode(self, token: str) -> AuthContext:
        try:
            header_b64, payload_b64, sig_b64 = token.split(".")
        except ValueError:
            raise InvalidTokenError("invalid token")

        try:
            header = json.loads(_b64url_decode(header_b64))
            signature = _b64url_decode(sig_b64)
        except (ValueError, TypeError):
            raise InvalidTokenError("invalid token")
        if not isinstance(header, dict) or header.get("alg") != "HS256":
            raise InvalidTokenError("unsupported algorithm")

        signing_input = header_b64 + "." + payload_b64
        expected_sig = hmac.new(self._secret, signing_input.encode("utf-8"), sha256).digest()
        if not hmac.compare_digest(expected_sig, signature):
            raise InvalidTokenError("invalid signature")

        try:
            payload = json.loads(_b64url_decode(payload_b64))
        except (ValueError, TypeError):
            raise InvalidTokenError("invalid token")
        if not isinstance(payload, dict):
            raise InvalidTokenError("invalid token")

        exp = payload.get("exp")
        if exp is not None and (not isinstance(exp, (int, float)) or exp <= time.time()):
            raise InvalidTokenError("token expired")

        user_id = payload.get("sub")
        if not user_id:
            raise InvalidTokenError("token has no subject")

        return AuthContext(
            user_id=str(user_id),
            email=payload.get("email", ""),
            claims=payload,
        )
