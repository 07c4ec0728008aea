"""
Cookie codec for the two values the plugin keeps in the browser under one cookie name:
the login-progress value {state, returnTo, nonce} and the authenticated value {credentials}.
Both are signed; distinct salts keep one from being accepted as the other.
"""
import json
import logging
from typing import Any

from itsdangerous import BadData, SignatureExpired, URLSafeTimedSerializer

from oidc_rp.models import AuthenticatedSession, LoginAttempt
from oidc_rp.options import PluginOptions

logger = logging.getLogger(__name__)

LOGIN_SALT = "oidc-rp-login-v1"
SESSION_SALT = "oidc-rp-session-v1"


class SessionCookieCodec:
    def __init__(self, options: PluginOptions):
        self.name = options.cookie
        self.secure = options.secure_cookies
        self.login_ttl = options.login_ttl
        self._login = URLSafeTimedSerializer(secret_key=options.signing_secret, salt=LOGIN_SALT)
        self._session = URLSafeTimedSerializer(secret_key=options.signing_secret, salt=SESSION_SALT)

    def encode_login(self, attempt: LoginAttempt) -> str:
        payload = {"state": attempt.state, "returnTo": attempt.return_to}
        if attempt.nonce:
            payload["nonce"] = attempt.nonce
        return self._login.dumps(json.dumps(payload, separators=(",", ":"), sort_keys=True))

    def decode_login(self, value: str | None) -> LoginAttempt | None:
        """LoginAttempt from the cookie, or None if missing, tampered or older than loginTtl."""
        if not value:
            return None
        try:
            raw = self._login.loads(value, max_age=self.login_ttl)
            data = json.loads(raw)
        except SignatureExpired:
            logger.debug("Login cookie expired")
            return None
        except (BadData, ValueError):
            return None
        if not isinstance(data, dict) or not data.get("state") or not data.get("returnTo"):
            return None
        return LoginAttempt(
            state=str(data["state"]),
            return_to=str(data["returnTo"]),
            nonce=str(data["nonce"]) if data.get("nonce") else None,
        )

    def encode_session(self, session: AuthenticatedSession) -> str:
        raw = json.dumps({"credentials": session.credentials}, separators=(",", ":"), sort_keys=True)
        return self._session.dumps(raw)

    def decode_session(self, value: str | None) -> AuthenticatedSession | None:
        if not value:
            return None
        try:
            data = json.loads(self._session.loads(value))
        except (BadData, ValueError):
            return None
        if not isinstance(data, dict) or not isinstance(data.get("credentials"), dict):
            return None
        return AuthenticatedSession(credentials=data["credentials"])

    def login_cookie_kwargs(self, value: str) -> dict[str, Any]:
        return {
            "key": self.name,
            "value": value,
            "max_age": self.login_ttl,
            "httponly": True,
            "secure": self.secure,
            "samesite": "lax",
            "path": "/",
        }

    def session_cookie_kwargs(self, value: str) -> dict[str, Any]:
        # No max_age: browser-session cookie, expiry policy is left to the host.
        return {
            "key": self.name,
            "value": value,
            "httponly": True,
            "secure": self.secure,
            "samesite": "lax",
            "path": "/",
        }

    def clear_cookie_kwargs(self) -> dict[str, Any]:
        return {
            "key": self.name,
            "httponly": True,
            "secure": self.secure,
            "samesite": "lax",
            "path": "/",
        }
