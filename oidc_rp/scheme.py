"""
Per-request authentication state machine.
ANONYMOUS requests are sent to the IdP (becoming LOGIN_PENDING); requests carrying a valid
authenticated cookie are AUTHENTICATED and get their credentials attached.
"""
import enum
import logging
from typing import Any

from fastapi import Request
from fastapi.responses import RedirectResponse

from oidc_rp.client import OIDCClient, generate_nonce, generate_state
from oidc_rp.cookies import SessionCookieCodec
from oidc_rp.models import LoginAttempt
from oidc_rp.options import PluginOptions

logger = logging.getLogger(__name__)


class AuthState(enum.Enum):
    ANONYMOUS = "anonymous"
    LOGIN_PENDING = "login_pending"
    AUTHENTICATED = "authenticated"


class LoginRedirect(Exception):
    """Raised from the scheme dependency; the plugin's exception handler returns `response`."""

    def __init__(self, response: RedirectResponse, attempt: LoginAttempt):
        super().__init__("login required")
        self.response = response
        self.attempt = attempt


class AuthScheme:
    def __init__(self, options: PluginOptions, client: OIDCClient, codec: SessionCookieCodec):
        self._options = options
        self._client = client
        self._codec = codec

    def authenticate(self, request: Request) -> tuple[AuthState, dict[str, Any] | None]:
        """Classify the request from its cookie; no side effects."""
        session = self._codec.decode_session(request.cookies.get(self._codec.name))
        if session is None:
            return AuthState.ANONYMOUS, None
        return AuthState.AUTHENTICATED, session.credentials

    def start_login(self, request: Request) -> tuple[RedirectResponse, LoginAttempt]:
        """ANONYMOUS -> LOGIN_PENDING: set the login-progress cookie and redirect to the IdP."""
        attempt = LoginAttempt(
            state=generate_state(),
            return_to=str(request.url),
            nonce=generate_nonce(),
        )
        url = self._client.authorization_url(
            redirect_uri=self._options.callback_url_for(request.headers),
            scope=self._options.scope,
            state=attempt.state,
            nonce=attempt.nonce,
        )
        response = RedirectResponse(url=url, status_code=302)
        response.set_cookie(**self._codec.login_cookie_kwargs(self._codec.encode_login(attempt)))
        logger.debug("Redirecting %s to authorization endpoint", request.url.path)
        return response, attempt

    async def __call__(self, request: Request) -> dict[str, Any]:
        """Dependency: credentials of the logged-in user, or LoginRedirect to the IdP."""
        state, credentials = self.authenticate(request)
        if state is AuthState.AUTHENTICATED:
            request.state.credentials = credentials
            return credentials
        response, attempt = self.start_login(request)
        raise LoginRedirect(response, attempt)


async def require_credentials(request: Request) -> dict[str, Any]:
    """Dependency using the scheme registered on this app by oidc_rp.register()."""
    plugin = getattr(request.app.state, "oidc", None)
    if plugin is None:
        raise RuntimeError("oidc_rp plugin is not registered on this app")
    return await plugin.scheme(request)
