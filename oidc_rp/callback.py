"""
Callback handler: the IdP redirects here with ?code=...&state=... (or ?error=...).
Validates state against the login-progress cookie, exchanges the code, fetches userinfo,
runs login validation (optional), persists (optional), sets the authenticated cookie and
redirects back to where the login started.
"""
import inspect
import logging
from typing import Any

import jwt
from fastapi import Request
from fastapi.concurrency import run_in_threadpool
from fastapi.responses import RedirectResponse

from oidc_rp.client import OIDCClient, decode_unverified
from oidc_rp.cookies import SessionCookieCodec
from oidc_rp.errors import AuthError, StateMismatchError, TokenExchangeError, UpstreamError, ValidationFailedError
from oidc_rp.models import AuthenticatedSession, TokenResponse
from oidc_rp.options import PluginOptions
from oidc_rp.validation import LoginValidation

logger = logging.getLogger(__name__)
# Callback failures are logged on their own channel, tagged error/auth.
auth_logger = logging.getLogger("oidc_rp.auth")
AUTH_ERROR_TAGS = ["error", "auth"]


class CallbackHandler:
    def __init__(
        self,
        options: PluginOptions,
        client: OIDCClient,
        codec: SessionCookieCodec,
        validation: LoginValidation,
        store: Any = None,
    ):
        self._options = options
        self._client = client
        self._codec = codec
        self._validation = validation
        self._store = store

    async def __call__(self, request: Request) -> RedirectResponse:
        try:
            return await self._complete_login(request)
        except Exception as err:
            description = getattr(err, "error_description", None) or str(err)
            auth_logger.error(
                "OIDC callback failed (%s): %s",
                type(err).__name__,
                description,
                extra={"tags": AUTH_ERROR_TAGS},
            )
            if isinstance(err, AuthError):
                raise
            raise UpstreamError(description) from err

    async def _complete_login(self, request: Request) -> RedirectResponse:
        attempt = self._codec.decode_login(request.cookies.get(self._codec.name))
        if attempt is None:
            raise StateMismatchError("missing login state")
        # Marks the request as a login attempt; its cookie is cleared if the attempt fails.
        request.state.oidc_login_attempt = attempt

        token = await self._client.callback(
            self._options.callback_url_for(request.headers),
            dict(request.query_params),
            state=attempt.state,
            nonce=attempt.nonce,
        )
        userinfo = await self._client.userinfo(token)

        try:
            credentials = decode_unverified(token.access_token)
        except jwt.InvalidTokenError as e:
            raise TokenExchangeError("access token is not a decodable JWT", error="invalid_token") from e

        if not await self._validation.validate_login(credentials, userinfo):
            raise ValidationFailedError("login failed validation")
        # Only logins that will get a session are persisted.
        await self._persist(token, userinfo)

        response = RedirectResponse(url=attempt.return_to, status_code=302)
        value = self._codec.encode_session(AuthenticatedSession(credentials=credentials))
        response.set_cookie(**self._codec.session_cookie_kwargs(value))
        logger.info("OIDC login completed for sub=%s", credentials.get("sub"))
        return response

    async def _persist(self, token: TokenResponse, userinfo: dict[str, Any]) -> None:
        if self._store is None:
            return
        entries = [
            (f"{token.access_token}userInfos", userinfo),
            (f"{token.access_token}token", token.as_dict()),
        ]
        try:
            save = self._store.save
            if inspect.iscoroutinefunction(save):
                await save(entries)
            else:
                result = await run_in_threadpool(save, entries)
                if inspect.isawaitable(result):
                    await result
        except AuthError:
            raise
        except Exception as e:
            raise UpstreamError(f"Persisting login failed: {e}") from e
