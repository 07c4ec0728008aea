"""
Plugin registration: validate options, resolve the issuer, register the callback route and
the exception handlers, and expose the auth scheme on app.state.oidc.
"""
import logging
from dataclasses import dataclass
from typing import Any, Mapping

import httpx
from fastapi import FastAPI, Request
from fastapi.responses import JSONResponse

from oidc_rp.callback import CallbackHandler
from oidc_rp.client import OIDCClient
from oidc_rp.cookies import SessionCookieCodec
from oidc_rp.errors import AuthError
from oidc_rp.issuer import IssuerMetadata, resolve_issuer
from oidc_rp.models import ClientCredentials
from oidc_rp.options import PluginOptions
from oidc_rp.scheme import AuthScheme, LoginRedirect
from oidc_rp.validation import login_validation_from

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class OIDCPlugin:
    options: PluginOptions
    issuer: IssuerMetadata
    client: OIDCClient
    codec: SessionCookieCodec
    scheme: AuthScheme
    callback: CallbackHandler


async def _login_redirect_handler(request: Request, exc: LoginRedirect):
    return exc.response


async def _auth_error_handler(request: Request, exc: AuthError):
    response = JSONResponse(status_code=exc.status_code, content=exc.to_dict())
    plugin = getattr(request.app.state, "oidc", None)
    # Only a request that carried a login attempt drops the cookie.
    if plugin is not None and getattr(request.state, "oidc_login_attempt", None) is not None:
        response.delete_cookie(**plugin.codec.clear_cookie_kwargs())
    return response


def install_exception_handlers(app: FastAPI) -> None:
    """
    Handlers for LoginRedirect and AuthError. register() calls this; apps that register from
    a lifespan hook must call it at construction time, before the app starts serving.
    """
    app.add_exception_handler(LoginRedirect, _login_redirect_handler)
    app.add_exception_handler(AuthError, _auth_error_handler)


async def register(
    app: FastAPI,
    options: Mapping[str, Any] | PluginOptions,
    *,
    transport: httpx.AsyncBaseTransport | None = None,
) -> OIDCPlugin:
    """
    Register the OIDC plugin on `app`. Raises ConfigError before touching the app when
    options are invalid, and DiscoveryError when discovery fails.
    """
    opts = options if isinstance(options, PluginOptions) else PluginOptions.from_mapping(options)
    issuer = await resolve_issuer(opts, transport=transport)
    client = OIDCClient(
        issuer,
        ClientCredentials(client_id=opts.client_id, client_secret=opts.client_secret),
        timeout=opts.timeout,
        transport=transport,
    )
    codec = SessionCookieCodec(opts)
    callback = CallbackHandler(
        opts,
        client,
        codec,
        login_validation_from(opts.login_validation),
        store=opts.store,
    )
    plugin = OIDCPlugin(
        options=opts,
        issuer=issuer,
        client=client,
        codec=codec,
        scheme=AuthScheme(opts, client, codec),
        callback=callback,
    )

    async def oidc_callback(request: Request):
        return await callback(request)

    app.add_api_route(
        opts.callback_path,
        oidc_callback,
        methods=["GET"],
        include_in_schema=False,
        name="oidc_callback",
    )
    install_exception_handlers(app)
    app.state.oidc = plugin
    logger.info("OIDC plugin registered (issuer=%s, callback=%s)", issuer.issuer, opts.callback_path)
    return plugin
