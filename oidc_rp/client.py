"""
OpenID Connect client for the authorization code flow (RFC 6749 §4.1, OIDC Core §3.1).
Builds the authorization URL, exchanges the code at the token endpoint and calls userinfo.
Holds only immutable configuration; every call opens its own httpx.AsyncClient.
"""
import secrets
from typing import Any, Mapping
from urllib.parse import parse_qsl, quote, urlencode, urlsplit, urlunsplit

import httpx
import jwt

from oidc_rp.errors import (
    NonceMismatchError,
    ProviderError,
    StateMismatchError,
    TokenExchangeError,
    UpstreamError,
)
from oidc_rp.issuer import IssuerMetadata
from oidc_rp.models import ClientCredentials, TokenResponse


def generate_state() -> str:
    """Opaque value for CSRF protection; returned in callback."""
    return secrets.token_urlsafe(32)


def generate_nonce() -> str:
    """Random value for ID token binding."""
    return secrets.token_urlsafe(32)


def decode_unverified(token: str) -> dict[str, Any]:
    """
    Claims of a JWT without checking its signature (or exp/aud/iss).
    Raises jwt.InvalidTokenError if the token is not a decodable JWT.
    """
    claims = jwt.decode(token, options={"verify_signature": False})
    if not isinstance(claims, dict):
        raise jwt.InvalidTokenError("JWT payload is not an object")
    return claims


def build_authorize_url(
    authorization_endpoint: str,
    *,
    client_id: str,
    redirect_uri: str,
    scope: str,
    state: str,
    nonce: str | None = None,
) -> str:
    """Authorization endpoint URL with the code-flow params; keeps any query the endpoint already has."""
    params = {
        "response_type": "code",
        "client_id": client_id,
        "redirect_uri": redirect_uri,
        "scope": scope,
        "state": state,
    }
    if nonce:
        params["nonce"] = nonce
    parts = urlsplit(authorization_endpoint)
    query = parse_qsl(parts.query, keep_blank_values=True) + list(params.items())
    return urlunsplit(parts._replace(query=urlencode(query)))


def _error_fields(r: httpx.Response) -> tuple[str, str]:
    """(error, error_description) from an OAuth error body; falls back to the status line."""
    err: dict = {}
    if r.headers.get("content-type", "").startswith("application/json"):
        try:
            body = r.json()
        except ValueError:
            body = None
        if isinstance(body, dict):
            err = body
    error = str(err.get("error") or "invalid_grant")
    desc = err.get("error_description") or err.get("error") or f"Token endpoint returned {r.status_code}"
    return error, str(desc)


class OIDCClient:
    def __init__(
        self,
        issuer: IssuerMetadata,
        credentials: ClientCredentials,
        *,
        timeout: float = 10.0,
        transport: httpx.AsyncBaseTransport | None = None,
    ):
        self._issuer = issuer
        self._credentials = credentials
        self._timeout = timeout
        self._transport = transport

    @property
    def issuer(self) -> IssuerMetadata:
        return self._issuer

    @property
    def client_id(self) -> str:
        return self._credentials.client_id

    def _http(self) -> httpx.AsyncClient:
        return httpx.AsyncClient(transport=self._transport, timeout=self._timeout)

    def authorization_url(self, *, redirect_uri: str, scope: str, state: str, nonce: str | None = None) -> str:
        return build_authorize_url(
            self._issuer.authorization_endpoint,
            client_id=self._credentials.client_id,
            redirect_uri=redirect_uri,
            scope=scope,
            state=state,
            nonce=nonce,
        )

    async def callback(
        self,
        redirect_uri: str,
        params: Mapping[str, str],
        *,
        state: str,
        nonce: str | None = None,
    ) -> TokenResponse:
        """
        Validate the IdP's redirect params against the expected state, then exchange the code.
        The state check happens before any network call.
        """
        returned_state = params.get("state")
        # Compare bytes: compare_digest rejects non-ASCII str.
        if not returned_state or not secrets.compare_digest(returned_state.encode(), state.encode()):
            raise StateMismatchError("state mismatch")
        if params.get("error"):
            raise ProviderError(
                params.get("error_description") or params["error"],
                error=params["error"],
            )
        code = params.get("code")
        if not code:
            raise ProviderError("missing code", error="invalid_request")

        # client_secret_basic: id and secret are form-encoded before base64 (RFC 6749 §2.3.1)
        auth = (quote(self._credentials.client_id, safe=""), quote(self._credentials.client_secret, safe=""))
        try:
            async with self._http() as http:
                r = await http.post(
                    self._issuer.token_endpoint,
                    data={
                        "grant_type": "authorization_code",
                        "code": code,
                        "redirect_uri": redirect_uri,
                    },
                    auth=auth,
                    headers={"Accept": "application/json"},
                )
        except httpx.HTTPError as e:
            raise UpstreamError(f"Token request failed: {e}") from e

        if r.status_code != 200:
            error, desc = _error_fields(r)
            raise TokenExchangeError(desc, error=error)
        try:
            data = r.json()
        except ValueError as e:
            raise TokenExchangeError("Token response is not valid JSON") from e
        if not isinstance(data, dict) or not data.get("access_token"):
            raise TokenExchangeError("Token response missing access_token")
        token = TokenResponse.from_json(data)

        if nonce and token.id_token:
            try:
                id_claims = decode_unverified(token.id_token)
            except jwt.InvalidTokenError as e:
                raise TokenExchangeError("ID token is not a valid JWT", error="invalid_token") from e
            if id_claims.get("nonce") != nonce:
                raise NonceMismatchError("nonce mismatch")
        return token

    async def userinfo(self, token: TokenResponse) -> dict[str, Any]:
        """Claims from the userinfo endpoint for the given access token."""
        if not self._issuer.userinfo_endpoint:
            raise UpstreamError("Issuer has no userinfo endpoint")
        try:
            async with self._http() as http:
                r = await http.get(
                    self._issuer.userinfo_endpoint,
                    headers={
                        "Authorization": f"Bearer {token.access_token}",
                        "Accept": "application/json",
                    },
                )
        except httpx.HTTPError as e:
            raise UpstreamError(f"Userinfo request failed: {e}") from e
        if r.status_code != 200:
            raise UpstreamError(f"Userinfo endpoint returned {r.status_code}")
        try:
            claims = r.json()
        except ValueError as e:
            raise UpstreamError("Userinfo response is not valid JSON") from e
        if not isinstance(claims, dict):
            raise UpstreamError("Userinfo response is not an object")
        return claims
