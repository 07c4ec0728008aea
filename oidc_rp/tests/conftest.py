"""
Pytest configuration for oidc_rp. The IdP is faked with httpx.MockTransport so no test
touches the network; access/ID tokens are real RS256 JWTs signed with a throwaway key.
"""
import asyncio
import time
from urllib.parse import parse_qs, urlsplit

import httpx
import jwt
import pytest
from cryptography.hazmat.backends import default_backend
from cryptography.hazmat.primitives.asymmetric.rsa import generate_private_key
from fastapi import Depends, FastAPI
from fastapi.testclient import TestClient

from oidc_rp.plugin import register
from oidc_rp.scheme import require_credentials

IDP = "https://idp.example"
CALLBACK_URL = "http://testserver/auth/callback"
XHR_CALLBACK_URL = "http://testserver/auth/xhr-callback"

DISCOVERY_DOC = {
    "issuer": IDP,
    "authorization_endpoint": f"{IDP}/authorize",
    "token_endpoint": f"{IDP}/token",
    "userinfo_endpoint": f"{IDP}/userinfo",
    "jwks_uri": f"{IDP}/.well-known/jwks.json",
}

_KEY = generate_private_key(65537, 2048, default_backend())


def make_jwt(claims: dict) -> str:
    now = int(time.time())
    payload = {"iss": IDP, "iat": now, "exp": now + 3600, **claims}
    return jwt.encode(payload, _KEY, algorithm="RS256", headers={"kid": "test-key"})


class FakeIdP:
    """Token, userinfo and discovery endpoints; records every request it receives."""

    def __init__(self):
        self.requests: list[httpx.Request] = []
        self.subject = "user-1"
        self.nonce: str | None = None
        self.token_status = 200
        self.token_error = {"error": "invalid_grant", "error_description": "Code expired"}
        self.userinfo_status = 200
        self.userinfo = {"sub": "user-1", "email": "user1@example.com", "name": "User One"}
        self.discovery_status = 200
        self.issued_access_tokens: list[str] = []

    def handler(self, request: httpx.Request) -> httpx.Response:
        self.requests.append(request)
        path = request.url.path
        if path == "/.well-known/openid-configuration":
            if self.discovery_status != 200:
                return httpx.Response(self.discovery_status, text="unavailable")
            return httpx.Response(200, json=DISCOVERY_DOC)
        if path == "/token":
            if self.token_status != 200:
                return httpx.Response(self.token_status, json=self.token_error)
            access_token = make_jwt({"sub": self.subject, "scope": "openid", "jti": str(len(self.requests))})
            self.issued_access_tokens.append(access_token)
            body = {
                "access_token": access_token,
                "token_type": "Bearer",
                "expires_in": 600,
                "scope": "openid",
                "refresh_token": "rt-1",
            }
            if self.nonce is not None:
                body["id_token"] = make_jwt({"sub": self.subject, "aud": "test-client", "nonce": self.nonce})
            return httpx.Response(200, json=body)
        if path == "/userinfo":
            if self.userinfo_status != 200:
                return httpx.Response(self.userinfo_status, json={"error": "invalid_token"})
            return httpx.Response(200, json=self.userinfo)
        return httpx.Response(404)

    @property
    def transport(self) -> httpx.MockTransport:
        return httpx.MockTransport(self.handler)

    def token_requests(self) -> list[httpx.Request]:
        return [r for r in self.requests if r.url.path == "/token"]

    def token_form(self, index: int = -1) -> dict[str, str]:
        req = self.token_requests()[index]
        return {k: v[0] for k, v in parse_qs(req.content.decode()).items()}


def base_options(**overrides) -> dict:
    options = {
        "clientId": "test-client",
        "clientSecret": "test-secret",
        "callbackUrl": CALLBACK_URL,
        "xhrCallbackUrl": XHR_CALLBACK_URL,
        "issuer": IDP,
        "authorization": f"{IDP}/authorize",
        "token": f"{IDP}/token",
        "userinfo": f"{IDP}/userinfo",
        "jwks": f"{IDP}/.well-known/jwks.json",
    }
    options.update(overrides)
    return options


def make_app(idp: FakeIdP, **overrides) -> tuple[FastAPI, object]:
    app = FastAPI()

    @app.get("/protected")
    def protected(credentials: dict = Depends(require_credentials)):
        return credentials

    @app.get("/reports/{name}")
    def report(name: str, credentials: dict = Depends(require_credentials)):
        return {"report": name, "sub": credentials.get("sub")}

    @app.get("/open")
    def open_route():
        return {"ok": True}

    plugin = asyncio.run(register(app, base_options(**overrides), transport=idp.transport))
    return app, plugin


def authorize_params(response) -> dict[str, str]:
    """Query params of the redirect to the IdP's authorization endpoint."""
    location = response.headers["location"]
    return {k: v[0] for k, v in parse_qs(urlsplit(location).query).items()}


def start_login(client: TestClient, path: str = "/protected", headers: dict | None = None) -> dict[str, str]:
    r = client.get(path, headers=headers or {}, follow_redirects=False)
    assert r.status_code == 302
    return authorize_params(r)


@pytest.fixture
def idp():
    return FakeIdP()


@pytest.fixture
def app_and_plugin(idp):
    return make_app(idp)


@pytest.fixture
def client(app_and_plugin):
    app, _ = app_and_plugin
    return TestClient(app)
