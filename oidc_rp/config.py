"""
Demo app configuration from environment. No secrets in this file.
load_options() returns the mapping handed to oidc_rp.register().
"""
import os
from typing import Any

CLIENT_ID = os.environ.get("OIDC_CLIENT_ID", "")
CLIENT_SECRET = os.environ.get("OIDC_CLIENT_SECRET", "")

# Callback URL where the IdP redirects after authorization
CALLBACK_URL = os.environ.get("OIDC_CALLBACK_URL", "http://127.0.0.1:8000/callback")
XHR_CALLBACK_URL = os.environ.get("OIDC_XHR_CALLBACK_URL", "").strip() or None

# Either discovery ...
DISCOVER_URL = os.environ.get("OIDC_DISCOVER_URL", "").strip() or None
# ... or the manual endpoint set
ISSUER = os.environ.get("OIDC_ISSUER", "").strip() or None
AUTHORIZATION_ENDPOINT = os.environ.get("OIDC_AUTHORIZATION_ENDPOINT", "").strip() or None
TOKEN_ENDPOINT = os.environ.get("OIDC_TOKEN_ENDPOINT", "").strip() or None
USERINFO_ENDPOINT = os.environ.get("OIDC_USERINFO_ENDPOINT", "").strip() or None
JWKS_URI = os.environ.get("OIDC_JWKS_URI", "").strip() or None

COOKIE_NAME = os.environ.get("OIDC_COOKIE", "hapi-oidc")
SCOPE = os.environ.get("OIDC_SCOPE", "openid")
COOKIE_SECRET = os.environ.get("OIDC_COOKIE_SECRET", "").strip() or None

# Set to persist userinfo/token entries (e.g. sqlite:///./oidc_rp.db)
STORE_DATABASE_URL = os.environ.get("OIDC_STORE_DATABASE_URL", "").strip() or None


def load_options() -> dict[str, Any]:
    options: dict[str, Any] = {
        "clientId": CLIENT_ID,
        "clientSecret": CLIENT_SECRET,
        "callbackUrl": CALLBACK_URL,
        "cookie": COOKIE_NAME,
        "scope": SCOPE,
    }
    optional = {
        "xhrCallbackUrl": XHR_CALLBACK_URL,
        "discoverUrl": DISCOVER_URL,
        "issuer": ISSUER,
        "authorization": AUTHORIZATION_ENDPOINT,
        "token": TOKEN_ENDPOINT,
        "userinfo": USERINFO_ENDPOINT,
        "jwks": JWKS_URI,
        "cookieSecret": COOKIE_SECRET,
    }
    options.update({k: v for k, v in optional.items() if v is not None})
    if STORE_DATABASE_URL:
        from oidc_rp.stores import SQLStore

        options["store"] = SQLStore(STORE_DATABASE_URL)
    return options
