"""
Plugin options: recognised keys, defaults, and startup validation.
Accepts the camelCase names used in plugin configuration (clientId, callbackUrl, ...)
or their snake_case equivalents.
"""
import logging
import re
from dataclasses import dataclass, fields
from typing import Any, Callable, Mapping
from urllib.parse import urlparse

from oidc_rp.errors import ConfigError

logger = logging.getLogger(__name__)

MANUAL_SETTINGS = ("issuer", "authorization", "token", "userinfo", "jwks")

PLUGIN_DEFAULTS = {
    "cookie": "hapi-oidc",
    "scope": "openid",
}

# Login-progress cookie lifetime (seconds); the user has this long at the IdP.
DEFAULT_LOGIN_TTL = 600
DEFAULT_TIMEOUT = 10.0


def _snake(name: str) -> str:
    return re.sub(r"(?<!^)(?=[A-Z])", "_", name).lower()


@dataclass(frozen=True)
class PluginOptions:
    client_id: str
    client_secret: str
    callback_url: str
    xhr_callback_url: str | None = None
    discover_url: str | None = None
    issuer: str | None = None
    authorization: str | None = None
    token: str | None = None
    userinfo: str | None = None
    jwks: str | None = None
    cookie: str = PLUGIN_DEFAULTS["cookie"]
    scope: str = PLUGIN_DEFAULTS["scope"]
    store: Any = None
    login_validation: Callable[..., Any] | None = None
    cookie_secret: str | None = None
    cookie_secure: bool | None = None
    login_ttl: int = DEFAULT_LOGIN_TTL
    timeout: float = DEFAULT_TIMEOUT

    @classmethod
    def from_mapping(cls, options: Mapping[str, Any]) -> "PluginOptions":
        """Merge options over PLUGIN_DEFAULTS and validate. Raises ConfigError."""
        known = {f.name for f in fields(cls)}
        config: dict[str, Any] = dict(PLUGIN_DEFAULTS)
        for key, value in options.items():
            name = _snake(key)
            if name not in known:
                logger.warning("Ignoring unknown option: %s", key)
                continue
            if value is not None:
                config[name] = value

        if not config.get("client_id") or not config.get("client_secret"):
            raise ConfigError("You must provide a clientId and a clientSecret")
        if not config.get("callback_url"):
            raise ConfigError("You must provide a callbackUrl")
        if not config.get("discover_url") and any(not config.get(k) for k in MANUAL_SETTINGS):
            raise ConfigError("You must provide a discoverUrl or a valid manual settings")

        store = config.get("store")
        if store is not None and not callable(getattr(store, "save", None)):
            raise ConfigError("store must expose a save(entries) method")
        login_validation = config.get("login_validation")
        if login_validation is not None and not callable(login_validation):
            raise ConfigError("loginValidation must be callable")
        try:
            login_ttl = int(config.get("login_ttl", DEFAULT_LOGIN_TTL))
        except (TypeError, ValueError) as e:
            raise ConfigError("loginTtl must be a positive number of seconds") from e
        if login_ttl <= 0:
            raise ConfigError("loginTtl must be a positive number of seconds")
        config["login_ttl"] = login_ttl

        return cls(**config)

    @property
    def callback_path(self) -> str:
        """Path component of callbackUrl; the route registered for the callback handler."""
        return urlparse(self.callback_url).path or "/"

    @property
    def uses_discovery(self) -> bool:
        return bool(self.discover_url)

    @property
    def signing_secret(self) -> str:
        return self.cookie_secret or self.client_secret

    @property
    def secure_cookies(self) -> bool:
        # Default: secure cookies when the callback is https; otherwise allow local dev.
        if self.cookie_secure is not None:
            return bool(self.cookie_secure)
        return self.callback_url.startswith("https://")

    def callback_url_for(self, headers: Mapping[str, str]) -> str:
        """XHR clients get xhrCallbackUrl (when configured); everyone else callbackUrl."""
        if headers.get("x-requested-with") == "XMLHttpRequest" and self.xhr_callback_url:
            return self.xhr_callback_url
        return self.callback_url
