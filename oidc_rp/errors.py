"""
Error taxonomy for the OIDC relying-party plugin.
Startup errors (ConfigError, DiscoveryError) stop registration; AuthError and its
subclasses are raised on the callback path and rendered by the plugin's handler.
"""


class OIDCError(Exception):
    """Base class for every error raised by oidc_rp."""


class ConfigError(OIDCError):
    """Missing or contradictory plugin options."""


class DiscoveryError(OIDCError):
    """IdP metadata could not be fetched or parsed at startup."""


class AuthError(OIDCError):
    """
    Callback-path failure. `error` / `error_description` follow RFC 6749 §5.2 naming
    so the provider's own description can be logged and returned as-is.
    """

    status_code = 401
    default_error = "access_denied"

    def __init__(self, error_description: str, *, error: str | None = None):
        super().__init__(error_description)
        self.error = error or self.default_error
        self.error_description = error_description

    def to_dict(self) -> dict:
        return {"error": self.error, "error_description": self.error_description}


class StateMismatchError(AuthError):
    default_error = "invalid_state"


class NonceMismatchError(AuthError):
    default_error = "invalid_nonce"


class ProviderError(AuthError):
    """The IdP redirected back with ?error=..."""


class TokenExchangeError(ProviderError):
    default_error = "invalid_grant"


class ValidationFailedError(AuthError):
    status_code = 403
    default_error = "login_rejected"


class UpstreamError(AuthError):
    """Userinfo, network or persistence failure."""

    status_code = 502
    default_error = "upstream_error"
