"""
Value types that travel through the login flow. None of these are kept server-side;
LoginAttempt and AuthenticatedSession live in the browser's cookie.
"""
from dataclasses import dataclass, field
from typing import Any


@dataclass(frozen=True)
class ClientCredentials:
    client_id: str
    client_secret: str


@dataclass(frozen=True)
class LoginAttempt:
    """One in-flight login: the state sent to the IdP and where to go afterwards."""

    state: str
    return_to: str
    nonce: str | None = None


@dataclass(frozen=True)
class TokenResponse:
    access_token: str
    token_type: str = "Bearer"
    expires_in: int | None = None
    id_token: str | None = None
    refresh_token: str | None = None
    scope: str | None = None
    raw: dict[str, Any] = field(default_factory=dict, compare=False)

    @classmethod
    def from_json(cls, data: dict[str, Any]) -> "TokenResponse":
        expires_in = data.get("expires_in")
        return cls(
            access_token=data["access_token"],
            token_type=data.get("token_type", "Bearer"),
            expires_in=int(expires_in) if expires_in is not None else None,
            id_token=data.get("id_token"),
            refresh_token=data.get("refresh_token"),
            scope=data.get("scope"),
            raw=dict(data),
        )

    def as_dict(self) -> dict[str, Any]:
        """Token endpoint body as received (what gets persisted)."""
        return dict(self.raw)


@dataclass(frozen=True)
class AuthenticatedSession:
    credentials: dict[str, Any]
