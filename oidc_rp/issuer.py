"""
IdP endpoint metadata: OpenID Connect discovery or manual endpoint options.
Resolved once at registration; read-only afterwards.
"""
import logging
from dataclasses import dataclass

import httpx

from oidc_rp.errors import DiscoveryError
from oidc_rp.options import PluginOptions

logger = logging.getLogger(__name__)

_REQUIRED_DISCOVERY_FIELDS = ("issuer", "authorization_endpoint", "token_endpoint")


@dataclass(frozen=True)
class IssuerMetadata:
    issuer: str
    authorization_endpoint: str
    token_endpoint: str
    userinfo_endpoint: str | None = None
    jwks_uri: str | None = None

    @classmethod
    def from_discovery_document(cls, doc: dict) -> "IssuerMetadata":
        missing = [k for k in _REQUIRED_DISCOVERY_FIELDS if not doc.get(k)]
        if missing:
            raise DiscoveryError(f"Discovery document missing {', '.join(missing)}")
        return cls(
            issuer=str(doc["issuer"]),
            authorization_endpoint=str(doc["authorization_endpoint"]),
            token_endpoint=str(doc["token_endpoint"]),
            userinfo_endpoint=doc.get("userinfo_endpoint"),
            jwks_uri=doc.get("jwks_uri"),
        )

    @classmethod
    def from_options(cls, options: PluginOptions) -> "IssuerMetadata":
        return cls(
            issuer=options.issuer,
            authorization_endpoint=options.authorization,
            token_endpoint=options.token,
            userinfo_endpoint=options.userinfo,
            jwks_uri=options.jwks,
        )


async def discover(
    discover_url: str,
    *,
    timeout: float = 10.0,
    transport: httpx.AsyncBaseTransport | None = None,
) -> IssuerMetadata:
    """Fetch and parse the provider's discovery document. Raises DiscoveryError."""
    try:
        async with httpx.AsyncClient(transport=transport, timeout=timeout) as http:
            r = await http.get(discover_url, headers={"Accept": "application/json"})
    except httpx.HTTPError as e:
        raise DiscoveryError(f"Discovery request to {discover_url} failed: {e}") from e
    if r.status_code != 200:
        raise DiscoveryError(f"Discovery request to {discover_url} returned {r.status_code}")
    try:
        doc = r.json()
    except ValueError as e:
        raise DiscoveryError("Discovery document is not valid JSON") from e
    if not isinstance(doc, dict):
        raise DiscoveryError("Invalid OIDC discovery document")
    metadata = IssuerMetadata.from_discovery_document(doc)
    logger.info("Discovered OIDC issuer %s", metadata.issuer)
    return metadata


async def resolve_issuer(
    options: PluginOptions,
    *,
    transport: httpx.AsyncBaseTransport | None = None,
) -> IssuerMetadata:
    if options.uses_discovery:
        return await discover(options.discover_url, timeout=options.timeout, transport=transport)
    return IssuerMetadata.from_options(options)
