"""Admin console credentials.

Every admin endpoint first checks the caller's network position (allowlist,
with X-Forwarded-For honoured only from trusted proxies), then accepts one of
three credentials: the shared admin token header, the session cookie minted
from that token by ``/admin/login``, or an identity-provider user holding the
admin role. The first two are resolved here; the identity path goes through
the guard evaluator.
"""

from __future__ import annotations

import hashlib
import hmac
import ipaddress
from dataclasses import dataclass
from functools import lru_cache

from fastapi import Request

ADMIN_SESSION_COOKIE = "access_plane_admin_session"
ADMIN_TOKEN_HEADER = "X-Internal-Token"
ADMIN_CONSOLE_ACTOR = "admin-console"
ADMIN_ACTOR_MAX_LENGTH = 64

CREDENTIAL_TOKEN = "token"
CREDENTIAL_SESSION_COOKIE = "session_cookie"
CREDENTIAL_IDENTITY = "identity"

_SESSION_COOKIE_CONTEXT = b"access-plane/admin-session/v1"

IPNetwork = ipaddress.IPv4Network | ipaddress.IPv6Network


@dataclass(frozen=True, slots=True)
class AdminPrincipal:
    """Who performed an admin action, as recorded in ``issued_by``/``created_by``."""

    actor: str
    via: str

    @classmethod
    def console(cls, *, via: str) -> AdminPrincipal:
        return cls(actor=ADMIN_CONSOLE_ACTOR, via=via)

    @classmethod
    def identity_user(cls, user_id: str) -> AdminPrincipal:
        return cls(actor=f"user:{user_id}"[:ADMIN_ACTOR_MAX_LENGTH], via=CREDENTIAL_IDENTITY)


def admin_session_value(admin_token: str) -> str:
    """Cookie value for a logged-in console; changes whenever the token rotates."""
    return hmac.new(admin_token.encode("utf-8"), _SESSION_COOKIE_CONTEXT, hashlib.sha256).hexdigest()


def matches_admin_token(*, admin_token: str, presented: str | None) -> bool:
    if not admin_token or not presented:
        return False
    return hmac.compare_digest(admin_token, presented)


def matches_admin_session(*, admin_token: str, presented: str | None) -> bool:
    if not admin_token or not presented:
        return False
    return hmac.compare_digest(admin_session_value(admin_token), presented)


def presented_admin_credential(request: Request, *, admin_token: str) -> str | None:
    """Which console credential the request carries, or None."""
    if matches_admin_token(admin_token=admin_token, presented=request.headers.get(ADMIN_TOKEN_HEADER)):
        return CREDENTIAL_TOKEN
    if matches_admin_session(admin_token=admin_token, presented=request.cookies.get(ADMIN_SESSION_COOKIE)):
        return CREDENTIAL_SESSION_COOKIE
    return None


def console_principal(request: Request, *, admin_token: str) -> AdminPrincipal | None:
    credential = presented_admin_credential(request, admin_token=admin_token)
    if credential is None:
        return None
    return AdminPrincipal.console(via=credential)


@lru_cache(maxsize=32)
def parse_networks(spec: str) -> tuple[IPNetwork, ...]:
    """Comma separated IPs or CIDR blocks; unparseable entries are dropped."""
    networks: list[IPNetwork] = []
    for raw_entry in spec.split(","):
        entry = raw_entry.strip()
        if not entry:
            continue
        try:
            networks.append(ipaddress.ip_network(entry, strict=False))
        except ValueError:
            continue
    return tuple(networks)


def _normalized_ip(value: str | None) -> str | None:
    if value is None or not value.strip():
        return None
    try:
        return str(ipaddress.ip_address(value.strip()))
    except ValueError:
        return None


def ip_in_networks(client_ip: str | None, networks_spec: str) -> bool:
    normalized = _normalized_ip(client_ip)
    if normalized is None:
        return False
    address = ipaddress.ip_address(normalized)
    return any(address in network for network in parse_networks(networks_spec))


def resolve_client_ip(request: Request, *, trusted_proxies: str = "") -> str | None:
    peer_ip = _normalized_ip(request.client.host if request.client is not None else None)
    forwarded_for = request.headers.get("X-Forwarded-For")
    if forwarded_for and ip_in_networks(peer_ip, trusted_proxies):
        # Only the left-most hop is the original client.
        return _normalized_ip(forwarded_for.split(",", maxsplit=1)[0])
    return peer_ip
