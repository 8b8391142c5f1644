from __future__ import annotations

import ipaddress
import secrets
from dataclasses import dataclass
from functools import lru_cache

from fastapi import Request

INTERNAL_TOKEN_HEADER = "X-Internal-Token"
FORWARDED_FOR_HEADER = "X-Forwarded-For"

ACCESS_REASON_OK = "ok"
ACCESS_REASON_IP_NOT_ALLOWED = "ip_not_allowed"
ACCESS_REASON_INVALID_CREDENTIALS = "invalid_credentials"

IpNetwork = ipaddress.IPv4Network | ipaddress.IPv6Network


@dataclass(frozen=True, slots=True)
class InternalAccessDecision:
    allowed: bool
    reason: str
    client_ip: str | None


def is_valid_internal_token(*, expected_token: str, received_token: str | None) -> bool:
    if not expected_token or not received_token:
        return False
    return secrets.compare_digest(expected_token, received_token)


@lru_cache(maxsize=32)
def parse_networks(raw: str) -> tuple[IpNetwork, ...]:
    """Comma separated addresses or CIDR blocks. Unparseable entries are dropped."""
    networks: list[IpNetwork] = []
    for entry in (part.strip() for part in raw.split(",")):
        if not entry:
            continue
        try:
            networks.append(ipaddress.ip_network(entry, strict=False))
        except ValueError:
            continue
    return tuple(networks)


def _normalize_ip(value: str | None) -> str | None:
    if value is None or not value.strip():
        return None
    try:
        return str(ipaddress.ip_address(value.strip()))
    except ValueError:
        return None


def is_client_ip_allowed(*, client_ip: str | None, allowlist: str) -> bool:
    normalized = _normalize_ip(client_ip)
    if normalized is None:
        return False
    address = ipaddress.ip_address(normalized)
    return any(address in network for network in parse_networks(allowlist))


def extract_client_ip(request: Request, *, trusted_proxies: str = "") -> str | None:
    """Client address, taken from X-Forwarded-For only behind a trusted proxy."""
    peer_ip = _normalize_ip(request.client.host if request.client is not None else None)
    forwarded_for = request.headers.get(FORWARDED_FOR_HEADER)
    if not forwarded_for or not is_client_ip_allowed(client_ip=peer_ip, allowlist=trusted_proxies):
        return peer_ip
    return _normalize_ip(forwarded_for.split(",", maxsplit=1)[0])


def check_internal_access(
    request: Request,
    *,
    expected_token: str,
    allowlist: str,
    trusted_proxies: str = "",
) -> InternalAccessDecision:
    client_ip = extract_client_ip(request, trusted_proxies=trusted_proxies)
    if not is_client_ip_allowed(client_ip=client_ip, allowlist=allowlist):
        return InternalAccessDecision(False, ACCESS_REASON_IP_NOT_ALLOWED, client_ip)

    received_token = request.headers.get(INTERNAL_TOKEN_HEADER)
    if not is_valid_internal_token(expected_token=expected_token, received_token=received_token):
        return InternalAccessDecision(False, ACCESS_REASON_INVALID_CREDENTIALS, client_ip)

    return InternalAccessDecision(True, ACCESS_REASON_OK, client_ip)
