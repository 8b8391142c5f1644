from __future__ import annotations

from types import SimpleNamespace

from app.services.internal_auth import (
    ACCESS_REASON_INVALID_CREDENTIALS,
    ACCESS_REASON_IP_NOT_ALLOWED,
    check_internal_access,
    extract_client_ip,
    is_client_ip_allowed,
    is_valid_internal_token,
    parse_networks,
)


def _request(*, host: str | None = "127.0.0.1", **headers: str) -> SimpleNamespace:
    client = SimpleNamespace(host=host) if host is not None else None
    return SimpleNamespace(headers=headers, client=client)


def test_is_valid_internal_token_requires_exact_match() -> None:
    assert is_valid_internal_token(expected_token="secret", received_token="secret") is True
    assert is_valid_internal_token(expected_token="secret", received_token="wrong") is False
    assert is_valid_internal_token(expected_token="secret", received_token=None) is False
    assert is_valid_internal_token(expected_token="", received_token="") is False


def test_parse_networks_accepts_bare_addresses_and_skips_garbage() -> None:
    networks = parse_networks("127.0.0.1, 10.0.0.0/8,,not-an-ip, ::1")

    assert [str(network) for network in networks] == ["127.0.0.1/32", "10.0.0.0/8", "::1/128"]


def test_is_client_ip_allowed_supports_exact_ip_and_cidr() -> None:
    allowlist = "127.0.0.1,10.0.0.0/8, not-an-ip"
    assert is_client_ip_allowed(client_ip="127.0.0.1", allowlist=allowlist) is True
    assert is_client_ip_allowed(client_ip="10.12.33.1", allowlist=allowlist) is True
    assert is_client_ip_allowed(client_ip="192.168.1.5", allowlist=allowlist) is False
    assert is_client_ip_allowed(client_ip=None, allowlist=allowlist) is False
    assert is_client_ip_allowed(client_ip="testclient", allowlist=allowlist) is False
    assert is_client_ip_allowed(client_ip="127.0.0.1", allowlist="") is False


def test_extract_client_ip_uses_forwarded_header_only_for_trusted_proxy() -> None:
    request = _request(**{"X-Forwarded-For": "10.1.1.8, 127.0.0.1"})

    assert extract_client_ip(request, trusted_proxies="127.0.0.1/32") == "10.1.1.8"
    assert extract_client_ip(request, trusted_proxies="") == "127.0.0.1"


def test_extract_client_ip_rejects_garbage_forwarded_header() -> None:
    request = _request(**{"X-Forwarded-For": "garbage"})

    assert extract_client_ip(request, trusted_proxies="127.0.0.1/32") is None


def test_check_internal_access_allows_token_from_allowlisted_ip() -> None:
    decision = check_internal_access(
        _request(**{"X-Internal-Token": "secret"}),
        expected_token="secret",
        allowlist="127.0.0.1/32",
    )

    assert decision.allowed is True
    assert decision.client_ip == "127.0.0.1"


def test_check_internal_access_checks_ip_before_token() -> None:
    decision = check_internal_access(
        _request(host="192.168.4.4", **{"X-Internal-Token": "secret"}),
        expected_token="secret",
        allowlist="127.0.0.1/32",
    )

    assert decision.allowed is False
    assert decision.reason == ACCESS_REASON_IP_NOT_ALLOWED
    assert decision.client_ip == "192.168.4.4"


def test_check_internal_access_rejects_missing_token() -> None:
    decision = check_internal_access(_request(), expected_token="secret", allowlist="127.0.0.1/32")

    assert decision.allowed is False
    assert decision.reason == ACCESS_REASON_INVALID_CREDENTIALS


def test_check_internal_access_without_peer_is_rejected() -> None:
    decision = check_internal_access(
        _request(host=None, **{"X-Internal-Token": "secret"}),
        expected_token="secret",
        allowlist="127.0.0.1/32",
    )

    assert decision.allowed is False
    assert decision.client_ip is None
