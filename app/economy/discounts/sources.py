from __future__ import annotations

import json
from collections.abc import Sequence
from dataclasses import dataclass
from decimal import Decimal
from typing import Any, Protocol

import httpx
import structlog
from sqlalchemy.ext.asyncio import AsyncSession

from app.core.config import Settings
from app.db.repo.profiles_repo import ProfilesRepo
from app.services.discount_codes import normalize_wallet_addresses

logger = structlog.get_logger(__name__)

ERC_BALANCE_OF_SELECTOR = "0x70a08231"
STAKES_QUERY = """
query GetStakedBalances($addresses: [String!]!) {
  stakes(where: { user_in: $addresses }) {
    user
    amount
    active
  }
}
"""


class BalanceLookupError(Exception):
    pass


class BalanceSource(Protocol):
    async def token_balance(
        self,
        *,
        wallet_addresses: Sequence[str],
        contract_addresses: Sequence[str],
        chain_ids: Sequence[int],
    ) -> Decimal: ...

    async def holding_count(
        self,
        *,
        wallet_addresses: Sequence[str],
        contract_addresses: Sequence[str],
        chain_ids: Sequence[int],
    ) -> Decimal: ...

    async def staked_balance(self, *, wallet_addresses: Sequence[str]) -> Decimal: ...


class MembershipSource(Protocol):
    async def is_club_member(self, fid: int) -> bool: ...


class WalletResolver(Protocol):
    async def resolve_wallets(self, fid: int) -> list[str]: ...


@dataclass(slots=True)
class GatingSources:
    balances: BalanceSource
    memberships: MembershipSource
    timeout_seconds: float = 3.0


class ProfileWalletResolver:
    def __init__(self, session: AsyncSession) -> None:
        self._session = session

    async def resolve_wallets(self, fid: int) -> list[str]:
        profile = await ProfilesRepo.get_by_fid(self._session, fid)
        if profile is None:
            return []
        addresses: list[str] = []
        if profile.custody_address:
            addresses.append(profile.custody_address)
        addresses.extend(profile.verified_addresses or ())
        return list(normalize_wallet_addresses(addresses))


class ProfileMembershipSource:
    def __init__(self, session: AsyncSession) -> None:
        self._session = session

    async def is_club_member(self, fid: int) -> bool:
        profile = await ProfilesRepo.get_by_fid(self._session, fid)
        return bool(profile is not None and profile.bankr_club_member)


def parse_rpc_urls(raw: str) -> dict[int, str]:
    if not raw.strip():
        return {}
    try:
        payload = json.loads(raw)
    except json.JSONDecodeError as exc:
        raise ValueError("CHAIN_RPC_URLS_JSON must be a JSON object") from exc
    if not isinstance(payload, dict):
        raise ValueError("CHAIN_RPC_URLS_JSON must be a JSON object")
    return {int(chain_id): str(url) for chain_id, url in payload.items() if url}


def _encode_balance_of(wallet_address: str) -> str:
    return ERC_BALANCE_OF_SELECTOR + wallet_address.lower().removeprefix("0x").rjust(64, "0")


def _is_evm_address(address: str) -> bool:
    return address.startswith("0x") and len(address) == 42


class RpcBalanceSource:
    """On-chain balances over JSON-RPC ``eth_call`` plus staking from the subgraph."""

    def __init__(
        self,
        *,
        rpc_urls: dict[int, str],
        staking_graphql_url: str = "",
        token_decimals: int = 18,
        timeout_seconds: float = 3.0,
    ) -> None:
        self._rpc_urls = rpc_urls
        self._staking_graphql_url = staking_graphql_url
        self._scale = Decimal(10) ** token_decimals
        self._timeout_seconds = timeout_seconds

    @classmethod
    def from_settings(cls, settings: Settings) -> RpcBalanceSource:
        return cls(
            rpc_urls=parse_rpc_urls(settings.chain_rpc_urls_json),
            staking_graphql_url=settings.staking_graphql_url,
            token_decimals=settings.token_decimals,
            timeout_seconds=settings.discount_gate_timeout_seconds,
        )

    async def token_balance(
        self,
        *,
        wallet_addresses: Sequence[str],
        contract_addresses: Sequence[str],
        chain_ids: Sequence[int],
    ) -> Decimal:
        raw_total = await self._sum_balance_of(
            wallet_addresses=wallet_addresses,
            contract_addresses=contract_addresses,
            chain_ids=chain_ids,
        )
        return Decimal(raw_total) / self._scale

    async def holding_count(
        self,
        *,
        wallet_addresses: Sequence[str],
        contract_addresses: Sequence[str],
        chain_ids: Sequence[int],
    ) -> Decimal:
        raw_total = await self._sum_balance_of(
            wallet_addresses=wallet_addresses,
            contract_addresses=contract_addresses,
            chain_ids=chain_ids,
        )
        return Decimal(raw_total)

    async def staked_balance(self, *, wallet_addresses: Sequence[str]) -> Decimal:
        if not self._staking_graphql_url:
            raise BalanceLookupError("staking subgraph url is not configured")

        addresses = [addr for addr in wallet_addresses if _is_evm_address(addr)]
        if not addresses:
            return Decimal("0")

        async with httpx.AsyncClient(timeout=self._timeout_seconds) as client:
            response = await client.post(
                self._staking_graphql_url,
                json={"query": STAKES_QUERY, "variables": {"addresses": addresses}},
            )
            response.raise_for_status()
            payload = response.json()

        if payload.get("errors"):
            raise BalanceLookupError(f"staking subgraph errors: {payload['errors']}")

        stakes = (payload.get("data") or {}).get("stakes") or []
        total = sum(
            (Decimal(str(stake.get("amount") or 0)) for stake in stakes if stake.get("active")),
            Decimal("0"),
        )
        return total / self._scale

    async def _sum_balance_of(
        self,
        *,
        wallet_addresses: Sequence[str],
        contract_addresses: Sequence[str],
        chain_ids: Sequence[int],
    ) -> int:
        wallets = [addr for addr in wallet_addresses if _is_evm_address(addr)]
        if not wallets:
            return 0

        total = 0
        async with httpx.AsyncClient(timeout=self._timeout_seconds) as client:
            for chain_id in chain_ids:
                rpc_url = self._rpc_urls.get(int(chain_id))
                if rpc_url is None:
                    raise BalanceLookupError(f"no rpc url configured for chain {chain_id}")
                for contract_address in contract_addresses:
                    for wallet in wallets:
                        total += await self._balance_of(
                            client,
                            rpc_url=rpc_url,
                            contract_address=contract_address,
                            wallet_address=wallet,
                        )
        logger.debug(
            "onchain_balance_summed",
            chain_ids=list(chain_ids),
            contracts=len(contract_addresses),
            wallets=len(wallets),
            raw_total=str(total),
        )
        return total

    async def _balance_of(
        self,
        client: httpx.AsyncClient,
        *,
        rpc_url: str,
        contract_address: str,
        wallet_address: str,
    ) -> int:
        body: dict[str, Any] = {
            "jsonrpc": "2.0",
            "id": 1,
            "method": "eth_call",
            "params": [
                {"to": contract_address, "data": _encode_balance_of(wallet_address)},
                "latest",
            ],
        }
        response = await client.post(rpc_url, json=body)
        response.raise_for_status()
        payload = response.json()
        if payload.get("error"):
            raise BalanceLookupError(str(payload["error"].get("message") or payload["error"]))

        result = payload.get("result")
        if not isinstance(result, str) or not result.startswith("0x"):
            raise BalanceLookupError(f"unexpected eth_call result: {result!r}")
        return int(result, 16) if result != "0x" else 0
