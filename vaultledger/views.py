"""
views.py - Read-Only Queries

Every function takes a LedgerView and never changes state.
"""

from __future__ import annotations
from dataclasses import dataclass
from decimal import Decimal, ROUND_HALF_UP
from typing import Dict, List, Optional, Union

from .core import (
    LedgerView, VaultBalance,
    PARTITION_CORE, PARTITION_REWARDS, BPS_DENOMINATOR,
    InvalidBps,
)
from .collection import CollectionConfig, get_config as _get_config
from .escrow import escrow_key
from .vault import load_vault, partition_balances, vault_key


@dataclass(frozen=True, slots=True)
class VaultInfo:
    is_core_redeemable: bool
    creator: str
    collection: str
    last_sale_compliant: bool


def vault_exists(view: LedgerView, token: str) -> bool:
    return view.has_resource(vault_key(token))


def get_core_balances(view: LedgerView, token: str) -> List[VaultBalance]:
    """Balances of every core store, including emptied ones."""
    return partition_balances(view, load_vault(view, token), PARTITION_CORE)


def get_rewards_balances(view: LedgerView, token: str) -> List[VaultBalance]:
    """Balances of every rewards store, including emptied ones."""
    return partition_balances(view, load_vault(view, token), PARTITION_REWARDS)


def get_vault_balances(view: LedgerView, token: str) -> List[VaultBalance]:
    """
    Total per asset across both partitions, sorted by asset.

    Example:
        get_vault_balances(ledger, token)
        # [VaultBalance(asset='USDC', amount=Decimal('150'))]
    """
    record = load_vault(view, token)
    totals: Dict[str, Decimal] = {}
    for partition in (PARTITION_CORE, PARTITION_REWARDS):
        for balance in partition_balances(view, record, partition):
            totals[balance.asset] = totals.get(balance.asset, Decimal(0)) + balance.amount
    return [VaultBalance(asset=asset, amount=amount) for asset, amount in sorted(totals.items())]


def get_vault_info(view: LedgerView, token: str) -> VaultInfo:
    record = load_vault(view, token)
    return VaultInfo(
        is_core_redeemable=record['is_core_redeemable'],
        creator=record['creator'],
        collection=record['collection'],
        last_sale_compliant=record['last_sale_compliant'],
    )


def last_sale_used_vault_royalty(view: LedgerView, token: str) -> bool:
    """True if the most recent change of owner was a settled, royalty-paying sale."""
    return load_vault(view, token)['last_sale_compliant']


def get_config(view: LedgerView, collection: str) -> CollectionConfig:
    return _get_config(view, collection)


def get_escrow_address(view: LedgerView, token: str) -> Optional[str]:
    """The token's royalty escrow address, or None if it has no escrow."""
    record = view.get_resource(escrow_key(token))
    return record['address'] if record is not None else None


def get_escrow_balance(view: LedgerView, token: str, asset: str) -> Decimal:
    """Unswept royalties of one asset; zero for tokens without an escrow."""
    address = get_escrow_address(view, token)
    if address is None:
        return Decimal(0)
    return view.get_balance(address, asset)


def bps_to_percent(bps: int) -> Decimal:
    """500 bps -> Decimal("5")."""
    return Decimal(bps) / Decimal(100)


def percent_to_bps(percent: Union[int, str, Decimal]) -> int:
    """
    Convert a percentage to basis points, rounding half up.

    Raises:
        InvalidBps: If the result falls outside 0..10000
    """
    bps = int((Decimal(str(percent)) * 100).quantize(Decimal(1), rounding=ROUND_HALF_UP))
    if bps < 0 or bps > BPS_DENOMINATOR:
        raise InvalidBps(f"{percent}% is outside 0..100%")
    return bps
