"""
vault.py - Dual Vault

Each token owns one vault record with two partitions, each a mapping from
asset symbol to an asset store (a wallet owned by the token):

    core     long-term value, paid out only by burn_and_redeem, and only if
             the vault was minted with is_core_redeemable=True
    rewards  short-term value the owner can claim at any time

Stores are created lazily on the first deposit of an asset into a partition
and are kept after being emptied, so later deposits reuse them. All stores
are closed, and the record destroyed, when the token is burned and redeemed.

Deposits are permissionless. Claims and redemption are owner-only.

Vault record layout (held by the ledger under "vault:<token>"):

    {
        'token': str,
        'collection': str,
        'creator': str,
        'core': {asset: {'address': str, 'delete_ref': DeleteRef}},
        'rewards': {asset: {'address': str, 'delete_ref': DeleteRef}},
        'is_core_redeemable': bool,
        'extend_ref': ExtendRef,
        'delete_ref': Optional[DeleteRef],
        'burn_ref': BurnRef,
        'last_sale_compliant': bool,
    }
"""

from __future__ import annotations
from dataclasses import dataclass
from decimal import Decimal
from typing import List, Tuple, Union

from .core import (
    LedgerView, Move, ResourceChange, ResourceState,
    TransactionOrigin, OriginType,
    Deposited, RewardsClaimed, Redeemed, VaultBalance,
    PARTITION_CORE, PARTITION_REWARDS, PARTITIONS, RESOURCE_VAULT, UNIT_TYPE_FUNGIBLE_ASSET,
    AssetNotAllowed, InvalidAsset, InvalidPartition, NotRedeemable, ValidationError,
    VaultNotFound, ZeroAmount,
    as_amount, build_transaction, resource_key,
)
from .collection import get_config
from .identity import TokenPlan, burn_moves, create_store, require_owner
from .ledger import Ledger


@dataclass(frozen=True, slots=True)
class DepositPlan:
    """
    The pieces of a deposit, ready to be combined into a larger transaction.

    Attributes:
        moves: The single move from the source into the store
        wallets_to_create: The store address if it did not exist yet
        record: The vault record after the deposit
        event: Deposited event to publish with the transaction
    """
    moves: Tuple[Move, ...]
    wallets_to_create: Tuple[str, ...]
    record: ResourceState
    event: Deposited


def vault_key(token: str) -> str:
    return resource_key(RESOURCE_VAULT, token)


def new_vault_record(
    plan: TokenPlan,
    collection: str,
    creator: str,
    is_core_redeemable: bool,
) -> ResourceState:
    """Build the record of a fresh, empty vault for a token being minted."""
    return {
        'token': plan.address,
        'collection': collection,
        'creator': creator,
        'core': {},
        'rewards': {},
        'is_core_redeemable': bool(is_core_redeemable),
        'extend_ref': plan.refs.extend_ref,
        'delete_ref': plan.refs.delete_ref,
        'burn_ref': plan.refs.burn_ref,
        'last_sale_compliant': False,
    }


def load_vault(view: LedgerView, token: str) -> ResourceState:
    """
    Raises:
        VaultNotFound: If the token has no vault (never minted or already redeemed)
    """
    record = view.get_resource(vault_key(token))
    if record is None:
        raise VaultNotFound(f"No vault for token {token}")
    return record


def require_amount(amount: Union[int, str, Decimal]) -> Decimal:
    """
    Convert a deposit amount, rejecting zero.

    Raises:
        ZeroAmount: If amount is zero
        ValidationError: If amount is negative, fractional or a float
    """
    try:
        value = as_amount(amount)
    except ValueError as e:
        raise ValidationError(str(e)) from e
    if value == 0:
        raise ZeroAmount("amount must be greater than zero")
    return value


def require_fungible(view: LedgerView, asset: str) -> None:
    """
    Raises:
        UnitNotRegistered: If the asset is unknown
        InvalidAsset: If the unit is not a fungible asset (e.g. a token identity)
    """
    if view.get_unit(asset).unit_type != UNIT_TYPE_FUNGIBLE_ASSET:
        raise InvalidAsset(f"{asset} is not a fungible asset and cannot be held in a vault")


def plan_deposit(
    view: LedgerView,
    record: ResourceState,
    partition: str,
    asset: str,
    amount: Decimal,
    source: str,
    depositor: str,
    contract_id: str,
) -> DepositPlan:
    """
    Plan a deposit of `amount` of `asset` from `source` into one partition.

    Creates the store for the asset when the partition has none. The caller
    records the returned vault record with a ResourceChange; the allow-list
    is not checked here.

    Raises:
        InvalidPartition: If partition is neither core nor rewards
        ZeroAmount: If amount is zero
        InvalidAsset: If the asset is not a fungible asset
    """
    if partition not in PARTITIONS:
        raise InvalidPartition(f"unknown partition {partition!r}")
    if amount <= 0:
        raise ZeroAmount("amount must be greater than zero")
    require_fungible(view, asset)

    token = record['token']
    stores = dict(record[partition])
    wallets_to_create: Tuple[str, ...] = ()
    if asset in stores:
        store = stores[asset]['address']
    else:
        store, delete_ref = create_store(record['extend_ref'], partition, asset)
        stores[asset] = {'address': store, 'delete_ref': delete_ref}
        wallets_to_create = (store,)

    move = Move(amount, asset, source, store, f"deposit_{partition}_{token}")
    event = Deposited(token=token, partition=partition, asset=asset, amount=amount, depositor=depositor)
    return DepositPlan(
        moves=(move,),
        wallets_to_create=wallets_to_create,
        record={**record, partition: stores},
        event=event,
    )


def deposit(
    ledger: Ledger,
    depositor: str,
    token: str,
    partition: str,
    asset: str,
    amount: Union[int, str, Decimal],
    enforce_allow_list: bool = True,
) -> None:
    """
    Deposit into one partition of a token's vault. Anyone may deposit.

    Args:
        ledger: Ledger to execute on
        depositor: Wallet the funds come from
        token: Token whose vault receives the funds
        partition: "core" or "rewards"
        asset: Asset symbol
        amount: Whole number of smallest units, greater than zero
        enforce_allow_list: Reject assets outside the collection allow-list

    Raises:
        ZeroAmount: If amount is zero
        VaultNotFound: If the token has no vault
        AssetNotAllowed: If the allow-list is enforced, non-empty and
            does not contain the asset
        InvalidAsset: If the asset is not a fungible asset
        InsufficientFunds: If the depositor cannot cover the amount
    """
    value = require_amount(amount)
    record = load_vault(ledger, token)
    if enforce_allow_list:
        config = get_config(ledger, record['collection'])
        if not config.is_asset_allowed(asset):
            raise AssetNotAllowed(f"{asset} is not accepted by collection {config.collection}")

    plan = plan_deposit(ledger, record, partition, asset, value, depositor, depositor, f"deposit_{token}")
    pending = build_transaction(
        ledger,
        list(plan.moves),
        origin=TransactionOrigin(OriginType.USER_ACTION, depositor, token, "DEPOSIT"),
        resource_changes=[ResourceChange(key=vault_key(token), old_state=record, new_state=plan.record)],
        wallets_to_create=list(plan.wallets_to_create),
        events=[plan.event],
    )
    ledger.execute(pending, strict=True)


def deposit_to_core_vault(
    ledger: Ledger, depositor: str, token: str, asset: str, amount: Union[int, str, Decimal],
) -> None:
    """Permissionless deposit into the core partition, subject to the allow-list."""
    deposit(ledger, depositor, token, PARTITION_CORE, asset, amount)


def deposit_to_rewards_vault(
    ledger: Ledger, depositor: str, token: str, asset: str, amount: Union[int, str, Decimal],
) -> None:
    """Permissionless deposit into the rewards partition, subject to the allow-list."""
    deposit(ledger, depositor, token, PARTITION_REWARDS, asset, amount)


def partition_balances(view: LedgerView, record: ResourceState, partition: str) -> List[VaultBalance]:
    """Current balance of every store in a partition, sorted by asset."""
    if partition not in PARTITIONS:
        raise InvalidPartition(f"unknown partition {partition!r}")
    return [
        VaultBalance(asset=asset, amount=view.get_balance(store['address'], asset))
        for asset, store in sorted(record[partition].items())
    ]


def claim_rewards(ledger: Ledger, caller: str, token: str) -> List[str]:
    """
    Pay the owner the full balance of every non-empty rewards store.

    Stores stay open. Claiming when nothing is due changes nothing and
    returns an empty list.

    Returns:
        Asset symbols that were paid out

    Raises:
        VaultNotFound: If the token has no vault
        NotOwner: If caller is not the token's owner
    """
    record = load_vault(ledger, token)
    require_owner(ledger, token, caller)

    moves = []
    claimed = []
    for balance in partition_balances(ledger, record, PARTITION_REWARDS):
        if balance.amount > 0:
            store = record[PARTITION_REWARDS][balance.asset]['address']
            moves.append(Move(balance.amount, balance.asset, store, caller, f"claim_{token}"))
            claimed.append(balance.asset)

    if not moves:
        return []

    pending = build_transaction(
        ledger,
        moves,
        origin=TransactionOrigin(OriginType.USER_ACTION, caller, token, "CLAIM_REWARDS"),
        events=[RewardsClaimed(token=token, owner=caller, assets=tuple(claimed))],
    )
    ledger.execute(pending, strict=True)
    return claimed


def burn_and_redeem(ledger: Ledger, caller: str, token: str) -> List[VaultBalance]:
    """
    Burn a token and pay its owner everything held in both partitions.

    In one transaction: every non-empty store of both partitions is drained
    to the owner, every store is closed with its DeleteRef, the vault record
    is destroyed, and the token is burned with the BurnRef taken out of the
    record. The royalty escrow, if any, is left in place.

    Returns:
        One VaultBalance per store that paid out, core partition first

    Raises:
        VaultNotFound: If the token has no vault
        NotOwner: If caller is not the token's owner
        NotRedeemable: If the core partition was minted locked
    """
    record = load_vault(ledger, token)
    require_owner(ledger, token, caller)
    if not record['is_core_redeemable']:
        raise NotRedeemable(f"Core vault of token {token} is not redeemable")

    burn_ref = record['burn_ref']
    delete_ref = record['delete_ref']

    moves = []
    stores_to_close = []
    paid: List[VaultBalance] = []
    for partition in PARTITIONS:
        for balance in partition_balances(ledger, record, partition):
            store = record[partition][balance.asset]
            if balance.amount > 0:
                moves.append(Move(balance.amount, balance.asset, store['address'], caller, f"redeem_{token}"))
                paid.append(balance)
            stores_to_close.append(store['delete_ref'])

    token_moves, state_changes = burn_moves(ledger, burn_ref, caller, delete_ref)
    assets = tuple(sorted({balance.asset for balance in paid}))

    pending = build_transaction(
        ledger,
        moves + token_moves,
        state_changes=state_changes,
        origin=TransactionOrigin(OriginType.USER_ACTION, caller, token, "BURN_AND_REDEEM"),
        resource_changes=[ResourceChange(key=vault_key(token), old_state=record, new_state=None)],
        wallets_to_close=stores_to_close,
        events=[Redeemed(token=token, owner=caller, assets=assets)],
    )
    ledger.execute(pending, strict=True)
    return paid
