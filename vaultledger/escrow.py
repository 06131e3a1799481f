"""
escrow.py - Royalty Escrow and Sweep

A token minted into a collection with a non-zero combined royalty gets a
dedicated escrow wallet. External royalty payers send trade royalties there;
it is registered as the token's royalty payee.

Sweeping is permissionless. It drains the escrow balance of one asset and
splits it between the creator payout address and the token's core
partition, in the ratio vault_royalty_bps : creator_royalty_bps.

    vault_cut   = floor(B * vault_royalty_bps / (creator_royalty_bps + vault_royalty_bps))
    creator_cut = B - vault_cut

With dust_to="vault" on the collection the vault cut rounds up instead.
A sweep of an empty escrow is a no-op.
"""

from __future__ import annotations
from decimal import Decimal
from typing import Dict, Iterable, List, Optional, Tuple

from .core import (
    LedgerView, Move, ResourceChange, ResourceState,
    TransactionOrigin, OriginType, RoyaltySwept, Event,
    PARTITION_CORE, RESOURCE_ESCROW,
    EscrowNotFound,
    ExtendRef, DeleteRef,
    build_transaction, derive_address, resource_key, split_bps,
)
from .collection import CollectionConfig, get_config
from .ledger import Ledger
from .vault import load_vault, plan_deposit, require_fungible, vault_key


def escrow_key(token: str) -> str:
    return resource_key(RESOURCE_ESCROW, token)


def plan_escrow(token: str) -> Tuple[str, ResourceState]:
    """
    Plan the escrow of a token being minted.

    Returns:
        (escrow wallet address, escrow record)
    """
    address = derive_address("escrow", token)
    record = {
        'token': token,
        'address': address,
        'extend_ref': ExtendRef(address),
        'delete_ref': DeleteRef(address),
    }
    return address, record


def get_escrow(view: LedgerView, token: str) -> ResourceState:
    """
    Raises:
        EscrowNotFound: If the token was minted without an escrow
    """
    record = view.get_resource(escrow_key(token))
    if record is None:
        raise EscrowNotFound(f"No royalty escrow for token {token}")
    return record


def split_royalty(config: CollectionConfig, gross: Decimal) -> Tuple[Decimal, Decimal]:
    """
    Split escrowed royalties into (creator_cut, vault_cut).

    Example:
        # creator 333 bps, vault 667 bps
        split_royalty(config, Decimal(1_000_001))
        # (Decimal("333001"), Decimal("667000"))
    """
    total = config.total_royalty_bps
    if total == 0:
        return gross, Decimal(0)
    vault_cut, creator_cut = split_bps(
        gross, config.vault_royalty_bps, denominator=total, round_up=config.dust_to_vault,
    )
    return creator_cut, vault_cut


def plan_sweep(
    view: LedgerView,
    token: str,
    asset: str,
    vault_record: ResourceState,
    config: CollectionConfig,
) -> Tuple[List[Move], List[str], Optional[ResourceState], List[Event]]:
    """
    Plan the sweep of one token's escrow.

    Returns:
        (moves, stores to create, updated vault record or None, events);
        the events are the RoyaltySwept event followed by the Deposited event
        of the vault cut, if any. An empty escrow gives ([], [], None, [])

    Raises:
        InvalidAsset: If the escrow holds a non-fungible unit under `asset`
    """
    escrow = get_escrow(view, token)
    gross = view.get_balance(escrow['address'], asset)
    if gross <= 0:
        return [], [], None, []
    require_fungible(view, asset)

    creator_cut, vault_cut = split_royalty(config, gross)

    moves = []
    wallets: List[str] = []
    record = None
    events: List[Event] = [RoyaltySwept(
        token=token, asset=asset, gross=gross,
        creator_cut=creator_cut, vault_cut=vault_cut, escrow=escrow['address'],
    )]
    if creator_cut > 0:
        moves.append(Move(
            creator_cut, asset, escrow['address'], config.creator_payout_address, f"sweep_creator_{token}",
        ))
    if vault_cut > 0:
        plan = plan_deposit(
            view, vault_record, PARTITION_CORE, asset, vault_cut, escrow['address'], escrow['address'],
            f"sweep_vault_{token}",
        )
        moves.extend(plan.moves)
        wallets.extend(plan.wallets_to_create)
        record = plan.record
        events.append(plan.event)

    return moves, wallets, record, events


def _execute_sweeps(ledger: Ledger, caller: str, tokens: List[str], asset: str, event_type: str) -> List[RoyaltySwept]:
    moves: List[Move] = []
    wallets: List[str] = []
    resource_changes: List[ResourceChange] = []
    events: List[Event] = []
    swept: List[RoyaltySwept] = []
    configs: Dict[str, CollectionConfig] = {}

    for token in tokens:
        vault_record = load_vault(ledger, token)
        collection = vault_record['collection']
        if collection not in configs:
            configs[collection] = get_config(ledger, collection)
        token_moves, token_wallets, new_record, token_events = plan_sweep(
            ledger, token, asset, vault_record, configs[collection],
        )
        if not token_events:
            continue
        moves.extend(token_moves)
        wallets.extend(token_wallets)
        if new_record is not None:
            resource_changes.append(ResourceChange(
                key=vault_key(token), old_state=vault_record, new_state=new_record,
            ))
        events.extend(token_events)
        swept.append(token_events[0])

    if not swept:
        return []

    pending = build_transaction(
        ledger,
        moves,
        origin=TransactionOrigin(OriginType.CONTRACT, caller, tokens[0] if len(tokens) == 1 else None, event_type),
        resource_changes=resource_changes,
        wallets_to_create=wallets,
        events=events,
    )
    ledger.execute(pending, strict=True)
    return swept


def sweep_royalty_to_core_vault(ledger: Ledger, caller: str, token: str, asset: str) -> Optional[RoyaltySwept]:
    """
    Sweep one token's escrowed royalties. Anyone may call.

    Returns:
        The RoyaltySwept event, or None if the escrow held nothing

    Raises:
        VaultNotFound: If the token has no vault (e.g. it was redeemed)
        EscrowNotFound: If the token has no escrow
    """
    events = _execute_sweeps(ledger, caller, [token], asset, "SWEEP")
    return events[0] if events else None


def sweep_royalty_to_core_vault_many(
    ledger: Ledger, caller: str, tokens: Iterable[str], asset: str,
) -> List[RoyaltySwept]:
    """
    Sweep several tokens in one transaction. Anyone may call.

    The batch is all-or-nothing: if any token cannot be swept, nothing is.
    A token listed more than once is swept once; empty escrows are skipped.

    Returns:
        One RoyaltySwept event per token that had a balance, in input order
    """
    unique = list(dict.fromkeys(tokens))
    if not unique:
        return []
    return _execute_sweeps(ledger, caller, unique, asset, "SWEEP_MANY")


sweep = sweep_royalty_to_core_vault
sweep_many = sweep_royalty_to_core_vault_many
