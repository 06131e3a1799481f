"""
minting.py - Vaulted Token Minting

A mint creates, in one transaction:
    - the token identity and its capabilities
    - a fresh dual vault holding those capabilities
    - the royalty escrow, when the collection charges a royalty
    - the mint payment: the creator is paid, and mint_vault_bps of the price
      seeds the new token's core partition
    - the incremented minted_count of the collection

Two entry points:
    creator_mint_vaulted_token()  only the collection creator; payer may differ
    public_mint_vaulted_token()   anyone; the caller pays and receives the token
"""

from __future__ import annotations
from decimal import Decimal
from typing import List, Optional

from .core import (
    Move, ResourceChange, TransactionOrigin, OriginType, Minted, Event,
    SYSTEM_WALLET, PARTITION_CORE, RESOURCE_CONFIG,
    NotCreator, SupplyExhausted, VaultAlreadyExists,
    build_transaction, resource_key, split_bps,
)
from .collection import get_config
from .escrow import escrow_key, plan_escrow
from .identity import ONE, create_token, token_address
from .ledger import Ledger
from .vault import new_vault_record, plan_deposit, vault_key


def _mint(
    ledger: Ledger,
    caller: str,
    collection: str,
    recipient: str,
    payer: str,
    name: Optional[str],
    description: str,
    uri: str,
    is_core_redeemable: bool,
    event_type: str,
) -> str:
    config = get_config(ledger, collection)
    if config.is_supply_exhausted:
        raise SupplyExhausted(
            f"Collection {collection} has minted {config.minted_count} of {config.max_supply}"
        )

    index = config.minted_count + 1
    address = token_address(collection, index)
    if ledger.has_resource(vault_key(address)):
        raise VaultAlreadyExists(f"Token {address} already has a vault")

    escrow_address = None
    escrow_record = None
    if config.total_royalty_bps > 0:
        escrow_address, escrow_record = plan_escrow(address)

    plan = create_token(
        collection, config.creator, index,
        name or f"{config.name} #{index}",
        description=description,
        uri=uri,
        royalty_payee=escrow_address,
    )
    record = new_vault_record(plan, collection, config.creator, is_core_redeemable)

    moves: List[Move] = [Move(ONE, plan.address, SYSTEM_WALLET, recipient, f"mint_{plan.address}")]
    wallets: List[str] = []
    events: List[Event] = []

    vault_seed = Decimal(0)
    deposited = None
    if config.mint_price > 0:
        vault_seed, creator_cut = split_bps(
            config.mint_price, config.mint_vault_bps, round_up=config.dust_to_vault,
        )
        if creator_cut > 0 and payer != config.creator_payout_address:
            moves.append(Move(
                creator_cut, config.mint_price_asset, payer, config.creator_payout_address,
                f"mint_payment_{plan.address}",
            ))
        if vault_seed > 0:
            seed = plan_deposit(
                ledger,
                record, PARTITION_CORE, config.mint_price_asset, vault_seed, payer, payer,
                f"mint_seed_{plan.address}",
            )
            moves.extend(seed.moves)
            wallets.extend(seed.wallets_to_create)
            record = seed.record
            deposited = seed.event

    config_key = resource_key(RESOURCE_CONFIG, collection)
    config_state = ledger.get_resource(config_key)
    resource_changes = [
        ResourceChange(
            key=config_key,
            old_state=config_state,
            new_state={**config_state, 'minted_count': config_state['minted_count'] + 1},
        ),
        ResourceChange(key=vault_key(plan.address), old_state=None, new_state=record),
    ]
    if escrow_record is not None:
        wallets.append(escrow_address)
        resource_changes.append(
            ResourceChange(key=escrow_key(plan.address), old_state=None, new_state=escrow_record)
        )

    events.append(Minted(
        token=plan.address,
        collection=collection,
        recipient=recipient,
        is_core_redeemable=bool(is_core_redeemable),
        vault_seed=vault_seed,
    ))
    if deposited is not None:
        events.append(deposited)

    pending = build_transaction(
        ledger,
        moves,
        origin=TransactionOrigin(OriginType.CONTRACT, caller, collection, event_type),
        units_to_create=(plan.unit,),
        resource_changes=resource_changes,
        wallets_to_create=wallets,
        events=events,
    )
    ledger.execute(pending, strict=True)
    return plan.address


def creator_mint_vaulted_token(
    ledger: Ledger,
    creator: str,
    collection: str,
    recipient: str,
    name: Optional[str] = None,
    description: str = "",
    uri: str = "",
    is_core_redeemable: bool = True,
    payer: Optional[str] = None,
) -> str:
    """
    Mint a vaulted token as the collection creator.

    Args:
        ledger: Ledger to execute on
        creator: Caller; must be the collection creator
        collection: Collection address
        recipient: Wallet that receives the token
        name: Token name (default "<collection name> #<index>")
        is_core_redeemable: Whether burn_and_redeem may pay out the core partition
        payer: Wallet paying the mint price (default: the creator)

    Returns:
        The new token address

    Raises:
        ConfigNotFound: If the collection is not configured
        NotCreator: If caller is not the collection creator
        SupplyExhausted: If max_supply tokens have been minted
        InsufficientFunds: If the payer cannot cover the mint price
    """
    config = get_config(ledger, collection)
    if creator != config.creator:
        raise NotCreator(f"{creator} is not the creator of collection {collection}")
    return _mint(
        ledger, creator, collection, recipient, payer or creator,
        name, description, uri, is_core_redeemable, "CREATOR_MINT",
    )


def public_mint_vaulted_token(
    ledger: Ledger,
    minter: str,
    collection: str,
    name: Optional[str] = None,
    description: str = "",
    uri: str = "",
    is_core_redeemable: bool = True,
) -> str:
    """
    Mint a vaulted token to the caller, who pays the mint price.

    Raises:
        ConfigNotFound: If the collection is not configured
        SupplyExhausted: If max_supply tokens have been minted
        InsufficientFunds: If the minter cannot cover the mint price
    """
    return _mint(
        ledger, minter, collection, minter, minter,
        name, description, uri, is_core_redeemable, "PUBLIC_MINT",
    )
