"""
identity.py - Token Identity and Capabilities

A vaulted token is a Unit of type VAULTED_TOKEN with a total quantity of
exactly one. Whoever holds that single unit owns the token, so ownership
transfer is an ordinary Move and burning is a Move back to the system wallet.

This module provides:
1. create_token() - plan a new token identity and its three capabilities
2. owner_of() / require_owner() - ownership queries
3. create_store() - derive an asset store owned by an object
4. burn_moves() - irreversibly burn a token, gated by its BurnRef
5. transfer() - owner-initiated transfer of a token

Capabilities are returned exactly once, from create_token() and
create_store(); callers keep them inside the records they own.
"""

from __future__ import annotations
from dataclasses import dataclass
from decimal import Decimal
from typing import List, Optional, Tuple

from .core import (
    LedgerView, Move, Unit, UnitStateChange, ResourceChange,
    TransactionOrigin, OriginType,
    ExtendRef, DeleteRef, BurnRef,
    SYSTEM_WALLET, UNIT_TYPE_VAULTED_TOKEN, RESOURCE_VAULT,
    NotOwner, TokenBurned, TransferRuleViolation, UnitNotRegistered, ValidationError, VaultNotFound,
    build_transaction, derive_address, resource_key, _freeze_state,
)
from .ledger import Ledger


ONE = Decimal("1")


@dataclass(frozen=True, slots=True)
class TokenRefs:
    """The capabilities obtained when a token identity is created."""
    extend_ref: ExtendRef
    delete_ref: Optional[DeleteRef]
    burn_ref: BurnRef


@dataclass(frozen=True, slots=True)
class TokenPlan:
    """A token identity ready to be created by a mint transaction."""
    address: str
    unit: Unit
    refs: TokenRefs


def token_transfer_rule(view: LedgerView, move: Move) -> None:
    """Burned tokens never move again."""
    state = view.get_unit_state(move.unit_symbol)
    if state.get('burned', False):
        raise TransferRuleViolation(f"Token {move.unit_symbol} has been burned")


def token_address(collection: str, index: int) -> str:
    """Address of the token minted at `index` within a collection."""
    return derive_address("token", collection, str(index))


def create_token(
    collection: str,
    creator: str,
    index: int,
    name: str,
    description: str = "",
    uri: str = "",
    deletable: bool = True,
    royalty_payee: Optional[str] = None,
) -> TokenPlan:
    """
    Plan a new token identity.

    The token address is derived from the collection and the token's
    index within it, so it is unique and reproducible.

    Args:
        collection: Collection address
        creator: Collection creator
        index: 1-based mint index within the collection
        name: Token name
        description: Token description
        uri: Token metadata URI
        deletable: Whether the identity kind supports a delete capability
        royalty_payee: Address that trade royalties for this token are paid to

    Returns:
        TokenPlan with the unit to register and the token's capabilities
    """
    if index < 1:
        raise ValueError(f"index must be positive, got {index}")
    if not name or not name.strip():
        raise ValueError("token name cannot be empty")

    address = token_address(collection, index)
    unit = Unit(
        symbol=address,
        name=name,
        unit_type=UNIT_TYPE_VAULTED_TOKEN,
        min_balance=Decimal("0"),
        max_balance=ONE,
        decimal_places=0,
        transfer_rule=token_transfer_rule,
        _frozen_state=_freeze_state({
            'collection': collection,
            'creator': creator,
            'index': index,
            'name': name,
            'description': description,
            'uri': uri,
            'royalty_payee': royalty_payee,
            'burned': False,
        }),
    )
    refs = TokenRefs(
        extend_ref=ExtendRef(address),
        delete_ref=DeleteRef(address) if deletable else None,
        burn_ref=BurnRef(address),
    )
    return TokenPlan(address=address, unit=unit, refs=refs)


def owner_of(view: LedgerView, token: str) -> Optional[str]:
    """
    Return the wallet currently holding the token, or None once it is burned.

    Raises:
        UnitNotRegistered: If no such token exists
    """
    view.get_unit(token)
    for wallet, quantity in sorted(view.get_positions(token).items()):
        if wallet != SYSTEM_WALLET and quantity > 0:
            return wallet
    return None


def is_owner(view: LedgerView, token: str, caller: str) -> bool:
    try:
        return owner_of(view, token) == caller
    except UnitNotRegistered:
        return False


def require_owner(view: LedgerView, token: str, caller: str) -> None:
    """
    Raises:
        TokenBurned: If the token no longer exists
        NotOwner: If caller is not the current owner
    """
    if view.get_unit_state(token).get('burned', False):
        raise TokenBurned(f"Token {token} has been burned")
    if owner_of(view, token) != caller:
        raise NotOwner(f"{caller} does not own token {token}")


def get_royalty_payee(view: LedgerView, token: str) -> Optional[str]:
    """Return the address external royalty payers should pay for this token."""
    return view.get_unit_state(token).get('royalty_payee')


def create_store(extend_ref: ExtendRef, partition: str, asset: str) -> Tuple[str, DeleteRef]:
    """
    Derive the asset store owned by `extend_ref.address` for one partition and asset.

    Returns:
        (store address, delete capability for the store)
    """
    address = derive_address("store", extend_ref.address, partition, asset)
    return address, DeleteRef(address)


def burn_moves(
    view: LedgerView,
    burn_ref: BurnRef,
    holder: str,
    delete_ref: Optional[DeleteRef] = None,
) -> Tuple[List[Move], List[UnitStateChange]]:
    """
    Plan the irreversible burn of a token.

    The single unit returns to the system wallet and the identity is marked
    burned. If the identity kind is deletable its metadata is removed too,
    leaving only a tombstone.

    Raises:
        ValueError: If delete_ref does not belong to the token
        TokenBurned: If the token has already been burned
    """
    token = burn_ref.token
    if delete_ref is not None and delete_ref.address != token:
        raise ValueError(f"DeleteRef for {delete_ref.address} cannot delete token {token}")

    old_state = view.get_unit_state(token)
    if old_state.get('burned', False):
        raise TokenBurned(f"Token {token} has already been burned")

    if delete_ref is not None:
        new_state = {
            'collection': old_state.get('collection'),
            'index': old_state.get('index'),
            'burned': True,
        }
    else:
        new_state = {**old_state, 'burned': True}

    moves = [Move(ONE, token, holder, SYSTEM_WALLET, f"burn_{token}")]
    changes = [UnitStateChange(unit=token, old_state=old_state, new_state=new_state)]
    return moves, changes


def transfer(ledger: Ledger, caller: str, token: str, to: str) -> None:
    """
    Transfer a token from its owner to another wallet.

    A plain transfer is not a royalty-compliant sale, so the vault's
    last_sale_compliant flag is cleared. Vault contents travel with the token.

    Raises:
        NotOwner: If caller is not the current owner
        TokenBurned: If the token has been burned
        ValidationError: If the owner transfers the token to itself
    """
    require_owner(ledger, token, caller)
    if to == caller:
        raise ValidationError("cannot transfer a token to its current owner")

    resource_changes = []
    key = resource_key(RESOURCE_VAULT, token)
    record = ledger.get_resource(key)
    if record is None:
        raise VaultNotFound(f"No vault for token {token}")
    if record['last_sale_compliant']:
        resource_changes.append(ResourceChange(
            key=key, old_state=record, new_state={**record, 'last_sale_compliant': False},
        ))

    pending = build_transaction(
        ledger,
        [Move(ONE, token, caller, to, f"transfer_{token}")],
        origin=TransactionOrigin(OriginType.USER_ACTION, caller, token, "TRANSFER"),
        resource_changes=resource_changes,
    )
    ledger.execute(pending, strict=True)
