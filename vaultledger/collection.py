"""
collection.py - Collection Configuration

One immutable configuration record per collection: royalty splits, mint
pricing, the deposit allow-list and the supply cap. Only minted_count changes
after creation, and only through minting.

All basis points are integers in 0..10000 and
creator_royalty_bps + vault_royalty_bps may not exceed 10000.
"""

from __future__ import annotations
from dataclasses import dataclass
from decimal import Decimal
from typing import FrozenSet, Iterable, Optional, Union

from .core import (
    LedgerView, ResourceChange, ResourceState,
    TransactionOrigin, OriginType,
    BPS_DENOMINATOR, DUST_TO_CREATOR, DUST_TO_VAULT, DUST_POLICIES, RESOURCE_CONFIG,
    ConfigAlreadyExists, ConfigNotFound, InvalidBps, UnitNotRegistered, ValidationError,
    WalletNotRegistered,
    as_amount, build_transaction, derive_address, resource_key, validate_bps,
)
from .ledger import Ledger


@dataclass(frozen=True, slots=True)
class CollectionConfig:
    """
    Per-collection parameters.

    Attributes:
        collection: Collection address
        creator: Wallet that created the collection
        name: Collection name (part of the collection identity)
        creator_royalty_bps: Creator share of a sale, in bps of the gross price
        vault_royalty_bps: Core-vault share of a sale, in bps of the gross price
        mint_vault_bps: Share of the mint price seeded into the core partition
        mint_price: Price per mint in smallest units (0 = free)
        mint_price_asset: Asset the mint price is paid in
        allowed_assets: Assets accepted by external deposits (empty = any)
        creator_payout_address: Wallet receiving creator payments
        max_supply: Supply cap (0 = unbounded)
        minted_count: Tokens minted so far
        dust_to: Who receives rounding remainders ("creator" or "vault")
    """
    collection: str
    creator: str
    name: str
    creator_royalty_bps: int
    vault_royalty_bps: int
    mint_vault_bps: int
    mint_price: Decimal
    mint_price_asset: Optional[str]
    allowed_assets: FrozenSet[str]
    creator_payout_address: str
    max_supply: int
    minted_count: int = 0
    description: str = ""
    uri: str = ""
    dust_to: str = DUST_TO_CREATOR

    @property
    def total_royalty_bps(self) -> int:
        return self.creator_royalty_bps + self.vault_royalty_bps

    @property
    def dust_to_vault(self) -> bool:
        return self.dust_to == DUST_TO_VAULT

    @property
    def is_supply_exhausted(self) -> bool:
        return self.max_supply > 0 and self.minted_count >= self.max_supply

    def is_asset_allowed(self, asset: str) -> bool:
        """An empty allow-list accepts every asset."""
        return not self.allowed_assets or asset in self.allowed_assets

    def to_state(self) -> ResourceState:
        return {
            'collection': self.collection,
            'creator': self.creator,
            'name': self.name,
            'description': self.description,
            'uri': self.uri,
            'creator_royalty_bps': self.creator_royalty_bps,
            'vault_royalty_bps': self.vault_royalty_bps,
            'mint_vault_bps': self.mint_vault_bps,
            'mint_price': self.mint_price,
            'mint_price_asset': self.mint_price_asset,
            'allowed_assets': sorted(self.allowed_assets),
            'creator_payout_address': self.creator_payout_address,
            'max_supply': self.max_supply,
            'minted_count': self.minted_count,
            'dust_to': self.dust_to,
        }

    @classmethod
    def from_state(cls, state: ResourceState) -> CollectionConfig:
        return cls(
            collection=state['collection'],
            creator=state['creator'],
            name=state['name'],
            description=state.get('description', ""),
            uri=state.get('uri', ""),
            creator_royalty_bps=state['creator_royalty_bps'],
            vault_royalty_bps=state['vault_royalty_bps'],
            mint_vault_bps=state['mint_vault_bps'],
            mint_price=state['mint_price'],
            mint_price_asset=state['mint_price_asset'],
            allowed_assets=frozenset(state['allowed_assets']),
            creator_payout_address=state['creator_payout_address'],
            max_supply=state['max_supply'],
            minted_count=state['minted_count'],
            dust_to=state.get('dust_to', DUST_TO_CREATOR),
        )


def collection_address(creator: str, name: str) -> str:
    """A collection is identified by its creator and name."""
    return derive_address("collection", creator, name)


def validate_config(config: CollectionConfig) -> None:
    """
    Check bounds on a collection configuration.

    Raises:
        InvalidBps: Basis points out of range, or royalty sum above 10000
        ValidationError: Negative supply cap, unknown dust policy, or a
            priced mint without a payment asset
    """
    validate_bps("creator_royalty_bps", config.creator_royalty_bps)
    validate_bps("vault_royalty_bps", config.vault_royalty_bps)
    validate_bps("mint_vault_bps", config.mint_vault_bps)
    if config.total_royalty_bps > BPS_DENOMINATOR:
        raise InvalidBps(
            f"creator_royalty_bps + vault_royalty_bps must not exceed {BPS_DENOMINATOR}, "
            f"got {config.total_royalty_bps}"
        )
    if config.max_supply < 0:
        raise ValidationError(f"max_supply cannot be negative, got {config.max_supply}")
    if config.dust_to not in DUST_POLICIES:
        raise ValidationError(f"dust_to must be one of {DUST_POLICIES}, got {config.dust_to!r}")
    if config.mint_price > 0 and not config.mint_price_asset:
        raise ValidationError("mint_price_asset is required when mint_price > 0")


def init_collection_config(
    ledger: Ledger,
    creator: str,
    name: str,
    *,
    description: str = "",
    uri: str = "",
    creator_royalty_bps: int = 0,
    vault_royalty_bps: int = 0,
    mint_vault_bps: int = 0,
    mint_price: Union[int, Decimal] = 0,
    mint_price_asset: Optional[str] = None,
    allowed_assets: Iterable[str] = (),
    creator_payout_address: Optional[str] = None,
    max_supply: int = 0,
    dust_to: str = DUST_TO_CREATOR,
) -> str:
    """
    Create the configuration record for a new collection.

    Args:
        ledger: Ledger to write to
        creator: Creator wallet; together with name it identifies the collection
        name: Collection name
        creator_payout_address: Defaults to the creator

    Returns:
        The collection address

    Raises:
        InvalidBps: Out-of-range basis points
        ConfigAlreadyExists: The creator already has a collection with this name
        WalletNotRegistered / UnitNotRegistered: Unknown creator, payout wallet or asset

    Example:
        collection = init_collection_config(
            ledger, "creator", "Genesis",
            creator_royalty_bps=500, vault_royalty_bps=500,
            mint_vault_bps=5000, mint_price=100, mint_price_asset="USDC",
        )
    """
    address = collection_address(creator, name)
    config = CollectionConfig(
        collection=address,
        creator=creator,
        name=name,
        description=description,
        uri=uri,
        creator_royalty_bps=creator_royalty_bps,
        vault_royalty_bps=vault_royalty_bps,
        mint_vault_bps=mint_vault_bps,
        mint_price=as_amount(mint_price),
        mint_price_asset=mint_price_asset,
        allowed_assets=frozenset(allowed_assets),
        creator_payout_address=creator_payout_address or creator,
        max_supply=max_supply,
        dust_to=dust_to,
    )
    validate_config(config)

    key = resource_key(RESOURCE_CONFIG, address)
    if ledger.has_resource(key):
        raise ConfigAlreadyExists(f"Collection {name!r} of {creator} is already configured")
    if not ledger.is_registered(creator):
        raise WalletNotRegistered(f"Wallet {creator} not registered")
    if not ledger.is_registered(config.creator_payout_address):
        raise WalletNotRegistered(f"Wallet {config.creator_payout_address} not registered")
    if config.mint_price_asset is not None and config.mint_price_asset not in ledger.units:
        raise UnitNotRegistered(f"Unit {config.mint_price_asset} not registered")

    pending = build_transaction(
        ledger,
        [],
        origin=TransactionOrigin(OriginType.SYSTEM, creator, address, "INIT_COLLECTION"),
        resource_changes=[ResourceChange(key=key, old_state=None, new_state=config.to_state())],
    )
    ledger.execute(pending, strict=True)
    return address


def config_exists(view: LedgerView, collection: str) -> bool:
    return view.has_resource(resource_key(RESOURCE_CONFIG, collection))


def get_config(view: LedgerView, collection: str) -> CollectionConfig:
    """
    Raises:
        ConfigNotFound: If the collection has no configuration
    """
    state = view.get_resource(resource_key(RESOURCE_CONFIG, collection))
    if state is None:
        raise ConfigNotFound(f"No configuration for collection {collection}")
    return CollectionConfig.from_state(state)
