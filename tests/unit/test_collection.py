"""
test_collection.py - Unit tests for collection configuration

Tests:
- Creation and defaults
- Basis-point and parameter validation
- Duplicate initialization
- Allow-list semantics
"""

import pytest
from decimal import Decimal

from vaultledger import (
    CollectionConfig, init_collection_config, config_exists, get_config,
    InvalidBps, ValidationError, ConfigAlreadyExists, ConfigNotFound,
    WalletNotRegistered, UnitNotRegistered, DUST_TO_CREATOR, DUST_TO_VAULT,
)
from vaultledger.collection import collection_address
from tests.conftest import make_collection


class TestInitCollection:

    def test_stored_config(self, ledger, collection):
        config = get_config(ledger, collection)
        assert config.collection == collection
        assert config.creator == "creator"
        assert config.name == "Genesis"
        assert config.creator_royalty_bps == 500
        assert config.vault_royalty_bps == 500
        assert config.mint_vault_bps == 5000
        assert config.mint_price == Decimal("100")
        assert config.mint_price_asset == "USDC"
        assert config.creator_payout_address == "payout"
        assert config.max_supply == 0
        assert config.minted_count == 0
        assert config.dust_to == DUST_TO_CREATOR

    def test_address_from_creator_and_name(self, ledger, collection):
        assert collection == collection_address("creator", "Genesis")
        assert config_exists(ledger, collection)

    def test_payout_defaults_to_creator(self, ledger):
        address = init_collection_config(ledger, "creator", "Plain")
        assert get_config(ledger, address).creator_payout_address == "creator"

    def test_same_name_different_creators(self, ledger):
        a = init_collection_config(ledger, "creator", "Shared")
        b = init_collection_config(ledger, "alice", "Shared")
        assert a != b

    def test_duplicate_rejected(self, ledger, collection):
        with pytest.raises(ConfigAlreadyExists):
            make_collection(ledger)

    def test_missing_config(self, ledger):
        assert not config_exists(ledger, "0xnothing")
        with pytest.raises(ConfigNotFound):
            get_config(ledger, "0xnothing")


class TestValidation:

    @pytest.mark.parametrize("field", ["creator_royalty_bps", "vault_royalty_bps", "mint_vault_bps"])
    def test_bps_above_maximum(self, ledger, field):
        with pytest.raises(InvalidBps):
            make_collection(ledger, **{field: 10001})

    def test_negative_bps(self, ledger):
        with pytest.raises(InvalidBps):
            make_collection(ledger, vault_royalty_bps=-1)

    def test_royalty_sum_above_maximum(self, ledger):
        with pytest.raises(InvalidBps, match="must not exceed"):
            make_collection(ledger, creator_royalty_bps=6000, vault_royalty_bps=4001)

    def test_royalty_sum_at_maximum(self, ledger):
        address = make_collection(ledger, creator_royalty_bps=6000, vault_royalty_bps=4000)
        assert get_config(ledger, address).total_royalty_bps == 10000

    def test_price_requires_asset(self, ledger):
        with pytest.raises(ValidationError, match="mint_price_asset"):
            make_collection(ledger, mint_price_asset=None)

    def test_unknown_price_asset(self, ledger):
        with pytest.raises(UnitNotRegistered):
            make_collection(ledger, mint_price_asset="DOGE")

    def test_unknown_payout(self, ledger):
        with pytest.raises(WalletNotRegistered):
            make_collection(ledger, creator_payout_address="nobody")

    def test_negative_supply(self, ledger):
        with pytest.raises(ValidationError):
            make_collection(ledger, max_supply=-1)

    def test_unknown_dust_policy(self, ledger):
        with pytest.raises(ValidationError):
            make_collection(ledger, dust_to="seller")

    def test_float_price_rejected(self, ledger):
        with pytest.raises(ValueError):
            make_collection(ledger, mint_price=1.5)

    def test_failed_init_leaves_nothing(self, ledger):
        with pytest.raises(InvalidBps):
            make_collection(ledger, mint_vault_bps=20000)
        assert not config_exists(ledger, collection_address("creator", "Genesis"))


class TestAllowList:

    def test_empty_allows_everything(self, ledger, collection):
        config = get_config(ledger, collection)
        assert config.is_asset_allowed("USDC")
        assert config.is_asset_allowed("ANYTHING")

    def test_restricted(self, ledger, free_collection):
        config = get_config(ledger, free_collection)
        assert config.allowed_assets == frozenset({"USDC"})
        assert config.is_asset_allowed("USDC")
        assert not config.is_asset_allowed("CEDRA")


class TestConfigRecord:

    def test_state_round_trip(self, ledger, collection):
        config = get_config(ledger, collection)
        assert CollectionConfig.from_state(config.to_state()) == config

    def test_supply_exhausted(self):
        config = CollectionConfig(
            collection="0xc", creator="c", name="n",
            creator_royalty_bps=0, vault_royalty_bps=0, mint_vault_bps=0,
            mint_price=Decimal(0), mint_price_asset=None, allowed_assets=frozenset(),
            creator_payout_address="c", max_supply=2, minted_count=2,
        )
        assert config.is_supply_exhausted

    def test_unbounded_supply(self):
        config = CollectionConfig(
            collection="0xc", creator="c", name="n",
            creator_royalty_bps=0, vault_royalty_bps=0, mint_vault_bps=0,
            mint_price=Decimal(0), mint_price_asset=None, allowed_assets=frozenset(),
            creator_payout_address="c", max_supply=0, minted_count=10**6,
            dust_to=DUST_TO_VAULT,
        )
        assert not config.is_supply_exhausted
        assert config.dust_to_vault
