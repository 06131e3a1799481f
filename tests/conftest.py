"""
conftest.py - Shared pytest fixtures for vault ledger tests

Provides common fixtures used across unit, functional and conformance tests:
- A funded ledger with two fungible assets and a set of accounts
- Configured collections (priced with royalties, free with an allow-list)
- Minted tokens (redeemable and locked)
- Helpers for issuance and royalty payments
"""

import pytest
from datetime import datetime
from decimal import Decimal
from typing import Union

from vaultledger import (
    Ledger, Move, build_transaction, fungible_asset, SYSTEM_WALLET,
    init_collection_config, creator_mint_vaulted_token, public_mint_vaulted_token,
    get_escrow_address,
)

from tests.fake_view import FakeView


INITIAL_BALANCE = Decimal("1000000")
ACCOUNTS = ("creator", "payout", "alice", "bob", "carol", "keeper")


# =============================================================================
# HELPER FUNCTIONS
# =============================================================================

def fund(ledger: Ledger, wallet: str, asset: str, amount: Union[int, Decimal]) -> None:
    """Issue `amount` of `asset` to `wallet` out of the system wallet."""
    tx = build_transaction(ledger, [
        Move(Decimal(amount), asset, SYSTEM_WALLET, wallet, f"issue_{wallet}_{asset}")
    ])
    ledger.execute(tx, strict=True)


def pay_royalty(ledger: Ledger, payer: str, token: str, asset: str, amount: Union[int, Decimal]) -> None:
    """Pay a trade royalty to a token's escrow, the way an external marketplace does."""
    escrow = get_escrow_address(ledger, token)
    assert escrow is not None, f"token {token} has no escrow"
    tx = build_transaction(ledger, [
        Move(Decimal(amount), asset, payer, escrow, f"royalty_{token}")
    ])
    ledger.execute(tx, strict=True)


def make_ledger(verbose: bool = False) -> Ledger:
    """Ledger with USDC and CEDRA and every account funded."""
    ledger = Ledger("test", datetime(2025, 1, 1), verbose=verbose)
    ledger.register_unit(fungible_asset("USDC", "USD Coin", 6))
    ledger.register_unit(fungible_asset("CEDRA", "Cedra", 8))
    for account in ACCOUNTS:
        ledger.register_wallet(account)
    for account in ("creator", "alice", "bob", "carol"):
        fund(ledger, account, "USDC", INITIAL_BALANCE)
        fund(ledger, account, "CEDRA", INITIAL_BALANCE)
    return ledger


def make_collection(ledger: Ledger, name: str = "Genesis", **overrides) -> str:
    """Priced collection: 100 USDC per mint, half seeds the core vault, 5% + 5% royalties."""
    params = dict(
        creator_royalty_bps=500,
        vault_royalty_bps=500,
        mint_vault_bps=5000,
        mint_price=100,
        mint_price_asset="USDC",
        creator_payout_address="payout",
    )
    params.update(overrides)
    return init_collection_config(ledger, "creator", name, **params)


# =============================================================================
# BASIC FIXTURES
# =============================================================================

@pytest.fixture
def empty_ledger():
    """Fresh ledger with no registrations."""
    return Ledger("test", datetime(2025, 1, 1), verbose=False)


@pytest.fixture
def ledger():
    """Ledger with USDC, CEDRA and funded accounts."""
    return make_ledger()


# =============================================================================
# COLLECTION FIXTURES
# =============================================================================

@pytest.fixture
def collection(ledger):
    """Priced collection with royalties, unrestricted deposits."""
    return make_collection(ledger)


@pytest.fixture
def free_collection(ledger):
    """Free mint, no royalties, deposits restricted to USDC."""
    return init_collection_config(
        ledger, "creator", "Free",
        allowed_assets=["USDC"],
    )


# =============================================================================
# TOKEN FIXTURES
# =============================================================================

@pytest.fixture
def token(ledger, collection):
    """Redeemable token publicly minted by alice; core holds the 50 USDC seed."""
    return public_mint_vaulted_token(ledger, "alice", collection)


@pytest.fixture
def locked_token(ledger, collection):
    """Token minted by the creator to bob with a non-redeemable core vault."""
    return creator_mint_vaulted_token(
        ledger, "creator", collection, "bob", is_core_redeemable=False,
    )


@pytest.fixture
def free_token(ledger, free_collection):
    """Token from the free collection, owned by alice, with an empty vault."""
    return public_mint_vaulted_token(ledger, "alice", free_collection)


# =============================================================================
# FAKE VIEW FIXTURES
# =============================================================================

@pytest.fixture
def vault_view():
    """FakeView holding one token owned by alice with a populated vault."""
    token = "0xtoken"
    return FakeView(
        balances={
            "alice": {token: Decimal("1")},
            "0xcore_usdc": {"USDC": Decimal("50")},
            "0xrewards_usdc": {"USDC": Decimal("0")},
            "0xrewards_cedra": {"CEDRA": Decimal("7")},
            "0xescrow": {"USDC": Decimal("1000")},
        },
        states={
            token: {'collection': "0xcollection", 'creator': "creator", 'burned': False},
        },
        resources={
            f"vault:{token}": {
                'token': token,
                'collection': "0xcollection",
                'creator': "creator",
                'core': {"USDC": {'address': "0xcore_usdc", 'delete_ref': None}},
                'rewards': {
                    "USDC": {'address': "0xrewards_usdc", 'delete_ref': None},
                    "CEDRA": {'address': "0xrewards_cedra", 'delete_ref': None},
                },
                'is_core_redeemable': True,
                'extend_ref': None,
                'delete_ref': None,
                'burn_ref': None,
                'last_sale_compliant': True,
            },
            f"escrow:{token}": {'token': token, 'address': "0xescrow"},
        },
        time=datetime(2025, 1, 1),
    )
