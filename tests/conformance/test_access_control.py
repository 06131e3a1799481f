"""
Access Control Conformance Tests

INVARIANT: Only the current owner can take value out of a vault.

    claim_rewards(caller, token)   requires caller == owner_of(token)
    burn_and_redeem(caller, token) requires caller == owner_of(token)
    creator_mint(caller, ...)      requires caller == config.creator

Putting value in is permissionless: anyone may deposit to either
partition or sweep a token's escrow.
"""

import pytest
from hypothesis import given, settings
from hypothesis import strategies as st
from decimal import Decimal

from vaultledger import (
    public_mint_vaulted_token, creator_mint_vaulted_token,
    deposit_to_core_vault, deposit_to_rewards_vault, claim_rewards, burn_and_redeem,
    sweep_royalty_to_core_vault, settle_sale_with_vault_royalty, transfer,
    owner_of, get_vault_balances,
    NotOwner, NotCreator, AuthorizationError,
)
from tests.conftest import make_ledger, make_collection, pay_royalty


PEOPLE = ["creator", "payout", "alice", "bob", "carol", "keeper"]


class TestOwnerOnly:

    @given(st.sampled_from([p for p in PEOPLE if p != "alice"]))
    @settings(max_examples=10, deadline=None)
    def test_non_owner_cannot_withdraw(self, intruder):
        """
        PROPERTY: A non-owner can neither claim nor redeem, and the vault is untouched.
        """
        ledger = make_ledger()
        token = public_mint_vaulted_token(ledger, "alice", make_collection(ledger))
        deposit_to_rewards_vault(ledger, "bob", token, "USDC", 25)
        balances = get_vault_balances(ledger, token)
        version = ledger.state_version

        with pytest.raises(NotOwner):
            claim_rewards(ledger, intruder, token)
        with pytest.raises(NotOwner):
            burn_and_redeem(ledger, intruder, token)
        with pytest.raises(NotOwner):
            settle_sale_with_vault_royalty(ledger, intruder, token, "alice", "USDC", 100)
        with pytest.raises(NotOwner):
            transfer(ledger, intruder, token, intruder)

        assert get_vault_balances(ledger, token) == balances
        assert ledger.state_version == version

    @given(st.lists(st.sampled_from(["bob", "carol"]), min_size=1, max_size=4))
    @settings(max_examples=15, deadline=None)
    def test_rights_follow_the_token(self, chain):
        """
        PROPERTY: After each transfer only the new owner can claim; the previous owner cannot.
        """
        ledger = make_ledger()
        token = public_mint_vaulted_token(ledger, "alice", make_collection(ledger))
        owner = "alice"
        for nxt in chain:
            if nxt == owner:
                continue
            transfer(ledger, owner, token, nxt)
            deposit_to_rewards_vault(ledger, "creator", token, "CEDRA", 1)
            with pytest.raises(NotOwner):
                claim_rewards(ledger, owner, token)
            assert claim_rewards(ledger, nxt, token) == ["CEDRA"]
            owner = nxt
        assert owner_of(ledger, token) == owner

    @given(st.sampled_from([p for p in PEOPLE if p != "creator"]))
    @settings(max_examples=10, deadline=None)
    def test_only_creator_mints_privately(self, caller):
        ledger = make_ledger()
        collection = make_collection(ledger)
        with pytest.raises(NotCreator):
            creator_mint_vaulted_token(ledger, caller, collection, caller)

    def test_authorization_errors_share_a_base(self):
        assert issubclass(NotOwner, AuthorizationError)
        assert issubclass(NotCreator, AuthorizationError)


class TestPermissionless:

    @given(
        st.sampled_from(["creator", "alice", "bob", "carol"]),
        st.sampled_from(["core", "rewards"]),
        st.integers(min_value=1, max_value=1000),
    )
    @settings(max_examples=20, deadline=None)
    def test_anyone_can_deposit(self, depositor, partition, amount):
        ledger = make_ledger()
        token = public_mint_vaulted_token(ledger, "alice", make_collection(ledger))
        deposit = deposit_to_core_vault if partition == "core" else deposit_to_rewards_vault
        deposit(ledger, depositor, token, "CEDRA", amount)
        assert dict((b.asset, b.amount) for b in get_vault_balances(ledger, token))["CEDRA"] == Decimal(amount)

    @given(st.sampled_from(PEOPLE))
    @settings(max_examples=10, deadline=None)
    def test_anyone_can_sweep(self, caller):
        ledger = make_ledger()
        token = public_mint_vaulted_token(ledger, "alice", make_collection(ledger))
        pay_royalty(ledger, "bob", token, "USDC", 1000)
        event = sweep_royalty_to_core_vault(ledger, caller, token, "USDC")
        assert event.gross == Decimal(1000)
        assert owner_of(ledger, token) == "alice"
