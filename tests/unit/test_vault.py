"""
test_vault.py - Unit tests for the dual vault

Tests:
- Deposits into both partitions (lazy stores, reuse, allow-list)
- Claiming rewards (owner only, stores kept, idempotent)
- Burn and redeem (owner only, redeemable flag, full drain, teardown)
- Atomicity of failed operations
"""

import pytest
from decimal import Decimal

from vaultledger import (
    deposit, deposit_to_core_vault, deposit_to_rewards_vault, claim_rewards, burn_and_redeem,
    get_core_balances, get_rewards_balances, vault_exists, owner_of, transfer,
    public_mint_vaulted_token,
    VaultBalance, Deposited, RewardsClaimed, Redeemed,
    ZeroAmount, AssetNotAllowed, InvalidAsset, InvalidPartition, ValidationError, NotOwner,
    NotRedeemable, VaultNotFound, InsufficientFunds,
)
from vaultledger.vault import load_vault, plan_deposit


def _store(ledger, token, partition, asset):
    return load_vault(ledger, token)[partition][asset]['address']


class TestDeposit:

    def test_core_deposit(self, ledger, token):
        deposit_to_core_vault(ledger, "bob", token, "USDC", 25)
        assert get_core_balances(ledger, token) == [VaultBalance("USDC", Decimal("75"))]
        assert ledger.get_balance("bob", "USDC") == Decimal("999975")

    def test_rewards_deposit_creates_store(self, ledger, token):
        assert get_rewards_balances(ledger, token) == []
        deposit_to_rewards_vault(ledger, "bob", token, "CEDRA", 10)
        store = _store(ledger, token, "rewards", "CEDRA")
        assert ledger.is_registered(store)
        assert get_rewards_balances(ledger, token) == [VaultBalance("CEDRA", Decimal("10"))]

    def test_second_deposit_reuses_store(self, ledger, token):
        deposit_to_rewards_vault(ledger, "bob", token, "USDC", 10)
        store = _store(ledger, token, "rewards", "USDC")
        deposit_to_rewards_vault(ledger, "carol", token, "USDC", 5)
        assert _store(ledger, token, "rewards", "USDC") == store
        assert ledger.get_balance(store, "USDC") == Decimal("15")

    def test_partitions_are_independent(self, ledger, token):
        deposit_to_rewards_vault(ledger, "bob", token, "USDC", 10)
        assert _store(ledger, token, "rewards", "USDC") != _store(ledger, token, "core", "USDC")
        assert get_core_balances(ledger, token) == [VaultBalance("USDC", Decimal("50"))]

    def test_anyone_may_deposit(self, ledger, token):
        for depositor in ("bob", "carol", "creator"):
            deposit_to_rewards_vault(ledger, depositor, token, "USDC", 1)
        assert get_rewards_balances(ledger, token) == [VaultBalance("USDC", Decimal("3"))]

    def test_deposit_event(self, ledger, token):
        deposit_to_rewards_vault(ledger, "bob", token, "USDC", 7)
        assert ledger.events[-1] == Deposited(token, "rewards", "USDC", Decimal("7"), "bob")

    def test_zero_amount(self, ledger, token):
        with pytest.raises(ZeroAmount):
            deposit_to_core_vault(ledger, "bob", token, "USDC", 0)

    def test_negative_amount(self, ledger, token):
        with pytest.raises(ValidationError):
            deposit_to_core_vault(ledger, "bob", token, "USDC", -5)

    def test_unknown_partition(self, ledger, token):
        with pytest.raises(InvalidPartition):
            deposit(ledger, "bob", token, "savings", "USDC", 5)

    def test_unknown_token(self, ledger, collection):
        with pytest.raises(VaultNotFound):
            deposit_to_core_vault(ledger, "bob", "0xnotatoken", "USDC", 5)

    def test_insufficient_funds_leaves_no_store(self, ledger, token):
        with pytest.raises(InsufficientFunds):
            deposit_to_rewards_vault(ledger, "payout", token, "CEDRA", 5)
        assert "CEDRA" not in load_vault(ledger, token)['rewards']

    def test_allow_list_rejects_other_assets(self, ledger, free_token):
        with pytest.raises(AssetNotAllowed):
            deposit_to_rewards_vault(ledger, "bob", free_token, "CEDRA", 5)

    def test_allow_list_accepts_listed_asset(self, ledger, free_token):
        deposit_to_rewards_vault(ledger, "bob", free_token, "USDC", 5)
        assert get_rewards_balances(ledger, free_token) == [VaultBalance("USDC", Decimal("5"))]

    def test_internal_path_bypasses_allow_list(self, ledger, free_token):
        deposit(ledger, "bob", free_token, "core", "CEDRA", 5, enforce_allow_list=False)
        assert get_core_balances(ledger, free_token) == [VaultBalance("CEDRA", Decimal("5"))]

    def test_token_cannot_enter_its_own_vault(self, ledger, token):
        version = ledger.state_version
        with pytest.raises(InvalidAsset):
            deposit_to_rewards_vault(ledger, "alice", token, token, 1)
        assert ledger.state_version == version
        assert owner_of(ledger, token) == "alice"
        assert load_vault(ledger, token)['rewards'] == {}

        # The owner keeps full control of the vault
        deposit_to_rewards_vault(ledger, "bob", token, "CEDRA", 3)
        assert claim_rewards(ledger, "alice", token) == ["CEDRA"]
        assert burn_and_redeem(ledger, "alice", token) == [VaultBalance("USDC", Decimal("50"))]

    def test_token_cannot_enter_another_vault(self, ledger, collection, token):
        other = public_mint_vaulted_token(ledger, "bob", collection)
        for partition in ("core", "rewards"):
            with pytest.raises(InvalidAsset):
                deposit(ledger, "alice", other, partition, token, 1, enforce_allow_list=False)
        assert owner_of(ledger, token) == "alice"

    def test_oversized_amount(self, ledger, token):
        version = ledger.state_version
        with pytest.raises(ValidationError):
            deposit_to_core_vault(ledger, "bob", token, "USDC", "9" * 60)
        assert ledger.state_version == version


class TestPlanDeposit:

    def test_plan_is_pure(self, ledger, token):
        record = load_vault(ledger, token)
        plan = plan_deposit(ledger, record, "rewards", "USDC", Decimal("5"), "bob", "bob", "test")
        assert len(plan.wallets_to_create) == 1
        assert "USDC" in plan.record['rewards']
        assert record['rewards'] == {}
        assert load_vault(ledger, token)['rewards'] == {}

    def test_plan_reuses_existing_store(self, ledger, token):
        record = load_vault(ledger, token)
        plan = plan_deposit(ledger, record, "core", "USDC", Decimal("5"), "bob", "bob", "test")
        assert plan.wallets_to_create == ()
        assert plan.moves[0].dest == record['core']['USDC']['address']

    def test_plan_rejects_token_identity(self, ledger, token):
        record = load_vault(ledger, token)
        with pytest.raises(InvalidAsset):
            plan_deposit(ledger, record, "core", token, Decimal("1"), "alice", "alice", "test")


class TestClaimRewards:

    def test_owner_claims_everything(self, ledger, token):
        deposit_to_rewards_vault(ledger, "bob", token, "USDC", 30)
        deposit_to_rewards_vault(ledger, "bob", token, "CEDRA", 12)
        claimed = claim_rewards(ledger, "alice", token)
        assert sorted(claimed) == ["CEDRA", "USDC"]
        assert ledger.get_balance("alice", "USDC") == Decimal("999930")
        assert ledger.get_balance("alice", "CEDRA") == Decimal("1000012")
        assert ledger.events[-1] == RewardsClaimed(token, "alice", ("CEDRA", "USDC"))

    def test_core_untouched(self, ledger, token):
        deposit_to_rewards_vault(ledger, "bob", token, "USDC", 30)
        claim_rewards(ledger, "alice", token)
        assert get_core_balances(ledger, token) == [VaultBalance("USDC", Decimal("50"))]

    def test_stores_survive_claim(self, ledger, token):
        deposit_to_rewards_vault(ledger, "bob", token, "USDC", 30)
        store = _store(ledger, token, "rewards", "USDC")
        claim_rewards(ledger, "alice", token)
        assert ledger.is_registered(store)
        assert get_rewards_balances(ledger, token) == [VaultBalance("USDC", Decimal("0"))]
        deposit_to_rewards_vault(ledger, "bob", token, "USDC", 4)
        assert ledger.get_balance(store, "USDC") == Decimal("4")

    def test_claim_with_nothing_due(self, ledger, token):
        version = ledger.state_version
        assert claim_rewards(ledger, "alice", token) == []
        assert ledger.state_version == version

    def test_second_claim_is_noop(self, ledger, token):
        deposit_to_rewards_vault(ledger, "bob", token, "USDC", 30)
        assert claim_rewards(ledger, "alice", token) == ["USDC"]
        assert claim_rewards(ledger, "alice", token) == []
        assert ledger.get_balance("alice", "USDC") == Decimal("999930")

    def test_non_owner_rejected(self, ledger, token):
        deposit_to_rewards_vault(ledger, "bob", token, "USDC", 30)
        with pytest.raises(NotOwner):
            claim_rewards(ledger, "bob", token)
        assert get_rewards_balances(ledger, token) == [VaultBalance("USDC", Decimal("30"))]

    def test_new_owner_claims_after_transfer(self, ledger, token):
        deposit_to_rewards_vault(ledger, "carol", token, "USDC", 30)
        transfer(ledger, "alice", token, "bob")
        with pytest.raises(NotOwner):
            claim_rewards(ledger, "alice", token)
        claim_rewards(ledger, "bob", token)
        assert ledger.get_balance("bob", "USDC") == Decimal("1000030")


class TestBurnAndRedeem:

    def test_pays_both_partitions(self, ledger, token):
        deposit_to_core_vault(ledger, "bob", token, "CEDRA", 8)
        deposit_to_rewards_vault(ledger, "bob", token, "USDC", 30)
        paid = burn_and_redeem(ledger, "alice", token)
        assert paid == [
            VaultBalance("CEDRA", Decimal("8")),
            VaultBalance("USDC", Decimal("50")),
            VaultBalance("USDC", Decimal("30")),
        ]
        assert ledger.get_balance("alice", "USDC") == Decimal("999900") + 80
        assert ledger.get_balance("alice", "CEDRA") == Decimal("1000008")

    def test_teardown(self, ledger, token):
        deposit_to_rewards_vault(ledger, "bob", token, "USDC", 30)
        stores = [_store(ledger, token, "core", "USDC"), _store(ledger, token, "rewards", "USDC")]
        burn_and_redeem(ledger, "alice", token)
        assert not vault_exists(ledger, token)
        assert owner_of(ledger, token) is None
        assert ledger.get_unit_state(token)['burned'] is True
        for store in stores:
            assert not ledger.is_registered(store)

    def test_empty_stores_closed_without_payment(self, ledger, token):
        deposit_to_rewards_vault(ledger, "bob", token, "USDC", 30)
        claim_rewards(ledger, "alice", token)
        store = _store(ledger, token, "rewards", "USDC")
        paid = burn_and_redeem(ledger, "alice", token)
        assert paid == [VaultBalance("USDC", Decimal("50"))]
        assert not ledger.is_registered(store)

    def test_redeemed_event(self, ledger, token):
        deposit_to_rewards_vault(ledger, "bob", token, "CEDRA", 3)
        burn_and_redeem(ledger, "alice", token)
        assert ledger.events[-1] == Redeemed(token, "alice", ("CEDRA", "USDC"))

    def test_non_owner_rejected(self, ledger, token):
        with pytest.raises(NotOwner):
            burn_and_redeem(ledger, "bob", token)
        assert vault_exists(ledger, token)
        assert owner_of(ledger, token) == "alice"

    def test_locked_core(self, ledger, locked_token):
        with pytest.raises(NotRedeemable):
            burn_and_redeem(ledger, "bob", locked_token)
        assert vault_exists(ledger, locked_token)

    def test_locked_token_still_claims_rewards(self, ledger, locked_token):
        deposit_to_rewards_vault(ledger, "carol", locked_token, "USDC", 9)
        assert claim_rewards(ledger, "bob", locked_token) == ["USDC"]

    def test_second_redeem_fails(self, ledger, token):
        burn_and_redeem(ledger, "alice", token)
        with pytest.raises(VaultNotFound):
            burn_and_redeem(ledger, "alice", token)

    def test_operations_after_burn(self, ledger, token):
        burn_and_redeem(ledger, "alice", token)
        with pytest.raises(VaultNotFound):
            deposit_to_core_vault(ledger, "bob", token, "USDC", 5)
        with pytest.raises(VaultNotFound):
            claim_rewards(ledger, "alice", token)

    def test_conservation(self, ledger, token):
        deposit_to_core_vault(ledger, "bob", token, "CEDRA", 123)
        deposit_to_rewards_vault(ledger, "carol", token, "USDC", 456)
        before = sum(b.amount for b in get_core_balances(ledger, token) + get_rewards_balances(ledger, token))
        paid = burn_and_redeem(ledger, "alice", token)
        assert sum(b.amount for b in paid) == before
        assert ledger.verify_double_entry()['valid']
