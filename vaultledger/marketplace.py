"""
marketplace.py - Royalty-Compliant Sale Settlement

settle_sale_with_vault_royalty() transfers a token and its payment in one
transaction, paying royalties at source instead of through the escrow:

    creator_royalty = floor(gross * creator_royalty_bps / 10000)
    vault_royalty   = floor(gross * vault_royalty_bps / 10000)
    seller_proceeds = gross - creator_royalty - vault_royalty

The vault royalty goes straight into the token's core partition, so it stays
with the token after the sale. The vault is marked last_sale_compliant.
"""

from __future__ import annotations
from decimal import Decimal
from typing import List, Union

from .core import (
    Move, ResourceChange, TransactionOrigin, OriginType, SaleSettled, Event,
    PARTITION_CORE,
    ValidationError,
    build_transaction, split_bps,
)
from .collection import get_config
from .identity import ONE, require_owner
from .ledger import Ledger
from .vault import load_vault, plan_deposit, require_amount, require_fungible, vault_key


def settle_sale_with_vault_royalty(
    ledger: Ledger,
    seller: str,
    token: str,
    buyer: str,
    asset: str,
    gross_amount: Union[int, str, Decimal],
) -> SaleSettled:
    """
    Settle a sale of `token` from `seller` to `buyer` for `gross_amount` of `asset`.

    Args:
        ledger: Ledger to execute on
        seller: Current owner; authorizes the sale
        token: Token being sold
        buyer: Wallet paying gross_amount and receiving the token
        asset: Sale currency
        gross_amount: Price paid by the buyer

    Returns:
        The SaleSettled event

    Raises:
        NotOwner: If seller does not own the token
        ValidationError: If buyer and seller are the same wallet
        ZeroAmount: If gross_amount is zero
        InvalidAsset: If the sale currency is not a fungible asset
        InsufficientFunds: If the buyer cannot pay
    """
    gross = require_amount(gross_amount)
    if buyer == seller:
        raise ValidationError("buyer and seller must differ")
    record = load_vault(ledger, token)
    require_owner(ledger, token, seller)
    require_fungible(ledger, asset)
    config = get_config(ledger, record['collection'])

    creator_royalty, _ = split_bps(gross, config.creator_royalty_bps)
    vault_royalty, _ = split_bps(gross, config.vault_royalty_bps)
    proceeds = gross - creator_royalty - vault_royalty

    contract_id = f"sale_{token}"
    moves: List[Move] = [Move(ONE, token, seller, buyer, contract_id)]
    wallets: List[str] = []
    events: List[Event] = []
    new_record = {**record, 'last_sale_compliant': True}

    if proceeds > 0:
        moves.append(Move(proceeds, asset, buyer, seller, contract_id))
    if creator_royalty > 0 and buyer != config.creator_payout_address:
        moves.append(Move(creator_royalty, asset, buyer, config.creator_payout_address, f"royalty_{token}"))
    if vault_royalty > 0:
        plan = plan_deposit(
            ledger, new_record, PARTITION_CORE, asset, vault_royalty, buyer, buyer, f"royalty_vault_{token}",
        )
        moves.extend(plan.moves)
        wallets.extend(plan.wallets_to_create)
        new_record = plan.record
        events.append(plan.event)

    settled = SaleSettled(
        token=token, seller=seller, buyer=buyer, asset=asset, gross=gross,
        creator_royalty=creator_royalty, vault_royalty=vault_royalty,
    )
    events.insert(0, settled)

    pending = build_transaction(
        ledger,
        moves,
        origin=TransactionOrigin(OriginType.CONTRACT, seller, token, "SALE"),
        resource_changes=[ResourceChange(key=vault_key(token), old_state=record, new_state=new_record)],
        wallets_to_create=wallets,
        events=events,
    )
    ledger.execute(pending, strict=True)
    return settled
