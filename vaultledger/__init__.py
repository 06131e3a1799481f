"""
vaultledger - Vaulted Token Ledger

Tokens that own value: every token carries a dual vault (a long-term core
partition and a claimable rewards partition) funded by mint payments,
deposits and swept trade royalties.

Usage:
    from vaultledger import (
        Ledger, fungible_asset, Move, build_transaction, SYSTEM_WALLET,
        init_collection_config, public_mint_vaulted_token,
        deposit_to_rewards_vault, claim_rewards, burn_and_redeem,
    )

    ledger = Ledger("main")
    ledger.register_unit(fungible_asset("USDC", "USD Coin", 6))
    ledger.register_wallet("creator")
    ledger.register_wallet("alice")

    # Fund wallets via SYSTEM_WALLET (proper issuance)
    ledger.execute(build_transaction(ledger, [
        Move(Decimal("1000"), "USDC", SYSTEM_WALLET, "alice", "initial_balance")
    ]))

    collection = init_collection_config(
        ledger, "creator", "Genesis",
        creator_royalty_bps=500, vault_royalty_bps=500,
        mint_vault_bps=5000, mint_price=100, mint_price_asset="USDC",
    )
    token = public_mint_vaulted_token(ledger, "alice", collection)
    burn_and_redeem(ledger, "alice", token)   # alice receives the 50 USDC seed
"""

# Core types
from .core import (
    LedgerView,
    Move,
    Transaction,
    PendingTransaction,
    TransactionOrigin,
    OriginType,
    ResourceChange,
    build_transaction,
    Unit,
    UnitStateChange,
    ExecuteResult,
    ExtendRef,
    DeleteRef,
    BurnRef,
    VaultBalance,
    Minted,
    Deposited,
    RewardsClaimed,
    Redeemed,
    RoyaltySwept,
    SaleSettled,
    LedgerError,
    ValidationError,
    ZeroAmount,
    InvalidBps,
    AssetNotAllowed,
    InvalidPartition,
    InvalidAsset,
    AuthorizationError,
    NotOwner,
    NotCreator,
    StateError,
    ConfigNotFound,
    ConfigAlreadyExists,
    VaultNotFound,
    VaultAlreadyExists,
    EscrowNotFound,
    NotRedeemable,
    SupplyExhausted,
    TokenBurned,
    InsufficientFunds,
    BalanceConstraintViolation,
    TransferRuleViolation,
    UnitNotRegistered,
    WalletNotRegistered,
    StoreNotEmpty,
    StaleState,
    TransactionRejected,
    fungible_asset,
    as_amount,
    split_bps,
    derive_address,
    SYSTEM_WALLET,
    UNIT_TYPE_FUNGIBLE_ASSET,
    UNIT_TYPE_VAULTED_TOKEN,
    PARTITION_CORE,
    PARTITION_REWARDS,
    BPS_DENOMINATOR,
    DUST_TO_CREATOR,
    DUST_TO_VAULT,
)

# Ledger
from .ledger import Ledger

# Token identity
from .identity import (
    owner_of,
    is_owner,
    get_royalty_payee,
    transfer,
)

# Collections and minting
from .collection import (
    CollectionConfig,
    init_collection_config,
    config_exists,
)
from .minting import (
    creator_mint_vaulted_token,
    public_mint_vaulted_token,
)

# Dual vault
from .vault import (
    deposit,
    deposit_to_core_vault,
    deposit_to_rewards_vault,
    claim_rewards,
    burn_and_redeem,
)

# Royalties
from .escrow import (
    sweep_royalty_to_core_vault,
    sweep_royalty_to_core_vault_many,
)
from .marketplace import settle_sale_with_vault_royalty
from .sweeper import RoyaltySweeper, SweepReport, read_token_file

# Views
from .views import (
    VaultInfo,
    vault_exists,
    get_core_balances,
    get_rewards_balances,
    get_vault_balances,
    get_vault_info,
    last_sale_used_vault_royalty,
    get_config,
    get_escrow_address,
    get_escrow_balance,
    bps_to_percent,
    percent_to_bps,
)


__all__ = [
    # Core
    'LedgerView', 'Move', 'Transaction', 'PendingTransaction',
    'TransactionOrigin', 'OriginType', 'ResourceChange',
    'build_transaction',
    'Unit', 'UnitStateChange', 'ExecuteResult',
    'ExtendRef', 'DeleteRef', 'BurnRef', 'VaultBalance',
    'Minted', 'Deposited', 'RewardsClaimed', 'Redeemed', 'RoyaltySwept', 'SaleSettled',
    'fungible_asset', 'as_amount', 'split_bps', 'derive_address',
    'SYSTEM_WALLET', 'UNIT_TYPE_FUNGIBLE_ASSET', 'UNIT_TYPE_VAULTED_TOKEN',
    'PARTITION_CORE', 'PARTITION_REWARDS', 'BPS_DENOMINATOR',
    'DUST_TO_CREATOR', 'DUST_TO_VAULT',

    # Errors
    'LedgerError', 'ValidationError', 'ZeroAmount', 'InvalidBps', 'AssetNotAllowed',
    'InvalidPartition', 'InvalidAsset', 'AuthorizationError', 'NotOwner', 'NotCreator',
    'StateError', 'ConfigNotFound', 'ConfigAlreadyExists', 'VaultNotFound',
    'VaultAlreadyExists', 'EscrowNotFound', 'NotRedeemable', 'SupplyExhausted',
    'TokenBurned', 'InsufficientFunds', 'BalanceConstraintViolation',
    'TransferRuleViolation', 'UnitNotRegistered', 'WalletNotRegistered',
    'StoreNotEmpty', 'StaleState', 'TransactionRejected',

    # Ledger
    'Ledger',

    # Identity
    'owner_of', 'is_owner', 'get_royalty_payee', 'transfer',

    # Collections and minting
    'CollectionConfig', 'init_collection_config', 'config_exists',
    'creator_mint_vaulted_token', 'public_mint_vaulted_token',

    # Dual vault
    'deposit', 'deposit_to_core_vault', 'deposit_to_rewards_vault',
    'claim_rewards', 'burn_and_redeem',

    # Royalties
    'sweep_royalty_to_core_vault', 'sweep_royalty_to_core_vault_many',
    'settle_sale_with_vault_royalty',
    'RoyaltySweeper', 'SweepReport', 'read_token_file',

    # Views
    'VaultInfo', 'vault_exists', 'get_core_balances', 'get_rewards_balances',
    'get_vault_balances', 'get_vault_info', 'last_sale_used_vault_royalty',
    'get_config', 'get_escrow_address', 'get_escrow_balance',
    'bps_to_percent', 'percent_to_bps',
]

__version__ = '1.0.0'
