"""
Core types and pure functions for the vaulted token ledger.

This module provides the foundational data structures and protocols:
1. Protocols: LedgerView for read-only ledger access
2. Immutable data structures: Move, ResourceChange, PendingTransaction, Transaction, Unit
3. Capabilities: ExtendRef, DeleteRef, BurnRef
4. Events emitted by vault operations
5. Exceptions: validation, authorization and state errors, each with a numeric code
6. Basis-point splitting and address derivation

All functions in this module are pure and operate on read-only views.
No function can mutate ledger state directly.
"""

from __future__ import annotations
from dataclasses import dataclass, field
from datetime import datetime
from decimal import Decimal, InvalidOperation, ROUND_HALF_EVEN, ROUND_DOWN, getcontext
from enum import Enum
import hashlib
from typing import (
    Dict, List, Set, Optional, Callable, Any, Protocol,
    Tuple, FrozenSet, Union, runtime_checkable
)


# ============================================================================
# DECIMAL CONTEXT CONFIGURATION
# ============================================================================
#
# Amounts are whole numbers of an asset's smallest unit, carried as Decimal.
# Products such as amount * bps can exceed 28 digits, so precision is raised.
#
# PRECONDITION: No other code should modify the global Decimal context.
#
_LEDGER_DECIMAL_CONTEXT = getcontext()
_LEDGER_DECIMAL_CONTEXT.prec = 50
_LEDGER_DECIMAL_CONTEXT.rounding = ROUND_HALF_EVEN


# ============================================================================
# CONSTANTS
# ============================================================================

# Reserved wallet for issuance and burning.
# The system wallet is exempt from balance validation and can hold any balance.
SYSTEM_WALLET = "system"

# Unit type constants (strings, not enum).
UNIT_TYPE_FUNGIBLE_ASSET = "FUNGIBLE_ASSET"
UNIT_TYPE_VAULTED_TOKEN = "VAULTED_TOKEN"

# Vault partitions.
PARTITION_CORE = "core"
PARTITION_REWARDS = "rewards"
PARTITIONS = (PARTITION_CORE, PARTITION_REWARDS)

# Basis points: integer units of 1/10000.
BPS_DENOMINATOR = 10000

# Who receives the rounding remainder of a basis-point split.
DUST_TO_CREATOR = "creator"
DUST_TO_VAULT = "vault"
DUST_POLICIES = (DUST_TO_CREATOR, DUST_TO_VAULT)

# Keyed record kinds held by the ledger.
RESOURCE_CONFIG = "config"
RESOURCE_VAULT = "vault"
RESOURCE_ESCROW = "escrow"

# Quantities with absolute value below this threshold are treated as zero.
QUANTITY_EPSILON = Decimal("1e-12")

DECIMAL_ROUNDING = {
    UNIT_TYPE_FUNGIBLE_ASSET: ROUND_DOWN,
    UNIT_TYPE_VAULTED_TOKEN: ROUND_DOWN,
}


# ============================================================================
# TYPE ALIASES
# ============================================================================

# Mapping from wallet ID to quantity held by that wallet for a specific unit.
Positions = Dict[str, Decimal]

# Mapping from unit symbol to quantity held in a single wallet.
BalanceMap = Dict[str, Decimal]

# Internal state for a unit (token identity metadata, asset metadata).
UnitState = Dict[str, Any]

# A keyed record: collection config, dual vault, royalty escrow.
ResourceState = Dict[str, Any]


# ============================================================================
# PROTOCOLS
# ============================================================================

@runtime_checkable
class LedgerView(Protocol):
    """
    Read-only interface to ledger state.

    Planners, views and transfer rules receive a LedgerView and can query
    balances, unit state and keyed records without the ability to modify them.
    The Ledger class implements this protocol but also provides mutation
    methods. For testing, FakeView provides a truly immutable implementation.
    """

    @property
    def current_time(self) -> datetime:
        """Return the current logical time of the ledger."""
        ...

    @property
    def state_version(self) -> int:
        """Return the number of transactions applied so far."""
        ...

    def get_balance(self, wallet_id: str, unit_symbol: str) -> Decimal:
        """
        Return the balance of a specific unit in a wallet.

        Returns Decimal("0") if the wallet holds none of the unit.
        """
        ...

    def get_unit_state(self, unit_symbol: str) -> UnitState:
        """Return a copy of the unit's internal state."""
        ...

    def get_positions(self, unit_symbol: str) -> Positions:
        """Return all non-zero positions for a unit across all wallets."""
        ...

    def list_wallets(self) -> Set[str]:
        """Return the set of all registered wallet IDs."""
        ...

    def get_unit(self, symbol: str) -> 'Unit':
        """Return the Unit object for a given symbol."""
        ...

    def get_resource(self, key: str) -> Optional[ResourceState]:
        """Return a copy of the keyed record, or None if it does not exist."""
        ...

    def has_resource(self, key: str) -> bool:
        """Return True if a keyed record exists."""
        ...


# ============================================================================
# ENUMS
# ============================================================================

class ExecuteResult(Enum):
    """
    Outcome of a transaction execution attempt.

    APPLIED: Transaction was successfully validated and applied to the ledger.
    ALREADY_APPLIED: Transaction ID was previously processed (idempotent behavior).
    REJECTED: Transaction failed validation; nothing was applied.
    """
    APPLIED = "applied"
    ALREADY_APPLIED = "already_applied"
    REJECTED = "rejected"


class OriginType(Enum):
    """Classification of where a transaction originated."""
    USER_ACTION = "user_action"           # Deposit, claim, redeem, transfer
    CONTRACT = "contract"                 # Mint, sweep, sale settlement
    SYSTEM = "system"                     # Issuance, collection setup


# ============================================================================
# EXCEPTIONS
# ============================================================================
#
# Every error carries a numeric code so callers can distinguish the reason
# for a failed operation. Codes are grouped by kind:
#   1-9    validation
#   10-19  authorization
#   20-29  state
#   30-39  engine
#

class LedgerError(Exception):
    """Base exception for all ledger-related errors."""
    code = 0


class ValidationError(LedgerError):
    """Malformed input: zero amounts, out-of-range basis points, disallowed assets."""
    code = 1


class ZeroAmount(ValidationError):
    """Raised when an operation is asked to move zero value."""
    code = 2


class InvalidBps(ValidationError):
    """Raised when a basis-point value or sum is outside 0..10000."""
    code = 3


class AssetNotAllowed(ValidationError):
    """Raised when an external deposit uses an asset outside the collection allow-list."""
    code = 4


class InvalidPartition(ValidationError):
    """Raised when a partition name is neither core nor rewards."""
    code = 5


class InvalidAsset(ValidationError):
    """Raised when a vault is asked to hold something other than a fungible asset."""
    code = 6


class AuthorizationError(LedgerError):
    """The caller is not permitted to perform the operation."""
    code = 10


class NotOwner(AuthorizationError):
    """Raised when the caller does not currently own the token."""
    code = 11


class NotCreator(AuthorizationError):
    """Raised when the caller is not the collection creator."""
    code = 12


class StateError(LedgerError):
    """The ledger is not in a state that permits the operation."""
    code = 20


class ConfigNotFound(StateError):
    code = 21


class ConfigAlreadyExists(StateError):
    code = 22


class VaultNotFound(StateError):
    code = 23


class VaultAlreadyExists(StateError):
    code = 24


class EscrowNotFound(StateError):
    code = 25


class NotRedeemable(StateError):
    """Raised when burn_and_redeem is called on a vault whose core partition is locked."""
    code = 26


class SupplyExhausted(StateError):
    code = 27


class TokenBurned(StateError):
    code = 28


class InsufficientFunds(LedgerError):
    """Raised when a move would cause a wallet balance to fall below the unit's minimum."""
    code = 30


class BalanceConstraintViolation(LedgerError):
    """Raised when a move would cause a wallet balance to exceed the unit's maximum."""
    code = 31


class TransferRuleViolation(LedgerError):
    """Raised when a move violates the unit's transfer rule."""
    code = 32


class UnitNotRegistered(LedgerError):
    """Raised when attempting to operate on a unit that has not been registered with the ledger."""
    code = 33


class WalletNotRegistered(LedgerError):
    """Raised when attempting to operate on a wallet that has not been registered with the ledger."""
    code = 34


class StoreNotEmpty(LedgerError):
    """Raised when a transaction closes a wallet that would still hold value."""
    code = 35


class StaleState(LedgerError):
    """Raised when a record changed between planning and execution."""
    code = 36


class TransactionRejected(LedgerError):
    """Raised for rejections without a more specific cause (e.g. future timestamps)."""
    code = 37


# ============================================================================
# CAPABILITIES
# ============================================================================
#
# Capabilities are obtained once, when an object is created, and stored inside
# the record that owns the object. Destructive operations take them by value.
#

@dataclass(frozen=True, slots=True)
class ExtendRef:
    """Permission to act as the object at `address` (create stores it owns)."""
    address: str


@dataclass(frozen=True, slots=True)
class DeleteRef:
    """Permission to delete the object at `address` once it is empty."""
    address: str


@dataclass(frozen=True, slots=True)
class BurnRef:
    """Permission to irreversibly burn `token`."""
    token: str


# ============================================================================
# EVENTS
# ============================================================================

@dataclass(frozen=True, slots=True)
class Minted:
    token: str
    collection: str
    recipient: str
    is_core_redeemable: bool
    vault_seed: Decimal


@dataclass(frozen=True, slots=True)
class Deposited:
    token: str
    partition: str
    asset: str
    amount: Decimal
    depositor: str


@dataclass(frozen=True, slots=True)
class RewardsClaimed:
    token: str
    owner: str
    assets: Tuple[str, ...]


@dataclass(frozen=True, slots=True)
class Redeemed:
    token: str
    owner: str
    assets: Tuple[str, ...]


@dataclass(frozen=True, slots=True)
class RoyaltySwept:
    token: str
    asset: str
    gross: Decimal
    creator_cut: Decimal
    vault_cut: Decimal
    escrow: str


@dataclass(frozen=True, slots=True)
class SaleSettled:
    token: str
    seller: str
    buyer: str
    asset: str
    gross: Decimal
    creator_royalty: Decimal
    vault_royalty: Decimal


Event = Union[Minted, Deposited, RewardsClaimed, Redeemed, RoyaltySwept, SaleSettled]


@dataclass(frozen=True, slots=True)
class VaultBalance:
    """A (asset, amount) pair read from one store of a vault partition."""
    asset: str
    amount: Decimal


# ============================================================================
# STATE CHANGES
# ============================================================================

@dataclass(frozen=True, slots=True)
class UnitStateChange:
    """
    Record of a unit state change.

    Stores complete before/after state snapshots.

    Attributes:
        unit: Symbol of the unit whose state changed
        old_state: Complete state before the change
        new_state: Complete state after the change
    """
    unit: str
    old_state: Any
    new_state: Any


@dataclass(frozen=True, slots=True)
class ResourceChange:
    """
    Create, update or destroy a keyed record.

    old_state=None means the record must not exist yet (creation).
    new_state=None means the record is destroyed.
    Otherwise old_state must equal the current record at execution time.
    """
    key: str
    old_state: Optional[ResourceState]
    new_state: Optional[ResourceState]

    @property
    def is_create(self) -> bool:
        return self.old_state is None

    @property
    def is_destroy(self) -> bool:
        return self.new_state is None


def resource_key(kind: str, address: str) -> str:
    """Key under which a record of `kind` for `address` is stored."""
    return f"{kind}:{address}"


# ============================================================================
# CORE DATA STRUCTURES
# ============================================================================

@dataclass(frozen=True, slots=True)
class Move:
    """
    A single transfer of value between two wallets.

    Attributes:
        quantity: The amount to transfer (must be finite and non-zero).
        unit_symbol: The symbol of the unit being transferred.
        source: The wallet ID from which value is debited.
        dest: The wallet ID to which value is credited.
        contract_id: Identifier of the operation generating this move.
        metadata: Optional additional information about the move.
    """
    quantity: Decimal
    unit_symbol: str
    source: str
    dest: str
    contract_id: str
    metadata: Optional[Dict[str, Any]] = None

    def __post_init__(self):
        if not self.source or not self.source.strip():
            raise ValueError("Move source cannot be empty")
        if not self.dest or not self.dest.strip():
            raise ValueError("Move dest cannot be empty")
        if not self.unit_symbol or not self.unit_symbol.strip():
            raise ValueError("Move unit_symbol cannot be empty")
        if not self.contract_id or not self.contract_id.strip():
            raise ValueError("Move contract_id cannot be empty")
        if not isinstance(self.quantity, Decimal):
            raise ValueError(f"Move quantity must be Decimal, got {type(self.quantity)}")
        if self.quantity.is_infinite() or self.quantity.is_nan():
            raise ValueError(f"Move quantity must be finite, got {self.quantity}")
        if abs(self.quantity) < QUANTITY_EPSILON:
            raise ValueError("Move quantity is effectively zero")
        if self.source == self.dest:
            raise ValueError("Source and dest must be different")

    def __repr__(self) -> str:
        return f"Move({self.quantity} {self.unit_symbol}: {self.source}→{self.dest})"


def _normalize_decimal(d: Decimal) -> str:
    """
    Normalize a Decimal to a canonical string representation.

    Decimal("1.0") and Decimal("1.00") both become "1".
    """
    normalized = d.normalize()
    if normalized == normalized.to_integral_value():
        return str(int(normalized))
    return format(normalized, 'f')


def _canonicalize(value: Any) -> str:
    """
    Produce a canonical string representation of a value for hashing.

    Independent of dict insertion order and Decimal representation.
    """
    if value is None:
        return "null"
    if isinstance(value, bool):
        return "true" if value else "false"
    if isinstance(value, Decimal):
        return f"D:{_normalize_decimal(value)}"
    if isinstance(value, (int, float)):
        return f"N:{value}"
    if isinstance(value, str):
        return f"S:{value}"
    if isinstance(value, datetime):
        return f"T:{value.isoformat()}"
    if isinstance(value, dict):
        items = sorted(value.items(), key=lambda kv: str(kv[0]))
        serialized = ",".join(f"{_canonicalize(k)}:{_canonicalize(v)}" for k, v in items)
        return f"{{{serialized}}}"
    if isinstance(value, (list, tuple)):
        serialized = ",".join(_canonicalize(item) for item in value)
        return f"[{serialized}]"
    if isinstance(value, (set, frozenset)):
        serialized = ",".join(_canonicalize(item) for item in sorted(value, key=str))
        return f"<{serialized}>"
    # Capabilities and other frozen dataclasses have a stable repr
    return f"R:{repr(value)}"


def _compute_intent_id(
    moves: Tuple[Move, ...],
    state_changes: Tuple[UnitStateChange, ...],
    resource_changes: Tuple[ResourceChange, ...],
    origin: 'TransactionOrigin',
    units_to_create: Tuple['Unit', ...],
    wallets_to_create: Tuple[str, ...],
    wallets_to_close: Tuple[DeleteRef, ...],
    based_on: int,
) -> str:
    """
    Compute a deterministic content hash for a transaction's intent.

    The hash covers the semantic content of the transaction and the ledger
    version it was planned against. Resubmitting the same pending transaction
    is detected, while two identical deposits planned at different versions
    remain distinct.
    """
    sorted_moves = tuple(sorted(
        moves,
        key=lambda m: (_normalize_decimal(m.quantity), m.unit_symbol, m.source, m.dest, m.contract_id)
    ))

    content_parts = [f"version:{based_on}"]

    content_parts.append(f"origin:{origin.origin_type.value}:{origin.source_id}")
    if origin.subject:
        content_parts.append(f"subject:{origin.subject}")
    if origin.event_type:
        content_parts.append(f"event:{origin.event_type}")

    for unit in sorted(units_to_create, key=lambda u: u.symbol):
        content_parts.append(f"unit_create:{unit.symbol}|{unit.unit_type}")

    for wallet in sorted(wallets_to_create):
        content_parts.append(f"wallet_create:{wallet}")

    for ref in sorted(wallets_to_close, key=lambda r: r.address):
        content_parts.append(f"wallet_close:{ref.address}")

    for m in sorted_moves:
        qty = _normalize_decimal(m.quantity)
        content_parts.append(f"move:{qty}|{m.unit_symbol}|{m.source}|{m.dest}|{m.contract_id}")

    for sc in sorted(state_changes, key=lambda s: s.unit):
        content_parts.append(
            f"state_change:{sc.unit}|{_canonicalize(sc.old_state)}|{_canonicalize(sc.new_state)}"
        )

    for rc in resource_changes:
        content_parts.append(
            f"resource_change:{rc.key}|{_canonicalize(rc.old_state)}|{_canonicalize(rc.new_state)}"
        )

    content = "|".join(content_parts)
    return hashlib.sha256(content.encode()).hexdigest()[:16]


@dataclass(frozen=True, slots=True)
class TransactionOrigin:
    """
    Immutable record of a transaction's origin for audit purposes.

    Attributes:
        origin_type: Classification of the origin source
        source_id: The calling wallet (depositor, owner, sweeper, minter)
        subject: The token or collection the transaction concerns
        event_type: Operation name (e.g. "DEPOSIT", "SWEEP", "REDEEM")
    """
    origin_type: OriginType
    source_id: str
    subject: Optional[str] = None
    event_type: Optional[str] = None

    def __repr__(self) -> str:
        parts = [f"{self.origin_type.value}:{self.source_id}"]
        if self.subject:
            parts.append(f"subject={self.subject}")
        if self.event_type:
            parts.append(f"event={self.event_type}")
        return f"Origin({', '.join(parts)})"


@dataclass(frozen=True, slots=True)
class PendingTransaction:
    """
    A transaction specification before execution - represents INTENT.

    Created by planners and submitted to the ledger for execution.
    Ledger.execute() validates the whole specification first and then
    applies it in this order:

        create wallets -> create units -> moves -> close wallets
        -> resource changes -> unit state changes -> events

    Attributes:
        moves: Value transfers between wallets
        state_changes: Unit state changes
        origin: Who/what created this transaction and why
        timestamp: When this pending transaction was created
        units_to_create: Units to register
        resource_changes: Keyed record creations, updates and destructions
        wallets_to_create: Wallets (asset stores, escrows) to open
        wallets_to_close: Delete capabilities of wallets to close; they must end empty
        events: Events published if and only if the transaction is applied
        based_on: Ledger state_version at planning time
        intent_id: Content-addressable hash of the transaction intent (auto-computed)
    """
    moves: Tuple[Move, ...]
    state_changes: Tuple[UnitStateChange, ...]
    origin: TransactionOrigin
    timestamp: datetime
    units_to_create: Tuple['Unit', ...] = ()
    resource_changes: Tuple[ResourceChange, ...] = ()
    wallets_to_create: Tuple[str, ...] = ()
    wallets_to_close: Tuple[DeleteRef, ...] = ()
    events: Tuple[Event, ...] = ()
    based_on: int = 0
    intent_id: str = field(default="")

    def __post_init__(self):
        if not self.intent_id:
            computed_id = _compute_intent_id(
                self.moves, self.state_changes, self.resource_changes, self.origin,
                self.units_to_create, self.wallets_to_create, self.wallets_to_close,
                self.based_on,
            )
            object.__setattr__(self, 'intent_id', computed_id)

    def is_empty(self) -> bool:
        """Return True if applying this transaction would change nothing."""
        return not (
            self.moves or self.state_changes or self.units_to_create
            or self.resource_changes or self.wallets_to_create or self.wallets_to_close
        )

    def __repr__(self) -> str:
        return (
            f"PendingTransaction({len(self.moves)} moves, {len(self.resource_changes)} records, "
            f"{len(self.events)} events, {self.origin})"
        )


def build_transaction(
    view: LedgerView,
    moves: List[Move],
    state_changes: Optional[List[UnitStateChange]] = None,
    origin: Optional[TransactionOrigin] = None,
    units_to_create: Optional[Tuple['Unit', ...]] = None,
    resource_changes: Optional[List[ResourceChange]] = None,
    wallets_to_create: Optional[List[str]] = None,
    wallets_to_close: Optional[List[DeleteRef]] = None,
    events: Optional[List[Event]] = None,
) -> PendingTransaction:
    """
    Build a PendingTransaction from moves, record changes and events.

    This is the standard way to create transactions. State snapshots are
    deep-copied so later mutation by the caller cannot leak into the plan.

    Example:
        tx = build_transaction(ledger, [
            Move(Decimal("500"), "USD", "alice", escrow_address, "royalty_payment")
        ])
        ledger.execute(tx)
    """
    import copy

    if origin is None:
        origin = TransactionOrigin(
            origin_type=OriginType.CONTRACT,
            source_id="contract",
        )

    copied_changes: Tuple[UnitStateChange, ...] = ()
    if state_changes:
        copied_changes = tuple(
            UnitStateChange(
                unit=sc.unit,
                old_state=copy.deepcopy(sc.old_state),
                new_state=copy.deepcopy(sc.new_state),
            )
            for sc in state_changes
        )

    copied_resources: Tuple[ResourceChange, ...] = ()
    if resource_changes:
        copied_resources = tuple(
            ResourceChange(
                key=rc.key,
                old_state=copy.deepcopy(rc.old_state),
                new_state=copy.deepcopy(rc.new_state),
            )
            for rc in resource_changes
        )

    return PendingTransaction(
        moves=tuple(moves),
        state_changes=copied_changes,
        origin=origin,
        timestamp=view.current_time,
        units_to_create=units_to_create or (),
        resource_changes=copied_resources,
        wallets_to_create=tuple(wallets_to_create or ()),
        wallets_to_close=tuple(wallets_to_close or ()),
        events=tuple(events or ()),
        based_on=view.state_version,
    )


@dataclass(frozen=True, slots=True)
class Transaction:
    """
    An executed, immutable record of ledger state changes - represents FACT.

    Attributes:
        moves: Value transfers between wallets
        state_changes: Unit state changes
        resource_changes: Keyed record changes
        origin: Who/what created this transaction and why
        timestamp: When the PendingTransaction was created
        intent_id: Content hash from PendingTransaction (for idempotency)
        exec_id: Unique execution identifier (ledger + sequence + time)
        ledger_name: Name of the ledger that executed this
        execution_time: When this was executed and logged
        sequence_number: Monotonic sequence within the ledger
        events: Events published by this transaction
        contract_ids: Set of contract IDs from moves (auto-populated)
    """
    moves: Tuple[Move, ...]
    state_changes: Tuple[UnitStateChange, ...]
    resource_changes: Tuple[ResourceChange, ...]
    origin: TransactionOrigin
    timestamp: datetime
    intent_id: str
    exec_id: str
    ledger_name: str
    execution_time: datetime
    sequence_number: int
    units_to_create: Tuple['Unit', ...] = ()
    wallets_to_create: Tuple[str, ...] = ()
    wallets_to_close: Tuple[DeleteRef, ...] = ()
    events: Tuple[Event, ...] = ()
    contract_ids: FrozenSet[str] = None

    def __post_init__(self):
        if not (self.moves or self.state_changes or self.resource_changes
                or self.units_to_create or self.wallets_to_create or self.wallets_to_close):
            raise ValueError("Transaction must change something")
        if self.contract_ids is None:
            object.__setattr__(
                self, 'contract_ids',
                frozenset(m.contract_id for m in self.moves)
            )

    def __repr__(self) -> str:
        w = 100
        bar = "─" * w

        def pad(text: str) -> str:
            if len(text) > w:
                return text[:w-3] + "..."
            return text + " " * (w - len(text))

        lines = [
            "",
            f"┌{bar}┐",
            f"│{pad(' Transaction: ' + self.exec_id)}│",
            f"├{bar}┤",
            f"│{pad('   intent_id      : ' + self.intent_id)}│",
            f"│{pad('   timestamp      : ' + str(self.timestamp))}│",
            f"│{pad('   sequence       : ' + str(self.sequence_number))}│",
            f"│{pad('   origin         : ' + str(self.origin))}│",
        ]
        if self.wallets_to_create or self.wallets_to_close:
            lines.append(f"├{bar}┤")
            for wallet in self.wallets_to_create:
                lines.append(f"│{pad('   + store ' + wallet)}│")
            for ref in self.wallets_to_close:
                lines.append(f"│{pad('   - store ' + ref.address)}│")
        lines.append(f"├{bar}┤")
        lines.append(f"│{pad(' Moves (' + str(len(self.moves)) + '):')}│")
        for i, move in enumerate(self.moves):
            move_str = f"   [{i}] {move.quantity} {move.unit_symbol}: {move.source} → {move.dest}"
            lines.append(f"│{pad(move_str)}│")
        if self.resource_changes:
            lines.append(f"├{bar}┤")
            lines.append(f"│{pad(' Records (' + str(len(self.resource_changes)) + '):')}│")
            for rc in self.resource_changes:
                action = "create" if rc.is_create else "destroy" if rc.is_destroy else "update"
                lines.append(f"│{pad('   [' + action + '] ' + rc.key)}│")
        if self.events:
            lines.append(f"├{bar}┤")
            for event in self.events:
                lines.append(f"│{pad('   event: ' + type(event).__name__)}│")
        lines.append(f"└{bar}┘")
        return "\n".join(lines)


# Type alias for transfer rule functions.
# Transfer rules validate moves and raise TransferRuleViolation if invalid.
TransferRule = Callable[[LedgerView, Move], None]


def _freeze_state(state: Optional[UnitState]) -> Tuple[Tuple[str, Any], ...]:
    """Convert a mutable state dict to a tuple of (key, value) pairs sorted by key."""
    if not state:
        return ()
    return tuple(sorted(state.items()))


def _thaw_state(frozen_state: Tuple[Tuple[str, Any], ...]) -> UnitState:
    """Convert a frozen state representation back to a mutable dict."""
    return dict(frozen_state)


@dataclass(frozen=True, slots=True)
class Unit:
    """
    Definition of a unit held in the ledger: a fungible asset type or a token identity.

    Attributes:
        symbol: Identifier for the unit (asset symbol or token address).
        name: Human-readable name for the unit.
        unit_type: FUNGIBLE_ASSET or VAULTED_TOKEN.
        min_balance: Minimum allowed balance in any wallet.
        max_balance: Maximum allowed balance in any wallet.
        decimal_places: Number of decimal places for rounding (None = no rounding).
        transfer_rule: Optional function to validate moves involving this unit.
        _frozen_state: Internal frozen state representation.
    """
    symbol: str
    name: str
    unit_type: str
    min_balance: Decimal = Decimal("0")
    max_balance: Decimal = Decimal("Infinity")
    decimal_places: Optional[int] = None
    transfer_rule: Optional[TransferRule] = None
    _frozen_state: Tuple[Tuple[str, Any], ...] = field(default_factory=tuple)

    @property
    def state(self) -> UnitState:
        """Get the unit's state as a new mutable dictionary."""
        return _thaw_state(self._frozen_state)

    def round(self, value: Decimal) -> Decimal:
        """Round a value to this unit's decimal precision. Unchanged if decimal_places is None."""
        if self.decimal_places is None:
            return value
        if not isinstance(value, Decimal):
            value = Decimal(str(value))
        quantizer = Decimal(10) ** -self.decimal_places
        rounding_mode = DECIMAL_ROUNDING.get(self.unit_type, ROUND_HALF_EVEN)
        return value.quantize(quantizer, rounding=rounding_mode)


# ============================================================================
# AMOUNTS, BASIS POINTS, ADDRESSES
# ============================================================================

def as_amount(value: Union[int, str, Decimal]) -> Decimal:
    """
    Convert a caller-supplied amount to a Decimal number of smallest units.

    Raises:
        ValueError: If the value is a float, negative, non-finite, fractional or too
            large for the ledger's Decimal context.
    """
    if isinstance(value, bool) or isinstance(value, float):
        raise ValueError(f"amount must be an int, str or Decimal, got {type(value).__name__}")
    try:
        amount = value if isinstance(value, Decimal) else Decimal(value)
        if not amount.is_finite():
            raise ValueError(f"amount must be finite, got {value}")
        if amount != amount.to_integral_value():
            raise ValueError(f"amount must be a whole number of smallest units, got {value}")
        if amount < 0:
            raise ValueError(f"amount cannot be negative, got {value}")
        return amount.quantize(Decimal(1))
    except InvalidOperation as e:
        raise ValueError(f"amount is not a representable number of smallest units: {value}") from e


def validate_bps(name: str, bps: int) -> None:
    """Raise InvalidBps unless 0 <= bps <= BPS_DENOMINATOR."""
    if isinstance(bps, bool) or not isinstance(bps, int):
        raise InvalidBps(f"{name} must be an integer, got {bps!r}")
    if bps < 0 or bps > BPS_DENOMINATOR:
        raise InvalidBps(f"{name} must be within 0..{BPS_DENOMINATOR}, got {bps}")


def split_bps(
    amount: Decimal,
    bps: int,
    denominator: int = BPS_DENOMINATOR,
    round_up: bool = False,
) -> Tuple[Decimal, Decimal]:
    """
    Split a whole amount into (share, remainder) by basis points.

    share = floor(amount * bps / denominator), or the ceiling when round_up
    is set; remainder = amount - share. With the default floor the rounding
    dust stays in the remainder.

    Example:
        split_bps(Decimal(1_000_001), 667, denominator=1000)
        # (Decimal("667000"), Decimal("333001"))
    """
    if denominator <= 0:
        raise InvalidBps(f"denominator must be positive, got {denominator}")
    if bps < 0 or bps > denominator:
        raise InvalidBps(f"bps must be within 0..{denominator}, got {bps}")
    whole = int(as_amount(amount))
    numerator = whole * bps
    if round_up:
        share = -(-numerator // denominator)
    else:
        share = numerator // denominator
    return Decimal(share), Decimal(whole - share)


def derive_address(*seeds: str) -> str:
    """
    Derive a deterministic object address from seeds.

    Example:
        derive_address("token", collection, "1")  # '0x3f1c...'
    """
    if not seeds:
        raise ValueError("derive_address requires at least one seed")
    digest = hashlib.sha256("::".join(seeds).encode()).hexdigest()
    return f"0x{digest[:40]}"


# ============================================================================
# UNIT FACTORIES
# ============================================================================

def fungible_asset(symbol: str, name: str, decimals: int = 8) -> Unit:
    """
    Create a fungible asset type.

    Balances are whole numbers of the asset's smallest unit and can never
    go negative outside the system wallet.

    Args:
        symbol: Asset identifier (e.g., "USDC", "CEDRA").
        name: Full name of the asset.
        decimals: Display decimals of the smallest unit (metadata only).
    """
    if decimals < 0:
        raise ValueError(f"decimals cannot be negative, got {decimals}")
    return Unit(
        symbol=symbol,
        name=name,
        unit_type=UNIT_TYPE_FUNGIBLE_ASSET,
        decimal_places=0,
        min_balance=Decimal("0"),
        _frozen_state=_freeze_state({'decimals': decimals}),
    )
