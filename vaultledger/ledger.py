"""
ledger.py - Stateful Atomic Ledger

The Ledger class is the central state manager of the vault system.
It is the only module that mutates state, ensuring controlled and auditable changes.

Key responsibilities:
    - Implements LedgerView protocol for safe read-only access by planners and views
    - Executes pending transactions atomically: everything applies or nothing does
    - Maintains wallet balances, units, keyed records (configs, vaults, escrows)
    - Opens and closes asset stores as part of a transaction
    - Publishes events only for applied transactions
"""

from __future__ import annotations
from collections import defaultdict
from dataclasses import replace
from datetime import datetime
from decimal import Decimal
from typing import Dict, List, Set, Optional, Tuple, Any
import copy

from .core import (
    # Types
    Move, Transaction, Unit,
    PendingTransaction, ResourceChange,
    ExecuteResult, Event,
    Positions, UnitState, BalanceMap, ResourceState,
    # Constants
    QUANTITY_EPSILON, SYSTEM_WALLET,
    # Exceptions
    LedgerError, InsufficientFunds, BalanceConstraintViolation,
    UnitNotRegistered, WalletNotRegistered,
    StoreNotEmpty, StaleState, TransactionRejected,
    # Helper functions
    _freeze_state,
)


class Ledger:
    """
    Atomic ledger with full validation and audit trail.

    Implements the LedgerView protocol, allowing the ledger to be passed to pure
    functions that access only read-only methods.

    Design Principles:
        - Always validates: every pending transaction is checked as a whole
          (registrations, balances, store closures, record versions) before
          anything is applied.
        - Always logs: every applied transaction is recorded, and its events
          are published, in the same step.

    Thread Safety:
        Not thread-safe. Operations are serialized by the caller.

    Example:
        ledger = Ledger("main")
        ledger.register_unit(fungible_asset("USDC", "USD Coin", 6))
        ledger.register_wallet("alice")
        ledger.register_wallet("bob")

        tx = build_transaction(ledger, [
            Move(Decimal("100"), "USDC", SYSTEM_WALLET, "alice", "issuance")
        ])
        ledger.execute(tx)
    """

    POSITION_EPSILON = QUANTITY_EPSILON

    def __init__(
        self,
        name: str,
        initial_time: Optional[datetime] = None,
        verbose: bool = True,
        test_mode: bool = False
    ):
        """
        Create a ledger.

        Args:
            name: Ledger identifier
            initial_time: Starting time for the ledger (default: 1970-01-01)
            verbose: Print transactions and rejections (default: True)
            test_mode: Allow set_balance() calls (default: False)
        """
        self.name = name
        self.balances: Dict[str, Dict[str, Decimal]] = {}
        self.units: Dict[str, Unit] = {}
        self.resources: Dict[str, ResourceState] = {}
        self.registered_wallets: Set[str] = set()
        self.seen_intent_ids: Set[str] = set()
        self.transaction_log: List[Transaction] = []
        self.events: List[Event] = []
        self._current_time: datetime = initial_time or datetime(1970, 1, 1)
        self.verbose = verbose
        self._test_mode = test_mode
        self._next_sequence: int = 0
        # Inverted index mapping unit -> {wallet -> quantity}
        self._positions_by_unit: Dict[str, Dict[str, Decimal]] = defaultdict(dict)

        self.registered_wallets.add(SYSTEM_WALLET)
        self.balances[SYSTEM_WALLET] = defaultdict(lambda: Decimal("0"))

    # ========================================================================
    # LedgerView PROTOCOL IMPLEMENTATION (read-only methods)
    # ========================================================================

    @property
    def current_time(self) -> datetime:
        """Current logical time of the ledger."""
        return self._current_time

    @property
    def state_version(self) -> int:
        """Number of transactions applied so far."""
        return self._next_sequence

    def get_balance(self, wallet_id: str, unit_symbol: str) -> Decimal:
        """
        Get the balance of a specific unit in a wallet.

        Raises:
            WalletNotRegistered: If wallet is not registered
            UnitNotRegistered: If unit is not registered
        """
        if wallet_id not in self.registered_wallets:
            raise WalletNotRegistered(f"Wallet {wallet_id} not registered")
        if unit_symbol not in self.units:
            raise UnitNotRegistered(f"Unit {unit_symbol} not registered")
        return self.balances[wallet_id].get(unit_symbol, Decimal("0"))

    def get_unit_state(self, unit_symbol: str) -> UnitState:
        """
        Get a deep copy of a unit's internal state.

        Raises:
            UnitNotRegistered: If unit is not registered
        """
        if unit_symbol not in self.units:
            raise UnitNotRegistered(f"Unit {unit_symbol} not registered")
        unit_obj = self.units[unit_symbol]
        return self._deep_copy_state(unit_obj.state) if unit_obj.state else {}

    def get_positions(self, unit_symbol: str) -> Positions:
        """Get all non-zero positions for a unit across all wallets."""
        return dict(self._positions_by_unit.get(unit_symbol, {}))

    def list_wallets(self) -> Set[str]:
        """List all registered wallet IDs."""
        return self.registered_wallets.copy()

    def get_unit(self, symbol: str) -> Unit:
        """Return the Unit object for a given symbol."""
        if symbol not in self.units:
            raise UnitNotRegistered(f"Unit {symbol} not registered")
        return self.units[symbol]

    def get_resource(self, key: str) -> Optional[ResourceState]:
        """Return a deep copy of a keyed record, or None if it does not exist."""
        if key not in self.resources:
            return None
        return self._deep_copy_state(self.resources[key])

    def has_resource(self, key: str) -> bool:
        return key in self.resources

    def get_wallet_balances(self, wallet_id: str) -> BalanceMap:
        """Get all balances for a wallet."""
        if wallet_id not in self.registered_wallets:
            raise WalletNotRegistered(f"Wallet {wallet_id} not registered")
        return dict(self.balances[wallet_id])

    def total_supply(self, unit_symbol: str) -> Decimal:
        """
        Calculate total supply of a unit across all wallets.

        Wallets are sorted before summation for a deterministic order.

        Raises:
            UnitNotRegistered: If unit is not registered
        """
        if unit_symbol not in self.units:
            raise UnitNotRegistered(f"Unit {unit_symbol} not registered")
        return sum(
            (self.balances[w].get(unit_symbol, Decimal("0")) for w in sorted(self.registered_wallets)),
            Decimal("0"),
        )

    def verify_double_entry(
        self,
        expected_supplies: Dict[str, Decimal] = None,
    ) -> Dict[str, Any]:
        """
        Verify that conservation laws hold for all units.

        For every unit the sum of all balances across all wallets (the system
        wallet included) is zero, because every unit enters circulation by a
        move out of the system wallet. With expected_supplies the circulating
        amount (everything outside the system wallet) is compared as well.

        Returns:
            Dict with keys:
            - 'valid': bool - True if all conservation laws hold
            - 'supplies': Dict[str, Decimal] - circulating supply per unit
            - 'discrepancies': List[Dict] - details of any violations

        Example:
            result = ledger.verify_double_entry()
            assert result['valid'], result['discrepancies']
        """
        supplies = {}
        discrepancies = []

        for unit_symbol in self.units:
            total = self.total_supply(unit_symbol)
            circulating = total - self.balances[SYSTEM_WALLET].get(unit_symbol, Decimal("0"))
            supplies[unit_symbol] = circulating

            if total != 0:
                discrepancies.append({
                    'unit': unit_symbol,
                    'expected': Decimal("0"),
                    'actual': total,
                    'difference': total,
                })

            if expected_supplies and unit_symbol in expected_supplies:
                expected = expected_supplies[unit_symbol]
                if circulating != expected:
                    discrepancies.append({
                        'unit': unit_symbol,
                        'expected': expected,
                        'actual': circulating,
                        'difference': abs(circulating - expected),
                    })

        if expected_supplies:
            for unit_symbol, expected in expected_supplies.items():
                if unit_symbol not in supplies:
                    discrepancies.append({
                        'unit': unit_symbol,
                        'expected': expected,
                        'actual': Decimal("0"),
                        'difference': abs(expected),
                        'error': 'unit not registered',
                    })

        return {
            'valid': len(discrepancies) == 0,
            'supplies': supplies,
            'discrepancies': discrepancies,
        }

    def is_registered(self, wallet_id: str) -> bool:
        """Check if a wallet is registered."""
        return wallet_id in self.registered_wallets

    # ========================================================================
    # TIME MANAGEMENT
    # ========================================================================

    def advance_time(self, new_time: datetime) -> None:
        """
        Advance the ledger's logical clock. Time can only move forward.

        Raises:
            ValueError: If new_time is before the current time
        """
        if new_time < self._current_time:
            raise ValueError(
                f"Cannot move time backwards: {new_time} < {self._current_time}"
            )
        self._current_time = new_time

    # ========================================================================
    # REGISTRATION (Mutating)
    # ========================================================================

    def register_wallet(self, wallet_id: str) -> str:
        """
        Register a new wallet (an account) in the ledger.

        Raises:
            ValueError: If wallet is already registered
        """
        if wallet_id in self.registered_wallets:
            raise ValueError(f"Wallet {wallet_id} already registered")
        self._open_wallet(wallet_id)
        return wallet_id

    def register_unit(self, unit: Unit) -> None:
        """
        Register a new unit (asset type) in the ledger.

        Raises:
            ValueError: If unit symbol is already registered
        """
        if unit.symbol in self.units:
            raise ValueError(f"Unit {unit.symbol} already registered")
        self.units[unit.symbol] = unit
        if self.verbose:
            rule_str = f", rule={unit.transfer_rule.__name__}" if unit.transfer_rule else ""
            print(f"📝 Registered: {unit.symbol} ({unit.name}) [{unit.unit_type}]{rule_str}")

    def set_balance(self, wallet_id: str, unit_symbol: str, quantity: Decimal) -> None:
        """
        Set a wallet's balance for a unit directly.

        WARNING: This bypasses double-entry accounting and is only available
        in test mode.

        Raises:
            LedgerError: If called when test_mode is False
        """
        if not self._test_mode:
            raise LedgerError(
                "set_balance() is disabled in production mode. "
                "Use build_transaction() and execute() to modify balances. "
                "Set test_mode=True when creating Ledger for testing."
            )
        if wallet_id not in self.registered_wallets:
            raise WalletNotRegistered(f"Wallet {wallet_id} not registered")
        if unit_symbol not in self.units:
            raise UnitNotRegistered(f"Unit {unit_symbol} not registered")
        if not isinstance(quantity, Decimal):
            quantity = Decimal(str(quantity))
        self.balances[wallet_id][unit_symbol] = quantity
        self._update_position_index(wallet_id, unit_symbol, quantity)

    # ========================================================================
    # TRANSACTION EXECUTION (Mutating)
    # ========================================================================

    def _generate_exec_id(self, sequence: int) -> str:
        """Format: exec:{ledger_name}:{sequence:012d}:{timestamp_micros}"""
        micros = int(self._current_time.timestamp() * 1_000_000)
        return f"exec:{self.name}:{sequence:012d}:{micros}"

    def execute(self, pending: PendingTransaction, strict: bool = False) -> ExecuteResult:
        """
        Execute a PendingTransaction atomically.

        Validation covers the whole transaction before anything is applied,
        so a rejection leaves balances, stores, records, the log and the
        event stream untouched. A pending transaction with an intent_id that
        was already applied is not applied again.

        Args:
            pending: PendingTransaction to execute
            strict: Raise the specific LedgerError instead of returning REJECTED

        Returns:
            ExecuteResult.APPLIED if successful
            ExecuteResult.ALREADY_APPLIED if transaction was already executed
            ExecuteResult.REJECTED if validation failed (strict=False only)
        """
        if pending.is_empty():
            return ExecuteResult.APPLIED

        if pending.intent_id in self.seen_intent_ids:
            if self.verbose:
                print(f"⚠️  ALREADY_APPLIED: intent_id={pending.intent_id}")
            return ExecuteResult.ALREADY_APPLIED

        try:
            self._validate_pending(pending)
        except LedgerError as e:
            if self.verbose:
                print(f"✗ REJECTED: {e}")
            if strict:
                raise
            return ExecuteResult.REJECTED

        sequence = self._next_sequence
        self._next_sequence += 1
        exec_id = self._generate_exec_id(sequence)

        tx = Transaction(
            moves=pending.moves,
            state_changes=pending.state_changes,
            resource_changes=pending.resource_changes,
            origin=pending.origin,
            timestamp=pending.timestamp,
            intent_id=pending.intent_id,
            exec_id=exec_id,
            ledger_name=self.name,
            execution_time=self._current_time,
            sequence_number=sequence,
            units_to_create=pending.units_to_create,
            wallets_to_create=pending.wallets_to_create,
            wallets_to_close=pending.wallets_to_close,
            events=pending.events,
        )

        for wallet_id in tx.wallets_to_create:
            self._open_wallet(wallet_id)

        for unit in tx.units_to_create:
            self.register_unit(unit)

        self._execute_moves(tx.moves)

        for ref in tx.wallets_to_close:
            self._close_wallet(ref.address)

        for rc in tx.resource_changes:
            if rc.is_destroy:
                del self.resources[rc.key]
            else:
                self.resources[rc.key] = self._deep_copy_state(rc.new_state)

        for sc in tx.state_changes:
            old_unit = self.units[sc.unit]
            new_state = self._deep_copy_state(
                sc.new_state if isinstance(sc.new_state, dict) else {}
            )
            self.units[sc.unit] = replace(old_unit, _frozen_state=_freeze_state(new_state))

        self.transaction_log.append(tx)
        self.seen_intent_ids.add(pending.intent_id)
        self.events.extend(tx.events)

        if self.verbose:
            self._print_tx_result(tx, "APPLIED", "✓")
        return ExecuteResult.APPLIED

    def _print_tx_result(self, tx: Transaction, result: str, icon: str) -> None:
        """Print Transaction.__repr__ with a result line appended."""
        lines = repr(tx).split('\n')
        w = 100
        bar = "─" * w

        def pad(text: str) -> str:
            if len(text) > w:
                return text[:w-3] + "..."
            return text + " " * (w - len(text))

        lines[-1] = f"├{bar}┤"
        lines.append(f"│{pad(' ' + icon + ' ' + result)}│")
        lines.append(f"└{bar}┘")
        print("\n".join(lines))

    def _validate_pending(self, pending: PendingTransaction) -> None:
        """
        Validate a pending transaction against all constraints.

        Checks performed:
        1. Timestamp (transaction must not be from the future)
        2. Units and wallets to create are new
        3. Unit and wallet registration for every move, transfer rules
        4. Balance constraints on the net effect of all moves
        5. Closed wallets end with zero balance in every unit
        6. Record changes match the current records (optimistic concurrency)
        7. Unit state changes target known units

        Raises:
            LedgerError subclass describing the first violation found
        """
        if pending.timestamp > self._current_time:
            raise TransactionRejected("future timestamp")

        new_units = {u.symbol: u for u in pending.units_to_create}
        for symbol in new_units:
            if symbol in self.units:
                raise TransactionRejected(f"unit already registered: {symbol}")

        new_wallets = set()
        for wallet_id in pending.wallets_to_create:
            if wallet_id in self.registered_wallets or wallet_id in new_wallets:
                raise TransactionRejected(f"wallet already registered: {wallet_id}")
            new_wallets.add(wallet_id)

        known_units = {**self.units, **new_units}
        known_wallets = self.registered_wallets | new_wallets

        for move in pending.moves:
            if move.unit_symbol not in known_units:
                raise UnitNotRegistered(f"unit not registered: {move.unit_symbol}")
            if move.source not in known_wallets:
                raise WalletNotRegistered(f"wallet not registered: {move.source}")
            if move.dest not in known_wallets:
                raise WalletNotRegistered(f"wallet not registered: {move.dest}")

            unit = known_units[move.unit_symbol]
            if unit.transfer_rule and move.unit_symbol in self.units:
                unit.transfer_rule(self, move)

        net: Dict[Tuple[str, str], Decimal] = {}
        for move in pending.moves:
            unit = known_units[move.unit_symbol]
            key_src = (move.source, move.unit_symbol)
            key_dst = (move.dest, move.unit_symbol)
            net[key_src] = unit.round(net.get(key_src, Decimal("0")) - move.quantity)
            net[key_dst] = unit.round(net.get(key_dst, Decimal("0")) + move.quantity)

        for (wallet, unit_sym), delta in net.items():
            # System wallet can hold any balance (issuance, burning)
            if wallet == SYSTEM_WALLET:
                continue
            current = self._current_balance(wallet, unit_sym)
            unit = known_units[unit_sym]
            proposed = unit.round(current + delta)
            if proposed < unit.min_balance:
                raise InsufficientFunds(
                    f"{wallet} {unit_sym}: {proposed} < min {unit.min_balance}"
                )
            if proposed > unit.max_balance:
                raise BalanceConstraintViolation(
                    f"{wallet} {unit_sym}: {proposed} > max {unit.max_balance}"
                )

        closing = set()
        for ref in pending.wallets_to_close:
            wallet_id = ref.address
            if wallet_id == SYSTEM_WALLET:
                raise TransactionRejected("system wallet cannot be closed")
            if wallet_id not in known_wallets or wallet_id in closing:
                raise WalletNotRegistered(f"cannot close unknown wallet: {wallet_id}")
            closing.add(wallet_id)
            held = set(self.balances[wallet_id].keys()) if wallet_id in self.balances else set()
            held |= {u for (w, u) in net if w == wallet_id}
            for unit_sym in held:
                remaining = self._current_balance(wallet_id, unit_sym) + net.get((wallet_id, unit_sym), Decimal("0"))
                if abs(remaining) > self.POSITION_EPSILON:
                    raise StoreNotEmpty(f"{wallet_id} would still hold {remaining} {unit_sym}")

        for move in pending.moves:
            if move.dest in closing:
                raise StoreNotEmpty(f"{move.dest} is closed by this transaction")

        simulated: Dict[str, Optional[ResourceState]] = {}
        for rc in pending.resource_changes:
            current = simulated[rc.key] if rc.key in simulated else self.resources.get(rc.key)
            if rc.is_create and current is not None:
                raise StaleState(f"record already exists: {rc.key}")
            if not rc.is_create and current != rc.old_state:
                raise StaleState(f"record changed since planning: {rc.key}")
            simulated[rc.key] = rc.new_state

        for sc in pending.state_changes:
            if sc.unit not in known_units:
                raise UnitNotRegistered(f"unit not registered: {sc.unit}")

    def _current_balance(self, wallet_id: str, unit_symbol: str) -> Decimal:
        if wallet_id not in self.balances:
            return Decimal("0")
        return self.balances[wallet_id].get(unit_symbol, Decimal("0"))

    def _update_position_index(self, wallet_id: str, unit_symbol: str, quantity: Decimal) -> None:
        """Keep the unit -> {wallet -> quantity} index in sync; zero positions are dropped."""
        if abs(quantity) > self.POSITION_EPSILON:
            self._positions_by_unit[unit_symbol][wallet_id] = quantity
        else:
            self._positions_by_unit[unit_symbol].pop(wallet_id, None)

    def _execute_moves(self, moves) -> None:
        """Apply moves to wallet balances with unit rounding and update the position index."""
        for move in moves:
            unit = self.units[move.unit_symbol]
            new_src_balance = unit.round(
                self.balances[move.source][move.unit_symbol] - move.quantity
            )
            self.balances[move.source][move.unit_symbol] = new_src_balance
            self._update_position_index(move.source, move.unit_symbol, new_src_balance)
            new_dst_balance = unit.round(
                self.balances[move.dest][move.unit_symbol] + move.quantity
            )
            self.balances[move.dest][move.unit_symbol] = new_dst_balance
            self._update_position_index(move.dest, move.unit_symbol, new_dst_balance)

    def _open_wallet(self, wallet_id: str) -> None:
        self.registered_wallets.add(wallet_id)
        self.balances[wallet_id] = defaultdict(lambda: Decimal("0"))

    def _close_wallet(self, wallet_id: str) -> None:
        for unit_symbol in list(self.balances[wallet_id].keys()):
            self._positions_by_unit[unit_symbol].pop(wallet_id, None)
        del self.balances[wallet_id]
        self.registered_wallets.discard(wallet_id)

    # ========================================================================
    # LEDGER OPERATIONS
    # ========================================================================

    @staticmethod
    def _deep_copy_state(state: Optional[Dict[str, Any]]) -> Optional[Dict[str, Any]]:
        if state is None:
            return None
        return copy.deepcopy(state)

    def clone(self) -> Ledger:
        """
        Create a deep copy of this ledger.

        All state is fully independent: modifications to the clone will not
        affect the original ledger, and vice versa.
        """
        cloned = Ledger.__new__(Ledger)
        cloned.name = self.name
        cloned._current_time = self._current_time
        cloned.verbose = self.verbose
        cloned._test_mode = self._test_mode

        cloned.units = dict(self.units)
        cloned.resources = {
            key: self._deep_copy_state(state) for key, state in self.resources.items()
        }

        cloned.registered_wallets = self.registered_wallets.copy()
        cloned.seen_intent_ids = self.seen_intent_ids.copy()
        cloned.transaction_log = list(self.transaction_log)
        cloned.events = list(self.events)
        cloned._next_sequence = self._next_sequence

        cloned.balances = {}
        for wallet, bals in self.balances.items():
            cloned.balances[wallet] = defaultdict(lambda: Decimal("0"), bals)

        cloned._positions_by_unit = defaultdict(dict)
        for unit_symbol, positions in self._positions_by_unit.items():
            cloned._positions_by_unit[unit_symbol] = dict(positions)

        return cloned
