"""
sweeper.py - Royalty Sweep Automation

RoyaltySweeper watches a set of tokens and sweeps every escrow holding a
non-zero balance of one asset. Due tokens are swept in batches with
sweep_royalty_to_core_vault_many(). A batch is all-or-nothing, so when one
fails the sweeper retries its tokens one at a time; a single bad token then
fails alone and the rest of the batch is still swept.

Example:
    sweeper = RoyaltySweeper(ledger, "keeper", "USDC", batch_size=20)
    tokens = read_token_file("tokens.txt")
    report = sweeper.step(tokens)
"""

from __future__ import annotations
from dataclasses import dataclass, field
from decimal import Decimal
from pathlib import Path
import re
from typing import Dict, Iterable, List, Tuple, Union

from .core import LedgerError, RoyaltySwept
from .escrow import sweep_royalty_to_core_vault, sweep_royalty_to_core_vault_many
from .ledger import Ledger
from .views import get_escrow_address


_ADDRESS = re.compile(r"^0x[0-9a-fA-F]+$")


@dataclass
class SweepReport:
    """Outcome of one sweeper pass."""
    swept: List[RoyaltySwept] = field(default_factory=list)
    failed: Dict[str, str] = field(default_factory=dict)

    @property
    def total_swept(self) -> Decimal:
        return sum((event.gross for event in self.swept), Decimal(0))


def read_token_file(path: Union[str, Path]) -> List[str]:
    """
    Read token addresses, one per line. Blank lines and lines starting
    with '#' are ignored.

    Raises:
        ValueError: On a line that is not a hex address
    """
    path = Path(path)
    tokens = []
    for number, raw in enumerate(path.read_text().splitlines(), start=1):
        line = raw.strip()
        if not line or line.startswith('#'):
            continue
        if not _ADDRESS.match(line):
            raise ValueError(f"invalid token address at {path}:{number}: {line!r}")
        tokens.append(line)
    return tokens


class RoyaltySweeper:
    """
    Sweeps escrowed royalties for a watched set of tokens.

    Args:
        ledger: Ledger to sweep on
        caller: Wallet recorded as the sweeper (sweeping is permissionless)
        asset: Asset to sweep
        batch_size: Maximum tokens per sweep transaction
    """

    def __init__(self, ledger: Ledger, caller: str, asset: str, batch_size: int = 20):
        self.ledger = ledger
        self.caller = caller
        self.asset = asset
        self.batch_size = max(1, batch_size)

    def _log(self, message: str) -> None:
        if self.ledger.verbose:
            print(message)

    def due(self, tokens: Iterable[str]) -> List[Tuple[str, Decimal]]:
        """Tokens whose escrow holds a non-zero balance, with that balance, sorted by token."""
        out = []
        for token in sorted(set(tokens)):
            try:
                address = get_escrow_address(self.ledger, token)
                if address is None:
                    continue
                balance = self.ledger.get_balance(address, self.asset)
            except LedgerError as e:
                self._log(f"balance check failed for {token}: {e}")
                continue
            if balance > 0:
                out.append((token, balance))
        return out

    def step(self, tokens: Iterable[str]) -> SweepReport:
        """Sweep every due token once."""
        report = SweepReport()
        due = self.due(tokens)
        for start in range(0, len(due), self.batch_size):
            chunk = due[start:start + self.batch_size]
            batch = [token for token, _ in chunk]
            total = sum((balance for _, balance in chunk), Decimal(0))
            try:
                events = sweep_royalty_to_core_vault_many(self.ledger, self.caller, batch, self.asset)
            except LedgerError as e:
                self._log(f"batch sweep failed (tokens={len(batch)}, total_balance={total}): {e}")
                self._sweep_one_by_one(batch, report)
                continue
            report.swept.extend(events)
            self._log(f"batch swept tokens={len(batch)}, total_balance={total}")
        return report

    def _sweep_one_by_one(self, batch: List[str], report: SweepReport) -> None:
        for token in batch:
            try:
                event = sweep_royalty_to_core_vault(self.ledger, self.caller, token, self.asset)
            except LedgerError as e:
                report.failed[token] = str(e)
                self._log(f"sweep failed for {token}: {e}")
                continue
            if event is not None:
                report.swept.append(event)

    def run(self, tokens: Iterable[str], rounds: int = 1) -> List[SweepReport]:
        """Run `rounds` passes over the same tokens; stops early once nothing is due."""
        tokens = list(tokens)
        reports = []
        for _ in range(rounds):
            if not self.due(tokens):
                break
            reports.append(self.step(tokens))
        return reports
