"""
assets.py - Concrete collaborators for the fund

Classes:
- InMemoryAsset: a fungible asset contract held entirely in memory
- NoOpRebalanceExecutor: executor that authorizes every rebalance and trades nothing

Both satisfy the protocols in core.py and are what the demo and the tests
wire into an IndexFund. Real deployments substitute their own.
"""

from __future__ import annotations
import logging
from typing import Dict, Optional, List, Tuple

from .core import PortfolioSnapshot
from .deviation import DeviationReport

logger = logging.getLogger(__name__)


class InMemoryAsset:
    """
    Fungible asset contract backed by a dict of balances.

    Transfers fail (return False) rather than raise, matching the
    success/failure contract the fund expects from an asset.
    """

    def __init__(self, address: str, symbol: str, name: Optional[str] = None, decimals: int = 6):
        """
        Args:
            address: contract address the fund binds tokens to
            symbol: ticker symbol
            name: human-readable name (defaults to symbol)
            decimals: display precision
        """
        self.address = address
        self._symbol = symbol
        self._name = name or symbol
        self._decimals = decimals
        self._balances: Dict[str, int] = {}
        self._supply = 0
        self.transfers: List[Tuple[int, str, str, Optional[str]]] = []

    def mint(self, owner: str, amount: int) -> None:
        """Create new units in owner's account."""
        if amount <= 0:
            raise ValueError(f"mint amount must be positive, got {amount}")
        self._balances[owner] = self._balances.get(owner, 0) + amount
        self._supply += amount

    def transfer(self, amount: int, sender: str, recipient: str, memo: Optional[str] = None) -> bool:
        if amount <= 0 or sender == recipient:
            return False
        available = self._balances.get(sender, 0)
        if available < amount:
            logger.debug("%s transfer of %s from %s refused: balance %s",
                         self._symbol, amount, sender, available)
            return False
        self._balances[sender] = available - amount
        self._balances[recipient] = self._balances.get(recipient, 0) + amount
        self.transfers.append((amount, sender, recipient, memo))
        return True

    def balance_of(self, owner: str) -> int:
        return self._balances.get(owner, 0)

    def total_supply(self) -> int:
        return self._supply

    def decimals(self) -> int:
        return self._decimals

    def name(self) -> str:
        return self._name

    def symbol(self) -> str:
        return self._symbol

    def __repr__(self):
        return f"InMemoryAsset({self._symbol} @ {self.address}, supply={self._supply})"


class NoOpRebalanceExecutor:
    """Executor that performs no trades and always reports success."""

    def __init__(self):
        self.calls = 0

    def execute(self, snapshot: PortfolioSnapshot, report: DeviationReport) -> bool:
        self.calls += 1
        logger.debug("no-op rebalance at tick %s, deviation %s", snapshot.tick, report.total)
        return True

    def __repr__(self):
        return f"NoOpRebalanceExecutor(calls={self.calls})"
