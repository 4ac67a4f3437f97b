"""
ledger.py - Account balances and fund custody

BalanceLedger owns the per-account balances, the aggregate supply, the
fund-wide custody of each token and the fees retained on withdrawal.

Invariants (checked by verify_conservation()):
    - Σ balances == total_supply
    - Σ holdings == total_supply + Σ retained_fees
    - every balance, holding and retained fee is >= 0
    - retained_fees[t] <= holdings[t] for every token

The ledger validates its own arithmetic preconditions but knows nothing
about owners, pause state or asset contracts; IndexFund sequences those.
"""

from __future__ import annotations
from collections import defaultdict
from dataclasses import dataclass
from typing import Dict, Any, List, Mapping

from .core import BalanceMap, TokenAmounts, InsufficientBalance


@dataclass(frozen=True, slots=True)
class LedgerSnapshot:
    """Copy of ledger state used to roll back an aborted operation."""
    balances: Mapping[str, int]
    total_supply: int
    holdings: Mapping[str, int]
    retained_fees: Mapping[str, int]


class BalanceLedger:
    """
    Integer balance ledger for the fund.

    Example:
        ledger = BalanceLedger()
        ledger.credit("alice", "A", 1000)
        ledger.debit("alice", "A", 500, fee=0)
        ledger.get_balance("alice")   # 500
    """

    def __init__(self):
        self._balances: Dict[str, int] = defaultdict(int)
        self._total_supply: int = 0
        self._holdings: Dict[str, int] = defaultdict(int)
        self._retained_fees: Dict[str, int] = defaultdict(int)

    # ========================================================================
    # READS
    # ========================================================================

    @property
    def total_supply(self) -> int:
        return self._total_supply

    def get_balance(self, account: str) -> int:
        """Balance of an account (0 if the account never deposited)."""
        return self._balances.get(account, 0)

    def get_balances(self) -> BalanceMap:
        """All accounts that have ever held a balance, including ones decayed to zero."""
        return dict(self._balances)

    def get_holdings(self, token_id: str) -> int:
        """Fund-wide custody of a token, retained fees included."""
        return self._holdings.get(token_id, 0)

    def get_all_holdings(self) -> TokenAmounts:
        return dict(self._holdings)

    def get_retained_fees(self, token_id: str) -> int:
        return self._retained_fees.get(token_id, 0)

    def verify_conservation(self) -> Dict[str, Any]:
        """
        Verify the ledger's accounting invariants.

        Returns:
            Dict with keys:
            - 'valid': bool - True if every invariant holds
            - 'total_supply': int
            - 'sum_of_balances': int
            - 'discrepancies': List[str] - description of each violation
        """
        discrepancies: List[str] = []
        sum_of_balances = sum(self._balances[a] for a in sorted(self._balances))
        if sum_of_balances != self._total_supply:
            discrepancies.append(
                f"sum of balances {sum_of_balances} != total supply {self._total_supply}"
            )

        sum_of_holdings = sum(self._holdings.values())
        sum_of_fees = sum(self._retained_fees.values())
        if sum_of_holdings != self._total_supply + sum_of_fees:
            discrepancies.append(
                f"holdings {sum_of_holdings} != total supply {self._total_supply} "
                f"+ retained fees {sum_of_fees}"
            )

        if self._total_supply < 0:
            discrepancies.append(f"negative total supply {self._total_supply}")
        for account, amount in self._balances.items():
            if amount < 0:
                discrepancies.append(f"negative balance for {account}: {amount}")
        for token_id, amount in self._holdings.items():
            if amount < 0:
                discrepancies.append(f"negative holdings for {token_id}: {amount}")
        for token_id, fees in self._retained_fees.items():
            if fees > self._holdings.get(token_id, 0):
                discrepancies.append(
                    f"retained fees {fees} for {token_id} exceed holdings "
                    f"{self._holdings.get(token_id, 0)}"
                )

        return {
            'valid': len(discrepancies) == 0,
            'total_supply': self._total_supply,
            'sum_of_balances': sum_of_balances,
            'discrepancies': discrepancies,
        }

    # ========================================================================
    # MUTATIONS
    # ========================================================================

    def credit(self, account: str, token_id: str, amount: int) -> int:
        """
        Record a deposit.

        Args:
            account: depositing account
            token_id: token the fund received
            amount: deposited amount (> 0, validated by the caller)

        Returns:
            The account's new balance
        """
        self._balances[account] += amount
        self._total_supply += amount
        self._holdings[token_id] += amount
        return self._balances[account]

    def debit(self, account: str, token_id: str, amount: int, fee: int) -> int:
        """
        Record a withdrawal of ``amount`` of which ``fee`` stays in the fund.

        The account balance and total supply fall by the gross amount; the
        fund's custody of the token falls by the net amount paid out, and the
        fee moves to the retained-fee counter.

        Returns:
            The account's new balance

        Raises:
            InsufficientBalance: if the account holds less than amount, or the
                fund custodies less of the token, net of retained fees,
                than the net payout
        """
        self.check_debit(account, token_id, amount, fee)
        net = amount - fee
        self._balances[account] -= amount
        self._total_supply -= amount
        self._holdings[token_id] -= net
        self._retained_fees[token_id] += fee
        return self._balances[account]

    def check_debit(self, account: str, token_id: str, amount: int, fee: int) -> None:
        """Raise InsufficientBalance if debit() would fail. Does not mutate."""
        balance = self.get_balance(account)
        if balance < amount:
            raise InsufficientBalance(
                f"{account} holds {balance}, cannot withdraw {amount}"
            )
        net = amount - fee
        # Retained fees are owed to the owner and never back a payout.
        custody = self.get_holdings(token_id) - self.get_retained_fees(token_id)
        if custody < net:
            raise InsufficientBalance(
                f"fund holds {custody} of {token_id} net of retained fees, "
                f"cannot pay out {net}"
            )

    def release_fees(self, token_id: str) -> int:
        """
        Remove and return the fees retained for a token.

        The released amount also leaves the fund's custody of the token.
        """
        released = self._retained_fees.get(token_id, 0)
        if released:
            self._retained_fees[token_id] = 0
            self._holdings[token_id] -= released
        return released

    # ========================================================================
    # ROLLBACK
    # ========================================================================

    def snapshot(self) -> LedgerSnapshot:
        return LedgerSnapshot(
            balances=dict(self._balances),
            total_supply=self._total_supply,
            holdings=dict(self._holdings),
            retained_fees=dict(self._retained_fees),
        )

    def restore(self, snapshot: LedgerSnapshot) -> None:
        self._balances = defaultdict(int, snapshot.balances)
        self._total_supply = snapshot.total_supply
        self._holdings = defaultdict(int, snapshot.holdings)
        self._retained_fees = defaultdict(int, snapshot.retained_fees)
