"""
deviation.py - Live weight and deviation from target

For each registered token the live weight is estimated from the fund's
aggregate custody of that token:

    live_weight = floor(holdings * price / total_supply)
    deviation   = |target_weight - live_weight|

and the total deviation is the sum over the roster. Holdings are fund-wide
per-token totals tracked by the ledger. A single account's balance is never
used here: the fund's position in a token is what drifts from target, not
any one depositor's claim.

With an empty fund (total_supply == 0) every live weight is 0, so the total
deviation equals the sum of the target weights.
"""

from __future__ import annotations
from dataclasses import dataclass
from typing import Tuple

from .core import PortfolioSnapshot, TokenEntry, REBALANCE_THRESHOLD_BPS


@dataclass(frozen=True, slots=True)
class TokenDeviation:
    """Per-token breakdown of a deviation computation."""
    identifier: str
    target_weight: int
    live_weight: int
    deviation: int


@dataclass(frozen=True, slots=True)
class DeviationReport:
    """
    Result of compute_deviation().

    Attributes:
        tokens: Per-token breakdown in roster order.
        total: Sum of per-token deviations.
        total_supply: Supply the live weights were measured against.
    """
    tokens: Tuple[TokenDeviation, ...]
    total: int
    total_supply: int

    def exceeds(self, threshold: int = REBALANCE_THRESHOLD_BPS) -> bool:
        return exceeds_threshold(self.total, threshold)


def live_weight(holdings: int, price: int, total_supply: int) -> int:
    """
    Live weight of one token.

    Returns 0 when the fund has no supply.

    Raises:
        ValueError: if any input is negative
    """
    if holdings < 0 or price < 0 or total_supply < 0:
        raise ValueError(
            f"live_weight inputs cannot be negative: holdings={holdings}, "
            f"price={price}, total_supply={total_supply}"
        )
    if total_supply == 0:
        return 0
    return (holdings * price) // total_supply


def token_deviation(entry: TokenEntry, holdings: int, total_supply: int) -> TokenDeviation:
    """Deviation of one token from its target weight."""
    live = live_weight(holdings, entry.price, total_supply)
    return TokenDeviation(
        identifier=entry.identifier,
        target_weight=entry.target_weight,
        live_weight=live,
        deviation=abs(entry.target_weight - live),
    )


def compute_deviation(snapshot: PortfolioSnapshot) -> DeviationReport:
    """
    Aggregate absolute deviation across every registered token.

    Args:
        snapshot: tokens, holdings and supply to measure

    Returns:
        DeviationReport with the per-token breakdown and the total
    """
    breakdown = tuple(
        token_deviation(entry, snapshot.holding(entry.identifier), snapshot.total_supply)
        for entry in snapshot.tokens
    )
    return DeviationReport(
        tokens=breakdown,
        total=sum(t.deviation for t in breakdown),
        total_supply=snapshot.total_supply,
    )


def exceeds_threshold(total_deviation: int, threshold: int = REBALANCE_THRESHOLD_BPS) -> bool:
    """True only when deviation is strictly greater than the threshold."""
    return total_deviation > threshold
