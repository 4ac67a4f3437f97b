"""
fees.py - Time-prorated management fee

The fee is charged on withdrawal and scales with the number of blocks since
the last portfolio-wide rebalance, not since the account's deposit:

    fee = floor(amount * annual_fee_bps * blocks_elapsed / (basis_points * blocks_per_year))

All arithmetic is integer floor division. Small amounts or short windows
produce a fee of zero.
"""

from __future__ import annotations

from .core import ANNUAL_FEE_BPS, BLOCKS_PER_YEAR, BASIS_POINTS, FundConfig


def blocks_elapsed(current_tick: int, last_rebalance_tick: int) -> int:
    """
    Blocks since the last rebalance.

    Raises:
        ValueError: if current_tick is before last_rebalance_tick
    """
    if current_tick < last_rebalance_tick:
        raise ValueError(
            f"current tick {current_tick} is before last rebalance tick {last_rebalance_tick}"
        )
    return current_tick - last_rebalance_tick


def compute_fee(
    amount: int,
    elapsed: int,
    annual_fee_bps: int = ANNUAL_FEE_BPS,
    blocks_per_year: int = BLOCKS_PER_YEAR,
    basis_points: int = BASIS_POINTS,
) -> int:
    """
    Management fee owed on a withdrawal of ``amount``.

    Args:
        amount: gross withdrawal amount
        elapsed: blocks since the last rebalance
        annual_fee_bps: fee per full year of blocks
        blocks_per_year: blocks in one fee year
        basis_points: bps denominator

    Returns:
        Fee in the same units as amount, never more than amount.

    Raises:
        ValueError: if amount or elapsed is negative
    """
    if amount < 0:
        raise ValueError(f"amount cannot be negative, got {amount}")
    if elapsed < 0:
        raise ValueError(f"elapsed cannot be negative, got {elapsed}")

    fee = (amount * annual_fee_bps * elapsed) // (basis_points * blocks_per_year)
    # Only reachable after ~333 years without a rebalance.
    return min(fee, amount)


def compute_fee_for(amount: int, elapsed: int, config: FundConfig) -> int:
    """compute_fee() with parameters taken from a FundConfig."""
    return compute_fee(
        amount,
        elapsed,
        annual_fee_bps=config.annual_fee_bps,
        blocks_per_year=config.blocks_per_year,
        basis_points=config.basis_points,
    )


def compute_net(amount: int, fee: int) -> int:
    """Amount actually paid out after the fee is retained."""
    if fee > amount:
        raise ValueError(f"fee {fee} exceeds amount {amount}")
    return amount - fee
