"""
index_fund - Pooled-asset index fund ledger

Portfolio accounting and rebalance-trigger engine for an index fund: accounts
deposit whitelisted tokens, pay a time-prorated management fee on withdrawal,
and an owner maintains target weights and triggers rebalances when live
weights drift past a threshold.

Usage:
    from index_fund import IndexFund, InMemoryAsset

    asset_a = InMemoryAsset("asset-a", "A")
    asset_a.mint("alice", 1000)

    fund = IndexFund(owner="admin", address="fund")
    fund.add_token("admin", "A", 2500, asset_a)
    fund.update_price("admin", "A", 100)

    fund.deposit("alice", "A", asset_a, 1000)
    fund.advance_blocks(52560)
    net = fund.withdraw("alice", "A", asset_a, 1000)   # 997 after a 3 unit fee
"""

# Core types
from .core import (
    FundConfig,
    DEFAULT_CONFIG,
    FundStatus,
    EventKind,
    FundEvent,
    TokenEntry,
    PortfolioSnapshot,
    AssetContract,
    RebalanceExecutor,
    FundError,
    NotAuthorized,
    FundPaused,
    InvalidInput,
    InvalidAmount,
    InvalidWeight,
    InvalidPrice,
    SelfReferenceRejected,
    DuplicateIdentifier,
    UnsupportedToken,
    TooManyTokens,
    InsufficientBalance,
    ThresholdNotMet,
    RebalanceThresholdNotMet,
    AssetMismatch,
    TransferFailed,
    ExecutionFailed,
    BASIS_POINTS,
    ANNUAL_FEE_BPS,
    BLOCKS_PER_YEAR,
    REBALANCE_THRESHOLD_BPS,
    MAX_TOKENS,
)

# Components
from .ledger import BalanceLedger
from .registry import TokenRegistry
from .fees import blocks_elapsed, compute_fee, compute_fee_for, compute_net
from .deviation import (
    DeviationReport,
    TokenDeviation,
    live_weight,
    token_deviation,
    compute_deviation,
    exceeds_threshold,
)

# Fund
from .fund import IndexFund

# Collaborators
from .assets import InMemoryAsset, NoOpRebalanceExecutor

__all__ = [
    # Core
    'FundConfig', 'DEFAULT_CONFIG', 'FundStatus', 'EventKind', 'FundEvent',
    'TokenEntry', 'PortfolioSnapshot',
    'AssetContract', 'RebalanceExecutor',
    'BASIS_POINTS', 'ANNUAL_FEE_BPS', 'BLOCKS_PER_YEAR', 'REBALANCE_THRESHOLD_BPS', 'MAX_TOKENS',
    # Errors
    'FundError', 'NotAuthorized', 'FundPaused',
    'InvalidInput', 'InvalidAmount', 'InvalidWeight', 'InvalidPrice',
    'SelfReferenceRejected', 'DuplicateIdentifier',
    'UnsupportedToken', 'TooManyTokens', 'InsufficientBalance',
    'ThresholdNotMet', 'RebalanceThresholdNotMet',
    'AssetMismatch', 'TransferFailed', 'ExecutionFailed',
    # Components
    'BalanceLedger', 'TokenRegistry',
    'blocks_elapsed', 'compute_fee', 'compute_fee_for', 'compute_net',
    'DeviationReport', 'TokenDeviation', 'live_weight', 'token_deviation',
    'compute_deviation', 'exceeds_threshold',
    # Fund
    'IndexFund',
    # Collaborators
    'InMemoryAsset', 'NoOpRebalanceExecutor',
]

__version__ = '1.0.0'
