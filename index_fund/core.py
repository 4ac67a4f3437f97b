"""
Core types and constants for the index fund ledger.

This module provides the foundational data structures and protocols for the fund:
1. Constants and FundConfig: fee, threshold and roster parameters
2. Exceptions: FundError and the specific rejection reasons
3. Protocols: AssetContract and RebalanceExecutor
4. Immutable records: TokenEntry, PortfolioSnapshot, FundEvent
5. Enums: FundStatus, EventKind

Nothing in this module mutates fund state.
"""

from __future__ import annotations
from dataclasses import dataclass, field
from enum import Enum
from typing import (
    TYPE_CHECKING, Dict, Optional, Any, Protocol, Tuple, Mapping, runtime_checkable
)

if TYPE_CHECKING:
    from .deviation import DeviationReport


# ============================================================================
# CONSTANTS
# ============================================================================

# 10000 basis points == 100%.
BASIS_POINTS = 10000

# Management fee charged per year of blocks since the last rebalance (0.30%).
ANNUAL_FEE_BPS = 30

# Blocks produced per year at ten-minute block times.
BLOCKS_PER_YEAR = 52560

# Aggregate deviation must be strictly above this to authorize a rebalance (5%).
REBALANCE_THRESHOLD_BPS = 500

# Hard cap on the token roster.
MAX_TOKENS = 10


# ============================================================================
# TYPE ALIASES
# ============================================================================

# Mapping from account identity to its balance.
BalanceMap = Dict[str, int]

# Mapping from token identifier to an integer amount (holdings, fees, prices).
TokenAmounts = Dict[str, int]


# ============================================================================
# CONFIGURATION
# ============================================================================

@dataclass(frozen=True, slots=True)
class FundConfig:
    """
    Fund parameters fixed at construction time.

    Attributes:
        max_tokens: Maximum number of tokens the roster may hold.
        annual_fee_bps: Management fee per year of elapsed blocks, in bps.
        blocks_per_year: Block count that makes up one fee year.
        rebalance_threshold_bps: Deviation a rebalance must strictly exceed.
        basis_points: Denominator for bps arithmetic.
    """
    max_tokens: int = MAX_TOKENS
    annual_fee_bps: int = ANNUAL_FEE_BPS
    blocks_per_year: int = BLOCKS_PER_YEAR
    rebalance_threshold_bps: int = REBALANCE_THRESHOLD_BPS
    basis_points: int = BASIS_POINTS

    def __post_init__(self):
        if self.max_tokens <= 0:
            raise ValueError(f"max_tokens must be positive, got {self.max_tokens}")
        if self.annual_fee_bps < 0:
            raise ValueError(f"annual_fee_bps cannot be negative, got {self.annual_fee_bps}")
        if self.blocks_per_year <= 0:
            raise ValueError(f"blocks_per_year must be positive, got {self.blocks_per_year}")
        if self.rebalance_threshold_bps < 0:
            raise ValueError(
                f"rebalance_threshold_bps cannot be negative, got {self.rebalance_threshold_bps}"
            )
        if self.basis_points <= 0:
            raise ValueError(f"basis_points must be positive, got {self.basis_points}")


DEFAULT_CONFIG = FundConfig()


# ============================================================================
# ENUMS
# ============================================================================

class FundStatus(Enum):
    """
    Operating state of the fund.

    ACTIVE: Deposits, withdrawals and rebalances are accepted.
    PAUSED: Balance-mutating operations are rejected; the registry stays editable.
    """
    ACTIVE = "active"
    PAUSED = "paused"


class EventKind(Enum):
    """Classification of committed fund operations, used by the event log."""
    TOKEN_ADDED = "token_added"
    PRICE_UPDATED = "price_updated"
    DEPOSIT = "deposit"
    WITHDRAWAL = "withdrawal"
    REBALANCE = "rebalance"
    PAUSED = "paused"
    RESUMED = "resumed"
    FEES_COLLECTED = "fees_collected"


# ============================================================================
# EXCEPTIONS
# ============================================================================

class FundError(Exception):
    """
    Base exception for every rejected fund operation.

    Each subclass carries a stable ``code`` so callers (and any RPC layer)
    can tell rejection reasons apart without parsing messages.
    """
    code = "fund-error"


class NotAuthorized(FundError):
    """Raised when the caller is not the owner, or the fund is not in a state that allows the call."""
    code = "not-authorized"


class FundPaused(NotAuthorized):
    """Raised when a balance-mutating operation is attempted while the fund is paused."""
    code = "paused"


class InvalidInput(FundError):
    """Raised when an argument fails validation."""
    code = "invalid-input"


class InvalidAmount(InvalidInput):
    """Raised when an amount is zero, negative or not an integer."""
    code = "invalid-amount"


class InvalidWeight(InvalidInput):
    """Raised when a target weight is zero, negative or not an integer."""
    code = "invalid-weight"


class InvalidPrice(InvalidInput):
    """Raised when a price is zero, negative or not an integer."""
    code = "invalid-price"


class SelfReferenceRejected(InvalidInput):
    """Raised when a token would be bound to the fund's own address."""
    code = "self-reference"


class DuplicateIdentifier(InvalidInput):
    """Raised when a token identifier is already on the roster."""
    code = "duplicate-identifier"


class UnsupportedToken(FundError):
    """Raised when a token identifier is not registered."""
    code = "unsupported-token"


class TooManyTokens(UnsupportedToken):
    """Raised when the roster is already at its maximum size."""
    code = "too-many-tokens"


class InsufficientBalance(FundError):
    """Raised when a withdrawal exceeds the account balance or the fund's custody of the token."""
    code = "insufficient-balance"


class ThresholdNotMet(FundError):
    """Raised when a rebalance is requested but deviation does not exceed the threshold."""
    code = "threshold-not-met"


RebalanceThresholdNotMet = ThresholdNotMet


class AssetMismatch(FundError):
    """Raised when the supplied asset contract is not the one bound to the token."""
    code = "asset-mismatch"


class TransferFailed(FundError):
    """Raised when the external asset contract does not complete a transfer."""
    code = "transfer-failed"


class ExecutionFailed(FundError):
    """Raised when the rebalance executor does not complete."""
    code = "execution-failed"


# ============================================================================
# IMMUTABLE RECORDS
# ============================================================================

@dataclass(frozen=True, slots=True)
class TokenEntry:
    """
    A whitelisted token.

    Attributes:
        identifier: Symbolic identifier, unique within the roster.
        target_weight: Desired allocation in basis points (> 0).
        asset_address: Address of the bound external asset contract.
        price: Current market price (0 until the first price update).
    """
    identifier: str
    target_weight: int
    asset_address: str
    price: int = 0

    def __repr__(self) -> str:
        return f"TokenEntry({self.identifier}: weight={self.target_weight}, price={self.price})"


@dataclass(frozen=True, slots=True)
class PortfolioSnapshot:
    """
    Read-only picture of the fund used by the deviation calculator and executors.

    Attributes:
        tick: Current block tick.
        total_supply: Sum of all account balances.
        tokens: Registered tokens in roster order.
        holdings: Fund-wide custody per token.
    """
    tick: int
    total_supply: int
    tokens: Tuple[TokenEntry, ...]
    holdings: Mapping[str, int] = field(default_factory=dict)

    def holding(self, identifier: str) -> int:
        return self.holdings.get(identifier, 0)


@dataclass(frozen=True, slots=True)
class FundEvent:
    """
    Immutable record of a committed fund operation.

    Attributes:
        sequence: Monotonic position within the fund's event log.
        tick: Block tick at which the operation committed.
        kind: What happened.
        caller: Identity that invoked the operation.
        token_id: Token involved, if any.
        amount: Gross amount involved, if any.
        data: Extra operation-specific fields (fee, net, deviation, ...).
    """
    sequence: int
    tick: int
    kind: EventKind
    caller: str
    token_id: Optional[str] = None
    amount: Optional[int] = None
    data: Mapping[str, Any] = field(default_factory=dict)

    def __repr__(self) -> str:
        parts = [f"#{self.sequence}", f"tick={self.tick}", self.kind.value, f"by={self.caller}"]
        if self.token_id is not None:
            parts.append(f"token={self.token_id}")
        if self.amount is not None:
            parts.append(f"amount={self.amount}")
        return f"FundEvent({', '.join(parts)})"


# ============================================================================
# PROTOCOLS
# ============================================================================

@runtime_checkable
class AssetContract(Protocol):
    """
    Standard fungible-asset interface the fund calls but does not implement.

    The fund only relies on ``address`` (for binding checks) and ``transfer``;
    the remaining methods complete the interface for callers and tests.
    """

    @property
    def address(self) -> str:
        """Return the contract's address, used to bind it to a token."""
        ...

    def transfer(self, amount: int, sender: str, recipient: str, memo: Optional[str] = None) -> bool:
        """Move ``amount`` from sender to recipient. Return False if the transfer did not happen."""
        ...

    def balance_of(self, owner: str) -> int:
        ...

    def total_supply(self) -> int:
        ...

    def decimals(self) -> int:
        ...

    def name(self) -> str:
        ...

    def symbol(self) -> str:
        ...


@runtime_checkable
class RebalanceExecutor(Protocol):
    """
    Collaborator that moves live weights back toward target.

    The fund decides whether a rebalance is authorized; the executor does the
    trading. Returning False (or raising) aborts the rebalance.
    """

    def execute(self, snapshot: PortfolioSnapshot, report: 'DeviationReport') -> bool:
        ...
