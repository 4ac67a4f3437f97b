"""
conftest.py - Shared pytest fixtures for index fund tests

Provides common fixtures used across unit, conformance and functional tests:
- Asset contracts pre-minted to a few accounts
- Funds at various stages (empty, with tokens, with deposits)
- State capture helpers for asserting "nothing changed"
"""

import pytest
from typing import Any, Dict

from index_fund import IndexFund, InMemoryAsset


OWNER = "admin"
FUND_ADDRESS = "fund"
ACCOUNTS = ("alice", "bob", "charlie")


# =============================================================================
# HELPER FUNCTIONS
# =============================================================================

def make_asset(address: str, symbol: str, mint: int = 1_000_000) -> InMemoryAsset:
    """Create an asset and mint ``mint`` units to each test account."""
    asset = InMemoryAsset(address, symbol)
    for account in ACCOUNTS:
        asset.mint(account, mint)
    return asset


def capture_state(fund: IndexFund) -> Dict[str, Any]:
    """Everything an aborted operation must leave untouched."""
    return {
        "balances": {a: fund.get_balance(a) for a in ACCOUNTS + (OWNER,)},
        "total_supply": fund.get_total_supply(),
        "tokens": fund.get_supported_tokens(),
        "weights": {t: fund.get_token_weight(t) for t in fund.get_supported_tokens()},
        "prices": {t: fund.get_token_price(t) for t in fund.get_supported_tokens()},
        "holdings": {t: fund.get_token_holdings(t) for t in fund.get_supported_tokens()},
        "fees": {t: fund.get_retained_fees(t) for t in fund.get_supported_tokens()},
        "status": fund.status,
        "last_rebalance": fund.get_last_rebalance_tick(),
        "events": len(fund.events),
    }


# =============================================================================
# FIXTURES
# =============================================================================

@pytest.fixture
def asset_a():
    return make_asset("asset-a", "A")


@pytest.fixture
def asset_b():
    return make_asset("asset-b", "B")


@pytest.fixture
def fund():
    """Fresh fund with no tokens."""
    return IndexFund(owner=OWNER, address=FUND_ADDRESS, verbose=False)


@pytest.fixture
def token_fund(fund, asset_a, asset_b):
    """Fund with tokens A (2500 bps) and B (7500 bps), both unpriced."""
    fund.add_token(OWNER, "A", 2500, asset_a)
    fund.add_token(OWNER, "B", 7500, asset_b)
    return fund


@pytest.fixture
def funded_fund(token_fund, asset_a):
    """Token fund where alice has deposited 1000 of A."""
    token_fund.deposit("alice", "A", asset_a, 1000)
    return token_fund
