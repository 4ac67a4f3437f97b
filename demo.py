#!/usr/bin/env python3
"""
demo.py - Interactive Tutorial: The Index Fund Step by Step

Each step builds on the previous one. Press Enter to advance.

WHAT YOU'LL LEARN:
  1-3:  Setup       - The empty fund, whitelisting tokens, setting prices
  4-6:  Accounting  - Deposits, prorated withdrawal fees, conservation
  7-9:  Governance  - Rejections, pausing, rebalancing past the threshold

Run:
    python demo.py           # Interactive mode (press Enter for each step)
    python demo.py --quick   # Run all steps without pausing
"""

from dataclasses import dataclass
import logging
import sys

from index_fund import (
    IndexFund, InMemoryAsset,
    FundError, NotAuthorized, FundPaused, ThresholdNotMet,
    BLOCKS_PER_YEAR, REBALANCE_THRESHOLD_BPS,
)


# ============================================================================
# CONFIGURATION
# ============================================================================

@dataclass
class DemoConfig:
    """Configuration for the tutorial. Modify these to experiment."""
    owner: str = "admin"
    fund_address: str = "fund"

    alice_initial: int = 100_000
    bob_initial: int = 100_000

    usd_weight: int = 6000
    btc_weight: int = 4000
    usd_price: int = 10_000
    btc_price: int = 10_000
    btc_rally_price: int = 15_000

    alice_deposit: int = 30_000
    bob_deposit: int = 20_000
    alice_withdrawal: int = 10_000


CONFIG = DemoConfig()

QUICK_MODE = "--quick" in sys.argv


def wait_for_enter():
    """Pause for user input unless in quick mode."""
    if not QUICK_MODE:
        input("\n[Press Enter to continue...]")


def step_header(number: int, title: str, objective: str):
    print(f"\n{'='*70}")
    print(f"STEP {number}: {title}")
    print(f"{'='*70}")
    print(f"\nObjective: {objective}\n")


def section_header(text: str):
    print(f"\n--- {text} ---\n")


def print_balances(fund: IndexFund):
    for account in ("alice", "bob"):
        print(f"  {account:<8} {fund.get_balance(account):>10,}")
    print(f"  {'supply':<8} {fund.get_total_supply():>10,}")


# ============================================================================
# PHASE 1: SETUP (Steps 1-3)
# ============================================================================

def step_01_empty_fund():
    step_header(1, "The Empty Fund",
        "A fund starts ACTIVE, with no tokens, no balances and tick 0.")

    print(">>> fund = IndexFund(owner='admin', address='fund')")
    fund = IndexFund(owner=CONFIG.owner, address=CONFIG.fund_address)

    section_header("Initial State")
    print(f"Status:           {fund.status.value}")
    print(f"Current tick:     {fund.current_tick}")
    print(f"Supported tokens: {fund.get_supported_tokens()}")
    print(f"Total supply:     {fund.get_total_supply()}")

    wait_for_enter()
    return fund


def step_02_whitelist(fund: IndexFund):
    step_header(2, "Whitelisting Tokens",
        "Only the owner can add tokens; each is bound to its asset contract.")

    usd = InMemoryAsset("asset-usd", "USDX")
    btc = InMemoryAsset("asset-btc", "XBTC")
    for asset in (usd, btc):
        asset.mint("alice", CONFIG.alice_initial)
        asset.mint("bob", CONFIG.bob_initial)

    fund.add_token(CONFIG.owner, "USDX", CONFIG.usd_weight, usd)
    fund.add_token(CONFIG.owner, "XBTC", CONFIG.btc_weight, btc)

    section_header("Roster")
    for identifier in fund.get_supported_tokens():
        print(f"  {identifier:<6} target weight {fund.get_token_weight(identifier):>5} bps")

    wait_for_enter()
    return usd, btc


def step_03_prices(fund: IndexFund):
    step_header(3, "Setting Prices",
        "Prices feed the live-weight calculation; unpriced tokens weigh 0.")

    fund.update_price(CONFIG.owner, "USDX", CONFIG.usd_price)
    fund.update_price(CONFIG.owner, "XBTC", CONFIG.btc_price)
    for identifier in fund.get_supported_tokens():
        print(f"  {identifier:<6} price {fund.get_token_price(identifier):>8,}")

    wait_for_enter()


# ============================================================================
# PHASE 2: ACCOUNTING (Steps 4-6)
# ============================================================================

def step_04_deposits(fund: IndexFund, usd: InMemoryAsset, btc: InMemoryAsset):
    step_header(4, "Deposits",
        "A deposit moves the asset into fund custody and credits fund units 1:1.")

    fund.deposit("alice", "USDX", usd, CONFIG.alice_deposit)
    fund.deposit("bob", "XBTC", btc, CONFIG.bob_deposit)
    print_balances(fund)

    report = fund.get_deviation()
    section_header("Live vs Target")
    for t in report.tokens:
        print(f"  {t.identifier:<6} target {t.target_weight:>5}  live {t.live_weight:>5}  "
              f"deviation {t.deviation:>5}")
    print(f"  total deviation {report.total} bps")

    wait_for_enter()


def step_05_withdraw_with_fee(fund: IndexFund, usd: InMemoryAsset):
    step_header(5, "Prorated Withdrawal Fee",
        "The annual fee accrues per block since the last rebalance.")

    fund.advance_blocks(BLOCKS_PER_YEAR // 2)
    print(f"Advanced {BLOCKS_PER_YEAR // 2:,} blocks (half a year)")
    fee = fund.preview_withdrawal_fee(CONFIG.alice_withdrawal)
    net = fund.withdraw("alice", "USDX", usd, CONFIG.alice_withdrawal)
    print(f"alice withdraws {CONFIG.alice_withdrawal:,}: fee {fee}, net {net:,}")
    print(f"Retained fees (USDX): {fund.get_retained_fees('USDX')}")
    print_balances(fund)

    wait_for_enter()


def step_06_conservation(fund: IndexFund):
    step_header(6, "Conservation",
        "Balances always sum to supply; custody equals supply plus retained fees.")

    result = fund.verify_conservation()
    print(f"Valid:            {result['valid']}")
    print(f"Total supply:     {result['total_supply']:,}")
    print(f"Sum of balances:  {result['sum_of_balances']:,}")

    wait_for_enter()


# ============================================================================
# PHASE 3: GOVERNANCE (Steps 7-9)
# ============================================================================

def step_07_rejections(fund: IndexFund, usd: InMemoryAsset):
    step_header(7, "Rejected Calls",
        "Failed calls raise a FundError and leave the fund untouched.")

    attempts = [
        ("bob pauses the fund", lambda: fund.pause("bob")),
        ("bob withdraws via USDX", lambda: fund.withdraw("bob", "XBTC", usd, 1)),
        ("alice deposits zero", lambda: fund.deposit("alice", "USDX", usd, 0)),
    ]
    for label, attempt in attempts:
        try:
            attempt()
        except FundError as e:
            print(f"  {label:<26} -> {type(e).__name__} [{e.code}]")

    wait_for_enter()


def step_08_pause(fund: IndexFund, usd: InMemoryAsset):
    step_header(8, "Pausing",
        "A paused fund rejects balance operations but still accepts price updates.")

    fund.pause(CONFIG.owner)
    try:
        fund.deposit("alice", "USDX", usd, 100)
    except FundPaused as e:
        print(f"  deposit while paused -> {e.code}")
    fund.update_price(CONFIG.owner, "XBTC", CONFIG.btc_rally_price)
    print(f"  XBTC repriced to {fund.get_token_price('XBTC'):,} while paused")
    fund.resume(CONFIG.owner)
    print(f"  status: {fund.status.value}")

    wait_for_enter()


def step_09_rebalance(fund: IndexFund, usd: InMemoryAsset):
    step_header(9, "Rebalancing",
        f"Rebalance only fires when total deviation exceeds {REBALANCE_THRESHOLD_BPS} bps.")

    try:
        fund.rebalance("bob")
    except NotAuthorized as e:
        print(f"  bob rebalances -> {e.code}")

    report = fund.get_deviation()
    print(f"  total deviation {report.total} bps")
    try:
        report = fund.rebalance(CONFIG.owner)
        print(f"  rebalanced at tick {fund.get_last_rebalance_tick():,}")
    except ThresholdNotMet as e:
        print(f"  rebalance rejected -> {e.code}")

    print(f"  fee on 10,000 now: {fund.preview_withdrawal_fee(10_000)}")
    collected = fund.collect_fees(CONFIG.owner, "USDX", usd)
    print(f"  owner collects {collected} USDX in fees")

    section_header("Event Log")
    for event in fund.events:
        print(f"  #{event.sequence:<3} tick {event.tick:>6}  {event.kind.value:<16} "
              f"{event.caller:<6} {event.token_id or '':<6} {event.amount}")


def main():
    logging.basicConfig(level=logging.INFO, format="%(levelname)s %(name)s: %(message)s")

    fund = step_01_empty_fund()
    usd, btc = step_02_whitelist(fund)
    step_03_prices(fund)
    step_04_deposits(fund, usd, btc)
    step_05_withdraw_with_fee(fund, usd)
    step_06_conservation(fund)
    step_07_rejections(fund, usd)
    step_08_pause(fund, usd)
    step_09_rebalance(fund, usd)


if __name__ == "__main__":
    main()
