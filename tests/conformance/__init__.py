"""
Conformance Test Suite

This suite defines the NORMATIVE behavior of the index fund.
Any compliant implementation MUST pass these tests.

The tests are organized by invariant:
1. conservation.py - Balances sum to supply; custody covers supply plus fees
2. atomicity.py - All-or-nothing operations, including collaborator failures
3. fee_schedule.py - Fee bounds and monotonicity
4. pause_gating.py - Paused fund rejects balance operations only
5. rebalance_gate.py - Strict deviation threshold and tick ordering
6. roster_bound.py - At most ten whitelisted tokens
7. concurrency.py - Mutating calls from many threads are serialized

These tests use hypothesis for property-based testing.
"""
