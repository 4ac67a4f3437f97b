"""
test_fund_operations.py - Unit tests for IndexFund

Tests:
- Construction and read-only defaults
- add_token / update_price authorization and validation
- deposit / withdraw preconditions, fees and asset movement
- pause / resume transitions and gating
- rebalance threshold, executor handling and tick ordering
- collect_fees
- Event log and clock
"""

import pytest

from index_fund import (
    IndexFund, InMemoryAsset, FundConfig, FundStatus, EventKind,
    NotAuthorized, FundPaused, InvalidAmount, InvalidWeight, InvalidPrice,
    SelfReferenceRejected, DuplicateIdentifier, UnsupportedToken, TooManyTokens,
    InsufficientBalance, ThresholdNotMet, RebalanceThresholdNotMet,
    AssetMismatch, TransferFailed, ExecutionFailed, InvalidInput,
    BLOCKS_PER_YEAR,
)
from tests.conftest import OWNER, FUND_ADDRESS, capture_state, make_asset
from tests.fake_assets import FailingAsset, RaisingAsset, RecordingExecutor, RaisingExecutor


class TestFundCreation:

    def test_defaults(self, fund):
        assert fund.owner == OWNER
        assert fund.address == FUND_ADDRESS
        assert fund.status is FundStatus.ACTIVE
        assert fund.is_paused() is False
        assert fund.current_tick == 0
        assert fund.get_last_rebalance_tick() == 0
        assert fund.get_total_supply() == 0
        assert fund.get_supported_tokens() == []
        assert fund.events == []

    def test_initial_tick(self):
        fund = IndexFund(OWNER, FUND_ADDRESS, initial_tick=500, verbose=False)
        assert fund.current_tick == 500
        assert fund.get_last_rebalance_tick() == 500

    @pytest.mark.parametrize("owner,address", [("", "fund"), ("admin", " ")])
    def test_empty_identity_rejected(self, owner, address):
        with pytest.raises(ValueError):
            IndexFund(owner, address)

    def test_negative_initial_tick_rejected(self):
        with pytest.raises(ValueError):
            IndexFund(OWNER, FUND_ADDRESS, initial_tick=-1)

    def test_invalid_config_rejected(self):
        with pytest.raises(ValueError):
            FundConfig(max_tokens=0)
        with pytest.raises(ValueError):
            FundConfig(blocks_per_year=0)


class TestReadDefaults:

    def test_unknown_account_balance_is_zero(self, fund):
        assert fund.get_balance("stranger") == 0

    def test_unknown_token_weight_is_zero(self, fund):
        assert fund.get_token_weight("nope") == 0
        assert fund.get_token_price("nope") == 0


class TestAddToken:

    def test_owner_adds_token(self, fund, asset_a):
        entry = fund.add_token(OWNER, "A", 2500, asset_a)
        assert entry.target_weight == 2500
        assert fund.get_supported_tokens() == ["A"]
        assert fund.get_token_weight("A") == 2500
        assert fund.is_supported("A")

    def test_non_owner_rejected(self, fund, asset_a):
        before = capture_state(fund)
        with pytest.raises(NotAuthorized):
            fund.add_token("alice", "A", 2500, asset_a)
        assert capture_state(fund) == before

    def test_self_reference_rejected(self, fund):
        own = InMemoryAsset(FUND_ADDRESS, "SELF")
        with pytest.raises(SelfReferenceRejected):
            fund.add_token(OWNER, "SELF", 100, own)
        assert fund.get_supported_tokens() == []

    def test_duplicate_rejected(self, token_fund, asset_a):
        with pytest.raises(DuplicateIdentifier):
            token_fund.add_token(OWNER, "A", 100, asset_a)

    def test_invalid_weight(self, fund, asset_a):
        with pytest.raises(InvalidWeight):
            fund.add_token(OWNER, "A", 0, asset_a)

    def test_eleventh_token_rejected(self, fund, asset_a):
        for i in range(10):
            fund.add_token(OWNER, f"T{i}", 100, make_asset(f"asset-{i}", f"T{i}"))
        with pytest.raises(TooManyTokens):
            fund.add_token(OWNER, "T10", 100, asset_a)
        assert len(fund.get_supported_tokens()) == 10

    def test_allowed_while_paused(self, fund, asset_a):
        fund.pause(OWNER)
        fund.add_token(OWNER, "A", 2500, asset_a)
        assert fund.is_supported("A")

    def test_invalid_inputs_share_a_base(self):
        for error in (InvalidAmount, InvalidWeight, InvalidPrice, SelfReferenceRejected, DuplicateIdentifier):
            assert issubclass(error, InvalidInput)


class TestUpdatePrice:

    def test_owner_updates(self, token_fund):
        token_fund.update_price(OWNER, "A", 150)
        assert token_fund.get_token_price("A") == 150

    def test_non_owner_rejected(self, token_fund):
        with pytest.raises(NotAuthorized):
            token_fund.update_price("alice", "A", 150)
        assert token_fund.get_token_price("A") == 0

    def test_unknown_token(self, token_fund):
        with pytest.raises(UnsupportedToken):
            token_fund.update_price(OWNER, "Z", 150)

    def test_zero_price(self, token_fund):
        with pytest.raises(InvalidPrice):
            token_fund.update_price(OWNER, "A", 0)

    def test_allowed_while_paused(self, token_fund):
        token_fund.pause(OWNER)
        token_fund.update_price(OWNER, "A", 150)
        assert token_fund.get_token_price("A") == 150


class TestDeposit:

    def test_deposit_unpriced_token(self, token_fund, asset_a):
        token_fund.deposit("alice", "A", asset_a, 1000)
        assert token_fund.get_balance("alice") == 1000
        assert token_fund.get_total_supply() == 1000
        assert token_fund.get_token_holdings("A") == 1000

    def test_assets_move_into_fund(self, token_fund, asset_a):
        token_fund.deposit("alice", "A", asset_a, 1000)
        assert asset_a.balance_of("alice") == 999_000
        assert asset_a.balance_of(FUND_ADDRESS) == 1000

    @pytest.mark.parametrize("amount", [0, -10, 1.5, True])
    def test_invalid_amount(self, token_fund, asset_a, amount):
        with pytest.raises(InvalidAmount):
            token_fund.deposit("alice", "A", asset_a, amount)
        assert token_fund.get_total_supply() == 0

    def test_unsupported_token(self, token_fund, asset_a):
        with pytest.raises(UnsupportedToken):
            token_fund.deposit("alice", "Z", asset_a, 10)

    def test_asset_mismatch(self, token_fund, asset_b):
        with pytest.raises(AssetMismatch):
            token_fund.deposit("alice", "A", asset_b, 10)
        assert asset_b.balance_of(FUND_ADDRESS) == 0

    def test_transfer_refused(self, token_fund, asset_a):
        # 2_000_000 exceeds alice's minted 1_000_000.
        before = capture_state(token_fund)
        with pytest.raises(TransferFailed):
            token_fund.deposit("alice", "A", asset_a, 2_000_000)
        assert capture_state(token_fund) == before

    def test_transfer_raising_is_wrapped(self, fund):
        asset = RaisingAsset("asset-r", "R")
        fund.add_token(OWNER, "R", 100, asset)
        with pytest.raises(TransferFailed) as exc_info:
            fund.deposit("alice", "R", asset, 10)
        assert isinstance(exc_info.value.__cause__, ConnectionError)
        assert fund.get_balance("alice") == 0

    def test_paused(self, token_fund, asset_a):
        token_fund.pause(OWNER)
        with pytest.raises(FundPaused):
            token_fund.deposit("alice", "A", asset_a, 10)

    def test_paused_is_not_authorized(self):
        assert issubclass(FundPaused, NotAuthorized)


class TestWithdraw:

    def test_immediate_withdraw_is_free(self, funded_fund, asset_a):
        net = funded_fund.withdraw("alice", "A", asset_a, 500)
        assert net == 500
        assert funded_fund.get_balance("alice") == 500
        assert funded_fund.get_total_supply() == 500
        assert funded_fund.get_retained_fees("A") == 0
        assert asset_a.balance_of("alice") == 999_500

    def test_one_year_fee(self, funded_fund, asset_a):
        funded_fund.advance_blocks(BLOCKS_PER_YEAR)
        assert funded_fund.preview_withdrawal_fee(1000) == 3
        net = funded_fund.withdraw("alice", "A", asset_a, 1000)
        assert net == 997
        assert funded_fund.get_balance("alice") == 0
        assert funded_fund.get_total_supply() == 0
        assert funded_fund.get_retained_fees("A") == 3
        assert funded_fund.get_token_holdings("A") == 3
        assert asset_a.balance_of(FUND_ADDRESS) == 3

    def test_insufficient_balance(self, funded_fund, asset_a):
        before = capture_state(funded_fund)
        with pytest.raises(InsufficientBalance):
            funded_fund.withdraw("alice", "A", asset_a, 1001)
        assert capture_state(funded_fund) == before

    def test_stranger_has_nothing(self, funded_fund, asset_a):
        with pytest.raises(InsufficientBalance):
            funded_fund.withdraw("bob", "A", asset_a, 1)

    def test_custody_shortfall(self, funded_fund, asset_b):
        # alice deposited A only; the fund holds no B to pay her in.
        with pytest.raises(InsufficientBalance):
            funded_fund.withdraw("alice", "B", asset_b, 100)
        assert funded_fund.get_balance("alice") == 1000

    def test_retained_fees_cannot_be_withdrawn(self, funded_fund, asset_a, asset_b):
        funded_fund.advance_blocks(BLOCKS_PER_YEAR)
        assert funded_fund.withdraw("alice", "A", asset_a, 1000) == 997
        funded_fund.deposit("bob", "B", asset_b, 100)

        before = capture_state(funded_fund)
        with pytest.raises(InsufficientBalance):
            funded_fund.withdraw("bob", "A", asset_a, 3)
        assert capture_state(funded_fund) == before
        assert funded_fund.get_token_holdings("A") == 3
        assert funded_fund.get_retained_fees("A") == 3

        assert funded_fund.collect_fees(OWNER, "A", asset_a) == 3
        assert asset_a.balance_of(OWNER) == 3
        assert funded_fund.verify_conservation()['valid']

    def test_collecting_fees_leaves_later_deposits_intact(self, funded_fund, asset_a):
        funded_fund.advance_blocks(BLOCKS_PER_YEAR)
        funded_fund.withdraw("alice", "A", asset_a, 1000)
        funded_fund.deposit("charlie", "A", asset_a, 500)
        funded_fund.collect_fees(OWNER, "A", asset_a)
        assert funded_fund.get_token_holdings("A") == 500
        assert asset_a.balance_of(FUND_ADDRESS) == 500
        # Fee window restarts only on rebalance, so charlie pays the accrued rate.
        assert funded_fund.withdraw("charlie", "A", asset_a, 500) == 499

    def test_invalid_amount(self, funded_fund, asset_a):
        with pytest.raises(InvalidAmount):
            funded_fund.withdraw("alice", "A", asset_a, 0)

    def test_asset_mismatch(self, funded_fund, asset_b):
        with pytest.raises(AssetMismatch):
            funded_fund.withdraw("alice", "A", asset_b, 10)

    def test_paused(self, funded_fund, asset_a):
        funded_fund.pause(OWNER)
        with pytest.raises(FundPaused):
            funded_fund.withdraw("alice", "A", asset_a, 10)
        assert funded_fund.get_balance("alice") == 1000

    def test_transfer_failure_rolls_back(self, fund):
        asset = FailingAsset("asset-f", "F", fail=False)
        asset.mint("alice", 100)
        fund.add_token(OWNER, "F", 100, asset)
        fund.deposit("alice", "F", asset, 100)

        asset.fail = True
        before = capture_state(fund)
        with pytest.raises(TransferFailed):
            fund.withdraw("alice", "F", asset, 40)
        assert capture_state(fund) == before
        assert fund.get_balance("alice") == 100

    def test_fee_window_resets_after_rebalance(self, funded_fund, asset_a):
        funded_fund.advance_blocks(BLOCKS_PER_YEAR)
        funded_fund.rebalance(OWNER)
        assert funded_fund.preview_withdrawal_fee(1000) == 0
        assert funded_fund.withdraw("alice", "A", asset_a, 1000) == 1000

    def test_preview_rejects_bad_amount(self, fund):
        with pytest.raises(InvalidAmount):
            fund.preview_withdrawal_fee(0)


class TestPauseResume:

    def test_transitions(self, fund):
        fund.pause(OWNER)
        assert fund.status is FundStatus.PAUSED
        fund.resume(OWNER)
        assert fund.status is FundStatus.ACTIVE

    def test_repeated_pause_is_noop(self, fund):
        fund.pause(OWNER)
        fund.pause(OWNER)
        assert fund.is_paused()
        assert [e.kind for e in fund.events] == [EventKind.PAUSED]

    def test_resume_active_is_noop(self, fund):
        fund.resume(OWNER)
        assert fund.events == []

    def test_non_owner_cannot_pause(self, fund):
        with pytest.raises(NotAuthorized):
            fund.pause("alice")
        assert not fund.is_paused()

    def test_non_owner_cannot_resume(self, fund):
        fund.pause(OWNER)
        with pytest.raises(NotAuthorized):
            fund.resume("alice")
        assert fund.is_paused()

    def test_resume_reenables_deposits(self, token_fund, asset_a):
        token_fund.pause(OWNER)
        token_fund.resume(OWNER)
        token_fund.deposit("alice", "A", asset_a, 5)
        assert token_fund.get_balance("alice") == 5


class TestRebalance:

    def test_rebalance_advances_tick(self, funded_fund):
        funded_fund.advance_to(1234)
        report = funded_fund.rebalance(OWNER)
        # A: target 2500, unpriced -> 2500; B: target 7500, nothing held -> 7500
        assert report.total == 10000
        assert funded_fund.get_last_rebalance_tick() == 1234

    def test_non_owner_rejected(self, funded_fund):
        with pytest.raises(NotAuthorized):
            funded_fund.rebalance("alice")

    def test_non_owner_rejected_while_paused(self, funded_fund):
        funded_fund.pause(OWNER)
        with pytest.raises(NotAuthorized) as exc_info:
            funded_fund.rebalance("alice")
        assert not isinstance(exc_info.value, FundPaused)

    def test_paused(self, funded_fund):
        funded_fund.pause(OWNER)
        with pytest.raises(FundPaused):
            funded_fund.rebalance(OWNER)

    def test_threshold_boundary_is_exclusive(self, fund, asset_a):
        # live = 1000 * 2000 / 1000 = 2000, deviation = |2500 - 2000| = 500
        fund.add_token(OWNER, "A", 2500, asset_a)
        fund.update_price(OWNER, "A", 2000)
        fund.deposit("alice", "A", asset_a, 1000)
        fund.advance_to(50)
        assert fund.get_deviation().total == 500
        with pytest.raises(ThresholdNotMet):
            fund.rebalance(OWNER)
        assert fund.get_last_rebalance_tick() == 0

    def test_one_above_threshold(self, fund, asset_a):
        # live = 1000 * 1999 / 1000 = 1999, deviation = 501
        fund.add_token(OWNER, "A", 2500, asset_a)
        fund.update_price(OWNER, "A", 1999)
        fund.deposit("alice", "A", asset_a, 1000)
        fund.advance_to(50)
        assert fund.rebalance(OWNER).total == 501
        assert fund.get_last_rebalance_tick() == 50

    def test_alias(self):
        assert RebalanceThresholdNotMet is ThresholdNotMet

    def test_executor_receives_snapshot(self, asset_a):
        executor = RecordingExecutor()
        fund = IndexFund(OWNER, FUND_ADDRESS, executor=executor, verbose=False)
        fund.add_token(OWNER, "A", 2500, asset_a)
        fund.deposit("alice", "A", asset_a, 1000)
        fund.rebalance(OWNER)
        assert len(executor.calls) == 1
        snapshot, report = executor.calls[0]
        assert snapshot.total_supply == 1000
        assert snapshot.holding("A") == 1000
        assert report.total == 2500

    def test_executor_failure_keeps_tick(self, asset_a):
        fund = IndexFund(OWNER, FUND_ADDRESS, executor=RecordingExecutor(outcome=False), verbose=False)
        fund.add_token(OWNER, "A", 2500, asset_a)
        fund.advance_to(10)
        with pytest.raises(ExecutionFailed):
            fund.rebalance(OWNER)
        assert fund.get_last_rebalance_tick() == 0
        assert fund.events[-1].kind is EventKind.TOKEN_ADDED

    def test_executor_exception_is_wrapped(self, asset_a):
        fund = IndexFund(OWNER, FUND_ADDRESS, executor=RaisingExecutor(), verbose=False)
        fund.add_token(OWNER, "A", 2500, asset_a)
        fund.advance_to(10)
        with pytest.raises(ExecutionFailed) as exc_info:
            fund.rebalance(OWNER)
        assert isinstance(exc_info.value.__cause__, RuntimeError)
        assert fund.get_last_rebalance_tick() == 0

    def test_threshold_not_met_skips_executor(self, asset_a):
        executor = RecordingExecutor()
        fund = IndexFund(OWNER, FUND_ADDRESS, executor=executor, verbose=False)
        with pytest.raises(ThresholdNotMet):
            fund.rebalance(OWNER)
        assert executor.calls == []

    def test_custom_threshold(self, asset_a):
        config = FundConfig(rebalance_threshold_bps=3000)
        fund = IndexFund(OWNER, FUND_ADDRESS, config=config, verbose=False)
        fund.add_token(OWNER, "A", 2500, asset_a)
        with pytest.raises(ThresholdNotMet):
            fund.rebalance(OWNER)


class TestCollectFees:

    def test_collect(self, funded_fund, asset_a):
        funded_fund.advance_blocks(BLOCKS_PER_YEAR)
        funded_fund.withdraw("alice", "A", asset_a, 1000)
        assert funded_fund.collect_fees(OWNER, "A", asset_a) == 3
        assert funded_fund.get_retained_fees("A") == 0
        assert funded_fund.get_token_holdings("A") == 0
        assert asset_a.balance_of(OWNER) == 3
        assert funded_fund.verify_conservation()['valid']

    def test_nothing_to_collect(self, funded_fund, asset_a):
        assert funded_fund.collect_fees(OWNER, "A", asset_a) == 0
        assert asset_a.transfers[-1][2] == FUND_ADDRESS

    def test_non_owner(self, funded_fund, asset_a):
        with pytest.raises(NotAuthorized):
            funded_fund.collect_fees("alice", "A", asset_a)

    def test_paused(self, funded_fund, asset_a):
        funded_fund.pause(OWNER)
        with pytest.raises(FundPaused):
            funded_fund.collect_fees(OWNER, "A", asset_a)


class TestEventsAndClock:

    def test_events_record_operations(self, funded_fund, asset_a):
        funded_fund.advance_blocks(BLOCKS_PER_YEAR)
        funded_fund.withdraw("alice", "A", asset_a, 1000)
        kinds = [e.kind for e in funded_fund.events]
        assert kinds == [EventKind.TOKEN_ADDED, EventKind.TOKEN_ADDED,
                         EventKind.DEPOSIT, EventKind.WITHDRAWAL]
        withdrawal = funded_fund.events[-1]
        assert withdrawal.amount == 1000
        assert withdrawal.data["fee"] == 3
        assert withdrawal.data["net"] == 997
        assert withdrawal.tick == BLOCKS_PER_YEAR
        assert [e.sequence for e in funded_fund.events] == [0, 1, 2, 3]

    def test_rejections_are_not_logged_as_events(self, funded_fund, asset_a):
        count = len(funded_fund.events)
        with pytest.raises(InsufficientBalance):
            funded_fund.withdraw("alice", "A", asset_a, 10**6)
        assert len(funded_fund.events) == count

    def test_events_list_is_a_copy(self, funded_fund):
        funded_fund.events.clear()
        assert len(funded_fund.events) == 3

    def test_clock_cannot_go_backwards(self, fund):
        fund.advance_to(10)
        with pytest.raises(ValueError):
            fund.advance_to(9)
        with pytest.raises(ValueError):
            fund.advance_blocks(-1)
        assert fund.current_tick == 10

    def test_repr(self, funded_fund):
        assert "supply=1000" in repr(funded_fund)
