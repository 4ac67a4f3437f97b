"""
fund.py - Index fund operations

IndexFund is the only object that mutates fund state. Every public mutating
call follows the same sequence:

    1. take the fund lock (one operation at a time)
    2. snapshot ledger, registry and fund state
    3. check authorization, then the pause flag, then the arguments
    4. call the external collaborator (asset transfer or rebalance executor)
    5. mutate the ledger / registry and append a FundEvent
    6. on any exception, restore the snapshot and re-raise

Balance-mutating operations (deposit, withdraw, rebalance, collect_fees)
require the fund to be ACTIVE. Registry operations (add_token, update_price)
are owner-only but allowed while paused.
"""

from __future__ import annotations
from contextlib import contextmanager
from typing import Dict, Any, Iterator, List, Optional, Tuple
import logging
import threading

from .core import (
    FundConfig, DEFAULT_CONFIG, FundStatus, EventKind, FundEvent,
    TokenEntry, PortfolioSnapshot, AssetContract, RebalanceExecutor,
    FundError, NotAuthorized, FundPaused, InvalidAmount, SelfReferenceRejected,
    AssetMismatch, TransferFailed, ExecutionFailed, ThresholdNotMet,
)
from .ledger import BalanceLedger
from .registry import TokenRegistry
from .fees import blocks_elapsed, compute_fee_for, compute_net
from .deviation import DeviationReport, compute_deviation
from .assets import NoOpRebalanceExecutor

logger = logging.getLogger(__name__)


def _is_int(value) -> bool:
    return isinstance(value, int) and not isinstance(value, bool)


class IndexFund:
    """
    Pooled-asset index fund with a pause-gated, owner-administered state machine.

    Thread Safety:
        All mutating calls are serialized behind one re-entrant lock, so a
        single instance can back a service that accepts concurrent requests.

    Example:
        fund = IndexFund(owner="admin", address="fund")
        fund.add_token("admin", "A", 2500, asset_a)
        fund.deposit("alice", "A", asset_a, 1000)
        fund.withdraw("alice", "A", asset_a, 500)   # -> net amount paid out
    """

    def __init__(
        self,
        owner: str,
        address: str,
        config: Optional[FundConfig] = None,
        executor: Optional[RebalanceExecutor] = None,
        initial_tick: int = 0,
        verbose: bool = True,
    ):
        """
        Create a fund.

        Args:
            owner: identity allowed to administer the fund
            address: the fund's own address (custodian of deposited assets)
            config: fee, threshold and roster parameters (default: DEFAULT_CONFIG)
            executor: rebalance collaborator (default: NoOpRebalanceExecutor)
            initial_tick: block tick at genesis; also the initial last-rebalance tick
            verbose: log committed operations at INFO instead of DEBUG
        """
        if not owner or not owner.strip():
            raise ValueError("owner cannot be empty")
        if not address or not address.strip():
            raise ValueError("address cannot be empty")
        if initial_tick < 0:
            raise ValueError(f"initial_tick cannot be negative, got {initial_tick}")

        self._owner = owner
        self._address = address
        self.config = config or DEFAULT_CONFIG
        self.executor: RebalanceExecutor = executor or NoOpRebalanceExecutor()
        self.verbose = verbose

        self._ledger = BalanceLedger()
        self._registry = TokenRegistry(max_tokens=self.config.max_tokens)
        self._status = FundStatus.ACTIVE
        self._current_tick = initial_tick
        self._last_rebalance_tick = initial_tick
        self._events: List[FundEvent] = []
        self._next_sequence = 0
        self._lock = threading.RLock()

    # ========================================================================
    # READS
    # ========================================================================

    @property
    def owner(self) -> str:
        return self._owner

    @property
    def address(self) -> str:
        return self._address

    @property
    def current_tick(self) -> int:
        """Current block tick of the fund's clock."""
        return self._current_tick

    @property
    def status(self) -> FundStatus:
        return self._status

    def is_paused(self) -> bool:
        return self._status is FundStatus.PAUSED

    def get_balance(self, account: str) -> int:
        """Balance of an account, 0 if it never deposited."""
        return self._ledger.get_balance(account)

    def get_total_supply(self) -> int:
        return self._ledger.total_supply

    def get_token_weight(self, identifier: str) -> int:
        """Target weight of a token in bps, 0 if unknown."""
        return self._registry.target_weight(identifier)

    def get_token_price(self, identifier: str) -> int:
        return self._registry.price(identifier)

    def get_supported_tokens(self) -> List[str]:
        """Registered token identifiers in roster order."""
        return self._registry.identifiers()

    def is_supported(self, identifier: str) -> bool:
        return self._registry.is_supported(identifier)

    def get_token_holdings(self, identifier: str) -> int:
        """Fund-wide custody of a token, retained fees included."""
        return self._ledger.get_holdings(identifier)

    def get_retained_fees(self, identifier: str) -> int:
        return self._ledger.get_retained_fees(identifier)

    def get_last_rebalance_tick(self) -> int:
        return self._last_rebalance_tick

    def preview_withdrawal_fee(self, amount: int) -> int:
        """Fee a withdrawal of ``amount`` would pay at the current tick."""
        if not _is_int(amount) or amount <= 0:
            raise InvalidAmount(f"amount must be a positive integer, got {amount!r}")
        elapsed = blocks_elapsed(self._current_tick, self._last_rebalance_tick)
        return compute_fee_for(amount, elapsed, self.config)

    def snapshot(self) -> PortfolioSnapshot:
        """Read-only picture of roster, holdings and supply at the current tick."""
        with self._lock:
            return PortfolioSnapshot(
                tick=self._current_tick,
                total_supply=self._ledger.total_supply,
                tokens=self._registry.entries(),
                holdings=self._ledger.get_all_holdings(),
            )

    def get_deviation(self) -> DeviationReport:
        """Aggregate deviation of live weights from target, measured fund-wide."""
        return compute_deviation(self.snapshot())

    @property
    def events(self) -> List[FundEvent]:
        """Committed operations in execution order."""
        return list(self._events)

    def verify_conservation(self) -> Dict[str, Any]:
        """Check the ledger invariants; see BalanceLedger.verify_conservation()."""
        with self._lock:
            return self._ledger.verify_conservation()

    # ========================================================================
    # CLOCK
    # ========================================================================

    def advance_to(self, tick: int) -> None:
        """
        Move the fund's clock to a new block tick.

        Raises:
            ValueError: if tick is before the current tick
        """
        with self._lock:
            if tick < self._current_tick:
                raise ValueError(
                    f"Cannot move tick backwards: {tick} < {self._current_tick}"
                )
            self._current_tick = tick

    def advance_blocks(self, blocks: int) -> None:
        if blocks < 0:
            raise ValueError(f"blocks cannot be negative, got {blocks}")
        with self._lock:
            self._current_tick += blocks

    # ========================================================================
    # ADMINISTRATION (owner only, not pause-gated)
    # ========================================================================

    def add_token(
        self,
        caller: str,
        identifier: str,
        target_weight: int,
        asset: AssetContract,
    ) -> TokenEntry:
        """
        Whitelist a token and bind it to an asset contract.

        Raises:
            NotAuthorized: caller is not the owner
            TooManyTokens: roster already holds max_tokens entries
            DuplicateIdentifier: identifier already registered
            InvalidWeight: target_weight is not a positive integer
            SelfReferenceRejected: asset is the fund itself
        """
        with self._atomic("add_token", caller):
            self._require_owner(caller)
            self._registry.check_add(identifier, target_weight)
            if asset.address == self._address:
                raise SelfReferenceRejected(
                    f"Token {identifier} cannot be bound to the fund's own address"
                )
            entry = self._registry.add_token(identifier, target_weight, asset)
            self._record(
                EventKind.TOKEN_ADDED, caller, identifier,
                target_weight=target_weight, asset_address=asset.address,
            )
            return entry

    def update_price(self, caller: str, identifier: str, price: int) -> None:
        """
        Overwrite a token's price.

        Raises:
            NotAuthorized: caller is not the owner
            UnsupportedToken: identifier is not registered
            InvalidPrice: price is not a positive integer
        """
        with self._atomic("update_price", caller):
            self._require_owner(caller)
            old_price = self._registry.price(identifier)
            self._registry.update_price(identifier, price)
            self._record(
                EventKind.PRICE_UPDATED, caller, identifier,
                old_price=old_price, new_price=price,
            )

    def pause(self, caller: str) -> None:
        """Stop deposits, withdrawals and rebalances. Pausing a paused fund is a no-op."""
        with self._atomic("pause", caller):
            self._require_owner(caller)
            if self._status is FundStatus.PAUSED:
                return
            self._status = FundStatus.PAUSED
            self._record(EventKind.PAUSED, caller)

    def resume(self, caller: str) -> None:
        """Re-enable balance-mutating operations. Resuming an active fund is a no-op."""
        with self._atomic("resume", caller):
            self._require_owner(caller)
            if self._status is FundStatus.ACTIVE:
                return
            self._status = FundStatus.ACTIVE
            self._record(EventKind.RESUMED, caller)

    # ========================================================================
    # BALANCE OPERATIONS (pause-gated)
    # ========================================================================

    def deposit(self, caller: str, identifier: str, asset: AssetContract, amount: int) -> None:
        """
        Move ``amount`` of a whitelisted token from caller into the fund.

        The caller's balance and the total supply grow by ``amount``. A token
        with no price yet is still accepted; price only affects deviation.

        Raises:
            FundPaused: fund is paused
            InvalidAmount: amount is not a positive integer
            UnsupportedToken: identifier is not registered
            AssetMismatch: asset is not the contract bound to identifier
            TransferFailed: the asset contract did not move the funds
        """
        with self._atomic("deposit", caller):
            self._require_active()
            self._require_amount(amount)
            self._require_bound_asset(identifier, asset)
            self._transfer(asset, amount, caller, self._address, memo=f"deposit:{identifier}")
            self._ledger.credit(caller, identifier, amount)
            self._record(EventKind.DEPOSIT, caller, identifier, amount)

    def withdraw(self, caller: str, identifier: str, asset: AssetContract, amount: int) -> int:
        """
        Redeem ``amount`` of caller's balance in a whitelisted token.

        The management fee for the blocks since the last rebalance is kept in
        the fund; the rest is transferred to caller. Balance and total supply
        fall by the gross amount.

        Returns:
            Net amount transferred to caller

        Raises:
            FundPaused: fund is paused
            InvalidAmount: amount is not a positive integer
            UnsupportedToken: identifier is not registered
            AssetMismatch: asset is not the contract bound to identifier
            InsufficientBalance: caller's balance (or the fund's custody of
                the token) is too small
            TransferFailed: the asset contract did not move the funds
        """
        with self._atomic("withdraw", caller):
            self._require_active()
            self._require_amount(amount)
            self._require_bound_asset(identifier, asset)

            elapsed = blocks_elapsed(self._current_tick, self._last_rebalance_tick)
            fee = compute_fee_for(amount, elapsed, self.config)
            net = compute_net(amount, fee)
            self._ledger.check_debit(caller, identifier, amount, fee)

            if net > 0:
                self._transfer(asset, net, self._address, caller, memo=f"withdraw:{identifier}")
            self._ledger.debit(caller, identifier, amount, fee)
            self._record(
                EventKind.WITHDRAWAL, caller, identifier, amount,
                fee=fee, net=net, blocks_elapsed=elapsed,
            )
            return net

    def rebalance(self, caller: str) -> DeviationReport:
        """
        Authorize and run a rebalance if live weights have drifted far enough.

        The last-rebalance tick only advances after the executor succeeds.

        Returns:
            The DeviationReport that authorized the rebalance

        Raises:
            NotAuthorized: caller is not the owner
            FundPaused: fund is paused
            ThresholdNotMet: total deviation <= rebalance_threshold_bps
            ExecutionFailed: the executor returned False or raised
        """
        with self._atomic("rebalance", caller):
            self._require_owner(caller)
            self._require_active()

            snapshot = self.snapshot()
            report = compute_deviation(snapshot)
            threshold = self.config.rebalance_threshold_bps
            if not report.exceeds(threshold):
                raise ThresholdNotMet(
                    f"Deviation {report.total} does not exceed threshold {threshold}"
                )

            try:
                ok = self.executor.execute(snapshot, report)
            except FundError:
                raise
            except Exception as exc:
                raise ExecutionFailed(f"Rebalance executor raised: {exc}") from exc
            if not ok:
                raise ExecutionFailed("Rebalance executor reported failure")

            previous = self._last_rebalance_tick
            self._last_rebalance_tick = self._current_tick
            self._record(
                EventKind.REBALANCE, caller,
                deviation=report.total, previous_tick=previous,
            )
            return report

    def collect_fees(self, caller: str, identifier: str, asset: AssetContract) -> int:
        """
        Pay the fees retained for a token out to the owner.

        Returns:
            Amount collected (0 if nothing was retained; no transfer is made)

        Raises:
            NotAuthorized: caller is not the owner
            FundPaused: fund is paused
            UnsupportedToken: identifier is not registered
            AssetMismatch: asset is not the contract bound to identifier
            TransferFailed: the asset contract did not move the funds
        """
        with self._atomic("collect_fees", caller):
            self._require_owner(caller)
            self._require_active()
            self._require_bound_asset(identifier, asset)

            amount = self._ledger.get_retained_fees(identifier)
            if amount == 0:
                return 0
            self._transfer(asset, amount, self._address, self._owner, memo=f"fees:{identifier}")
            self._ledger.release_fees(identifier)
            self._record(EventKind.FEES_COLLECTED, caller, identifier, amount)
            return amount

    # ========================================================================
    # INTERNALS
    # ========================================================================

    @contextmanager
    def _atomic(self, operation: str, caller: str) -> Iterator[None]:
        """
        Run one operation as an all-or-nothing unit under the fund lock.

        Any exception restores ledger, registry, status, ticks and event log
        to their state on entry before propagating.
        """
        with self._lock:
            saved = self._save()
            try:
                yield
            except FundError as e:
                self._load(saved)
                logger.warning("%s by %s rejected [%s]: %s", operation, caller, e.code, e)
                raise
            except Exception:
                self._load(saved)
                logger.exception("%s by %s aborted", operation, caller)
                raise

    def _save(self) -> Tuple[Any, ...]:
        return (
            self._ledger.snapshot(),
            self._registry.snapshot(),
            self._status,
            self._current_tick,
            self._last_rebalance_tick,
            len(self._events),
            self._next_sequence,
        )

    def _load(self, saved: Tuple[Any, ...]) -> None:
        (ledger_state, registry_state, status, tick,
         last_rebalance, event_count, next_sequence) = saved
        self._ledger.restore(ledger_state)
        self._registry.restore(registry_state)
        self._status = status
        self._current_tick = tick
        self._last_rebalance_tick = last_rebalance
        del self._events[event_count:]
        self._next_sequence = next_sequence

    def _require_owner(self, caller: str) -> None:
        if caller != self._owner:
            raise NotAuthorized(f"{caller} is not the fund owner")

    def _require_active(self) -> None:
        if self._status is not FundStatus.ACTIVE:
            raise FundPaused("Fund is paused")

    def _require_amount(self, amount: int) -> None:
        if not _is_int(amount) or amount <= 0:
            raise InvalidAmount(f"amount must be a positive integer, got {amount!r}")

    def _require_bound_asset(self, identifier: str, asset: AssetContract) -> TokenEntry:
        entry = self._registry.get(identifier)
        if asset.address != entry.asset_address:
            raise AssetMismatch(
                f"Token {identifier} is bound to {entry.asset_address}, got {asset.address}"
            )
        return entry

    def _transfer(
        self,
        asset: AssetContract,
        amount: int,
        sender: str,
        recipient: str,
        memo: Optional[str] = None,
    ) -> None:
        try:
            ok = asset.transfer(amount, sender, recipient, memo)
        except FundError:
            raise
        except Exception as exc:
            raise TransferFailed(
                f"Transfer of {amount} from {sender} to {recipient} raised: {exc}"
            ) from exc
        if not ok:
            raise TransferFailed(f"Transfer of {amount} from {sender} to {recipient} failed")

    def _record(
        self,
        kind: EventKind,
        caller: str,
        token_id: Optional[str] = None,
        amount: Optional[int] = None,
        **data: Any,
    ) -> FundEvent:
        event = FundEvent(
            sequence=self._next_sequence,
            tick=self._current_tick,
            kind=kind,
            caller=caller,
            token_id=token_id,
            amount=amount,
            data=data,
        )
        self._next_sequence += 1
        self._events.append(event)
        logger.log(logging.INFO if self.verbose else logging.DEBUG, "%r %s", event, data or "")
        return event

    def __repr__(self) -> str:
        return (
            f"IndexFund({self._address}, owner={self._owner}, {self._status.value}, "
            f"tokens={len(self._registry)}, supply={self._ledger.total_supply}, "
            f"tick={self._current_tick})"
        )
