"""Periodic portfolio rebalancing.

State machine per portfolio:
Idle -> Configured (targets + holdings set) -> Evaluating on every cadence
tick -> Skipped | Executed | Errored -> back to Configured.

Callers must serialize ``execute_rebalance`` calls for one manager: holdings
are read then written without any locking.
"""

from __future__ import annotations

import logging
import math
from dataclasses import dataclass
from datetime import date
from typing import Mapping, Optional, Union

import pandas as pd

from .config import RebalanceConfig, RebalancePeriod
from .exceptions import InvalidInputError
from .types import (
    RebalanceErrored,
    RebalanceResult,
    RebalanceSkipped,
    RebalanceState,
    RebalanceSuccess,
)

logger = logging.getLogger(__name__)

SKIP_NOT_NEEDED = "Rebalance not needed"
SKIP_BELOW_MINIMUM = "Trade amounts below minimum"


def month_difference(later: date, earlier: date) -> int:
    """Calendar-month distance, ignoring the day of month."""
    return (later.year - earlier.year) * 12 + (later.month - earlier.month)


def round_half_up(x: float) -> int:
    """Round to nearest, halves away from -inf (rebalance trade sizing)."""
    return int(math.floor(x + 0.5))


@dataclass(frozen=True)
class RebalanceMetrics:
    rebalance_count: int
    successful_rebalances: int
    total_trades: int
    average_trades_per_rebalance: float


class RebalanceManager:
    """Owns one portfolio's RebalanceState and evaluates it on a cadence."""

    def __init__(self, cfg: RebalanceConfig, state: Optional[RebalanceState] = None):
        self.threshold = float(cfg.threshold)
        self.min_trade_amount = float(cfg.min_trade_amount)
        self.period = RebalancePeriod.parse(cfg.period)
        self.record_all_outcomes = bool(cfg.record_all_outcomes)
        self.state = state if state is not None else RebalanceState()
        # Last known prices, used to value holdings between executions.
        self._prices: dict[str, float] = {}

    # ------------------------------------------------------------------
    # configuration
    # ------------------------------------------------------------------
    @property
    def target_allocations(self) -> dict[str, float]:
        return dict(self.state.target_allocations)

    @property
    def current_holdings(self) -> dict[str, int]:
        return dict(self.state.current_holdings)

    @property
    def last_rebalance_date(self) -> Optional[date]:
        return self.state.last_rebalance_date

    @property
    def history(self) -> tuple:
        return tuple(self.state.history)

    def set_target_allocations(self, allocations: Mapping[str, float]) -> None:
        # Weights are expected to sum to 1 but this is not enforced.
        self.state.target_allocations = {str(k): float(v) for k, v in allocations.items()}

    def update_current_holdings(self, holdings: Mapping[str, int]) -> None:
        self.state.current_holdings = {str(k): int(v) for k, v in holdings.items()}

    def update_prices(self, prices: Mapping[str, float]) -> None:
        self._prices = _validated_prices(prices)

    def set_rebalance_period(self, period: Union[str, RebalancePeriod]) -> None:
        self.period = RebalancePeriod.parse(period)

    def restore(self, state: RebalanceState) -> None:
        """Replace the in-memory state with one reloaded from the ledger."""
        self.state = state

    @property
    def is_configured(self) -> bool:
        return bool(self.state.target_allocations) and bool(self.state.current_holdings)

    # ------------------------------------------------------------------
    # evaluation
    # ------------------------------------------------------------------
    def is_rebalance_due(self, today: date) -> bool:
        last = self.state.last_rebalance_date
        if last is None:
            return True
        return month_difference(today, last) >= self.period.months

    def next_rebalance_date(self, today: date) -> date:
        last = self.state.last_rebalance_date
        if last is None:
            return today
        # pandas clamps to month end (Jan 31 + 1 month -> Feb 28/29).
        return (pd.Timestamp(last) + pd.DateOffset(months=self.period.months)).date()

    def portfolio_value(self, prices: Mapping[str, float]) -> float:
        total = 0.0
        for asset, shares in self.state.current_holdings.items():
            total += shares * _price_of(prices, asset)
        return total

    def current_allocations(self, prices: Optional[Mapping[str, float]] = None) -> dict[str, float]:
        """Market-value share of each holding.

        Without any known prices holdings are weighted by share count; the
        last known prices are only used when they cover every holding. An
        empty (zero-value) portfolio reports the target allocations.
        """
        holdings = self.state.current_holdings
        if prices is None:
            prices = self._prices if all(asset in self._prices for asset in holdings) else {}
        if prices:
            values = {asset: shares * _price_of(prices, asset) for asset, shares in holdings.items()}
        else:
            values = {asset: float(shares) for asset, shares in holdings.items()}

        total = sum(values.values())
        if total == 0:
            return dict(self.state.target_allocations)
        return {asset: value / total for asset, value in values.items()}

    def max_deviation(self, current: Mapping[str, float]) -> float:
        deviation = 0.0
        for asset, target in self.state.target_allocations.items():
            deviation = max(deviation, abs(current.get(asset, 0.0) - target))
        return deviation

    def needs_rebalance(self, today: date, prices: Optional[Mapping[str, float]] = None) -> bool:
        if not self.is_rebalance_due(today):
            return False
        return self.max_deviation(self.current_allocations(prices)) > self.threshold

    def required_trades(self, total_value: float, prices: Mapping[str, float]) -> dict[str, int]:
        trades: dict[str, int] = {}
        for asset, weight in self.state.target_allocations.items():
            price = _price_of(prices, asset)
            current_value = self.state.current_holdings.get(asset, 0) * price
            trades[asset] = round_half_up((total_value * weight - current_value) / price)
        return trades

    def trade_amounts(self, trades: Mapping[str, int], prices: Mapping[str, float]) -> dict[str, float]:
        return {asset: shares * _price_of(prices, asset) for asset, shares in trades.items()}

    def trades_meet_minimum(self, trades: Mapping[str, int], prices: Mapping[str, float]) -> bool:
        for asset, shares in trades.items():
            amount = abs(shares * _price_of(prices, asset))
            if 0 < amount < self.min_trade_amount:
                return False
        return True

    def execute_rebalance(self, today: date, prices: Mapping[str, float]) -> RebalanceResult:
        """Evaluate and, if needed, apply a rebalance. Never raises."""
        try:
            prices = _validated_prices(prices)
            self._prices = dict(prices)

            if not self.needs_rebalance(today, prices):
                return self._record(RebalanceSkipped(date=today, reason=SKIP_NOT_NEEDED))

            total_value = self.portfolio_value(prices)
            trades = self.required_trades(total_value, prices)

            # All or nothing: one small trade cancels the whole rebalance.
            if not self.trades_meet_minimum(trades, prices):
                return self._record(RebalanceSkipped(date=today, reason=SKIP_BELOW_MINIMUM))

            amounts = self.trade_amounts(trades, prices)
            holdings = dict(self.state.current_holdings)
            for asset, shares in trades.items():
                holdings[asset] = holdings.get(asset, 0) + shares
            self.state.current_holdings = holdings
            self.state.last_rebalance_date = today

            return self._record(RebalanceSuccess(date=today, trades=trades, amounts=amounts))
        except Exception as e:
            logger.exception("Error during rebalance on %s", today)
            return self._record(RebalanceErrored(date=today, message=str(e)))

    def _record(self, result: RebalanceResult) -> RebalanceResult:
        if self.record_all_outcomes or isinstance(result, RebalanceSuccess):
            self.state.history.append(result)
        return result

    # ------------------------------------------------------------------
    # reporting
    # ------------------------------------------------------------------
    def performance_metrics(self) -> RebalanceMetrics:
        successes = [r for r in self.state.history if isinstance(r, RebalanceSuccess)]
        total_trades = sum(len(r.non_zero_trades()) for r in successes)
        return RebalanceMetrics(
            rebalance_count=len(self.state.history),
            successful_rebalances=len(successes),
            total_trades=total_trades,
            average_trades_per_rebalance=total_trades / (len(successes) or 1),
        )


def _price_of(prices: Mapping[str, float], asset: str) -> float:
    if asset not in prices:
        raise InvalidInputError(f"missing price for {asset}")
    return float(prices[asset])


def _validated_prices(prices: Mapping[str, float]) -> dict[str, float]:
    out: dict[str, float] = {}
    for asset, price in prices.items():
        p = float(price)
        if not math.isfinite(p) or p <= 0:
            raise InvalidInputError(f"price for {asset} must be positive, got {price}")
        out[str(asset)] = p
    return out
