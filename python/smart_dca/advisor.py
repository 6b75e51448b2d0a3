"""Daily check: the body of the host's scheduled loop.

Collaborators (quote provider, cache, ledger, notifier) are injected; all
I/O failures are caught here, per ticker, and never abort the check.
"""

from __future__ import annotations

import logging
import math
from dataclasses import dataclass, field
from datetime import date
from typing import Optional, Protocol

from .cache import PriceCache
from .config import AppConfig
from .data_provider import history_window
from .exceptions import SmartDcaError
from .rebalance import RebalanceManager
from .report import format_investment_reminder, format_rebalance_alert, generate_rebalance_report
from .schedule import is_scheduled_date, next_scheduled_date
from .storage import JsonLedger
from .types import InvestmentRecommendation, PriceSeries, Quote, RebalanceResult, RebalanceSuccess, Trade
from .weighting import recommend

logger = logging.getLogger(__name__)


class QuoteProvider(Protocol):
    def fetch_historical(self, symbol: str, start: date, end: date) -> PriceSeries: ...

    def fetch_current(self, symbol: str) -> Quote: ...


class Notifier(Protocol):
    def notify(self, title: str, message: str) -> None: ...


class LoggingNotifier:
    """Default notifier: writes notifications to the log."""

    def __init__(self, logger_: Optional[logging.Logger] = None):
        self.logger = logger_ or logging.getLogger(f"{__name__}.notifications")

    def notify(self, title: str, message: str) -> None:
        self.logger.info("%s\n%s", title, message)


@dataclass
class DailyCheckReport:
    date: date
    investment_day: bool
    next_investment_date: date
    recommendations: list[InvestmentRecommendation] = field(default_factory=list)
    rebalance: Optional[RebalanceResult] = None
    errors: dict[str, str] = field(default_factory=dict)


class InvestmentAdvisor:
    def __init__(
        self,
        config: AppConfig,
        provider: QuoteProvider,
        cache: Optional[PriceCache] = None,
        ledger: Optional[JsonLedger] = None,
        notifier: Optional[Notifier] = None,
        rebalance_manager: Optional[RebalanceManager] = None,
    ):
        self.config = config.validate()
        self.provider = provider
        self.cache = cache if cache is not None else PriceCache()
        self.ledger = ledger
        self.notifier = notifier if notifier is not None else LoggingNotifier()
        self.rebalance_manager = rebalance_manager
        if self.rebalance_manager is None and config.rebalance.enabled:
            self.rebalance_manager = RebalanceManager(config.rebalance)
            if ledger is not None:
                self.rebalance_manager.restore(ledger.load_state())

    def history(self, symbol: str, today: date) -> PriceSeries:
        start, end = history_window(today, self.config.indicators.sma_window)
        return self.cache.get_or_load(
            ("historical", symbol, end.isoformat()),
            lambda: self.provider.fetch_historical(symbol, start, end),
        )

    def recommend(self, symbol: str, today: date) -> InvestmentRecommendation:
        series = self.history(symbol, today)
        quote = self.provider.fetch_current(symbol)
        return recommend(series, self.config.indicators, self.config.weights, current_price=quote.price)

    def run_daily_check(self, today: date) -> DailyCheckReport:
        weekday = self.config.schedule.weekday
        report = DailyCheckReport(
            date=today,
            investment_day=is_scheduled_date(today, weekday),
            next_investment_date=next_scheduled_date(today, weekday),
        )

        if report.investment_day:
            for symbol in self.config.tickers:
                try:
                    rec = self.recommend(symbol, today)
                except SmartDcaError as e:
                    logger.error("Investment check failed for %s: %s", symbol, e)
                    report.errors[symbol] = str(e)
                    continue
                report.recommendations.append(rec)
                try:
                    self._record_investment(rec, today)
                except SmartDcaError as e:
                    logger.error("Recording investment failed for %s: %s", symbol, e)
                    report.errors[symbol] = str(e)
        else:
            logger.info("%s is not an investment day; next is %s", today, report.next_investment_date)

        if self.config.rebalance.enabled and self.rebalance_manager is not None:
            report.rebalance = self._check_rebalance(today, report)
        return report

    def _record_investment(self, rec: InvestmentRecommendation, today: date) -> None:
        logger.info(
            "%s: price=%.2f sma=%.2f weight=%.3f shares=%d amount=%.2f",
            rec.symbol, rec.price, rec.sma, rec.weight, rec.allocation.shares, rec.allocation.amount,
        )
        if self.ledger is not None and rec.allocation.shares > 0:
            self.ledger.append_trade(
                Trade(
                    date=today,
                    symbol=rec.symbol,
                    price=rec.price,
                    shares=rec.allocation.shares,
                    amount=rec.allocation.amount,
                )
            )
        notif = self.config.notifications
        if notif.enabled and notif.investment_due:
            self.notifier.notify("Investment reminder", format_investment_reminder(rec))

    def _check_rebalance(self, today: date, report: DailyCheckReport) -> Optional[RebalanceResult]:
        manager = self.rebalance_manager
        if not manager.is_configured:
            logger.info("Rebalancing enabled but no targets/holdings configured")
            return None

        assets = sorted(set(manager.target_allocations) | set(manager.current_holdings))
        prices: dict[str, float] = {}
        for asset in assets:
            try:
                price = float(self.provider.fetch_current(asset).price)
            except SmartDcaError as e:
                logger.error("Price fetch failed for %s: %s", asset, e)
                report.errors[asset] = str(e)
                continue
            if not math.isfinite(price) or price <= 0:
                logger.error("Unusable price for %s: %s", asset, price)
                report.errors[asset] = f"price must be positive, got {price}"
                continue
            prices[asset] = price
        if len(prices) < len(assets):
            logger.warning("Skipping rebalance check: missing prices for %s", sorted(set(assets) - set(prices)))
            return None

        notif = self.config.notifications
        if notif.enabled and notif.rebalance_needed and manager.needs_rebalance(today, prices):
            trades = manager.required_trades(manager.portfolio_value(prices), prices)
            deviation = manager.max_deviation(manager.current_allocations(prices))
            self.notifier.notify(
                "Rebalance alert",
                format_rebalance_alert(deviation, sum(1 for s in trades.values() if s != 0)),
            )

        result = manager.execute_rebalance(today, prices)
        logger.info("Rebalance check on %s: %s", today, result.status)
        if self.ledger is not None:
            try:
                self.ledger.save_state(manager.state)
            except SmartDcaError as e:
                logger.error("Saving rebalance state failed: %s", e)
                report.errors["rebalance"] = str(e)
        if isinstance(result, RebalanceSuccess) and notif.enabled:
            self.notifier.notify("Rebalance executed", generate_rebalance_report(result, manager.current_holdings))
        return result
