"""Configuration objects.

Style rules:
- keep signatures stable (no alias chaos)
- prefer explicit field names
- defaults are merged once, at the storage boundary (``AppConfig.with_defaults``)
"""

from __future__ import annotations

import calendar
from dataclasses import dataclass, field, replace
from enum import Enum
from typing import Mapping, Optional, Union

from .exceptions import ConfigurationError


class RebalancePeriod(str, Enum):
    MONTHLY = "MONTHLY"
    QUARTERLY = "QUARTERLY"
    SEMIANNUAL = "SEMIANNUAL"
    ANNUAL = "ANNUAL"

    @property
    def months(self) -> int:
        return _PERIOD_MONTHS[self]

    @classmethod
    def parse(cls, value: Union[str, "RebalancePeriod"]) -> "RebalancePeriod":
        if isinstance(value, RebalancePeriod):
            return value
        try:
            return cls(str(value).strip().upper())
        except ValueError:
            raise ConfigurationError(f"Invalid rebalance period: {value!r}") from None


_PERIOD_MONTHS = {
    RebalancePeriod.MONTHLY: 1,
    RebalancePeriod.QUARTERLY: 3,
    RebalancePeriod.SEMIANNUAL: 6,
    RebalancePeriod.ANNUAL: 12,
}


@dataclass(frozen=True)
class IndicatorConfig:
    """Indicator window configuration."""

    sma_window: int = 200
    std_window: int = 30

    macd_fast: int = 12
    macd_slow: int = 26
    macd_signal: int = 9


@dataclass(frozen=True)
class WeightConfig:
    """Investment sizing: nominal amount per scheduled date and weight bounds."""

    base_investment: float = 1000.0
    min_weight: float = 0.5
    max_weight: float = 2.0


@dataclass(frozen=True)
class ScheduleConfig:
    # Invest on the second occurrence of this weekday each month (Monday=0).
    weekday: int = calendar.WEDNESDAY


@dataclass(frozen=True)
class RebalanceConfig:
    """Periodic rebalancing parameters."""

    enabled: bool = False
    period: RebalancePeriod = RebalancePeriod.QUARTERLY
    # max |target - current| weight before a rebalance is needed (fraction)
    threshold: float = 0.05
    min_trade_amount: float = 1000.0
    # False keeps only successful rebalances in the history ledger.
    record_all_outcomes: bool = True


@dataclass(frozen=True)
class NotificationConfig:
    # market_open and price_alerts are stored preferences only; the daily
    # check reads enabled, investment_due and rebalance_needed.
    enabled: bool = True
    market_open: bool = True
    investment_due: bool = True
    rebalance_needed: bool = True
    price_alerts: bool = True


DEFAULT_TICKERS = ("SPY", "QQQ", "IWM", "DIA", "VTI")


@dataclass(frozen=True)
class AppConfig:
    """Fully specified configuration handed to every component."""

    tickers: tuple[str, ...] = DEFAULT_TICKERS
    indicators: IndicatorConfig = field(default_factory=IndicatorConfig)
    weights: WeightConfig = field(default_factory=WeightConfig)
    schedule: ScheduleConfig = field(default_factory=ScheduleConfig)
    rebalance: RebalanceConfig = field(default_factory=RebalanceConfig)
    notifications: NotificationConfig = field(default_factory=NotificationConfig)

    @classmethod
    def with_defaults(cls, d: Optional[Mapping] = None) -> "AppConfig":
        """Merge a stored (camelCase) config mapping over the defaults.

        Unknown keys are ignored. Missing keys keep their default value.
        """
        d = dict(d or {})
        cfg = cls()

        tickers = d.get("tickers")
        if tickers is not None:
            if isinstance(tickers, str):
                tickers = [t for t in tickers.split(",")]
            cfg = replace(cfg, tickers=tuple(str(t).strip().upper() for t in tickers if str(t).strip()))

        ind_kwargs = {}
        for key, name in (("smaWindow", "sma_window"), ("stdWindow", "std_window")):
            if key in d:
                ind_kwargs[name] = int(d[key])
        if ind_kwargs:
            cfg = replace(cfg, indicators=replace(cfg.indicators, **ind_kwargs))

        w_kwargs = {}
        for key, name in (
            ("baseInvestment", "base_investment"),
            ("minWeight", "min_weight"),
            ("maxWeight", "max_weight"),
        ):
            if key in d:
                w_kwargs[name] = float(d[key])
        if w_kwargs:
            cfg = replace(cfg, weights=replace(cfg.weights, **w_kwargs))

        if "investmentWeekday" in d:
            cfg = replace(cfg, schedule=ScheduleConfig(weekday=int(d["investmentWeekday"])))

        rb_kwargs = {}
        if "rebalanceEnabled" in d:
            rb_kwargs["enabled"] = bool(d["rebalanceEnabled"])
        if "rebalancePeriod" in d:
            rb_kwargs["period"] = RebalancePeriod.parse(d["rebalancePeriod"])
        if "rebalanceThreshold" in d:
            threshold = float(d["rebalanceThreshold"])
            # Stored as a percentage (e.g. 5) by older configs.
            if threshold > 1.0:
                threshold = threshold / 100.0
            rb_kwargs["threshold"] = threshold
        if "minTradeAmount" in d:
            rb_kwargs["min_trade_amount"] = float(d["minTradeAmount"])
        if rb_kwargs:
            cfg = replace(cfg, rebalance=replace(cfg.rebalance, **rb_kwargs))

        notif = d.get("notifications")
        if isinstance(notif, Mapping):
            mapping = {
                "enabled": "enabled",
                "marketOpen": "market_open",
                "investmentDue": "investment_due",
                "rebalanceNeeded": "rebalance_needed",
                "priceAlerts": "price_alerts",
            }
            n_kwargs = {mapping[k]: bool(v) for k, v in notif.items() if k in mapping}
            cfg = replace(cfg, notifications=replace(cfg.notifications, **n_kwargs))

        return cfg

    def to_dict(self) -> dict:
        return {
            "tickers": list(self.tickers),
            "baseInvestment": self.weights.base_investment,
            "smaWindow": self.indicators.sma_window,
            "stdWindow": self.indicators.std_window,
            "minWeight": self.weights.min_weight,
            "maxWeight": self.weights.max_weight,
            "investmentWeekday": self.schedule.weekday,
            "rebalanceEnabled": self.rebalance.enabled,
            "rebalancePeriod": self.rebalance.period.value,
            "rebalanceThreshold": self.rebalance.threshold,
            "minTradeAmount": self.rebalance.min_trade_amount,
            "notifications": {
                "enabled": self.notifications.enabled,
                "marketOpen": self.notifications.market_open,
                "investmentDue": self.notifications.investment_due,
                "rebalanceNeeded": self.notifications.rebalance_needed,
                "priceAlerts": self.notifications.price_alerts,
            },
        }

    def validate(self) -> "AppConfig":
        if len(self.tickers) == 0:
            raise ConfigurationError("tickers must be a non-empty list")
        if self.weights.base_investment <= 0:
            raise ConfigurationError("base investment must be positive")
        if self.weights.min_weight < 0:
            raise ConfigurationError("min weight must be non-negative")
        if self.weights.min_weight >= self.weights.max_weight:
            raise ConfigurationError("min weight must be less than max weight")
        for name in ("sma_window", "std_window", "macd_fast", "macd_slow", "macd_signal"):
            if getattr(self.indicators, name) <= 0:
                raise ConfigurationError(f"{name} must be positive")
        if not 0 <= self.schedule.weekday <= 6:
            raise ConfigurationError("investment weekday must be in 0..6")
        if self.rebalance.threshold < 0:
            raise ConfigurationError("rebalance threshold must be non-negative")
        if self.rebalance.min_trade_amount < 0:
            raise ConfigurationError("min trade amount must be non-negative")
        return self
