"""Shared types.

The guiding principle is to keep the runtime objects small and explicit.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from datetime import date, datetime
from typing import Dict, Iterable, Optional, Sequence, Union

import numpy as np
import pandas as pd

from .exceptions import InvalidInputError


@dataclass(frozen=True, eq=False)
class PriceSeries:
    """Daily close / adjusted close series for one symbol.

    ``df`` has a DatetimeIndex named ``Date`` (ascending, unique) and float
    columns ``Close`` and ``AdjClose``. Observations with a missing close must
    be dropped before construction (see :meth:`from_records`).
    """

    df: pd.DataFrame
    symbol: str

    def __post_init__(self) -> None:
        df = self.df
        missing = [c for c in ("Close", "AdjClose") if c not in df.columns]
        if missing:
            raise InvalidInputError(f"PriceSeries missing columns: {missing}")
        if len(df) == 0:
            raise InvalidInputError(f"PriceSeries for {self.symbol} is empty")
        if not isinstance(df.index, pd.DatetimeIndex):
            raise InvalidInputError("PriceSeries index must be a DatetimeIndex")
        if not df.index.is_monotonic_increasing or df.index.has_duplicates:
            raise InvalidInputError("PriceSeries dates must be ascending and unique")
        for col in ("Close", "AdjClose"):
            if not np.isfinite(df[col].to_numpy(dtype=float)).all():
                raise InvalidInputError(f"PriceSeries {col} values must be finite")

    @classmethod
    def from_records(
        cls,
        symbol: str,
        dates: Sequence[Union[date, datetime, str]],
        closes: Sequence[Optional[float]],
        adjusted: Optional[Sequence[Optional[float]]] = None,
    ) -> "PriceSeries":
        """Build a series from parallel arrays, dropping null closes."""
        if adjusted is None:
            adjusted = closes
        if not (len(dates) == len(closes) == len(adjusted)):
            raise InvalidInputError("dates, closes and adjusted closes must have the same length")

        df = pd.DataFrame(
            {
                "Close": pd.to_numeric(pd.Series(list(closes), dtype=object), errors="coerce"),
                "AdjClose": pd.to_numeric(pd.Series(list(adjusted), dtype=object), errors="coerce"),
            }
        )
        df.index = pd.DatetimeIndex(pd.to_datetime(list(dates))).normalize()
        df.index.name = "Date"
        df = df[df["Close"].notna()]
        df = df[~df.index.duplicated(keep="last")].sort_index().copy()
        # A missing adjusted close falls back to the raw close.
        adj = df["AdjClose"].to_numpy(dtype=float)
        df["AdjClose"] = np.where(np.isnan(adj), df["Close"].to_numpy(dtype=float), adj)
        return cls(df=df.astype(float), symbol=symbol)

    def __len__(self) -> int:
        return int(len(self.df))

    @property
    def close(self) -> pd.Series:
        return self.df["Close"]

    @property
    def adjusted_close(self) -> pd.Series:
        return self.df["AdjClose"]

    @property
    def dates(self) -> list[date]:
        return [ts.date() for ts in self.df.index]

    def last_close(self) -> float:
        return float(self.df["Close"].iloc[-1])

    def until(self, end: date) -> "PriceSeries":
        """Observations on or before ``end``."""
        return PriceSeries(df=self.df.loc[: pd.Timestamp(end)], symbol=self.symbol)


@dataclass(frozen=True, eq=False)
class MacdResult:
    macd_line: pd.Series
    signal_line: pd.Series
    histogram: pd.Series


@dataclass(frozen=True, eq=False)
class IndicatorSet:
    """Indicator arrays aligned with the source series.

    ``sma`` and ``std`` are NaN before ``window - 1``; MACD is defined everywhere.
    """

    sma: pd.Series
    std: pd.Series
    macd: MacdResult

    def __len__(self) -> int:
        return int(len(self.sma))


@dataclass(frozen=True)
class Quote:
    """Snapshot of the current price."""

    symbol: str
    price: float
    timestamp: datetime
    change: float = float("nan")
    change_percent: float = float("nan")


@dataclass(frozen=True)
class InvestmentAllocation:
    """Whole shares bought and the actual spend (``shares * price``)."""

    shares: int
    amount: float


@dataclass(frozen=True)
class InvestmentRecommendation:
    """Weight and allocation derived for one symbol on one day."""

    symbol: str
    price: float
    sma: float
    std: float
    avg_std: float
    weight: float
    allocation: InvestmentAllocation


@dataclass(frozen=True)
class Trade:
    """A single recorded trade.

    Investment trades carry non-negative shares; rebalance trades are signed.
    """

    date: date
    symbol: str
    price: float
    shares: int
    amount: float

    def to_dict(self) -> dict:
        return {
            "date": self.date.isoformat(),
            "symbol": self.symbol,
            "price": self.price,
            "shares": self.shares,
            "amount": self.amount,
        }

    @classmethod
    def from_dict(cls, d: dict) -> "Trade":
        return cls(
            date=date.fromisoformat(str(d["date"])[:10]),
            symbol=str(d["symbol"]),
            price=float(d["price"]),
            shares=int(d["shares"]),
            amount=float(d["amount"]),
        )


@dataclass(frozen=True)
class ReturnsSummary:
    """Aggregated performance of a trade ledger.

    ``return_rate`` (percent) is None when nothing has been invested.
    """

    total_investment: float
    total_shares: int
    current_value: float
    total_return: float
    return_rate: Optional[float]
    annualized_rate: Optional[float] = None


# ---------------------------------------------------------------------------
# Rebalance results
# ---------------------------------------------------------------------------


@dataclass(frozen=True)
class RebalanceSkipped:
    date: date
    reason: str

    @property
    def status(self) -> str:
        return "skipped"


@dataclass(frozen=True)
class RebalanceErrored:
    date: date
    message: str

    @property
    def status(self) -> str:
        return "error"


@dataclass(frozen=True)
class RebalanceSuccess:
    date: date
    trades: Dict[str, int]
    amounts: Dict[str, float]

    @property
    def status(self) -> str:
        return "success"

    def non_zero_trades(self) -> Dict[str, int]:
        return {asset: shares for asset, shares in self.trades.items() if shares != 0}


RebalanceResult = Union[RebalanceSkipped, RebalanceErrored, RebalanceSuccess]


def result_to_dict(result: RebalanceResult) -> dict:
    out = {"status": result.status, "date": result.date.isoformat()}
    if isinstance(result, RebalanceSkipped):
        out["reason"] = result.reason
    elif isinstance(result, RebalanceErrored):
        out["error"] = result.message
    else:
        out["trades"] = {"shares": dict(result.trades), "amounts": dict(result.amounts)}
    return out


def result_from_dict(d: dict) -> RebalanceResult:
    status = str(d.get("status", "")).lower()
    day = date.fromisoformat(str(d["date"])[:10])
    if status == "skipped":
        return RebalanceSkipped(date=day, reason=str(d.get("reason", "")))
    if status == "error":
        return RebalanceErrored(date=day, message=str(d.get("error", "")))
    if status == "success":
        trades = d.get("trades") or {}
        return RebalanceSuccess(
            date=day,
            trades={k: int(v) for k, v in (trades.get("shares") or {}).items()},
            amounts={k: float(v) for k, v in (trades.get("amounts") or {}).items()},
        )
    raise InvalidInputError(f"Unknown rebalance result status: {status!r}")


@dataclass
class RebalanceState:
    """Mutable state owned by a single RebalanceManager."""

    target_allocations: Dict[str, float] = field(default_factory=dict)
    current_holdings: Dict[str, int] = field(default_factory=dict)
    last_rebalance_date: Optional[date] = None
    history: list = field(default_factory=list)  # list[RebalanceResult]

    def to_dict(self) -> dict:
        return {
            "targetAllocations": dict(self.target_allocations),
            "currentHoldings": dict(self.current_holdings),
            "lastRebalanceDate": self.last_rebalance_date.isoformat() if self.last_rebalance_date else None,
            "rebalanceHistory": [result_to_dict(r) for r in self.history],
        }

    @classmethod
    def from_dict(cls, d: dict) -> "RebalanceState":
        last = d.get("lastRebalanceDate")
        return cls(
            target_allocations={k: float(v) for k, v in (d.get("targetAllocations") or {}).items()},
            current_holdings={k: int(v) for k, v in (d.get("currentHoldings") or {}).items()},
            last_rebalance_date=date.fromisoformat(str(last)[:10]) if last else None,
            history=[result_from_dict(r) for r in (d.get("rebalanceHistory") or [])],
        )


def as_float_series(values: Union[PriceSeries, pd.Series, Iterable[float]]) -> pd.Series:
    """Normalize indicator input to a float Series (closes of a PriceSeries)."""
    if isinstance(values, PriceSeries):
        return values.close.astype(float)
    if isinstance(values, pd.Series):
        return values.astype(float)
    return pd.Series(list(values), dtype=float)
