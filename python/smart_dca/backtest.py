"""Historical replay of the weighted DCA schedule."""

from __future__ import annotations

import logging
from dataclasses import dataclass
from datetime import date
from pathlib import Path
from typing import Optional

import pandas as pd

from .config import AppConfig
from .data_manager import PriceDataManager
from .data_provider import CsvProvider, YfinanceProvider
from .metrics import aggregate_returns, holding_days
from .schedule import scheduled_dates_in_range
from .types import PriceSeries, ReturnsSummary, Trade
from .weighting import compute_investment, compute_weight

logger = logging.getLogger(__name__)


@dataclass(frozen=True, eq=False)
class BacktestResult:
    symbol: str
    trades: list[Trade]
    equity: pd.DataFrame  # index Date; columns Invested, Shares, Value
    summary: ReturnsSummary
    skipped_dates: list[date]


def run_dca_backtest(series: PriceSeries, start: date, end: date, config: AppConfig) -> BacktestResult:
    """Invest on every scheduled date in [start, end].

    Each scheduled date trades at the first observation on or after it. Dates
    without enough history for the indicators are skipped.
    """
    dm = PriceDataManager(series, config.indicators)
    wcfg = config.weights

    trades: list[Trade] = []
    skipped: list[date] = []
    used_bars: set[int] = set()
    for day in scheduled_dates_in_range(start, end, config.schedule.weekday):
        i = dm.index_on_or_after(day)
        if i >= len(dm) or dm.get_context(i).date > end or i in used_bars:
            skipped.append(day)
            continue
        ctx = dm.get_context(i)
        if not ctx.valid:
            logger.debug("%s: insufficient history on %s, skipping", series.symbol, day)
            skipped.append(day)
            continue
        weight = compute_weight(ctx.close, ctx.sma, ctx.std, ctx.avg_std, wcfg.min_weight, wcfg.max_weight)
        alloc = compute_investment(ctx.close, weight, wcfg.base_investment)
        used_bars.add(i)
        trades.append(Trade(date=ctx.date, symbol=series.symbol, price=ctx.close, shares=alloc.shares, amount=alloc.amount))

    equity = _equity_curve(series, trades, start, end)
    last_price = float(equity["Price"].iloc[-1]) if len(equity) else series.last_close()
    days = holding_days(trades, equity.index[-1].date()) if len(equity) else 0
    summary = aggregate_returns(trades, last_price, days=days if days > 0 else None)
    return BacktestResult(
        symbol=series.symbol,
        trades=trades,
        equity=equity.drop(columns=["Price"]),
        summary=summary,
        skipped_dates=skipped,
    )


def _equity_curve(series: PriceSeries, trades: list[Trade], start: date, end: date) -> pd.DataFrame:
    close = series.close.loc[pd.Timestamp(start) : pd.Timestamp(end)]
    eq = pd.DataFrame(index=close.index)
    eq["Price"] = close
    flows = pd.DataFrame(
        [(pd.Timestamp(t.date), t.amount, t.shares) for t in trades],
        columns=["Date", "Invested", "Shares"],
    )
    if len(flows):
        flows = flows.groupby("Date").sum()
    else:
        flows = pd.DataFrame(columns=["Invested", "Shares"], dtype=float)
    eq["Invested"] = flows["Invested"].reindex(eq.index, fill_value=0.0).cumsum()
    eq["Shares"] = flows["Shares"].reindex(eq.index, fill_value=0).cumsum()
    eq["Value"] = eq["Shares"] * eq["Price"]
    return eq


def run_dca_from_yfinance(
    symbol: str,
    start: date,
    end: date,
    config: AppConfig = AppConfig(),
    output_dir: Optional[str | Path] = None,
) -> BacktestResult:
    """Convenience runner using yfinance."""
    # Include warmup bars before `start` so the SMA is defined on the first
    # scheduled date, then trim outputs back to the window.
    warmup_start = pd.Timestamp(start) - pd.Timedelta(days=int(config.indicators.sma_window * 2))
    series = YfinanceProvider().fetch_historical(symbol, warmup_start.date(), end)
    result = run_dca_backtest(series, start, end, config)
    if output_dir is not None:
        write_outputs(result, output_dir)
    return result


def run_dca_from_csv(
    csv_path: str | Path,
    symbol: str,
    start: date,
    end: date,
    config: AppConfig = AppConfig(),
    output_dir: Optional[str | Path] = None,
) -> BacktestResult:
    series = CsvProvider(csv_path).fetch_historical(symbol, None, end)
    result = run_dca_backtest(series, start, end, config)
    if output_dir is not None:
        write_outputs(result, output_dir)
    return result


def write_outputs(result: BacktestResult, output_dir: str | Path) -> dict[str, Path]:
    out_dir = Path(output_dir)
    out_dir.mkdir(parents=True, exist_ok=True)
    stem = result.symbol.replace(".", "_")
    eq_path = out_dir / f"equity_{stem}.csv"
    tr_path = out_dir / f"trades_{stem}.csv"
    result.equity.to_csv(eq_path, encoding="utf-8")
    pd.DataFrame([t.to_dict() for t in result.trades]).to_csv(tr_path, index=False, encoding="utf-8")
    return {"equity": eq_path, "trades": tr_path}
