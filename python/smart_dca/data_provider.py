"""Quote providers (yfinance / CSV) producing PriceSeries and Quote snapshots."""

from __future__ import annotations

import logging
from datetime import date, datetime, timedelta
from pathlib import Path
from typing import Optional, Union

import numpy as np
import pandas as pd

from .exceptions import InvalidInputError, UpstreamError
from .types import PriceSeries, Quote

logger = logging.getLogger(__name__)

DateLike = Union[date, datetime, str]


def _standardize_close_columns(df: pd.DataFrame) -> pd.DataFrame:
    # yfinance can return MultiIndex columns depending on options/version.
    # We standardize to a simple 1-level column index.
    if isinstance(df.columns, pd.MultiIndex):
        df = df.copy()
        # Common yfinance layout: (field, ticker)
        if df.columns.nlevels >= 2:
            tickers = list(dict.fromkeys(df.columns.get_level_values(-1)))
            if len(tickers) == 1:
                df.columns = df.columns.get_level_values(0)
            else:
                # multiple tickers -> keep only the first ticker's fields
                df = df.xs(tickers[0], axis=1, level=-1, drop_level=True)

    rename_map = {}
    for col in df.columns:
        c = str(col).strip().lower()
        if c == "close":
            rename_map[col] = "Close"
        elif c in {"adj close", "adjclose", "adjusted close"}:
            rename_map[col] = "AdjClose"
    df = df.rename(columns=rename_map)

    if "Close" not in df.columns and "AdjClose" in df.columns:
        df = df.assign(Close=df["AdjClose"])
    if "Close" not in df.columns:
        raise InvalidInputError(f"Missing Close column, got: {list(df.columns)}")
    if "AdjClose" not in df.columns:
        df = df.assign(AdjClose=df["Close"])

    df = df[["Close", "AdjClose"]].apply(pd.to_numeric, errors="coerce")
    # Upstream null quotes are dropped, not interpolated.
    df = df[df["Close"].notna()].copy()

    idx = pd.DatetimeIndex(pd.to_datetime(df.index))
    if idx.tz is not None:
        idx = idx.tz_localize(None)
    df.index = idx.normalize()
    df.index.name = "Date"
    df = df[~df.index.duplicated(keep="last")].sort_index().copy()
    adj = df["AdjClose"].to_numpy(dtype=float)
    df["AdjClose"] = np.where(np.isnan(adj), df["Close"].to_numpy(dtype=float), adj)
    return df.astype(float)


class YfinanceProvider:
    """Fetch daily history and current quotes from yfinance."""

    def fetch_historical(self, symbol: str, start: DateLike, end: DateLike) -> PriceSeries:
        import yfinance as yf  # local import to keep dependency optional in some environments

        # yfinance treats `end` as exclusive.
        end_exclusive = pd.Timestamp(end) + pd.Timedelta(days=1)
        try:
            df = yf.download(
                tickers=symbol,
                start=str(pd.Timestamp(start).date()),
                end=str(end_exclusive.date()),
                interval="1d",
                auto_adjust=False,
                progress=False,
            )
        except Exception as e:
            raise UpstreamError(f"yfinance download failed for symbol={symbol}: {e}") from e
        if df is None or len(df) == 0:
            raise InvalidInputError(f"yfinance returned empty data for symbol={symbol}")

        df = _standardize_close_columns(df)
        logger.debug("Fetched %d observations for %s", len(df), symbol)
        return PriceSeries(df=df, symbol=symbol)

    def fetch_current(self, symbol: str) -> Quote:
        import yfinance as yf

        try:
            hist = yf.Ticker(symbol).history(period="5d", interval="1d", auto_adjust=False)
        except Exception as e:
            raise UpstreamError(f"yfinance quote failed for symbol={symbol}: {e}") from e
        if hist is None or len(hist) == 0:
            raise InvalidInputError(f"yfinance returned no quote for symbol={symbol}")

        hist = _standardize_close_columns(hist)
        price = float(hist["Close"].iloc[-1])
        change = float("nan")
        change_percent = float("nan")
        if len(hist) >= 2:
            prev = float(hist["Close"].iloc[-2])
            change = price - prev
            change_percent = change / prev * 100.0 if prev else float("nan")
        return Quote(
            symbol=symbol,
            price=price,
            timestamp=hist.index[-1].to_pydatetime(),
            change=change,
            change_percent=change_percent,
        )


class CsvProvider:
    """Load a Date,Close[,Adj Close] CSV file (one file per symbol)."""

    def __init__(self, csv_path: str | Path, datetime_col: str = "Date"):
        self.csv_path = Path(csv_path)
        self.datetime_col = datetime_col

    def _load(self, symbol: str) -> pd.DataFrame:
        path = self.csv_path
        if path.is_dir():
            path = path / f"{symbol.replace('.', '_')}.csv"
        if not path.exists():
            raise UpstreamError(f"CSV not found: {path}")

        try:
            df = pd.read_csv(path)
        except (pd.errors.ParserError, pd.errors.EmptyDataError, UnicodeDecodeError) as e:
            raise InvalidInputError(f"{path} is not a readable CSV: {e}") from e
        except OSError as e:
            raise UpstreamError(f"cannot read {path}: {e}") from e
        datetime_col = self.datetime_col
        if datetime_col not in df.columns:
            # try common alternatives
            for cand in ["Datetime", "datetime", "date", "timestamp", "Time", "time"]:
                if cand in df.columns:
                    datetime_col = cand
                    break
        if datetime_col not in df.columns:
            raise InvalidInputError(f"CSV must contain a datetime column. Tried '{datetime_col}' and common aliases.")

        try:
            df[datetime_col] = pd.to_datetime(df[datetime_col])
        except (ValueError, TypeError) as e:
            raise InvalidInputError(f"{path} has unparseable dates in {datetime_col}: {e}") from e
        df = df.set_index(datetime_col).sort_index()
        return _standardize_close_columns(df)

    def fetch_historical(self, symbol: str, start: Optional[DateLike], end: Optional[DateLike]) -> PriceSeries:
        """Observations in [start, end]; None leaves that side open."""
        df = self._load(symbol)
        lo = None if start is None else pd.Timestamp(start)
        hi = None if end is None else pd.Timestamp(end)
        df = df.loc[lo:hi]
        if len(df) == 0:
            raise InvalidInputError(f"no CSV observations for {symbol} between {start} and {end}")
        return PriceSeries(df=df, symbol=symbol)

    def fetch_current(self, symbol: str) -> Quote:
        """The last row of the file stands in for the live quote."""
        df = self._load(symbol)
        if len(df) == 0:
            raise InvalidInputError(f"CSV for {symbol} has no observations")
        return Quote(symbol=symbol, price=float(df["Close"].iloc[-1]), timestamp=df.index[-1].to_pydatetime())


def history_window(today: date, sma_window: int, min_days: int = 365) -> tuple[date, date]:
    """Calendar window wide enough to warm up an SMA of ``sma_window`` trading days."""
    # calendar days approximation (weekends/holidays) for daily bars
    days = max(min_days, int(sma_window * 2))
    return today - timedelta(days=days), today
