"""Data manager: computes indicators once and serves per-bar weighting context."""

from __future__ import annotations

from dataclasses import dataclass
from datetime import date

import numpy as np
import pandas as pd

from .config import IndicatorConfig
from .indicators import compute_indicators
from .types import IndicatorSet, PriceSeries


@dataclass(frozen=True)
class WeightContext:
    """Inputs of the weight formula at one bar (no lookahead)."""

    valid: bool
    date: date
    close: float
    sma: float
    std: float
    avg_std: float


class PriceDataManager:
    """Holds a PriceSeries and its indicator arrays for a single symbol."""

    def __init__(self, series: PriceSeries, ind_cfg: IndicatorConfig):
        self.symbol = series.symbol
        self.series = series
        self.ind_cfg = ind_cfg
        self.indicators: IndicatorSet = compute_indicators(series, ind_cfg)

        std = self.indicators.std.to_numpy(dtype=float)
        finite = np.isfinite(std)
        # Expanding mean of the defined std values, so bar i only sees bars <= i.
        counts = np.cumsum(finite)
        sums = np.cumsum(np.where(finite, std, 0.0))
        with np.errstate(invalid="ignore", divide="ignore"):
            self._avg_std = np.where(counts > 0, sums / np.maximum(counts, 1), np.nan)

    def __len__(self) -> int:
        return len(self.series)

    def frame(self) -> pd.DataFrame:
        """Series and indicators side by side (handy for charts / CSV export)."""
        df = self.series.df.copy()
        df["sma"] = self.indicators.sma.to_numpy()
        df["std"] = self.indicators.std.to_numpy()
        df["avgStd"] = self._avg_std
        df["macdLine"] = self.indicators.macd.macd_line.to_numpy()
        df["macdSignal"] = self.indicators.macd.signal_line.to_numpy()
        df["macdHist"] = self.indicators.macd.histogram.to_numpy()
        return df

    def index_on_or_after(self, day: date) -> int:
        """Position of the first observation on/after ``day`` (len(self) if none)."""
        return int(self.series.df.index.searchsorted(pd.Timestamp(day), side="left"))

    def get_context(self, i: int) -> WeightContext:
        ts = self.series.df.index[i]
        close = float(self.series.close.iloc[i])
        sma = float(self.indicators.sma.iloc[i])
        std = float(self.indicators.std.iloc[i])
        avg_std = float(self._avg_std[i])
        valid = bool(np.isfinite(sma) and np.isfinite(std) and np.isfinite(avg_std))
        return WeightContext(valid=valid, date=ts.date(), close=close, sma=sma, std=std, avg_std=avg_std)
