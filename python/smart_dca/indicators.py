"""Indicator computation utilities.

All indicators are computed on the CLOSE series and returned aligned with it.
Windowed indicators are NaN until a full window is available.
"""

from __future__ import annotations

from typing import Iterable, Union

import numpy as np
import pandas as pd

from .config import IndicatorConfig
from .exceptions import InvalidInputError
from .types import IndicatorSet, MacdResult, PriceSeries, as_float_series

SeriesLike = Union[PriceSeries, pd.Series, Iterable[float]]


def _validated(values: SeriesLike, window: int) -> pd.Series:
    if window <= 0:
        raise InvalidInputError("window must be positive")
    series = as_float_series(values)
    if len(series) == 0:
        raise InvalidInputError("cannot compute indicators on an empty series")
    if not np.isfinite(series.to_numpy()).all():
        raise InvalidInputError("series contains NaN or infinite values")
    return series


def simple_moving_average(values: SeriesLike, window: int) -> pd.Series:
    """Trailing arithmetic mean; NaN for the first ``window - 1`` entries."""
    series = _validated(values, window)
    # pandas keeps a running sum (add newest / drop oldest), O(n) overall.
    return series.rolling(window=window, min_periods=window).mean()


def rolling_std(values: SeriesLike, window: int) -> pd.Series:
    """Population standard deviation (ddof=0) of the trailing window."""
    series = _validated(values, window)
    return series.rolling(window=window, min_periods=window).std(ddof=0)


def ema(values: SeriesLike, window: int) -> pd.Series:
    """Exponential moving average seeded with the first value.

    Uses pandas ewm with adjust=False (recursive form), i.e.
    k = 2 / (window + 1) and ema[i] = x[i] * k + ema[i-1] * (1 - k).
    """
    series = _validated(values, window)
    return series.ewm(span=window, adjust=False, min_periods=1).mean()


def macd(values: SeriesLike, fast: int = 12, slow: int = 26, signal: int = 9) -> MacdResult:
    """MACD line, signal line, and histogram (all full length)."""
    series = _validated(values, max(fast, slow, signal))
    macd_line = ema(series, fast) - ema(series, slow)
    signal_line = ema(macd_line, signal)
    hist = macd_line - signal_line
    return MacdResult(macd_line=macd_line, signal_line=signal_line, histogram=hist)


def compute_indicators(values: SeriesLike, cfg: IndicatorConfig) -> IndicatorSet:
    """SMA, rolling std and MACD for one series."""
    series = as_float_series(values)
    return IndicatorSet(
        sma=simple_moving_average(series, cfg.sma_window),
        std=rolling_std(series, cfg.std_window),
        macd=macd(series, cfg.macd_fast, cfg.macd_slow, cfg.macd_signal),
    )
