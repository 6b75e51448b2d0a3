"""Investment weight and whole-share allocation.

weight = (sma / price) ** (1 + std / avg_std), clamped to [min_weight, max_weight].
Buying below the moving average (and in volatile markets) scales the amount up.
"""

from __future__ import annotations

import math
from typing import Optional

import numpy as np

from .config import IndicatorConfig, WeightConfig
from .exceptions import InvalidInputError
from .indicators import rolling_std, simple_moving_average
from .types import InvestmentAllocation, InvestmentRecommendation, PriceSeries


def _finite(name: str, x: float) -> float:
    x = float(x)
    if not math.isfinite(x):
        raise InvalidInputError(f"{name} must be a finite number, got {x}")
    return x


def compute_weight(
    price: float,
    sma: float,
    std: float,
    avg_std: float,
    min_weight: float = 0.5,
    max_weight: float = 2.0,
) -> float:
    price = _finite("price", price)
    sma = _finite("sma", sma)
    std = _finite("std", std)
    avg_std = _finite("avg_std", avg_std)
    if price <= 0:
        raise InvalidInputError("price must be positive")
    if sma <= 0:
        raise InvalidInputError("sma must be positive")
    if std < 0 or avg_std < 0:
        raise InvalidInputError("standard deviations must be non-negative")
    if not 0 <= min_weight <= max_weight or max_weight <= 0:
        raise InvalidInputError("weight bounds must satisfy 0 <= min_weight <= max_weight, max_weight > 0")

    # No volatility history: fall back to the plain price/average ratio.
    n = 1.0 if avg_std == 0 else 1.0 + std / avg_std

    # Work in log space so extreme ratios saturate instead of overflowing.
    log_ratio = math.log(sma) - math.log(price)
    log_weight = 0.0 if log_ratio == 0 else n * log_ratio
    if log_weight >= math.log(max_weight):
        return float(max_weight)
    weight = math.exp(log_weight)
    return float(min(max(weight, min_weight), max_weight))


def compute_investment(price: float, weight: float, base_investment: float) -> InvestmentAllocation:
    """Whole shares only: shares = floor(base * weight / price)."""
    price = _finite("price", price)
    if price <= 0:
        raise InvalidInputError("price must be positive")
    if weight < 0 or base_investment < 0:
        raise InvalidInputError("weight and base investment must be non-negative")
    shares = int(math.floor(base_investment * weight / price))
    return InvestmentAllocation(shares=shares, amount=shares * price)


def average_std(std: "np.ndarray | list[float]") -> float:
    """Mean of the defined rolling std values (NaN warm-up entries ignored)."""
    arr = np.asarray(std, dtype=float)
    arr = arr[np.isfinite(arr)]
    if arr.size == 0:
        raise InvalidInputError("no defined standard deviation values (series shorter than std window)")
    return float(arr.mean())


def recommend(
    series: PriceSeries,
    ind_cfg: IndicatorConfig,
    weight_cfg: WeightConfig,
    current_price: Optional[float] = None,
) -> InvestmentRecommendation:
    """Weight and allocation for today from a history series.

    ``current_price`` defaults to the last close of the series.
    """
    sma = simple_moving_average(series, ind_cfg.sma_window)
    std = rolling_std(series, ind_cfg.std_window)
    last_sma = float(sma.iloc[-1])
    last_std = float(std.iloc[-1])
    if not (math.isfinite(last_sma) and math.isfinite(last_std)):
        raise InvalidInputError(
            f"{series.symbol}: {len(series)} observations is not enough for "
            f"sma_window={ind_cfg.sma_window} / std_window={ind_cfg.std_window}"
        )
    avg = average_std(std.to_numpy())
    price = series.last_close() if current_price is None else float(current_price)

    weight = compute_weight(price, last_sma, last_std, avg, weight_cfg.min_weight, weight_cfg.max_weight)
    allocation = compute_investment(price, weight, weight_cfg.base_investment)
    return InvestmentRecommendation(
        symbol=series.symbol,
        price=price,
        sma=last_sma,
        std=last_std,
        avg_std=avg,
        weight=weight,
        allocation=allocation,
    )
