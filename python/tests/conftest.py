from __future__ import annotations

from datetime import date

import numpy as np
import pandas as pd
import pytest

from smart_dca.types import PriceSeries


def make_series(symbol: str = "TEST", start: str = "2022-01-03", periods: int = 300, base: float = 100.0) -> PriceSeries:
    """Deterministic business-day series oscillating around a gentle uptrend."""
    idx = pd.bdate_range(start=start, periods=periods, name="Date")
    i = np.arange(periods, dtype=float)
    close = base + 10.0 * np.sin(i / 15.0) + 0.05 * i
    df = pd.DataFrame({"Close": close, "AdjClose": close * 0.98}, index=idx)
    return PriceSeries(df=df, symbol=symbol)


class FakeClock:
    def __init__(self, now: float = 0.0):
        self.now = now

    def __call__(self) -> float:
        return self.now

    def advance(self, seconds: float) -> None:
        self.now += seconds


@pytest.fixture
def series() -> PriceSeries:
    return make_series()


@pytest.fixture
def clock() -> FakeClock:
    return FakeClock(1_000.0)


@pytest.fixture
def jan_15() -> date:
    return date(2024, 1, 15)
