"""Performance metrics for a DCA trade ledger."""

from __future__ import annotations

import math
from typing import Iterable, Optional

from .exceptions import InvalidInputError
from .types import ReturnsSummary, Trade


def aggregate_returns(trades: Iterable[Trade], current_price: float, days: Optional[int] = None) -> ReturnsSummary:
    """Totals, absolute and percentage return of a trade ledger at ``current_price``.

    ``return_rate`` is None when nothing was invested. When ``days`` is given
    and something was invested, the annualized rate is filled in as well.
    """
    trades = list(trades)
    if not math.isfinite(float(current_price)) or current_price < 0:
        raise InvalidInputError("current price must be a non-negative finite number")

    total_investment = float(sum(t.amount for t in trades))
    total_shares = int(sum(t.shares for t in trades))
    current_value = total_shares * float(current_price)
    total_return = current_value - total_investment

    return_rate = None
    annualized = None
    if total_investment != 0:
        return_rate = total_return / total_investment * 100.0
        if days is not None:
            annualized = annualized_return(total_return, total_investment, days)

    return ReturnsSummary(
        total_investment=total_investment,
        total_shares=total_shares,
        current_value=current_value,
        total_return=total_return,
        return_rate=return_rate,
        annualized_rate=annualized,
    )


def annualized_return(total_return: float, total_investment: float, days: float) -> float:
    """((1 + R) ** (365.25 / days) - 1) * 100 with R = total_return / total_investment."""
    if days <= 0:
        raise InvalidInputError("days must be positive")
    if total_investment <= 0:
        raise InvalidInputError("total investment must be positive")
    growth = 1.0 + total_return / total_investment
    if growth < 0:
        raise InvalidInputError("loss exceeds the amount invested")
    try:
        return (growth ** (365.25 / days) - 1.0) * 100.0
    except OverflowError:
        raise InvalidInputError(f"annualized return overflows for days={days}") from None


def holding_days(trades: Iterable[Trade], as_of) -> int:
    """Calendar days from the first trade to ``as_of`` (0 for an empty ledger)."""
    dates = [t.date for t in trades]
    if not dates:
        return 0
    return (as_of - min(dates)).days
