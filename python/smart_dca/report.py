"""Plain-text formatting of results for notifications and the CLI."""

from __future__ import annotations

from typing import Mapping, Optional

from .types import (
    InvestmentRecommendation,
    RebalanceErrored,
    RebalanceResult,
    RebalanceSkipped,
    ReturnsSummary,
)


def format_currency(amount: float, currency: str = "$") -> str:
    return f"{currency}{amount:,.2f}"


def format_percentage(value: float, decimals: int = 2) -> str:
    """``value`` is a fraction (0.05 -> '5.00%')."""
    return f"{value * 100:.{decimals}f}%"


def generate_rebalance_report(result: RebalanceResult, holdings: Optional[Mapping[str, int]] = None) -> str:
    if isinstance(result, RebalanceSkipped):
        return f"Rebalance status: {result.status}\nReason: {result.reason}"
    if isinstance(result, RebalanceErrored):
        return f"Rebalance status: {result.status}\nReason: {result.message}"

    lines = [f"Rebalance executed on {result.date.isoformat()}", "", "Trades:"]
    for asset, shares in result.non_zero_trades().items():
        action = "BUY" if shares > 0 else "SELL"
        amount = abs(result.amounts.get(asset, 0.0))
        lines.append(f"{asset}: {action} {abs(shares)} shares, amount {format_currency(amount)}")

    if holdings is not None:
        lines.extend(["", "Current holdings:"])
        for asset, shares in holdings.items():
            lines.append(f"{asset}: {shares} shares")
    return "\n".join(lines)


def format_investment_reminder(rec: InvestmentRecommendation) -> str:
    return "\n".join(
        [
            f"Suggested purchase: {rec.symbol}",
            f"Current price: {format_currency(rec.price)}",
            f"Weight: {rec.weight:.2f}",
            f"Shares to buy: {rec.allocation.shares}",
            f"Investment amount: {format_currency(rec.allocation.amount)}",
        ]
    )


def format_rebalance_alert(max_deviation: float, trade_count: int) -> str:
    return "\n".join(
        [
            "Portfolio needs rebalancing",
            f"Max deviation: {format_percentage(max_deviation)}",
            f"Suggested trades: {trade_count}",
        ]
    )


def format_returns(summary: ReturnsSummary) -> str:
    rate = "n/a" if summary.return_rate is None else f"{summary.return_rate:.2f}%"
    lines = [
        f"Total invested: {format_currency(summary.total_investment)}",
        f"Total shares: {summary.total_shares}",
        f"Current value: {format_currency(summary.current_value)}",
        f"Total return: {format_currency(summary.total_return)} ({rate})",
    ]
    if summary.annualized_rate is not None:
        lines.append(f"Annualized return: {summary.annualized_rate:.2f}%")
    return "\n".join(lines)
