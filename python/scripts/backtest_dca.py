from __future__ import annotations

import argparse
import logging
from datetime import date

from smart_dca.backtest import run_dca_from_csv, run_dca_from_yfinance
from smart_dca.config import AppConfig, IndicatorConfig, WeightConfig
from smart_dca.report import format_returns


def main():
    p = argparse.ArgumentParser(description="Replay the weighted DCA schedule on historical data.")
    p.add_argument("--symbol", type=str, default="SPY")
    p.add_argument("--start", type=str, default="2019-01-01")
    p.add_argument("--end", type=str, default="2023-12-31")
    p.add_argument("--output_dir", type=str, default="outputs")
    p.add_argument("--csv", type=str, default=None, help="CSV path (Date,Close[,Adj Close]).")
    p.add_argument("--base_investment", type=float, default=1000.0)
    p.add_argument("--min_weight", type=float, default=0.5)
    p.add_argument("--max_weight", type=float, default=2.0)
    p.add_argument("--sma_window", type=int, default=200)
    p.add_argument("--std_window", type=int, default=30)
    p.add_argument("--log_level", type=str, default="WARNING")
    args = p.parse_args()

    logging.basicConfig(level=args.log_level.upper())

    config = AppConfig(
        tickers=(args.symbol,),
        indicators=IndicatorConfig(sma_window=args.sma_window, std_window=args.std_window),
        weights=WeightConfig(
            base_investment=args.base_investment,
            min_weight=args.min_weight,
            max_weight=args.max_weight,
        ),
    ).validate()
    start = date.fromisoformat(args.start)
    end = date.fromisoformat(args.end)

    if args.csv:
        result = run_dca_from_csv(args.csv, args.symbol, start, end, config, output_dir=args.output_dir)
    else:
        result = run_dca_from_yfinance(args.symbol, start, end, config, output_dir=args.output_dir)

    print(f"{result.symbol}: {len(result.trades)} investments, {len(result.skipped_dates)} skipped dates")
    print(format_returns(result.summary))


if __name__ == "__main__":
    main()
