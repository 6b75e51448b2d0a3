from __future__ import annotations

import argparse
import logging
from datetime import date
from pathlib import Path

from smart_dca.advisor import InvestmentAdvisor
from smart_dca.data_provider import CsvProvider, YfinanceProvider
from smart_dca.report import generate_rebalance_report
from smart_dca.storage import JsonConfigStore, JsonLedger


def main():
    p = argparse.ArgumentParser(description="Run the scheduled DCA / rebalance check for one day.")
    p.add_argument("--config", type=str, default="smart_dca_config.json", help="Config JSON path (defaults if absent).")
    p.add_argument("--ledger", type=str, default="smart_dca_ledger.json", help="Trade ledger JSON path.")
    p.add_argument("--date", type=str, default=None, help="Check date (YYYY-MM-DD). Default: today.")
    p.add_argument("--csv", type=str, default=None, help="CSV file or directory (<SYMBOL>.csv) instead of yfinance.")
    p.add_argument("--dry_run", action="store_true", help="Do not write trades to the ledger.")
    p.add_argument("--log_level", type=str, default="INFO")
    args = p.parse_args()

    logging.basicConfig(level=args.log_level.upper(), format="%(asctime)s %(levelname)s %(name)s: %(message)s")

    today = date.fromisoformat(args.date) if args.date else date.today()
    config = JsonConfigStore(args.config).load()
    provider = CsvProvider(args.csv) if args.csv else YfinanceProvider()
    ledger = None if args.dry_run else JsonLedger(Path(args.ledger))

    advisor = InvestmentAdvisor(config, provider, ledger=ledger)
    report = advisor.run_daily_check(today)

    print(f"date={report.date} investment_day={report.investment_day} next={report.next_investment_date}")
    for rec in report.recommendations:
        print(
            f"{rec.symbol}: price={rec.price:.2f} sma={rec.sma:.2f} weight={rec.weight:.3f} "
            f"shares={rec.allocation.shares} amount={rec.allocation.amount:.2f}"
        )
    if report.rebalance is not None:
        print(generate_rebalance_report(report.rebalance, advisor.rebalance_manager.current_holdings))
    for symbol, err in report.errors.items():
        print(f"ERROR {symbol}: {err}")


if __name__ == "__main__":
    main()
