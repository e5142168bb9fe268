"""Evaluate one ticker against the weekly SMA rules and print the result.

Example (yfinance):
    python -m scripts.evaluate_ticker --symbol AAPL

Example (CSV with Date,Close columns and an explicit price):
    python -m scripts.evaluate_ticker --symbol AAPL --csv aapl_weekly.csv --price 187.5
"""

from __future__ import annotations

import argparse
import json
import logging
from dataclasses import asdict
from datetime import date

from weekly_sma.config import IndicatorConfig, SignalConfig, load_params_json
from weekly_sma.data_manager import WeeklySeriesManager, current_week_ending, upsert_weekly_close
from weekly_sma.data_provider import CsvProvider, YfinanceProvider


def main() -> None:
    p = argparse.ArgumentParser()
    p.add_argument("--symbol", type=str, required=True)
    p.add_argument("--csv", type=str, default=None, help="Weekly CSV path (Date,Close).")
    p.add_argument("--price", type=float, default=None, help="Current price. Default: live quote, or last close for CSV.")
    p.add_argument("--years", type=int, default=10, help="Years of weekly history to fetch from yfinance.")
    p.add_argument("--params", type=str, default=None, help="JSON file with threshold/window overrides.")
    p.add_argument("--margin", type=float, default=None, help="Derive thresholds from the base set with this margin (pct).")
    p.add_argument("--log_level", type=str, default="INFO")
    args = p.parse_args()

    logging.basicConfig(level=args.log_level.upper(), format="%(asctime)s %(levelname)s %(name)s: %(message)s")

    ind_cfg, sig_cfg = IndicatorConfig(), SignalConfig()
    if args.params:
        ind_cfg, sig_cfg, _ = load_params_json(args.params)
    if args.margin is not None:
        sig_cfg = SignalConfig.with_margin(args.margin)

    symbol = args.symbol.strip().upper()
    name = symbol
    if args.csv:
        series = CsvProvider().fetch_weekly_csv(args.csv)
        if not series:
            raise SystemExit(f"No rows in {args.csv}")
        price = args.price if args.price is not None else series[-1].close_price
    else:
        prov = YfinanceProvider()
        series = prov.fetch_weekly(symbol, args.years)
        price = args.price
        if price is None:
            quote = prov.fetch_quote(symbol)
            if quote is None:
                raise SystemExit(f"Failed to fetch latest price for {symbol}")
            price, name = quote.price, quote.display_name
        series = upsert_weekly_close(series, current_week_ending(date.today()), price)

    analysis = WeeklySeriesManager(symbol, series, ind_cfg).evaluate(price, sig_cfg)

    out = {
        "ticker": symbol,
        "name": name,
        "signal": analysis.signal_type.value,
        "sma_period_used": analysis.sma_period_used,
        "slope_direction": analysis.slope_direction.value,
        "buy": asdict(analysis.buy),
        "sell": asdict(analysis.sell),
    }
    print(json.dumps(out, indent=2))


if __name__ == "__main__":
    main()
