"""Run the daily signal job over a ticker list.

The active-signal state is read from and written back to ``--state`` so that
only changed signals are reported on the next run.

Example:
    python -m scripts.run_daily_job --tickers AAPL MSFT KO --state state/active.csv --out outputs
"""

from __future__ import annotations

import argparse
import json
import logging
import os
from dataclasses import replace
from pathlib import Path

from weekly_sma.config import IndicatorConfig, JobConfig, SignalConfig, load_params_json
from weekly_sma.daily_job import run_daily_job
from weekly_sma.data_provider import AlphaVantageProvider, FallbackPriceProvider, YfinanceProvider
from weekly_sma.notifications import LoggingDispatcher, WebhookDispatcher
from weekly_sma.tracker import SignalTracker


def _read_tickers(args) -> list[str]:
    tickers = list(args.tickers or [])
    if args.tickers_file:
        path = Path(args.tickers_file)
        for line in path.read_text(encoding="utf-8").splitlines():
            line = line.split("#", 1)[0].strip()
            if line:
                tickers.append(line)
    return tickers


def main() -> None:
    p = argparse.ArgumentParser()
    p.add_argument("--tickers", nargs="*", default=None)
    p.add_argument("--tickers_file", type=str, default=None, help="One ticker per line; '#' starts a comment.")
    p.add_argument("--state", type=str, default="state/active_signals.csv")
    p.add_argument("--out", type=str, default=None, help="Output directory (default: JobConfig.output_dir).")
    p.add_argument("--params", type=str, default=None, help="JSON file with config overrides.")
    p.add_argument("--webhook_url", type=str, default=os.environ.get("SIGNAL_WEBHOOK_URL"))
    p.add_argument("--no_fallback", action="store_true", help="Do not fall back to Alpha Vantage.")
    p.add_argument("--log_level", type=str, default="INFO")
    args = p.parse_args()

    logging.basicConfig(level=args.log_level.upper(), format="%(asctime)s %(levelname)s %(name)s: %(message)s")

    tickers = _read_tickers(args)
    if not tickers:
        raise SystemExit("Provide --tickers or --tickers_file.")

    ind_cfg, sig_cfg, job_cfg = IndicatorConfig(), SignalConfig(), JobConfig()
    if args.params:
        ind_cfg, sig_cfg, job_cfg = load_params_json(args.params)
    if args.out:
        job_cfg = replace(job_cfg, output_dir=args.out)

    yf_prov = YfinanceProvider()
    history = yf_prov if args.no_fallback else FallbackPriceProvider(yf_prov, AlphaVantageProvider())
    dispatcher = WebhookDispatcher(args.webhook_url) if args.webhook_url else LoggingDispatcher()

    tracker = SignalTracker.from_csv(args.state)
    summary = run_daily_job(
        tickers,
        history_provider=history,
        quote_provider=yf_prov,
        tracker=tracker,
        dispatcher=dispatcher,
        ind_cfg=ind_cfg,
        sig_cfg=sig_cfg,
        job_cfg=job_cfg,
    )
    tracker.to_csv(args.state)

    print(json.dumps(summary.counts(), indent=2))
    for key, path in summary.paths.items():
        print(f"{key}: {path}")
    for ticker, err in summary.errors:
        print(f"error {ticker}: {err}")


if __name__ == "__main__":
    main()
