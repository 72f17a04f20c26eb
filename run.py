#!/usr/bin/env python3
"""
Polymarket Value Agent -- autonomous decision loop.

Each cycle:
  1. Safety breaker check
  2. Fetch markets, score for mispricing, rank by expected value
  3. Size with half-Kelly under safety limits
  4. Execute (paper fills by default, live CLOB orders with --live)
  5. Mark positions to market, publish state

Usage:
  python run.py                 # paper trading (default)
  python run.py --scan-only     # rank opportunities, never trade
  python run.py --once          # single cycle then exit
  python run.py --live          # live trading (needs PRIVATE_KEY + POLYMARKET_PROFILE_ADDRESS)
  python run.py --test-notifications
"""

from __future__ import annotations

import argparse
import logging
import signal
import sys

from client.auth import build_client
from client.llm import LLMScorer
from client.polymarket import PolymarketClient
from config import Config, has_trading_credentials, load_config
from executor.auto import AutoExecutor
from monitor.display import StateReporter, format_opportunities, format_summary, print_startup
from monitor.logger import setup_logging
from monitor.notifier import Notifier
from scanner.scorer import ExternalScorer, HeuristicScorer, Scorer

logger = logging.getLogger(__name__)


_BANNER = r"""
 ____       _                            _        _
|  _ \ ___ | |_   _ _ __ ___   __ _ _ __| | _____| |_
| |_) / _ \| | | | | '_ ` _ \ / _` | '__| |/ / _ \ __|
|  __/ (_) | | |_| | | | | | | (_| | |  |   <  __/ |_
|_|   \___/|_|\__, |_| |_| |_|\__,_|_|  |_|\_\___|\__|
              |___/              Value Agent v0.1
"""


def parse_args(argv: list[str] | None = None) -> argparse.Namespace:
    parser = argparse.ArgumentParser(description="Polymarket Value Agent")
    parser.add_argument("--live", action="store_true", help="Enable live trading (disables paper mode)")
    parser.add_argument("--scan-only", action="store_true", help="Only scan and rank opportunities, do not execute")
    parser.add_argument("--once", action="store_true", help="Run a single cycle and exit")
    parser.add_argument("--bankroll", type=float, default=None, help="Seed bankroll in USD (default: INITIAL_BANKROLL)")
    parser.add_argument("--interval", type=float, default=None, help="Seconds between cycles (default: SCAN_INTERVAL_SEC)")
    parser.add_argument("--llm", action="store_true", help="Score with the LLM analyst (needs LLM_API_KEY)")
    parser.add_argument("--test-notifications", action="store_true", help="Send a test message to each notification channel and exit")
    parser.add_argument("--json-log", type=str, default=None, help="Path to JSON log file for machine-readable output")
    return parser.parse_args(argv)


def apply_cli_overrides(cfg: Config, args: argparse.Namespace) -> Config:
    """CLI flags win over environment. Returns a new Config (immutable)."""
    updates: dict = {}
    if args.live:
        updates["paper_trading"] = False
    if args.scan_only:
        updates["auto_execute"] = False
    if args.bankroll is not None:
        updates["initial_bankroll"] = args.bankroll
    if args.interval is not None:
        updates["scan_interval_sec"] = args.interval
    if args.llm:
        updates["llm_enabled"] = True
    if updates:
        return cfg.model_copy(update=updates)
    return cfg


def build_scorer(cfg: Config) -> Scorer:
    heuristic = HeuristicScorer(cfg.undervalued_threshold, cfg.overvalued_threshold)
    if not cfg.llm_enabled:
        return heuristic
    if not cfg.llm_api_key:
        logger.warning("LLM scoring requested but LLM_API_KEY is empty; using heuristic scorer")
        return heuristic
    llm = LLMScorer(
        api_key=cfg.llm_api_key,
        provider=cfg.llm_provider,
        model=cfg.llm_model,
        timeout_sec=cfg.llm_timeout_sec,
    )
    return ExternalScorer(llm, fallback=heuristic)


def _test_notifications(notifier: Notifier) -> int:
    if not notifier.enabled:
        logger.error("No notification channel configured (TELEGRAM_BOT_TOKEN/TELEGRAM_CHAT_ID or DISCORD_WEBHOOK_URL)")
        return 1
    results = notifier.test_connection()
    for channel, ok in results.items():
        logger.info("  %-8s %s", channel, "ok" if ok else "FAILED")
    return 0 if any(results.values()) else 1


def main(argv: list[str] | None = None) -> int:
    args = parse_args(argv)
    cfg = apply_cli_overrides(load_config(), args)

    log_file_path = setup_logging(cfg.log_level, json_log_file=args.json_log)
    logger.info(_BANNER.strip("\n"))
    logger.info("  Log file: %s", log_file_path)

    if not cfg.paper_trading and not has_trading_credentials(cfg):
        logger.error("PRIVATE_KEY and POLYMARKET_PROFILE_ADDRESS required for live trading.")
        logger.error("Without them orders fall back to paper fills; drop --live to silence this.")

    notifier = Notifier.from_config(cfg)
    if args.test_notifications:
        return _test_notifications(notifier)

    clob_client, authenticated = build_client(cfg)
    polymarket = PolymarketClient(cfg.gamma_host, clob_client, authenticated=authenticated)
    scorer = build_scorer(cfg)
    print_startup(cfg, args, type(scorer).__name__)

    executor = AutoExecutor(
        cfg,
        market_source=polymarket,
        scorer=scorer,
        order_client=polymarket,
        notifier=notifier if notifier.enabled else None,
        on_state_change=StateReporter(),
    )

    if args.once:
        executor.run_cycle()
        state = executor.get_state()
        for line in format_opportunities(state):
            logger.info("  %s", line)
        logger.info("Summary: %s", format_summary(state))
        return 1 if state.safety_triggered else 0

    def handle_signal(signum, frame):
        logger.info("Signal %d received, stopping...", signum)
        executor.stop()

    signal.signal(signal.SIGINT, handle_signal)
    signal.signal(signal.SIGTERM, handle_signal)

    executor.start()
    while not executor.wait(timeout=1.0):
        pass
    executor.stop()

    state = executor.get_state()
    logger.info("Shutting down after %d cycles", executor.cycle_count)
    logger.info("Summary: %s", format_summary(state))
    if state.safety_triggered:
        logger.error("Stopped by safety breaker: %s", state.safety_reason)
        return 1
    return 0


if __name__ == "__main__":
    sys.exit(main())
