"""
Console output for the agent. Formatting helpers plus StateReporter, an
observer that turns published state snapshots into log lines.
"""

from __future__ import annotations

import argparse
import logging

from config import Config
from state.portfolio import AgentState, TradeStatus

logger = logging.getLogger(__name__)

# Box-drawing characters
_TOP = "┌"  # ┌
_MID = "│"  # │
_BOT = "└"  # └
_DASH = "─"  # ─

_MAX_QUESTION_LEN = 50


def _truncate(text: str, length: int = _MAX_QUESTION_LEN) -> str:
    """Truncate text to *length* chars, appending ellipsis if trimmed."""
    if len(text) <= length:
        return text
    return text[: length - 1] + "…"


def mode_label(args: argparse.Namespace, cfg: Config) -> str:
    if getattr(args, "scan_only", False):
        return "SCAN-ONLY"
    if cfg.paper_trading:
        return "PAPER"
    return "LIVE"


def print_startup(cfg: Config, args: argparse.Namespace, scorer_name: str) -> None:
    """Compact config block emitted once after the banner."""
    logger.info("%s%s", _TOP, _DASH * 60)
    logger.info("%s Mode: %s  Scorer: %s  Interval: %.0fs", _MID, mode_label(args, cfg), scorer_name, cfg.scan_interval_sec)
    logger.info(
        "%s Limits: bet $%.2f  daily loss $%.2f  exposure $%.2f  per-market %.0f%%  liquidity $%.0f",
        _MID, cfg.max_bet_size, cfg.max_daily_loss, cfg.max_total_exposure,
        cfg.max_position_percent * 100, cfg.min_liquidity,
    )
    logger.info(
        "%s Thresholds: YES < %.2f  NO > %.2f  min edge %.2f",
        _MID, cfg.undervalued_threshold, cfg.overvalued_threshold, cfg.min_edge,
    )
    logger.info("%s%s", _BOT, _DASH * 60)


def format_opportunities(state: AgentState, limit: int = 5) -> list[str]:
    lines = []
    for i, opp in enumerate(state.opportunities[:limit], 1):
        lines.append(
            f"{i}. {opp.recommended_bet.value:<3} @ {opp.outcome.price:.3f}  "
            f"ev={opp.expected_value:+.2f}  conf={opp.confidence:.2f}  {_truncate(opp.market.question)}"
        )
    return lines


def format_summary(state: AgentState) -> str:
    return (
        f"bankroll=${state.bankroll:.2f}  exposure=${state.total_exposure:.2f}  "
        f"positions={len(state.positions)}  trades={len(state.trades)}  pnl=${state.total_pnl:+.2f}"
    )


class StateReporter:
    """Observer that logs new trades once, safety stops once, and a summary per snapshot."""

    def __init__(self) -> None:
        self._seen_trades: set[str] = set()
        self._safety_reported = False

    def __call__(self, state: AgentState) -> None:
        for trade in reversed(state.trades):
            if trade.id in self._seen_trades or trade.status == TradeStatus.PENDING:
                continue
            self._seen_trades.add(trade.id)
            logger.info(
                "%s %s %s %.2f shares @ %.3f ($%.2f) %s",
                _MID, trade.status.value, trade.outcome, trade.shares, trade.price, trade.total,
                _truncate(trade.market_question),
            )

        if state.safety_triggered and not self._safety_reported:
            self._safety_reported = True
            logger.error("SAFETY STOP: %s", state.safety_reason)
        elif not state.safety_triggered:
            self._safety_reported = False

        logger.debug("State: %s", format_summary(state))
