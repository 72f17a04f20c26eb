"""
Best-effort trade and safety notifications to Telegram and Discord.

Delivery failures are logged and swallowed: a dead webhook must never
change what the executor does. Each event kind can be switched off on
its own; opportunity alerts are off by default.
"""

from __future__ import annotations

import logging

import httpx

from scanner.models import BettingOpportunity
from state.portfolio import AgentState, Trade, TradeStatus

logger = logging.getLogger(__name__)

_TIMEOUT = 10.0
_TELEGRAM_API = "https://api.telegram.org"
_TEST_MESSAGE = "\U0001f9ea Test notification from Polymarket agent"


class Notifier:
    def __init__(
        self,
        telegram_bot_token: str = "",
        telegram_chat_id: str = "",
        discord_webhook_url: str = "",
        notify_on_trade: bool = True,
        notify_on_opportunity: bool = False,
        notify_on_safety_stop: bool = True,
        notify_on_daily_summary: bool = True,
    ) -> None:
        self.telegram_bot_token = telegram_bot_token
        self.telegram_chat_id = telegram_chat_id
        self.discord_webhook_url = discord_webhook_url
        self.notify_on_trade = notify_on_trade
        self.notify_on_opportunity = notify_on_opportunity
        self.notify_on_safety_stop = notify_on_safety_stop
        self.notify_on_daily_summary = notify_on_daily_summary

    @classmethod
    def from_config(cls, cfg) -> Notifier:
        return cls(
            telegram_bot_token=cfg.telegram_bot_token,
            telegram_chat_id=cfg.telegram_chat_id,
            discord_webhook_url=cfg.discord_webhook_url,
            notify_on_trade=cfg.notify_on_trade,
            notify_on_opportunity=cfg.notify_on_opportunity,
            notify_on_safety_stop=cfg.notify_on_safety_stop,
            notify_on_daily_summary=cfg.notify_on_daily_summary,
        )

    @property
    def has_telegram(self) -> bool:
        return bool(self.telegram_bot_token and self.telegram_chat_id)

    @property
    def enabled(self) -> bool:
        return self.has_telegram or bool(self.discord_webhook_url)

    def notify_trade(self, trade: Trade) -> None:
        if not self.notify_on_trade:
            return
        icon = "✅" if trade.status == TradeStatus.FILLED else "❌"
        mode = "PAPER" if trade.simulated else "LIVE"
        lines = [
            f"{icon} Trade {trade.status.value} [{mode}]",
            f"Market: {trade.market_question}",
            f"{trade.side.value} {trade.outcome}: {trade.shares:.2f} shares @ ${trade.price:.3f}",
            f"Total: ${trade.total:.2f}",
        ]
        if trade.error:
            lines.append(f"Error: {trade.error}")
        self._broadcast("\n".join(lines))

    def notify_opportunity(self, opp: BettingOpportunity) -> None:
        if not self.notify_on_opportunity:
            return
        self._broadcast("\n".join([
            "\U0001f3af New opportunity",
            f"Market: {opp.market.question}",
            f"Strategy: {opp.strategy.value}",
            f"Bet: {opp.recommended_bet.value} @ {opp.bet_price:.3f}",
            f"Confidence: {opp.confidence:.0%}",
            f"EV: {opp.expected_value:+.1%}",
        ]))

    def notify_safety_stop(self, reason: str, state: AgentState) -> None:
        if not self.notify_on_safety_stop:
            return
        self._broadcast("\n".join([
            "⚠️ SAFETY STOP",
            f"Reason: {reason}",
            f"Bankroll: ${state.bankroll:.2f}",
            f"Today P&L: ${state.today_pnl:.2f}",
            f"Total P&L: ${state.total_pnl:.2f}",
            f"Open positions: {len(state.positions)}",
        ]))

    def notify_daily_summary(self, state: AgentState) -> None:
        if not self.notify_on_daily_summary:
            return
        filled = sum(1 for t in state.trades if t.status == TradeStatus.FILLED)
        fill_rate = filled / len(state.trades) if state.trades else 0.0
        self._broadcast("\n".join([
            "\U0001f4ca Daily summary",
            f"Bankroll: ${state.bankroll:.2f}",
            f"Today P&L: ${state.today_pnl:+.2f}",
            f"Total P&L: ${state.total_pnl:+.2f}",
            f"Trades: {len(state.trades)} ({fill_rate:.0%} filled)",
            f"Open positions: {len(state.positions)}",
            f"Opportunities: {len(state.opportunities)}",
        ]))

    def notify_started(self) -> None:
        self._broadcast("\U0001f916 Agent started")

    def notify_stopped(self) -> None:
        self._broadcast("\U0001f6d1 Agent stopped")

    def test_connection(self) -> dict[str, bool]:
        """Send a test message to each configured channel. Unconfigured channels report False."""
        return {
            "telegram": self.has_telegram and self._send_telegram(_TEST_MESSAGE),
            "discord": bool(self.discord_webhook_url) and self._send_discord(_TEST_MESSAGE),
        }

    def _broadcast(self, message: str) -> None:
        if self.has_telegram:
            self._send_telegram(message)
        if self.discord_webhook_url:
            self._send_discord(message)

    def _send_telegram(self, message: str) -> bool:
        url = f"{_TELEGRAM_API}/bot{self.telegram_bot_token}/sendMessage"
        try:
            resp = httpx.post(url, json={"chat_id": self.telegram_chat_id, "text": message}, timeout=_TIMEOUT)
            resp.raise_for_status()
        except httpx.HTTPError as e:
            logger.warning("Telegram notification failed: %s", e)
            return False
        return True

    def _send_discord(self, message: str) -> bool:
        try:
            resp = httpx.post(self.discord_webhook_url, json={"content": message}, timeout=_TIMEOUT)
            resp.raise_for_status()
        except httpx.HTTPError as e:
            logger.warning("Discord notification failed: %s", e)
            return False
        return True
