"""
Tests for monitor/notifier.py -- Telegram and Discord delivery via respx.
"""

import json

import httpx
import respx

from config import Config
from monitor.notifier import Notifier
from scanner.models import BettingOpportunity, Market, Outcome, Recommendation, Strategy
from state.portfolio import AgentState, Trade, TradeSide, new_trade_id

TELEGRAM_URL = "https://api.telegram.org/botTOKEN/sendMessage"
DISCORD_URL = "https://discord.com/api/webhooks/1/abc"


def _filled_trade():
    t = Trade(
        id=new_trade_id(),
        market_id="m1",
        market_question="Will it rain?",
        outcome="Yes",
        token_id="y",
        side=TradeSide.BUY,
        shares=25.0,
        price=0.2,
        total=5.0,
        simulated=True,
    )
    t.mark_filled()
    return t


def _opportunity():
    market = Market(
        id="m1",
        question="Will it rain?",
        liquidity=5000.0,
        volume=10000.0,
        outcomes=(Outcome("y", "Yes", 0.85), Outcome("n", "No", 0.15)),
    )
    return BettingOpportunity(
        market=market,
        outcome=market.outcomes[0],
        strategy=Strategy.OVERVALUED,
        recommended_bet=Recommendation.NO,
        confidence=0.65,
        predicted_probability=0.71,
        expected_value=0.93,
    )


class TestNotifier:
    def test_disabled_by_default(self):
        assert Notifier().enabled is False

    def test_telegram_needs_chat_id(self):
        assert Notifier(telegram_bot_token="TOKEN").enabled is False
        assert Notifier(telegram_bot_token="TOKEN", telegram_chat_id="42").enabled is True

    @respx.mock
    def test_trade_to_telegram(self):
        route = respx.post(TELEGRAM_URL).mock(return_value=httpx.Response(200, json={"ok": True}))
        Notifier(telegram_bot_token="TOKEN", telegram_chat_id="42").notify_trade(_filled_trade())

        body = json.loads(route.calls.last.request.content)
        assert body["chat_id"] == "42"
        assert "FILLED [PAPER]" in body["text"]
        assert "Will it rain?" in body["text"]

    @respx.mock
    def test_safety_stop_to_discord(self):
        route = respx.post(DISCORD_URL).mock(return_value=httpx.Response(204))
        Notifier(discord_webhook_url=DISCORD_URL).notify_safety_stop(
            "Bankroll too low: $5.00", AgentState(bankroll=5.0),
        )
        content = json.loads(route.calls.last.request.content)["content"]
        assert "SAFETY STOP" in content
        assert "Bankroll too low: $5.00" in content

    @respx.mock
    def test_both_channels(self):
        tg = respx.post(TELEGRAM_URL).mock(return_value=httpx.Response(200))
        dc = respx.post(DISCORD_URL).mock(return_value=httpx.Response(204))
        Notifier("TOKEN", "42", DISCORD_URL).notify_started()
        assert tg.called
        assert dc.called

    @respx.mock
    def test_delivery_failure_swallowed(self):
        respx.post(TELEGRAM_URL).mock(return_value=httpx.Response(500))
        respx.post(DISCORD_URL).mock(side_effect=httpx.ConnectError("refused"))
        notifier = Notifier("TOKEN", "42", DISCORD_URL)
        notifier.notify_stopped()
        assert notifier._send_telegram("x") is False
        assert notifier._send_discord("x") is False


class TestEventToggles:
    def test_defaults(self):
        notifier = Notifier()
        assert notifier.notify_on_trade is True
        assert notifier.notify_on_opportunity is False
        assert notifier.notify_on_safety_stop is True
        assert notifier.notify_on_daily_summary is True

    def test_from_config(self):
        cfg = Config(
            _env_file=None,
            discord_webhook_url=DISCORD_URL,
            notify_on_trade=False,
            notify_on_opportunity=True,
        )
        notifier = Notifier.from_config(cfg)
        assert notifier.discord_webhook_url == DISCORD_URL
        assert notifier.notify_on_trade is False
        assert notifier.notify_on_opportunity is True

    @respx.mock
    def test_disabled_events_not_sent(self):
        route = respx.post(DISCORD_URL).mock(return_value=httpx.Response(204))
        notifier = Notifier(
            discord_webhook_url=DISCORD_URL,
            notify_on_trade=False,
            notify_on_safety_stop=False,
            notify_on_daily_summary=False,
        )
        notifier.notify_trade(_filled_trade())
        notifier.notify_opportunity(_opportunity())
        notifier.notify_safety_stop("x", AgentState())
        notifier.notify_daily_summary(AgentState())
        assert route.called is False

    @respx.mock
    def test_opportunity_message(self):
        route = respx.post(DISCORD_URL).mock(return_value=httpx.Response(204))
        Notifier(discord_webhook_url=DISCORD_URL, notify_on_opportunity=True).notify_opportunity(_opportunity())
        content = json.loads(route.calls.last.request.content)["content"]
        assert "New opportunity" in content
        assert "OVERVALUED" in content
        assert "NO @ 0.150" in content
        assert "+93.0%" in content

    @respx.mock
    def test_daily_summary_message(self):
        route = respx.post(DISCORD_URL).mock(return_value=httpx.Response(204))
        state = AgentState(bankroll=95.0, today_pnl=1.5, total_pnl=-2.0, trades=[_filled_trade()])
        Notifier(discord_webhook_url=DISCORD_URL).notify_daily_summary(state)
        content = json.loads(route.calls.last.request.content)["content"]
        assert "Daily summary" in content
        assert "Bankroll: $95.00" in content
        assert "Today P&L: $+1.50" in content
        assert "Trades: 1 (100% filled)" in content


class TestConnection:
    @respx.mock
    def test_reports_per_channel(self):
        respx.post(TELEGRAM_URL).mock(return_value=httpx.Response(200))
        respx.post(DISCORD_URL).mock(return_value=httpx.Response(500))
        assert Notifier("TOKEN", "42", DISCORD_URL).test_connection() == {"telegram": True, "discord": False}

    def test_unconfigured_channels_false(self):
        assert Notifier().test_connection() == {"telegram": False, "discord": False}
