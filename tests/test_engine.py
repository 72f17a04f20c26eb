"""
Unit tests for executor/engine.py -- paper fills and live order routing.
"""

import random
from unittest.mock import MagicMock

import pytest

from client.platform import OrderRequest, OrderResult
from executor.engine import FillSimulator, execute_trade, should_simulate
from state.portfolio import Trade, TradeSide, TradeStatus, new_trade_id


def _trade(simulated=True, total=10.0, price=0.2):
    return Trade(
        id=new_trade_id(),
        market_id="m1",
        market_question="Will it rain?",
        outcome="Yes",
        token_id="tok-yes",
        side=TradeSide.BUY,
        shares=total / price,
        price=price,
        total=total,
        simulated=simulated,
    )


def _sim(**kwargs):
    params = dict(latency_min_sec=0.0, latency_max_sec=0.0, success_rate=1.0, max_slippage=0.0,
                  rng=random.Random(7))
    params.update(kwargs)
    return FillSimulator(**params)


def _order_client(result=None, credentials=True):
    client = MagicMock()
    client.has_credentials.return_value = credentials
    client.place_order.return_value = result or OrderResult(success=True, order_id="ord-1")
    return client


class TestFillSimulator:
    def test_fill_at_price_without_slippage(self):
        t = _sim().fill(_trade())
        assert t.status == TradeStatus.FILLED
        assert t.price == pytest.approx(0.2)
        assert t.order_id.startswith("paper_")

    def test_slippage_is_adverse_and_bounded(self):
        sim = _sim(max_slippage=0.01)
        for _ in range(50):
            t = sim.fill(_trade(price=0.5))
            assert 0.5 <= t.price <= 0.505
            assert t.shares == pytest.approx(t.total / t.price)

    def test_fill_price_capped(self):
        t = _sim(max_slippage=0.1).fill(_trade(price=0.98))
        assert t.price <= 0.99

    def test_always_fails_at_zero_success_rate(self):
        t = _sim(success_rate=0.0).fill(_trade())
        assert t.status == TradeStatus.FAILED
        assert t.error == "Simulated rejection"

    def test_latency_sleeps(self):
        sleeps = []
        _sim(latency_min_sec=0.3, latency_max_sec=0.8, sleep=sleeps.append).fill(_trade())
        assert len(sleeps) == 1
        assert 0.3 <= sleeps[0] <= 0.8


class TestShouldSimulate:
    def test_paper_flag(self):
        assert should_simulate(True, _order_client()) is True

    def test_no_client(self):
        assert should_simulate(False, None) is True

    def test_no_credentials(self):
        assert should_simulate(False, _order_client(credentials=False)) is True

    def test_live(self):
        assert should_simulate(False, _order_client()) is False


class TestExecuteTrade:
    def test_simulated_path_never_calls_client(self):
        client = _order_client()
        t = execute_trade(_trade(simulated=True), client, _sim())
        assert t.status == TradeStatus.FILLED
        client.place_order.assert_not_called()

    def test_live_success(self):
        client = _order_client()
        t = execute_trade(_trade(simulated=False), client, _sim())
        assert t.status == TradeStatus.FILLED
        assert t.order_id == "ord-1"
        client.place_order.assert_called_once_with(OrderRequest(token_id="tok-yes", side="BUY", size=10.0))

    def test_live_rejection(self):
        client = _order_client(OrderResult(success=False, error="not enough balance"))
        t = execute_trade(_trade(simulated=False), client, _sim())
        assert t.status == TradeStatus.FAILED
        assert t.error == "not enough balance"

    def test_live_exception(self):
        client = _order_client()
        client.place_order.side_effect = RuntimeError("connection reset")
        t = execute_trade(_trade(simulated=False), client, _sim())
        assert t.status == TradeStatus.FAILED
        assert "connection reset" in t.error

    def test_rejects_non_pending(self):
        t = _trade()
        t.mark_failed("x")
        with pytest.raises(ValueError):
            execute_trade(t, None, _sim())
