"""
Unit tests for state/portfolio.py -- trades, positions, agent state.
"""

import pytest

from state.portfolio import (
    AgentState,
    Position,
    Trade,
    TradeSide,
    TradeStatus,
    new_trade_id,
)


def _trade(total=20.0, price=0.2, outcome="Yes", market_id="m1"):
    return Trade(
        id=new_trade_id(),
        market_id=market_id,
        market_question="Will it rain?",
        outcome=outcome,
        token_id=f"{market_id}-{outcome}",
        side=TradeSide.BUY,
        shares=total / price,
        price=price,
        total=total,
        simulated=True,
    )


class TestTrade:
    def test_starts_pending(self):
        assert _trade().status == TradeStatus.PENDING

    def test_mark_filled_reprices(self):
        t = _trade(total=10.0, price=0.2)
        t.mark_filled(price=0.25, order_id="o1")
        assert t.status == TradeStatus.FILLED
        assert t.shares == pytest.approx(40.0)
        assert t.order_id == "o1"
        assert t.total == 10.0

    def test_mark_filled_without_price_keeps_shares(self):
        t = _trade(total=10.0, price=0.2)
        t.mark_filled()
        assert t.shares == pytest.approx(50.0)

    def test_mark_failed(self):
        t = _trade()
        t.mark_failed("rejected")
        assert t.status == TradeStatus.FAILED
        assert t.error == "rejected"

    def test_terminal_states_are_final(self):
        t = _trade()
        t.mark_failed("x")
        with pytest.raises(ValueError):
            t.mark_filled()
        with pytest.raises(ValueError):
            t.mark_failed("y")

    def test_ids_unique(self):
        assert len({new_trade_id() for _ in range(100)}) == 100


class TestPosition:
    def test_weighted_average(self):
        p = Position("m1", "q", "Yes", "y", shares=100.0, avg_price=0.20, current_price=0.20)
        p.add_fill(50.0, 15.0)
        assert p.shares == pytest.approx(150.0)
        assert p.avg_price == pytest.approx(0.2333, abs=1e-4)

    def test_cost_basis_identity(self):
        p = Position("m1", "q", "Yes", "y", shares=30.0, avg_price=0.4, current_price=0.4)
        before = p.cost_basis
        p.add_fill(12.5, 7.5)
        assert p.shares * p.avg_price == pytest.approx(before + 7.5)

    def test_mark(self):
        p = Position("m1", "q", "Yes", "y", shares=100.0, avg_price=0.2, current_price=0.2)
        p.mark(0.25)
        assert p.pnl == pytest.approx(5.0)
        assert p.pnl_percent == pytest.approx(25.0)

    def test_mark_zero_cost(self):
        p = Position("m1", "q", "Yes", "y", shares=0.0, avg_price=0.0, current_price=0.0)
        p.mark(0.5)
        assert p.pnl_percent == 0.0


class TestAgentState:
    def test_record_trade_newest_first(self):
        state = AgentState()
        first, second = _trade(), _trade()
        state.record_trade(first)
        state.record_trade(second)
        assert state.trades == [second, first]

    def test_apply_fill_opens_position(self):
        state = AgentState(bankroll=100.0)
        t = _trade(total=20.0, price=0.2)
        t.mark_filled(price=0.2)
        pos = state.apply_fill(t)
        assert state.bankroll == pytest.approx(80.0)
        assert pos.shares == pytest.approx(100.0)
        assert pos.avg_price == pytest.approx(0.2)
        assert state.total_exposure == pytest.approx(20.0)

    def test_apply_fill_merges_same_outcome(self):
        state = AgentState(bankroll=100.0)
        for total, price in ((20.0, 0.2), (15.0, 0.3)):
            t = _trade(total=total, price=price)
            t.mark_filled(price=price)
            state.apply_fill(t)
        assert len(state.positions) == 1
        assert state.positions[0].avg_price == pytest.approx(0.2333, abs=1e-4)
        assert state.bankroll == pytest.approx(65.0)

    def test_separate_outcomes_separate_positions(self):
        state = AgentState(bankroll=100.0)
        for outcome in ("Yes", "No"):
            t = _trade(outcome=outcome)
            t.mark_filled()
            state.apply_fill(t)
        assert len(state.positions) == 2
        assert state.market_exposure("m1") == pytest.approx(40.0)
        assert state.market_exposure("other") == 0.0

    def test_apply_unfilled_raises(self):
        with pytest.raises(ValueError):
            AgentState().apply_fill(_trade())

    def test_recompute_pnl(self):
        a = Position("m1", "q", "Yes", "y", shares=100.0, avg_price=0.2, current_price=0.2)
        b = Position("m2", "q", "Yes", "z", shares=10.0, avg_price=0.5, current_price=0.5)
        a.mark(0.3)
        b.mark(0.4)
        state = AgentState(positions=[a, b])
        state.recompute_pnl()
        assert state.total_pnl == pytest.approx(9.0)
        assert state.today_pnl == pytest.approx(9.0)

    def test_snapshot_is_independent(self):
        state = AgentState(bankroll=100.0)
        t = _trade()
        t.mark_filled()
        state.record_trade(t)
        state.apply_fill(t)

        snap = state.snapshot()
        snap.bankroll = 0.0
        snap.positions[0].shares = 0.0
        snap.trades.clear()

        assert state.bankroll == pytest.approx(80.0)
        assert state.positions[0].shares == pytest.approx(100.0)
        assert len(state.trades) == 1
