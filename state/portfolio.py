"""
Portfolio state: positions, the trade log, and the AgentState aggregate.

AgentState is owned by the auto executor and mutated in place each cycle.
Observers only ever receive snapshot() copies.
"""

from __future__ import annotations

import copy
import itertools
import time
from dataclasses import dataclass, field
from enum import Enum

from scanner.models import BettingOpportunity

_trade_ids = itertools.count(1)


class TradeStatus(Enum):
    PENDING = "PENDING"
    FILLED = "FILLED"
    FAILED = "FAILED"


class TradeSide(Enum):
    BUY = "BUY"
    SELL = "SELL"


@dataclass
class Trade:
    """Immutable once created except for status, fill details and error."""
    id: str
    market_id: str
    market_question: str
    outcome: str
    token_id: str
    side: TradeSide
    shares: float
    price: float
    total: float
    simulated: bool
    status: TradeStatus = TradeStatus.PENDING
    order_id: str = ""
    error: str = ""
    timestamp: float = field(default_factory=time.time)

    def mark_filled(self, price: float | None = None, order_id: str = "") -> None:
        """Transition PENDING -> FILLED. A new fill price re-derives shares from total."""
        self._require_pending()
        if price is not None and price > 0:
            self.price = price
            self.shares = self.total / price
        self.order_id = order_id
        self.status = TradeStatus.FILLED

    def mark_failed(self, error: str) -> None:
        self._require_pending()
        self.error = error
        self.status = TradeStatus.FAILED

    def _require_pending(self) -> None:
        if self.status != TradeStatus.PENDING:
            raise ValueError(f"Trade {self.id} already {self.status.value}")


def new_trade_id() -> str:
    return f"trade-{int(time.time() * 1000)}-{next(_trade_ids)}"


@dataclass
class Position:
    market_id: str
    market_question: str
    outcome: str
    token_id: str
    shares: float
    avg_price: float
    current_price: float
    pnl: float = 0.0
    pnl_percent: float = 0.0

    @property
    def cost_basis(self) -> float:
        return self.shares * self.avg_price

    @property
    def key(self) -> tuple[str, str]:
        return (self.market_id, self.outcome)

    def add_fill(self, shares: float, total: float) -> None:
        """Volume-weighted average cost update."""
        new_shares = self.shares + shares
        if new_shares <= 0:
            return
        self.avg_price = (self.cost_basis + total) / new_shares
        self.shares = new_shares

    def mark(self, price: float) -> None:
        """Mark to a new price and recompute P&L."""
        self.current_price = price
        cost = self.cost_basis
        self.pnl = self.shares * self.current_price - cost
        self.pnl_percent = (self.pnl / cost) * 100.0 if cost > 0 else 0.0


@dataclass
class AgentState:
    """Aggregate root for one engine run."""
    bankroll: float = 100.0
    today_pnl: float = 0.0
    total_pnl: float = 0.0
    positions: list[Position] = field(default_factory=list)
    trades: list[Trade] = field(default_factory=list)
    opportunities: list[BettingOpportunity] = field(default_factory=list)
    is_running: bool = False
    safety_triggered: bool = False
    safety_reason: str | None = None

    @property
    def total_exposure(self) -> float:
        """Sum of cost basis across all open positions."""
        return sum(p.cost_basis for p in self.positions)

    def market_exposure(self, market_id: str) -> float:
        return sum(p.cost_basis for p in self.positions if p.market_id == market_id)

    def find_position(self, market_id: str, outcome: str) -> Position | None:
        for p in self.positions:
            if p.market_id == market_id and p.outcome == outcome:
                return p
        return None

    def record_trade(self, trade: Trade) -> None:
        """Prepend to the trade log (newest first)."""
        self.trades.insert(0, trade)

    def apply_fill(self, trade: Trade) -> Position:
        """
        Apply a FILLED trade: update or open the matching position and pay
        for it from the bankroll. The only path that moves cash into positions.
        """
        if trade.status != TradeStatus.FILLED:
            raise ValueError(f"Cannot apply {trade.status.value} trade {trade.id}")

        position = self.find_position(trade.market_id, trade.outcome)
        if position is None:
            position = Position(
                market_id=trade.market_id,
                market_question=trade.market_question,
                outcome=trade.outcome,
                token_id=trade.token_id,
                shares=trade.shares,
                avg_price=trade.total / trade.shares if trade.shares > 0 else trade.price,
                current_price=trade.price,
            )
            self.positions.append(position)
        else:
            position.add_fill(trade.shares, trade.total)

        self.bankroll -= trade.total
        return position

    def recompute_pnl(self) -> None:
        # Realized and unrealized P&L are not separated: both figures are the
        # open-position sum.
        total = sum(p.pnl for p in self.positions)
        self.today_pnl = total
        self.total_pnl = total

    def snapshot(self) -> AgentState:
        """Independent deep copy for observers."""
        return copy.deepcopy(self)
