"""
Trade execution engine. Fills a PENDING trade either through the simulated
paper path or a live CLOB order. Never touches portfolio state.
"""

from __future__ import annotations

import logging
import random
import time
from dataclasses import dataclass, field
from typing import Callable

from client.platform import OrderExecutor, OrderRequest
from state.portfolio import Trade, TradeStatus

logger = logging.getLogger(__name__)


@dataclass
class FillSimulator:
    """
    Paper fills: artificial latency, a fixed success probability, and a small
    adverse slippage on the fill price.
    """
    latency_min_sec: float = 0.3
    latency_max_sec: float = 0.8
    success_rate: float = 0.95
    max_slippage: float = 0.01
    rng: random.Random = field(default_factory=random.Random)
    sleep: Callable[[float], None] = time.sleep

    def fill(self, trade: Trade) -> Trade:
        latency = self.rng.uniform(self.latency_min_sec, max(self.latency_min_sec, self.latency_max_sec))
        if latency > 0:
            self.sleep(latency)

        if self.rng.random() >= self.success_rate:
            trade.mark_failed("Simulated rejection")
            logger.info("[PAPER] Trade failed (simulated): %s", trade.market_question[:50])
            return trade

        slippage = self.rng.uniform(0.0, self.max_slippage)
        fill_price = min(trade.price * (1.0 + slippage), 0.99)
        trade.mark_filled(price=fill_price, order_id=f"paper_{trade.id}")
        logger.info(
            "[PAPER] Trade filled: %.2f shares at %.3f (slippage %.2f%%)",
            trade.shares, trade.price, slippage * 100,
        )
        return trade


def should_simulate(paper_trading: bool, order_client: OrderExecutor | None) -> bool:
    """Live orders need a client with credentials; anything less falls back to paper."""
    if paper_trading or order_client is None:
        return True
    return not order_client.has_credentials()


def execute_trade(
    trade: Trade,
    order_client: OrderExecutor | None,
    simulator: FillSimulator,
) -> Trade:
    """
    Execute a PENDING trade. trade.simulated selects the path.
    Returns the same trade, now FILLED or FAILED.
    """
    if trade.status != TradeStatus.PENDING:
        raise ValueError(f"Trade {trade.id} is not pending")

    if trade.simulated or order_client is None:
        return simulator.fill(trade)

    start_time = time.time()
    try:
        result = order_client.place_order(OrderRequest(
            token_id=trade.token_id,
            side=trade.side.value,
            size=trade.total,
        ))
    except Exception as e:
        logger.error("Order placement raised for %s: %s", trade.token_id, e)
        trade.mark_failed(str(e))
        return trade

    elapsed_ms = (time.time() - start_time) * 1000
    if result.success:
        trade.mark_filled(order_id=result.order_id)
        logger.info(
            "[LIVE] Trade filled: order=%s %.2f shares at %.3f elapsed=%.0fms",
            result.order_id, trade.shares, trade.price, elapsed_ms,
        )
    else:
        trade.mark_failed(result.error or "Order rejected")
        logger.error("[LIVE] Trade failed: %s", trade.error)
    return trade
