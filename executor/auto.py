"""
Autonomous execution loop.

One cycle per tick, at most one in flight:
  0. Apply any config queued by update_config()
  1. Circuit breaker (terminal for the run when tripped)
  2. Fetch markets, scan, keep the top-N ranked opportunities
  3. Validate, size and execute the top-K (paper or live)
  4. Apply fills to positions and bankroll
  5. Mark positions to market and recompute P&L
  6. Publish a state snapshot to observers (daily summary on date change)

Transient I/O errors are logged and the affected sub-step is skipped; only
the circuit breaker stops the run.
"""

from __future__ import annotations

import logging
import random
import threading
import time
from datetime import date
from enum import Enum
from typing import Callable

from client.platform import MarketDataSource, OrderExecutor
from config import Config
from executor.engine import FillSimulator, execute_trade, should_simulate
from executor.risk import RiskManager
from monitor.notifier import Notifier
from scanner.market_scanner import MarketScanner
from scanner.models import BettingOpportunity, Recommendation, complement_outcome
from scanner.scorer import HeuristicScorer, Scorer
from state.portfolio import AgentState, Trade, TradeSide, TradeStatus, new_trade_id

logger = logging.getLogger(__name__)

MIN_MARK_PRICE = 0.01
MAX_MARK_PRICE = 0.99
# Paper price marks drift with a slight upward bias.
_DRIFT_CENTER = 0.48
_JOIN_TIMEOUT_SEC = 30.0

StateObserver = Callable[[AgentState], None]


class ExecutorStatus(Enum):
    IDLE = "idle"
    RUNNING = "running"
    SAFETY_STOPPED = "safety_stopped"


def _clamp_price(price: float) -> float:
    return max(MIN_MARK_PRICE, min(MAX_MARK_PRICE, price))


class AutoExecutor:
    """
    Owns the AgentState for one engine. Portfolio mutation happens only on the
    cycle thread, under the state lock, so snapshots are always consistent.
    """

    def __init__(
        self,
        cfg: Config,
        market_source: MarketDataSource,
        scorer: Scorer | None = None,
        order_client: OrderExecutor | None = None,
        notifier: Notifier | None = None,
        on_state_change: StateObserver | None = None,
        simulator: FillSimulator | None = None,
        rng: random.Random | None = None,
    ) -> None:
        self.cfg = cfg
        self._market_source = market_source
        self._order_client = order_client
        self._notifier = notifier
        self._rng = rng or random.Random()
        self.simulator = simulator or FillSimulator(rng=self._rng)
        self._apply_sim_config(cfg)

        self.risk = RiskManager(cfg.safety_limits(), use_dynamic_limits=cfg.dynamic_limits_enabled)
        self.scanner = MarketScanner.from_config(
            scorer or HeuristicScorer(cfg.undervalued_threshold, cfg.overvalued_threshold), cfg,
        )

        self.state = AgentState(bankroll=cfg.initial_bankroll)
        self.status = ExecutorStatus.IDLE
        self.cycle_count = 0

        self._observers: list[StateObserver] = []
        if on_state_change is not None:
            self._observers.append(on_state_change)

        self._state_lock = threading.RLock()
        self._cycle_lock = threading.Lock()
        # Reloaded config waits here until the next cycle boundary
        self._config_lock = threading.Lock()
        self._pending_cfg: Config | None = None
        # One Event per run, so a restart never revives the previous timer
        self._stop_event = threading.Event()
        self._thread: threading.Thread | None = None

        self._announced: set[tuple[str, Recommendation]] = set()
        self._summary_date: date | None = None

    # -- Public API --

    def subscribe(self, observer: StateObserver) -> None:
        self._observers.append(observer)

    def get_state(self) -> AgentState:
        with self._state_lock:
            return self.state.snapshot()

    @property
    def is_running(self) -> bool:
        return self.status == ExecutorStatus.RUNNING

    def start(self) -> None:
        """Run one cycle immediately, then every scan_interval_sec, on a daemon thread."""
        if self.is_running:
            logger.info("Executor already running")
            return

        # The previous loop may still be unwinding (e.g. start() from a
        # safety-stop observer); its Event stays set and the new loop joins it.
        previous = self._thread
        if previous is not None and not previous.is_alive():
            previous = None
        self._stop_event.set()
        stop_event = threading.Event()
        self._stop_event = stop_event

        if self._cycle_lock.acquire(blocking=False):
            try:
                self._apply_pending_config()
            finally:
                self._cycle_lock.release()

        with self._state_lock:
            self.state.is_running = True
            self.state.safety_triggered = False
            self.state.safety_reason = None
        self.status = ExecutorStatus.RUNNING
        self._publish()
        self._notify("notify_started")
        logger.info("Auto executor started (interval=%.0fs, %s)", self.cfg.scan_interval_sec, self._mode_label())

        self._thread = threading.Thread(
            target=self._loop, args=(stop_event, previous), name="auto-executor", daemon=True,
        )
        self._thread.start()

    def stop(self) -> None:
        """Cancel the timer. Idempotent; in-flight trades are not rolled back."""
        self._stop_event.set()
        thread = self._thread
        if thread is not None and thread is not threading.current_thread():
            thread.join(timeout=_JOIN_TIMEOUT_SEC)
            if thread.is_alive():
                logger.warning("Executor thread still busy after %.0fs", _JOIN_TIMEOUT_SEC)
            elif self._thread is thread:
                self._thread = None

        with self._state_lock:
            was_running = self.state.is_running
            self.state.is_running = False
        if self.status == ExecutorStatus.RUNNING:
            self.status = ExecutorStatus.IDLE
        if was_running:
            self._publish()
            self._notify("notify_stopped")
            logger.info("Auto executor stopped")

    def wait(self, timeout: float | None = None) -> bool:
        """Block until the loop thread exits. True if it has."""
        thread = self._thread
        if thread is None:
            return True
        thread.join(timeout)
        return not thread.is_alive()

    def set_bankroll(self, amount: float) -> None:
        with self._state_lock:
            self.state.bankroll = amount
        self._publish()

    def update_config(self, cfg: Config) -> None:
        """
        Hot-reload limits, scanner thresholds and simulation settings. The
        timer keeps running. Limits are read-only within a cycle, so the new
        config is queued and applied at the start of the next one.
        """
        with self._config_lock:
            self._pending_cfg = cfg
        logger.info("Config reload queued for next cycle")

    def run_cycle(self) -> bool:
        """Run one cycle. Returns False if another cycle was already in flight."""
        if not self._cycle_lock.acquire(blocking=False):
            logger.warning("Previous cycle still in flight, skipping tick")
            return False
        try:
            self.cycle_count += 1
            self._execute_cycle()
        finally:
            self._cycle_lock.release()
        return True

    # -- Internals --

    def _loop(self, stop_event: threading.Event, previous: threading.Thread | None) -> None:
        if previous is not None:
            previous.join()
        while not stop_event.is_set():
            try:
                self.run_cycle()
            except Exception as e:
                logger.error("Cycle %d failed: %s", self.cycle_count, e, exc_info=True)
            if stop_event.wait(timeout=self.cfg.scan_interval_sec):
                break

    def _apply_pending_config(self) -> None:
        with self._config_lock:
            cfg, self._pending_cfg = self._pending_cfg, None
        if cfg is None:
            return
        self.cfg = cfg
        self.risk.update_limits(cfg.safety_limits())
        self.risk.use_dynamic_limits = cfg.dynamic_limits_enabled
        self.scanner.update_config(cfg)
        self._apply_sim_config(cfg)
        logger.info("Config reloaded")

    def _execute_cycle(self) -> None:
        cycle_start = time.time()
        logger.debug("Running execution cycle %d...", self.cycle_count)
        self._apply_pending_config()

        with self._state_lock:
            safety = self.risk.is_safety_breached(self.state)
        if safety.breached:
            self._trigger_safety_stop(safety.reason or "Safety limit breached")
            return

        markets = self._fetch_markets()
        opportunities = self.scanner.scan(markets)
        with self._state_lock:
            self.state.opportunities = opportunities[:self.cfg.max_opportunities]
            top = list(self.state.opportunities[:self.cfg.max_trades_per_cycle])
        logger.info("Found %d opportunities in %d markets", len(opportunities), len(markets))
        self._announce_opportunities(top)

        if self.cfg.auto_execute:
            for opp in top:
                if self._stop_event.is_set():
                    break
                self._execute_opportunity(opp)

        self._mark_positions()
        self._publish()
        self._maybe_send_daily_summary()

        logger.info(
            "Cycle %d complete in %.1fs: bankroll=$%.2f positions=%d pnl=$%.2f",
            self.cycle_count, time.time() - cycle_start,
            self.state.bankroll, len(self.state.positions), self.state.total_pnl,
        )

    def _trigger_safety_stop(self, reason: str) -> None:
        logger.error("Safety limit breached: %s", reason)
        self._stop_event.set()
        with self._state_lock:
            self.state.safety_triggered = True
            self.state.safety_reason = reason
            self.state.is_running = False
            snapshot = self.state.snapshot()
        self.status = ExecutorStatus.SAFETY_STOPPED
        self._publish()
        self._notify("notify_safety_stop", reason, snapshot)

    def _announce_opportunities(self, top: list[BettingOpportunity]) -> None:
        """Notify each (market, side) the first time it ranks in the top-K."""
        if self._notifier is None:
            return
        for opp in top:
            key = (opp.market.id, opp.recommended_bet)
            if key in self._announced:
                continue
            self._announced.add(key)
            self._notify("notify_opportunity", opp)

    def _maybe_send_daily_summary(self) -> None:
        today = date.today()
        if self._summary_date is None:
            self._summary_date = today
            return
        if today == self._summary_date:
            return
        self._summary_date = today
        self._notify("notify_daily_summary", self.get_state())

    def _fetch_markets(self) -> list:
        try:
            return self._market_source.get_markets(self.cfg.market_fetch_limit)
        except Exception as e:
            logger.warning("Market fetch failed, continuing with no markets: %s", e)
            return []

    def _execute_opportunity(self, opp: BettingOpportunity) -> Trade | None:
        validation = self.risk.validate_opportunity(opp)
        if not validation.valid:
            logger.info("Skipping opportunity %s: %s", opp.market.id, validation.reason)
            return None

        with self._state_lock:
            size = self.risk.calculate_position_size(opp, self.state)
        if size <= 0:
            logger.info("Bet size is 0 for %s, skipping", opp.market.id)
            return None

        outcome = opp.outcome
        if opp.recommended_bet == Recommendation.NO:
            outcome = complement_outcome(opp.market, opp.outcome)
            if outcome is None:
                logger.info("No complement outcome to buy NO on %s, skipping", opp.market.id)
                return None
        price = opp.bet_price
        if price <= 0:
            return None

        trade = Trade(
            id=new_trade_id(),
            market_id=opp.market.id,
            market_question=opp.market.question,
            outcome=outcome.name,
            token_id=outcome.id,
            side=TradeSide.BUY,
            shares=size / price,
            price=price,
            total=size,
            simulated=should_simulate(self.cfg.paper_trading, self._order_client),
        )
        logger.info(
            "Executing: %s on \"%s\" for $%.2f (ev=%.2f conf=%.2f)",
            opp.recommended_bet.value, opp.market.question[:60], size, opp.expected_value, opp.confidence,
        )
        with self._state_lock:
            self.state.record_trade(trade)

        execute_trade(trade, self._order_client, self.simulator)

        if trade.status == TradeStatus.FILLED:
            with self._state_lock:
                self.state.apply_fill(trade)
        self._notify("notify_trade", trade)
        self._publish()
        return trade

    def _mark_positions(self) -> None:
        simulate = should_simulate(self.cfg.paper_trading, self._order_client)
        with self._state_lock:
            positions = list(self.state.positions)

        for position in positions:
            if simulate:
                drift = (self._rng.random() - _DRIFT_CENTER) * self.cfg.sim_price_drift
                price = position.current_price + drift
            else:
                try:
                    price = self._market_source.get_prices(position.token_id).mid
                except Exception as e:
                    logger.warning("Price refresh failed for %s: %s", position.token_id, e)
                    price = position.current_price
                if price <= 0:
                    price = position.current_price
            with self._state_lock:
                position.mark(_clamp_price(price))

        with self._state_lock:
            self.state.recompute_pnl()

    def _publish(self) -> None:
        if not self._observers:
            return
        with self._state_lock:
            snapshot = self.state.snapshot()
        for observer in list(self._observers):
            try:
                observer(snapshot)
            except Exception as e:
                logger.warning("State observer failed: %s", e)

    def _notify(self, method: str, *args) -> None:
        if self._notifier is None:
            return
        try:
            getattr(self._notifier, method)(*args)
        except Exception as e:
            logger.warning("Notification %s failed: %s", method, e)

    def _apply_sim_config(self, cfg: Config) -> None:
        self.simulator.latency_min_sec = cfg.sim_latency_min_sec
        self.simulator.latency_max_sec = cfg.sim_latency_max_sec
        self.simulator.success_rate = cfg.sim_success_rate
        self.simulator.max_slippage = cfg.sim_max_slippage

    def _mode_label(self) -> str:
        if should_simulate(self.cfg.paper_trading, self._order_client):
            return "PAPER"
        return "LIVE"
