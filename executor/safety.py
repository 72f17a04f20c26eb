"""
Safety limits, the circuit breaker, and pre-trade opportunity checks.

Circuit breaker conditions halt the run; opportunity checks only skip a trade.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass, replace
from typing import TYPE_CHECKING

if TYPE_CHECKING:
    from scanner.models import BettingOpportunity
    from state.portfolio import AgentState

logger = logging.getLogger(__name__)

# Opportunities scored below this are not traded regardless of edge.
MIN_CONFIDENCE = 0.55

# Losing-streak multiplier applied by dynamic_limits().
DRAWDOWN_MULTIPLIER = 0.5


class CircuitBreakerTripped(Exception):
    """Raised when a circuit breaker condition is met. Executor should halt."""
    pass


class SafetyCheckFailed(Exception):
    """Raised when a pre-trade check fails. Trade should be skipped."""
    pass


@dataclass(frozen=True)
class SafetyLimits:
    max_bet_size: float = 10.0
    max_daily_loss: float = 50.0
    max_total_exposure: float = 200.0
    max_position_percent: float = 0.1  # fraction of bankroll per market
    min_liquidity: float = 1000.0


DEFAULT_SAFETY_LIMITS = SafetyLimits()


@dataclass(frozen=True)
class SafetyStatus:
    breached: bool
    reason: str | None = None


@dataclass(frozen=True)
class ValidationResult:
    valid: bool
    reason: str | None = None


def _fmt_limit(value: float) -> str:
    """Render limits the way operators type them: 50 not 50.00, 12.5 stays 12.5."""
    return str(int(value)) if float(value).is_integer() else str(value)


def check_circuit_breaker(limits: SafetyLimits, state: AgentState) -> None:
    """
    Check breaker conditions in order; the first match wins.
    Raises CircuitBreakerTripped with a human-readable reason.
    """
    if state.today_pnl < -limits.max_daily_loss:
        raise CircuitBreakerTripped(
            f"Daily loss limit reached: ${abs(state.today_pnl):.2f} > ${_fmt_limit(limits.max_daily_loss)}"
        )

    exposure = state.total_exposure
    if exposure >= limits.max_total_exposure:
        raise CircuitBreakerTripped(f"Maximum exposure reached: ${exposure:.2f}")

    # Compares against the raw max_bet_size, never the dynamic limits.
    if state.bankroll < limits.max_bet_size:
        raise CircuitBreakerTripped(f"Bankroll too low: ${state.bankroll:.2f}")


def is_safety_breached(limits: SafetyLimits, state: AgentState) -> SafetyStatus:
    """Non-raising form of check_circuit_breaker()."""
    try:
        check_circuit_breaker(limits, state)
    except CircuitBreakerTripped as e:
        return SafetyStatus(breached=True, reason=str(e))
    return SafetyStatus(breached=False)


def verify_opportunity(limits: SafetyLimits, opportunity: BettingOpportunity) -> None:
    """
    Reject opportunities that fail liquidity, activity, edge or confidence gates.
    Raises SafetyCheckFailed on the first failing condition.
    """
    market = opportunity.market
    if market.liquidity < limits.min_liquidity:
        raise SafetyCheckFailed(
            f"Insufficient liquidity: ${market.liquidity:.0f} < ${_fmt_limit(limits.min_liquidity)}"
        )
    if not market.is_tradable:
        raise SafetyCheckFailed("Market is not active")
    if opportunity.expected_value <= 0:
        raise SafetyCheckFailed("Negative expected value")
    if opportunity.confidence < MIN_CONFIDENCE:
        raise SafetyCheckFailed(
            f"Confidence too low: {opportunity.confidence:.2f} < {MIN_CONFIDENCE:.2f}"
        )


def validate_opportunity(limits: SafetyLimits, opportunity: BettingOpportunity) -> ValidationResult:
    """Non-raising form of verify_opportunity()."""
    try:
        verify_opportunity(limits, opportunity)
    except SafetyCheckFailed as e:
        return ValidationResult(valid=False, reason=str(e))
    return ValidationResult(valid=True)


def dynamic_limits(limits: SafetyLimits, state: AgentState) -> SafetyLimits:
    """
    Drawdown throttle: tighten bet size and exposure to the bankroll, and
    halve them plus the per-market cap while both P&L figures are negative.
    Daily loss and liquidity floors are unchanged.
    """
    losing = state.today_pnl < 0 and state.total_pnl < 0
    m = DRAWDOWN_MULTIPLIER if losing else 1.0
    if losing:
        logger.info("Drawdown throttle active: limits scaled by %.2f", m)
    return replace(
        limits,
        max_bet_size=min(limits.max_bet_size, state.bankroll * 0.02) * m,
        max_total_exposure=min(limits.max_total_exposure, state.bankroll * 0.3) * m,
        max_position_percent=limits.max_position_percent * m,
    )
