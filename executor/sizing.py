"""
Position sizing using the Kelly criterion with hard caps.
"""

from __future__ import annotations

import logging
import math

from executor.safety import SafetyLimits, is_safety_breached
from scanner.models import BettingOpportunity, Recommendation
from state.portfolio import AgentState

logger = logging.getLogger(__name__)

# Half-Kelly for safety
KELLY_MULTIPLIER = 0.5
# Ceiling on the Kelly bankroll fraction
MAX_KELLY_FRACTION = 0.10
# Never bet more than this share of bankroll on a single trade
MAX_SINGLE_TRADE_FRACTION = 0.05


def kelly_fraction(predicted_probability: float, price: float, side: Recommendation) -> float:
    """
    Kelly criterion: f* = (b*p - q) / b
    where b = net odds on the chosen side, p = probability that side wins, q = 1-p.

    YES at price P pays (1-P)/P; NO pays P/(1-P). Returns the half-Kelly
    bankroll fraction clamped to [0, MAX_KELLY_FRACTION].
    """
    if not 0.0 < price < 1.0:
        return 0.0

    if side == Recommendation.NO:
        odds = price / (1.0 - price)
        p = 1.0 - predicted_probability
    else:
        odds = (1.0 - price) / price
        p = predicted_probability

    q = 1.0 - p
    kelly = (odds * p - q) / odds
    return max(0.0, min(kelly * KELLY_MULTIPLIER, MAX_KELLY_FRACTION))


def kelly_bet(predicted_probability: float, price: float, side: Recommendation, bankroll: float) -> float:
    """Dollar amount suggested by fractional Kelly."""
    return bankroll * kelly_fraction(predicted_probability, price, side)


def compute_position_size(
    opportunity: BettingOpportunity,
    state: AgentState,
    limits: SafetyLimits,
    breaker_limits: SafetyLimits | None = None,
) -> float:
    """
    Dollar size for an opportunity: the minimum of the Kelly suggestion,
    max_bet_size, remaining total exposure, remaining per-market room and
    5% of bankroll. Floored to cents. Returns 0 if the trade should be skipped.

    breaker_limits: limits for the circuit breaker check when sizing with
    throttled limits (defaults to `limits`).
    """
    if is_safety_breached(breaker_limits or limits, state).breached:
        return 0.0

    bankroll = state.bankroll
    remaining_exposure = limits.max_total_exposure - state.total_exposure
    max_market_exposure = bankroll * limits.max_position_percent
    remaining_market_exposure = max_market_exposure - state.market_exposure(opportunity.market.id)

    suggested = kelly_bet(
        opportunity.predicted_probability,
        opportunity.outcome.price,
        opportunity.recommended_bet,
        bankroll,
    )

    size = min(
        suggested,
        limits.max_bet_size,
        remaining_exposure,
        remaining_market_exposure,
        bankroll * MAX_SINGLE_TRADE_FRACTION,
    )
    size = max(0.0, math.floor(size * 100) / 100)

    logger.debug(
        "Sizing %s: kelly=$%.2f exposure_room=$%.2f market_room=$%.2f -> $%.2f",
        opportunity.market.id, suggested, remaining_exposure, remaining_market_exposure, size,
    )
    return size
