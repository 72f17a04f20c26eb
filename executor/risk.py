"""
Risk manager: holds the current SafetyLimits and exposes the sizing and
safety functions bound to them. Limits are swapped wholesale between cycles.
"""

from __future__ import annotations

import logging
from dataclasses import replace

from executor.safety import (
    DEFAULT_SAFETY_LIMITS,
    SafetyLimits,
    SafetyStatus,
    ValidationResult,
    dynamic_limits,
    is_safety_breached,
    validate_opportunity,
)
from executor.sizing import compute_position_size, kelly_bet
from scanner.models import BettingOpportunity, Recommendation
from scanner.scorer import expected_value
from state.portfolio import AgentState

logger = logging.getLogger(__name__)


class RiskManager:
    def __init__(self, limits: SafetyLimits = DEFAULT_SAFETY_LIMITS, use_dynamic_limits: bool = False) -> None:
        self._limits = limits
        self.use_dynamic_limits = use_dynamic_limits

    @property
    def limits(self) -> SafetyLimits:
        return self._limits

    def update_limits(self, limits: SafetyLimits | None = None, **changes: float) -> None:
        """Replace limits, or patch individual fields by name."""
        new_limits = limits or self._limits
        if changes:
            new_limits = replace(new_limits, **changes)
        self._limits = new_limits
        logger.debug("Safety limits updated: %s", new_limits)

    def is_safety_breached(self, state: AgentState) -> SafetyStatus:
        return is_safety_breached(self._limits, state)

    def validate_opportunity(self, opportunity: BettingOpportunity) -> ValidationResult:
        return validate_opportunity(self._limits, opportunity)

    def calculate_dynamic_limits(self, state: AgentState) -> SafetyLimits:
        return dynamic_limits(self._limits, state)

    def calculate_position_size(self, opportunity: BettingOpportunity, state: AgentState) -> float:
        sizing_limits = self._limits
        if self.use_dynamic_limits:
            sizing_limits = self.calculate_dynamic_limits(state)
        return compute_position_size(opportunity, state, sizing_limits, breaker_limits=self._limits)

    def calculate_kelly_bet(
        self, predicted_probability: float, price: float, side: Recommendation, bankroll: float,
    ) -> float:
        return kelly_bet(predicted_probability, price, side, bankroll)

    @staticmethod
    def calculate_expected_value(
        bet_amount: float, win_probability: float, price: float, side: Recommendation,
    ) -> float:
        """Expected dollar return of staking bet_amount."""
        return bet_amount * expected_value(side, price, win_probability)
