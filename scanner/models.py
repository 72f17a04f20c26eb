"""
Data models for the market scanner. Pure data, no behavior.
"""

from __future__ import annotations

from enum import Enum
from dataclasses import dataclass


class Strategy(Enum):
    UNDERVALUED = "UNDERVALUED"
    OVERVALUED = "OVERVALUED"


class Recommendation(Enum):
    YES = "YES"
    NO = "NO"
    SKIP = "SKIP"


@dataclass(frozen=True)
class Outcome:
    id: str  # CLOB token id
    name: str
    price: float  # implied probability, 0-1


@dataclass(frozen=True)
class Market:
    id: str
    question: str
    liquidity: float
    volume: float
    outcomes: tuple[Outcome, ...]
    active: bool = True
    closed: bool = False
    slug: str = ""
    end_date: str = ""  # ISO 8601 from Gamma API (empty = unknown)

    @property
    def is_tradable(self) -> bool:
        return self.active and not self.closed


def reference_outcome(market: Market) -> Outcome | None:
    """The "Yes" outcome that drives scoring. Falls back to the first outcome."""
    for outcome in market.outcomes:
        if outcome.name.lower() == "yes":
            return outcome
    return market.outcomes[0] if market.outcomes else None


def complement_outcome(market: Market, outcome: Outcome) -> Outcome | None:
    """The other side of a binary market, or None for single/multi-outcome markets."""
    if len(market.outcomes) != 2:
        return None
    for other in market.outcomes:
        if other.id != outcome.id:
            return other
    return None


@dataclass(frozen=True)
class ScoreResult:
    predicted_probability: float
    confidence: float
    recommendation: Recommendation
    reasoning: str = ""
    key_factors: tuple[str, ...] = ()


@dataclass(frozen=True)
class BettingOpportunity:
    market: Market
    outcome: Outcome  # reference outcome; price is the YES price
    strategy: Strategy
    recommended_bet: Recommendation  # YES or NO, never SKIP
    confidence: float
    predicted_probability: float
    expected_value: float  # fraction of stake
    reasoning: str = ""
    key_factors: tuple[str, ...] = ()

    @property
    def bet_price(self) -> float:
        """Price paid per share on the recommended side."""
        if self.recommended_bet == Recommendation.NO:
            return 1.0 - self.outcome.price
        return self.outcome.price
