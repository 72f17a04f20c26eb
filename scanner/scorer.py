"""
Mispricing scorers. Estimate a "true" probability for a market's reference
outcome and turn that estimate into a ranked betting opportunity.

Two variants share one interface:
- HeuristicScorer: deterministic asymmetric mean reversion toward 0.5.
  Extreme prices are assumed to overstate their distance from fair value.
- ExternalScorer: delegates to an external probabilistic model (e.g. an LLM)
  and falls back to the heuristic on None or error.
"""

from __future__ import annotations

import logging
from typing import Callable, Protocol, runtime_checkable

from scanner.models import (
    BettingOpportunity,
    Market,
    Outcome,
    Recommendation,
    ScoreResult,
    Strategy,
    reference_outcome,
)

logger = logging.getLogger(__name__)

# Reversion tiers. Prices beyond the extreme bounds revert harder and are
# scored with more confidence than those just past the configured thresholds.
EXTREME_LOW = 0.20
EXTREME_HIGH = 0.80
EXTREME_REVERSION = 0.4
EXTREME_CONFIDENCE = 0.65
MODERATE_REVERSION = 0.3
MODERATE_CONFIDENCE = 0.55

FAIR_VALUE = 0.5

_HEURISTIC_FACTORS = (
    "Price threshold analysis",
    "Mean reversion strategy",
    "Liquidity assessment",
)

# External model: market in, score (or None for "no opinion") out.
MarketScoreFn = Callable[[Market], "ScoreResult | None"]


@runtime_checkable
class Scorer(Protocol):
    """Scores one market outcome. None means no opinion."""

    supports_batch: bool

    def score(self, market: Market, outcome: Outcome) -> ScoreResult | None:
        ...


def expected_value(recommendation: Recommendation, price: float, predicted_probability: float) -> float:
    """
    Expected return per unit staked, as a fraction of the stake.

    YES pays 1/price - 1 on a win; NO pays 1/(1-price) - 1 and wins when the
    YES outcome does not happen.
    """
    p = predicted_probability
    if recommendation == Recommendation.YES:
        potential_return = 1.0 / price - 1.0
        return p * potential_return - (1.0 - p)
    if recommendation == Recommendation.NO:
        no_price = 1.0 - price
        potential_return = 1.0 / no_price - 1.0
        return (1.0 - p) * potential_return - p
    return 0.0


def to_opportunity(
    market: Market,
    outcome: Outcome,
    score: ScoreResult,
    min_edge: float = 0.05,
) -> BettingOpportunity | None:
    """Convert a score into an opportunity. None unless EV clears min_edge."""
    if score.recommendation == Recommendation.SKIP:
        return None
    price = outcome.price
    if not 0.0 < price < 1.0:
        return None

    ev = expected_value(score.recommendation, price, score.predicted_probability)
    if ev <= min_edge:
        return None

    strategy = (
        Strategy.UNDERVALUED if score.predicted_probability > price else Strategy.OVERVALUED
    )
    return BettingOpportunity(
        market=market,
        outcome=outcome,
        strategy=strategy,
        recommended_bet=score.recommendation,
        confidence=score.confidence,
        predicted_probability=score.predicted_probability,
        expected_value=ev,
        reasoning=score.reasoning,
        key_factors=score.key_factors,
    )


def _skip(price: float) -> ScoreResult:
    return ScoreResult(
        predicted_probability=price,
        confidence=0.5,
        recommendation=Recommendation.SKIP,
        reasoning=f"Price at {price * 100:.1f}% is within the fair band.",
    )


class HeuristicScorer:
    """Pure function of price and two thresholds. Never calls out."""

    supports_batch = False

    def __init__(
        self,
        undervalued_threshold: float = 0.30,
        overvalued_threshold: float = 0.75,
    ) -> None:
        self.undervalued_threshold = undervalued_threshold
        self.overvalued_threshold = overvalued_threshold

    def score(self, market: Market, outcome: Outcome) -> ScoreResult | None:
        return self.score_price(outcome.price)

    def score_market(self, market: Market) -> ScoreResult | None:
        outcome = reference_outcome(market)
        if outcome is None:
            return None
        return self.score_price(outcome.price)

    def score_price(self, price: float) -> ScoreResult:
        """Score a YES price. SKIP inside the fair band and for degenerate prices."""
        if not 0.0 < price < 1.0:
            return _skip(price)

        if price < self.undervalued_threshold:
            extreme = price < min(EXTREME_LOW, self.undervalued_threshold)
            rate = EXTREME_REVERSION if extreme else MODERATE_REVERSION
            predicted = price + (FAIR_VALUE - price) * rate
            return ScoreResult(
                predicted_probability=predicted,
                confidence=EXTREME_CONFIDENCE if extreme else MODERATE_CONFIDENCE,
                recommendation=Recommendation.YES,
                reasoning=(
                    f"Price at {price * 100:.1f}% appears undervalued. "
                    "Mean reversion suggests upside potential."
                ),
                key_factors=_HEURISTIC_FACTORS,
            )

        if price > self.overvalued_threshold:
            extreme = price > max(EXTREME_HIGH, self.overvalued_threshold)
            rate = EXTREME_REVERSION if extreme else MODERATE_REVERSION
            predicted = price - (price - FAIR_VALUE) * rate
            return ScoreResult(
                predicted_probability=predicted,
                confidence=EXTREME_CONFIDENCE if extreme else MODERATE_CONFIDENCE,
                recommendation=Recommendation.NO,
                reasoning=(
                    f"Price at {price * 100:.1f}% appears overvalued. "
                    "Mean reversion suggests downside potential."
                ),
                key_factors=_HEURISTIC_FACTORS,
            )

        return _skip(price)


class ExternalScorer:
    """
    Wraps an external market-level model. Any None or exception from the
    model falls back to the heuristic so a flaky provider never empties a scan.
    """

    supports_batch = True

    def __init__(self, score_fn: MarketScoreFn, fallback: HeuristicScorer | None = None) -> None:
        self._score_fn = score_fn
        self.fallback = fallback or HeuristicScorer()

    def score(self, market: Market, outcome: Outcome) -> ScoreResult | None:
        try:
            result = self._score_fn(market)
        except Exception as e:
            logger.warning("External scorer failed for %s, using heuristic: %s", market.id, e)
            result = None
        if result is None:
            return self.fallback.score(market, outcome)
        return result
