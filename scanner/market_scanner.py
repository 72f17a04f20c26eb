"""
Market scanner. Filters the market snapshot, scores each market's reference
outcome, and returns opportunities ranked by expected value.

Batch-capable scorers (external models behind a rate limit) are called with
bounded concurrency: `max_concurrent` calls per batch, `batch_delay_sec`
between batches.
"""

from __future__ import annotations

import logging
import time
from concurrent.futures import ThreadPoolExecutor
from typing import Callable

from config import Config
from scanner.filters import apply_pre_filters
from scanner.models import BettingOpportunity, Market, ScoreResult, reference_outcome
from scanner.scorer import ExternalScorer, HeuristicScorer, Scorer, to_opportunity

logger = logging.getLogger(__name__)


class MarketScanner:
    """Pure transform: markets in, ranked opportunities out. Inputs are never mutated."""

    def __init__(
        self,
        scorer: Scorer,
        min_liquidity: float = 1000.0,
        min_edge: float = 0.05,
        min_volume: float = 0.0,
        max_concurrent: int = 2,
        batch_delay_sec: float = 1.5,
        sleep: Callable[[float], None] = time.sleep,
    ) -> None:
        self.scorer = scorer
        self.min_liquidity = min_liquidity
        self.min_edge = min_edge
        self.min_volume = min_volume
        self.max_concurrent = max_concurrent
        self.batch_delay_sec = batch_delay_sec
        self._sleep = sleep

    @classmethod
    def from_config(cls, scorer: Scorer, cfg: Config) -> MarketScanner:
        scanner = cls(scorer)
        scanner.update_config(cfg)
        return scanner

    def update_config(self, cfg: Config) -> None:
        """Hot-reload thresholds. Takes effect on the next scan."""
        self.min_liquidity = cfg.min_liquidity
        self.min_edge = cfg.min_edge
        self.min_volume = cfg.min_volume_filter
        self.max_concurrent = cfg.scorer_max_concurrent
        self.batch_delay_sec = cfg.scorer_batch_delay_sec

        heuristic = self.scorer
        if isinstance(heuristic, ExternalScorer):
            heuristic = heuristic.fallback
        if isinstance(heuristic, HeuristicScorer):
            heuristic.undervalued_threshold = cfg.undervalued_threshold
            heuristic.overvalued_threshold = cfg.overvalued_threshold

    def scan(self, markets: list[Market]) -> list[BettingOpportunity]:
        """Return opportunities sorted by expected value, highest first."""
        candidates = apply_pre_filters(
            markets,
            min_liquidity=self.min_liquidity,
            min_volume=self.min_volume,
        )
        if not candidates:
            return []

        if getattr(self.scorer, "supports_batch", False):
            scored = self._score_batched(candidates)
        else:
            scored = [(m, self._score_one(m)) for m in candidates]

        opportunities: list[BettingOpportunity] = []
        for market, score in scored:
            if score is None:
                continue
            outcome = reference_outcome(market)
            if outcome is None:
                continue
            opp = to_opportunity(market, outcome, score, min_edge=self.min_edge)
            if opp is not None:
                opportunities.append(opp)

        opportunities.sort(key=lambda o: o.expected_value, reverse=True)
        logger.debug(
            "Scan: %d markets -> %d candidates -> %d opportunities",
            len(markets), len(candidates), len(opportunities),
        )
        return opportunities

    def _score_one(self, market: Market) -> ScoreResult | None:
        outcome = reference_outcome(market)
        if outcome is None:
            return None
        try:
            return self.scorer.score(market, outcome)
        except Exception as e:
            logger.warning("Scoring failed for market %s: %s", market.id, e)
            return None

    def _score_batched(self, markets: list[Market]) -> list[tuple[Market, ScoreResult | None]]:
        results: list[tuple[Market, ScoreResult | None]] = []
        step = max(1, self.max_concurrent)
        with ThreadPoolExecutor(max_workers=step) as executor:
            for i in range(0, len(markets), step):
                batch = markets[i:i + step]
                futures = [executor.submit(self._score_one, m) for m in batch]
                results.extend(zip(batch, (f.result() for f in futures)))
                if i + step < len(markets) and self.batch_delay_sec > 0:
                    self._sleep(self.batch_delay_sec)
        return results


def hot_markets(markets: list[Market], min_liquidity: float = 1000.0, limit: int = 10) -> list[Market]:
    """Active, open, liquid markets by volume, highest first."""
    hot = [m for m in markets if m.is_tradable and m.liquidity > min_liquidity]
    hot.sort(key=lambda m: m.volume, reverse=True)
    return hot[:limit]
