"""
Pre-filters applied before markets reach the scorer.
"""

from __future__ import annotations

import logging

from scanner.models import Market

logger = logging.getLogger(__name__)


def filter_tradable(markets: list[Market]) -> list[Market]:
    """Drop inactive or closed markets."""
    return [m for m in markets if m.is_tradable]


def filter_by_liquidity(markets: list[Market], min_liquidity: float) -> list[Market]:
    """Drop markets below minimum liquidity (USD)."""
    if min_liquidity <= 0:
        return markets
    return [m for m in markets if m.liquidity >= min_liquidity]


def filter_by_volume(markets: list[Market], min_volume: float) -> list[Market]:
    """Drop markets below minimum volume (USD). Disabled at 0."""
    if min_volume <= 0:
        return markets
    return [m for m in markets if m.volume >= min_volume]


def apply_pre_filters(
    markets: list[Market],
    min_liquidity: float = 0.0,
    min_volume: float = 0.0,
) -> list[Market]:
    """Apply all pre-filters in sequence."""
    filtered = filter_tradable(markets)
    filtered = filter_by_liquidity(filtered, min_liquidity)
    filtered = filter_by_volume(filtered, min_volume)
    if len(filtered) < len(markets):
        logger.debug("Pre-filters kept %d/%d markets", len(filtered), len(markets))
    return filtered
