"""
Gamma API client for market discovery. Pure REST, no SDK dependency.
"""

from __future__ import annotations

import json
import logging

import httpx

from scanner.models import Market, Outcome

logger = logging.getLogger(__name__)

_TIMEOUT = 30.0


def _get(base_url: str, path: str, params: dict | None = None) -> dict | list:
    """Make a GET request to the Gamma API. Raises on non-200."""
    url = f"{base_url}{path}"
    resp = httpx.get(url, params=params, timeout=_TIMEOUT)
    resp.raise_for_status()
    return resp.json()


def _json_list(raw) -> list:
    """Gamma encodes some list fields as JSON strings."""
    if isinstance(raw, str):
        return json.loads(raw)
    return list(raw or [])


def parse_market(m: dict) -> Market:
    """
    Convert one Gamma market payload into our Market model.
    Raises ValueError/TypeError/KeyError on malformed payloads.
    """
    market_id = str(m.get("id") or m.get("conditionId") or m.get("condition_id") or "")
    if not market_id:
        raise ValueError("market has no id")

    outcomes: list[Outcome] = []
    tokens = m.get("tokens")
    if isinstance(tokens, list) and tokens:
        for token in tokens:
            outcomes.append(Outcome(
                id=str(token.get("token_id") or token.get("id")),
                name=str(token.get("outcome") or "Yes"),
                price=float(token.get("price", 0.5)),
            ))
    elif m.get("outcomePrices"):
        prices = _json_list(m["outcomePrices"])
        names = _json_list(m.get("outcomes")) or ["Yes", "No"]
        token_ids = _json_list(m.get("clobTokenIds") or m.get("clob_token_ids"))
        for idx, price in enumerate(prices):
            outcomes.append(Outcome(
                id=str(token_ids[idx]) if idx < len(token_ids) else f"{market_id}-{idx}",
                name=names[idx] if idx < len(names) else f"Outcome {idx + 1}",
                price=float(price),
            ))

    if not outcomes:
        raise ValueError(f"market {market_id} has no outcomes")

    return Market(
        id=market_id,
        question=str(m.get("question") or m.get("title") or "Unknown Market"),
        liquidity=float(m.get("liquidityNum", m.get("liquidity", 0)) or 0),
        volume=float(m.get("volumeNum", m.get("volume", 0)) or 0),
        outcomes=tuple(outcomes),
        active=m.get("active") is not False,
        closed=m.get("closed") is True,
        slug=str(m.get("slug") or ""),
        end_date=str(m.get("endDateIso") or m.get("end_date_iso") or m.get("endDate") or ""),
    )


def get_markets(gamma_host: str, limit: int = 100, offset: int = 0) -> list[Market]:
    """
    Fetch active, open markets. A malformed market is dropped from the batch;
    HTTP errors propagate to the caller.
    """
    params = {"limit": limit, "offset": offset, "active": "true", "closed": "false"}
    raw_markets = _get(gamma_host, "/markets", params)

    markets: list[Market] = []
    for m in raw_markets:
        try:
            markets.append(parse_market(m))
        except (ValueError, TypeError, KeyError, AttributeError, json.JSONDecodeError) as e:
            logger.debug("Dropping malformed market %s: %s", m.get("id", "?") if isinstance(m, dict) else "?", e)
    return markets


def get_market(gamma_host: str, market_id: str) -> Market:
    """Fetch a single market by id."""
    return parse_market(_get(gamma_host, f"/markets/{market_id}"))
