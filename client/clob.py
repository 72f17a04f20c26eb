"""
py_clob_client adapter: order book quotes and order placement, returned as
Quote / OrderResult values so callers never see SDK types.
"""

from __future__ import annotations

import logging
import time

import httpx
from py_clob_client.client import ClobClient
from py_clob_client.clob_types import (
    MarketOrderArgs,
    OrderArgs,
    OrderType,
    PartialCreateOrderOptions,
)
from py_clob_client.http_helpers import helpers as _clob_helpers
from py_clob_client.order_builder.constants import BUY, SELL

from client.platform import OrderRequest, OrderResult, Quote

logger = logging.getLogger(__name__)

_ATTEMPTS = 3
_BACKOFF_BASE_SEC = 1.0
# Substrings the SDK puts in PolyApiException for transport failures (no HTTP status).
_TRANSIENT_MARKERS = ("Request exception", "status_code=None")

# The SDK shares one module-level httpx client. HTTP/2 GOAWAY frames from the
# CLOB kill its pool, so force HTTP/1.1 with a bounded timeout.
_clob_helpers._http_client = httpx.Client(http2=False, timeout=15.0)


def _is_transient(exc: Exception) -> bool:
    text = str(exc)
    return any(marker in text for marker in _TRANSIENT_MARKERS)


def _call_with_retry(fn, *args, attempts: int = _ATTEMPTS, **kwargs):
    """Call an SDK method, backing off 1s, 2s, ... on transport errors. HTTP errors raise at once."""
    for attempt in range(1, attempts + 1):
        try:
            return fn(*args, **kwargs)
        except Exception as exc:
            if attempt == attempts or not _is_transient(exc):
                raise
            delay = _BACKOFF_BASE_SEC * 2 ** (attempt - 1)
            logger.debug("CLOB call %s failed (attempt %d/%d), retrying in %.1fs: %s",
                         getattr(fn, "__name__", "?"), attempt, attempts, delay, exc)
            time.sleep(delay)


def get_midpoint(client: ClobClient, token_id: str) -> float:
    resp = _call_with_retry(client.get_midpoint, token_id)
    return float(resp["mid"])


def get_quote(client: ClobClient, token_id: str) -> Quote:
    """
    Best bid/ask from the orderbook. The SDK does not guarantee level order,
    so take max/min rather than index 0. Falls back to the midpoint endpoint
    when a side of the book is empty.
    """
    raw = _call_with_retry(client.get_order_book, token_id)
    bids = [float(b.price) for b in (raw.bids or [])]
    asks = [float(a.price) for a in (raw.asks or [])]
    best_bid = max(bids) if bids else 0.0
    best_ask = min(asks) if asks else 0.0
    if bids and asks:
        mid = (best_bid + best_ask) / 2.0
    else:
        mid = get_midpoint(client, token_id)
    return Quote(bid=best_bid, ask=best_ask, mid=mid)


def _sdk_side(side: str) -> str:
    return BUY if side.upper() == "BUY" else SELL


def sign_order(client: ClobClient, request: OrderRequest, tick_size: str = "0.01") -> tuple[object, OrderType]:
    """
    Build and sign the SDK order for a request, paired with its time in force.
    No price means a FOK market order sized in dollars (BUY) or shares (SELL);
    a price means a GTC limit order for `size` shares.
    """
    options = PartialCreateOrderOptions(tick_size=tick_size)
    if request.price is None:
        args = MarketOrderArgs(token_id=request.token_id, amount=request.size, side=_sdk_side(request.side))
        return client.create_market_order(args, options), OrderType.FOK
    args = OrderArgs(
        token_id=request.token_id,
        price=request.price,
        size=request.size,
        side=_sdk_side(request.side),
    )
    return client.create_order(args, options), OrderType.GTC


def _order_is_filled(status: str) -> bool:
    return status.lower() in ("matched", "filled")


def place_order(client: ClobClient, request: OrderRequest) -> OrderResult:
    """
    Sign and post one order. Market orders go out as FOK, limit orders as GTC.
    SDK errors and rejections come back as a failed OrderResult.
    """
    try:
        signed, order_type = sign_order(client, request)
        resp = client.post_order(signed, order_type)
    except Exception as e:
        logger.warning("Order placement failed for %s: %s", request.token_id, e)
        return OrderResult(success=False, error=str(e))

    resp = resp or {}
    order_id = str(resp.get("orderID", resp.get("order_id", "")))
    error = str(resp.get("errorMsg") or resp.get("error") or "")
    status = str(resp.get("status", ""))
    success = bool(resp.get("success", False)) and not error
    if success and status and request.price is None and not _order_is_filled(status):
        success = False
        error = f"Order not filled: status={status}"
    if not success and not error:
        error = "Order rejected"
    return OrderResult(success=success, order_id=order_id, error=error)
