"""
Collaborator protocols. Thin interfaces the executor depends on, so the
Gamma/CLOB clients can be swapped for fakes or other venues.
"""

from __future__ import annotations

from dataclasses import dataclass
from typing import Protocol, runtime_checkable

from scanner.models import Market


@dataclass(frozen=True)
class Quote:
    bid: float
    ask: float
    mid: float


@dataclass(frozen=True)
class OrderRequest:
    token_id: str
    side: str  # "BUY" | "SELL"
    size: float  # dollars for market BUY orders, shares otherwise
    price: float | None = None  # None = market order


@dataclass(frozen=True)
class OrderResult:
    success: bool
    order_id: str = ""
    error: str = ""


@runtime_checkable
class MarketDataSource(Protocol):
    """Market discovery and quotes."""

    def get_markets(self, limit: int = 100) -> list[Market]:
        """Fetch active markets. Malformed entries are dropped, not raised."""
        ...

    def get_prices(self, token_id: str) -> Quote:
        """Current bid/ask/mid for an outcome token."""
        ...


@runtime_checkable
class OrderExecutor(Protocol):
    """Order placement. Signing is the implementation's concern."""

    def has_credentials(self) -> bool:
        ...

    def place_order(self, request: OrderRequest) -> OrderResult:
        """Place an order. Rejections come back as success=False, not exceptions."""
        ...
