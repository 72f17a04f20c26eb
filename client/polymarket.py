"""
Polymarket facade: Gamma for discovery, CLOB for quotes and orders.
Satisfies both MarketDataSource and OrderExecutor.
"""

from __future__ import annotations

import logging

from py_clob_client.client import ClobClient

from client import clob, gamma
from client.platform import OrderRequest, OrderResult, Quote
from scanner.models import Market

logger = logging.getLogger(__name__)


class PolymarketClient:
    def __init__(self, gamma_host: str, clob_client: ClobClient, authenticated: bool = False) -> None:
        self.gamma_host = gamma_host
        self._clob = clob_client
        self._authenticated = authenticated

    def get_markets(self, limit: int = 100) -> list[Market]:
        return gamma.get_markets(self.gamma_host, limit=limit)

    def get_prices(self, token_id: str) -> Quote:
        return clob.get_quote(self._clob, token_id)

    def has_credentials(self) -> bool:
        return self._authenticated

    def place_order(self, request: OrderRequest) -> OrderResult:
        if not self._authenticated:
            return OrderResult(success=False, error="No trading credentials configured")
        logger.debug("Placing %s %.2f on %s", request.side, request.size, request.token_id)
        return clob.place_order(self._clob, request)
