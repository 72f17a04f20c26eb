"""
Unit tests for client/clob.py and client/polymarket.py with a mocked SDK client.
"""

from types import SimpleNamespace
from unittest.mock import MagicMock, patch

import pytest
from py_clob_client.clob_types import OrderType

from client import clob
from client.platform import MarketDataSource, OrderExecutor, OrderRequest, OrderResult
from client.polymarket import PolymarketClient


def _book(bids, asks):
    return SimpleNamespace(
        bids=[SimpleNamespace(price=str(p), size="100") for p in bids],
        asks=[SimpleNamespace(price=str(p), size="100") for p in asks],
    )


class TestGetQuote:
    def test_best_levels_regardless_of_order(self):
        client = MagicMock()
        client.get_order_book.return_value = _book([0.40, 0.44, 0.42], [0.50, 0.46, 0.48])
        quote = clob.get_quote(client, "tok")
        assert quote.bid == pytest.approx(0.44)
        assert quote.ask == pytest.approx(0.46)
        assert quote.mid == pytest.approx(0.45)
        client.get_midpoint.assert_not_called()

    def test_one_sided_book_uses_midpoint(self):
        client = MagicMock()
        client.get_order_book.return_value = _book([0.40], [])
        client.get_midpoint.return_value = {"mid": "0.41"}
        quote = clob.get_quote(client, "tok")
        assert quote.bid == pytest.approx(0.40)
        assert quote.ask == 0.0
        assert quote.mid == pytest.approx(0.41)


class TestRetry:
    def test_retries_connection_errors(self):
        fn = MagicMock(side_effect=[Exception("Request exception"), "ok"])
        with patch("client.clob.time.sleep"):
            assert clob._call_with_retry(fn) == "ok"
        assert fn.call_count == 2

    def test_does_not_retry_http_errors(self):
        fn = MagicMock(side_effect=Exception("status_code=400 bad request"))
        with pytest.raises(Exception, match="400"):
            clob._call_with_retry(fn)
        assert fn.call_count == 1


class TestPlaceOrder:
    def test_market_order_is_fok(self):
        client = MagicMock()
        client.post_order.return_value = {"success": True, "orderID": "0xabc", "status": "matched"}
        result = clob.place_order(client, OrderRequest(token_id="tok", side="BUY", size=5.0))
        assert result == OrderResult(success=True, order_id="0xabc", error="")
        client.create_market_order.assert_called_once()
        assert client.post_order.call_args[0][1] == OrderType.FOK

    def test_limit_order_is_gtc(self):
        client = MagicMock()
        client.post_order.return_value = {"success": True, "orderID": "0xdef", "status": "live"}
        result = clob.place_order(client, OrderRequest(token_id="tok", side="BUY", size=10.0, price=0.42))
        assert result.success is True
        client.create_order.assert_called_once()
        assert client.post_order.call_args[0][1] == OrderType.GTC

    def test_unfilled_market_order_fails(self):
        client = MagicMock()
        client.post_order.return_value = {"success": True, "orderID": "0x1", "status": "unmatched"}
        result = clob.place_order(client, OrderRequest(token_id="tok", side="BUY", size=5.0))
        assert result.success is False
        assert "unmatched" in result.error

    def test_rejection_message(self):
        client = MagicMock()
        client.post_order.return_value = {"success": False, "errorMsg": "not enough balance"}
        result = clob.place_order(client, OrderRequest(token_id="tok", side="BUY", size=5.0))
        assert result.success is False
        assert result.error == "not enough balance"

    def test_sdk_exception_becomes_failure(self):
        client = MagicMock()
        client.create_market_order.side_effect = RuntimeError("signing failed")
        result = clob.place_order(client, OrderRequest(token_id="tok", side="BUY", size=5.0))
        assert result.success is False
        assert result.error == "signing failed"


class TestPolymarketClient:
    def test_satisfies_protocols(self):
        pm = PolymarketClient("https://gamma", MagicMock())
        assert isinstance(pm, MarketDataSource)
        assert isinstance(pm, OrderExecutor)

    def test_unauthenticated_cannot_trade(self):
        client = MagicMock()
        pm = PolymarketClient("https://gamma", client, authenticated=False)
        assert pm.has_credentials() is False
        result = pm.place_order(OrderRequest(token_id="tok", side="BUY", size=5.0))
        assert result.success is False
        client.post_order.assert_not_called()

    def test_authenticated_routes_to_clob(self):
        pm = PolymarketClient("https://gamma", MagicMock(), authenticated=True)
        with patch("client.polymarket.clob.place_order", return_value=OrderResult(success=True, order_id="x")) as po:
            assert pm.place_order(OrderRequest(token_id="tok", side="BUY", size=5.0)).order_id == "x"
        po.assert_called_once()

    def test_get_markets_uses_gamma(self):
        pm = PolymarketClient("https://gamma", MagicMock())
        with patch("client.polymarket.gamma.get_markets", return_value=[]) as gm:
            assert pm.get_markets(limit=25) == []
        gm.assert_called_once_with("https://gamma", limit=25)
