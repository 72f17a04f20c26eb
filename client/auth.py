"""
CLOB client construction. Live trading needs L2 API credentials derived
from the wallet key; everything else works against the public endpoints.
"""

import logging

from py_clob_client.client import ClobClient
from py_clob_client.clob_types import ApiCreds

from config import Config, has_trading_credentials

logger = logging.getLogger(__name__)


def build_trading_client(cfg: Config) -> ClobClient:
    """Signing client with L2 creds (created on first use, derived after)."""
    client = ClobClient(
        host=cfg.clob_host,
        chain_id=cfg.chain_id,
        key=cfg.private_key,
        signature_type=cfg.signature_type,
        funder=cfg.polymarket_profile_address,
    )
    creds: ApiCreds = client.create_or_derive_api_creds()
    client.set_api_creds(creds)
    logger.info("CLOB trading client ready (funder=%s...)", cfg.polymarket_profile_address[:10])
    return client


def build_client(cfg: Config) -> tuple[ClobClient, bool]:
    """
    (client, authenticated). Without a key and funder address the client is
    read-only and the executor falls back to paper fills.
    """
    if has_trading_credentials(cfg):
        return build_trading_client(cfg), True
    logger.info("No trading credentials; using read-only CLOB client")
    return ClobClient(host=cfg.clob_host), False
