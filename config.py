"""
Configuration loaded from environment variables. Fail-fast on invalid values.
"""

from pydantic_settings import BaseSettings
from pydantic import Field

from executor.safety import SafetyLimits

CONFIG_VERSION = 1


class Config(BaseSettings):
    model_config = {"env_file": ".env", "env_file_encoding": "utf-8", "frozen": True, "extra": "forbid"}

    config_version: int = Field(default=CONFIG_VERSION, ge=CONFIG_VERSION, le=CONFIG_VERSION)

    # Credentials (required for live trading only)
    private_key: str = Field(default="", description="Polygon wallet private key (hex)")
    polymarket_profile_address: str = Field(default="", description="Polymarket proxy address")
    signature_type: int = Field(default=1, ge=0, le=2)

    # API endpoints
    clob_host: str = "https://clob.polymarket.com"
    gamma_host: str = "https://gamma-api.polymarket.com"
    chain_id: int = 137  # Polygon mainnet

    # Safety limits
    max_bet_size: float = Field(default=10.0, gt=0)
    max_daily_loss: float = Field(default=50.0, gt=0)
    max_total_exposure: float = Field(default=200.0, gt=0)
    # Fraction of bankroll allowed in a single market
    max_position_percent: float = Field(default=0.1, gt=0, le=1.0)
    min_liquidity: float = Field(default=1000.0, ge=0)
    # Halve limits while both today's and total P&L are negative
    dynamic_limits_enabled: bool = False

    # Heuristic scorer thresholds
    undervalued_threshold: float = Field(default=0.30, gt=0, lt=0.5)
    overvalued_threshold: float = Field(default=0.75, gt=0.5, lt=1.0)
    # Minimum expected value (fraction of stake) for an opportunity to be emitted
    min_edge: float = Field(default=0.05, ge=0)
    min_volume_filter: float = Field(default=0.0, ge=0)

    # Cycle
    initial_bankroll: float = Field(default=100.0, ge=0)
    scan_interval_sec: float = Field(default=30.0, gt=0)
    market_fetch_limit: int = Field(default=100, ge=1, le=500)
    max_opportunities: int = Field(default=10, ge=1)
    max_trades_per_cycle: int = Field(default=3, ge=0)
    auto_execute: bool = True

    # Modes
    paper_trading: bool = True
    log_level: str = "INFO"

    # Paper fill simulation
    sim_latency_min_sec: float = Field(default=0.3, ge=0)
    sim_latency_max_sec: float = Field(default=0.8, ge=0)
    sim_success_rate: float = Field(default=0.95, ge=0, le=1.0)
    sim_max_slippage: float = Field(default=0.01, ge=0, le=0.1)
    sim_price_drift: float = Field(default=0.05, ge=0, le=0.5)

    # External LLM scorer (falls back to the heuristic without a key)
    llm_enabled: bool = False
    llm_api_key: str = ""
    llm_provider: str = "openrouter"  # openrouter | openai
    llm_model: str = "google/gemini-2.0-flash-exp:free"
    llm_timeout_sec: float = Field(default=30.0, gt=0)
    scorer_max_concurrent: int = Field(default=2, ge=1, le=8)
    scorer_batch_delay_sec: float = Field(default=1.5, ge=0)

    # Notifications (best-effort; empty = disabled)
    telegram_bot_token: str = ""
    telegram_chat_id: str = ""
    discord_webhook_url: str = ""
    notify_on_trade: bool = True
    notify_on_opportunity: bool = False
    notify_on_safety_stop: bool = True
    notify_on_daily_summary: bool = True

    def safety_limits(self) -> SafetyLimits:
        """Build the immutable SafetyLimits value object from this config."""
        return SafetyLimits(
            max_bet_size=self.max_bet_size,
            max_daily_loss=self.max_daily_loss,
            max_total_exposure=self.max_total_exposure,
            max_position_percent=self.max_position_percent,
            min_liquidity=self.min_liquidity,
        )


def has_trading_credentials(cfg: Config) -> bool:
    """Live orders need both a signing key and the funder address."""
    return bool(cfg.private_key and cfg.polymarket_profile_address)


def load_config() -> Config:
    """Load and validate config from environment. Raises on invalid fields."""
    return Config()
