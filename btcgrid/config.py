"""Pydantic Settings configuration models.

Config hierarchy (lowest to highest priority):
1. Pydantic defaults (in code below)
2. .env file (loaded by Pydantic Settings)
3. Environment variables (e.g., BTCGRID_TRAILING__INTERVAL_SECONDS=5)
"""

from __future__ import annotations

import re
from decimal import Decimal

from pydantic import BaseModel, Field, field_validator
from pydantic_settings import BaseSettings, SettingsConfigDict

VALID_LOG_LEVELS = frozenset({"DEBUG", "INFO", "WARNING", "ERROR", "CRITICAL"})
VALID_LOG_FORMATS = frozenset({"console", "json"})


class ExchangeConfig(BaseModel):
    """Binance connection configuration for both environments."""

    symbol: str = "BTCUSDT"
    base_asset: str = "BTC"
    quote_asset: str = "USDT"
    testnet_api_key: str = ""
    testnet_secret_key: str = ""
    prod_api_key: str = ""
    prod_secret_key: str = ""
    testnet_base_url: str = "https://testnet.binance.vision"
    prod_base_url: str = "https://api.binance.com"
    recv_window_ms: int = Field(default=60000, ge=1000, le=60000)
    timeout_seconds: float = Field(default=10.0, gt=0, le=60.0)

    @field_validator("symbol", "base_asset", "quote_asset")
    @classmethod
    def validate_asset_code(cls, v: str) -> str:
        v = v.upper()
        if not re.match(r"^[A-Z0-9]{2,20}$", v):
            raise ValueError(f"Invalid symbol or asset code: {v}")
        return v

    @property
    def has_production_keys(self) -> bool:
        return bool(self.prod_api_key) and bool(self.prod_secret_key)


class TrailingConfig(BaseModel):
    """Trailing-order repricing loop parameters."""

    interval_seconds: float = Field(default=10.0, gt=0)
    deadband_pct: Decimal = Field(
        default=Decimal("0.001"),
        ge=Decimal("0"),
        le=Decimal("0.05"),
    )
    max_trailing_percent: Decimal = Field(
        default=Decimal("10"),
        gt=Decimal("0"),
        le=Decimal("50"),
    )


class FillMonitorConfig(BaseModel):
    """Fill/cancellation detection loop parameters."""

    interval_seconds: float = Field(default=30.0, gt=0)
    trade_lookback: int = Field(default=20, ge=1, le=1000)


class HistoryConfig(BaseModel):
    """Trade-history reporting parameters."""

    trade_limit: int = Field(default=100, ge=1, le=1000)


class AppConfig(BaseSettings):
    """Top-level application configuration.

    Env var examples:
        BTCGRID_LOG_LEVEL=DEBUG
        BTCGRID_EXCHANGE__TESTNET_API_KEY=your-key
        BTCGRID_TRAILING__DEADBAND_PCT=0.002
        BTCGRID_FILLS__TRADE_LOOKBACK=50
    """

    model_config = SettingsConfigDict(
        env_prefix="BTCGRID_",
        env_nested_delimiter="__",
        env_file=".env",
        env_file_encoding="utf-8",
        extra="ignore",
    )

    log_level: str = "INFO"
    log_format: str = "console"
    exchange: ExchangeConfig = ExchangeConfig()
    trailing: TrailingConfig = TrailingConfig()
    fills: FillMonitorConfig = FillMonitorConfig()
    history: HistoryConfig = HistoryConfig()

    @field_validator("log_level")
    @classmethod
    def validate_log_level(cls, v: str) -> str:
        v = v.upper()
        if v not in VALID_LOG_LEVELS:
            raise ValueError(
                f"log_level must be one of {sorted(VALID_LOG_LEVELS)}, got {v}"
            )
        return v

    @field_validator("log_format")
    @classmethod
    def validate_log_format(cls, v: str) -> str:
        v = v.lower()
        if v not in VALID_LOG_FORMATS:
            raise ValueError(
                f"log_format must be one of {sorted(VALID_LOG_FORMATS)}, got {v}"
            )
        return v
