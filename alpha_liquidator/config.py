"""Configuration loader — reads config.yaml, interpolates env vars, validates."""
from __future__ import annotations

import logging
import os
import re
from dataclasses import dataclass, field
from decimal import Decimal, InvalidOperation
from pathlib import Path
from typing import Any

import yaml
from dotenv import load_dotenv

from .errors import ConfigError

logger = logging.getLogger(__name__)

USDC_MINT = "EPjFWdd5AufqSSqeM2qN1xzybapC8G4wEGGkZwyTDt1v"
WRAPPED_SOL_MINT = "So11111111111111111111111111111111111111112"

# ---------------------------------------------------------------------------
# Frozen config dataclasses
# ---------------------------------------------------------------------------


@dataclass(frozen=True)
class LiquidatorConfig:
    account: str = ""
    wallet: str = ""
    sleep_interval_ms: int = 5000
    min_native_balance: Decimal = Decimal(1)
    max_restarts: int | None = None

    @property
    def sleep_interval(self) -> float:
        """Sleep interval in seconds."""
        return self.sleep_interval_ms / 1000


@dataclass(frozen=True)
class AssetsConfig:
    quote_mint: str = USDC_MINT
    quote_decimals: int = 6
    wrapped_native_mint: str = WRAPPED_SOL_MINT
    native_decimals: int = 9


@dataclass(frozen=True)
class ChainConfig:
    rpc_endpoints: tuple[str, ...] = ()
    rpc_timeout: int = 30
    commitment: str = "confirmed"


@dataclass(frozen=True)
class BootstrapConfig:
    factory: str = ""
    options: dict[str, Any] = field(default_factory=dict)


@dataclass(frozen=True)
class TelegramConfig:
    enabled: bool = False
    alert_bot_token: str = ""
    log_bot_token: str = ""
    chat_id: str = ""


@dataclass(frozen=True)
class NotificationsConfig:
    telegram: TelegramConfig = field(default_factory=TelegramConfig)


@dataclass(frozen=True)
class AppConfig:
    liquidator: LiquidatorConfig = field(default_factory=LiquidatorConfig)
    assets: AssetsConfig = field(default_factory=AssetsConfig)
    chain: ChainConfig = field(default_factory=ChainConfig)
    bootstrap: BootstrapConfig = field(default_factory=BootstrapConfig)
    notifications: NotificationsConfig = field(default_factory=NotificationsConfig)


# ---------------------------------------------------------------------------
# Env interpolation
# ---------------------------------------------------------------------------

_ENV_VAR_RE = re.compile(r"\$\{([^}]+)}")


def _interpolate_env(value: Any) -> Any:
    """Recursively replace ${VAR} references with environment variable values."""
    if isinstance(value, str):
        return _ENV_VAR_RE.sub(lambda m: os.environ.get(m.group(1), ""), value)
    if isinstance(value, dict):
        return {k: _interpolate_env(v) for k, v in value.items()}
    if isinstance(value, list):
        return [_interpolate_env(item) for item in value]
    return value


# ---------------------------------------------------------------------------
# YAML → dataclass builders
# ---------------------------------------------------------------------------


def _optional_int(value: Any) -> int | None:
    if value is None or value == "":
        return None
    return int(value)


def _decimal(value: Any, name: str) -> Decimal:
    try:
        number = Decimal(str(value))
    except InvalidOperation:
        number = None
    if number is None or not number.is_finite():
        raise ConfigError(f"{name} must be a number, got {value!r}")
    return number


def _build_liquidator(raw: dict[str, Any]) -> LiquidatorConfig:
    return LiquidatorConfig(
        account=str(raw.get("account", "") or ""),
        wallet=str(raw.get("wallet", "") or ""),
        sleep_interval_ms=int(raw.get("sleep_interval_ms", 5000)),
        min_native_balance=_decimal(
            raw.get("min_native_balance", 1), "min_native_balance"
        ),
        max_restarts=_optional_int(raw.get("max_restarts")),
    )


def _build_assets(raw: dict[str, Any]) -> AssetsConfig:
    return AssetsConfig(
        quote_mint=raw.get("quote_mint", USDC_MINT),
        quote_decimals=int(raw.get("quote_decimals", 6)),
        wrapped_native_mint=raw.get("wrapped_native_mint", WRAPPED_SOL_MINT),
        native_decimals=int(raw.get("native_decimals", 9)),
    )


def _build_chain(raw: dict[str, Any]) -> ChainConfig:
    return ChainConfig(
        rpc_endpoints=tuple(e for e in raw.get("rpc_endpoints") or [] if e),
        rpc_timeout=int(raw.get("rpc_timeout", 30)),
        commitment=raw.get("commitment", "confirmed"),
    )


def _build_bootstrap(raw: dict[str, Any]) -> BootstrapConfig:
    return BootstrapConfig(
        factory=raw.get("factory", ""),
        options=dict(raw.get("options", {}) or {}),
    )


def _build_notifications(raw: dict[str, Any]) -> NotificationsConfig:
    tg = raw.get("telegram") or {}
    return NotificationsConfig(
        telegram=TelegramConfig(
            enabled=bool(tg.get("enabled", False)),
            alert_bot_token=tg.get("alert_bot_token", ""),
            log_bot_token=tg.get("log_bot_token", ""),
            chat_id=str(tg.get("chat_id", "")),
        ),
    )


# ---------------------------------------------------------------------------
# Public API
# ---------------------------------------------------------------------------


def load_config(config_path: str | Path | None = None) -> AppConfig:
    """Load and validate application configuration from YAML + .env.

    Args:
        config_path: Path to config.yaml. Defaults to ``config.yaml`` in the
            project root (one level up from this package).

    Raises:
        FileNotFoundError: the config file does not exist.
        ConfigError: a required value is missing or invalid.
    """
    load_dotenv()

    if config_path is None:
        config_path = Path(__file__).resolve().parent.parent / "config.yaml"
    config_path = Path(config_path)

    if not config_path.exists():
        raise FileNotFoundError(f"Config file not found: {config_path}")

    with open(config_path) as f:
        raw = yaml.safe_load(f) or {}

    raw = _interpolate_env(raw)

    cfg = AppConfig(
        liquidator=_build_liquidator(raw.get("liquidator") or {}),
        assets=_build_assets(raw.get("assets") or {}),
        chain=_build_chain(raw.get("chain") or {}),
        bootstrap=_build_bootstrap(raw.get("bootstrap") or {}),
        notifications=_build_notifications(raw.get("notifications") or {}),
    )

    _validate(cfg)
    logger.info("Configuration loaded from %s", config_path)
    return cfg


def _validate(cfg: AppConfig) -> None:
    """Raise on invalid configuration."""
    if not cfg.liquidator.account:
        raise ConfigError("Liquidator account is not set")
    if not cfg.liquidator.wallet:
        raise ConfigError("Liquidator wallet is not set")
    if cfg.liquidator.sleep_interval_ms <= 0:
        raise ConfigError("sleep_interval_ms must be positive")
    if cfg.liquidator.min_native_balance < 0:
        raise ConfigError("min_native_balance must not be negative")
    if cfg.liquidator.max_restarts is not None and cfg.liquidator.max_restarts < 0:
        raise ConfigError("max_restarts must not be negative")
    if not cfg.chain.rpc_endpoints:
        raise ConfigError("At least one RPC endpoint must be configured")
    if not cfg.assets.quote_mint:
        raise ConfigError("Quote mint is not set")
    if not cfg.bootstrap.factory:
        raise ConfigError("Bootstrap factory is not set")
    if cfg.notifications.telegram.enabled and not cfg.notifications.telegram.chat_id:
        raise ConfigError("Telegram is enabled but chat_id is empty")
