"""Shared test fixtures, sample banks and an in-memory ledger double."""
from __future__ import annotations

import textwrap
from decimal import Decimal
from pathlib import Path
from typing import Any, Callable

import pytest

from alpha_liquidator.config import (
    AppConfig,
    AssetsConfig,
    BootstrapConfig,
    ChainConfig,
    LiquidatorConfig,
    NotificationsConfig,
    TelegramConfig,
    USDC_MINT,
    WRAPPED_SOL_MINT,
)
from alpha_liquidator.models import Balance, Bank, Group
from tests.fakes import ETH_MINT, LIQUIDATOR, WALLET, FakeLedger, native


# ---------------------------------------------------------------------------
# Bank / group fixtures
# ---------------------------------------------------------------------------


@pytest.fixture()
def usdc_bank() -> Bank:
    return Bank(
        address="bank-usdc",
        mint=USDC_MINT,
        label="USDC",
        mint_decimals=6,
        price=Decimal("1"),
    )


@pytest.fixture()
def sol_bank() -> Bank:
    return Bank(
        address="bank-sol",
        mint=WRAPPED_SOL_MINT,
        label="SOL",
        mint_decimals=9,
        price=Decimal("100"),
        asset_weight_init=Decimal("0.5"),
        asset_weight_maint=Decimal("0.55"),
    )


@pytest.fixture()
def eth_bank() -> Bank:
    return Bank(
        address="bank-eth",
        mint=ETH_MINT,
        label="ETH",
        mint_decimals=8,
        price=Decimal("2000"),
        asset_weight_init=Decimal("0.8"),
        asset_weight_maint=Decimal("0.9"),
        liability_weight_init=Decimal("1.25"),
        liability_weight_maint=Decimal("1.1"),
    )


@pytest.fixture()
def group(usdc_bank: Bank, sol_bank: Bank, eth_bank: Bank) -> Group:
    return Group(address="group-1", banks=(usdc_bank, sol_bank, eth_bank))


@pytest.fixture()
def deposit() -> Callable[[Bank, Any], Balance]:
    """Balance holding ``ui_amount`` of the bank's asset."""

    def _make(bank: Bank, ui_amount: Any) -> Balance:
        return Balance(bank_address=bank.address, asset_shares=native(bank, ui_amount))

    return _make


@pytest.fixture()
def borrow() -> Callable[[Bank, Any], Balance]:
    """Balance owing ``ui_amount`` of the bank's asset."""

    def _make(bank: Bank, ui_amount: Any) -> Balance:
        return Balance(
            bank_address=bank.address, liability_shares=native(bank, ui_amount)
        )

    return _make


# ---------------------------------------------------------------------------
# Config fixtures
# ---------------------------------------------------------------------------


@pytest.fixture()
def sample_app_config() -> AppConfig:
    return AppConfig(
        liquidator=LiquidatorConfig(
            account=LIQUIDATOR,
            wallet=WALLET,
            sleep_interval_ms=10,
            min_native_balance=Decimal("1"),
        ),
        assets=AssetsConfig(),
        chain=ChainConfig(rpc_endpoints=("https://rpc1.example.com",), rpc_timeout=5),
        bootstrap=BootstrapConfig(factory="tests.factories:build"),
        notifications=NotificationsConfig(telegram=TelegramConfig(enabled=False)),
    )


SAMPLE_YAML = textwrap.dedent("""\
    liquidator:
      account: "LiqAccount"
      wallet: "LiqWallet"
      sleep_interval_ms: 2500
      min_native_balance: 0.5
    assets:
      quote_mint: "EPjFWdd5AufqSSqeM2qN1xzybapC8G4wEGGkZwyTDt1v"
      quote_decimals: 6
    chain:
      rpc_endpoints: ["https://rpc.example.com"]
      rpc_timeout: 10
    bootstrap:
      factory: "my_deployment.liquidator:build"
    notifications:
      telegram:
        enabled: true
        alert_bot_token: "tok1"
        log_bot_token: "tok2"
        chat_id: "999"
""")


@pytest.fixture()
def sample_yaml_path(tmp_path: Path) -> Path:
    cfg_file = tmp_path / "config.yaml"
    cfg_file.write_text(SAMPLE_YAML)
    return cfg_file

# ---------------------------------------------------------------------------
# Ledger
# ---------------------------------------------------------------------------


@pytest.fixture()
def ledger(group: Group) -> FakeLedger:
    return FakeLedger(group)
