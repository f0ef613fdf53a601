"""Data models — all frozen (immutable) snapshots."""
from __future__ import annotations

import enum
from dataclasses import dataclass
from decimal import Decimal


class MarginRequirement(enum.Enum):
    INIT = "init"
    MAINT = "maint"
    EQUITY = "equity"


class PriceBias(enum.Enum):
    NONE = "none"
    LOWEST = "lowest"
    HIGHEST = "highest"


@dataclass(frozen=True)
class Bank:
    """One lending market for one asset mint."""

    address: str
    mint: str
    label: str
    mint_decimals: int
    price: Decimal
    confidence: Decimal = Decimal(0)
    asset_share_value: Decimal = Decimal(1)
    liability_share_value: Decimal = Decimal(1)
    asset_weight_init: Decimal = Decimal(1)
    asset_weight_maint: Decimal = Decimal(1)
    liability_weight_init: Decimal = Decimal(1)
    liability_weight_maint: Decimal = Decimal(1)

    def get_price(self, bias: PriceBias = PriceBias.NONE) -> Decimal:
        """Oracle price, optionally skewed by the confidence interval."""
        if bias is PriceBias.LOWEST:
            return max(self.price - self.confidence, Decimal(0))
        if bias is PriceBias.HIGHEST:
            return self.price + self.confidence
        return self.price

    def asset_weight(self, requirement: MarginRequirement) -> Decimal:
        if requirement is MarginRequirement.INIT:
            return self.asset_weight_init
        if requirement is MarginRequirement.MAINT:
            return self.asset_weight_maint
        return Decimal(1)

    def liability_weight(self, requirement: MarginRequirement) -> Decimal:
        if requirement is MarginRequirement.INIT:
            return self.liability_weight_init
        if requirement is MarginRequirement.MAINT:
            return self.liability_weight_maint
        return Decimal(1)


@dataclass(frozen=True)
class Balance:
    """A position in one bank within one account."""

    bank_address: str
    asset_shares: Decimal = Decimal(0)
    liability_shares: Decimal = Decimal(0)
    active: bool = True


@dataclass(frozen=True)
class Account:
    """A lending account snapshot; balances keep their on-chain order."""

    address: str
    authority: str = ""
    balances: tuple[Balance, ...] = ()

    @property
    def active_balances(self) -> tuple[Balance, ...]:
        return tuple(
            b
            for b in self.balances
            if b.active and (b.asset_shares > 0 or b.liability_shares > 0)
        )

    def get_balance(self, bank_address: str) -> Balance:
        """Return the balance for a bank, or an empty one if none exists."""
        for balance in self.balances:
            if balance.bank_address == bank_address and balance.active:
                return balance
        return Balance(bank_address=bank_address, active=False)


@dataclass(frozen=True)
class Group:
    """The set of banks a lending group exposes, in registration order."""

    address: str
    banks: tuple[Bank, ...] = ()

    def get_bank_by_address(self, address: str) -> Bank:
        for bank in self.banks:
            if bank.address == address:
                return bank
        raise KeyError(f"Unknown bank {address}")

    def get_bank_by_mint(self, mint: str) -> Bank:
        for bank in self.banks:
            if bank.mint == mint:
                return bank
        raise KeyError(f"No bank for mint {mint}")


@dataclass(frozen=True)
class LiquidatorState:
    """The liquidator's own account together with the group it was read against."""

    account: Account
    group: Group


@dataclass(frozen=True)
class BalanceQuantity:
    """Native-unit quantities of one balance."""

    assets: Decimal
    liabilities: Decimal


@dataclass(frozen=True)
class BalanceUsdValue:
    assets: Decimal
    liabilities: Decimal


@dataclass(frozen=True)
class HealthComponents:
    """Weighted account totals under one margin requirement."""

    assets: Decimal
    liabilities: Decimal


@dataclass(frozen=True)
class LiquidationPlan:
    """The chosen liquidation for one victim account."""

    victim: str
    liability_bank: Bank
    collateral_bank: Bank
    max_liability_paydown_usd: Decimal
    max_collateral_usd: Decimal
    collateral_to_liquidate_usd: Decimal
    collateral_quantity: Decimal
    liability_index: int = 0
    collateral_index: int = 0
