"""Pure balance and health arithmetic over account/group snapshots — no I/O.

Quantities are native units (integers held as ``Decimal``). USD values are
``quantity * price * weight / 10^decimals``. Conversions from USD back to a
native quantity truncate so they never overshoot what is available.
"""
from __future__ import annotations

from decimal import ROUND_DOWN, Decimal, localcontext
from typing import Iterator

from ..models import (
    Account,
    Balance,
    BalanceQuantity,
    BalanceUsdValue,
    Bank,
    Group,
    HealthComponents,
    MarginRequirement,
    PriceBias,
)

_ZERO = Decimal(0)


def _scale(decimals: int) -> Decimal:
    return Decimal(10) ** decimals


def _truncate(value: Decimal) -> Decimal:
    return value.to_integral_value(rounding=ROUND_DOWN)


# ---------------------------------------------------------------------------
# Unit conversions
# ---------------------------------------------------------------------------


def native_to_ui(amount: Decimal, decimals: int) -> Decimal:
    """Convert native units to a human-readable amount."""
    return Decimal(amount) / _scale(decimals)


def ui_to_native(amount: Decimal, decimals: int) -> Decimal:
    """Convert a human-readable amount to native units, truncating."""
    return _truncate(Decimal(amount) * _scale(decimals))


def dust_threshold(quote_decimals: int) -> Decimal:
    """USD value below which a quantity is treated as zero.

    Defined as 10^(d-2) native units of the quote asset, i.e. one cent for a
    six-decimal stable coin.
    """
    return _scale(quote_decimals - 2) / _scale(quote_decimals)


def native_to_usd(
    quantity: Decimal,
    bank: Bank,
    bias: PriceBias = PriceBias.NONE,
    weight: Decimal = Decimal(1),
) -> Decimal:
    return quantity * bank.get_price(bias) * weight / _scale(bank.mint_decimals)


def usd_to_native(
    usd_value: Decimal, bank: Bank, bias: PriceBias = PriceBias.NONE
) -> Decimal:
    """Convert a USD value to a native quantity of the bank's mint.

    Returns zero for non-positive values or a zero price.
    """
    price = bank.get_price(bias)
    if usd_value <= 0 or price <= 0:
        return _ZERO
    with localcontext() as ctx:
        ctx.rounding = ROUND_DOWN
        native = usd_value / price * _scale(bank.mint_decimals)
    return _truncate(native)


# ---------------------------------------------------------------------------
# Balance valuation
# ---------------------------------------------------------------------------


def quantities(balance: Balance, bank: Bank) -> BalanceQuantity:
    """Asset and liability quantities of a balance, in whole native units.

    Accrued share values leave a fraction of a native unit on either side;
    it is truncated away.
    """
    return BalanceQuantity(
        assets=_truncate(balance.asset_shares * bank.asset_share_value),
        liabilities=_truncate(balance.liability_shares * bank.liability_share_value),
    )


def usd_value(
    balance: Balance,
    bank: Bank,
    requirement: MarginRequirement = MarginRequirement.EQUITY,
    bias: PriceBias = PriceBias.NONE,
) -> BalanceUsdValue:
    """Weighted USD value of both sides of a balance."""
    qty = quantities(balance, bank)
    return BalanceUsdValue(
        assets=native_to_usd(
            qty.assets, bank, bias, bank.asset_weight(requirement)
        ),
        liabilities=native_to_usd(
            qty.liabilities, bank, bias, bank.liability_weight(requirement)
        ),
    )


def iter_active(account: Account, group: Group) -> Iterator[tuple[Balance, Bank]]:
    """Yield (balance, bank) for every active balance in stored order."""
    for balance in account.active_balances:
        yield balance, group.get_bank_by_address(balance.bank_address)


# ---------------------------------------------------------------------------
# Account health
# ---------------------------------------------------------------------------


def health_components(
    account: Account, group: Group, requirement: MarginRequirement
) -> HealthComponents:
    """Sum weighted asset and liability values over the active balances.

    The initial requirement values assets at the low end and liabilities at
    the high end of the oracle confidence interval.
    """
    if requirement is MarginRequirement.INIT:
        asset_bias, liability_bias = PriceBias.LOWEST, PriceBias.HIGHEST
    else:
        asset_bias = liability_bias = PriceBias.NONE

    assets = _ZERO
    liabilities = _ZERO
    for balance, bank in iter_active(account, group):
        qty = quantities(balance, bank)
        assets += native_to_usd(
            qty.assets, bank, asset_bias, bank.asset_weight(requirement)
        )
        liabilities += native_to_usd(
            qty.liabilities, bank, liability_bias, bank.liability_weight(requirement)
        )
    return HealthComponents(assets=assets, liabilities=liabilities)


def can_be_liquidated(account: Account, group: Group) -> bool:
    health = health_components(account, group, MarginRequirement.MAINT)
    return health.liabilities > health.assets


def free_collateral(account: Account, group: Group) -> Decimal:
    """Initial-weighted collateral not backing any liability (USD)."""
    health = health_components(account, group, MarginRequirement.INIT)
    return max(health.assets - health.liabilities, _ZERO)


def max_withdraw_for_bank(account: Account, group: Group, bank: Bank) -> Decimal:
    """Largest deposit withdrawal the initial requirement permits (native)."""
    deposit = quantities(account.get_balance(bank.address), bank).assets
    if deposit <= 0:
        return _ZERO

    weight = bank.asset_weight_init
    price = bank.get_price(PriceBias.LOWEST)
    if weight <= 0 or price <= 0:
        return deposit

    free = free_collateral(account, group)
    with localcontext() as ctx:
        ctx.rounding = ROUND_DOWN
        untied = free / (price * weight) * _scale(bank.mint_decimals)
    return min(deposit, _truncate(untied))


def max_borrow_for_bank(account: Account, group: Group, bank: Bank) -> Decimal:
    """How much of the bank's mint the account can take out (native).

    The untied part of an existing deposit counts first; whatever free
    collateral is left after withdrawing it fully is converted into new
    borrowing at the high-biased liability price.
    """
    deposit = quantities(account.get_balance(bank.address), bank).assets
    withdrawable = max_withdraw_for_bank(account, group, bank)
    if withdrawable < deposit:
        return withdrawable

    consumed = native_to_usd(
        withdrawable, bank, PriceBias.LOWEST, bank.asset_weight_init
    )
    remaining = max(free_collateral(account, group) - consumed, _ZERO)

    liability_price = bank.get_price(PriceBias.HIGHEST) * bank.liability_weight_init
    if remaining <= 0 or liability_price <= 0:
        return withdrawable
    with localcontext() as ctx:
        ctx.rounding = ROUND_DOWN
        borrowable = remaining / liability_price * _scale(bank.mint_decimals)
    return withdrawable + _truncate(borrowable)


# ---------------------------------------------------------------------------
# Rebalancing predicates
# ---------------------------------------------------------------------------


def rebalance_targets(
    account: Account, group: Group, quote_mint: str, dust: Decimal
) -> list[tuple[Bank, BalanceUsdValue]]:
    """Balances holding non-quote assets or any liability above dust."""
    targets: list[tuple[Bank, BalanceUsdValue]] = []
    for balance, bank in iter_active(account, group):
        value = usd_value(balance, bank, MarginRequirement.EQUITY)
        if (value.assets > dust and bank.mint != quote_mint) or value.liabilities > dust:
            targets.append((bank, value))
    return targets


def needs_rebalancing(
    account: Account, group: Group, quote_mint: str, dust: Decimal
) -> bool:
    return bool(rebalance_targets(account, group, quote_mint, dust))
