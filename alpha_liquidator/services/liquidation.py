"""Liquidation candidate scanning and sizing."""
from __future__ import annotations

import asyncio
import logging
from decimal import Decimal

from ..interfaces.protocol_client import ProtocolClient
from ..models import Account, Group, LiquidationPlan, LiquidatorState, MarginRequirement
from . import balances

logger = logging.getLogger(__name__)

_ZERO = Decimal(0)


def select_liability_bank(
    victim: Account, liquidator: Account, group: Group
) -> tuple[int, Decimal]:
    """Pick the victim balance whose liability the liquidator can cover most of.

    Returns the index into the victim's active balances and the covered USD
    value. Ties keep the earliest balance.
    """
    best_index, best_usd = 0, _ZERO
    for index, (balance, bank) in enumerate(balances.iter_active(victim, group)):
        capacity = balances.max_borrow_for_bank(liquidator, group, bank)
        capacity_usd = balances.native_to_usd(capacity, bank)
        victim_liability_usd = balances.usd_value(
            balance, bank, MarginRequirement.EQUITY
        ).liabilities
        logger.debug(
            "Bank %s: victim liability $%s, liquidator capacity $%s",
            bank.label,
            victim_liability_usd,
            capacity_usd,
        )
        covered = min(victim_liability_usd, capacity_usd)
        if covered > best_usd:
            best_index, best_usd = index, covered
    return best_index, best_usd


def select_collateral_bank(victim: Account, group: Group) -> tuple[int, Decimal]:
    """Pick the victim balance with the largest asset value; ties keep the earliest."""
    best_index, best_usd = 0, _ZERO
    for index, (balance, bank) in enumerate(balances.iter_active(victim, group)):
        assets_usd = balances.usd_value(balance, bank, MarginRequirement.EQUITY).assets
        if assets_usd > best_usd:
            best_index, best_usd = index, assets_usd
    return best_index, best_usd


def size_liquidation(max_collateral_usd: Decimal, max_liability_paydown_usd: Decimal) -> Decimal:
    """USD value of collateral to seize.

    The liquidation discount is not applied here. The protocol discounts the
    liability paydown, so the executed amount stays within legal bounds.
    """
    return min(max_collateral_usd, max_liability_paydown_usd)


def plan_liquidation(
    victim: Account, liquidator: Account, group: Group
) -> LiquidationPlan | None:
    """Choose liability and collateral banks and size the liquidation.

    Returns None when the victim has no active balances or the liquidator
    has no capacity to take on any of its liabilities.
    """
    active = list(balances.iter_active(victim, group))
    if not active:
        return None

    liability_index, max_paydown_usd = select_liability_bank(victim, liquidator, group)
    collateral_index, max_collateral_usd = select_collateral_bank(victim, group)
    collateral_usd = size_liquidation(max_collateral_usd, max_paydown_usd)
    if collateral_usd <= 0:
        return None

    collateral_bank = active[collateral_index][1]
    quantity = balances.usd_to_native(collateral_usd, collateral_bank)
    if quantity <= 0:
        return None

    return LiquidationPlan(
        victim=victim.address,
        liability_bank=active[liability_index][1],
        collateral_bank=collateral_bank,
        max_liability_paydown_usd=max_paydown_usd,
        max_collateral_usd=max_collateral_usd,
        collateral_to_liquidate_usd=collateral_usd,
        collateral_quantity=quantity,
        liability_index=liability_index,
        collateral_index=collateral_index,
    )


class LiquidationSelector:
    """Scan borrower accounts one at a time and liquidate the first eligible one."""

    def __init__(self, client: ProtocolClient, sleep_interval: float = 5.0) -> None:
        self._client = client
        self._sleep_interval = sleep_interval

    async def run_pass(self, state: LiquidatorState) -> LiquidationPlan | None:
        """Process accounts until one liquidation succeeds or the list ends."""
        logger.info("Started liquidation stage")
        addresses = await self._client.get_all_account_addresses()
        logger.info("Found %d accounts", len(addresses))

        for address in addresses:
            if address == state.account.address:
                continue

            plan = await self.process_account(address, state)
            logger.debug(
                "Account %s liquidated: %s, sleeping for %.1fs",
                address,
                plan is not None,
                self._sleep_interval,
            )
            await asyncio.sleep(self._sleep_interval)

            if plan is not None:
                logger.info("Account liquidated, stopping to rebalance")
                return plan

        return None

    async def process_account(
        self, address: str, state: LiquidatorState
    ) -> LiquidationPlan | None:
        victim = await self._client.fetch_account(address)
        if not balances.can_be_liquidated(victim, state.group):
            logger.debug("Account %s is healthy", address)
            return None

        health = balances.health_components(victim, state.group, MarginRequirement.MAINT)
        logger.info(
            "Account %s can be liquidated, maintenance shortfall $%s",
            address,
            health.liabilities - health.assets,
        )

        plan = plan_liquidation(victim, state.account, state.group)
        if plan is None:
            logger.info("No liquidation capacity for account %s", address)
            return None

        logger.info(
            "Liquidating %s %s ($%s) for %s liability (max paydown $%s)",
            balances.native_to_ui(
                plan.collateral_quantity, plan.collateral_bank.mint_decimals
            ),
            plan.collateral_bank.label,
            plan.collateral_to_liquidate_usd,
            plan.liability_bank.label,
            plan.max_liability_paydown_usd,
        )
        sig = await self._client.liquidate(
            state.account,
            victim,
            plan.collateral_bank,
            plan.collateral_quantity,
            plan.liability_bank,
        )
        logger.info("Liquidation tx: %s", sig)
        return plan
