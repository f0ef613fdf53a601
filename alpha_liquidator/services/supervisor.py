"""Supervisor loop — reconcile, check health, rebalance or liquidate, recover."""
from __future__ import annotations

import asyncio
import enum
import logging
from datetime import datetime, timezone

from ..config import AppConfig
from ..interfaces.notifier import Notifier
from ..interfaces.protocol_client import ProtocolClient
from ..interfaces.swap_router import SwapRouter
from ..interfaces.wallet import Wallet
from ..models import LiquidationPlan, LiquidatorState
from ..notifications import TelegramNotifier
from . import balances
from .liquidation import LiquidationSelector
from .rebalancer import RebalanceEngine

logger = logging.getLogger(__name__)


class SupervisorState(enum.Enum):
    RECONCILE = "reconcile"
    CHECK_HEALTH = "check_health"
    REBALANCE = "rebalance"
    LIQUIDATE = "liquidate"
    FAULTED = "faulted"


class Supervisor:
    """Drives the liquidator state machine until the process is terminated."""

    def __init__(
        self,
        config: AppConfig,
        client: ProtocolClient,
        wallet: Wallet,
        swap_router: SwapRouter,
        notifiers: list[Notifier] | None = None,
    ) -> None:
        self._config = config
        self._client = client
        self._wallet = wallet
        self._swap = swap_router
        self._account_address = config.liquidator.account
        self._quote_mint = config.assets.quote_mint
        self._wrapped_native_mint = config.assets.wrapped_native_mint
        self._dust = balances.dust_threshold(config.assets.quote_decimals)
        self._sleep_interval = config.liquidator.sleep_interval
        self._max_restarts = config.liquidator.max_restarts

        self._engine = RebalanceEngine(
            client,
            wallet,
            swap_router,
            config.assets,
            config.liquidator.min_native_balance,
        )
        self._selector = LiquidationSelector(client, self._sleep_interval)

        if notifiers is None:
            notifiers = []
            if config.notifications.telegram.enabled:
                notifiers.append(TelegramNotifier(config.notifications.telegram))
        self._notifiers = notifiers

        self.state = SupervisorState.RECONCILE
        self.restarts = 0
        self._snapshot: LiquidatorState | None = None

    # ------------------------------------------------------------------
    # Notification dispatch
    # ------------------------------------------------------------------

    @staticmethod
    def _now_str() -> str:
        return datetime.now(timezone.utc).strftime("%Y-%m-%d %H:%M:%S")

    async def _send_log(self, message: str) -> None:
        for notifier in self._notifiers:
            try:
                await notifier.send_log(message, silent=True)
            except Exception as e:
                logger.error("Notifier send_log failed: %s", e)

    async def _send_alert(self, message: str) -> None:
        for notifier in self._notifiers:
            try:
                await notifier.send_alert(message)
            except Exception as e:
                logger.error("Notifier send_alert failed: %s", e)

    def _build_liquidation_alert(self, plan: LiquidationPlan) -> str:
        quantity = balances.native_to_ui(
            plan.collateral_quantity, plan.collateral_bank.mint_decimals
        )
        return (
            f"⚡ Liquidation submitted\n"
            f"\n"
            f"Account: {plan.victim}\n"
            f"Collateral: {quantity} {plan.collateral_bank.label}"
            f" — ${plan.collateral_to_liquidate_usd:,.2f}\n"
            f"Liability: {plan.liability_bank.label}"
            f" — max paydown ${plan.max_liability_paydown_usd:,.2f}\n"
            f"\n"
            f"{self._now_str()} UTC"
        )

    # ------------------------------------------------------------------
    # States
    # ------------------------------------------------------------------

    async def load_state(self) -> LiquidatorState:
        group = await self._client.fetch_group()
        account = await self._client.fetch_account(self._account_address)
        return LiquidatorState(account=account, group=group)

    async def reconcile(self) -> LiquidatorState:
        """Sweep idle wallet balances back into the quote bank."""
        logger.info("Swapping any remaining non-quote wallet balances to quote")
        state = await self.load_state()

        for bank in state.group.banks:
            if bank.mint == self._quote_mint:
                continue

            amount = await self._wallet.get_token_balance(bank.mint)
            if amount <= 0:
                continue

            liabilities = balances.quantities(
                state.account.get_balance(bank.address), bank
            ).liabilities
            if liabilities > 0:
                repay_amount = min(amount, liabilities)
                logger.info(
                    "Paying off %s of %s %s liabilities",
                    balances.native_to_ui(repay_amount, bank.mint_decimals),
                    balances.native_to_ui(liabilities, bank.mint_decimals),
                    bank.label,
                )
                sig = await self._client.repay(
                    state.account, bank, repay_amount, repay_all=amount >= liabilities
                )
                logger.info("Repay tx: %s", sig)
                state = LiquidatorState(
                    account=await self._client.fetch_account(self._account_address),
                    group=state.group,
                )
                amount = await self._wallet.get_token_balance(bank.mint)

            if bank.mint == self._wrapped_native_mint:
                logger.info(
                    "Unwrapping remaining %s %s",
                    balances.native_to_ui(amount, bank.mint_decimals),
                    bank.label,
                )
                sig = await self._wallet.unwrap_native(bank.mint)
                logger.info("Unwrap tx: %s", sig)
                continue

            if amount <= 0:
                continue

            logger.info(
                "Swapping %s %s to quote",
                balances.native_to_ui(amount, bank.mint_decimals),
                bank.label,
            )
            sig = await self._swap.trade(bank.mint, self._quote_mint, amount)
            logger.info("Swap tx: %s", sig)

        held = await self._wallet.get_token_balance(self._quote_mint)
        if held <= 0:
            logger.info("No quote to deposit")
            return state

        quote_bank = state.group.get_bank_by_mint(self._quote_mint)
        logger.info(
            "Depositing %s %s",
            balances.native_to_ui(held, quote_bank.mint_decimals),
            quote_bank.label,
        )
        sig = await self._client.deposit(state.account, quote_bank, held)
        logger.info("Deposit tx: %s", sig)
        return LiquidatorState(
            account=await self._client.fetch_account(self._account_address),
            group=state.group,
        )

    async def check_health(self) -> bool:
        """Reload state and report whether the own account needs rebalancing."""
        self._snapshot = await self.load_state()
        targets = balances.rebalance_targets(
            self._snapshot.account, self._snapshot.group, self._quote_mint, self._dust
        )
        logger.info("Liquidator account needs to be rebalanced: %s", bool(targets))
        for bank, value in targets:
            logger.info(
                "  Bank: %s, assets: $%s, liabilities: $%s",
                bank.label,
                value.assets,
                value.liabilities,
            )
        return bool(targets)

    def _require_snapshot(self) -> LiquidatorState:
        if self._snapshot is None:
            raise RuntimeError(f"No liquidator snapshot in state {self.state.value}")
        return self._snapshot

    async def step(self) -> SupervisorState:
        """Run the current state once and return the next one."""
        if self.state is SupervisorState.RECONCILE:
            self._snapshot = await self.reconcile()
            self.state = SupervisorState.CHECK_HEALTH
        elif self.state is SupervisorState.CHECK_HEALTH:
            needs = await self.check_health()
            self.state = (
                SupervisorState.REBALANCE if needs else SupervisorState.LIQUIDATE
            )
        elif self.state is SupervisorState.REBALANCE:
            self._snapshot = await self._engine.rebalance(self._require_snapshot())
            self.restarts = 0
            self.state = SupervisorState.CHECK_HEALTH
        elif self.state is SupervisorState.LIQUIDATE:
            plan = await self._selector.run_pass(self._require_snapshot())
            if plan is not None:
                await self._send_alert(self._build_liquidation_alert(plan))
            self.restarts = 0
            self.state = SupervisorState.CHECK_HEALTH
        else:
            self.state = SupervisorState.RECONCILE
        return self.state

    async def _fault(self, error: Exception) -> None:
        self.state = SupervisorState.FAULTED
        self.restarts += 1
        logger.exception(
            "Liquidator faulted (restart #%d): %s", self.restarts, error
        )
        await self._send_log(
            f"❌ Liquidator faulted (restart #{self.restarts})\n"
            f"\n"
            f"{type(error).__name__}: {error}\n"
            f"\n"
            f"{self._now_str()} UTC"
        )

    async def run(self) -> None:
        """Loop forever; on any error sleep and restart from reconcile.

        ``restarts`` counts consecutive faults and is cleared whenever a
        rebalance or liquidation pass completes. Raises the last error once
        more than ``max_restarts`` faults happen in a row.
        """
        logger.info("Starting liquidator")
        logger.info("Liquidator account: %s", self._account_address)
        logger.info("Wallet: %s", self._wallet.address)

        while True:
            try:
                await self.step()
            except Exception as e:
                await self._fault(e)
                if self._max_restarts is not None and self.restarts > self._max_restarts:
                    logger.error("Restart limit %d exceeded, stopping", self._max_restarts)
                    raise
                await asyncio.sleep(self._sleep_interval)
                self._snapshot = None
                self.state = SupervisorState.RECONCILE
