"""Three-stage rebalancing of the liquidator's own account back into quote."""
from __future__ import annotations

import logging
from decimal import Decimal

from ..config import AssetsConfig
from ..interfaces.protocol_client import ProtocolClient
from ..interfaces.swap_router import SwapRouter
from ..interfaces.wallet import Wallet
from ..models import Bank, LiquidatorState
from . import balances

logger = logging.getLogger(__name__)


class RebalanceEngine:
    """Sell foreign deposits, repay foreign debt, then deposit remaining quote.

    Every stage takes a snapshot and returns the snapshot read back after its
    last state-changing call. Failures propagate to the caller; re-entry is
    safe because each run starts from freshly loaded state.
    """

    def __init__(
        self,
        client: ProtocolClient,
        wallet: Wallet,
        swap_router: SwapRouter,
        assets: AssetsConfig,
        min_native_balance: Decimal = Decimal(1),
    ) -> None:
        self._client = client
        self._wallet = wallet
        self._swap = swap_router
        self._quote_mint = assets.quote_mint
        self._wrapped_native_mint = assets.wrapped_native_mint
        self._dust = balances.dust_threshold(assets.quote_decimals)
        self._native_reserve = balances.ui_to_native(
            min_native_balance, assets.native_decimals
        )

    async def rebalance(self, state: LiquidatorState) -> LiquidatorState:
        logger.info("Starting rebalancing stage")
        state = await self.sell_non_quote_deposits(state)
        state = await self.repay_all_debt(state)
        state = await self.deposit_remaining_quote(state)
        return state

    # ------------------------------------------------------------------
    # Snapshot reloads
    # ------------------------------------------------------------------

    async def _reload_account(self, state: LiquidatorState) -> LiquidatorState:
        account = await self._client.fetch_account(state.account.address)
        return LiquidatorState(account=account, group=state.group)

    async def _reload(self, state: LiquidatorState) -> LiquidatorState:
        group = await self._client.fetch_group()
        account = await self._client.fetch_account(state.account.address)
        return LiquidatorState(account=account, group=group)

    # ------------------------------------------------------------------
    # Stage 1
    # ------------------------------------------------------------------

    async def sell_non_quote_deposits(self, state: LiquidatorState) -> LiquidatorState:
        """Withdraw untied non-quote deposits and swap them to quote.

        Only collateral above the free-collateral limit is withdrawn; deposits
        still backing a liability are released by the later stages.
        """
        logger.info("Starting non-quote deposit sell step (1/3)")
        targets = [
            bank.address
            for balance, bank in balances.iter_active(state.account, state.group)
            if bank.mint != self._quote_mint
            and balances.usd_value(balance, bank).assets > self._dust
        ]

        for bank_address in targets:
            bank = state.group.get_bank_by_address(bank_address)
            max_withdraw = balances.max_withdraw_for_bank(
                state.account, state.group, bank
            )
            if max_withdraw <= 0:
                logger.info("No untied %s to withdraw", bank.label)
                continue

            deposit = balances.quantities(
                state.account.get_balance(bank.address), bank
            ).assets
            logger.info(
                "Withdrawing %s %s",
                balances.native_to_ui(max_withdraw, bank.mint_decimals),
                bank.label,
            )
            sig = await self._client.withdraw(
                state.account, bank, max_withdraw, withdraw_all=max_withdraw >= deposit
            )
            logger.info("Withdraw tx: %s", sig)
            state = await self._reload_account(state)

            held = await self._wallet.get_token_balance(bank.mint)
            if held <= 0:
                logger.warning("Withdrawal of %s left nothing to swap", bank.label)
                continue

            logger.info(
                "Swapping %s %s to quote",
                balances.native_to_ui(held, bank.mint_decimals),
                bank.label,
            )
            sig = await self._swap.trade(bank.mint, self._quote_mint, held)
            logger.info("Swap tx: %s", sig)

        return state

    # ------------------------------------------------------------------
    # Stage 2
    # ------------------------------------------------------------------

    async def repay_all_debt(self, state: LiquidatorState) -> LiquidatorState:
        """Buy every non-quote liability with quote and repay it."""
        logger.info("Starting debt repayment step (2/3)")
        targets = [
            bank.address
            for balance, bank in balances.iter_active(state.account, state.group)
            if bank.mint != self._quote_mint
            and balances.usd_value(balance, bank).liabilities > self._dust
        ]

        for bank_address in targets:
            state = await self._reload(state)
            bank = state.group.get_bank_by_address(bank_address)
            liabilities = balances.quantities(
                state.account.get_balance(bank.address), bank
            ).liabilities
            liability_usd = balances.native_to_usd(liabilities, bank)
            if liability_usd <= self._dust:
                logger.info("%s liability already settled", bank.label)
                continue

            logger.info(
                "Repaying %s %s ($%s)",
                balances.native_to_ui(liabilities, bank.mint_decimals),
                bank.label,
                liability_usd,
            )

            if bank.mint == self._wrapped_native_mint:
                await self._wrap_native(bank, liabilities)

            held = await self._wallet.get_token_balance(bank.mint)
            shortfall_usd = balances.native_to_usd(max(liabilities - held, Decimal(0)), bank)
            if shortfall_usd > self._dust:
                state = await self._buy_liability(state, bank, shortfall_usd)

            acquired = await self._wallet.get_token_balance(bank.mint)
            if acquired <= 0:
                logger.warning("Could not acquire any %s to repay", bank.label)
                continue

            repay_all = acquired >= liabilities
            logger.info(
                "Got %s %s, repaying (repay all: %s)",
                balances.native_to_ui(acquired, bank.mint_decimals),
                bank.label,
                repay_all,
            )
            sig = await self._client.repay(
                state.account, bank, acquired, repay_all=repay_all
            )
            logger.info("Repay tx: %s", sig)
            state = await self._reload_account(state)

        return state

    async def _buy_liability(
        self, state: LiquidatorState, bank: Bank, liability_usd: Decimal
    ) -> LiquidatorState:
        """Swap quote for the liability asset, withdrawing quote when short."""
        quote_bank = state.group.get_bank_by_mint(self._quote_mint)

        held = await self._wallet.get_token_balance(self._quote_mint)
        buying_power = min(balances.native_to_usd(held, quote_bank), liability_usd)
        missing = liability_usd - buying_power

        if missing > 0:
            capacity = balances.max_borrow_for_bank(state.account, state.group, quote_bank)
            to_withdraw = min(balances.usd_to_native(missing, quote_bank), capacity)
            if to_withdraw > 0:
                logger.info(
                    "Withdrawing %s %s",
                    balances.native_to_ui(to_withdraw, quote_bank.mint_decimals),
                    quote_bank.label,
                )
                sig = await self._client.withdraw(state.account, quote_bank, to_withdraw)
                logger.info("Withdraw tx: %s", sig)
                state = await self._reload_account(state)
            else:
                logger.info("No %s capacity left to withdraw", quote_bank.label)

        held = await self._wallet.get_token_balance(self._quote_mint)
        buying_power = min(balances.native_to_usd(held, quote_bank), liability_usd)
        amount_in = min(held, balances.usd_to_native(buying_power, quote_bank))
        if amount_in <= 0:
            logger.info("No quote buying power for %s", bank.label)
            return state

        logger.info(
            "Swapping %s %s to %s",
            balances.native_to_ui(amount_in, quote_bank.mint_decimals),
            quote_bank.label,
            bank.label,
        )
        sig = await self._swap.trade(self._quote_mint, bank.mint, amount_in)
        logger.info("Swap tx: %s", sig)
        return state

    async def _wrap_native(self, bank: Bank, liabilities: Decimal) -> None:
        """Top up the wrapped balance from native funds, keeping the reserve."""
        native = await self._wallet.get_native_balance()
        wrapped = await self._wallet.get_token_balance(bank.mint)
        spendable = max(native - self._native_reserve, Decimal(0))
        transfer = min(spendable, liabilities - wrapped)
        if transfer <= 0:
            logger.info(
                "Nothing to wrap (native: %s, reserve: %s)", native, self._native_reserve
            )
            return

        create = not await self._wallet.has_token_account(bank.mint)
        if create:
            logger.info("Creating wrapped %s token account", bank.label)
        logger.info(
            "Wrapping %s %s", balances.native_to_ui(transfer, bank.mint_decimals), bank.label
        )
        sig = await self._wallet.wrap_native(bank.mint, transfer, create_account=create)
        logger.info("Wrap tx: %s", sig)

    # ------------------------------------------------------------------
    # Stage 3
    # ------------------------------------------------------------------

    async def deposit_remaining_quote(self, state: LiquidatorState) -> LiquidatorState:
        """Deposit all quote held in the wallet, untying remaining collateral."""
        logger.info("Starting remaining quote deposit step (3/3)")
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
        return await self._reload_account(state)
