"""Integration tests for RebalanceEngine against the in-memory ledger."""
from __future__ import annotations

import dataclasses
from decimal import Decimal

import pytest

from alpha_liquidator.config import USDC_MINT, AssetsConfig
from alpha_liquidator.errors import NoRouteError
from alpha_liquidator.models import Bank, Group, LiquidatorState
from alpha_liquidator.services import RebalanceEngine
from alpha_liquidator.services.balances import dust_threshold, needs_rebalancing
from tests.fakes import LIQUIDATOR, FakeLedger

SOL = Decimal(1_000_000_000)


@pytest.fixture()
def engine(ledger: FakeLedger) -> RebalanceEngine:
    return RebalanceEngine(ledger, ledger, ledger, AssetsConfig(), Decimal(1))


async def _state(ledger: FakeLedger) -> LiquidatorState:
    return LiquidatorState(account=await ledger.fetch_account(LIQUIDATOR), group=ledger.group)


class TestSellNonQuoteDeposits:
    @pytest.mark.asyncio
    async def test_withdraws_and_swaps_untied_deposit(
        self, ledger: FakeLedger, engine: RebalanceEngine, usdc_bank: Bank, sol_bank: Bank
    ) -> None:
        ledger.set_position(usdc_bank, assets=1000)
        ledger.set_position(sol_bank, assets=10)

        state = await engine.sell_non_quote_deposits(await _state(ledger))

        assert ledger.calls == [
            ("withdraw", "SOL", 10 * SOL, True),
            ("trade", "SOL", "USDC", 10 * SOL),
        ]
        assert ledger.wallet_tokens[USDC_MINT] == Decimal(1_000_000_000)
        assert state.account.get_balance(sol_bank.address).asset_shares == 0

    @pytest.mark.asyncio
    async def test_withdraws_only_untied_part(
        self, ledger: FakeLedger, engine: RebalanceEngine, sol_bank: Bank, eth_bank: Bank
    ) -> None:
        # 10 SOL at init weight 0.5 backs $500; 0.1 ETH owes $250 weighted.
        ledger.set_position(sol_bank, assets=10)
        ledger.set_position(eth_bank, liabilities="0.1")

        await engine.sell_non_quote_deposits(await _state(ledger))

        assert ledger.calls[0] == ("withdraw", "SOL", 5 * SOL, False)
        assert ledger.positions[sol_bank.address][0] == 5 * SOL

    @pytest.mark.asyncio
    async def test_skips_fully_tied_deposit(
        self, ledger: FakeLedger, engine: RebalanceEngine, sol_bank: Bank, eth_bank: Bank
    ) -> None:
        ledger.set_position(sol_bank, assets=10)
        ledger.set_position(eth_bank, liabilities="0.2")

        await engine.sell_non_quote_deposits(await _state(ledger))

        assert ledger.calls == []

    @pytest.mark.asyncio
    async def test_ignores_dust(
        self, ledger: FakeLedger, engine: RebalanceEngine, sol_bank: Bank
    ) -> None:
        ledger.set_position(sol_bank, assets="0.00005")

        await engine.sell_non_quote_deposits(await _state(ledger))

        assert ledger.calls == []


class TestRepayAllDebt:
    @pytest.mark.asyncio
    async def test_withdraws_quote_to_buy_liability(
        self, ledger: FakeLedger, engine: RebalanceEngine, usdc_bank: Bank, eth_bank: Bank
    ) -> None:
        ledger.set_position(usdc_bank, assets=1000)
        ledger.set_position(eth_bank, liabilities="0.1")

        await engine.repay_all_debt(await _state(ledger))

        assert ledger.calls == [
            ("withdraw", "USDC", Decimal(200_000_000), False),
            ("trade", "USDC", "ETH", Decimal(200_000_000)),
            ("repay", "ETH", Decimal(10_000_000), True),
        ]
        assert ledger.positions[eth_bank.address][1] == 0

    @pytest.mark.asyncio
    async def test_uses_wallet_quote_first(
        self, ledger: FakeLedger, engine: RebalanceEngine, usdc_bank: Bank, eth_bank: Bank
    ) -> None:
        ledger.set_position(usdc_bank, assets=1000)
        ledger.set_position(eth_bank, liabilities="0.1")
        ledger.set_wallet(usdc_bank, 500)

        await engine.repay_all_debt(await _state(ledger))

        assert ledger.call_names() == ["trade", "repay"]
        assert ledger.wallet_tokens[USDC_MINT] == Decimal(300_000_000)

    @pytest.mark.asyncio
    async def test_wraps_native_before_swapping(
        self, ledger: FakeLedger, engine: RebalanceEngine, usdc_bank: Bank, sol_bank: Bank
    ) -> None:
        ledger.set_position(usdc_bank, assets=1000)
        ledger.set_position(sol_bank, liabilities=2)
        ledger.native = Decimal("1.5") * SOL

        await engine.repay_all_debt(await _state(ledger))

        assert ledger.calls == [
            ("wrap", SOL / 2, True),
            ("withdraw", "USDC", Decimal(150_000_000), False),
            ("trade", "USDC", "SOL", Decimal(150_000_000)),
            ("repay", "SOL", 2 * SOL, True),
        ]
        assert ledger.native == SOL

    @pytest.mark.asyncio
    async def test_wrap_keeps_native_reserve(
        self, ledger: FakeLedger, engine: RebalanceEngine, usdc_bank: Bank, sol_bank: Bank
    ) -> None:
        ledger.set_position(usdc_bank, assets=1000)
        ledger.set_position(sol_bank, liabilities=2)
        ledger.native = Decimal("1.2") * SOL

        await engine.repay_all_debt(await _state(ledger))

        wraps = [c for c in ledger.calls if c[0] == "wrap"]
        assert wraps == [("wrap", Decimal(200_000_000), True)]
        assert ledger.native >= SOL
        assert ledger.positions[sol_bank.address][1] == 0

    @pytest.mark.asyncio
    async def test_no_wrap_below_reserve(
        self, ledger: FakeLedger, engine: RebalanceEngine, usdc_bank: Bank, sol_bank: Bank
    ) -> None:
        ledger.set_position(usdc_bank, assets=1000)
        ledger.set_position(sol_bank, liabilities=2)
        ledger.native = Decimal("0.8") * SOL

        await engine.repay_all_debt(await _state(ledger))

        assert "wrap" not in ledger.call_names()
        assert ledger.native == Decimal("0.8") * SOL
        assert ledger.positions[sol_bank.address][1] == 0

    @pytest.mark.asyncio
    async def test_ignores_dust_liability(
        self, ledger: FakeLedger, engine: RebalanceEngine, usdc_bank: Bank, eth_bank: Bank
    ) -> None:
        ledger.set_position(usdc_bank, assets=1000)
        ledger.set_position(eth_bank, liabilities="0.000001")  # $0.002

        await engine.repay_all_debt(await _state(ledger))

        assert ledger.calls == []


class TestDepositRemainingQuote:
    @pytest.mark.asyncio
    async def test_deposits_wallet_quote(
        self, ledger: FakeLedger, engine: RebalanceEngine, usdc_bank: Bank
    ) -> None:
        ledger.set_wallet(usdc_bank, 300)

        state = await engine.deposit_remaining_quote(await _state(ledger))

        assert ledger.calls == [("deposit", "USDC", Decimal(300_000_000))]
        assert state.account.get_balance(usdc_bank.address).asset_shares == Decimal(
            300_000_000
        )

    @pytest.mark.asyncio
    async def test_nothing_to_deposit(
        self, ledger: FakeLedger, engine: RebalanceEngine
    ) -> None:
        await engine.deposit_remaining_quote(await _state(ledger))
        assert ledger.calls == []


class TestRebalance:
    @pytest.mark.asyncio
    async def test_full_run_leaves_only_quote(
        self,
        ledger: FakeLedger,
        engine: RebalanceEngine,
        usdc_bank: Bank,
        sol_bank: Bank,
        eth_bank: Bank,
    ) -> None:
        ledger.set_position(usdc_bank, assets=1000)
        ledger.set_position(sol_bank, assets=10)
        ledger.set_position(eth_bank, liabilities="0.1")

        state = await engine.rebalance(await _state(ledger))

        assert ledger.call_names() == ["withdraw", "trade", "trade", "repay", "deposit"]
        assert ledger.positions[usdc_bank.address] == [Decimal(1_800_000_000), 0]
        assert not needs_rebalancing(
            state.account, state.group, USDC_MINT, dust_threshold(6)
        )

    @pytest.mark.asyncio
    async def test_second_run_is_noop(
        self, ledger: FakeLedger, engine: RebalanceEngine, usdc_bank: Bank, sol_bank: Bank
    ) -> None:
        ledger.set_position(usdc_bank, assets=1000)
        ledger.set_position(sol_bank, assets=10)

        state = await engine.rebalance(await _state(ledger))
        ledger.calls.clear()
        await engine.rebalance(state)

        assert ledger.calls == []

    @pytest.mark.asyncio
    async def test_missing_route_propagates(
        self, ledger: FakeLedger, engine: RebalanceEngine, usdc_bank: Bank, sol_bank: Bank
    ) -> None:
        ledger.set_position(usdc_bank, assets=1000)
        ledger.set_position(sol_bank, assets=10)
        ledger.no_route.add(frozenset((sol_bank.mint, USDC_MINT)))

        with pytest.raises(NoRouteError):
            await engine.rebalance(await _state(ledger))


class TestAccruedShareValues:
    """Share values above one leave fractional quantities on the books."""

    @pytest.fixture()
    def accrued_sol(self, sol_bank: Bank) -> Bank:
        return dataclasses.replace(
            sol_bank,
            asset_share_value=Decimal("1.00000000035"),
            liability_share_value=Decimal("1.0000000007"),
        )

    @pytest.fixture()
    def accrued_eth(self, eth_bank: Bank) -> Bank:
        return dataclasses.replace(eth_bank, liability_share_value=Decimal("1.00000015"))

    @pytest.fixture()
    def ledger(self, usdc_bank: Bank, accrued_sol: Bank, accrued_eth: Bank) -> FakeLedger:
        return FakeLedger(Group(address="group-1", banks=(usdc_bank, accrued_sol, accrued_eth)))

    @staticmethod
    def _assert_whole_amounts(calls: list[tuple]) -> None:
        amounts = [item for call in calls for item in call if isinstance(item, Decimal)]
        assert amounts
        assert all(a == a.to_integral_value() for a in amounts)

    @pytest.mark.asyncio
    async def test_withdraws_whole_units_of_deposit(
        self, ledger: FakeLedger, engine: RebalanceEngine, usdc_bank: Bank, accrued_sol: Bank
    ) -> None:
        ledger.set_position(usdc_bank, assets=1000)
        ledger.set_shares(accrued_sol, assets=10 * SOL)  # 10.0000000035 SOL

        await engine.sell_non_quote_deposits(await _state(ledger))

        assert ledger.calls == [
            ("withdraw", "SOL", Decimal(10_000_000_003), True),
            ("trade", "SOL", "USDC", Decimal(10_000_000_003)),
        ]
        self._assert_whole_amounts(ledger.calls)

    @pytest.mark.asyncio
    async def test_wraps_and_repays_whole_lamports(
        self, ledger: FakeLedger, engine: RebalanceEngine, usdc_bank: Bank, accrued_sol: Bank
    ) -> None:
        ledger.set_position(usdc_bank, assets=1000)
        ledger.set_shares(accrued_sol, liabilities=2 * SOL)  # owes 2.0000000014 SOL
        ledger.native = 5 * SOL

        await engine.repay_all_debt(await _state(ledger))

        assert ledger.calls == [
            ("wrap", Decimal(2_000_000_001), True),
            ("repay", "SOL", Decimal(2_000_000_001), True),
        ]
        self._assert_whole_amounts(ledger.calls)
        assert ledger.native == Decimal(2_999_999_999)
        assert ledger.positions[accrued_sol.address][1] == 0

    @pytest.mark.asyncio
    async def test_buys_exactly_the_whole_liability(
        self, ledger: FakeLedger, engine: RebalanceEngine, usdc_bank: Bank, accrued_eth: Bank
    ) -> None:
        ledger.set_position(usdc_bank, assets=1000)
        ledger.set_shares(accrued_eth, liabilities=10_000_000)  # owes 0.100000015 ETH

        await engine.repay_all_debt(await _state(ledger))

        assert ledger.calls == [
            ("withdraw", "USDC", Decimal(200_000_020), False),
            ("trade", "USDC", "ETH", Decimal(200_000_020)),
            ("repay", "ETH", Decimal(10_000_001), True),
        ]
        self._assert_whole_amounts(ledger.calls)
        assert ledger.positions[accrued_eth.address][1] == 0
