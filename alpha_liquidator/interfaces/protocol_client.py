"""Protocol client — lending protocol reads and instruction submission.

All amounts are native units of the bank's mint.
"""
from decimal import Decimal
from typing import Protocol

from ..models import Account, Bank, Group


class ProtocolClient(Protocol):
    """Abstract interface over the lending protocol."""

    async def fetch_group(self) -> Group: ...

    async def fetch_account(self, address: str) -> Account: ...

    async def get_all_account_addresses(self) -> list[str]: ...

    async def deposit(self, account: Account, bank: Bank, amount: Decimal) -> str: ...

    async def withdraw(
        self, account: Account, bank: Bank, amount: Decimal, withdraw_all: bool = False
    ) -> str: ...

    async def repay(
        self, account: Account, bank: Bank, amount: Decimal, repay_all: bool = False
    ) -> str: ...

    async def liquidate(
        self,
        liquidator: Account,
        victim: Account,
        asset_bank: Bank,
        asset_quantity: Decimal,
        liability_bank: Bank,
    ) -> str: ...
