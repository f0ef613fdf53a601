"""Wallet protocol — off-protocol holdings of the liquidator."""
from decimal import Decimal
from typing import Protocol


class Wallet(Protocol):
    """Token-account and native balances, in native units."""

    @property
    def address(self) -> str: ...

    async def get_token_balance(self, mint: str) -> Decimal: ...

    async def get_native_balance(self) -> Decimal: ...

    async def has_token_account(self, mint: str) -> bool: ...

    async def wrap_native(
        self, mint: str, amount: Decimal, create_account: bool = False
    ) -> str: ...

    async def unwrap_native(self, mint: str) -> str: ...
