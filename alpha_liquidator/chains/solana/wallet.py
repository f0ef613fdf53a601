"""Wallet view over the Solana RPC client."""
from __future__ import annotations

import logging
from decimal import Decimal
from typing import Protocol

from .client import SolanaClient

logger = logging.getLogger(__name__)


class WalletSigner(Protocol):
    """Builds, signs and submits wrap/unwrap transactions for the wallet owner."""

    async def wrap_native(
        self, mint: str, amount: Decimal, create_account: bool = False
    ) -> str: ...

    async def unwrap_native(self, mint: str) -> str: ...


class SolanaWallet:
    """Reads balances over RPC and delegates transactions to a signer."""

    def __init__(self, client: SolanaClient, owner: str, signer: WalletSigner) -> None:
        self._client = client
        self._owner = owner
        self._signer = signer

    @property
    def address(self) -> str:
        return self._owner

    async def get_token_balance(self, mint: str) -> Decimal:
        return await self._client.get_token_balance(self._owner, mint)

    async def get_native_balance(self) -> Decimal:
        return await self._client.get_balance(self._owner)

    async def has_token_account(self, mint: str) -> bool:
        return await self._client.has_token_account(self._owner, mint)

    async def wrap_native(
        self, mint: str, amount: Decimal, create_account: bool = False
    ) -> str:
        logger.debug("Wrapping %s lamports into %s", amount, mint)
        return await self._signer.wrap_native(mint, amount, create_account=create_account)

    async def unwrap_native(self, mint: str) -> str:
        logger.debug("Closing wrapped %s account", mint)
        return await self._signer.unwrap_native(mint)
