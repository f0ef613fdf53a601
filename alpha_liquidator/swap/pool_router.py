"""Route trades to the single pool serving an unordered mint pair."""
from __future__ import annotations

import logging
from decimal import Decimal
from typing import Iterable, Protocol

from ..errors import NoRouteError

logger = logging.getLogger(__name__)


class Pool(Protocol):
    """A two-token pool that can execute a swap in either direction."""

    @property
    def token_a(self) -> str: ...

    @property
    def token_b(self) -> str: ...

    async def swap(
        self, input_mint: str, amount_in: Decimal, min_amount_out: Decimal
    ) -> str: ...


def pool_key(mint_a: str, mint_b: str) -> tuple[str, str]:
    """Order-independent key for a mint pair."""
    return (mint_a, mint_b) if mint_a <= mint_b else (mint_b, mint_a)


class PoolRouter:
    """SwapRouter backed by a pool map keyed by :func:`pool_key`."""

    def __init__(self, pools: Iterable[Pool]) -> None:
        self._pools: dict[tuple[str, str], Pool] = {}
        for pool in pools:
            key = pool_key(pool.token_a, pool.token_b)
            if key in self._pools:
                logger.warning("Duplicate pool for %s/%s, keeping the first", *key)
                continue
            self._pools[key] = pool
        logger.debug("Built pool map with %d pools", len(self._pools))

    def __len__(self) -> int:
        return len(self._pools)

    def get_pool(self, input_mint: str, output_mint: str) -> Pool:
        pool = self._pools.get(pool_key(input_mint, output_mint))
        if pool is None:
            raise NoRouteError(input_mint, output_mint)
        return pool

    async def trade(
        self,
        input_mint: str,
        output_mint: str,
        amount_in: Decimal,
        min_amount_out: Decimal = Decimal(0),
    ) -> str:
        logger.debug(
            "Trading %s %s for %s, min amount out %s",
            amount_in,
            input_mint,
            output_mint,
            min_amount_out,
        )
        pool = self.get_pool(input_mint, output_mint)
        sig = await pool.swap(input_mint, amount_in, min_amount_out)
        logger.debug("Swap signature: %s", sig)
        return sig
