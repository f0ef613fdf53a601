"""Swap routing over a fixed set of two-token pools."""
from .pool_router import Pool, PoolRouter, pool_key

__all__ = ["Pool", "PoolRouter", "pool_key"]
