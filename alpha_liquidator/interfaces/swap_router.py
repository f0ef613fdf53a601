"""Swap router protocol — spot trades between two mints."""
from decimal import Decimal
from typing import Protocol


class SwapRouter(Protocol):
    """Execute a spot trade; raises NoRouteError when no pool serves the pair."""

    async def trade(
        self,
        input_mint: str,
        output_mint: str,
        amount_in: Decimal,
        min_amount_out: Decimal = Decimal(0),
    ) -> str: ...
