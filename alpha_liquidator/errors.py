"""Exception hierarchy for the liquidator."""


class LiquidatorError(Exception):
    """Base class for liquidator errors."""


class ConfigError(LiquidatorError, ValueError):
    """A required setting is missing or invalid."""


class NoRouteError(LiquidatorError):
    """The swap router has no pool for the requested pair."""

    def __init__(self, input_mint: str, output_mint: str) -> None:
        super().__init__(f"No pool found for {input_mint} -> {output_mint}")
        self.input_mint = input_mint
        self.output_mint = output_mint


class RpcError(LiquidatorError):
    """RPC request failed on every configured endpoint."""
