"""Solana JSON-RPC client with endpoint fallback."""
import logging
import ssl
from decimal import Decimal
from typing import Any

import aiohttp
import certifi
from solders.pubkey import Pubkey

from ...config import ChainConfig
from ...errors import RpcError

logger = logging.getLogger(__name__)

TOKEN_PROGRAM_ID = Pubkey.from_string("TokenkegQfeZyiNwAJbNbGKPFXCWuBvf9Ss623VQ5DA")
ASSOCIATED_TOKEN_PROGRAM_ID = Pubkey.from_string(
    "ATokenGPvbdGVxr1b2hvZbsiqW5xWH25efTNsLJA8knL"
)


def associated_token_address(owner: str, mint: str) -> str:
    """Address of the owner's associated token account for ``mint``."""
    address, _ = Pubkey.find_program_address(
        [
            bytes(Pubkey.from_string(owner)),
            bytes(TOKEN_PROGRAM_ID),
            bytes(Pubkey.from_string(mint)),
        ],
        ASSOCIATED_TOKEN_PROGRAM_ID,
    )
    return str(address)


class SolanaClient:
    """Solana RPC client with automatic endpoint fallback."""

    def __init__(self, config: ChainConfig) -> None:
        self.endpoints = list(config.rpc_endpoints)
        self.timeout = config.rpc_timeout
        self.commitment = config.commitment
        self.current_rpc_index = 0

    async def rpc_call(self, method: str, params: list[Any]) -> Any:
        """Make an RPC call, trying each endpoint once starting from the last good one."""
        payload = {"jsonrpc": "2.0", "id": 1, "method": method, "params": params}

        ssl_context = ssl.create_default_context(cafile=certifi.where())

        last_error: Exception | None = None
        for attempt in range(len(self.endpoints)):
            rpc_index = (self.current_rpc_index + attempt) % len(self.endpoints)
            rpc_url = self.endpoints[rpc_index]

            try:
                connector = aiohttp.TCPConnector(ssl=ssl_context)
                async with aiohttp.ClientSession(connector=connector) as session:
                    async with session.post(
                        rpc_url,
                        json=payload,
                        timeout=aiohttp.ClientTimeout(total=self.timeout),
                    ) as response:
                        result = await response.json()
                        if "error" in result:
                            raise RpcError(f"RPC error from {method}: {result['error']}")

                        if rpc_index != self.current_rpc_index:
                            logger.info("Switched to RPC endpoint: %s", rpc_url)
                            self.current_rpc_index = rpc_index

                        return result.get("result")
            except Exception as e:
                last_error = e
                logger.warning("RPC endpoint %s failed: %s", rpc_url, e)
                continue

        raise RpcError(f"All RPC endpoints failed. Last error: {last_error}")

    async def get_balance(self, address: str) -> Decimal:
        """Native balance in lamports."""
        result = await self.rpc_call(
            "getBalance", [address, {"commitment": self.commitment}]
        )
        return Decimal(int(result.get("value", 0)))

    async def get_parsed_account(self, address: str) -> dict[str, Any] | None:
        """jsonParsed ``info`` of an account, or None when it does not exist."""
        result = await self.rpc_call(
            "getAccountInfo",
            [address, {"encoding": "jsonParsed", "commitment": self.commitment}],
        )
        value = result.get("value")
        if value is None:
            return None
        return value.get("data", {}).get("parsed", {}).get("info", {})

    async def get_token_balance(self, owner: str, mint: str) -> Decimal:
        """Raw token amount in the owner's associated token account for ``mint``.

        Other token accounts the owner holds for the mint are not counted;
        repay and swap instructions only draw from the associated one.
        Returns zero when that account does not exist.
        """
        info = await self.get_parsed_account(associated_token_address(owner, mint))
        if info is None:
            return Decimal(0)
        return Decimal(int(info.get("tokenAmount", {}).get("amount", "0")))

    async def has_token_account(self, owner: str, mint: str) -> bool:
        address = associated_token_address(owner, mint)
        return await self.get_parsed_account(address) is not None

    async def get_account_info(self, address: str) -> dict[str, Any] | None:
        result = await self.rpc_call(
            "getAccountInfo",
            [address, {"encoding": "base64", "commitment": self.commitment}],
        )
        return result.get("value")
