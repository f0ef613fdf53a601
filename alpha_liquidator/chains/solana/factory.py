"""Reference component factory for a Solana deployment.

Balance reads go through :class:`SolanaClient`. The pieces that sign and
submit transactions come from the deployment, named in
``bootstrap.options`` as further ``module:callable`` factories that receive
the config:

    bootstrap:
      factory: "alpha_liquidator.chains.solana.factory:build"
      options:
        protocol_client: "my_deployment.marginfi:client"   # ProtocolClient
        signer: "my_deployment.wallet:signer"              # WalletSigner
        pools: "my_deployment.pools:pools"                 # iterable of Pool
"""
from __future__ import annotations

import logging

from ...bootstrap import LiquidatorComponents, call_factory
from ...config import AppConfig
from ...errors import ConfigError
from ...swap import PoolRouter
from .client import SolanaClient
from .wallet import SolanaWallet

logger = logging.getLogger(__name__)

REQUIRED_OPTIONS = ("protocol_client", "signer", "pools")


async def build(config: AppConfig) -> LiquidatorComponents:
    options = config.bootstrap.options
    missing = [name for name in REQUIRED_OPTIONS if not options.get(name)]
    if missing:
        raise ConfigError(f"bootstrap.options is missing: {', '.join(missing)}")

    rpc = SolanaClient(config.chain)
    protocol_client = await call_factory(options["protocol_client"], config)
    signer = await call_factory(options["signer"], config)
    router = PoolRouter(await call_factory(options["pools"], config))
    logger.info("Routing swaps through %d pools", len(router))

    return LiquidatorComponents(
        client=protocol_client,
        wallet=SolanaWallet(rpc, config.liquidator.wallet, signer),
        swap_router=router,
    )
