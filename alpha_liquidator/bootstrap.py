"""Build the external collaborators from the configured factory."""
from __future__ import annotations

import importlib
import inspect
import logging
from dataclasses import dataclass
from typing import Any, Callable

from .config import AppConfig
from .errors import ConfigError
from .interfaces.protocol_client import ProtocolClient
from .interfaces.swap_router import SwapRouter
from .interfaces.wallet import Wallet

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class LiquidatorComponents:
    client: ProtocolClient
    wallet: Wallet
    swap_router: SwapRouter


def load_factory(path: str) -> Callable[[AppConfig], Any]:
    """Resolve a ``package.module:callable`` reference."""
    module_name, sep, attr = path.partition(":")
    if not sep or not module_name or not attr:
        raise ConfigError(f"Factory must look like 'module:callable', got '{path}'")
    try:
        module = importlib.import_module(module_name)
    except ImportError as e:
        raise ConfigError(f"Cannot import factory module '{module_name}': {e}") from e
    factory = getattr(module, attr, None)
    if not callable(factory):
        raise ConfigError(f"Factory '{path}' is not callable")
    return factory


async def call_factory(path: str, config: AppConfig) -> Any:
    """Resolve ``path`` and call it with the config, awaiting async factories."""
    result = load_factory(path)(config)
    if inspect.isawaitable(result):
        result = await result
    return result


async def build_components(config: AppConfig) -> LiquidatorComponents:
    """Call the configured factory and check what it returns."""
    components = await call_factory(config.bootstrap.factory, config)
    if not isinstance(components, LiquidatorComponents):
        raise ConfigError(
            f"Factory '{config.bootstrap.factory}' returned "
            f"{type(components).__name__}, expected LiquidatorComponents"
        )
    logger.info("Built liquidator components via %s", config.bootstrap.factory)
    return components
