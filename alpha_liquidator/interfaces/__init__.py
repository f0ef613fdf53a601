"""Protocol interfaces for the liquidator's external collaborators."""
from .notifier import Notifier
from .protocol_client import ProtocolClient
from .swap_router import SwapRouter
from .wallet import Wallet

__all__ = ["Notifier", "ProtocolClient", "SwapRouter", "Wallet"]
