"""Service modules"""
from .liquidation import LiquidationSelector
from .rebalancer import RebalanceEngine
from .supervisor import Supervisor, SupervisorState

__all__ = ["LiquidationSelector", "RebalanceEngine", "Supervisor", "SupervisorState"]
