"""Lending-protocol liquidator: keeps its own account in quote and liquidates unhealthy borrowers."""

__version__ = "0.1.0"
