"""Notifier protocol — operator notification channel."""
from typing import Protocol


class Notifier(Protocol):
    """Deliver liquidation alerts and fault logs to an operator."""

    async def send_alert(self, message: str) -> bool: ...

    async def send_log(self, message: str, silent: bool = True) -> bool: ...
