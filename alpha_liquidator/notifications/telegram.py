"""Telegram notification service for liquidation alerts and fault logs."""
import logging
import ssl

import aiohttp
import certifi

from ..config import TelegramConfig

logger = logging.getLogger(__name__)

_API_URL = "https://api.telegram.org/bot{token}/sendMessage"


class TelegramNotifier:
    """Send liquidator events to Telegram.

    Alerts (liquidations) go through the alert bot with sound; fault logs go
    through the log bot, muted by default.
    """

    def __init__(self, config: TelegramConfig, timeout: int = 10) -> None:
        self.alert_bot_token = config.alert_bot_token
        self.log_bot_token = config.log_bot_token
        self.chat_id = config.chat_id
        self.timeout = timeout

    async def _send_message(
        self, message: str, bot_token: str, silent: bool = False
    ) -> bool:
        if not bot_token or not self.chat_id:
            logger.warning("Telegram credentials not configured")
            return False

        payload = {
            "chat_id": self.chat_id,
            "text": message,
            "disable_notification": silent,
        }

        ssl_context = ssl.create_default_context(cafile=certifi.where())
        connector = aiohttp.TCPConnector(ssl=ssl_context)

        async with aiohttp.ClientSession(connector=connector) as session:
            async with session.post(
                _API_URL.format(token=bot_token),
                json=payload,
                timeout=aiohttp.ClientTimeout(total=self.timeout),
            ) as response:
                if response.status != 200:
                    logger.error("Telegram rejected message: HTTP %s", response.status)
                    return False
                return True

    async def send_alert(self, message: str) -> bool:
        sent = await self._send_message(message, self.alert_bot_token, silent=False)
        if sent:
            logger.info("Telegram alert sent")
        return sent

    async def send_log(self, message: str, silent: bool = True) -> bool:
        sent = await self._send_message(message, self.log_bot_token, silent=silent)
        if sent:
            logger.debug("Telegram log sent")
        return sent
