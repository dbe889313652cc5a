"""Telegram Notifier - Send messages via Telegram bot.

Sends session notifications to the user's chat using the Bot API
sendMessage method with Markdown formatting.
"""

import asyncio
import logging
from typing import Optional

import aiohttp

from ..config import AlarmConfig
from ..exceptions import NotificationError
from .base import Notifier


class TelegramNotifier(Notifier):
    """Telegram notification handler.

    Sends messages to a chat using the Bot API. The chat id is the session's
    user identifier, so one notifier serves every user.

    Example:
        >>> notifier = TelegramNotifier(config)
        >>> await notifier.send("123456789", "🔔 *REMINDER*")
        True
    """

    def __init__(self, config: AlarmConfig, http_session: Optional[aiohttp.ClientSession] = None):
        """Initialize Telegram notifier.

        Args:
            config: Alarm configuration with the bot token
            http_session: Shared aiohttp session (one per call if omitted)
        """
        self.config = config
        self.logger = logging.getLogger(__name__)
        self._http_session = http_session

        self.bot_token = config.telegram_bot_token
        if not self.bot_token:
            self.logger.warning("Telegram not configured (missing bot_token)")

        self.base_url = f"{config.telegram_api_base}/bot{self.bot_token}"
        self.timeout = aiohttp.ClientTimeout(total=config.send_timeout_seconds)

    async def send(self, user_identifier: str, text: str) -> bool:
        """Send message to a Telegram chat.

        Args:
            user_identifier: Chat id
            text: Message text (supports markdown)

        Returns:
            True if Telegram accepted the message
        """
        if not self.bot_token:
            self.logger.warning("Telegram not configured, skipping notification")
            return False

        payload = {
            "chat_id": user_identifier,
            "text": text,
            "parse_mode": "Markdown",
            "disable_web_page_preview": True,
        }

        try:
            await self._post("sendMessage", payload)
            self.logger.debug("Telegram notification sent", extra={"identifier": user_identifier})
            return True

        except NotificationError as e:
            self.logger.error(
                "telegram_send_failed",
                extra={"identifier": user_identifier, "error": str(e)},
            )
        except (aiohttp.ClientError, asyncio.TimeoutError) as e:
            self.logger.error(
                "telegram_send_failed",
                extra={"identifier": user_identifier, "error": str(e) or type(e).__name__},
            )

        return False

    async def _post(self, method: str, payload: dict):
        url = f"{self.base_url}/{method}"

        if self._http_session is not None:
            await self._post_with(self._http_session, url, payload)
            return

        async with aiohttp.ClientSession(timeout=self.timeout) as session:
            await self._post_with(session, url, payload)

    async def _post_with(self, session: aiohttp.ClientSession, url: str, payload: dict):
        async with session.post(url, json=payload, timeout=self.timeout) as response:
            if response.status != 200:
                error_text = await response.text()
                raise NotificationError(f"Telegram API error {response.status}: {error_text}")
