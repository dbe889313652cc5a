"""Telegram inbound transport - getUpdates long polling.

Maps Bot API updates to InboundMessage. Updates that carry no text message
are still returned (with text None) so the poller can move its cursor past
them; otherwise Telegram would redeliver them forever.
"""

import asyncio
import logging
from typing import Optional

import aiohttp

from ..config import AlarmConfig
from ..exceptions import TransportError
from ..models.events import InboundMessage
from .base import InboundTransport


class TelegramTransport(InboundTransport):
    """Fetches updates from the Telegram Bot API.

    Example:
        >>> transport = TelegramTransport(config)
        >>> messages = await transport.fetch_since(0)
        >>> messages[0].text
        'win 30000'
    """

    # Extra client-side time on top of the server-side long-poll wait
    TIMEOUT_MARGIN_SECONDS = 10

    def __init__(self, config: AlarmConfig, http_session: Optional[aiohttp.ClientSession] = None):
        """Initialize transport.

        Args:
            config: Alarm configuration with bot token and long-poll timeout
            http_session: Shared aiohttp session (one per call if omitted)
        """
        self.config = config
        self.logger = logging.getLogger(__name__)
        self._http_session = http_session

        self.base_url = f"{config.telegram_api_base}/bot{config.telegram_bot_token}"
        self.long_poll_timeout = config.long_poll_timeout_seconds
        self.timeout = aiohttp.ClientTimeout(
            total=self.long_poll_timeout + self.TIMEOUT_MARGIN_SECONDS
        )

    async def fetch_since(self, cursor: int) -> list[InboundMessage]:
        params = {"offset": cursor + 1, "timeout": self.long_poll_timeout}

        try:
            data = await self._get("getUpdates", params)
        except (aiohttp.ClientError, asyncio.TimeoutError) as e:
            raise TransportError(f"getUpdates failed: {e or type(e).__name__}") from e
        except ValueError as e:
            # Body was not JSON
            raise TransportError(f"getUpdates returned invalid JSON: {e}") from e

        if not isinstance(data, dict) or not data.get("ok"):
            description = data.get("description") if isinstance(data, dict) else None
            raise TransportError(f"getUpdates rejected: {description or data!r}")

        updates = data.get("result", [])
        if not isinstance(updates, list):
            raise TransportError(f"getUpdates result is not a list: {type(updates).__name__}")

        messages = []
        for update in updates:
            message = self.parse_update(update)
            if message is not None and message.id > cursor:
                messages.append(message)

        return messages

    @staticmethod
    def parse_update(update: dict) -> Optional[InboundMessage]:
        """Convert one Bot API update into an InboundMessage.

        Returns:
            InboundMessage, or None if the update is not an object or has no
            integer update_id
        """
        if not isinstance(update, dict):
            return None

        try:
            update_id = int(update.get("update_id"))
        except (TypeError, ValueError):
            return None

        message = update.get("message")
        if not isinstance(message, dict):
            message = {}
        chat = message.get("chat")
        if not isinstance(chat, dict):
            chat = {}
        chat_id = chat.get("id")
        text = message.get("text")

        return InboundMessage(
            id=update_id,
            user_identifier=str(chat_id) if chat_id is not None else None,
            text=text if isinstance(text, str) else None,
        )

    async def _get(self, method: str, params: dict):
        url = f"{self.base_url}/{method}"

        if self._http_session is not None:
            return await self._get_with(self._http_session, url, params)

        async with aiohttp.ClientSession(timeout=self.timeout) as session:
            return await self._get_with(session, url, params)

    async def _get_with(self, session: aiohttp.ClientSession, url: str, params: dict):
        async with session.get(url, params=params, timeout=self.timeout) as response:
            if response.status != 200:
                error_text = await response.text()
                raise TransportError(
                    f"Telegram API error {response.status}: {error_text}",
                    status=response.status,
                )
            return await response.json()
