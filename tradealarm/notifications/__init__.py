"""Outbound notifications - fire-and-forget text delivery to a user.

Components:
- Notifier: interface the session engine and reminder scheduler depend on
- TelegramNotifier: Telegram Bot API sendMessage implementation

A failed send is logged and reported as False; it never raises and never
rolls back the state change that triggered it.

Configuration:
    ```bash
    TELEGRAM_BOT_TOKEN=your_bot_token
    ALARM_SEND_TIMEOUT_SECONDS=10
    ```
"""

from .base import Notifier
from .telegram import TelegramNotifier

__all__ = [
    "Notifier",
    "TelegramNotifier",
]
