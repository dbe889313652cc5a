"""Notifier interface."""

from abc import ABC, abstractmethod


class Notifier(ABC):
    """Delivers a text message to one user.

    Implementations must not raise: delivery failures are logged and
    reported through the return value.
    """

    @abstractmethod
    async def send(self, user_identifier: str, text: str) -> bool:
        """Send text to the user.

        Args:
            user_identifier: Target user (Telegram chat id)
            text: Message text (Markdown)

        Returns:
            True if delivered, False otherwise
        """
        pass
