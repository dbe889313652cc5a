"""Inbound transport interface."""

from abc import ABC, abstractmethod

from ..models.events import InboundMessage


class InboundTransport(ABC):
    """Source of inbound chat messages, in delivery order."""

    @abstractmethod
    async def fetch_since(self, cursor: int) -> list[InboundMessage]:
        """Fetch messages with id strictly greater than cursor.

        Args:
            cursor: Id of the last message already read (0 for none)

        Returns:
            Messages in delivery order; may be empty

        Raises:
            TransportError: Network failure, timeout or bad response
        """
        pass
