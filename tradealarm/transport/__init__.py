"""Inbound message transport - ordered delivery of user chat messages."""

from .base import InboundTransport
from .telegram import TelegramTransport

__all__ = [
    "InboundTransport",
    "TelegramTransport",
]
