"""Messaging gateway contract and the in-memory gateway."""
from channels.base import ChannelError, DeliveryError, MessagingGateway
from channels.memory_gateway import InMemoryGateway

__all__ = [
    "ChannelError", "DeliveryError", "MessagingGateway",
    "InMemoryGateway",
]
