"""
Messaging Gateway — the bot's only view of the chat network.

Provides:
- ChannelError / DeliveryError: structured error hierarchy
- MessagingGateway: abstract send / delete / chat-inspection contract

The transport behind a gateway (wire format, auth, sessions) is not part of
this package. Handlers send through `send_message`; the batch deleter uses
the deletion and chat-inspection calls.
"""
from __future__ import annotations

import abc
from typing import Optional, Sequence

from models.schemas import ChatMessage, MessageContent, SendOptions


# ══════════════════════════════════════════════════════════════
#  ERRORS
# ══════════════════════════════════════════════════════════════

class ChannelError(Exception):
    """Base exception for all gateway operations."""

    def __init__(self, message: str, chat_id: str = "", retryable: bool = False):
        self.chat_id = chat_id
        self.retryable = retryable
        super().__init__(message)


class DeliveryError(ChannelError):
    """The gateway rejected an outbound message."""


# ══════════════════════════════════════════════════════════════
#  GATEWAY: Abstract Base
# ══════════════════════════════════════════════════════════════

class MessagingGateway(abc.ABC):

    @abc.abstractmethod
    async def send_message(
        self,
        chat_id: str,
        content: MessageContent,
        options: Optional[SendOptions] = None,
    ) -> ChatMessage:
        """Send text or a list payload; returns a handle to the sent message."""
        ...

    @abc.abstractmethod
    async def delete_messages(self, chat_id: str, message_ids: Sequence[str]) -> int:
        """Delete messages for the bot only. Returns how many were found."""
        ...

    @abc.abstractmethod
    async def fetch_messages(self, chat_id: str, limit: int = 1) -> list[ChatMessage]:
        """Most recent messages still visible in a chat, newest last."""
        ...

    @abc.abstractmethod
    async def delete_chat(self, chat_id: str) -> bool:
        ...

    async def shutdown(self) -> None:
        pass
