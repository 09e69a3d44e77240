"""
In-memory Messaging Gateway — a stand-in chat network for tests and the HTTP harness.

Keeps every chat's visible message history in process memory:
- send_message appends a bot-authored message and returns it as the handle
- record_inbound appends a user-authored message (what a transport would see)
- delete_messages removes messages from the bot's view of a chat
- Destinations listed in `reject` raise DeliveryError on send
"""
from __future__ import annotations

import time
import uuid
import structlog
from collections import defaultdict
from typing import Iterable, Optional, Sequence

from channels.base import DeliveryError, MessagingGateway
from models.schemas import ChatMessage, ListMessage, MessageContent, MessageType, SendOptions

logger = structlog.get_logger()


class InMemoryGateway(MessagingGateway):

    def __init__(self, bot_id: str = "server@c.us", reject: Iterable[str] = ()):
        self.bot_id = bot_id
        self.reject = set(reject)
        self._chats: dict[str, list[ChatMessage]] = defaultdict(list)
        self._payloads: dict[str, MessageContent] = {}
        self.sent: list[tuple[str, MessageContent, Optional[SendOptions]]] = []
        self.deleted: list[tuple[str, list[str]]] = []
        self.deleted_chats: list[str] = []

    # ── Outbound ──────────────────────────────────────────────

    async def send_message(
        self,
        chat_id: str,
        content: MessageContent,
        options: Optional[SendOptions] = None,
    ) -> ChatMessage:
        if chat_id in self.reject:
            raise DeliveryError(f"Delivery to {chat_id} rejected", chat_id=chat_id)

        body = content if isinstance(content, str) else content.description
        message = ChatMessage(
            id=f"true_{chat_id}_{uuid.uuid4().hex[:20]}",
            type=MessageType.CHAT.value if isinstance(content, str) else "list",
            sender=self.bot_id,
            to=chat_id,
            body=body,
            timestamp=time.time(),
            from_me=True,
        )
        self._chats[chat_id].append(message)
        self._payloads[message.id] = content
        self.sent.append((chat_id, content, options))
        logger.debug("gateway_message_sent", chat_id=chat_id, message_id=message.id)
        return message

    # ── Inbound ───────────────────────────────────────────────

    def record_inbound(self, message: ChatMessage) -> ChatMessage:
        self._chats[message.chat_id].append(message)
        return message

    # ── Deletion & inspection ─────────────────────────────────

    async def delete_messages(self, chat_id: str, message_ids: Sequence[str]) -> int:
        ids = set(message_ids)
        history = self._chats.get(chat_id, [])
        kept = [m for m in history if m.id not in ids]
        removed = len(history) - len(kept)
        if chat_id in self._chats:
            self._chats[chat_id] = kept
        self.deleted.append((chat_id, list(message_ids)))
        logger.debug("gateway_messages_deleted", chat_id=chat_id, removed=removed)
        return removed

    async def fetch_messages(self, chat_id: str, limit: int = 1) -> list[ChatMessage]:
        history = self._chats.get(chat_id, [])
        return list(history[-limit:]) if limit > 0 else []

    async def delete_chat(self, chat_id: str) -> bool:
        existed = self._chats.pop(chat_id, None) is not None
        self.deleted_chats.append(chat_id)
        return existed

    # ── Test helpers ──────────────────────────────────────────

    def outbox(self, chat_id: str) -> list[MessageContent]:
        return [content for cid, content, _ in self.sent if cid == chat_id]

    def texts(self, chat_id: str) -> list[str]:
        return [c for c in self.outbox(chat_id) if isinstance(c, str)]

    def lists(self, chat_id: str) -> list[ListMessage]:
        return [c for c in self.outbox(chat_id) if isinstance(c, ListMessage)]

    def history(self, chat_id: str) -> list[ChatMessage]:
        return list(self._chats.get(chat_id, []))
