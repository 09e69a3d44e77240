"""
Dialog Context — the immutable input record handed to every state handler.

One context is built per inbound message. Between handler calls the engine
overlays the previous handler's patch with `merge()`, which always returns a
new context; nothing is shared or mutated across steps.
"""
from __future__ import annotations

from dataclasses import dataclass, field, fields, replace
from types import MappingProxyType
from typing import TYPE_CHECKING, Any, Mapping, Optional

from models.schemas import ChatMessage, UserProfile

if TYPE_CHECKING:
    from channels.base import MessagingGateway
    from database.repository import ProfileRepository


@dataclass(frozen=True)
class DialogContext:
    gateway: "MessagingGateway"
    profiles: "ProfileRepository"
    message: ChatMessage
    user: UserProfile
    user_id: str
    body: str = ""
    extra: Mapping[str, Any] = field(default_factory=lambda: MappingProxyType({}))

    @property
    def chat_id(self) -> str:
        """Where replies go: the chat the message arrived in."""
        return self.message.sender

    def get(self, key: str, default: Any = None) -> Any:
        return self.extra.get(key, default)

    def merge(self, patch: Optional[Mapping[str, Any]]) -> DialogContext:
        """Overlay a patch: known fields are replaced, anything else lands in `extra`."""
        if not patch:
            return self
        own = {f.name for f in fields(self)} - {"extra"}
        updates = {k: v for k, v in patch.items() if k in own}
        extra = {**self.extra, **{k: v for k, v in patch.items() if k not in own}}
        return replace(self, extra=MappingProxyType(extra), **updates)
