"""
Core data models for the Panel Bot system.
These are the universal types shared across all modules.
"""
from __future__ import annotations

import time
import uuid
from enum import Enum
from typing import Any, Optional, Union

from pydantic import BaseModel, ConfigDict, Field


USER_SUFFIX = "@c.us"
GROUP_SUFFIX = "@g.us"
OTHER_COLLEGE = "Other"


# ──────────────────────────────────────────────────────────────
#  Enums
# ──────────────────────────────────────────────────────────────

class MessageType(str, Enum):
    CHAT = "chat"
    LIST_RESPONSE = "list_response"
    BUTTONS_RESPONSE = "buttons_response"
    LOCATION = "location"
    IMAGE = "image"


# ──────────────────────────────────────────────────────────────
#  Messages: inbound events and send handles
# ──────────────────────────────────────────────────────────────

class ChatMessage(BaseModel):
    """A message seen by the bot, either received or sent by it."""
    model_config = ConfigDict(populate_by_name=True)

    id: str = Field(default_factory=lambda: uuid.uuid4().hex)
    type: str = MessageType.CHAT.value
    sender: str = Field(default="", alias="from")
    to: str = ""
    author: Optional[str] = None              # group participant who wrote it
    body: str = ""
    timestamp: float = Field(default_factory=time.time)
    from_me: bool = False
    selected_row_id: Optional[str] = None

    @property
    def user_id(self) -> str:
        return self.author or self.sender

    @property
    def chat_id(self) -> str:
        """The chat this message belongs to, seen from the bot's side."""
        return self.to if self.from_me else self.sender


class ListRow(BaseModel):
    title: str
    id: str = ""


class ListSection(BaseModel):
    title: str = ""
    rows: list[ListRow] = []


class ListMessage(BaseModel):
    """Selectable list payload (title, description, button, sections)."""
    title: str = ""
    description: str
    button_text: str
    sections: list[ListSection] = []

    @property
    def row_titles(self) -> list[str]:
        return [row.title for s in self.sections for row in s.rows]


MessageContent = Union[str, ListMessage]


class SendOptions(BaseModel):
    quoted_message_id: Optional[str] = None


# ──────────────────────────────────────────────────────────────
#  Profile & registry records
# ──────────────────────────────────────────────────────────────

class UserProfile(BaseModel):
    """Stored profile of a user, keyed by user id."""
    language: str = "en"
    name: Optional[str] = None
    college: Optional[str] = None

    @property
    def is_registered(self) -> bool:
        return bool(self.name and self.college)


class GlobalRegistry(BaseModel):
    """Single process-wide record of known colleges."""
    colleges: list[str] = [OTHER_COLLEGE]

    def normalized(self) -> GlobalRegistry:
        """Return a copy with the "Other" sentinel present once and last."""
        names = [c for c in self.colleges if c and c != OTHER_COLLEGE]
        return GlobalRegistry(colleges=[*dict.fromkeys(names), OTHER_COLLEGE])


# ──────────────────────────────────────────────────────────────
#  Deletion queue records
# ──────────────────────────────────────────────────────────────

class MessageRecord(BaseModel):
    id: str
    timestamp: float


# ──────────────────────────────────────────────────────────────
#  Identifier helpers
# ──────────────────────────────────────────────────────────────

def is_user_id(identifier: str) -> bool:
    return identifier.endswith(USER_SUFFIX)


def is_group_id(identifier: str) -> bool:
    return identifier.endswith(GROUP_SUFFIX)


def to_user_id(number: str) -> str:
    """Turn a bare number (optionally with '+') into a user identifier."""
    if number.endswith(USER_SUFFIX) or number.endswith(GROUP_SUFFIX):
        return number
    return number.lstrip("+") + USER_SUFFIX


def dump_payload(content: Any) -> Any:
    if isinstance(content, BaseModel):
        return content.model_dump(mode="json")
    return content
