"""
Commands — `/name query` messages handled outside the dialog.

A message is a command when its body starts with one of the configured
primers ("/", "!", "\\") and it is not a location share. The name is the
first whitespace-delimited word, lowercased, with "-" and "_" removed, so
"/Set-Lang" and "/set_lang" both resolve to "setlang".
"""
from __future__ import annotations

import re
import structlog
from dataclasses import dataclass
from typing import Awaitable, Callable, Mapping, Optional, Sequence

from context.dialog_context import DialogContext
from models.schemas import ChatMessage, MessageType
from templates.replies import available_languages, get_replies, has_language

logger = structlog.get_logger()

_WHITESPACE = re.compile(r"\s")


@dataclass(frozen=True)
class Command:
    name: str
    query: str = ""
    raw: str = ""


def parse_command(body: str, primers: Sequence[str]) -> Optional[Command]:
    """Split a primed body into (name, query). Returns None for non-commands."""
    if not body or body[0] not in primers:
        return None

    raw = body[1:].strip()
    match = _WHITESPACE.search(raw)
    word = raw[:match.start()] if match else raw
    query = raw[match.start():].strip() if match else ""
    name = word.lower().replace("-", "").replace("_", "")
    return Command(name=name, query=query, raw=raw)


def is_command_message(message: ChatMessage, primers: Sequence[str]) -> bool:
    if message.type == MessageType.LOCATION.value:
        return False
    return bool(message.body) and message.body[0] in primers


# ──────────────────────────────────────────────────────────────
#  Built-in handlers
# ──────────────────────────────────────────────────────────────

CommandHandler = Callable[[Command, DialogContext], Awaitable[None]]


async def lang_command(command: Command, ctx: DialogContext) -> None:
    language = command.query.lower()
    replies = get_replies(ctx.user.language)

    if not has_language(language):
        await ctx.gateway.send_message(
            ctx.chat_id,
            replies["lang"]["no_such_lang"](language, ", ".join(available_languages())),
        )
        return

    await ctx.profiles.update_profile(ctx.user_id, language=language)
    await ctx.gateway.send_message(ctx.chat_id, get_replies(language)["lang"]["changed"](language))


async def about_command(command: Command, ctx: DialogContext) -> None:
    await ctx.gateway.send_message(ctx.chat_id, get_replies(ctx.user.language)["about"])


BUILTIN_COMMANDS: Mapping[str, CommandHandler] = {
    "lang": lang_command,
    "about": about_command,
}
