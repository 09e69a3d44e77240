"""
Onboarding Flow — the bot's state table.

    INITIAL ──(registered)──────────────────────────────▶ SHOW_DETAILS
       │                                                       ▲
       ▼                                                       │
    PROMPT_NAME ⏸ → REGISTER_NAME → PROMPT_COLLEGE ⏸ → REGISTER_COLLEGE
                        │                 ▲                    │
                        ▼                 └──("Other")─────────┤
                    WRONG_INPUT ◀──────────────────────────────┘
                    (back to return_state)

    SHOW_DETAILS ⏸ → IDLE ⏸

⏸ marks a suspension: the transition waits for the user's next message.

Handlers are plain async functions over an immutable DialogContext. They
talk to the user through ctx.gateway and persist through ctx.profiles.
"""
from __future__ import annotations

import re
import structlog
from enum import Enum
from types import MappingProxyType
from typing import Mapping

from context.dialog_context import DialogContext
from context.dialog_engine import DialogEngine, Handler, Transition
from models.schemas import ListMessage, ListRow, ListSection, MessageType, OTHER_COLLEGE
from templates.replies import get_replies

logger = structlog.get_logger()

# A letter followed by at least one more letter, digit or space
NAME_PATTERN = re.compile(r"[^\W\d_](?:[^\W_]|[^\S\r\n\t\f\v])+", re.MULTILINE)


class DialogState(str, Enum):
    INITIAL = "INITIAL"
    PROMPT_NAME = "PROMPT_NAME"
    REGISTER_NAME = "REGISTER_NAME"
    PROMPT_COLLEGE = "PROMPT_COLLEGE"
    REGISTER_COLLEGE = "REGISTER_COLLEGE"
    SHOW_DETAILS = "SHOW_DETAILS"
    IDLE = "IDLE"
    WRONG_INPUT = "WRONG_INPUT"


def is_valid_name(text: str) -> bool:
    return bool(text and NAME_PATTERN.search(text))


def build_college_list(colleges: list[str], language: str) -> ListMessage:
    labels = get_replies(language)["college"]
    return ListMessage(
        title=labels["title"],
        description=labels["description"],
        button_text=labels["button_text"],
        sections=[ListSection(
            title=labels["section_title"],
            rows=[ListRow(title=name, id=f"college:{i}") for i, name in enumerate(colleges)],
        )],
    )


# ──────────────────────────────────────────────────────────────
#  Handlers
# ──────────────────────────────────────────────────────────────

async def initial(ctx: DialogContext) -> Transition:
    replies = get_replies(ctx.user.language)
    if ctx.user.is_registered:
        await ctx.gateway.send_message(ctx.chat_id, replies["welcome_back"](ctx.user.name))
        return Transition(DialogState.SHOW_DETAILS)

    await ctx.gateway.send_message(ctx.chat_id, replies["greeting"])
    return Transition(DialogState.PROMPT_NAME)


async def prompt_name(ctx: DialogContext) -> Transition:
    await ctx.gateway.send_message(ctx.chat_id, get_replies(ctx.user.language)["prompt"]["name"])
    return Transition(DialogState.REGISTER_NAME, suspend=True)


async def register_name(ctx: DialogContext) -> Transition:
    name = ctx.body.strip()
    if not is_valid_name(name):
        logger.info("dialog_invalid_name", user_id=ctx.user_id)
        return Transition(DialogState.WRONG_INPUT,
                          patch={"return_state": DialogState.PROMPT_NAME})

    user = await ctx.profiles.update_profile(ctx.user_id, name=name)
    return Transition(DialogState.PROMPT_COLLEGE, patch={"user": user})


async def prompt_college(ctx: DialogContext) -> Transition:
    replies = get_replies(ctx.user.language)
    if ctx.get("for_name", False):
        await ctx.gateway.send_message(ctx.chat_id, replies["prompt"]["college_name"])
    else:
        await ctx.gateway.send_message(ctx.chat_id, replies["prompt"]["college"](ctx.user.name))
        await ctx.gateway.send_message(
            ctx.chat_id, build_college_list(ctx.profiles.colleges(), ctx.user.language)
        )
    return Transition(DialogState.REGISTER_COLLEGE, suspend=True)


async def register_college(ctx: DialogContext) -> Transition:
    message_type = ctx.message.type
    college = ctx.body.strip()
    retry = Transition(DialogState.WRONG_INPUT,
                       patch={"return_state": DialogState.PROMPT_COLLEGE})

    if message_type not in (MessageType.LIST_RESPONSE.value, MessageType.CHAT.value):
        logger.info("dialog_unexpected_message_type",
                    user_id=ctx.user_id, message_type=message_type)
        return retry
    if not college:
        return retry
    if college.casefold() == OTHER_COLLEGE.casefold():
        return Transition(DialogState.PROMPT_COLLEGE, patch={"for_name": True})

    if message_type == MessageType.CHAT.value:
        await ctx.profiles.add_college(college)

    user = await ctx.profiles.update_profile(ctx.user_id, college=college)
    return Transition(DialogState.SHOW_DETAILS, patch={"user": user})


async def show_details(ctx: DialogContext) -> Transition:
    describe = get_replies(ctx.user.language)["describe_user"]
    await ctx.gateway.send_message(ctx.chat_id, describe(ctx.user.model_dump()))
    return Transition(DialogState.IDLE, suspend=True)


async def idle(ctx: DialogContext) -> Transition:
    return Transition(DialogState.IDLE, suspend=True)


async def wrong_input(ctx: DialogContext) -> Transition:
    await ctx.gateway.send_message(ctx.chat_id, get_replies(ctx.user.language)["prompt"]["error"])
    return Transition(ctx.get("return_state", DialogState.INITIAL))


ONBOARDING_FLOW: Mapping[DialogState, Handler] = MappingProxyType({
    DialogState.INITIAL: initial,
    DialogState.PROMPT_NAME: prompt_name,
    DialogState.REGISTER_NAME: register_name,
    DialogState.PROMPT_COLLEGE: prompt_college,
    DialogState.REGISTER_COLLEGE: register_college,
    DialogState.SHOW_DETAILS: show_details,
    DialogState.IDLE: idle,
    DialogState.WRONG_INPUT: wrong_input,
})


def create_onboarding_engine(max_transitions: int = 64) -> DialogEngine:
    return DialogEngine(ONBOARDING_FLOW, DialogState.INITIAL, max_transitions=max_transitions)
