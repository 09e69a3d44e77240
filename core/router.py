"""
Message Router — entry point for every inbound chat message.

Flow:
  ChatMessage
    → allow-list check on the sender (author or from)
    → command?  run the built-in handler, optionally queue the command for deletion
    → otherwise build a DialogContext and create / continue the user's session
"""
from __future__ import annotations

import structlog
from enum import Enum
from typing import Mapping, Optional

from channels.base import MessagingGateway
from config.settings import BotConfig
from context.dialog_context import DialogContext
from context.dialog_engine import DialogEngine
from core.commands import BUILTIN_COMMANDS, CommandHandler, is_command_message, parse_command
from database.repository import ProfileRepository
from job_queue.message_deleter import MessageDeleter
from models.schemas import ChatMessage

logger = structlog.get_logger()


class RouteOutcome(str, Enum):
    IGNORED = "ignored"
    COMMAND = "command"
    UNKNOWN_COMMAND = "unknown_command"
    SESSION_CREATED = "session_created"
    SESSION_CONTINUED = "session_continued"


class MessageRouter:

    def __init__(
        self,
        engine: DialogEngine,
        profiles: ProfileRepository,
        gateway: MessagingGateway,
        config: Optional[BotConfig] = None,
        deleter: Optional[MessageDeleter] = None,
        commands: Optional[Mapping[str, CommandHandler]] = None,
    ):
        self.engine = engine
        self.profiles = profiles
        self.gateway = gateway
        self.config = config or BotConfig()
        self.deleter = deleter
        self.commands = dict(BUILTIN_COMMANDS if commands is None else commands)
        self._allowed = set(self.config.allowed_users)
        self.active_flows: dict[str, str] = {}

    def is_allowed(self, user_id: str) -> bool:
        return not self._allowed or user_id in self._allowed

    def session_for(self, user_id: str) -> Optional[str]:
        return self.active_flows.get(user_id)

    def build_context(self, message: ChatMessage) -> DialogContext:
        user_id = message.user_id
        return DialogContext(
            gateway=self.gateway,
            profiles=self.profiles,
            message=message,
            user=self.profiles.get_profile(user_id),
            user_id=user_id,
            body=message.body or "",
        )

    async def handle_message(self, message: ChatMessage) -> RouteOutcome:
        user_id = message.user_id
        if not self.is_allowed(user_id):
            logger.debug("message_from_unlisted_sender", user_id=user_id)
            return RouteOutcome.IGNORED

        context = self.build_context(message)

        if is_command_message(message, self.config.command_primers):
            return await self._run_command(message, context)

        session_id = self.active_flows.get(user_id)
        if session_id is None or not self.engine.has_session(session_id):
            self.active_flows[user_id] = self.engine.create(context)
            return RouteOutcome.SESSION_CREATED

        self.engine.continue_session(session_id, context)
        return RouteOutcome.SESSION_CONTINUED

    async def _run_command(self, message: ChatMessage, context: DialogContext) -> RouteOutcome:
        command = parse_command(message.body, self.config.command_primers)
        logger.info("command_received", user_id=context.user_id, command=command.raw)

        handler = self.commands.get(command.name)
        if handler is None:
            logger.info("command_unknown", user_id=context.user_id, command=command.name)
            return RouteOutcome.UNKNOWN_COMMAND

        try:
            await handler(command, context)
        except Exception as e:
            logger.error("command_failed",
                         user_id=context.user_id, command=command.name,
                         error=str(e), exc_info=True)

        if self.config.delete_commands and self.deleter is not None:
            await self.deleter.delete_for_me(message)
        return RouteOutcome.COMMAND
