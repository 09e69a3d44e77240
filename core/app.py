"""
Bot Application — wires settings, stores, gateway, engine, deleter and router.

    settings ─▶ stores ─▶ ProfileRepository ─┐
                                             ├─▶ MessageRouter ◀── inbound ChatMessage
    gateway ──▶ MessageDeleter ──────────────┤
    onboarding flow ─▶ DialogEngine ─────────┘

start() must run inside the event loop; it launches the auto-deleter.
stop() drains running dialogs and flushes both stores.
"""
from __future__ import annotations

import structlog
from typing import Any, Optional

from channels.base import MessagingGateway
from channels.memory_gateway import InMemoryGateway
from config.settings import Settings, get_settings
from context.onboarding import create_onboarding_engine
from core.router import MessageRouter, RouteOutcome
from database.repository import ProfileRepository
from database.store_base import BaseJsonStore
from database.store_factory import create_store
from job_queue.message_deleter import MessageDeleter
from models.schemas import ChatMessage

logger = structlog.get_logger()


class BotApplication:

    def __init__(
        self,
        settings: Optional[Settings] = None,
        gateway: Optional[MessagingGateway] = None,
        users: Optional[BaseJsonStore] = None,
        globals_store: Optional[BaseJsonStore] = None,
    ):
        self.settings = settings or get_settings()
        self.gateway = gateway if gateway is not None else InMemoryGateway()

        self.users = users if users is not None else create_store("users", self.settings.store)
        self.globals = (globals_store if globals_store is not None
                        else create_store("globals", self.settings.store))

        self.profiles = ProfileRepository(
            self.users,
            self.globals,
            default_language=self.settings.bot.default_language,
            default_colleges=self.settings.store.default_colleges,
        )
        self.engine = create_onboarding_engine(self.settings.dialog.max_transitions)
        # The timer needs a running loop, so it is started in start()
        self.deleter = MessageDeleter(
            self.gateway, self.settings.deleter, perform_auto_deletion=False,
        )
        self.router = MessageRouter(
            self.engine,
            self.profiles,
            self.gateway,
            config=self.settings.bot,
            deleter=self.deleter,
        )
        self.started = False

    async def start(self):
        if self.settings.deleter.perform_auto_deletion:
            self.deleter.start_auto_deleter()
        self.started = True
        logger.info("panel_bot_started",
                    app=self.settings.app_name,
                    store_backend=self.settings.store.backend,
                    colleges=len(self.profiles.colleges()))

    async def stop(self):
        await self.deleter.close()
        await self.engine.join_all()
        await self.users.flush_async()
        await self.globals.flush_async()
        await self.gateway.shutdown()
        self.started = False
        logger.info("panel_bot_stopped", sessions=self.engine.count)

    async def handle_message(self, message: ChatMessage) -> RouteOutcome:
        return await self.router.handle_message(message)

    def stats(self) -> dict[str, Any]:
        return {
            "sessions": self.engine.count,
            "active_sessions": sum(1 for s in self.engine.sessions() if s.active),
            "registered_users": len(self.users),
            "colleges": len(self.profiles.colleges()),
            "pending_deletions": self.deleter.pending,
            "deleter_multiplier": self.deleter.multiplier,
        }
